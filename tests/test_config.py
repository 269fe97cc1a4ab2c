import os

import pytest

from lottie_render.errors import ConfigurationError
from lottie_render.utils.config import load_settings


def test_defaults_without_files(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    s = load_settings(env_file=None)
    assert s.ffmpeg.crf == 20
    assert s.browser.launch_options == {"headless": True}
    assert s.progress.url is None
    d = s.request_defaults()
    assert d["progress_interval"] == 100
    assert "progress_url" not in d and "player_path" not in d


def test_precedence(monkeypatch, tmp_path):
    (tmp_path / "conf").mkdir()
    (tmp_path / "conf/render.example.yaml").write_text("jpeg_quality: 50\n", encoding="utf-8")
    (tmp_path / "conf/render.yaml").write_text(
        "jpeg_quality: 70\nffmpeg:\n  crf: 28\nprogress:\n  interval: 25\n", encoding="utf-8"
    )
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("LOTTIE_PROGRESS_INTERVAL", "10")
    monkeypatch.setenv("LOTTIE_PROGRESS_URL", "http://localhost:9000/progress")

    s = load_settings(env_file=None, cli_overrides={"ffmpeg": {"preset": "fast"}})
    # render.yaml wins over the example file
    assert s.jpeg_quality == 70
    # env wins over yaml, cli merges into yaml
    assert s.progress.interval == 10
    assert s.ffmpeg.crf == 28 and s.ffmpeg.preset == "fast"
    assert s.request_defaults()["progress_url"] == "http://localhost:9000/progress"


def test_dotenv_file(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    (tmp_path / ".env").write_text("LOTTIE_RENDER_STATE_FILE=jobs/state.jsonl\n", encoding="utf-8")
    s = load_settings()
    assert s.state_file == "jobs/state.jsonl"


def test_explicit_missing_path(tmp_path):
    with pytest.raises(ConfigurationError, match="missing"):
        load_settings(str(tmp_path / "nope.yaml"), env_file=None)


def test_invalid_yaml(tmp_path):
    bad = tmp_path / "bad.yaml"
    bad.write_text("ffmpeg: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="Failed to parse"):
        load_settings(str(bad), env_file=None)


def test_non_mapping_yaml(tmp_path):
    bad = tmp_path / "list.yaml"
    bad.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="mapping"):
        load_settings(str(bad), env_file=None)


def test_out_of_range_value(tmp_path):
    p = tmp_path / "r.yaml"
    p.write_text("ffmpeg:\n  crf: 99\n", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="Invalid settings"):
        load_settings(str(p), env_file=None)


def test_example_config_is_valid():
    root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    s = load_settings(os.path.join(root, "conf", "render.example.yaml"), env_file=None)
    assert s.browser.launch_options["args"] == ["--no-sandbox"]
    assert s.gifski.quality == 80
