import pytest

from lottie_render.config.schemas import InjectOptions
from lottie_render.document import build_document, cssify, player_script_tag
from lottie_render.errors import ConfigurationError


def test_cssify():
    assert cssify({"backgroundColor": "red", "opacity": 0.5}) == "background-color: red; opacity: 0.5;"
    assert cssify({"--accent": "#fff"}) == "--accent: #fff;"
    assert cssify({}) == ""


def test_document_embeds_animation_and_size(sample_animation):
    html = build_document(sample_animation, 320, 240, player_url="https://cdn.example/lottie.js")
    assert '"fr": 30' in html
    assert "width: 320px;" in html and "height: 240px;" in html
    assert '<script src="https://cdn.example/lottie.js"></script>' in html
    assert '<div id="root"></div>' in html
    assert 'renderer: "svg"' in html
    assert "window.seekToFrame" in html
    assert "window.lottieInfo" in html
    assert "div.className = 'ready'" in html


def test_document_escapes_closing_script(sample_animation):
    data = dict(sample_animation, nm="</script><b>x</b>")
    html = build_document(data, 10, 10, player_url="p.js")
    assert "</script><b>" not in html
    assert "<\\/script><b>" in html


def test_document_options(sample_animation):
    html = build_document(
        sample_animation,
        10,
        10,
        renderer="canvas",
        renderer_settings={"preserveAspectRatio": "xMidYMid slice"},
        style={"backgroundColor": "black"},
        inject=InjectOptions(head="<!-- head -->", style=".x{}", body="<p>extra</p>"),
        player_url="p.js",
    )
    assert 'renderer: "canvas"' in html
    assert '"preserveAspectRatio": "xMidYMid slice"' in html
    assert "background-color: black;" in html
    for snippet in ("<!-- head -->", ".x{}", "<p>extra</p>"):
        assert snippet in html


def test_player_inlined_from_path(tmp_path):
    player = tmp_path / "lottie.min.js"
    player.write_text("var lottie = {};", encoding="utf-8")
    tag = player_script_tag(str(player), "https://unused")
    assert tag.startswith("<script>") and "var lottie = {};" in tag
    assert "unused" not in tag


def test_missing_player_path(tmp_path):
    with pytest.raises(ConfigurationError, match="Cannot read Lottie player"):
        player_script_tag(str(tmp_path / "nope.js"), "https://unused")
