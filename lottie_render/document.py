"""
HTML document hosting the Lottie player.

The page embeds the animation JSON and the lottie-web player, loads the
animation paused, publishes duration/frame count on ``window.lottieInfo``
and appends a ``.ready`` marker element once they are known. Seeking goes
through ``window.seekToFrame(frame)``, which performs a one-shot text setup
pass on its first call before every frame-accurate ``goToAndStop``.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Dict, Optional

from lottie_render.config.schemas import InjectOptions
from lottie_render.errors import ConfigurationError

READY_SELECTOR = ".ready"
ROOT_SELECTOR = "#root"

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")

_PLAYER_BOOTSTRAP = """
  const animationData = %(animation_data)s
  let animation = null
  let setupDone = false

  function resizeBoxedText () {
    const layers = animationData.layers || []
    const elements = (animation.renderer && animation.renderer.elements) || []
    for (let i = 0; i < elements.length; i++) {
      const layer = layers[i]
      if (!layer || !elements[i] || typeof layer.nm !== 'string') continue
      if (layer.nm.substr(5, 3) !== 'txt') continue
      const keyed = layer.t && layer.t.d && layer.t.d.k
      if (keyed && keyed[0] && keyed[0].s && keyed[0].s.sz !== undefined &&
          typeof elements[i].canResizeFont === 'function') {
        elements[i].canResizeFont(true)
      }
    }
  }

  window.seekToFrame = function (frame) {
    if (!setupDone) {
      resizeBoxedText()
      setupDone = true
    }
    animation.goToAndStop(frame, true)
  }

  function onReady () {
    animation = lottie.loadAnimation({
      container: document.getElementById('root'),
      renderer: %(renderer)s,
      loop: false,
      autoplay: false,
      rendererSettings: %(renderer_settings)s,
      animationData
    })

    window.lottieInfo = {
      duration: animation.getDuration(),
      numFrames: animation.getDuration(true)
    }

    const div = document.createElement('div')
    div.className = 'ready'
    document.body.appendChild(div)
  }

  document.addEventListener('DOMContentLoaded', onReady)
"""


def cssify(style: Dict[str, Any]) -> str:
    """{"backgroundColor": "red", "opacity": 0.5} -> background-color: red; opacity: 0.5;"""
    parts = []
    for key, value in style.items():
        prop = key if key.startswith("--") else _CAMEL_RE.sub("-", key).lower()
        parts.append(f"{prop}: {value};")
    return " ".join(parts)


def _script_json(value: Any) -> str:
    # keep "</script>" inside string values from closing the tag
    return json.dumps(value).replace("</", "<\\/")


def player_script_tag(player_path: Optional[str], player_url: str) -> str:
    if player_path:
        p = Path(player_path)
        try:
            source = p.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Cannot read Lottie player script {p}: {e}") from e
        return f"<script>\n{source}\n</script>"
    return f'<script src="{player_url}"></script>'


def build_document(
    animation_data: Dict[str, Any],
    width: int,
    height: int,
    *,
    renderer: str = "svg",
    renderer_settings: Optional[Dict[str, Any]] = None,
    style: Optional[Dict[str, Any]] = None,
    inject: Optional[InjectOptions] = None,
    player_path: Optional[str] = None,
    player_url: str = "",
) -> str:
    inject = inject or InjectOptions()
    script = _PLAYER_BOOTSTRAP % {
        "animation_data": _script_json(animation_data),
        "renderer": json.dumps(renderer),
        "renderer_settings": _script_json(renderer_settings or {}),
    }
    return f"""<html>
<head>
  <meta charset="UTF-8">

  {inject.head}
  {player_script_tag(player_path, player_url)}

  <style>
* {{
  box-sizing: border-box;
  margin: 0;
  padding: 0;
}}

body {{
  background: transparent;
  width: {width}px;
  height: {height}px;
  overflow: hidden;
}}

#root {{
  {cssify(style or {})}
}}

  {inject.style}
  </style>
</head>

<body>
{inject.body}

<div id="root"></div>

<script>
{script}
</script>

</body>
</html>
"""
