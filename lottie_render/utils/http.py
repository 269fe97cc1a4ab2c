# lottie_render/utils/http.py
from typing import Any, Dict, Optional

import requests

DEFAULT_TIMEOUT = 10.0
USER_AGENT = "lottie-render"


def make_session(headers: Optional[Dict[str, str]] = None) -> requests.Session:
    s = requests.Session()
    s.headers.update({"Content-Type": "application/json", "User-Agent": USER_AGENT})
    if headers:
        s.headers.update(headers)
    # no session-wide timeout in requests; pass one per call
    return s


def post_json(
    session: requests.Session,
    url: str,
    payload: Dict[str, Any],
    *,
    timeout: float = DEFAULT_TIMEOUT,
) -> int:
    """
    POST payload as JSON exactly once. Connection problems and non-2xx
    responses raise requests exceptions; returns the status code.
    """
    resp = session.request("POST", url, json=payload, timeout=timeout)
    resp.raise_for_status()
    return resp.status_code
