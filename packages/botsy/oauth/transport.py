"""Response helpers shared by the OAuth clients."""

from __future__ import annotations

from typing import Any, Dict

import requests

from ..errors import OAuthError

__all__ = ["json_body"]


def json_body(response: requests.Response, error: str) -> Dict[str, Any]:
    """Decode a JSON object body or raise ``OAuthError(error)``."""

    try:
        payload = response.json()
    except ValueError:
        raise OAuthError(error) from None
    if not isinstance(payload, dict):
        raise OAuthError(error)
    return payload
