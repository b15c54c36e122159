"""
Shared fixtures for the zotero_adapter test suite
"""

import json
from http import HTTPStatus
from typing import Any, Callable, Dict, Optional

import pytest
import requests
from requests.structures import CaseInsensitiveDict


def build_response(
    status_code: int = 200,
    json_body: Any = None,
    text: Optional[str] = None,
    content: Optional[bytes] = None,
    headers: Optional[Dict[str, str]] = None,
    url: str = 'https://api.zotero.org/',
) -> requests.Response:
    """Build a real requests.Response with the given status, body and headers"""
    response = requests.Response()
    response.status_code = status_code
    response.reason = HTTPStatus(status_code).phrase
    response.url = url
    response.encoding = 'utf-8'
    response.headers = CaseInsensitiveDict(headers or {})

    if content is not None:
        response._content = content
    elif text is not None:
        response._content = text.encode('utf-8')
    elif json_body is not None:
        response._content = json.dumps(json_body).encode('utf-8')
        response.headers.setdefault('Content-Type', 'application/json')
    else:
        response._content = b''

    return response


@pytest.fixture
def make_response() -> Callable[..., requests.Response]:
    """Factory fixture for requests.Response objects"""
    return build_response
