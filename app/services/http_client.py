"""Request building, response validation and JSON decoding shared by API clients."""
import json
from typing import Any, Mapping
from urllib.parse import quote

import httpx

from app.utils.exceptions import DecodeError, InvalidResponse, InvalidStatus, NoData


def escaped_parameters(parameters: Mapping[str, Any] | None) -> str:
    """Convert a flat parameter mapping into a percent-encoded query string.

    Returns "" for an empty mapping, otherwise "?key=value&...". Values are
    converted with str(); unreserved characters are left as they are.
    """
    if not parameters:
        return ""
    url_vars = [
        f"{quote(str(key), safe='')}={quote(str(value), safe='')}"
        for key, value in parameters.items()
    ]
    return "?" + "&".join(url_vars)


def build_request(
    url: str,
    method: str = "GET",
    parameters: Mapping[str, Any] | None = None,
    headers: Mapping[str, str] | None = None,
) -> httpx.Request:
    return httpx.Request(method, url + escaped_parameters(parameters), headers=dict(headers or {}))


def validate_response(status_code: int | None, data: bytes | None) -> bytes:
    """Return the payload of a successful (2xx) response or raise."""
    if status_code is None:
        raise InvalidResponse()
    if not 200 <= status_code <= 299:
        raise InvalidStatus(status_code)
    if data is None:
        raise NoData()
    return data


def parse_json(data: bytes) -> Any:
    try:
        return json.loads(data)
    except ValueError:
        raise DecodeError(data) from None
