from urllib.parse import parse_qsl

import pytest

from app.services.http_client import build_request, escaped_parameters, parse_json, validate_response
from app.utils.exceptions import DecodeError, InvalidResponse, InvalidStatus, NoData


def test_escaped_parameters_empty():
    assert escaped_parameters({}) == ""
    assert escaped_parameters(None) == ""


def test_escaped_parameters_round_trip():
    parameters = {
        "method": "flickr.photos.search",
        "text": "café & bar = 100%",
        "lat": 45.0,
        "nojsoncallback": 1,
        "tags": "a+b,c/d?e#f",
    }
    query = escaped_parameters(parameters)

    assert query.startswith("?")
    assert dict(parse_qsl(query[1:])) == {k: str(v) for k, v in parameters.items()}


def test_escaped_parameters_leaves_safe_characters_alone():
    assert escaped_parameters({"extras": "url_m", "key": "AZaz09-._~"}) in (
        "?extras=url_m&key=AZaz09-._~",
        "?key=AZaz09-._~&extras=url_m",
    )


def test_build_request():
    request = build_request(
        "https://api.example.com/rest/",
        "GET",
        {"lat": -75.5, "q": "new york"},
        {"Accept": "application/json"},
    )

    assert request.method == "GET"
    assert request.url.host == "api.example.com"
    assert request.url.path == "/rest/"
    assert request.url.params["lat"] == "-75.5"
    assert request.url.params["q"] == "new york"
    assert request.headers["Accept"] == "application/json"


def test_build_request_without_parameters():
    request = build_request("https://img.example.com/1_m.jpg")

    assert str(request.url) == "https://img.example.com/1_m.jpg"


@pytest.mark.parametrize("code", [200, 201, 204, 299])
def test_validate_response_success(code):
    assert validate_response(code, b"payload") == b"payload"


@pytest.mark.parametrize("code", [100, 199, 300, 302, 404, 500, 503])
def test_validate_response_invalid_status(code):
    with pytest.raises(InvalidStatus) as exc_info:
        validate_response(code, b"payload")
    assert exc_info.value.code == code


def test_validate_response_empty_payload_is_present():
    assert validate_response(200, b"") == b""


def test_validate_response_missing_status():
    with pytest.raises(InvalidResponse):
        validate_response(None, b"payload")


def test_validate_response_missing_data():
    with pytest.raises(NoData):
        validate_response(200, None)


def test_parse_json():
    assert parse_json(b'{"photos": {"photo": []}}') == {"photos": {"photo": []}}
    assert parse_json(b"3") == 3


def test_parse_json_malformed():
    payload = b"jsonFlickrApi({})"
    with pytest.raises(DecodeError) as exc_info:
        parse_json(payload)
    assert exc_info.value.payload == payload
    assert exc_info.value.status_code == 502
