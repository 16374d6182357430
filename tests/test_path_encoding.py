import httpx
import pytest

from wirespec.codec.generator import define_endpoint
from wirespec.core.config import Settings
from wirespec.core.errors import ErrorCode, IntoHttpError

FOO_BAR = {
    "metadata": {"method": "GET", "name": "foo_bar", "path": "/_matrix/foo/{room_id}/bar"},
    "request": [{"name": "room_id", "type": "str", "location": "path"}],
}


def test_percent_encoding_is_the_default():
    assert Settings().path_encoding == "percent"

    codec = define_endpoint(FOO_BAR)
    http_request = codec.Request(room_id="!abc:example.org").to_http_request("https://example.org")

    assert codec.path_encoding == "percent"
    assert http_request.url.raw_path == b"/_matrix/foo/%21abc%3Aexample.org/bar"
    assert codec.Request.from_http_request(http_request).room_id == "!abc:example.org"


def test_percent_encoding_escapes_slashes():
    codec = define_endpoint(FOO_BAR, path_encoding="percent")
    http_request = codec.Request(room_id="a/b c").to_http_request("https://example.org")

    assert http_request.url.raw_path == b"/_matrix/foo/a%2Fb%20c/bar"
    assert codec.Request.from_http_request(http_request).room_id == "a/b c"


def test_raw_encoding_substitutes_verbatim():
    codec = define_endpoint(FOO_BAR, path_encoding="raw")
    http_request = codec.Request(room_id="!abc:example.org").to_http_request("https://example.org")

    assert http_request.url.raw_path == b"/_matrix/foo/!abc:example.org/bar"
    assert codec.Request.from_http_request(http_request).room_id == "!abc:example.org"


def test_raw_encoding_rejects_segment_breaking_values():
    codec = define_endpoint(FOO_BAR, path_encoding="raw")

    for value in ("a/b", "a?b", "a#b"):
        with pytest.raises(IntoHttpError) as ei:
            codec.Request(room_id=value).to_http_request("https://example.org")
        assert ei.value.error_code is ErrorCode.INVALID_PATH_VALUE


def test_raw_decoding_keeps_escapes():
    codec = define_endpoint(FOO_BAR, path_encoding="raw")
    incoming = httpx.Request("GET", "https://example.org/_matrix/foo/%21abc/bar")

    assert codec.Request.from_http_request(incoming).room_id == "%21abc"


def test_path_values_are_typed():
    codec = define_endpoint(
        {
            "metadata": {"method": "GET", "name": "get_page", "path": "/pages/{number}"},
            "request": [{"name": "number", "type": "int", "location": "path"}],
        }
    )
    http_request = codec.Request(number=42).to_http_request("https://example.org/api/")

    assert http_request.url.path == "/api/pages/42"
    # segments are indexed from the start of the URI path
    assert codec.Request.from_http_request(httpx.Request("GET", "https://example.org/pages/7")).number == 7


@pytest.mark.parametrize("value", ["a b", "café", "50%", "%zz", "a\"b", "x[0]"])
def test_raw_encoding_rejects_values_outside_pchar(value):
    codec = define_endpoint(FOO_BAR, path_encoding="raw")

    with pytest.raises(IntoHttpError) as ei:
        codec.Request(room_id=value).to_http_request("https://example.org")
    assert ei.value.error_code is ErrorCode.INVALID_PATH_VALUE


def test_raw_encoding_keeps_complete_escapes():
    codec = define_endpoint(FOO_BAR, path_encoding="raw")
    http_request = codec.Request(room_id="a%20b~c@d").to_http_request("https://example.org")

    assert http_request.url.raw_path == b"/_matrix/foo/a%20b~c@d/bar"
    assert codec.Request.from_http_request(http_request).room_id == "a%20b~c@d"


def test_percent_encoding_round_trips_non_ascii():
    codec = define_endpoint(FOO_BAR)
    http_request = codec.Request(room_id="a b é").to_http_request("https://example.org")

    assert http_request.url.raw_path == b"/_matrix/foo/a%20b%20%C3%A9/bar"
    assert codec.Request.from_http_request(http_request).room_id == "a b é"
