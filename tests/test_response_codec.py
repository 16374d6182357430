import json

import httpx
import pytest

from wirespec.codec.generator import NonAuthEndpoint, define_endpoint, is_non_auth
from wirespec.core.errors import (
    ErrorCode,
    FromHttpResponseError,
    KnownServerError,
    ResponseDeserializationError,
    UnknownServerError,
)
from wirespec.domain.endpoint_error import EndpointError, Void


class MatrixError:
    """Decodes `{"errcode": ..., "error": ...}` error bodies."""

    def __init__(self, status_code, errcode, error=""):
        self.status_code = status_code
        self.errcode = errcode
        self.error = error

    @classmethod
    def try_from_response(cls, response):
        try:
            data = response.json()
        except ValueError as exc:
            raise ResponseDeserializationError(response, message="error body is not JSON", cause=exc) from exc
        if not isinstance(data, dict) or "errcode" not in data:
            raise ResponseDeserializationError(response, message="error body has no errcode")
        return cls(response.status_code, data["errcode"], data.get("error", ""))


def get_alias_definition(error=MatrixError, authentication="None"):
    return {
        "metadata": {
            "description": "Resolve a room alias to a room ID.",
            "method": "GET",
            "name": "get_alias",
            "path": "/_matrix/client/r0/directory/room/{room_alias}",
            "rate_limited": False,
            "authentication": authentication,
        },
        "request": [{"name": "room_alias", "type": "str", "location": "path"}],
        "response": [
            {"name": "room_id", "type": "str"},
            {"name": "servers", "type": "list[str]", "default": []},
            {"name": "etag", "type": "Optional[str]", "location": "header"},
        ],
        "error": error,
    }


def test_response_round_trip():
    codec = define_endpoint(get_alias_definition())
    resp = codec.Response(room_id="!abc:example.org", servers=["example.org"], etag="v1")

    http_response = resp.to_http_response()

    assert http_response.status_code == 200
    assert http_response.headers["content-type"] == "application/json"
    assert http_response.headers["etag"] == "v1"
    assert json.loads(http_response.content) == {"room_id": "!abc:example.org", "servers": ["example.org"]}

    decoded = codec.Response.from_http_response(http_response)
    assert decoded.model_dump() == resp.model_dump()


def test_success_response_with_empty_body_uses_defaults():
    codec = define_endpoint(
        {
            "metadata": {"method": "POST", "name": "logout", "path": "/logout", "authentication": "AccessToken"},
            "response": [{"name": "soft_logout", "type": "bool", "default": False}],
        }
    )
    decoded = codec.decode_response(httpx.Response(200, content=b""))
    assert decoded.soft_logout is False


def test_known_server_error():
    codec = define_endpoint(get_alias_definition())
    http_response = httpx.Response(404, json={"errcode": "M_NOT_FOUND", "error": "Room alias not found."})

    with pytest.raises(FromHttpResponseError) as ei:
        codec.Response.from_http_response(http_response)

    err = ei.value
    assert err.is_known and not err.is_unknown
    assert err.error_code is ErrorCode.SERVER_ERROR
    assert isinstance(err.server_error, KnownServerError)
    assert err.server_error.error.errcode == "M_NOT_FOUND"
    assert err.server_error.error.status_code == 404


def test_unknown_server_error_keeps_status_and_body():
    codec = define_endpoint(get_alias_definition())
    http_response = httpx.Response(404, content=b"<html>nope</html>")

    with pytest.raises(FromHttpResponseError) as ei:
        codec.Response.from_http_response(http_response)

    err = ei.value
    assert err.is_unknown
    assert isinstance(err.server_error, UnknownServerError)
    assert err.server_error.status_code == 404
    assert err.server_error.body == b"<html>nope</html>"


def test_void_error_type_never_decodes():
    codec = define_endpoint(get_alias_definition(error=None))
    assert codec.error_type is Void
    assert codec.Response.ENDPOINT_ERROR is Void

    with pytest.raises(FromHttpResponseError) as ei:
        codec.decode_response(httpx.Response(500, json={"errcode": "M_UNKNOWN"}))
    assert ei.value.is_unknown
    assert ei.value.server_error.status_code == 500

    with pytest.raises(TypeError):
        Void()


def test_malformed_success_body_is_a_deserialization_error():
    codec = define_endpoint(get_alias_definition())

    with pytest.raises(FromHttpResponseError) as ei:
        codec.decode_response(httpx.Response(200, content=b"{not json"))

    err = ei.value
    assert err.server_error is None
    assert isinstance(err.deserialization, ResponseDeserializationError)
    assert err.deserialization.status_code == 200
    assert err.error_code is ErrorCode.RESPONSE_DESERIALIZATION


def test_newtype_response_body():
    codec = define_endpoint(
        {
            "metadata": {"method": "GET", "name": "get_account_data", "path": "/account_data"},
            "response": [{"name": "data", "type": "dict[str, int]", "location": "newtype_body"}],
        }
    )
    http_response = codec.Response(data={"a": 1}).to_http_response()

    assert json.loads(http_response.content) == {"a": 1}
    assert codec.Response.from_http_response(http_response).data == {"a": 1}


def test_metadata_and_non_auth_marker():
    codec = define_endpoint(get_alias_definition())

    assert codec.METADATA.name == "get_alias"
    assert codec.Request.METADATA is codec.METADATA
    assert codec.Response.METADATA is codec.METADATA
    assert codec.Request.__name__ == "GetAliasRequest"
    assert codec.Response.__name__ == "GetAliasResponse"
    assert "get_alias" in codec.Request.__doc__

    assert issubclass(codec.Request, NonAuthEndpoint)
    assert issubclass(codec.Response, NonAuthEndpoint)
    assert is_non_auth(codec.Request(room_alias="#a:b"))


def test_authenticated_endpoints_are_not_marked():
    codec = define_endpoint(get_alias_definition(authentication="AccessToken"))

    assert not is_non_auth(codec.Request)
    assert not is_non_auth(codec.Response)


def test_error_type_matches_protocol():
    assert isinstance(MatrixError, EndpointError)
    assert isinstance(Void, EndpointError)


def test_response_without_body_members_sends_empty_object():
    codec = define_endpoint(
        {
            "metadata": {"method": "POST", "name": "join_room", "path": "/join"},
            "response": [{"name": "accepted", "type": "Optional[bool]"}],
        }
    )
    http_response = codec.Response().to_http_response()

    assert http_response.headers["content-type"] == "application/json"
    assert http_response.content == b"{}"
    assert codec.Response.from_http_response(http_response).accepted is None


def test_response_without_body_fields_sends_empty_object():
    codec = define_endpoint({"metadata": {"method": "POST", "name": "forget_room", "path": "/forget"}})

    assert codec.Response().to_http_response().content == b"{}"


def test_optional_newtype_response_none_is_json_null():
    codec = define_endpoint(
        {
            "metadata": {"method": "GET", "name": "get_tags", "path": "/tags"},
            "response": [{"name": "tags", "type": "Optional[dict[str, int]]", "location": "newtype_body"}],
        }
    )
    http_response = codec.Response(tags=None).to_http_response()

    assert http_response.content == b"null"
    assert codec.Response.from_http_response(http_response).tags is None
