from typing import Optional, Union

import pytest

from wirespec.core.errors import DefinitionSyntaxError
from wirespec.domain.endpoint_error import Void
from wirespec.schema.fields import REQUIRED, FieldLocation
from wirespec.schema.parser import parse_schema, resolve_error_type
from wirespec.schema.type_refs import TypeRefError, parse_type_ref


class RoomId(str):
    pass


def test_parse_schema_locations_and_wire_names():
    schema = parse_schema(
        "request",
        [
            {"name": "room_id", "type": "str", "location": "path"},
            {"name": "limit", "type": "int | None", "location": "query"},
            {"name": "content_type", "type": str, "location": "header"},
            {"name": "txn", "type": str, "marker": "header", "wire_name": "X-Txn-Id"},
            {"name": "body_text", "type": "str", "wire_name": "body"},
        ],
    )

    assert [f.name for f in schema.fields] == ["room_id", "limit", "content_type", "txn", "body_text"]
    assert [f.name for f in schema.path_fields] == ["room_id"]
    assert [f.name for f in schema.query_fields] == ["limit"]
    assert [f.wire_name for f in schema.header_fields] == ["content-type", "X-Txn-Id"]
    assert schema.body_fields[0].location is FieldLocation.BODY
    assert schema.body_fields[0].wire_name == "body"
    assert schema.has_body


def test_optional_types_default_to_none():
    schema = parse_schema(
        "response",
        [
            {"name": "a", "type": "Optional[int]"},
            {"name": "b", "type": "int"},
            {"name": "c", "type": "int", "default": 5},
        ],
    )
    a, b, c = schema.fields
    assert a.default is None and not a.required
    assert b.default is REQUIRED and b.required
    assert c.default == 5


def test_parse_schema_aggregates_all_bad_declarations():
    with pytest.raises(DefinitionSyntaxError) as ei:
        parse_schema(
            "request",
            [
                {"name": "ok", "type": "str"},
                {"name": "_hidden", "type": "str"},
                {"name": "where", "type": "str", "location": "cookie"},
                {"name": "what", "type": "NoSuchType"},
                {"name": "ok", "type": "int"},
                {"name": "json", "type": "str"},
            ],
        )

    assert set(ei.value.fields) == {"_hidden", "where", "what", "ok", "json"}
    assert len(ei.value.violations) == 5


def test_response_fields_are_labelled_and_cannot_be_path_fields():
    with pytest.raises(DefinitionSyntaxError) as ei:
        parse_schema("response", [{"name": "room_id", "type": "str", "location": "path"}])
    assert ei.value.fields == ["response.room_id"]


def test_parse_type_ref_uses_namespace_first():
    assert parse_type_ref("RoomId", {"RoomId": RoomId}) is RoomId
    assert parse_type_ref("list[RoomId]", {"RoomId": RoomId}) == list[RoomId]
    assert parse_type_ref("dict[str, list[str]]") == dict[str, list[str]]
    assert parse_type_ref("int | None") == Optional[int]
    assert parse_type_ref("Union[int, str]") == Union[int, str]


@pytest.mark.parametrize("text", ["", "ValueError", "nope", "int + 1", "__import__('os')"])
def test_parse_type_ref_rejects(text):
    with pytest.raises(TypeRefError):
        parse_type_ref(text)


def test_resolve_error_type():
    class MatrixError:
        @classmethod
        def try_from_response(cls, response):
            return cls()

    assert resolve_error_type(None) is Void
    assert resolve_error_type(MatrixError) is MatrixError
    assert resolve_error_type("error: MatrixError", {"MatrixError": MatrixError}) is MatrixError
    assert resolve_error_type("MatrixError", {"MatrixError": MatrixError}) is MatrixError

    with pytest.raises(DefinitionSyntaxError):
        resolve_error_type("Missing")
    with pytest.raises(DefinitionSyntaxError):
        resolve_error_type(42)


def test_resolve_error_type_requires_try_from_response():
    class NotAnError:
        pass

    with pytest.raises(DefinitionSyntaxError) as ei:
        resolve_error_type(NotAnError)
    assert ei.value.fields == ["error"]
    assert "try_from_response" in str(ei.value)
