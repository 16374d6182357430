from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal, Optional

from wirespec.domain.models import Metadata

SchemaKind = Literal["request", "response"]


class _Required:
    def __repr__(self) -> str:
        return "REQUIRED"

    # pydantic deep-copies defaults; the marker must survive by identity
    def __copy__(self) -> "_Required":
        return self

    def __deepcopy__(self, memo: dict) -> "_Required":
        return self


REQUIRED: Any = _Required()


class FieldLocation(Enum):
    PATH = "path"
    QUERY = "query"
    QUERY_MAP = "query_map"
    HEADER = "header"
    BODY = "body"
    NEWTYPE_BODY = "newtype_body"

    @classmethod
    def from_marker(cls, marker: str) -> "FieldLocation":
        return cls(marker.strip().lower())


@dataclass(frozen=True)
class Field:
    name: str
    annotation: Any
    location: FieldLocation
    wire_name: str
    default: Any = REQUIRED

    @property
    def required(self) -> bool:
        return self.default is REQUIRED

    @property
    def type_label(self) -> str:
        a = self.annotation
        if isinstance(a, type):
            return a.__name__
        return str(a).replace("typing.", "")


@dataclass(frozen=True)
class Schema:
    """
    Ordered fields of one side of an endpoint plus groupings by location.

    Build with Schema.build(); groupings are computed there once.
    """

    kind: SchemaKind
    fields: tuple[Field, ...]

    path_fields: tuple[Field, ...] = ()
    query_fields: tuple[Field, ...] = ()
    query_map_fields: tuple[Field, ...] = ()
    header_fields: tuple[Field, ...] = ()
    body_fields: tuple[Field, ...] = ()
    newtype_body_fields: tuple[Field, ...] = ()

    @classmethod
    def build(cls, kind: SchemaKind, fields: tuple[Field, ...] | list[Field]) -> "Schema":
        fields = tuple(fields)

        def at(loc: FieldLocation) -> tuple[Field, ...]:
            return tuple(f for f in fields if f.location is loc)

        return cls(
            kind=kind,
            fields=fields,
            path_fields=at(FieldLocation.PATH),
            query_fields=at(FieldLocation.QUERY),
            query_map_fields=at(FieldLocation.QUERY_MAP),
            header_fields=at(FieldLocation.HEADER),
            body_fields=at(FieldLocation.BODY),
            newtype_body_fields=at(FieldLocation.NEWTYPE_BODY),
        )

    @property
    def query_map_field(self) -> Optional[Field]:
        return self.query_map_fields[0] if self.query_map_fields else None

    @property
    def newtype_body_field(self) -> Optional[Field]:
        return self.newtype_body_fields[0] if self.newtype_body_fields else None

    @property
    def has_path_fields(self) -> bool:
        return bool(self.path_fields)

    @property
    def has_query_fields(self) -> bool:
        return bool(self.query_fields)

    @property
    def has_query_map_field(self) -> bool:
        return bool(self.query_map_fields)

    @property
    def has_header_fields(self) -> bool:
        return bool(self.header_fields)

    @property
    def has_body_fields(self) -> bool:
        return bool(self.body_fields)

    @property
    def has_newtype_body_field(self) -> bool:
        return bool(self.newtype_body_fields)

    @property
    def has_body(self) -> bool:
        return self.has_body_fields or self.has_newtype_body_field


@dataclass(frozen=True)
class CompiledEndpoint:
    metadata: Metadata
    request: Schema
    response: Schema
    error_type: type

    @property
    def name(self) -> str:
        return self.metadata.name


# attribute names the generated request/response classes define themselves
RESERVED_FIELD_NAMES = frozenset(
    {
        "METADATA",
        "ENDPOINT_ERROR",
        "CODEC",
        "to_http_request",
        "from_http_request",
        "to_http_response",
        "from_http_response",
    }
)
