"""Wire-level helpers shared by every generated codec.

URI assembly, query strings, header values and JSON body framing. Typed
values are converted to and from strings through pydantic TypeAdapters.
"""

from __future__ import annotations

import re
import types
import typing
from typing import Any, Iterable
from urllib.parse import quote, unquote

from pydantic import TypeAdapter, ValidationError
from pydantic_core import to_json

from wirespec.core.config import PathEncoding
from wirespec.core.errors import IntoHttpError

JSON_CONTENT_TYPE = "application/json"

# visible ASCII plus space and horizontal tab
_HEADER_VALUE = re.compile(r"^[\t\x20-\x7e]*$")
# RFC 3986 pchar: unreserved, sub-delims, ":", "@" and complete %XX escapes
_RAW_PATH_SEGMENT = re.compile(r"^(?:[A-Za-z0-9\-._~!$&'()*+,;=:@]|%[0-9A-Fa-f]{2})*$")

_SEQUENCE_ORIGINS = (list, tuple, set, frozenset)


def trim_base_url(base_url: str) -> str:
    """Drop at most one trailing '/'."""
    return base_url[:-1] if base_url.endswith("/") else base_url


def encode_path_segment(value: str, encoding: PathEncoding) -> str:
    if encoding == "percent":
        return quote(value, safe="")
    if not _RAW_PATH_SEGMENT.match(value):
        raise IntoHttpError.invalid_path_value(value)
    return value


def decode_path_segment(segment: str, encoding: PathEncoding) -> str:
    return unquote(segment) if encoding == "percent" else segment


def split_raw_path(raw_path: bytes) -> list[str]:
    """b"/a/b?x=1" -> ["a", "b"]"""
    path = raw_path.decode("ascii", errors="replace").split("?", 1)[0]
    if path.startswith("/"):
        path = path[1:]
    return path.split("/")


def build_query_string(pairs: Iterable[tuple[str, str]]) -> str:
    return "&".join(f"{quote(k, safe='')}={quote(v, safe='')}" for k, v in pairs)


def check_header_value(name: str, value: str) -> str:
    if not _HEADER_VALUE.match(value):
        raise IntoHttpError.invalid_header_value(name, value)
    return value


def scalar_to_str(value: Any) -> str:
    # strings go out verbatim, everything else as its JSON text (true, 3, null)
    if isinstance(value, str):
        return value
    return to_json(value).decode("utf-8")


def to_wire_str(adapter: TypeAdapter, value: Any) -> str:
    return scalar_to_str(adapter.dump_python(value, mode="json"))


def from_wire_str(adapter: TypeAdapter, raw: str) -> Any:
    try:
        return adapter.validate_python(raw)
    except ValidationError as first:
        # non-string values were sent as JSON text by to_wire_str
        try:
            return adapter.validate_json(raw)
        except ValidationError:
            raise first from None


def json_payload(body: bytes) -> bytes:
    """An empty body is read as an empty JSON object."""
    return body if body else b"{}"


def strip_optional(annotation: Any) -> Any:
    args = typing.get_args(annotation)
    if args and type(None) in args and _is_union(annotation):
        rest = [a for a in args if a is not type(None)]
        if len(rest) == 1:
            return rest[0]
    return annotation


def _is_union(annotation: Any) -> bool:
    origin = typing.get_origin(annotation)
    return origin is typing.Union or origin is types.UnionType


def is_sequence_type(annotation: Any) -> bool:
    ann = strip_optional(annotation)
    origin = typing.get_origin(ann) or ann
    return isinstance(origin, type) and issubclass(origin, _SEQUENCE_ORIGINS) and not issubclass(origin, (str, bytes))


def is_mapping_type(annotation: Any) -> bool:
    ann = strip_optional(annotation)
    origin = typing.get_origin(ann) or ann
    return isinstance(origin, type) and issubclass(origin, dict)
