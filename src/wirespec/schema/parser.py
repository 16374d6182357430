from __future__ import annotations

import keyword
import re
import types
import typing
from typing import Any, Iterable, Mapping, Optional

from pydantic import BaseModel, ConfigDict, ValidationError

from wirespec.core.errors import DefinitionSyntaxError, Violation, raise_for_violations
from wirespec.domain.endpoint_error import EndpointError, Void
from wirespec.domain.models import Metadata
from wirespec.schema.fields import (
    REQUIRED,
    RESERVED_FIELD_NAMES,
    Field,
    FieldLocation,
    Schema,
    SchemaKind,
)
from wirespec.schema.type_refs import TypeRefError, parse_type_ref

_IDENT = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")
_ERROR_KW = re.compile(r"^error\s*:")


class FieldDecl(BaseModel):
    """One raw field declaration as written in a definition."""

    model_config = ConfigDict(extra="forbid")

    name: str
    type: Any
    location: str = "body"
    wire_name: Optional[str] = None
    default: Any = REQUIRED


def _violations_from(exc: ValidationError, prefix: str) -> list[Violation]:
    out: list[Violation] = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        out.append(Violation(field=f"{prefix}.{loc}" if loc else prefix, message=err["msg"]))
    return out


def parse_metadata(block: Any) -> Metadata:
    """Metadata block -> Metadata. Reports every malformed key at once."""
    if not isinstance(block, Mapping):
        raise DefinitionSyntaxError([Violation("metadata", "metadata block must be a mapping")])
    try:
        return Metadata.model_validate(dict(block))
    except ValidationError as exc:
        raise DefinitionSyntaxError(_violations_from(exc, "metadata")) from exc


def _field_label(kind: SchemaKind, name: str) -> str:
    return name if kind == "request" else f"response.{name}"


def _admits_none(annotation: Any) -> bool:
    if annotation is None or annotation is type(None):
        return True
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        return type(None) in typing.get_args(annotation)
    return False


def _check_name(name: str) -> Optional[str]:
    if not _IDENT.match(name):
        return "field name must be an identifier not starting with '_'"
    if keyword.iskeyword(name):
        return "field name must not be a Python keyword"
    if name in RESERVED_FIELD_NAMES or hasattr(BaseModel, name):
        return f"field name {name!r} is reserved"
    return None


def parse_field(
    kind: SchemaKind,
    decl: Any,
    index: int,
    namespace: Optional[Mapping[str, Any]] = None,
) -> tuple[Optional[Field], list[Violation]]:
    """Parse a single declaration. Returns the field (None on failure) and its violations."""
    label = f"{kind}[{index}]"
    if not isinstance(decl, Mapping):
        return None, [Violation(label, "field declaration must be a mapping")]

    if isinstance(decl.get("name"), str):
        label = _field_label(kind, decl["name"])

    raw = dict(decl)
    # `marker` is accepted as a spelling of `location`
    if "marker" in raw and "location" not in raw:
        raw["location"] = raw.pop("marker")

    try:
        parsed = FieldDecl.model_validate(raw)
    except ValidationError as exc:
        return None, _violations_from(exc, label)

    violations: list[Violation] = []

    problem = _check_name(parsed.name)
    if problem:
        violations.append(Violation(label, problem))

    try:
        location = FieldLocation.from_marker(parsed.location)
    except ValueError:
        location = None
        violations.append(Violation(label, f"unrecognized location marker {parsed.location!r}"))
    if location is FieldLocation.PATH and kind == "response":
        violations.append(Violation(label, "responses cannot have path fields"))

    annotation = parsed.type
    if isinstance(annotation, str):
        try:
            annotation = parse_type_ref(annotation, namespace)
        except TypeRefError as exc:
            violations.append(Violation(label, str(exc)))
    elif annotation is None:
        annotation = type(None)

    if parsed.wire_name is not None and not parsed.wire_name.strip():
        violations.append(Violation(label, "wire_name must not be empty"))

    if violations or location is None:
        return None, violations

    default = parsed.default
    if default is REQUIRED and _admits_none(annotation):
        default = None

    wire_name = parsed.wire_name
    if wire_name is None:
        wire_name = parsed.name.replace("_", "-") if location is FieldLocation.HEADER else parsed.name

    return (
        Field(
            name=parsed.name,
            annotation=annotation,
            location=location,
            wire_name=wire_name.strip(),
            default=default,
        ),
        [],
    )


def parse_schema(
    kind: SchemaKind,
    declarations: Optional[Iterable[Any]],
    namespace: Optional[Mapping[str, Any]] = None,
) -> Schema:
    """
    Ordered field declarations -> Schema.

    Unmarked fields are body fields. Every bad declaration is reported in one
    DefinitionSyntaxError.
    """
    if declarations is None:
        return Schema.build(kind, ())
    if isinstance(declarations, (str, bytes, Mapping)):
        raise DefinitionSyntaxError([Violation(kind, "field list must be a sequence of declarations")])

    fields: list[Field] = []
    violations: list[Violation] = []
    seen: set[str] = set()

    for i, decl in enumerate(declarations):
        f, problems = parse_field(kind, decl, i, namespace)
        violations.extend(problems)
        if f is None:
            continue
        if f.name in seen:
            violations.append(Violation(_field_label(kind, f.name), "duplicate field name"))
            continue
        seen.add(f.name)
        fields.append(f)

    raise_for_violations(violations)
    return Schema.build(kind, fields)


def resolve_error_type(clause: Any = None, namespace: Optional[Mapping[str, Any]] = None) -> type:
    """
    The optional `error: Type` clause -> the error decoder class.

    Absent clause resolves to Void. A string may be given with or without the
    leading `error:` keyword.
    """
    if clause is None:
        return Void

    resolved = clause
    if isinstance(clause, str):
        text = _ERROR_KW.sub("", clause.strip(), count=1).strip()
        try:
            resolved = parse_type_ref(text, namespace)
        except TypeRefError as exc:
            raise DefinitionSyntaxError([Violation("error", str(exc))]) from exc

    if not isinstance(resolved, type):
        raise DefinitionSyntaxError([Violation("error", f"error type must be a class, got {resolved!r}")])
    if not isinstance(resolved, EndpointError):
        raise DefinitionSyntaxError(
            [Violation("error", f"error type {resolved.__name__} has no try_from_response classmethod")]
        )
    return resolved
