from __future__ import annotations

from wirespec.core.errors import Violation, raise_for_violations
from wirespec.core.logging import logger
from wirespec.schema.fields import CompiledEndpoint, Field, Schema


def _label(schema: Schema, f: Field) -> str:
    # request fields are named plainly; response fields get a prefix
    return f.name if schema.kind == "request" else f"response.{f.name}"


def _unique_wire_names(
    schema: Schema, fields: tuple[Field, ...], what: str, case_insensitive: bool = False
) -> list[Violation]:
    out: list[Violation] = []
    seen: dict[str, str] = {}
    for f in fields:
        key = f.wire_name.lower() if case_insensitive else f.wire_name
        if key in seen:
            out.append(Violation(_label(schema, f), f"{what} {f.wire_name!r} is already used by `{seen[key]}`"))
        else:
            seen[key] = f.name
    return out


def check_schema(schema: Schema) -> list[Violation]:
    """Structural rules that hold for requests and responses alike."""
    violations: list[Violation] = []

    if len(schema.newtype_body_fields) > 1:
        for f in schema.newtype_body_fields[1:]:
            violations.append(Violation(_label(schema, f), "there can only be one newtype_body field"))
    if schema.has_newtype_body_field and schema.has_body_fields:
        for f in schema.body_fields:
            violations.append(Violation(_label(schema, f), "body fields can't be combined with a newtype_body field"))

    if len(schema.query_map_fields) > 1:
        for f in schema.query_map_fields[1:]:
            violations.append(Violation(_label(schema, f), "there can only be one query_map field"))
    if schema.has_query_map_field and schema.has_query_fields:
        for f in schema.query_fields:
            violations.append(Violation(_label(schema, f), "query fields can't be combined with a query_map field"))

    violations.extend(_unique_wire_names(schema, schema.header_fields, "header", case_insensitive=True))
    violations.extend(_unique_wire_names(schema, schema.body_fields, "JSON key"))
    violations.extend(_unique_wire_names(schema, schema.query_fields, "query key"))
    return violations


def check_path_fields(endpoint: CompiledEndpoint) -> list[Violation]:
    placeholders = endpoint.metadata.path_params
    declared = [f.name for f in endpoint.request.path_fields]
    violations: list[Violation] = []

    for name in declared:
        if name not in placeholders:
            violations.append(Violation(name, f"path field has no {{{name}}} placeholder in {endpoint.metadata.path!r}"))
    for name in placeholders:
        if name not in declared:
            violations.append(Violation(name, f"placeholder {{{name}}} has no matching path field"))

    common = [n for n in declared if n in placeholders]
    expected = [n for n in placeholders if n in declared]
    if common != expected:
        violations.append(
            Violation(
                common[0] if common else None,
                f"path fields are declared as {common} but the path template orders them {expected}",
            )
        )
    return violations


def check_method_body(endpoint: CompiledEndpoint) -> list[Violation]:
    if endpoint.metadata.method != "GET":
        return []
    req = endpoint.request
    return [
        Violation(f.name, "GET endpoints can't have body fields", kind="combination")
        for f in (*req.body_fields, *req.newtype_body_fields)
    ]


def check_response_placement(endpoint: CompiledEndpoint) -> list[Violation]:
    resp = endpoint.response
    return [
        Violation(_label(resp, f), "responses can't carry query fields", kind="combination")
        for f in (*resp.query_fields, *resp.query_map_fields)
    ]


def validate(endpoint: CompiledEndpoint) -> CompiledEndpoint:
    """
    Check a compiled endpoint against the wire rules.

    Every violation is collected before raising, so one run reports all
    mistakes of a definition. Returns the endpoint unchanged.
    """
    violations: list[Violation] = []
    violations.extend(check_method_body(endpoint))
    violations.extend(check_schema(endpoint.request))
    violations.extend(check_path_fields(endpoint))
    violations.extend(check_schema(endpoint.response))
    violations.extend(check_response_placement(endpoint))

    if violations:
        logger.debug("endpoint {} failed validation with {} violation(s)", endpoint.name, len(violations))
    raise_for_violations(violations, endpoint=endpoint.name)
    return endpoint
