from __future__ import annotations

from typing import Any, Mapping, Optional

from wirespec.core.errors import DefinitionSyntaxError, Violation, raise_for_violations
from wirespec.core.logging import logger
from wirespec.domain.models import Metadata
from wirespec.schema.fields import CompiledEndpoint, Schema
from wirespec.schema.parser import parse_metadata, parse_schema, resolve_error_type

_SECTIONS = {"metadata", "request", "response", "error"}


def assemble(definition: Mapping[str, Any], namespace: Optional[Mapping[str, Any]] = None) -> CompiledEndpoint:
    """
    Definition mapping -> CompiledEndpoint.

    The metadata block, both field lists and the error clause are parsed
    independently; their violations are merged into a single
    DefinitionSyntaxError before anything is raised.
    """
    if not isinstance(definition, Mapping):
        raise DefinitionSyntaxError([Violation(None, "endpoint definition must be a mapping")])

    violations: list[Violation] = []
    for key in sorted(set(definition) - _SECTIONS):
        violations.append(Violation(str(key), "unknown definition section"))
    if "metadata" not in definition:
        violations.append(Violation("metadata", "missing metadata block"))

    metadata: Optional[Metadata] = None
    request: Optional[Schema] = None
    response: Optional[Schema] = None
    error_type: Optional[type] = None

    try:
        metadata = parse_metadata(definition.get("metadata"))
    except DefinitionSyntaxError as exc:
        if "metadata" in definition:
            violations.extend(exc.violations)
    try:
        request = parse_schema("request", definition.get("request"), namespace)
    except DefinitionSyntaxError as exc:
        violations.extend(exc.violations)
    try:
        response = parse_schema("response", definition.get("response"), namespace)
    except DefinitionSyntaxError as exc:
        violations.extend(exc.violations)
    try:
        error_type = resolve_error_type(definition.get("error"), namespace)
    except DefinitionSyntaxError as exc:
        violations.extend(exc.violations)

    name = metadata.name if metadata else _guess_name(definition)
    raise_for_violations(violations, endpoint=name)

    endpoint = CompiledEndpoint(
        metadata=metadata,
        request=request,
        response=response,
        error_type=error_type,
    )
    logger.debug(
        "assembled endpoint {} ({} request / {} response fields, error={})",
        endpoint.name,
        len(request.fields),
        len(response.fields),
        error_type.__name__,
    )
    return endpoint


def _guess_name(definition: Mapping[str, Any]) -> Optional[str]:
    block = definition.get("metadata")
    if isinstance(block, Mapping) and isinstance(block.get("name"), str):
        return block["name"]
    return None
