from __future__ import annotations

import importlib
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

from wirespec.codec.generator import EndpointCodec, define_endpoint
from wirespec.core.config import PathEncoding
from wirespec.core.errors import DefinitionSyntaxError, Violation
from wirespec.core.logging import logger


@dataclass(frozen=True)
class CompileResult:
    codecs: dict[str, EndpointCodec] = field(default_factory=dict)
    failures: dict[str, DefinitionSyntaxError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures


def _definition_key(definition: Any, index: int) -> str:
    if isinstance(definition, Mapping):
        meta = definition.get("metadata")
        if isinstance(meta, Mapping) and isinstance(meta.get("name"), str) and meta["name"].strip():
            return meta["name"].strip()
    return f"#{index}"


def compile_definitions(
    definitions: Iterable[Mapping[str, Any]],
    namespace: Optional[Mapping[str, Any]] = None,
    path_encoding: Optional[PathEncoding] = None,
) -> CompileResult:
    """
    Compile many endpoint definitions.

    Each endpoint is all-or-nothing and isolated: a broken definition is
    recorded in `failures` and the rest still compile.
    """
    result = CompileResult()

    for i, definition in enumerate(definitions):
        key = _definition_key(definition, i)
        if key in result.codecs or key in result.failures:
            result.failures[f"{key}#{i}"] = DefinitionSyntaxError(
                [Violation("metadata.name", f"endpoint name {key!r} is defined more than once")],
                endpoint=key,
            )
            continue
        try:
            result.codecs[key] = define_endpoint(definition, namespace, path_encoding=path_encoding)
        except DefinitionSyntaxError as exc:
            logger.warning("endpoint {} rejected with {} violation(s)", key, len(exc.violations))
            result.failures[key] = exc

    logger.info("compiled {} endpoint(s), {} failed", len(result.codecs), len(result.failures))
    return result


def load_definitions(path: Path) -> list[dict[str, Any]]:
    """
    Read endpoint definitions from a TOML file:

        [[endpoint]]
        error = "MatrixError"

        [endpoint.metadata]
        method = "GET"
        name = "get_alias"
        path = "/directory/room/{room_alias}"

        [[endpoint.request]]
        name = "room_alias"
        type = "str"
        location = "path"
    """
    with open(path, "rb") as f:
        data = tomllib.load(f)

    endpoints = data.get("endpoint", [])
    if isinstance(endpoints, Mapping):
        endpoints = [endpoints]
    if not isinstance(endpoints, list):
        raise DefinitionSyntaxError([Violation("endpoint", "expected an array of [[endpoint]] tables")])
    return [dict(e) for e in endpoints]


def load_type_namespace(module_names: Iterable[str]) -> dict[str, Any]:
    """Public names of the given modules, for resolving string type references."""
    namespace: dict[str, Any] = {}
    for name in module_names:
        module = importlib.import_module(name)
        exported = getattr(module, "__all__", None)
        keys = exported if exported is not None else [k for k in vars(module) if not k.startswith("_")]
        for k in keys:
            namespace[k] = getattr(module, k)
        namespace[name.rsplit(".", 1)[-1]] = module
    return namespace
