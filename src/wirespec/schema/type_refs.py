from __future__ import annotations

import ast
import builtins
import datetime
import typing
import uuid
from decimal import Decimal
from typing import Any, Mapping, Optional


class TypeRefError(ValueError):
    pass


_BUILTIN_NAMES: dict[str, Any] = {
    "str": str,
    "int": int,
    "float": float,
    "bool": bool,
    "bytes": bytes,
    "dict": dict,
    "list": list,
    "set": set,
    "frozenset": frozenset,
    "tuple": tuple,
    "None": None,
    "Any": typing.Any,
    "Optional": typing.Optional,
    "Union": typing.Union,
    "Literal": typing.Literal,
    "Dict": typing.Dict,
    "List": typing.List,
    "Tuple": typing.Tuple,
    "Set": typing.Set,
    "Decimal": Decimal,
    "UUID": uuid.UUID,
    "datetime": datetime.datetime,
    "date": datetime.date,
    "timedelta": datetime.timedelta,
}


def parse_type_ref(text: str, namespace: Optional[Mapping[str, Any]] = None) -> Any:
    """
    Resolve a type reference written as source text, e.g.:
      "str", "list[int]", "int | None", "Optional[RoomId]", "events.Filter"
    Uses ast only; nothing is evaluated. Names are looked up in `namespace`
    first, then in a small table of builtins and typing names.
    """
    source = (text or "").strip()
    if not source:
        raise TypeRefError("empty type reference")
    try:
        tree = ast.parse(source, mode="eval")
    except SyntaxError as exc:
        raise TypeRefError(f"not a type reference: {source!r}") from exc

    return _resolve(tree.body, dict(namespace or {}), source)


def _lookup(name: str, namespace: dict[str, Any], source: str) -> Any:
    if name in namespace:
        return namespace[name]
    if name in _BUILTIN_NAMES:
        return _BUILTIN_NAMES[name]
    # builtin exception / other classes are not types a field can carry
    if hasattr(builtins, name):
        raise TypeRefError(f"{name!r} is not a supported field type in {source!r}")
    raise TypeRefError(f"unknown type name {name!r} in {source!r}")


def _resolve(node: ast.AST, namespace: dict[str, Any], source: str) -> Any:
    if isinstance(node, ast.Name):
        return _lookup(node.id, namespace, source)

    if isinstance(node, ast.Attribute):
        base = _resolve(node.value, namespace, source)
        try:
            return getattr(base, node.attr)
        except AttributeError:
            raise TypeRefError(f"{ast.unparse(node)!r} does not resolve in {source!r}") from None

    if isinstance(node, ast.Constant):
        # None in unions, string arguments of Literal[...]
        if node.value is None or isinstance(node.value, (str, int, bool)):
            return node.value
        raise TypeRefError(f"unexpected constant {node.value!r} in {source!r}")

    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        left = _resolve(node.left, namespace, source)
        right = _resolve(node.right, namespace, source)
        return typing.Union[_none_to_type(left), _none_to_type(right)]

    if isinstance(node, ast.Subscript):
        origin = _resolve(node.value, namespace, source)
        slice_node = node.slice
        if isinstance(slice_node, ast.Tuple):
            args = tuple(_resolve(elt, namespace, source) for elt in slice_node.elts)
        else:
            args = (_resolve(slice_node, namespace, source),)
        try:
            return origin[args if len(args) > 1 else args[0]]
        except TypeError as exc:
            raise TypeRefError(f"cannot parametrize {ast.unparse(node.value)!r} in {source!r}: {exc}") from exc

    if isinstance(node, (ast.Tuple, ast.List)) and not node.elts:
        # tuple[()]
        return ()

    raise TypeRefError(f"unsupported syntax {type(node).__name__} in type reference {source!r}")


def _none_to_type(v: Any) -> Any:
    return type(None) if v is None else v
