"""Codec generation.

A validated CompiledEndpoint is turned into an EndpointCodec: pydantic
models for the request and response values plus the four marshalling
routines between those values and httpx messages.

    codec = define_endpoint({
        "metadata": {"method": "GET", "name": "get_alias", "path": "/directory/room/{room_alias}"},
        "request": [{"name": "room_alias", "type": "str", "location": "path"}],
        "response": [{"name": "room_id", "type": "str"}],
    })
    http_request = codec.Request(room_alias="#a:b").to_http_request("https://example.org")

Generation is all-or-nothing: either every artifact is built or a
DefinitionSyntaxError is raised and nothing is returned.
"""

from __future__ import annotations

import re
from typing import Any, ClassVar, Mapping, Optional

import httpx
from pydantic import BaseModel, ConfigDict, PydanticUserError, TypeAdapter, ValidationError, create_model
from pydantic import Field as PydanticField
from pydantic_core import PydanticSerializationError

from wirespec.codec.wire import (
    JSON_CONTENT_TYPE,
    build_query_string,
    check_header_value,
    decode_path_segment,
    encode_path_segment,
    from_wire_str,
    is_mapping_type,
    is_sequence_type,
    json_payload,
    scalar_to_str,
    split_raw_path,
    strip_optional,
    to_wire_str,
    trim_base_url,
)
from wirespec.core.config import PathEncoding, get_settings
from wirespec.core.errors import (
    DefinitionSyntaxError,
    FromHttpRequestError,
    FromHttpResponseError,
    IntoHttpError,
    ResponseDeserializationError,
    Violation,
)
from wirespec.core.logging import logger
from wirespec.domain.models import AuthScheme, EndpointSummary, Metadata
from wirespec.schema.assembler import assemble
from wirespec.schema.fields import CompiledEndpoint, Field, FieldLocation, Schema
from wirespec.schema.validator import validate

ACCESS_TOKEN_QUERY_KEY = "access_token"


class EndpointRequest(BaseModel):
    """Base of every generated request class."""

    model_config = ConfigDict(extra="forbid")

    METADATA: ClassVar[Metadata]
    ENDPOINT_ERROR: ClassVar[type]
    CODEC: ClassVar["EndpointCodec"]

    def to_http_request(self, base_url: str, access_token: Optional[str] = None) -> httpx.Request:
        return self.CODEC.encode_request(self, base_url, access_token)

    @classmethod
    def from_http_request(cls, request: httpx.Request) -> "EndpointRequest":
        return cls.CODEC.decode_request(request)


class EndpointResponse(BaseModel):
    """Base of every generated response class."""

    model_config = ConfigDict(extra="forbid")

    METADATA: ClassVar[Metadata]
    ENDPOINT_ERROR: ClassVar[type]
    CODEC: ClassVar["EndpointCodec"]

    def to_http_response(self) -> httpx.Response:
        return self.CODEC.encode_response(self)

    @classmethod
    def from_http_response(cls, response: httpx.Response) -> "EndpointResponse":
        return cls.CODEC.decode_response(response)


class NonAuthEndpoint:
    """Marker base: the endpoint can be called without credentials."""

    __slots__ = ()


def is_non_auth(obj: Any) -> bool:
    cls = obj if isinstance(obj, type) else type(obj)
    return issubclass(cls, NonAuthEndpoint)


class _DecodeError(ValueError):
    pass


def _class_prefix(name: str) -> str:
    # get_room_alias / get-room.alias -> GetRoomAlias
    parts = [p for p in re.split(r"[^A-Za-z0-9]+", name) if p]
    prefix = "".join(p[:1].upper() + p[1:] for p in parts) or "Endpoint"
    return prefix if prefix[0].isalpha() else f"Endpoint{prefix}"


def _model_field(f: Field) -> tuple[Any, Any]:
    return (f.annotation, ... if f.required else f.default)


class _SchemaCodec:
    """Per-side (request or response) converters between field values and wire parts."""

    def __init__(self, schema: Schema, model_prefix: str) -> None:
        self.schema = schema
        self.adapters: dict[str, TypeAdapter] = {}
        self.body_model: Optional[type[BaseModel]] = None
        self.sequence_query: set[str] = set()
        self.query_map_shape = "dict"
        # a response always carries a JSON document; a request may go without a body
        self.empty_body = b"{}" if schema.kind == "response" else b""

        violations: list[Violation] = []
        for f in schema.fields:
            if f.location is FieldLocation.BODY:
                continue
            try:
                self.adapters[f.name] = TypeAdapter(f.annotation)
            except PydanticUserError as exc:
                violations.append(Violation(f.name, f"unsupported field type {f.type_label}: {exc.message}"))

        if schema.has_body_fields:
            try:
                self.body_model = create_model(
                    f"{model_prefix}Body",
                    __config__=ConfigDict(extra="ignore"),
                    **{
                        f.name: (
                            f.annotation,
                            PydanticField(... if f.required else f.default, alias=f.wire_name),
                        )
                        for f in schema.body_fields
                    },
                )
            except PydanticUserError as exc:
                violations.append(Violation(None, f"cannot build {schema.kind} body: {exc.message}"))

        if violations:
            raise DefinitionSyntaxError(violations)

        for f in schema.query_fields:
            if is_sequence_type(f.annotation):
                self.sequence_query.add(f.name)
        qm = schema.query_map_field
        if qm is not None:
            if is_mapping_type(qm.annotation):
                value_args = getattr(strip_optional(qm.annotation), "__args__", ())
                if len(value_args) == 2 and is_sequence_type(value_args[1]):
                    self.query_map_shape = "multi"
            elif is_sequence_type(qm.annotation):
                self.query_map_shape = "pairs"

    # --- query ---

    def encode_query(self, values: Mapping[str, Any]) -> list[tuple[str, str]]:
        pairs: list[tuple[str, str]] = []
        for f in self.schema.query_fields:
            value = values[f.name]
            if value is None:
                continue
            adapter = self.adapters[f.name]
            if f.name in self.sequence_query:
                for item in adapter.dump_python(value, mode="json"):
                    pairs.append((f.wire_name, scalar_to_str(item)))
            else:
                pairs.append((f.wire_name, to_wire_str(adapter, value)))

        qm = self.schema.query_map_field
        if qm is not None and values[qm.name] is not None:
            dumped = self.adapters[qm.name].dump_python(values[qm.name], mode="json")
            items = dumped.items() if isinstance(dumped, dict) else dumped
            for key, item in items:
                if isinstance(item, list):
                    pairs.extend((str(key), scalar_to_str(x)) for x in item)
                elif item is not None:
                    pairs.append((str(key), scalar_to_str(item)))
        return pairs

    def decode_query(self, params: httpx.QueryParams, skip: frozenset[str] = frozenset()) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for f in self.schema.query_fields:
            adapter = self.adapters[f.name]
            if f.name in self.sequence_query:
                raw_items = params.get_list(f.wire_name)
                # an empty sequence sends no pairs; an absent key decodes to the declared default
                if raw_items or f.required:
                    out[f.name] = adapter.validate_python(raw_items)
                continue
            if f.wire_name not in params:
                if f.required:
                    raise _DecodeError(f"missing query parameter {f.wire_name!r}")
                continue
            out[f.name] = from_wire_str(adapter, params[f.wire_name])

        qm = self.schema.query_map_field
        if qm is not None:
            items = [(k, v) for k, v in params.multi_items() if k not in skip]
            if self.query_map_shape == "pairs":
                raw: Any = items
            elif self.query_map_shape == "multi":
                raw = {}
                for k, v in items:
                    raw.setdefault(k, []).append(v)
            else:
                raw = dict(items)
            out[qm.name] = self.adapters[qm.name].validate_python(raw)
        return out

    # --- headers ---

    def encode_headers(self, values: Mapping[str, Any]) -> list[tuple[str, str]]:
        headers: list[tuple[str, str]] = []
        for f in self.schema.header_fields:
            value = values[f.name]
            if value is None:
                continue
            text = to_wire_str(self.adapters[f.name], value)
            headers.append((f.wire_name, check_header_value(f.wire_name, text)))
        return headers

    def decode_headers(self, headers: httpx.Headers) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for f in self.schema.header_fields:
            raw = headers.get(f.wire_name)
            if raw is None:
                if f.required:
                    raise _DecodeError(f"missing header {f.wire_name!r}")
                continue
            out[f.name] = from_wire_str(self.adapters[f.name], raw)
        return out

    def declares_header(self, name: str) -> bool:
        return any(f.wire_name.lower() == name.lower() for f in self.schema.header_fields)

    # --- body ---

    def encode_body(self, values: Mapping[str, Any]) -> bytes:
        nt = self.schema.newtype_body_field
        try:
            if nt is not None:
                value = values[nt.name]
                if value is None and nt.default is None and self.schema.kind == "request":
                    return b""
                return self.adapters[nt.name].dump_json(value)

            if self.body_model is None:
                return self.empty_body
            # optional members left at None are omitted from the object
            members = {
                f.wire_name: values[f.name]
                for f in self.schema.body_fields
                if not (values[f.name] is None and f.default is None)
            }
            if not members:
                return self.empty_body
            body = self.body_model.model_construct(**members)
            return body.model_dump_json(by_alias=True, exclude_unset=True).encode("utf-8")
        except PydanticSerializationError as exc:
            raise IntoHttpError.serialization(exc) from exc

    def decode_body(self, content: bytes) -> dict[str, Any]:
        payload = json_payload(content)
        nt = self.schema.newtype_body_field
        if nt is not None:
            if not content and nt.default is None:
                return {nt.name: None}
            return {nt.name: self.adapters[nt.name].validate_json(payload)}
        if self.body_model is None:
            return {}
        body = self.body_model.model_validate_json(payload)
        return {f.name: getattr(body, f.name) for f in self.schema.body_fields}


class EndpointCodec:
    """
    The generated artifacts of one endpoint.

    Request / Response are the generated pydantic classes, METADATA the
    endpoint metadata record. The four routines are pure: no I/O, no state
    shared between calls.
    """

    def __init__(self, endpoint: CompiledEndpoint, path_encoding: PathEncoding) -> None:
        self.endpoint = endpoint
        self.METADATA: Metadata = endpoint.metadata
        self.error_type: type = endpoint.error_type
        self.path_encoding: PathEncoding = path_encoding

        prefix = _class_prefix(endpoint.name)
        violations: list[Violation] = []
        sides: dict[str, _SchemaCodec] = {}
        for side, schema in (("request", endpoint.request), ("response", endpoint.response)):
            try:
                sides[side] = _SchemaCodec(schema, f"{prefix}{side.title()}")
            except DefinitionSyntaxError as exc:
                violations.extend(exc.violations)
        if violations:
            raise DefinitionSyntaxError(violations, endpoint=endpoint.name)

        self._req = sides["request"]
        self._resp = sides["response"]
        self._path_index = {
            f.name: self.METADATA.path_segment_index(f.name) for f in endpoint.request.path_fields
        }

        self.Request: type[EndpointRequest] = self._build_model(
            f"{prefix}Request",
            EndpointRequest,
            endpoint.request,
            f"Data for a request to the `{endpoint.name}` API endpoint.\n\n{self.METADATA.description}".strip(),
        )
        self.Response: type[EndpointResponse] = self._build_model(
            f"{prefix}Response",
            EndpointResponse,
            endpoint.response,
            f"Data in the response from the `{endpoint.name}` API endpoint.",
        )

    def _build_model(self, name: str, base: type, schema: Schema, doc: str) -> Any:
        bases: Any = (base, NonAuthEndpoint) if self.METADATA.authentication is AuthScheme.NONE else base
        try:
            model = create_model(
                name,
                __base__=bases,
                __doc__=doc,
                __module__=__name__,
                **{f.name: _model_field(f) for f in schema.fields},
            )
        except PydanticUserError as exc:
            raise DefinitionSyntaxError(
                [Violation(None, f"cannot build {schema.kind} model: {exc.message}")],
                endpoint=self.endpoint.name,
            ) from exc
        model.METADATA = self.METADATA
        model.ENDPOINT_ERROR = self.error_type
        model.CODEC = self
        return model

    @property
    def name(self) -> str:
        return self.METADATA.name

    def __repr__(self) -> str:
        return f"EndpointCodec({self.METADATA.method} {self.METADATA.path!r}, name={self.name!r})"

    # --- outgoing request ---

    def encode_request(
        self,
        request: EndpointRequest,
        base_url: str,
        access_token: Optional[str] = None,
    ) -> httpx.Request:
        if not isinstance(request, self.Request):
            raise TypeError(f"expected {self.Request.__name__}, got {type(request).__name__}")
        values = {f.name: getattr(request, f.name) for f in self.endpoint.request.fields}

        segments = self.METADATA.path[1:].split("/")
        for f in self.endpoint.request.path_fields:
            text = to_wire_str(self._req.adapters[f.name], values[f.name])
            segments[self._path_index[f.name]] = encode_path_segment(text, self.path_encoding)
        path = "/" + "/".join(segments)

        query = self._req.encode_query(values)
        headers = self._req.encode_headers(values)

        auth = self.METADATA.authentication
        if auth.needs_token and not access_token:
            raise IntoHttpError.needs_authentication()
        if auth is AuthScheme.ACCESS_TOKEN:
            headers.append(("Authorization", check_header_value("Authorization", f"Bearer {access_token}")))
        elif auth is AuthScheme.QUERY_ONLY_ACCESS_TOKEN:
            query.append((ACCESS_TOKEN_QUERY_KEY, access_token))

        body = self._req.encode_body(values)
        if body and not self._req.declares_header("content-type"):
            headers.append(("Content-Type", JSON_CONTENT_TYPE))

        uri = trim_base_url(base_url) + path
        if query:
            uri += "?" + build_query_string(query)
        try:
            return httpx.Request(self.METADATA.method, uri, headers=headers, content=body)
        except httpx.InvalidURL as exc:
            raise IntoHttpError.invalid_uri(uri, exc) from exc

    # --- incoming request ---

    def decode_request(self, request: httpx.Request) -> EndpointRequest:
        try:
            values: dict[str, Any] = {}

            if self.endpoint.request.has_path_fields:
                segments = split_raw_path(request.url.raw_path)
                for f in self.endpoint.request.path_fields:
                    idx = self._path_index[f.name]
                    if idx >= len(segments):
                        raise _DecodeError(f"missing path segment for `{f.name}`")
                    raw = decode_path_segment(segments[idx], self.path_encoding)
                    values[f.name] = from_wire_str(self._req.adapters[f.name], raw)

            skip = frozenset()
            if self.METADATA.authentication is AuthScheme.QUERY_ONLY_ACCESS_TOKEN:
                skip = frozenset({ACCESS_TOKEN_QUERY_KEY})
            values.update(self._req.decode_query(request.url.params, skip=skip))
            values.update(self._req.decode_headers(request.headers))
            if self.endpoint.request.has_body:
                values.update(self._req.decode_body(request.content))

            return self.Request.model_validate(values)
        except (_DecodeError, ValidationError) as exc:
            raise FromHttpRequestError(
                f"failed to deserialize `{self.name}` request: {exc}",
                request,
                cause=exc,
            ) from exc

    # --- outgoing response ---

    def encode_response(self, response: EndpointResponse) -> httpx.Response:
        if not isinstance(response, self.Response):
            raise TypeError(f"expected {self.Response.__name__}, got {type(response).__name__}")
        values = {f.name: getattr(response, f.name) for f in self.endpoint.response.fields}

        headers: list[tuple[str, str]] = []
        if not self._resp.declares_header("content-type"):
            headers.append(("Content-Type", JSON_CONTENT_TYPE))
        headers.extend(self._resp.encode_headers(values))

        return httpx.Response(200, headers=headers, content=self._resp.encode_body(values))

    # --- incoming response ---

    def decode_response(self, response: httpx.Response) -> EndpointResponse:
        if response.status_code < 400:
            try:
                values: dict[str, Any] = {}
                values.update(self._resp.decode_headers(response.headers))
                if self.endpoint.response.has_body:
                    values.update(self._resp.decode_body(response.content))
                return self.Response.model_validate(values)
            except (_DecodeError, ValidationError) as exc:
                raise FromHttpResponseError.from_deserialization(
                    ResponseDeserializationError(
                        response, message=f"failed to deserialize `{self.name}` response: {exc}", cause=exc
                    )
                ) from exc

        try:
            error = self.error_type.try_from_response(response)
        except ResponseDeserializationError as exc:
            raise FromHttpResponseError.unknown(exc) from exc
        except ValueError as exc:
            raise FromHttpResponseError.unknown(
                ResponseDeserializationError(response, message=f"unrecognized error body: {exc}", cause=exc)
            ) from exc
        raise FromHttpResponseError.known(error)

    # --- introspection ---

    def summary(self) -> EndpointSummary:
        def placement(schema: Schema) -> dict[str, str]:
            return {f.name: f"{f.location.value}:{f.wire_name} ({f.type_label})" for f in schema.fields}

        return EndpointSummary(
            name=self.name,
            method=self.METADATA.method,
            path=self.METADATA.path,
            authentication=self.METADATA.authentication,
            rate_limited=self.METADATA.rate_limited,
            request_fields=placement(self.endpoint.request),
            response_fields=placement(self.endpoint.response),
            error_type=self.error_type.__name__,
        )


def generate_codec(endpoint: CompiledEndpoint, path_encoding: Optional[PathEncoding] = None) -> EndpointCodec:
    """Build the codec of an already validated endpoint."""
    encoding = path_encoding or get_settings().path_encoding
    codec = EndpointCodec(endpoint, encoding)
    logger.debug(
        "generated codec for {} ({} {}, auth={}, path_encoding={})",
        endpoint.name,
        endpoint.metadata.method,
        endpoint.metadata.path,
        endpoint.metadata.authentication.value,
        encoding,
    )
    return codec


def define_endpoint(
    definition: Mapping[str, Any],
    namespace: Optional[Mapping[str, Any]] = None,
    path_encoding: Optional[PathEncoding] = None,
) -> EndpointCodec:
    """Parse, assemble, validate and generate one endpoint definition."""
    endpoint = validate(assemble(definition, namespace))
    return generate_codec(endpoint, path_encoding)
