"""Error taxonomy for endpoint generation and the generated codecs.

Generation-time errors are fatal for one endpoint definition and aggregate
every violation found. Runtime errors are raised by the four codec routines
and always keep the wire message they failed on.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Generic, Iterable, Literal, Optional, TypeVar, Union

if TYPE_CHECKING:
    import httpx

E = TypeVar("E")

ViolationKind = Literal["syntax", "combination"]


class ErrorCode(Enum):
    DEFINITION_SYNTAX = "DEFINITION_SYNTAX"
    UNSUPPORTED_COMBINATION = "UNSUPPORTED_COMBINATION"
    NEEDS_AUTHENTICATION = "NEEDS_AUTHENTICATION"
    INVALID_HEADER_VALUE = "INVALID_HEADER_VALUE"
    INVALID_PATH_VALUE = "INVALID_PATH_VALUE"
    INVALID_URI = "INVALID_URI"
    SERIALIZATION = "SERIALIZATION"
    REQUEST_DESERIALIZATION = "REQUEST_DESERIALIZATION"
    RESPONSE_DESERIALIZATION = "RESPONSE_DESERIALIZATION"
    SERVER_ERROR = "SERVER_ERROR"


class WirespecError(Exception):
    """Base exception for everything raised by wirespec.

    Args:
        error_code: Identifier of the error type
        message: Human-readable message
        context: Structured details (field names, header names, status codes)
        cause: The exception that triggered this one
    """

    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        context: Optional[dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        self.error_code = error_code
        self.message = message
        self.context = context or {}
        self.cause = cause
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    def __repr__(self) -> str:
        return f"{type(self).__name__}(error_code={self.error_code.value!r}, message={self.message!r})"


# --- generation time ---------------------------------------------------------


@dataclass(frozen=True)
class Violation:
    field: Optional[str]
    message: str
    kind: ViolationKind = "syntax"

    def __str__(self) -> str:
        if self.field:
            return f"`{self.field}`: {self.message}"
        return self.message


class DefinitionSyntaxError(WirespecError):
    """A definition could not be compiled. Carries every violation found."""

    error_code_default = ErrorCode.DEFINITION_SYNTAX

    def __init__(self, violations: Iterable[Violation], endpoint: Optional[str] = None) -> None:
        self.violations = tuple(violations)
        self.endpoint = endpoint
        header = f"invalid endpoint definition `{endpoint}`" if endpoint else "invalid endpoint definition"
        lines = [f"{header} ({len(self.violations)} problem(s)):"]
        lines.extend(f"  - {v}" for v in self.violations)
        super().__init__(
            self.error_code_default,
            "\n".join(lines),
            context={"endpoint": endpoint, "fields": [v.field for v in self.violations if v.field]},
        )

    @property
    def fields(self) -> list[str]:
        return [v.field for v in self.violations if v.field]


class UnsupportedCombinationError(DefinitionSyntaxError):
    """Every violation is a forbidden combination (e.g. a GET request with a body)."""

    error_code_default = ErrorCode.UNSUPPORTED_COMBINATION


def raise_for_violations(violations: Iterable[Violation], endpoint: Optional[str] = None) -> None:
    """Raise the narrowest definition error covering all violations, if any."""
    collected = list(violations)
    if not collected:
        return
    if all(v.kind == "combination" for v in collected):
        raise UnsupportedCombinationError(collected, endpoint=endpoint)
    raise DefinitionSyntaxError(collected, endpoint=endpoint)


# --- runtime -----------------------------------------------------------------


class IntoHttpError(WirespecError):
    """Building a wire-level request or response failed."""

    @classmethod
    def needs_authentication(cls) -> "IntoHttpError":
        return cls(
            ErrorCode.NEEDS_AUTHENTICATION,
            "this endpoint needs an access token but none was supplied",
        )

    @classmethod
    def invalid_header_value(cls, name: str, value: str) -> "IntoHttpError":
        return cls(
            ErrorCode.INVALID_HEADER_VALUE,
            f"invalid value for header {name!r}",
            context={"header": name, "value": value},
        )

    @classmethod
    def invalid_path_value(cls, value: str) -> "IntoHttpError":
        return cls(
            ErrorCode.INVALID_PATH_VALUE,
            f"path value {value!r} cannot be sent unescaped",
            context={"value": value},
        )

    @classmethod
    def invalid_uri(cls, uri: str, cause: BaseException) -> "IntoHttpError":
        return cls(ErrorCode.INVALID_URI, f"invalid request URI {uri!r}", context={"uri": uri}, cause=cause)

    @classmethod
    def serialization(cls, cause: BaseException) -> "IntoHttpError":
        return cls(ErrorCode.SERIALIZATION, f"failed to serialize body: {cause}", cause=cause)


class FromHttpRequestError(WirespecError):
    """An incoming wire request could not be turned into a request value."""

    def __init__(
        self,
        message: str,
        request: "httpx.Request",
        context: Optional[dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        self.request = request
        super().__init__(ErrorCode.REQUEST_DESERIALIZATION, message, context=context, cause=cause)


class ResponseDeserializationError(WirespecError):
    """A wire response could not be decoded. Keeps the raw response."""

    def __init__(
        self,
        response: "httpx.Response",
        message: str = "failed to deserialize response",
        cause: Optional[BaseException] = None,
    ) -> None:
        self.response = response
        super().__init__(
            ErrorCode.RESPONSE_DESERIALIZATION,
            message,
            context={"status_code": response.status_code},
            cause=cause,
        )

    @property
    def status_code(self) -> int:
        return self.response.status_code

    @property
    def body(self) -> bytes:
        return self.response.content


@dataclass(frozen=True)
class KnownServerError(Generic[E]):
    """The server answered with an error the endpoint's error type understood."""

    error: E


@dataclass(frozen=True)
class UnknownServerError:
    """The server answered with an error body nobody could decode."""

    response_error: ResponseDeserializationError

    @property
    def status_code(self) -> int:
        return self.response_error.status_code

    @property
    def body(self) -> bytes:
        return self.response_error.body


ServerError = Union[KnownServerError[E], UnknownServerError]


class FromHttpResponseError(WirespecError, Generic[E]):
    """Decoding an incoming response failed or the server reported an error.

    Exactly one of `server_error` and `deserialization` is set.
    """

    def __init__(
        self,
        server_error: Optional[ServerError[E]] = None,
        deserialization: Optional[ResponseDeserializationError] = None,
    ) -> None:
        self.server_error = server_error
        self.deserialization = deserialization
        if isinstance(server_error, KnownServerError):
            code, message = ErrorCode.SERVER_ERROR, f"server returned an error: {server_error.error!r}"
            context: dict[str, Any] = {"known": True}
        elif isinstance(server_error, UnknownServerError):
            code = ErrorCode.SERVER_ERROR
            message = f"server returned an unrecognized error (status {server_error.status_code})"
            context = {"known": False, "status_code": server_error.status_code}
        else:
            code = ErrorCode.RESPONSE_DESERIALIZATION
            message = deserialization.message if deserialization else "failed to deserialize response"
            context = {}
        super().__init__(code, message, context=context, cause=deserialization)

    @classmethod
    def known(cls, error: E) -> "FromHttpResponseError[E]":
        return cls(server_error=KnownServerError(error))

    @classmethod
    def unknown(cls, response_error: ResponseDeserializationError) -> "FromHttpResponseError[E]":
        return cls(server_error=UnknownServerError(response_error))

    @classmethod
    def from_deserialization(cls, error: ResponseDeserializationError) -> "FromHttpResponseError[E]":
        return cls(deserialization=error)

    @property
    def is_known(self) -> bool:
        return isinstance(self.server_error, KnownServerError)

    @property
    def is_unknown(self) -> bool:
        return isinstance(self.server_error, UnknownServerError)
