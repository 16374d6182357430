from __future__ import annotations

from typing import Protocol, runtime_checkable

import httpx

from wirespec.core.errors import ResponseDeserializationError


@runtime_checkable
class EndpointError(Protocol):
    """
    Decoder for the body of a non-success response (status >= 400).

    try_from_response returns the decoded error, or raises
    ResponseDeserializationError when the body is not one it understands.
    """

    @classmethod
    def try_from_response(cls, response: httpx.Response) -> "EndpointError":
        ...


class Void:
    """Error type of endpoints that declare no error payload. Never decodes."""

    def __init__(self) -> None:
        raise TypeError("Void cannot be instantiated")

    @classmethod
    def try_from_response(cls, response: httpx.Response) -> "Void":
        raise ResponseDeserializationError(
            response, message=f"endpoint declares no error type (status {response.status_code})"
        )
