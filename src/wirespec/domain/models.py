from __future__ import annotations

import re
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, StrictBool, field_validator

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]

_PLACEHOLDER = re.compile(r"\{([^{}/]*)\}")
_IDENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_.\-]*$")


class AuthScheme(str, Enum):
    NONE = "None"
    ACCESS_TOKEN = "AccessToken"
    SERVER_SIGNATURES = "ServerSignatures"
    QUERY_ONLY_ACCESS_TOKEN = "QueryOnlyAccessToken"

    @property
    def needs_token(self) -> bool:
        return self in (AuthScheme.ACCESS_TOKEN, AuthScheme.QUERY_ONLY_ACCESS_TOKEN)


def path_placeholders(path: str) -> list[str]:
    """Ordered placeholder names of a path template: /rooms/{room_id}/x -> [room_id]"""
    return _PLACEHOLDER.findall(path)


class Metadata(BaseModel):
    """Endpoint-level declarations. Frozen once parsed."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    description: str = ""
    method: HttpMethod
    name: str
    path: str
    rate_limited: StrictBool = False
    authentication: AuthScheme = AuthScheme.NONE

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("name")
    @classmethod
    def _check_name(cls, v: str) -> str:
        v = v.strip()
        if not _NAME.match(v):
            raise ValueError("name must be a non-empty identifier (letters, digits, _ . -)")
        return v

    @field_validator("path")
    @classmethod
    def _check_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError("path template must start with '/'")
        if "?" in v or "#" in v:
            raise ValueError("path template must not contain a query or fragment")

        seen: set[str] = set()
        for seg in v[1:].split("/"):
            names = _PLACEHOLDER.findall(seg)
            if not names:
                if "{" in seg or "}" in seg:
                    raise ValueError(f"unbalanced braces in path segment {seg!r}")
                continue
            if seg != "{" + names[0] + "}":
                raise ValueError(f"placeholder must span a whole path segment, got {seg!r}")
            name = names[0]
            if not _IDENT.match(name):
                raise ValueError(f"placeholder {{{name}}} is not a valid identifier")
            if name in seen:
                raise ValueError(f"placeholder {{{name}}} appears more than once")
            seen.add(name)
        return v

    @property
    def path_params(self) -> list[str]:
        return path_placeholders(self.path)

    def path_segment_index(self, param: str) -> int:
        """Index of `{param}` among the segments after the leading '/'."""
        return self.path[1:].split("/").index("{" + param + "}")


class EndpointSummary(BaseModel):
    """Serializable view of a compiled endpoint, used by the CLI."""

    name: str
    method: HttpMethod
    path: str
    authentication: AuthScheme
    rate_limited: bool
    request_fields: dict[str, str] = Field(default_factory=dict)
    response_fields: dict[str, str] = Field(default_factory=dict)
    error_type: str = "Void"
