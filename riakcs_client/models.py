"""Internal data models for riakcs-client.

All models use Pydantic v2. Static inputs (ClientConfig, OperationSpec) are
frozen; per-call values (RequestDescriptor, RawResponse, Result, ErrorResult)
are created fresh for every execute() call.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator


# Region names understood by RiakCS deployments.
STORAGE = "storage"
DEFAULT = ""

ALL_HEADERS = "all"


# =============================================================================
# Declarative kinds
# =============================================================================


class ParamKind(str, Enum):
    """How one call argument is projected into the request descriptor."""

    PARAM = "param"
    RESOURCE = "resource"
    PARAM_ARRAY = "param-array"
    PARAM_ARRAY_SET = "param-array-set"
    PARAM_2D_ARRAY = "param-2d-array"
    PARAM_2D_ARRAY_SET = "param-2d-array-set"
    PARAM_ARRAY_OF_OBJECTS = "param-array-of-objects"
    PARAM_DATA = "param-data"
    PARAM_JSON = "param-json"
    HEADER = "header"
    HEADER_BASE64 = "header-base64"
    FORM = "form"
    FORM_ARRAY = "form-array"
    FORM_BASE64 = "form-base64"
    JSON = "json"
    BODY = "body"
    SPECIAL = "special"  # Left to an extras hook


class BodyKind(str, Enum):
    """How a response body is decoded."""

    XML = "xml"
    JSON = "json"
    BLOB = "blob"
    STRING = "string"
    FORM_URLENCODED = "application/x-www-form-urlencoded"
    NONE = "none"


@dataclass(frozen=True)
class Computed:
    """Marks an OperationSpec value as computed at call time.

    The wrapped function receives the same context arguments the literal
    would have been resolved against, e.g. ``(descriptor, args)`` for path.
    """

    fn: Callable[..., Any]

    def __call__(self, *context: Any) -> Any:
        return self.fn(*context)


# =============================================================================
# Credentials and client configuration
# =============================================================================


class Credentials(BaseModel):
    """Access key pair plus optional account id.

    The secret is held as a SecretStr so it is masked in reprs and dumps.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    access_key_id: str = Field(min_length=1, description="Access key id")
    secret_access_key: SecretStr = Field(description="Secret used for HMAC signing")
    account_id: str | None = Field(default=None, description="Optional account id")

    @field_validator("secret_access_key")
    @classmethod
    def check_secret_not_empty(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value():
            raise ValueError("secret_access_key must not be empty")
        return v


class ClientConfig(BaseModel):
    """Everything a client needs besides its operation catalog."""

    model_config = ConfigDict(extra="forbid", frozen=True, arbitrary_types_allowed=True)

    credentials: Credentials = Field(description="Signing credentials")
    hostname: str = Field(min_length=1, description="Service hostname, e.g. riak.example.com")
    protocol: str = Field(default="http", description="'http' or 'https'")
    region: str | None = Field(default=None, description="Region name (STORAGE or DEFAULT)")
    api_version: str = Field(default="2006-03-01", description="Value of the Version parameter")
    signature_version: int = Field(default=2, description="Value of the SignatureVersion parameter")
    signature_method: str = Field(
        default="HmacSHA256", description="Value of the SignatureMethod parameter"
    )
    header_prefix: str = Field(
        default="x-amz-", description="Prefix used when extract_headers is True"
    )
    extract_body: BodyKind = Field(default=BodyKind.XML, description="Default success body kind")
    extract_body_when_error: BodyKind = Field(
        default=BodyKind.XML, description="Default body kind for unexpected statuses"
    )
    extract_headers: Any = Field(default=True, description="Default header extraction mode")
    extras: list[Callable[..., Any]] = Field(
        default_factory=list, description="Default extras hooks, run when an operation has none"
    )
    timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds")
    debug: bool = Field(default=False, description="Log string-to-sign and signature")

    @field_validator("protocol")
    @classmethod
    def check_protocol(cls, v: str) -> str:
        if v not in ("http", "https"):
            raise ValueError(f"protocol must be 'http' or 'https', got {v!r}")
        return v

    @field_validator("extract_headers")
    @classmethod
    def check_extract_headers(cls, v: Any) -> Any:
        return _check_header_mode(v)


# =============================================================================
# Operation catalog
# =============================================================================


def _check_header_mode(v: Any) -> Any:
    if v is None or isinstance(v, (bool, re.Pattern, list, tuple, set, frozenset, dict)):
        return v
    if v == ALL_HEADERS or callable(v):
        return v
    raise ValueError(f"unsupported extract_headers mode: {v!r}")


class ArgSpec(BaseModel):
    """Declaration of one call argument."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    type: ParamKind = Field(description="Projection kind")
    required: bool = Field(default=False, description="Whether the key must be present")
    name: str | None = Field(default=None, description="Wire name, defaults to the argument name")
    prefix: str | None = Field(default=None, description="Prefix for array kinds")
    set_name: str | None = Field(default=None, description="Outer group name for set kinds")
    subset_name: str | None = Field(default=None, description="Inner group name for 2d sets")


class OperationSpec(BaseModel):
    """Static, declarative description of one remote call.

    ``method``, ``path``, ``host``, ``hostname``, ``protocol`` and ``body``
    accept either a literal or a Computed wrapper; ``None`` means "use the
    client default".
    """

    model_config = ConfigDict(extra="forbid", frozen=True, arbitrary_types_allowed=True)

    name: str = Field(description="Operation name used by execute()")
    method: str | Computed = Field(default="GET", description="HTTP method")
    path: str | Computed = Field(default="/", description="Request path")
    host: str | Computed | None = Field(default=None, description="Host override")
    hostname: str | Computed | None = Field(
        default=None, description="Service hostname override, visible to computed host and path"
    )
    protocol: str | Computed | None = Field(default=None, description="Protocol override")
    arg_specs: dict[str, ArgSpec] = Field(default_factory=dict, description="Argument declarations")
    defaults: dict[str, Any] = Field(
        default_factory=dict, description="Default argument values (literal or Computed)"
    )
    body: str | bytes | Computed | None = Field(default=None, description="Fixed request body")
    expected_status_code: int | frozenset[int] = Field(
        default=200, description="Status code(s) that count as success"
    )
    extract_body: BodyKind | Callable[..., Any] | None = Field(
        default=None, description="Success body kind, defaults to the client's"
    )
    extract_body_when_error: BodyKind | None = Field(
        default=None, description="Error body kind, defaults to the client's"
    )
    extract_headers: Any = Field(default=None, description="Header extraction mode override")
    extras: list[Callable[..., Any]] | None = Field(
        default=None, description="Extras hooks, replacing the client default"
    )

    @field_validator("extract_headers")
    @classmethod
    def check_extract_headers(cls, v: Any) -> Any:
        return _check_header_mode(v)

    def expects(self, status_code: int) -> bool:
        """Whether ``status_code`` counts as success for this operation."""
        if isinstance(self.expected_status_code, int):
            return status_code == self.expected_status_code
        return status_code in self.expected_status_code


# =============================================================================
# Per-call models
# =============================================================================


class Param(BaseModel):
    """One query parameter or form field. ``value=None`` is a bare flag."""

    model_config = ConfigDict(extra="forbid")

    name: str
    value: str | None = None


class RequestDescriptor(BaseModel):
    """Mutable accumulator for one compiled request.

    ``json_fields`` (alias ``json``) collects JSON-kind arguments; when it is
    non-empty the dispatcher sends it as the request body.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    method: str = ""
    protocol: str = ""
    host: str = ""
    hostname: str = ""
    path: str = "/"
    params: list[Param] = Field(default_factory=list)
    headers: dict[str, str] = Field(default_factory=dict)
    forms: list[Param] = Field(default_factory=list)
    json_fields: dict[str, Any] = Field(default_factory=dict, alias="json")
    body: str | bytes | None = None

    def add_param(self, name: str, value: str | None = None) -> None:
        self.params.append(Param(name=name, value=value))

    def add_form(self, name: str, value: str | None) -> None:
        self.forms.append(Param(name=name, value=value))


class RawResponse(BaseModel):
    """Status/headers/body triple returned by the dispatcher.

    Header keys are lowercase; repeated headers are joined with ``, ``.
    """

    model_config = ConfigDict(extra="forbid")

    status_code: int
    headers: dict[str, str] = Field(default_factory=dict)
    content: bytes = b""


class Result(BaseModel):
    """Decoded successful response."""

    model_config = ConfigDict(extra="forbid")

    status_code: int = Field(description="HTTP status code")
    headers: dict[str, str] | None = Field(default=None, description="Extracted headers")
    body: Any = Field(default=None, description="Decoded body")


class ErrorResult(BaseModel):
    """Normalized failure handed to callback-style callers."""

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    code: str = Field(description="Error class name, e.g. TransportError")
    message: str = Field(description="Human-readable message")
    status_code: int | None = Field(default=None, description="Status for StatusMismatchError")
    headers: dict[str, str] | None = Field(default=None, description="Extracted headers")
    body: Any = Field(default=None, description="Raw or decoded body for diagnostics")
    original_error: Any = Field(default=None, description="Underlying exception, if any")
