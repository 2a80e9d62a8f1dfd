"""
Destination Mapping Model
Forwarding rule for one endpoint: target URL, auth, header rules, retry override
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Dict, FrozenSet, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from relay.models.retry_policy import DEFAULT_RETRY_POLICY, RetryPolicy

DEFAULT_API_KEY_HEADER = "X-API-Key"


class MappingError(Exception):
    """Raised when a stored mapping cannot be loaded"""

    pass


class NoAuth(BaseModel):
    type: Literal["none"] = "none"


class BasicAuth(BaseModel):
    type: Literal["basic"]
    username: str = ""
    password: str = ""


class BearerAuth(BaseModel):
    type: Literal["bearer"]
    token: str = ""


class ApiKeyAuth(BaseModel):
    """API key injected as a header (or query parameter)"""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["api_key"]
    key_name: str = Field(default=DEFAULT_API_KEY_HEADER, alias="keyName")
    key_value: str = Field(default="", alias="keyValue")
    key_in: Literal["header", "query"] = Field(default="header", alias="keyIn")

    @field_validator("key_name", mode="before")
    @classmethod
    def default_key_name(cls, v: Optional[str]) -> str:
        return v or DEFAULT_API_KEY_HEADER


AuthConfig = Annotated[
    Union[NoAuth, BasicAuth, BearerAuth, ApiKeyAuth],
    Field(discriminator="type"),
]

_auth_adapter: TypeAdapter = TypeAdapter(AuthConfig)


def parse_auth_config(raw: Optional[str]) -> AuthConfig:
    """
    Parse a stored auth config blob into its variant

    Args:
        raw: JSON string, "null" or empty for no auth

    Returns:
        One of NoAuth, BasicAuth, BearerAuth, ApiKeyAuth

    Raises:
        MappingError: If the JSON is malformed or the auth type is unknown
    """
    if not raw or raw == "null":
        return NoAuth()

    try:
        return _auth_adapter.validate_json(raw)
    except ValidationError as e:
        raise MappingError(f"Invalid authConfig: {e.errors()[0]['msg']}") from e


class SkipReason(str, Enum):
    """Why an event was acknowledged without forwarding"""

    NO_MAPPING = "no_mapping"
    MAPPING_INACTIVE = "mapping_inactive"
    NO_TARGET_URL = "no_target_url"


@dataclass
class DestinationMapping:
    """
    Forwarding rule for a single endpoint

    Attributes:
        endpoint_id: Owning endpoint identifier (unique key)
        target_url: Local URL the webhook is delivered to
        auth: Auth variant applied to outgoing requests
        retry_override: Retry policy replacing the default, if set
        add_headers: Headers added to (and overriding) the inbound set
        remove_headers: Lower-cased header names dropped from the inbound set
        is_active: Inactive mappings are never forwarded to
        mapping_id: Admin-assigned mapping id
    """

    endpoint_id: str
    target_url: str
    auth: AuthConfig = field(default_factory=NoAuth)
    retry_override: Optional[RetryPolicy] = None
    add_headers: Dict[str, str] = field(default_factory=dict)
    remove_headers: FrozenSet[str] = field(default_factory=frozenset)
    is_active: bool = True
    mapping_id: Optional[str] = None

    def __post_init__(self) -> None:
        self.remove_headers = frozenset(name.lower() for name in self.remove_headers)

    @property
    def retry_policy(self) -> RetryPolicy:
        """Effective retry policy: override if present, else the default"""
        return self.retry_override or DEFAULT_RETRY_POLICY

    def skip_reason(self) -> Optional[SkipReason]:
        if not self.is_active:
            return SkipReason.MAPPING_INACTIVE
        if not self.target_url:
            return SkipReason.NO_TARGET_URL
        return None

    @classmethod
    def from_hash(cls, data: Dict[str, str]) -> "DestinationMapping":
        """
        Build a mapping from its stored hash representation

        Args:
            data: Hash fields as written by the admin surface

        Returns:
            DestinationMapping instance

        Raises:
            MappingError: If any structured field is malformed
        """
        retry_raw = data.get("retryOverride")
        retry_override = None
        if retry_raw and retry_raw != "null":
            try:
                retry_override = RetryPolicy.from_dict(json.loads(retry_raw))
            except ValueError as e:
                raise MappingError(f"Invalid retryOverride: {e}") from e

        try:
            add_headers = json.loads(data.get("addHeaders") or "{}")
            remove_headers = json.loads(data.get("removeHeaders") or "[]")
        except ValueError as e:
            raise MappingError(f"Invalid header rules: {e}") from e

        if not isinstance(add_headers, dict) or not isinstance(remove_headers, list):
            raise MappingError("addHeaders must be an object and removeHeaders a list")

        return cls(
            endpoint_id=data.get("serverEndpointId", ""),
            target_url=data.get("localTargetUrl", ""),
            auth=parse_auth_config(data.get("authConfig")),
            retry_override=retry_override,
            add_headers={str(k): str(v) for k, v in add_headers.items()},
            remove_headers=frozenset(str(name) for name in remove_headers),
            is_active=data.get("isActive") == "1",
            mapping_id=data.get("id"),
        )
