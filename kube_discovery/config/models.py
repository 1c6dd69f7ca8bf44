"""Declarative configuration models for API discovery."""

import hashlib
import json
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Role(str, Enum):
    """Kubernetes object kinds a discovery source can enumerate."""

    NODE = "node"
    SERVICE = "service"
    POD = "pod"
    ENDPOINTS = "endpoints"
    ENDPOINTSLICE = "endpointslice"
    INGRESS = "ingress"


class Selector(BaseModel):
    """Label and/or field selector applied to requests for one role.

    Selector expressions are passed to the API server verbatim.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    role: Role
    label: str | None = None
    field: str | None = None

    @model_validator(mode="after")
    def validate_not_empty(self) -> "Selector":
        """Ensure at least one selector expression is set."""
        if not self.label and not self.field:
            msg = f"selector for role {self.role.value!r} needs label or field"
            raise ValueError(msg)
        return self


class BasicAuth(BaseModel):
    """HTTP basic auth credentials."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    username: str = Field(min_length=1)
    password: str | None = Field(default=None, repr=False)
    password_file: str | None = None

    @model_validator(mode="after")
    def validate_password_source(self) -> "BasicAuth":
        """Ensure password and password_file are not both set."""
        if self.password and self.password_file:
            msg = "at most one of password and password_file must be set"
            raise ValueError(msg)
        return self


class TLSConfig(BaseModel):
    """TLS trust and client certificate settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    ca_file: str | None = None
    cert_file: str | None = None
    key_file: str | None = None
    server_name: str | None = None
    insecure_skip_verify: bool = False

    @model_validator(mode="after")
    def validate_client_cert(self) -> "TLSConfig":
        """Ensure cert_file and key_file are given together."""
        if bool(self.cert_file) != bool(self.key_file):
            msg = "cert_file and key_file must be set together"
            raise ValueError(msg)
        return self


class DiscoveryConfig(BaseModel):
    """Configuration of one Kubernetes discovery source.

    Two configs with equal field values share one identity and therefore
    one resolved context in the config cache. An empty ``api_server``
    selects in-cluster bootstrap from the pod environment.

    Attributes:
        api_server: Explicit API server URL, e.g. ``https://10.0.0.1:6443``.
        basic_auth: Basic auth credentials.
        bearer_token: Literal bearer token.
        bearer_token_file: Path of a file holding the bearer token.
        tls_config: TLS trust and client certificate settings.
        namespaces: Namespaces to restrict listings to.
        selectors: Per-role label/field selectors.
        base_dir: Directory relative credential file paths resolve against.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    api_server: str | None = None
    basic_auth: BasicAuth | None = None
    bearer_token: str | None = Field(default=None, repr=False)
    bearer_token_file: str | None = None
    tls_config: TLSConfig | None = None
    namespaces: tuple[str, ...] = ()
    selectors: tuple[Selector, ...] = ()
    base_dir: str = "."

    @model_validator(mode="after")
    def validate_single_auth_method(self) -> "DiscoveryConfig":
        """Ensure at most one authorization method is configured."""
        methods = [
            name
            for name, value in (
                ("basic_auth", self.basic_auth),
                ("bearer_token", self.bearer_token),
                ("bearer_token_file", self.bearer_token_file),
            )
            if value
        ]
        if len(methods) > 1:
            msg = f"at most one of {', '.join(methods)} must be set"
            raise ValueError(msg)
        return self

    @property
    def is_in_cluster(self) -> bool:
        """Check if this config bootstraps from the pod environment."""
        return not self.api_server

    def to_normalized_json(self) -> str:
        """Convert to normalized JSON with stable ordering.

        Secrets are serialized by value so that configs differing only in
        credentials never share an identity.

        Returns:
            JSON string with sorted keys.
        """
        data = self.model_dump(mode="json")
        return json.dumps(data, sort_keys=True, separators=(",", ":"))

    def fingerprint(self) -> str:
        """Compute the identity key of this config.

        Returns:
            Hex-encoded SHA-256 of the normalized JSON form.
        """
        normalized = self.to_normalized_json()
        return hashlib.sha256(normalized.encode("utf-8")).hexdigest()

    def selectors_for_role(self, role: Role) -> tuple[Selector, ...]:
        """Get the selectors that apply to a role.

        Args:
            role: Role being requested.

        Returns:
            Selectors configured for that role, in config order.
        """
        return tuple(s for s in self.selectors if s.role == role)
