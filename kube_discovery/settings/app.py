"""Process settings powered by Pydantic BaseSettings."""

from typing import Annotated

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from kube_discovery.fetch.constants import (
    DEFAULT_MAX_RESPONSE_SIZE_BYTES,
    DEFAULT_READ_TIMEOUT_SECONDS,
    DEFAULT_WRITE_TIMEOUT_SECONDS,
)


class DiscoverySettings(BaseSettings):
    """Process-wide tunables for API discovery.

    Read from ``KUBE_SD_*`` environment variables or a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="KUBE_SD_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    read_timeout_seconds: Annotated[float, Field(gt=0.0, le=600.0)] = (
        DEFAULT_READ_TIMEOUT_SECONDS
    )
    write_timeout_seconds: Annotated[float, Field(gt=0.0, le=600.0)] = (
        DEFAULT_WRITE_TIMEOUT_SECONDS
    )
    max_response_size_bytes: Annotated[int, Field(ge=1024)] = (
        DEFAULT_MAX_RESPONSE_SIZE_BYTES
    )
    enable_tcp6: bool = Field(
        default=False,
        description="Dial API servers over IPv6 as well as IPv4",
    )
    failure_retry_interval_seconds: Annotated[float, Field(ge=0.0, le=3600.0)] = (
        0.0
    )
    log_level: str = "INFO"
    log_json: bool = True