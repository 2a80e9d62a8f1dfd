"""
Pydantic Settings Models for Relay Worker Configuration
Environment variable names match those used by the ingestion side
"""

import secrets
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _generate_consumer_name() -> str:
    return f"relay-client-{secrets.token_hex(3)}"


class RedisSettings(BaseSettings):
    """Redis connection (event log, DLQ, mappings, shared counters)"""

    url: str = Field(..., description="host:port or redis:// URL")
    password: str = Field(..., description="Redis password")
    db: int = Field(default=0, ge=0, le=15)
    socket_connect_timeout: float = Field(default=5.0, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="REDIS_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("url", "password")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v


class StreamSettings(BaseSettings):
    """Stream and consumer-group names"""

    stream_name: str = Field(default="webhook-stream")
    consumer_group: str = Field(default="relay-group")
    consumer_name: str = Field(default_factory=_generate_consumer_name)
    dead_letter_queue: str = Field(default="webhook-dlq")
    stream_max_len: int = Field(
        default=10000, ge=0, description="Approximate MAXLEN on republish (0 disables trim)"
    )

    model_config = SettingsConfigDict(
        env_prefix="", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


class WorkerSettings(BaseSettings):
    """Worker pool tuning parameters"""

    worker_count: int = Field(default=5, ge=1, le=256, description="Concurrent workers")
    batch_size: int = Field(default=10, ge=1, le=1000, description="Entries claimed per read")
    block_timeout: int = Field(default=5000, ge=0, description="Blocking read timeout (ms)")
    poll_delay_ms: int = Field(default=100, ge=0, description="Delay between batch reads (ms)")
    request_timeout_seconds: float = Field(default=30.0, gt=0)
    shutdown_timeout_seconds: float = Field(default=30.0, ge=0)
    reclaim_idle_ms: int = Field(
        default=60000, ge=0, description="Reclaim entries pending longer than this (0 disables)"
    )
    reclaim_interval_seconds: float = Field(default=30.0, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


class ObservabilitySettings(BaseSettings):
    """Health endpoint, metrics, logging, heartbeat, and tracing configuration"""

    client_port: int = Field(default=3003, ge=0, le=65535, description="/health and /metrics")
    metrics_port: int = Field(
        default=9090, ge=0, le=65535, description="Prometheus exposition (0 disables)"
    )
    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    log_format: str = Field(default="json", pattern="^(json|console)$")
    realtime_url: Optional[str] = Field(default=None, description="Heartbeat monitor base URL")
    heartbeat_interval_seconds: float = Field(default=5.0, gt=0)
    enable_tracing: bool = Field(default=False)

    model_config = SettingsConfigDict(
        env_prefix="", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


class RelaySettings(BaseSettings):
    """Complete relay worker configuration"""

    redis: RedisSettings = Field(default_factory=RedisSettings)
    stream: StreamSettings = Field(default_factory=StreamSettings)
    worker: WorkerSettings = Field(default_factory=WorkerSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    model_config = SettingsConfigDict(
        env_prefix="RELAY_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )
