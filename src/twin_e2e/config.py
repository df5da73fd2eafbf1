from __future__ import annotations

from uuid import uuid4

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TWIN_E2E_", env_file=".env", extra="ignore")

    # Run ID stamped on log records
    run_id: str = Field(default_factory=lambda: str(uuid4())[:8])

    # Platform REST API
    base_url: str = "http://localhost:8080"
    auth_token: SecretStr | None = None
    http_timeout: float = 30.0

    # Service health
    health_services: list[str] = Field(default_factory=lambda: ["registry", "twin", "publisher"])
    health_path: str = "healthz"

    # Simulated OPC PLC under test
    plc_endpoint_url: str | None = None
    published_nodes_url: str | None = None

    # Waits (seconds)
    max_test_timeout: float = 300.0
    poll_interval: float = 2.0
    activation_timeout: float = 60.0

    # Browse traversal
    browse_concurrency: int = Field(default=4, ge=1)
    max_nodes: int = Field(default=100_000, ge=1)
    max_depth: int | None = None
    max_pages_per_node: int = Field(default=10_000, ge=1)

    # Observability
    log_level: str = "INFO"
    log_json: bool = False


settings = Settings()
