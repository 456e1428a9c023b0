"""Application configuration model.

Runtime settings for bridgex: where Synapse lives, who owns exported tables,
how hard we may hit the API, and where the table registry is kept.
"""
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class AppConfig(BaseModel):
    """Application runtime configuration.

    Attributes:
        synapse_endpoint: Base URL of the Synapse repository API
        synapse_auth_token: Personal access token for the exporter account
        synapse_principal_id: Exporter account, granted admin on every table
        admin_team_id: Optional team also granted admin access
        staff_team_id: Optional team granted read/download access
        async_interval_millis: Sleep between polls of an async job
        async_max_attempts: Poll attempts before an async job times out
        rate_limit_per_second: Permits per second for general Synapse calls
        column_models_rate_limit_per_minute: Permits per minute for listing table columns
        registry_db_url: PostgreSQL URL of the table registry
        registry_table_prefix: Prefix for the registry table name
        scratch_dir: Directory holding TSV scratch files
        worker_queue_size: Bound of each table worker's task queue
        gcs_project_id: GCP project for redrive archiving
        redrive_bucket: GCS bucket receiving failed scratch files

    Example:
        >>> config = AppConfig(
        ...     synapse_auth_token="token",
        ...     synapse_principal_id=3336429,
        ...     registry_db_url="postgresql://localhost/bridgex",
        ...     scratch_dir=Path("/tmp/bridgex"),
        ... )
    """

    synapse_endpoint: str = "https://repo-prod.prod.sagebase.org/repo/v1"
    synapse_auth_token: str
    synapse_principal_id: int
    admin_team_id: Optional[int] = None
    staff_team_id: Optional[int] = None
    async_interval_millis: int = Field(default=1000, ge=0)
    async_max_attempts: int = Field(default=300, ge=1)
    rate_limit_per_second: float = Field(default=10, gt=0)
    column_models_rate_limit_per_minute: float = Field(default=24, gt=0)
    registry_db_url: str
    registry_table_prefix: str = ""
    scratch_dir: Path
    worker_queue_size: int = Field(default=1000, ge=1)
    gcs_project_id: Optional[str] = None
    redrive_bucket: Optional[str] = None

    @field_validator("synapse_endpoint")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("registry_table_prefix")
    @classmethod
    def validate_prefix(cls, v: str) -> str:
        if v and not all(c.isalnum() or c == "_" for c in v):
            raise ValueError(f"registry_table_prefix may only contain letters, digits and '_': {v}")
        return v
