"""Runtime settings for the monitoring workflow.

All tunables are explicit, validated, and environment-driven
(``DQM_`` prefix, ``.env`` supported). Timing constants of the state
machine live here as named fields so tests can shrink them.

Examples:
    >>> from dqm.core.settings import DqmSettings
    >>> settings = DqmSettings(stage="prod", crawl_poll_seconds=10)
    >>> settings.execution_timeout_seconds
    300.0

    Environment:

        DQM_STAGE=prod
        DQM_INPUT_BUCKET=dqmaprodstack-input-bucket
        DQM_PROVIDERS='["beta-content-provider"]'
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DqmSettings(BaseSettings):
    """Settings shared by the monitor, the AWS adapters and the CLI.

    Fields
    ──────
    stage                      : Deployment stage, part of every resource name
    region / account_id        : AWS location; account_id is needed to build topic ARNs
    input_bucket               : Bucket whose uploads trigger executions
    output_bucket              : Bucket that receives query result files
    database_name              : Catalog database the crawlers register tables in
    resources_dir              : Root of ``<provider>/athena-query.sql`` + ``sns-config.json``
    providers                  : Content provider paths to monitor
    crawl_poll_seconds         : Wait between crawler status checks
    execution_timeout_seconds  : Overall wall-clock budget of one execution
    query_retry_*              : Retry policy for transient query service errors
    query_poll_seconds         : Wait between query status checks while a query runs
    max_concurrent_executions  : Worker threads used by ``handle_many``
    """

    model_config = SettingsConfigDict(
        env_prefix="DQM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Deployment ───────────────────────────────────────────────
    stage: str = "dev"
    region: str = "us-east-1"
    account_id: str | None = None
    input_bucket: str = "dqmadevstack-input-bucket"
    output_bucket: str = "dqmadevstack-output-bucket"
    database_name: str = "dqmadevstack_glue_database"

    # ── Providers ────────────────────────────────────────────────
    resources_dir: Path = Field(
        default=Path("resources"),
        description="Directory holding one sub-directory per content provider",
    )
    providers: list[str] = Field(default_factory=lambda: ["beta-content-provider"])

    # ── State machine timing ─────────────────────────────────────
    crawl_poll_seconds: float = Field(default=30.0, ge=0)
    execution_timeout_seconds: float = Field(default=300.0, gt=0)
    query_retry_max_attempts: int = Field(default=6, ge=0)
    query_retry_interval_seconds: float = Field(default=2.0, ge=0)
    query_retry_backoff_rate: float = Field(default=2.0, ge=1)
    query_poll_seconds: float = Field(default=1.0, ge=0)

    # ── Concurrency ──────────────────────────────────────────────
    max_concurrent_executions: int = Field(default=4, ge=1)

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None
