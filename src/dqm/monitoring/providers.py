"""Content provider configuration.

A content provider is a top-level path in the input bucket with its own
quality query and notification settings, read from::

    resources/<provider-path>/athena-query.sql   # ${DATABASE} / ${TABLE} placeholders
    resources/<provider-path>/sns-config.json    # Message, Fields, *TopicSubscriptions

Every per-provider resource name is derived from the provider path and
the deployment stage:

    crawler     {path}-{stage}GlueCrawler
    classifier  {path}-{stage}GlueClassifier
    workgroup   {path}-{stage}AthenaWorkgroup
    topics      {path}-{stage}SuccessTopic / {path}-{stage}FailTopic
    table       path with "-" replaced by "_"
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from string import Template
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from dqm.core.errors import InvalidConfigError, MissingConfigError
from dqm.core.logging import get_logger
from dqm.core.settings import DqmSettings
from dqm.monitoring.events import EventRule

logger = get_logger(__name__)

QUERY_FILE = "athena-query.sql"
NOTIFICATION_FILE = "sns-config.json"
PLACEHOLDER = "{}"

SUCCEEDED = "succeeded"
FAILED = "failed"


def render_value(value: Any) -> str:
    """Render a normalized value the way it appears in a JSON document."""
    if isinstance(value, str):
        return value
    return json.dumps(value)


class NotificationConfig(BaseModel):
    """Contents of ``sns-config.json``."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    message: str = Field(..., alias="Message", min_length=1)
    fields: list[str] = Field(default_factory=list, alias="Fields")
    success_subscriptions: list[str] = Field(default_factory=list, alias="SuccessTopicSubscriptions")
    fail_subscriptions: list[str] = Field(default_factory=list, alias="FailTopicSubscriptions")

    @model_validator(mode="after")
    def placeholders_match_fields(self) -> NotificationConfig:
        placeholders = self.message.count(PLACEHOLDER)
        if placeholders != len(self.fields):
            raise ValueError(
                f"Message has {placeholders} placeholders but {len(self.fields)} fields are configured"
            )
        return self

    def render(self, results: Mapping[str, Any]) -> str:
        """Fill the message placeholders, in order, from the normalized results.

        Missing fields render as ``null`` so a degraded result still
        produces a readable failure notification.
        """
        rendered = [render_value(results.get(name)) for name in self.fields]
        parts = self.message.split(PLACEHOLDER)
        out = [parts[0]]
        for value, tail in zip(rendered, parts[1:]):
            out.append(value)
            out.append(tail)
        return "".join(out)


@dataclass(frozen=True)
class ContentProvider:
    """One monitored content provider and its derived resource names."""

    path: str
    stage: str
    database_name: str
    query_template: str
    notification: NotificationConfig

    @property
    def crawler_name(self) -> str:
        return f"{self.path}-{self.stage}GlueCrawler"

    @property
    def classifier_name(self) -> str:
        return f"{self.path}-{self.stage}GlueClassifier"

    @property
    def workgroup_name(self) -> str:
        return f"{self.path}-{self.stage}AthenaWorkgroup"

    @property
    def success_topic(self) -> str:
        return f"{self.path}-{self.stage}SuccessTopic"

    @property
    def fail_topic(self) -> str:
        return f"{self.path}-{self.stage}FailTopic"

    @property
    def table_name(self) -> str:
        return self.path.replace("-", "_")

    @property
    def query_string(self) -> str:
        return Template(self.query_template).safe_substitute(
            DATABASE=self.database_name,
            TABLE=self.table_name,
        )

    def subject(self, outcome: str) -> str:
        """Notification subject for ``succeeded`` or ``failed``."""
        return f"Data quality monitoring job for {self.path} {outcome}."

    def crawl_target(self, input_bucket: str) -> str:
        return f"s3://{input_bucket}/{self.path}/"

    def query_output_location(self, output_bucket: str) -> str:
        return f"s3://{output_bucket}/{self.path}/"

    def event_rule(self, input_bucket: str) -> EventRule:
        return EventRule(bucket_name=input_bucket, key_prefix=self.path)


def _read(path: Path, provider: str) -> str:
    if not path.is_file():
        raise MissingConfigError(
            f"{provider}/{path.name}",
            f"Content provider '{provider}' is missing {path.name} (looked in {path.parent})",
        )
    return path.read_text(encoding="utf-8")


def load_notification_config(path: Path, provider: str) -> NotificationConfig:
    raw = _read(path, provider)
    try:
        return NotificationConfig.model_validate_json(raw)
    except PydanticValidationError as e:
        raise InvalidConfigError(
            f"{provider}/{path.name}", raw, f"Invalid {path.name} for '{provider}': {e}"
        ) from e


def load_provider(path: str, settings: DqmSettings) -> ContentProvider:
    """Load one content provider from ``settings.resources_dir``."""
    root = Path(settings.resources_dir) / path
    provider = ContentProvider(
        path=path,
        stage=settings.stage,
        database_name=settings.database_name,
        query_template=_read(root / QUERY_FILE, path),
        notification=load_notification_config(root / NOTIFICATION_FILE, path),
    )
    logger.debug(
        "provider.loaded",
        provider=path,
        stage=settings.stage,
        crawler=provider.crawler_name,
        fields=len(provider.notification.fields),
    )
    return provider


def load_providers(settings: DqmSettings) -> list[ContentProvider]:
    """Load every provider listed in ``settings.providers``."""
    return [load_provider(path, settings) for path in settings.providers]
