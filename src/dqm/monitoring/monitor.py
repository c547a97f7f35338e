"""Data Quality Monitor — routes upload events to provider workflows.

One ``DataQualityMonitor`` owns the configured content providers. For
each incoming upload event it finds the provider whose ``EventRule``
matches, builds that provider's quality-check workflow, and runs it.

Executions are independent: ``handle_many`` runs them on a bounded
thread pool (``max_concurrent_executions``) and no mutable state is
shared between them beyond the collaborators themselves.

Example::

    settings = DqmSettings()
    monitor = DataQualityMonitor.from_settings(settings)
    result = monitor.handle(event)
    if result is not None and not result.succeeded:
        print(result.error_type, result.cause)
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from dqm.core.logging import get_logger
from dqm.core.settings import DqmSettings
from dqm.monitoring.events import UploadEvent
from dqm.monitoring.protocols import ProviderServices
from dqm.monitoring.providers import ContentProvider, load_providers
from dqm.monitoring.state_machine import build_quality_workflow
from dqm.orchestration import WorkflowResult, WorkflowRunner

logger = get_logger(__name__)

ServicesFactory = Callable[[ContentProvider], ProviderServices]


class DataQualityMonitor:
    """Dispatches upload events to per-provider quality-check executions."""

    def __init__(
        self,
        settings: DqmSettings,
        providers: Iterable[ContentProvider],
        services_factory: ServicesFactory,
        runner: WorkflowRunner | None = None,
    ):
        self.settings = settings
        self.providers = list(providers)
        self.services_factory = services_factory
        self.runner = runner or WorkflowRunner()

    @classmethod
    def from_settings(
        cls,
        settings: DqmSettings,
        services_factory: ServicesFactory | None = None,
        runner: WorkflowRunner | None = None,
    ) -> DataQualityMonitor:
        """Load providers from ``settings.resources_dir``; default to AWS services."""
        if services_factory is None:
            from dqm.monitoring.aws import aws_services

            services_factory = aws_services(settings)
        return cls(settings, load_providers(settings), services_factory, runner)

    def provider(self, path: str) -> ContentProvider | None:
        for provider in self.providers:
            if provider.path == path:
                return provider
        return None

    def route(self, event: UploadEvent) -> ContentProvider | None:
        """Return the first provider whose event rule matches ``event``."""
        for provider in self.providers:
            if provider.event_rule(self.settings.input_bucket).matches(event):
                return provider
        return None

    def run(self, provider: ContentProvider, event: UploadEvent) -> WorkflowResult:
        """Run the quality-check workflow for ``provider`` on ``event``."""
        workflow = build_quality_workflow(
            provider,
            self.services_factory(provider),
            self.settings,
        )
        return self.runner.execute(workflow, params=event.to_dict())

    def handle(self, event: UploadEvent | Mapping[str, Any]) -> WorkflowResult | None:
        """Run one execution for ``event``.

        Returns ``None`` when the event is malformed or no provider's rule
        matches it; both cases are logged and start no execution.
        """
        if not isinstance(event, UploadEvent):
            try:
                event = UploadEvent.model_validate(event)
            except PydanticValidationError as e:
                logger.error("monitor.invalid_event", error=str(e), errors=e.error_count())
                return None

        provider = self.route(event)
        if provider is None:
            logger.info(
                "monitor.unmatched_event",
                bucket=event.bucket_name,
                object_key=event.object_key,
            )
            return None

        logger.info(
            "monitor.dispatch",
            provider=provider.path,
            bucket=event.bucket_name,
            object_key=event.object_key,
        )
        return self.run(provider, event)

    def handle_many(
        self,
        events: Iterable[UploadEvent | Mapping[str, Any]],
    ) -> list[WorkflowResult | None]:
        """Run one execution per event concurrently; results keep input order."""
        events = list(events)
        if not events:
            return []

        workers = min(self.settings.max_concurrent_executions, len(events))
        logger.info("monitor.batch_start", events=len(events), workers=workers)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="dqm") as executor:
            results = list(executor.map(self.handle, events))

        logger.info(
            "monitor.batch_complete",
            events=len(events),
            executions=sum(1 for r in results if r is not None),
            succeeded=sum(1 for r in results if r is not None and r.succeeded),
        )
        return results
