"""DQM Monitoring — the data quality workflow for content provider uploads.

MODULE MAP
──────────
  events.py         ─ UploadEvent, EventRule
  providers.py      ─ ContentProvider, NotificationConfig, provider loading
  normalizer.py     ─ ResultSet → typed flat record
  protocols.py      ─ CrawlerService, QueryService, NotificationService
  state_machine.py  ─ build_quality_workflow (the state graph)
  monitor.py        ─ DataQualityMonitor (event routing + concurrency)
  aws.py            ─ boto3 implementations of the protocols
  memory.py         ─ in-memory implementations for tests and simulation
"""

from dqm.monitoring.events import EventRule, UploadEvent
from dqm.monitoring.monitor import DataQualityMonitor
from dqm.monitoring.normalizer import convert_data, handler, process_query_results
from dqm.monitoring.protocols import (
    CrawlerService,
    CrawlState,
    CrawlStatus,
    NotificationService,
    ProviderServices,
    PublishResult,
    QueryExecution,
    QueryService,
)
from dqm.monitoring.providers import (
    ContentProvider,
    NotificationConfig,
    load_provider,
    load_providers,
)
from dqm.monitoring.state_machine import (
    INVALID_CONTENT_PROVIDER_FILE_ERROR,
    State,
    build_quality_workflow,
    is_crawl_running,
    query_passed,
)

__all__ = [
    "ContentProvider",
    "CrawlState",
    "CrawlStatus",
    "CrawlerService",
    "DataQualityMonitor",
    "EventRule",
    "INVALID_CONTENT_PROVIDER_FILE_ERROR",
    "NotificationConfig",
    "NotificationService",
    "ProviderServices",
    "PublishResult",
    "QueryExecution",
    "QueryService",
    "State",
    "UploadEvent",
    "build_quality_workflow",
    "convert_data",
    "handler",
    "is_crawl_running",
    "load_provider",
    "load_providers",
    "process_query_results",
    "query_passed",
]
