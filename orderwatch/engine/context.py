"""
Engine context — the explicit dependency bundle for engine components.

Replaces process-wide init state: the clock, repository, classifier,
settings and fetch runner are built once at the application edge (or in a
test) and injected into the aggregator, monitor and refresher.
"""

from typing import Optional

import structlog

from orderwatch.config import Settings
from orderwatch.storage.base import OrderRepository, OrderStatusWriter

from .date_ranges import Clock, DateRangeCalculator, SystemClock
from .safe_compute import FetchRunner
from .status_classifier import StatusClassifier

logger = structlog.get_logger()


class EngineContext:
    """
    Dependencies shared by one dashboard engine instance.

    Attributes:
        repository: Read access to orders and items
        writer: Status write path used by prioritize_order (optional)
        classifier: Raw status → canonical bucket
        clock: Source of "now"
        settings: Thresholds, limits and timeouts
        dates: Window calculator bound to clock and business timezone
        fetcher: Concurrent fetch runner with per-fetch deadline
    """

    def __init__(
        self,
        repository: OrderRepository,
        settings: Optional[Settings] = None,
        classifier: Optional[StatusClassifier] = None,
        clock: Optional[Clock] = None,
        writer: Optional[OrderStatusWriter] = None,
    ):
        self.repository = repository
        self.settings = settings or Settings()
        self.classifier = classifier or self._build_classifier(self.settings)
        self.clock = clock or SystemClock()
        self.writer = writer
        if self.writer is None and isinstance(repository, OrderStatusWriter):
            self.writer = repository
        self.dates = DateRangeCalculator(clock=self.clock, tz=self.settings.timezone)
        self.fetcher = FetchRunner(
            timeout_seconds=self.settings.fetch_timeout_seconds,
            max_workers=self.settings.fetch_max_workers,
        )

    @staticmethod
    def _build_classifier(settings: Settings) -> StatusClassifier:
        if settings.status_synonyms_path:
            return StatusClassifier.from_file(settings.status_synonyms_path)
        return StatusClassifier()

    def close(self) -> None:
        """Release the fetch thread pool."""
        self.fetcher.shutdown()
        logger.debug("engine_context_closed")

    def __enter__(self) -> "EngineContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
