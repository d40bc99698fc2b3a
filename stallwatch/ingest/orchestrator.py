"""
Extraction orchestrator with per-source failure isolation.

Runs every catalog source through:
- A fetcher selected by extraction strategy (injected, one per strategy)
- Validation, field mapping and cleaning
- Next-run scheduling from the source's update frequency
- Source health tracking

One broken feed never blocks the others: any failure while handling a
source, including a per-source timeout, becomes a failed ExtractionResult
for that source only.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional

from ..config.settings import PipelineConfig
from ..errors import ConfigurationError, ExtractionError
from ..scoring.reporter import extraction_statistics
from .catalog import SourceCatalog
from .fetch_api import ApiFetcher
from .fetch_file import FileUploadFetcher
from .fetch_manual import ManualEntryFetcher
from .fetch_web import WebFetcher
from .health import HealthTracker
from .models import ExtractionMethod, ExtractionResult, SourceDefinition, UpdateFrequency
from .validation import validate_and_clean

logger = logging.getLogger(__name__)

SCHEDULE_INTERVALS = {
    UpdateFrequency.HOURLY: timedelta(hours=1),
    UpdateFrequency.DAILY: timedelta(hours=24),
    UpdateFrequency.WEEKLY: timedelta(days=7),
    UpdateFrequency.MONTHLY: timedelta(days=30),
}
DEFAULT_SCHEDULE_INTERVAL = timedelta(hours=24)


class SourceTimeout(ExtractionError):
    """A source's fetch ran past its timeout."""

    def __init__(self, source_id: str, timeout: float):
        self.timeout = timeout
        super().__init__(source_id, f"Extraction timed out after {timeout}s")


def next_scheduled_extraction(frequency: Any, run_start: datetime) -> datetime:
    """Next run time from the update frequency; unrecognized frequencies default to daily."""
    return run_start + SCHEDULE_INTERVALS.get(frequency, DEFAULT_SCHEDULE_INTERVAL)


def default_fetchers(config: Optional[PipelineConfig] = None) -> Dict[ExtractionMethod, Any]:
    """Build the strategy -> fetcher map used when none is injected."""
    config = config or PipelineConfig()
    return {
        ExtractionMethod.API: ApiFetcher(config),
        ExtractionMethod.SCRAPING: WebFetcher(config),
        ExtractionMethod.FILE_UPLOAD: FileUploadFetcher(config),
        ExtractionMethod.MANUAL: ManualEntryFetcher(config),
    }


class ExtractionOrchestrator:
    """Runs extraction for every catalog source and keeps an append-only run history.

    Fetchers are any objects with ``fetch(source) -> list of raw records``
    that raise on failure.
    """

    def __init__(
        self,
        catalog: SourceCatalog,
        fetchers: Optional[Mapping[ExtractionMethod, Any]] = None,
        config: Optional[PipelineConfig] = None,
        health_tracker: Optional[HealthTracker] = None,
    ):
        self.catalog = catalog
        self.config = config or PipelineConfig()
        self.fetchers = dict(fetchers) if fetchers is not None else default_fetchers(self.config)
        self.health_tracker = health_tracker or HealthTracker()

        self._history: List[ExtractionResult] = []
        self._validation_errors: Dict[str, List[str]] = {}
        self._lock = threading.Lock()

    @property
    def history(self) -> tuple:
        with self._lock:
            return tuple(self._history)

    @property
    def validation_errors(self) -> Dict[str, List[str]]:
        """Latest validation errors per source."""
        with self._lock:
            return {k: list(v) for k, v in self._validation_errors.items()}

    def extract_source(self, source: SourceDefinition, run_start: Optional[datetime] = None) -> ExtractionResult:
        """
        Fetch, validate and clean one source. Never raises.

        Args:
            source: Source to extract
            run_start: Start of the enclosing run (for scheduling)

        Returns:
            ExtractionResult; failed if fetching or validation raised
        """
        started = datetime.now(timezone.utc)
        run_start = run_start or started
        logger.info(f"Starting extraction from {source.name}...")

        try:
            fetcher = self.fetchers.get(source.extraction_method)
            if fetcher is None:
                raise ConfigurationError(
                    f"Unsupported extraction method: {source.extraction_method.value}"
                )

            raw_records = self._fetch_with_timeout(fetcher, source)
            report = validate_and_clean(
                raw_records,
                source.validation_rules,
                source.field_mapping,
                source.trust_score,
                source.id,
                extraction_date=started,
            )
        except SourceTimeout as e:
            logger.error(f"Extraction timed out for {source.name} after {e.timeout}s")
            return ExtractionResult.failed(source.id, e.message, started)
        except Exception as e:
            logger.error(f"Extraction failed for {source.name}: {e}")
            return ExtractionResult.failed(source.id, str(e) or type(e).__name__, started)

        logger.info(
            f"  ✓ {source.id}: {len(report.records)}/{len(raw_records)} records validated"
            + (f", {len(report.errors)} dropped" if report.errors else "")
        )

        return ExtractionResult(
            source_id=source.id,
            success=True,
            records_extracted=len(raw_records),
            records_validated=len(report.records),
            extraction_time=started,
            errors=tuple(report.errors),
            warnings=tuple(report.warnings),
            records=tuple(report.records),
            next_scheduled_extraction=next_scheduled_extraction(source.update_frequency, run_start),
        )

    def _fetch_with_timeout(self, fetcher: Any, source: SourceDefinition) -> List[Dict[str, Any]]:
        """Run one fetch, raising SourceTimeout once it exceeds ``source_timeout_seconds``."""
        timeout = self.config.source_timeout_seconds or None
        if timeout is None:
            return fetcher.fetch(source)

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"fetch-{source.id}")
        try:
            return executor.submit(fetcher.fetch, source).result(timeout=timeout)
        except FuturesTimeout:
            raise SourceTimeout(source.id, timeout) from None
        finally:
            # A hung fetch is abandoned so the worker can move on
            executor.shutdown(wait=False)

    def run_all(self) -> List[ExtractionResult]:
        """
        Extract every catalog source, bounded by ``max_workers``.

        Returns:
            One ExtractionResult per source, in catalog order
        """
        sources = list(self.catalog.all())
        if not sources:
            return []

        run_start = datetime.now(timezone.utc)
        workers = min(self.config.max_workers, len(sources))

        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="extract")
        try:
            futures = [executor.submit(self.extract_source, source, run_start) for source in sources]

            # Each source enforces its own timeout from the moment its fetch starts
            results: List[ExtractionResult] = [future.result() for future in futures]
        finally:
            executor.shutdown(wait=True)

        self._record(results)

        succeeded = sum(1 for r in results if r.success)
        logger.info(f"Extraction run complete: {succeeded}/{len(results)} sources succeeded")
        return results

    def _record(self, results: List[ExtractionResult]):
        with self._lock:
            for result in results:
                self._history.append(result)
                if result.success and result.errors:
                    self._validation_errors[result.source_id] = list(result.errors)
                elif result.success:
                    self._validation_errors.pop(result.source_id, None)
                name = self.catalog.get(result.source_id).name if result.source_id in self.catalog else ""
                self.health_tracker.record_result(result, name=name)

    def statistics(self) -> Dict[str, Any]:
        """Aggregate statistics over the whole run history."""
        stats = extraction_statistics(self.history, self.validation_errors)
        stats["health"] = self.health_tracker.get_summary()
        return stats
