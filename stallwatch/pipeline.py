"""
End-to-end stalled-project pipeline.

A StallWatchPipeline is constructed once per process and owns the only
mutable state: the orchestrator's extraction history and the analyzer's
per-project analysis history.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from .config import DEFAULT_CRITERIA_PATH, DEFAULT_SOURCES_PATH
from .config.settings import PipelineConfig, load_pipeline_config
from .ingest.catalog import SourceCatalog, load_catalog
from .ingest.health import HealthTracker
from .ingest.models import ExtractionMethod, ExtractionResult, ProjectRecord
from .ingest.orchestrator import ExtractionOrchestrator
from .scoring.analyzer import StalledProjectAnalyzer
from .scoring.criteria import load_criteria
from .scoring.models import AnalysisStatistics, ProjectAnalysis, StalledCriterion, TrendReport
from .scoring.reporter import statistics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineRun:
    """Everything one run() produced."""
    started_at: datetime
    extraction_results: List[ExtractionResult] = field(default_factory=list)
    analyses: List[ProjectAnalysis] = field(default_factory=list)
    statistics: AnalysisStatistics = field(default_factory=AnalysisStatistics)

    def to_dict(self, include_records: bool = False) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "extraction_results": [r.to_dict(include_records=include_records) for r in self.extraction_results],
            "analyses": [a.to_dict() for a in self.analyses],
            "statistics": self.statistics.to_dict(),
        }


class StallWatchPipeline:
    """Extraction followed by analysis, with history kept across runs."""

    def __init__(
        self,
        catalog: SourceCatalog,
        criteria: Sequence[StalledCriterion],
        config: Optional[PipelineConfig] = None,
        fetchers: Optional[Mapping[ExtractionMethod, Any]] = None,
        health_tracker: Optional[HealthTracker] = None,
    ):
        self.config = config or PipelineConfig()
        self.catalog = catalog
        self.orchestrator = ExtractionOrchestrator(
            catalog, fetchers=fetchers, config=self.config, health_tracker=health_tracker
        )
        self.analyzer = StalledProjectAnalyzer(criteria, history_limit=self.config.history_limit)
        logger.info(f"Pipeline ready: {len(catalog)} sources, {len(self.analyzer.criteria)} criteria")

    @classmethod
    def from_defaults(
        cls,
        config_path: Optional[str] = None,
        sources_path: Union[str, Path] = DEFAULT_SOURCES_PATH,
        criteria_path: Union[str, Path] = DEFAULT_CRITERIA_PATH,
        **kwargs,
    ) -> "StallWatchPipeline":
        """Load settings, the source catalog and criteria from their config files."""
        return cls(
            load_catalog(Path(sources_path)),
            load_criteria(criteria_path),
            config=load_pipeline_config(config_path),
            **kwargs,
        )

    @property
    def health_tracker(self) -> HealthTracker:
        return self.orchestrator.health_tracker

    def run(self, now: Optional[datetime] = None) -> PipelineRun:
        """
        Extract every source, then analyze the validated records of successful sources.

        Args:
            now: Reference time for scoring (default: current UTC time)
        """
        started_at = datetime.now(timezone.utc)
        results = self.orchestrator.run_all()

        projects: List[ProjectRecord] = []
        for result in results:
            if result.success:
                projects.extend(result.records)

        analyses = self.analyzer.analyze(projects, now=now)
        return PipelineRun(
            started_at=started_at,
            extraction_results=results,
            analyses=analyses,
            statistics=statistics(analyses),
        )

    def extraction_statistics(self) -> Dict[str, Any]:
        return self.orchestrator.statistics()

    def trend(self, project_id: str) -> TrendReport:
        return self.analyzer.trend(project_id)
