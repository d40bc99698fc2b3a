"""
Stalled-project analyzer.

Scores canonical project records against the configured criteria,
classifies them, attaches recommendations and a confidence level, and
keeps a bounded per-project analysis history for trend queries.
"""

import logging
import threading
from collections import deque
from datetime import datetime, timezone
from typing import Deque, Dict, List, Optional, Sequence, Tuple

from ..errors import AnalysisError, ConfigurationError
from ..ingest.models import ProjectRecord
from .criteria import RECOMMENDATIONS, clamp, evaluate_criterion
from .models import CriterionResult, ProjectAnalysis, StalledCriterion, StalledStatus, TrendReport
from .reporter import round_half_up, trend_from_scores

logger = logging.getLogger(__name__)

# Lower bounds, inclusive
CONFIRMED_STALLED_CUTOFF = 80
LIKELY_STALLED_CUTOFF = 60
AT_RISK_CUTOFF = 40

RECOMMENDATION_SCORE = 0.7
ESCALATION_RECOMMENDATIONS = (
    "Escalate to relevant authorities for intervention",
    "Increase public transparency and reporting",
)
MONITORING_RECOMMENDATION = "Continue regular monitoring"

EVIDENCE_CAP = 10
FRESHNESS_DAYS = 30

DEFAULT_HISTORY_LIMIT = 10


def classify(score: int) -> StalledStatus:
    if score >= CONFIRMED_STALLED_CUTOFF:
        return StalledStatus.CONFIRMED_STALLED
    if score >= LIKELY_STALLED_CUTOFF:
        return StalledStatus.LIKELY_STALLED
    if score >= AT_RISK_CUTOFF:
        return StalledStatus.AT_RISK
    return StalledStatus.ACTIVE


def aggregate_score(results: Sequence[CriterionResult]) -> int:
    """Weighted mean of raw scores on a 0-100 scale."""
    total_weight = sum(r.weight for r in results)
    if total_weight <= 0:
        return 0
    weighted = sum(r.weighted_score for r in results)
    return int(round_half_up(clamp(weighted / total_weight) * 100))


def generate_recommendations(results: Sequence[CriterionResult]) -> Tuple[str, ...]:
    recommendations: List[str] = []
    for result in results:
        if result.score > RECOMMENDATION_SCORE:
            recommendations.extend(RECOMMENDATIONS[result.criterion_id])

    if not recommendations:
        return (MONITORING_RECOMMENDATION,)

    recommendations.extend(ESCALATION_RECOMMENDATIONS)
    return tuple(dict.fromkeys(recommendations))


def confidence_level(project: ProjectRecord, results: Sequence[CriterionResult], now: datetime) -> int:
    """
    Mean of source trust, evidence volume and update freshness, on a 0-100 scale.

    A project with no last-update date gets zero freshness.
    """
    trust = clamp(project.trust_score / 100)
    evidence_count = sum(len(r.evidence) for r in results)
    evidence = clamp(evidence_count / EVIDENCE_CAP)

    if project.last_update is not None:
        days_since = max(0.0, (now - project.last_update).total_seconds() / 86400)
        freshness = clamp(1 - days_since / FRESHNESS_DAYS)
    else:
        freshness = 0.0

    return int(round_half_up((trust + evidence + freshness) / 3 * 100))


class StalledProjectAnalyzer:
    """Scores projects and retains the last ``history_limit`` analyses per project."""

    def __init__(self, criteria: Sequence[StalledCriterion], history_limit: int = DEFAULT_HISTORY_LIMIT):
        if not criteria:
            raise ConfigurationError("At least one scoring criterion is required")
        if history_limit < 1:
            raise ConfigurationError("history_limit must be >= 1")

        self.criteria = tuple(criteria)
        self.history_limit = history_limit
        self._history: Dict[str, Deque[ProjectAnalysis]] = {}
        self._lock = threading.Lock()

    def analyze_project(self, project: ProjectRecord, now: Optional[datetime] = None) -> ProjectAnalysis:
        """
        Score one project. Does not touch history.

        Raises:
            AnalysisError: If any criterion cannot be evaluated
        """
        now = now or datetime.now(timezone.utc)
        results = tuple(evaluate_criterion(project, c, now) for c in self.criteria)
        score = aggregate_score(results)

        return ProjectAnalysis(
            project_id=project.id,
            project_name=project.name,
            source_id=project.source_id,
            stalled_score=score,
            stalled_status=classify(score),
            criteria_results=results,
            recommendations=generate_recommendations(results),
            last_analyzed=now,
            confidence_level=confidence_level(project, results, now),
        )

    def analyze(self, projects: Sequence[ProjectRecord], now: Optional[datetime] = None) -> List[ProjectAnalysis]:
        """
        Score every project; projects that cannot be scored are logged and skipped.

        Args:
            projects: Canonical project records
            now: Reference time for elapsed-time criteria (default: current UTC time)

        Returns:
            Analyses sorted by stalled score, highest first
        """
        now = now or datetime.now(timezone.utc)
        analyses = []

        for project in projects:
            try:
                analyses.append(self.analyze_project(project, now))
            except AnalysisError as e:
                logger.warning(f"Skipping project {project.id}: {e.message}")

        analyses.sort(key=lambda a: a.stalled_score, reverse=True)
        self._record(analyses)

        logger.info(f"Analyzed {len(analyses)}/{len(projects)} projects")
        return analyses

    def _record(self, analyses: Sequence[ProjectAnalysis]):
        with self._lock:
            for analysis in analyses:
                entries = self._history.get(analysis.project_id)
                if entries is None:
                    entries = deque(maxlen=self.history_limit)
                    self._history[analysis.project_id] = entries
                entries.append(analysis)

    def history(self, project_id: str) -> Tuple[ProjectAnalysis, ...]:
        """Retained analyses for a project, oldest first."""
        with self._lock:
            return tuple(self._history.get(project_id, ()))

    def trend(self, project_id: str) -> TrendReport:
        scores = [a.stalled_score for a in self.history(project_id)]
        return trend_from_scores(project_id, scores)
