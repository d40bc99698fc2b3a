"""
Statistics and trend reporting over analyses and extraction runs.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np

from .models import AnalysisStatistics, ProjectAnalysis, StalledStatus, Trend, TrendReport

# Score change (points) between the two latest analyses that counts as a trend
TREND_DELTA = 5


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves away from zero (Python's round() rounds halves to even)."""
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def statistics(analyses: Sequence[ProjectAnalysis]) -> AnalysisStatistics:
    """
    Aggregate a batch of analyses.

    Returns:
        AnalysisStatistics with counts by classification, mean score,
        mean confidence and the share of confirmed + likely stalled projects
    """
    total = len(analyses)
    if total == 0:
        return AnalysisStatistics()

    counts = {status: 0 for status in StalledStatus}
    for analysis in analyses:
        counts[analysis.stalled_status] += 1

    stalled = counts[StalledStatus.CONFIRMED_STALLED] + counts[StalledStatus.LIKELY_STALLED]

    return AnalysisStatistics(
        total_projects=total,
        confirmed_stalled=counts[StalledStatus.CONFIRMED_STALLED],
        likely_stalled=counts[StalledStatus.LIKELY_STALLED],
        at_risk=counts[StalledStatus.AT_RISK],
        active=counts[StalledStatus.ACTIVE],
        average_score=round_half_up(float(np.mean([a.stalled_score for a in analyses])), 1),
        average_confidence=round_half_up(float(np.mean([a.confidence_level for a in analyses])), 1),
        stalled_percentage=round_half_up(stalled / total * 100, 1),
    )


def trend_from_scores(project_id: str, scores: Sequence[int]) -> TrendReport:
    """Derive a trend from chronologically ordered scores (oldest first)."""
    if len(scores) < 2:
        return TrendReport(
            project_id=project_id,
            trend=Trend.INSUFFICIENT_DATA,
            analysis_count=len(scores),
            current_score=scores[-1] if scores else None,
        )

    current, previous = scores[-1], scores[-2]
    difference = current - previous

    if difference > TREND_DELTA:
        trend = Trend.DETERIORATING
    elif difference < -TREND_DELTA:
        trend = Trend.IMPROVING
    else:
        trend = Trend.STABLE

    return TrendReport(
        project_id=project_id,
        trend=trend,
        analysis_count=len(scores),
        current_score=current,
        previous_score=previous,
        score_difference=difference,
    )


def extraction_statistics(history: Iterable[Any], validation_errors: Optional[Mapping[str, List[str]]] = None) -> Dict[str, Any]:
    """
    Summarize an extraction run history.

    Args:
        history: ExtractionResults, oldest first
        validation_errors: Latest validation errors per source

    Returns:
        Dict with total/successful extraction counts, success rate (%),
        total validated records, last extraction time and validation errors
    """
    history = list(history)
    successful = [r for r in history if r.success]
    last = max((r.extraction_time for r in history), default=None)

    return {
        "total_extractions": len(history),
        "successful_extractions": len(successful),
        "success_rate": round_half_up(len(successful) / len(history) * 100, 1) if history else 0.0,
        "total_records": sum(r.records_validated for r in successful),
        "last_extraction": last.isoformat() if last else None,
        "validation_errors": {k: list(v) for k, v in (validation_errors or {}).items()},
    }
