"""
Data models for stalled-project scoring.

Criteria are static configuration; analyses are immutable snapshots
retained in a bounded per-project history for trend derivation.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union


class CriterionId(str, Enum):
    """Closed set of scoring criteria. Each member needs an evaluator in criteria.py."""
    TIMELINE_OVERRUN = "timeline_overrun"
    BUDGET_OVERRUN = "budget_overrun"
    NO_PROGRESS_UPDATES = "no_progress_updates"
    CONTRACTOR_DISPUTES = "contractor_disputes"
    AUDIT_FINDINGS = "audit_findings"


class StalledStatus(str, Enum):
    CONFIRMED_STALLED = "Confirmed Stalled"
    LIKELY_STALLED = "Likely Stalled"
    AT_RISK = "At Risk"
    ACTIVE = "Active"


class Trend(str, Enum):
    INSUFFICIENT_DATA = "insufficient_data"
    DETERIORATING = "deteriorating"
    IMPROVING = "improving"
    STABLE = "stable"


Threshold = Union[float, str]


@dataclass(frozen=True)
class StalledCriterion:
    id: CriterionId
    name: str
    description: str
    weight: float
    threshold: Threshold

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id.value,
            "name": self.name,
            "description": self.description,
            "weight": self.weight,
            "threshold": self.threshold,
        }


@dataclass(frozen=True)
class CriterionResult:
    """Score of one criterion against one project."""
    criterion_id: CriterionId
    criterion_name: str
    score: float
    weight: float
    weighted_score: float
    details: str
    evidence: Tuple[Mapping[str, Any], ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "criterion_id": self.criterion_id.value,
            "criterion_name": self.criterion_name,
            "score": self.score,
            "weight": self.weight,
            "weighted_score": self.weighted_score,
            "details": self.details,
            "evidence": [dict(e) for e in self.evidence],
        }


@dataclass(frozen=True)
class ProjectAnalysis:
    project_id: str
    project_name: str
    stalled_score: int
    stalled_status: StalledStatus
    criteria_results: Tuple[CriterionResult, ...]
    recommendations: Tuple[str, ...]
    last_analyzed: datetime
    confidence_level: int
    source_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_id": self.project_id,
            "project_name": self.project_name,
            "source_id": self.source_id,
            "stalled_score": self.stalled_score,
            "stalled_status": self.stalled_status.value,
            "criteria_results": [c.to_dict() for c in self.criteria_results],
            "recommendations": list(self.recommendations),
            "last_analyzed": self.last_analyzed.isoformat(),
            "confidence_level": self.confidence_level,
        }


@dataclass(frozen=True)
class TrendReport:
    project_id: str
    trend: Trend
    analysis_count: int
    current_score: Optional[int] = None
    previous_score: Optional[int] = None
    score_difference: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_id": self.project_id,
            "trend": self.trend.value,
            "analysis_count": self.analysis_count,
            "current_score": self.current_score,
            "previous_score": self.previous_score,
            "score_difference": self.score_difference,
        }


@dataclass(frozen=True)
class AnalysisStatistics:
    total_projects: int = 0
    confirmed_stalled: int = 0
    likely_stalled: int = 0
    at_risk: int = 0
    active: int = 0
    average_score: float = 0.0
    average_confidence: float = 0.0
    stalled_percentage: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_projects": self.total_projects,
            "confirmed_stalled": self.confirmed_stalled,
            "likely_stalled": self.likely_stalled,
            "at_risk": self.at_risk,
            "active": self.active,
            "average_score": self.average_score,
            "average_confidence": self.average_confidence,
            "stalled_percentage": self.stalled_percentage,
        }
