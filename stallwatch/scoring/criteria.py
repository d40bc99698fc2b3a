"""
Stalled-project criteria: loading and per-criterion evaluation.

Each CriterionId maps to exactly one evaluator, a pure function of
(project, threshold, reference time) returning a raw score in [0, 1],
a human-readable explanation and a list of evidence items.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Tuple, Union

import yaml

from ..config import DEFAULT_CRITERIA_PATH
from ..errors import AnalysisError, ConfigurationError
from ..ingest.models import ProjectRecord
from ..ingest.validation import parse_issues
from .models import CriterionId, CriterionResult, StalledCriterion

logger = logging.getLogger(__name__)

DAYS_PER_MONTH = 30.44
SECONDS_PER_DAY = 86400

# Matched case-insensitively as substrings of issue tags
DISPUTE_MARKERS = ("dispute", "litigation", "arbitration")
AUDIT_MARKERS = ("audit", "irregular", "budget overrun", "misappropriat", "fraud", "corruption")

RECOMMENDATIONS: Dict[CriterionId, Tuple[str, ...]] = {
    CriterionId.TIMELINE_OVERRUN: (
        "Immediate project review and timeline reassessment required",
        "Consider appointing a project recovery manager",
    ),
    CriterionId.BUDGET_OVERRUN: (
        "Financial audit and budget reallocation needed",
        "Implement stricter financial controls",
    ),
    CriterionId.NO_PROGRESS_UPDATES: (
        "Establish mandatory weekly progress reporting",
        "Deploy field monitoring team",
    ),
    CriterionId.CONTRACTOR_DISPUTES: (
        "Initiate dispute resolution process",
        "Consider alternative contractors if necessary",
    ),
    CriterionId.AUDIT_FINDINGS: (
        "Address audit findings immediately",
        "Implement corrective measures",
    ),
}

Evaluation = Tuple[float, str, List[Dict[str, Any]]]


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def _elapsed_days(since: datetime, now: datetime) -> float:
    return max(0.0, (now - since).total_seconds() / SECONDS_PER_DAY)


def _ramp(value: float, threshold: float, floor: float) -> float:
    """1 above threshold, linear below it."""
    if value > threshold:
        return 1.0
    return clamp(value / max(threshold, floor))


def _issue_tags(project: ProjectRecord) -> Tuple[str, ...]:
    if project.issues:
        return project.issues
    return parse_issues(project.raw_data.get("issues"))


def _matching_tags(project: ProjectRecord, markers: Tuple[str, ...]) -> List[str]:
    return [tag for tag in _issue_tags(project) if any(m in tag.lower() for m in markers)]


def evaluate_timeline(project: ProjectRecord, threshold: float, now: datetime) -> Evaluation:
    if project.expected_completion is None:
        raise AnalysisError(project.id, "expected completion date missing")

    months_overdue = _elapsed_days(project.expected_completion, now) / DAYS_PER_MONTH
    score = _ramp(months_overdue, threshold, 1)

    if months_overdue > 0:
        details = f"Project is {months_overdue:.1f} months overdue"
    else:
        details = "Project is within its expected completion date"
    evidence = [{
        "type": "timeline",
        "months_overdue": round(months_overdue, 2),
        "expected_completion": project.expected_completion.isoformat(),
    }]
    return score, details, evidence


def evaluate_budget(project: ProjectRecord, threshold: float, now: datetime) -> Evaluation:
    if project.budget is None or project.budget <= 0:
        raise AnalysisError(project.id, "budget missing or not positive")
    if project.spent is None:
        raise AnalysisError(project.id, "amount spent missing")

    ratio = (project.spent - project.budget) / project.budget
    score = 1.0 if ratio > threshold else clamp(max(ratio / max(threshold, 0.0001), 0))

    if ratio > 0:
        details = f"Budget overrun of {ratio * 100:.1f}%"
    else:
        details = f"Spending at {project.spent / project.budget * 100:.1f}% of budget"
    evidence = [{
        "type": "budget",
        "overrun_ratio": round(ratio, 4),
        "budget": project.budget,
        "spent": project.spent,
    }]
    return score, details, evidence


def evaluate_updates(project: ProjectRecord, threshold: float, now: datetime) -> Evaluation:
    if project.last_update is None:
        raise AnalysisError(project.id, "last update date missing")

    days_since = _elapsed_days(project.last_update, now)
    score = _ramp(days_since, threshold, 1)

    details = f"No updates for {int(days_since)} days"
    evidence = [{
        "type": "updates",
        "days_since_update": int(days_since),
        "last_update": project.last_update.isoformat(),
    }]
    return score, details, evidence


def _evaluate_tags(project: ProjectRecord, threshold: float, markers: Tuple[str, ...],
                   evidence_type: str, label: str) -> Evaluation:
    matched = _matching_tags(project, markers)
    score = 1.0 if matched and len(matched) >= max(threshold, 1) else 0.0
    details = f"{len(matched)} {label} identified"
    evidence = [{"type": evidence_type, "matches": matched, "source": project.source_id}]
    return score, details, evidence


def evaluate_disputes(project: ProjectRecord, threshold: float, now: datetime) -> Evaluation:
    return _evaluate_tags(project, threshold, DISPUTE_MARKERS, "dispute", "active disputes")


def evaluate_audit(project: ProjectRecord, threshold: float, now: datetime) -> Evaluation:
    return _evaluate_tags(project, threshold, AUDIT_MARKERS, "audit_finding", "audit findings")


EVALUATORS: Dict[CriterionId, Callable[[ProjectRecord, float, datetime], Evaluation]] = {
    CriterionId.TIMELINE_OVERRUN: evaluate_timeline,
    CriterionId.BUDGET_OVERRUN: evaluate_budget,
    CriterionId.NO_PROGRESS_UPDATES: evaluate_updates,
    CriterionId.CONTRACTOR_DISPUTES: evaluate_disputes,
    CriterionId.AUDIT_FINDINGS: evaluate_audit,
}


def _check_exhaustive():
    missing = [c.value for c in CriterionId if c not in EVALUATORS or c not in RECOMMENDATIONS]
    if missing:
        raise RuntimeError(f"Criteria without evaluator or recommendations: {missing}")


_check_exhaustive()


def evaluate_criterion(project: ProjectRecord, criterion: StalledCriterion, now: datetime) -> CriterionResult:
    """
    Score one criterion against one project.

    Raises:
        AnalysisError: If the record lacks the data the criterion needs
    """
    evaluator = EVALUATORS[criterion.id]
    try:
        score, details, evidence = evaluator(project, float(criterion.threshold), now)
    except AnalysisError:
        raise
    except (TypeError, ValueError, ArithmeticError) as e:
        raise AnalysisError(project.id, f"{criterion.id.value}: {e}") from e

    score = clamp(score)
    return CriterionResult(
        criterion_id=criterion.id,
        criterion_name=criterion.name,
        score=score,
        weight=criterion.weight,
        weighted_score=score * criterion.weight,
        details=details,
        evidence=tuple(evidence),
    )


def _build_criterion(raw: Mapping[str, Any]) -> StalledCriterion:
    try:
        criterion_id = CriterionId(raw.get("id"))
    except ValueError:
        raise ConfigurationError(f"Unknown criterion id: {raw.get('id')!r}")

    weight = raw.get("weight")
    if isinstance(weight, bool) or not isinstance(weight, (int, float)) or weight <= 0:
        raise ConfigurationError(f"Criterion {criterion_id.value}: weight must be a positive number")

    threshold = raw.get("threshold")
    if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
        raise ConfigurationError(f"Criterion {criterion_id.value}: threshold must be a number")

    return StalledCriterion(
        id=criterion_id,
        name=str(raw.get("name") or criterion_id.value),
        description=str(raw.get("description") or ""),
        weight=float(weight),
        threshold=float(threshold),
    )


def criteria_from_list(items: Any) -> Tuple[StalledCriterion, ...]:
    """Build criteria from parsed config; raises ConfigurationError on bad entries."""
    if not isinstance(items, list) or not items:
        raise ConfigurationError("Criteria config must contain a non-empty 'criteria' list")

    criteria = []
    seen = set()
    for raw in items:
        if not isinstance(raw, Mapping):
            raise ConfigurationError(f"Criterion entry must be a mapping, got {type(raw).__name__}")
        criterion = _build_criterion(raw)
        if criterion.id in seen:
            raise ConfigurationError(f"Duplicate criterion id: {criterion.id.value}")
        seen.add(criterion.id)
        criteria.append(criterion)

    return tuple(criteria)


def load_criteria(path: Union[str, Path] = DEFAULT_CRITERIA_PATH) -> Tuple[StalledCriterion, ...]:
    """Load scoring criteria from YAML."""
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Criteria file not found: {path}")

    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}")

    criteria = criteria_from_list(data.get("criteria") if isinstance(data, dict) else None)
    logger.info(f"Loaded {len(criteria)} scoring criteria from {path}")
    return criteria
