"""
Source health tracking for extraction reliability monitoring.

Tracks per-source success/failure history and computes health status.
"""

import json
import os
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

# Health status thresholds
CONSECUTIVE_FAILURES_DEGRADED = 3
CONSECUTIVE_FAILURES_DOWN = 7

# Rolling average window
ROLLING_AVERAGE_RUNS = 7


@dataclass
class SourceHealth:
    """Health status for a single source."""
    source_id: str
    name: str = ""
    last_success_at: Optional[str] = None
    last_failure_at: Optional[str] = None
    consecutive_failures: int = 0
    last_error: Optional[str] = None
    records_validated_last_run: int = 0
    records_history: List[int] = field(default_factory=list)  # Last N runs
    avg_records_per_run: float = 0.0
    status: str = "OK"  # OK, DEGRADED, DOWN

    def update_status(self):
        """Update status based on consecutive failures."""
        if self.consecutive_failures >= CONSECUTIVE_FAILURES_DOWN:
            self.status = "DOWN"
        elif self.consecutive_failures >= CONSECUTIVE_FAILURES_DEGRADED:
            self.status = "DEGRADED"
        else:
            self.status = "OK"

    def _push_history(self, count: int):
        self.records_history.append(count)
        if len(self.records_history) > ROLLING_AVERAGE_RUNS:
            self.records_history = self.records_history[-ROLLING_AVERAGE_RUNS:]
        self.avg_records_per_run = sum(self.records_history) / len(self.records_history)

    def record_success(self, records_validated: int, timestamp: Optional[datetime] = None):
        """Record a successful extraction."""
        if timestamp is None:
            timestamp = datetime.now(timezone.utc)

        self.last_success_at = timestamp.isoformat()
        self.consecutive_failures = 0
        self.last_error = None
        self.records_validated_last_run = records_validated
        self._push_history(records_validated)
        self.update_status()

    def record_failure(self, error: str, timestamp: Optional[datetime] = None):
        """Record a failed extraction."""
        if timestamp is None:
            timestamp = datetime.now(timezone.utc)

        self.last_failure_at = timestamp.isoformat()
        self.consecutive_failures += 1
        self.last_error = error
        self.records_validated_last_run = 0
        self._push_history(0)
        self.update_status()


@dataclass
class HealthTracker:
    """Tracks health for all sources across runs."""
    sources: Dict[str, SourceHealth] = field(default_factory=dict)
    last_updated_at: Optional[str] = None

    def get_or_create(self, source_id: str, name: str = "") -> SourceHealth:
        """Get existing source health or create new one."""
        if source_id not in self.sources:
            self.sources[source_id] = SourceHealth(source_id=source_id, name=name)
        return self.sources[source_id]

    def record_result(self, result, name: str = ""):
        """Update a source's health from an ExtractionResult."""
        health = self.get_or_create(result.source_id, name=name)
        if result.success:
            health.record_success(result.records_validated, result.extraction_time)
        else:
            error = "; ".join(result.errors) if result.errors else "unknown error"
            health.record_failure(error, result.extraction_time)
        self.last_updated_at = datetime.now(timezone.utc).isoformat()

    def get_summary(self) -> Dict[str, Any]:
        """Get summary of health across all sources."""
        statuses = {"OK": 0, "DEGRADED": 0, "DOWN": 0}
        for source in self.sources.values():
            statuses[source.status] = statuses.get(source.status, 0) + 1

        degraded_sources = [s.source_id for s in self.sources.values() if s.status == "DEGRADED"]
        down_sources = [s.source_id for s in self.sources.values() if s.status == "DOWN"]

        return {
            "total_sources": len(self.sources),
            "status_counts": statuses,
            "degraded_sources": degraded_sources,
            "down_sources": down_sources,
            "overall_status": "DOWN" if down_sources else ("DEGRADED" if degraded_sources else "OK")
        }

    def to_dict(self) -> Dict:
        """Serialize to dict."""
        return {
            "last_updated_at": self.last_updated_at,
            "sources": {k: asdict(v) for k, v in self.sources.items()},
            "summary": self.get_summary()
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "HealthTracker":
        """Deserialize from dict."""
        tracker = cls()
        tracker.last_updated_at = data.get("last_updated_at")

        for source_id, source_data in data.get("sources", {}).items():
            tracker.sources[source_id] = SourceHealth(
                source_id=source_data.get("source_id", source_id),
                name=source_data.get("name", ""),
                last_success_at=source_data.get("last_success_at"),
                last_failure_at=source_data.get("last_failure_at"),
                consecutive_failures=source_data.get("consecutive_failures", 0),
                last_error=source_data.get("last_error"),
                records_validated_last_run=source_data.get("records_validated_last_run", 0),
                records_history=source_data.get("records_history", []),
                avg_records_per_run=source_data.get("avg_records_per_run", 0.0),
                status=source_data.get("status", "OK")
            )

        return tracker


def load_health_tracker(path: str) -> HealthTracker:
    """Load health tracker from disk, or create new one."""
    if os.path.exists(path):
        with open(path, 'r') as f:
            data = json.load(f)
        return HealthTracker.from_dict(data)
    return HealthTracker()


def save_health_tracker(tracker: HealthTracker, path: str):
    """Save health tracker to disk."""
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as f:
        json.dump(tracker.to_dict(), f, indent=2)
