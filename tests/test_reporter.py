"""
Tests for analysis statistics, trend derivation and extraction statistics.
"""

from datetime import datetime, timedelta, timezone

import pytest

from stallwatch.ingest.models import ExtractionResult
from stallwatch.scoring.analyzer import classify
from stallwatch.scoring.models import ProjectAnalysis, Trend
from stallwatch.scoring.reporter import (
    extraction_statistics,
    round_half_up,
    statistics,
    trend_from_scores,
)

NOW = datetime(2024, 7, 1, tzinfo=timezone.utc)


def make_analysis(project_id, score, confidence=50):
    return ProjectAnalysis(
        project_id=project_id,
        project_name=project_id,
        stalled_score=score,
        stalled_status=classify(score),
        criteria_results=(),
        recommendations=(),
        last_analyzed=NOW,
        confidence_level=confidence,
    )


class TestStatistics:
    """Tests for batch statistics."""

    def test_counts_and_means(self):
        """One project per class: counts, means and stalled share."""
        analyses = [
            make_analysis("a", 90, 50),
            make_analysis("b", 65, 60),
            make_analysis("c", 45, 70),
            make_analysis("d", 10, 80),
        ]
        stats = statistics(analyses)

        assert stats.total_projects == 4
        assert stats.confirmed_stalled == 1
        assert stats.likely_stalled == 1
        assert stats.at_risk == 1
        assert stats.active == 1
        assert stats.average_score == 52.5
        assert stats.average_confidence == 65.0
        assert stats.stalled_percentage == 50.0

    def test_empty(self):
        """No analyses yields zeroed statistics."""
        stats = statistics([])

        assert stats.total_projects == 0
        assert stats.stalled_percentage == 0.0

    def test_to_dict(self):
        """Statistics serialize to a flat dict."""
        data = statistics([make_analysis("a", 85)]).to_dict()
        assert data["confirmed_stalled"] == 1
        assert data["stalled_percentage"] == 100.0


class TestTrend:
    """Tests for trend derivation from score history."""

    @pytest.mark.parametrize("scores,trend,difference", [
        ([70, 82], Trend.DETERIORATING, 12),
        ([82, 70], Trend.IMPROVING, -12),
        ([80, 83], Trend.STABLE, 3),
        ([80, 85], Trend.STABLE, 5),
        ([80, 75], Trend.STABLE, -5),
        ([10, 70, 76], Trend.DETERIORATING, 6),
    ])
    def test_two_latest_scores_compared(self, scores, trend, difference):
        """Only the two most recent scores decide the trend."""
        report = trend_from_scores("P1", scores)

        assert report.trend == trend
        assert report.score_difference == difference
        assert report.analysis_count == len(scores)

    def test_single_entry(self):
        """A single analysis is not enough for a trend."""
        report = trend_from_scores("P1", [70])

        assert report.trend == Trend.INSUFFICIENT_DATA
        assert report.current_score == 70
        assert report.score_difference is None

    def test_no_history(self):
        """An unknown project has insufficient data."""
        assert trend_from_scores("P1", []).trend == Trend.INSUFFICIENT_DATA


class TestRounding:
    """Tests for half-up rounding."""

    def test_half_rounds_up(self):
        """Halves round away from zero, unlike round()."""
        assert round_half_up(44.5) == 45
        assert round_half_up(52.25, 1) == 52.3


class TestExtractionStatistics:
    """Tests for extraction history summaries."""

    def test_summary(self):
        """Counts, success rate, record total and latest run time."""
        history = [
            ExtractionResult(source_id="a", success=True, records_extracted=5,
                             records_validated=4, extraction_time=NOW),
            ExtractionResult.failed("b", "boom", NOW + timedelta(minutes=1)),
            ExtractionResult(source_id="a", success=True, records_extracted=3,
                             records_validated=3, extraction_time=NOW + timedelta(hours=1)),
        ]
        stats = extraction_statistics(history, {"a": ["P9: Project ID is required"]})

        assert stats["total_extractions"] == 3
        assert stats["successful_extractions"] == 2
        assert stats["success_rate"] == pytest.approx(66.7)
        assert stats["total_records"] == 7
        assert stats["last_extraction"] == (NOW + timedelta(hours=1)).isoformat()
        assert stats["validation_errors"] == {"a": ["P9: Project ID is required"]}

    def test_empty_history(self):
        """An empty history reports zeros."""
        stats = extraction_statistics([])

        assert stats["total_extractions"] == 0
        assert stats["success_rate"] == 0.0
        assert stats["last_extraction"] is None
