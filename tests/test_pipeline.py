"""
Tests for the end-to-end pipeline and the command-line interface.
"""

import json
from datetime import datetime, timezone

import pytest
from unittest.mock import patch

from stallwatch import cli
from stallwatch.config.settings import PipelineConfig
from stallwatch.errors import ExtractionError
from stallwatch.ingest.catalog import SourceCatalog, build_source
from stallwatch.ingest.models import ExtractionMethod
from stallwatch.pipeline import StallWatchPipeline
from stallwatch.scoring.criteria import load_criteria
from stallwatch.scoring.models import StalledStatus

NOW = datetime(2024, 7, 1, tzinfo=timezone.utc)

API_KEY_SOURCES = ("KENYA_OPEN_DATA", "CONSTRUCTION_COMPANIES", "MEDIA_SOURCES")

RAW_PROJECTS = [
    {
        "project_id": "KE-101",
        "project_name": "Thika Road Interchange",
        "budget": "2,000,000",
        "amount_spent": "2,600,000",
        "status": "on hold",
        "expected_completion": "2022-01-01",
        "last_update": "2023-12-01",
        "issues": "Contractor disputes",
    },
    {
        "project_id": "KE-102",
        "project_name": "Kisumu Water Works",
        "budget": 5000000,
        "amount_spent": 1000000,
        "status": "in progress",
        "expected_completion": "2025-06-30",
        "last_update": "2024-06-30",
    },
    {
        "project_name": "Missing id",
    },
]


class FakeFetcher:
    def __init__(self, records=None, fail=False):
        self.records = records or []
        self.fail = fail

    def fetch(self, source):
        if self.fail:
            raise ExtractionError(source.id, "unreachable")
        return list(self.records)


def make_catalog():
    mapping = {
        "project_id": "id",
        "project_name": "name",
        "budget": "budget",
        "amount_spent": "spent",
        "status": "status",
        "expected_completion": "expected_completion",
        "last_update": "last_update",
        "issues": "issues",
    }
    common = {
        "type": "government",
        "auth_method": "none",
        "update_frequency": "daily",
        "trust_score": 90,
        "field_mapping": mapping,
        "validation_rules": [
            {"field": "project_id", "type": "required", "error_message": "Project ID is required"},
        ],
    }
    return SourceCatalog([
        build_source(dict(common, id="portal", name="Portal", extraction_method="api")),
        build_source(dict(common, id="scraper", name="Scraper", extraction_method="scraping")),
    ])


@pytest.fixture
def pipeline():
    fetchers = {
        ExtractionMethod.API: FakeFetcher(RAW_PROJECTS),
        ExtractionMethod.SCRAPING: FakeFetcher(fail=True),
    }
    return StallWatchPipeline(make_catalog(), load_criteria(), PipelineConfig(), fetchers=fetchers)


class TestPipelineRun:
    """Tests for StallWatchPipeline.run()."""

    def test_extraction_then_analysis(self, pipeline):
        """Validated records from successful sources are analyzed."""
        run = pipeline.run(now=NOW)

        portal, scraper = run.extraction_results
        assert portal.success is True
        assert portal.records_validated == 2
        assert portal.errors == ("unknown: Project ID is required",)
        assert scraper.success is False

        assert [a.project_id for a in run.analyses] == ["KE-101", "KE-102"]
        assert run.analyses[0].stalled_status == StalledStatus.CONFIRMED_STALLED
        assert run.analyses[1].stalled_status == StalledStatus.ACTIVE
        assert run.statistics.total_projects == 2
        assert run.statistics.stalled_percentage == 50.0

    def test_canonical_status_on_records(self, pipeline):
        """Statuses are canonicalized before scoring."""
        run = pipeline.run(now=NOW)
        statuses = {r.id: r.status for r in run.extraction_results[0].records}

        assert statuses == {"KE-101": "Stalled", "KE-102": "Active"}

    def test_history_across_runs(self, pipeline):
        """Repeated runs build extraction and analysis history."""
        pipeline.run(now=NOW)
        pipeline.run(now=NOW)

        assert pipeline.extraction_statistics()["total_extractions"] == 4
        assert pipeline.trend("KE-101").analysis_count == 2
        assert pipeline.health_tracker.sources["scraper"].consecutive_failures == 2

    def test_to_dict_is_json_serializable(self, pipeline):
        """Run output serializes to JSON."""
        data = pipeline.run(now=NOW).to_dict(include_records=True)
        text = json.dumps(data)

        assert "Thika Road Interchange" in text
        assert data["statistics"]["total_projects"] == 2

    def test_from_defaults(self, monkeypatch, tmp_path):
        """Default construction loads the bundled catalog and criteria."""
        monkeypatch.delenv("STALLWATCH_CONFIG", raising=False)
        monkeypatch.chdir(tmp_path)
        fetchers = {method: FakeFetcher() for method in ExtractionMethod}

        pipeline = StallWatchPipeline.from_defaults(fetchers=fetchers)
        run = pipeline.run()

        assert len(run.extraction_results) == 7
        assert all(r.success for r in run.extraction_results)
        assert run.analyses == []


class TestCli:
    """Tests for the stallwatch command."""

    def test_sources(self, capsys):
        """The sources command lists the bundled catalog."""
        assert cli.main(["sources"]) == 0
        out = capsys.readouterr().out

        assert "kenya-open-data" in out
        assert "citizen-reports" in out

    def test_sources_json(self, capsys):
        """--json prints machine-readable summaries."""
        assert cli.main(["sources", "--json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert len(data) == 7

    def test_check_secrets_missing(self, monkeypatch, capsys):
        """Missing API keys give a non-zero exit."""
        for prefix in API_KEY_SOURCES:
            monkeypatch.delenv(f"{prefix}_API_KEY", raising=False)

        assert cli.main(["check-secrets"]) == 1
        assert "MISSING" in capsys.readouterr().out

    def test_check_secrets_ok(self, monkeypatch, capsys):
        """All keys present gives a zero exit."""
        for prefix in API_KEY_SOURCES:
            monkeypatch.setenv(f"{prefix}_API_KEY", "k")

        assert cli.main(["check-secrets"]) == 0
        assert "MISSING" not in capsys.readouterr().out

    def test_run_writes_output(self, monkeypatch, tmp_path, capsys):
        """run prints a summary and writes JSON results."""
        monkeypatch.delenv("STALLWATCH_CONFIG", raising=False)
        monkeypatch.chdir(tmp_path)
        fakes = {method: FakeFetcher() for method in ExtractionMethod}
        output = tmp_path / "out" / "run.json"
        health_file = tmp_path / "health.json"

        with patch('stallwatch.ingest.orchestrator.default_fetchers', return_value=fakes):
            code = cli.main(["run", "--output", str(output), "--health-file", str(health_file)])

        assert code == 0
        assert "Sources: 7/7 extracted" in capsys.readouterr().out
        assert json.loads(output.read_text())["statistics"]["total_projects"] == 0
        assert health_file.exists()

    def test_missing_catalog(self, tmp_path, capsys):
        """An unreadable catalog is reported with exit code 1."""
        assert cli.main(["--sources", str(tmp_path / "nope.yaml"), "sources"]) == 1
        assert "Error" in capsys.readouterr().err
