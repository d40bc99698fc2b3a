"""
Tests for record validation, field mapping, cleaning and status canonicalization.
"""

import pytest
from datetime import datetime, timezone

from stallwatch.ingest.models import RuleType, ValidationRule
from stallwatch.ingest.validation import (
    STATUS_MAP,
    canonicalize_status,
    coerce_number,
    parse_date,
    parse_issues,
    validate_and_clean,
    validate_record,
)


MAPPING = {
    "project_id": "id",
    "project_name": "name",
    "county": "county",
    "budget": "budget",
    "amount_spent": "spent",
    "status": "status",
    "expected_completion": "expected_completion",
    "last_update": "last_update",
    "issues": "issues",
}

REQUIRED_ID = ValidationRule(
    field="project_id", rule_type=RuleType.REQUIRED, error_message="Project ID is required"
)


class TestCanonicalizeStatus:
    """Tests for the status canonicalization table."""

    @pytest.mark.parametrize("raw,expected", [
        ("on_hold", "Stalled"),
        ("on hold", "Stalled"),
        ("suspended", "Stalled"),
        ("halted", "Stalled"),
        ("delayed", "Delayed"),
        ("behind_schedule", "Behind Schedule"),
        ("behind schedule", "Behind Schedule"),
        ("in_progress", "Active"),
        ("in progress", "Active"),
        ("ongoing", "Active"),
        ("completed", "Completed"),
        ("finished", "Completed"),
        ("cancelled", "Cancelled"),
        ("terminated", "Cancelled"),
    ])
    def test_table(self, raw, expected):
        """Every table entry maps to its canonical value."""
        assert canonicalize_status(raw) == expected

    def test_case_and_space_insensitive(self):
        """Matching ignores case and surrounding whitespace."""
        assert canonicalize_status("  On Hold ") == "Stalled"
        assert canonicalize_status("IN_PROGRESS") == "Active"

    def test_unmapped_passthrough(self):
        """Unknown statuses are returned unchanged, including original casing."""
        assert canonicalize_status("mystery") == "mystery"
        assert canonicalize_status("Under Review") == "Under Review"

    def test_non_string_passthrough(self):
        """Non-string values pass through."""
        assert canonicalize_status(None) is None
        assert canonicalize_status(3) == 3

    @pytest.mark.parametrize("raw", list(STATUS_MAP) + [
        "Stalled", "Active", "Delayed", "Behind Schedule", "Completed", "Cancelled",
        "mystery", "", "  ", "ON HOLD",
    ])
    def test_idempotent(self, raw):
        """Canonicalizing twice equals canonicalizing once."""
        once = canonicalize_status(raw)
        assert canonicalize_status(once) == once


class TestValidateRecord:
    """Tests for rule evaluation against raw records."""

    def test_required_missing(self):
        """Missing, None and blank values fail a required rule."""
        assert validate_record({}, [REQUIRED_ID]) == ["Project ID is required"]
        assert validate_record({"project_id": None}, [REQUIRED_ID]) == ["Project ID is required"]
        assert validate_record({"project_id": "  "}, [REQUIRED_ID]) == ["Project ID is required"]

    def test_required_zero_is_present(self):
        """Numeric zero satisfies a required rule."""
        assert validate_record({"project_id": 0}, [REQUIRED_ID]) == []

    def test_range_numeric_only(self):
        """Range rules compare numbers and ignore non-numeric values."""
        rule = ValidationRule(field="budget", rule_type=RuleType.RANGE, rule=1000000.0,
                              error_message="Budget too small")
        assert validate_record({"budget": 500}, [rule]) == ["Budget too small"]
        assert validate_record({"budget": 2000000}, [rule]) == []
        assert validate_record({"budget": "500"}, [rule]) == []
        assert validate_record({}, [rule]) == []

    def test_enum_missing_fails(self):
        """A missing value is not a member of the allowed set."""
        rule = ValidationRule(field="status", rule_type=RuleType.ENUM,
                              rule=("Active", "Stalled"), error_message="Invalid status")
        assert validate_record({"status": "Active"}, [rule]) == []
        assert validate_record({"status": "active"}, [rule]) == ["Invalid status"]
        assert validate_record({}, [rule]) == ["Invalid status"]

    def test_format(self):
        """Format rules fully match the pattern against present values."""
        rule = ValidationRule(field="code", rule_type=RuleType.FORMAT, rule=r"KE-\d{4}",
                              error_message="Bad code")
        assert validate_record({"code": "KE-2021"}, [rule]) == []
        assert validate_record({"code": "KE-2021x"}, [rule]) == ["Bad code"]
        assert validate_record({}, [rule]) == []

    def test_custom_non_negative(self):
        """Custom checks are looked up by name."""
        rule = ValidationRule(field="amount_spent", rule_type=RuleType.CUSTOM,
                              rule="non_negative", error_message="Negative spend")
        assert validate_record({"amount_spent": -5}, [rule]) == ["Negative spend"]
        assert validate_record({"amount_spent": "1,200"}, [rule]) == []
        assert validate_record({}, [rule]) == []

    def test_all_failures_collected_in_order(self):
        """Every failing rule contributes its message, in rule order."""
        rules = [
            REQUIRED_ID,
            ValidationRule(field="project_name", rule_type=RuleType.REQUIRED,
                           error_message="Name is required"),
        ]
        assert validate_record({}, rules) == ["Project ID is required", "Name is required"]


class TestCleaningHelpers:
    """Tests for date, number and issue parsing."""

    def test_parse_date_naive_is_utc(self):
        """Naive dates are treated as UTC."""
        parsed = parse_date("2023-06-30")
        assert parsed == datetime(2023, 6, 30, tzinfo=timezone.utc)

    def test_parse_date_zulu(self):
        """Trailing Z is accepted."""
        parsed = parse_date("2023-06-30T12:00:00Z")
        assert parsed.tzinfo is not None
        assert parsed.hour == 12

    def test_parse_date_invalid(self):
        """Unparseable strings raise ValueError."""
        with pytest.raises(ValueError):
            parse_date("sometime next year")

    def test_coerce_number_strips_currency(self):
        """Currency symbols and separators are stripped."""
        assert coerce_number("KSh 1,500,000") == 1500000.0
        assert coerce_number(42) == 42.0

    def test_coerce_number_invalid(self):
        """Nothing numeric left raises ValueError."""
        with pytest.raises(ValueError):
            coerce_number("unknown")

    def test_parse_issues(self):
        """Comma-separated strings and lists become tuples of tags."""
        assert parse_issues("Contractor disputes, Budget overruns") == ("Contractor disputes", "Budget overruns")
        assert parse_issues(["Land dispute", ""]) == ("Land dispute",)
        assert parse_issues(None) == ()


class TestValidateAndClean:
    """Tests for the full validate/map/clean step."""

    def test_status_canonicalized(self):
        """Raw statuses are canonicalized on the output records."""
        raw = [
            {"project_id": "P1", "status": "on hold"},
            {"project_id": "P2", "status": "in progress"},
            {"project_id": "P3", "status": "mystery"},
        ]
        report = validate_and_clean(raw, [REQUIRED_ID], MAPPING, 95, "src")

        assert [r.status for r in report.records] == ["Stalled", "Active", "mystery"]
        assert report.errors == []

    def test_missing_required_field_dropped(self):
        """A record failing a required rule is dropped and its id appears in the errors."""
        name_rule = ValidationRule(field="project_name", rule_type=RuleType.REQUIRED,
                                   error_message="Project name is required")
        raw = [
            {"project_id": "KE-001", "project_name": "Road"},
            {"project_id": "KE-002"},
        ]
        report = validate_and_clean(raw, [REQUIRED_ID, name_rule], MAPPING, 95, "src")

        assert [r.id for r in report.records] == ["KE-001"]
        assert report.errors == ["KE-002: Project name is required"]

    def test_unknown_identifier(self):
        """Records without any id are reported as 'unknown'."""
        report = validate_and_clean([{"project_name": "X"}], [REQUIRED_ID], MAPPING, 95, "src")

        assert report.records == []
        assert report.errors == ["unknown: Project ID is required"]

    def test_non_mapping_record(self):
        """Non-mapping records are reported and skipped."""
        report = validate_and_clean(["not a record"], [], MAPPING, 95, "src")

        assert report.records == []
        assert len(report.errors) == 1
        assert report.errors[0].startswith("unknown:")

    def test_provenance_stamped(self):
        """Records carry source id, trust score, extraction date and raw payload."""
        when = datetime(2024, 1, 1, tzinfo=timezone.utc)
        raw = {"project_id": "P1", "project_name": " Bridge ", "extra": "kept in raw"}
        report = validate_and_clean([raw], [], MAPPING, 80, "county-portal", extraction_date=when)

        record = report.records[0]
        assert record.source_id == "county-portal"
        assert record.trust_score == 80
        assert record.extraction_date == when
        assert record.name == "Bridge"
        assert record.raw_data["extra"] == "kept in raw"

    def test_unparseable_values_become_warnings(self):
        """Bad dates and amounts keep the record, empty the field and add a warning."""
        raw = {"project_id": "P1", "budget": "n/a", "last_update": "last spring"}
        report = validate_and_clean([raw], [], MAPPING, 80, "src")

        record = report.records[0]
        assert record.budget is None
        assert record.last_update is None
        assert "record P1: could not parse budget 'n/a'" in report.warnings
        assert "record P1: could not parse last_update 'last spring'" in report.warnings

    def test_amounts_and_dates_parsed(self):
        """Amounts are numeric-coerced and dates parsed."""
        raw = {
            "project_id": "P1",
            "budget": "KSh 2,000,000",
            "amount_spent": 500000,
            "expected_completion": "2023-01-31",
            "issues": "Contractor disputes",
        }
        report = validate_and_clean([raw], [], MAPPING, 80, "src")

        record = report.records[0]
        assert record.budget == 2000000.0
        assert record.spent == 500000.0
        assert record.expected_completion == datetime(2023, 1, 31, tzinfo=timezone.utc)
        assert record.issues == ("Contractor disputes",)

    def test_fallback_id_from_name(self):
        """Records without a mapped id get a deterministic source-prefixed id."""
        raw = {"project_name": "Water Project"}
        first = validate_and_clean([raw], [], MAPPING, 60, "citizen-reports").records[0]
        second = validate_and_clean([raw], [], MAPPING, 60, "citizen-reports").records[0]

        assert first.id.startswith("citizen-reports_")
        assert len(first.id) == len("citizen-reports_") + 8
        assert first.id == second.id

    def test_unmapped_fields_dropped(self):
        """Only mapped fields reach the canonical record."""
        raw = {"project_id": "P1", "secret_note": "x", "county": "Nairobi"}
        record = validate_and_clean([raw], [], MAPPING, 60, "src").records[0]

        assert record.county == "Nairobi"
        assert "secret_note" not in record.to_dict()
