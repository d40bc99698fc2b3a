"""
Record validation, field mapping and cleaning.

Turns raw source records (untyped dicts) into canonical ProjectRecords.
A record failing any rule is dropped and reported as a composite error
string; cleaning problems (unparseable dates or amounts) keep the record
and are reported as warnings.
"""

import hashlib
import json
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from .models import Coordinates, ProjectRecord, RuleType, ValidationRule

logger = logging.getLogger(__name__)

# Input values are matched after lower-casing and trimming.
# Canonical outputs are an external contract: consumers filter on these values.
STATUS_MAP = {
    "on_hold": "Stalled",
    "on hold": "Stalled",
    "suspended": "Stalled",
    "halted": "Stalled",
    "delayed": "Delayed",
    "behind_schedule": "Behind Schedule",
    "behind schedule": "Behind Schedule",
    "in_progress": "Active",
    "in progress": "Active",
    "ongoing": "Active",
    "completed": "Completed",
    "finished": "Completed",
    "cancelled": "Cancelled",
    "terminated": "Cancelled",
}

DATE_FIELDS = ("start_date", "expected_completion", "last_update")
NUMERIC_FIELDS = ("budget", "spent", "progress")
TEXT_FIELDS = ("name", "contractor", "supervisor", "county", "constituency", "sector", "description")

_NON_NUMERIC = re.compile(r'[^0-9.\-]')


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_empty(value: Any) -> bool:
    """Missing/blank check used by required rules. Numeric zero is present."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def _check_non_negative(value: Any) -> bool:
    if value is None:
        return True
    try:
        return coerce_number(value) >= 0
    except ValueError:
        return False


def _check_iso_date(value: Any) -> bool:
    if value is None:
        return True
    try:
        parse_date(value)
        return True
    except ValueError:
        return False


def _check_percentage(value: Any) -> bool:
    if value is None:
        return True
    try:
        return 0 <= coerce_number(value) <= 100
    except ValueError:
        return False


# Named checks usable by "custom" rules; absent values pass (pair with "required")
CUSTOM_CHECKS: Dict[str, Callable[[Any], bool]] = {
    "non_negative": _check_non_negative,
    "iso_date": _check_iso_date,
    "percentage": _check_percentage,
}


def canonicalize_status(status: Any) -> Any:
    """Map a raw status onto its canonical value; unmapped values pass through unchanged."""
    if not isinstance(status, str):
        return status
    return STATUS_MAP.get(status.lower().strip(), status)


def parse_date(value: Any) -> datetime:
    """
    Parse a date-bearing value into a timezone-aware datetime (UTC if naive).

    Raises:
        ValueError: If the value is not a date, datetime or ISO 8601 string
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        parsed = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
    else:
        raise ValueError(f"not a date: {value!r}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def coerce_number(value: Any) -> float:
    """
    Coerce an amount to float, stripping every character except digits, '.' and '-'.

    Raises:
        ValueError: If nothing numeric remains
    """
    if _is_number(value):
        return float(value)
    return float(_NON_NUMERIC.sub('', str(value)))


def validate_record(record: Mapping[str, Any], rules: Sequence[ValidationRule]) -> List[str]:
    """
    Evaluate every rule in order against a raw record.

    Returns:
        List of error messages (empty if the record is valid)
    """
    errors = []

    for rule in rules:
        value = record.get(rule.field)

        if rule.rule_type == RuleType.REQUIRED:
            if is_empty(value):
                errors.append(rule.error_message)

        elif rule.rule_type == RuleType.RANGE:
            # Only numeric values are compared
            if _is_number(value) and value < float(rule.rule):
                errors.append(rule.error_message)

        elif rule.rule_type == RuleType.ENUM:
            allowed = rule.rule if isinstance(rule.rule, tuple) else ()
            if value not in allowed:
                errors.append(rule.error_message)

        elif rule.rule_type == RuleType.FORMAT:
            pattern = rule.rule if isinstance(rule.rule, str) else ""
            if pattern and not is_empty(value) and not re.fullmatch(pattern, str(value)):
                errors.append(rule.error_message)

        elif rule.rule_type == RuleType.CUSTOM:
            check = CUSTOM_CHECKS.get(str(rule.rule))
            if check is not None and not check(value):
                errors.append(rule.error_message)

    return errors


def apply_field_mapping(record: Mapping[str, Any], mapping: Mapping[str, str]) -> Dict[str, Any]:
    """Build a new dict holding only mapped target fields; unmapped source fields are dropped."""
    mapped = {}
    for source_field, target_field in mapping.items():
        if source_field in record:
            mapped[target_field] = record[source_field]
    return mapped


def record_identifier(record: Mapping[str, Any], mapping: Mapping[str, str]) -> str:
    """Identifier used in error strings: the field mapped to 'id', else 'id', else 'unknown'."""
    for source_field, target_field in mapping.items():
        if target_field == "id" and not is_empty(record.get(source_field)):
            return str(record[source_field])
    if not is_empty(record.get("id")):
        return str(record["id"])
    return "unknown"


def parse_issues(value: Any) -> tuple:
    if is_empty(value):
        return ()
    if isinstance(value, str):
        return tuple(part.strip() for part in value.split(',') if part.strip())
    if isinstance(value, (list, tuple, set)):
        return tuple(str(v).strip() for v in value if not is_empty(v))
    return (str(value).strip(),)


def _parse_coordinates(mapped: Mapping[str, Any]) -> Optional[Coordinates]:
    raw = mapped.get("coordinates")
    if isinstance(raw, Mapping):
        lat, lng = raw.get("lat"), raw.get("lng", raw.get("lon"))
    elif isinstance(raw, (list, tuple)) and len(raw) == 2:
        lat, lng = raw
    else:
        lat, lng = mapped.get("latitude"), mapped.get("longitude")

    if lat is None or lng is None:
        return None
    lat, lng = coerce_number(lat), coerce_number(lng)
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        raise ValueError(f"out of range: ({lat}, {lng})")
    return Coordinates(lat=lat, lng=lng)


def clean_record(mapped: Dict[str, Any], record_id: str, warnings: List[str]) -> Dict[str, Any]:
    """
    Standardize dates, amounts, status and text on a mapped record.

    Unparseable values become None and add a warning instead of dropping the record.
    """
    cleaned = dict(mapped)

    for field_name in DATE_FIELDS:
        value = cleaned.get(field_name)
        if is_empty(value):
            cleaned[field_name] = None
            continue
        try:
            cleaned[field_name] = parse_date(value)
        except ValueError:
            warnings.append(f"record {record_id}: could not parse {field_name} '{value}'")
            cleaned[field_name] = None

    for field_name in NUMERIC_FIELDS:
        value = cleaned.get(field_name)
        if is_empty(value):
            cleaned[field_name] = None
            continue
        try:
            cleaned[field_name] = coerce_number(value)
        except ValueError:
            warnings.append(f"record {record_id}: could not parse {field_name} '{value}'")
            cleaned[field_name] = None

    if cleaned.get("status") is not None:
        cleaned["status"] = canonicalize_status(cleaned["status"])

    for field_name in TEXT_FIELDS:
        value = cleaned.get(field_name)
        if isinstance(value, str):
            cleaned[field_name] = value.strip()

    try:
        cleaned["coordinates"] = _parse_coordinates(cleaned)
    except ValueError as e:
        warnings.append(f"record {record_id}: could not parse coordinates ({e})")
        cleaned["coordinates"] = None

    cleaned["issues"] = parse_issues(cleaned.get("issues"))
    return cleaned


def _fallback_id(source_id: str, name: Optional[str], raw: Mapping[str, Any]) -> str:
    basis = name if name else json.dumps(dict(raw), sort_keys=True, default=str)
    return f"{source_id}_{hashlib.md5(basis.encode()).hexdigest()[:8]}"


def build_project_record(
    cleaned: Dict[str, Any],
    raw: Mapping[str, Any],
    source_id: str,
    trust_score: float,
    extraction_date: datetime,
) -> ProjectRecord:
    """Stamp a cleaned record with provenance and freeze it as a ProjectRecord."""
    name = cleaned.get("name") or None
    record_id = cleaned.get("id")
    record_id = str(record_id).strip() if not is_empty(record_id) else _fallback_id(source_id, name, raw)

    return ProjectRecord(
        id=record_id,
        name=str(name) if name else record_id,
        source_id=source_id,
        trust_score=trust_score,
        extraction_date=extraction_date,
        raw_data=MappingProxyType(dict(raw)),
        county=cleaned.get("county"),
        constituency=cleaned.get("constituency"),
        sector=cleaned.get("sector"),
        description=cleaned.get("description"),
        budget=cleaned.get("budget"),
        spent=cleaned.get("spent"),
        progress=cleaned.get("progress"),
        status=cleaned.get("status"),
        start_date=cleaned.get("start_date"),
        expected_completion=cleaned.get("expected_completion"),
        last_update=cleaned.get("last_update"),
        contractor=cleaned.get("contractor"),
        supervisor=cleaned.get("supervisor"),
        coordinates=cleaned.get("coordinates"),
        issues=cleaned.get("issues", ()),
    )


@dataclass
class ValidationReport:
    """Validated records plus the per-source error/warning side channel."""
    records: List[ProjectRecord] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def validate_and_clean(
    raw_records: Sequence[Mapping[str, Any]],
    rules: Sequence[ValidationRule],
    mapping: Mapping[str, str],
    trust_score: float,
    source_id: str,
    extraction_date: Optional[datetime] = None,
) -> ValidationReport:
    """
    Validate, map and clean raw records for one source.

    Args:
        raw_records: Records as returned by the fetcher
        rules: Source validation rules, evaluated in order
        mapping: Source field name -> canonical field name
        trust_score: Source trust score copied onto each record
        source_id: Source id stamped onto each record
        extraction_date: Timestamp stamped onto each record (default: now)

    Returns:
        ValidationReport; records failing any rule are absent from
        ``records`` and listed in ``errors`` as "<record id>: reason1, reason2"
    """
    if extraction_date is None:
        extraction_date = datetime.now(timezone.utc)

    report = ValidationReport()

    for raw in raw_records:
        if not isinstance(raw, Mapping):
            report.errors.append(f"unknown: record is not a key-value mapping ({type(raw).__name__})")
            continue

        record_id = record_identifier(raw, mapping)
        failures = validate_record(raw, rules)
        if failures:
            message = f"{record_id}: {', '.join(failures)}"
            report.errors.append(message)
            logger.warning(f"[{source_id}] Dropped record {message}")
            continue

        mapped = apply_field_mapping(raw, mapping)
        cleaned = clean_record(mapped, record_id, report.warnings)
        report.records.append(
            build_project_record(cleaned, raw, source_id, trust_score, extraction_date)
        )

    return report
