"""
Data models for source definitions, canonical project records and
extraction results.

All models are frozen: a SourceDefinition is fixed for the lifetime of a
catalog, and records/results are never mutated after creation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union


class SourceType(str, Enum):
    GOVERNMENT = "government"
    PRIVATE = "private"
    NGO = "ngo"
    MEDIA = "media"
    CROWDSOURCED = "crowdsourced"


class ExtractionMethod(str, Enum):
    API = "api"
    SCRAPING = "scraping"
    FILE_UPLOAD = "file_upload"
    MANUAL = "manual"


class AuthMethod(str, Enum):
    API_KEY = "api_key"
    OAUTH = "oauth"
    BASIC = "basic"
    NONE = "none"


class UpdateFrequency(str, Enum):
    REAL_TIME = "real-time"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class SourceStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ERROR = "error"
    PENDING = "pending"


class RuleType(str, Enum):
    REQUIRED = "required"
    FORMAT = "format"
    RANGE = "range"
    ENUM = "enum"
    CUSTOM = "custom"


RuleParameter = Union[str, float, Tuple[str, ...]]


@dataclass(frozen=True)
class ValidationRule:
    field: str
    rule_type: RuleType
    rule: RuleParameter = ""
    error_message: str = ""


@dataclass(frozen=True)
class SourceDefinition:
    """A configured upstream feed. Read-only to every downstream component."""
    id: str
    name: str
    source_type: SourceType
    trust_score: float
    extraction_method: ExtractionMethod
    auth_method: AuthMethod
    update_frequency: UpdateFrequency
    field_mapping: Mapping[str, str]
    validation_rules: Tuple[ValidationRule, ...] = ()
    status: SourceStatus = SourceStatus.ACTIVE
    url: str = ""
    api_endpoint: Optional[str] = None
    data_format: str = "json"
    # Strategy-specific settings (urls, selectors, records_path, params)
    options: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.source_type.value,
            "url": self.url,
            "api_endpoint": self.api_endpoint,
            "auth_method": self.auth_method.value,
            "data_format": self.data_format,
            "update_frequency": self.update_frequency.value,
            "trust_score": self.trust_score,
            "extraction_method": self.extraction_method.value,
            "status": self.status.value,
            "field_mapping": dict(self.field_mapping),
            "validation_rules": [
                {
                    "field": r.field,
                    "type": r.rule_type.value,
                    "rule": list(r.rule) if isinstance(r.rule, tuple) else r.rule,
                    "error_message": r.error_message,
                }
                for r in self.validation_rules
            ],
        }


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float


@dataclass(frozen=True)
class ProjectRecord:
    """Canonical project observation produced by the validator."""
    id: str
    name: str
    source_id: str
    trust_score: float
    extraction_date: datetime
    raw_data: Mapping[str, Any]
    county: Optional[str] = None
    constituency: Optional[str] = None
    sector: Optional[str] = None
    description: Optional[str] = None
    budget: Optional[float] = None
    spent: Optional[float] = None
    progress: Optional[float] = None
    status: Optional[str] = None
    start_date: Optional[datetime] = None
    expected_completion: Optional[datetime] = None
    last_update: Optional[datetime] = None
    contractor: Optional[str] = None
    supervisor: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    issues: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        def _iso(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value else None

        return {
            "id": self.id,
            "name": self.name,
            "county": self.county,
            "constituency": self.constituency,
            "sector": self.sector,
            "description": self.description,
            "budget": self.budget,
            "spent": self.spent,
            "progress": self.progress,
            "status": self.status,
            "start_date": _iso(self.start_date),
            "expected_completion": _iso(self.expected_completion),
            "last_update": _iso(self.last_update),
            "contractor": self.contractor,
            "supervisor": self.supervisor,
            "coordinates": {"lat": self.coordinates.lat, "lng": self.coordinates.lng} if self.coordinates else None,
            "issues": list(self.issues),
            "source_id": self.source_id,
            "trust_score": self.trust_score,
            "extraction_date": _iso(self.extraction_date),
        }


@dataclass(frozen=True)
class ExtractionResult:
    """Outcome of one source in one run. Appended to history, never mutated."""
    source_id: str
    success: bool
    records_extracted: int
    records_validated: int
    extraction_time: datetime
    errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()
    records: Tuple[ProjectRecord, ...] = ()
    next_scheduled_extraction: Optional[datetime] = None

    @classmethod
    def failed(cls, source_id: str, error: str, extraction_time: datetime,
               warnings: Optional[List[str]] = None) -> "ExtractionResult":
        return cls(
            source_id=source_id,
            success=False,
            records_extracted=0,
            records_validated=0,
            extraction_time=extraction_time,
            errors=(error,),
            warnings=tuple(warnings or ()),
        )

    def to_dict(self, include_records: bool = True) -> Dict[str, Any]:
        d = {
            "source_id": self.source_id,
            "success": self.success,
            "records_extracted": self.records_extracted,
            "records_validated": self.records_validated,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "extraction_time": self.extraction_time.isoformat(),
            "next_scheduled_extraction": (
                self.next_scheduled_extraction.isoformat() if self.next_scheduled_extraction else None
            ),
        }
        if include_records:
            d["records"] = [r.to_dict() for r in self.records]
        return d
