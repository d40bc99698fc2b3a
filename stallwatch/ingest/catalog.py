"""
Source catalog loading and validation.

Provides functions to load the source catalog from YAML, validate source
definitions against the JSON schema plus internal consistency rules, and
an immutable lookup structure over the result.
"""

import json
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Optional, Sequence

import jsonschema
import yaml

from ..config import DEFAULT_SOURCES_PATH, SOURCES_SCHEMA_PATH
from ..errors import ConfigurationError
from .models import (
    AuthMethod,
    ExtractionMethod,
    RuleType,
    SourceDefinition,
    SourceStatus,
    SourceType,
    UpdateFrequency,
    ValidationRule,
)
from .validation import CUSTOM_CHECKS

# Keys that are part of the core definition; everything else is strategy options
_CORE_KEYS = {
    "id", "name", "type", "url", "api_endpoint", "auth_method", "data_format",
    "update_frequency", "trust_score", "extraction_method", "status",
    "field_mapping", "validation_rules",
}


class CatalogValidationError(ConfigurationError):
    """Raised when catalog validation fails."""
    pass


class SourceCatalog:
    """Ordered, read-only registry of configured sources.

    Reconfiguration means building a new catalog; entries are never edited in place.
    """

    def __init__(self, sources: Sequence[SourceDefinition]):
        by_id: Dict[str, SourceDefinition] = {}
        for source in sources:
            if source.id in by_id:
                raise CatalogValidationError(f"Duplicate source id: {source.id}")
            by_id[source.id] = source
        self._sources = tuple(sources)
        self._by_id = MappingProxyType(by_id)

    def get(self, source_id: str) -> SourceDefinition:
        try:
            return self._by_id[source_id]
        except KeyError:
            raise KeyError(f"Unknown source: {source_id}") from None

    def all(self) -> tuple:
        return self._sources

    def __len__(self) -> int:
        return len(self._sources)

    def __iter__(self) -> Iterator[SourceDefinition]:
        return iter(self._sources)

    def __contains__(self, source_id: object) -> bool:
        return source_id in self._by_id


def validate_catalog_data(
    data: Dict[str, Any],
    schema_path: Optional[Path] = SOURCES_SCHEMA_PATH
) -> bool:
    """
    Validate raw catalog data against schema and internal consistency rules.

    Consistency rules beyond the schema:
    1. source ids are unique
    2. range rules carry a numeric parameter
    3. enum rules carry a list of allowed values
    4. custom rules name a registered check

    Returns:
        True if valid

    Raises:
        CatalogValidationError: If validation fails
    """
    if schema_path is not None and schema_path.exists():
        with open(schema_path) as f:
            schema = json.load(f)
        try:
            jsonschema.validate(data, schema)
        except jsonschema.ValidationError as e:
            path = ".".join(str(p) for p in e.absolute_path) if e.absolute_path else ""
            if "is a required property" in e.message:
                prop = e.message.split("'")[1] if "'" in e.message else "unknown"
                if e.absolute_path and len(e.absolute_path) >= 2:
                    raise CatalogValidationError(f"Source {e.absolute_path[1]} missing required field: {prop}")
                raise CatalogValidationError(f"Missing required field: {prop}")
            raise CatalogValidationError(f"Schema validation failed at '{path}': {e.message}")

    sources = data.get("sources")
    if not isinstance(sources, list):
        raise CatalogValidationError("'sources' must be a list")

    source_ids = set()
    for i, source in enumerate(sources):
        source_id = source.get("id")
        if not source_id:
            raise CatalogValidationError(f"Source {i} missing required field: id")
        if source_id in source_ids:
            raise CatalogValidationError(f"Duplicate source id: {source_id}")
        source_ids.add(source_id)

        for rule in source.get("validation_rules", []):
            rule_type = rule.get("type")
            param = rule.get("rule", "")
            if rule_type == "range" and (isinstance(param, bool) or not isinstance(param, (int, float))):
                raise CatalogValidationError(
                    f"Source {source_id}: range rule on '{rule.get('field')}' needs a numeric threshold"
                )
            if rule_type == "enum" and not isinstance(param, list):
                raise CatalogValidationError(
                    f"Source {source_id}: enum rule on '{rule.get('field')}' needs a list of allowed values"
                )
            if rule_type == "custom" and param not in CUSTOM_CHECKS:
                raise CatalogValidationError(
                    f"Source {source_id}: unknown custom check '{param}'"
                )

    return True


def _build_rule(raw: Dict[str, Any]) -> ValidationRule:
    param = raw.get("rule", "")
    if isinstance(param, list):
        param = tuple(str(v) for v in param)
    elif isinstance(param, (int, float)) and not isinstance(param, bool):
        param = float(param)
    return ValidationRule(
        field=raw["field"],
        rule_type=RuleType(raw["type"]),
        rule=param,
        error_message=raw.get("error_message", f"Validation failed for {raw['field']}"),
    )


def build_source(raw: Dict[str, Any]) -> SourceDefinition:
    """Build a SourceDefinition from a validated catalog entry."""
    options = {k: v for k, v in raw.items() if k not in _CORE_KEYS}
    return SourceDefinition(
        id=raw["id"],
        name=raw["name"],
        source_type=SourceType(raw["type"]),
        trust_score=float(raw["trust_score"]),
        extraction_method=ExtractionMethod(raw["extraction_method"]),
        auth_method=AuthMethod(raw["auth_method"]),
        update_frequency=UpdateFrequency(raw["update_frequency"]),
        field_mapping=MappingProxyType(dict(raw["field_mapping"])),
        validation_rules=tuple(_build_rule(r) for r in raw.get("validation_rules", [])),
        status=SourceStatus(raw.get("status", "active")),
        url=raw.get("url", ""),
        api_endpoint=raw.get("api_endpoint"),
        data_format=raw.get("data_format", "json"),
        options=MappingProxyType(options),
    )


def catalog_from_dict(data: Dict[str, Any]) -> SourceCatalog:
    """Validate raw catalog data and build a SourceCatalog."""
    validate_catalog_data(data)
    return SourceCatalog([build_source(s) for s in data["sources"]])


def load_catalog(path: Path = DEFAULT_SOURCES_PATH) -> SourceCatalog:
    """
    Load and validate the source catalog from a YAML file.

    Args:
        path: Path to sources.yaml (default: bundled catalog)

    Returns:
        SourceCatalog

    Raises:
        FileNotFoundError: If catalog file doesn't exist
        CatalogValidationError: If catalog is invalid
    """
    with open(path, 'r') as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise CatalogValidationError(f"Invalid YAML in {path}: {e}") from e
    return catalog_from_dict(data)


def list_sources(catalog: SourceCatalog) -> List[Dict[str, Any]]:
    """Summaries for display, in catalog order."""
    return [
        {
            "id": s.id,
            "name": s.name,
            "type": s.source_type.value,
            "extraction_method": s.extraction_method.value,
            "trust_score": s.trust_score,
            "update_frequency": s.update_frequency.value,
            "status": s.status.value,
        }
        for s in catalog.all()
    ]
