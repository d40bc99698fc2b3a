"""File fetcher for sources using the ``file_upload`` extraction strategy.

Uploaded files live under ``<upload_dir>/<source_id>/`` and are read in
name order. Supported formats: CSV (header row), JSON (list of objects,
or an object with a ``records`` list) and YAML (same shapes as JSON).
"""

import csv
import json
import logging
from pathlib import Path
from typing import Any, Dict, List

import yaml

from ..errors import ConfigurationError
from .base_fetcher import BaseFetcher
from .models import SourceDefinition

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = {".csv", ".json", ".yaml", ".yml"}


def load_records_file(path: Path) -> List[Dict[str, Any]]:
    """
    Load raw records from a single CSV/JSON/YAML file.

    Raises:
        ConfigurationError: If the file cannot be parsed or does not hold
            a list of records; fetchers never retry it
    """
    suffix = path.suffix.lower()

    try:
        if suffix == ".csv":
            with open(path, 'r', newline='', encoding='utf-8') as f:
                return [dict(row) for row in csv.DictReader(f)]

        with open(path, 'r', encoding='utf-8') as f:
            if suffix == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except (ValueError, csv.Error, yaml.YAMLError) as e:
        raise ConfigurationError(f"{path.name}: unreadable records file: {e}") from e

    if isinstance(data, dict) and isinstance(data.get("records"), list):
        data = data["records"]
    if data is None:
        return []
    if not isinstance(data, list):
        raise ConfigurationError(f"{path.name}: expected a list of records")
    return data


class FileUploadFetcher(BaseFetcher):
    """Fetcher for uploaded data files."""

    def _fetch_impl(self, source: SourceDefinition) -> List[Dict[str, Any]]:
        """Read every supported file in the source's upload directory."""
        upload_dir = Path(self.config.upload_dir) / source.id
        if not upload_dir.is_dir():
            logger.info(f"No upload directory for {source.id} ({upload_dir})")
            return []

        records = []
        for path in sorted(upload_dir.iterdir()):
            if path.is_file() and path.suffix.lower() in SUPPORTED_SUFFIXES:
                file_records = load_records_file(path)
                logger.info(f"Read {len(file_records)} records from {path}")
                records.extend(file_records)

        return records
