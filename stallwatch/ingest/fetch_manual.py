"""Fetcher for manually entered records (``manual`` extraction strategy).

Entries are kept in ``<manual_dir>/<source_id>.yaml`` (or ``.json``).
"""

import logging
from pathlib import Path
from typing import Any, Dict, List

from .base_fetcher import BaseFetcher
from .fetch_file import load_records_file
from .models import SourceDefinition

logger = logging.getLogger(__name__)


class ManualEntryFetcher(BaseFetcher):
    """Fetcher for manual entry files."""

    def _fetch_impl(self, source: SourceDefinition) -> List[Dict[str, Any]]:
        manual_dir = Path(self.config.manual_dir)
        for suffix in (".yaml", ".yml", ".json"):
            path = manual_dir / f"{source.id}{suffix}"
            if path.is_file():
                return load_records_file(path)

        logger.info(f"No manual entries for {source.id} in {manual_dir}")
        return []
