"""Settings, credentials and bundled catalog files."""

from pathlib import Path

CONFIG_DIR = Path(__file__).resolve().parent
DEFAULT_SOURCES_PATH = CONFIG_DIR / "sources.yaml"
DEFAULT_CRITERIA_PATH = CONFIG_DIR / "criteria.yaml"
SOURCES_SCHEMA_PATH = CONFIG_DIR / "schemas" / "sources.schema.json"
