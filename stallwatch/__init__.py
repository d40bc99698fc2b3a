"""
Stalled infrastructure project detection.

Extracts project records from a catalog of heterogeneous sources,
validates and normalizes them, and scores each project against weighted
stalled-project criteria.

Subpackages:
    config - Settings, credentials, bundled source catalog and criteria
    ingest - Source catalog, fetchers, validation, extraction orchestrator
    scoring - Criteria evaluation, analyzer, statistics and trends
"""

__version__ = "0.1.0"
