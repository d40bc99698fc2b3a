"""
Source-driven extraction and validation.

Modules:
    models - Source definitions, canonical records and extraction results
    catalog - Source catalog loading and validation
    validation - Rule evaluation, field mapping, cleaning, status canonicalization
    base_fetcher - Retrying fetcher base class
    fetch_api / fetch_web / fetch_file / fetch_manual - One fetcher per extraction strategy
    health - Per-source health tracking
    orchestrator - Runs every catalog source with per-source failure isolation
"""
