"""
Per-source credential lookup.

Credentials are environment-scoped and keyed by source id. The id is
upper-cased and every non-alphanumeric character becomes ``_``:

    kenya-open-data  ->  KENYA_OPEN_DATA_API_KEY
                         KENYA_OPEN_DATA_USERNAME / KENYA_OPEN_DATA_PASSWORD
                         KENYA_OPEN_DATA_API_ENDPOINT (optional override)

Usage:
    from stallwatch.config.secrets import get_api_key

    # Will raise if key is missing
    key = get_api_key("kenya-open-data")

CLI check:
    stallwatch check-secrets
"""

import os
import re
from pathlib import Path
from typing import Dict, Optional, Tuple

from dotenv import load_dotenv

from ..errors import ConfigurationError

# Find .env file - walk up from this file to repo root, else current working directory
_repo_root = Path(__file__).resolve().parent.parent.parent  # stallwatch/config/secrets.py -> repo root
_env_path = _repo_root / ".env"
if _env_path.exists():
    load_dotenv(_env_path)
else:
    load_dotenv()


class MissingSecretError(ConfigurationError):
    """Raised when a required source credential is not configured."""
    pass


def env_prefix(source_id: str) -> str:
    """Environment variable prefix for a source id."""
    return re.sub(r'[^A-Za-z0-9]', '_', source_id).upper()


def _require(var_name: str) -> str:
    value = os.environ.get(var_name, "").strip()
    if not value:
        raise MissingSecretError(
            f"{var_name} not found. "
            "Copy .env.example to .env and add the credential."
        )
    return value


def get_api_key(source_id: str) -> str:
    """
    Get the bearer token for a source.

    Raises:
        MissingSecretError: If <ID>_API_KEY is not set
    """
    return _require(f"{env_prefix(source_id)}_API_KEY")


def get_basic_credentials(source_id: str) -> Tuple[str, str]:
    """
    Get (username, password) for a source using basic auth.

    Raises:
        MissingSecretError: If <ID>_USERNAME or <ID>_PASSWORD is not set
    """
    prefix = env_prefix(source_id)
    return _require(f"{prefix}_USERNAME"), _require(f"{prefix}_PASSWORD")


def get_endpoint_override(source_id: str) -> Optional[str]:
    """Return <ID>_API_ENDPOINT if set, else None."""
    value = os.environ.get(f"{env_prefix(source_id)}_API_ENDPOINT", "").strip()
    return value or None


def check_secrets(catalog) -> Dict[str, str]:
    """
    Check which source credentials are configured.

    Returns:
        dict: source id -> "OK", "MISSING" or "N/A" (no credential needed)
    """
    # Local import keeps this module importable without the ingest package
    from ..ingest.models import AuthMethod

    status = {}
    for source in catalog.all():
        if source.auth_method == AuthMethod.API_KEY:
            try:
                get_api_key(source.id)
                status[source.id] = "OK"
            except MissingSecretError:
                status[source.id] = "MISSING"
        elif source.auth_method == AuthMethod.BASIC:
            try:
                get_basic_credentials(source.id)
                status[source.id] = "OK"
            except MissingSecretError:
                status[source.id] = "MISSING"
        else:
            status[source.id] = "N/A"
    return status
