"""JSON API fetcher for sources using the ``api`` extraction strategy.

Builds the auth header from the source's authentication method and reads
the record list from the response body, optionally at a dotted
``records_path`` (for example ``result.records`` on CKAN portals).
"""

import base64
import logging
from typing import Any, Dict, List

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config import secrets
from ..errors import ConfigurationError, ExtractionError
from .base_fetcher import BaseFetcher
from .models import AuthMethod, SourceDefinition

logger = logging.getLogger(__name__)

USER_AGENT = "StallWatch-Accountability-Pipeline/1.0"

# Session-level retry for network transients
_retry = Retry(total=1, allowed_methods=["GET"], backoff_factor=1, status_forcelist=[502, 503, 504])
_session = requests.Session()
_session.mount("https://", HTTPAdapter(max_retries=_retry))
_session.mount("http://", HTTPAdapter(max_retries=_retry))


def build_auth_headers(source: SourceDefinition) -> Dict[str, str]:
    """
    Build request headers for a source, including its auth header.

    api_key -> Bearer token from <ID>_API_KEY
    basic   -> base64 of <ID>_USERNAME:<ID>_PASSWORD
    oauth / none -> no auth header (token acquisition happens elsewhere)

    Raises:
        MissingSecretError: If a required credential is not configured
    """
    headers = {
        "Content-Type": "application/json",
        "Accept": "application/json",
        "User-Agent": USER_AGENT,
    }

    if source.auth_method == AuthMethod.API_KEY:
        headers["Authorization"] = f"Bearer {secrets.get_api_key(source.id)}"
    elif source.auth_method == AuthMethod.BASIC:
        username, password = secrets.get_basic_credentials(source.id)
        credentials = base64.b64encode(f"{username}:{password}".encode()).decode()
        headers["Authorization"] = f"Basic {credentials}"

    return headers


def resolve_endpoint(source: SourceDefinition) -> str:
    """Endpoint from the <ID>_API_ENDPOINT override, else the catalog."""
    endpoint = secrets.get_endpoint_override(source.id) or source.api_endpoint
    if not endpoint:
        raise ConfigurationError("API endpoint not configured")
    return endpoint


def extract_records(payload: Any, records_path: str = "") -> List[Dict[str, Any]]:
    """Walk a dotted path into a JSON payload and return the record list found there."""
    node = payload
    for key in [p for p in records_path.split('.') if p]:
        if not isinstance(node, dict) or key not in node:
            raise ValueError(f"records_path '{records_path}' not found in response")
        node = node[key]

    if not isinstance(node, list):
        raise ValueError(f"expected a list of records, got {type(node).__name__}")
    return node


class ApiFetcher(BaseFetcher):
    """Fetcher for JSON APIs."""

    def _fetch_impl(self, source: SourceDefinition) -> List[Dict[str, Any]]:
        """Fetch from the source API (internal implementation with no retry logic)."""
        endpoint = resolve_endpoint(source)
        headers = build_auth_headers(source)
        params = dict(source.options.get('params', {}) or {})

        logger.info(f"Requesting {endpoint} for {source.id}")
        try:
            response = _session.get(
                endpoint,
                params=params,
                headers=headers,
                timeout=self.config.request_timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            raise ExtractionError(source.id, f"API request failed for {endpoint}: {e}", e) from e
        except ValueError as e:
            raise ExtractionError(source.id, f"Invalid JSON from {endpoint}: {e}", e) from e

        try:
            return extract_records(payload, source.options.get('records_path', ''))
        except ValueError as e:
            raise ExtractionError(source.id, str(e), e) from e
