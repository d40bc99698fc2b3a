"""Web scraper for project records using CSS selectors.

Source options:
    urls: list of page URLs (defaults to the source ``url``)
    selectors:
      record: CSS selector matching one element per record
      fields: {source field name: CSS selector relative to the record element}
"""

import logging
import time
from typing import Any, Dict, List

import requests
from bs4 import BeautifulSoup
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..errors import ConfigurationError, ExtractionError
from .base_fetcher import BaseFetcher
from .models import SourceDefinition

logger = logging.getLogger(__name__)

# Session-level retry for network transients
_retry = Retry(total=1, allowed_methods=["GET"], backoff_factor=1, status_forcelist=[502, 503, 504])
_session = requests.Session()
_session.mount("https://", HTTPAdapter(max_retries=_retry))
_session.mount("http://", HTTPAdapter(max_retries=_retry))

# Delay between requests to avoid rate limiting (seconds)
REQUEST_DELAY = 1.0

DEFAULT_HEADERS = {
    'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.9',
}


def page_urls(source: SourceDefinition) -> List[str]:
    """Scrapable http(s) URLs for a source."""
    urls = list(source.options.get('urls') or ([source.url] if source.url else []))
    valid = [u for u in urls if u.startswith(('http://', 'https://'))]
    if not valid:
        raise ConfigurationError(f"No scrapable URL configured (url: '{source.url}')")
    return valid


def parse_records(html: str, selectors: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Extract one dict per record element; missing fields are left out."""
    soup = BeautifulSoup(html, 'lxml')
    records = []

    for element in soup.select(selectors['record']):
        record = {}
        for field_name, selector in selectors.get('fields', {}).items():
            field_elem = element.select_one(selector)
            if field_elem is not None:
                record[field_name] = field_elem.get_text(strip=True)
        if record:
            records.append(record)

    return records


class WebFetcher(BaseFetcher):
    """Fetcher for HTML pages using CSS selectors."""

    def _fetch_impl(self, source: SourceDefinition) -> List[Dict[str, Any]]:
        """Scrape every configured page (internal implementation with no retry logic)."""
        selectors = source.options.get('selectors')
        if not selectors or 'record' not in selectors:
            raise ConfigurationError("Scraping selectors not configured")

        records = []
        for i, page_url in enumerate(page_urls(source)):
            if i > 0:
                time.sleep(REQUEST_DELAY)

            logger.info(f"Scraping {page_url} for {source.id}")
            try:
                response = _session.get(
                    page_url,
                    timeout=self.config.request_timeout,
                    headers=DEFAULT_HEADERS
                )
                response.raise_for_status()
            except requests.RequestException as e:
                raise ExtractionError(source.id, f"Web fetch failed for {page_url}: {e}", e) from e

            records.extend(parse_records(response.text, selectors))

        return records
