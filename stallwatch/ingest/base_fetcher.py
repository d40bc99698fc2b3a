"""Abstract base class for all per-strategy fetchers with retry logic."""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..config.settings import PipelineConfig, RetryConfig
from ..errors import ConfigurationError, ExtractionError
from .models import SourceDefinition

logger = logging.getLogger(__name__)


class BaseFetcher(ABC):
    """Abstract base for all fetchers with built-in retry logic.

    A fetcher serves every source that uses its extraction strategy; all
    source-specific settings come from the SourceDefinition passed to fetch().
    """

    def __init__(self, config: Optional[PipelineConfig] = None):
        self.config = config or PipelineConfig()

    @property
    def retry(self) -> RetryConfig:
        return self.config.retry

    @abstractmethod
    def _fetch_impl(self, source: SourceDefinition) -> List[Dict[str, Any]]:
        """
        Internal fetch implementation - to be overridden by subclasses.

        Returns:
            Ordered list of raw records (untyped key-value maps)

        Raises:
            ConfigurationError if the source cannot be fetched as configured,
            any other exception on fetch failure
        """
        pass

    def fetch(self, source: SourceDefinition) -> List[Dict[str, Any]]:
        """
        Fetch with automatic retries and exponential backoff.

        Returns:
            Ordered list of raw records

        Raises:
            ConfigurationError: Immediately, without retrying
            ExtractionError: After the last failed attempt
        """
        max_retries = self.retry.max_retries
        backoff = self.retry.initial_backoff_seconds
        last_error: Optional[Exception] = None

        for attempt in range(1, max_retries + 1):
            try:
                return self._fetch_impl(source)
            except ConfigurationError:
                raise
            except Exception as e:
                last_error = e
                if attempt < max_retries:
                    logger.warning(f"Retry {attempt}/{max_retries} for {source.id} in {backoff}s: {e}")
                    time.sleep(backoff)
                    backoff *= self.retry.backoff_multiplier
                else:
                    logger.error(f"Failed after {max_retries} attempts for {source.id}: {e}")

        if isinstance(last_error, ExtractionError):
            raise last_error
        raise ExtractionError(source.id, str(last_error), last_error) from last_error
