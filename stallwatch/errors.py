"""Exception hierarchy for the extraction and scoring pipeline.

Record-level validation failures are not exceptions: they are collected
as strings on the owning source's ExtractionResult.
"""

from typing import Optional


class StallWatchError(Exception):
    """Base exception for all pipeline errors."""
    pass


class ConfigurationError(StallWatchError):
    """Raised when a source, criterion or setting is misconfigured.

    Fatal only to the source (or load step) that triggered it.
    """
    pass


class ExtractionError(StallWatchError):
    """Raised when a fetch fails after retries."""
    def __init__(self, source_id: str, message: str, original_error: Optional[Exception] = None):
        self.source_id = source_id
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_id}: {message}")


class AnalysisError(StallWatchError):
    """Raised when a normalized record cannot be scored."""
    def __init__(self, project_id: str, message: str):
        self.project_id = project_id
        self.message = message
        super().__init__(f"{project_id}: {message}")
