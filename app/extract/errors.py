"""Exception taxonomy for the extraction pipeline.

Per-URL errors (``ResolutionError``, ``FetchError``) are caught at the URL
boundary and recorded on that URL's trace. Request-level errors
(``UpstreamBatchError``, ``NoLinksError``) end the request.
"""

from __future__ import annotations


class ExtractError(Exception):
    """Base class for extraction pipeline errors."""


class ResolutionError(ExtractError):
    """Resolving one input URL into candidates failed."""


class DiscoveryError(ResolutionError):
    pass


class BlockedURLError(ResolutionError):
    def __init__(self, url: str):
        super().__init__("URL is blocked")
        self.url = url


class FetchError(ExtractError):
    """Fetching one resolved URL failed."""


class JobTimeoutError(FetchError):
    def __init__(self, job_id: str, timeout_ms: int):
        super().__init__(f"Job wait timed out after {timeout_ms}ms")
        self.job_id = job_id
        self.timeout_ms = timeout_ms


class JobFailedError(FetchError):
    pass


class UpstreamBatchError(ExtractError):
    """The fetch stage as a whole failed; carries the status to return."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class QueueUnavailableError(UpstreamBatchError):
    def __init__(self, message: str = "Scrape queue is not running"):
        super().__init__(message, status_code=503)


class NoLinksError(ExtractError):
    status_code = 400

    def __init__(
        self,
        message: str = (
            "No valid URLs found to scrape. Try adjusting your search criteria "
            "or including more URLs."
        ),
    ):
        super().__init__(message)
        self.message = message


class AuthenticationError(ExtractError):
    status_code = 401
