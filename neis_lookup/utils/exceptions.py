"""
Custom exception classes for NEIS School Lookup.

Provides a hierarchy of exceptions for different failure scenarios
with appropriate context and debugging information.

An empty result is not an exception: lookups that find no rows
return an empty list.
"""

from typing import Any, Optional


class NeisLookupError(Exception):
    """Base exception for all NEIS School Lookup errors.

    All custom exceptions inherit from this class, allowing
    catch-all error handling when needed.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
    """

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class InvalidInputError(NeisLookupError, ValueError):
    """Raised for malformed dates or missing identifiers.

    Fails fast: never retried and never written to the cache.

    Attributes:
        field: Name of the offending input
        value: Value that was rejected
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs
    ):
        details = {
            "field": field,
            **kwargs
        }
        if value is not None:
            # Truncate value for readability
            value_str = str(value)
            details["value"] = value_str[:100] + "..." if len(value_str) > 100 else value_str

        details = {k: v for k, v in details.items() if v is not None}
        super().__init__(message, details)
        self.field = field
        self.value = value


class UpstreamError(NeisLookupError):
    """Raised when the upstream API cannot be reached or answers with a failure.

    Covers transport failures, non-success HTTP statuses and error
    envelopes, after the retry policy has been exhausted.

    Attributes:
        endpoint: API endpoint that failed
        status_code: HTTP status code (if applicable)
        response_body: Response content (if available)
        request_params: Request parameters used
        attempts: Number of attempts made before giving up
    """

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_params: Optional[dict[str, Any]] = None,
        attempts: Optional[int] = None,
        **kwargs
    ):
        details = {
            "endpoint": endpoint,
            "status_code": status_code,
            "request_params": request_params,
            "attempts": attempts,
            **kwargs
        }
        if response_body:
            # Truncate response body for readability
            details["response_preview"] = response_body[:200] + "..." if len(response_body) > 200 else response_body

        details = {k: v for k, v in details.items() if v is not None}
        super().__init__(message, details)
        self.endpoint = endpoint
        self.status_code = status_code
        self.response_body = response_body
        self.request_params = request_params
        self.attempts = attempts
