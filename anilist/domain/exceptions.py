from typing import Any, Dict, List, Optional


class AniListException(Exception):
    """Base exception for all AniList client errors."""
    pass

class ConfigurationException(AniListException):
    """Raised when the client is configured with an unusable option."""
    pass

class TransportException(AniListException):
    """Raised when the HTTP request could not be completed."""
    pass

class TransportTimeoutException(TransportException):
    """Raised when the request did not complete within the configured timeout."""
    def __init__(self, timeout: float, message: str = "Request timed out."):
        self.timeout = timeout
        super().__init__(f"{message} Timeout: {timeout}s")

class TransportUnreachableException(TransportException):
    """Raised on DNS failures, refused or reset connections."""
    pass

class ApiException(AniListException):
    """Base class for errors reported by the AniList service."""
    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
    ):
        self.status = status
        self.errors = errors or []
        super().__init__(message)

class NotFoundException(ApiException):
    """Raised when the selector matched no entity."""
    pass

class ValidationException(ApiException):
    """Raised for malformed selectors or queries rejected by the service."""
    pass

class RateLimitExceededException(ApiException):
    """Raised when the AniList rate limit cannot be satisfied."""
    def __init__(
        self,
        retry_after: Optional[float] = None,
        message: str = "AniList API rate limit exceeded.",
        status: Optional[int] = 429,
        errors: Optional[List[Dict[str, Any]]] = None,
    ):
        self.retry_after = retry_after
        if retry_after is not None:
            message = f"{message} Retry after: {retry_after:.0f}s"
        super().__init__(message, status=status, errors=errors)

class ServiceFaultException(ApiException):
    """Raised when the service fails on its side (5xx-equivalent)."""
    pass

class MalformedResponseException(ApiException):
    """Raised when the response does not match the shape that was queried."""
    pass
