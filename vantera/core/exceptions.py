"""Custom exception classes for the application."""
from typing import Any, Optional


class AppException(Exception):
    """Base exception for the application."""

    status_code = 500

    def __init__(self, message: str, detail: Any = None):
        self.message = message
        self.detail = detail
        super().__init__(message)


class NotFoundError(AppException):
    """Resource not found."""
    status_code = 404


class ValidationError(AppException):
    """Invalid client input."""
    status_code = 400


class UnknownCityError(ValidationError):
    """City key does not resolve to a known preset."""
    pass


class ConfigurationError(AppException):
    """Required server configuration (e.g. a provider credential) is missing."""
    status_code = 500


class ProviderError(AppException):
    """External data provider failed."""

    status_code = 502

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        reason: str = "",
        url: str = "",
        body: str = "",
        detail: Any = None,
    ):
        self.status = status
        self.reason = reason
        self.url = url
        self.body = body
        super().__init__(message, detail)


class AttomError(ProviderError):
    """Non-success response from the ATTOM property API."""

    def __init__(self, status: int, reason: str, url: str, body: str):
        super().__init__(
            f"ATTOM {status} {reason} for {url}\n{(body or '')[:400]}",
            status=status,
            reason=reason,
            url=url,
            body=body,
        )


class ApifyError(ProviderError):
    """Non-success response from the Apify actor API."""

    def __init__(self, status: int, reason: str, url: str, body: str):
        super().__init__(
            f"Apify {status} {reason}\n{(body or '')[:600]}",
            status=status,
            reason=reason,
            url=url,
            body=body,
        )


class RunFinalizedError(AppException):
    """Import run already reached a terminal state and cannot change."""
    status_code = 409


class UploadRejectedError(AppException):
    """Asset upload refused (bad name or disallowed folder)."""

    def __init__(self, message: str, status_code: int = 400):
        self.status_code = status_code
        super().__init__(message)
