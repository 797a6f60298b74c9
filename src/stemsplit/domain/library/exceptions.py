"""Library-specific exceptions for error handling."""

from stemsplit.core.api import ApiError, NotAuthenticatedError


class LibraryError(Exception):
    """Base exception for library operations."""

    pass


class TermsNotAcceptedError(LibraryError):
    """Raised when an upload is attempted without accepting the terms."""

    def __init__(self, message: str = "You must agree to the Terms of Service."):
        super().__init__(message)


class UploadValidationError(LibraryError):
    """Raised when a file or stem selection fails local validation."""

    pass


class UploadError(LibraryError):
    """Raised when the backend rejects an upload or cannot be reached."""

    def __init__(self, message: str, status: int | None = None):
        self.status = status
        super().__init__(message)


class DownloadError(LibraryError):
    """Raised when no source for a download could be fetched."""

    pass


__all__ = [
    "ApiError",
    "DownloadError",
    "LibraryError",
    "NotAuthenticatedError",
    "TermsNotAcceptedError",
    "UploadError",
    "UploadValidationError",
]
