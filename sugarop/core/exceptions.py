"""Custom exception hierarchy."""


class AppError(Exception):
    """Base exception for application errors."""
    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class APIClientError(AppError):
    """Raised when an external API call fails."""
    pass


class APITimeoutError(APIClientError):
    """Raised when an external API call times out."""
    pass


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""
    pass


class AuthorizationError(AppError):
    """Raised when no authenticated principal is available."""
    pass


class ValidationError(AppError):
    """Raised when input validation fails. The message is user-facing."""
    pass


class StorageWriteError(AppError):
    """Raised when a binary cannot be written to the object store."""
    pass


class StorageDeleteError(AppError):
    """Raised when a binary cannot be removed from the object store."""
    pass


class DatabaseError(AppError):
    """Raised when a database operation fails."""
    pass


class PersistenceError(DatabaseError):
    """Raised when a receipt record cannot be written."""
    pass


class CompensationError(AppError):
    """Raised when undoing a partial ingestion fails.

    Only ever logged; never reported in place of the error that triggered it.
    """

    def __init__(self, message: str, storage_path: str, original_error: Exception = None):
        super().__init__(message, original_error=original_error)
        self.storage_path = storage_path


class ReceiptNotFoundError(AppError):
    """Raised when a receipt does not exist or belongs to another owner."""
    pass
