class AppException(Exception):
    """Base application exception."""

    pass


class NotFoundError(AppException):
    """Resource not found exception."""

    pass


class ValidationError(AppException):
    """Validation error exception."""

    pass


class StorageError(AppException):
    """The database rejected or failed an operation; callers may retry."""

    pass


class ExternalServiceError(AppException):
    """An external collaborator (gateway, voice platform) failed or timed out."""

    pass
