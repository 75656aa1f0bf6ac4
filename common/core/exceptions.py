class AppException(Exception):
    """Base application exception."""

    code = "internal"


class NotFoundError(AppException):
    """Resource not found exception."""

    code = "not_found"


class ValidationError(AppException):
    """Validation error exception."""

    code = "bad_request"


class ConflictError(AppException):
    """Operation conflicts with existing state."""

    code = "conflict"


class StorageError(AppException):
    """Storage operation error exception."""

    code = "internal"
