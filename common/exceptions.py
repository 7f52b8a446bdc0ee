"""
Comanda - Custom Exceptions
============================
Business-level exceptions that can be caught and converted to HTTP responses.
"""

from fastapi import HTTPException, status


class ComandaError(Exception):
    """Base exception for all business logic errors."""
    def __init__(self, message: str = "Ocurrió un error en el sistema."):
        self.message = message
        super().__init__(self.message)


class ValidationError(ComandaError):
    """Raised before any write when the request itself is invalid."""
    pass


class NotFoundError(ComandaError):
    """Raised when a requested resource doesn't exist."""
    pass


class PersistenceError(ComandaError):
    """Raised when a database read/write fails. Local state is left untouched."""
    pass


class ConcurrencyError(ComandaError):
    """Raised when a version-checked write keeps losing to a concurrent writer."""
    def __init__(self, message: str = "El pedido fue modificado por otra persona. Intente de nuevo."):
        super().__init__(message)


class AuthorizationError(ComandaError):
    """Raised when the staff identity is missing, unknown or inactive."""
    pass


_STATUS_BY_ERROR = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConcurrencyError, status.HTTP_409_CONFLICT),
    (AuthorizationError, status.HTTP_401_UNAUTHORIZED),
    (PersistenceError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def http_status_for(error: ComandaError) -> int:
    return next(
        (code for cls, code in _STATUS_BY_ERROR if isinstance(error, cls)),
        status.HTTP_400_BAD_REQUEST,
    )


def raise_http(error: ComandaError, status_code: int = None):
    """Convert a business exception to an HTTP exception."""
    if status_code is None:
        status_code = http_status_for(error)
    raise HTTPException(status_code=status_code, detail=error.message)
