"""
Excepciones relacionadas con autorización.
"""
from bexio_sync.shared.exceptions.base import AppException


class UnauthorizedException(AppException):
    """Excepción para disparos de sync sin el secreto correcto."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(
            message=message,
            status_code=401,
            error_code="UNAUTHORIZED"
        )
