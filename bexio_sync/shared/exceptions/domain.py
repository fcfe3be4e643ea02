"""
Excepciones relacionadas con la resolución y ejecución de corridas de sync.
"""
from typing import List

from bexio_sync.shared.exceptions.base import AppException


class DomainException(AppException):
    """Excepción base para errores de petición (400)."""

    def __init__(self, message: str, error_code: str = "DOMAIN_ERROR", details=None):
        super().__init__(
            message=message,
            status_code=400,
            error_code=error_code,
            details=details
        )


class UnknownEntityException(DomainException):
    """Excepción cuando se pide una entidad que no está registrada."""

    def __init__(self, entity: str, valid_entities: List[str]):
        super().__init__(
            message=f"Entidad desconocida: '{entity}'",
            error_code="UNKNOWN_ENTITY",
            details={
                "entity_provided": entity,
                "valid_entities": valid_entities
            }
        )


class UnknownModeException(DomainException):
    """Excepción cuando se pide un modo de corrida que no existe."""

    def __init__(self, mode: str, valid_modes: List[str]):
        super().__init__(
            message=f"Modo desconocido: '{mode}'",
            error_code="UNKNOWN_MODE",
            details={
                "mode_provided": mode,
                "valid_modes": valid_modes
            }
        )


class ConfigurationException(AppException):
    """Excepción cuando falta configuración obligatoria (credenciales)."""

    def __init__(self, message: str, missing: List[str] = None):
        super().__init__(
            message=message,
            status_code=500,
            error_code="MISSING_CONFIGURATION",
            details={"missing": missing} if missing else None
        )


class SyncAlreadyRunningException(AppException):
    """Excepcion cuando ya hay una corrida en curso y las corridas se serializan."""

    def __init__(self, timeout: float):
        super().__init__(
            message="Ya hay una sincronizacion en curso",
            status_code=409,
            error_code="SYNC_ALREADY_RUNNING",
            details={"lock_timeout_s": timeout}
        )
