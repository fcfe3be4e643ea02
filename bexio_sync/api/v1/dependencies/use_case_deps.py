"""
Dependencias para inyeccion de casos de uso.
"""
from typing import Optional

from fastapi import Depends, Header, Query
from loguru import logger

from bexio_sync.application.use_cases.sync_use_cases import SyncUseCases
from bexio_sync.core.security import verify_sync_secret
from bexio_sync.shared.exceptions.auth import UnauthorizedException


def get_sync_use_cases() -> SyncUseCases:
    """
    Dependencia para obtener los casos de uso de sincronizacion.

    Returns:
        SyncUseCases: Instancia configurada con los settings globales
    """
    return SyncUseCases()


def require_sync_secret(
    authorization: Optional[str] = Header(default=None),
    key: Optional[str] = Query(default=None, description="Secreto compartido (alternativa al header)"),
    use_cases: SyncUseCases = Depends(get_sync_use_cases),
) -> SyncUseCases:
    """
    Autoriza la invocacion antes de cualquier llamada a bexio o Supabase.

    Raises:
        UnauthorizedException: si ni el header ni `key` coinciden con CRON_SECRET
    """
    if not verify_sync_secret(authorization, key, use_cases.settings.CRON_SECRET):
        logger.warning("Invocacion de sync rechazada: secreto ausente o invalido")
        raise UnauthorizedException()
    return use_cases
