"""
Manejadores de eventos de inicio y cierre de la aplicacion.
"""
from typing import Callable
from fastapi import FastAPI
from loguru import logger

from bexio_sync.core.config import settings
from bexio_sync.infrastructure.external.bexio_sync.entity_mappings import ENTITY_SYNCS


def startup_handler(app: FastAPI) -> Callable:
    """
    Manejador de eventos de inicio de la aplicacion.

    Args:
        app: Instancia de FastAPI

    Returns:
        Callable: Funcion asincrona de inicio
    """
    async def startup() -> None:
        """Inicializa recursos al inicio de la aplicacion."""
        try:
            logger.info(f"Iniciando {settings.APP_NAME} v{settings.APP_VERSION}")
            logger.info(f"Entorno: {settings.ENVIRONMENT}")

            # Validar configuracion critica
            _validate_config()

            # Configurar logging adicional
            logger.add(
                settings.LOG_FILE,
                rotation="500 MB",
                retention="10 days",
                level=settings.LOG_LEVEL
            )

            logger.info(f"Entidades registradas para sync: {len(ENTITY_SYNCS)}")
            logger.success("Aplicacion iniciada correctamente")

            # Mostrar URLs disponibles
            _print_available_urls()

        except Exception as e:
            logger.error(f"Error durante startup: {e}")
            logger.exception("Detalle del error:")
            raise

    return startup


def _validate_config() -> None:
    """Valida que la configuracion critica este presente."""
    warnings = []

    if not settings.BEXIO_PAT:
        warnings.append("BEXIO_PAT no configurado - las corridas responderan 500")
    if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_KEY:
        warnings.append("SUPABASE_URL / SUPABASE_SERVICE_KEY no configurados - las corridas responderan 500")
    if not settings.CRON_SECRET:
        warnings.append("CRON_SECRET vacio - toda invocacion de sync sera rechazada (401)")
    if settings.SYNC_UNKNOWN_ENTITY_POLICY.strip().lower() not in ("reject", "fallback"):
        warnings.append(
            f"SYNC_UNKNOWN_ENTITY_POLICY='{settings.SYNC_UNKNOWN_ENTITY_POLICY}' no reconocida - se usa 'reject'"
        )

    # Mostrar advertencias
    for warning in warnings:
        logger.warning(f"CONFIG: {warning}")


def _print_available_urls() -> None:
    """Imprime las URLs disponibles de la aplicacion."""
    # Determinar la URL base de acceso
    if settings.HOST == "0.0.0.0":
        access_host = "localhost"
    else:
        access_host = settings.HOST

    base_url = f"http://{access_host}:{settings.PORT}"

    logger.opt(colors=True).info("<bold><green>" + "=" * 80 + "</green></bold>")
    logger.opt(colors=True).info("<bold><green>URLS DISPONIBLES:</green></bold>")
    logger.opt(colors=True).info("<bold><green>" + "=" * 80 + "</green></bold>")
    logger.opt(colors=True).info(f"<cyan>  Swagger UI:  {base_url}/docs</cyan>")
    logger.opt(colors=True).info(f"<cyan>  Sync:        {base_url}/api/v1/sync</cyan>")
    logger.opt(colors=True).info(f"<cyan>  Entidades:   {base_url}/api/v1/sync/entities</cyan>")
    logger.opt(colors=True).info(f"<cyan>  Health:      {base_url}/health</cyan>")
    logger.opt(colors=True).info("<bold><green>" + "=" * 80 + "</green></bold>")


def shutdown_handler(app: FastAPI) -> Callable:
    """
    Manejador de eventos de cierre de la aplicacion.

    Args:
        app: Instancia de FastAPI

    Returns:
        Callable: Funcion asincrona de cierre
    """
    async def shutdown() -> None:
        """Libera recursos al cerrar la aplicacion."""
        logger.info("Cerrando aplicacion...")
        logger.success("Aplicacion cerrada correctamente")

    return shutdown
