"""
Middleware para manejo centralizado de errores.
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from loguru import logger

from bexio_sync.infrastructure.external.bexio_sync.types import isoformat_z, utc_now


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Middleware para capturar y manejar errores de forma centralizada."""

    async def dispatch(self, request: Request, call_next):
        """
        Procesa la petición y captura errores no manejados.

        Args:
            request: Petición HTTP
            call_next: Siguiente middleware/handler

        Returns:
            Response: Respuesta HTTP
        """
        try:
            response = await call_next(request)
            return response
        except Exception as exc:
            logger.opt(exception=exc).error(f"Error no manejado en {request.method} {request.url.path}: {exc}")

            # Respuesta de error generica, con la misma forma que las corridas fallidas
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "status": "error",
                    "error": "Ha ocurrido un error interno del servidor",
                    "code": "INTERNAL_SERVER_ERROR",
                    "timestamp": isoformat_z(utc_now()),
                }
            )
