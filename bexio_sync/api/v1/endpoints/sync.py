"""
Endpoints para sincronizacion bexio -> Supabase.

Los dispara el scheduler (cron diario) o un operador a demanda, siempre con
el secreto compartido como `Authorization: Bearer` o `?key=`.
"""
import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from loguru import logger

from bexio_sync.api.v1.dependencies.use_case_deps import require_sync_secret
from bexio_sync.application.dto.sync_dto import SyncEntitiesResponseDTO, SyncResponseDTO
from bexio_sync.application.use_cases.sync_use_cases import SyncUseCases


router = APIRouter(prefix="/sync", tags=["Sync"])


@router.api_route(
    "",
    methods=["GET", "POST"],
    response_model=SyncResponseDTO,
    summary="Sincronizar bexio con Supabase"
)
async def run_sync(
    entity: Optional[str] = Query(default=None, description="Sincroniza solo esta entidad"),
    mode: Optional[str] = Query(default=None, description="Subconjunto: reference, transactional, payments, all"),
    use_cases: SyncUseCases = Depends(require_sync_secret),
) -> JSONResponse:
    """
    Ejecuta una corrida de sincronizacion.

    - `entity`: modo entidad unica (ej. `contacts`)
    - `mode`: subconjunto agrupado por fases
    - sin parametros: corrida diaria (invoices, quotes, orders, bills). No
      incluye `contacts`; para eso usar `entity=contacts`, `mode=reference`
      o `mode=all`

    Responde 200 para success/partial y 500 si la corrida termino en error.
    """
    scope = entity or mode or "default"
    logger.info(f"Iniciando sincronizacion bexio -> Supabase desde API ({scope})")

    # Ejecutar sync en thread separado para no bloquear el event loop
    body, status_code = await asyncio.to_thread(use_cases.execute, entity, mode)

    dto = SyncResponseDTO.model_validate(body)
    return JSONResponse(
        status_code=status_code,
        content=dto.model_dump(by_alias=True, exclude_none=True),
    )


@router.get(
    "/entities",
    response_model=SyncEntitiesResponseDTO,
    summary="Listar entidades, fases y modos disponibles"
)
async def list_sync_entities(
    use_cases: SyncUseCases = Depends(require_sync_secret),
) -> SyncEntitiesResponseDTO:
    """Retorna el registro de entidades sincronizables."""
    return SyncEntitiesResponseDTO(**use_cases.list_entities())
