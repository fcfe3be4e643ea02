"""
DTOs de la API de sincronización bexio -> Supabase.

El contrato JSON usa camelCase (`totalRecords`) porque lo consume el
scheduler y el dashboard existentes; internamente los campos son snake_case.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class EntityResultDTO(BaseModel):
    """Resultado de una entidad dentro de una corrida."""

    entity: str
    status: str = Field(..., description="success | error")
    records: int = Field(0, ge=0, description="Registros escritos en Supabase")
    duration: str = Field(..., description="Duración formateada, ej. '1.2s'")
    error: Optional[str] = None


class SyncResponseDTO(BaseModel):
    """Respuesta de `GET|POST /api/v1/sync`."""

    status: str = Field(..., description="success | partial | error")
    total_records: int = Field(0, alias="totalRecords")
    duration: str
    timestamp: str
    details: List[EntityResultDTO] = Field(default_factory=list)
    error: Optional[str] = None

    class Config:
        populate_by_name = True


class SyncEntitiesResponseDTO(BaseModel):
    """Entidades registradas, fases y modos disponibles."""

    entities: List[str]
    phases: Dict[str, List[str]]
    modes: Dict[str, List[str]]
    default_scope: List[str]
