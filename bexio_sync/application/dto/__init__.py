"""
Data Transfer Objects (DTOs) para la capa de aplicacion.
"""
from .sync_dto import EntityResultDTO, SyncEntitiesResponseDTO, SyncResponseDTO

__all__ = [
    "EntityResultDTO",
    "SyncEntitiesResponseDTO",
    "SyncResponseDTO",
]
