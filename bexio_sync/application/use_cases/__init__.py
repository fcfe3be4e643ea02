"""
Casos de uso de la aplicacion.
"""
from .sync_use_cases import SyncPlan, SyncUseCases

__all__ = ["SyncPlan", "SyncUseCases"]
