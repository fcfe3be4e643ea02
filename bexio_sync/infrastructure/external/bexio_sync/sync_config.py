"""
Configuración declarativa del sync (mapeo bexio -> Supabase).

La idea es que aquí tengas control de:
- endpoint origen en bexio
- tabla destino en Supabase
- transformación (función pura item -> fila)

Este módulo no realiza I/O: solo define configuración.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Union

from .types import RawItem, Record, Transform

ChildTransform = Callable[[RawItem, RawItem], Record]
ParentFilter = Callable[[RawItem], bool]


def _accept_all(_: RawItem) -> bool:
    return True


@dataclass(frozen=True)
class EntitySyncConfig:
    """
    Config de un endpoint bexio -> una tabla Supabase.

    NOTA sobre el PK:
    - La transformación debe producir siempre el mismo `id` para el mismo item
      de bexio; si no, se acumulan duplicados en destino.
    - `on_conflict` solo hace falta si la tabla se identifica por otra columna.
    """

    name: str
    path: str
    table: str
    transform: Transform
    params: Optional[dict[str, Any]] = None
    on_conflict: Optional[str] = None


@dataclass(frozen=True)
class DependentEntitySyncConfig:
    """
    Entidad que se enumera por cada item de otra entidad (p.ej. pagos por factura).

    `child_path_template` recibe el id del padre: "/2.0/kb_invoice/{id}/payment".
    El fallo de un padre individual se registra y se omite sin abortar la entidad.
    """

    name: str
    parent_entity: str
    parent_path: str
    child_path_template: str
    table: str
    transform: ChildTransform
    parent_filter: ParentFilter = field(default=_accept_all)
    on_conflict: Optional[str] = None

    def child_path(self, parent: RawItem) -> str:
        return self.child_path_template.format(id=parent["id"])


AnyEntitySyncConfig = Union[EntitySyncConfig, DependentEntitySyncConfig]
