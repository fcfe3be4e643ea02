"""
Tipos y utilidades puras para el pipeline bexio -> Supabase.

Se mantienen libres de I/O para poder testearlos fácilmente.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional

RawItem = Mapping[str, Any]
Record = dict[str, Any]
Transform = Callable[[RawItem], Record]

STATUS_SUCCESS = "success"
STATUS_PARTIAL = "partial"
STATUS_ERROR = "error"


def utc_now() -> datetime:
    """Retorna la hora actual en UTC, como datetime aware."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Normaliza datetime a UTC (aware)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def isoformat_z(dt: datetime) -> str:
    """Serializa datetime a ISO8601 con 'Z' (UTC), precision de milisegundos."""
    return ensure_utc(dt).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_duration(seconds: float) -> str:
    """Formato usado en las respuestas: '12.3s'."""
    return f"{seconds:.1f}s"


def truncate(text: str, limit: int = 300) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "...[truncated]"


@dataclass(frozen=True)
class SyncContext:
    """
    Credenciales de una corrida. Se crea al invocar y se descarta al terminar.

    Nunca se muta durante la corrida: todos los componentes la comparten por
    referencia.
    """

    bexio_token: str
    supabase_url: str
    supabase_key: str

    def missing_fields(self) -> list[str]:
        names = {
            "bexio_token": "BEXIO_PAT",
            "supabase_url": "SUPABASE_URL",
            "supabase_key": "SUPABASE_SERVICE_KEY",
        }
        return [env for attr, env in names.items() if not getattr(self, attr)]


@dataclass(frozen=True)
class SyncCounts:
    fetched: int
    written: int


@dataclass(frozen=True)
class EntityResult:
    """Resultado inmutable de sincronizar una entidad en una corrida."""

    entity: str
    status: str
    records: int
    duration_s: float
    started_at: datetime
    finished_at: datetime
    fetched: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_SUCCESS

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "entity": self.entity,
            "status": self.status,
            "records": self.records,
            "duration": format_duration(self.duration_s),
        }
        if self.error is not None:
            data["error"] = self.error
        return data


def aggregate_status(results: list[EntityResult] | tuple[EntityResult, ...]) -> str:
    """
    Estado global de una corrida:
    - success: todas las entidades OK (o no hubo entidades)
    - partial: al menos una falló y al menos una terminó bien
    - error: fallaron todas
    """
    if not results:
        return STATUS_SUCCESS
    failed = sum(1 for r in results if not r.ok)
    if failed == 0:
        return STATUS_SUCCESS
    if failed == len(results):
        return STATUS_ERROR
    return STATUS_PARTIAL


@dataclass(frozen=True)
class RunResult:
    """Agregado de todos los EntityResult de una invocación."""

    run_name: str
    status: str
    total_records: int
    duration_s: float
    started_at: datetime
    finished_at: datetime
    details: tuple[EntityResult, ...] = ()

    @property
    def failed_entities(self) -> list[str]:
        return [r.entity for r in self.details if not r.ok]

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "status": self.status,
            "totalRecords": self.total_records,
            "duration": format_duration(self.duration_s),
            "timestamp": isoformat_z(self.finished_at),
            "details": [r.to_dict() for r in self.details],
        }
        if len(self.details) == 1 and not self.details[0].ok:
            # Entidad única: se expone la causa real
            data["error"] = self.details[0].error
        elif self.failed_entities:
            data["error"] = "Entidades con error: " + ", ".join(self.failed_entities)
        return data


@dataclass
class RunCache:
    """
    Cache acotado de colecciones ya paginadas, con vida de una sola corrida.

    Lo crea y descarta el orquestador; nunca es estado global del proceso.
    """

    max_entries: int = 16
    _items: "OrderedDict[str, list[dict[str, Any]]]" = field(default_factory=OrderedDict)

    def get(self, key: str) -> Optional[list[dict[str, Any]]]:
        items = self._items.get(key)
        if items is not None:
            self._items.move_to_end(key)
        return items

    def put(self, key: str, items: list[dict[str, Any]]) -> None:
        self._items[key] = items
        self._items.move_to_end(key)
        while len(self._items) > self.max_entries:
            self._items.popitem(last=False)

    def __len__(self) -> int:
        return len(self._items)
