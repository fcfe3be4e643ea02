"""
SyncAuditLogger - Traza de auditoría de las corridas de sync.

Escribe una fila en `sync_log` por cada entidad sincronizada y una por cada
corrida completa (entidades sintéticas `full_sync` / `sync_<modo>`).

Regla principal: la auditoría nunca es la causa de que falle un sync. Cualquier
error al escribir se reporta por loguru y se descarta.
"""
from __future__ import annotations

from typing import Any, Dict, Optional, Protocol

from loguru import logger

from bexio_sync.infrastructure.external.bexio_sync.types import (
    EntityResult,
    RunResult,
    isoformat_z,
)


class RowWriter(Protocol):
    def upsert_rows(self, table: str, rows: Any, *, on_conflict: Optional[str] = None) -> int:
        ...


class SyncAuditLogger:
    """
    Gestor de la tabla de auditoría.

    Uso:
        audit = SyncAuditLogger(repository)
        audit.log_entity(entity_result)
        audit.log_run(run_result)
    """

    DEFAULT_TABLE = "sync_log"

    def __init__(self, writer: RowWriter, table: str = DEFAULT_TABLE) -> None:
        self._writer = writer
        self._table = table

    @property
    def table(self) -> str:
        return self._table

    def log_entity(self, result: EntityResult) -> None:
        """Registra el resultado de una entidad."""
        self._write({
            "entity": result.entity,
            "status": result.status,
            "records_fetched": result.fetched,
            "records_upserted": result.records,
            "duration_ms": int(round(result.duration_s * 1000)),
            "error_message": result.error,
            "started_at": isoformat_z(result.started_at),
            "finished_at": isoformat_z(result.finished_at),
        })

    def log_run(self, run: RunResult) -> None:
        """
        Registra la corrida completa.

        error_message lista las entidades fallidas (o null si no hubo).
        """
        failed = run.failed_entities
        self._write({
            "entity": run.run_name,
            "status": run.status,
            "records_fetched": sum(r.fetched for r in run.details),
            "records_upserted": run.total_records,
            "duration_ms": int(round(run.duration_s * 1000)),
            "error_message": ", ".join(failed) if failed else None,
            "started_at": isoformat_z(run.started_at),
            "finished_at": isoformat_z(run.finished_at),
        })

    def _write(self, row: Dict[str, Any]) -> None:
        try:
            self._writer.upsert_rows(self._table, [row])
        except Exception as e:
            logger.warning(f"No se pudo escribir auditoría de '{row['entity']}' en {self._table}: {e}")
