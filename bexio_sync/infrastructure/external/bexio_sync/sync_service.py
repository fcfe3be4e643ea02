"""
Servicio de sincronización bexio -> Supabase.

Diseño (resumen):
- Cada entidad: pagina bexio -> transforma cada item -> UPSERT por id en lotes
- Las entidades corren en secuencia, ordenadas por fase (referencia antes que
  transaccionales, transaccionales antes que dependientes)
- El fallo de una entidad se captura en su frontera y se convierte en un
  EntityResult con error; la corrida sigue con la siguiente
- Cada entidad y cada corrida dejan una fila en sync_log

Estrategia de idempotencia:
- UPSERT con merge por PK: re-ejecutar una entidad (o la corrida completa)
  nunca duplica filas; los lotes ya escritos de un intento fallido se vuelven
  a escribir con los mismos valores.
"""

from __future__ import annotations

import time
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, Optional

import requests
from loguru import logger

from bexio_sync.shared.utils.audit_logger import SyncAuditLogger

from .bexio_client import BexioApiError, BexioClient, BexioCredentials, DEFAULT_BASE_URL
from .entity_mappings import DEFAULT_RUN_NAME, ENTITY_SYNCS, PHASES, phase_order
from .supabase_repository import DEFAULT_BATCH_SIZE, SupabaseRestRepository
from .sync_config import AnyEntitySyncConfig, DependentEntitySyncConfig, EntitySyncConfig
from .types import (
    STATUS_ERROR,
    STATUS_SUCCESS,
    EntityResult,
    Record,
    RunCache,
    RunResult,
    SyncContext,
    SyncCounts,
    aggregate_status,
    isoformat_z,
    utc_now,
)


class SyncConfigError(RuntimeError):
    """Error de configuración del pipeline."""


class EntitySyncRunner:
    """
    Ejecuta la forma común de una entidad: fetch -> transform -> upsert.

    No captura errores: eso lo hace el orquestador en la frontera de la entidad.
    """

    def __init__(self, *, bexio: BexioClient, repository: SupabaseRestRepository) -> None:
        self._bexio = bexio
        self._repo = repository

    def run(
        self,
        config: AnyEntitySyncConfig,
        *,
        cache: RunCache,
        synced_at: datetime,
    ) -> SyncCounts:
        if isinstance(config, DependentEntitySyncConfig):
            return self._run_dependent(config, cache=cache, synced_at=synced_at)
        return self._run_simple(config, cache=cache, synced_at=synced_at)

    def _run_simple(self, config: EntitySyncConfig, *, cache: RunCache, synced_at: datetime) -> SyncCounts:
        items = self._fetch(config.path, params=config.params, cache=cache)
        rows = [_stamp(config.transform(item), synced_at) for item in items]
        written = self._repo.upsert_rows(config.table, rows, on_conflict=config.on_conflict)
        return SyncCounts(fetched=len(items), written=written)

    def _run_dependent(
        self,
        config: DependentEntitySyncConfig,
        *,
        cache: RunCache,
        synced_at: datetime,
    ) -> SyncCounts:
        parents = [p for p in self._fetch(config.parent_path, cache=cache) if config.parent_filter(p)]
        logger.info(f"{config.name}: {len(parents)} item(s) de '{config.parent_entity}' a recorrer")

        fetched = 0
        skipped = 0
        rows: list[Record] = []
        for parent in parents:
            try:
                children = self._bexio.fetch_all(config.child_path(parent))
                parent_rows = [_stamp(config.transform(child, parent), synced_at) for child in children]
            except (BexioApiError, requests.RequestException, ValueError, KeyError) as e:
                # Un padre con error no aborta la entidad
                skipped += 1
                logger.warning(
                    f"{config.name}: se omite {config.parent_entity} {parent.get('id')}: "
                    f"{type(e).__name__}: {e}"
                )
                continue
            fetched += len(children)
            rows.extend(parent_rows)

        if skipped:
            logger.warning(f"{config.name}: {skipped} de {len(parents)} item(s) padre omitidos por error")

        written = self._repo.upsert_rows(config.table, rows, on_conflict=config.on_conflict)
        return SyncCounts(fetched=fetched, written=written)

    def _fetch(
        self,
        path: str,
        *,
        cache: RunCache,
        params: Optional[dict[str, Any]] = None,
    ) -> list[dict[str, Any]]:
        # Solo se cachean colecciones sin filtros: la clave es el path
        if params:
            return self._bexio.fetch_all(path, params=params)
        items = cache.get(path)
        if items is None:
            items = self._bexio.fetch_all(path)
            cache.put(path, items)
        else:
            logger.debug(f"Reutilizando {len(items)} item(s) de {path} ya paginados en esta corrida")
        return items


def _stamp(row: Record, synced_at: datetime) -> Record:
    row["synced_at"] = isoformat_z(synced_at)
    return row


class BexioToSupabaseSync:
    """
    Orquestador de la corrida: una entidad, o una lista ordenada por fases.
    """

    def __init__(
        self,
        *,
        bexio: BexioClient,
        repository: SupabaseRestRepository,
        audit: SyncAuditLogger,
        registry: Optional[Mapping[str, AnyEntitySyncConfig]] = None,
        phases: tuple[tuple[str, tuple[str, ...]], ...] = PHASES,
        cache_size: int = 16,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._runner = EntitySyncRunner(bexio=bexio, repository=repository)
        self._audit = audit
        self._registry = dict(registry if registry is not None else ENTITY_SYNCS)
        self._phases = phases
        self._cache_size = cache_size
        self._timer = timer

    @property
    def registry(self) -> Mapping[str, AnyEntitySyncConfig]:
        return self._registry

    def run_entity(self, name: str) -> RunResult:
        """
        Modo entidad única. El RunResult contiene solo ese EntityResult;
        no se escribe fila de corrida en sync_log.
        """
        config = self._get_config(name)
        started_at = utc_now()
        t0 = self._timer()

        result = self._run_isolated(config, cache=RunCache(self._cache_size), synced_at=started_at)

        return RunResult(
            run_name=name,
            status=STATUS_SUCCESS if result.ok else STATUS_ERROR,
            total_records=result.records,
            duration_s=self._timer() - t0,
            started_at=started_at,
            finished_at=utc_now(),
            details=(result,),
        )

    def run_entities(self, names: Iterable[str], *, run_name: str = DEFAULT_RUN_NAME) -> RunResult:
        """
        Modo agrupado: corre las entidades en orden de fases, una tras otra.

        Una entidad fallida nunca aborta la corrida. Al final se escribe una
        fila de auditoría con el nombre sintético `run_name`.
        """
        ordered = phase_order(names, self._phases)
        configs = [self._get_config(n) for n in ordered]

        started_at = utc_now()
        t0 = self._timer()
        cache = RunCache(self._cache_size)
        logger.info(f"Iniciando {run_name}: {', '.join(ordered) or '(sin entidades)'}")

        results: list[EntityResult] = []
        for config in configs:
            results.append(self._run_isolated(config, cache=cache, synced_at=started_at))

        run = RunResult(
            run_name=run_name,
            status=aggregate_status(results),
            total_records=sum(r.records for r in results),
            duration_s=self._timer() - t0,
            started_at=started_at,
            finished_at=utc_now(),
            details=tuple(results),
        )
        self._audit.log_run(run)

        if run.failed_entities:
            logger.warning(
                f"{run_name} terminó con estado '{run.status}': "
                f"{run.total_records} registro(s), con error: {', '.join(run.failed_entities)}"
            )
        else:
            logger.success(f"{run_name} completado: {run.total_records} registro(s) en {run.duration_s:.1f}s")
        return run

    def _get_config(self, name: str) -> AnyEntitySyncConfig:
        try:
            return self._registry[name]
        except KeyError:
            raise KeyError(f"Entidad no registrada: {name}") from None

    def _run_isolated(
        self,
        config: AnyEntitySyncConfig,
        *,
        cache: RunCache,
        synced_at: datetime,
    ) -> EntityResult:
        started_at = utc_now()
        t0 = self._timer()
        try:
            counts = self._runner.run(config, cache=cache, synced_at=synced_at)
        except Exception as e:
            result = EntityResult(
                entity=config.name,
                status=STATUS_ERROR,
                records=0,
                duration_s=self._timer() - t0,
                started_at=started_at,
                finished_at=utc_now(),
                error=str(e),
            )
            logger.error(f"{config.name}: {e}")
        else:
            result = EntityResult(
                entity=config.name,
                status=STATUS_SUCCESS,
                records=counts.written,
                fetched=counts.fetched,
                duration_s=self._timer() - t0,
                started_at=started_at,
                finished_at=utc_now(),
            )
            logger.info(f"{config.name}: {counts.written} registro(s) ({result.duration_s:.1f}s)")

        self._audit.log_entity(result)
        return result


def build_from_context(
    context: SyncContext,
    *,
    bexio_base_url: str = DEFAULT_BASE_URL,
    page_size: int = 500,
    request_delay_s: float = 0.2,
    bexio_timeout_s: int = 30,
    max_pages: int = 1000,
    batch_size: int = DEFAULT_BATCH_SIZE,
    log_table: str = SyncAuditLogger.DEFAULT_TABLE,
    session: Optional[requests.Session] = None,
    registry: Optional[Mapping[str, AnyEntitySyncConfig]] = None,
) -> BexioToSupabaseSync:
    """
    Constructor “oficial” del pipeline a partir del contexto de la corrida.

    Falla antes de cualquier request si falta una credencial.
    """
    missing = context.missing_fields()
    if missing:
        raise SyncConfigError(f"Faltan variables de entorno obligatorias: {', '.join(missing)}")

    bexio = BexioClient(
        BexioCredentials(token=context.bexio_token),
        session=session,
        base_url=bexio_base_url,
        page_size=page_size,
        request_delay_s=request_delay_s,
        timeout_s=bexio_timeout_s,
        max_pages=max_pages,
    )
    repository = SupabaseRestRepository(
        context.supabase_url,
        context.supabase_key,
        session=session,
        batch_size=batch_size,
    )
    audit = SyncAuditLogger(repository, table=log_table)
    return BexioToSupabaseSync(bexio=bexio, repository=repository, audit=audit, registry=registry)
