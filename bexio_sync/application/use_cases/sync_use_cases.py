"""
Casos de uso para disparar la sincronización bexio -> Supabase.

Resuelve qué correr a partir de los parámetros de la petición:
- `entity` conocida -> modo entidad única
- `mode` conocido -> subconjunto agrupado (auditado como `sync_<modo>`)
- nada -> corrida por defecto (auditada como `full_sync`)

La autorización se valida antes de llegar aquí (endpoint / CLI).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import requests
from loguru import logger

from bexio_sync.core.config import Settings, settings as default_settings
from bexio_sync.infrastructure.external.bexio_sync.entity_mappings import (
    DEFAULT_RUN_NAME,
    DEFAULT_SCOPE,
    ENTITY_SYNCS,
    MODES,
    PHASES,
    run_name_for_mode,
)
from bexio_sync.infrastructure.external.bexio_sync.run_lock import SyncRunLock, SyncRunLockTimeoutError
from bexio_sync.infrastructure.external.bexio_sync.sync_service import (
    BexioToSupabaseSync,
    SyncConfigError,
    build_from_context,
)
from bexio_sync.infrastructure.external.bexio_sync.types import STATUS_ERROR, RunResult, SyncContext
from bexio_sync.shared.exceptions.domain import (
    ConfigurationException,
    SyncAlreadyRunningException,
    UnknownEntityException,
    UnknownModeException,
)


@dataclass(frozen=True)
class SyncPlan:
    """Qué entidades correr y con qué nombre auditar la corrida."""

    entities: Tuple[str, ...]
    run_name: str
    single: bool = False


class SyncUseCases:
    """
    Punto de entrada de aplicación para una invocación de sync.

    Uso:
        use_cases = SyncUseCases()
        body, status_code = use_cases.execute(entity="contacts")
    """

    def __init__(
        self,
        app_settings: Optional[Settings] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.settings = app_settings or default_settings
        self._session = session

    def resolve(self, entity: Optional[str] = None, mode: Optional[str] = None) -> SyncPlan:
        """
        Resuelve los parámetros de la petición a un SyncPlan.

        Raises:
            UnknownEntityException: entidad no registrada (política `reject`)
            UnknownModeException: modo no registrado
        """
        entity = (entity or "").strip()
        mode = (mode or "").strip()

        if entity:
            if entity in ENTITY_SYNCS:
                return SyncPlan(entities=(entity,), run_name=entity, single=True)
            if not self.settings.unknown_entity_fallback:
                raise UnknownEntityException(entity, sorted(ENTITY_SYNCS))
            logger.warning(f"Entidad desconocida '{entity}': se ejecuta la corrida por defecto")
            return SyncPlan(entities=DEFAULT_SCOPE, run_name=DEFAULT_RUN_NAME)

        if mode:
            if mode not in MODES:
                raise UnknownModeException(mode, sorted(MODES))
            return SyncPlan(entities=MODES[mode], run_name=run_name_for_mode(mode))

        return SyncPlan(entities=DEFAULT_SCOPE, run_name=DEFAULT_RUN_NAME)

    def build_context(self) -> SyncContext:
        """
        Arma el SyncContext de la corrida desde la configuración.

        Raises:
            ConfigurationException: si falta alguna credencial obligatoria
        """
        context = SyncContext(
            bexio_token=self.settings.BEXIO_PAT,
            supabase_url=self.settings.SUPABASE_URL,
            supabase_key=self.settings.SUPABASE_SERVICE_KEY,
        )
        missing = context.missing_fields()
        if missing:
            logger.error(f"Configuración incompleta para sync: faltan {', '.join(missing)}")
            raise ConfigurationException(
                f"Missing configuration: {', '.join(missing)}",
                missing=missing,
            )
        return context

    def build_service(self, context: SyncContext) -> BexioToSupabaseSync:
        s = self.settings
        try:
            return build_from_context(
                context,
                bexio_base_url=s.BEXIO_API_URL,
                page_size=s.BEXIO_PAGE_SIZE,
                request_delay_s=s.BEXIO_REQUEST_DELAY_S,
                bexio_timeout_s=s.BEXIO_TIMEOUT_S,
                max_pages=s.BEXIO_MAX_PAGES,
                batch_size=s.UPSERT_BATCH_SIZE,
                log_table=s.SYNC_LOG_TABLE,
                session=self._session,
            )
        except SyncConfigError as e:
            raise ConfigurationException(str(e)) from e

    def run(self, entity: Optional[str] = None, mode: Optional[str] = None) -> RunResult:
        """
        Ejecuta una corrida completa (bloqueante).

        Orden: configuración -> resolución de parámetros -> lock (opcional) -> sync.
        """
        context = self.build_context()
        plan = self.resolve(entity, mode)
        service = self.build_service(context)

        if not self.settings.SYNC_SERIALIZE_RUNS:
            return self._run_plan(service, plan)

        try:
            with SyncRunLock.hold(timeout=self.settings.SYNC_LOCK_TIMEOUT_S):
                return self._run_plan(service, plan)
        except SyncRunLockTimeoutError as e:
            raise SyncAlreadyRunningException(e.timeout) from e

    def execute(self, entity: Optional[str] = None, mode: Optional[str] = None) -> Tuple[Dict[str, Any], int]:
        """
        Ejecuta la corrida y la traduce a (cuerpo JSON, status HTTP).

        200 para success/partial, 500 si la corrida terminó en error.
        """
        run = self.run(entity, mode)
        status_code = 500 if run.status == STATUS_ERROR else 200
        return run.to_dict(), status_code

    def list_entities(self) -> Dict[str, Any]:
        return {
            "entities": list(ENTITY_SYNCS),
            "phases": {phase: list(names) for phase, names in PHASES},
            "modes": {mode: list(names) for mode, names in MODES.items()},
            "default_scope": list(DEFAULT_SCOPE),
        }

    @staticmethod
    def _run_plan(service: BexioToSupabaseSync, plan: SyncPlan) -> RunResult:
        if plan.single:
            return service.run_entity(plan.entities[0])
        return service.run_entities(plan.entities, run_name=plan.run_name)
