"""
Lock de corrida de sync.

Motivacion:
- Un trigger manual y el cron pueden solaparse.
- Los UPSERT idempotentes hacen que dos corridas simultaneas sean seguras,
  pero duplican requests a bexio (rate limit compartido) y filas de auditoria.
- Se activa con SYNC_SERIALIZE_RUNS; por defecto las corridas no se serializan.

Caracteristicas:
- Un lock por nombre (por defecto uno global para todo el proceso)
- Timeout configurable para no dejar requests colgados
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator

from loguru import logger


DEFAULT_LOCK_TIMEOUT = 5.0
GLOBAL_LOCK_NAME = "bexio_sync"


class SyncRunLockTimeoutError(Exception):
    """Excepcion lanzada cuando no se puede adquirir el lock dentro del timeout."""

    def __init__(self, name: str, timeout: float):
        self.name = name
        self.timeout = timeout
        super().__init__(
            f"Timeout ({timeout}s) esperando el lock de sync '{name}': hay otra corrida en curso"
        )


class SyncRunLock:
    """
    Gestor de locks por nombre.

    Implementacion:
    - Usa `threading.Lock` porque la corrida se ejecuta en un thread
      (asyncio.to_thread desde el endpoint, o el hilo principal del CLI).
    """

    _locks: Dict[str, threading.Lock] = {}
    _meta_lock = threading.Lock()

    @classmethod
    def _get_or_create_lock(cls, name: str) -> threading.Lock:
        with cls._meta_lock:
            lock = cls._locks.get(name)
            if lock is None:
                lock = threading.Lock()
                cls._locks[name] = lock
            return lock

    @classmethod
    @contextmanager
    def hold(cls, name: str = GLOBAL_LOCK_NAME, timeout: float = DEFAULT_LOCK_TIMEOUT) -> Iterator[None]:
        """
        Context manager que serializa corridas con el mismo nombre.

        Raises:
            SyncRunLockTimeoutError: si no se adquiere el lock dentro del timeout.
                Con timeout <= 0 no espera: falla si el lock esta tomado.

        Ejemplo:
            with SyncRunLock.hold(timeout=5):
                service.run_entities(names)
        """
        lock = cls._get_or_create_lock(name)
        if timeout and timeout > 0:
            acquired = lock.acquire(timeout=timeout)
        else:
            acquired = lock.acquire(blocking=False)
        if not acquired:
            logger.warning(f"Lock de sync '{name}' ocupado tras {timeout}s")
            raise SyncRunLockTimeoutError(name, timeout)

        try:
            yield
        finally:
            lock.release()

    @classmethod
    def is_locked(cls, name: str = GLOBAL_LOCK_NAME) -> bool:
        with cls._meta_lock:
            lock = cls._locks.get(name)
            return bool(lock and lock.locked())
