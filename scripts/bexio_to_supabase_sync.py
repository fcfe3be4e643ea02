"""
CLI: bexio -> Supabase (one-way sync).

Uso recomendado:
  - Ejecutar como job (cron/systemd timer) cuando no se quiere pasar por la API.
  - Corre en el proceso actual: no aplica CRON_SECRET (el acceso es local).

Variables de entorno requeridas:
  - BEXIO_PAT
  - SUPABASE_URL
  - SUPABASE_SERVICE_KEY

Ejecución:
  python scripts/bexio_to_supabase_sync.py                     # corrida diaria
  python scripts/bexio_to_supabase_sync.py --entity contacts   # una entidad
  python scripts/bexio_to_supabase_sync.py --mode reference    # subconjunto
  python scripts/bexio_to_supabase_sync.py --schema-only
  python scripts/bexio_to_supabase_sync.py --list

Exit code: 0 si la corrida terminó en success, 1 en cualquier otro caso.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from loguru import logger
from dotenv import load_dotenv

# Permite ejecutar este script desde cualquier cwd sin configurar PYTHONPATH.
_PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

# Cargar variables desde .env si existe (antes de importar settings).
load_dotenv(_PROJECT_ROOT / ".env", override=False)

from bexio_sync.application.use_cases.sync_use_cases import SyncUseCases
from bexio_sync.infrastructure.external.bexio_sync.types import STATUS_SUCCESS
from bexio_sync.shared.exceptions.base import AppException


def _read_schema_sql() -> str:
    sql_path = _PROJECT_ROOT / "bexio_sync" / "infrastructure" / "external" / "bexio_sync" / "schema.sql"
    return sql_path.read_text(encoding="utf-8")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sincroniza bexio hacia Supabase")
    scope = parser.add_mutually_exclusive_group()
    scope.add_argument("--entity", help="Sincroniza solo esta entidad (ej. contacts).")
    scope.add_argument("--mode", help="Subconjunto agrupado: reference, transactional, payments, all.")
    parser.add_argument(
        "--schema-only",
        action="store_true",
        help="Solo imprime el DDL de las tablas destino (no ejecuta sync).",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="Lista entidades, fases y modos registrados (no ejecuta sync).",
    )
    return parser


def main(argv: list[str] | None = None, use_cases: SyncUseCases | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.schema_only:
        print(_read_schema_sql())
        return 0

    use_cases = use_cases or SyncUseCases()

    if args.list:
        print(json.dumps(use_cases.list_entities(), indent=2))
        return 0

    logger.info("Iniciando bexio -> Supabase sync...")
    try:
        run = use_cases.run(entity=args.entity, mode=args.mode)
    except AppException as e:
        logger.error(f"No se pudo iniciar la corrida: {e.message}")
        return 1

    print(json.dumps(run.to_dict(), indent=2, ensure_ascii=False))
    if run.status != STATUS_SUCCESS:
        logger.warning(f"Corrida terminada con estado '{run.status}'")
        return 1
    logger.info(f"Sync OK: {run.total_records} registro(s)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
