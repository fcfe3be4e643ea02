"""
Tests unitarios para SyncAuditLogger.

La auditoría nunca debe romper una corrida: los errores de escritura se
registran y se descartan.
"""
from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock

from bexio_sync.infrastructure.external.bexio_sync.supabase_repository import SupabaseRestRepository
from bexio_sync.infrastructure.external.bexio_sync.types import EntityResult, RunResult
from bexio_sync.shared.utils.audit_logger import SyncAuditLogger


START = datetime(2025, 3, 1, 5, 0, 0, tzinfo=timezone.utc)
END = datetime(2025, 3, 1, 5, 0, 2, 500000, tzinfo=timezone.utc)


def _entity(name: str, status: str = "success", records: int = 3, error: str | None = None) -> EntityResult:
    return EntityResult(
        entity=name,
        status=status,
        records=records,
        fetched=records,
        duration_s=2.5,
        started_at=START,
        finished_at=END,
        error=error,
    )


def _audit(backend) -> SyncAuditLogger:
    repo = SupabaseRestRepository(backend.supabase_url, "service-key", session=backend)
    return SyncAuditLogger(repo)


def test_log_entity_writes_one_row(fake_backend) -> None:
    _audit(fake_backend).log_entity(_entity("contacts"))

    assert fake_backend.rows("sync_log") == [{
        "entity": "contacts",
        "status": "success",
        "records_fetched": 3,
        "records_upserted": 3,
        "duration_ms": 2500,
        "error_message": None,
        "started_at": "2025-03-01T05:00:00.000Z",
        "finished_at": "2025-03-01T05:00:02.500Z",
    }]


def test_log_entity_keeps_error_message(fake_backend) -> None:
    _audit(fake_backend).log_entity(_entity("bills", status="error", records=0, error="Supabase bills -> 500"))

    row = fake_backend.rows("sync_log")[0]
    assert row["status"] == "error"
    assert row["error_message"] == "Supabase bills -> 500"


def test_log_run_lists_failed_entities(fake_backend) -> None:
    run = RunResult(
        run_name="full_sync",
        status="partial",
        total_records=6,
        duration_s=7.0,
        started_at=START,
        finished_at=END,
        details=(
            _entity("invoices"),
            _entity("quotes", status="error", records=0, error="boom"),
            _entity("orders"),
            _entity("bills", status="error", records=0, error="boom"),
        ),
    )

    _audit(fake_backend).log_run(run)

    row = fake_backend.rows("sync_log")[0]
    assert row["entity"] == "full_sync"
    assert row["status"] == "partial"
    assert row["records_upserted"] == 6
    assert row["duration_ms"] == 7000
    assert row["error_message"] == "quotes, bills"


def test_log_run_without_failures_has_null_error(fake_backend) -> None:
    run = RunResult("sync_reference", "success", 3, 1.0, START, END, details=(_entity("currencies"),))

    _audit(fake_backend).log_run(run)

    assert fake_backend.rows("sync_log")[0]["error_message"] is None


def test_custom_table(fake_backend) -> None:
    repo = SupabaseRestRepository(fake_backend.supabase_url, "service-key", session=fake_backend)
    SyncAuditLogger(repo, table="bexio_sync_log").log_entity(_entity("taxes"))

    assert len(fake_backend.rows("bexio_sync_log")) == 1
    assert fake_backend.rows("sync_log") == []


def test_write_failure_is_swallowed(fake_backend) -> None:
    fake_backend.fail_table("sync_log", status=503)

    # No debe propagar
    _audit(fake_backend).log_entity(_entity("contacts"))

    assert fake_backend.rows("sync_log") == []


def test_writer_exception_is_swallowed() -> None:
    writer = MagicMock()
    writer.upsert_rows.side_effect = ConnectionError("network down")

    SyncAuditLogger(writer).log_entity(_entity("contacts"))

    writer.upsert_rows.assert_called_once()
