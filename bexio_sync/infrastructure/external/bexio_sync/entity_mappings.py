"""
Mapeos bexio -> Supabase por entidad.

Este es el punto recomendado para controlar:
- qué columnas existen en Supabase (mantener alineado con `schema.sql`)
- cómo se transforman los valores de bexio
- en qué fase corre cada entidad y qué entidades agrupa cada modo

Reglas para las transformaciones:
- puras y deterministas (el `synced_at` lo agrega el runner, no la transformación)
- totales: un campo opcional ausente se sustituye por un default definido
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional

from .sync_config import AnyEntitySyncConfig, DependentEntitySyncConfig, EntitySyncConfig
from .types import RawItem, Record

UNKNOWN = "unknown"
DEFAULT_CURRENCY_CODE = "CHF"

CUSTOMER_GROUP_ID = 1
SUPPLIER_GROUP_ID = 2

INVOICE_STATUS = {7: "draft", 8: "pending", 9: "paid", 16: "partial", 19: "cancelled"}
QUOTE_STATUS = {1: "draft", 2: "pending", 3: "accepted", 4: "declined"}
ORDER_COMPLETED_STATUS_ID = 6
ACCOUNT_TYPES = {1: "earnings", 2: "expenditure", 3: "active", 4: "passive", 5: "complete"}

# Facturas que pueden tener pagos registrados (paid / partial)
INVOICES_WITH_PAYMENTS = {9, 16}


# ---------------------------------------------------------------------------
# Helpers de coerción
# ---------------------------------------------------------------------------

def to_float(value: Any, default: float = 0.0) -> float:
    """bexio entrega montos como string ("123.45"); None o basura -> default."""
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def to_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def label(mapping: Mapping[int, str], code: Any, default: str = UNKNOWN) -> str:
    return mapping.get(to_int(code), default)


def id_set(value: Any) -> set[int]:
    """contact_group_ids llega como lista o como string "1,2"."""
    if value is None:
        return set()
    if isinstance(value, str):
        parts: Iterable[Any] = value.split(",")
    elif isinstance(value, (list, tuple, set)):
        parts = value
    else:
        parts = [value]
    return {i for i in (to_int(p) for p in parts) if i is not None}


def text_id(value: Any) -> Optional[str]:
    """Ids de texto (UUID o número); un id ausente queda en None para que el upsert lo rechace."""
    return None if value is None else str(value)


def _document_base(d: RawItem) -> Record:
    """Campos comunes de documentos kb_* (facturas, ofertas, pedidos)."""
    return {
        "id": d.get("id"),
        "document_nr": d.get("document_nr"),
        "title": d.get("title"),
        "contact_id": d.get("contact_id"),
        "user_id": d.get("user_id"),
        "is_valid_from": d.get("is_valid_from"),
        "total_gross": to_float(d.get("total_gross")),
        "total_net": to_float(d.get("total_net")),
        "total_taxes": to_float(d.get("total_taxes")),
        "currency_id": d.get("currency_id"),
        "kb_item_status": d.get("kb_item_status_id"),
        "api_reference": d.get("api_reference"),
        "created_at": d.get("created_at"),
        "updated_at": d.get("updated_at"),
    }


# ---------------------------------------------------------------------------
# Datos de referencia
# ---------------------------------------------------------------------------

def transform_currency(d: RawItem) -> Record:
    return {
        "id": d.get("id"),
        "name": d.get("name"),
        "round_factor": to_float(d.get("round_factor"), default=0.01),
    }


def transform_tax(d: RawItem) -> Record:
    return {
        "id": d.get("id"),
        "uuid": d.get("uuid"),
        "name": d.get("name"),
        "code": d.get("code"),
        "display_name": d.get("display_name") or d.get("name"),
        "type": d.get("type"),
        "value": to_float(d.get("value")),
        "net_tax_value": to_float(d.get("net_tax_value")),
        "account_id": d.get("account_id"),
        "start_year": d.get("start_year"),
        "end_year": d.get("end_year"),
        "is_active": bool(d.get("is_active", True)),
    }


def transform_account_group(d: RawItem) -> Record:
    return {
        "id": d.get("id"),
        "account_no": d.get("account_no"),
        "name": d.get("name"),
        "parent_id": d.get("parent_fibu_account_group_id"),
        "is_active": bool(d.get("is_active", True)),
        "is_locked": bool(d.get("is_locked", False)),
    }


def transform_account(d: RawItem) -> Record:
    return {
        "id": d.get("id"),
        "account_no": d.get("account_no"),
        "name": d.get("name"),
        "account_group_id": d.get("fibu_account_group_id"),
        "account_type": label(ACCOUNT_TYPES, d.get("account_type")),
        "tax_id": d.get("tax_id"),
        "is_active": bool(d.get("is_active", True)),
        "is_locked": bool(d.get("is_locked", False)),
    }


def transform_bank_account(d: RawItem) -> Record:
    return {
        "id": d.get("id"),
        "name": d.get("name"),
        "owner": d.get("owner"),
        "iban": d.get("iban_nr") or d.get("iban"),
        "bank_name": d.get("bank_name"),
        "currency_id": d.get("currency_id"),
        "account_id": d.get("account_id"),
        "type": d.get("type"),
        "remarks": d.get("remarks"),
    }


# ---------------------------------------------------------------------------
# Datos maestros
# ---------------------------------------------------------------------------

def transform_contact(d: RawItem) -> Record:
    groups = id_set(d.get("contact_group_ids"))
    return {
        "id": d.get("id"),
        "nr": d.get("nr"),
        "contact_type": d.get("contact_type_id"),
        "name_1": d.get("name_1"),
        "name_2": d.get("name_2"),
        "email": d.get("mail"),
        "phone": d.get("phone_fixed"),
        "address": d.get("address"),
        "postcode": d.get("postcode"),
        "city": d.get("city"),
        "country_id": d.get("country_id"),
        "is_customer": CUSTOMER_GROUP_ID in groups,
        "is_supplier": SUPPLIER_GROUP_ID in groups,
        "owner_id": d.get("user_id"),
        "updated_at": d.get("updated_at"),
    }


def transform_employee(d: RawItem) -> Record:
    return {
        "id": text_id(d.get("id")),
        "first_name": d.get("first_name"),
        "last_name": d.get("last_name"),
        "email": d.get("email"),
        "employee_number": d.get("employee_number") or d.get("personal_number"),
        "entry_date": d.get("entry_date") or d.get("start_date"),
        "exit_date": d.get("exit_date") or d.get("end_date"),
        "is_active": bool(d.get("is_active", True)),
    }


# ---------------------------------------------------------------------------
# Datos transaccionales
# ---------------------------------------------------------------------------

def transform_invoice(d: RawItem) -> Record:
    row = _document_base(d)
    row.update({
        "status": label(INVOICE_STATUS, d.get("kb_item_status_id")),
        "is_valid_to": d.get("is_valid_to"),
        "total_received": to_float(d.get("total_received_payments")),
        "currency_code": d.get("currency_code") or DEFAULT_CURRENCY_CODE,
    })
    return row


def transform_quote(d: RawItem) -> Record:
    row = _document_base(d)
    row.update({
        "status": label(QUOTE_STATUS, d.get("kb_item_status_id")),
        "is_valid_to": d.get("is_valid_to"),
    })
    return row


def transform_order(d: RawItem) -> Record:
    row = _document_base(d)
    completed = to_int(d.get("kb_item_status_id")) == ORDER_COMPLETED_STATUS_ID
    row["status"] = "completed" if completed else "open"
    return row


def transform_bill(d: RawItem) -> Record:
    return {
        "id": text_id(d.get("id")),
        "document_nr": d.get("document_nr"),
        "title": d.get("title"),
        "contact_id": d.get("vendor_ref"),
        "status": d.get("status") or "draft",
        "bill_date": d.get("bill_date"),
        "due_date": d.get("due_date"),
        "total_gross": to_float(d.get("total_gross")),
        "total_net": to_float(d.get("total_net")),
        "total_taxes": to_float(d.get("total_taxes")),
        "total_paid": to_float(d.get("amount_paid")),
        "pending_amount": to_float(d.get("pending_amount")),
        "currency_id": d.get("currency_id"),
        "currency_code": d.get("currency_code") or DEFAULT_CURRENCY_CODE,
        "created_at": d.get("created_at"),
        "updated_at": d.get("updated_at"),
    }


def transform_expense(d: RawItem) -> Record:
    return {
        "id": text_id(d.get("id")),
        "document_nr": d.get("document_no") or d.get("document_nr"),
        "title": d.get("title"),
        "status": d.get("status") or "draft",
        "paid_on": d.get("paid_on"),
        "supplier_id": d.get("supplier_id"),
        "total_gross": to_float(d.get("total_gross") or d.get("amount")),
        "currency_code": d.get("currency_code") or DEFAULT_CURRENCY_CODE,
        "created_at": d.get("created_at"),
        "updated_at": d.get("updated_at"),
    }


def transform_journal_entry(d: RawItem) -> Record:
    return {
        "id": d.get("id"),
        "ref_id": d.get("ref_id"),
        "ref_class": d.get("ref_class"),
        "date": d.get("date"),
        "debit_account_id": d.get("debit_account_id"),
        "credit_account_id": d.get("credit_account_id"),
        "description": d.get("description"),
        "amount": to_float(d.get("amount")),
        "currency_id": d.get("currency_id"),
        "currency_factor": to_float(d.get("currency_factor"), default=1.0),
        "base_currency_amount": to_float(d.get("base_currency_amount")),
    }


# ---------------------------------------------------------------------------
# Datos dependientes
# ---------------------------------------------------------------------------

def transform_invoice_payment(d: RawItem, invoice: RawItem) -> Record:
    return {
        "id": d.get("id"),
        "invoice_id": invoice.get("id"),
        "date": d.get("date"),
        "amount": to_float(d.get("value")),
        "bank_account_id": d.get("bank_account_id"),
        "title": d.get("title"),
        "is_cash_discount": bool(d.get("is_cash_discount", False)),
        "is_client_account_redemption": bool(d.get("is_client_account_redemption", False)),
    }


def invoice_has_payments(invoice: RawItem) -> bool:
    return to_int(invoice.get("kb_item_status_id")) in INVOICES_WITH_PAYMENTS


# ---------------------------------------------------------------------------
# Registro, fases y modos
# ---------------------------------------------------------------------------

_CONFIGS: list[AnyEntitySyncConfig] = [
    EntitySyncConfig("currencies", "/3.0/currencies", "currencies", transform_currency),
    EntitySyncConfig("taxes", "/3.0/taxes", "taxes", transform_tax),
    EntitySyncConfig("account_groups", "/2.0/account_groups", "account_groups", transform_account_group),
    EntitySyncConfig("accounts", "/2.0/accounts", "accounts", transform_account),
    EntitySyncConfig("bank_accounts", "/3.0/banking/accounts", "bank_accounts", transform_bank_account),
    EntitySyncConfig("contacts", "/2.0/contact", "contacts", transform_contact),
    EntitySyncConfig("employees", "/4.0/payroll/employees", "employees", transform_employee),
    EntitySyncConfig("invoices", "/2.0/kb_invoice", "invoices", transform_invoice),
    EntitySyncConfig("quotes", "/2.0/kb_offer", "quotes", transform_quote),
    EntitySyncConfig("orders", "/2.0/kb_order", "orders", transform_order),
    EntitySyncConfig("bills", "/4.0/purchase/bills", "bills", transform_bill),
    EntitySyncConfig("expenses", "/4.0/expenses", "expenses", transform_expense),
    EntitySyncConfig("journal_entries", "/3.0/accounting/journal", "journal_entries", transform_journal_entry),
    DependentEntitySyncConfig(
        name="invoice_payments",
        parent_entity="invoices",
        parent_path="/2.0/kb_invoice",
        child_path_template="/2.0/kb_invoice/{id}/payment",
        table="invoice_payments",
        transform=transform_invoice_payment,
        parent_filter=invoice_has_payments,
    ),
]

ENTITY_SYNCS: dict[str, AnyEntitySyncConfig] = {c.name: c for c in _CONFIGS}

PHASES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("reference", ("currencies", "taxes", "account_groups", "accounts", "bank_accounts")),
    ("master", ("contacts", "employees")),
    ("transactional", ("invoices", "quotes", "orders", "bills", "expenses", "journal_entries")),
    ("dependent", ("invoice_payments",)),
)

# Corrida por defecto (cron diario). contacts queda fuera: cambia poco y
# se sincroniza manualmente con ?entity=contacts.
DEFAULT_SCOPE: tuple[str, ...] = ("invoices", "quotes", "orders", "bills")
DEFAULT_RUN_NAME = "full_sync"

MODES: dict[str, tuple[str, ...]] = {
    "reference": PHASES[0][1] + PHASES[1][1],
    "transactional": PHASES[2][1],
    "payments": ("invoices", "invoice_payments"),
    "all": tuple(name for _, names in PHASES for name in names),
}


def run_name_for_mode(mode: Optional[str]) -> str:
    return f"sync_{mode}" if mode else DEFAULT_RUN_NAME


def phase_order(
    names: Iterable[str],
    phases: tuple[tuple[str, tuple[str, ...]], ...] = PHASES,
) -> list[str]:
    """
    Ordena entidades según las fases declaradas (referencia -> maestros ->
    transaccionales -> dependientes). Entidades fuera de las fases van al final
    en el orden recibido. Sin duplicados.
    """
    rank = {name: i for i, (_, group) in enumerate(phases) for name in group}
    position = {name: i for _, group in phases for i, name in enumerate(group)}
    unique = list(dict.fromkeys(names))
    tail = len(phases)
    return sorted(unique, key=lambda n: (rank.get(n, tail), position.get(n, unique.index(n))))


def get_entity_config(name: str) -> Optional[AnyEntitySyncConfig]:
    return ENTITY_SYNCS.get(name)
