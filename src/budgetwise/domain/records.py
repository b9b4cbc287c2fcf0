import json
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import ValidationError

from budgetwise.domain.dates import parse_date
from budgetwise.logger import get_logger
from budgetwise.models import Budget, Transaction

logger = get_logger(__name__)

DEFAULT_WARNING_THRESHOLD = 80.0

# Backups exported by the mobile app use camelCase keys.
_CAMEL_KEYS = {
    "startDate": "start_date",
    "endDate": "end_date",
    "warningThreshold": "warning_threshold",
    "isActive": "is_active",
}


def _normalize_keys(record: dict[str, Any]) -> dict[str, Any]:
    return {_CAMEL_KEYS.get(key, key): value for key, value in record.items()}


def _parse_amount(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    try:
        return abs(Decimal(str(value)))
    except InvalidOperation:
        logger.warning("[RECORDS] Invalid amount %r, using 0.", value)
        return Decimal("0")


def _parse_tags(value: Any) -> tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            value = value.split(",")
    if not isinstance(value, list):
        return ()
    tags: list[str] = []
    for item in value:
        tag = str(item).strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tuple(tags)


def _parse_threshold(value: Any) -> float:
    if value is None or value == "":
        return DEFAULT_WARNING_THRESHOLD
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning("[RECORDS] Invalid warning threshold %r, using %s.", value, DEFAULT_WARNING_THRESHOLD)
        return DEFAULT_WARNING_THRESHOLD


def _parse_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def transaction_from_record(record: dict[str, Any]) -> Transaction:
    data = _normalize_keys(record)
    raw_date = data.get("date")
    date_value = parse_date(raw_date)
    if raw_date and date_value is None:
        logger.warning(
            "[RECORDS] Unparseable date %r on transaction %s; excluded from date buckets.",
            raw_date,
            data.get("id", "unknown"),
        )

    fields: dict[str, Any] = {
        "amount": _parse_amount(data.get("amount")),
        "type": data.get("type") or "expense",
        "category": data.get("category") or "",
        "title": data.get("title") or "",
        "description": data.get("description") or "",
        "date": date_value,
        "currency": data.get("currency") or "USD",
        "account": data.get("account") or "main",
        "tags": _parse_tags(data.get("tags")),
    }
    if data.get("id"):
        fields["id"] = str(data["id"])
    return Transaction(**fields)


def transaction_to_record(transaction: Transaction) -> dict[str, Any]:
    return {
        "id": transaction.id,
        "amount": str(transaction.amount),
        "type": transaction.type,
        "category": transaction.category,
        "title": transaction.title,
        "description": transaction.description,
        "date": transaction.date.isoformat() if transaction.date else None,
        "currency": transaction.currency,
        "account": transaction.account,
        "tags": list(transaction.tags),
    }


def budget_from_record(record: dict[str, Any]) -> Budget:
    data = _normalize_keys(record)
    fields: dict[str, Any] = {
        "name": data.get("name") or "",
        "category": data.get("category") or "",
        "amount": _parse_amount(data.get("amount")),
        "spent": _parse_amount(data.get("spent")),
        "period": data.get("period") or "monthly",
        "start_date": data.get("start_date"),
        "end_date": data.get("end_date") or None,
        "currency": data.get("currency") or "USD",
        "warning_threshold": _parse_threshold(data.get("warning_threshold")),
        "is_active": _parse_bool(data.get("is_active"), True),
        "notifications": _parse_bool(data.get("notifications"), True),
    }
    if data.get("id"):
        fields["id"] = str(data["id"])
    return Budget(**fields)


def budget_to_record(budget: Budget) -> dict[str, Any]:
    return {
        "id": budget.id,
        "name": budget.name,
        "category": budget.category,
        "amount": str(budget.amount),
        "spent": str(budget.spent),
        "period": budget.period,
        "start_date": budget.start_date.isoformat(),
        "end_date": budget.end_date.isoformat(),
        "currency": budget.currency,
        "warning_threshold": budget.warning_threshold,
        "is_active": budget.is_active,
        "notifications": budget.notifications,
    }


def records_from_backup(payload: dict[str, Any]) -> tuple[list[Transaction], list[Budget]]:
    """
    Read transactions and budgets out of an exported backup.

    Accepts both ``{"data": {"transactions": [...], "budgets": [...]}}`` and
    the same lists at the top level. Records that fail validation are skipped
    and logged.
    """
    data = payload.get("data") if isinstance(payload.get("data"), dict) else payload
    transactions: list[Transaction] = []
    budgets: list[Budget] = []

    for raw in data.get("transactions") or []:
        try:
            transactions.append(transaction_from_record(raw))
        except ValidationError as exc:
            logger.warning("[RECORDS] Skipping transaction %s: %s", raw.get("id", "unknown"), exc)

    for raw in data.get("budgets") or []:
        try:
            budgets.append(budget_from_record(raw))
        except ValidationError as exc:
            logger.warning("[RECORDS] Skipping budget %s: %s", raw.get("id", "unknown"), exc)

    return transactions, budgets
