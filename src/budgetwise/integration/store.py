import asyncio
import json
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import ValidationError

from budgetwise.domain.records import (
    budget_from_record,
    budget_to_record,
    records_from_backup,
    transaction_from_record,
    transaction_to_record,
)
from budgetwise.logger import get_logger
from budgetwise.models import Budget, Transaction, TransactionType

logger = get_logger(__name__)


@dataclass(frozen=True)
class TransactionFilter:
    type: TransactionType | None = None
    category: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None

    def matches(self, transaction: Transaction) -> bool:
        if self.type and transaction.type != self.type:
            return False
        if self.category and transaction.category != self.category:
            return False
        if self.date_from or self.date_to:
            if transaction.date is None:
                return False
            if self.date_from and transaction.date < self.date_from:
                return False
            if self.date_to and transaction.date > self.date_to:
                return False
        return True


class FinanceStore(ABC):
    """Record storage the analytics core reads from and writes budget totals to."""

    @abstractmethod
    async def list_transactions(self, criteria: TransactionFilter | None = None) -> list[Transaction]:
        pass

    @abstractmethod
    async def get_transaction(self, transaction_id: str) -> Transaction | None:
        pass

    @abstractmethod
    async def add_transaction(self, transaction: Transaction) -> Transaction:
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: str) -> Transaction | None:
        """Remove a transaction, returning it, or None when it did not exist."""
        pass

    @abstractmethod
    async def list_budgets(self, active_only: bool = True) -> list[Budget]:
        pass

    @abstractmethod
    async def add_budget(self, budget: Budget) -> Budget:
        pass

    @abstractmethod
    async def persist_budget_spent(self, budget_id: str, spent: Decimal) -> None:
        pass

    @abstractmethod
    async def import_backup(self, payload: dict[str, Any]) -> tuple[int, int]:
        pass


def _sort_newest_first(transactions: list[Transaction]) -> list[Transaction]:
    dated = sorted((t for t in transactions if t.date is not None), key=lambda t: t.date, reverse=True)
    return dated + [t for t in transactions if t.date is None]


class JsonFileStore(FinanceStore):
    """
    Keeps transactions and budgets in two JSON files under ``data_dir``.

    The files are read once on construction; every write rewrites the
    affected file from a worker thread while holding the store lock.
    """

    def __init__(self, data_dir: str = "."):
        self.transactions_path = os.path.join(data_dir, "transactions.json")
        self.budgets_path = os.path.join(data_dir, "budgets.json")
        self._lock = asyncio.Lock()
        self._transactions: dict[str, Transaction] = {}
        self._budgets: dict[str, Budget] = {}
        self.load()

    @staticmethod
    def _read(path: str) -> list[dict[str, Any]]:
        if not os.path.exists(path):
            return []
        try:
            with open(path, encoding="utf-8") as handle:
                data = json.load(handle)
        except json.JSONDecodeError:
            logger.error("[STORE] Corrupt JSON in %s; starting empty.", path)
            return []
        if not isinstance(data, list):
            return []
        return [item for item in data if isinstance(item, dict)]

    @staticmethod
    def _write(path: str, records: list[dict[str, Any]]) -> None:
        tmp_path = f"{path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as handle:
            json.dump(records, handle, indent=2)
        os.replace(tmp_path, path)

    def load(self) -> None:
        """Read both files; records that fail validation are logged and left out."""
        self._transactions = {}
        for raw in self._read(self.transactions_path):
            try:
                transaction = transaction_from_record(raw)
            except ValidationError as exc:
                logger.warning("[STORE] Skipping stored transaction %s: %s", raw.get("id", "unknown"), exc)
                continue
            self._transactions[transaction.id] = transaction
        self._budgets = {}
        for raw in self._read(self.budgets_path):
            try:
                budget = budget_from_record(raw)
            except ValidationError as exc:
                logger.warning("[STORE] Skipping stored budget %s: %s", raw.get("id", "unknown"), exc)
                continue
            self._budgets[budget.id] = budget
        logger.info(
            "[STORE] Loaded %d transactions and %d budgets.",
            len(self._transactions),
            len(self._budgets),
        )

    async def _save_transactions(self) -> None:
        records = [transaction_to_record(t) for t in self._transactions.values()]
        await asyncio.to_thread(self._write, self.transactions_path, records)

    async def _save_budgets(self) -> None:
        records = [budget_to_record(b) for b in self._budgets.values()]
        await asyncio.to_thread(self._write, self.budgets_path, records)

    async def list_transactions(self, criteria: TransactionFilter | None = None) -> list[Transaction]:
        selected = [t for t in self._transactions.values() if criteria is None or criteria.matches(t)]
        return _sort_newest_first(selected)

    async def get_transaction(self, transaction_id: str) -> Transaction | None:
        return self._transactions.get(transaction_id)

    async def add_transaction(self, transaction: Transaction) -> Transaction:
        async with self._lock:
            self._transactions[transaction.id] = transaction
            await self._save_transactions()
        return transaction

    async def delete_transaction(self, transaction_id: str) -> Transaction | None:
        async with self._lock:
            removed = self._transactions.pop(transaction_id, None)
            if removed is not None:
                await self._save_transactions()
        return removed

    async def list_budgets(self, active_only: bool = True) -> list[Budget]:
        return [b for b in self._budgets.values() if b.is_active or not active_only]

    async def add_budget(self, budget: Budget) -> Budget:
        async with self._lock:
            self._budgets[budget.id] = budget
            await self._save_budgets()
        return budget

    async def persist_budget_spent(self, budget_id: str, spent: Decimal) -> None:
        async with self._lock:
            budget = self._budgets.get(budget_id)
            if budget is None:
                raise KeyError(budget_id)
            self._budgets[budget_id] = budget.model_copy(update={"spent": spent})
            await self._save_budgets()

    async def import_backup(self, payload: dict[str, Any]) -> tuple[int, int]:
        """Merge an exported backup by id. Returns (transactions, budgets) imported."""
        transactions, budgets = records_from_backup(payload)
        async with self._lock:
            for transaction in transactions:
                self._transactions[transaction.id] = transaction
            for budget in budgets:
                self._budgets[budget.id] = budget
            await self._save_transactions()
            await self._save_budgets()
        logger.info("[STORE] Imported %d transactions and %d budgets.", len(transactions), len(budgets))
        return len(transactions), len(budgets)
