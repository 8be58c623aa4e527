# finance_flow/core/models.py
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping

from finance_flow.utils import parse_timestamp


class InvalidRecordError(ValueError):
    """Raised when an untyped record cannot be turned into a model."""


class TransactionType(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"

    @classmethod
    def parse(cls, value) -> "TransactionType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise InvalidRecordError(f"Unknown transaction type: {value!r}") from None


class AccountType(str, Enum):
    SAVINGS = "SAVINGS"
    CARD = "CARD"
    CASH = "CASH"
    INVESTMENT = "INVESTMENT"


class RecurrenceFrequency(str, Enum):
    NONE = "NONE"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


def _field(record: Mapping[str, Any], *names, default=None):
    for name in names:
        if name in record and record[name] is not None:
            return record[name]
    return default


def _required(record: Mapping[str, Any], *names):
    value = _field(record, *names)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidRecordError(f"Missing '{names[0]}' in record: {record}")
    return value


def _amount(record: Mapping[str, Any]) -> float:
    raw = _required(record, "amount")
    try:
        amount = float(raw)
    except (TypeError, ValueError):
        raise InvalidRecordError(f"Could not parse amount {raw!r}") from None
    if math.isnan(amount) or math.isinf(amount) or amount < 0:
        raise InvalidRecordError(f"Amount must be a non-negative number, got {raw!r}")
    return amount


def _flag(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "y")
    return bool(value)


def _timestamp(record: Mapping[str, Any]) -> datetime:
    raw = _required(record, "date")
    try:
        return parse_timestamp(raw)
    except (TypeError, ValueError):
        raise InvalidRecordError(f"Could not parse date {raw!r}") from None


@dataclass
class Account:
    id: str
    name: str
    type: AccountType = AccountType.SAVINGS
    color: str = "#6366f1"

    @classmethod
    def from_dict(cls, record: Mapping[str, Any]) -> "Account":
        raw_type = _field(record, "type", default=AccountType.SAVINGS.value)
        try:
            acc_type = AccountType(str(raw_type).strip().upper())
        except ValueError:
            raise InvalidRecordError(f"Unknown account type: {raw_type!r}") from None
        return cls(
            id=str(_required(record, "id")),
            name=str(_required(record, "name")),
            type=acc_type,
            color=str(_field(record, "color", default="#6366f1")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "type": self.type.value, "color": self.color}


@dataclass
class Transaction:
    id: str
    account_id: str
    amount: float
    description: str
    category: str
    type: TransactionType
    date: datetime
    icon: str = "shopping"
    sub_category: str | None = None
    is_recurring: bool = False
    recurrence_id: str | None = None

    @property
    def is_income(self) -> bool:
        return self.type == TransactionType.INCOME

    @classmethod
    def from_dict(cls, record: Mapping[str, Any]) -> "Transaction":
        """Build a Transaction from a loosely-typed record.

        Accepts the camelCase keys written by :meth:`to_dict` as well as
        snake_case ones. Raises :class:`InvalidRecordError` for missing or
        malformed required fields; optional fields fall back to defaults.
        """
        sub = _field(record, "subCategory", "sub_category")
        return cls(
            id=str(_required(record, "id")),
            account_id=str(_required(record, "accountId", "account_id")),
            amount=_amount(record),
            description=str(_field(record, "description", default="")).strip(),
            category=str(_field(record, "category", default="")).strip(),
            type=TransactionType.parse(_required(record, "type")),
            date=_timestamp(record),
            icon=str(_field(record, "icon", default="shopping")),
            sub_category=str(sub).strip() or None if sub is not None else None,
            is_recurring=_flag(_field(record, "isRecurring", "is_recurring", default=False)),
            recurrence_id=_field(record, "recurrenceId", "recurrence_id"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "accountId": self.account_id,
            "amount": self.amount,
            "description": self.description,
            "category": self.category,
            "type": self.type.value,
            "date": self.date.isoformat(),
            "icon": self.icon,
            "isRecurring": self.is_recurring,
        }
        if self.sub_category:
            data["subCategory"] = self.sub_category
        if self.recurrence_id:
            data["recurrenceId"] = self.recurrence_id
        return data


@dataclass
class TransactionTemplate:
    id: str
    name: str
    account_id: str
    amount: float
    description: str
    category: str
    type: TransactionType
    icon: str = "shopping"

    @classmethod
    def from_dict(cls, record: Mapping[str, Any]) -> "TransactionTemplate":
        return cls(
            id=str(_required(record, "id")),
            name=str(_required(record, "name")),
            account_id=str(_required(record, "accountId", "account_id")),
            amount=_amount(record),
            description=str(_field(record, "description", default="")),
            category=str(_field(record, "category", default="")),
            type=TransactionType.parse(_required(record, "type")),
            icon=str(_field(record, "icon", default="shopping")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "accountId": self.account_id,
            "amount": self.amount,
            "description": self.description,
            "category": self.category,
            "type": self.type.value,
            "icon": self.icon,
        }


@dataclass(frozen=True)
class CategorizationResult:
    category: str
    icon: str
    confidence: float
    sub_category: str | None = None
