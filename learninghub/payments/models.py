"""Database models for payments.

Tables:
- transactions: one row per recorded purchase, keyed by transaction id
- transactions_by_intent: payment-intent claim written with IF NOT EXISTS,
  which makes recording a purchase idempotent per payment intent
"""

import secrets
import time
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from learninghub.auth.models import ensure_utc_aware


class TransactionStatus(str, Enum):
    PAID = "Paid"
    PENDING = "Pending"
    CANCEL = "Cancel"


TRANSACTIONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.transactions (
    transaction_id TEXT PRIMARY KEY,
    user_id UUID,
    course_id UUID,
    amount DECIMAL,
    original_price DECIMAL,
    discount_percentage DECIMAL,
    discount_amount DECIMAL,
    tax DECIMAL,
    total DECIMAL,
    currency TEXT,
    status TEXT,
    payment_intent_id TEXT,
    payment_method TEXT,
    full_name TEXT,
    phone_number TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

TRANSACTIONS_BY_INTENT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.transactions_by_intent (
    payment_intent_id TEXT PRIMARY KEY,
    transaction_id TEXT,
    created_at TIMESTAMP
)
"""

PAYMENTS_TABLES_CQL = [
    TRANSACTIONS_TABLE_CQL,
    TRANSACTIONS_BY_INTENT_TABLE_CQL,
]


_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def _to_base36(value: int) -> str:
    digits = ""
    while True:
        value, rem = divmod(value, 36)
        digits = _BASE36[rem] + digits
        if value == 0:
            return digits


def generate_transaction_id(now_ms: int | None = None) -> str:
    """``TXN`` + upper-case base36 millisecond timestamp + 4 random digits."""
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    return f"TXN{_to_base36(now_ms)}{secrets.randbelow(10_000):04d}"


class Transaction:
    """A recorded course purchase."""

    def __init__(
        self,
        transaction_id: str,
        user_id: UUID,
        course_id: UUID,
        amount: Decimal,
        original_price: Decimal,
        discount_percentage: Decimal,
        discount_amount: Decimal,
        tax: Decimal,
        total: Decimal,
        currency: str = "usd",
        status: str = TransactionStatus.PAID.value,
        payment_intent_id: str = "",
        payment_method: str = "card",
        full_name: str = "",
        phone_number: str = "",
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.transaction_id = transaction_id
        self.user_id = user_id
        self.course_id = course_id
        self.amount = amount
        self.original_price = original_price
        self.discount_percentage = discount_percentage
        self.discount_amount = discount_amount
        self.tax = tax
        self.total = total
        self.currency = currency
        self.status = status
        self.payment_intent_id = payment_intent_id
        self.payment_method = payment_method
        self.full_name = full_name
        self.phone_number = phone_number
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at) or self.created_at

    @classmethod
    def from_row(cls, row: Any) -> "Transaction":
        return cls(
            transaction_id=row.transaction_id,
            user_id=row.user_id,
            course_id=row.course_id,
            amount=row.amount,
            original_price=row.original_price,
            discount_percentage=row.discount_percentage,
            discount_amount=row.discount_amount,
            tax=row.tax,
            total=row.total,
            currency=row.currency or "usd",
            status=row.status or TransactionStatus.PAID.value,
            payment_intent_id=row.payment_intent_id or "",
            payment_method=row.payment_method or "card",
            full_name=row.full_name or "",
            phone_number=row.phone_number or "",
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "user_id": self.user_id,
            "course_id": self.course_id,
            "amount": self.amount,
            "original_price": self.original_price,
            "discount_percentage": self.discount_percentage,
            "discount_amount": self.discount_amount,
            "tax": self.tax,
            "total": self.total,
            "currency": self.currency,
            "status": self.status,
            "payment_intent_id": self.payment_intent_id,
            "payment_method": self.payment_method,
            "full_name": self.full_name,
            "phone_number": self.phone_number,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return f"<Transaction {self.transaction_id} {self.total} {self.status}>"
