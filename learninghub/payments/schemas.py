"""Pydantic schemas for payments and transactions."""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from pydantic import BaseModel, Field

from learninghub.payments.models import TransactionStatus


if TYPE_CHECKING:
    from learninghub.payments.models import Transaction
    from learninghub.payments.pricing import PriceBreakdown


class CreatePaymentIntentRequest(BaseModel):
    course_id: UUID


class RecordTransactionRequest(BaseModel):
    course_id: UUID
    payment_intent_id: str = Field(..., min_length=1, max_length=255)
    full_name: str | None = Field(None, max_length=100)
    phone_number: str | None = Field(None, max_length=30)


class UpdateTransactionStatusRequest(BaseModel):
    status: TransactionStatus


class PriceBreakdownResponse(BaseModel):
    original_price: Decimal
    discount_percentage: Decimal
    discount_amount: Decimal
    price_after_discount: Decimal
    tax_percentage: Decimal
    tax: Decimal
    total: Decimal

    @classmethod
    def from_breakdown(cls, b: "PriceBreakdown") -> "PriceBreakdownResponse":
        return cls(
            original_price=b.original_price,
            discount_percentage=b.discount_percentage,
            discount_amount=b.discount_amount,
            price_after_discount=b.price_after_discount,
            tax_percentage=b.tax_percentage,
            tax=b.tax,
            total=b.total,
        )


class PaymentIntentResponse(BaseModel):
    client_secret: str | None
    payment_intent_id: str
    amount: int = Field(..., description="Total in minor units (cents)")
    currency: str
    breakdown: PriceBreakdownResponse


class TransactionResponse(BaseModel):
    transaction_id: str
    user_id: UUID
    course_id: UUID
    amount: Decimal
    original_price: Decimal
    discount_percentage: Decimal
    discount_amount: Decimal
    tax: Decimal
    total: Decimal
    currency: str
    status: TransactionStatus
    payment_intent_id: str
    payment_method: str
    full_name: str
    phone_number: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_transaction(cls, txn: "Transaction") -> "TransactionResponse":
        return cls(**txn.to_dict())
