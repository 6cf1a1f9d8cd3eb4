"""Payment and transaction service.

Business logic for:
- Payment intents priced from the stored course, never from the client
- Recording a purchase after the processor confirms it, then enrolling
- Admin transaction listing and status changes

Recording and enrolling are separate writes; both are idempotent per payment
intent, so re-running a request reconciles a crash between them.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from learninghub.config.settings import Settings
from learninghub.payments.gateway import (
    PaymentGatewayError,
    PaymentIntentInfo,
    PaymentIntentNotFoundError,
    StripeGateway,
)
from learninghub.payments.models import (
    Transaction,
    TransactionStatus,
    generate_transaction_id,
)
from learninghub.payments.pricing import InvalidPriceError, PriceBreakdown, compute_breakdown


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from learninghub.auth.models import User
    from learninghub.auth.service import AuthService
    from learninghub.courses.models import Course
    from learninghub.courses.service import CourseService
    from learninghub.progress.service import ProgressService


logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class PaymentError(Exception):
    """Base payment error."""

    def __init__(self, message: str, code: str = "payment_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class PaymentsNotConfiguredError(PaymentError):
    def __init__(self, message: str = "Payments are not configured"):
        super().__init__(message, "payments_not_configured")


class PaymentTargetNotFoundError(PaymentError):
    def __init__(self, message: str):
        super().__init__(message, "not_found")


class PaymentValidationError(PaymentError):
    def __init__(self, message: str):
        super().__init__(message, "validation_error")


class PaymentUpstreamError(PaymentError):
    def __init__(self, message: str):
        super().__init__(message, "upstream_failure")


class TransactionNotFoundError(PaymentError):
    def __init__(self, message: str = "Transaction not found"):
        super().__init__(message, "transaction_not_found")


# ==============================================================================
# Payment Service
# ==============================================================================


class PaymentService:
    def __init__(
        self,
        session: "Session",
        keyspace: str,
        settings: Settings,
        gateway: StripeGateway | None,
        auth_service: "AuthService",
        course_service: "CourseService",
        progress_service: "ProgressService",
    ):
        self.session = session
        self.keyspace = keyspace
        self.settings = settings
        self.gateway = gateway
        self.auth_service = auth_service
        self.course_service = course_service
        self.progress_service = progress_service
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        ks = self.keyspace
        self._claim_intent = self.session.prepare(f"""
            INSERT INTO {ks}.transactions_by_intent
            (payment_intent_id, transaction_id, created_at)
            VALUES (?, ?, ?)
            IF NOT EXISTS
        """)
        self._get_intent_claim = self.session.prepare(
            f"SELECT * FROM {ks}.transactions_by_intent WHERE payment_intent_id = ?"
        )
        self._insert_transaction = self.session.prepare(f"""
            INSERT INTO {ks}.transactions
            (transaction_id, user_id, course_id, amount, original_price,
             discount_percentage, discount_amount, tax, total, currency, status,
             payment_intent_id, payment_method, full_name, phone_number,
             created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._get_transaction = self.session.prepare(
            f"SELECT * FROM {ks}.transactions WHERE transaction_id = ?"
        )
        self._list_transactions = self.session.prepare(
            f"SELECT * FROM {ks}.transactions"
        )
        self._update_status = self.session.prepare(f"""
            UPDATE {ks}.transactions
            SET status = ?, updated_at = ?
            WHERE transaction_id = ?
        """)

    # --------------------------------------------------------------------------
    # Helpers
    # --------------------------------------------------------------------------

    def _require_gateway(self) -> StripeGateway:
        if self.gateway is None:
            raise PaymentsNotConfiguredError
        return self.gateway

    async def _load(self, user_id: UUID, course_id: UUID) -> tuple["User", "Course"]:
        user = await self.auth_service.get_user_by_id(user_id)
        if user is None:
            raise PaymentTargetNotFoundError("User not found")
        course = await self.course_service.get_course(course_id)
        if course is None:
            raise PaymentTargetNotFoundError("Course not found")
        return user, course

    def price_for(self, course: "Course") -> PriceBreakdown:
        try:
            return compute_breakdown(
                course.price,
                course.discount_percentage,
                course.tax_percentage,
                self.settings.payment_default_tax_percentage,
            )
        except InvalidPriceError as e:
            raise PaymentValidationError(str(e)) from e

    # --------------------------------------------------------------------------
    # Payment intents
    # --------------------------------------------------------------------------

    async def create_payment_intent(
        self, user_id: UUID, course_id: UUID
    ) -> tuple[PaymentIntentInfo, PriceBreakdown]:
        gateway = self._require_gateway()
        user, course = await self._load(user_id, course_id)
        breakdown = self.price_for(course)

        try:
            intent = await gateway.create_intent(
                breakdown.amount_minor_units,
                self.settings.payment_currency,
                {"user_id": str(user.id), "course_id": str(course.id)},
            )
        except PaymentGatewayError as e:
            raise PaymentUpstreamError(e.message) from e
        return intent, breakdown

    # --------------------------------------------------------------------------
    # Transactions
    # --------------------------------------------------------------------------

    async def get_transaction(self, transaction_id: str) -> Transaction | None:
        result = await self.session.aexecute(self._get_transaction, [transaction_id])
        row = result.one()
        return Transaction.from_row(row) if row else None

    async def _write_transaction(self, txn: Transaction) -> None:
        await self.session.aexecute(
            self._insert_transaction,
            [
                txn.transaction_id,
                txn.user_id,
                txn.course_id,
                txn.amount,
                txn.original_price,
                txn.discount_percentage,
                txn.discount_amount,
                txn.tax,
                txn.total,
                txn.currency,
                txn.status,
                txn.payment_intent_id,
                txn.payment_method,
                txn.full_name,
                txn.phone_number,
                txn.created_at,
                txn.updated_at,
            ],
        )

    async def record_transaction(
        self,
        user_id: UUID,
        course_id: UUID,
        payment_intent_id: str,
        full_name: str | None = None,
        phone_number: str | None = None,
    ) -> tuple[Transaction, bool]:
        """Record a confirmed purchase and enroll the buyer.

        Returns:
            ``(transaction, created)``; ``created`` is False when the intent
            had already been recorded.

        Raises:
            PaymentValidationError: If the intent did not succeed or belongs
                to another user or course
            PaymentUpstreamError: If the processor cannot be reached
        """
        gateway = self._require_gateway()
        user, course = await self._load(user_id, course_id)

        try:
            intent = await gateway.retrieve_intent(payment_intent_id)
        except PaymentIntentNotFoundError as e:
            raise PaymentValidationError(e.message) from e
        except PaymentGatewayError as e:
            raise PaymentUpstreamError(e.message) from e

        if not intent.succeeded:
            raise PaymentValidationError(
                f"Payment has not succeeded (status: {intent.status})"
            )
        if intent.metadata.get("user_id") != str(user.id) or intent.metadata.get(
            "course_id"
        ) != str(course.id):
            raise PaymentValidationError("Payment does not match this user and course")

        breakdown = self.price_for(course)
        if intent.amount != breakdown.amount_minor_units:
            logger.warning(
                "payment_amount_mismatch",
                intent_id=intent.id,
                charged=intent.amount,
                expected=breakdown.amount_minor_units,
            )

        now = datetime.now(UTC)
        txn = Transaction(
            transaction_id=generate_transaction_id(),
            user_id=user.id,
            course_id=course.id,
            amount=breakdown.price_after_discount,
            original_price=breakdown.original_price,
            discount_percentage=breakdown.discount_percentage,
            discount_amount=breakdown.discount_amount,
            tax=breakdown.tax,
            total=breakdown.total,
            currency=intent.currency or self.settings.payment_currency,
            status=TransactionStatus.PAID.value,
            payment_intent_id=intent.id,
            payment_method=intent.payment_method_type or "card",
            full_name=(full_name or user.full_name).strip(),
            phone_number=(phone_number or user.phone).strip(),
            created_at=now,
            updated_at=now,
        )

        claim = await self.session.aexecute(
            self._claim_intent, [intent.id, txn.transaction_id, now]
        )
        created = bool(claim.was_applied)
        if created:
            await self._write_transaction(txn)
        else:
            claimed = (
                await self.session.aexecute(self._get_intent_claim, [intent.id])
            ).one()
            existing = await self.get_transaction(claimed.transaction_id)
            if existing is None:
                # Claimed by an earlier attempt that stopped before the write.
                txn.transaction_id = claimed.transaction_id
                await self._write_transaction(txn)
            else:
                txn = existing

        await self.progress_service.enroll(user.id, course.id)

        logger.info(
            "transaction_recorded",
            transaction_id=txn.transaction_id,
            intent_id=intent.id,
            created=created,
        )
        return txn, created

    async def list_transactions(self) -> list[Transaction]:
        """All transactions, newest first."""
        result = await self.session.aexecute(self._list_transactions)
        items = [Transaction.from_row(row) for row in result]
        items.sort(key=lambda t: t.created_at, reverse=True)
        return items

    async def update_status(
        self, transaction_id: str, status: TransactionStatus
    ) -> Transaction:
        txn = await self.get_transaction(transaction_id)
        if txn is None:
            raise TransactionNotFoundError
        txn.status = status.value
        txn.updated_at = datetime.now(UTC)
        await self.session.aexecute(
            self._update_status, [txn.status, txn.updated_at, transaction_id]
        )
        logger.info(
            "transaction_status_changed",
            transaction_id=transaction_id,
            status=txn.status,
        )
        return txn
