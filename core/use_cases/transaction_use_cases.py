"""Transaction lifecycle and balance settlement.

``pending -> processing -> completed`` is the happy path; ``cancelled`` is
reachable from either active status. ``completed`` and ``cancelled`` are
terminal. Every status write is conditional on the status that was read, and
the settlement (ledger credit/debit) plus the linked withdrawal update run in
the same unit of work as that write. Notifications go out only after commit.
"""
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, List, Tuple, Any

from core.entities.money import (
    parse_amount,
    parse_non_negative_amount,
    parse_rate,
    parse_commission_rate,
    quantize_amount,
)
from core.entities.notification import Direct
from core.entities.transaction import (
    Transaction,
    TransactionKind,
    TransactionStatus,
    ACTIVE_STATUSES,
    can_transition,
)
from core.entities.user import User
from core.entities.withdrawal import WithdrawalRequest
from core.errors import (
    ValidationError,
    AuthorizationError,
    NotFoundError,
    ConflictError,
    InsufficientFundsError,
)
from core.repositories.catalog_repository import ExchangeRateRepository, PaymentAccountRepository
from core.repositories.ledger_repository import AccountLedger
from core.repositories.transaction_repository import TransactionRepository, WithdrawalRepository
from core.repositories.unit_of_work import UnitOfWork
from core.services.notification_dispatcher import NotificationDispatcher
from core.services.transaction_codes import generate_transaction_code
from core.use_cases.rate_use_cases import conversion_amounts

logger = logging.getLogger(__name__)

CURRENCY_RE = re.compile(r"^[A-Z]{3}$")
NOT_SPECIFIED = "Not specified"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_currency(value: Optional[str], field: str) -> str:
    code = (value or "").strip().upper()
    if not CURRENCY_RE.match(code):
        raise ValidationError(f"{field} must be a three-letter currency code", field=field)
    return code


def _parse_kind(value: Any) -> TransactionKind:
    try:
        return TransactionKind(value)
    except ValueError:
        raise ValidationError("kind must be 'conversion' or 'withdrawal'", field="kind")


def parse_status(value: Any) -> TransactionStatus:
    try:
        return TransactionStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in TransactionStatus)
        raise ValidationError(f"status must be one of: {allowed}", field="status")


def _optional_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass
class EnginePolicy:
    local_currency: str = "TRY"
    code_prefix: str = "TRX"
    code_length: int = 12
    amount_tolerance: Decimal = Decimal("0.01")
    allow_processing_to_pending: bool = False

    @classmethod
    def from_settings(cls, settings) -> "EnginePolicy":
        return cls(
            local_currency=settings.LOCAL_CURRENCY,
            code_prefix=settings.TRANSACTION_CODE_PREFIX,
            code_length=settings.TRANSACTION_CODE_LENGTH,
            amount_tolerance=Decimal(settings.AMOUNT_TOLERANCE),
            allow_processing_to_pending=settings.ALLOW_PROCESSING_TO_PENDING,
        )


class TransactionEngine:
    def __init__(
        self,
        uow: UnitOfWork,
        transactions: TransactionRepository,
        withdrawals: WithdrawalRepository,
        ledger: AccountLedger,
        rates: ExchangeRateRepository,
        accounts: PaymentAccountRepository,
        notifier: NotificationDispatcher,
        policy: Optional[EnginePolicy] = None,
    ):
        self.uow = uow
        self.transactions = transactions
        self.withdrawals = withdrawals
        self.ledger = ledger
        self.rates = rates
        self.accounts = accounts
        self.notifier = notifier
        self.policy = policy or EnginePolicy()

    # creation

    def create_transaction(
        self,
        user: User,
        kind: Any,
        source_amount: Any,
        source_currency: str,
        target_amount: Any,
        target_currency: str,
        rate: Any,
        commission_rate: Any,
        commission_amount: Any,
        payment_method: Optional[str] = None,
        payment_details: Optional[str] = None,
        payment_account_id: Optional[int] = None,
    ) -> Transaction:
        tx, _ = self._create(
            user, kind, source_amount, source_currency, target_amount, target_currency,
            rate, commission_rate, commission_amount,
            payment_method, payment_details, payment_account_id,
        )
        return tx

    def request_withdrawal(
        self, user: User, amount: Any, method: str, details: str
    ) -> Tuple[WithdrawalRequest, Transaction]:
        local = self.policy.local_currency
        tx, withdrawal = self._create(
            user, TransactionKind.WITHDRAWAL, amount, local, amount, local,
            "1", "0", "0", method, details, None,
        )
        assert withdrawal is not None
        return withdrawal, tx

    def _create(
        self,
        user: User,
        kind: Any,
        source_amount: Any,
        source_currency: str,
        target_amount: Any,
        target_currency: str,
        rate: Any,
        commission_rate: Any,
        commission_amount: Any,
        payment_method: Optional[str],
        payment_details: Optional[str],
        payment_account_id: Optional[int],
    ) -> Tuple[Transaction, Optional[WithdrawalRequest]]:
        if user is None or user.id is None:
            raise AuthorizationError("Authentication required")
        kind = _parse_kind(kind)
        source = parse_amount(source_amount, "source_amount")
        target = parse_amount(target_amount, "target_amount")
        src_currency = _parse_currency(source_currency, "source_currency")
        tgt_currency = _parse_currency(target_currency, "target_currency")
        snap_rate = parse_rate(rate, "rate")
        snap_commission_rate = parse_commission_rate(commission_rate, "commission_rate")
        snap_commission = parse_non_negative_amount(commission_amount, "commission_amount")
        payment_method = _optional_text(payment_method)
        payment_details = _optional_text(payment_details)

        if kind is TransactionKind.CONVERSION:
            self._check_conversion(
                source, target, src_currency, tgt_currency,
                snap_rate, snap_commission_rate, snap_commission,
            )
            if payment_account_id is not None:
                account = self.accounts.get(int(payment_account_id))
                if account is None or not account.is_active:
                    raise ValidationError("payment_account_id must reference an active payment account",
                                          field="payment_account_id")
        else:
            self._check_withdrawal(
                source, target, src_currency, tgt_currency,
                snap_rate, snap_commission_rate, snap_commission,
                payment_method, payment_details,
            )
            payment_account_id = None

        now = _now()
        withdrawal = None
        with self.uow.atomic():
            if kind is TransactionKind.WITHDRAWAL:
                # checked again at completion, this only rejects obvious overdrafts early
                balance = self.ledger.get(user.id)
                if source > balance:
                    raise InsufficientFundsError("Insufficient balance")
            tx = self.transactions.add(Transaction(
                id=None,
                code=generate_transaction_code(self.policy.code_prefix, self.policy.code_length),
                user_id=user.id,
                kind=kind,
                source_amount=source,
                source_currency=src_currency,
                target_amount=target,
                target_currency=tgt_currency,
                rate=snap_rate,
                commission_rate=snap_commission_rate,
                commission_amount=snap_commission,
                status=TransactionStatus.PENDING,
                created_at=now,
                updated_at=now,
                payment_method=payment_method,
                payment_details=payment_details,
                payment_account_id=payment_account_id,
            ))
            if kind is TransactionKind.WITHDRAWAL:
                withdrawal = self.withdrawals.add(WithdrawalRequest(
                    id=None,
                    user_id=user.id,
                    transaction_id=tx.id,
                    amount=source,
                    method=payment_method,
                    details=payment_details,
                    status=TransactionStatus.PENDING,
                    created_at=now,
                    updated_at=now,
                ))
        logger.info("Created %s transaction %s (id=%s) for user %s", kind.value, tx.code, tx.id, user.id)
        return tx, withdrawal

    def _check_conversion(self, source, target, src_currency, tgt_currency,
                          rate, commission_rate, commission_amount) -> None:
        if src_currency == tgt_currency:
            raise ValidationError("source and target currency must differ", field="target_currency")
        if tgt_currency != self.policy.local_currency:
            raise ValidationError(f"target_currency must be {self.policy.local_currency}", field="target_currency")
        pair = f"{src_currency}_{tgt_currency}"
        current = self.rates.get(pair)
        if current is None:
            raise ValidationError(f"Currency pair {pair} is not supported", field="source_currency")
        if current.rate != rate or current.commission_rate != commission_rate:
            raise ConflictError(f"The {pair} exchange rate has changed, please request a new quote")

        expected_commission, expected_target = conversion_amounts(source, rate, commission_rate)
        tolerance = self.policy.amount_tolerance
        if abs(commission_amount - expected_commission) > tolerance:
            raise ValidationError(
                f"commission_amount does not match rate and commission (expected {quantize_amount(expected_commission)})",
                field="commission_amount",
            )
        if abs(target - expected_target) > tolerance:
            raise ValidationError(
                f"target_amount does not match rate and commission (expected {quantize_amount(expected_target)})",
                field="target_amount",
            )

    def _check_withdrawal(self, source, target, src_currency, tgt_currency, rate,
                          commission_rate, commission_amount, method, details) -> None:
        local = self.policy.local_currency
        if src_currency != local or tgt_currency != local:
            raise ValidationError(f"withdrawals are paid out in {local}", field="source_currency")
        if target != source or rate != 1 or commission_rate != 0 or commission_amount != 0:
            raise ValidationError("withdrawals carry no conversion or commission", field="target_amount")
        if not method:
            raise ValidationError("payment_method is required for withdrawals", field="payment_method")
        if not details:
            raise ValidationError("payment_details is required for withdrawals", field="payment_details")

    # proof

    def attach_payment_proof(self, transaction_id: int, requester_id: int, proof_ref: Optional[str]) -> Transaction:
        with self.uow.atomic():
            tx = self._get_or_404(transaction_id)
            if tx.user_id != requester_id:
                logger.warning(
                    "security: user %s tried to attach payment proof to transaction %s owned by %s",
                    requester_id, tx.id, tx.user_id,
                )
                raise AuthorizationError("You can only upload proof for your own transactions")
            if not proof_ref:
                raise ValidationError("A payment proof file is required", field="screenshot")
            if tx.kind is not TransactionKind.CONVERSION:
                raise ValidationError("Payment proof is only accepted for conversions", field="screenshot")
            if tx.status.is_terminal:
                raise ConflictError(f"Transaction {tx.code} is already {tx.status.value}")
            if not self.transactions.attach_proof_if_active(tx.id, proof_ref, _now()):
                raise ConflictError(f"Transaction {tx.code} was closed while uploading proof")
            updated = self._get_or_404(tx.id)
        logger.info("Payment proof attached to transaction %s, now %s", updated.code, updated.status.value)
        return updated

    # admin review

    def admin_update_status(
        self,
        transaction_id: int,
        new_status: Any,
        admin_notes: Optional[str],
        admin: User,
    ) -> Transaction:
        self._require_admin(admin, f"update transaction {transaction_id}")
        status = parse_status(new_status)
        notes = _optional_text(admin_notes)

        with self.uow.atomic():
            tx = self._get_or_404(transaction_id)
            if not can_transition(tx.status, status, self.policy.allow_processing_to_pending):
                logger.warning(
                    "Rejected transition %s -> %s for transaction %s by admin %s",
                    tx.status.value, status.value, tx.code, admin.id,
                )
                raise ConflictError(
                    f"Transaction {tx.code} cannot move from {tx.status.value} to {status.value}"
                )
            now = _now()
            if not self.transactions.update_status_if(tx.id, tx.status, status, notes, now):
                raise ConflictError(f"Transaction {tx.code} was modified concurrently, reload and retry")

            if status is TransactionStatus.COMPLETED:
                self._settle(tx)
            if tx.kind is TransactionKind.WITHDRAWAL:
                if not self.withdrawals.sync_status(tx.id, status, notes, now):
                    logger.warning("Withdrawal transaction %s has no linked withdrawal request", tx.code)
            updated = self._get_or_404(tx.id)

        logger.info(
            "Transaction %s moved %s -> %s by admin %s",
            updated.code, tx.status.value, updated.status.value, admin.id,
        )
        self._notify_status_change(updated, notes)
        return updated

    def admin_update_withdrawal(
        self,
        withdrawal_id: int,
        new_status: Any,
        admin_notes: Optional[str],
        admin: User,
    ) -> Tuple[WithdrawalRequest, Transaction]:
        self._require_admin(admin, f"update withdrawal {withdrawal_id}")
        withdrawal = self.withdrawals.get_by_id(withdrawal_id)
        if withdrawal is None:
            raise NotFoundError("Withdrawal request not found")
        if withdrawal.transaction_id is None:
            raise ConflictError("Withdrawal request has no linked transaction")
        tx = self.admin_update_status(withdrawal.transaction_id, new_status, admin_notes, admin)
        refreshed = self.withdrawals.get_by_id(withdrawal_id)
        assert refreshed is not None
        return refreshed, tx

    def _settle(self, tx: Transaction) -> None:
        if tx.kind is TransactionKind.CONVERSION:
            balance = self.ledger.credit(tx.user_id, tx.target_amount, tx.id)
            logger.info("Credited %s %s to user %s for %s, balance %s",
                        tx.target_amount, tx.target_currency, tx.user_id, tx.code, balance)
            return
        try:
            balance = self.ledger.debit(tx.user_id, tx.source_amount, tx.id)
        except InsufficientFundsError:
            logger.warning("Withdrawal %s of %s exceeds balance of user %s, rolled back",
                           tx.code, tx.source_amount, tx.user_id)
            raise
        logger.info("Debited %s %s from user %s for %s, balance %s",
                    tx.source_amount, tx.source_currency, tx.user_id, tx.code, balance)

    def _notify_status_change(self, tx: Transaction, notes: Optional[str]) -> None:
        amount = f"{tx.source_amount} {tx.source_currency}"
        if tx.kind is TransactionKind.CONVERSION:
            if tx.status is TransactionStatus.COMPLETED:
                title = "Conversion approved"
                message = (f"Your conversion of {amount} was approved. "
                           f"{tx.target_amount} {tx.target_currency} has been added to your balance.")
                type = "success"
            elif tx.status is TransactionStatus.CANCELLED:
                title = "Conversion rejected"
                message = f"Your conversion of {amount} was rejected. Reason: {notes or NOT_SPECIFIED}"
                type = "error"
            else:
                return
        else:
            if tx.status is TransactionStatus.COMPLETED:
                title = "Withdrawal approved"
                message = f"Your withdrawal of {amount} was approved."
                type = "success"
            elif tx.status is TransactionStatus.CANCELLED:
                title = "Withdrawal rejected"
                message = f"Your withdrawal of {amount} was rejected. Reason: {notes or NOT_SPECIFIED}"
                type = "error"
            else:
                return
        self.notifier.notify(
            Direct(tx.user_id),
            title=title,
            message=message,
            type=type,
            related_entity_type="transaction",
            related_entity_id=tx.id,
        )

    # queries

    def get_transaction(self, transaction_id: int, viewer: User) -> Transaction:
        tx = self._get_or_404(transaction_id)
        self._require_owner_or_admin(tx, viewer)
        return tx

    def get_transaction_by_code(self, code: str, viewer: User) -> Transaction:
        tx = self.transactions.get_by_code((code or "").strip().upper())
        if tx is None:
            raise NotFoundError("Transaction not found")
        self._require_owner_or_admin(tx, viewer)
        return tx

    def list_user_transactions(self, user: User, limit: int = 100, offset: int = 0) -> List[Transaction]:
        return self.transactions.list_by_owner(user.id, limit=limit, offset=offset)

    def list_all_transactions(self, admin: User, limit: int = 100, offset: int = 0) -> List[Transaction]:
        self._require_admin(admin, "list all transactions")
        return self.transactions.list_all(limit=limit, offset=offset)

    def list_pending_transactions(self, admin: User) -> List[Transaction]:
        self._require_admin(admin, "list pending transactions")
        return self.transactions.list_by_statuses(ACTIVE_STATUSES)

    def list_user_withdrawals(self, user: User) -> List[WithdrawalRequest]:
        return self.withdrawals.list_by_owner(user.id)

    def list_pending_withdrawals(self, admin: User) -> List[WithdrawalRequest]:
        self._require_admin(admin, "list pending withdrawals")
        return self.withdrawals.list_by_statuses(ACTIVE_STATUSES)

    def _get_or_404(self, transaction_id: int) -> Transaction:
        tx = self.transactions.get_by_id(transaction_id)
        if tx is None:
            raise NotFoundError("Transaction not found")
        return tx

    def _require_admin(self, user: User, action: str) -> None:
        if user is None or not user.is_admin:
            logger.warning("security: non-admin user %s tried to %s", getattr(user, "id", None), action)
            raise AuthorizationError("Administrator access required")

    def _require_owner_or_admin(self, tx: Transaction, viewer: User) -> None:
        if viewer.is_admin or viewer.id == tx.user_id:
            return
        logger.warning("security: user %s tried to read transaction %s of user %s", viewer.id, tx.id, tx.user_id)
        raise AuthorizationError("You can only view your own transactions")
