import sqlite3
from dataclasses import replace
from decimal import Decimal
from typing import Optional, List, Iterable

from core.entities.money import to_cents, from_cents
from core.entities.transaction import Transaction, TransactionKind, TransactionStatus
from core.entities.withdrawal import WithdrawalRequest
from core.repositories.transaction_repository import TransactionRepository, WithdrawalRepository
from infrastructure.db.sqlite import DeskConnection


def _placeholders(values: List[str]) -> str:
    return ", ".join("?" for _ in values)


class SQLiteTransactionRepository(TransactionRepository):
    def __init__(self, conn: DeskConnection):
        self.conn = conn

    def _row_to_tx(self, row: sqlite3.Row) -> Transaction:
        return Transaction(
            id=row["id"],
            code=row["code"],
            user_id=row["user_id"],
            kind=TransactionKind(row["kind"]),
            source_amount=from_cents(row["source_amount_cents"]),
            source_currency=row["source_currency"],
            target_amount=from_cents(row["target_amount_cents"]),
            target_currency=row["target_currency"],
            rate=Decimal(row["rate"]),
            commission_rate=Decimal(row["commission_rate"]),
            commission_amount=from_cents(row["commission_amount_cents"]),
            status=TransactionStatus(row["status"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            payment_method=row["payment_method"],
            payment_details=row["payment_details"],
            payment_screenshot=row["payment_screenshot"],
            payment_account_id=row["payment_account_id"],
            admin_notes=row["admin_notes"],
        )

    def add(self, tx: Transaction) -> Transaction:
        cur = self.conn.cursor()
        cur.execute(
            """
            INSERT INTO transactions (
                code, user_id, kind, source_amount_cents, source_currency,
                target_amount_cents, target_currency, rate, commission_rate,
                commission_amount_cents, status, payment_method, payment_details,
                payment_screenshot, payment_account_id, admin_notes, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                tx.code, int(tx.user_id), tx.kind.value, to_cents(tx.source_amount), tx.source_currency,
                to_cents(tx.target_amount), tx.target_currency, str(tx.rate), str(tx.commission_rate),
                to_cents(tx.commission_amount), tx.status.value, tx.payment_method, tx.payment_details,
                tx.payment_screenshot, tx.payment_account_id, tx.admin_notes, tx.created_at, tx.updated_at,
            ),
        )
        return replace(tx, id=cur.lastrowid)

    def get_by_id(self, transaction_id: int) -> Optional[Transaction]:
        cur = self.conn.cursor()
        cur.execute("SELECT * FROM transactions WHERE id = ?", (int(transaction_id),))
        row = cur.fetchone()
        return self._row_to_tx(row) if row else None

    def get_by_code(self, code: str) -> Optional[Transaction]:
        cur = self.conn.cursor()
        cur.execute("SELECT * FROM transactions WHERE code = ?", (code,))
        row = cur.fetchone()
        return self._row_to_tx(row) if row else None

    def list_by_owner(self, user_id: int, limit: int = 100, offset: int = 0) -> List[Transaction]:
        cur = self.conn.cursor()
        cur.execute(
            "SELECT * FROM transactions WHERE user_id = ? ORDER BY id DESC LIMIT ? OFFSET ?",
            (int(user_id), int(limit), int(offset)),
        )
        return [self._row_to_tx(r) for r in cur.fetchall()]

    def list_all(self, limit: int = 100, offset: int = 0) -> List[Transaction]:
        cur = self.conn.cursor()
        cur.execute("SELECT * FROM transactions ORDER BY id DESC LIMIT ? OFFSET ?", (int(limit), int(offset)))
        return [self._row_to_tx(r) for r in cur.fetchall()]

    def list_by_statuses(self, statuses: Iterable[TransactionStatus]) -> List[Transaction]:
        values = sorted(s.value for s in statuses)
        cur = self.conn.cursor()
        cur.execute(
            f"SELECT * FROM transactions WHERE status IN ({_placeholders(values)}) ORDER BY id DESC",
            values,
        )
        return [self._row_to_tx(r) for r in cur.fetchall()]

    def update_status_if(
        self,
        transaction_id: int,
        expected: TransactionStatus,
        new: TransactionStatus,
        admin_notes: Optional[str],
        updated_at: str,
    ) -> bool:
        cur = self.conn.cursor()
        cur.execute(
            "UPDATE transactions SET status = ?, admin_notes = COALESCE(?, admin_notes), updated_at = ? "
            "WHERE id = ? AND status = ?",
            (new.value, admin_notes, updated_at, int(transaction_id), expected.value),
        )
        return cur.rowcount == 1

    def attach_proof_if_active(self, transaction_id: int, proof_ref: str, updated_at: str) -> bool:
        cur = self.conn.cursor()
        cur.execute(
            "UPDATE transactions SET payment_screenshot = ?, status = ?, updated_at = ? "
            "WHERE id = ? AND status IN (?, ?)",
            (
                proof_ref, TransactionStatus.PROCESSING.value, updated_at, int(transaction_id),
                TransactionStatus.PENDING.value, TransactionStatus.PROCESSING.value,
            ),
        )
        return cur.rowcount == 1


class SQLiteWithdrawalRepository(WithdrawalRepository):
    def __init__(self, conn: DeskConnection):
        self.conn = conn

    def _row_to_withdrawal(self, row: sqlite3.Row) -> WithdrawalRequest:
        return WithdrawalRequest(
            id=row["id"],
            user_id=row["user_id"],
            transaction_id=row["transaction_id"],
            amount=from_cents(row["amount_cents"]),
            method=row["method"],
            details=row["details"],
            status=TransactionStatus(row["status"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            admin_notes=row["admin_notes"],
        )

    def add(self, withdrawal: WithdrawalRequest) -> WithdrawalRequest:
        cur = self.conn.cursor()
        cur.execute(
            "INSERT INTO withdrawal_requests (user_id, transaction_id, amount_cents, method, details, status, "
            "admin_notes, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                int(withdrawal.user_id), withdrawal.transaction_id, to_cents(withdrawal.amount),
                withdrawal.method, withdrawal.details, withdrawal.status.value, withdrawal.admin_notes,
                withdrawal.created_at, withdrawal.updated_at,
            ),
        )
        return replace(withdrawal, id=cur.lastrowid)

    def get_by_id(self, withdrawal_id: int) -> Optional[WithdrawalRequest]:
        cur = self.conn.cursor()
        cur.execute("SELECT * FROM withdrawal_requests WHERE id = ?", (int(withdrawal_id),))
        row = cur.fetchone()
        return self._row_to_withdrawal(row) if row else None

    def get_by_transaction(self, transaction_id: int) -> Optional[WithdrawalRequest]:
        cur = self.conn.cursor()
        cur.execute("SELECT * FROM withdrawal_requests WHERE transaction_id = ?", (int(transaction_id),))
        row = cur.fetchone()
        return self._row_to_withdrawal(row) if row else None

    def sync_status(
        self,
        transaction_id: int,
        status: TransactionStatus,
        admin_notes: Optional[str],
        updated_at: str,
    ) -> int:
        cur = self.conn.cursor()
        cur.execute(
            "UPDATE withdrawal_requests SET status = ?, admin_notes = COALESCE(?, admin_notes), updated_at = ? "
            "WHERE transaction_id = ?",
            (status.value, admin_notes, updated_at, int(transaction_id)),
        )
        return cur.rowcount

    def list_by_owner(self, user_id: int) -> List[WithdrawalRequest]:
        cur = self.conn.cursor()
        cur.execute("SELECT * FROM withdrawal_requests WHERE user_id = ? ORDER BY id DESC", (int(user_id),))
        return [self._row_to_withdrawal(r) for r in cur.fetchall()]

    def list_by_statuses(self, statuses: Iterable[TransactionStatus]) -> List[WithdrawalRequest]:
        values = sorted(s.value for s in statuses)
        cur = self.conn.cursor()
        cur.execute(
            f"SELECT * FROM withdrawal_requests WHERE status IN ({_placeholders(values)}) ORDER BY id DESC",
            values,
        )
        return [self._row_to_withdrawal(r) for r in cur.fetchall()]
