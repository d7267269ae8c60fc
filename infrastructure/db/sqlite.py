import sqlite3
import json
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Optional, List, Iterator

from core.entities.ledger_entry import LedgerEntry
from core.entities.money import to_cents, from_cents
from core.entities.user import User, IDENTITY_NONE
from core.errors import NotFoundError, InsufficientFundsError
from core.repositories.ledger_repository import AccountLedger
from core.repositories.unit_of_work import UnitOfWork
from core.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    email TEXT UNIQUE NOT NULL,
    password_hash TEXT NOT NULL,
    full_name TEXT NOT NULL DEFAULT '',
    is_admin INTEGER NOT NULL DEFAULT 0,
    balance_cents INTEGER NOT NULL DEFAULT 0 CHECK (balance_cents >= 0),
    identity_status TEXT NOT NULL DEFAULT 'none',
    identity_documents TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS transactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    code TEXT UNIQUE NOT NULL,
    user_id INTEGER NOT NULL,
    kind TEXT NOT NULL CHECK (kind IN ('conversion', 'withdrawal')),
    source_amount_cents INTEGER NOT NULL,
    source_currency TEXT NOT NULL,
    target_amount_cents INTEGER NOT NULL,
    target_currency TEXT NOT NULL,
    rate TEXT NOT NULL,
    commission_rate TEXT NOT NULL,
    commission_amount_cents INTEGER NOT NULL,
    status TEXT NOT NULL CHECK (status IN ('pending', 'processing', 'completed', 'cancelled')),
    payment_method TEXT,
    payment_details TEXT,
    payment_screenshot TEXT,
    payment_account_id INTEGER,
    admin_notes TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    FOREIGN KEY(user_id) REFERENCES users(id),
    FOREIGN KEY(payment_account_id) REFERENCES payment_accounts(id)
);
CREATE INDEX IF NOT EXISTS ix_transactions_user ON transactions(user_id);
CREATE INDEX IF NOT EXISTS ix_transactions_status ON transactions(status);

CREATE TABLE IF NOT EXISTS withdrawal_requests (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    transaction_id INTEGER UNIQUE,
    amount_cents INTEGER NOT NULL,
    method TEXT NOT NULL,
    details TEXT NOT NULL,
    status TEXT NOT NULL,
    admin_notes TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    FOREIGN KEY(user_id) REFERENCES users(id),
    FOREIGN KEY(transaction_id) REFERENCES transactions(id)
);

CREATE TABLE IF NOT EXISTS ledger_entries (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    transaction_id INTEGER NOT NULL UNIQUE,
    amount_cents INTEGER NOT NULL,
    balance_after_cents INTEGER NOT NULL,
    created_at TEXT NOT NULL,
    FOREIGN KEY(user_id) REFERENCES users(id),
    FOREIGN KEY(transaction_id) REFERENCES transactions(id)
);

CREATE TABLE IF NOT EXISTS exchange_rates (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    currency_pair TEXT UNIQUE NOT NULL,
    rate TEXT NOT NULL,
    commission_rate TEXT NOT NULL,
    updated_by INTEGER,
    updated_at TEXT NOT NULL,
    FOREIGN KEY(updated_by) REFERENCES users(id)
);

CREATE TABLE IF NOT EXISTS payment_accounts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    account_type TEXT NOT NULL,
    account_name TEXT NOT NULL,
    account_number TEXT NOT NULL,
    bank_name TEXT,
    iban TEXT,
    swift_code TEXT,
    branch_code TEXT,
    additional_info TEXT,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS notifications (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER,
    audience TEXT,
    title TEXT NOT NULL,
    message TEXT NOT NULL,
    type TEXT NOT NULL,
    related_entity_type TEXT,
    related_entity_id INTEGER,
    created_at TEXT NOT NULL,
    CHECK ((user_id IS NULL) <> (audience IS NULL)),
    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS notification_receipts (
    notification_id INTEGER NOT NULL,
    user_id INTEGER NOT NULL,
    read_at TEXT,
    dismissed INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (notification_id, user_id),
    FOREIGN KEY(notification_id) REFERENCES notifications(id) ON DELETE CASCADE
);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class DeskConnection(sqlite3.Connection):
    """sqlite3 connection in autocommit mode with an explicit ``atomic()`` scope.

    ``BEGIN IMMEDIATE`` takes the database write lock up front, so two units
    touching the same balance are serialised rather than interleaved.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._atomic_depth = 0

    @contextmanager
    def atomic(self) -> Iterator[None]:
        if self._atomic_depth:
            self._atomic_depth += 1
            try:
                yield
            finally:
                self._atomic_depth -= 1
            return

        self.execute("BEGIN IMMEDIATE")
        self._atomic_depth = 1
        try:
            yield
        except BaseException:
            self._atomic_depth = 0
            self.execute("ROLLBACK")
            raise
        self._atomic_depth = 0
        try:
            self.execute("COMMIT")
        except sqlite3.Error:
            if self.in_transaction:
                self.execute("ROLLBACK")
            raise


def connect(db_path: str, timeout: float = 10.0) -> DeskConnection:
    conn = sqlite3.connect(
        db_path,
        timeout=timeout,
        check_same_thread=False,
        isolation_level=None,
        factory=DeskConnection,
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(db_path: str) -> None:
    if db_path != ":memory:" and not db_path.startswith("file:"):
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = connect(db_path)
    try:
        conn.executescript(SCHEMA)
    finally:
        conn.close()
    logger.info("Database schema ready at %s", db_path)


class SQLiteUnitOfWork(UnitOfWork):
    def __init__(self, conn: DeskConnection):
        self.conn = conn

    def atomic(self):
        return self.conn.atomic()


class SQLiteUserRepository(UserRepository):
    def __init__(self, conn: DeskConnection):
        self.conn = conn

    def _row_to_user(self, row: sqlite3.Row) -> User:
        documents: List[str] = []
        if row["identity_documents"]:
            documents = json.loads(row["identity_documents"])
        return User(
            id=row["id"],
            email=row["email"],
            password_hash=row["password_hash"],
            is_admin=bool(row["is_admin"]),
            balance=from_cents(row["balance_cents"]),
            created_at=row["created_at"],
            full_name=row["full_name"],
            identity_status=row["identity_status"],
            identity_documents=documents,
        )

    def create_user(self, email: str, password_hash: str, is_admin: bool = False, full_name: str = "") -> User:
        created_at = _now()
        cur = self.conn.cursor()
        cur.execute(
            "INSERT INTO users (email, password_hash, full_name, is_admin, balance_cents, identity_status, created_at) "
            "VALUES (?, ?, ?, ?, 0, ?, ?)",
            (email, password_hash, full_name, 1 if is_admin else 0, IDENTITY_NONE, created_at),
        )
        return User(id=cur.lastrowid, email=email, password_hash=password_hash, is_admin=is_admin,
                    balance=from_cents(0), created_at=created_at, full_name=full_name)

    def get_by_email(self, email: str) -> Optional[User]:
        cur = self.conn.cursor()
        cur.execute("SELECT * FROM users WHERE email = ?", (email,))
        row = cur.fetchone()
        return self._row_to_user(row) if row else None

    def get_by_id(self, user_id: int) -> Optional[User]:
        cur = self.conn.cursor()
        cur.execute("SELECT * FROM users WHERE id = ?", (int(user_id),))
        row = cur.fetchone()
        return self._row_to_user(row) if row else None

    def list_users(self) -> List[User]:
        cur = self.conn.cursor()
        cur.execute("SELECT * FROM users ORDER BY id")
        return [self._row_to_user(r) for r in cur.fetchall()]

    def set_identity(self, user_id: int, status: str, documents: Optional[List[str]] = None) -> User:
        cur = self.conn.cursor()
        if documents is None:
            cur.execute("UPDATE users SET identity_status = ? WHERE id = ?", (status, int(user_id)))
        else:
            cur.execute(
                "UPDATE users SET identity_status = ?, identity_documents = ? WHERE id = ?",
                (status, json.dumps(documents), int(user_id)),
            )
        if cur.rowcount == 0:
            raise NotFoundError("User not found")
        user = self.get_by_id(user_id)
        assert user is not None
        return user

    def update_identity_if(self, user_id: int, expected_status: str, new_status: str) -> bool:
        cur = self.conn.cursor()
        cur.execute(
            "UPDATE users SET identity_status = ? WHERE id = ? AND identity_status = ?",
            (new_status, int(user_id), expected_status),
        )
        return cur.rowcount == 1

    def set_admin(self, user_id: int, is_admin: bool) -> User:
        cur = self.conn.cursor()
        cur.execute("UPDATE users SET is_admin = ? WHERE id = ?", (1 if is_admin else 0, int(user_id)))
        if cur.rowcount == 0:
            raise NotFoundError("User not found")
        user = self.get_by_id(user_id)
        assert user is not None
        return user


class SQLiteAccountLedger(AccountLedger):
    def __init__(self, conn: DeskConnection):
        self.conn = conn

    def _row_to_entry(self, row: sqlite3.Row) -> LedgerEntry:
        return LedgerEntry(
            id=row["id"],
            user_id=row["user_id"],
            transaction_id=row["transaction_id"],
            amount=from_cents(row["amount_cents"]),
            balance_after=from_cents(row["balance_after_cents"]),
            created_at=row["created_at"],
        )

    def _balance_cents(self, user_id: int) -> int:
        cur = self.conn.cursor()
        cur.execute("SELECT balance_cents FROM users WHERE id = ?", (int(user_id),))
        row = cur.fetchone()
        if row is None:
            raise NotFoundError("User not found")
        return int(row["balance_cents"])

    def _record(self, user_id: int, transaction_id: int, amount_cents: int, balance_after: int) -> None:
        self.conn.execute(
            "INSERT INTO ledger_entries (user_id, transaction_id, amount_cents, balance_after_cents, created_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (int(user_id), int(transaction_id), int(amount_cents), int(balance_after), _now()),
        )

    def get(self, user_id: int) -> Decimal:
        return from_cents(self._balance_cents(user_id))

    def credit(self, user_id: int, amount: Decimal, transaction_id: int) -> Decimal:
        cents = to_cents(amount)
        if cents <= 0:
            raise ValueError("credit amount must be positive")
        with self.conn.atomic():
            cur = self.conn.cursor()
            cur.execute(
                "UPDATE users SET balance_cents = balance_cents + ? WHERE id = ?",
                (cents, int(user_id)),
            )
            if cur.rowcount == 0:
                raise NotFoundError("User not found")
            balance = self._balance_cents(user_id)
            self._record(user_id, transaction_id, cents, balance)
        return from_cents(balance)

    def debit(self, user_id: int, amount: Decimal, transaction_id: int) -> Decimal:
        cents = to_cents(amount)
        if cents <= 0:
            raise ValueError("debit amount must be positive")
        with self.conn.atomic():
            cur = self.conn.cursor()
            cur.execute(
                "UPDATE users SET balance_cents = balance_cents - ? WHERE id = ? AND balance_cents >= ?",
                (cents, int(user_id), cents),
            )
            if cur.rowcount == 0:
                balance = self._balance_cents(user_id)  # raises NotFoundError for unknown users
                raise InsufficientFundsError(
                    f"Insufficient balance: {from_cents(balance)} available, {from_cents(cents)} requested"
                )
            balance = self._balance_cents(user_id)
            self._record(user_id, transaction_id, -cents, balance)
        return from_cents(balance)

    def list_entries(self, user_id: int, limit: int = 100, offset: int = 0) -> List[LedgerEntry]:
        cur = self.conn.cursor()
        cur.execute(
            "SELECT * FROM ledger_entries WHERE user_id = ? ORDER BY id DESC LIMIT ? OFFSET ?",
            (int(user_id), int(limit), int(offset)),
        )
        return [self._row_to_entry(r) for r in cur.fetchall()]
