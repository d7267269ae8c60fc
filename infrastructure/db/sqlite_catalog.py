import sqlite3
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, List, Dict, Any

from core.entities.exchange_rate import ExchangeRate
from core.entities.payment_account import PaymentAccount
from core.errors import ConflictError
from core.repositories.catalog_repository import ExchangeRateRepository, PaymentAccountRepository
from infrastructure.db.sqlite import DeskConnection

ACCOUNT_COLUMNS = (
    "account_type", "account_name", "account_number", "bank_name", "iban",
    "swift_code", "branch_code", "additional_info", "is_active",
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteExchangeRateRepository(ExchangeRateRepository):
    def __init__(self, conn: DeskConnection):
        self.conn = conn

    def _row_to_rate(self, row: sqlite3.Row) -> ExchangeRate:
        return ExchangeRate(
            id=row["id"],
            currency_pair=row["currency_pair"],
            rate=Decimal(row["rate"]),
            commission_rate=Decimal(row["commission_rate"]),
            updated_by=row["updated_by"],
            updated_at=row["updated_at"],
        )

    def get(self, currency_pair: str) -> Optional[ExchangeRate]:
        cur = self.conn.cursor()
        cur.execute("SELECT * FROM exchange_rates WHERE currency_pair = ?", (currency_pair,))
        row = cur.fetchone()
        return self._row_to_rate(row) if row else None

    def list_all(self) -> List[ExchangeRate]:
        cur = self.conn.cursor()
        cur.execute("SELECT * FROM exchange_rates ORDER BY currency_pair")
        return [self._row_to_rate(r) for r in cur.fetchall()]

    def upsert(self, currency_pair: str, rate: Decimal, commission_rate: Decimal,
               updated_by: Optional[int]) -> ExchangeRate:
        self.conn.execute(
            """
            INSERT INTO exchange_rates (currency_pair, rate, commission_rate, updated_by, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(currency_pair) DO UPDATE SET
                rate = excluded.rate,
                commission_rate = excluded.commission_rate,
                updated_by = excluded.updated_by,
                updated_at = excluded.updated_at
            """,
            (currency_pair, str(rate), str(commission_rate), updated_by, _now()),
        )
        saved = self.get(currency_pair)
        assert saved is not None
        return saved


class SQLitePaymentAccountRepository(PaymentAccountRepository):
    def __init__(self, conn: DeskConnection):
        self.conn = conn

    def _row_to_account(self, row: sqlite3.Row) -> PaymentAccount:
        return PaymentAccount(
            id=row["id"],
            account_type=row["account_type"],
            account_name=row["account_name"],
            account_number=row["account_number"],
            is_active=bool(row["is_active"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            bank_name=row["bank_name"],
            iban=row["iban"],
            swift_code=row["swift_code"],
            branch_code=row["branch_code"],
            additional_info=row["additional_info"],
        )

    def _columns(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        values = {k: v for k, v in fields.items() if k in ACCOUNT_COLUMNS}
        if "is_active" in values:
            values["is_active"] = 1 if values["is_active"] else 0
        return values

    def create(self, fields: Dict[str, Any]) -> PaymentAccount:
        values = self._columns(fields)
        now = _now()
        values["created_at"] = now
        values["updated_at"] = now
        names = list(values)
        cur = self.conn.cursor()
        cur.execute(
            f"INSERT INTO payment_accounts ({', '.join(names)}) VALUES ({', '.join('?' for _ in names)})",
            [values[n] for n in names],
        )
        account = self.get(cur.lastrowid)
        assert account is not None
        return account

    def get(self, account_id: int) -> Optional[PaymentAccount]:
        cur = self.conn.cursor()
        cur.execute("SELECT * FROM payment_accounts WHERE id = ?", (int(account_id),))
        row = cur.fetchone()
        return self._row_to_account(row) if row else None

    def list_all(self) -> List[PaymentAccount]:
        cur = self.conn.cursor()
        cur.execute("SELECT * FROM payment_accounts ORDER BY id DESC")
        return [self._row_to_account(r) for r in cur.fetchall()]

    def list_active(self) -> List[PaymentAccount]:
        cur = self.conn.cursor()
        cur.execute("SELECT * FROM payment_accounts WHERE is_active = 1 ORDER BY id DESC")
        return [self._row_to_account(r) for r in cur.fetchall()]

    def update(self, account_id: int, fields: Dict[str, Any]) -> Optional[PaymentAccount]:
        values = self._columns(fields)
        values["updated_at"] = _now()
        assignments = ", ".join(f"{name} = ?" for name in values)
        cur = self.conn.cursor()
        cur.execute(
            f"UPDATE payment_accounts SET {assignments} WHERE id = ?",
            [*values.values(), int(account_id)],
        )
        if cur.rowcount == 0:
            return None
        return self.get(account_id)

    def delete(self, account_id: int) -> bool:
        cur = self.conn.cursor()
        try:
            cur.execute("DELETE FROM payment_accounts WHERE id = ?", (int(account_id),))
        except sqlite3.IntegrityError:
            # транзакции ссылаются на реквизиты
            raise ConflictError("Payment account is referenced by transactions, deactivate it instead")
        return cur.rowcount == 1
