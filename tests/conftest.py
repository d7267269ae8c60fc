import itertools
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from config.settings import settings
from core.entities.money import to_cents
from infrastructure.db.sqlite import init_db, connect, SQLiteUserRepository, SQLiteAccountLedger
from infrastructure.db.sqlite_catalog import SQLiteExchangeRateRepository, SQLitePaymentAccountRepository
from infrastructure.db.sqlite_notifications import SQLiteNotificationRepository
from infrastructure.db.sqlite_transactions import SQLiteWithdrawalRepository
from infrastructure.web.dependencies import build_engine

RATE = Decimal("35.42")
COMMISSION_RATE = Decimal("0.0235")

_emails = itertools.count(1)


@pytest.fixture
def db_path(tmp_path):
    path = str(tmp_path / "desk.db")
    init_db(path)
    return path


@pytest.fixture
def conn(db_path):
    c = connect(db_path, timeout=5)
    yield c
    c.close()


@pytest.fixture
def users(conn):
    return SQLiteUserRepository(conn)


@pytest.fixture
def ledger(conn):
    return SQLiteAccountLedger(conn)


@pytest.fixture
def notifications(conn):
    return SQLiteNotificationRepository(conn)


@pytest.fixture
def withdrawals(conn):
    return SQLiteWithdrawalRepository(conn)


@pytest.fixture
def accounts(conn):
    return SQLitePaymentAccountRepository(conn)


@pytest.fixture
def rates(conn):
    repo = SQLiteExchangeRateRepository(conn)
    repo.upsert("USD_TRY", RATE, COMMISSION_RATE, updated_by=None)
    return repo


@pytest.fixture
def engine(conn, rates):
    return build_engine(conn)


@pytest.fixture
def make_user(conn, users):
    def _make(is_admin=False, balance="0"):
        user = users.create_user(f"user{next(_emails)}@example.com", "not-a-real-hash", is_admin=is_admin)
        if Decimal(balance):
            conn.execute("UPDATE users SET balance_cents = ? WHERE id = ?", (to_cents(Decimal(balance)), user.id))
        return users.get_by_id(user.id)
    return _make


@pytest.fixture
def alice(make_user):
    return make_user()


@pytest.fixture
def bob(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(is_admin=True)


@pytest.fixture
def create_conversion(engine):
    """Conversion of ``amount`` USD at the seeded USD_TRY rate."""
    def _create(user, amount="100", **extra):
        amount = Decimal(amount)
        commission = (amount * RATE * COMMISSION_RATE).quantize(Decimal("0.01"))
        target = (amount * RATE - amount * RATE * COMMISSION_RATE).quantize(Decimal("0.01"))
        return engine.create_transaction(
            user,
            kind="conversion",
            source_amount=str(amount),
            source_currency="USD",
            target_amount=str(target),
            target_currency="TRY",
            rate=str(RATE),
            commission_rate=str(COMMISSION_RATE),
            commission_amount=str(commission),
            **extra,
        )
    return _create


ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-password"


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "DB_PATH", str(tmp_path / "api.db"))
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setattr(settings, "ADMIN_EMAIL", ADMIN_EMAIL)
    monkeypatch.setattr(settings, "ADMIN_PASSWORD", ADMIN_PASSWORD)
    from main import app
    with TestClient(app) as c:
        yield c


def _login(client, email, password):
    response = client.post("/api/login", auth=(email, password))
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def admin_headers(client):
    return _login(client, ADMIN_EMAIL, ADMIN_PASSWORD)


@pytest.fixture
def user_headers(client):
    response = client.post("/api/register", json={"email": "alice@example.com", "password": "secret123"})
    assert response.status_code == 201, response.text
    return _login(client, "alice@example.com", "secret123")


@pytest.fixture
def login(client):
    return lambda email, password: _login(client, email, password)
