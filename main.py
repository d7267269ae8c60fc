import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import settings
from core.use_cases.rate_use_cases import seed_default_rate
from core.use_cases.user_use_cases import ensure_admin_account
from infrastructure.db.sqlite import init_db, connect, SQLiteUserRepository
from infrastructure.db.sqlite_catalog import SQLiteExchangeRateRepository
from infrastructure.web.controllers.user_controller import router as user_router
from infrastructure.web.controllers.transaction_controller import router as transaction_router
from infrastructure.web.controllers.admin_controller import router as admin_router
from infrastructure.web.controllers.rate_controller import router as rate_router
from infrastructure.web.controllers.notification_controller import router as notification_router
from infrastructure.web.controllers.identity_controller import router as identity_router
from infrastructure.web.errors import register_error_handlers

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    if logging.root.handlers:
        return
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

_configure_logging()

app = FastAPI(title="Exchange desk")

# от CORS
origins = [
    "http://localhost:8000",
    "http://localhost:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

def bootstrap(db_path: str) -> None:
    init_db(db_path)
    conn = connect(db_path, timeout=settings.DB_TIMEOUT_SECONDS)
    try:
        seed_default_rate(
            SQLiteExchangeRateRepository(conn),
            settings.DEFAULT_RATE_PAIR,
            settings.DEFAULT_RATE,
            settings.DEFAULT_COMMISSION_RATE,
        )
        ensure_admin_account(SQLiteUserRepository(conn), settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD)
    finally:
        conn.close()

@app.on_event("startup")
def on_startup():
    bootstrap(settings.DB_PATH)

app.include_router(user_router)
app.include_router(transaction_router)
app.include_router(admin_router)
app.include_router(rate_router)
app.include_router(notification_router)
app.include_router(identity_router)
