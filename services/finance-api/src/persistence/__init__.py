"""Persistence primitives for the finance API."""

from persistence.database import (
    DB_URL_ENV_VAR,
    DEFAULT_DB_FILENAME,
    DEFAULT_DB_PATH,
    SessionLocal,
    build_engine,
    get_database_url,
    get_engine,
    get_session,
    init_db,
)
from persistence.models import Base, Transaction, TransactionType, User
from persistence.repository import (
    InvalidTransactionError,
    NewTransaction,
    TransactionFilter,
    TransactionRepository,
    TypeTotals,
    UserRepository,
)

__all__ = [
    "Base",
    "DB_URL_ENV_VAR",
    "DEFAULT_DB_FILENAME",
    "DEFAULT_DB_PATH",
    "InvalidTransactionError",
    "NewTransaction",
    "SessionLocal",
    "Transaction",
    "TransactionFilter",
    "TransactionRepository",
    "TransactionType",
    "TypeTotals",
    "User",
    "UserRepository",
    "build_engine",
    "get_database_url",
    "get_engine",
    "get_session",
    "init_db",
]
