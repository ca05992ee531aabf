"""Database models and engine helpers."""

from .engine import create_engine, create_session_factory, ensure_schema, to_asyncpg_dsn
from .models import AuditLogTable, TicketCommentTable, TicketTable, UserTable

__all__ = [
    "AuditLogTable",
    "TicketCommentTable",
    "TicketTable",
    "UserTable",
    "create_engine",
    "create_session_factory",
    "ensure_schema",
    "to_asyncpg_dsn",
]
