"""
Database abstraction layer

Connection management, per-engine dialect strategies and live schema
introspection on top of SQLAlchemy Core.
"""

from .config import DatabaseConfig
from .base_manager import DatabaseManager
from .engine_factory import DatabaseFactory
from .snapshot import SnapshotLoader
from .dialects import (
    BaseDialect, MySQLDialect, PostgreSQLDialect, SQLiteDialect, SQLServerDialect,
    register_dialect, get_dialect, get_supported_dialects
)

__all__ = [
    'DatabaseConfig',
    'DatabaseManager',
    'DatabaseFactory',
    'SnapshotLoader',
    'BaseDialect',
    'MySQLDialect',
    'PostgreSQLDialect',
    'SQLiteDialect',
    'SQLServerDialect',
    'register_dialect',
    'get_dialect',
    'get_supported_dialects',
]
