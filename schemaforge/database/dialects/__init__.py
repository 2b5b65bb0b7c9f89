"""
Dialect strategies and their registry

Dialects are keyed by SQLAlchemy dialect name and selected once per
DatabaseManager.
"""

from typing import Dict, List, Type
import logging

from .base_dialect import BaseDialect
from .mysql_dialect import MySQLDialect
from .postgres_dialect import PostgreSQLDialect
from .sqlite_dialect import SQLiteDialect
from .sqlserver_dialect import SQLServerDialect

logger = logging.getLogger(__name__)

_DIALECTS: Dict[str, Type[BaseDialect]] = {
    'mysql': MySQLDialect,
    'mariadb': MySQLDialect,
    'postgresql': PostgreSQLDialect,
    'sqlite': SQLiteDialect,
    'mssql': SQLServerDialect,
}


def register_dialect(name: str, dialect_class: Type[BaseDialect]) -> None:
    """
    Register a dialect strategy

    Args:
        name: SQLAlchemy dialect name (engine.dialect.name)
        dialect_class: BaseDialect subclass
    """
    if not (isinstance(dialect_class, type) and issubclass(dialect_class, BaseDialect)):
        raise TypeError(f"{dialect_class!r} is not a BaseDialect subclass")
    if name in _DIALECTS:
        logger.info(f"Replacing dialect '{name}': {_DIALECTS[name].__name__} -> {dialect_class.__name__}")
    _DIALECTS[name] = dialect_class


def get_dialect(name: str, **options) -> BaseDialect:
    """
    Create the dialect strategy for a SQLAlchemy dialect name

    Args:
        name: SQLAlchemy dialect name
        **options: Dialect options (fk_verify_delay, fk_verify_attempts)

    Returns:
        BaseDialect instance

    Raises:
        ValueError: If no dialect is registered under the name
    """
    try:
        dialect_class = _DIALECTS[name]
    except KeyError:
        raise ValueError(f"Unsupported database dialect: {name}. "
                         f"Supported: {', '.join(get_supported_dialects())}") from None
    return dialect_class(**options)


def get_supported_dialects() -> List[str]:
    return sorted(_DIALECTS)


__all__ = [
    'BaseDialect',
    'MySQLDialect',
    'PostgreSQLDialect',
    'SQLiteDialect',
    'SQLServerDialect',
    'register_dialect',
    'get_dialect',
    'get_supported_dialects',
]
