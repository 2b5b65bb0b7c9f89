"""
Logging utilities for schemaforge.

Provides migration-aware logging using Python's contextvars, so every
message emitted while a migration runs carries its key, and a filter that
redacts credentials from log output.
"""

import logging
import re
from contextlib import contextmanager
from contextvars import ContextVar
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

# Context variable for storing the migration being applied or rolled back
_migration_context: ContextVar[Optional[str]] = ContextVar('migration', default=None)

LOG_FORMAT = '%(asctime)s - [%(migration)s] - %(name)s - %(levelname)s - %(message)s'
CONSOLE_FORMAT = '%(levelname)s [%(migration)s] %(message)s'

_URL_PASSWORD_RE = re.compile(r'(\w[\w+.-]*://[^:/@\s]*:)([^@\s]+)(@)')
_KEY_VALUE_RE = re.compile(r'\b(password|pwd|passwd|secret|token|api_key)\s*[=:]\s*[^\s;,]+', re.IGNORECASE)


class MigrationContextFilter(logging.Filter):
    """
    Logging filter that adds the current migration key to log records.

    Records logged outside a migration get ``no_migration``.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        migration = _migration_context.get()
        record.migration = migration if migration else "no_migration"
        return True


def sanitize_log_message(message: str) -> str:
    """
    Remove credentials from a log message.

    Args:
        message: Log message to sanitize

    Returns:
        Sanitized message
    """
    message = _URL_PASSWORD_RE.sub(r'\1***\3', message)
    message = _KEY_VALUE_RE.sub(r'\1=***REDACTED***', message)
    return message


class SensitiveDataFilter(logging.Filter):
    """Logging filter that removes passwords from messages and arguments."""

    def filter(self, record: logging.LogRecord) -> bool:
        if hasattr(record, 'msg'):
            record.msg = sanitize_log_message(str(record.msg))
        if hasattr(record, 'args') and record.args:
            if isinstance(record.args, dict):
                record.args = {key: sanitize_log_message(str(value)) for key, value in record.args.items()}
            else:
                record.args = tuple(sanitize_log_message(str(arg)) for arg in record.args)
        return True


def set_migration_context(migration: str) -> None:
    """
    Set the current migration key in the logging context.

    Args:
        migration: Migration key used for all subsequent log messages
    """
    _migration_context.set(migration)


def clear_migration_context() -> None:
    """Clear the current migration from the logging context."""
    _migration_context.set(None)


def get_migration_context() -> Optional[str]:
    return _migration_context.get()


@contextmanager
def migration_context(migration: str) -> Iterator[None]:
    """Set the migration context for the duration of a block."""
    token = _migration_context.set(migration)
    try:
        yield
    finally:
        _migration_context.reset(token)


def setup_logging(config: Optional[Dict[str, Any]] = None, console: bool = True) -> logging.Logger:
    """
    Configure schemaforge logging.

    Adds a rotating file handler (when ``logging.log_file`` is set) and an
    optional console handler to the ``schemaforge`` logger, both carrying the
    migration context and redaction filters.

    Args:
        config: Configuration dictionary with a ``logging`` section
        console: Also log to stderr

    Returns:
        The configured ``schemaforge`` logger
    """
    log_config = (config or {}).get('logging', {})
    level = getattr(logging, str(log_config.get('level', 'INFO')).upper(), logging.INFO)

    logger = logging.getLogger('schemaforge')
    logger.setLevel(level)

    # Remove handlers from previous calls to avoid duplicates
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    handlers = []
    log_file = log_config.get('log_file')
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=int(log_config.get('max_log_size_mb', 10)) * 1024 * 1024,
            backupCount=int(log_config.get('backup_count', 3)),
            encoding='utf-8',
        )
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handlers.append(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        handlers.append(console_handler)

    for handler in handlers:
        handler.addFilter(MigrationContextFilter())
        handler.addFilter(SensitiveDataFilter())
        logger.addHandler(handler)

    logger.propagate = False
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)

    logger.debug("schemaforge logging configured")
    return logger
