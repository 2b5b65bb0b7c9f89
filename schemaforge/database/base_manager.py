"""
Base database manager using SQLAlchemy Core
"""

from sqlalchemy import MetaData, Table, insert, text
from sqlalchemy.engine import Engine
from typing import List, Dict, Any, Optional, Union
import logging

from .dialects import BaseDialect, get_dialect

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Connection abstraction used by snapshots, migrations and the ledger"""

    def __init__(self, engine: Engine, dialect_options: Optional[Dict[str, Any]] = None):
        """
        Initialize database manager with SQLAlchemy engine

        Args:
            engine: SQLAlchemy Engine instance
            dialect_options: Options passed to the dialect strategy
        """
        self.engine = engine
        self.metadata = MetaData()
        self._tables: Dict[str, Table] = {}
        # Selected once per connection
        self._dialect = get_dialect(engine.dialect.name, **(dialect_options or {}))

    @property
    def dialect_name(self) -> str:
        return self._dialect.name

    @property
    def dialect(self) -> BaseDialect:
        return self._dialect

    def reflect_table(self, table_name: str) -> Table:
        """
        Load metadata for an existing table

        Args:
            table_name: Name of the table to reflect

        Returns:
            SQLAlchemy Table object
        """
        if table_name not in self._tables:
            self._tables[table_name] = Table(
                table_name,
                self.metadata,
                autoload_with=self.engine
            )
        return self._tables[table_name]

    def execute_query(self, query: Union[str, Any], params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        Execute SELECT query using SQLAlchemy Core

        Args:
            query: SQL query string or SQLAlchemy selectable
            params: Optional query parameters

        Returns:
            List of result dictionaries
        """
        with self.engine.connect() as conn:
            if isinstance(query, str):
                result = conn.execute(text(query), params or {})
            else:
                result = conn.execute(query)
            return [dict(row._mapping) for row in result]

    def execute_ddl(self, query: str, params: Optional[Dict[str, Any]] = None) -> None:
        """
        Execute DDL (CREATE, DROP, ALTER) statement in its own transaction

        Args:
            query: DDL SQL statement
            params: Optional query parameters
        """
        with self.engine.begin() as conn:
            conn.execute(text(query), params or {})
        self._tables.clear()

    def execute_dml(self, statement: Any) -> int:
        """
        Execute a SQLAlchemy DML construct (insert, update, delete)

        Args:
            statement: SQLAlchemy executable

        Returns:
            Number of affected rows
        """
        with self.engine.begin() as conn:
            result = conn.execute(statement)
            return result.rowcount if result.rowcount is not None else 0

    def insert_row(self, table: Union[str, Table], values: Dict[str, Any]) -> Optional[Any]:
        """
        Insert a single row

        Args:
            table: Table name or SQLAlchemy Table
            values: Column values

        Returns:
            Primary key of the inserted row (first key column), if reported
        """
        if isinstance(table, str):
            table = self.reflect_table(table)
        with self.engine.begin() as conn:
            result = conn.execute(insert(table).values(**values))
            primary_key = result.inserted_primary_key
        return primary_key[0] if primary_key else None

    def table_exists(self, table_name: str) -> bool:
        """
        Check if table exists in database

        Args:
            table_name: Name of table to check

        Returns:
            True if table exists, False otherwise
        """
        with self.engine.connect() as conn:
            return self.engine.dialect.has_table(conn, table_name)

    def get_table_names(self) -> List[str]:
        """
        Get list of all table names in database

        Returns:
            List of table names
        """
        with self.engine.connect() as conn:
            return self.engine.dialect.get_table_names(conn)

    def close(self) -> None:
        """Close database connections"""
        if hasattr(self.engine, 'dispose'):
            self.engine.dispose()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
