"""
MySQL / MariaDB dialect
"""

from typing import Optional, TYPE_CHECKING
from sqlalchemy.dialects import mysql
from sqlalchemy.engine import Dialect
import logging

from ...schema.models import LiveSnapshot
from .base_dialect import BaseDialect

if TYPE_CHECKING:
    from ..base_manager import DatabaseManager

logger = logging.getLogger(__name__)


class MySQLDialect(BaseDialect):
    """MySQL-specific DDL rendering and catalog introspection"""

    name = 'mysql'

    def create_sqlalchemy_dialect(self) -> Dialect:
        return mysql.dialect()

    def render_drop_index(self, operation) -> Optional[str]:
        return f"DROP INDEX {self.quote(operation.name)} ON {self.quote(operation.table)}"

    def render_drop_foreign_key(self, operation) -> Optional[str]:
        return f"ALTER TABLE {self.quote(operation.table)} DROP FOREIGN KEY {self.quote(operation.name)}"

    def get_default_schema_name(self, manager: 'DatabaseManager') -> Optional[str]:
        result = manager.execute_query("SELECT DATABASE() AS schema_name")
        return result[0]['schema_name'] if result else None

    def load_snapshot(self, manager: 'DatabaseManager') -> LiveSnapshot:
        """
        Read tables, columns, indexes and foreign keys of the current database

        Args:
            manager: Connected database manager

        Returns:
            LiveSnapshot
        """
        params = {'schema': self.get_default_schema_name(manager)}
        tables = manager.execute_query("""
            SELECT TABLE_NAME AS table_name
            FROM INFORMATION_SCHEMA.TABLES
            WHERE TABLE_SCHEMA = :schema AND TABLE_TYPE = 'BASE TABLE'
        """, params)
        columns = manager.execute_query("""
            SELECT TABLE_NAME AS table_name, COLUMN_NAME AS column_name, DATA_TYPE AS data_type
            FROM INFORMATION_SCHEMA.COLUMNS
            WHERE TABLE_SCHEMA = :schema
            ORDER BY TABLE_NAME, ORDINAL_POSITION
        """, params)
        indexes = manager.execute_query("""
            SELECT DISTINCT TABLE_NAME AS table_name, INDEX_NAME AS index_name
            FROM INFORMATION_SCHEMA.STATISTICS
            WHERE TABLE_SCHEMA = :schema AND INDEX_NAME <> 'PRIMARY'
        """, params)
        foreign_keys = manager.execute_query("""
            SELECT TABLE_NAME AS table_name, CONSTRAINT_NAME AS constraint_name
            FROM INFORMATION_SCHEMA.TABLE_CONSTRAINTS
            WHERE TABLE_SCHEMA = :schema AND CONSTRAINT_TYPE = 'FOREIGN KEY'
        """, params)

        logger.debug(f"MySQL catalog {params['schema']}: {len(tables)} tables, {len(columns)} columns")
        return self.build_snapshot(
            [row['table_name'] for row in tables], columns, indexes, foreign_keys
        )
