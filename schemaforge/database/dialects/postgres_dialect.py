"""
PostgreSQL dialect
"""

from typing import Optional, TYPE_CHECKING
from sqlalchemy.dialects import postgresql
from sqlalchemy.engine import Dialect
import logging

from ...schema.models import LiveSnapshot
from .base_dialect import BaseDialect

if TYPE_CHECKING:
    from ..base_manager import DatabaseManager

logger = logging.getLogger(__name__)


class PostgreSQLDialect(BaseDialect):
    """PostgreSQL-specific DDL rendering and catalog introspection"""

    name = 'postgresql'

    def create_sqlalchemy_dialect(self) -> Dialect:
        return postgresql.dialect()

    def get_default_schema_name(self, manager: 'DatabaseManager') -> Optional[str]:
        result = manager.execute_query("SELECT current_schema() AS schema_name")
        return result[0]['schema_name'] if result else None

    def load_snapshot(self, manager: 'DatabaseManager') -> LiveSnapshot:
        """
        Read tables, columns, indexes and foreign keys of the current schema

        Args:
            manager: Connected database manager

        Returns:
            LiveSnapshot
        """
        params = {'schema': self.get_default_schema_name(manager)}
        tables = manager.execute_query("""
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = :schema AND table_type = 'BASE TABLE'
        """, params)
        columns = manager.execute_query("""
            SELECT table_name, column_name, data_type
            FROM information_schema.columns
            WHERE table_schema = :schema
            ORDER BY table_name, ordinal_position
        """, params)
        indexes = manager.execute_query("""
            SELECT tablename AS table_name, indexname AS index_name
            FROM pg_indexes
            WHERE schemaname = :schema
        """, params)
        foreign_keys = manager.execute_query("""
            SELECT table_name, constraint_name
            FROM information_schema.table_constraints
            WHERE table_schema = :schema AND constraint_type = 'FOREIGN KEY'
        """, params)

        logger.debug(f"PostgreSQL catalog {params['schema']}: {len(tables)} tables, {len(columns)} columns")
        return self.build_snapshot(
            [row['table_name'] for row in tables], columns, indexes, foreign_keys
        )
