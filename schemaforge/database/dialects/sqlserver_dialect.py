"""
SQL Server dialect
"""

from typing import Any, Dict, List, Optional, TYPE_CHECKING
from sqlalchemy.dialects import mssql
from sqlalchemy.engine import Dialect
import logging
import time

from ...schema.models import ColumnDef, LiveSnapshot, OnDelete
from .base_dialect import BaseDialect

if TYPE_CHECKING:
    from ..base_manager import DatabaseManager

logger = logging.getLogger(__name__)

FOREIGN_KEY_EXISTS_SQL = """
    SELECT COUNT(*) AS cnt
    FROM sys.foreign_keys fk
    INNER JOIN sys.tables t ON fk.parent_object_id = t.object_id
    WHERE fk.name = :name AND t.name = :table
"""

TABLE_FOREIGN_KEYS_SQL = """
    SELECT fk.name AS name, t.name AS table_name, SCHEMA_NAME(t.schema_id) AS schema_name
    FROM sys.foreign_keys fk
    INNER JOIN sys.tables t ON fk.parent_object_id = t.object_id
    WHERE t.name = :table
"""

# SQL Server has no RESTRICT; NO ACTION is the equivalent
ON_DELETE_SQL = {
    OnDelete.CASCADE: 'CASCADE',
    OnDelete.SET_NULL: 'SET NULL',
    OnDelete.RESTRICT: 'NO ACTION',
    OnDelete.NO_ACTION: 'NO ACTION',
}


class SQLServerDialect(BaseDialect):
    """SQL Server-specific DDL rendering, foreign key verification and introspection"""

    name = 'mssql'

    def create_sqlalchemy_dialect(self) -> Dialect:
        return mssql.dialect()

    def on_delete_sql(self, on_delete: OnDelete) -> str:
        return ON_DELETE_SQL.get(on_delete, 'NO ACTION')

    def column_definition(self, column: ColumnDef) -> str:
        """Column clause used by CREATE TABLE and ALTER TABLE ... ADD"""
        parts = [self.quote(column.name), self.column_type_sql(column)]
        if column.is_auto_increment:
            parts.append('IDENTITY(1,1) NOT NULL')
        elif column.nullable and not column.is_primary_key:
            parts.append('NULL')
        else:
            parts.append('NOT NULL')
        return ' '.join(parts)

    def render_create_table(self, operation) -> Optional[str]:
        table = operation.definition
        lines = [f"    {self.column_definition(column)}" for column in table.columns]
        if table.primary_key:
            key_columns = ', '.join(self.quote(name) for name in table.primary_key)
            lines.append(f"    PRIMARY KEY ({key_columns})")
        body = ',\n'.join(lines)
        return f"CREATE TABLE {self.quote(table.name)} (\n{body}\n)"

    def render_drop_table(self, operation) -> Optional[str]:
        table_literal = operation.table.replace("'", "''")
        return f"IF OBJECT_ID(N'{table_literal}', N'U') IS NOT NULL DROP TABLE {self.quote(operation.table)}"

    def render_add_column(self, operation) -> Optional[str]:
        return f"ALTER TABLE {self.quote(operation.table)} ADD {self.column_definition(operation.column)}"

    def render_drop_index(self, operation) -> Optional[str]:
        return f"DROP INDEX {self.quote(operation.name)} ON {self.quote(operation.table)}"

    def foreign_key_exists(self, manager: 'DatabaseManager', table: str, name: str) -> bool:
        """Whether a constraint with this name exists on this table"""
        result = manager.execute_query(FOREIGN_KEY_EXISTS_SQL, {'name': name, 'table': table})
        return bool(result) and int(result[0]['cnt']) > 0

    def apply(self, operation, manager: 'DatabaseManager') -> Optional[str]:
        if operation.kind != 'add_foreign_key':
            return super().apply(operation, manager)
        return self._apply_foreign_key(operation, manager)

    def _apply_foreign_key(self, operation, manager: 'DatabaseManager') -> Optional[str]:
        """
        Add a foreign key once and confirm it became visible

        An existing same-named constraint on the table means the operation is
        skipped. The statement runs in its own committed transaction and the
        catalog is polled until the constraint is visible.
        """
        if self.foreign_key_exists(manager, operation.table, operation.name):
            logger.info(f"Foreign key {operation.name} already exists on {operation.table}, skipped")
            return None

        sql = self.render(operation)
        logger.debug(f"Executing: {sql}")
        manager.execute_ddl(sql)

        for attempt in range(1, self.fk_verify_attempts + 1):
            time.sleep(self.fk_verify_delay)
            if self.foreign_key_exists(manager, operation.table, operation.name):
                logger.debug(f"Foreign key {operation.name} verified (attempt {attempt})")
                return sql

        existing = manager.execute_query(TABLE_FOREIGN_KEYS_SQL, {'table': operation.table})
        logger.error(
            f"Foreign key {operation.name} not visible on {operation.table} after "
            f"{self.fk_verify_attempts} checks; constraints on table: {[row['name'] for row in existing]}"
        )
        return sql

    def get_default_schema_name(self, manager: 'DatabaseManager') -> Optional[str]:
        result = manager.execute_query("SELECT SCHEMA_NAME() AS schema_name")
        return result[0]['schema_name'] if result else None

    def load_snapshot(self, manager: 'DatabaseManager') -> LiveSnapshot:
        """
        Read the schema from the sys catalog views

        Args:
            manager: Connected database manager

        Returns:
            LiveSnapshot
        """
        params = {'schema': self.get_default_schema_name(manager)}
        tables = manager.execute_query(
            "SELECT t.name AS table_name FROM sys.tables t WHERE SCHEMA_NAME(t.schema_id) = :schema",
            params,
        )
        columns = manager.execute_query("""
            SELECT t.name AS table_name, c.name AS column_name, ty.name AS data_type
            FROM sys.tables t
            INNER JOIN sys.columns c ON c.object_id = t.object_id
            INNER JOIN sys.types ty ON ty.user_type_id = c.user_type_id
            WHERE SCHEMA_NAME(t.schema_id) = :schema
            ORDER BY t.name, c.column_id
        """, params)
        indexes = manager.execute_query("""
            SELECT t.name AS table_name, i.name AS index_name
            FROM sys.indexes i
            INNER JOIN sys.tables t ON i.object_id = t.object_id
            WHERE i.name IS NOT NULL AND i.is_primary_key = 0
              AND SCHEMA_NAME(t.schema_id) = :schema
        """, params)
        foreign_keys: List[Dict[str, Any]] = manager.execute_query("""
            SELECT t.name AS table_name, fk.name AS constraint_name
            FROM sys.foreign_keys fk
            INNER JOIN sys.tables t ON fk.parent_object_id = t.object_id
            WHERE SCHEMA_NAME(t.schema_id) = :schema
        """, params)

        logger.debug(f"SQL Server catalog {params['schema']}: {len(tables)} tables, {len(columns)} columns")
        return self.build_snapshot(
            [row['table_name'] for row in tables], columns, indexes, foreign_keys
        )
