"""
SQLite dialect
"""

from typing import Any, Dict, List, Optional, TYPE_CHECKING
from sqlalchemy import Column, ForeignKeyConstraint, Integer, MetaData, Table, inspect
from sqlalchemy.dialects import sqlite
from sqlalchemy.engine import Dialect
import logging

from ...schema.models import LiveSnapshot, TableDef
from .base_dialect import BaseDialect

if TYPE_CHECKING:
    from ..base_manager import DatabaseManager

logger = logging.getLogger(__name__)

# Internal tables never reported in snapshots
SQLITE_INTERNAL_PREFIX = 'sqlite_'


class SQLiteDialect(BaseDialect):
    """
    SQLite-specific DDL rendering and catalog introspection

    SQLite cannot add or drop constraints on an existing table, so foreign
    keys are declared inline when the table is created and standalone
    foreign key operations are skipped.
    """

    name = 'sqlite'
    supports_alter_foreign_keys = False

    def create_sqlalchemy_dialect(self) -> Dialect:
        return sqlite.dialect()

    def table_kwargs(self, table: TableDef) -> Dict[str, Any]:
        # INTEGER PRIMARY KEY AUTOINCREMENT on the identity column
        if any(column.is_auto_increment for column in table.columns):
            return {'sqlite_autoincrement': True}
        return {}

    def build_table(self, table: TableDef, metadata: Optional[MetaData] = None) -> Table:
        metadata = metadata if metadata is not None else MetaData()
        sa_table = super().build_table(table, metadata)

        for foreign_key in table.foreign_keys:
            if foreign_key.referenced_table != table.name and foreign_key.referenced_table not in metadata.tables:
                Table(foreign_key.referenced_table, metadata,
                      Column(foreign_key.referenced_column, Integer, quote=True), quote=True)
            referenced = metadata.tables[foreign_key.referenced_table]
            if foreign_key.referenced_column not in referenced.c:
                referenced.append_column(Column(foreign_key.referenced_column, Integer, quote=True))
            sa_table.append_constraint(ForeignKeyConstraint(
                [sa_table.c[foreign_key.column]],
                [referenced.c[foreign_key.referenced_column]],
                name=table.foreign_key_name(foreign_key),
                ondelete=foreign_key.on_delete.value,
            ))
        return sa_table

    def get_default_schema_name(self, manager: 'DatabaseManager') -> Optional[str]:
        return 'main'

    def load_snapshot(self, manager: 'DatabaseManager') -> LiveSnapshot:
        """
        Read the schema through the SQLAlchemy inspector

        Args:
            manager: Connected database manager

        Returns:
            LiveSnapshot
        """
        schema = self.get_default_schema_name(manager)
        inspector = inspect(manager.engine)
        tables = [
            name for name in inspector.get_table_names(schema=schema)
            if not name.startswith(SQLITE_INTERNAL_PREFIX)
        ]

        columns: List[Dict[str, Any]] = []
        indexes: List[Dict[str, Any]] = []
        foreign_keys: Optional[List[Dict[str, Any]]] = []
        for table_name in tables:
            for column in inspector.get_columns(table_name, schema=schema):
                columns.append({
                    'table_name': table_name,
                    'column_name': column['name'],
                    'data_type': str(column['type']),
                })
            for index in inspector.get_indexes(table_name, schema=schema):
                if index.get('name'):
                    indexes.append({'table_name': table_name, 'index_name': index['name']})
            if foreign_keys is not None:
                for foreign_key in inspector.get_foreign_keys(table_name, schema=schema):
                    if not foreign_key.get('name'):
                        # Unnamed constraints: names are unknown for the whole snapshot
                        foreign_keys = None
                        break
                    foreign_keys.append({'table_name': table_name, 'constraint_name': foreign_key['name']})

        logger.debug(f"SQLite catalog: {len(tables)} tables, {len(columns)} columns")
        return self.build_snapshot(tables, columns, indexes, foreign_keys)
