"""
Base dialect strategy

A dialect renders schema operations as DDL for one database engine, applies
them through a DatabaseManager and reads the engine's catalog into a
LiveSnapshot.
"""

from typing import Any, Dict, Iterable, List, Optional, TYPE_CHECKING
from sqlalchemy import Column, Index, MetaData, Table
from sqlalchemy.engine import Dialect
from sqlalchemy.schema import CreateColumn, CreateIndex as SACreateIndex, CreateTable as SACreateTable
import logging

from ...schema.models import ColumnDef, LiveSnapshot, OnDelete, TableDef
from ..utils.type_mapping import TypeMapper

if TYPE_CHECKING:
    from ..base_manager import DatabaseManager
    from ...migrations.operations import (
        AddColumn, AddForeignKey, CreateIndex, CreateTable, DropColumn,
        DropForeignKey, DropIndex, DropTable
    )

logger = logging.getLogger(__name__)


class BaseDialect:
    """Dialect strategy shared by all supported engines"""

    name = 'generic'
    # Whether ALTER TABLE can add or drop foreign key constraints
    supports_alter_foreign_keys = True

    def __init__(self, fk_verify_delay: float = 0.1, fk_verify_attempts: int = 3):
        """
        Initialize dialect

        Args:
            fk_verify_delay: Seconds to wait before re-checking a new foreign key
            fk_verify_attempts: Number of foreign key visibility checks
        """
        self.fk_verify_delay = fk_verify_delay
        self.fk_verify_attempts = fk_verify_attempts
        self.sqlalchemy_dialect = self.create_sqlalchemy_dialect()

    def create_sqlalchemy_dialect(self) -> Dialect:
        """SQLAlchemy dialect used to compile DDL"""
        raise NotImplementedError

    # Identifiers and types

    def quote(self, identifier: str) -> str:
        """Quote an identifier unconditionally"""
        return self.sqlalchemy_dialect.identifier_preparer.quote_identifier(identifier)

    def column_type_sql(self, column: ColumnDef) -> str:
        """SQL type of a declared column"""
        return TypeMapper.map_type(column, self.name).compile(dialect=self.sqlalchemy_dialect)

    def on_delete_sql(self, on_delete: OnDelete) -> str:
        return on_delete.value

    # SQLAlchemy DDL construction

    def _sa_column(self, column: ColumnDef) -> Column:
        return Column(
            column.name,
            TypeMapper.map_type(column, self.name),
            primary_key=column.is_primary_key,
            nullable=column.nullable and not column.is_primary_key,
            autoincrement=column.is_auto_increment if column.is_primary_key else False,
            quote=True,
        )

    def table_kwargs(self, table: TableDef) -> Dict[str, Any]:
        """Dialect specific keyword arguments for sqlalchemy.Table"""
        return {}

    def build_table(self, table: TableDef, metadata: Optional[MetaData] = None) -> Table:
        """
        Build a SQLAlchemy Table equivalent to a declared table

        Args:
            table: Declared table
            metadata: MetaData to attach to (a fresh one by default)

        Returns:
            sqlalchemy.Table
        """
        metadata = metadata if metadata is not None else MetaData()
        columns = [self._sa_column(column) for column in table.columns]
        return Table(table.name, metadata, *columns, quote=True, **self.table_kwargs(table))

    # Rendering

    def render(self, operation) -> Optional[str]:
        """
        Render an operation as a single DDL statement

        Args:
            operation: Schema operation

        Returns:
            SQL text, or None when the engine cannot express the operation
        """
        renderer = getattr(self, f"render_{operation.kind}", None)
        if renderer is None:
            raise ValueError(f"Unsupported operation kind: {operation.kind}")
        return renderer(operation)

    def render_create_table(self, operation: 'CreateTable') -> Optional[str]:
        table = self.build_table(operation.definition)
        return str(SACreateTable(table).compile(dialect=self.sqlalchemy_dialect)).strip()

    def render_drop_table(self, operation: 'DropTable') -> Optional[str]:
        return f"DROP TABLE IF EXISTS {self.quote(operation.table)}"

    def render_add_column(self, operation: 'AddColumn') -> Optional[str]:
        table = Table(operation.table, MetaData(), self._sa_column(operation.column), quote=True)
        column_sql = str(CreateColumn(table.c[operation.column.name]).compile(dialect=self.sqlalchemy_dialect))
        return f"ALTER TABLE {self.quote(operation.table)} ADD COLUMN {column_sql.strip()}"

    def render_drop_column(self, operation: 'DropColumn') -> Optional[str]:
        return f"ALTER TABLE {self.quote(operation.table)} DROP COLUMN {self.quote(operation.column)}"

    def render_create_index(self, operation: 'CreateIndex') -> Optional[str]:
        index_def = operation.index
        table = Table(operation.table, MetaData(),
                      *[Column(name, quote=True) for name in index_def.columns], quote=True)
        index = Index(index_def.name, *[table.c[name] for name in index_def.columns],
                      unique=index_def.is_unique, quote=True)
        return str(SACreateIndex(index).compile(dialect=self.sqlalchemy_dialect)).strip()

    def render_drop_index(self, operation: 'DropIndex') -> Optional[str]:
        return f"DROP INDEX {self.quote(operation.name)}"

    def render_add_foreign_key(self, operation: 'AddForeignKey') -> Optional[str]:
        if not self.supports_alter_foreign_keys:
            return None
        columns = ', '.join(self.quote(name) for name in operation.columns)
        referenced = ', '.join(self.quote(name) for name in operation.referenced_columns)
        return (
            f"ALTER TABLE {self.quote(operation.table)} "
            f"ADD CONSTRAINT {self.quote(operation.name)} "
            f"FOREIGN KEY ({columns}) "
            f"REFERENCES {self.quote(operation.referenced_table)} ({referenced}) "
            f"ON DELETE {self.on_delete_sql(operation.on_delete)}"
        )

    def render_drop_foreign_key(self, operation: 'DropForeignKey') -> Optional[str]:
        if not self.supports_alter_foreign_keys:
            return None
        return f"ALTER TABLE {self.quote(operation.table)} DROP CONSTRAINT {self.quote(operation.name)}"

    # Execution

    def apply(self, operation, manager: 'DatabaseManager') -> Optional[str]:
        """
        Render and execute one operation

        Args:
            operation: Schema operation
            manager: Target database manager

        Returns:
            Executed SQL, or None when the operation was skipped
        """
        sql = self.render(operation)
        if sql is None:
            logger.warning(f"{self.name} cannot express '{operation.describe()}', skipped")
            return None
        logger.debug(f"Executing: {sql}")
        manager.execute_ddl(sql)
        return sql

    # Introspection

    def get_default_schema_name(self, manager: 'DatabaseManager') -> Optional[str]:
        """Name of the schema introspection is scoped to"""
        return None

    def load_snapshot(self, manager: 'DatabaseManager') -> LiveSnapshot:
        """Read the live schema; errors propagate to the caller"""
        raise NotImplementedError

    @staticmethod
    def build_snapshot(tables: Iterable[str], columns: Iterable[Dict[str, Any]],
                       indexes: Optional[Iterable[Dict[str, Any]]] = None,
                       foreign_keys: Optional[Iterable[Dict[str, Any]]] = None) -> LiveSnapshot:
        """
        Assemble a snapshot from catalog query rows

        Args:
            tables: Table names
            columns: Rows with table_name, column_name, data_type
            indexes: Rows with table_name, index_name (None = unknown)
            foreign_keys: Rows with table_name, constraint_name (None = unknown)

        Returns:
            LiveSnapshot
        """
        table_columns: Dict[str, Dict[str, str]] = {name: {} for name in tables}
        for row in columns:
            table_columns.setdefault(row['table_name'], {})[row['column_name']] = \
                TypeMapper.coarse_type(row['data_type'])

        def group(rows, key: str) -> Dict[str, tuple]:
            grouped: Dict[str, List[str]] = {name: [] for name in table_columns}
            for row in rows:
                if row['table_name'] in grouped and row[key] not in grouped[row['table_name']]:
                    grouped[row['table_name']].append(row[key])
            return {name: tuple(values) for name, values in grouped.items()}

        return LiveSnapshot(
            tables=table_columns,
            indexes=group(indexes, 'index_name') if indexes is not None else {},
            foreign_keys=group(foreign_keys, 'constraint_name') if foreign_keys is not None else {},
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"
