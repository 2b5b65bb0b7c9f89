"""
Operation planner.

Reconciles a declared SchemaModel with a LiveSnapshot and produces the up
and down operation lists of a migration.
"""

import logging
from typing import Dict, List, Optional

from ..schema.dependency import reverse_order, sort_tables
from ..schema.models import LiveSnapshot, SchemaModel, TableDef
from .operations import (
    AddColumn, AddForeignKey, CreateIndex, CreateTable, DropColumn, DropForeignKey,
    DropIndex, DropTable, MigrationPlan, Operation, foreign_key_operation
)

logger = logging.getLogger(__name__)


class _TableChanges:
    """Items the up plan adds to one table, in creation order."""

    def __init__(self, created: bool):
        self.created = created
        self.columns: List[str] = []
        self.indexes: List[str] = []
        self.foreign_keys: List[str] = []


class OperationPlanner:
    """
    Plans the operations that bring a database from a snapshot to a model.

    Only presence is compared: tables and columns always, index and foreign
    key names when the snapshot reports them for the table. Type changes and
    renames are not detected.
    """

    def __init__(self, model: SchemaModel, snapshot: Optional[LiveSnapshot] = None):
        """
        Initialize planner.

        Args:
            model: Declared schema
            snapshot: Introspected schema (empty when unavailable)
        """
        self.model = model
        self.snapshot = snapshot or LiveSnapshot.empty()

    def plan(self) -> MigrationPlan:
        """
        Compute the migration plan.

        Returns:
            MigrationPlan, or MigrationPlan.empty() when nothing differs
        """
        order = sort_tables(self.model)
        up: List[Operation] = []
        changes: Dict[str, _TableChanges] = {}

        for table_name in order:
            table = self.model[table_name]
            if self.snapshot.has_table(table_name):
                table_changes = self._plan_existing_table(table, up)
            else:
                table_changes = self._plan_new_table(table, up)
            changes[table_name] = table_changes

        if not up:
            logger.info("Model matches the database, nothing to migrate")
            return MigrationPlan.empty()

        down: List[Operation] = []
        for table_name in reverse_order(order):
            down.extend(self._plan_inverse(table_name, changes[table_name]))

        logger.info(f"Planned {len(up)} up and {len(down)} down operations")
        return MigrationPlan(up=tuple(up), down=tuple(down))

    def _resolvable_foreign_keys(self, table: TableDef) -> List[AddForeignKey]:
        operations = []
        for foreign_key in table.foreign_keys:
            if foreign_key.referenced_table not in self.model:
                logger.warning(
                    f"Foreign key {table.name}.{foreign_key.column} references unknown table "
                    f"'{foreign_key.referenced_table}', omitted"
                )
                continue
            operations.append(foreign_key_operation(table, foreign_key))
        return operations

    def _plan_new_table(self, table: TableDef, up: List[Operation]) -> _TableChanges:
        changes = _TableChanges(created=True)
        foreign_key_operations = self._resolvable_foreign_keys(table)

        # Dialects that declare foreign keys inline only see the resolvable ones
        resolvable = tuple(fk for fk in table.foreign_keys if fk.referenced_table in self.model)
        if len(resolvable) != len(table.foreign_keys):
            table = table.model_copy(update={'foreign_keys': resolvable})

        up.append(CreateTable(definition=table))
        for index in table.indexes:
            up.append(CreateIndex(table=table.name, index=index))
        up.extend(foreign_key_operations)
        return changes

    def _plan_existing_table(self, table: TableDef, up: List[Operation]) -> _TableChanges:
        changes = _TableChanges(created=False)

        for column in table.columns:
            if not self.snapshot.has_column(table.name, column.name):
                up.append(AddColumn(table=table.name, column=column))
                changes.columns.append(column.name)

        knows_indexes = self.snapshot.knows_indexes(table.name)
        for index in table.indexes:
            if knows_indexes and self.snapshot.has_index(table.name, index.name):
                continue
            up.append(CreateIndex(table=table.name, index=index))
            changes.indexes.append(index.name)

        knows_foreign_keys = self.snapshot.knows_foreign_keys(table.name)
        for operation in self._resolvable_foreign_keys(table):
            if knows_foreign_keys and self.snapshot.has_foreign_key(table.name, operation.name):
                continue
            up.append(operation)
            changes.foreign_keys.append(operation.name)

        return changes

    @staticmethod
    def _plan_inverse(table_name: str, changes: _TableChanges) -> List[Operation]:
        if changes.created:
            return [DropTable(table=table_name)]
        operations: List[Operation] = []
        operations.extend(DropForeignKey(table=table_name, name=name) for name in reversed(changes.foreign_keys))
        operations.extend(DropIndex(table=table_name, name=name) for name in reversed(changes.indexes))
        operations.extend(DropColumn(table=table_name, column=name) for name in reversed(changes.columns))
        return operations
