"""
Schema change operations.

Each operation is an immutable value describing one DDL statement. The
planner produces them, migration scripts return them from ``up()`` and
``down()``, and dialects render them.
"""

from typing import Annotated, List, Literal, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from ..schema.models import ColumnDef, IndexDef, OnDelete, TableDef


class _Operation(BaseModel):
    model_config = ConfigDict(frozen=True)

    table: str = Field(..., min_length=1)

    def describe(self) -> str:
        raise NotImplementedError


class CreateTable(BaseModel):
    """Create a table with its columns and primary key."""

    model_config = ConfigDict(frozen=True)

    kind: Literal['create_table'] = 'create_table'
    definition: TableDef

    @property
    def table(self) -> str:
        return self.definition.name

    def describe(self) -> str:
        return f"CreateTable {self.definition.name} ({len(self.definition.columns)} columns)"


class DropTable(_Operation):
    kind: Literal['drop_table'] = 'drop_table'

    def describe(self) -> str:
        return f"DropTable {self.table}"


class AddColumn(_Operation):
    kind: Literal['add_column'] = 'add_column'
    column: ColumnDef

    def describe(self) -> str:
        return f"AddColumn {self.table}.{self.column.name} ({self.column.type.value})"


class DropColumn(_Operation):
    kind: Literal['drop_column'] = 'drop_column'
    column: str

    def describe(self) -> str:
        return f"DropColumn {self.table}.{self.column}"


class CreateIndex(_Operation):
    kind: Literal['create_index'] = 'create_index'
    index: IndexDef

    def describe(self) -> str:
        unique = "unique " if self.index.is_unique else ""
        return f"CreateIndex {unique}{self.index.name} on {self.table} ({', '.join(self.index.columns)})"


class DropIndex(_Operation):
    kind: Literal['drop_index'] = 'drop_index'
    name: str

    def describe(self) -> str:
        return f"DropIndex {self.name} on {self.table}"


class AddForeignKey(_Operation):
    kind: Literal['add_foreign_key'] = 'add_foreign_key'
    name: str
    columns: Tuple[str, ...] = Field(..., min_length=1)
    referenced_table: str
    referenced_columns: Tuple[str, ...] = Field(..., min_length=1)
    on_delete: OnDelete = OnDelete.CASCADE

    def describe(self) -> str:
        return (f"AddForeignKey {self.name} {self.table}({', '.join(self.columns)}) -> "
                f"{self.referenced_table}({', '.join(self.referenced_columns)}) ON DELETE {self.on_delete.value}")


class DropForeignKey(_Operation):
    kind: Literal['drop_foreign_key'] = 'drop_foreign_key'
    name: str

    def describe(self) -> str:
        return f"DropForeignKey {self.name} on {self.table}"


Operation = Annotated[
    Union[CreateTable, DropTable, AddColumn, DropColumn,
          CreateIndex, DropIndex, AddForeignKey, DropForeignKey],
    Field(discriminator='kind'),
]

OPERATION_TYPES = (CreateTable, DropTable, AddColumn, DropColumn,
                   CreateIndex, DropIndex, AddForeignKey, DropForeignKey)

_operation_list_adapter = TypeAdapter(List[Operation])


def validate_operations(operations: Sequence) -> Tuple[Operation, ...]:
    """
    Validate a sequence of operations or operation dictionaries.

    Args:
        operations: Operation instances or dicts carrying a ``kind`` key

    Returns:
        Tuple of operations in the given order
    """
    items = [op.model_dump() if isinstance(op, OPERATION_TYPES) else op for op in operations]
    return tuple(_operation_list_adapter.validate_python(items))


class MigrationPlan(BaseModel):
    """Forward and inverse operation lists of one migration."""

    model_config = ConfigDict(frozen=True)

    up: Tuple[Operation, ...] = Field(default_factory=tuple)
    down: Tuple[Operation, ...] = Field(default_factory=tuple)

    @classmethod
    def empty(cls) -> 'MigrationPlan':
        """Plan signalling that there is nothing to migrate."""
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.up and not self.down

    def describe(self) -> List[str]:
        return [operation.describe() for operation in self.up]


def foreign_key_operation(table: TableDef, foreign_key) -> AddForeignKey:
    """Build the AddForeignKey operation for one of a table's foreign keys."""
    return AddForeignKey(
        table=table.name,
        name=table.foreign_key_name(foreign_key),
        columns=(foreign_key.column,),
        referenced_table=foreign_key.referenced_table,
        referenced_columns=(foreign_key.referenced_column,),
        on_delete=foreign_key.on_delete,
    )
