"""
Schema model value types.

This module defines the Pydantic models describing a declared database
structure (SchemaModel) and an introspected one (LiveSnapshot). All models
are frozen: they are built once per generation run and never mutated.
"""

from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ColumnType(str, Enum):
    """Abstract column type enumeration."""
    INTEGER = "integer"
    STRING = "string"
    FLOAT = "float"
    BOOLEAN = "boolean"
    DATETIME = "datetime"


class OnDelete(str, Enum):
    """Foreign key delete behavior."""
    CASCADE = "CASCADE"
    SET_NULL = "SET NULL"
    RESTRICT = "RESTRICT"
    NO_ACTION = "NO ACTION"


DEFAULT_STRING_LENGTH = 255


class ColumnDef(BaseModel):
    """A single column of a declared table."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Column name")
    type: ColumnType = Field(default=ColumnType.STRING, description="Abstract column type")
    max_length: Optional[int] = Field(None, gt=0, description="Maximum length for string columns")
    nullable: bool = Field(default=True, description="Whether NULL values are allowed")
    is_primary_key: bool = Field(default=False, description="Part of the primary key")
    is_auto_increment: bool = Field(default=False, description="Database generated identity")

    @model_validator(mode='after')
    def validate_auto_increment(self):
        """An auto-increment column must be a primary key."""
        if self.is_auto_increment and not self.is_primary_key:
            raise ValueError(f"Auto-increment column '{self.name}' must be a primary key")
        return self

    @property
    def length(self) -> int:
        """Effective string length."""
        return self.max_length or DEFAULT_STRING_LENGTH


class ForeignKeyDef(BaseModel):
    """A foreign key from one column to a column of another (or the same) table."""

    model_config = ConfigDict(frozen=True)

    column: str = Field(..., min_length=1)
    referenced_table: str = Field(..., min_length=1)
    referenced_column: str = Field(default="Id", min_length=1)
    on_delete: OnDelete = Field(default=OnDelete.CASCADE)
    name: Optional[str] = Field(None, description="Explicit constraint name")


class IndexDef(BaseModel):
    """An index over one or more columns."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    columns: Tuple[str, ...] = Field(..., min_length=1)
    is_unique: bool = False


class TableDef(BaseModel):
    """
    A declared table.

    Columns keep declaration order; the primary key may span several columns.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    columns: Tuple[ColumnDef, ...] = Field(default_factory=tuple)
    primary_key: Tuple[str, ...] = Field(default_factory=tuple)
    foreign_keys: Tuple[ForeignKeyDef, ...] = Field(default_factory=tuple)
    indexes: Tuple[IndexDef, ...] = Field(default_factory=tuple)

    @model_validator(mode='after')
    def validate_table(self):
        """Check column uniqueness, primary key membership and identity columns."""
        names = [column.name for column in self.columns]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Table '{self.name}' declares duplicate columns: {duplicates}")

        for key in self.primary_key:
            if key not in names:
                raise ValueError(f"Primary key column '{key}' is not a column of '{self.name}'")

        identity = [column.name for column in self.columns if column.is_auto_increment]
        if len(identity) > 1:
            raise ValueError(f"Table '{self.name}' has more than one auto-increment column: {identity}")
        return self

    @property
    def column_names(self) -> List[str]:
        return [column.name for column in self.columns]

    def get_column(self, name: str) -> Optional[ColumnDef]:
        """Return the column with the given name, if declared."""
        for column in self.columns:
            if column.name == name:
                return column
        return None

    def foreign_key_name(self, foreign_key: ForeignKeyDef) -> str:
        """
        Constraint name for a foreign key of this table.

        Defaults to FK_<table>_<referenced>; the column is appended when the
        table holds several keys to the same referenced table.

        Args:
            foreign_key: One of this table's foreign keys

        Returns:
            Constraint name
        """
        if foreign_key.name:
            return foreign_key.name
        siblings = [fk for fk in self.foreign_keys if fk.referenced_table == foreign_key.referenced_table]
        if len(siblings) > 1:
            return f"FK_{self.name}_{foreign_key.referenced_table}_{foreign_key.column}"
        return f"FK_{self.name}_{foreign_key.referenced_table}"


class SchemaModel(BaseModel):
    """
    The declared target database structure.

    Tables are held in declaration order and looked up by name.
    """

    model_config = ConfigDict(frozen=True)

    tables: Tuple[TableDef, ...] = Field(default_factory=tuple)

    @field_validator('tables')
    @classmethod
    def validate_unique_names(cls, v):
        """Table names must be unique within a model."""
        seen: Set[str] = set()
        for table in v:
            if table.name in seen:
                raise ValueError(f"Duplicate table name '{table.name}'")
            seen.add(table.name)
        return v

    @property
    def table_names(self) -> List[str]:
        return [table.name for table in self.tables]

    def get(self, name: str) -> Optional[TableDef]:
        for table in self.tables:
            if table.name == name:
                return table
        return None

    def __getitem__(self, name: str) -> TableDef:
        table = self.get(name)
        if table is None:
            raise KeyError(name)
        return table

    def __contains__(self, name: object) -> bool:
        return any(table.name == name for table in self.tables)


class LiveSnapshot(BaseModel):
    """
    The existing database structure as introspected at generation time.

    ``indexes`` and ``foreign_keys`` only hold entries for tables whose
    constraint names could be read; a missing entry means "unknown".
    """

    model_config = ConfigDict(frozen=True)

    tables: Dict[str, Dict[str, str]] = Field(default_factory=dict, description="table -> column -> data type")
    indexes: Dict[str, Tuple[str, ...]] = Field(default_factory=dict)
    foreign_keys: Dict[str, Tuple[str, ...]] = Field(default_factory=dict)

    @classmethod
    def empty(cls) -> 'LiveSnapshot':
        """Snapshot used when introspection is unavailable."""
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.tables

    def has_table(self, table: str) -> bool:
        return table in self.tables

    def has_column(self, table: str, column: str) -> bool:
        return column in self.tables.get(table, {})

    def knows_indexes(self, table: str) -> bool:
        return table in self.indexes

    def has_index(self, table: str, name: str) -> bool:
        return name in self.indexes.get(table, ())

    def knows_foreign_keys(self, table: str) -> bool:
        return table in self.foreign_keys

    def has_foreign_key(self, table: str, name: str) -> bool:
        return name in self.foreign_keys.get(table, ())
