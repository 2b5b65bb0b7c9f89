"""
Model analyzer.

Turns the entity descriptors registered in an EntityRegistry into a
SchemaModel. Analysis is pure: it performs no I/O and never raises for a
single bad entity; such entities are skipped and reported through
``ModelAnalyzer.diagnostics``.
"""

import logging
import re
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, ValidationError

from .descriptors import EntityDescriptor, EntityRegistry, FieldDescriptor, FieldKind, RegisteredEntity
from .models import ColumnDef, ColumnType, ForeignKeyDef, IndexDef, OnDelete, SchemaModel, TableDef

logger = logging.getLogger(__name__)

AUDIT_COLUMNS = ('CreatedAt', 'UpdatedAt', 'DeletedAt')

PRIMITIVE_COLUMN_TYPES: Dict[str, ColumnType] = {
    'int': ColumnType.INTEGER,
    'str': ColumnType.STRING,
    'float': ColumnType.FLOAT,
    'double': ColumnType.FLOAT,
    'decimal': ColumnType.FLOAT,
    'bool': ColumnType.BOOLEAN,
    'datetime': ColumnType.DATETIME,
    'date': ColumnType.DATETIME,
}

_VARCHAR_RE = re.compile(r'^\s*N?VARCHAR\s*\(\s*(\d+)\s*\)', re.IGNORECASE)


def pluralize(name: str) -> str:
    """
    Derive a table name from an entity or navigation name.

    Company -> Companies, User -> Users, Status -> Status.
    """
    if not name:
        return name
    name = name[0].upper() + name[1:]
    if name.endswith('y'):
        return name[:-1] + 'ies'
    if name.endswith('s'):
        return name
    return name + 's'


def parse_column_type(column_type: str) -> Tuple[Optional[ColumnType], Optional[int]]:
    """
    Parse an explicit SQL column type such as "VARCHAR(100)".

    Args:
        column_type: SQL type text

    Returns:
        Tuple of (abstract type or None when unrecognized, max length)
    """
    match = _VARCHAR_RE.match(column_type)
    if match:
        return ColumnType.STRING, int(match.group(1))

    upper = column_type.upper()
    if 'DATETIME' in upper or 'TIMESTAMP' in upper or upper.strip() == 'DATE':
        return ColumnType.DATETIME, None
    if 'BOOL' in upper or upper.strip() == 'BIT':
        return ColumnType.BOOLEAN, None
    if 'INT' in upper:
        return ColumnType.INTEGER, None
    if any(token in upper for token in ('FLOAT', 'REAL', 'DOUBLE', 'DECIMAL', 'NUMERIC')):
        return ColumnType.FLOAT, None
    if 'CHAR' in upper or 'TEXT' in upper:
        return ColumnType.STRING, None
    return None, None


class AnalyzerDiagnostic(BaseModel):
    """A problem found while analyzing one entity."""

    model_config = ConfigDict(frozen=True)

    entity: str
    message: str

    def __str__(self) -> str:
        return f"{self.entity}: {self.message}"


class _PendingForeignKey(BaseModel):
    column: str
    target: str
    explicit_table: bool = False
    referenced_column: Optional[str] = None
    on_delete: OnDelete = OnDelete.CASCADE


class _PendingTable(BaseModel):
    """Per-entity result of the first pass."""

    entity: str
    name: str
    columns: List[ColumnDef] = []
    primary_key: List[str] = []
    foreign_keys: List[_PendingForeignKey] = []
    indexes: List[IndexDef] = []


class ModelAnalyzer:
    """
    Builds a SchemaModel from registered entity descriptors.

    The first pass maps each entity to a table; the second pass resolves
    foreign-key targets against the tables discovered in the first pass.
    """

    def __init__(self):
        self.diagnostics: List[AnalyzerDiagnostic] = []

    def analyze(self, registry: EntityRegistry) -> SchemaModel:
        """
        Analyze all registered entities.

        Args:
            registry: Explicit entity registration list

        Returns:
            SchemaModel with tables in registration order
        """
        self.diagnostics = []
        pending: List[_PendingTable] = []
        table_by_entity: Dict[str, str] = {}
        seen_tables: Dict[str, str] = {}

        for entry in registry:
            table = self._analyze_entity(entry)
            if table is None:
                continue
            if table.name in seen_tables:
                self._diagnose(table.entity, f"table '{table.name}' already declared by "
                                             f"'{seen_tables[table.name]}', entity skipped")
                continue
            seen_tables[table.name] = table.entity
            table_by_entity[table.entity] = table.name
            table_by_entity.setdefault(entry.logical_name, table.name)
            pending.append(table)

        primary_keys = {table.name: list(table.primary_key) for table in pending}
        tables: List[TableDef] = []
        for table in pending:
            table_def = self._build_table(table, table_by_entity, primary_keys)
            if table_def is not None:
                tables.append(table_def)

        logger.info(f"Analyzed {len(registry)} entities into {len(tables)} tables "
                    f"({len(self.diagnostics)} diagnostics)")
        return SchemaModel(tables=tuple(tables))

    def _diagnose(self, entity: str, message: str) -> None:
        diagnostic = AnalyzerDiagnostic(entity=entity, message=message)
        self.diagnostics.append(diagnostic)
        logger.warning(f"Entity skipped or adjusted: {diagnostic}")

    def _analyze_entity(self, entry: RegisteredEntity) -> Optional[_PendingTable]:
        descriptor = entry.descriptor
        entity_label = entry.logical_name or (descriptor.entity_name if descriptor else '') or '<unnamed>'

        if not isinstance(descriptor, EntityDescriptor):
            self._diagnose(entity_label, "no entity descriptor attached")
            return None

        entity_name = descriptor.entity_name or entry.logical_name
        table_name = descriptor.table or pluralize(entity_name)
        if not table_name:
            self._diagnose(entity_label, "table name could not be resolved")
            return None

        table = _PendingTable(entity=entity_name, name=table_name)
        navigation_targets = {
            field.name: field.target for field in descriptor.fields
            if field.kind == FieldKind.REFERENCE and field.target
        }
        field_columns: Dict[str, str] = {}

        for field in descriptor.fields:
            if field.is_navigation or field.not_mapped:
                continue
            column = self._build_column(entity_name, field)
            if column.name in field_columns.values():
                self._diagnose(entity_label, f"column '{column.name}' declared twice")
                return None
            field_columns[field.name] = column.name
            table.columns.append(column)
            if column.is_primary_key:
                table.primary_key.append(column.name)

            if field.foreign_key or field.foreign_key_table:
                table.foreign_keys.append(self._pending_foreign_key(field, column.name, navigation_targets))

            if field.index or field.unique:
                table.indexes.append(IndexDef(
                    name=f"IX_{table_name}_{column.name}",
                    columns=(column.name,),
                    is_unique=field.unique,
                ))

        for key in descriptor.primary_key:
            column_name = field_columns.get(key, key)
            if column_name not in [column.name for column in table.columns]:
                self._diagnose(entity_label, f"primary key '{key}' is not a mapped field")
                return None
            if column_name not in table.primary_key:
                table.primary_key.append(column_name)

        if not table.primary_key and 'Id' in field_columns.values():
            table.primary_key.append('Id')

        table.columns = self._finalize_key_columns(entity_label, table.columns, table.primary_key)

        if descriptor.audit is not None:
            flags = (descriptor.audit.created_at, descriptor.audit.updated_at, descriptor.audit.deleted_at)
            for name, enabled in zip(AUDIT_COLUMNS, flags):
                if enabled and name not in field_columns.values():
                    table.columns.append(ColumnDef(name=name, type=ColumnType.DATETIME, nullable=True))

        column_names = {column.name for column in table.columns}
        for declared in descriptor.indexes:
            columns = tuple(field_columns.get(name, name) for name in declared.columns)
            missing = [name for name in columns if name not in column_names]
            if missing:
                self._diagnose(entity_label, f"index over unknown columns {missing} ignored")
                continue
            table.indexes.append(IndexDef(
                name=declared.name or f"IX_{table_name}_{'_'.join(columns)}",
                columns=columns,
                is_unique=declared.unique,
            ))

        return table

    def _build_column(self, entity: str, field: FieldDescriptor) -> ColumnDef:
        column_type = PRIMITIVE_COLUMN_TYPES.get(field.python_type.lower(), ColumnType.STRING)
        max_length = field.max_length

        if field.column_type:
            parsed_type, parsed_length = parse_column_type(field.column_type)
            if parsed_type is not None:
                column_type = parsed_type
            if parsed_length is not None and max_length is None:
                max_length = parsed_length

        if column_type != ColumnType.STRING:
            max_length = None

        generated = field.generated
        if generated and not field.key:
            self._diagnose(entity, f"generated field '{field.name}' is not a key; identity ignored")
            generated = False

        return ColumnDef(
            name=field.column_name or field.name,
            type=column_type,
            max_length=max_length,
            nullable=field.optional and not field.required and not field.key,
            is_primary_key=field.key,
            is_auto_increment=generated,
        )

    def _finalize_key_columns(self, entity: str, columns: List[ColumnDef],
                              primary_key: List[str]) -> List[ColumnDef]:
        """Mark primary key columns NOT NULL and keep a single identity column."""
        finalized = []
        identity_seen = False
        for column in columns:
            updates = {}
            if column.name in primary_key and not column.is_primary_key:
                updates['is_primary_key'] = True
            if column.name in primary_key and column.nullable:
                updates['nullable'] = False
            if column.is_auto_increment:
                if identity_seen:
                    self._diagnose(entity, f"second identity column '{column.name}' demoted")
                    updates['is_auto_increment'] = False
                identity_seen = True
            finalized.append(column.model_copy(update=updates) if updates else column)
        return finalized

    @staticmethod
    def _pending_foreign_key(field: FieldDescriptor, column_name: str,
                             navigation_targets: Dict[str, str]) -> _PendingForeignKey:
        if field.foreign_key_table:
            return _PendingForeignKey(
                column=column_name,
                target=field.foreign_key_table,
                explicit_table=True,
                referenced_column=field.referenced_column,
                on_delete=field.on_delete,
            )
        target = navigation_targets.get(field.foreign_key, field.foreign_key)
        return _PendingForeignKey(
            column=column_name,
            target=target,
            referenced_column=field.referenced_column,
            on_delete=field.on_delete,
        )

    def _build_table(self, table: _PendingTable, table_by_entity: Dict[str, str],
                     primary_keys: Dict[str, List[str]]) -> Optional[TableDef]:
        foreign_keys = []
        for pending in table.foreign_keys:
            if pending.explicit_table:
                referenced_table = pending.target
            else:
                referenced_table = table_by_entity.get(pending.target) or pluralize(pending.target)

            referenced_column = pending.referenced_column
            if not referenced_column:
                target_key = primary_keys.get(referenced_table) or []
                referenced_column = target_key[0] if target_key else 'Id'

            foreign_keys.append(ForeignKeyDef(
                column=pending.column,
                referenced_table=referenced_table,
                referenced_column=referenced_column,
                on_delete=pending.on_delete,
            ))

        try:
            return TableDef(
                name=table.name,
                columns=tuple(table.columns),
                primary_key=tuple(table.primary_key),
                foreign_keys=tuple(foreign_keys),
                indexes=tuple(table.indexes),
            )
        except ValidationError as e:
            self._diagnose(table.entity, f"invalid table definition: {e.errors()[0]['msg']}")
            return None
