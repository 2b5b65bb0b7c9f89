"""
Schema model, entity descriptors and analysis.
"""

from .models import (
    ColumnType, OnDelete, ColumnDef, ForeignKeyDef, IndexDef, TableDef,
    SchemaModel, LiveSnapshot, DEFAULT_STRING_LENGTH
)
from .descriptors import (
    FieldKind, FieldDescriptor, IndexDescriptor, AuditFieldsDescriptor, EntityDescriptor,
    EntityRegistry, column, reference, collection, index, audit_fields, entity, get_descriptor
)
from .analyzer import ModelAnalyzer, AnalyzerDiagnostic, pluralize, parse_column_type
from .dependency import sort_tables, reverse_order

__all__ = [
    'ColumnType', 'OnDelete', 'ColumnDef', 'ForeignKeyDef', 'IndexDef', 'TableDef',
    'SchemaModel', 'LiveSnapshot', 'DEFAULT_STRING_LENGTH',
    'FieldKind', 'FieldDescriptor', 'IndexDescriptor', 'AuditFieldsDescriptor', 'EntityDescriptor',
    'EntityRegistry', 'column', 'reference', 'collection', 'index', 'audit_fields', 'entity',
    'get_descriptor',
    'ModelAnalyzer', 'AnalyzerDiagnostic', 'pluralize', 'parse_column_type',
    'sort_tables', 'reverse_order',
]
