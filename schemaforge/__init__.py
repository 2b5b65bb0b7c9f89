"""
schemaforge: versioned, reversible schema migrations from declarative entity models.
"""

from .exceptions import (
    SchemaForgeError, ModelDefinitionError, MigrationError, MigrationLoadError, OperationExecutionError
)
from .schema import (
    EntityRegistry, ModelAnalyzer, SchemaModel, entity, column, reference, collection, index, audit_fields
)
from .database import DatabaseFactory, DatabaseManager, register_dialect
from .migrations import Migration, MigrationManager, MigrationPlan

__version__ = "0.1.0"

__all__ = [
    'SchemaForgeError', 'ModelDefinitionError', 'MigrationError', 'MigrationLoadError',
    'OperationExecutionError',
    'EntityRegistry', 'ModelAnalyzer', 'SchemaModel',
    'entity', 'column', 'reference', 'collection', 'index', 'audit_fields',
    'DatabaseFactory', 'DatabaseManager', 'register_dialect',
    'Migration', 'MigrationManager', 'MigrationPlan',
]
