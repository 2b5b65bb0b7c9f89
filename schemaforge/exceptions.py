"""Exception hierarchy for schemaforge.

Analysis and introspection problems are reported as diagnostics and never
raised; the exceptions below cover invalid model definitions and failures
while loading or running migration scripts.
"""

from typing import Optional, Any


class SchemaForgeError(Exception):
    """Base exception for schemaforge errors."""
    pass


class ModelDefinitionError(SchemaForgeError):
    """Raised when a schema model or entity descriptor violates an invariant."""
    pass


class MigrationError(SchemaForgeError):
    """Raised when a migration cannot be created, found, applied or rolled back."""
    pass


class MigrationLoadError(MigrationError):
    """Raised when a migration script file cannot be imported."""
    pass


class OperationExecutionError(MigrationError):
    """Raised when a single DDL operation fails against the database.

    Attributes:
        operation: The operation that failed
        sql: The rendered statement, if rendering succeeded
    """

    def __init__(self, message: str, operation: Any = None, sql: Optional[str] = None):
        super().__init__(message)
        self.operation = operation
        self.sql = sql
