"""
Migration planning, execution and tracking.
"""

from .operations import (
    Operation, CreateTable, DropTable, AddColumn, DropColumn, CreateIndex, DropIndex,
    AddForeignKey, DropForeignKey, MigrationPlan, validate_operations
)
from .migration import Migration, MigrationRecord, MigrationScript
from .planner import OperationPlanner
from .executor import MigrationExecutor
from .ledger import MigrationLedger
from .script_writer import ScriptWriter
from .manager import MigrationManager

__all__ = [
    'Operation', 'CreateTable', 'DropTable', 'AddColumn', 'DropColumn', 'CreateIndex',
    'DropIndex', 'AddForeignKey', 'DropForeignKey', 'MigrationPlan', 'validate_operations',
    'Migration', 'MigrationRecord', 'MigrationScript',
    'OperationPlanner', 'MigrationExecutor', 'MigrationLedger', 'ScriptWriter',
    'MigrationManager',
]
