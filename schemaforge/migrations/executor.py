"""
Migration executor.

Runs operations one statement at a time through the connection's dialect.
"""

import logging
from typing import List, Sequence

from ..database.base_manager import DatabaseManager
from ..exceptions import OperationExecutionError
from .operations import Operation

logger = logging.getLogger(__name__)


class MigrationExecutor:
    """Executes operation lists in order, stopping at the first failure."""

    def __init__(self, manager: DatabaseManager):
        self.manager = manager
        self.dialect = manager.dialect

    def execute(self, operations: Sequence[Operation]) -> List[str]:
        """
        Execute operations in order.

        Args:
            operations: Operations to run

        Returns:
            SQL statements that were executed (skipped operations excluded)

        Raises:
            OperationExecutionError: On the first failing operation; the
                remaining operations are not run
        """
        executed: List[str] = []
        for position, operation in enumerate(operations, start=1):
            logger.info(f"[{position}/{len(operations)}] {operation.describe()}")
            sql = None
            try:
                sql = self.dialect.render(operation)
                if sql is not None:
                    sql = self.dialect.apply(operation, self.manager)
                else:
                    logger.warning(f"{self.dialect.name} cannot express '{operation.describe()}', skipped")
            except Exception as e:
                logger.error(f"Operation failed: {operation.describe()}: {e}")
                if sql:
                    logger.error(f"SQL: {sql}")
                raise OperationExecutionError(
                    f"{operation.describe()} failed: {e}", operation=operation, sql=sql
                ) from e
            if sql is not None:
                executed.append(sql)
        return executed

    def preview(self, operations: Sequence[Operation]) -> List[str]:
        """
        Render operations without executing them.

        Args:
            operations: Operations to render

        Returns:
            SQL statements; inexpressible operations appear as comments
        """
        statements = []
        for operation in operations:
            sql = self.dialect.render(operation)
            if sql is None:
                statements.append(f"-- skipped on {self.dialect.name}: {operation.describe()}")
            else:
                statements.append(sql)
        return statements
