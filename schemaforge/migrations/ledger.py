"""
Migration ledger.

The ledger table records which migration scripts have been applied. It is
created on first use.
"""

import logging
from datetime import datetime
from typing import List, Optional, Set

from sqlalchemy import Column, DateTime, Integer, MetaData, String, Table, delete, select

from ..database.base_manager import DatabaseManager
from .migration import MigrationRecord

logger = logging.getLogger(__name__)

DEFAULT_LEDGER_TABLE = 'migrations'


class MigrationLedger:
    """Reads and writes the applied-migrations table."""

    def __init__(self, manager: DatabaseManager, table_name: str = DEFAULT_LEDGER_TABLE):
        """
        Initialize ledger.

        Args:
            manager: Database manager
            table_name: Ledger table name
        """
        self.manager = manager
        self.table_name = table_name
        self.metadata = MetaData()
        self.table = Table(
            table_name,
            self.metadata,
            Column('id', Integer, primary_key=True, autoincrement=True),
            Column('timestamp', String(14), nullable=False),
            Column('name', String(255), nullable=False),
            Column('applied_at', DateTime, nullable=False),
        )
        self._ensured = False

    def ensure_table(self) -> None:
        """Create the ledger table if it does not exist."""
        if self._ensured:
            return
        self.metadata.create_all(self.manager.engine, checkfirst=True)
        self._ensured = True
        logger.debug(f"Ledger table '{self.table_name}' ready")

    def get_applied(self) -> List[MigrationRecord]:
        """
        Ledger rows in application order.

        Returns:
            List of MigrationRecord
        """
        self.ensure_table()
        rows = self.manager.execute_query(select(self.table).order_by(self.table.c.id))
        return [MigrationRecord(**row) for row in rows]

    def applied_names(self) -> Set[str]:
        return {record.name for record in self.get_applied()}

    def record(self, timestamp: str, name: str, applied_at: Optional[datetime] = None) -> MigrationRecord:
        """
        Record a migration as applied.

        Args:
            timestamp: 14-digit script timestamp
            name: Script name
            applied_at: Application time (now by default)

        Returns:
            The stored record
        """
        self.ensure_table()
        applied_at = applied_at or datetime.now()
        record_id = self.manager.insert_row(self.table, {
            'timestamp': timestamp,
            'name': name,
            'applied_at': applied_at,
        })
        logger.debug(f"Recorded migration {timestamp}_{name} (id={record_id})")
        return MigrationRecord(id=record_id, timestamp=timestamp, name=name, applied_at=applied_at)

    def remove(self, record: MigrationRecord) -> int:
        """
        Delete a ledger row.

        Args:
            record: Record to delete (matched by id when known)

        Returns:
            Number of rows deleted
        """
        self.ensure_table()
        stmt = delete(self.table)
        if record.id is not None:
            stmt = stmt.where(self.table.c.id == record.id)
        else:
            stmt = stmt.where(self.table.c.timestamp == record.timestamp).where(self.table.c.name == record.name)
        deleted = self.manager.execute_dml(stmt)
        logger.debug(f"Removed ledger row for {record.key}")
        return deleted
