"""
Migration manager.

This module provides the orchestration surface of schemaforge: generating
migration scripts from the registered entity model, applying pending
scripts, rolling back applied ones and reporting their status.
"""

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from ..database.base_manager import DatabaseManager
from ..database.snapshot import SnapshotLoader
from ..exceptions import MigrationError
from ..logging_utils import migration_context
from ..schema.analyzer import ModelAnalyzer
from ..schema.descriptors import EntityRegistry
from .executor import MigrationExecutor
from .ledger import DEFAULT_LEDGER_TABLE, MigrationLedger
from .migration import MigrationRecord, MigrationScript, new_timestamp
from .operations import MigrationPlan, validate_operations
from .planner import OperationPlanner
from .script_writer import ScriptWriter

logger = logging.getLogger(__name__)

OperationSource = Union[Callable[[], Sequence[Any]], Sequence[Any]]


def sanitize_name(name: str) -> str:
    """Reduce a migration name to [A-Za-z0-9_]."""
    return re.sub(r'[^A-Za-z0-9_]+', '_', name).strip('_')


class MigrationManager:
    """
    Version-controlled schema management over a migrations directory.

    Scripts live in ``migrations_path`` as ``<timestamp>_<Name>.py``; the
    ledger table records the scripts that have been applied.
    """

    def __init__(self, manager: DatabaseManager, migrations_path: Union[str, Path],
                 registry: Optional[EntityRegistry] = None,
                 ledger_table: str = DEFAULT_LEDGER_TABLE):
        """
        Initialize migration manager.

        Args:
            manager: Database manager for the target database
            migrations_path: Directory holding migration scripts
            registry: Entity registry used to generate migrations
            ledger_table: Name of the ledger table
        """
        self.db = manager
        self.migrations_path = Path(migrations_path)
        self.registry = registry
        self.ledger = MigrationLedger(manager, ledger_table)
        self.executor = MigrationExecutor(manager)
        self.writer = ScriptWriter()

        logger.debug(f"Migration directory: {self.migrations_path}")

    # Discovery

    def get_all_migrations(self) -> List[MigrationScript]:
        """
        Discover migration scripts on disk.

        Returns:
            Scripts sorted by timestamp ascending
        """
        if not self.migrations_path.is_dir():
            return []

        scripts = []
        for file_path in self.migrations_path.glob('*.py'):
            script = MigrationScript.from_path(file_path)
            if script is None:
                if file_path.name != '__init__.py':
                    logger.debug(f"Ignoring non-migration file {file_path.name}")
                continue
            scripts.append(script)

        scripts.sort(key=lambda s: (s.timestamp, s.name))
        logger.debug(f"Discovered {len(scripts)} migration files")
        return scripts

    def get_applied_migrations(self) -> List[MigrationRecord]:
        """Ledger rows in application order."""
        return self.ledger.get_applied()

    def get_pending_migrations(self) -> List[MigrationScript]:
        """
        Scripts whose name is not in the ledger.

        Returns:
            Pending scripts sorted by timestamp ascending
        """
        applied_names = self.ledger.applied_names()
        pending = [script for script in self.get_all_migrations() if script.name not in applied_names]
        logger.debug(f"Found {len(pending)} pending migrations")
        return pending

    # Generation

    def generate_migration(self) -> MigrationPlan:
        """
        Diff the registered entity model against the live database.

        Returns:
            MigrationPlan, MigrationPlan.empty() when there is nothing to do
        """
        if self.registry is None or len(self.registry) == 0:
            logger.info("No entities registered, nothing to generate")
            return MigrationPlan.empty()

        analyzer = ModelAnalyzer()
        model = analyzer.analyze(self.registry)
        if not model.tables:
            logger.info("Entity model produced no tables, nothing to generate")
            return MigrationPlan.empty()

        snapshot = SnapshotLoader(self.db).load()
        return OperationPlanner(model, snapshot).plan()

    def add_migration(self, name: str, up: Optional[OperationSource] = None,
                      down: Optional[OperationSource] = None) -> Path:
        """
        Create a new migration script.

        With explicit ``up``/``down`` builders (callables returning operation
        sequences, or sequences) those operations are written; otherwise the
        operations come from :meth:`generate_migration`. An empty result
        writes a scaffold script to be filled in by hand.

        Args:
            name: Migration name
            up: Forward operations or a callable producing them
            down: Inverse operations or a callable producing them

        Returns:
            Path of the new script

        Raises:
            MigrationError: If the name is invalid or the file already exists
        """
        safe_name = sanitize_name(name)
        if not safe_name:
            raise MigrationError(f"Invalid migration name: {name!r}")

        if up is not None or down is not None:
            up_operations = validate_operations(up() if callable(up) else (up or []))
            down_operations = validate_operations(down() if callable(down) else (down or []))
            plan = MigrationPlan(up=up_operations, down=down_operations)
        else:
            plan = self.generate_migration()

        timestamp = new_timestamp()
        try:
            if plan.is_empty:
                logger.info(f"No schema changes detected, writing empty migration {safe_name}")
                path = self.writer.write(self.migrations_path, timestamp, safe_name)
            else:
                path = self.writer.write(self.migrations_path, timestamp, safe_name, plan.up, plan.down)
        except FileExistsError as e:
            raise MigrationError(str(e)) from e

        logger.info(f"Created migration {timestamp}_{safe_name} ({len(plan.up)} operations)")
        return path

    def remove_migration(self, name: str) -> bool:
        """
        Delete the script files of a migration; the ledger is not touched.

        Args:
            name: Migration name or full ``<timestamp>_<Name>`` key

        Returns:
            True if at least one file was deleted
        """
        removed = False
        for script in self.get_all_migrations():
            if name in (script.name, script.key):
                script.path.unlink()
                logger.info(f"Removed migration file {script.path.name}")
                removed = True
        if not removed:
            logger.warning(f"No migration file named '{name}'")
        return removed

    # Execution

    def _resolve_target(self, target: str, scripts: List[MigrationScript]) -> str:
        for script in scripts:
            if target in (script.key, script.timestamp, script.name):
                return script.key
        raise MigrationError(f"Unknown migration target: {target}")

    def update_database(self, target: Optional[str] = None) -> List[MigrationScript]:
        """
        Apply pending migrations in timestamp order.

        Args:
            target: Last migration to apply (full key, timestamp or name);
                all pending migrations when None

        Returns:
            Migrations applied by this call

        Raises:
            MigrationError: If the target is unknown or a migration fails;
                earlier migrations stay applied
        """
        pending = self.get_pending_migrations()
        if target is not None:
            target_key = self._resolve_target(target, self.get_all_migrations())
            pending = [script for script in pending if script.key <= target_key]

        if not pending:
            logger.info("No pending migrations to run")
            return []

        applied = []
        for script in pending:
            with migration_context(script.key):
                logger.info(f"Applying migration: {script.key}")
                start_time = datetime.now()
                migration = script.load()
                self.executor.execute(migration.up_operations())
                self.ledger.record(script.timestamp, script.name)
                elapsed = (datetime.now() - start_time).total_seconds() * 1000
                logger.info(f"Applied migration {script.key} in {elapsed:.1f}ms")
            applied.append(script)

        logger.info(f"Successfully applied {len(applied)} migrations")
        return applied

    def rollback_migration(self, steps: int = 1) -> List[MigrationRecord]:
        """
        Roll back the most recently applied migrations.

        Only ledger rows whose script is still on disk are eligible. Each
        migration's ``down()`` runs most-recent-first and its row is deleted
        after it succeeds.

        Args:
            steps: Number of migrations to roll back

        Returns:
            Ledger records rolled back by this call
        """
        if steps < 1:
            return []

        scripts = {script.key: script for script in self.get_all_migrations()}
        eligible = [record for record in self.get_applied_migrations() if record.key in scripts]
        eligible.sort(key=lambda record: (record.timestamp, record.id or 0))
        to_rollback = list(reversed(eligible))[:steps]

        if not to_rollback:
            logger.info("No migrations to roll back")
            return []

        rolled_back = []
        for record in to_rollback:
            with migration_context(record.key):
                logger.info(f"Rolling back migration: {record.key}")
                migration = scripts[record.key].load()
                self.executor.execute(migration.down_operations())
                self.ledger.remove(record)
                logger.info(f"Rolled back migration {record.key}")
            rolled_back.append(record)

        logger.info(f"Successfully rolled back {len(rolled_back)} migrations")
        return rolled_back

    def preview_migrations(self, pending_only: bool = True) -> Dict[str, List[str]]:
        """
        Render the up() SQL of migrations without executing it.

        Args:
            pending_only: Only pending migrations; all scripts otherwise

        Returns:
            Mapping of migration key to statements
        """
        scripts = self.get_pending_migrations() if pending_only else self.get_all_migrations()
        return {
            script.key: self.executor.preview(script.load().up_operations())
            for script in scripts
        }

    # Reporting

    def get_migration_status(self) -> Dict[str, Any]:
        """
        Get current migration status.

        Returns:
            Dictionary with migration status information
        """
        all_migrations = self.get_all_migrations()
        applied_migrations = self.get_applied_migrations()
        applied_names = {record.name for record in applied_migrations}
        pending_migrations = [script for script in all_migrations if script.name not in applied_names]

        return {
            'dialect': self.db.dialect_name,
            'migrations_path': str(self.migrations_path),
            'total_migrations': len(all_migrations),
            'applied_migrations': len(applied_migrations),
            'pending_migrations': len(pending_migrations),
            'current_migration': applied_migrations[-1].key if applied_migrations else None,
            'is_up_to_date': not pending_migrations,
            'applied_migration_list': [
                {
                    'key': record.key,
                    'name': record.name,
                    'applied_at': record.applied_at.isoformat() if record.applied_at else None,
                }
                for record in applied_migrations
            ],
            'pending_migration_list': [
                {'key': script.key, 'name': script.name}
                for script in pending_migrations
            ],
        }

    def validate_migrations(self) -> List[Dict[str, Any]]:
        """
        Validate applied migrations against current files.

        Returns:
            List of validation issues
        """
        issues = []
        scripts = self.get_all_migrations()
        keys = {script.key for script in scripts}
        names = {script.name for script in scripts}

        for record in self.get_applied_migrations():
            if record.key in keys:
                continue
            if record.name in names:
                issues.append({
                    'type': 'timestamp_mismatch',
                    'migration': record.key,
                    'message': f"Migration {record.name} is applied with timestamp {record.timestamp} "
                               f"but its file has a different timestamp",
                })
            else:
                issues.append({
                    'type': 'missing_file',
                    'migration': record.key,
                    'message': f"Migration {record.key} is applied but file is missing",
                })

        return issues
