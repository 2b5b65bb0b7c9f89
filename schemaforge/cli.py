"""
schemaforge command line interface

Usage:
    schemaforge add AddEmail --models app.models:registry
    schemaforge update [--target 20240102000000_AddEmail]
    schemaforge rollback [--steps 2]
    schemaforge list | pending | status
    schemaforge remove AddEmail
    schemaforge script [--pending]
"""

import argparse
import importlib
import logging
import sys
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from .config_manager import ConfigManager
from .database.engine_factory import DatabaseFactory
from .exceptions import SchemaForgeError
from .logging_utils import setup_logging
from .migrations.manager import MigrationManager
from .schema.descriptors import EntityRegistry

logger = logging.getLogger(__name__)


def load_registry(import_path: str) -> EntityRegistry:
    """
    Import an entity registry given as ``module:attribute``.

    Args:
        import_path: Import path of the registry

    Returns:
        EntityRegistry (a callable attribute is called to produce it)
    """
    module_name, _, attribute = import_path.partition(':')
    if not module_name or not attribute:
        raise ValueError(f"Models must be given as module:attribute, got '{import_path}'")
    module = importlib.import_module(module_name)
    registry = getattr(module, attribute)
    if callable(registry) and not isinstance(registry, EntityRegistry):
        registry = registry()
    if not isinstance(registry, EntityRegistry):
        raise TypeError(f"{import_path} is not an EntityRegistry")
    return registry


class SchemaForgeCLI:
    """Command dispatcher over a MigrationManager."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def build_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog='schemaforge',
            description="Versioned schema migrations from declarative entity models",
        )
        parser.add_argument('--config', help='Configuration YAML file')
        parser.add_argument('--override', help='Override configuration YAML file')
        parser.add_argument('--models', help='Entity registry as module:attribute')
        parser.add_argument('--debug', action='store_true', help='Enable debug logging')

        commands = parser.add_subparsers(dest='command', required=True)

        add = commands.add_parser('add', help='Create a migration from model changes')
        add.add_argument('name', help='Migration name')

        update = commands.add_parser('update', help='Apply pending migrations')
        update.add_argument('--target', help='Last migration to apply (key, timestamp or name)')

        rollback = commands.add_parser('rollback', help='Roll back applied migrations')
        rollback.add_argument('--steps', type=int, default=1, help='Number of migrations to roll back')

        commands.add_parser('list', help='List all migrations')
        commands.add_parser('pending', help='List pending migrations')
        commands.add_parser('status', help='Show migration status')

        remove = commands.add_parser('remove', help='Delete a migration script (ledger untouched)')
        remove.add_argument('name', help='Migration name or key')

        script = commands.add_parser('script', help='Print the SQL of migrations without running it')
        script.add_argument('--pending', action='store_true', help='Only pending migrations')

        return parser

    def create_manager(self, args: argparse.Namespace) -> MigrationManager:
        config_manager = ConfigManager(args.config)
        if args.override:
            config_manager.merge_override(args.override)
        config_manager.validate()
        config = config_manager.get_config(redact_secrets=False)

        if args.debug:
            config['logging']['level'] = 'DEBUG'
        setup_logging(config)

        registry = load_registry(args.models) if args.models else None
        database = DatabaseFactory.create_from_config(config)
        migrations = config['migrations']
        return MigrationManager(
            database,
            migrations['path'],
            registry=registry,
            ledger_table=migrations.get('ledger_table', 'migrations'),
        )

    def run(self, argv: List[str]) -> int:
        args = self.build_parser().parse_args(argv)
        manager = self.create_manager(args)
        try:
            handler = getattr(self, f"cmd_{args.command}")
            return handler(manager, args)
        except SchemaForgeError as e:
            logger.error(f"{args.command} failed: {e}", exc_info=args.debug)
            self.console.print(f"[bold red]Error:[/bold red] {e}")
            return 1
        finally:
            manager.db.close()

    # Commands

    def cmd_add(self, manager: MigrationManager, args) -> int:
        path = manager.add_migration(args.name)
        self.console.print(f"[green]Created[/green] {path}")
        return 0

    def cmd_update(self, manager: MigrationManager, args) -> int:
        applied = manager.update_database(args.target)
        if not applied:
            self.console.print("[dim]Database is up to date[/dim]")
        for script in applied:
            self.console.print(f"[green]Applied[/green] {script.key}")
        return 0

    def cmd_rollback(self, manager: MigrationManager, args) -> int:
        rolled_back = manager.rollback_migration(args.steps)
        if not rolled_back:
            self.console.print("[dim]Nothing to roll back[/dim]")
        for record in rolled_back:
            self.console.print(f"[yellow]Rolled back[/yellow] {record.key}")
        return 0

    def cmd_list(self, manager: MigrationManager, args) -> int:
        applied = {record.key: record for record in manager.get_applied_migrations()}
        table = Table(title="[bold blue]Migrations[/bold blue]", show_header=True, header_style="bold magenta")
        table.add_column("Timestamp", style="bold yellow")
        table.add_column("Name", style="white")
        table.add_column("Applied", style="green")
        for script in manager.get_all_migrations():
            record = applied.get(script.key)
            applied_at = record.applied_at.isoformat(sep=' ', timespec='seconds') \
                if record and record.applied_at else ''
            table.add_row(script.timestamp, script.name, applied_at or '[dim]pending[/dim]')
        self.console.print(table)
        return 0

    def cmd_pending(self, manager: MigrationManager, args) -> int:
        pending = manager.get_pending_migrations()
        if not pending:
            self.console.print("[dim]No pending migrations[/dim]")
        for script in pending:
            self.console.print(script.key)
        return 0

    def cmd_status(self, manager: MigrationManager, args) -> int:
        status = manager.get_migration_status()
        table = Table(title="[bold blue]Migration status[/bold blue]", show_header=False)
        table.add_column("Property", style="bold yellow")
        table.add_column("Value", style="white")
        for key in ('dialect', 'migrations_path', 'total_migrations', 'applied_migrations',
                    'pending_migrations', 'current_migration', 'is_up_to_date'):
            table.add_row(key.replace('_', ' ').capitalize(), str(status[key]))
        self.console.print(table)

        for issue in manager.validate_migrations():
            self.console.print(f"[bold red]{issue['type']}[/bold red]: {issue['message']}")
        return 0

    def cmd_remove(self, manager: MigrationManager, args) -> int:
        if manager.remove_migration(args.name):
            self.console.print(f"[green]Removed[/green] {args.name}")
            return 0
        self.console.print(f"[yellow]No migration named[/yellow] {args.name}")
        return 1

    def cmd_script(self, manager: MigrationManager, args) -> int:
        for key, statements in manager.preview_migrations(pending_only=args.pending).items():
            self.console.print(f"[bold cyan]-- {key}[/bold cyan]")
            for statement in statements:
                self.console.print(f"{statement};", markup=False, highlight=False)
        return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    cli = SchemaForgeCLI()
    try:
        return cli.run(sys.argv[1:] if argv is None else argv)
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        return 130
    except Exception as e:
        logging.getLogger(__name__).error(f"Unexpected error: {e}", exc_info=True)
        cli.console.print(f"[bold red]Unexpected error:[/bold red] {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
