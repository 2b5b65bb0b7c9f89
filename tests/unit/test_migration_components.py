"""Unit tests for the ledger, script writer, executor and snapshot loader."""

from datetime import datetime
from unittest.mock import MagicMock

import pytest

from schemaforge.database.dialects import SQLiteDialect
from schemaforge.database.snapshot import SnapshotLoader
from schemaforge.exceptions import MigrationLoadError, OperationExecutionError
from schemaforge.migrations.executor import MigrationExecutor
from schemaforge.migrations.ledger import MigrationLedger
from schemaforge.migrations.migration import MigrationRecord, MigrationScript, new_timestamp
from schemaforge.migrations.operations import AddForeignKey, DropTable
from schemaforge.migrations.planner import OperationPlanner
from schemaforge.migrations.script_writer import ScriptWriter
from schemaforge.schema.models import ColumnDef, ForeignKeyDef, LiveSnapshot


class TestMigrationLedger:
    """Test the applied-migrations table."""

    def test_table_created_lazily(self, sqlite_manager):
        ledger = MigrationLedger(sqlite_manager)
        assert not sqlite_manager.table_exists('migrations')

        assert ledger.get_applied() == []
        assert sqlite_manager.table_exists('migrations')

    def test_custom_table_name(self, sqlite_manager):
        ledger = MigrationLedger(sqlite_manager, '__schema_history')
        ledger.record('20240101000000', 'Init')

        assert sqlite_manager.table_exists('__schema_history')

    def test_record_and_remove(self, sqlite_manager):
        ledger = MigrationLedger(sqlite_manager)
        applied_at = datetime(2024, 1, 1, 12, 0, 0)

        first = ledger.record('20240101000000', 'Init', applied_at)
        second = ledger.record('20240102000000', 'AddEmail')

        assert first.id == 1
        assert second.id == 2
        records = ledger.get_applied()
        assert records[0] == MigrationRecord(id=1, timestamp='20240101000000', name='Init', applied_at=applied_at)
        assert ledger.applied_names() == {'Init', 'AddEmail'}

        assert ledger.remove(second) == 1
        assert [record.key for record in ledger.get_applied()] == ['20240101000000_Init']

    def test_remove_without_id(self, sqlite_manager):
        ledger = MigrationLedger(sqlite_manager)
        ledger.record('20240101000000', 'Init')

        assert ledger.remove(MigrationRecord(timestamp='20240101000000', name='Init')) == 1
        assert ledger.get_applied() == []


class TestScriptWriter:
    """Test migration script rendering."""

    def test_generated_script_round_trips(self, schema_model, tmp_path):
        plan = OperationPlanner(schema_model).plan()
        path = ScriptWriter().write(tmp_path, '20240101000000', 'Init', plan.up, plan.down)

        migration = MigrationScript.from_path(path).load()

        assert migration.up_operations() == plan.up
        assert migration.down_operations() == plan.down

    def test_script_layout(self, schema_model):
        plan = OperationPlanner(schema_model).plan()
        source = ScriptWriter().render_script('20240101000000', 'Init', plan.up, plan.down,
                                              created=datetime(2024, 1, 1))

        assert source.startswith('"""\nMigration: Init\nCreated: 2024-01-01 00:00:00\n"""')
        assert 'from schemaforge.migrations import Migration\n' in source
        assert 'from schemaforge.migrations.operations import AddForeignKey, CreateIndex, CreateTable, ' \
               'DropTable\n' in source
        assert 'class Migration_20240101000000_Init(Migration):' in source
        assert 'on_delete=OnDelete.NO_ACTION' in source
        assert "DropTable(table='Users')," in source

    def test_required_fields_kept_and_defaults_omitted(self):
        writer = ScriptWriter()

        assert writer.render_value(ForeignKeyDef(column='CompanyId', referenced_table='Companies')) == \
            "ForeignKeyDef(column='CompanyId', referenced_table='Companies')"
        assert writer.render_value(ForeignKeyDef(column='Code', referenced_table='Regions',
                                                 referenced_column='Code')) == \
            "ForeignKeyDef(column='Code', referenced_table='Regions', referenced_column='Code')"
        assert writer.render_value(ColumnDef(name='Email', max_length=120)) == \
            "ColumnDef(name='Email', max_length=120)"

    def test_scaffold(self):
        source = ScriptWriter().render_script('20240101000000', 'Manual')

        assert '# noqa: F401' in source
        assert source.count('return []') == 2

    def test_existing_file_is_not_overwritten(self, tmp_path):
        writer = ScriptWriter()
        writer.write(tmp_path, '20240101000000', 'Manual')

        with pytest.raises(FileExistsError):
            writer.write(tmp_path, '20240101000000', 'Manual')


class TestMigrationScript:
    """Test script file parsing and loading."""

    def test_from_path(self, tmp_path):
        script = MigrationScript.from_path(tmp_path / '20240101000000_Init.py')
        assert script.timestamp == '20240101000000'
        assert script.name == 'Init'
        assert script.key == '20240101000000_Init'

        assert MigrationScript.from_path(tmp_path / 'helpers.py') is None
        assert MigrationScript.from_path(tmp_path / '2024_Init.py') is None

    def test_load_without_migration_class(self, tmp_path):
        path = tmp_path / '20240101000000_Empty.py'
        path.write_text('VALUE = 1\n')

        with pytest.raises(MigrationLoadError):
            MigrationScript.from_path(path).load()

    def test_load_syntax_error(self, tmp_path):
        path = tmp_path / '20240101000000_Broken.py'
        path.write_text('def up(:\n')

        with pytest.raises(MigrationLoadError):
            MigrationScript.from_path(path).load()

    def test_new_timestamp(self):
        assert new_timestamp(datetime(2024, 1, 2, 3, 4, 5)) == '20240102030405'


class TestMigrationExecutor:
    """Test ordered execution and failure handling."""

    @pytest.fixture
    def manager(self):
        manager = MagicMock()
        manager.dialect = SQLiteDialect()
        return manager

    def test_executes_in_order(self, manager):
        executed = MigrationExecutor(manager).execute([DropTable(table='Users'), DropTable(table='Companies')])

        assert executed == ['DROP TABLE IF EXISTS "Users"', 'DROP TABLE IF EXISTS "Companies"']
        assert [c.args[0] for c in manager.execute_ddl.call_args_list] == executed

    def test_failure_stops_remaining_operations(self, manager):
        manager.execute_ddl.side_effect = [None, RuntimeError('table is locked'), None]
        operations = [DropTable(table='A'), DropTable(table='B'), DropTable(table='C')]

        with pytest.raises(OperationExecutionError) as exc_info:
            MigrationExecutor(manager).execute(operations)

        assert manager.execute_ddl.call_count == 2
        assert exc_info.value.operation == DropTable(table='B')
        assert exc_info.value.sql == 'DROP TABLE IF EXISTS "B"'
        assert 'table is locked' in str(exc_info.value)

    def test_inexpressible_operation_is_skipped(self, manager):
        operation = AddForeignKey(table='Users', name='FK_Users_Companies', columns=('CompanyId',),
                                  referenced_table='Companies', referenced_columns=('Id',))
        executor = MigrationExecutor(manager)

        assert executor.execute([operation]) == []
        manager.execute_ddl.assert_not_called()
        assert executor.preview([operation]) == [f"-- skipped on sqlite: {operation.describe()}"]


class TestSnapshotLoader:
    """Test live schema introspection."""

    def test_no_connection(self):
        assert SnapshotLoader(None).load().is_empty

    def test_introspection_failure_degrades_to_empty(self):
        manager = MagicMock()
        manager.dialect.load_snapshot.side_effect = RuntimeError('connection refused')

        assert SnapshotLoader(manager).load() == LiveSnapshot.empty()

    def test_unsupported_dialect_degrades_to_empty(self):
        manager = MagicMock()
        manager.dialect.load_snapshot.side_effect = NotImplementedError

        assert SnapshotLoader(manager).load().is_empty

    def test_sqlite_snapshot(self, sqlite_manager):
        sqlite_manager.execute_ddl('CREATE TABLE "Companies" ("Id" INTEGER PRIMARY KEY, "Name" VARCHAR(100))')
        sqlite_manager.execute_ddl('CREATE INDEX "IX_Companies_Name" ON "Companies" ("Name")')
        sqlite_manager.execute_ddl(
            'CREATE TABLE "Users" ("Id" INTEGER PRIMARY KEY, "CompanyId" INTEGER, '
            'CONSTRAINT "FK_Users_Companies" FOREIGN KEY("CompanyId") REFERENCES "Companies" ("Id"))'
        )

        snapshot = SnapshotLoader(sqlite_manager).load()

        assert snapshot.tables['Companies'] == {'Id': 'integer', 'Name': 'string'}
        assert snapshot.has_column('Users', 'CompanyId')
        assert snapshot.has_index('Companies', 'IX_Companies_Name')
        assert snapshot.knows_indexes('Users')
        assert not snapshot.has_index('Users', 'IX_Companies_Name')
