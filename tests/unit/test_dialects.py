"""Unit tests for dialect DDL rendering and the dialect registry."""

import logging
from unittest.mock import MagicMock, patch

import pytest

from schemaforge.database.dialects import (
    BaseDialect, MySQLDialect, PostgreSQLDialect, SQLiteDialect, SQLServerDialect,
    get_dialect, get_supported_dialects, register_dialect
)
from schemaforge.database.utils.type_mapping import TypeMapper
from schemaforge.migrations.operations import (
    AddColumn, AddForeignKey, CreateIndex, CreateTable, DropColumn, DropForeignKey,
    DropIndex, DropTable
)
from schemaforge.migrations.planner import OperationPlanner
from schemaforge.schema.models import (
    ColumnDef, ColumnType, ForeignKeyDef, IndexDef, OnDelete, SchemaModel, TableDef
)


EMAIL = ColumnDef(name="Email", type=ColumnType.STRING, max_length=120)


def _add_foreign_key(on_delete=OnDelete.CASCADE):
    return AddForeignKey(
        table="Users", name="FK_Users_Companies", columns=("CompanyId",),
        referenced_table="Companies", referenced_columns=("Id",), on_delete=on_delete,
    )


class TestCreateTable:
    """Test CREATE TABLE rendering per engine."""

    def test_mysql(self, schema_model):
        sql = MySQLDialect().render(CreateTable(definition=schema_model["Companies"]))

        assert sql.startswith("CREATE TABLE `Companies`")
        assert "`Id` INTEGER NOT NULL AUTO_INCREMENT" in sql
        assert "`Name` VARCHAR(100) NOT NULL" in sql
        assert "PRIMARY KEY (`Id`)" in sql

    def test_postgresql(self, schema_model):
        sql = PostgreSQLDialect().render(CreateTable(definition=schema_model["Companies"]))

        assert sql.startswith('CREATE TABLE "Companies"')
        assert '"Id" SERIAL NOT NULL' in sql
        assert '"CreatedAt" TIMESTAMP WITHOUT TIME ZONE' in sql

    def test_sqlite(self, schema_model):
        sql = SQLiteDialect().render(CreateTable(definition=schema_model["Companies"]))

        assert sql.startswith('CREATE TABLE "Companies"')
        assert "AUTOINCREMENT" in sql
        assert '"Name" TEXT NOT NULL' in sql

    def test_sqlite_declares_foreign_keys_inline(self, schema_model):
        sql = SQLiteDialect().render(CreateTable(definition=schema_model["Users"]))

        assert 'CONSTRAINT "FK_Users_Companies" FOREIGN KEY("CompanyId") REFERENCES "Companies" ("Id")' in sql
        assert 'ON DELETE CASCADE' in sql
        assert 'CONSTRAINT "FK_Users_Users" FOREIGN KEY("ManagerId") REFERENCES "Users" ("Id")' in sql
        assert sql.count('CREATE TABLE') == 1

    def test_sqlite_omits_foreign_keys_to_unknown_tables(self, caplog):
        users = TableDef(
            name="Users",
            columns=(
                ColumnDef(name="Id", type=ColumnType.INTEGER, nullable=False, is_primary_key=True),
                ColumnDef(name="TenantId", type=ColumnType.INTEGER),
                ColumnDef(name="ManagerId", type=ColumnType.INTEGER),
            ),
            primary_key=("Id",),
            foreign_keys=(
                ForeignKeyDef(column="TenantId", referenced_table="Tenants"),
                ForeignKeyDef(column="ManagerId", referenced_table="Users", on_delete=OnDelete.NO_ACTION),
            ),
        )
        with caplog.at_level(logging.WARNING):
            plan = OperationPlanner(SchemaModel(tables=(users,))).plan()

        create = plan.up[0]
        assert [fk.referenced_table for fk in create.definition.foreign_keys] == ["Users"]
        assert "omitted" in caplog.text

        sql = SQLiteDialect().render(create)
        assert "Tenants" not in sql
        assert 'CONSTRAINT "FK_Users_Users" FOREIGN KEY("ManagerId") REFERENCES "Users" ("Id")' in sql

    def test_sqlserver(self, schema_model):
        sql = SQLServerDialect().render(CreateTable(definition=schema_model["Companies"]))

        assert sql == (
            "CREATE TABLE [Companies] (\n"
            "    [Id] INTEGER IDENTITY(1,1) NOT NULL,\n"
            "    [Name] NVARCHAR(100) NOT NULL,\n"
            "    [CreatedAt] DATETIME2 NULL,\n"
            "    [UpdatedAt] DATETIME2 NULL,\n"
            "    PRIMARY KEY ([Id])\n"
            ")"
        )


class TestAlterRendering:
    """Test column, index and foreign key statements per engine."""

    def test_drop_table(self):
        operation = DropTable(table="Users")

        assert MySQLDialect().render(operation) == "DROP TABLE IF EXISTS `Users`"
        assert PostgreSQLDialect().render(operation) == 'DROP TABLE IF EXISTS "Users"'
        assert SQLServerDialect().render(operation) == \
            "IF OBJECT_ID(N'Users', N'U') IS NOT NULL DROP TABLE [Users]"

    def test_add_column(self):
        operation = AddColumn(table="Users", column=EMAIL)

        assert MySQLDialect().render(operation) == "ALTER TABLE `Users` ADD COLUMN `Email` VARCHAR(120)"
        assert PostgreSQLDialect().render(operation) == 'ALTER TABLE "Users" ADD COLUMN "Email" VARCHAR(120)'
        assert SQLiteDialect().render(operation) == 'ALTER TABLE "Users" ADD COLUMN "Email" TEXT'
        assert SQLServerDialect().render(operation) == "ALTER TABLE [Users] ADD [Email] NVARCHAR(120) NULL"

    def test_drop_column(self):
        operation = DropColumn(table="Users", column="Email")

        assert PostgreSQLDialect().render(operation) == 'ALTER TABLE "Users" DROP COLUMN "Email"'
        assert SQLServerDialect().render(operation) == "ALTER TABLE [Users] DROP COLUMN [Email]"

    def test_create_index(self):
        operation = CreateIndex(table="Users", index=IndexDef(name="IX_Users_Email", columns=("Email",),
                                                              is_unique=True))

        assert PostgreSQLDialect().render(operation) == \
            'CREATE UNIQUE INDEX "IX_Users_Email" ON "Users" ("Email")'
        assert MySQLDialect().render(operation) == \
            "CREATE UNIQUE INDEX `IX_Users_Email` ON `Users` (`Email`)"

    def test_drop_index(self):
        operation = DropIndex(table="Users", name="IX_Users_Email")

        assert MySQLDialect().render(operation) == "DROP INDEX `IX_Users_Email` ON `Users`"
        assert PostgreSQLDialect().render(operation) == 'DROP INDEX "IX_Users_Email"'
        assert SQLiteDialect().render(operation) == 'DROP INDEX "IX_Users_Email"'
        assert SQLServerDialect().render(operation) == "DROP INDEX [IX_Users_Email] ON [Users]"

    def test_add_foreign_key(self):
        assert PostgreSQLDialect().render(_add_foreign_key()) == (
            'ALTER TABLE "Users" ADD CONSTRAINT "FK_Users_Companies" FOREIGN KEY ("CompanyId") '
            'REFERENCES "Companies" ("Id") ON DELETE CASCADE'
        )

    def test_restrict_maps_to_no_action_on_sqlserver(self):
        sql = SQLServerDialect().render(_add_foreign_key(OnDelete.RESTRICT))
        assert sql.endswith("ON DELETE NO ACTION")
        assert "[FK_Users_Companies]" in sql

        assert MySQLDialect().render(_add_foreign_key(OnDelete.RESTRICT)).endswith("ON DELETE RESTRICT")

    def test_drop_foreign_key(self):
        operation = DropForeignKey(table="Users", name="FK_Users_Companies")

        assert MySQLDialect().render(operation) == "ALTER TABLE `Users` DROP FOREIGN KEY `FK_Users_Companies`"
        assert SQLServerDialect().render(operation) == \
            "ALTER TABLE [Users] DROP CONSTRAINT [FK_Users_Companies]"

    def test_sqlite_cannot_alter_foreign_keys(self):
        dialect = SQLiteDialect()

        assert dialect.render(_add_foreign_key()) is None
        assert dialect.render(DropForeignKey(table="Users", name="FK_Users_Companies")) is None

    def test_apply_skips_inexpressible_operation(self):
        manager = MagicMock()

        assert SQLiteDialect().apply(_add_foreign_key(), manager) is None
        manager.execute_ddl.assert_not_called()


class TestSQLServerForeignKeys:
    """Test SQL Server foreign key idempotence and verification."""

    @pytest.fixture
    def dialect(self):
        return SQLServerDialect(fk_verify_delay=0.05, fk_verify_attempts=3)

    def test_existing_constraint_is_skipped(self, dialect):
        manager = MagicMock()
        manager.execute_query.return_value = [{'cnt': 1}]

        assert dialect.apply(_add_foreign_key(), manager) is None
        manager.execute_ddl.assert_not_called()
        params = manager.execute_query.call_args[0][1]
        assert params == {'name': 'FK_Users_Companies', 'table': 'Users'}

    @patch('schemaforge.database.dialects.sqlserver_dialect.time.sleep')
    def test_constraint_verified_after_delay(self, mock_sleep, dialect):
        manager = MagicMock()
        manager.execute_query.side_effect = [[{'cnt': 0}], [{'cnt': 0}], [{'cnt': 1}]]

        sql = dialect.apply(_add_foreign_key(), manager)

        assert sql.startswith("ALTER TABLE [Users] ADD CONSTRAINT [FK_Users_Companies]")
        manager.execute_ddl.assert_called_once_with(sql)
        assert mock_sleep.call_count == 2
        mock_sleep.assert_called_with(0.05)

    @patch('schemaforge.database.dialects.sqlserver_dialect.time.sleep')
    def test_invisible_constraint_is_logged(self, mock_sleep, dialect, caplog):
        manager = MagicMock()
        manager.execute_query.side_effect = [[{'cnt': 0}]] * 4 + [[{'name': 'FK_Other'}]]

        with caplog.at_level(logging.ERROR, logger='schemaforge.database.dialects.sqlserver_dialect'):
            sql = dialect.apply(_add_foreign_key(), manager)

        assert sql is not None
        assert mock_sleep.call_count == 3
        assert "FK_Other" in caplog.text

    def test_other_operations_use_base_apply(self, dialect):
        manager = MagicMock()

        sql = dialect.apply(DropTable(table="Users"), manager)

        manager.execute_ddl.assert_called_once_with(sql)
        manager.execute_query.assert_not_called()


class TestCatalogSnapshots:
    """Test catalog introspection scoped to the default schema."""

    @pytest.mark.parametrize('dialect, schema', [
        (MySQLDialect(), 'shop'),
        (PostgreSQLDialect(), 'public'),
        (SQLServerDialect(), 'dbo'),
    ])
    def test_queries_scoped_to_default_schema(self, dialect, schema):
        manager = MagicMock()
        manager.execute_query.side_effect = [
            [{'schema_name': schema}],
            [{'table_name': 'Users'}],
            [{'table_name': 'Users', 'column_name': 'Id', 'data_type': 'int'}],
            [{'table_name': 'Users', 'index_name': 'IX_Users_Email'}],
            [{'table_name': 'Users', 'constraint_name': 'FK_Users_Companies'}],
        ]

        snapshot = dialect.load_snapshot(manager)

        catalog_calls = manager.execute_query.call_args_list[1:]
        assert len(catalog_calls) == 4
        assert all(call[0][1] == {'schema': schema} for call in catalog_calls)
        assert all(':schema' in call[0][0] for call in catalog_calls)
        assert snapshot.has_column('Users', 'Id')
        assert snapshot.has_index('Users', 'IX_Users_Email')
        assert snapshot.has_foreign_key('Users', 'FK_Users_Companies')

    def test_sqlite_uses_main_schema(self, sqlite_manager):
        sqlite_manager.execute_ddl('CREATE TABLE "Companies" ("Id" INTEGER PRIMARY KEY)')
        dialect = SQLiteDialect()

        with patch.object(SQLiteDialect, 'get_default_schema_name', return_value='main') as schema_name:
            snapshot = dialect.load_snapshot(sqlite_manager)

        schema_name.assert_called_once_with(sqlite_manager)
        assert snapshot.has_column('Companies', 'Id')


class TestDialectRegistry:
    """Test dialect selection."""

    def test_supported_dialects(self):
        assert get_supported_dialects() == ['mariadb', 'mssql', 'mysql', 'postgresql', 'sqlite']

    def test_get_dialect_with_options(self):
        dialect = get_dialect('mssql', fk_verify_attempts=5)
        assert isinstance(dialect, SQLServerDialect)
        assert dialect.fk_verify_attempts == 5
        assert isinstance(get_dialect('mariadb'), MySQLDialect)

    def test_unknown_dialect(self):
        with pytest.raises(ValueError):
            get_dialect('oracle')

    def test_register_requires_base_dialect(self):
        with pytest.raises(TypeError):
            register_dialect('oracle', object)

    def test_register_dialect(self):
        class CockroachDialect(PostgreSQLDialect):
            name = 'cockroachdb'

        try:
            register_dialect('cockroachdb', CockroachDialect)
            assert isinstance(get_dialect('cockroachdb'), CockroachDialect)
        finally:
            from schemaforge.database.dialects import _DIALECTS
            _DIALECTS.pop('cockroachdb', None)

    def test_base_dialect_is_abstract(self):
        with pytest.raises(NotImplementedError):
            BaseDialect()


class TestTypeMapper:
    """Test abstract type mapping."""

    def test_coarse_type(self):
        assert TypeMapper.coarse_type('VARCHAR(255)') == 'string'
        assert TypeMapper.coarse_type('int4') == 'integer'
        assert TypeMapper.coarse_type('timestamp without time zone') == 'datetime'
        assert TypeMapper.coarse_type('bit') == 'boolean'
        assert TypeMapper.coarse_type('GEOMETRY') == 'geometry'

    def test_string_length(self):
        column = ColumnDef(name="Code", type=ColumnType.STRING)
        assert TypeMapper.map_type(column, 'mssql').length == 255
        assert SQLServerDialect().column_type_sql(column) == "NVARCHAR(255)"

    def test_boolean_per_engine(self):
        column = ColumnDef(name="Active", type=ColumnType.BOOLEAN)
        assert SQLServerDialect().column_type_sql(column) == "BIT"
        assert SQLiteDialect().column_type_sql(column) == "INTEGER"
        assert PostgreSQLDialect().column_type_sql(column) == "BOOLEAN"
