"""
Tests for database abstraction layer
"""

import pytest
from sqlalchemy import Column, Integer, MetaData, String, Table, select

from schemaforge.database.engine_factory import DatabaseFactory
from schemaforge.database.config import DatabaseConfig
from schemaforge.database.base_manager import DatabaseManager
from schemaforge.database.dialects import SQLiteDialect, SQLServerDialect


class TestDatabaseConfig:
    """Test database configuration"""

    def test_get_engine_sqlite(self):
        """Test SQLite engine creation"""
        config = {
            'database': ':memory:',
            'engine_args': {'echo': False}
        }
        engine = DatabaseConfig.get_engine('sqlite', config)
        assert engine is not None
        assert 'sqlite' in str(engine.url)

    def test_get_engine_invalid_type(self):
        """Test invalid database type"""
        with pytest.raises(ValueError):
            DatabaseConfig.get_engine('invalid_db', {})

    def test_build_url_mssql(self):
        """Test SQL Server URL with ODBC driver"""
        url = DatabaseConfig.build_url('mssql', {
            'host': 'sql.internal',
            'user': 'sa',
            'password': 'secret',
            'database': 'app',
            'trust_server_certificate': True,
        })
        assert url.drivername == 'mssql+pyodbc'
        assert url.port == 1433
        assert url.query['driver'] == 'ODBC Driver 18 for SQL Server'
        assert url.query['TrustServerCertificate'] == 'yes'
        assert 'secret' not in url.render_as_string(hide_password=True)

    def test_build_url_mysql(self):
        """Test MySQL URL defaults"""
        url = DatabaseConfig.build_url('mysql', {'user': 'root', 'database': 'app'})
        assert url.drivername == 'mysql+pymysql'
        assert url.host == 'localhost'
        assert url.port == 3306
        assert url.query['charset'] == 'utf8mb4'

    def test_get_default_config(self):
        """Test default configuration generation"""
        config = DatabaseConfig.get_default_config('sqlite')
        assert config['type'] == 'sqlite'
        assert config['connection_params']['database'] == ':memory:'

        config = DatabaseConfig.get_default_config('postgresql', 'inventory')
        assert config['connection_params']['port'] == 5432
        assert config['connection_params']['database'] == 'inventory'

        with pytest.raises(ValueError):
            DatabaseConfig.get_default_config('oracle')


class TestDatabaseManager:
    """Test database manager functionality"""

    def test_dialect_selected_once(self, sqlite_manager):
        """Test dialect strategy selection"""
        assert sqlite_manager.dialect_name == 'sqlite'
        assert isinstance(sqlite_manager.dialect, SQLiteDialect)
        assert sqlite_manager.dialect is sqlite_manager.dialect

    def test_execute_ddl_and_query(self, sqlite_manager):
        """Test DDL execution and querying"""
        sqlite_manager.execute_ddl('CREATE TABLE "Companies" ("Id" INTEGER PRIMARY KEY, "Name" TEXT)')
        assert sqlite_manager.table_exists('Companies')
        assert 'Companies' in sqlite_manager.get_table_names()

        sqlite_manager.execute_ddl('INSERT INTO "Companies" ("Name") VALUES (:name)', {'name': 'Acme'})
        results = sqlite_manager.execute_query('SELECT "Id", "Name" FROM "Companies" WHERE "Name" = :name',
                                               {'name': 'Acme'})
        assert results == [{'Id': 1, 'Name': 'Acme'}]

    def test_insert_row_returns_primary_key(self, sqlite_manager):
        """Test last insert id retrieval"""
        metadata = MetaData()
        table = Table('notes', metadata,
                      Column('id', Integer, primary_key=True, autoincrement=True),
                      Column('body', String(100)))
        metadata.create_all(sqlite_manager.engine)

        assert sqlite_manager.insert_row(table, {'body': 'first'}) == 1
        assert sqlite_manager.insert_row('notes', {'body': 'second'}) == 2

        rows = sqlite_manager.execute_query(select(table).order_by(table.c.id))
        assert [row['body'] for row in rows] == ['first', 'second']

    def test_execute_dml_rowcount(self, sqlite_manager):
        """Test DML row counts"""
        sqlite_manager.execute_ddl('CREATE TABLE items (id INTEGER PRIMARY KEY, tag TEXT)')
        table = sqlite_manager.reflect_table('items')
        sqlite_manager.insert_row(table, {'tag': 'a'})
        sqlite_manager.insert_row(table, {'tag': 'a'})

        assert sqlite_manager.execute_dml(table.delete().where(table.c.tag == 'a')) == 2

    def test_table_not_exists(self, sqlite_manager):
        """Test missing table"""
        assert not sqlite_manager.table_exists('missing')

    def test_context_manager(self, tmp_path):
        """Test context manager disposes engine"""
        with DatabaseFactory.create_manager('sqlite', {'database': str(tmp_path / 'ctx.db')}) as manager:
            assert isinstance(manager, DatabaseManager)
            manager.execute_ddl('CREATE TABLE t (id INTEGER)')


class TestDatabaseFactory:
    """Test database factory"""

    def test_supported_databases(self):
        """Test supported database list"""
        assert DatabaseFactory.get_supported_databases() == ['mysql', 'postgresql', 'sqlite', 'mssql']

    def test_create_from_url(self):
        """Test creation from URL"""
        manager = DatabaseFactory.create_from_url('sqlite://')
        assert manager.dialect_name == 'sqlite'
        manager.close()

    def test_create_from_config_prefers_url(self, tmp_path):
        """Test URL takes precedence over type"""
        config = {
            'database': {
                'type': 'mysql',
                'url': f"sqlite:///{tmp_path / 'url.db'}",
            },
        }
        manager = DatabaseFactory.create_from_config(config)
        assert manager.dialect_name == 'sqlite'
        manager.close()

    def test_create_from_config_passes_dialect_options(self):
        """Test foreign key verification options reach the dialect"""
        config = {
            'database': {'type': 'sqlite', 'connection_params': {'database': ':memory:'}},
            'migrations': {'path': 'migrations', 'fk_verify_delay': 0.5, 'fk_verify_attempts': 7},
        }
        manager = DatabaseFactory.create_from_config(config)
        assert manager.dialect.fk_verify_delay == 0.5
        assert manager.dialect.fk_verify_attempts == 7
        manager.close()

    def test_create_from_database_section(self):
        """Test bare database section"""
        manager = DatabaseFactory.create_from_config({'type': 'sqlite', 'connection_params': {}})
        assert manager.dialect_name == 'sqlite'
        manager.close()

    def test_create_from_config_requires_type_or_url(self):
        """Test incomplete configuration"""
        with pytest.raises(ValueError):
            DatabaseFactory.create_from_config({'database': {}})

    def test_sqlserver_dialect_options(self):
        """Test dialect options on SQL Server strategy"""
        dialect = SQLServerDialect(fk_verify_delay=0.2, fk_verify_attempts=4)
        assert dialect.fk_verify_delay == 0.2
        assert dialect.fk_verify_attempts == 4
