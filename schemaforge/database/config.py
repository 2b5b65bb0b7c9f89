"""
Database configuration and engine management
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, URL, make_url
from typing import Dict, Any, Optional
import copy
import logging

logger = logging.getLogger(__name__)

# SQLAlchemy drivers used per database type
DRIVERS = {
    'mysql': 'mysql+pymysql',
    'postgresql': 'postgresql+psycopg2',
    'sqlite': 'sqlite',
    'mssql': 'mssql+pyodbc',
}

DEFAULT_PORTS = {
    'mysql': 3306,
    'postgresql': 5432,
    'mssql': 1433,
}

DEFAULT_MSSQL_ODBC_DRIVER = 'ODBC Driver 18 for SQL Server'


class DatabaseConfig:
    """Configuration manager for database connections"""

    @staticmethod
    def build_url(db_type: str, connection_params: Dict[str, Any]) -> URL:
        """
        Build a SQLAlchemy URL from connection parameters

        Args:
            db_type: Database type ('mysql', 'postgresql', 'sqlite', 'mssql')
            connection_params: Database connection parameters

        Returns:
            SQLAlchemy URL
        """
        if db_type not in DRIVERS:
            raise ValueError(f"Unsupported database type: {db_type}")

        if db_type == 'sqlite':
            return URL.create(DRIVERS[db_type], database=connection_params.get('database', ':memory:'))

        query = {}
        if db_type == 'mssql':
            query['driver'] = connection_params.get('odbc_driver', DEFAULT_MSSQL_ODBC_DRIVER)
            if connection_params.get('trust_server_certificate', False):
                query['TrustServerCertificate'] = 'yes'
        if db_type == 'mysql':
            query['charset'] = connection_params.get('charset', 'utf8mb4')

        return URL.create(
            DRIVERS[db_type],
            username=connection_params.get('user'),
            password=connection_params.get('password') or None,
            host=connection_params.get('host', 'localhost'),
            port=connection_params.get('port', DEFAULT_PORTS[db_type]),
            database=connection_params.get('database'),
            query=query,
        )

    @staticmethod
    def get_engine(db_type: str, connection_params: Dict[str, Any]) -> Engine:
        """
        Create SQLAlchemy engine based on database type and parameters

        Args:
            db_type: Database type ('mysql', 'postgresql', 'sqlite', 'mssql')
            connection_params: Database connection parameters

        Returns:
            SQLAlchemy Engine instance
        """
        url = DatabaseConfig.build_url(db_type, connection_params)
        engine_args = copy.deepcopy(connection_params.get('engine_args', {}))
        return DatabaseConfig.get_engine_from_url(url, engine_args)

    @staticmethod
    def get_engine_from_url(url: Any, engine_args: Optional[Dict[str, Any]] = None) -> Engine:
        """
        Create SQLAlchemy engine from a URL

        Args:
            url: SQLAlchemy URL or URL string
            engine_args: Extra create_engine arguments

        Returns:
            SQLAlchemy Engine instance
        """
        url = make_url(url)
        engine_args = dict(engine_args or {})

        # Set default engine arguments based on database type
        engine_args.setdefault('pool_pre_ping', True)
        engine_args.setdefault('echo', False)
        if url.get_backend_name() in ('postgresql', 'mysql', 'mariadb', 'mssql'):
            engine_args.setdefault('pool_size', 5)
            engine_args.setdefault('max_overflow', 10)

        logger.info(f"Creating {url.get_backend_name()} engine: {url.render_as_string(hide_password=True)}")
        return create_engine(url, **engine_args)

    @staticmethod
    def get_default_config(db_type: str, database_path: Optional[str] = None) -> Dict[str, Any]:
        """
        Get default configuration for a database type

        Args:
            db_type: Database type
            database_path: Optional database file path (SQLite) or database name

        Returns:
            Default configuration dictionary
        """
        if db_type == 'sqlite':
            return {
                'type': 'sqlite',
                'connection_params': {
                    'database': database_path or ':memory:',
                    'engine_args': {
                        'pool_pre_ping': True,
                        'echo': False
                    }
                }
            }
        elif db_type in ('mysql', 'postgresql', 'mssql'):
            default_users = {'mysql': 'root', 'postgresql': 'postgres', 'mssql': 'sa'}
            default_databases = {'mysql': 'app', 'postgresql': 'postgres', 'mssql': 'master'}
            return {
                'type': db_type,
                'connection_params': {
                    'user': default_users[db_type],
                    'password': '',
                    'host': 'localhost',
                    'port': DEFAULT_PORTS[db_type],
                    'database': database_path or default_databases[db_type],
                    'engine_args': {
                        'pool_size': 5,
                        'max_overflow': 10,
                        'pool_pre_ping': True,
                        'echo': False
                    }
                }
            }
        else:
            raise ValueError(f"Unsupported database type: {db_type}")
