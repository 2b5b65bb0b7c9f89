"""
Database engine factory for creating database managers with a dialect strategy
"""

from typing import Dict, Any, List, Optional
import logging

from .config import DatabaseConfig, DRIVERS
from .base_manager import DatabaseManager
from .dialects import get_supported_dialects

logger = logging.getLogger(__name__)


class DatabaseFactory:
    """Factory for creating database managers"""

    @staticmethod
    def create_manager(db_type: str, connection_params: Dict[str, Any],
                       dialect_options: Optional[Dict[str, Any]] = None) -> DatabaseManager:
        """
        Create database manager for a database type

        Args:
            db_type: Database type ('mysql', 'postgresql', 'sqlite', 'mssql')
            connection_params: Database connection parameters
            dialect_options: Options for the dialect strategy

        Returns:
            DatabaseManager instance
        """
        engine = DatabaseConfig.get_engine(db_type, connection_params)
        manager = DatabaseManager(engine, dialect_options)
        logger.info(f"Created {manager.dialect_name} database manager")
        return manager

    @staticmethod
    def create_from_url(url: str, engine_args: Optional[Dict[str, Any]] = None,
                        dialect_options: Optional[Dict[str, Any]] = None) -> DatabaseManager:
        """
        Create database manager from a SQLAlchemy URL

        Args:
            url: SQLAlchemy database URL
            engine_args: Extra create_engine arguments
            dialect_options: Options for the dialect strategy

        Returns:
            DatabaseManager instance
        """
        engine = DatabaseConfig.get_engine_from_url(url, engine_args)
        manager = DatabaseManager(engine, dialect_options)
        logger.info(f"Created {manager.dialect_name} database manager")
        return manager

    @staticmethod
    def create_from_config(config: Dict[str, Any]) -> DatabaseManager:
        """
        Create database manager from configuration dictionary

        Args:
            config: Full configuration with 'database' and optional 'migrations'
                sections, or a bare 'database' section

        Returns:
            DatabaseManager instance
        """
        database = config.get('database', config)
        migrations = config.get('migrations', {})
        dialect_options = {
            key: migrations[key] for key in ('fk_verify_delay', 'fk_verify_attempts') if key in migrations
        }

        if database.get('url'):
            return DatabaseFactory.create_from_url(
                database['url'], database.get('engine_args'), dialect_options
            )

        db_type = database.get('type')
        if not db_type:
            raise ValueError("Configuration must include 'database.type' or 'database.url'")

        connection_params = dict(database.get('connection_params', {}))
        if database.get('engine_args') and 'engine_args' not in connection_params:
            connection_params['engine_args'] = database['engine_args']
        return DatabaseFactory.create_manager(db_type, connection_params, dialect_options)

    @staticmethod
    def get_supported_databases() -> List[str]:
        """
        Get list of supported database types

        Returns:
            List of database types with a configured driver and a dialect
        """
        dialects = set(get_supported_dialects())
        return [db_type for db_type in DRIVERS if db_type in dialects]
