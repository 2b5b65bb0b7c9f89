"""
Type mapping utilities for different database engines
"""

from typing import Dict, Type
from sqlalchemy import types
from sqlalchemy.dialects import mssql
import logging

from ...schema.models import ColumnDef, ColumnType

logger = logging.getLogger(__name__)


class TypeMapper:
    """Utility for mapping abstract column types to database types and back"""

    # Live catalog type names mapped to abstract column types
    COMMON_TYPE_MAPPING = {
        # Integer types
        'integer': ColumnType.INTEGER,
        'int': ColumnType.INTEGER,
        'int4': ColumnType.INTEGER,
        'int8': ColumnType.INTEGER,
        'bigint': ColumnType.INTEGER,
        'smallint': ColumnType.INTEGER,
        'mediumint': ColumnType.INTEGER,
        'serial': ColumnType.INTEGER,

        # Float types
        'float': ColumnType.FLOAT,
        'double': ColumnType.FLOAT,
        'double precision': ColumnType.FLOAT,
        'real': ColumnType.FLOAT,
        'decimal': ColumnType.FLOAT,
        'numeric': ColumnType.FLOAT,

        # String types
        'varchar': ColumnType.STRING,
        'nvarchar': ColumnType.STRING,
        'character varying': ColumnType.STRING,
        'text': ColumnType.STRING,
        'char': ColumnType.STRING,
        'nchar': ColumnType.STRING,

        # Date/Time types
        'date': ColumnType.DATETIME,
        'timestamp': ColumnType.DATETIME,
        'timestamp without time zone': ColumnType.DATETIME,
        'datetime': ColumnType.DATETIME,
        'datetime2': ColumnType.DATETIME,

        # Boolean types
        'boolean': ColumnType.BOOLEAN,
        'bool': ColumnType.BOOLEAN,
        'bit': ColumnType.BOOLEAN,
        'tinyint': ColumnType.BOOLEAN,
    }

    # Database-specific type preferences
    DB_TYPE_PREFERENCES: Dict[str, Dict[ColumnType, Type[types.TypeEngine]]] = {
        'mysql': {
            ColumnType.STRING: types.String,
            ColumnType.INTEGER: types.Integer,
            ColumnType.FLOAT: types.Float,
            ColumnType.BOOLEAN: types.Boolean,
            ColumnType.DATETIME: types.DateTime,
        },
        'postgresql': {
            ColumnType.STRING: types.String,
            ColumnType.INTEGER: types.Integer,
            ColumnType.FLOAT: types.REAL,
            ColumnType.BOOLEAN: types.Boolean,
            ColumnType.DATETIME: types.DateTime,
        },
        'sqlite': {
            ColumnType.STRING: types.Text,
            ColumnType.INTEGER: types.Integer,
            ColumnType.FLOAT: types.REAL,
            ColumnType.BOOLEAN: types.Integer,  # SQLite has no native boolean
            ColumnType.DATETIME: types.Text,
        },
        'mssql': {
            ColumnType.STRING: mssql.NVARCHAR,
            ColumnType.INTEGER: types.Integer,
            ColumnType.FLOAT: types.Float,
            ColumnType.BOOLEAN: mssql.BIT,
            ColumnType.DATETIME: mssql.DATETIME2,
        },
    }
    DB_TYPE_PREFERENCES['mariadb'] = DB_TYPE_PREFERENCES['mysql']

    @classmethod
    def map_type(cls, column: ColumnDef, target_db: str) -> types.TypeEngine:
        """
        Map an abstract column to a SQLAlchemy type instance

        Args:
            column: Declared column
            target_db: Target database dialect name

        Returns:
            SQLAlchemy type instance
        """
        preferences = cls.DB_TYPE_PREFERENCES.get(target_db)
        if preferences is None:
            logger.warning(f"No type preferences for '{target_db}', using generic types")
            preferences = cls.DB_TYPE_PREFERENCES['mysql']

        type_class = preferences[column.type]
        if column.type == ColumnType.STRING and type_class is not types.Text:
            return type_class(length=column.length)
        return type_class()

    @classmethod
    def coarse_type(cls, type_str: str) -> str:
        """
        Reduce a live catalog type name to an abstract column type name

        Args:
            type_str: Type as reported by the database, e.g. 'VARCHAR(255)'

        Returns:
            Abstract type value ('integer', 'string', ...), or the lowered
            input when unknown
        """
        type_str_lower = str(type_str).lower().strip()

        # Remove size specifications like VARCHAR(255)
        if '(' in type_str_lower:
            type_str_lower = type_str_lower.split('(')[0].strip()

        if type_str_lower in cls.COMMON_TYPE_MAPPING:
            return cls.COMMON_TYPE_MAPPING[type_str_lower].value

        logger.debug(f"Unknown type '{type_str}', kept as reported")
        return type_str_lower
