"""
Shared fixtures: a Company/User entity model and SQLite-backed managers.
"""

import logging

import pytest

from schemaforge.database.engine_factory import DatabaseFactory
from schemaforge.migrations.manager import MigrationManager
from schemaforge.schema import (
    EntityRegistry, ModelAnalyzer, audit_fields, collection, column, entity, index, reference
)


@entity(
    fields=[
        column("Id", int, key=True, generated=True),
        column("Name", str, required=True, max_length=100),
        collection("Users", "User"),
    ],
    indexes=[index("Name", unique=True)],
    audit=audit_fields(deleted_at=False),
)
class Company:
    pass


@entity(
    fields=[
        column("Id", int, key=True, generated=True),
        column("UserName", str, required=True, max_length=50),
        column("CompanyId", int, required=True, foreign_key="Company"),
        column("ManagerId", int, foreign_key="User", on_delete="NO ACTION"),
        reference("Company", "Company"),
    ],
)
class User:
    pass


@entity(
    table="Users",
    fields=[
        column("Id", int, key=True, generated=True),
        column("UserName", str, required=True, max_length=50),
        column("CompanyId", int, required=True, foreign_key="Company"),
        column("ManagerId", int, foreign_key="User", on_delete="NO ACTION"),
        column("Email", str, max_length=255, index=True),
        reference("Company", "Company"),
    ],
)
class UserWithEmail:
    pass


def build_registry(with_email: bool = False) -> EntityRegistry:
    """Company and User registered under their logical names."""
    user = UserWithEmail if with_email else User
    return EntityRegistry([(Company, "Company"), (user, "User")])


@pytest.fixture(autouse=True)
def reset_schemaforge_logger():
    """Undo setup_logging() so caplog sees schemaforge records."""
    yield
    logger = logging.getLogger('schemaforge')
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def registry():
    return build_registry()


@pytest.fixture
def registry_with_email():
    return build_registry(with_email=True)


@pytest.fixture
def schema_model(registry):
    return ModelAnalyzer().analyze(registry)


@pytest.fixture
def sqlite_manager(tmp_path):
    """File-backed SQLite database manager."""
    manager = DatabaseFactory.create_manager('sqlite', {'database': str(tmp_path / 'test.db')})
    yield manager
    manager.close()


@pytest.fixture
def migrations_dir(tmp_path):
    return tmp_path / 'migrations'


@pytest.fixture
def migration_manager(sqlite_manager, migrations_dir, registry):
    return MigrationManager(sqlite_manager, migrations_dir, registry=registry)
