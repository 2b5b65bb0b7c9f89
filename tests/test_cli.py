"""
Tests for the schemaforge command line interface
"""

import textwrap

import pytest
import yaml

from schemaforge.cli import load_registry, main
from schemaforge.schema import EntityRegistry

MODELS_SOURCE = textwrap.dedent('''
    from schemaforge.schema import EntityRegistry, column, entity


    @entity(fields=[
        column("Id", int, key=True, generated=True),
        column("Title", str, required=True, max_length=200),
    ])
    class Book:
        pass


    registry = EntityRegistry([Book])


    def build_registry():
        return EntityRegistry([Book])
''')


@pytest.fixture
def project(tmp_path, monkeypatch):
    """Config file, models module and paths of a throwaway project."""
    (tmp_path / 'sf_cli_models.py').write_text(MODELS_SOURCE)
    monkeypatch.syspath_prepend(str(tmp_path))

    config_path = tmp_path / 'schemaforge.yaml'
    config_path.write_text(yaml.dump({
        'database': {'type': 'sqlite', 'connection_params': {'database': str(tmp_path / 'cli.db')}},
        'migrations': {'path': str(tmp_path / 'migrations')},
        'logging': {'level': 'WARNING'},
    }))
    return tmp_path, config_path


def _run(config_path, *args):
    return main(['--config', str(config_path), '--models', 'sf_cli_models:registry', *args])


class TestLoadRegistry:
    """Test registry import"""

    def test_attribute(self, project):
        registry = load_registry('sf_cli_models:registry')
        assert isinstance(registry, EntityRegistry)
        assert len(registry) == 1

    def test_factory(self, project):
        assert isinstance(load_registry('sf_cli_models:build_registry'), EntityRegistry)

    def test_bad_import_path(self):
        with pytest.raises(ValueError):
            load_registry('no_attribute')


class TestCommands:
    """Test the command lifecycle"""

    def test_add_update_rollback(self, project, capsys):
        tmp_path, config_path = project

        assert _run(config_path, 'add', 'Init') == 0
        scripts = list((tmp_path / 'migrations').glob('*_Init.py'))
        assert len(scripts) == 1

        assert _run(config_path, 'script') == 0
        assert 'CREATE TABLE "Books"' in capsys.readouterr().out

        assert _run(config_path, 'update') == 0
        assert 'Applied' in capsys.readouterr().out

        assert _run(config_path, 'pending') == 0
        assert 'No pending migrations' in capsys.readouterr().out

        assert _run(config_path, 'list') == 0
        assert _run(config_path, 'status') == 0

        assert _run(config_path, 'rollback', '--steps', '1') == 0
        assert 'Rolled back' in capsys.readouterr().out

        assert _run(config_path, 'remove', 'Init') == 0
        assert _run(config_path, 'remove', 'Init') == 1

    def test_unknown_target_fails(self, project, capsys):
        _, config_path = project
        _run(config_path, 'add', 'Init')

        assert _run(config_path, 'update', '--target', 'Missing') == 1
        assert 'Unknown migration target' in capsys.readouterr().out

    def test_bad_models_path(self, project):
        _, config_path = project
        assert main(['--config', str(config_path), '--models', 'nonsense', 'list']) == 1
