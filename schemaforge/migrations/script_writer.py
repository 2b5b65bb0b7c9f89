"""
Migration script writer.

Serializes operation lists as Python source so a generated migration reads
like a hand-written one.
"""

import logging
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional, Sequence, Set

from pydantic import BaseModel

from ..schema import models as schema_models
from . import operations as operation_types
from .migration import Migration

logger = logging.getLogger(__name__)

INDENT = '    '
MAX_INLINE_WIDTH = 88

SCAFFOLD_UP = '''\
        # return [
        #     AddColumn(table='Users', column=ColumnDef(name='Email', max_length=255)),
        # ]
        return []'''

SCAFFOLD_DOWN = '''\
        # return [
        #     DropColumn(table='Users', column='Email'),
        # ]
        return []'''


class ScriptWriter:
    """Renders migration scripts from operation lists."""

    def __init__(self):
        self._used: Set[str] = set()

    # Value rendering

    def _is_default(self, model: BaseModel, field_name: str, value: Any) -> bool:
        field = type(model).model_fields[field_name]
        if field.default_factory is not None:
            return value == field.default_factory()
        if field.is_required():
            return False
        return value == field.default

    def render_value(self, value: Any, depth: int = 0) -> str:
        """
        Render a value as a Python expression.

        Args:
            value: Operation, schema model, enum, tuple or literal
            depth: Current indentation depth

        Returns:
            Python source text
        """
        if isinstance(value, BaseModel):
            return self._render_model(value, depth)
        if isinstance(value, Enum):
            self._used.add(type(value).__name__)
            return f"{type(value).__name__}.{value.name}"
        if isinstance(value, (tuple, list)):
            return self._render_sequence(value, depth)
        if isinstance(value, Path):
            return repr(str(value))
        return repr(value)

    def _render_model(self, model: BaseModel, depth: int) -> str:
        class_name = type(model).__name__
        self._used.add(class_name)
        arguments = []
        for field_name in type(model).model_fields:
            if field_name == 'kind':
                continue
            value = getattr(model, field_name)
            if self._is_default(model, field_name, value):
                continue
            arguments.append((field_name, value))

        inline = f"{class_name}(" + ', '.join(
            f"{name}={self.render_value(value, depth)}" for name, value in arguments
        ) + ")"
        if len(inline) + len(INDENT) * depth <= MAX_INLINE_WIDTH and '\n' not in inline:
            return inline

        inner = INDENT * (depth + 1)
        lines = [f"{inner}{name}={self.render_value(value, depth + 1)}," for name, value in arguments]
        return f"{class_name}(\n" + '\n'.join(lines) + f"\n{INDENT * depth})"

    def _render_sequence(self, values: Sequence[Any], depth: int) -> str:
        if not values:
            return '()'
        rendered = [self.render_value(value, depth + 1) for value in values]
        inline = '(' + ', '.join(rendered) + (',)' if len(rendered) == 1 else ')')
        if len(inline) + len(INDENT) * depth <= MAX_INLINE_WIDTH and '\n' not in inline:
            return inline
        inner = INDENT * (depth + 1)
        return "(\n" + '\n'.join(f"{inner}{item}," for item in rendered) + f"\n{INDENT * depth})"

    def render_operations(self, operations: Sequence[Any]) -> str:
        """Body of an up()/down() method returning the operations."""
        if not operations:
            return f"{INDENT * 2}return []"
        depth = 3
        lines = [f"{INDENT * 2}return ["]
        for operation in operations:
            lines.append(f"{INDENT * depth}{self.render_value(operation, depth)},")
        lines.append(f"{INDENT * 2}]")
        return '\n'.join(lines)

    # Script rendering

    def _imports(self) -> List[str]:
        operation_names = sorted(name for name in self._used if hasattr(operation_types, name)
                                 and name not in dir(schema_models))
        model_names = sorted(name for name in self._used if hasattr(schema_models, name))
        lines = [f"from schemaforge.migrations import {Migration.__name__}"]
        if operation_names:
            lines.append(f"from schemaforge.migrations.operations import {', '.join(operation_names)}")
        if model_names:
            lines.append(f"from schemaforge.schema.models import {', '.join(model_names)}")
        return lines

    def render_script(self, timestamp: str, name: str,
                      up: Optional[Sequence[Any]] = None,
                      down: Optional[Sequence[Any]] = None,
                      created: Optional[datetime] = None) -> str:
        """
        Render a complete migration script.

        Args:
            timestamp: 14-digit timestamp
            name: Sanitized migration name
            up: Forward operations (None renders a scaffold)
            down: Inverse operations
            created: Creation time shown in the docstring

        Returns:
            Python source of the script
        """
        self._used = set()
        scaffold = up is None
        if scaffold:
            self._used.update({'AddColumn', 'DropColumn', 'ColumnDef'})
            up_body, down_body = SCAFFOLD_UP, SCAFFOLD_DOWN
        else:
            up_body = self.render_operations(up)
            down_body = self.render_operations(down or [])

        created = created or datetime.now()
        header = [
            '"""',
            f"Migration: {name}",
            f"Created: {created.isoformat(sep=' ', timespec='seconds')}",
            '"""',
            '',
        ]
        if scaffold:
            imports = [f"from schemaforge.migrations import {Migration.__name__}",
                       "from schemaforge.migrations.operations import AddColumn, DropColumn  # noqa: F401",
                       "from schemaforge.schema.models import ColumnDef  # noqa: F401"]
        else:
            imports = self._imports()

        body = [
            '',
            '',
            f"class Migration_{timestamp}_{name}({Migration.__name__}):",
            '',
            f"{INDENT}def up(self):",
            up_body,
            '',
            f"{INDENT}def down(self):",
            down_body,
            '',
        ]
        return '\n'.join(header + imports + body)

    def write(self, directory: Path, timestamp: str, name: str,
              up: Optional[Sequence[Any]] = None,
              down: Optional[Sequence[Any]] = None) -> Path:
        """
        Write a migration script file.

        Args:
            directory: Migrations directory (created when missing)
            timestamp: 14-digit timestamp
            name: Sanitized migration name
            up: Forward operations (None writes a scaffold)
            down: Inverse operations

        Returns:
            Path of the written file

        Raises:
            FileExistsError: If the file already exists
        """
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{timestamp}_{name}.py"
        if path.exists():
            raise FileExistsError(f"Migration file already exists: {path}")
        path.write_text(self.render_script(timestamp, name, up, down), encoding='utf-8')
        logger.info(f"Wrote migration script {path}")
        return path
