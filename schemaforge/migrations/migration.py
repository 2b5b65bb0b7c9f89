"""
Migration scripts and ledger records.

A migration script is a Python module named ``<timestamp>_<Name>.py`` that
defines one subclass of :class:`Migration`. Its ``up()`` and ``down()``
methods return the operations to run, in order.
"""

import importlib.util
import inspect
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from ..exceptions import MigrationLoadError
from .operations import Operation, validate_operations

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = '%Y%m%d%H%M%S'
SCRIPT_NAME_PATTERN = re.compile(r'^(\d{14})_(\w+)$')


class Migration:
    """
    Base class of migration scripts.

    Subclasses override :meth:`up` and :meth:`down`. Both return a sequence
    of operations; the order returned is the order executed.
    """

    timestamp: str = ''
    name: str = ''

    def up(self) -> Sequence[Operation]:
        raise NotImplementedError(f"{self.__class__.__name__} does not define up()")

    def down(self) -> Sequence[Operation]:
        return []

    def up_operations(self) -> Tuple[Operation, ...]:
        """Validated forward operations."""
        return validate_operations(self.up())

    def down_operations(self) -> Tuple[Operation, ...]:
        """Validated inverse operations."""
        return validate_operations(self.down())

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(timestamp='{self.timestamp}', name='{self.name}')"


class MigrationRecord(BaseModel):
    """One row of the migrations ledger table."""

    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    timestamp: str = Field(..., pattern=r'^\d{14}$')
    name: str = Field(..., min_length=1)
    applied_at: Optional[datetime] = None

    @property
    def key(self) -> str:
        return f"{self.timestamp}_{self.name}"


class MigrationScript(BaseModel):
    """A migration script file on disk."""

    model_config = ConfigDict(frozen=True)

    timestamp: str
    name: str
    path: Path

    @property
    def key(self) -> str:
        return f"{self.timestamp}_{self.name}"

    @classmethod
    def from_path(cls, path: Path) -> Optional['MigrationScript']:
        """
        Parse a script file name.

        Args:
            path: Candidate script path

        Returns:
            MigrationScript, or None when the name is not ``<timestamp>_<Name>.py``
        """
        match = SCRIPT_NAME_PATTERN.match(path.stem)
        if path.suffix != '.py' or not match:
            return None
        return cls(timestamp=match.group(1), name=match.group(2), path=path)

    def load(self) -> Migration:
        """
        Import the script and instantiate its Migration subclass.

        Raises:
            MigrationLoadError: If the file cannot be imported or defines no migration
        """
        module_name = f"schemaforge_migration_{self.key}"
        spec = importlib.util.spec_from_file_location(module_name, self.path)
        if not spec or not spec.loader:
            raise MigrationLoadError(f"Cannot load migration module: {self.path}")

        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            raise MigrationLoadError(f"Failed to load migration {self.key}: {e}") from e

        candidates: List[type] = [
            obj for _, obj in inspect.getmembers(module, inspect.isclass)
            if issubclass(obj, Migration) and obj is not Migration and obj.__module__ == module_name
        ]
        if not candidates:
            raise MigrationLoadError(f"Migration {self.key} defines no Migration subclass")
        if len(candidates) > 1:
            logger.warning(f"Migration {self.key} defines {len(candidates)} Migration subclasses, "
                           f"using {candidates[0].__name__}")

        migration = candidates[0]()
        migration.timestamp = self.timestamp
        migration.name = self.name
        return migration


def new_timestamp(now: Optional[datetime] = None) -> str:
    """14-digit migration timestamp."""
    return (now or datetime.now()).strftime(TIMESTAMP_FORMAT)
