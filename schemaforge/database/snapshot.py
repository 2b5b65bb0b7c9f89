"""
Live schema snapshot loader.
"""

import logging
from typing import Optional

from ..schema.models import LiveSnapshot
from .base_manager import DatabaseManager

logger = logging.getLogger(__name__)


class SnapshotLoader:
    """
    Reads the existing database structure through the connection's dialect.

    Introspection problems never propagate: the loader logs them and returns
    an empty snapshot, so the planner treats every table as new.
    """

    def __init__(self, manager: Optional[DatabaseManager]):
        self.manager = manager

    def load(self) -> LiveSnapshot:
        """
        Load the live snapshot.

        Returns:
            LiveSnapshot, empty when introspection failed
        """
        if self.manager is None:
            logger.warning("No database connection, using an empty schema snapshot")
            return LiveSnapshot.empty()

        dialect = self.manager.dialect
        try:
            snapshot = dialect.load_snapshot(self.manager)
        except NotImplementedError:
            logger.warning(f"Dialect '{dialect.name}' cannot read its catalog, using an empty schema snapshot")
            return LiveSnapshot.empty()
        except Exception as e:
            logger.warning(f"Schema introspection failed, using an empty schema snapshot: {e}")
            logger.debug("Introspection failure details", exc_info=True)
            return LiveSnapshot.empty()

        logger.info(f"Loaded schema snapshot: {len(snapshot.tables)} tables")
        return snapshot
