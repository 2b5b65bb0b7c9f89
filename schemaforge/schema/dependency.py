"""
Dependency ordering of tables by foreign key.
"""

import logging
from typing import List, Set

from .models import SchemaModel, TableDef

logger = logging.getLogger(__name__)


def _dependencies(table: TableDef, model_tables: Set[str]) -> Set[str]:
    """Tables this table must be created after; self and external targets excluded."""
    return {
        fk.referenced_table for fk in table.foreign_keys
        if fk.referenced_table != table.name and fk.referenced_table in model_tables
    }


def sort_tables(model: SchemaModel) -> List[str]:
    """
    Order table names so every table follows the tables it references.

    Tables without foreign keys seed the order in declaration order. Each
    subsequent pass appends, in declaration order, the tables whose
    references are all ordered. Tables left after ``len(tables)`` passes
    belong to reference cycles and are appended in declaration order.

    Args:
        model: Declared schema

    Returns:
        Table names in creation order, each exactly once
    """
    model_tables = set(model.table_names)
    dependencies = {table.name: _dependencies(table, model_tables) for table in model.tables}

    order: List[str] = [table.name for table in model.tables if not table.foreign_keys]
    ordered = set(order)

    for _ in range(len(model.tables)):
        added = False
        for table in model.tables:
            if table.name in ordered:
                continue
            if dependencies[table.name] <= ordered:
                order.append(table.name)
                ordered.add(table.name)
                added = True
        if not added:
            break

    leftovers = [table.name for table in model.tables if table.name not in ordered]
    if leftovers:
        logger.warning(f"Circular foreign key references between tables: {leftovers}")
        order.extend(leftovers)

    return order


def reverse_order(order: List[str]) -> List[str]:
    """Rollback order: dependents before the tables they reference."""
    return list(reversed(order))
