"""
Database utilities
"""

from .type_mapping import TypeMapper

__all__ = [
    'TypeMapper',
]
