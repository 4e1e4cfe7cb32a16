"""
Utilities module: Exceptions.
"""

from shared.utils.exceptions import (
    DatabaseError,
    RepositoryError,
    SchemaCapabilityError,
)

__all__ = [
    "DatabaseError",
    "RepositoryError",
    "SchemaCapabilityError",
]
