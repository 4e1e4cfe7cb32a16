"""
Centralized constants for the data-access layer.
Avoids magic strings for the column names the repositories discover at runtime.

Usage:
    from shared.config.constants import Columns, Limits, OrderDirection

    if descriptor.has(Columns.DELETED_AT):
        ...
"""

from enum import Enum
from typing import Final


# =============================================================================
# Well-known Columns
# =============================================================================


class Columns:
    """Column names the generic repository reacts to when present."""

    ID: Final[str] = "id"
    CREATED_AT: Final[str] = "created_at"
    UPDATED_AT: Final[str] = "updated_at"
    DELETED_AT: Final[str] = "deleted_at"

    # Stamped server-side on insert; caller values are overridden
    TIMESTAMPS: Final[tuple[str, ...]] = (CREATED_AT, UPDATED_AT)


# =============================================================================
# Validation Limits
# =============================================================================


class Limits:
    """Pagination and search limits."""

    # Pagination defaults (overridable through settings)
    DEFAULT_PAGE_SIZE: Final[int] = 20
    MAX_PAGE_SIZE: Final[int] = 100
    FIRST_PAGE: Final[int] = 1

    # Autocomplete / name search
    DEFAULT_SEARCH_LIMIT: Final[int] = 10
    MAX_SEARCH_TERM_LENGTH: Final[int] = 100


# =============================================================================
# Filtering
# =============================================================================


# A string filter value containing this marker is matched with ILIKE
WILDCARD: Final[str] = "%"

# Schema probed when settings do not say otherwise
DEFAULT_SCHEMA: Final[str] = "public"


# =============================================================================
# Ordering
# =============================================================================


class OrderDirection(str, Enum):
    """ORDER BY direction."""

    ASC = "ASC"
    DESC = "DESC"

    @classmethod
    def parse(cls, value: "str | OrderDirection | None") -> "OrderDirection":
        """Normalize caller input. Anything other than ASC means DESC."""
        if isinstance(value, OrderDirection):
            return value
        if value is not None and str(value).strip().upper() == cls.ASC.value:
            return cls.ASC
        return cls.DESC
