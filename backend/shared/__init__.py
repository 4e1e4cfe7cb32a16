"""
Shared module for common utilities used by the freight data-access layer.

STRUCTURE:
- shared.infrastructure: Database
  - db.py: SQLAlchemy engine, sessions, safe_commit()

- shared.config: Configuration
  - settings.py: Environment config (Pydantic)
  - logging.py: Structured logging
  - constants.py: Column names, limits, enums

- shared.utils: Utilities
  - exceptions.py: Repository exceptions with auto-logging

IMPORT EXAMPLES:
    from shared.infrastructure.db import get_db, safe_commit
    from shared.config.settings import settings
    from shared.config.constants import Columns, OrderDirection
    from shared.utils.exceptions import RepositoryError, SchemaCapabilityError
"""
