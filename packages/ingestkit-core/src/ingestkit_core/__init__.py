"""ingestkit-core -- Shared primitives for the ingestkit framework.

Re-exports the shared error taxonomy.
"""

from ingestkit_core.errors import (
    FATAL_PREFIX,
    WARNING_PREFIX,
    BaseIngestError,
    CoreErrorCode,
    is_fatal_code,
)

__all__ = [
    # Errors
    "CoreErrorCode",
    "BaseIngestError",
    "is_fatal_code",
    # Constants
    "FATAL_PREFIX",
    "WARNING_PREFIX",
]
