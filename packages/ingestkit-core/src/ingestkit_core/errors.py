"""Shared error codes and base error model for the ingestkit framework.

``CoreErrorCode`` contains the codes shared between ingestkit packages.
``BaseIngestError`` is a Pydantic model that each package extends with its
own location field (``part_id`` for MIME).
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel

FATAL_PREFIX = "E_"
WARNING_PREFIX = "W_"


class CoreErrorCode(str, Enum):
    """Error codes shared across all ingestkit packages.

    Each package maintains its own *complete* ``ErrorCode`` enum that includes
    both the shared codes here and package-specific codes.  Values equal their
    names so they are stable strings suitable for metrics and alerting.
    """

    E_PARSE_EMPTY = "E_PARSE_EMPTY"


def is_fatal_code(code: str) -> bool:
    """Return ``True`` if *code* names an error rather than a warning."""
    return str(getattr(code, "value", code)).startswith(FATAL_PREFIX)


class BaseIngestError(BaseModel):
    """Base structured error with code, message, and context.

    Each package extends this model with a location field specific to its
    document type.  The ``code`` field is typed as ``str`` so it accepts any
    package-specific ``ErrorCode`` enum member.
    """

    code: str
    message: str
    stage: str | None = None
    recoverable: bool = False

    @property
    def is_fatal(self) -> bool:
        return is_fatal_code(self.code)
