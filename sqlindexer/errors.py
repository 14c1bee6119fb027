"""
Error taxonomy for a migration run.

Every failure the pipeline can observe is one of the classes below. Each class
carries an `ErrorCategory` and a `fatal` flag; the coordinator uses the flag to
decide between recording a per-document failure and aborting the whole run.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorCategory(str, Enum):
    CONNECTION = "connection"
    QUERY = "query"
    DECODE = "decode"
    SERIALIZATION = "serialization"
    INDEX_REJECTION = "index_rejection"
    TRANSPORT = "transport"
    INTERNAL = "internal"


class MigrationError(Exception):
    """Base class for all pipeline errors."""

    category: ErrorCategory
    fatal: bool = True

    def __init__(self, message: str, document_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.document_id = document_id


class ConnectionFailure(MigrationError):
    """The source database or the index service cannot be reached."""

    category = ErrorCategory.CONNECTION


class QueryError(MigrationError):
    """The source rejected the read query."""

    category = ErrorCategory.QUERY


class DecodeError(MigrationError):
    """A source row cannot be mapped onto a Record."""

    category = ErrorCategory.DECODE


class SerializationError(MigrationError):
    """A Record cannot be rendered as an index document."""

    category = ErrorCategory.SERIALIZATION
    fatal = False


class IndexRejection(MigrationError):
    """The index service acknowledged the request but refused the document."""

    category = ErrorCategory.INDEX_REJECTION
    fatal = False

    def __init__(
        self,
        message: str,
        document_id: Optional[str] = None,
        status: Optional[int] = None,
    ) -> None:
        super().__init__(message, document_id=document_id)
        self.status = status


class TransportError(MigrationError):
    """The index service stopped answering mid-run."""

    category = ErrorCategory.TRANSPORT


class WorkerCrash(MigrationError):
    """A worker died on an exception outside the taxonomy above."""

    category = ErrorCategory.INTERNAL


class QueueClosedError(RuntimeError):
    """Raised when a producer pushes into a closed work queue."""


__all__ = [
    "ConnectionFailure",
    "DecodeError",
    "ErrorCategory",
    "IndexRejection",
    "MigrationError",
    "QueryError",
    "QueueClosedError",
    "SerializationError",
    "TransportError",
    "WorkerCrash",
]
