"""
Error taxonomy for tablemap.

Configuration problems are raised while a record type is being declared and
before any network I/O. Mapping problems are raised per value while encoding
records or decoding rows. Database problems are raised per operation and carry
the table and operation kind they originated from; the driver error is always
chained as ``__cause__``.
"""

from __future__ import annotations

import builtins
from typing import Optional


class TablemapError(Exception):
    """Base class for all tablemap errors."""


class ConfigurationError(TablemapError):
    """Malformed or missing schema declaration."""


class SchemaError(ConfigurationError):
    """Operation not supported by a record type's schema (e.g. no primary key)."""


class MappingError(TablemapError):
    """A value could not be converted between Python and the database."""


class DecodeError(MappingError):
    """A row could not be converted into a record."""


class EncodeError(MappingError):
    """A record value could not be converted into a statement parameter."""


class DatabaseError(TablemapError):
    """
    Failure reported while executing an operation.

    Attributes
    ----------
    table : str | None
        Table the operation targeted, when known.
    operation : str | None
        Operation kind (``create``, ``read``, ...), when known.
    """

    def __init__(
        self,
        message: str,
        *,
        table: Optional[str] = None,
        operation: Optional[str] = None,
    ) -> None:
        self.table = table
        self.operation = operation
        if operation and table:
            message = f"{operation} on {table} failed: {message}"
        elif operation:
            message = f"{operation} failed: {message}"
        super().__init__(message)


class ConnectionError(DatabaseError, builtins.ConnectionError):  # noqa: A001
    """Transport failure, malformed connection URI or unreachable server."""


class ConstraintError(DatabaseError):
    """The database rejected the statement (uniqueness, foreign key, not null, ...)."""


class NotFoundError(DatabaseError):
    """An update or delete matched zero rows."""


class QueryError(DatabaseError):
    """Any other database-side failure (syntax, missing table, permissions)."""


__all__ = [
    "TablemapError",
    "ConfigurationError",
    "SchemaError",
    "MappingError",
    "DecodeError",
    "EncodeError",
    "DatabaseError",
    "ConnectionError",
    "ConstraintError",
    "NotFoundError",
    "QueryError",
]
