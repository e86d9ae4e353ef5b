"""
tablemap - typed records mapped onto PostgreSQL tables, with async CRUD.

Record types are bound to a table once, either by decorating a pydantic model
with ``@table("name")`` or by calling ``register()`` with explicit columns. A
``Connection`` then creates, reads, updates and deletes records over one
asyncpg connection:

- Schema descriptors: table name, ordered columns, primary key
- Row codec: exact conversion between record attributes and column values
- Statement builder: parameterized INSERT/SELECT/UPDATE/DELETE text
- Connection facade: async CRUD, bulk operations, raw queries and streaming
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from tablemap.codec import decode, encode
from tablemap.config import Settings, get_settings
from tablemap.connection import Connection, connect
from tablemap.domain.schema import (
    Column,
    PrimaryKey,
    SchemaDescriptor,
    SqlField,
    describe,
    register,
    table,
)
from tablemap.domain.types import SqlType
from tablemap.exceptions import (
    ConfigurationError,
    ConnectionError,
    ConstraintError,
    DatabaseError,
    DecodeError,
    EncodeError,
    MappingError,
    NotFoundError,
    QueryError,
    SchemaError,
    TablemapError,
)
from tablemap.statements import Operation, Statement, build
from tablemap.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Schema
    "Column",
    "PrimaryKey",
    "SchemaDescriptor",
    "SqlField",
    "SqlType",
    "describe",
    "register",
    "table",
    # Codec and statements
    "decode",
    "encode",
    "Operation",
    "Statement",
    "build",
    # Connection
    "Connection",
    "connect",
    # Errors
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
    # Logging
    "configure_logging",
    "get_logger",
]
