"""
Domain package for tablemap.

Exports schema descriptors and the semantic column types they are built from.
Keep this package free of I/O; it only describes how records map to tables.
"""

from tablemap.domain.schema import (
    Column,
    PrimaryKey,
    SchemaDescriptor,
    SqlField,
    columns_from_model,
    describe,
    register,
    table,
)
from tablemap.domain.types import SqlType, from_db, sql_type_for, to_db

__all__ = [
    "Column",
    "PrimaryKey",
    "SchemaDescriptor",
    "SqlField",
    "SqlType",
    "columns_from_model",
    "describe",
    "from_db",
    "register",
    "sql_type_for",
    "table",
    "to_db",
]
