"""
Statement builder: parameterized PostgreSQL text for each operation kind.

All values travel as positional parameters (``$1``, ``$2``, ...) with an
explicit cast taken from the column's SqlType; identifiers are always
double-quoted so reserved words such as ``desc`` or ``fetch`` are valid column
names. Parameter order always follows the descriptor's declared column order.

SQL text for the single-record operations depends only on the descriptor and
is cached per descriptor.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Any, Dict, List, Optional, Sequence, Tuple

from tablemap.codec import encode, encode_for_create, encode_key
from tablemap.domain.schema import Column, SchemaDescriptor
from tablemap.exceptions import SchemaError


class Operation(str, Enum):
    CREATE = "create"
    READ = "read"
    READ_ALL = "read_all"
    UPDATE = "update"
    DELETE = "delete"
    CREATE_MANY = "create_many"
    UPDATE_MANY = "update_many"
    DELETE_MANY = "delete_many"
    QUERY = "query"
    EXECUTE = "execute"


@dataclass(frozen=True)
class Statement:
    """SQL text plus its bound parameters, ready for the driver."""

    sql: str
    params: Tuple[Any, ...] = ()
    operation: Operation = Operation.QUERY
    table: Optional[str] = None


def quote_identifier(identifier: str) -> str:
    """Safely quote a PostgreSQL identifier."""
    return '"' + identifier.replace('"', '""') + '"'


def quote_table(table: str) -> str:
    """Quote a possibly schema-qualified table name (``public.fruits``)."""
    return ".".join(quote_identifier(part) for part in table.split("."))


def _placeholder(index: int, column: Column) -> str:
    return f"${index}::{column.sql_type.value}"


def _column_list(columns: Sequence[Column], prefix: str = "") -> str:
    return ", ".join(prefix + quote_identifier(c.name) for c in columns)


def _tuple_placeholders(columns: Sequence[Column], start: int) -> str:
    return ", ".join(_placeholder(start + i, c) for i, c in enumerate(columns))


def _values_rows(columns: Sequence[Column], count: int, start: int = 1) -> str:
    width = len(columns)
    return ", ".join(
        f"({_tuple_placeholders(columns, start + row * width)})" for row in range(count)
    )


def _key_filter(key_columns: Sequence[Column], start: int) -> str:
    return " AND ".join(
        f"{quote_identifier(c.name)} = {_placeholder(start + i, c)}"
        for i, c in enumerate(key_columns)
    )


def _require_operands(operands: Sequence[Any], operation: Operation) -> None:
    if not operands:
        raise ValueError(f"{operation.value} needs at least one operand")


@lru_cache(maxsize=None)
def _insert_sql(descriptor: SchemaDescriptor) -> str:
    table = quote_table(descriptor.table)
    returning = _column_list(descriptor.columns)
    columns = descriptor.insert_columns
    if not columns:
        return f"INSERT INTO {table} DEFAULT VALUES RETURNING {returning}"
    return (
        f"INSERT INTO {table} ({_column_list(columns)}) "
        f"VALUES ({_tuple_placeholders(columns, 1)}) RETURNING {returning}"
    )


@lru_cache(maxsize=None)
def _select_by_key_sql(descriptor: SchemaDescriptor) -> str:
    key_columns = descriptor.require_key(Operation.READ.value)
    return (
        f"SELECT {_column_list(descriptor.columns)} FROM {quote_table(descriptor.table)} "
        f"WHERE {_key_filter(key_columns, 1)}"
    )


@lru_cache(maxsize=None)
def _select_all_sql(descriptor: SchemaDescriptor) -> str:
    sql = f"SELECT {_column_list(descriptor.columns)} FROM {quote_table(descriptor.table)}"
    if descriptor.primary_key:
        sql += f" ORDER BY {_column_list(descriptor.primary_key)}"
    return sql


def _require_value_columns(descriptor: SchemaDescriptor, operation: Operation) -> Tuple[Column, ...]:
    if not descriptor.value_columns:
        raise SchemaError(
            f"{operation.value} on {descriptor.table}: every column of "
            f"{descriptor.type_name} is part of the primary key, nothing to set"
        )
    return descriptor.value_columns


@lru_cache(maxsize=None)
def _update_sql(descriptor: SchemaDescriptor) -> str:
    key_columns = descriptor.require_key(Operation.UPDATE.value)
    value_columns = _require_value_columns(descriptor, Operation.UPDATE)
    assignments = ", ".join(
        f"{quote_identifier(c.name)} = {_placeholder(i + 1, c)}"
        for i, c in enumerate(value_columns)
    )
    return (
        f"UPDATE {quote_table(descriptor.table)} SET {assignments} "
        f"WHERE {_key_filter(key_columns, len(value_columns) + 1)} "
        f"RETURNING {_column_list(descriptor.columns)}"
    )


@lru_cache(maxsize=None)
def _delete_sql(descriptor: SchemaDescriptor) -> str:
    key_columns = descriptor.require_key(Operation.DELETE.value)
    return (
        f"DELETE FROM {quote_table(descriptor.table)} WHERE {_key_filter(key_columns, 1)} "
        f"RETURNING {_column_list(key_columns)}"
    )


def build_create(descriptor: SchemaDescriptor, record: Any) -> Statement:
    return Statement(
        sql=_insert_sql(descriptor),
        params=encode_for_create(descriptor, record),
        operation=Operation.CREATE,
        table=descriptor.table,
    )


def build_read(descriptor: SchemaDescriptor, key: Any) -> Statement:
    sql = _select_by_key_sql(descriptor)
    return Statement(
        sql=sql,
        params=encode_key(descriptor, key, Operation.READ.value),
        operation=Operation.READ,
        table=descriptor.table,
    )


def build_read_all(descriptor: SchemaDescriptor) -> Statement:
    return Statement(
        sql=_select_all_sql(descriptor), operation=Operation.READ_ALL, table=descriptor.table
    )


def build_update(descriptor: SchemaDescriptor, record: Any) -> Statement:
    sql = _update_sql(descriptor)
    params = encode(descriptor, record, descriptor.value_columns) + encode(
        descriptor, record, descriptor.primary_key
    )
    return Statement(sql=sql, params=params, operation=Operation.UPDATE, table=descriptor.table)


def build_delete(descriptor: SchemaDescriptor, key: Any) -> Statement:
    sql = _delete_sql(descriptor)
    return Statement(
        sql=sql,
        params=encode_key(descriptor, key, Operation.DELETE.value),
        operation=Operation.DELETE,
        table=descriptor.table,
    )


def build_create_many(descriptor: SchemaDescriptor, records: Sequence[Any]) -> Statement:
    """Multi-row INSERT returning every inserted row."""
    _require_operands(records, Operation.CREATE_MANY)
    columns = descriptor.insert_columns
    if not columns:
        raise SchemaError(
            f"create_many on {descriptor.table}: every column is server-generated; "
            f"use create() per record"
        )
    params: List[Any] = []
    for record in records:
        params.extend(encode_for_create(descriptor, record))
    sql = (
        f"INSERT INTO {quote_table(descriptor.table)} ({_column_list(columns)}) "
        f"VALUES {_values_rows(columns, len(records))} "
        f"RETURNING {_column_list(descriptor.columns)}"
    )
    return Statement(
        sql=sql, params=tuple(params), operation=Operation.CREATE_MANY, table=descriptor.table
    )


def build_update_many(descriptor: SchemaDescriptor, records: Sequence[Any]) -> Statement:
    """
    Update several records with one ``UPDATE ... FROM (VALUES ...)`` statement.

    Each VALUES row carries every column in declared order; rows are matched
    on the key columns.
    """
    _require_operands(records, Operation.UPDATE_MANY)
    key_columns = descriptor.require_key(Operation.UPDATE_MANY.value)
    value_columns = _require_value_columns(descriptor, Operation.UPDATE_MANY)
    params: List[Any] = []
    for record in records:
        params.extend(encode(descriptor, record))
    assignments = ", ".join(
        f"{quote_identifier(c.name)} = {quote_identifier('source')}.{quote_identifier(c.name)}"
        for c in value_columns
    )
    matches = " AND ".join(
        f"{quote_identifier('target')}.{quote_identifier(c.name)} = "
        f"{quote_identifier('source')}.{quote_identifier(c.name)}"
        for c in key_columns
    )
    sql = (
        f"UPDATE {quote_table(descriptor.table)} AS {quote_identifier('target')} "
        f"SET {assignments} "
        f"FROM (VALUES {_values_rows(descriptor.columns, len(records))}) "
        f"AS {quote_identifier('source')} ({_column_list(descriptor.columns)}) "
        f"WHERE {matches} "
        f"RETURNING {_column_list(descriptor.columns, prefix=quote_identifier('target') + '.')}"
    )
    return Statement(
        sql=sql, params=tuple(params), operation=Operation.UPDATE_MANY, table=descriptor.table
    )


def build_delete_many(descriptor: SchemaDescriptor, keys: Sequence[Any]) -> Statement:
    _require_operands(keys, Operation.DELETE_MANY)
    key_columns = descriptor.require_key(Operation.DELETE_MANY.value)
    params: List[Any] = []
    for key in keys:
        params.extend(encode_key(descriptor, key, Operation.DELETE_MANY.value))
    if len(key_columns) == 1:
        target = quote_identifier(key_columns[0].name)
        candidates = _tuple_placeholders(key_columns * len(keys), 1)
    else:
        target = f"({_column_list(key_columns)})"
        candidates = _values_rows(key_columns, len(keys))
    sql = (
        f"DELETE FROM {quote_table(descriptor.table)} WHERE {target} IN ({candidates}) "
        f"RETURNING {_column_list(key_columns)}"
    )
    return Statement(
        sql=sql, params=tuple(params), operation=Operation.DELETE_MANY, table=descriptor.table
    )


_BUILDERS = {
    Operation.CREATE: build_create,
    Operation.READ: build_read,
    Operation.UPDATE: build_update,
    Operation.DELETE: build_delete,
    Operation.CREATE_MANY: build_create_many,
    Operation.UPDATE_MANY: build_update_many,
    Operation.DELETE_MANY: build_delete_many,
}


def build(operation: Operation | str, descriptor: SchemaDescriptor, operand: Any = None) -> Statement:
    """
    Build the statement for ``operation``.

    ``operand`` is a record for create/update, a key for read/delete, a
    sequence of those for the bulk variants, and ignored for read_all.
    """
    operation = Operation(operation)
    if operation is Operation.READ_ALL:
        return build_read_all(descriptor)
    try:
        builder = _BUILDERS[operation]
    except KeyError:
        raise ValueError(f"{operation.value} statements are not built from a schema") from None
    return builder(descriptor, operand)


def sql_templates(descriptor: SchemaDescriptor) -> Dict[str, str]:
    """
    SQL text of each single-record operation the descriptor supports.
    """
    templates: Dict[str, str] = {}
    for operation, render in (
        (Operation.CREATE, _insert_sql),
        (Operation.READ, _select_by_key_sql),
        (Operation.READ_ALL, _select_all_sql),
        (Operation.UPDATE, _update_sql),
        (Operation.DELETE, _delete_sql),
    ):
        try:
            templates[operation.value] = render(descriptor)
        except SchemaError:
            continue
    return templates


__all__ = [
    "Operation",
    "Statement",
    "quote_identifier",
    "quote_table",
    "build",
    "build_create",
    "build_read",
    "build_read_all",
    "build_update",
    "build_delete",
    "build_create_many",
    "build_update_many",
    "build_delete_many",
    "sql_templates",
]
