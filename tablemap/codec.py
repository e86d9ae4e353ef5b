"""
Row codec: records to statement parameters and driver rows back to records.

Encoding walks a descriptor's columns in declared order and converts each
attribute with ``to_db``. Decoding matches row column names case-sensitively
against the descriptor, converts each value with ``from_db`` and constructs
the record type from keyword arguments. Columns present in the row but not in
the descriptor are ignored.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from pydantic import ValidationError

from tablemap.domain.schema import Column, SchemaDescriptor
from tablemap.domain.types import from_db, to_db
from tablemap.exceptions import DecodeError, EncodeError


def _encode_value(descriptor: SchemaDescriptor, column: Column, value: Any) -> Any:
    if value is None and not column.nullable and not column.generated:
        raise EncodeError(
            f"{descriptor.type_name}.{column.field}: None is not allowed in "
            f"non-nullable column {column.name}"
        )
    try:
        return to_db(
            value,
            column.sql_type,
            column.length,
            precision=column.precision,
            scale=column.scale,
        )
    except ValueError as exc:
        raise EncodeError(f"{descriptor.type_name}.{column.field}: {exc}") from exc


def encode(
    descriptor: SchemaDescriptor,
    record: Any,
    columns: Optional[Sequence[Column]] = None,
) -> Tuple[Any, ...]:
    """
    Return the parameter values of ``record`` for ``columns`` (default: all).
    """
    if not isinstance(record, descriptor.record_type):
        raise EncodeError(
            f"expected a {descriptor.type_name} record, got {type(record).__name__}"
        )
    selected = descriptor.columns if columns is None else columns
    values = []
    for column in selected:
        try:
            value = getattr(record, column.field)
        except AttributeError as exc:
            raise EncodeError(
                f"{descriptor.type_name} record has no attribute '{column.field}'"
            ) from exc
        values.append(_encode_value(descriptor, column, value))
    return tuple(values)


def encode_for_create(descriptor: SchemaDescriptor, record: Any) -> Tuple[Any, ...]:
    """Parameter values for INSERT; server-generated columns are left out."""
    return encode(descriptor, record, descriptor.insert_columns)


def encode_key(descriptor: SchemaDescriptor, key: Any, operation: str = "read") -> Tuple[Any, ...]:
    """Normalize a caller key and convert each part for its key column."""
    values = descriptor.normalize_key(key, operation)
    return tuple(
        _encode_value(descriptor, column, value)
        for column, value in zip(descriptor.primary_key, values)
    )


def decode(descriptor: SchemaDescriptor, row: Mapping[str, Any]) -> Any:
    """
    Build a record from one driver row.

    Raises
    ------
    DecodeError
        If a non-optional column is missing, a value cannot be converted
        exactly, or the record type rejects the values.
    """
    available = set(row.keys())
    values = {}
    for column in descriptor.columns:
        if column.name not in available:
            if column.nullable:
                values[column.field] = None
                continue
            raise DecodeError(
                f"{descriptor.type_name}: row has no column '{column.name}' "
                f"for field '{column.field}'"
            )
        raw = row[column.name]
        if raw is None and not column.nullable:
            raise DecodeError(
                f"{descriptor.type_name}.{column.field}: NULL in non-nullable column {column.name}"
            )
        try:
            values[column.field] = from_db(
                raw,
                column.sql_type,
                column.length,
                precision=column.precision,
                scale=column.scale,
            )
        except ValueError as exc:
            raise DecodeError(f"{descriptor.type_name}.{column.field}: {exc}") from exc

    try:
        return descriptor.record_type(**values)
    except (ValidationError, TypeError, ValueError) as exc:
        raise DecodeError(f"{descriptor.type_name} rejected row values: {exc}") from exc


def decode_many(descriptor: SchemaDescriptor, rows: Iterable[Mapping[str, Any]]) -> List[Any]:
    return [decode(descriptor, row) for row in rows]


__all__ = ["encode", "encode_for_create", "encode_key", "decode", "decode_many"]
