"""
Schema descriptors: the static binding of a record type to a table.

A record type is registered once, either explicitly with ``register()`` and a
list of ``Column`` definitions, or by decorating a pydantic model with
``@table("name")`` and annotating its fields with ``SqlField`` markers:

    from typing import Annotated

    from pydantic import BaseModel
    from tablemap import PrimaryKey, table


    @table("fruits")
    class Fruit(BaseModel):
        id: Annotated[int, PrimaryKey] = 0
        name: str

The resulting ``SchemaDescriptor`` is immutable and cached for the lifetime of
the process; every lookup for the same type returns the same object.
"""

from __future__ import annotations

import threading
import types
import typing
from collections.abc import Mapping
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Callable, Dict, Iterable, Optional, Tuple, TypeVar, Union

from tablemap.domain.types import SqlType, sql_type_for
from tablemap.exceptions import ConfigurationError, SchemaError
from tablemap.utils.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Column:
    """
    One mapped field.

    Attributes
    ----------
    field : str
        Attribute name on the record type.
    sql_type : SqlType
        Semantic column type; drives conversion and parameter casts.
    name : str
        Column name in the table. Defaults to ``field``.
    primary_key : bool
        Whether the column is part of the identity used by by-key operations.
    generated : bool
        Whether the server assigns the value (serial keys, defaults). Generated
        columns are left out of INSERT and read back through RETURNING.
    nullable : bool
        Whether NULL is an acceptable value.
    length : int | None
        Maximum text length; longer values are rejected, never truncated.
    precision, scale : int | None
        NUMERIC(precision, scale) bounds. Values needing more digits are
        rejected rather than rounded. ``scale`` defaults to 0 once a precision
        is given.
    """

    field: str
    sql_type: SqlType
    name: str = ""
    primary_key: bool = False
    generated: bool = False
    nullable: bool = False
    length: Optional[int] = None
    precision: Optional[int] = None
    scale: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.field:
            raise ConfigurationError("column field name must not be empty")
        try:
            object.__setattr__(self, "sql_type", SqlType(self.sql_type))
        except ValueError as exc:
            raise ConfigurationError(
                f"field '{self.field}' has unsupported SQL type {self.sql_type!r}"
            ) from exc
        if not self.name:
            object.__setattr__(self, "name", self.field)
        if self.length is not None and self.length <= 0:
            raise ConfigurationError(f"field '{self.field}' has a non-positive length")
        if self.precision is not None or self.scale is not None:
            self._check_numeric_bounds()

    def _check_numeric_bounds(self) -> None:
        if self.sql_type is not SqlType.NUMERIC:
            raise ConfigurationError(
                f"field '{self.field}': precision and scale only apply to NUMERIC columns"
            )
        if self.precision is None:
            raise ConfigurationError(f"field '{self.field}' declares a scale without a precision")
        if self.precision <= 0:
            raise ConfigurationError(f"field '{self.field}' has a non-positive precision")
        if self.scale is None:
            object.__setattr__(self, "scale", 0)
        elif not 0 <= self.scale <= self.precision:
            raise ConfigurationError(
                f"field '{self.field}': scale must be between 0 and the precision"
            )


@dataclass(frozen=True)
class SqlField:
    """
    Column options attached to a pydantic field through ``typing.Annotated``.
    """

    primary_key: bool = False
    generated: bool = False
    name: Optional[str] = None
    sql_type: Optional[SqlType] = None
    length: Optional[int] = None
    precision: Optional[int] = None
    scale: Optional[int] = None


# Server-assigned single-column identity (serial / identity column).
PrimaryKey = SqlField(primary_key=True, generated=True)


@dataclass(frozen=True)
class SchemaDescriptor:
    """
    Immutable table layout of one record type.
    """

    record_type: type
    table: str
    columns: Tuple[Column, ...] = field(default_factory=tuple)

    @cached_property
    def primary_key(self) -> Tuple[Column, ...]:
        return tuple(c for c in self.columns if c.primary_key)

    @cached_property
    def insert_columns(self) -> Tuple[Column, ...]:
        """Columns named by INSERT: everything the server does not generate."""
        return tuple(c for c in self.columns if not c.generated)

    @cached_property
    def value_columns(self) -> Tuple[Column, ...]:
        """Columns set by UPDATE: everything outside the primary key."""
        return tuple(c for c in self.columns if not c.primary_key)

    @cached_property
    def column_names(self) -> Tuple[str, ...]:
        return tuple(c.name for c in self.columns)

    @property
    def type_name(self) -> str:
        return self.record_type.__name__

    def require_key(self, operation: str) -> Tuple[Column, ...]:
        """Return the key columns or fail for a type declared without one."""
        if not self.primary_key:
            raise SchemaError(
                f"{operation} needs a primary key but {self.type_name} "
                f"(table {self.table}) declares none"
            )
        return self.primary_key

    def normalize_key(self, key: Any, operation: str = "read") -> Tuple[Any, ...]:
        """
        Turn a caller-supplied key into a tuple in declared key order.

        A single-column key may be given as a bare value. Composite keys are
        given as a tuple in declared order or as a mapping of field names.
        """
        key_columns = self.require_key(operation)
        if isinstance(key, Mapping):
            missing = [c.field for c in key_columns if c.field not in key]
            if missing:
                raise SchemaError(
                    f"{operation} on {self.table}: key is missing {', '.join(missing)}"
                )
            return tuple(key[c.field] for c in key_columns)
        if not isinstance(key, tuple):
            if len(key_columns) == 1:
                return (key,)
            raise SchemaError(
                f"{operation} on {self.table}: composite key needs a tuple of "
                f"{len(key_columns)} values"
            )
        if len(key) != len(key_columns):
            raise SchemaError(
                f"{operation} on {self.table}: expected {len(key_columns)} key "
                f"value(s), got {len(key)}"
            )
        return key

    def key_of(self, record: Any, operation: str = "read") -> Tuple[Any, ...]:
        """Extract the key of a record as a tuple."""
        return tuple(getattr(record, c.field) for c in self.require_key(operation))


_registry: Dict[type, SchemaDescriptor] = {}
_registry_lock = threading.Lock()


def _build_descriptor(
    record_type: type, table_name: str, columns: Iterable[Column]
) -> SchemaDescriptor:
    if not isinstance(record_type, type):
        raise ConfigurationError(f"record type must be a class, got {record_type!r}")
    name = record_type.__name__
    if not isinstance(table_name, str) or not table_name.strip():
        raise ConfigurationError(f"{name} must name its table")
    columns = tuple(columns)
    if not columns:
        raise ConfigurationError(f"{name} declares no fields")

    seen_fields: set = set()
    seen_names: set = set()
    for column in columns:
        if column.field in seen_fields:
            raise ConfigurationError(f"{name} declares field '{column.field}' twice")
        if column.name in seen_names:
            raise ConfigurationError(f"{name} maps two fields to column '{column.name}'")
        seen_fields.add(column.field)
        seen_names.add(column.name)
        if column.primary_key:
            if not column.sql_type.keyable:
                raise ConfigurationError(
                    f"{name}.{column.field}: {column.sql_type.value} cannot be a primary key"
                )
            if column.nullable:
                raise ConfigurationError(f"{name}.{column.field}: primary key cannot be nullable")

    return SchemaDescriptor(record_type=record_type, table=table_name.strip(), columns=columns)


def register(record_type: type, table: str, columns: Iterable[Column]) -> SchemaDescriptor:
    """
    Register a record type with an explicit column list.

    Registering the same type again with an identical layout returns the
    descriptor already cached; a different table or layout is a
    ``ConfigurationError``.
    """
    descriptor = _build_descriptor(record_type, table, columns)
    with _registry_lock:
        existing = _registry.get(record_type)
        if existing is not None:
            if existing.table != descriptor.table:
                raise ConfigurationError(
                    f"{descriptor.type_name} is already mapped to table "
                    f"'{existing.table}', not '{descriptor.table}'"
                )
            if existing.columns != descriptor.columns:
                raise ConfigurationError(
                    f"{descriptor.type_name} is already registered with different columns"
                )
            return existing
        _registry[record_type] = descriptor

    log.debug(
        "Registered record type",
        extra={
            "record_type": descriptor.type_name,
            "table": descriptor.table,
            "columns": list(descriptor.column_names),
        },
    )
    return descriptor


def describe(record_type: type) -> SchemaDescriptor:
    """Return the descriptor of a registered record type."""
    with _registry_lock:
        descriptor = _registry.get(record_type)
    if descriptor is None:
        name = getattr(record_type, "__name__", repr(record_type))
        raise ConfigurationError(
            f"{name} is not registered; decorate it with @table(...) or call register()"
        )
    return descriptor


def _unwrap_optional(annotation: Any) -> Tuple[Any, bool]:
    """Split ``Optional[X]`` / ``X | None`` into ``(X, True)``."""
    origin = typing.get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = typing.get_args(annotation)
        non_null = [arg for arg in args if arg is not type(None)]
        if len(non_null) != 1:
            return None, False
        inner, _ = _unwrap_optional(non_null[0])
        return inner, len(non_null) < len(args)
    if origin is not None:
        # dict[str, Any], list[int], ...
        return origin, False
    return annotation, False


def columns_from_model(record_type: type) -> list[Column]:
    """
    Derive columns from a pydantic model's fields and their ``SqlField`` markers.
    """
    model_fields = getattr(record_type, "model_fields", None)
    if model_fields is None:
        raise ConfigurationError(
            f"{record_type.__name__} is not a pydantic model; use register() with explicit columns"
        )

    columns = []
    for field_name, info in model_fields.items():
        marker = next((m for m in info.metadata if isinstance(m, SqlField)), SqlField())
        python_type, nullable = _unwrap_optional(info.annotation)
        sql_type = marker.sql_type or sql_type_for(python_type)
        if sql_type is None:
            raise ConfigurationError(
                f"{record_type.__name__}.{field_name}: type {info.annotation!r} "
                f"cannot be stored in a column"
            )
        columns.append(
            Column(
                field=field_name,
                sql_type=sql_type,
                name=marker.name or field_name,
                primary_key=marker.primary_key,
                generated=marker.generated,
                nullable=nullable,
                length=marker.length,
                precision=marker.precision,
                scale=marker.scale,
            )
        )
    return columns


def table(name: str) -> Callable[[type[T]], type[T]]:
    """
    Class decorator registering a pydantic model under table ``name``.
    """

    def decorator(record_type: type[T]) -> type[T]:
        register(record_type, name, columns_from_model(record_type))
        return record_type

    return decorator


__all__ = [
    "Column",
    "SqlField",
    "PrimaryKey",
    "SchemaDescriptor",
    "register",
    "describe",
    "columns_from_model",
    "table",
]
