"""
Semantic column types and exact value conversion.

Every column carries a ``SqlType``. Values crossing the boundary between a
record and a statement parameter (``to_db``) or between a driver row and a
record (``from_db``) are converted exactly: a conversion that would truncate,
round or reinterpret a value raises ``ValueError`` and the caller turns it
into an ``EncodeError`` or ``DecodeError``.
"""

from __future__ import annotations

import json
import math
import struct
import uuid
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class SqlType(str, Enum):
    """PostgreSQL column types understood by the codec."""

    BOOL = "BOOL"
    SMALLINT = "SMALLINT"
    INT = "INT"
    BIGINT = "BIGINT"
    REAL = "REAL"
    DOUBLE = "DOUBLE PRECISION"
    NUMERIC = "NUMERIC"
    VARCHAR = "VARCHAR"
    TEXT = "TEXT"
    BYTEA = "BYTEA"
    DATE = "DATE"
    TIME = "TIME"
    TIMESTAMP = "TIMESTAMP"
    TIMESTAMPTZ = "TIMESTAMPTZ"
    UUID = "UUID"
    JSON = "JSON"
    JSONB = "JSONB"

    @property
    def keyable(self) -> bool:
        """Whether the type supports equality comparison in a WHERE clause."""
        return self not in (SqlType.JSON, SqlType.JSONB)


INTEGER_BOUNDS: Dict[SqlType, Tuple[int, int]] = {
    SqlType.SMALLINT: (-(2**15), 2**15 - 1),
    SqlType.INT: (-(2**31), 2**31 - 1),
    SqlType.BIGINT: (-(2**63), 2**63 - 1),
}

_INTEGER_TYPES = frozenset(INTEGER_BOUNDS)
_FLOAT_TYPES = frozenset({SqlType.REAL, SqlType.DOUBLE})
_TEXT_TYPES = frozenset({SqlType.VARCHAR, SqlType.TEXT})
_JSON_TYPES = frozenset({SqlType.JSON, SqlType.JSONB})

# Checked in order; bool before int and datetime before date because of subclassing.
_PYTHON_TYPES: Tuple[Tuple[type, SqlType], ...] = (
    (bool, SqlType.BOOL),
    (int, SqlType.BIGINT),
    (float, SqlType.DOUBLE),
    (Decimal, SqlType.NUMERIC),
    (str, SqlType.VARCHAR),
    (bytes, SqlType.BYTEA),
    (datetime, SqlType.TIMESTAMP),
    (date, SqlType.DATE),
    (time, SqlType.TIME),
    (uuid.UUID, SqlType.UUID),
    (dict, SqlType.JSONB),
    (list, SqlType.JSONB),
)

# Largest integer a double represents exactly.
_FLOAT_EXACT_INT = 2**53


def sql_type_for(python_type: Any) -> Optional[SqlType]:
    """
    Return the default SqlType for a Python type, or None if unsupported.
    """
    if not isinstance(python_type, type):
        return None
    for candidate, sql_type in _PYTHON_TYPES:
        if python_type is candidate:
            return sql_type
    for candidate, sql_type in _PYTHON_TYPES:
        if issubclass(python_type, candidate):
            return sql_type
    return None


def _describe(value: Any) -> str:
    return f"{type(value).__name__} value {value!r}"


def _to_int(value: Any, sql_type: SqlType) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{_describe(value)} is not an integer")
    if isinstance(value, int):
        result = value
    elif isinstance(value, (Decimal, float)):
        if not math.isfinite(value):
            raise ValueError(f"{_describe(value)} is not finite")
        if value != int(value):
            raise ValueError(f"{_describe(value)} would be truncated to an integer")
        result = int(value)
    else:
        raise ValueError(f"{_describe(value)} is not an integer")
    low, high = INTEGER_BOUNDS[sql_type]
    if not low <= result <= high:
        raise ValueError(f"{result} is out of range for {sql_type.value}")
    return result


def _fits_real(value: float) -> bool:
    """Whether ``value`` survives a round trip through a 4-byte float."""
    if math.isnan(value):
        return True
    try:
        (narrowed,) = struct.unpack("f", struct.pack("f", value))
    except (OverflowError, struct.error):
        return False
    return narrowed == value


def _to_float(value: Any, sql_type: SqlType) -> float:
    if isinstance(value, bool):
        raise ValueError(f"{_describe(value)} is not a number")
    if isinstance(value, float):
        result = value
    elif isinstance(value, int):
        if abs(value) > _FLOAT_EXACT_INT:
            raise ValueError(f"{value} cannot be represented exactly as a float")
        result = float(value)
    elif isinstance(value, Decimal):
        result = float(value)
        if Decimal(result) != value and not (value.is_nan() and math.isnan(result)):
            raise ValueError(f"{_describe(value)} cannot be represented exactly as a float")
    else:
        raise ValueError(f"{_describe(value)} is not a number")
    if sql_type is SqlType.REAL and not _fits_real(result):
        raise ValueError(f"{_describe(value)} cannot be represented exactly as {sql_type.value}")
    return result


def _check_digits(value: Decimal, precision: int, scale: int) -> None:
    if not value.is_finite():
        raise ValueError(f"{_describe(value)} is not finite")
    if not value:
        return
    _, digits, exponent = value.as_tuple()
    digits = list(digits)
    # Trailing fractional zeros carry no information: 1.50 fits NUMERIC(p, 1).
    while exponent < 0 and digits[-1] == 0:
        digits.pop()
        exponent += 1
    fraction_digits = max(0, -exponent)
    integer_digits = max(0, len(digits) + exponent)
    if fraction_digits > scale:
        raise ValueError(
            f"{_describe(value)} has more than {scale} decimal place(s) and would be rounded"
        )
    if integer_digits > precision - scale:
        raise ValueError(f"{_describe(value)} is out of range for NUMERIC({precision}, {scale})")


def _to_decimal(value: Any, precision: Optional[int], scale: Optional[int]) -> Decimal:
    if isinstance(value, bool):
        raise ValueError(f"{_describe(value)} is not a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    else:
        raise ValueError(f"{_describe(value)} is not an exact decimal")
    if precision is not None:
        _check_digits(result, precision, scale or 0)
    return result


def _to_text(value: Any, length: Optional[int]) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{_describe(value)} is not text")
    if length is not None and len(value) > length:
        raise ValueError(f"text of length {len(value)} exceeds the column limit of {length}")
    return value


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    raise ValueError(f"{_describe(value)} is not binary data")


def _to_uuid(value: Any) -> uuid.UUID:
    # asyncpg hands back its own UUID subclass.
    if isinstance(value, uuid.UUID):
        return value if type(value) is uuid.UUID else uuid.UUID(int=value.int)
    raise ValueError(f"{_describe(value)} is not a UUID")


def _to_temporal(value: Any, sql_type: SqlType) -> Any:
    if sql_type in (SqlType.TIMESTAMP, SqlType.TIMESTAMPTZ):
        if isinstance(value, datetime):
            return value
        raise ValueError(f"{_describe(value)} is not a timestamp")
    if sql_type is SqlType.DATE:
        if isinstance(value, date) and not isinstance(value, datetime):
            return value
        raise ValueError(f"{_describe(value)} is not a date")
    if isinstance(value, time):
        return value
    raise ValueError(f"{_describe(value)} is not a time of day")


def _convert(
    value: Any,
    sql_type: SqlType,
    length: Optional[int],
    precision: Optional[int] = None,
    scale: Optional[int] = None,
) -> Any:
    if sql_type is SqlType.BOOL:
        if isinstance(value, bool):
            return value
        raise ValueError(f"{_describe(value)} is not a boolean")
    if sql_type in _INTEGER_TYPES:
        return _to_int(value, sql_type)
    if sql_type in _FLOAT_TYPES:
        return _to_float(value, sql_type)
    if sql_type is SqlType.NUMERIC:
        return _to_decimal(value, precision, scale)
    if sql_type in _TEXT_TYPES:
        return _to_text(value, length)
    if sql_type is SqlType.BYTEA:
        return _to_bytes(value)
    if sql_type is SqlType.UUID:
        return _to_uuid(value)
    return _to_temporal(value, sql_type)


def to_db(
    value: Any,
    sql_type: SqlType,
    length: Optional[int] = None,
    *,
    precision: Optional[int] = None,
    scale: Optional[int] = None,
) -> Any:
    """
    Convert a record value into a statement parameter for a column of ``sql_type``.

    ``precision`` and ``scale`` bound NUMERIC values the way NUMERIC(p, s) does,
    except that a value needing rounding is rejected.

    JSON values are serialised to text, which is what asyncpg expects for
    json/jsonb parameters without a custom codec.
    """
    if value is None:
        return None
    if sql_type in _JSON_TYPES:
        try:
            return json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"{_describe(value)} is not JSON serialisable: {exc}") from exc
    return _convert(value, sql_type, length, precision, scale)


def from_db(
    value: Any,
    sql_type: SqlType,
    length: Optional[int] = None,
    *,
    precision: Optional[int] = None,
    scale: Optional[int] = None,
) -> Any:
    """
    Convert a driver value from a column of ``sql_type`` into a record value.
    """
    if value is None:
        return None
    if sql_type in _JSON_TYPES:
        if isinstance(value, str):
            try:
                return json.loads(value)
            except ValueError as exc:
                raise ValueError(f"column holds invalid JSON: {exc}") from exc
        if isinstance(value, (dict, list, int, float, bool)):
            return value
        raise ValueError(f"{_describe(value)} is not JSON")
    return _convert(value, sql_type, length, precision, scale)


__all__ = ["SqlType", "INTEGER_BOUNDS", "sql_type_for", "to_db", "from_db"]
