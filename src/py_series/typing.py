"""
Element type system for Series.

  - Kind is the closed set of element kinds storage and aggregation dispatch on
  - DataType pairs a Kind with the Python type it admits (+ nullable flag)
  - infer_dtype reconciles a heterogeneous value sequence into one DataType
  - can_coerce / convert_value define which values may move between types
"""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN
from enum import Enum
from typing import Any, Callable, Iterable, Optional, Type
from uuid import UUID

from .errors import InvalidArgumentError, InvalidCastError


class Kind(Enum):
    BOOL = "bool"
    CHAR = "char"
    INT32 = "int32"
    INT64 = "int64"
    UINT32 = "uint32"
    UINT64 = "uint64"
    DOUBLE = "double"
    DECIMAL = "decimal"
    STRING = "string"
    DATETIME = "datetime"
    VALUE = "value"    # several unrelated value kinds, no shared ancestor
    OBJECT = "object"


class Char(str):
    """A single character. ``str`` of length 1 that infers as Kind.CHAR."""

    __slots__ = ()

    def __new__(cls, value=""):
        if isinstance(value, int) and not isinstance(value, bool):
            value = chr(value)
        s = super().__new__(cls, value)
        if len(s) != 1:
            raise InvalidArgumentError(f"Char needs exactly one character, got {value!r}")
        return s

    def __repr__(self):
        return f"Char({str.__repr__(self)})"


# ============================================================
# Numeric limits
# ============================================================

INT32_MIN, INT32_MAX = -(2 ** 31), 2 ** 31 - 1
INT64_MIN, INT64_MAX = -(2 ** 63), 2 ** 63 - 1
UINT32_MAX = 2 ** 32 - 1
UINT64_MAX = 2 ** 64 - 1

# Largest magnitude representable with 96-bit decimal precision
DECIMAL_MAX = Decimal(79228162514264337593543950335)

_INT_RANGES = {
    Kind.INT32: (INT32_MIN, INT32_MAX),
    Kind.INT64: (INT64_MIN, INT64_MAX),
    Kind.UINT32: (0, UINT32_MAX),
    Kind.UINT64: (0, UINT64_MAX),
}

_INTEGER_KINDS = frozenset(_INT_RANGES)
_FLOATING_KINDS = frozenset({Kind.DOUBLE, Kind.DECIMAL})

_DEFAULT_PYTYPE = {
    Kind.BOOL: bool,
    Kind.CHAR: Char,
    Kind.INT32: int,
    Kind.INT64: int,
    Kind.UINT32: int,
    Kind.UINT64: int,
    Kind.DOUBLE: float,
    Kind.DECIMAL: Decimal,
    Kind.STRING: str,
    Kind.DATETIME: datetime,
    Kind.VALUE: object,
    Kind.OBJECT: object,
}

_DEFAULT_VALUE = {
    Kind.BOOL: False,
    Kind.CHAR: Char("\0"),
    Kind.INT32: 0,
    Kind.INT64: 0,
    Kind.UINT32: 0,
    Kind.UINT64: 0,
    Kind.DOUBLE: 0.0,
    Kind.DECIMAL: Decimal(0),
    Kind.STRING: "",
    Kind.DATETIME: datetime.min,
    Kind.VALUE: None,
    Kind.OBJECT: None,
}

# Python type -> Kind when a user pins a dtype with a plain type
_PYTYPE_KIND = {
    bool: Kind.BOOL,
    Char: Kind.CHAR,
    int: Kind.INT64,
    float: Kind.DOUBLE,
    Decimal: Kind.DECIMAL,
    str: Kind.STRING,
    datetime: Kind.DATETIME,
}

_VALUE_LIKE = (numbers.Number, Char, date, time, timedelta, Enum, UUID)


@dataclass(frozen=True)
class DataType:
    """
    Describes the element type of a Series column.

    Attributes
    ----------
    kind : Kind
        Closed tag used for storage selection and arithmetic dispatch
    pytype : type
        Python type admitted by the column (the nearest common ancestor for
        OBJECT columns, ``object`` for the generic fallback)
    nullable : bool
        Whether the column held None values when the type was decided

    Examples
    --------
    >>> DataType.of(int)
    <int64>
    >>> infer_dtype([1, None, 3])
    <int32 nullable>
    """

    kind: Kind
    pytype: Optional[Type[Any]] = None
    nullable: bool = False

    def __post_init__(self):
        if self.pytype is None:
            object.__setattr__(self, "pytype", _DEFAULT_PYTYPE[self.kind])

    def __repr__(self):
        name = self.kind.value
        if self.kind is Kind.OBJECT and self.pytype is not object:
            name = f"object[{self.pytype.__name__}]"
        if self.nullable:
            return f"<{name} nullable>"
        return f"<{name}>"

    @classmethod
    def of(cls, dtype: Any) -> "DataType":
        """Normalize a DataType, Kind or Python type into a DataType."""
        if isinstance(dtype, DataType):
            return dtype
        if isinstance(dtype, Kind):
            return cls(dtype)
        if isinstance(dtype, type):
            kind = _PYTYPE_KIND.get(dtype)
            if kind is not None:
                return cls(kind)
            if issubclass(dtype, datetime):
                return cls(Kind.DATETIME, dtype)
            return cls(Kind.OBJECT, dtype)
        raise InvalidArgumentError(f"Not a type: {dtype!r}")

    def same_type(self, other: "DataType") -> bool:
        """Equality ignoring the nullable flag."""
        return self.kind is other.kind and self.pytype is other.pytype

    def with_nullable(self, nullable: bool) -> "DataType":
        if nullable == self.nullable:
            return self
        return DataType(self.kind, self.pytype, nullable)

    @property
    def default(self) -> Any:
        """Value written into a buffer cell whose position is null."""
        return _DEFAULT_VALUE[self.kind]

    @property
    def is_numeric(self) -> bool:
        return is_numeric_kind(self.kind)


def _kind(k) -> Kind:
    if isinstance(k, Kind):
        return k
    return DataType.of(k).kind


def is_integer_kind(k) -> bool:
    return _kind(k) in _INTEGER_KINDS


def is_floating_kind(k) -> bool:
    return _kind(k) in _FLOATING_KINDS


def is_numeric_kind(k) -> bool:
    k = _kind(k)
    return k in _INTEGER_KINDS or k in _FLOATING_KINDS


def int_range(kind: Kind) -> tuple:
    return _INT_RANGES[kind]


# ============================================================
# Inference
# ============================================================

def _is_numeric_value(v: Any) -> bool:
    # bool is an int subclass and enum members may be too; neither counts
    if isinstance(v, (bool, Enum)):
        return False
    return isinstance(v, (int, float, Decimal))


def _is_value_like(v: Any) -> bool:
    return isinstance(v, _VALUE_LIKE)


def _integer_kind_of(v: int) -> Kind:
    if INT32_MIN <= v <= INT32_MAX:
        return Kind.INT32
    if INT64_MIN <= v <= INT64_MAX:
        return Kind.INT64
    if 0 <= v <= UINT64_MAX:
        return Kind.UINT64
    return Kind.DECIMAL


def fits_decimal(v: Any) -> bool:
    """True when v is finite and within decimal precision range."""
    if isinstance(v, float):
        if not math.isfinite(v):
            return False
        return abs(v) <= float(DECIMAL_MAX)
    if isinstance(v, Decimal):
        if not v.is_finite():
            return False
        return abs(v) <= DECIMAL_MAX
    return abs(v) <= DECIMAL_MAX


def _infer_numeric(values: list) -> Kind:
    has_decimal = has_double = has_int64 = has_uint64 = has_negative = False
    for v in values:
        if isinstance(v, Decimal):
            has_decimal = True
        elif isinstance(v, float):
            has_double = True
        else:
            k = _integer_kind_of(v)
            if k is Kind.DECIMAL:
                has_decimal = True
            elif k is Kind.UINT64:
                has_uint64 = True
            elif k is Kind.INT64:
                has_int64 = True
            if v < 0:
                has_negative = True

    if has_decimal:
        result = Kind.DECIMAL
    elif has_double:
        result = Kind.DOUBLE
    elif has_uint64:
        # unsigned 64-bit and negative values share no integer kind
        result = Kind.DECIMAL if has_negative else Kind.UINT64
    elif has_int64:
        result = Kind.INT64
    else:
        result = Kind.INT32

    if result is Kind.DECIMAL and not all(fits_decimal(v) for v in values):
        result = Kind.DOUBLE
    return result


def _common_ancestor(types: Iterable[type]) -> type:
    types = list(types)
    for base in types[0].__mro__:
        if all(issubclass(t, base) for t in types[1:]):
            return base
    return object


def _single_type_dtype(t: type, nullable: bool) -> DataType:
    if t is bool:
        return DataType(Kind.BOOL, nullable=nullable)
    if issubclass(t, Char):
        return DataType(Kind.CHAR, nullable=nullable)
    if issubclass(t, str):
        return DataType(Kind.STRING, nullable=nullable)
    if issubclass(t, datetime):
        return DataType(Kind.DATETIME, nullable=nullable)
    return DataType(Kind.OBJECT, t, nullable)


def infer_dtype(values: Iterable[Any]) -> DataType:
    """
    Infer one representative DataType from a sequence of Python values.

    Parameters
    ----------
    values : Iterable[Any]
        Candidate values; None marks an absent value

    Returns
    -------
    DataType
        Inferred dtype

    Examples
    --------
    >>> infer_dtype([1, 2, 3])
    <int32>
    >>> infer_dtype([1, 2, 3, 4000000000])
    <int64>
    >>> infer_dtype([1, 2.5, Decimal("3")])
    <decimal>
    >>> infer_dtype([1, "abc"])
    <object>
    """
    values = list(values)
    present = [v for v in values if v is not None]
    nullable = len(present) != len(values)

    if not present:
        return DataType(Kind.OBJECT, nullable=nullable)

    if all(_is_numeric_value(v) for v in present):
        return DataType(_infer_numeric(present), nullable=nullable)

    types = {type(v) for v in present}
    if len(types) == 1:
        return _single_type_dtype(types.pop(), nullable)

    # date + datetime widen to datetime
    if all(issubclass(t, date) and not issubclass(t, Char) for t in types) and any(
        issubclass(t, datetime) for t in types
    ):
        return DataType(Kind.DATETIME, nullable=nullable)

    value_like = [_is_value_like(v) for v in present]
    if all(value_like):
        if all(isinstance(v, Char) for v in present):
            return DataType(Kind.CHAR, nullable=nullable)
        return DataType(Kind.VALUE, nullable=nullable)
    if any(value_like):
        return DataType(Kind.OBJECT, nullable=nullable)

    ancestor = _common_ancestor(types)
    if ancestor is object:
        return DataType(Kind.OBJECT, nullable=nullable)
    return _single_type_dtype(ancestor, nullable)


# ============================================================
# Coercion
# ============================================================

_CONVERTERS: dict = {}


def register_converter(src: type, dst: type, fn: Callable[[Any], Any]) -> None:
    """
    Declare a conversion from ``src`` values to ``dst``.

    Registered converters make ``can_coerce(src, dst)`` true and are tried
    first by ``convert_value``.
    """
    _CONVERTERS[(src, dst)] = fn


def _find_converter(src: type, dst: type) -> Optional[Callable[[Any], Any]]:
    for base in src.__mro__:
        fn = _CONVERTERS.get((base, dst))
        if fn is not None:
            return fn
    return None


def _is_enum_type(t: type) -> bool:
    return isinstance(t, type) and issubclass(t, Enum)


def _has_conversion_dunder(src: type, dst: Kind) -> bool:
    if dst in _INTEGER_KINDS:
        return hasattr(src, "__index__") or hasattr(src, "__int__")
    if dst is Kind.DOUBLE or dst is Kind.DECIMAL:
        return hasattr(src, "__float__")
    return False


def can_coerce(src, dst) -> bool:
    """
    Whether values of type ``src`` may be converted to type ``dst``.

    Both arguments accept a DataType, a Kind or a Python type.

    Examples
    --------
    >>> can_coerce(int, float)
    True
    >>> can_coerce(Kind.UINT64, Kind.INT64)
    False
    >>> can_coerce(str, object)
    True
    """
    src = DataType.of(src)
    dst = DataType.of(dst)

    if src.kind is Kind.UINT64 or dst.kind is Kind.UINT64:
        return False
    if src.same_type(dst):
        return True

    if _is_enum_type(src.pytype):
        src = DataType(Kind.INT64)
    if _is_enum_type(dst.pytype):
        dst = DataType(Kind.INT64)
    if src.same_type(dst):
        return True

    if is_numeric_kind(src.kind) and is_numeric_kind(dst.kind):
        return True
    if dst.kind is Kind.OBJECT:
        if dst.pytype is object or issubclass(src.pytype, dst.pytype):
            return True
    if dst.kind is Kind.VALUE and issubclass(src.pytype, _VALUE_LIKE):
        return True

    if _find_converter(src.pytype, dst.pytype) is not None:
        return True
    return _has_conversion_dunder(src.pytype, dst.kind)


def _fail(value: Any, dtype: DataType, reason: str = "") -> InvalidCastError:
    msg = f"Cannot convert {value!r} to {dtype!r}"
    if reason:
        msg += f": {reason}"
    return InvalidCastError(msg)


def _to_bool(value, dtype):
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and not isinstance(value, Char):
        text = value.strip().lower()
        if text in ("true", "false"):
            return text == "true"
        try:
            return int(text) != 0
        except ValueError:
            raise _fail(value, dtype) from None
    if _is_numeric_value(value):
        return value != 0
    raise _fail(value, dtype)


def _to_int(value, dtype):
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, bool):
        result = int(value)
    elif isinstance(value, int):
        result = value
    elif isinstance(value, float):
        if not math.isfinite(value):
            raise _fail(value, dtype, "not finite")
        result = round(value)
    elif isinstance(value, Decimal):
        if not value.is_finite():
            raise _fail(value, dtype, "not finite")
        result = int(value.to_integral_value(rounding=ROUND_HALF_EVEN))
    elif isinstance(value, Char):
        result = ord(value)
    elif isinstance(value, str):
        try:
            result = int(value.strip())
        except ValueError:
            raise _fail(value, dtype) from None
    elif hasattr(type(value), "__index__") or hasattr(type(value), "__int__"):
        result = int(value)
    else:
        raise _fail(value, dtype)

    lo, hi = _INT_RANGES[dtype.kind]
    if not lo <= result <= hi:
        raise _fail(value, dtype, "out of range")
    return result


def _to_double(value, dtype):
    if isinstance(value, (Char, Enum, date, time, timedelta)):
        raise _fail(value, dtype)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            raise _fail(value, dtype) from None
    if isinstance(value, (bool, int, float, Decimal)) or hasattr(type(value), "__float__"):
        try:
            return float(value)
        except OverflowError:
            raise _fail(value, dtype, "out of range") from None
    raise _fail(value, dtype)


def _to_decimal(value, dtype):
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        result = Decimal(int(value))
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        if not math.isfinite(value):
            raise _fail(value, dtype, "not finite")
        # repr keeps the shortest round-tripping digits
        result = Decimal(repr(value))
    elif isinstance(value, str) and not isinstance(value, Char):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise _fail(value, dtype) from None
    elif hasattr(type(value), "__float__") and not isinstance(value, (Enum, Char)):
        return _to_decimal(float(value), dtype)
    else:
        raise _fail(value, dtype)

    if not fits_decimal(result):
        raise _fail(value, dtype, "outside decimal range")
    return result


def _to_char(value, dtype):
    if isinstance(value, Char):
        return value
    if isinstance(value, str):
        if len(value) == 1:
            return Char(value)
        raise _fail(value, dtype, "needs exactly one character")
    if isinstance(value, int) and not isinstance(value, (bool, Enum)):
        if 0 <= value <= 0x10FFFF:
            return Char(value)
        raise _fail(value, dtype, "not a code point")
    raise _fail(value, dtype)


def _to_string(value, dtype):
    if isinstance(value, str):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _to_datetime(value, dtype):
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time())
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError:
            raise _fail(value, dtype) from None
    raise _fail(value, dtype)


def _to_enum(value, enum_cls, dtype):
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        wanted = value.strip().lower()
        for member in enum_cls:
            if member.name.lower() == wanted:
                return member
    try:
        return enum_cls(value)
    except ValueError:
        raise _fail(value, dtype) from None


def _to_value(value, dtype):
    if _is_value_like(value):
        return value
    raise _fail(value, dtype, "not a value type")


def _to_object(value, dtype):
    target = dtype.pytype
    if target is object or isinstance(value, target):
        return value
    if _is_enum_type(target):
        return _to_enum(value, target, dtype)
    try:
        return target(value)
    except Exception as e:
        raise _fail(value, dtype, str(e)) from e


_CONVERT_BY_KIND = {
    Kind.BOOL: _to_bool,
    Kind.CHAR: _to_char,
    Kind.INT32: _to_int,
    Kind.INT64: _to_int,
    Kind.UINT32: _to_int,
    Kind.UINT64: _to_int,
    Kind.DOUBLE: _to_double,
    Kind.DECIMAL: _to_decimal,
    Kind.STRING: _to_string,
    Kind.DATETIME: _to_datetime,
    Kind.VALUE: _to_value,
    Kind.OBJECT: _to_object,
}


def convert_value(value: Any, dtype) -> Any:
    """
    Convert one value to ``dtype``.

    Returns None for None. Raises InvalidCastError when the value cannot be
    represented in the target type.

    Examples
    --------
    >>> convert_value("42", int)
    42
    >>> convert_value(2.5, Kind.INT32)
    2
    >>> convert_value("2024-01-31", datetime)
    datetime.datetime(2024, 1, 31, 0, 0)
    """
    if value is None:
        return None
    dtype = DataType.of(dtype)
    if type(value) is dtype.pytype and conforms(value, dtype):
        return value
    fn = _find_converter(type(value), dtype.pytype)
    if fn is not None:
        try:
            return fn(value)
        except InvalidCastError:
            raise
        except Exception as e:
            raise _fail(value, dtype, str(e)) from e
    return _CONVERT_BY_KIND[dtype.kind](value, dtype)


def conforms(value: Any, dtype: DataType) -> bool:
    """True when value can be stored in a ``dtype`` column without conversion."""
    if value is None:
        return True
    kind = dtype.kind
    if kind is Kind.BOOL:
        return isinstance(value, bool)
    if kind is Kind.CHAR:
        return isinstance(value, Char)
    if kind in _INTEGER_KINDS:
        if not isinstance(value, int) or isinstance(value, (bool, Enum)):
            return False
        lo, hi = _INT_RANGES[kind]
        return lo <= value <= hi
    if kind is Kind.DOUBLE:
        return isinstance(value, float)
    if kind is Kind.DECIMAL:
        return isinstance(value, Decimal) and fits_decimal(value)
    if kind is Kind.STRING:
        return isinstance(value, str)
    if kind is Kind.DATETIME:
        return isinstance(value, datetime)
    if kind is Kind.VALUE:
        return _is_value_like(value)
    return isinstance(value, dtype.pytype)


# Conversions with no dunder protocol behind them
register_converter(str, Char, Char)
register_converter(date, datetime, lambda d: datetime.combine(d, time()))
