"""
Column storage backends for Series data.

Pure Python implementation using array.array for fixed-width kinds and
plain lists for the rest, each paired with a NullBitMap. A null position
always holds the kind's default in its buffer cell.
"""

from __future__ import annotations

from array import array
from contextlib import contextmanager
from copy import deepcopy
from datetime import datetime, timedelta
from typing import Any, Iterable, Iterator

from .bitmap import NullBitMap
from .errors import (
    IndexOutOfRangeError,
    InvalidOperationError,
    TypeMismatchError,
    UnsupportedOperationError,
)
from .log import get_logger
from .typing import Char, DataType, Kind, conforms

logger = get_logger(__name__)


class ColumnStorage:
    """
    Ordered typed values plus a parallel null bitmap.

    Subclasses supply the buffer. Positions are dense and 0-based; negative
    positions are out of range.
    """

    __slots__ = ("_dtype", "_nulls", "_closed", "__weakref__")

    def __init__(self, dtype: DataType, nulls: NullBitMap):
        self._dtype = dtype.with_nullable(False)
        self._nulls = nulls
        self._closed = False

    # -- construction -------------------------------------------------

    @classmethod
    def from_values(cls, values: Iterable[Any], dtype: DataType) -> ColumnStorage:
        """Create from values that already conform to ``dtype`` (or are None)."""
        values = list(values)
        for v in values:
            if not conforms(v, dtype):
                raise TypeMismatchError(
                    f"{type(v).__name__} value {v!r} does not fit column{dtype!r}"
                )
        return cls._build(values, dtype)

    @classmethod
    def _build(cls, values: list, dtype: DataType) -> ColumnStorage:
        raise NotImplementedError

    # -- buffer primitives (overridden) -------------------------------

    def _raw_len(self) -> int:
        raise NotImplementedError

    def _raw_get(self, pos: int) -> Any:
        raise NotImplementedError

    def _raw_set(self, pos: int, value: Any) -> None:
        raise NotImplementedError

    def _raw_append(self, value: Any) -> None:
        raise NotImplementedError

    def _gather(self, positions: list, deep: bool = False) -> ColumnStorage:
        raise NotImplementedError

    def _drop_buffer(self) -> None:
        raise NotImplementedError

    # -- public contract ----------------------------------------------

    @property
    def dtype(self) -> DataType:
        return self._dtype.with_nullable(self._nulls.any_null())

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise InvalidOperationError(f"{type(self).__name__} is closed")

    def _check_pos(self, pos: int) -> None:
        n = len(self._nulls)
        if not isinstance(pos, int) or not 0 <= pos < n:
            raise IndexOutOfRangeError(f"Position {pos!r} out of range [0, {n})")

    def _check_value(self, value: Any) -> None:
        if not conforms(value, self._dtype):
            raise TypeMismatchError(
                f"Cannot store {type(value).__name__} value {value!r} "
                f"in column{self._dtype!r}"
            )

    def __len__(self) -> int:
        return len(self._nulls)

    def get_value(self, pos: int) -> Any:
        """Value at ``pos``, or None if the position is null."""
        self._check_open()
        self._check_pos(pos)
        if self._nulls.is_null(pos):
            return None
        return self._raw_get(pos)

    __getitem__ = get_value

    def set_value(self, pos: int, value: Any) -> None:
        """Write ``value`` at ``pos``; None marks the position null."""
        self._check_open()
        self._check_pos(pos)
        if value is None:
            self._raw_set(pos, self._dtype.default)
            self._nulls.set_null(pos, True)
            return
        self._check_value(value)
        self._raw_set(pos, value)
        self._nulls.set_null(pos, False)

    def is_null(self, pos: int) -> bool:
        self._check_pos(pos)
        return self._nulls.is_null(pos)

    def null_positions(self) -> Iterator[int]:
        """Positions holding None, ascending. A fresh generator each call."""
        self._check_open()
        return self._nulls.null_positions()

    @property
    def null_count(self) -> int:
        return self._nulls.count_nulls()

    def non_null_values(self) -> Iterator[Any]:
        for pos in range(len(self)):
            if not self._nulls.is_null(pos):
                yield self._raw_get(pos)

    def __iter__(self) -> Iterator[Any]:
        self._check_open()
        for pos in range(len(self)):
            yield None if self._nulls.is_null(pos) else self._raw_get(pos)

    def to_list(self) -> list:
        return list(self)

    def append(self, value: Any) -> None:
        self._check_open()
        if value is None:
            self._raw_append(self._dtype.default)
            self._nulls.append(True)
            return
        self._check_value(value)
        self._raw_append(value)
        self._nulls.append(False)

    def take(self, positions: Iterable[int]) -> ColumnStorage:
        """New storage of the same variant holding the values at ``positions``."""
        self._check_open()
        positions = list(positions)
        for p in positions:
            self._check_pos(p)
        return self._gather(positions)

    def copy(self, deep: bool = False) -> ColumnStorage:
        self._check_open()
        return self._gather(list(range(len(self))), deep=deep)

    def clear(self) -> None:
        self._check_open()
        empty = self._build([], self._dtype)
        self._adopt(empty)

    def _adopt(self, other: ColumnStorage) -> None:
        raise NotImplementedError

    # -- scoped resources ---------------------------------------------

    @contextmanager
    def buffer(self):
        """Export the raw buffer for the duration of a ``with`` block."""
        raise UnsupportedOperationError(
            f"{type(self).__name__} has no contiguous buffer to export"
        )
        yield  # pragma: no cover

    def close(self) -> None:
        """Release the buffer. Safe to call more than once."""
        if self._closed:
            return
        self._drop_buffer()
        self._closed = True
        logger.debug("released %s of length %d", type(self).__name__, len(self._nulls))

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def __repr__(self):
        state = " closed" if self._closed else ""
        return f"{type(self).__name__}({len(self)} values, {self.null_count} null{state})"


# ============================================================
# array.array backed variants
# ============================================================

class _ArrayStorage(ColumnStorage):
    """Contiguous storage over array.array; supports buffer export."""

    __slots__ = ("_data", "_exports")

    _TYPECODE = None

    def __init__(self, dtype: DataType, data: array, nulls: NullBitMap):
        super().__init__(dtype, nulls)
        self._data = data
        self._exports = []

    @classmethod
    def _typecode(cls, dtype: DataType) -> str:
        return cls._TYPECODE

    def _encode(self, value: Any) -> Any:
        return value

    def _decode(self, raw: Any) -> Any:
        return raw

    @classmethod
    def _build(cls, values: list, dtype: DataType) -> ColumnStorage:
        inst = cls(dtype, array(cls._typecode(dtype)), NullBitMap.from_flags(v is None for v in values))
        default = dtype.default
        inst._data.extend(inst._encode(default if v is None else v) for v in values)
        return inst

    def _raw_get(self, pos):
        return self._decode(self._data[pos])

    def _raw_set(self, pos, value):
        self._data[pos] = self._encode(value)

    def _check_resizable(self) -> None:
        if self._exports:
            raise InvalidOperationError(
                f"{type(self).__name__} cannot resize while {len(self._exports)} "
                "buffer export(s) are live"
            )

    def _raw_append(self, value):
        self._check_resizable()
        self._data.append(self._encode(value))

    def _gather(self, positions, deep=False):
        data = array(self._data.typecode, (self._data[p] for p in positions))
        return type(self)(self._dtype, data, self._nulls.take(positions))

    def _adopt(self, other):
        self._check_resizable()
        self._data = other._data
        self._nulls = other._nulls

    @contextmanager
    def buffer(self):
        """
        Export the raw array buffer as a memoryview.

        The view is released exactly once when the block exits; while any
        export is live the storage refuses to grow or shrink.

        Examples
        --------
        >>> s = DoubleStorage.from_values([1.0, 2.0], DataType(Kind.DOUBLE))
        >>> with s.buffer() as view:
        ...     view.tolist()
        [1.0, 2.0]
        """
        self._check_open()
        view = memoryview(self._data)
        self._exports.append(view)
        try:
            yield view
        finally:
            self._release(view)

    def _release(self, view: memoryview) -> None:
        for i, live in enumerate(self._exports):
            if live is view:
                del self._exports[i]
                view.release()
                return

    @property
    def export_count(self) -> int:
        return len(self._exports)

    def _drop_buffer(self):
        for view in list(self._exports):
            self._release(view)
        self._data = array(self._data.typecode)
        self._nulls = NullBitMap(0)


class BoolStorage(_ArrayStorage):
    __slots__ = ()
    _TYPECODE = "B"

    def _encode(self, value):
        return 1 if value else 0

    def _decode(self, raw):
        return bool(raw)


class CharStorage(_ArrayStorage):
    """Characters stored as code points."""

    __slots__ = ()
    _TYPECODE = "I"

    def _encode(self, value):
        return ord(value)

    def _decode(self, raw):
        return Char(raw)


class IntStorage(_ArrayStorage):
    __slots__ = ()

    _TYPECODE_MAP = {
        Kind.INT32: "i",
        Kind.INT64: "q",
        Kind.UINT32: "I",
        Kind.UINT64: "Q",
    }

    @classmethod
    def _typecode(cls, dtype):
        return cls._TYPECODE_MAP[dtype.kind]


class DoubleStorage(_ArrayStorage):
    __slots__ = ()
    _TYPECODE = "d"


_EPOCH = datetime.min
_TICK = timedelta(microseconds=1)


class DateTimeStorage(_ArrayStorage):
    """
    Wall-clock microsecond ticks since ``datetime.min`` plus a parallel
    tzinfo list (None for naive values).
    """

    __slots__ = ("_zones",)
    _TYPECODE = "q"

    def __init__(self, dtype, data, nulls, zones=None):
        super().__init__(dtype, data, nulls)
        self._zones = zones if zones is not None else [None] * len(data)

    @classmethod
    def _build(cls, values, dtype):
        inst = super()._build(values, dtype)
        inst._zones = [None if v is None else v.tzinfo for v in values]
        return inst

    def _encode(self, value):
        return (value.replace(tzinfo=None) - _EPOCH) // _TICK

    def _decode(self, raw):
        return _EPOCH + raw * _TICK

    def _raw_get(self, pos):
        value = self._decode(self._data[pos])
        zone = self._zones[pos]
        return value if zone is None else value.replace(tzinfo=zone)

    def _raw_set(self, pos, value):
        super()._raw_set(pos, value)
        self._zones[pos] = value.tzinfo

    def _raw_append(self, value):
        super()._raw_append(value)
        self._zones.append(value.tzinfo)

    def _gather(self, positions, deep=False):
        data = array(self._TYPECODE, (self._data[p] for p in positions))
        zones = [self._zones[p] for p in positions]
        return DateTimeStorage(self._dtype, data, self._nulls.take(positions), zones)

    def _adopt(self, other):
        super()._adopt(other)
        self._zones = other._zones

    def _drop_buffer(self):
        super()._drop_buffer()
        self._zones = []


# ============================================================
# list backed variants
# ============================================================

class _ListStorage(ColumnStorage):
    """Python object storage for kinds without a fixed-width encoding."""

    __slots__ = ("_data",)

    def __init__(self, dtype: DataType, data: list, nulls: NullBitMap):
        super().__init__(dtype, nulls)
        self._data = data

    @classmethod
    def _build(cls, values, dtype):
        default = dtype.default
        data = [default if v is None else v for v in values]
        return cls(dtype, data, NullBitMap.from_flags(v is None for v in values))

    def _raw_get(self, pos):
        return self._data[pos]

    def _raw_set(self, pos, value):
        self._data[pos] = value

    def _raw_append(self, value):
        self._data.append(value)

    def _gather(self, positions, deep=False):
        data = [self._data[p] for p in positions]
        if deep:
            data = deepcopy(data)
        return type(self)(self._dtype, data, self._nulls.take(positions))

    def _adopt(self, other):
        self._data = other._data
        self._nulls = other._nulls

    def _drop_buffer(self):
        self._data = []
        self._nulls = NullBitMap(0)


class DecimalStorage(_ListStorage):
    __slots__ = ()


class StringStorage(_ListStorage):
    __slots__ = ()


class ObjectStorage(_ListStorage):
    """Generic boxed storage: covers any element type, at list overhead."""

    __slots__ = ()


_STORAGE_BY_KIND = {
    Kind.BOOL: BoolStorage,
    Kind.CHAR: CharStorage,
    Kind.INT32: IntStorage,
    Kind.INT64: IntStorage,
    Kind.UINT32: IntStorage,
    Kind.UINT64: IntStorage,
    Kind.DOUBLE: DoubleStorage,
    Kind.DECIMAL: DecimalStorage,
    Kind.STRING: StringStorage,
    Kind.DATETIME: DateTimeStorage,
    Kind.VALUE: ObjectStorage,
    Kind.OBJECT: ObjectStorage,
}


def storage_class(dtype: DataType) -> type:
    return _STORAGE_BY_KIND[dtype.kind]


def create_storage(values: Iterable[Any], dtype: DataType, deep: bool = False) -> ColumnStorage:
    """
    Allocate the storage variant for ``dtype`` and fill it with ``values``.

    Parameters
    ----------
    values : Iterable[Any]
        Values already converted to ``dtype`` (None for absent)
    dtype : DataType
        Element type; its Kind selects the variant
    deep : bool
        Deep-copy elements of list-backed variants

    Returns
    -------
    ColumnStorage
    """
    cls = _STORAGE_BY_KIND[dtype.kind]
    values = list(values)
    if deep and issubclass(cls, _ListStorage):
        values = deepcopy(values)
    storage = cls.from_values(values, dtype)
    logger.debug("allocated %s for %r (%d values)", cls.__name__, dtype, len(values))
    return storage
