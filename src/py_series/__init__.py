"""
py-series: labelled, typed, nullable columns in pure Python

A Series pairs one typed column store (array.array buffers with a packed
null bitmap) with a label index that may hold duplicate, composite or
implicit range labels.

Main classes:
    - Series: labelled column with type inference, CRUD, sorting, grouping
    - SeriesView: position-resolved projection that reads through to a Series
    - GroupView: per-label or per-value partition with sum/count/mean/apply

Building blocks:
    - NullBitMap, ColumnStorage variants, create_storage
    - LabelIndex, RangeIndex, CompositeIndex, create_index
    - DataType, Kind, Char, infer_dtype, can_coerce, convert_value

Zero external dependencies - pure Python stdlib only.
"""

from .bitmap import NullBitMap
from .config import options
from .errors import (
    ArgumentMismatchError,
    IndexOutOfRangeError,
    InvalidArgumentError,
    InvalidCastError,
    InvalidOperationError,
    KeyNotFoundError,
    SeriesError,
    TypeMismatchError,
    UnsupportedOperationError,
)
from .index import CompositeIndex, IndexKind, LabelIndex, RangeIndex, create_index
from .series import Series
from .storage import (
    BoolStorage,
    CharStorage,
    ColumnStorage,
    DateTimeStorage,
    DecimalStorage,
    DoubleStorage,
    IntStorage,
    ObjectStorage,
    StringStorage,
    create_storage,
)
from .typing import (
    Char,
    DataType,
    Kind,
    can_coerce,
    convert_value,
    infer_dtype,
    is_floating_kind,
    is_integer_kind,
    is_numeric_kind,
    register_converter,
)
from .views import GroupView, SeriesView, ViewState

__version__ = "0.1.0"
__all__ = [
    "Series", "SeriesView", "GroupView", "ViewState",
    "NullBitMap",
    "ColumnStorage", "BoolStorage", "CharStorage", "IntStorage", "DoubleStorage",
    "DecimalStorage", "StringStorage", "DateTimeStorage", "ObjectStorage", "create_storage",
    "LabelIndex", "RangeIndex", "CompositeIndex", "IndexKind", "create_index",
    "DataType", "Kind", "Char", "infer_dtype", "can_coerce", "convert_value",
    "is_integer_kind", "is_floating_kind", "is_numeric_kind", "register_converter",
    "options",
    "SeriesError", "ArgumentMismatchError", "InvalidArgumentError", "KeyNotFoundError",
    "IndexOutOfRangeError", "InvalidOperationError", "InvalidCastError",
    "TypeMismatchError", "UnsupportedOperationError",
]
