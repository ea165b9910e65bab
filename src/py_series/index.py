"""
Label indexes: label -> ordered position list.

The family is closed and tagged by IndexKind:

	RANGE      RangeIndex       implicit arithmetic progression, immutable
	INT64 ..   LabelIndex       one scalar label kind per index
	COMPOSITE  CompositeIndex   tuple labels with per-level queries

Every index partitions [0, len) among its distinct labels. Duplicates keep
their first-seen order.
"""

from __future__ import annotations

import unicodedata
from enum import Enum
from typing import Any, Iterable, Iterator, List

from .config import options
from .errors import (
	IndexOutOfRangeError,
	InvalidArgumentError,
	InvalidCastError,
	KeyNotFoundError,
	UnsupportedOperationError,
)
from .log import get_logger
from .typeutils import as_progression, inclusive_range
from .typing import DataType, Kind, can_coerce, conforms, convert_value, infer_dtype

logger = get_logger(__name__)


class IndexKind(Enum):
	RANGE = "range"
	INT64 = "int64"
	DOUBLE = "double"
	DECIMAL = "decimal"
	CHAR = "char"
	DATETIME = "datetime"
	STRING = "string"
	OBJECT = "object"
	COMPOSITE = "composite"


# Native element type each scalar index coerces its labels to
_NATIVE_DTYPE = {
	IndexKind.INT64: DataType(Kind.INT64),
	IndexKind.DOUBLE: DataType(Kind.DOUBLE),
	IndexKind.DECIMAL: DataType(Kind.DECIMAL),
	IndexKind.CHAR: DataType(Kind.CHAR),
	IndexKind.DATETIME: DataType(Kind.DATETIME),
	IndexKind.STRING: DataType(Kind.STRING),
}

_KIND_FOR_ELEMENT = {
	Kind.INT32: IndexKind.INT64,
	Kind.INT64: IndexKind.INT64,
	Kind.UINT32: IndexKind.INT64,
	Kind.DOUBLE: IndexKind.DOUBLE,
	Kind.DECIMAL: IndexKind.DECIMAL,
	Kind.CHAR: IndexKind.CHAR,
	Kind.DATETIME: IndexKind.DATETIME,
	Kind.STRING: IndexKind.STRING,
}


def _check_hashable(label: Any) -> Any:
	try:
		hash(label)
	except TypeError:
		raise InvalidArgumentError(
			f"Label {label!r} of type {type(label).__name__} is not hashable"
		) from None
	return label


def _normalize_text(text: str) -> str:
	if options.normalize_unicode:
		return unicodedata.normalize(options.unicode_form, text)
	return text


def coerce_label(kind: IndexKind, label: Any) -> Any:
	"""
	Bring ``label`` to the native scalar kind of a ``kind`` index.

	Raises InvalidArgumentError when the label is None or cannot be coerced
	without changing its value.
	"""
	if label is None:
		raise InvalidArgumentError("Index labels cannot be None")

	if kind is IndexKind.OBJECT:
		return _check_hashable(label)

	if kind is IndexKind.COMPOSITE:
		if isinstance(label, list):
			label = tuple(label)
		if not isinstance(label, tuple):
			raise InvalidArgumentError(
				f"Composite index needs a tuple label, got {type(label).__name__}"
			)
		return _check_hashable(label)

	if kind is IndexKind.RANGE:
		target = _NATIVE_DTYPE[IndexKind.INT64]
	else:
		target = _NATIVE_DTYPE[kind]

	if isinstance(label, bool) and target.kind is Kind.INT64:
		raise InvalidArgumentError(f"Cannot use bool label {label!r} with a {kind.value} index")
	if conforms(label, target):
		value = label
	elif can_coerce(type(label), target):
		try:
			value = convert_value(label, target)
		except InvalidCastError as e:
			raise InvalidArgumentError(f"Label {label!r} does not fit a {kind.value} index") from e
		if target.kind is Kind.INT64 and value != label:
			raise InvalidArgumentError(f"Label {label!r} is not integral")
	else:
		raise InvalidArgumentError(
			f"Cannot use {type(label).__name__} label {label!r} with a {kind.value} index"
		)

	if kind is IndexKind.STRING:
		value = _normalize_text(value)
	return value


def _index_kind_for(labels: list) -> IndexKind:
	if not labels:
		return IndexKind.OBJECT
	dtype = infer_dtype(labels)
	return _KIND_FOR_ELEMENT.get(dtype.kind, IndexKind.OBJECT)


def _build_map(labels: list) -> dict:
	mapping = {}
	for pos, label in enumerate(labels):
		bucket = mapping.get(label)
		if bucket is None:
			mapping[label] = [pos]
		else:
			bucket.append(pos)
	return mapping


# ============================================================
# Shared behaviour
# ============================================================

class _IndexBase:
	"""Operations every index variant derives from label_at / positions."""

	__slots__ = ()

	kind: IndexKind

	def __len__(self) -> int:
		raise NotImplementedError

	def label_at(self, pos: int) -> Any:
		raise NotImplementedError

	def positions(self, label: Any) -> List[int]:
		raise NotImplementedError

	def take(self, positions: Iterable[int]) -> "_IndexBase":
		raise NotImplementedError

	def _check_pos(self, pos: int) -> None:
		n = len(self)
		if not isinstance(pos, int) or not 0 <= pos < n:
			raise IndexOutOfRangeError(f"Position {pos!r} out of range [0, {n})")

	def __iter__(self) -> Iterator[Any]:
		for pos in range(len(self)):
			yield self.label_at(pos)

	@property
	def labels(self) -> list:
		return list(self)

	def __contains__(self, label: Any) -> bool:
		return self.contains(label)

	def first_position(self, label: Any) -> int:
		found = self.positions(label)
		if not found:
			raise KeyNotFoundError(label)
		return found[0]

	def slice(self, start: int, end: int, step: int = 1) -> "_IndexBase":
		"""
		Positions start..end inclusive along the step direction, as a new
		index of the same kind.

		Examples
		--------
		>>> create_index(["a", "b", "c", "d"]).slice(3, 1, -1).labels
		['d', 'c', 'b']
		"""
		return self.take(inclusive_range(start, end, step, len(self)))

	def positions_for(self, labels: Iterable[Any]) -> List[int]:
		"""Mapped positions of each requested label, concatenated in request order."""
		out = []
		for label in labels:
			out.extend(self.positions(label))
		return out

	def take_labels(self, labels: Iterable[Any]) -> "_IndexBase":
		return self.take(self.positions_for(labels))

	def __repr__(self):
		shown = self.labels
		if len(shown) > 10:
			body = ", ".join(repr(x) for x in shown[:5]) + ", ..., " + ", ".join(repr(x) for x in shown[-5:])
		else:
			body = ", ".join(repr(x) for x in shown)
		return f"{type(self).__name__}<{self.kind.value}>([{body}])"


# ============================================================
# Scalar and composite label indexes
# ============================================================

class LabelIndex(_IndexBase):
	"""
	Hash index over scalar labels of one IndexKind.

	Parameters
	----------
	labels : Iterable
		Labels in position order; None is rejected
	kind : IndexKind, optional
		Scalar kind; inferred from the labels when omitted
	"""

	__slots__ = ("kind", "_labels", "_map")

	def __init__(self, labels: Iterable[Any] = (), kind: IndexKind = None):
		labels = list(labels)
		if kind is None:
			if any(x is None for x in labels):
				raise InvalidArgumentError("Index labels cannot be None")
			kind = _index_kind_for(labels)
		if kind is IndexKind.RANGE:
			raise InvalidArgumentError("Use RangeIndex for range labels")
		self.kind = kind
		self._labels = [self._coerce(x) for x in labels]
		self._map = _build_map(self._labels)

	@classmethod
	def _from_coerced(cls, kind: IndexKind, labels: list, mapping: dict = None):
		inst = cls.__new__(cls)
		inst.kind = kind
		inst._labels = labels
		inst._map = _build_map(labels) if mapping is None else mapping
		return inst

	def _coerce(self, label: Any) -> Any:
		return coerce_label(self.kind, label)

	def __len__(self) -> int:
		return len(self._labels)

	def __iter__(self) -> Iterator[Any]:
		return iter(list(self._labels))

	@property
	def labels(self) -> list:
		return list(self._labels)

	def label_at(self, pos: int) -> Any:
		self._check_pos(pos)
		return self._labels[pos]

	def _bucket(self, label: Any) -> list:
		key = self._coerce(label)
		bucket = self._map.get(key)
		if bucket is None:
			raise KeyNotFoundError(label)
		return bucket

	def positions(self, label: Any) -> List[int]:
		return list(self._bucket(label))

	def contains(self, label: Any) -> bool:
		return self._coerce(label) in self._map

	def distinct(self) -> list:
		return list(self._map)

	def take(self, positions: Iterable[int]) -> "LabelIndex":
		picked = []
		for p in positions:
			self._check_pos(p)
			picked.append(self._labels[p])
		return type(self)._from_coerced(self.kind, picked)

	def copy(self) -> "LabelIndex":
		return type(self)._from_coerced(
			self.kind, list(self._labels), {k: list(v) for k, v in self._map.items()}
		)

	# -- mutation (used by Series) ------------------------------------

	def add(self, label: Any) -> None:
		key = self._coerce(label)
		self._map.setdefault(key, []).append(len(self._labels))
		self._labels.append(key)

	def drop(self, label: Any) -> List[int]:
		"""Remove every position of ``label``; returns the removed positions."""
		removed = list(self._bucket(label))
		self.remove_positions(removed, drop_empty=True)
		return removed

	def remove_positions(self, positions: Iterable[int], drop_empty: bool = True) -> None:
		"""
		Delete ``positions`` and renumber the survivors contiguously.

		With ``drop_empty`` False a label whose positions all vanished stays
		mapped to an empty list.
		"""
		removed = set(positions)
		if not removed:
			return
		for p in removed:
			self._check_pos(p)
		survivors = [x for p, x in enumerate(self._labels) if p not in removed]
		mapping = {key: [] for key in self._map}
		for pos, label in enumerate(survivors):
			mapping[label].append(pos)
		if drop_empty:
			mapping = {k: v for k, v in mapping.items() if v}
		self._labels = survivors
		self._map = mapping

	def reorder(self, positions: Iterable[int]) -> "LabelIndex":
		return self.take(positions)


class CompositeIndex(LabelIndex):
	"""
	Index over tuple labels, compared and hashed component-wise.

	Examples
	--------
	>>> idx = CompositeIndex([("A", 1), ("B", 2), ("A", 1)])
	>>> len(idx), ("A", 1) in idx, len(idx.distinct())
	(3, True, 2)
	>>> idx.level_positions(0, "A")
	[0, 2]
	"""

	__slots__ = ()

	def __init__(self, labels: Iterable[Any] = ()):
		labels = [x if isinstance(x, (tuple, list)) else (x,) for x in labels]
		super().__init__(labels, IndexKind.COMPOSITE)

	@property
	def nlevels(self) -> int:
		return max((len(x) for x in self._labels), default=0)

	def _check_level(self, level: int) -> None:
		if not isinstance(level, int) or not 0 <= level < self.nlevels:
			raise InvalidArgumentError(
				f"Level {level!r} out of range for index with {self.nlevels} level(s)"
			)

	def level_positions(self, level: int, key: Any) -> List[int]:
		"""Positions whose label has ``key`` as component ``level``."""
		self._check_level(level)
		return [
			pos for pos, label in enumerate(self._labels)
			if len(label) > level and label[level] == key
		]

	def slice_level(self, level: int, key: Any) -> "CompositeIndex":
		return self.take(self.level_positions(level, key))

	def level_values(self, level: int) -> list:
		"""Distinct components at ``level`` in first-seen order."""
		self._check_level(level)
		seen = {}
		for label in self._labels:
			if len(label) > level:
				seen.setdefault(label[level], None)
		return list(seen)


# ============================================================
# RangeIndex
# ============================================================

class RangeIndex(_IndexBase):
	"""
	Implicit labels ``start, start+step, ..., stop`` (stop inclusive).

	Holds no per-label storage and cannot be mutated; Series replace it
	rather than edit it.

	Examples
	--------
	>>> idx = RangeIndex(10, 18, 2)
	>>> idx.labels
	[10, 12, 14, 16, 18]
	>>> idx.positions(14)
	[2]
	"""

	__slots__ = ("start", "stop", "step", "_length")

	kind = IndexKind.RANGE

	def __init__(self, start: int = 0, stop: int = -1, step: int = 1):
		if step == 0:
			raise InvalidArgumentError("RangeIndex step cannot be zero")
		self.start = start
		self.stop = stop
		self.step = step
		self._length = max(0, (stop - start) // step + 1)

	@classmethod
	def of_length(cls, n: int) -> "RangeIndex":
		return cls(0, n - 1, 1)

	@property
	def is_default(self) -> bool:
		"""True for the auto-numbered 0, 1, 2, ... sequence."""
		return self.start == 0 and self.step == 1

	def __len__(self) -> int:
		return self._length

	def label_at(self, pos: int) -> int:
		self._check_pos(pos)
		return self.start + pos * self.step

	def _offset(self, label: Any):
		value = coerce_label(IndexKind.RANGE, label)
		offset, rem = divmod(value - self.start, self.step)
		if rem or not 0 <= offset < self._length:
			return None
		return offset

	def contains(self, label: Any) -> bool:
		return self._offset(label) is not None

	def positions(self, label: Any) -> List[int]:
		offset = self._offset(label)
		if offset is None:
			raise KeyNotFoundError(label)
		return [offset]

	def distinct(self) -> list:
		return self.labels

	def take(self, positions: Iterable[int]):
		positions = list(positions)
		for p in positions:
			self._check_pos(p)
		if not positions:
			return RangeIndex(self.start, self.start - self.step, self.step)
		prog = as_progression(positions)
		if prog is None:
			logger.debug("materializing RangeIndex for non-arithmetic take")
			return LabelIndex._from_coerced(
				IndexKind.INT64, [self.start + p * self.step for p in positions]
			)
		first, last, stride = prog
		return RangeIndex(
			self.start + first * self.step,
			self.start + last * self.step,
			stride * self.step,
		)

	def extended(self, count: int = 1) -> "RangeIndex":
		"""A new range with ``count`` more labels at the end."""
		return RangeIndex(self.start, self.stop + count * self.step, self.step)

	def materialize(self) -> LabelIndex:
		"""Equivalent mutable Int64 label index."""
		return LabelIndex._from_coerced(IndexKind.INT64, self.labels)

	def copy(self) -> "RangeIndex":
		return RangeIndex(self.start, self.stop, self.step)

	def add(self, label: Any) -> None:
		raise UnsupportedOperationError("RangeIndex is immutable; cannot add labels")

	def drop(self, label: Any) -> None:
		raise UnsupportedOperationError("RangeIndex is immutable; cannot drop labels")

	def remove_positions(self, positions, drop_empty=True) -> None:
		raise UnsupportedOperationError("RangeIndex is immutable; cannot remove positions")

	def __eq__(self, other):
		if not isinstance(other, RangeIndex):
			return NotImplemented
		return (self.start, self._length, self.step) == (other.start, other._length, other.step)

	__hash__ = None

	def __repr__(self):
		return f"RangeIndex(start={self.start}, stop={self.stop}, step={self.step})"


# ============================================================
# Factory
# ============================================================

def create_index(labels: Iterable[Any]):
	"""
	Build the index variant that fits ``labels``.

	Any tuple or list label makes a CompositeIndex (scalar labels become
	1-tuples). Otherwise the label kind is inferred; integer labels map to
	an INT64 index and anything without a specialized index to OBJECT.

	Examples
	--------
	>>> create_index(["x", "y"]).kind
	<IndexKind.STRING: 'string'>
	>>> create_index([1, 2, 2]).positions(2)
	[1, 2]
	"""
	labels = list(labels)
	if any(x is None for x in labels):
		raise InvalidArgumentError("Index labels cannot be None")
	if any(isinstance(x, (tuple, list)) for x in labels):
		return CompositeIndex(labels)
	return LabelIndex(labels)
