"""
Series: one typed ColumnStorage plus one label index.

Concurrency
-----------
Series objects do no locking. Callers that share a Series between threads
must serialize access themselves; a reader iterating ``values`` during a
concurrent ``add``/``remove``/``clear`` sees undefined interleaving.
"""

from __future__ import annotations

import math
import warnings
from decimal import Decimal
from functools import cmp_to_key
from typing import Any, Callable, Iterable, Iterator, List, Optional

from .config import options
from .errors import (
	ArgumentMismatchError,
	InvalidArgumentError,
	InvalidCastError,
	InvalidOperationError,
	TypeMismatchError,
)
from .index import CompositeIndex, RangeIndex, _IndexBase, coerce_label, create_index
from .log import get_logger
from .storage import ColumnStorage, create_storage
from .tracker import ViewRegistry
from .typing import DataType, Kind, conforms, convert_value, infer_dtype, is_numeric_kind

logger = get_logger(__name__)

_MISSING = object()


# ============================================================
# Helpers
# ============================================================

def _as_value_list(values: Any) -> list:
	"""Sequence arguments become lists; scalars (and strings) become [value]."""
	if values is None or isinstance(values, (str, bytes)):
		return [values]
	try:
		return list(values)
	except TypeError:
		return [values]


def _is_nan(value: Any) -> bool:
	if isinstance(value, float):
		return math.isnan(value)
	if isinstance(value, Decimal):
		return value.is_nan()
	return False


def _convert_all(values: Iterable[Any], dtype: DataType, strict: bool) -> list:
	out = []
	failed = 0
	for v in values:
		try:
			out.append(convert_value(v, dtype))
		except InvalidCastError:
			if strict:
				raise
			out.append(None)
			failed += 1
	if failed and options.warn_on_null_coercion:
		warnings.warn(
			f"{failed} value(s) could not be converted to {dtype!r} and were set to None",
			stacklevel=3,
		)
	return out


def _sorted_positions(keys: list, ascending: bool, comparer: Optional[Callable]) -> List[int]:
	"""Stable order of positions by key; NaN keys follow, then None keys."""
	present, nans, absent = [], [], []
	for p, k in enumerate(keys):
		if k is None:
			absent.append(p)
		elif _is_nan(k):
			nans.append(p)
		else:
			present.append(p)

	if comparer is not None:
		key_fn = cmp_to_key(lambda a, b: comparer(keys[a], keys[b]))
	else:
		key_fn = keys.__getitem__

	try:
		ordered = sorted(present, key=key_fn, reverse=not ascending)
	except TypeError:
		# Unorderable mix: group by type name, then textual form
		ordered = sorted(
			present,
			key=lambda p: (type(keys[p]).__name__, repr(keys[p])),
			reverse=not ascending,
		)
	return ordered + nans + absent


# Additive identity per element kind; kinds absent here cannot be summed
_SUM_SEEDS = {
	Kind.INT32: 0,
	Kind.INT64: 0,
	Kind.UINT32: 0,
	Kind.UINT64: 0,
	Kind.DOUBLE: 0.0,
	Kind.DECIMAL: Decimal(0),
	Kind.STRING: "",
	Kind.CHAR: "",
}


def sum_values(dtype: DataType, values: Iterable[Any]) -> Any:
	"""
	Sum the non-null ``values`` of a ``dtype`` column.

	The seed comes from the column kind, so an all-null input sums to the
	kind's zero. String and character columns concatenate.
	"""
	kind = dtype.kind
	if kind not in _SUM_SEEDS:
		raise TypeMismatchError(f"Cannot sum column{dtype!r}")
	present = (v for v in values if v is not None)
	if kind is Kind.STRING or kind is Kind.CHAR:
		return "".join(present)
	total = _SUM_SEEDS[kind]
	for v in present:
		total += v
	return total


def mean_values(dtype: DataType, values: Iterable[Any]) -> Any:
	"""Mean of the non-null numeric values, or None when there are none."""
	if not is_numeric_kind(dtype.kind):
		raise TypeMismatchError(f"Cannot average column{dtype!r}")
	present = [v for v in values if v is not None]
	if not present:
		return None
	total = sum_values(dtype, present)
	if dtype.kind is Kind.DECIMAL:
		return total / Decimal(len(present))
	return total / len(present)


# ============================================================
# Series
# ============================================================

class Series:
	"""
	Labelled, typed, nullable column.

	Parameters
	----------
	values : Iterable
		Column values; None marks an absent value. Generators are consumed once.
	labels : Iterable or index, optional
		One label per value. Defaults to a RangeIndex 0..n-1.
	dtype : DataType, Kind or type, optional
		Pin the element type. Omitted: inferred from the values.
	name : str, optional
	copy : bool
		Deep-copy elements held in generic (object) storage.
	strict : bool
		With a pinned dtype, raise InvalidCastError for unconvertible values
		instead of storing None.

	Examples
	--------
	>>> s = Series([10, 20, 30], labels=["a", "b", "a"])
	>>> s["a"]
	[10, 30]
	>>> s.dtype
	<int32>
	"""

	def __init__(self, values=(), labels=None, dtype=None, name=None, copy=False, strict=False):
		values = list(values)

		if labels is None:
			index = RangeIndex.of_length(len(values))
		elif isinstance(labels, _IndexBase):
			index = labels.copy()
		else:
			labels = list(labels)
			if len(labels) != len(values):
				raise ArgumentMismatchError(
					f"Got {len(labels)} labels for {len(values)} values"
				)
			index = create_index(labels)
		if len(index) != len(values):
			raise ArgumentMismatchError(
				f"Index of length {len(index)} does not match {len(values)} values"
			)

		if dtype is None:
			dtype = infer_dtype(values)
			pinned = False
			try:
				converted = [convert_value(v, dtype) for v in values]
			except InvalidCastError:
				dtype = DataType(Kind.OBJECT)
				converted = values
		else:
			dtype = DataType.of(dtype)
			pinned = True
			converted = _convert_all(values, dtype, strict)

		self._name = name
		self._dtype = dtype.with_nullable(False)
		self._pinned = pinned
		self._storage = create_storage(converted, self._dtype, deep=copy)
		self._index = index
		self._views = ViewRegistry()

	@classmethod
	def _from_parts(cls, storage: ColumnStorage, index, name=None, pinned=False) -> Series:
		s = cls.__new__(cls)
		s._name = name
		s._dtype = storage.dtype.with_nullable(False)
		s._pinned = pinned
		s._storage = storage
		s._index = index
		s._views = ViewRegistry()
		return s

	@classmethod
	def from_text(cls, values: Iterable[Optional[str]], labels=None, name=None) -> Series:
		"""Raw text column pinned to string; typed parsing is left to the caller."""
		return cls(values, labels=labels, dtype=str, name=name)

	# ============================================================
	# Properties
	# ============================================================

	@property
	def name(self):
		return self._name

	@name.setter
	def name(self, value):
		self._name = value

	def rename(self, name) -> Series:
		out = self.clone()
		out._name = name
		return out

	@property
	def dtype(self) -> DataType:
		return self._storage.dtype

	@property
	def pinned(self) -> bool:
		"""True when the dtype was given explicitly and is never re-inferred."""
		return self._pinned

	@property
	def index(self):
		return self._index

	@property
	def labels(self) -> list:
		return self._index.labels

	@property
	def values(self) -> list:
		return list(self._storage)

	@property
	def storage(self) -> ColumnStorage:
		return self._storage

	def __len__(self):
		return len(self._storage)

	def __iter__(self) -> Iterator[Any]:
		return iter(self._storage)

	def value_at(self, pos: int) -> Any:
		"""Value at a physical position."""
		return self._storage.get_value(pos)

	def __getitem__(self, label):
		"""Values of every position carrying ``label``, in position order."""
		return [self._storage.get_value(p) for p in self._index.positions(label)]

	def __contains__(self, item):
		return self.contains(item)

	def __repr__(self):
		from .display import _repr_series
		return _repr_series(self)

	# ============================================================
	# View bookkeeping
	# ============================================================

	def _register_view(self, view) -> None:
		self._views.register(view)

	def _unregister_view(self, view) -> None:
		self._views.unregister(view)

	def _notify_label_change(self) -> None:
		self._views.notify(self)

	# ============================================================
	# Internal mutation helpers
	# ============================================================

	def _check_unexported(self) -> None:
		live = getattr(self._storage, "export_count", 0)
		if live:
			raise InvalidOperationError(
				f"Cannot replace column storage while {live} buffer export(s) are live"
			)

	def _replace_storage(self, storage: ColumnStorage) -> None:
		self._check_unexported()
		old = self._storage
		self._storage = storage
		self._dtype = storage.dtype.with_nullable(False)
		if old is not storage:
			old.close()

	def _promote(self, dtype: DataType) -> None:
		dtype = dtype.with_nullable(False)
		if dtype.kind is Kind.OBJECT and self._dtype.kind is not Kind.OBJECT and len(self):
			warnings.warn(
				f"Degrading column{self._dtype!r} to column{dtype!r} "
				"to hold an incompatible value",
				stacklevel=4,
			)
		logger.debug("promoting column%r to column%r", self._dtype, dtype)
		converted = [convert_value(v, dtype) for v in self._storage]
		self._replace_storage(create_storage(converted, dtype))

	def _accommodate(self, incoming: list) -> list:
		"""
		Convert ``incoming`` for storage in this column, widening the dtype
		first when it is not pinned and cannot hold them.
		"""
		if self._pinned:
			return [convert_value(v, self._dtype) for v in incoming]

		if self._storage.null_count == len(self._storage):
			# nothing present yet: the incoming values decide the type
			dtype = infer_dtype(incoming)
			if not dtype.same_type(self._dtype):
				self._promote(dtype)
		elif not all(conforms(v, self._dtype) for v in incoming):
			dtype = infer_dtype(list(self._storage.non_null_values()) + incoming)
			if not dtype.same_type(self._dtype):
				self._promote(dtype)
		return [convert_value(v, self._dtype) for v in incoming]

	def _prepare_label(self, label):
		"""
		Return (index, pending): an index that can take ``label`` and whether
		``label`` still has to be added to it.
		"""
		index = self._index
		if isinstance(index, RangeIndex):
			if (
				isinstance(label, int) and not isinstance(label, bool)
				and label == index.start + len(index) * index.step
			):
				return index.extended(), False
			logger.debug("materializing %r to accept label %r", index, label)
			index = index.materialize()
		try:
			coerce_label(index.kind, label)
		except InvalidArgumentError:
			if label is None:
				raise
			return create_index(index.labels + [label]), False
		return index, True

	def _write_positions(self, positions: List[int], values: list) -> None:
		converted = self._accommodate(values)
		for p, v in zip(positions, converted):
			self._storage.set_value(p, v)

	def _take(self, positions) -> Series:
		positions = list(positions)
		return Series._from_parts(
			self._storage.take(positions),
			self._index.take(positions),
			self._name,
			self._pinned,
		)

	def take(self, positions: Iterable[int]) -> Series:
		"""New Series holding the given physical positions, labels included."""
		return self._take(positions)

	# ============================================================
	# CRUD
	# ============================================================

	def add(self, item, label=_MISSING) -> None:
		"""
		Append ``item``.

		Without a label the index must still be the default 0, 1, 2, ...
		range, which is then extended.
		"""
		if label is _MISSING:
			if not (isinstance(self._index, RangeIndex) and self._index.is_default):
				raise InvalidOperationError(
					"A label is required: the index is no longer the default range"
				)
			index, pending = self._index.extended(), False
		else:
			index, pending = self._prepare_label(label)

		value = self._accommodate([item])[0]
		self._storage.append(value)
		if pending:
			index.add(label)
		self._index = index
		self._notify_label_change()

	def remove(self, item, delete_label_if_emptied: bool = True) -> bool:
		"""
		Remove every position holding ``item`` and renumber the rest.

		Returns False (and changes nothing) when ``item`` is not present.
		"""
		hits = self.find(item)
		if not hits:
			return False
		self._check_unexported()
		removed = set(hits)
		keep = [p for p in range(len(self)) if p not in removed]

		index = self._index
		if isinstance(index, RangeIndex):
			index = index.materialize()
		index.remove_positions(hits, drop_empty=delete_label_if_emptied)

		self._replace_storage(self._storage.take(keep))
		self._index = index
		self._notify_label_change()
		return True

	def clear(self) -> None:
		self._storage.clear()
		self._index = RangeIndex.of_length(0)
		self._notify_label_change()

	def update_values(self, label, new_values) -> None:
		"""
		Overwrite the values under ``label``.

		``new_values`` of length 1 is broadcast to every position of the
		label; otherwise it must match the label's position count.
		"""
		positions = self._index.positions(label)
		new_values = _as_value_list(new_values)
		if len(new_values) == 1:
			new_values = new_values * len(positions)
		elif len(new_values) != len(positions):
			raise ArgumentMismatchError(
				f"Label {label!r} has {len(positions)} position(s), "
				f"got {len(new_values)} value(s)"
			)
		self._write_positions(positions, new_values)

	# ============================================================
	# Conversion
	# ============================================================

	def as_type(self, dtype, force_cast: bool = False) -> Series:
		"""
		Convert every value to ``dtype``; the result's dtype is pinned.

		Unconvertible values become None, or raise InvalidCastError when
		``force_cast`` is set.
		"""
		dtype = DataType.of(dtype).with_nullable(False)
		converted = _convert_all(self._storage, dtype, strict=force_cast)
		return Series._from_parts(
			create_storage(converted, dtype), self._index.copy(), self._name, pinned=True
		)

	def as_typed(self, pytype: type) -> list:
		"""Values checked against ``pytype``; None passes through."""
		out = []
		for v in self._storage:
			if v is not None and not isinstance(v, pytype):
				raise InvalidCastError(
					f"Value {v!r} of type {type(v).__name__} is not a {pytype.__name__}"
				)
			out.append(v)
		return out

	def clone(self) -> Series:
		"""Deep copy: independent storage and index."""
		return Series._from_parts(
			self._storage.copy(deep=True), self._index.copy(), self._name, self._pinned
		)

	# ============================================================
	# Ordering and slicing
	# ============================================================

	def sort_values(self, ascending: bool = True, comparer: Callable = None) -> Series:
		"""
		Stable sort by value. Returns a new Series.

		Parameters
		----------
		ascending : bool
			Direction for present values
		comparer : callable, optional
			cmp-style function ``(a, b) -> int`` for present values

		Returns
		-------
		Series
			Same dtype, labels travel with their values, None values last
		"""
		return self._take(_sorted_positions(self.values, ascending, comparer))

	def sort_index(self, ascending: bool = True, comparer: Callable = None) -> Series:
		"""Stable sort by label. Returns a new Series."""
		return self._take(_sorted_positions(self.labels, ascending, comparer))

	def reverse(self) -> Series:
		return self._take(range(len(self) - 1, -1, -1))

	def head(self, n: int = 5) -> Series:
		if n < 0:
			raise InvalidArgumentError(f"head() count must be >= 0, got {n}")
		return self._take(range(min(n, len(self))))

	def tail(self, n: int = 5) -> Series:
		if n < 0:
			raise InvalidArgumentError(f"tail() count must be >= 0, got {n}")
		count = len(self)
		return self._take(range(count - min(n, count), count))

	def filter(self, predicate: Callable[[Any], bool]) -> Series:
		"""Values for which ``predicate`` is true, labels preserved."""
		return self._take([p for p, v in enumerate(self._storage) if predicate(v)])

	def extend(self, other: Series) -> Series:
		"""
		New Series with ``other`` appended.

		Two default-range operands give a default range; otherwise labels
		are concatenated.
		"""
		values = self.values + other.values
		if (
			isinstance(self._index, RangeIndex) and self._index.is_default
			and isinstance(other._index, RangeIndex) and other._index.is_default
		):
			labels = None
		else:
			labels = self.labels + other.labels

		dtype = None
		if self._pinned and other._pinned and self._dtype.same_type(other._dtype):
			dtype = self._dtype
		return Series(values, labels=labels, dtype=dtype, name=self._name)

	def xs(self, key, level: int = 0) -> Series:
		"""Rows whose composite label has ``key`` at ``level``."""
		if not isinstance(self._index, CompositeIndex):
			raise InvalidOperationError("xs() needs a composite (tuple) index")
		return self._take(self._index.level_positions(level, key))

	# ============================================================
	# Search
	# ============================================================

	def find(self, item) -> List[int]:
		"""
		Positions whose value equals ``item``.

		None finds the null positions and NaN finds NaN values.
		"""
		if item is None:
			return list(self._storage.null_positions())
		if _is_nan(item):
			return [p for p, v in enumerate(self._storage) if v is not None and _is_nan(v)]
		return [p for p, v in enumerate(self._storage) if v is not None and v == item]

	def contains(self, item) -> bool:
		return bool(self.find(item))

	# ============================================================
	# Aggregation and grouping
	# ============================================================

	def sum(self):
		return sum_values(self._dtype, self._storage)

	def mean(self):
		return mean_values(self._dtype, self._storage)

	def group_by_label(self):
		from .views import GroupView
		return GroupView.by_label(self)

	def group_by_value(self):
		from .views import GroupView
		return GroupView.by_value(self)

	def get_view(self, labels=None, *, start=None, end=None, step: int = 1):
		"""
		Position-resolved view over explicit labels or a label range.

		Examples
		--------
		>>> s = Series([10, 20, 30, 40, 50], labels=list("abcde"))
		>>> s.get_view(start="b", end="d").to_series().values
		[20, 30, 40]
		"""
		from .views import SeriesView
		return SeriesView(self, labels=labels, start=start, end=end, step=step)
