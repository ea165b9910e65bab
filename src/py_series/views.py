"""
Derived projections over a Series.

SeriesView
	Positions resolved once from labels; reads go through to the source.
	Holds only a weak reference to the source, and is told (never forced)
	when the source's label set changes.
GroupView
	Snapshot partition of the source positions by label or by value, with
	per-group reductions.
"""

from __future__ import annotations

import weakref
from enum import Enum
from functools import cmp_to_key
from typing import Any, Callable, Dict, Iterator, List, Optional

from .errors import (
	IndexOutOfRangeError,
	InvalidArgumentError,
	InvalidOperationError,
	KeyNotFoundError,
)
from .index import coerce_label
from .log import get_logger
from .series import Series, _as_value_list, _is_nan, mean_values, sum_values
from .typeutils import inclusive_range

logger = get_logger(__name__)


# Every NaN value groups under this one key
NAN_KEY = float("nan")


class ViewState(Enum):
	CREATED = "created"
	RESYNCHRONIZED = "resynchronized"
	MATERIALIZED = "materialized"
	DETACHED = "detached"


def _check_selector(labels, start, end) -> None:
	if labels is not None and (start is not None or end is not None):
		raise InvalidArgumentError("Pass either labels or start/end, not both")
	if labels is None and (start is None or end is None):
		raise InvalidArgumentError("A label range needs both start and end")


class SeriesView:
	"""
	Read-mostly projection of a Series at fixed positions.

	Built from an explicit label list (every position of every label, in
	request order) or from an inclusive ``start``..``end`` label range
	walked by ``step``. Positions are not updated automatically when the
	source changes; ``is_stale`` reports that, and ``resynchronize()``
	re-resolves the recorded labels on request.

	Examples
	--------
	>>> s = Series([10, 20, 30, 40, 50], labels=list("abcde"))
	>>> v = s.get_view(start="b", end="d")
	>>> v.positions, v.values
	([1, 2, 3], [20, 30, 40])
	"""

	def __init__(self, source: Series, labels=None, *, start=None, end=None, step: int = 1):
		_check_selector(labels, start, end)
		index = source.index
		if labels is not None:
			positions = index.positions_for(_as_value_list(labels))
		else:
			first = index.first_position(start)
			last = index.first_position(end)
			positions = list(inclusive_range(first, last, step, len(index)))

		self._source_ref = weakref.ref(source)
		self._private = None
		self._positions = positions
		self._labels = [index.label_at(p) for p in positions]
		self._stale = False
		self._state = ViewState.CREATED
		source._register_view(self)

	@classmethod
	def _from_resolved(cls, source: Series, labels: list, positions: list) -> SeriesView:
		view = cls.__new__(cls)
		view._source_ref = weakref.ref(source)
		view._private = None
		view._positions = positions
		view._labels = labels
		view._stale = False
		view._state = ViewState.CREATED
		source._register_view(view)
		return view

	# ============================================================
	# Source access and synchronization
	# ============================================================

	def _source(self) -> Series:
		if self._private is not None:
			return self._private
		src = self._source_ref()
		if src is None:
			raise InvalidOperationError("The source Series of this view no longer exists")
		return src

	def _on_source_changed(self, source) -> None:
		self._stale = True

	@property
	def is_stale(self) -> bool:
		"""True once the source changed its labels after the last resolution."""
		return self._stale

	@property
	def state(self) -> ViewState:
		return self._state

	def resynchronize(self) -> SeriesView:
		"""
		Re-resolve the recorded labels against the source as it is now.

		Labels the source no longer has drop out of the view; labels that
		gained positions pick them up.
		"""
		src = self._source()
		index = src.index
		labels, positions = [], []
		for label in dict.fromkeys(self._labels):
			try:
				found = index.positions(label)
			except (KeyNotFoundError, InvalidArgumentError):
				continue
			for p in found:
				labels.append(index.label_at(p))
				positions.append(p)
		self._labels = labels
		self._positions = positions
		self._stale = False
		if self._state is ViewState.CREATED:
			self._state = ViewState.RESYNCHRONIZED
		logger.debug("resynchronized view to %d position(s)", len(positions))
		return self

	# ============================================================
	# Reads
	# ============================================================

	def __len__(self):
		return len(self._positions)

	@property
	def positions(self) -> List[int]:
		"""Source positions this view reads, in view order."""
		return list(self._positions)

	@property
	def labels(self) -> list:
		return list(self._labels)

	@property
	def values(self) -> list:
		src = self._source()
		return [src.value_at(p) for p in self._positions]

	def __iter__(self) -> Iterator[Any]:
		return iter(self.values)

	def _slots(self, label) -> List[int]:
		key = coerce_label(self._source().index.kind, label)
		return [i for i, x in enumerate(self._labels) if x == key]

	def __getitem__(self, label) -> list:
		slots = self._slots(label)
		if not slots:
			raise KeyNotFoundError(label)
		src = self._source()
		return [src.value_at(self._positions[i]) for i in slots]

	def __repr__(self):
		from .display import _repr_view
		return _repr_view(self)

	# ============================================================
	# Derivation
	# ============================================================

	def get_view(self, labels=None, *, start=None, end=None, step: int = 1) -> SeriesView:
		"""
		Sub-view by labels or by a label range within this view.

		A stale view resynchronizes first.
		"""
		_check_selector(labels, start, end)
		if self._stale:
			self.resynchronize()

		if labels is not None:
			slots = []
			for label in _as_value_list(labels):
				found = self._slots(label)
				if not found:
					raise KeyNotFoundError(label)
				slots.extend(found)
		else:
			first = self._slots(start)
			last = self._slots(end)
			if not first:
				raise KeyNotFoundError(start)
			if not last:
				raise KeyNotFoundError(end)
			slots = list(inclusive_range(first[0], last[0], step, len(self)))

		return SeriesView._from_resolved(
			self._source(),
			[self._labels[i] for i in slots],
			[self._positions[i] for i in slots],
		)

	def to_series(self, name=None) -> Series:
		"""Independent Series of the viewed values; its dtype is pinned to the source's."""
		src = self._source()
		out = Series._from_parts(
			src.storage.take(self._positions),
			src.index.take(self._positions),
			src.name if name is None else name,
			pinned=True,
		)
		if self._state is not ViewState.DETACHED:
			self._state = ViewState.MATERIALIZED
		return out

	def _detach(self) -> None:
		detached = self.to_series()
		src = self._source_ref()
		if src is not None:
			src._unregister_view(self)
		self._private = detached
		self._source_ref = weakref.ref(detached)
		self._positions = list(range(len(detached)))
		self._stale = False
		self._state = ViewState.DETACHED
		logger.debug("view detached onto a private Series of %d value(s)", len(detached))

	def update_value(self, label, new_values, in_place: bool = False) -> None:
		"""
		Overwrite the viewed values under ``label``.

		``new_values`` must hold one value (broadcast) or one per position of
		``label`` in this view. ``in_place`` writes through to the source;
		otherwise the view first detaches onto a private copy and writes there.
		"""
		slots = self._slots(label)
		if not slots:
			raise KeyNotFoundError(label)
		new_values = _as_value_list(new_values)
		if len(new_values) == 1:
			new_values = new_values * len(slots)
		elif len(new_values) != len(slots):
			raise InvalidOperationError(
				f"Label {label!r} has {len(slots)} position(s) in this view, "
				f"got {len(new_values)} value(s)"
			)

		if not in_place and self._state is not ViewState.DETACHED:
			self._detach()
		self._source()._write_positions([self._positions[i] for i in slots], new_values)


# ============================================================
# GroupView
# ============================================================

class GroupView:
	"""
	Partition of a Series' positions by a key, with per-group reductions.

	Examples
	--------
	>>> s = Series([1, 2, 3, None], labels=["x", "y", "x", "y"])
	>>> g = s.group_by_label()
	>>> g.sum(), g.count()
	({'x': 4, 'y': 2}, {'x': 2, 'y': 2})
	"""

	def __init__(self, source: Series, groups: dict):
		self._source = source
		self._groups = groups

	@classmethod
	def by_label(cls, source: Series) -> GroupView:
		index = source.index
		groups = {}
		for label in index.distinct():
			found = index.positions(label)
			if found:
				groups[label] = found
		return cls(source, groups)

	@classmethod
	def by_value(cls, source: Series) -> GroupView:
		"""Groups keyed by distinct value; null positions belong to no group."""
		groups = {}
		for pos, value in enumerate(source):
			if value is None:
				continue
			if _is_nan(value):
				value = NAN_KEY
			try:
				groups.setdefault(value, []).append(pos)
			except TypeError:
				raise InvalidArgumentError(
					f"Cannot group by unhashable value {value!r}"
				) from None
		return cls(source, groups)

	@property
	def source(self) -> Series:
		return self._source

	def keys(self) -> list:
		return list(self._groups)

	def __iter__(self):
		return iter(list(self._groups))

	def __len__(self):
		return len(self._groups)

	def __contains__(self, key):
		if _is_nan(key):
			key = NAN_KEY
		try:
			return key in self._groups
		except TypeError:
			return False

	def _positions(self, key) -> List[int]:
		if _is_nan(key):
			key = NAN_KEY
		try:
			return self._groups[key]
		except (KeyError, TypeError):
			raise KeyNotFoundError(key) from None

	def positions(self, key) -> List[int]:
		return list(self._positions(key))

	def get_group(self, key) -> Series:
		return self._source.take(self.positions(key))

	__getitem__ = get_group

	def filter(self, predicate: Callable[[Series], bool]) -> GroupView:
		"""Groups whose materialized Series satisfies ``predicate``, as a new GroupView."""
		kept = {k: list(v) for k, v in self._groups.items() if predicate(self.get_group(k))}
		return GroupView(self._source, kept)

	# ============================================================
	# Element access
	# ============================================================

	def first(self, key):
		return self.nth(key, 0)

	def last(self, key):
		return self.nth(key, -1)

	def nth(self, key, n: int):
		"""
		Value at the ``n``-th position of group ``key``, in source order.

		Negative ``n`` counts from the end. Raises KeyNotFoundError for an
		unknown key and IndexOutOfRangeError when the group is too short.
		"""
		found = self._positions(key)
		if not -len(found) <= n < len(found):
			raise IndexOutOfRangeError(
				f"Group {key!r} has {len(found)} position(s), no element {n}"
			)
		return self._source.value_at(found[n])

	def count(self) -> dict:
		"""Positions per group, nulls included."""
		return {k: len(v) for k, v in self._groups.items()}

	def sum(self) -> dict:
		"""Per-group sum of present values; an all-null group sums to the kind's zero."""
		dtype = self._source.dtype
		src = self._source
		return {
			k: sum_values(dtype, (src.value_at(p) for p in v))
			for k, v in self._groups.items()
		}

	def mean(self) -> dict:
		dtype = self._source.dtype
		src = self._source
		return {
			k: mean_values(dtype, [src.value_at(p) for p in v])
			for k, v in self._groups.items()
		}

	def _extreme(self, comparer: Optional[Callable], largest: bool) -> dict:
		src = self._source
		key_fn = cmp_to_key(comparer) if comparer is not None else None
		pick = max if largest else min
		out = {}
		for k, found in self._groups.items():
			present = [
				v for v in (src.value_at(p) for p in found)
				if v is not None and not _is_nan(v)
			]
			out[k] = pick(present, key=key_fn, default=None)
		return out

	def min(self, comparer: Callable = None) -> dict:
		"""
		Per-group smallest present value.

		Parameters
		----------
		comparer : callable, optional
			cmp-style function ``(a, b) -> int``; natural ordering when omitted

		Returns
		-------
		dict
			Group key to value; a group with no present value maps to None
		"""
		return self._extreme(comparer, largest=False)

	def max(self, comparer: Callable = None) -> dict:
		"""Per-group largest present value; see ``min``."""
		return self._extreme(comparer, largest=True)

	def apply(self, fn: Callable[[Series], Any]) -> dict:
		"""Run ``fn`` on each group materialized as a Series."""
		return {k: fn(self.get_group(k)) for k in self._groups}

	def aggregate(self, aggregations: Dict[str, Callable[[Series], Any]]) -> dict:
		"""
		Several named reductions at once.

		Examples
		--------
		>>> s = Series([1, 2, 3], labels=["x", "y", "x"])
		>>> s.group_by_label().aggregate({"n": len, "total": Series.sum})
		{'x': {'n': 2, 'total': 4}, 'y': {'n': 1, 'total': 2}}
		"""
		out = {}
		for k in self._groups:
			group = self.get_group(k)
			out[k] = {name: fn(group) for name, fn in aggregations.items()}
		return out

	def transform(self, fn: Callable[[Any], Any], name=None) -> Series:
		"""
		New Series of ``fn`` applied to every grouped value.

		Values come out group by group, each carrying its source label.
		"""
		src = self._source
		values, labels = [], []
		for found in self._groups.values():
			for p in found:
				values.append(fn(src.value_at(p)))
				labels.append(src.index.label_at(p))
		return Series(values, labels=labels, name=name)

	def __repr__(self):
		return f"GroupView({len(self)} groups over {len(self._source)} values)"
