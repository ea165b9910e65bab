"""Display and repr logic for Series and SeriesView."""

from __future__ import annotations

from datetime import datetime
from typing import List

from .errors import IndexOutOfRangeError, InvalidOperationError
from .typing import Kind, is_numeric_kind


# How many rows to show on each side of the "..." marker
MAX_HEAD_ROWS = 5


def _needs_quoting(name: str) -> bool:
	"""A name needs quoting if it contains anything outside [A-Za-z0-9_]
	OR has leading/trailing whitespace."""
	if not name:
		return False
	if name != name.strip():
		return True
	return not all(c.isalnum() or c == "_" for c in name)


def _preview(items: list, max_preview: int = MAX_HEAD_ROWS) -> list:
	if len(items) > max_preview * 2:
		return list(items[:max_preview]) + [...] + list(items[-max_preview:])
	return list(items)


def _format_value(v, kind: Kind) -> str:
	if v is ...:
		return "..."
	if v is None:
		return "null"
	if kind is Kind.DOUBLE:
		return f"{v:.1f}" if v == v and abs(v) != float("inf") and v == int(v) else f"{v:g}"
	if kind is Kind.DATETIME and isinstance(v, datetime):
		return v.isoformat(sep=" ")
	if kind is Kind.STRING or kind is Kind.CHAR:
		return repr(str(v))
	return str(v)


def _format_label(label) -> str:
	if label is ...:
		return "..."
	if isinstance(label, str):
		return label
	return str(label)


def _body(labels: list, values: list, kind: Kind) -> List[str]:
	"""Two aligned columns: labels left-justified, values by kind."""
	shown_labels = [_format_label(x) for x in _preview(labels)]
	shown_values = [_format_value(v, kind) for v in _preview(values)]

	label_width = max((len(s) for s in shown_labels), default=0)
	value_width = max((len(s) for s in shown_values), default=0)
	numeric = is_numeric_kind(kind)

	lines = []
	for lab, val in zip(shown_labels, shown_values):
		cell = val.rjust(value_width) if numeric else val.ljust(value_width)
		lines.append(f"{lab.ljust(label_width)}  {cell}".rstrip())
	return lines


def _footer(count: int, dtype, noun: str) -> str:
	if count == 0:
		return f"# empty {noun} {dtype!r}"
	return f"# {count} element {noun} {dtype!r}"


def _repr_series(s) -> str:
	"""Pretty repr for a Series."""
	lines = []
	name = s.name
	if isinstance(name, str):
		if name:
			lines.append(repr(name) if _needs_quoting(name) else name)
	elif name is not None:
		lines.append(repr(name))
	lines.extend(_body(s.labels, s.values, s.dtype.kind))
	lines.append("")
	lines.append(_footer(len(s), s.dtype, "series"))
	return "\n".join(lines)


def _repr_view(v) -> str:
	"""Pretty repr for a SeriesView; states the view's state and staleness."""
	try:
		src = v._source()
		values = v.values
	except InvalidOperationError:
		return f"<SeriesView {v.state.value}, source released>"
	except IndexOutOfRangeError:
		return f"<SeriesView {v.state.value}, stale positions; call resynchronize()>"
	lines = _body(v.labels, values, src.dtype.kind)
	lines.append("")
	stale = ", stale" if v.is_stale else ""
	lines.append(f"# view of {len(v)} position(s) <{v.state.value}{stale}>")
	return "\n".join(lines)
