"""
Position arithmetic shared by index slicing and views.
"""

from .errors import IndexOutOfRangeError, InvalidArgumentError


def inclusive_range(start: int, end: int, step: int, length: int) -> range:
    """
    Positions from ``start`` to ``end`` inclusive, walking by ``step``.

    Args:
        start: First position.
        end: Last position (included when reachable by step).
        step: Non-zero stride whose sign matches the direction start -> end.
        length: Sequence length the positions must fall inside.

    Returns:
        A range object over the selected positions.
    """
    if step == 0:
        raise InvalidArgumentError("step cannot be zero")
    if (start < end and step < 0) or (start > end and step > 0):
        raise InvalidArgumentError(
            f"step {step} moves away from end position {end} (start {start})"
        )
    for p in (start, end):
        if not 0 <= p < length:
            raise IndexOutOfRangeError(f"Position {p} out of range [0, {length})")
    return range(start, end + (1 if step > 0 else -1), step)


def as_progression(positions):
    """(first, last, step) if positions form an arithmetic progression, else None."""
    n = len(positions)
    if n == 0:
        return None
    if n == 1:
        return positions[0], positions[0], 1
    step = positions[1] - positions[0]
    if step == 0:
        return None
    for i in range(2, n):
        if positions[i] - positions[i - 1] != step:
            return None
    return positions[0], positions[-1], step
