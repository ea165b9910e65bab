"""
Bit-packed null tracking.

One bit per position, packed into 32-bit words. A set bit means the
position is null. The bitmap knows nothing about the value buffer it
shadows.
"""

from __future__ import annotations

from array import array
from typing import Iterable, Iterator

from .errors import IndexOutOfRangeError

_WORD_BITS = 32


def _word_count(length: int) -> int:
    return (length + _WORD_BITS - 1) // _WORD_BITS


class NullBitMap:
    """
    Fixed-size null flags grouped into 32-bit words.

    Examples
    --------
    >>> bm = NullBitMap(40)
    >>> bm.set_null(33, True)
    >>> bm.is_null(33), bm.count_nulls()
    (True, 1)
    """

    __slots__ = ("_words", "_length")

    def __init__(self, length: int = 0):
        if length < 0:
            raise IndexOutOfRangeError(f"Bitmap length must be >= 0, got {length}")
        self._length = length
        self._words = array("I", [0]) * _word_count(length)

    @classmethod
    def from_flags(cls, flags: Iterable[bool]) -> NullBitMap:
        flags = list(flags)
        bm = cls(len(flags))
        for pos, flag in enumerate(flags):
            if flag:
                bm._words[pos >> 5] |= 1 << (pos & 31)
        return bm

    def __len__(self) -> int:
        return self._length

    def _check(self, pos: int) -> None:
        if not 0 <= pos < self._length:
            raise IndexOutOfRangeError(
                f"Position {pos} out of range for bitmap of length {self._length}"
            )

    def set_null(self, pos: int, flag: bool = True) -> None:
        self._check(pos)
        mask = 1 << (pos & 31)
        if flag:
            self._words[pos >> 5] |= mask
        else:
            self._words[pos >> 5] &= ~mask & 0xFFFFFFFF

    def is_null(self, pos: int) -> bool:
        self._check(pos)
        return bool(self._words[pos >> 5] & (1 << (pos & 31)))

    def count_nulls(self) -> int:
        """Population count across all words."""
        total = 0
        for word in self._words:
            # Kernighan: each step clears the lowest set bit
            while word:
                word &= word - 1
                total += 1
        return total

    def any_null(self) -> bool:
        return any(self._words)

    def null_positions(self) -> Iterator[int]:
        for w, word in enumerate(self._words):
            base = w * _WORD_BITS
            while word:
                low = word & -word
                yield base + low.bit_length() - 1
                word ^= low

    def append(self, flag: bool = False) -> None:
        pos = self._length
        self._length += 1
        if _word_count(self._length) > len(self._words):
            self._words.append(0)
        if flag:
            self._words[pos >> 5] |= 1 << (pos & 31)

    def take(self, positions: Iterable[int]) -> NullBitMap:
        """New bitmap whose i-th bit is this bitmap's bit at positions[i]."""
        return NullBitMap.from_flags(self.is_null(p) for p in positions)

    def clone(self) -> NullBitMap:
        bm = NullBitMap.__new__(NullBitMap)
        bm._length = self._length
        bm._words = array("I", self._words)
        return bm

    def __iter__(self) -> Iterator[bool]:
        for pos in range(self._length):
            yield bool(self._words[pos >> 5] & (1 << (pos & 31)))

    def __eq__(self, other):
        if not isinstance(other, NullBitMap):
            return NotImplemented
        return self._length == other._length and self._words == other._words

    def __repr__(self):
        return f"NullBitMap(length={self._length}, nulls={self.count_nulls()})"
