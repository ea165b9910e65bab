"""
Library-wide options.

A single module-level ``options`` instance is read by the index and series
code at call time, so changes take effect immediately.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, fields

from .errors import InvalidArgumentError

_UNICODE_FORMS = ("NFC", "NFD", "NFKC", "NFKD")


@dataclass
class Options:
    """
    Attributes
    ----------
    normalize_unicode : bool
        Normalize string labels (and lookup probes) before hashing.
    unicode_form : str
        One of NFC, NFD, NFKC, NFKD.
    warn_on_null_coercion : bool
        Emit a UserWarning when non-strict conversion replaces values with None.
    """

    normalize_unicode: bool = True
    unicode_form: str = "NFC"
    warn_on_null_coercion: bool = True

    def __setattr__(self, key, value):
        if key not in {f.name for f in fields(self)}:
            raise InvalidArgumentError(f"Unknown option: {key!r}")
        if key == "unicode_form" and value not in _UNICODE_FORMS:
            raise InvalidArgumentError(
                f"unicode_form must be one of {_UNICODE_FORMS}, got {value!r}"
            )
        object.__setattr__(self, key, value)

    @contextmanager
    def override(self, **changes):
        """Temporarily change options inside a ``with`` block."""
        saved = {k: getattr(self, k) for k in changes if hasattr(self, k)}
        try:
            for k, v in changes.items():
                setattr(self, k, v)
            yield self
        finally:
            for k, v in saved.items():
                object.__setattr__(self, k, v)


options = Options()
