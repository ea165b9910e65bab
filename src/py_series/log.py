"""Logging helpers for py-series."""

from __future__ import annotations

import logging

_PACKAGE = "py_series"

logging.getLogger(_PACKAGE).addHandler(logging.NullHandler())


def get_logger(name: str = _PACKAGE) -> logging.Logger:
    """Return a logger under the py_series namespace.

    The library never configures handlers beyond a ``NullHandler``;
    applications decide where records go.

    Parameters
    ----------
    name : str
        Usually ``__name__`` of the calling module.
    """
    if name != _PACKAGE and not name.startswith(_PACKAGE + "."):
        name = f"{_PACKAGE}.{name}"
    return logging.getLogger(name)
