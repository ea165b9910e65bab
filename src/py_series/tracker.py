# py_series/tracker.py

import weakref

from .errors import InvalidOperationError
from .log import get_logger

logger = get_logger(__name__)


class ViewRegistry:
    """
    Tracks which views watch one Series for label-set changes.

    Key design points:
    - One registry per Series; entries are weakref.ref(view)
    - Views are never hashed (identity comparison only)
    - The registry never keeps a view alive, and views never need to
      unregister before they die
    - Dead references are pruned on every walk
    """

    __slots__ = ("_refs",)

    def __init__(self):
        self._refs = []

    def _cleanup_dead_refs(self):
        """Remove any weakrefs that no longer point to a live object."""
        self._refs = [r for r in self._refs if r() is not None]

    def register(self, view):
        """Start notifying ``view``. Registering the same view twice is an error."""
        self._cleanup_dead_refs()
        for r in self._refs:
            if r() is view:
                raise InvalidOperationError("View is already registered with this Series")
        self._refs.append(weakref.ref(view))

    def unregister(self, view):
        """Stop notifying ``view``; unknown views are ignored."""
        alive = []
        for r in self._refs:
            obj = r()
            if obj is None or obj is view:
                continue
            alive.append(r)
        self._refs = alive

    def notify(self, source):
        """Tell every live view that ``source`` changed its label set."""
        self._cleanup_dead_refs()
        views = [r() for r in self._refs]
        for view in views:
            if view is not None:
                view._on_source_changed(source)
        if views:
            logger.debug("notified %d view(s) of label change", len(views))

    def __len__(self):
        self._cleanup_dead_refs()
        return len(self._refs)

    def __contains__(self, view):
        return any(r() is view for r in self._refs)
