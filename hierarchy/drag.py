"""
hierarchy/drag.py

Live drag support: the transient offset overlay and the gesture session
that reconciles it into stored geometry.

An overlay entry is presentational only.  Nothing here writes geometry
except :meth:`DragSession.commit`, which goes through
``HierarchyManager.update_position``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, Iterator, Optional, Tuple

from debug_trace import trace
from geometry import Rect

if TYPE_CHECKING:
    from hierarchy.manager import HierarchyManager

log = logging.getLogger(__name__)


class DragOverlay:
    """Mapping of annotation id -> uncommitted ``(dx, dy)`` offset."""

    def __init__(self):
        self._offsets: Dict[str, Tuple[float, float]] = {}

    def set(self, ann_id: str, dx: float, dy: float) -> None:
        self._offsets[ann_id] = (dx, dy)

    def get(self, ann_id: str) -> Optional[Tuple[float, float]]:
        return self._offsets.get(ann_id)

    def clear(self, ann_id: str) -> None:
        self._offsets.pop(ann_id, None)

    def clear_all(self) -> None:
        self._offsets.clear()

    def __contains__(self, ann_id: object) -> bool:
        return ann_id in self._offsets

    def __len__(self) -> int:
        return len(self._offsets)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._offsets))


class DragSession:
    """One pointer-drag gesture on one annotation.

    Usage::

        with manager.begin_drag(ann_id) as drag:
            drag.move(abs_x, abs_y)   # on every pointer move
            drag.commit()             # on pointer up

    Leaving the ``with`` block without committing (pointer left the
    surface, exception in a handler) cancels the gesture, so the overlay
    entry never outlives it.

    Args:
        manager: The hierarchy manager owning the annotation.
        ann_id: Id of the annotation being dragged.
    """

    def __init__(self, manager: "HierarchyManager", ann_id: str):
        self.manager = manager
        self.ann_id = ann_id
        self.active = False
        self.origin: Optional[Rect] = None
        self.current: Optional[Tuple[float, float]] = None

    def begin(self) -> bool:
        """Start the gesture; False if the annotation does not exist."""
        ann = self.manager.get(self.ann_id)
        if ann is None:
            return False
        self.manager.overlay.clear(self.ann_id)
        self.origin = self.manager.engine.absolute_position(ann)
        self.current = (self.origin.x, self.origin.y)
        self.active = True
        trace(f"drag begin {self.ann_id} at ({self.origin.x:.4f}, {self.origin.y:.4f})", "DRAG")
        return True

    def move(self, abs_x: float, abs_y: float) -> None:
        """Record the pointer's absolute position; geometry is not touched."""
        if not self.active or self.origin is None:
            return
        self.current = (abs_x, abs_y)
        self.manager.overlay.set(self.ann_id, abs_x - self.origin.x, abs_y - self.origin.y)

    def commit(self, abs_x: Optional[float] = None, abs_y: Optional[float] = None) -> None:
        """Finish the gesture and write the final position.

        Defaults to the last position passed to :meth:`move`.
        """
        if not self.active:
            return
        if abs_x is None or abs_y is None:
            abs_x, abs_y = self.current
        self._end()
        self.manager.update_position(self.ann_id, abs_x, abs_y)
        trace(f"drag commit {self.ann_id} at ({abs_x:.4f}, {abs_y:.4f})", "DRAG")

    def cancel(self) -> None:
        """Abandon the gesture; the annotation snaps back to its stored position."""
        if not self.active:
            return
        self._end()
        log.debug("drag on %s cancelled", self.ann_id)

    def _end(self) -> None:
        self.manager.overlay.clear(self.ann_id)
        self.active = False

    def __enter__(self) -> "DragSession":
        if not self.active:
            self.begin()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cancel()
