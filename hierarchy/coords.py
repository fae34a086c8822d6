"""
hierarchy/coords.py

Absolute positions, depth, and the flattened hierarchy view.

Nothing is cached: every query walks the relative-coordinate tree and
folds in the live drag overlay, so there is no second copy of absolute
geometry to drift out of date.
"""

from __future__ import annotations

from typing import List, NamedTuple, Optional

from geometry import Rect
from hierarchy.drag import DragOverlay
from hierarchy.store import AnnotationStore
from models import Annotation


class HierarchyEntry(NamedTuple):
    """One row of the depth-annotated pre-order listing."""
    annotation: Annotation
    depth: int


class CoordinateEngine:
    """Resolves relative annotation geometry into the image frame.

    Args:
        store: The annotation arena.
        overlay: Live drag offsets; an empty overlay is used if omitted.
    """

    def __init__(self, store: AnnotationStore, overlay: Optional[DragOverlay] = None):
        self.store = store
        self.overlay = overlay if overlay is not None else DragOverlay()

    def _with_offset(self, ann: Annotation, rect: Rect) -> Rect:
        offset = self.overlay.get(ann.id)
        if offset is None:
            return rect
        return rect.offset(*offset)

    def _frame_of(self, ann: Annotation, seen: set) -> Rect:
        """Absolute frame of an ancestor, with its own drag offset applied."""
        seen.add(ann.id)
        parent = self.store.get(ann.parent_id)
        if parent is None or parent.id in seen:
            return self._with_offset(ann, ann.rect)
        return self._with_offset(ann, ann.rect.translate_to(self._frame_of(parent, seen)))

    def absolute_position(self, ann: Annotation) -> Rect:
        """Return *ann*'s rectangle in the image frame.

        Roots: stored geometry plus the root's own drag offset.  Others:
        the parent's absolute frame (including any drag offset on the parent
        or further up) translated by the stored ``x, y``.  Width and height
        are always the stored values.  A dangling ``parent_id`` is treated
        as a root.
        """
        parent = self.store.get(ann.parent_id)
        if parent is None:
            return self._with_offset(ann, ann.rect)
        return ann.rect.translate_to(self._frame_of(parent, {ann.id}))

    def depth(self, ann: Annotation) -> int:
        """Ancestor hops to a root; a dangling reference ends the walk."""
        return len(self.store.ancestors(ann.id))

    def hierarchical_list(self) -> List[HierarchyEntry]:
        """All annotations in pre-order, roots first, with their depth."""
        result: List[HierarchyEntry] = []

        def add_with_children(ann: Annotation, depth: int) -> None:
            result.append(HierarchyEntry(ann, depth))
            for child in self.store.children_of(ann.id):
                add_with_children(child, depth + 1)

        for root in self.store.roots():
            add_with_children(root, 0)
        return result
