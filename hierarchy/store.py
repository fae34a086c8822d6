"""
hierarchy/store.py

Arena of annotations keyed by id.

Insertion order is significant: it is the export order of records, the
order in which roots are listed, and the reverse of hit-test priority.
Parent/child structure is always derived from ``parent_id``; the
``children`` list on each annotation is only an ordering cache.
"""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Optional

from models import Annotation


class AnnotationStore:
    """Insertion-ordered id -> Annotation mapping with tree queries."""

    def __init__(self, annotations: Iterable[Annotation] = ()):
        self._items: Dict[str, Annotation] = {}
        self._id_counter = 1
        for ann in annotations:
            self.insert(ann)

    # ------------------------------------------------------------------
    # Container protocol
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Annotation]:
        return iter(list(self._items.values()))

    def __contains__(self, ann_id: object) -> bool:
        return ann_id in self._items

    def get(self, ann_id: Optional[str]) -> Optional[Annotation]:
        if ann_id is None:
            return None
        return self._items.get(ann_id)

    def ids(self) -> List[str]:
        return list(self._items)

    # ------------------------------------------------------------------
    # Mutation (HierarchyManager only)
    # ------------------------------------------------------------------

    def new_id(self) -> str:
        """Generate an annotation ID not present in the store.

        The counter only moves forward, so deleted ids are not handed out
        again either.
        """
        while True:
            s = f"a{self._id_counter:06d}"
            self._id_counter += 1
            if s not in self._items:
                return s

    def insert(self, ann: Annotation) -> None:
        if ann.id in self._items:
            raise KeyError(f"duplicate annotation id {ann.id!r}")
        self._items[ann.id] = ann

    def remove(self, ann_id: str) -> Optional[Annotation]:
        return self._items.pop(ann_id, None)

    def clear(self) -> None:
        self._items.clear()

    # ------------------------------------------------------------------
    # Tree queries
    # ------------------------------------------------------------------

    def children_of(self, ann_id: str) -> List[Annotation]:
        """Direct children by scanning ``parent_id``, in insertion order."""
        return [a for a in self._items.values() if a.parent_id == ann_id]

    def ordered_children(self, ann_id: str) -> List[Annotation]:
        """Direct children in cached order, then any the cache missed."""
        parent = self._items.get(ann_id)
        scanned = self.children_of(ann_id)
        if parent is None:
            return scanned
        by_id = {c.id: c for c in scanned}
        result = []
        for cid in parent.children:
            child = by_id.pop(cid, None)
            if child is not None:
                result.append(child)
        result.extend(c for c in scanned if c.id in by_id)
        return result

    def roots(self) -> List[Annotation]:
        """Annotations without a resolvable parent, in insertion order."""
        return [a for a in self._items.values() if a.parent_id not in self._items]

    def descendants(self, ann_id: str) -> List[Annotation]:
        """All transitive descendants of *ann_id* in pre-order."""
        result: List[Annotation] = []
        seen = {ann_id}
        stack = list(reversed(self.ordered_children(ann_id)))
        while stack:
            node = stack.pop()
            if node.id in seen:
                continue
            seen.add(node.id)
            result.append(node)
            stack.extend(reversed(self.ordered_children(node.id)))
        return result

    def subtree_height(self, ann_id: str) -> int:
        """Levels below *ann_id*: 0 for a leaf."""
        children = self.children_of(ann_id)
        if not children:
            return 0
        return 1 + max(self.subtree_height(c.id) for c in children)

    def ancestors(self, ann_id: str) -> List[Annotation]:
        """Resolvable ancestors, nearest first; stops at a dangling reference."""
        result: List[Annotation] = []
        seen = {ann_id}
        node = self._items.get(ann_id)
        while node is not None and node.parent_id:
            parent = self._items.get(node.parent_id)
            if parent is None or parent.id in seen:
                break
            seen.add(parent.id)
            result.append(parent)
            node = parent
        return result

    def is_descendant(self, candidate_id: str, ancestor_id: str) -> bool:
        """True if *ancestor_id* is a proper ancestor of *candidate_id*."""
        return any(a.id == ancestor_id for a in self.ancestors(candidate_id))

    def rebuild_children(self) -> None:
        """Recompute every ``children`` cache from ``parent_id``.

        Existing cache order is kept for entries that are still valid; new
        children are appended in insertion order.
        """
        for ann in self._items.values():
            ann.children = [c.id for c in self.ordered_children(ann.id)]
