"""
hierarchy/manager.py

HierarchyManager: the only writer of the annotation tree.

Every public mutator either completes fully and fires the change callback
once, or leaves the tree exactly as it was.  Structural rejections come
back as an :class:`~hierarchy.outcome.Outcome`; operations on unknown ids
are silent no-ops.
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional, Sequence

from debug_trace import trace, trace_call
from geometry import Rect
from hierarchy.coords import CoordinateEngine, HierarchyEntry
from hierarchy.drag import DragOverlay, DragSession
from hierarchy.hit_test import HitTester
from hierarchy.outcome import InvalidDocumentError, Outcome, Violation
from hierarchy.store import AnnotationStore
from models import (
    CONTAINER_COMPONENT_KIND,
    MAX_DEPTH,
    READ_ONLY_FIELDS,
    Annotation,
    FlexLayout,
    GridLayout,
    LayoutType,
    ReferenceImage,
    resolve_field_name,
)
from schemas import get_layout_defaults, validate_document
from settings import get_settings

log = logging.getLogger(__name__)

# Minimum on-screen size, in image pixels, for a drawn selection to become an annotation
MIN_DRAW_PIXELS = 10


class HierarchyManager:
    """Owns the annotation tree, the current selection and the drag overlay.

    Args:
        store: Existing arena to manage; a new empty one if omitted.
        image: Reference image info (name and natural pixel size).
        default_component_kind: Component kind for :meth:`add`; taken from
            settings when omitted.
    """

    def __init__(self, store: Optional[AnnotationStore] = None,
                 image: Optional[ReferenceImage] = None,
                 default_component_kind: Optional[str] = None):
        self.store = store if store is not None else AnnotationStore()
        self.image = image if image is not None else ReferenceImage()
        self.overlay = DragOverlay()
        self.engine = CoordinateEngine(self.store, self.overlay)
        self._committed = CoordinateEngine(self.store)
        self.hit_tester = HitTester(self.store, self.engine)
        self.selected_id: Optional[str] = None

        defaults = Annotation.get_creation_defaults()
        self.default_component_kind = default_component_kind or defaults["component_kind"]
        self.default_color = defaults["color"]
        self.duplicate_offset = get_settings().settings.annotations.duplicate_offset

        self._on_changed: Optional[Callable[["HierarchyManager"], None]] = None

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def set_on_changed(self, callback: Optional[Callable[["HierarchyManager"], None]]):
        """Set callback fired once after every successful mutation."""
        self._on_changed = callback

    def _notify_changed(self):
        if self._on_changed:
            self._on_changed(self)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, ann_id: Optional[str]) -> Optional[Annotation]:
        return self.store.get(ann_id)

    @property
    def selected(self) -> Optional[Annotation]:
        return self.store.get(self.selected_id)

    def roots(self) -> List[Annotation]:
        return self.store.roots()

    def absolute_position(self, ann: Annotation) -> Rect:
        return self.engine.absolute_position(ann)

    def depth(self, ann: Annotation) -> int:
        return self.engine.depth(ann)

    def hierarchical_list(self) -> List[HierarchyEntry]:
        return self.engine.hierarchical_list()

    def hit_test(self, x: float, y: float) -> Optional[str]:
        return self.hit_tester.hit_test(x, y)

    def hit_test_pixels(self, px: float, py: float) -> Optional[str]:
        """Hit test a point given in the reference image's natural pixels."""
        return self.hit_tester.hit_test_pixels(px, py, self.image.width, self.image.height)

    # ------------------------------------------------------------------
    # Creation / selection / deletion
    # ------------------------------------------------------------------

    @trace_call("HIERARCHY")
    def add(self, x: float, y: float, w: float, h: float) -> Annotation:
        """Create a root annotation and select it."""
        ann = Annotation(
            id=self.store.new_id(),
            x=x, y=y, w=w, h=h,
            component_kind=self.default_component_kind,
            color=self.default_color,
        )
        self.store.insert(ann)
        self.selected_id = ann.id
        trace(f"added {ann.id} at ({x:.4f}, {y:.4f}, {w:.4f}, {h:.4f})", "HIERARCHY")
        self._notify_changed()
        return ann

    def add_from_drag(self, x1: float, y1: float, x2: float, y2: float,
                      min_pixels: float = MIN_DRAW_PIXELS) -> Optional[Annotation]:
        """Create a root annotation from a rubber-band selection in image pixels.

        Corners are clamped to the image and may come in any drag
        direction.  Selections no larger than *min_pixels* in either
        dimension are ignored.

        Returns:
            The new annotation, or None if the selection was too small.

        Raises:
            ValueError: If the reference image has no size.
        """
        if not self.image.has_size:
            raise ValueError("reference image size is unknown")
        iw, ih = self.image.width, self.image.height
        px = Rect.from_corners(
            min(max(x1, 0), iw), min(max(y1, 0), ih),
            min(max(x2, 0), iw), min(max(y2, 0), ih),
        )
        if px.w <= min_pixels or px.h <= min_pixels:
            log.debug("ignored %.1fx%.1f px selection", px.w, px.h)
            return None
        rect = Rect.from_pixels(px.x, px.y, px.w, px.h, iw, ih)
        return self.add(*rect.as_tuple())

    def select(self, ann_id: Optional[str]) -> None:
        """Select *ann_id*; None or an unknown id clears the selection."""
        self.selected_id = ann_id if ann_id in self.store else None
        self._notify_changed()

    @trace_call("HIERARCHY")
    def delete(self, ann_id: str) -> List[str]:
        """Delete an annotation and its whole subtree.

        Returns:
            Ids removed, children before parents; empty if *ann_id* is unknown.
        """
        ann = self.store.get(ann_id)
        if ann is None:
            log.debug("delete: no annotation %s", ann_id)
            return []

        doomed = [ann] + self.store.descendants(ann_id)
        parent = self.store.get(ann.parent_id)
        if parent is not None:
            parent.children = [c for c in parent.children if c != ann_id]

        removed = []
        for node in reversed(doomed):
            self.store.remove(node.id)
            self.overlay.clear(node.id)
            removed.append(node.id)

        if self.selected_id in removed:
            self.selected_id = None
        trace(f"deleted {len(removed)} annotation(s) under {ann_id}", "HIERARCHY")
        self._notify_changed()
        return removed

    @trace_call("HIERARCHY")
    def duplicate(self, ann_id: str) -> Optional[Annotation]:
        """Deep-copy the subtree at *ann_id* as a sibling of the original.

        Only the copy of *ann_id* itself is shifted (by the configured
        duplicate offset, in its own frame); descendants keep their
        relative offsets.  Selection moves to the copy.

        Returns:
            The copied root, or None if *ann_id* is unknown.
        """
        source = self.store.get(ann_id)
        if source is None:
            log.debug("duplicate: no annotation %s", ann_id)
            return None

        id_map: Dict[str, str] = {}
        clones: List[Annotation] = []

        def duplicate_recursive(ann: Annotation, new_parent_id: Optional[str],
                                dx: float, dy: float) -> None:
            new_id = self.store.new_id()
            id_map[ann.id] = new_id
            clone = replace(
                ann,
                id=new_id,
                x=ann.x + dx,
                y=ann.y + dy,
                parent_id=new_parent_id,
                children=[],
                flex_layout=replace(ann.flex_layout) if ann.flex_layout else None,
                grid_layout=replace(ann.grid_layout) if ann.grid_layout else None,
            )
            clones.append(clone)
            for child in self.store.ordered_children(ann.id):
                duplicate_recursive(child, new_id, 0.0, 0.0)
                clone.children.append(id_map[child.id])

        offset = self.duplicate_offset
        duplicate_recursive(source, source.parent_id, offset, offset)
        for clone in clones:
            self.store.insert(clone)

        parent = self.store.get(source.parent_id)
        if parent is not None:
            parent.children.append(clones[0].id)

        self.selected_id = clones[0].id
        trace(f"duplicated {ann_id} -> {clones[0].id} ({len(clones)} node(s))", "HIERARCHY")
        self._notify_changed()
        return clones[0]

    # ------------------------------------------------------------------
    # Field updates
    # ------------------------------------------------------------------

    @trace_call("HIERARCHY")
    def update_field(self, ann_id: str, field_name: str, value: Any) -> Outcome:
        """Set one field, by record key (``layoutType``) or attribute name.

        Setting a container ``layoutType`` also sets ``componentKind`` to
        ``"Box"`` and seeds missing flex/grid settings, in the same update.
        """
        ann = self.store.get(ann_id)
        if ann is None:
            return self._reject(Violation.NOT_FOUND, f"Annotation {ann_id} does not exist.")

        attr = resolve_field_name(field_name)
        if attr is None:
            return self._reject(Violation.UNKNOWN_FIELD, f"Unknown field '{field_name}'.")
        if attr in READ_ONLY_FIELDS:
            return self._reject(
                Violation.READ_ONLY_FIELD,
                f"Field '{field_name}' cannot be edited directly; use reparent for hierarchy changes.",
            )

        changes: Dict[str, Any] = {}
        try:
            if attr in ("x", "y", "w", "h"):
                if isinstance(value, bool) or not isinstance(value, (int, float)):
                    raise ValueError(f"{field_name} must be a number, got {value!r}")
                if not math.isfinite(value):
                    raise ValueError(f"{field_name} must be finite, got {value!r}")
                changes[attr] = float(value)
            elif attr in ("component_kind", "motion_info", "color"):
                if not isinstance(value, str):
                    raise ValueError(f"{field_name} must be a string, got {value!r}")
                changes[attr] = value
            elif attr == "flex_layout":
                changes[attr] = None if value is None else FlexLayout.from_dict(value)
            elif attr == "grid_layout":
                changes[attr] = None if value is None else GridLayout.from_dict(value)
            elif attr == "layout_type":
                if value not in LayoutType.ALL:
                    raise ValueError(f"layoutType must be one of {LayoutType.ALL}, got {value!r}")
                changes[attr] = value
        except ValueError as e:
            return self._reject(Violation.INVALID_VALUE, str(e))

        if attr == "layout_type":
            new_type = changes[attr]
            if new_type == LayoutType.NONE:
                if self.store.children_of(ann.id):
                    return self._reject(
                        Violation.HAS_CHILDREN,
                        f"{ann.id} still contains child elements; move or delete them first.",
                    )
            else:
                changes["component_kind"] = CONTAINER_COMPONENT_KIND
                if new_type == LayoutType.FLEX and ann.flex_layout is None:
                    changes["flex_layout"] = FlexLayout.from_dict(get_layout_defaults("flex"))
                elif new_type == LayoutType.GRID and ann.grid_layout is None:
                    changes["grid_layout"] = GridLayout.from_dict(get_layout_defaults("grid"))

        for name, v in changes.items():
            setattr(ann, name, v)
        self._notify_changed()
        return Outcome.success()

    def update_component_kind(self, ann_id: str, kind: str) -> Outcome:
        """Set the component kind; any string is accepted."""
        return self.update_field(ann_id, "componentKind", kind)

    # ------------------------------------------------------------------
    # Geometry updates (absolute in, relative stored)
    # ------------------------------------------------------------------

    def _to_parent_frame(self, ann: Annotation, rect: Rect) -> Rect:
        """Convert an absolute rect into *ann*'s parent frame, as of now."""
        parent = self.store.get(ann.parent_id)
        if parent is None:
            return rect
        return rect.relative_to(self.engine.absolute_position(parent))

    @trace_call("HIERARCHY")
    def update_position(self, ann_id: str, abs_x: float, abs_y: float) -> None:
        """Move an annotation to an absolute position; size unchanged."""
        ann = self.store.get(ann_id)
        if ann is None:
            log.debug("update_position: no annotation %s", ann_id)
            return
        rel = self._to_parent_frame(ann, Rect(abs_x, abs_y, ann.w, ann.h))
        ann.x, ann.y = rel.x, rel.y
        self._notify_changed()

    @trace_call("HIERARCHY")
    def update_size(self, ann_id: str, abs_x: float, abs_y: float,
                    abs_w: float, abs_h: float) -> None:
        """Set an annotation's absolute position and size."""
        ann = self.store.get(ann_id)
        if ann is None:
            log.debug("update_size: no annotation %s", ann_id)
            return
        ann.set_rect(self._to_parent_frame(ann, Rect(abs_x, abs_y, abs_w, abs_h)))
        self._notify_changed()

    def begin_drag(self, ann_id: str) -> DragSession:
        """Start a drag gesture; see :class:`~hierarchy.drag.DragSession`."""
        session = DragSession(self, ann_id)
        session.begin()
        return session

    # ------------------------------------------------------------------
    # Reparenting
    # ------------------------------------------------------------------

    def _reject(self, violation: str, message: str) -> Outcome:
        log.info("rejected (%s): %s", violation, message)
        return Outcome.reject(violation, message)

    def check_reparent(self, child_id: str, new_parent_id: Optional[str]) -> Outcome:
        """Validate a reparent without performing it."""
        if child_id == new_parent_id:
            return self._reject(Violation.SELF_PARENT, "An element cannot be its own parent.")

        child = self.store.get(child_id)
        if child is None:
            return self._reject(Violation.NOT_FOUND, f"Annotation {child_id} does not exist.")

        if new_parent_id is None:
            return Outcome.success()

        parent = self.store.get(new_parent_id)
        if parent is None:
            return self._reject(Violation.PARENT_NOT_FOUND,
                                f"Parent annotation {new_parent_id} does not exist.")

        if not parent.is_container:
            return self._reject(Violation.NOT_A_CONTAINER,
                                "The parent element must be a Box, Flex, or Grid layout.")

        if self.store.is_descendant(new_parent_id, child_id):
            return self._reject(Violation.CYCLE,
                                f"{new_parent_id} is inside {child_id}; an element cannot contain its ancestor.")

        deepest = self.engine.depth(parent) + 1 + self.store.subtree_height(child_id)
        if deepest > MAX_DEPTH:
            return self._reject(Violation.DEPTH_LIMIT,
                                f"Nesting is limited to {MAX_DEPTH + 1} levels.")

        return Outcome.success()

    @trace_call("HIERARCHY")
    def reparent(self, child_id: str, new_parent_id: Optional[str]) -> Outcome:
        """Move *child_id* under *new_parent_id* (None detaches to root).

        The child's committed absolute rectangle is unchanged; only its
        stored relative geometry is rewritten for the new frame.  Live drag
        offsets are not folded in.
        """
        outcome = self.check_reparent(child_id, new_parent_id)
        if not outcome:
            return outcome

        child = self.store.get(child_id)
        if child.parent_id == new_parent_id:
            return outcome

        current_abs = self._committed.absolute_position(child)
        new_parent = self.store.get(new_parent_id)
        if new_parent is not None:
            new_rel = current_abs.relative_to(self._committed.absolute_position(new_parent))
        else:
            new_rel = current_abs

        old_parent = self.store.get(child.parent_id)
        child.set_rect(new_rel)
        child.parent_id = new_parent_id
        if old_parent is not None:
            old_parent.children = [c for c in old_parent.children if c != child_id]
        if new_parent is not None:
            new_parent.children.append(child_id)

        trace(f"reparented {child_id} -> {new_parent_id}", "HIERARCHY")
        self._notify_changed()
        return outcome

    # ------------------------------------------------------------------
    # Re-import
    # ------------------------------------------------------------------

    def load_records(self, records: Sequence[Dict[str, Any]],
                     validate: Optional[bool] = None) -> None:
        """Replace the tree with previously exported records.

        ``children`` caches are rebuilt from ``parentId``.  Selection and
        drag state are cleared.

        Raises:
            InvalidDocumentError: The records fail schema validation or
                break a structural rule.  The current tree is kept.
        """
        if isinstance(records, tuple):
            records = list(records)
        if validate is None:
            validate = get_settings().settings.export.validate_records
        if validate:
            ok, errors = validate_document(records)
            if not ok:
                raise InvalidDocumentError(errors)
        if not isinstance(records, list):
            raise InvalidDocumentError([f"root: expected an array of records, got {type(records).__name__}"])

        errors: List[str] = []
        staged = AnnotationStore()
        for i, rec in enumerate(records):
            if not isinstance(rec, dict):
                errors.append(f"{i}: record is not an object")
                continue
            try:
                ann = Annotation.from_dict(rec)
            except (TypeError, ValueError) as e:
                errors.append(f"{i}: {e}")
                continue
            if ann.id in staged:
                errors.append(f"{i}: duplicate id {ann.id}")
                continue
            staged.insert(ann)

        for ann in staged:
            if not ann.parent_id:
                continue
            parent = staged.get(ann.parent_id)
            if parent is None:
                log.warning("annotation %s refers to missing parent %s; treating it as a root",
                            ann.id, ann.parent_id)
                continue
            if not parent.is_container:
                errors.append(f"{ann.id}: parent {parent.id} is not a layout container")
            if self._has_parent_loop(staged, ann):
                errors.append(f"{ann.id}: parent chain loops")
            elif len(staged.ancestors(ann.id)) > MAX_DEPTH:
                errors.append(f"{ann.id}: nested deeper than {MAX_DEPTH + 1} levels")

        if errors:
            raise InvalidDocumentError(errors)

        staged.rebuild_children()
        self.store.clear()
        for ann in staged:
            self.store.insert(ann)
        self.overlay.clear_all()
        self.selected_id = None
        log.info("loaded %d annotation(s)", len(self.store))
        self._notify_changed()

    @staticmethod
    def _has_parent_loop(store: AnnotationStore, ann: Annotation) -> bool:
        seen = {ann.id}
        node = ann
        while node.parent_id:
            parent = store.get(node.parent_id)
            if parent is None:
                return False
            if parent.id in seen:
                return True
            seen.add(parent.id)
            node = parent
        return False
