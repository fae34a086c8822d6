"""Tests for hierarchy/manager.py: creation, selection, deletion,
duplication, field and geometry updates.
"""
from __future__ import annotations

import pytest

from hierarchy import HierarchyManager, Violation
from models import FlexLayout, GridLayout, LayoutType, ReferenceImage


# ─────────────────────────────────────────────────────────
# add / select
# ─────────────────────────────────────────────────────────


class TestAdd:
    def test_add_creates_selected_root(self, manager):
        ann = manager.add(0.1, 0.2, 0.3, 0.4)
        assert ann.parent_id is None
        assert ann.rect.as_tuple() == (0.1, 0.2, 0.3, 0.4)
        assert ann.layout_type == LayoutType.NONE
        assert ann.children == []
        assert manager.selected_id == ann.id

    def test_add_uses_session_default_kind(self):
        mgr = HierarchyManager(default_component_kind="Card")
        assert mgr.add(0, 0, 0.1, 0.1).component_kind == "Card"

    def test_add_default_kind_from_settings(self, isolated_settings):
        isolated_settings.settings.annotations.default_component_kind = "Input"
        assert HierarchyManager().add(0, 0, 0.1, 0.1).component_kind == "Input"

    def test_ids_are_unique(self, manager):
        ids = {manager.add(0, 0, 0.1, 0.1).id for _ in range(20)}
        assert len(ids) == 20

    def test_deleted_ids_are_not_reused(self, manager):
        first = manager.add(0, 0, 0.1, 0.1)
        manager.delete(first.id)
        assert manager.add(0, 0, 0.1, 0.1).id != first.id


class TestAddFromDrag:
    def test_creates_normalized_rect(self, manager):
        ann = manager.add_from_drag(480, 360, 80, 60)
        assert ann.rect.as_tuple() == pytest.approx((0.1, 0.1, 0.5, 0.5))

    def test_small_selection_ignored(self, manager):
        assert manager.add_from_drag(100, 100, 105, 300) is None
        assert len(manager.store) == 0

    def test_clamped_to_image(self, manager):
        ann = manager.add_from_drag(-50, -50, 400, 300)
        assert ann.rect.as_tuple() == pytest.approx((0.0, 0.0, 0.5, 0.5))

    def test_requires_image_size(self):
        with pytest.raises(ValueError):
            HierarchyManager(image=ReferenceImage(name="x.png")).add_from_drag(0, 0, 100, 100)


class TestSelect:
    def test_select_and_clear(self, manager):
        a = manager.add(0, 0, 0.1, 0.1)
        manager.add(0.5, 0.5, 0.1, 0.1)
        manager.select(a.id)
        assert manager.selected is a
        manager.select(None)
        assert manager.selected is None

    def test_select_unknown_clears(self, manager):
        manager.add(0, 0, 0.1, 0.1)
        manager.select("nope")
        assert manager.selected_id is None


# ─────────────────────────────────────────────────────────
# delete
# ─────────────────────────────────────────────────────────


class TestDelete:
    def test_cascades_to_subtree(self, manager, make_container):
        root = make_container(0.0, 0.0, 0.9, 0.9)
        mid = make_container(0.1, 0.1, 0.5, 0.5)
        leaf = manager.add(0.2, 0.2, 0.1, 0.1)
        other = manager.add(0.95, 0.95, 0.01, 0.01)
        assert manager.reparent(mid.id, root.id)
        assert manager.reparent(leaf.id, mid.id)

        removed = manager.delete(root.id)

        assert set(removed) == {root.id, mid.id, leaf.id}
        assert removed[-1] == root.id
        assert manager.store.ids() == [other.id]
        assert all(a.parent_id not in removed for a in manager.store)

    def test_clears_selection_of_deleted(self, manager):
        a = manager.add(0, 0, 0.1, 0.1)
        manager.delete(a.id)
        assert manager.selected_id is None

    def test_keeps_unrelated_selection(self, manager):
        a = manager.add(0, 0, 0.1, 0.1)
        b = manager.add(0.5, 0.5, 0.1, 0.1)
        manager.delete(a.id)
        assert manager.selected_id == b.id

    def test_removes_from_parent_children_cache(self, manager, make_container):
        box = make_container(0, 0, 1, 1)
        child = manager.add(0.1, 0.1, 0.1, 0.1)
        manager.reparent(child.id, box.id)
        manager.delete(child.id)
        assert box.children == []

    def test_unknown_id_is_noop(self, manager):
        manager.add(0, 0, 0.1, 0.1)
        assert manager.delete("missing") == []
        assert len(manager.store) == 1

    def test_clears_drag_overlay(self, manager):
        a = manager.add(0, 0, 0.1, 0.1)
        manager.overlay.set(a.id, 0.1, 0.1)
        manager.delete(a.id)
        assert a.id not in manager.overlay


# ─────────────────────────────────────────────────────────
# duplicate
# ─────────────────────────────────────────────────────────


class TestDuplicate:
    @pytest.fixture()
    def tree(self, manager, make_container):
        outer = make_container(0.05, 0.05, 0.9, 0.9)
        box = make_container(0.1, 0.1, 0.6, 0.6, LayoutType.FLEX)
        a = manager.add(0.15, 0.2, 0.1, 0.1)
        b = manager.add(0.3, 0.2, 0.1, 0.1)
        for child, parent in ((box, outer), (a, box), (b, box)):
            assert manager.reparent(child.id, parent.id)
        return outer, box, a, b

    def test_count_grows_by_subtree_size(self, manager, tree):
        _, box, _, _ = tree
        before = len(manager.store)
        manager.duplicate(box.id)
        assert len(manager.store) == before + 3

    def test_fresh_ids(self, manager, tree):
        _, box, _, _ = tree
        before = set(manager.store.ids())
        manager.duplicate(box.id)
        new_ids = set(manager.store.ids()) - before
        assert len(new_ids) == 3
        assert not new_ids & before

    def test_clone_is_sibling_offset_in_own_frame(self, manager, tree):
        outer, box, _, _ = tree
        clone = manager.duplicate(box.id)
        assert clone.parent_id == outer.id
        orig_abs = manager.absolute_position(box)
        clone_abs = manager.absolute_position(clone)
        assert clone_abs.x - orig_abs.x == pytest.approx(0.02)
        assert clone_abs.y - orig_abs.y == pytest.approx(0.02)
        assert (clone.w, clone.h) == (box.w, box.h)

    def test_descendants_keep_relative_offsets(self, manager, tree):
        _, box, a, b = tree
        clone = manager.duplicate(box.id)
        kids = [manager.get(cid) for cid in clone.children]
        assert [(k.x, k.y, k.w, k.h) for k in kids] == [(a.x, a.y, a.w, a.h), (b.x, b.y, b.w, b.h)]
        assert all(k.parent_id == clone.id for k in kids)

    def test_clone_appended_to_parent_cache(self, manager, tree):
        outer, box, _, _ = tree
        clone = manager.duplicate(box.id)
        assert outer.children == [box.id, clone.id]

    def test_selection_moves_to_clone(self, manager, tree):
        _, box, _, _ = tree
        clone = manager.duplicate(box.id)
        assert manager.selected_id == clone.id

    def test_layout_settings_copied_not_shared(self, manager, tree):
        _, box, _, _ = tree
        clone = manager.duplicate(box.id)
        assert clone.flex_layout == box.flex_layout
        assert clone.flex_layout is not box.flex_layout

    def test_offset_from_settings(self, isolated_settings):
        isolated_settings.settings.annotations.duplicate_offset = 0.05
        mgr = HierarchyManager()
        src = mgr.add(0.1, 0.1, 0.1, 0.1)
        assert mgr.duplicate(src.id).x == pytest.approx(0.15)

    def test_unknown_id_is_noop(self, manager):
        manager.add(0, 0, 0.1, 0.1)
        assert manager.duplicate("missing") is None
        assert len(manager.store) == 1


# ─────────────────────────────────────────────────────────
# update_field
# ─────────────────────────────────────────────────────────


class TestUpdateField:
    def test_plain_field(self, manager):
        a = manager.add(0, 0, 0.1, 0.1)
        assert manager.update_field(a.id, "motionInfo", "fade in on load")
        assert a.motion_info == "fade in on load"

    def test_snake_case_name_accepted(self, manager):
        a = manager.add(0, 0, 0.1, 0.1)
        assert manager.update_field(a.id, "color", "#ef4444")
        assert a.color == "#ef4444"

    @pytest.mark.parametrize("layout", [LayoutType.BOX, LayoutType.FLEX, LayoutType.GRID])
    def test_container_layout_forces_box_kind(self, manager, layout):
        a = manager.add(0, 0, 0.1, 0.1)
        assert a.component_kind == "Button"
        assert manager.update_field(a.id, "layoutType", layout)
        assert a.layout_type == layout
        assert a.component_kind == "Box"

    def test_none_layout_keeps_kind(self, manager):
        a = manager.add(0, 0, 0.1, 0.1)
        manager.update_field(a.id, "layoutType", LayoutType.NONE)
        assert a.component_kind == "Button"

    def test_flex_seeds_defaults(self, manager):
        a = manager.add(0, 0, 0.1, 0.1)
        manager.update_field(a.id, "layoutType", LayoutType.FLEX)
        assert a.flex_layout == FlexLayout("row", "start", "start", 0)

    def test_grid_seeds_defaults(self, manager):
        a = manager.add(0, 0, 0.1, 0.1)
        manager.update_field(a.id, "layoutType", LayoutType.GRID)
        assert a.grid_layout == GridLayout(1, 1, 0)

    def test_existing_flex_kept(self, manager):
        a = manager.add(0, 0, 0.1, 0.1)
        manager.update_field(a.id, "flexLayout", {"direction": "column", "gap": 8})
        manager.update_field(a.id, "layoutType", LayoutType.FLEX)
        assert a.flex_layout.direction == "column"
        assert a.flex_layout.gap == 8

    def test_invalid_flex_rejected(self, manager):
        a = manager.add(0, 0, 0.1, 0.1)
        out = manager.update_field(a.id, "flexLayout", {"justify": "sideways"})
        assert not out
        assert out.violation == Violation.INVALID_VALUE
        assert a.flex_layout is None

    def test_invalid_grid_rejected(self, manager):
        a = manager.add(0, 0, 0.1, 0.1)
        assert manager.update_field(a.id, "gridLayout", {"columns": 0}).violation == Violation.INVALID_VALUE

    def test_unknown_layout_type_rejected(self, manager):
        a = manager.add(0, 0, 0.1, 0.1)
        assert manager.update_field(a.id, "layoutType", "table").violation == Violation.INVALID_VALUE
        assert a.layout_type == LayoutType.NONE

    def test_cannot_drop_layout_with_children(self, manager, make_container):
        box = make_container(0, 0, 1, 1)
        child = manager.add(0.1, 0.1, 0.1, 0.1)
        manager.reparent(child.id, box.id)
        out = manager.update_field(box.id, "layoutType", LayoutType.NONE)
        assert out.violation == Violation.HAS_CHILDREN
        assert box.layout_type == LayoutType.BOX

    @pytest.mark.parametrize("name", ["id", "parentId", "children"])
    def test_topology_fields_read_only(self, manager, name):
        a = manager.add(0, 0, 0.1, 0.1)
        assert manager.update_field(a.id, name, "x").violation == Violation.READ_ONLY_FIELD

    def test_unknown_field(self, manager):
        a = manager.add(0, 0, 0.1, 0.1)
        assert manager.update_field(a.id, "zIndex", 3).violation == Violation.UNKNOWN_FIELD

    def test_unknown_annotation(self, manager):
        assert manager.update_field("missing", "color", "#000").violation == Violation.NOT_FOUND

    def test_wrong_type(self, manager):
        a = manager.add(0, 0, 0.1, 0.1)
        assert manager.update_field(a.id, "x", "left").violation == Violation.INVALID_VALUE

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_geometry_rejected(self, manager, value):
        a = manager.add(0.1, 0.1, 0.1, 0.1)
        for name in ("x", "y", "w", "h"):
            assert manager.update_field(a.id, name, value).violation == Violation.INVALID_VALUE
        assert a.rect.as_tuple() == (0.1, 0.1, 0.1, 0.1)

    def test_update_component_kind_any_string(self, manager):
        a = manager.add(0, 0, 0.1, 0.1)
        assert manager.update_component_kind(a.id, "Totally Custom Widget")
        assert a.component_kind == "Totally Custom Widget"


# ─────────────────────────────────────────────────────────
# update_position / update_size
# ─────────────────────────────────────────────────────────


class TestGeometryUpdates:
    def test_root_stores_absolute(self, manager):
        a = manager.add(0.1, 0.1, 0.2, 0.2)
        manager.update_position(a.id, 0.4, 0.3)
        assert (a.x, a.y, a.w, a.h) == (0.4, 0.3, 0.2, 0.2)

    def test_child_stores_relative(self, manager, make_container):
        box = make_container(0.2, 0.2, 0.6, 0.6)
        child = manager.add(0.3, 0.3, 0.1, 0.1)
        manager.reparent(child.id, box.id)
        manager.update_position(child.id, 0.5, 0.45)
        assert (child.x, child.y) == pytest.approx((0.3, 0.25))
        assert manager.absolute_position(child).as_tuple() == pytest.approx((0.5, 0.45, 0.1, 0.1))

    def test_uses_parent_position_at_commit_time(self, manager, make_container):
        box = make_container(0.2, 0.2, 0.6, 0.6)
        child = manager.add(0.3, 0.3, 0.1, 0.1)
        manager.reparent(child.id, box.id)
        manager.update_position(box.id, 0.1, 0.1)
        manager.update_position(child.id, 0.5, 0.5)
        assert (child.x, child.y) == pytest.approx((0.4, 0.4))

    def test_update_size(self, manager, make_container):
        box = make_container(0.2, 0.2, 0.6, 0.6)
        child = manager.add(0.3, 0.3, 0.1, 0.1)
        manager.reparent(child.id, box.id)
        manager.update_size(child.id, 0.25, 0.3, 0.3, 0.2)
        assert child.rect.as_tuple() == pytest.approx((0.05, 0.1, 0.3, 0.2))

    def test_unknown_id_is_noop(self, manager):
        manager.update_position("missing", 0.1, 0.1)
        manager.update_size("missing", 0.1, 0.1, 0.1, 0.1)
        assert len(manager.store) == 0


# ─────────────────────────────────────────────────────────
# Change notification
# ─────────────────────────────────────────────────────────


class TestOnChanged:
    def test_fires_once_per_mutation(self, manager):
        calls = []
        manager.set_on_changed(lambda m: calls.append(len(m.store)))
        a = manager.add(0, 0, 0.1, 0.1)
        manager.update_field(a.id, "layoutType", LayoutType.BOX)
        manager.duplicate(a.id)
        assert calls == [1, 1, 2]

    def test_not_fired_on_rejection(self, manager):
        a = manager.add(0, 0, 0.1, 0.1)
        calls = []
        manager.set_on_changed(lambda m: calls.append(1))
        manager.reparent(a.id, a.id)
        manager.update_field(a.id, "id", "x")
        manager.delete("missing")
        assert calls == []
