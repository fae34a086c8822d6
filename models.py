"""
models.py

Data models and constants for layoutsketch annotations.

Records exchanged with the outside world (JSON export and re-import) use
camelCase keys; Python attributes use snake_case.  ``FIELD_ALIASES`` maps
between the two.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from geometry import Rect
from settings import get_settings


# ----------------------------
# Layout constants
# ----------------------------

class LayoutType:
    """Layout role constants for an annotation."""
    NONE = "none"
    BOX = "box"
    FLEX = "flex"
    GRID = "grid"

    ALL = (NONE, BOX, FLEX, GRID)
    CONTAINERS = (BOX, FLEX, GRID)


# Component kind forced onto every layout container
CONTAINER_COMPONENT_KIND = "Box"

# Root = depth 0, so at most four levels
MAX_DEPTH = 3

FLEX_DIRECTIONS = ("row", "column")
FLEX_JUSTIFY = ("start", "center", "end", "between", "around")
FLEX_ALIGN = ("start", "center", "end", "stretch")


def is_layout_type(layout_type: Optional[str]) -> bool:
    """Return True if *layout_type* declares a container role."""
    return layout_type in LayoutType.CONTAINERS


@dataclass
class FlexLayout:
    """Flexbox settings for a ``flex`` container."""
    direction: str = "row"
    justify: str = "start"
    align: str = "start"
    gap: float = 0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "FlexLayout":
        """Build from a record dict, filling missing keys with defaults.

        Raises:
            ValueError: If any value is outside its allowed set or range.
        """
        if isinstance(d, FlexLayout):
            d = d.to_dict()
        if not isinstance(d, dict):
            raise ValueError(f"flexLayout must be an object, got {type(d).__name__}")
        flex = cls(
            direction=d.get("direction", "row"),
            justify=d.get("justify", "start"),
            align=d.get("align", "start"),
            gap=d.get("gap", 0),
        )
        if flex.direction not in FLEX_DIRECTIONS:
            raise ValueError(f"flex direction must be one of {FLEX_DIRECTIONS}, got {flex.direction!r}")
        if flex.justify not in FLEX_JUSTIFY:
            raise ValueError(f"flex justify must be one of {FLEX_JUSTIFY}, got {flex.justify!r}")
        if flex.align not in FLEX_ALIGN:
            raise ValueError(f"flex align must be one of {FLEX_ALIGN}, got {flex.align!r}")
        if not isinstance(flex.gap, (int, float)) or isinstance(flex.gap, bool) or flex.gap < 0:
            raise ValueError(f"flex gap must be a number >= 0, got {flex.gap!r}")
        return flex

    def to_dict(self) -> Dict[str, Any]:
        return {"direction": self.direction, "justify": self.justify,
                "align": self.align, "gap": self.gap}


@dataclass
class GridLayout:
    """CSS grid settings for a ``grid`` container."""
    columns: int = 1
    rows: int = 1
    gap: float = 0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "GridLayout":
        """Build from a record dict, filling missing keys with defaults.

        Raises:
            ValueError: If columns/rows are below 1 or gap is negative.
        """
        if isinstance(d, GridLayout):
            d = d.to_dict()
        if not isinstance(d, dict):
            raise ValueError(f"gridLayout must be an object, got {type(d).__name__}")
        grid = cls(columns=d.get("columns", 1), rows=d.get("rows", 1), gap=d.get("gap", 0))
        for name in ("columns", "rows"):
            v = getattr(grid, name)
            if isinstance(v, float) and v.is_integer():
                v = int(v)
                setattr(grid, name, v)
            if not isinstance(v, int) or isinstance(v, bool) or v < 1:
                raise ValueError(f"grid {name} must be an integer >= 1, got {v!r}")
        if not isinstance(grid.gap, (int, float)) or isinstance(grid.gap, bool) or grid.gap < 0:
            raise ValueError(f"grid gap must be a number >= 0, got {grid.gap!r}")
        return grid

    def to_dict(self) -> Dict[str, Any]:
        return {"columns": self.columns, "rows": self.rows, "gap": self.gap}


# ----------------------------
# Annotation model
# ----------------------------

# Record key -> attribute name
FIELD_ALIASES: Dict[str, str] = {
    "id": "id",
    "x": "x",
    "y": "y",
    "w": "w",
    "h": "h",
    "componentKind": "component_kind",
    "motionInfo": "motion_info",
    "color": "color",
    "parentId": "parent_id",
    "children": "children",
    "layoutType": "layout_type",
    "flexLayout": "flex_layout",
    "gridLayout": "grid_layout",
}

# Topology and identity are never written field-by-field
READ_ONLY_FIELDS = frozenset({"id", "parent_id", "children"})


def resolve_field_name(name: str) -> Optional[str]:
    """Map a record key or attribute name to the attribute name."""
    if name in FIELD_ALIASES:
        return FIELD_ALIASES[name]
    if name in FIELD_ALIASES.values():
        return name
    return None


@dataclass
class Annotation:
    """One rectangle in the annotation tree.

    Geometry (``x, y, w, h``) is normalized and relative to the immediate
    parent's frame, or to the image frame for roots.  ``children`` is an
    ordering cache kept in step with ``parent_id`` by the hierarchy
    manager; ``parent_id`` is authoritative.
    """
    id: str
    x: float = 0.0
    y: float = 0.0
    w: float = 0.0
    h: float = 0.0
    component_kind: str = ""
    motion_info: str = ""
    color: str = ""
    parent_id: Optional[str] = None
    children: List[str] = field(default_factory=list)
    layout_type: str = LayoutType.NONE
    flex_layout: Optional[FlexLayout] = None
    grid_layout: Optional[GridLayout] = None

    @property
    def rect(self) -> Rect:
        return Rect(self.x, self.y, self.w, self.h)

    def set_rect(self, rect: Rect) -> None:
        self.x, self.y, self.w, self.h = rect.as_tuple()

    @property
    def is_container(self) -> bool:
        return is_layout_type(self.layout_type)

    def active_flex(self) -> Optional[FlexLayout]:
        """Flex settings, only when this is a flex container."""
        return self.flex_layout if self.layout_type == LayoutType.FLEX else None

    def active_grid(self) -> Optional[GridLayout]:
        """Grid settings, only when this is a grid container."""
        return self.grid_layout if self.layout_type == LayoutType.GRID else None

    @classmethod
    def get_creation_defaults(cls) -> Dict[str, Any]:
        """Defaults for new annotations, loaded from settings.

        Defaults if settings unavailable:
        - component_kind: "Button"
        - color: "#3b82f6"
        """
        defaults = get_settings().settings.annotations
        return {
            "component_kind": defaults.default_component_kind,
            "color": defaults.default_color,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Annotation":
        """Create an Annotation from an exported record.

        Raises:
            ValueError: If the record has no id or carries invalid layout data.
        """
        ann_id = d.get("id")
        if not isinstance(ann_id, str) or not ann_id:
            raise ValueError("annotation record has no id")
        flex = d.get("flexLayout")
        grid = d.get("gridLayout")
        return cls(
            id=ann_id,
            x=float(d.get("x", 0.0)),
            y=float(d.get("y", 0.0)),
            w=float(d.get("w", 0.0)),
            h=float(d.get("h", 0.0)),
            component_kind=d.get("componentKind", ""),
            motion_info=d.get("motionInfo", ""),
            color=d.get("color", ""),
            parent_id=d.get("parentId"),
            children=list(d.get("children") or []),
            layout_type=d.get("layoutType", LayoutType.NONE),
            flex_layout=FlexLayout.from_dict(flex) if flex is not None else None,
            grid_layout=GridLayout.from_dict(grid) if grid is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a field-complete record with camelCase keys.

        ``flexLayout`` and ``gridLayout`` are included only when set.
        """
        d: Dict[str, Any] = {
            "id": self.id,
            "x": self.x,
            "y": self.y,
            "w": self.w,
            "h": self.h,
            "componentKind": self.component_kind,
            "motionInfo": self.motion_info,
            "color": self.color,
            "parentId": self.parent_id,
            "children": list(self.children),
            "layoutType": self.layout_type,
        }
        if self.flex_layout is not None:
            d["flexLayout"] = self.flex_layout.to_dict()
        if self.grid_layout is not None:
            d["gridLayout"] = self.grid_layout.to_dict()
        return d


@dataclass
class ReferenceImage:
    """The image being annotated.

    The pixels themselves are opaque to layoutsketch; only the name (for the
    report) and natural size (for pixel-space hit testing) are kept.
    """
    name: str = ""
    width: int = 0
    height: int = 0

    @property
    def has_size(self) -> bool:
        return self.width > 0 and self.height > 0
