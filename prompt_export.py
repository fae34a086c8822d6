"""
prompt_export.py

Export the annotation tree as a Markdown implementation request plus the
flat JSON record array.

Nothing here touches the disk; callers decide where the two artifacts go
(``main.py`` writes them, a UI would offer them as downloads).  Output is
deterministic: the same tree always yields byte-identical text.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from hierarchy.manager import HierarchyManager
from hierarchy.store import AnnotationStore
from models import Annotation, LayoutType
from schemas import validate_document
from settings import get_settings

log = logging.getLogger(__name__)


DEFAULT_REQUIREMENTS = """\
1. **Component hierarchy**: Build the component structure from the annotation hierarchy above.
2. **Layout containers**:
   - **Box**: A plain container. It may hold child elements but applies no layout logic of its own
   - **Flex**: A Flexbox layout. Follow the specified direction, alignment and gap
   - **Grid**: A CSS Grid layout. Follow the specified column count, row count and gap
   - Regular components (Button, Input, etc.) never have children
   - Always place child elements inside their parent element
3. **Accessibility**: Include ARIA attributes, keyboard navigation and screen reader support.
4. **Styling**:
   - Use Tailwind CSS
   - Make the design responsive
   - Implement the motion effects given in the annotations
   - Apply Flexbox/Grid properties according to each annotation's layout settings
5. **File structure**:
   - Put components in the `components/` folder
   - Put pages in the `app/` folder
   - Put utility functions in the `lib/` folder"""

_INTRO = (
    "The annotations below give the position and nesting of UI elements in the image. "
    "Coordinates are percentages of the image width and height; a child element's "
    "coordinates are measured from its parent's top-left corner.\n"
    "Parent/child relationships represent the real DOM structure and the nesting of "
    "layout containers."
)

_NOTES = """\
- Annotation coordinates indicate relative placement; the hierarchy always takes precedence
- Parent/child relationships must be reflected in the DOM structure
- Only layout containers (Box/Flex/Grid) may have child elements
- Follow the Flexbox/Grid settings recorded on each annotation
- Where motion information is given, implement the interactive behavior it describes
- Implement each component so that it can be reused"""

UNSPECIFIED = "Unspecified"

TreeSource = Union[HierarchyManager, AnnotationStore]


@dataclass
class ExportBundle:
    """Both export artifacts plus the file names they are usually saved under."""
    report_text: str
    records: List[Dict[str, Any]]
    records_json: str
    report_filename: str = "prompt.md"
    records_filename: str = "annotations.json"
    problems: List[str] = field(default_factory=list)


def _store_of(source: TreeSource) -> AnnotationStore:
    return source.store if isinstance(source, HierarchyManager) else source


def _pct(value: float) -> str:
    """Fraction -> percentage with one decimal, never ``-0.0``."""
    s = f"{value * 100:.1f}"
    return "0.0" if s == "-0.0" else s


def _num(value: Union[int, float]) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _layout_block(ann: Annotation, indent: str) -> str:
    if ann.layout_type == LayoutType.BOX:
        return f"\n{indent}- **Layout**: Box (container element; may hold child elements)"

    flex = ann.active_flex()
    if flex is not None:
        direction = "horizontal (row)" if flex.direction == "row" else "vertical (column)"
        return (
            f"\n{indent}- **Layout**: Flexbox"
            f"\n{indent}  - Direction: {direction}"
            f"\n{indent}  - Main-axis alignment (justify): {flex.justify}"
            f"\n{indent}  - Cross-axis alignment (align): {flex.align}"
            f"\n{indent}  - Gap: {_num(flex.gap)}px"
        )

    grid = ann.active_grid()
    if grid is not None:
        return (
            f"\n{indent}- **Layout**: Grid"
            f"\n{indent}  - Columns: {grid.columns}"
            f"\n{indent}  - Rows: {grid.rows}"
            f"\n{indent}  - Gap: {_num(grid.gap)}px"
        )
    return ""


def _render_annotation(store: AnnotationStore, ann: Annotation, depth: int, index: int,
                       visiting: set) -> str:
    """Render one annotation section and, recursively, its children."""
    indent = "  " * depth
    role = "Root" if depth == 0 else "Child"
    visiting.add(ann.id)
    children = [store.get(cid) for cid in ann.children]
    children = [c for c in children if c is not None and c.id not in visiting]
    parent_info = f"\n{indent}- **Parent ID**: {ann.parent_id}" if ann.parent_id else ""
    children_info = f"\n{indent}- **Child count**: {len(children)}" if children else ""

    result = (
        f"{indent}### {role} element {index + 1} (ID: {ann.id})\n"
        f"{indent}- **Component kind**: {ann.component_kind}{_layout_block(ann, indent)}\n"
        f"{indent}- **Position**:\n"
        f"{indent}  - X: {_pct(ann.x)}% (from left)\n"
        f"{indent}  - Y: {_pct(ann.y)}% (from top)\n"
        f"{indent}  - Width: {_pct(ann.w)}%\n"
        f"{indent}  - Height: {_pct(ann.h)}%\n"
        f"{indent}- **Motion / behavior**: {ann.motion_info or UNSPECIFIED}{parent_info}{children_info}\n"
    )

    if children:
        result += f"\n{indent}#### Child elements:\n"
        for child_index, child in enumerate(children):
            result += "\n" + _render_annotation(store, child, depth + 1, child_index, visiting)
    visiting.discard(ann.id)

    return result


def generate_report(source: TreeSource, image_name: Optional[str] = None,
                    requirements: Optional[str] = None) -> str:
    """
    Render the Markdown implementation request for the current tree.

    Roots are listed in insertion order; children follow each node's
    ``children`` order.  Positions are the node's own stored (relative)
    geometry.

    Args:
        source: Manager or store holding the tree
        image_name: Reference image file name (default from settings)
        requirements: Requirements text, inserted verbatim (default from
            settings, else ``DEFAULT_REQUIREMENTS``)

    Returns:
        The report text
    """
    store = _store_of(source)
    export_settings = get_settings().settings.export
    if image_name is None:
        image_name = export_settings.image_name
    if requirements is None:
        requirements = export_settings.requirements or DEFAULT_REQUIREMENTS

    annotations_list = "\n".join(
        _render_annotation(store, root, 0, index, set())
        for index, root in enumerate(store.roots())
    )

    return (
        "# UI Implementation Request\n"
        "\n"
        "## Reference Image\n"
        f"File name: {image_name}\n"
        "\n"
        "## Annotations (Hierarchy)\n"
        "\n"
        f"{_INTRO}\n"
        "\n"
        f"{annotations_list}\n"
        "## Implementation Requirements\n"
        "\n"
        f"{requirements}\n"
        "\n"
        "## Notes\n"
        "\n"
        f"{_NOTES}\n"
    )


def export_records(source: TreeSource) -> List[Dict[str, Any]]:
    """Flat record array, one field-complete dict per annotation, insertion order."""
    return [ann.to_dict() for ann in _store_of(source)]


def serialize(source: TreeSource, image_name: Optional[str] = None,
              requirements: Optional[str] = None) -> Tuple[str, List[Dict[str, Any]]]:
    """Return ``(report_text, records)`` for the current tree."""
    return generate_report(source, image_name, requirements), export_records(source)


def build_export(source: TreeSource, image_name: Optional[str] = None,
                 requirements: Optional[str] = None,
                 validate: Optional[bool] = None) -> ExportBundle:
    """
    Produce both export artifacts ready to hand to a download/save step.

    Schema problems in the records are reported in ``problems`` (and
    logged) rather than raised; the artifacts are still produced.

    Args:
        source: Manager or store holding the tree
        image_name: Reference image file name (default from settings)
        requirements: Requirements text (default from settings)
        validate: Check records against the schema (default from settings)

    Returns:
        ExportBundle with report text, records and their JSON encoding
    """
    export_settings = get_settings().settings.export
    if validate is None:
        validate = export_settings.validate_records

    report_text, records = serialize(source, image_name, requirements)

    problems: List[str] = []
    if validate:
        ok, problems = validate_document(records)
        if not ok:
            for msg in problems:
                log.warning("exported record failed validation: %s", msg)

    return ExportBundle(
        report_text=report_text,
        records=records,
        records_json=json.dumps(records, indent=2, ensure_ascii=False),
        report_filename=export_settings.report_filename,
        records_filename=export_settings.records_filename,
        problems=problems,
    )
