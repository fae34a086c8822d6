"""
hierarchy package

Annotation tree store, coordinate engine, hit testing, drag overlay and the
manager that enforces the nesting rules.
"""

from hierarchy.coords import CoordinateEngine, HierarchyEntry
from hierarchy.drag import DragOverlay, DragSession
from hierarchy.hit_test import HitTester
from hierarchy.manager import HierarchyManager
from hierarchy.outcome import HierarchyError, InvalidDocumentError, Outcome, Violation
from hierarchy.store import AnnotationStore

__all__ = [
    "AnnotationStore",
    "CoordinateEngine",
    "HierarchyEntry",
    "DragOverlay",
    "DragSession",
    "HitTester",
    "HierarchyManager",
    "HierarchyError",
    "InvalidDocumentError",
    "Outcome",
    "Violation",
]
