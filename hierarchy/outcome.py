"""
hierarchy/outcome.py

Result values and exceptions for hierarchy operations.

Structural rejections are ordinary return values (``Outcome``) so the UI can
show the message and carry on; the tree is untouched whenever ``ok`` is
False.  Exceptions are reserved for whole-document problems on re-import.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional


class Violation:
    """Reason codes for rejected operations."""
    SELF_PARENT = "self_parent"
    NOT_FOUND = "not_found"
    PARENT_NOT_FOUND = "parent_not_found"
    NOT_A_CONTAINER = "not_a_container"
    DEPTH_LIMIT = "depth_limit"
    CYCLE = "cycle"
    HAS_CHILDREN = "has_children"
    READ_ONLY_FIELD = "read_only_field"
    UNKNOWN_FIELD = "unknown_field"
    INVALID_VALUE = "invalid_value"


@dataclass(frozen=True)
class Outcome:
    """Result of a validating mutation.

    Truthy on success, so callers can write ``if not mgr.reparent(...)``.
    """
    ok: bool = True
    violation: Optional[str] = None
    message: str = ""

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls) -> "Outcome":
        return cls()

    @classmethod
    def reject(cls, violation: str, message: str) -> "Outcome":
        return cls(ok=False, violation=violation, message=message)


class HierarchyError(Exception):
    """Base class for hierarchy errors raised as exceptions."""


class InvalidDocumentError(HierarchyError):
    """A record array could not be imported.

    Attributes:
        errors: One human-readable message per problem found.
    """

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        summary = errors[0] if errors else "invalid document"
        if len(errors) > 1:
            summary += f" (and {len(errors) - 1} more)"
        super().__init__(summary)
