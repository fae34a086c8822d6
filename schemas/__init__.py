"""
schemas/__init__.py

JSON Schema definition and validation utilities for layoutsketch
annotation records.  Used when exporting ``annotations.json`` and when
importing it back.
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict, List, Optional, Tuple

from jsonschema import Draft202012Validator

# Schema file paths
SCHEMA_DIR = os.path.dirname(os.path.abspath(__file__))
ANNOTATION_SCHEMA_PATH = os.path.join(SCHEMA_DIR, "annotation_schema.json")

# Cached schema
_annotation_schema: Optional[Dict] = None


def get_annotation_schema() -> Dict:
    """Load and return the annotation record array schema."""
    global _annotation_schema
    if _annotation_schema is None:
        with open(ANNOTATION_SCHEMA_PATH, "r", encoding="utf-8") as f:
            _annotation_schema = json.load(f)
    return _annotation_schema


def _format_errors(validator: Draft202012Validator, data: Any) -> List[str]:
    error_messages = []
    for error in sorted(validator.iter_errors(data), key=lambda e: [str(p) for p in e.absolute_path]):
        path = " -> ".join(str(p) for p in error.absolute_path) if error.absolute_path else "root"
        error_messages.append(f"{path}: {error.message}")
    return error_messages


def validate_document(data: Any) -> Tuple[bool, List[str]]:
    """
    Validate a record array against the annotation schema.

    Args:
        data: The parsed JSON data (expected: a list of records)

    Returns:
        Tuple of (is_valid, list_of_error_messages)
    """
    validator = Draft202012Validator(get_annotation_schema())
    errors = _format_errors(validator, data)
    return not errors, errors


def validate_annotation(annotation: Dict) -> Tuple[bool, List[str]]:
    """
    Validate a single annotation record against the schema.

    Args:
        annotation: A single annotation dictionary

    Returns:
        Tuple of (is_valid, list_of_error_messages)
    """
    schema = get_annotation_schema()
    item_schema = schema.get("$defs", {}).get("annotationItem", {})

    if not item_schema:
        return False, ["Could not find annotationItem schema definition"]

    # Build a complete schema with definitions
    full_schema = {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "$defs": schema.get("$defs", {}),
        **item_schema
    }

    validator = Draft202012Validator(full_schema)
    errors = _format_errors(validator, annotation)
    return not errors, errors


# -------------------------------------------------------------------------
# Schema -> expected template utilities
# -------------------------------------------------------------------------

def _resolve_ref(ref: str, defs: Dict[str, Any]) -> Dict[str, Any]:
    """Resolve ``$ref`` like ``#/$defs/flexLayout`` to its definition."""
    parts = ref.split("/")
    if len(parts) == 3 and parts[0] == "#" and parts[1] == "$defs":
        return defs.get(parts[2], {})
    return {}


def _extract_defaults(schema_def: Dict[str, Any], defs: Dict[str, Any]) -> Dict[str, Any]:
    """Walk a schema object definition and build ``{prop_name: default}``.

    Only properties that declare a ``default`` (inline or on the resolved
    ``$ref`` target) are included; object definitions are recursed into.
    """
    result: Dict[str, Any] = {}
    for prop_name, prop_def in schema_def.get("properties", {}).items():
        if "$ref" in prop_def:
            resolved = _resolve_ref(prop_def["$ref"], defs)
            if resolved.get("type") == "object":
                result[prop_name] = _extract_defaults(resolved, defs)
            elif "default" in resolved:
                result[prop_name] = resolved["default"]
        elif "default" in prop_def:
            result[prop_name] = prop_def["default"]
    return result


def get_layout_defaults(layout_type: str) -> Dict[str, Any]:
    """Default ``flexLayout`` / ``gridLayout`` values declared by the schema.

    Args:
        layout_type: ``"flex"`` or ``"grid"``.

    Returns:
        Dict of defaults, empty for other layout types.
    """
    defs = get_annotation_schema().get("$defs", {})
    def_name = {"flex": "flexLayout", "grid": "gridLayout"}.get(layout_type)
    if def_name is None:
        return {}
    return _extract_defaults(defs.get(def_name, {}), defs)
