"""
Input validation for drawio-lanes tool parameters and layout options.

Provides reusable validators that produce clear error messages for all
parameters received from MCP callers and for layout constant overrides.
"""

from __future__ import annotations

from typing import Any


# ---------------------------------------------------------------------------
# Validation result
# ---------------------------------------------------------------------------

class ValidationError(Exception):
    """Raised when input validation fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


# ---------------------------------------------------------------------------
# Primitive validators
# ---------------------------------------------------------------------------

def validate_non_empty_string(value: Any, field_name: str) -> str:
    """Ensure *value* is a non-empty string after stripping whitespace."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{field_name}' must be a non-empty string.")
    return value.strip()


def validate_number(
    value: Any,
    field_name: str,
    *,
    min_val: float | None = None,
    max_val: float | None = None,
) -> float:
    """Validate a numeric value and optional range."""
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise ValidationError(
            f"'{field_name}' must be a number, got {type(value).__name__}."
        )
    val = float(value)
    if min_val is not None and val < min_val:
        raise ValidationError(
            f"'{field_name}' must be >= {min_val}, got {val}."
        )
    if max_val is not None and val > max_val:
        raise ValidationError(
            f"'{field_name}' must be <= {max_val}, got {val}."
        )
    return val


def validate_int(
    value: Any,
    field_name: str,
    *,
    min_val: int | None = None,
    max_val: int | None = None,
) -> int:
    """Validate an integer value and optional range."""
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(
            f"'{field_name}' must be an integer, got {type(value).__name__}."
        )
    if min_val is not None and value < min_val:
        raise ValidationError(
            f"'{field_name}' must be >= {min_val}, got {value}."
        )
    if max_val is not None and value > max_val:
        raise ValidationError(
            f"'{field_name}' must be <= {max_val}, got {value}."
        )
    return value


def validate_list(value: Any, field_name: str, *, min_length: int = 0) -> list:
    """Ensure *value* is a list with at least *min_length* items."""
    if not isinstance(value, list):
        raise ValidationError(
            f"'{field_name}' must be a list, got {type(value).__name__}."
        )
    if len(value) < min_length:
        raise ValidationError(
            f"'{field_name}' must have at least {min_length} item(s), got {len(value)}."
        )
    return value


def validate_dict(value: Any, field_name: str) -> dict:
    """Ensure *value* is a dict."""
    if not isinstance(value, dict):
        raise ValidationError(
            f"'{field_name}' must be a dict/object, got {type(value).__name__}."
        )
    return value


def validate_file_path(value: Any, field_name: str) -> str:
    """Validate that a file path is a non-empty string."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{field_name}' must be a non-empty file path string.")
    return value.strip()


def validate_positive_number(value: Any, field_name: str) -> float:
    """Validate that a number is positive (> 0)."""
    return validate_number(value, field_name, min_val=0.001)


def validate_non_negative_number(value: Any, field_name: str) -> float:
    """Validate that a number is >= 0."""
    return validate_number(value, field_name, min_val=0)


# ---------------------------------------------------------------------------
# Tool actions
# ---------------------------------------------------------------------------

_DIAGRAM_ACTIONS = {"CREATE", "IMPORT_XML", "LOAD", "SAVE", "GET_XML", "LIST"}
_DRAW_ACTIONS = {"ADD_LANE", "ADD_NODES", "ADD_FLOWS"}
_LAYOUT_ACTIONS = {"AUTO_ARRANGE", "RESOLVE_COLLISIONS", "WATCH", "UNWATCH"}
_INSPECT_ACTIONS = {"COLLISIONS", "CELLS"}


def validate_action(value: Any, tool_name: str, allowed: set[str]) -> str:
    """Validate the action parameter for a tool."""
    if not isinstance(value, str) or not value.strip():
        choices = ", ".join(sorted(a.lower() for a in allowed))
        raise ValidationError(
            f"'{tool_name}' requires an 'action' parameter. Valid actions: {choices}."
        )
    normalized = value.strip().upper()
    if normalized not in allowed:
        choices = ", ".join(sorted(a.lower() for a in allowed))
        raise ValidationError(
            f"Unknown {tool_name} action '{value}'. Valid actions: {choices}."
        )
    return value.strip().lower()


# ---------------------------------------------------------------------------
# Node / flow / option validators
# ---------------------------------------------------------------------------

def validate_node_dict(v: Any, index: int) -> None:
    """Validate a single node dict from the nodes list."""
    if not isinstance(v, dict):
        raise ValidationError(f"Node at index {index} must be a dict/object.")
    if "label" not in v:
        raise ValidationError(f"Node at index {index} missing required key 'label'.")
    if not isinstance(v["label"], str):
        raise ValidationError(f"Node at index {index}: 'label' must be a string.")
    for key in ("x", "y"):
        if key in v and (not isinstance(v[key], (int, float)) or isinstance(v[key], bool)):
            raise ValidationError(f"Node at index {index}: '{key}' must be a number.")
    for key in ("width", "height"):
        if key in v:
            if not isinstance(v[key], (int, float)) or isinstance(v[key], bool):
                raise ValidationError(f"Node at index {index}: '{key}' must be a number.")
            if v[key] <= 0:
                raise ValidationError(f"Node at index {index}: '{key}' must be > 0.")
    for key in ("lane_id", "cell_id"):
        if key in v and not isinstance(v[key], str):
            raise ValidationError(f"Node at index {index}: '{key}' must be a string.")


def validate_flow_dict(e: Any, index: int) -> None:
    """Validate a single flow dict from the flows list."""
    if not isinstance(e, dict):
        raise ValidationError(f"Flow at index {index} must be a dict/object.")
    for key in ("source_id", "target_id"):
        if key not in e:
            raise ValidationError(f"Flow at index {index} missing required key '{key}'.")
        if not isinstance(e[key], str) or not e[key].strip():
            raise ValidationError(f"Flow at index {index}: '{key}' must be a non-empty string.")
    if "label" in e and not isinstance(e["label"], str):
        raise ValidationError(f"Flow at index {index}: 'label' must be a string.")
    if "cell_id" in e and not isinstance(e["cell_id"], str):
        raise ValidationError(f"Flow at index {index}: 'cell_id' must be a string.")


def validate_layout_options(value: Any, allowed: set[str]) -> dict[str, float]:
    """Validate a layout-constant override mapping.

    Keys must be known constant names; values must be non-negative numbers.
    """
    options = validate_dict(value, "options")
    result: dict[str, float] = {}
    for key, raw in options.items():
        if key not in allowed:
            choices = ", ".join(sorted(allowed))
            raise ValidationError(
                f"Unknown layout option '{key}'. Valid options: {choices}."
            )
        result[key] = validate_non_negative_number(raw, key)
    return result


def validate_max_passes(value: Any) -> int:
    """Validate the resolver pass cap (1..50)."""
    return validate_int(value, "max_passes", min_val=1, max_val=50)
