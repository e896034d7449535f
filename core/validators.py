"""
Shared validation helpers for gateway arguments.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

from core.errors import ValidationIssue


def validate_required_text(value: str, field: str, max_len: int) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValidationIssue(f"{field} must be a non-empty string", field=field, error_type="required")
    if len(value) > max_len:
        raise ValidationIssue(f"{field} exceeds max length {max_len}", field=field, error_type="max_length")


def validate_optional_text(value: Optional[str], field: str, max_len: int) -> None:
    if value is None:
        return
    if not isinstance(value, str):
        raise ValidationIssue(f"{field} must be a string", field=field, error_type="invalid_type")
    if len(value) > max_len:
        raise ValidationIssue(f"{field} exceeds max length {max_len}", field=field, error_type="max_length")


def validate_optional_bool(value: Any, field: str) -> None:
    if value is None:
        return
    if not isinstance(value, bool):
        raise ValidationIssue(f"{field} must be a boolean", field=field, error_type="invalid_type")


def validate_string_list(
    values: Optional[Sequence[str]],
    field: str,
    max_items: int,
    max_item_length: int,
) -> None:
    if values is None:
        return
    if isinstance(values, (str, bytes)) or not isinstance(values, (list, tuple)):
        raise ValidationIssue(f"{field} must be a list of strings", field=field, error_type="invalid_type")
    if len(values) > max_items:
        raise ValidationIssue(f"{field} exceeds max items {max_items}", field=field, error_type="max_items")
    for item in values:
        if not isinstance(item, str):
            raise ValidationIssue(f"{field} must contain only strings", field=field, error_type="invalid_type")
        if len(item) > max_item_length:
            raise ValidationIssue(
                f"{field} item exceeds max length {max_item_length}",
                field=field,
                error_type="max_length",
            )


def validate_choice(value: Optional[str], field: str, choices: Sequence[str]) -> None:
    if value is None:
        return
    if value not in choices:
        raise ValidationIssue(
            f"{field} must be one of: {', '.join(choices)}",
            field=field,
            error_type="invalid_choice",
        )


def validate_arguments(arguments: Any, allowed: Sequence[str], operation: str) -> dict:
    """Return ``arguments`` as a dict, rejecting non-objects and unknown keys."""
    if arguments is None:
        return {}
    if not isinstance(arguments, dict):
        raise ValidationIssue(
            f"Arguments for {operation} must be an object",
            field="arguments",
            error_type="invalid_type",
        )
    unknown = sorted(set(arguments) - set(allowed))
    if unknown:
        raise ValidationIssue(
            f"Unknown argument(s) for {operation}: {', '.join(unknown)}",
            field=unknown[0],
            error_type="unknown_field",
        )
    return arguments
