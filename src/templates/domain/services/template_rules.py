# src/templates/domain/services/template_rules.py
"""Field rules for template name, category and body, checked alongside the placeholder grammar."""

from __future__ import annotations

import re
from typing import List, Optional

from src.templates.domain.services.placeholder_grammar import BODY_FIELD, PlaceholderError

NAME_MAX_LENGTH = 512
BODY_MAX_LENGTH = 1024
NAME_RE = re.compile(r"^[a-z0-9_]+$")
CATEGORIES = ("utility", "marketing", "authentication", "transactional", "account_update", "otp")


def validate_name(name: Optional[str]) -> List[PlaceholderError]:
    if not name or not name.strip():
        return [PlaceholderError("NAME_REQUIRED", "Template name is required", field="name")]

    errors: list[PlaceholderError] = []
    if not NAME_RE.match(name):
        errors.append(PlaceholderError(
            "INVALID_NAME_FORMAT",
            "Template name must be lowercase letters, digits and underscores only",
            field="name",
        ))
    if len(name) > NAME_MAX_LENGTH:
        errors.append(PlaceholderError(
            "NAME_TOO_LONG",
            f"Template name must not exceed {NAME_MAX_LENGTH} characters",
            field="name",
        ))
    return errors


def validate_category(category: Optional[str]) -> List[PlaceholderError]:
    if not category or not category.strip():
        return [PlaceholderError("CATEGORY_REQUIRED", "Template category is required", field="category")]
    # case-insensitive; the provider payload upper-cases it
    if category.strip().lower() not in CATEGORIES:
        return [PlaceholderError(
            "INVALID_CATEGORY",
            f"Invalid category. Must be one of: {', '.join(CATEGORIES)}",
            field="category",
        )]
    return []


def validate_body(body_text: Optional[str]) -> List[PlaceholderError]:
    if not body_text or not body_text.strip():
        return [PlaceholderError("BODY_REQUIRED", "Body text is required", field=BODY_FIELD)]
    if len(body_text) > BODY_MAX_LENGTH:
        return [PlaceholderError(
            "BODY_TOO_LONG",
            f"Body text must not exceed {BODY_MAX_LENGTH} characters",
            field=BODY_FIELD,
        )]
    return []


def validate_fields(name: Optional[str], category: Optional[str], body_text: Optional[str]) -> List[PlaceholderError]:
    """Name, category and body errors in that order; empty when all three are acceptable."""
    return validate_name(name) + validate_category(category) + validate_body(body_text)
