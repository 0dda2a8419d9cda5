from src.templates.domain.services.placeholder_grammar import (
    PlaceholderError,
    PlaceholderGrammar,
    validate_placeholders,
)
from src.templates.domain.services.template_rules import validate_fields

__all__ = ["PlaceholderError", "PlaceholderGrammar", "validate_fields", "validate_placeholders"]
