# src/templates/domain/services/placeholder_grammar.py
"""Positional placeholder grammar for template bodies ({{1}}, {{2}}, ...)."""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from typing import Any, List, Mapping, Optional, Union

from src.templates.domain.exceptions import TemplateValidationError

BODY_FIELD = "body_text"

PLACEHOLDER_RE = re.compile(r"\{\{(\d+)\}\}")
SINGLE_BRACE_RE = re.compile(r"(?<!\{)\{\d+\}(?!\})")
EMPTY_RE = re.compile(r"\{\{\s*\}\}")
NAMED_RE = re.compile(r"\{\{[A-Za-z_][A-Za-z0-9_]*\}\}")
# any other {{...}} token: {{ 1 }}, {{first-name}}, {{1a}}
MALFORMED_RE = re.compile(r"\{\{(?!\d+\}\}|\s*\}\}|[A-Za-z_][A-Za-z0-9_]*\}\})[^{}]*\}\}")
FORMAT_SPECIFIER_RE = re.compile(r"%[sd]")
STACKED_RE = re.compile(r"\{\{\d+\}\}\s*\{\{\d+\}\}")
TRAILING_RE = re.compile(r"\{\{\d+\}\}$")


@dataclass(frozen=True, slots=True)
class PlaceholderError:
    """One grammar violation. ``position`` is a character offset into the body."""
    code: str
    message: str
    field: str = BODY_FIELD
    position: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# (rule order, code, patterns, message); rule order breaks position ties
_PATTERN_RULES = (
    (0, "INVALID_PLACEHOLDER_FORMAT", (SINGLE_BRACE_RE, MALFORMED_RE),
     "Invalid placeholder format. Use {{1}}, {{2}}, etc. (double braces)"),
    (1, "EMPTY_PLACEHOLDER", (EMPTY_RE,),
     "Empty placeholders {{}} are not allowed"),
    (2, "NAMED_PLACEHOLDER", (NAMED_RE,),
     "Named placeholders like {{name}} are not allowed. Use {{1}}, {{2}}, etc."),
    (3, "FORMAT_SPECIFIER", (FORMAT_SPECIFIER_RE,),
     "Format specifiers like %s are not allowed. Use {{1}}, {{2}}, etc."),
    (4, "STACKED_PLACEHOLDERS", (STACKED_RE,),
     "Placeholders cannot be stacked without separating text (e.g. {{1}}{{2}})"),
)
_LEADING_ORDER = 5
_TRAILING_ORDER = 6


class PlaceholderGrammar:
    """
    Pure domain service validating the placeholder grammar of a template body.

    Example:
        errors = PlaceholderGrammar.validate("Hi {{1}}, your order is ready.")
        assert errors == []
    """

    @staticmethod
    def extract(body_text: str) -> List[int]:
        """All well-formed placeholder numbers, in order of appearance, repeats kept."""
        return [int(m.group(1)) for m in PLACEHOLDER_RE.finditer(body_text or "")]

    @staticmethod
    def validate(body_text: str) -> List[PlaceholderError]:
        """
        Violations in ``body_text``; an empty list means the body is valid.

        Each rule reports at most once, at its first occurrence. Errors are
        ordered by position; a sequence error (which has no single position)
        comes last.
        """
        text = body_text or ""
        found: list[tuple[int, int, PlaceholderError]] = []

        for order, code, patterns, message in _PATTERN_RULES:
            starts = [m.start() for m in (p.search(text) for p in patterns) if m]
            if starts:
                start = min(starts)
                found.append((start, order, PlaceholderError(code, message, position=start)))

        stripped = text.strip()
        if stripped:
            offset = len(text) - len(text.lstrip())
            if PLACEHOLDER_RE.match(text, offset):
                found.append((offset, _LEADING_ORDER, PlaceholderError(
                    "LEADING_PLACEHOLDER",
                    "Placeholders should not be at the start of the body text",
                    position=offset,
                )))
            trailing = TRAILING_RE.search(text.rstrip())
            if trailing:
                found.append((trailing.start(), _TRAILING_ORDER, PlaceholderError(
                    "TRAILING_PLACEHOLDER",
                    "Placeholders should not be at the end of the body text",
                    position=trailing.start(),
                )))

        found.sort(key=lambda item: (item[0], item[1]))
        errors = [error for _, _, error in found]

        sequence_error = PlaceholderGrammar._check_sequence(PlaceholderGrammar.extract(text))
        if sequence_error is not None:
            errors.append(sequence_error)
        return errors

    @staticmethod
    def render(body_text: str, values: Mapping[Union[int, str], Any]) -> str:
        """
        Substitute every ``{{n}}`` with ``values[n]``.

        Keys may be ints or numeric strings.

        Raises:
            TemplateValidationError: a placeholder has no value or a blank one,
                or a value is given for a placeholder the body does not have
        """
        normalized: dict[int, Any] = {}
        for key, value in values.items():
            key_text = str(key).strip()
            if key_text.isdigit():
                normalized[int(key_text)] = value

        present = set(PlaceholderGrammar.extract(body_text))
        errors: list[PlaceholderError] = []
        for number in sorted(present):
            if number not in normalized:
                errors.append(PlaceholderError(
                    "MISSING_SAMPLE_VALUE",
                    f"A value is required for placeholder {{{{{number}}}}}",
                    field=f"values.{number}",
                ))
            elif normalized[number] is None or str(normalized[number]).strip() == "":
                errors.append(PlaceholderError(
                    "EMPTY_SAMPLE_VALUE",
                    f"Value for placeholder {{{{{number}}}}} cannot be empty",
                    field=f"values.{number}",
                ))
        for number in sorted(set(normalized) - present):
            errors.append(PlaceholderError(
                "EXTRA_SAMPLE_VALUE",
                f"Value provided for non-existent placeholder {{{{{number}}}}}",
                field=f"values.{number}",
            ))
        if errors:
            raise TemplateValidationError(errors, "Preview values are incomplete")

        return PLACEHOLDER_RE.sub(lambda m: str(normalized[int(m.group(1))]), body_text or "")

    @staticmethod
    def _check_sequence(numbers: List[int]) -> Optional[PlaceholderError]:
        unique = sorted(set(numbers))
        for index, number in enumerate(unique):
            expected = index + 1
            if number != expected:
                return PlaceholderError(
                    "NON_SEQUENTIAL_PLACEHOLDERS",
                    f"Placeholders must be sequential starting from {{{{1}}}}. "
                    f"Found gap or wrong start at {{{{{expected}}}}}",
                )
        return None


def validate_placeholders(body_text: str) -> List[PlaceholderError]:
    return PlaceholderGrammar.validate(body_text)
