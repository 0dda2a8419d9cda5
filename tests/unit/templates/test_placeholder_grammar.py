import pytest

from src.templates.domain.exceptions import TemplateValidationError
from src.templates.domain.services.placeholder_grammar import PlaceholderGrammar, validate_placeholders


def _codes(body):
    return [e.code for e in validate_placeholders(body)]


def _body_with(n):
    markers = " and ".join(f"{{{{{i}}}}}" for i in range(1, n + 1))
    return f"Hello {markers} thanks"


@pytest.mark.parametrize("n", [0, 1, 2, 5, 12])
def test_sequential_separated_placeholders_are_valid(n):
    assert validate_placeholders(_body_with(n)) == []


def test_extract_keeps_repeats_in_order():
    body = "Hello {{1}}, order {{1}} is ready"
    assert PlaceholderGrammar.extract(body) == [1, 1]
    assert validate_placeholders(body) == []


def test_repeated_placeholders_after_full_sequence_are_fine():
    assert _codes("Hi {{1}}, {{2}} and again {{1}} ok") == []


def test_gap_in_sequence():
    errors = validate_placeholders("Hi {{1}} and {{3}} ok")
    assert [e.code for e in errors] == ["NON_SEQUENTIAL_PLACEHOLDERS"]
    assert errors[0].position is None
    assert "{{2}}" in errors[0].message


def test_sequence_must_start_at_one():
    assert _codes("Hi {{2}} ok") == ["NON_SEQUENTIAL_PLACEHOLDERS"]


def test_leading_placeholder_ignores_surrounding_whitespace():
    errors = validate_placeholders("  {{1}} is your code, thanks")
    assert [e.code for e in errors] == ["LEADING_PLACEHOLDER"]
    assert errors[0].position == 2


def test_trailing_placeholder_ignores_surrounding_whitespace():
    assert _codes("Your code is {{1}}") == ["TRAILING_PLACEHOLDER"]
    assert _codes("Your code is {{1}}  \n") == ["TRAILING_PLACEHOLDER"]


def test_lone_placeholder_is_leading_and_trailing():
    assert _codes("{{1}}") == ["LEADING_PLACEHOLDER", "TRAILING_PLACEHOLDER"]


def test_stacked_placeholders():
    assert _codes("Hi {{1}}{{2}} there") == ["STACKED_PLACEHOLDERS"]


def test_whitespace_does_not_separate_placeholders():
    assert _codes("Hi {{1}} {{2}} there") == ["STACKED_PLACEHOLDERS"]


def test_stacked_run_is_reported_once_at_first_pair():
    errors = validate_placeholders("Hi {{1}}{{2}}{{3}} there")
    assert [(e.code, e.position) for e in errors] == [("STACKED_PLACEHOLDERS", 3)]


def test_repeated_violations_report_each_code_once():
    errors = validate_placeholders("Hi {1} and {2} and %s or %s there")
    assert [(e.code, e.position) for e in errors] == [
        ("INVALID_PLACEHOLDER_FORMAT", 3),
        ("FORMAT_SPECIFIER", 19),
    ]


@pytest.mark.parametrize(
    "body, code",
    [
        ("Hi {1} there", "INVALID_PLACEHOLDER_FORMAT"),
        ("Hi {{ 1 }} there", "INVALID_PLACEHOLDER_FORMAT"),
        ("Hi {{first-name}} there", "INVALID_PLACEHOLDER_FORMAT"),
        ("Hi {{1a}} there", "INVALID_PLACEHOLDER_FORMAT"),
        ("Hi {{}} there", "EMPTY_PLACEHOLDER"),
        ("Hi {{ }} there", "EMPTY_PLACEHOLDER"),
        ("Hi {{name}} there", "NAMED_PLACEHOLDER"),
        ("Hi %s there", "FORMAT_SPECIFIER"),
    ],
)
def test_malformed_markers(body, code):
    assert _codes(body) == [code]


def test_all_violations_reported_in_position_order():
    errors = validate_placeholders("{{1}}{{3}} costs %s, see {{x}}")
    assert [e.code for e in errors] == [
        "STACKED_PLACEHOLDERS",
        "LEADING_PLACEHOLDER",
        "FORMAT_SPECIFIER",
        "NAMED_PLACEHOLDER",
        "NON_SEQUENTIAL_PLACEHOLDERS",
    ]
    assert all(e.field == "body_text" for e in errors)
    assert [e.position for e in errors] == [0, 0, 17, 25, None]


def test_error_serializes_for_api_details():
    error = validate_placeholders("Hi {{name}} there")[0]
    assert error.to_dict() == {
        "code": "NAMED_PLACEHOLDER",
        "message": error.message,
        "field": "body_text",
        "position": 3,
    }


def test_render_substitutes_int_and_str_keys():
    body = "Hi {{1}}, order {{2}} is ready"
    assert PlaceholderGrammar.render(body, {1: "Ann", "2": "A-7"}) == "Hi Ann, order A-7 is ready"


def test_render_missing_value():
    with pytest.raises(TemplateValidationError) as exc:
        PlaceholderGrammar.render("Hi {{1}} and {{2}} ok", {1: "a"})
    assert exc.value.error_codes == ["MISSING_SAMPLE_VALUE"]
    assert exc.value.errors[0]["field"] == "values.2"


def test_render_blank_value():
    with pytest.raises(TemplateValidationError) as exc:
        PlaceholderGrammar.render("Hi {{1}} ok", {"1": "   "})
    assert exc.value.error_codes == ["EMPTY_SAMPLE_VALUE"]


def test_malformed_double_brace_reports_earliest_position():
    errors = validate_placeholders("Dear {{ 1 }}, ref {3} ok")
    assert [(e.code, e.position) for e in errors] == [("INVALID_PLACEHOLDER_FORMAT", 5)]


def test_render_rejects_values_for_absent_placeholders():
    with pytest.raises(TemplateValidationError) as exc:
        PlaceholderGrammar.render("Hi {{1}} ok", {1: "Ann", "3": "extra"})
    assert exc.value.error_codes == ["EXTRA_SAMPLE_VALUE"]
    assert exc.value.errors[0]["field"] == "values.3"
    assert "{{3}}" in exc.value.errors[0]["message"]


def test_render_ignores_non_numeric_keys():
    assert PlaceholderGrammar.render("Hi {{1}} ok", {1: "Ann", "locale": "en"}) == "Hi Ann ok"
