import pytest

from src.templates.domain.services.template_rules import (
    BODY_MAX_LENGTH,
    NAME_MAX_LENGTH,
    validate_body,
    validate_category,
    validate_fields,
    validate_name,
)


def _codes(errors):
    return [e.code for e in errors]


def test_well_formed_fields_pass():
    assert validate_fields("order_update_2", "utility", "Hello {{1}}, thanks") == []


@pytest.mark.parametrize("name", [None, "", "   "])
def test_name_required(name):
    errors = validate_name(name)
    assert _codes(errors) == ["NAME_REQUIRED"]
    assert errors[0].field == "name"


@pytest.mark.parametrize("name", ["Order Update", "order-update", "ORDER_UPDATE", "order.update"])
def test_name_format(name):
    assert _codes(validate_name(name)) == ["INVALID_NAME_FORMAT"]


def test_name_length_limit():
    assert validate_name("a" * NAME_MAX_LENGTH) == []
    assert _codes(validate_name("a" * (NAME_MAX_LENGTH + 1))) == ["NAME_TOO_LONG"]
    assert _codes(validate_name("A" * (NAME_MAX_LENGTH + 1))) == ["INVALID_NAME_FORMAT", "NAME_TOO_LONG"]


@pytest.mark.parametrize("category", ["utility", "MARKETING", "Authentication", "otp"])
def test_known_categories_any_case(category):
    assert validate_category(category) == []


def test_category_required_and_known():
    assert _codes(validate_category("")) == ["CATEGORY_REQUIRED"]
    errors = validate_category("newsletter")
    assert _codes(errors) == ["INVALID_CATEGORY"]
    assert errors[0].field == "category"


def test_body_required_and_length_limit():
    assert _codes(validate_body(" \n ")) == ["BODY_REQUIRED"]
    assert validate_body("x" * BODY_MAX_LENGTH) == []
    errors = validate_body("x" * (BODY_MAX_LENGTH + 1))
    assert _codes(errors) == ["BODY_TOO_LONG"]
    assert errors[0].field == "body_text"


def test_all_field_errors_returned_together():
    assert _codes(validate_fields("Bad Name", None, "")) == [
        "INVALID_NAME_FORMAT",
        "CATEGORY_REQUIRED",
        "BODY_REQUIRED",
    ]
