import pytest

from validators import MAX_PAGES, ISBNValidator, NumberValidator, TextValidator


@pytest.mark.parametrize("raw, expected", [
    ("978-0-306-40615-7", "9780306406157"),
    (" 0 306 40615 x ", "030640615X"),
    (None, ""),
])
def test_normalize_isbn(raw, expected):
    assert ISBNValidator.normalize_isbn(raw) == expected


@pytest.mark.parametrize("isbn, valid", [
    ("9780306406157", True),
    ("978-0-306-40615-7", True),
    ("030640615X", True),
    ("0306406152", True),
    ("12345", False),
    ("97803064061AB", False),
    ("", False),
    (None, False),
])
def test_is_valid_isbn(isbn, valid):
    assert ISBNValidator.is_valid_isbn(isbn) is valid


def test_clean_optional_turns_blank_into_none():
    assert TextValidator.clean_optional("   ") is None
    assert TextValidator.clean_optional(None) is None
    assert TextValidator.clean_optional("  Chilean ") == "Chilean"


def test_validate_name():
    assert TextValidator.validate_name("Isabel Allende")
    assert not TextValidator.validate_name("   ")
    assert not TextValidator.validate_name("12345")
    assert not TextValidator.validate_name(None)


@pytest.mark.parametrize("email, valid", [
    ("isabel@example.com", True),
    ("  isabel@example.com ", True),
    ("isabel@example", False),
    ("isabel.example.com", False),
    ("isa bel@example.com", False),
    ("", False),
])
def test_validate_email(email, valid):
    assert TextValidator.validate_email(email) is valid


def test_number_validators():
    assert NumberValidator.validate_year(None)
    assert NumberValidator.validate_year(1967)
    assert not NumberValidator.validate_year(-1)
    assert not NumberValidator.validate_year(2101)
    assert NumberValidator.validate_pages(None)
    assert NumberValidator.validate_pages(417)
    assert not NumberValidator.validate_pages(0)
    assert not NumberValidator.validate_pages(True)
    assert NumberValidator.validate_pages(MAX_PAGES)
    assert not NumberValidator.validate_pages(MAX_PAGES + 1)
    assert not NumberValidator.validate_pages(10 ** 20)
