import re
from typing import Optional

# Accepted range for publication and birth years
MIN_YEAR = 0
MAX_YEAR = 2100

MAX_PAGES = 100_000

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ISBNValidator:
    """Lenient ISBN checks: shape only, no checksum."""

    @staticmethod
    def normalize_isbn(raw: Optional[str]) -> str:
        if raw is None:
            return ""
        s = re.sub(r"[\s-]", "", raw)
        return s.upper()

    @staticmethod
    def is_valid_isbn(isbn: Optional[str]) -> bool:
        """ISBN-10 is 9 digits followed by a digit or 'X'; ISBN-13 is 13 digits."""
        s = ISBNValidator.normalize_isbn(isbn)
        if len(s) == 10:
            return s[:9].isdigit() and (s[9].isdigit() or s[9] == "X")
        if len(s) == 13:
            return s.isdigit()
        return False


class TextValidator:
    """Basic text validation and clean-up for form input."""

    @staticmethod
    def clean_optional(text: Optional[str]) -> Optional[str]:
        # blank optional fields are stored as NULL
        if text is None:
            return None
        t = text.strip()
        return t or None

    @staticmethod
    def validate_required(text: Optional[str]) -> bool:
        return text is not None and bool(text.strip())

    @staticmethod
    def validate_name(name: Optional[str]) -> bool:
        # must not be digits only
        if not TextValidator.validate_required(name):
            return False
        return not name.strip().isdigit()

    @staticmethod
    def validate_email(email: Optional[str]) -> bool:
        if not TextValidator.validate_required(email):
            return False
        return bool(_EMAIL_RE.match(email.strip()))


class NumberValidator:

    @staticmethod
    def validate_year(year: Optional[int]) -> bool:
        if year is None:
            return True
        return isinstance(year, int) and not isinstance(year, bool) and MIN_YEAR <= year <= MAX_YEAR

    @staticmethod
    def validate_pages(pages: Optional[int]) -> bool:
        if pages is None:
            return True
        return isinstance(pages, int) and not isinstance(pages, bool) and 0 < pages <= MAX_PAGES
