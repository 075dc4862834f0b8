"""Tests for tolerant numeric parsing."""

from decimal import Decimal

import pytest

from rental_invoicing.calculators.numeric import (
    round_to_cents,
    safe_parse_int,
    safe_parse_number,
)


class TestSafeParseNumber:
    """safe_parse_number never raises and falls back on garbage."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            (None, Decimal("0")),
            ("", Decimal("0")),
            ("   ", Decimal("0")),
            ("abc", Decimal("0")),
            (float("nan"), Decimal("0")),
            (float("inf"), Decimal("0")),
            (Decimal("NaN"), Decimal("0")),
            (True, Decimal("0")),
            ([1, 2], Decimal("0")),
        ],
    )
    def test_unparseable_returns_fallback(self, value, expected):
        assert safe_parse_number(value) == expected

    def test_custom_fallback(self):
        assert safe_parse_number("n/a", fallback=Decimal("1")) == Decimal("1")

    def test_numeric_strings(self):
        assert safe_parse_number("25.50") == Decimal("25.50")
        assert safe_parse_number(" -3 ") == Decimal("-3")
        assert safe_parse_number(".5") == Decimal(".5")
        assert safe_parse_number("1e2") == Decimal("100")

    def test_leading_number_prefix(self):
        """Trailing text after a number is ignored."""
        assert safe_parse_number("12.5kg") == Decimal("12.5")
        assert safe_parse_number("3 days") == Decimal("3")

    def test_float_keeps_short_repr(self):
        assert safe_parse_number(25.5) == Decimal("25.5")
        assert safe_parse_number(0.1) == Decimal("0.1")

    def test_int_and_decimal_pass_through(self):
        assert safe_parse_number(7) == Decimal("7")
        assert safe_parse_number(Decimal("9.99")) == Decimal("9.99")


class TestSafeParseInt:
    def test_truncates(self):
        assert safe_parse_int("2.9", fallback=1) == 2
        assert safe_parse_int("-2.9", fallback=1) == -2

    def test_fallback(self):
        assert safe_parse_int(None, fallback=1) == 1
        assert safe_parse_int("many", fallback=3) == 3


class TestRoundToCents:
    def test_half_up(self):
        assert round_to_cents(Decimal("0.125")) == Decimal("0.13")
        assert round_to_cents(Decimal("0.124")) == Decimal("0.12")
        assert round_to_cents(Decimal("-0.125")) == Decimal("-0.13")

    def test_whole_number_gets_two_places(self):
        assert str(round_to_cents(Decimal("5"))) == "5.00"

    def test_carry_into_new_digit(self):
        assert round_to_cents(Decimal("999.995")) == Decimal("1000.00")

    def test_amounts_beyond_default_precision(self):
        """Huge parsed values round instead of signalling InvalidOperation."""
        rounded = round_to_cents(safe_parse_number("1e30"))
        assert rounded == Decimal("1e30")
        assert str(rounded).endswith(".00")

        carried = round_to_cents(Decimal("9" * 30 + ".999"))
        assert carried == Decimal("1" + "0" * 30)
