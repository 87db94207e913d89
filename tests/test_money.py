import math

import pytest

from money import all_amounts, as_price, first_amount, parse_amount, plausible


def test_parse_amount_thousands_and_decimal():
    assert parse_amount("1,234.56") == 1234.56


def test_parse_amount_decimal_comma():
    assert parse_amount("12,34") == 12.34


def test_parse_amount_thousands_comma():
    assert parse_amount("1,234") == 1234


def test_parse_amount_multiple_thousands_commas():
    assert parse_amount("1,234,567") == 1234567


def test_parse_amount_strips_currency_and_spaces():
    assert parse_amount("$ 19.99 USD") == 19.99
    assert parse_amount("€1.299,00") == pytest.approx(1.299)  # dot+comma: commas are thousands


@pytest.mark.parametrize("garbage", ["", None, "abc", "--", ".", "N/A"])
def test_parse_amount_garbage_is_nan(garbage):
    assert math.isnan(parse_amount(garbage))


def test_parse_amount_uses_leading_number_only():
    assert parse_amount("12.5-3") == 12.5


def test_first_amount_with_currency_marker():
    assert first_amount("Now only £51.77 (was £60)") == 51.77
    assert first_amount("CAD 24,99") == 24.99


def test_first_amount_no_digits_is_nan():
    assert math.isnan(first_amount("call for price"))


def test_all_amounts_in_order():
    assert all_amounts("Price: $19.99, was $29.99") == [19.99, 29.99]


def test_all_amounts_empty_inputs():
    assert all_amounts("") == []
    assert all_amounts(None) == []
    assert all_amounts("no numbers here") == []


def test_plausible_filters_and_sorts():
    assert plausible([60000, 3.5, 0.1, 12.0]) == [3.5, 12.0]
    assert plausible([1500, 7.99], high=1000) == [7.99]


def test_as_price():
    assert as_price(12) == 12.0
    assert as_price("$8.50") == 8.5
    assert as_price(-1) is None
    assert as_price("free") is None
    assert as_price(True) is None
    assert as_price({"price": 3}) is None
    assert as_price(float("inf")) is None
