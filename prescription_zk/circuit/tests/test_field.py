"""
Unit tests for BN254 field helpers.
"""

import pytest

from prescription_zk.circuit.exceptions import InputValidationError
from prescription_zk.circuit.field import (
    P,
    add,
    inv,
    is_boolean,
    mul,
    neg,
    parse_element,
    reduce,
    sub,
    to_decimal,
)


class TestArithmetic:
    """Modular arithmetic."""

    def test_add_wraps(self):
        assert add(P - 1, 2) == 1

    def test_sub_wraps(self):
        assert sub(0, 1) == P - 1

    def test_neg(self):
        assert neg(5) == P - 5
        assert neg(0) == 0

    def test_reduce_negative(self):
        assert reduce(-1) == P - 1

    def test_inverse(self):
        for value in (1, 2, 3, 12345, P - 1):
            assert mul(value, inv(value)) == 1

    def test_inverse_of_zero_raises(self):
        with pytest.raises(ZeroDivisionError):
            inv(0)
        with pytest.raises(ZeroDivisionError):
            inv(P)

    def test_is_boolean(self):
        assert is_boolean(0)
        assert is_boolean(1)
        assert is_boolean(P + 1)
        assert not is_boolean(2)


class TestParseElement:
    """Decimal-string decoding of signal values."""

    def test_decimal_string(self):
        assert parse_element("42") == 42

    def test_int(self):
        assert parse_element(7) == 7

    def test_whitespace_is_stripped(self):
        assert parse_element(" 12 ") == 12

    def test_largest_element(self):
        assert parse_element(str(P - 1)) == P - 1

    @pytest.mark.parametrize(
        "value", ["-1", "abc", "", "1.5", "0x10", "1_000", "\u0661\u0662\u0663", "\u00b2"]
    )
    def test_rejects_non_decimal(self, value):
        with pytest.raises(InputValidationError):
            parse_element(value)

    def test_rejects_bool(self):
        with pytest.raises(InputValidationError, match="bool"):
            parse_element(True)

    def test_rejects_negative_int(self):
        with pytest.raises(InputValidationError):
            parse_element(-3)

    def test_rejects_modulus(self):
        with pytest.raises(InputValidationError, match="modulus"):
            parse_element(str(P))

    def test_rejects_other_types(self):
        with pytest.raises(InputValidationError):
            parse_element(1.0)

    def test_label_in_message(self):
        with pytest.raises(InputValidationError, match="dataAge"):
            parse_element("x", label="dataAge")

    def test_is_value_error(self):
        with pytest.raises(ValueError):
            parse_element("nope")


def test_to_decimal_reduces():
    assert to_decimal(-1) == str(P - 1)
    assert to_decimal(P + 3) == "3"
