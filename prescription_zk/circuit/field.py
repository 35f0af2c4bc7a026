"""
Arithmetic over the BN254 scalar field.

Field elements are plain Python ints in ``[0, FIELD_MODULUS)``; the helpers
here reduce, invert and encode them. Negative numbers are mapped to their
additive inverse, the way circom treats them.
"""

import re
from typing import Union

from .config import FIELD_MODULUS
from .exceptions import InputValidationError

P = FIELD_MODULUS

_DECIMAL = re.compile(r"[0-9]+")


def reduce(value: int) -> int:
    return int(value) % P


def add(a: int, b: int) -> int:
    return (a + b) % P


def sub(a: int, b: int) -> int:
    return (a - b) % P


def mul(a: int, b: int) -> int:
    return (a * b) % P


def neg(a: int) -> int:
    return (-a) % P


def inv(a: int) -> int:
    """
    Multiplicative inverse via Fermat's little theorem.

    Raises:
        ZeroDivisionError: If ``a`` is zero in the field
    """
    a = a % P
    if a == 0:
        raise ZeroDivisionError("inverse of zero")
    return pow(a, P - 2, P)


def is_boolean(a: int) -> bool:
    return a % P in (0, 1)


def parse_element(value: Union[str, int], label: str = "value") -> int:
    """
    Parse a decimal-string (or int) encoded field element.

    The witness input format carries every signal as a decimal string. Ints
    are accepted for convenience. Values must already be canonical, i.e.
    within ``[0, FIELD_MODULUS)``; silently reducing them would let two
    different inputs alias the same signal.

    Raises:
        InputValidationError: If the value is not a canonical field element
    """
    if isinstance(value, bool):
        raise InputValidationError(f"{label} must be a decimal string or int, got bool")
    if isinstance(value, int):
        number = value
    elif isinstance(value, str):
        text = value.strip()
        if not _DECIMAL.fullmatch(text):
            raise InputValidationError(
                f"{label} must be a non-negative decimal string, got {value!r}"
            )
        number = int(text, 10)
    else:
        raise InputValidationError(
            f"{label} must be a decimal string or int, got {type(value).__name__}"
        )

    if number < 0:
        raise InputValidationError(f"{label} must be non-negative")
    if number >= P:
        raise InputValidationError(f"{label} is not below the field modulus")
    return number


def to_decimal(value: int) -> str:
    return str(value % P)
