"""
Gadget library: reusable sub-circuits for one primitive check each.

Every gadget appends witness steps and constraints to a CircuitBuilder and
returns the name of its output signal (if any). Labels are prefixed with the
gadget instance name so a failing row can be traced back to its check.
"""

from typing import List

from .constraints import ONE, CircuitBuilder, LinearCombination, Operand, lc
from .field import inv, reduce


def commit_and_check(
    builder: CircuitBuilder, name: str, inputs: List[str], expected: str
) -> str:
    """
    Assert ``commit(*inputs) == expected``.

    The commitment output is an intermediate signal tied to the inputs by a
    black-box relation; the equality to the public value is an R1CS row.
    A mismatch leaves the system unsatisfiable.
    """
    output = f"{name}.commitment"
    input_names = tuple(inputs)
    builder.intermediate(
        output,
        lambda v, commit: commit(*(v[n] for n in input_names)),
        description=f"commit({', '.join(input_names)})",
    )
    builder.relate_commitment(f"{name}.hash", output, input_names)
    force_equal(builder, f"{name}.equal", output, expected)
    return output


def force_equal(builder: CircuitBuilder, label: str, lhs: Operand, rhs: Operand) -> None:
    """Assert ``lhs - rhs == 0`` as a single linear row."""
    builder.enforce_zero(label, lc(lhs) - lc(rhs))


def num2bits(builder: CircuitBuilder, name: str, value: Operand, n_bits: int) -> List[str]:
    """
    Decompose ``value`` into ``n_bits`` boolean signals.

    Adds one booleanity row per bit and one recomposition row. If ``value``
    does not fit in ``n_bits`` the recomposition row cannot hold, so this
    doubles as a range check.
    """
    source = lc(value)
    bits: List[str] = []
    recomposed = LinearCombination()
    for i in range(n_bits):
        bit = builder.intermediate(
            f"{name}.bits[{i}]",
            lambda v, _c, i=i: (source.evaluate(v) >> i) & 1,
        )
        builder.enforce(f"{name}.bool[{i}]", bit, lc(bit) - 1, 0)
        recomposed = recomposed + lc(bit) * (1 << i)
        bits.append(bit)
    builder.enforce(f"{name}.sum", recomposed, ONE, source)
    return bits


def less_than(
    builder: CircuitBuilder, name: str, a: Operand, b: Operand, n_bits: int
) -> str:
    """
    Output 1 iff ``a < b``, for operands that fit in ``n_bits``.

    Both operands are range-checked first: without that, the field wraps and
    the comparison stops being a correct less-than. Then
    ``a + 2^n - b`` is decomposed into ``n + 1`` bits; its top bit is set
    exactly when ``a >= b``.
    """
    num2bits(builder, f"{name}.rangeA", a, n_bits)
    num2bits(builder, f"{name}.rangeB", b, n_bits)
    shifted = lc(a) + (1 << n_bits) - lc(b)
    bits = num2bits(builder, f"{name}.diff", shifted, n_bits + 1)
    top = bits[n_bits]
    out = builder.intermediate(f"{name}.out", lambda v, _c: 1 - v[top])
    builder.enforce(f"{name}.out", lc(ONE) - top, ONE, out)
    return out


def is_zero(builder: CircuitBuilder, name: str, value: Operand) -> str:
    """
    Output 1 iff ``value == 0``, without branching.

    The prover supplies ``inv`` as a hint (``1/value``, or 0 when value is 0)
    and ``out = 1 - value * inv``. The row ``value * out == 0`` forces
    ``out = 0`` whenever ``value != 0``, whatever hint was supplied; when
    ``value == 0`` the hint drops out and ``out = 1``.
    """
    d = lc(value)
    hint = builder.intermediate(
        f"{name}.inv",
        lambda v, _c: 0 if d.evaluate(v) == 0 else inv(d.evaluate(v)),
        hint=True,
        description="inverse hint",
    )
    out = builder.intermediate(
        f"{name}.out", lambda v, _c: reduce(1 - d.evaluate(v) * v[hint])
    )
    builder.enforce(f"{name}.inverse", d, hint, lc(ONE) - out)
    builder.enforce(f"{name}.zero", d, out, 0)
    return out


def is_equal(builder: CircuitBuilder, name: str, a: Operand, b: Operand) -> str:
    """Output 1 iff ``a == b``."""
    return is_zero(builder, name, lc(a) - lc(b))
