"""
Rank-1 constraint system primitives.

A constraint is a degree-2 equality ``<A, w> * <B, w> = <C, w>`` over linear
combinations of signals, where ``w`` is the full witness including the
constant wire ``one``. Gadgets that the system consumes as trusted
primitives (the one-way commitment) are recorded as black-box relations
next to the constraints; they are checked by evaluating the primitive, not
by expanding its internals.

The builder collects, in evaluation order, how every intermediate signal is
computed out of circuit. Those computations are never trusted: the witness
is accepted only if every constraint and relation holds afterwards.
"""

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from .config import DOMAIN_SEPARATORS, PUBLIC_SIGNAL_ORDER
from .field import P
from .signals import INPUT_SIGNALS, Signal, Visibility

ONE = "one"

Scalar = int
Operand = Union["LinearCombination", str, int]


# ============================================================================
# LINEAR COMBINATIONS
# ============================================================================


@dataclass(frozen=True)
class LinearCombination:
    """
    Sparse linear combination of signals with field coefficients.

    Terms are normalized (merged, zero coefficients dropped, sorted by name)
    so that equal combinations compare and hash equal.
    """

    terms: Tuple[Tuple[str, int], ...] = ()

    def __post_init__(self):
        merged: Dict[str, int] = {}
        for name, coeff in self.terms:
            merged[name] = (merged.get(name, 0) + coeff) % P
        normalized = tuple(sorted((n, c) for n, c in merged.items() if c))
        object.__setattr__(self, "terms", normalized)

    @classmethod
    def of(cls, value: Operand) -> "LinearCombination":
        if isinstance(value, LinearCombination):
            return value
        if isinstance(value, str):
            return cls(((value, 1),))
        if isinstance(value, int) and not isinstance(value, bool):
            return cls(((ONE, value),))
        raise TypeError(f"Cannot build a linear combination from {value!r}")

    def __add__(self, other: Operand) -> "LinearCombination":
        return LinearCombination(self.terms + LinearCombination.of(other).terms)

    __radd__ = __add__

    def __neg__(self) -> "LinearCombination":
        return LinearCombination(tuple((n, -c) for n, c in self.terms))

    def __sub__(self, other: Operand) -> "LinearCombination":
        return self + (-LinearCombination.of(other))

    def __rsub__(self, other: Operand) -> "LinearCombination":
        return LinearCombination.of(other) - self

    def __mul__(self, scalar: int) -> "LinearCombination":
        if not isinstance(scalar, int) or isinstance(scalar, bool):
            raise TypeError("Linear combinations only scale by field constants")
        return LinearCombination(tuple((n, c * scalar) for n, c in self.terms))

    __rmul__ = __mul__

    def evaluate(self, values: Mapping[str, int]) -> int:
        total = 0
        for name, coeff in self.terms:
            total += coeff * (1 if name == ONE else values[name])
        return total % P

    def signals(self) -> Tuple[str, ...]:
        return tuple(n for n, _ in self.terms if n != ONE)

    def to_dict(self) -> Dict[str, str]:
        return {name: str(coeff) for name, coeff in self.terms}

    def __str__(self) -> str:
        if not self.terms:
            return "0"
        parts = []
        for name, coeff in self.terms:
            if coeff == 1:
                parts.append(name)
            elif coeff == P - 1:
                parts.append(f"-{name}")
            else:
                parts.append(f"{coeff}*{name}")
        return " + ".join(parts)


def lc(value: Operand) -> LinearCombination:
    return LinearCombination.of(value)


# ============================================================================
# CONSTRAINTS
# ============================================================================


@dataclass(frozen=True)
class Constraint:
    """
    One R1CS row: ``a * b == c``.

    Attributes:
        label: Unique name of the row, prefixed by the check it belongs to
        a, b, c: Linear combinations
    """

    label: str
    a: LinearCombination
    b: LinearCombination
    c: LinearCombination

    @property
    def check(self) -> str:
        return self.label.split(".", 1)[0]

    def residual(self, values: Mapping[str, int]) -> int:
        return (self.a.evaluate(values) * self.b.evaluate(values) - self.c.evaluate(values)) % P

    def is_satisfied(self, values: Mapping[str, int]) -> bool:
        return self.residual(values) == 0

    def signals(self) -> Tuple[str, ...]:
        seen: Dict[str, None] = {}
        for part in (self.a, self.b, self.c):
            for name in part.signals():
                seen.setdefault(name)
        return tuple(seen)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "A": self.a.to_dict(),
            "B": self.b.to_dict(),
            "C": self.c.to_dict(),
        }

    def __str__(self) -> str:
        return f"[{self.label}] ({self.a}) * ({self.b}) == ({self.c})"


@dataclass(frozen=True)
class CommitmentRelation:
    """
    Black-box relation ``output == commit(*inputs)`` checked by the consumed
    commitment primitive.
    """

    label: str
    output: str
    inputs: Tuple[str, ...]

    @property
    def check(self) -> str:
        return self.label.split(".", 1)[0]

    def is_satisfied(self, values: Mapping[str, int], commit: Callable[..., int]) -> bool:
        return values[self.output] % P == commit(*(values[n] for n in self.inputs)) % P

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "gadget": "commitment",
            "output": self.output,
            "inputs": list(self.inputs),
        }


# ============================================================================
# CONSTRAINT SYSTEM
# ============================================================================


@dataclass(frozen=True)
class ConstraintSystem:
    """
    Immutable set of constraints fixed at design time.

    Attributes:
        name: Circuit name
        signals: Every signal, inputs first then intermediates in evaluation order
        constraints: R1CS rows
        relations: Black-box commitment relations
        commitment_scheme: Identifier of the commitment primitive consumed
    """

    name: str
    signals: Tuple[Signal, ...]
    constraints: Tuple[Constraint, ...]
    relations: Tuple[CommitmentRelation, ...]
    commitment_scheme: str

    def signal_names(self) -> Tuple[str, ...]:
        return tuple(s.name for s in self.signals)

    def public_signals(self) -> Tuple[str, ...]:
        return PUBLIC_SIGNAL_ORDER

    def unsatisfied(
        self, values: Mapping[str, int], commit: Callable[..., int]
    ) -> List[str]:
        """Return labels of every constraint and relation that does not hold."""
        failed = [r.label for r in self.relations if not r.is_satisfied(values, commit)]
        failed.extend(c.label for c in self.constraints if not c.is_satisfied(values))
        return failed

    def info(self) -> Dict[str, Any]:
        """
        Statistics in the shape reported by ``snarkjs r1cs info``.

        ``nVars`` counts the constant wire.
        """
        n_public = sum(1 for s in self.signals if s.visibility is Visibility.PUBLIC)
        n_private = sum(1 for s in self.signals if s.visibility is Visibility.PRIVATE)
        return {
            "curve": "bn128",
            "nVars": len(self.signals) + 1,
            "nConstraints": len(self.constraints),
            "nRelations": len(self.relations),
            "nPubInputs": n_public,
            "nPrvInputs": n_private,
            "nOutputs": 0,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "commitment_scheme": self.commitment_scheme,
            "signals": [[s.name, s.visibility.value] for s in self.signals],
            "constraints": [c.to_dict() for c in self.constraints],
            "relations": [r.to_dict() for r in self.relations],
        }

    def digest(self) -> str:
        """SHA3-256 over a canonical encoding of the whole system."""
        encoded = json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))
        h = hashlib.sha3_256()
        h.update(DOMAIN_SEPARATORS["circuit"])
        h.update(encoded.encode("utf-8"))
        return h.hexdigest()


# ============================================================================
# BUILDER
# ============================================================================

ComputeFn = Callable[[Mapping[str, int], Callable[..., int]], int]


@dataclass(frozen=True)
class WitnessStep:
    """
    Out-of-circuit computation of one intermediate signal.

    ``hint`` marks non-deterministic advice (e.g. an inverse) whose value is
    constrained only indirectly.
    """

    signal: str
    compute: ComputeFn
    hint: bool = False


@dataclass
class CircuitBuilder:
    """
    Collects signals, witness steps, constraints and relations.

    Example:
        >>> b = CircuitBuilder("demo", commitment_scheme="sha3")
        >>> b.intermediate("sq", lambda v, _: v["x"] * v["x"])
        'sq'
    """

    name: str
    commitment_scheme: str
    _signals: Dict[str, Signal] = field(default_factory=dict)
    _steps: List[WitnessStep] = field(default_factory=list)
    _constraints: List[Constraint] = field(default_factory=list)
    _relations: List[CommitmentRelation] = field(default_factory=list)

    def __post_init__(self):
        for signal in INPUT_SIGNALS.values():
            self._signals[signal.name] = signal

    def _check_new(self, name: str) -> None:
        if name == ONE or name in self._signals:
            raise ValueError(f"Signal {name!r} already declared")

    def _check_label(self, label: str) -> None:
        labels = {c.label for c in self._constraints}
        labels.update(r.label for r in self._relations)
        if label in labels:
            raise ValueError(f"Constraint label {label!r} already used")

    def _check_known(self, names: Iterable[str]) -> None:
        for name in names:
            if name != ONE and name not in self._signals:
                raise ValueError(f"Unknown signal {name!r}")

    def intermediate(
        self, name: str, compute: ComputeFn, *, hint: bool = False, description: str = ""
    ) -> str:
        self._check_new(name)
        self._signals[name] = Signal(name, Visibility.INTERMEDIATE, description)
        self._steps.append(WitnessStep(name, compute, hint))
        return name

    def enforce(self, label: str, a: Operand, b: Operand, c: Operand) -> Constraint:
        self._check_label(label)
        constraint = Constraint(label, lc(a), lc(b), lc(c))
        self._check_known(constraint.signals())
        self._constraints.append(constraint)
        return constraint

    def enforce_zero(self, label: str, value: Operand) -> Constraint:
        """Linear constraint ``value == 0``."""
        return self.enforce(label, value, ONE, 0)

    def relate_commitment(
        self, label: str, output: str, inputs: Iterable[str]
    ) -> CommitmentRelation:
        self._check_label(label)
        relation = CommitmentRelation(label, output, tuple(inputs))
        self._check_known((output,) + relation.inputs)
        self._relations.append(relation)
        return relation

    def build(self) -> Tuple[ConstraintSystem, Tuple[WitnessStep, ...]]:
        system = ConstraintSystem(
            name=self.name,
            signals=tuple(self._signals.values()),
            constraints=tuple(self._constraints),
            relations=tuple(self._relations),
            commitment_scheme=self.commitment_scheme,
        )
        return system, tuple(self._steps)


def describe(system: ConstraintSystem, limit: Optional[int] = None) -> str:
    """Render constraints one per line (debugging aid)."""
    rows = [str(c) for c in system.constraints]
    rows.extend(
        f"[{r.label}] {r.output} == commit({', '.join(r.inputs)})" for r in system.relations
    )
    if limit is not None and len(rows) > limit:
        rows = rows[:limit] + [f"... ({len(rows) - limit} more)"]
    return "\n".join(rows)
