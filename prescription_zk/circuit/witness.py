"""
Witness construction for the PrescriptionValidation circuit.

The builder runs the circuit's witness steps to fill in every intermediate
signal, then checks all constraints and commitment relations. Nothing the
steps compute is trusted; a witness exists only if every row holds.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional

from .composition import PrescriptionCircuit, build_prescription_circuit, failed_checks
from .constraints import ONE
from .exceptions import ConstraintViolation, InputValidationError
from .field import reduce, to_decimal
from .interfaces import WitnessBuilder
from .signals import INPUT_SIGNALS, PublicInputVector, validate_witness_input

logger = logging.getLogger(__name__)


class WitnessAssignment(Mapping[str, int]):
    """
    Immutable satisfying assignment of every signal.

    Only PrescriptionWitnessBuilder creates instances; the proving oracle
    reads it and never writes.
    """

    __slots__ = ("_values", "_circuit_digest")

    def __init__(self, values: Mapping[str, int], circuit_digest: str):
        self._values = MappingProxyType(dict(values))
        self._circuit_digest = circuit_digest

    def __getitem__(self, name: str) -> int:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"WitnessAssignment({len(self)} signals, circuit={self._circuit_digest[:12]})"

    @property
    def circuit_digest(self) -> str:
        return self._circuit_digest

    @property
    def public_inputs(self) -> PublicInputVector:
        return PublicInputVector.from_mapping(self._values)

    def input_signals(self) -> Dict[str, str]:
        """Decimal-string encoding of the input signals (circom input.json)."""
        return {name: to_decimal(self._values[name]) for name in INPUT_SIGNALS}


class PrescriptionWitnessBuilder(WitnessBuilder):
    """
    Evaluate the composed circuit against a concrete assignment.

    Example:
        >>> builder = PrescriptionWitnessBuilder()
        >>> witness = builder.build(inputs)  # doctest: +SKIP
        >>> witness.public_inputs.outcome
        1
    """

    def __init__(self, circuit: Optional[PrescriptionCircuit] = None):
        self._circuit = circuit or build_prescription_circuit()
        self._digest = self._circuit.digest

    @property
    def circuit(self) -> PrescriptionCircuit:
        return self._circuit

    def calculate(
        self,
        inputs: Mapping[str, Any],
        overrides: Optional[Mapping[str, int]] = None,
    ) -> Dict[str, int]:
        """
        Run the witness steps without checking constraints.

        ``overrides`` replaces the computed value of intermediate signals,
        modelling a prover that supplies arbitrary hints. Inputs cannot be
        overridden this way.
        """
        values: Dict[str, int] = dict(validate_witness_input(inputs))
        overrides = dict(overrides or {})
        known = {s.signal for s in self._circuit.steps}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise InputValidationError(
                f"Cannot override non-intermediate signal(s): {', '.join(unknown)}"
            )

        commit = self._circuit.commitment.commit
        for step in self._circuit.steps:
            if step.signal in overrides:
                values[step.signal] = reduce(overrides[step.signal])
            else:
                values[step.signal] = reduce(step.compute(values, commit))
        return values

    def build(
        self,
        inputs: Mapping[str, Any],
        overrides: Optional[Mapping[str, int]] = None,
    ) -> WitnessAssignment:
        values = self.calculate(inputs, overrides)
        system = self._circuit.system
        failed = system.unsatisfied(values, self._circuit.commitment.commit)
        if failed:
            checks = failed_checks(failed)
            logger.debug("witness rejected: %s", ", ".join(failed))
            raise ConstraintViolation(
                "No satisfying assignment: "
                f"{', '.join(sorted(checks)) or 'unknown'} check failed "
                f"({', '.join(failed[:4])}{'...' if len(failed) > 4 else ''})",
                labels=failed,
            )
        values.pop(ONE, None)
        return WitnessAssignment(values, self._digest)
