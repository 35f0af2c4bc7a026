"""
Constraint composition for the PrescriptionValidation circuit.

Five checks, two severities:

- hard checks (credential, trusted source, authorization) are asserted
  directly; if one fails no satisfying assignment exists and no proof, not
  even a "reject" proof, can be produced;
- soft checks (freshness, contraindication) produce boolean signals that
  are ANDed into ``computedOutcome``, which must equal the declared public
  ``outcome``. An honest reject (``outcome = 0``) is provable.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

from . import gadgets
from .commitments import CommitmentScheme, Sha3FieldCommitment
from .config import CIRCUIT_NAME, COMPARATOR_BITS
from .constraints import CircuitBuilder, ConstraintSystem, WitnessStep, lc
from .exceptions import ConfigurationError

FRESH_OK = "freshness.out"
CONTRAINDICATION = "contraindication.out"
CONTRAINDICATION_HINT = "contraindication.inv"
NO_CONTRAINDICATION = "noContraindication"
COMPUTED_OUTCOME = "computedOutcome"


class Check(Enum):
    """The five checks and whether a failure is fatal."""

    CREDENTIAL = ("credential", True)
    TRUSTED_SOURCE = ("source", True)
    FRESHNESS = ("freshness", False)
    AUTHORIZATION = ("authorization", True)
    CONTRAINDICATION = ("contraindication", False)
    OUTCOME = ("outcome", True)

    def __init__(self, prefix: str, fatal: bool):
        self.prefix = prefix
        self.fatal = fatal

    @classmethod
    def from_label(cls, label: str) -> Optional["Check"]:
        prefix = label.split(".", 1)[0]
        for check in cls:
            if check.prefix == prefix:
                return check
        return None


@dataclass(frozen=True)
class PrescriptionCircuit:
    """
    The composed constraint system plus its witness calculator steps.

    Attributes:
        system: Immutable constraint system
        steps: Ordered computations of intermediate signals
        commitment: Commitment primitive the system consumes
        comparator_bits: Width of the freshness comparator
    """

    system: ConstraintSystem
    steps: Tuple[WitnessStep, ...]
    commitment: CommitmentScheme
    comparator_bits: int

    @property
    def digest(self) -> str:
        return self.system.digest()

    def hint_signals(self) -> Tuple[str, ...]:
        return tuple(s.signal for s in self.steps if s.hint)


def _expect_signal(produced: str, expected: str) -> None:
    if produced != expected:
        raise ConfigurationError(
            f"Gadget output is '{produced}', composition expects '{expected}'"
        )


def build_prescription_circuit(
    commitment: Optional[CommitmentScheme] = None,
    comparator_bits: int = COMPARATOR_BITS,
) -> PrescriptionCircuit:
    """
    Compose the five checks into one provable outcome bit.

    Args:
        commitment: One-way commitment used by the hash gadgets
            (defaults to SHA3 field commitment)
        comparator_bits: Bit width of the freshness comparator

    Returns:
        PrescriptionCircuit: system and witness steps
    """
    commitment = commitment or Sha3FieldCommitment()
    if comparator_bits <= 0:
        raise ValueError("comparator_bits must be positive")

    b = CircuitBuilder(CIRCUIT_NAME, commitment_scheme=commitment.name)

    # 1. Credential authentication (fatal)
    gadgets.commit_and_check(
        b, "credential", ["doctorId", "doctorSecret"], "doctorCredentialHash"
    )

    # 2. Trusted source (fatal)
    gadgets.commit_and_check(b, "source", ["sourceId"], "trustedSourceHash")

    # 3. Freshness: dataAge < deltaMax (soft)
    fresh_ok = gadgets.less_than(b, "freshness", "dataAge", "deltaMax", comparator_bits)
    _expect_signal(fresh_ok, FRESH_OK)

    # 4. Authorization (fatal)
    gadgets.force_equal(b, "authorization.equal", "authorizedAction", "requiredAction")

    # 5. Contraindication (soft)
    is_match = gadgets.is_equal(
        b, "contraindication", "allergyClassId", "medicationClassId"
    )
    _expect_signal(is_match, CONTRAINDICATION)
    b.intermediate(NO_CONTRAINDICATION, lambda v, _c: 1 - v[is_match])
    b.enforce("contraindication.negate", 1, 1 - lc(is_match), NO_CONTRAINDICATION)

    # Outcome: computedOutcome = freshOk AND noContraindication == outcome
    b.intermediate(
        COMPUTED_OUTCOME, lambda v, _c: v[fresh_ok] * v[NO_CONTRAINDICATION]
    )
    b.enforce("outcome.and", fresh_ok, NO_CONTRAINDICATION, COMPUTED_OUTCOME)
    gadgets.force_equal(b, "outcome.declared", COMPUTED_OUTCOME, "outcome")

    system, steps = b.build()
    return PrescriptionCircuit(
        system=system,
        steps=steps,
        commitment=commitment,
        comparator_bits=comparator_bits,
    )


def failed_checks(labels) -> Dict[str, bool]:
    """Map failing constraint labels to ``{check_prefix: fatal}``."""
    result: Dict[str, bool] = {}
    for label in labels:
        check = Check.from_label(label)
        if check is not None:
            result[check.prefix] = check.fatal
    return result
