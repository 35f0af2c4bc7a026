"""
Interfaces for the consumed proving capabilities.

The core never assumes anything about how witnesses are calculated or how
proofs are produced and checked beyond these input/output contracts.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Tuple

if TYPE_CHECKING:
    from .ceremony import CeremonyReport
    from .commitments import CommitmentScheme
    from .signals import PublicInputVector
    from .types import Proof, ProvingKey, VerificationKey
    from .witness import WitnessAssignment


class WitnessBuilder(ABC):
    """Signal assignment -> satisfying assignment, or ConstraintViolation."""

    @abstractmethod
    def build(
        self,
        inputs: Mapping[str, Any],
        overrides: Optional[Mapping[str, int]] = None,
    ) -> "WitnessAssignment":
        """
        Raises:
            ConstraintViolation: If no satisfying assignment exists
            InputValidationError: If the inputs are malformed
        """


class ProvingOracle(ABC):
    """Witness + proving key -> proof bound to a public input vector."""

    @abstractmethod
    def prove(
        self, witness: "WitnessAssignment", proving_key: "ProvingKey"
    ) -> Tuple["Proof", "PublicInputVector"]:
        """
        Raises:
            ProofGenerationError: If the oracle fails
        """


class VerificationOracle(ABC):
    """Proof + public input vector + verification key -> bool."""

    @abstractmethod
    def verify(
        self,
        verification_key: "VerificationKey",
        public_inputs: "PublicInputVector",
        proof: "Proof",
    ) -> bool:
        """Never raises for malformed artifacts; returns False instead."""


class ProofBackend(ProvingOracle, VerificationOracle):
    """
    A complete proving system: key setup plus the three capabilities.
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        pass

    @property
    @abstractmethod
    def backend_version(self) -> str:
        pass

    @property
    @abstractmethod
    def commitment(self) -> "CommitmentScheme":
        """Commitment scheme the backend's circuit consumes."""

    @property
    @abstractmethod
    def witness_builder(self) -> WitnessBuilder:
        pass

    @abstractmethod
    def setup(
        self, contributions: Optional[Tuple[Tuple[str, str], ...]] = None
    ) -> Tuple["ProvingKey", "VerificationKey", "CeremonyReport"]:
        """
        Run the key-generation ceremony.

        Raises:
            SetupFailure: If any ceremony step fails
        """

    @abstractmethod
    def get_backend_info(self) -> Dict[str, Any]:
        pass
