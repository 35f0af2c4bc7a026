"""
Witness -> proof -> verification pipeline.

The pipeline owns no cryptography: it sequences the witness builder, the
proving oracle and the verification oracle of an injected backend.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Tuple

from .ceremony import CeremonyReport
from .exceptions import VerificationMismatch
from .interfaces import ProofBackend
from .signals import PublicInputVector
from .types import Proof, ProofBundle, ProvingKey, VerificationKey
from .witness import WitnessAssignment

logger = logging.getLogger(__name__)


class PrescriptionPipeline:
    """
    Bind a backend to one key pair.

    Example:
        >>> pipeline, report = PrescriptionPipeline.from_setup(ReferenceBackend())
        >>> bundle = pipeline.full_prove(inputs)  # doctest: +SKIP
        >>> pipeline.verify(bundle)  # doctest: +SKIP
        True
    """

    def __init__(
        self,
        backend: ProofBackend,
        proving_key: ProvingKey,
        verification_key: VerificationKey,
    ):
        self._backend = backend
        self._proving_key = proving_key
        self._verification_key = verification_key

    @classmethod
    def from_setup(
        cls,
        backend: ProofBackend,
        contributions: Optional[Tuple[Tuple[str, str], ...]] = None,
    ) -> Tuple["PrescriptionPipeline", CeremonyReport]:
        """
        Raises:
            SetupFailure: If key generation fails
        """
        proving_key, verification_key, report = backend.setup(contributions)
        return cls(backend, proving_key, verification_key), report

    @property
    def backend(self) -> ProofBackend:
        return self._backend

    @property
    def proving_key(self) -> ProvingKey:
        return self._proving_key

    @property
    def verification_key(self) -> VerificationKey:
        return self._verification_key

    def build_witness(
        self,
        inputs: Mapping[str, Any],
        overrides: Optional[Mapping[str, int]] = None,
    ) -> WitnessAssignment:
        """
        Raises:
            ConstraintViolation: If no satisfying assignment exists
        """
        return self._backend.witness_builder.build(inputs, overrides)

    def prove(self, witness: WitnessAssignment) -> ProofBundle:
        proof, public_inputs = self._backend.prove(witness, self._proving_key)
        return ProofBundle(proof=proof, public_inputs=public_inputs)

    def full_prove(
        self,
        inputs: Mapping[str, Any],
        overrides: Optional[Mapping[str, int]] = None,
    ) -> ProofBundle:
        """Build the witness and prove it in one step."""
        return self.prove(self.build_witness(inputs, overrides))

    def verify(
        self,
        bundle: ProofBundle,
        verification_key: Optional[VerificationKey] = None,
    ) -> bool:
        """Check a bundle against this pipeline's key, or an explicit one."""
        key = verification_key or self._verification_key
        ok = self._backend.verify(key, bundle.public_inputs, bundle.proof)
        logger.debug("verify outcome=%d -> %s", bundle.public_inputs.outcome, ok)
        return ok

    def verify_or_raise(
        self,
        bundle: ProofBundle,
        verification_key: Optional[VerificationKey] = None,
    ) -> None:
        """
        Raises:
            VerificationMismatch: If the proof does not verify
        """
        if not self.verify(bundle, verification_key):
            raise VerificationMismatch(
                "Proof does not verify for public inputs "
                f"{bundle.public_inputs.to_decimal_strings()}"
            )

    def verify_parts(self, proof: Proof, public_inputs: PublicInputVector) -> bool:
        return self.verify(ProofBundle(proof=proof, public_inputs=public_inputs))
