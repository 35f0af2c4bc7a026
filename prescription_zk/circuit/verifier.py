"""
Stand-alone verifier entry point.

``PrescriptionVerifier(vk).verify(proof_parts, public_inputs)`` is the
contract an on-chain verifier exposes: pure, and False for anything it
cannot parse.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence, Union

from .interfaces import VerificationOracle
from .signals import PublicInputVector
from .types import Proof, VerificationKey

logger = logging.getLogger(__name__)

ProofParts = Union[Proof, Mapping[str, Any], Sequence[Any]]


def default_oracle(verification_key: VerificationKey) -> VerificationOracle:
    """Pick the verification oracle matching the key's protocol."""
    from .backends import reference, snarkjs

    if verification_key.protocol == reference.PROTOCOL:
        return reference.ReferenceBackend()
    if verification_key.protocol == snarkjs.PROTOCOL:
        return snarkjs.SnarkjsBackend()
    raise ValueError(f"No verifier for protocol {verification_key.protocol!r}")


class PrescriptionVerifier:
    """
    Verify proofs against a single verification key.

    Args:
        verification_key: Key exported by the setup ceremony
        oracle: Verification oracle (default: chosen by the key's protocol)
    """

    def __init__(
        self,
        verification_key: VerificationKey,
        oracle: Optional[VerificationOracle] = None,
    ):
        self._vk = verification_key
        self._oracle = oracle

    @property
    def verification_key(self) -> VerificationKey:
        return self._vk

    def _coerce_proof(self, proof_parts: ProofParts) -> Proof:
        if isinstance(proof_parts, Proof):
            return proof_parts
        if isinstance(proof_parts, Mapping):
            return Proof.from_dict(proof_parts)
        pi_a, pi_b, pi_c = proof_parts
        return Proof(pi_a, pi_b, pi_c, protocol=self._vk.protocol, curve=self._vk.curve)

    def verify(
        self,
        proof_parts: ProofParts,
        public_inputs: Union[PublicInputVector, Sequence[Any]],
    ) -> bool:
        try:
            proof = self._coerce_proof(proof_parts)
            if not isinstance(public_inputs, PublicInputVector):
                public_inputs = PublicInputVector.from_decimal_strings(public_inputs)
            oracle = self._oracle or default_oracle(self._vk)
            return bool(oracle.verify(self._vk, public_inputs, proof))
        except Exception:
            logger.debug("rejecting malformed verification input", exc_info=True)
            return False
