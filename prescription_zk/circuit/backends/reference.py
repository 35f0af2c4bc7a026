"""
In-process reference backend.

A designated-prover attestation scheme: the ceremony derives an Ed25519
signing key, and a "proof" is a signature over the verification key digest,
the circuit digest, the public input vector and a fresh blinding nonce. It is
NOT zero-knowledge succinct; it exists so the pipeline and the scenario
harness can run without the circom/snarkjs toolchain.

It honours the same binding contract as Groth16: a proof verifies for exactly
one (verification key, public input vector) pair, and the prover refuses any
witness that does not satisfy the constraint system.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from ..ceremony import (
    CeremonyReport,
    check_contributions,
    contribution_hash,
    phase2_contributions,
    summarize_key,
    verify_contribution_chain,
)
from ..commitments import CommitmentScheme, Sha3FieldCommitment
from ..composition import PrescriptionCircuit, build_prescription_circuit
from ..config import DEFAULT_CONTRIBUTIONS, DOMAIN_SEPARATORS, PUBLIC_SIGNAL_ORDER
from ..constraints import ONE
from ..exceptions import ConstraintViolation, ProofGenerationError, SetupFailure
from ..interfaces import ProofBackend
from ..security import RandomnessSource, constant_time_compare, hash_parts, hash_to_field
from ..signals import PublicInputVector
from ..types import Proof, ProvingKey, VerificationKey
from ..witness import PrescriptionWitnessBuilder, WitnessAssignment

logger = logging.getLogger(__name__)

PROTOCOL = "attestation"
CURVE = "ed25519"
NONCE_LEN = 32


def _scalar_bytes(value: int) -> bytes:
    return value.to_bytes(32, "big")


def _derive_point(public_key: bytes, label: bytes) -> Tuple[str, str, str]:
    domain = DOMAIN_SEPARATORS["verification_key"]
    x = hash_to_field(public_key + label + b"x", domain)
    y = hash_to_field(public_key + label + b"y", domain)
    return str(x), str(y), "1"


def _signed_message(
    vk_digest: str, circuit_digest: str, public_inputs: PublicInputVector, nonce: bytes
) -> bytes:
    parts = [bytes.fromhex(vk_digest), bytes.fromhex(circuit_digest)]
    parts.extend(_scalar_bytes(v) for v in public_inputs.values)
    parts.append(nonce)
    return hash_parts(DOMAIN_SEPARATORS["attestation"], parts)


class ReferenceBackend(ProofBackend):
    """
    Ed25519 attestation backend.

    Example:
        >>> backend = ReferenceBackend()
        >>> pk, vk, report = backend.setup()
        >>> witness = backend.witness_builder.build(inputs)  # doctest: +SKIP
        >>> proof, public = backend.prove(witness, pk)  # doctest: +SKIP
        >>> backend.verify(vk, public, proof)  # doctest: +SKIP
        True
    """

    _BACKEND_NAME = "ReferenceAttestationBackend"
    _BACKEND_VERSION = "0.1.0"

    def __init__(
        self,
        commitment: Optional[CommitmentScheme] = None,
        circuit: Optional[PrescriptionCircuit] = None,
    ) -> None:
        if circuit is None:
            circuit = build_prescription_circuit(commitment or Sha3FieldCommitment())
        self._circuit = circuit
        self._witness_builder = PrescriptionWitnessBuilder(circuit)
        self._rng = RandomnessSource()

    @property
    def backend_name(self) -> str:
        return self._BACKEND_NAME

    @property
    def backend_version(self) -> str:
        return self._BACKEND_VERSION

    @property
    def commitment(self) -> CommitmentScheme:
        return self._circuit.commitment

    @property
    def witness_builder(self) -> PrescriptionWitnessBuilder:
        return self._witness_builder

    @property
    def circuit(self) -> PrescriptionCircuit:
        return self._circuit

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def setup(
        self, contributions: Optional[Tuple[Tuple[str, str], ...]] = None
    ) -> Tuple[ProvingKey, VerificationKey, CeremonyReport]:
        contributions = tuple(contributions or DEFAULT_CONTRIBUTIONS)
        check_contributions(contributions)

        report = CeremonyReport(circuit=self._circuit.system.name, backend=self.backend_name)
        system = self._circuit.system
        circuit_digest = self._circuit.digest

        report.r1cs_info = system.info()
        report.step(
            "STEP 1: Constraint system",
            f"Constraints: {len(system.constraints)}",
            f"Commitment relations: {len(system.relations)}",
            f"Circuit digest: {circuit_digest}",
        )

        # Phase 1: circuit-independent accumulator
        phase1 = self._run_phase(report, 1, "", contributions)

        # Phase 2: bound to this circuit
        start = hash_parts(
            DOMAIN_SEPARATORS["ceremony"],
            [bytes.fromhex(phase1), bytes.fromhex(circuit_digest)],
        ).hex()
        phase2 = self._run_phase(
            report, 2, start, phase2_contributions(contributions)
        )

        try:
            seed = hash_parts(
                DOMAIN_SEPARATORS["ceremony"], [b"attestor", bytes.fromhex(phase2)]
            )
            signing_key = Ed25519PrivateKey.from_private_bytes(seed)
            public_key = signing_key.public_key().public_bytes(
                Encoding.Raw, PublicFormat.Raw
            )
        except ValueError as exc:
            raise SetupFailure(f"Key derivation failed: {exc}") from exc

        n_public = len(PUBLIC_SIGNAL_ORDER)
        vk = VerificationKey(
            protocol=PROTOCOL,
            curve=CURVE,
            n_public=n_public,
            ic=tuple(
                _derive_point(public_key, b"IC" + i.to_bytes(2, "big"))
                for i in range(n_public + 1)
            ),
            constants=(
                ("vk_alpha_1", list(_derive_point(public_key, b"alpha"))),
                ("attestor", public_key.hex()),
                ("circuit_digest", circuit_digest),
                ("commitment", self.commitment.name),
                ("signals", list(PUBLIC_SIGNAL_ORDER)),
            ),
        )
        if not vk.is_well_formed:
            raise SetupFailure("Derived verification key is malformed")

        pk = ProvingKey(
            protocol=PROTOCOL,
            circuit_digest=circuit_digest,
            material={"seed": seed.hex(), "vk_digest": vk.digest()},
        )

        report.step(
            "STEP 4: Export verification key",
            f"nPublic: {n_public}",
            f"Attestor key: {public_key.hex()}",
        )
        report.verification_key_summary = summarize_key(vk.to_dict())
        logger.info(
            "reference ceremony complete: circuit=%s vk=%s",
            circuit_digest[:12],
            vk.digest()[:12],
        )
        return pk, vk, report.finish()

    def _run_phase(
        self,
        report: CeremonyReport,
        phase: int,
        initial: str,
        contributions: Tuple[Tuple[str, str], ...],
    ) -> str:
        hashes = []
        current = initial
        lines = []
        for name, entropy in contributions:
            current = contribution_hash(current, name, entropy)
            hashes.append(current)
            report.contribute(phase, name, current)
            lines.append(f"{name}: {current}")

        if not verify_contribution_chain(initial, contributions, hashes):
            raise SetupFailure(f"Phase {phase} contribution chain does not verify")
        lines.append("Chain verified: True")

        title = "Powers of tau" if phase == 1 else "Circuit-specific setup"
        report.step(f"STEP {phase + 1}: Phase {phase} - {title}", *lines)
        logger.debug("phase %d final hash %s", phase, current)
        return current

    # ------------------------------------------------------------------
    # Proving
    # ------------------------------------------------------------------

    def prove(
        self, witness: WitnessAssignment, proving_key: ProvingKey
    ) -> Tuple[Proof, PublicInputVector]:
        if not isinstance(witness, WitnessAssignment):
            raise ProofGenerationError(f"Expected WitnessAssignment, got {type(witness)}")
        if proving_key.protocol != PROTOCOL:
            raise ProofGenerationError(
                f"Proving key is for {proving_key.protocol!r}, not {PROTOCOL!r}"
            )
        circuit_digest = self._circuit.digest
        if witness.circuit_digest != circuit_digest:
            raise ProofGenerationError("Witness was built for a different circuit")
        if proving_key.circuit_digest != circuit_digest:
            raise ProofGenerationError("Proving key was generated for a different circuit")

        values = dict(witness)
        values[ONE] = 1
        try:
            failed = self._circuit.system.unsatisfied(values, self.commitment.commit)
        except KeyError as exc:
            raise ProofGenerationError(f"Witness is missing signal {exc}") from exc
        if failed:
            raise ConstraintViolation(
                f"Witness does not satisfy: {', '.join(failed)}", labels=failed
            )

        try:
            signing_key = Ed25519PrivateKey.from_private_bytes(
                bytes.fromhex(proving_key.get("seed"))
            )
            vk_digest = proving_key.get("vk_digest")
        except (KeyError, ValueError) as exc:
            raise ProofGenerationError(f"Malformed proving key: {exc}") from exc

        public_inputs = witness.public_inputs
        nonce = self._rng.get_random_bytes(NONCE_LEN)
        signature = signing_key.sign(
            _signed_message(vk_digest, circuit_digest, public_inputs, nonce)
        )

        proof = Proof(
            pi_a=(
                str(int.from_bytes(signature[:32], "big")),
                str(int.from_bytes(signature[32:], "big")),
                "1",
            ),
            pi_b=((str(int.from_bytes(nonce, "big")), "0"), ("1", "0"), ("0", "0")),
            pi_c=(str(int(circuit_digest, 16)), "0", "1"),
            protocol=PROTOCOL,
            curve=CURVE,
        )
        logger.debug("attested public vector outcome=%d", public_inputs.outcome)
        return proof, public_inputs

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify(
        self,
        verification_key: VerificationKey,
        public_inputs: PublicInputVector,
        proof: Proof,
    ) -> bool:
        try:
            if not isinstance(verification_key, VerificationKey):
                return False
            if not isinstance(public_inputs, PublicInputVector):
                return False
            if not isinstance(proof, Proof):
                return False
            if verification_key.protocol != PROTOCOL or proof.protocol != PROTOCOL:
                return False
            if verification_key.curve != CURVE or proof.curve != CURVE:
                return False
            if not verification_key.is_well_formed:
                return False
            if verification_key.n_public != len(public_inputs):
                return False

            circuit_digest = verification_key.constant("circuit_digest")
            if not isinstance(circuit_digest, str):
                return False
            claimed = _scalar_bytes(int(proof.pi_c[0]))
            if not constant_time_compare(claimed, bytes.fromhex(circuit_digest)):
                return False

            signature = _scalar_bytes(int(proof.pi_a[0])) + _scalar_bytes(
                int(proof.pi_a[1])
            )
            nonce = int(proof.pi_b[0][0]).to_bytes(NONCE_LEN, "big")
            attestor = Ed25519PublicKey.from_public_bytes(
                bytes.fromhex(verification_key.constant("attestor"))
            )
            attestor.verify(
                signature,
                _signed_message(
                    verification_key.digest(), circuit_digest, public_inputs, nonce
                ),
            )
            return True
        except InvalidSignature:
            return False
        except Exception:
            logger.debug("malformed verification input", exc_info=True)
            return False

    def get_backend_info(self) -> Dict[str, Any]:
        return {
            "name": self.backend_name,
            "version": self.backend_version,
            "adapter": "reference",
            "protocol": PROTOCOL,
            "curve": CURVE,
            "commitment": self.commitment.name,
            "circuit_digest": self._circuit.digest,
            "zero_knowledge": False,
            "features": ["setup", "prove", "verify", "ceremony_report"],
        }
