"""
Tests for the in-process attestation backend.

Covers deterministic setup, completeness, and the binding contract: a proof
verifies for exactly one (verification key, public input vector) pair.
"""

import pytest

from prescription_zk.circuit.backends.reference import CURVE, PROTOCOL, ReferenceBackend
from prescription_zk.circuit.commitments import Sha3FieldCommitment
from prescription_zk.circuit.composition import build_prescription_circuit
from prescription_zk.circuit.config import PUBLIC_SIGNAL_ORDER
from prescription_zk.circuit.exceptions import (
    ConstraintViolation,
    ProofGenerationError,
    SetupFailure,
)
from prescription_zk.circuit.types import Proof, ProvingKey, VerificationKey
from prescription_zk.circuit.witness import PrescriptionWitnessBuilder, WitnessAssignment

COMMIT = Sha3FieldCommitment()


def make_inputs(**changes):
    inputs = {
        "doctorId": 123,
        "doctorSecret": 456,
        "authorizedAction": 1,
        "sourceId": 1,
        "dataAge": 30,
        "allergyClassId": 2,
        "medicationClassId": 5,
        "doctorCredentialHash": COMMIT(123, 456),
        "trustedSourceHash": COMMIT(1),
        "requiredAction": 1,
        "deltaMax": 90,
        "outcome": 1,
    }
    inputs.update(changes)
    return {k: str(v) for k, v in inputs.items()}


@pytest.fixture(scope="module")
def backend():
    return ReferenceBackend()


@pytest.fixture(scope="module")
def keys(backend):
    pk, vk, _ = backend.setup()
    return pk, vk


@pytest.fixture(scope="module")
def accepted(backend, keys):
    pk, _ = keys
    witness = backend.witness_builder.build(make_inputs())
    return backend.prove(witness, pk)


class TestSetup:
    """Deterministic ceremony."""

    def test_keys_are_deterministic(self, backend, keys):
        pk, vk, _ = backend.setup()
        assert vk == keys[1]
        assert pk == keys[0]

    def test_contributions_change_keys(self, backend, keys):
        _, vk, _ = backend.setup((("Someone-else", "other-entropy"),))
        assert vk.digest() != keys[1].digest()

    def test_key_shape(self, keys):
        pk, vk = keys
        assert vk.protocol == PROTOCOL
        assert vk.curve == CURVE
        assert vk.n_public == len(PUBLIC_SIGNAL_ORDER)
        assert len(vk.ic) == len(PUBLIC_SIGNAL_ORDER) + 1
        assert vk.is_well_formed
        assert vk.constant("signals") == PUBLIC_SIGNAL_ORDER
        assert pk.get("vk_digest") == vk.digest()

    def test_report(self, backend):
        _, _, report = backend.setup()
        assert len(report.contributions) == 4
        assert {c.phase for c in report.contributions} == {1, 2}
        assert report.r1cs_info["nPubInputs"] == 5
        assert report.finished_at is not None
        assert "Chain verified: True" in report.render()

    def test_rejects_bad_contribution(self, backend):
        with pytest.raises(SetupFailure):
            backend.setup((("name", ""),))


class TestProveVerify:
    """Completeness and rejection of malformed input."""

    def test_accept(self, backend, keys, accepted):
        proof, public = accepted
        assert public.outcome == 1
        assert backend.verify(keys[1], public, proof)

    def test_honest_reject(self, backend, keys):
        pk, vk = keys
        witness = backend.witness_builder.build(make_inputs(medicationClassId=2, outcome=0))
        proof, public = backend.prove(witness, pk)
        assert public.outcome == 0
        assert backend.verify(vk, public, proof)

    def test_proofs_are_randomized(self, backend, keys):
        pk, vk = keys
        witness = backend.witness_builder.build(make_inputs())
        first, public = backend.prove(witness, pk)
        second, _ = backend.prove(witness, pk)
        assert first != second
        assert backend.verify(vk, public, first)
        assert backend.verify(vk, public, second)

    def test_cbor_round_trip_verifies(self, backend, keys, accepted):
        proof, public = accepted
        assert backend.verify(keys[1], public, Proof.deserialize(proof.serialize()))

    def test_saved_key_verifies(self, backend, keys, accepted, tmp_path):
        proof, public = accepted
        vk = VerificationKey.load(keys[1].save(tmp_path / "vk.json"))
        assert backend.verify(vk, public, proof)

    def test_unsatisfied_witness_is_refused(self, backend, keys):
        builder = backend.witness_builder
        values = builder.calculate(make_inputs(doctorSecret=999))
        forged = WitnessAssignment(values, builder.circuit.digest)
        with pytest.raises(ConstraintViolation) as exc_info:
            backend.prove(forged, keys[0])
        assert "credential.equal" in exc_info.value.labels

    def test_witness_for_other_circuit(self, backend, keys):
        other = PrescriptionWitnessBuilder(build_prescription_circuit(comparator_bits=16))
        with pytest.raises(ProofGenerationError, match="different circuit"):
            backend.prove(other.build(make_inputs()), keys[0])

    def test_wrong_protocol_key(self, backend):
        witness = backend.witness_builder.build(make_inputs())
        pk = ProvingKey("groth16", backend.circuit.digest, material={})
        with pytest.raises(ProofGenerationError):
            backend.prove(witness, pk)

    def test_malformed_proving_key(self, backend):
        witness = backend.witness_builder.build(make_inputs())
        pk = ProvingKey(PROTOCOL, backend.circuit.digest, material={"seed": "zz"})
        with pytest.raises(ProofGenerationError, match="Malformed"):
            backend.prove(witness, pk)

    def test_not_a_witness(self, backend, keys):
        with pytest.raises(ProofGenerationError):
            backend.prove(make_inputs(), keys[0])


class TestBinding:
    """Any change to the public vector, the key or the proof fails."""

    @pytest.mark.parametrize("signal", PUBLIC_SIGNAL_ORDER)
    def test_tampered_public_input(self, backend, keys, accepted, signal):
        proof, public = accepted
        assert not backend.verify(keys[1], public.tamper(signal), proof)

    def test_corrupted_key(self, backend, keys, accepted):
        proof, public = accepted
        assert not backend.verify(keys[1].corrupted(), public, proof)

    @pytest.mark.parametrize("row", range(6))
    def test_any_ic_entry(self, backend, keys, accepted, row):
        proof, public = accepted
        assert not backend.verify(keys[1].corrupted(row=row, column=1), public, proof)

    def test_key_from_another_ceremony(self, backend, accepted):
        proof, public = accepted
        _, other_vk, _ = backend.setup((("Someone-else", "other-entropy"),))
        assert not backend.verify(other_vk, public, proof)

    def test_tampered_signature(self, backend, keys, accepted):
        proof, public = accepted
        data = proof.to_dict()
        data["pi_a"][0] = str(int(data["pi_a"][0]) ^ 1)
        assert not backend.verify(keys[1], public, Proof.from_dict(data))

    def test_tampered_nonce(self, backend, keys, accepted):
        proof, public = accepted
        data = proof.to_dict()
        data["pi_b"][0][0] = str(int(data["pi_b"][0][0]) + 1)
        assert not backend.verify(keys[1], public, Proof.from_dict(data))

    def test_tampered_circuit_digest(self, backend, keys, accepted):
        proof, public = accepted
        data = proof.to_dict()
        data["pi_c"][0] = str(int(data["pi_c"][0]) + 1)
        assert not backend.verify(keys[1], public, Proof.from_dict(data))


class TestMalformedInputs:
    """verify returns False rather than raising."""

    def test_garbage_proof_fields(self, backend, keys, accepted):
        _, public = accepted
        proof = Proof(["x", "y", "1"], [["0"]], ["z"], protocol=PROTOCOL, curve=CURVE)
        assert backend.verify(keys[1], public, proof) is False

    def test_wrong_types(self, backend, keys, accepted):
        proof, public = accepted
        assert backend.verify("vk", public, proof) is False
        assert backend.verify(keys[1], list(public), proof) is False
        assert backend.verify(keys[1], public, proof.to_dict()) is False

    def test_foreign_protocol(self, backend, keys, accepted):
        proof, public = accepted
        data = proof.to_dict()
        data["protocol"] = "groth16"
        assert backend.verify(keys[1], public, Proof.from_dict(data)) is False

    def test_ill_formed_key(self, backend, keys, accepted):
        proof, public = accepted
        data = keys[1].to_dict()
        data["IC"] = data["IC"][:-1]
        assert backend.verify(VerificationKey.from_dict(data), public, proof) is False


def test_backend_info(backend):
    info = backend.get_backend_info()
    assert info["name"] == "ReferenceAttestationBackend"
    assert info["adapter"] == "reference"
    assert info["zero_knowledge"] is False
    assert info["commitment"] == "sha3-256-field"
    assert info["circuit_digest"] == backend.circuit.digest
