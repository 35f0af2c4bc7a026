"""
Tests for the circom/snarkjs Groth16 backend.

Subprocess plumbing and error mapping are tested without the toolchain.
The end-to-end test runs only when circom, snarkjs and node are on PATH.
"""

import shutil

import pytest

from prescription_zk.circuit.backends.snarkjs import (
    PROTOCOL,
    SnarkjsBackend,
    _contribution_hash,
)
from prescription_zk.circuit.commitments import Sha3FieldCommitment
from prescription_zk.circuit.exceptions import (
    ConfigurationError,
    ProofGenerationError,
    SetupFailure,
)
from prescription_zk.circuit.signals import PublicInputVector
from prescription_zk.circuit.types import Proof, ProvingKey, VerificationKey

MISSING = "/nonexistent/bin/tool"

SNARKJS_OUTPUT = """\
[INFO]  snarkJS: Contribution Hash: 
\t\t3c9a1f2e 11223344 55667788 99AABBCC
\t\tddeeff00 01234567 89abcdef fedcba98
\t\t00000000 11111111 22222222 33333333
\t\t44444444 55555555 66666666 77777777
"""

TOOLCHAIN = all(shutil.which(tool) for tool in ("circom", "snarkjs", "node"))


def _vk():
    return VerificationKey.from_dict(
        {
            "protocol": "groth16",
            "curve": "bn128",
            "nPublic": 5,
            "IC": [[str(i), "1", "1"] for i in range(6)],
        }
    )


def _proof():
    return Proof(["1", "2", "1"], [["1", "0"], ["1", "0"], ["1", "0"]], ["1", "2", "1"],
                 protocol=PROTOCOL, curve="bn128")


class TestContributionHash:
    def test_parses_first_256_bits(self):
        assert _contribution_hash(SNARKJS_OUTPUT) == (
            "3c9a1f2e112233445566778899aabbccddeeff0001234567" "89abcdeffedcba98"
        )

    def test_uses_last_marker(self):
        output = "Contribution Hash: " + " ".join(["aaaaaaaa"] * 8) + "\n" + SNARKJS_OUTPUT
        assert _contribution_hash(output).startswith("3c9a1f2e")

    def test_unavailable(self):
        assert _contribution_hash("nothing here") == "unavailable"


class TestWithoutToolchain:
    """Error mapping when the binaries are missing."""

    def test_setup_with_missing_circom(self, tmp_path):
        backend = SnarkjsBackend(build_path=tmp_path, circom_bin=MISSING, snarkjs_bin=MISSING)
        with pytest.raises(SetupFailure, match="missing executable"):
            backend.setup()

    def test_run_maps_missing_binary(self, tmp_path):
        backend = SnarkjsBackend(build_path=tmp_path, snarkjs_bin=MISSING)
        with pytest.raises(ConfigurationError):
            backend._run([MISSING, "r1cs", "info"], SetupFailure)

    def test_verify_never_raises(self):
        backend = SnarkjsBackend(snarkjs_bin=MISSING)
        public = PublicInputVector((1, 2, 1, 90, 1))
        assert backend.verify(_vk(), public, _proof()) is False

    def test_verify_rejects_ill_formed_key(self):
        data = _vk().to_dict()
        data["nPublic"] = 4
        backend = SnarkjsBackend(snarkjs_bin=MISSING)
        public = PublicInputVector((1, 2, 1, 90, 1))
        assert backend.verify(VerificationKey.from_dict(data), public, _proof()) is False

    def test_prove_rejects_foreign_key(self):
        backend = SnarkjsBackend(commitment=Sha3FieldCommitment(), snarkjs_bin=MISSING)
        commit = backend.commitment.commit
        inputs = {
            "doctorId": "123",
            "doctorSecret": "456",
            "authorizedAction": "1",
            "sourceId": "1",
            "dataAge": "30",
            "allergyClassId": "2",
            "medicationClassId": "5",
            "doctorCredentialHash": str(commit(123, 456)),
            "trustedSourceHash": str(commit(1)),
            "requiredAction": "1",
            "deltaMax": "90",
            "outcome": "1",
        }
        witness = backend.witness_builder.build(inputs)
        with pytest.raises(ProofGenerationError):
            backend.prove(witness, ProvingKey("attestation", witness.circuit_digest))
        with pytest.raises(ProofGenerationError, match="missing"):
            backend.prove(witness, ProvingKey(PROTOCOL, witness.circuit_digest))

    def test_backend_info(self, tmp_path):
        info = SnarkjsBackend(build_path=tmp_path, snarkjs_bin=MISSING).get_backend_info()
        assert info["protocol"] == "groth16"
        assert info["zero_knowledge"] is True
        assert info["available"] is False
        assert info["commitment"] == "poseidon-bn128"


@pytest.mark.skipif(not TOOLCHAIN, reason="circom, snarkjs and node are required")
class TestGroth16EndToEnd:
    """Full ceremony, proof and tamper checks with the real toolchain."""

    @pytest.fixture(scope="class")
    def setup_result(self, tmp_path_factory):
        backend = SnarkjsBackend(build_path=tmp_path_factory.mktemp("build"))
        pk, vk, report = backend.setup()
        return backend, pk, vk, report

    @pytest.fixture(scope="class")
    def accepted(self, setup_result):
        backend, pk, _, _ = setup_result
        commit = backend.commitment.commit
        inputs = {
            "doctorId": "123",
            "doctorSecret": "456",
            "authorizedAction": "1",
            "sourceId": "1",
            "dataAge": "30",
            "allergyClassId": "2",
            "medicationClassId": "5",
            "doctorCredentialHash": str(commit(123, 456)),
            "trustedSourceHash": str(commit(1)),
            "requiredAction": "1",
            "deltaMax": "90",
            "outcome": "1",
        }
        return backend.prove(backend.witness_builder.build(inputs), pk)

    def test_key_shape(self, setup_result):
        _, _, vk, report = setup_result
        assert vk.n_public == 5
        assert len(report.contributions) == 4

    def test_verifies(self, setup_result, accepted):
        backend, _, vk, _ = setup_result
        proof, public = accepted
        assert backend.verify(vk, public, proof)

    def test_tampered_outcome(self, setup_result, accepted):
        backend, _, vk, _ = setup_result
        proof, public = accepted
        assert not backend.verify(vk, public.tamper(), proof)

    def test_corrupted_key(self, setup_result, accepted):
        backend, _, vk, _ = setup_result
        proof, public = accepted
        assert not backend.verify(vk.corrupted(), public, proof)
