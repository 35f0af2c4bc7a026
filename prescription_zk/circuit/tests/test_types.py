"""
Unit tests for proof artifacts.

Tests cover:
1. Proof dict and CBOR round trips, version checking
2. VerificationKey well-formedness, digest and corruption helpers
3. ProvingKey material access and persistence
4. ProofBundle copies
"""

import json

import cbor2
import pytest

from prescription_zk.circuit.config import PROOF_VERSION
from prescription_zk.circuit.exceptions import SerializationError
from prescription_zk.circuit.signals import PublicInputVector
from prescription_zk.circuit.types import Proof, ProofBundle, ProvingKey, VerificationKey


@pytest.fixture
def proof():
    return Proof(
        pi_a=["1", "2", "1"],
        pi_b=[["3", "4"], ["5", "6"], ["1", "0"]],
        pi_c=["7", "8", "1"],
        protocol="groth16",
        curve="bn128",
    )


@pytest.fixture
def vk_dict():
    return {
        "protocol": "groth16",
        "curve": "bn128",
        "nPublic": 2,
        "vk_alpha_1": ["1", "2", "1"],
        "IC": [["1234567890123", "2", "1"], ["3", "4", "1"], ["5000000", "6", "1"]],
    }


# ============================================================================
# PROOF
# ============================================================================


class TestProof:
    """Proof encoding."""

    def test_to_dict_shape(self, proof):
        data = proof.to_dict()
        assert data["pi_b"] == [["3", "4"], ["5", "6"], ["1", "0"]]
        assert data["protocol"] == "groth16"

    def test_dict_round_trip(self, proof):
        assert Proof.from_dict(proof.to_dict()) == proof

    def test_json_round_trip(self, proof):
        assert Proof.from_dict(json.loads(json.dumps(proof.to_dict()))) == proof

    def test_cbor_round_trip(self, proof):
        data = proof.serialize()
        assert cbor2.loads(data)["v"] == PROOF_VERSION
        assert Proof.deserialize(data) == proof

    def test_unsupported_version(self, proof):
        data = cbor2.dumps({**proof.to_dict(), "v": PROOF_VERSION + 1})
        with pytest.raises(SerializationError, match="Unsupported proof version"):
            Proof.deserialize(data)

    def test_garbage_bytes(self):
        with pytest.raises(SerializationError):
            Proof.deserialize(b"\xff\x00garbage")

    def test_not_a_map(self):
        with pytest.raises(SerializationError):
            Proof.deserialize(cbor2.dumps([1, 2, 3]))

    def test_missing_field(self, proof):
        data = proof.to_dict()
        del data["pi_c"]
        with pytest.raises(SerializationError, match="Invalid proof format"):
            Proof.from_dict(data)

    def test_is_hashable(self, proof):
        assert hash(proof) == hash(Proof.from_dict(proof.to_dict()))


# ============================================================================
# VERIFICATION KEY
# ============================================================================


class TestVerificationKey:
    """Verification key constants."""

    def test_round_trip(self, vk_dict):
        vk = VerificationKey.from_dict(vk_dict)
        assert vk.to_dict() == vk_dict
        assert vk.constant("vk_alpha_1") == ("1", "2", "1")
        assert vk.constant("missing", "default") == "default"

    def test_well_formed(self, vk_dict):
        assert VerificationKey.from_dict(vk_dict).is_well_formed
        vk_dict["nPublic"] = 3
        assert not VerificationKey.from_dict(vk_dict).is_well_formed

    def test_missing_field(self, vk_dict):
        del vk_dict["IC"]
        with pytest.raises(SerializationError):
            VerificationKey.from_dict(vk_dict)

    def test_digest_is_stable(self, vk_dict):
        assert (
            VerificationKey.from_dict(vk_dict).digest()
            == VerificationKey.from_dict(dict(vk_dict)).digest()
        )

    def test_corrupted_replaces_suffix(self, vk_dict):
        vk = VerificationKey.from_dict(vk_dict)
        altered = vk.corrupted()
        assert altered.ic[0][0] == "1234567000000"
        assert vk.ic[0][0] == "1234567890123"
        assert altered.digest() != vk.digest()

    def test_corrupted_never_a_no_op(self, vk_dict):
        vk = VerificationKey.from_dict(vk_dict)
        altered = vk.corrupted(row=2)
        assert altered.ic[2][0] == "5111111"
        assert altered != vk

    def test_with_ic_entry(self, vk_dict):
        vk = VerificationKey.from_dict(vk_dict)
        assert vk.with_ic_entry(1, 1, "9").ic[1] == ("3", "9", "1")

    def test_save_load(self, vk_dict, tmp_path):
        vk = VerificationKey.from_dict(vk_dict)
        path = vk.save(tmp_path / "verification_key.json")
        assert VerificationKey.load(path) == vk

    def test_load_bad_json(self, tmp_path):
        path = tmp_path / "vk.json"
        path.write_text("{not json")
        with pytest.raises(SerializationError):
            VerificationKey.load(path)


# ============================================================================
# PROVING KEY / BUNDLE
# ============================================================================


class TestProvingKey:
    def test_material(self):
        pk = ProvingKey("attestation", "ab" * 32, material={"seed": "00", "vk_digest": "ff"})
        assert pk.get("seed") == "00"
        with pytest.raises(KeyError):
            pk.get("zkey")

    def test_save_load(self, tmp_path):
        pk = ProvingKey("groth16", "cd" * 32, material={"zkey": "/tmp/x.zkey"})
        path = pk.save(tmp_path / "proving_key.json")
        assert ProvingKey.load(path) == pk

    def test_from_dict_missing(self):
        with pytest.raises(SerializationError):
            ProvingKey.from_dict({"protocol": "groth16"})


class TestProofBundle:
    def test_with_public_inputs_copies(self, proof):
        public = PublicInputVector((1, 2, 3, 4, 1))
        bundle = ProofBundle(proof, public)
        changed = bundle.with_public_inputs(public.tamper())
        assert bundle.public_inputs.outcome == 1
        assert changed.public_inputs.outcome == 0
        assert changed.proof is bundle.proof

    def test_to_dict(self, proof):
        bundle = ProofBundle(proof, PublicInputVector((1, 2, 3, 4, 0)))
        assert bundle.to_dict()["publicSignals"] == ["1", "2", "3", "4", "0"]
        assert bundle.to_dict()["proof"]["pi_a"] == ["1", "2", "1"]
