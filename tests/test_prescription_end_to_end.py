"""
End-to-end checks of the reference scenarios through the public API.

Keys and proofs cross a serialization boundary (JSON files, CBOR bytes)
between the prover side and the verifier side, as they would between
processes.
"""

import json

import pytest

from prescription_zk.circuit import (
    ConstraintViolation,
    PrescriptionPipeline,
    PrescriptionVerifier,
    Proof,
    PublicInputVector,
    ReferenceBackend,
    VerificationKey,
    get_proof_backend,
)
from prescription_zk.harness import baseline_inputs


@pytest.fixture(scope="module")
def prover_side(tmp_path_factory):
    backend = ReferenceBackend()
    pipeline, _ = PrescriptionPipeline.from_setup(backend)
    keys = tmp_path_factory.mktemp("keys")
    pipeline.verification_key.save(keys / "verification_key.json")
    return pipeline, keys


@pytest.fixture(scope="module")
def inputs(prover_side):
    pipeline, _ = prover_side
    commit = pipeline.backend.commitment.commit
    return lambda **changes: baseline_inputs(commit, **changes)


def _verifier(keys):
    return PrescriptionVerifier(VerificationKey.load(keys / "verification_key.json"))


def _ship(bundle):
    """Serialize a bundle the way it would travel to a verifier."""
    return Proof.serialize(bundle.proof), json.dumps(bundle.public_inputs.to_decimal_strings())


def test_s1_valid_baseline(prover_side, inputs):
    pipeline, keys = prover_side
    proof_bytes, public_json = _ship(pipeline.full_prove(inputs()))
    assert _verifier(keys).verify(Proof.deserialize(proof_bytes), json.loads(public_json))


@pytest.mark.parametrize(
    "changes",
    [
        {"doctorSecret": 999},
        {"sourceId": 99},
        {"dataAge": 100},
        {"medicationClassId": 2},
    ],
    ids=["S2-credential", "S3-source", "S4-freshness", "S5b-outcome"],
)
def test_no_proof_scenarios(prover_side, inputs, changes):
    pipeline, _ = prover_side
    with pytest.raises(ConstraintViolation):
        pipeline.full_prove(inputs(**changes))


def test_s5a_honest_reject(prover_side, inputs):
    pipeline, keys = prover_side
    bundle = pipeline.full_prove(inputs(medicationClassId=2, outcome=0))
    proof_bytes, public_json = _ship(bundle)
    public = json.loads(public_json)
    assert public[-1] == "0"
    assert _verifier(keys).verify(Proof.deserialize(proof_bytes), public)


def test_s6_replay_with_flipped_outcome(prover_side, inputs):
    pipeline, keys = prover_side
    bundle = pipeline.full_prove(inputs(medicationClassId=2, outcome=0))
    flipped = bundle.public_inputs.tamper()
    assert flipped.outcome == 1
    assert not _verifier(keys).verify(bundle.proof, flipped)
    assert bundle.public_inputs.outcome == 0


def test_s7_policy_update(prover_side, inputs):
    pipeline, keys = prover_side
    bundle = pipeline.full_prove(inputs())
    rotated = VerificationKey.load(keys / "verification_key.json").corrupted()
    assert not PrescriptionVerifier(rotated).verify(bundle.proof, bundle.public_inputs)


def test_public_vector_carries_no_private_values(prover_side, inputs):
    pipeline, _ = prover_side
    bundle = pipeline.full_prove(inputs())
    assert len(bundle.public_inputs) == 5
    assert set(bundle.public_inputs.as_dict()) == {
        "doctorCredentialHash", "trustedSourceHash", "requiredAction", "deltaMax", "outcome",
    }
    assert isinstance(bundle.public_inputs, PublicInputVector)


def test_factory_backend_runs_pipeline():
    backend = get_proof_backend(prefer="reference")
    pipeline, _ = PrescriptionPipeline.from_setup(backend)
    bundle = pipeline.full_prove(baseline_inputs(backend.commitment.commit))
    assert pipeline.verify(bundle)
