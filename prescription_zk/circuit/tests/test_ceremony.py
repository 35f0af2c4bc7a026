"""
Unit tests for ceremony bookkeeping and the ceremony driver.
"""

import json

import pytest

from prescription_zk.circuit.backends.reference import ReferenceBackend
from prescription_zk.circuit.ceremony import (
    CeremonyReport,
    check_contributions,
    contribution_hash,
    phase2_contributions,
    run_ceremony,
    sample_witness_input,
    summarize_key,
    verify_contribution_chain,
)
from prescription_zk.circuit.commitments import Sha3FieldCommitment
from prescription_zk.circuit.exceptions import SetupFailure
from prescription_zk.circuit.types import ProvingKey, VerificationKey


class TestContributionChain:
    def test_deterministic(self):
        assert contribution_hash("", "alice", "e1") == contribution_hash("", "alice", "e1")

    def test_depends_on_every_field(self):
        base = contribution_hash("", "alice", "e1")
        assert contribution_hash("", "bob", "e1") != base
        assert contribution_hash("", "alice", "e2") != base
        assert contribution_hash(base, "alice", "e1") != base

    def test_name_entropy_boundary(self):
        assert contribution_hash("", "ab", "c") != contribution_hash("", "a", "bc")

    def test_verify_chain(self):
        contributions = (("alice", "e1"), ("bob", "e2"))
        first = contribution_hash("", "alice", "e1")
        second = contribution_hash(first, "bob", "e2")
        assert verify_contribution_chain("", contributions, [first, second])
        assert not verify_contribution_chain("", contributions, [first, first])
        assert not verify_contribution_chain("", contributions, [first])

    def test_phase2_entropy_prefix(self):
        assert phase2_contributions((("alice", "e1"),)) == (("alice", "zkey-e1"),)


class TestCheckContributions:
    def test_empty(self):
        with pytest.raises(SetupFailure, match="at least one"):
            check_contributions(())

    @pytest.mark.parametrize("entry", [("alice", ""), ("", "e"), ("alice",), ("a", "b", "c")])
    def test_malformed(self, entry):
        with pytest.raises(SetupFailure, match="Invalid contribution"):
            check_contributions((entry,))

    def test_valid(self):
        check_contributions((("alice", "e1"),))


class TestCeremonyReport:
    def test_render(self):
        report = CeremonyReport(circuit="prescription", backend="test")
        report.step("STEP 1: Compile", "ok")
        report.r1cs_info = {"curve": "bn128", "nConstraints": 7}
        report.outputs["keys/vk.json"] = "Verification key"
        text = report.finish().render()
        assert "STEP 1: Compile" in text
        assert "R1CS statistics" in text
        assert "# constraints:" in text
        assert "keys/vk.json" in text
        assert "Ceremony finished at" in text

    def test_to_dict(self):
        report = CeremonyReport(circuit="prescription", backend="test")
        report.contribute(1, "alice", "ab")
        data = report.to_dict()
        assert data["contributions"] == [{"phase": 1, "name": "alice", "hash": "ab"}]
        assert data["finished_at"] is None

    def test_save(self, tmp_path):
        report = CeremonyReport(circuit="prescription", backend="test")
        path = report.save(tmp_path / "ceremony_log.txt")
        assert "TRUSTED SETUP CEREMONY" in path.read_text()


def test_summarize_key_truncates_long_arrays():
    summary = json.loads(summarize_key({"IC": [[str(i)] for i in range(10)], "n": 5}))
    assert len(summary["IC"]) == 5
    assert summary["IC"][-1] == "... (6 more)"
    assert summary["n"] == 5


def test_sample_witness_input_is_valid():
    backend = ReferenceBackend()
    inputs = sample_witness_input(Sha3FieldCommitment().commit)
    assert all(isinstance(v, str) for v in inputs.values())
    assert backend.witness_builder.build(inputs).public_inputs.outcome == 1


class TestRunCeremony:
    """End-to-end ceremony with the reference backend."""

    def test_writes_artifacts(self, tmp_path):
        report = run_ceremony(ReferenceBackend(), tmp_path)
        for name in (
            "proving_key.json",
            "verification_key.json",
            "ceremony_log.txt",
            "input.json",
            "proof.json",
            "public.json",
        ):
            assert (tmp_path / name).exists(), name
        log = (tmp_path / "ceremony_log.txt").read_text()
        assert "Proof valid: True" in log
        assert report.finished_at is not None
        assert json.loads((tmp_path / "public.json").read_text())[-1] == "1"

    def test_keys_reload(self, tmp_path):
        run_ceremony(ReferenceBackend(), tmp_path, test_proof=False)
        assert not (tmp_path / "proof.json").exists()
        ProvingKey.load(tmp_path / "proving_key.json")
        assert VerificationKey.load(tmp_path / "verification_key.json").n_public == 5

    def test_invalid_contributions(self, tmp_path):
        with pytest.raises(SetupFailure):
            run_ceremony(ReferenceBackend(), tmp_path, contributions=(("x", ""),))

    def test_creates_output_dir(self, tmp_path):
        target = tmp_path / "nested" / "keys"
        run_ceremony(ReferenceBackend(), target, test_proof=False)
        assert (target / "verification_key.json").exists()
