"""
Trusted-setup ceremony bookkeeping.

A ceremony run produces keys and a CeremonyReport. The report is an
explicit return value that accumulates step records while the backend
works; nothing is written to a process-wide log. Callers decide whether to
render it (``render()``) and where to store it.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple, Union

from .config import DEFAULT_DELTA_MAX, DOMAIN_SEPARATORS
from .exceptions import PrescriptionProtocolError, SetupFailure

if TYPE_CHECKING:
    from .interfaces import ProofBackend

logger = logging.getLogger(__name__)

BAR = "═" * 60


@dataclass(frozen=True)
class CeremonyStep:
    """One recorded step of a ceremony."""

    title: str
    lines: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Contribution:
    """A phase contribution: who contributed and the resulting hash."""

    phase: int
    name: str
    contribution_hash: str


@dataclass
class CeremonyReport:
    """
    Record of a single ceremony run.

    Attributes:
        circuit: Circuit name
        backend: Backend that ran the ceremony
        started_at: ISO-8601 start time (UTC)
        steps: Ordered step records
        contributions: Phase 1 / phase 2 contributions in order
        r1cs_info: Constraint system statistics
        verification_key_summary: Truncated verification key
        outputs: Produced artifacts (path -> description)
    """

    circuit: str
    backend: str
    started_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    steps: List[CeremonyStep] = field(default_factory=list)
    contributions: List[Contribution] = field(default_factory=list)
    r1cs_info: Dict[str, Any] = field(default_factory=dict)
    verification_key_summary: str = ""
    outputs: Dict[str, str] = field(default_factory=dict)
    finished_at: Optional[str] = None

    def step(self, title: str, *lines: str) -> None:
        self.steps.append(CeremonyStep(title, tuple(lines)))

    def contribute(self, phase: int, name: str, contribution_hash: str) -> None:
        self.contributions.append(Contribution(phase, name, contribution_hash))

    def finish(self) -> "CeremonyReport":
        self.finished_at = datetime.now(timezone.utc).isoformat()
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "circuit": self.circuit,
            "backend": self.backend,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "r1cs": dict(self.r1cs_info),
            "contributions": [
                {"phase": c.phase, "name": c.name, "hash": c.contribution_hash}
                for c in self.contributions
            ],
            "steps": [{"title": s.title, "lines": list(s.lines)} for s in self.steps],
            "outputs": dict(self.outputs),
        }

    def render(self) -> str:
        """Render the report as the plain-text ceremony log."""
        out: List[str] = [
            f"TRUSTED SETUP CEREMONY — {self.circuit}",
            f"Backend: {self.backend}",
            f"Date: {self.started_at}",
        ]
        for step in self.steps:
            out.extend(["", BAR, f"  {step.title}", BAR])
            out.extend(step.lines)
        if self.r1cs_info:
            out.extend(["", "R1CS statistics:"])
            labels = {
                "curve": "Curve",
                "nVars": "# wires",
                "nConstraints": "# constraints",
                "nPubInputs": "# public inputs",
                "nPrvInputs": "# private inputs",
                "nOutputs": "# public outputs",
            }
            for key, label in labels.items():
                if key in self.r1cs_info:
                    out.append(f"  {label + ':':<22}{self.r1cs_info[key]}")
        if self.verification_key_summary:
            out.extend(["", "Verification key (summary):", self.verification_key_summary])
        if self.outputs:
            out.extend(["", BAR, "  CEREMONY COMPLETE — Output files", BAR])
            for path, description in self.outputs.items():
                out.append(f"  {path:<42} {description}")
        if self.finished_at:
            out.extend(["", f"Ceremony finished at: {self.finished_at}"])
        return "\n".join(out) + "\n"

    def save(self, path: Union[str, Path]) -> Path:
        path = Path(path)
        path.write_text(self.render())
        return path


def contribution_hash(previous: str, name: str, entropy: str) -> str:
    """Chain a contribution onto the previous accumulator hash."""
    h = hashlib.sha3_256()
    h.update(DOMAIN_SEPARATORS["ceremony"])
    h.update(bytes.fromhex(previous) if previous else b"")
    h.update(name.encode("utf-8"))
    h.update(b"\x00")
    h.update(entropy.encode("utf-8"))
    return h.hexdigest()


def verify_contribution_chain(
    initial: str,
    contributions: Tuple[Tuple[str, str], ...],
    expected: List[str],
) -> bool:
    """Recompute a contribution chain and compare every intermediate hash."""
    if len(contributions) != len(expected):
        return False
    current = initial
    for (name, entropy), recorded in zip(contributions, expected):
        current = contribution_hash(current, name, entropy)
        if current != recorded:
            return False
    return True


def check_contributions(contributions: Tuple[Tuple[str, str], ...]) -> None:
    """
    Raises:
        SetupFailure: If the contributor list is empty or malformed
    """
    if not contributions:
        raise SetupFailure("Ceremony requires at least one contribution")
    for entry in contributions:
        if len(entry) != 2 or not all(isinstance(v, str) and v for v in entry):
            raise SetupFailure(f"Invalid contribution entry: {entry!r}")


def summarize_key(data: Dict[str, Any]) -> str:
    """JSON-render a key, truncating long arrays to 4 entries + a count."""

    def _truncate(value: Any) -> Any:
        if isinstance(value, list):
            items = [_truncate(v) for v in value]
            if len(items) > 6:
                return items[:4] + [f"... ({len(items) - 4} more)"]
            return items
        if isinstance(value, dict):
            return {k: _truncate(v) for k, v in value.items()}
        return value

    return json.dumps(_truncate(data), indent=2)


def phase2_contributions(
    contributions: Tuple[Tuple[str, str], ...]
) -> Tuple[Tuple[str, str], ...]:
    """Circuit-specific contributions reuse the contributor names with zkey entropy."""
    return tuple((name, f"zkey-{entropy}") for name, entropy in contributions)


def sample_witness_input(commit: Callable[..., int]) -> Dict[str, str]:
    """Known-good witness input used for the ceremony's test proof."""
    doctor_id, doctor_secret, source_id = 123, 456, 1
    return {
        "doctorId": str(doctor_id),
        "doctorSecret": str(doctor_secret),
        "authorizedAction": "1",
        "sourceId": str(source_id),
        "dataAge": "30",
        "allergyClassId": "2",
        "medicationClassId": "5",
        "doctorCredentialHash": str(commit(doctor_id, doctor_secret)),
        "trustedSourceHash": str(commit(source_id)),
        "requiredAction": "1",
        "deltaMax": str(DEFAULT_DELTA_MAX),
        "outcome": "1",
    }


def run_ceremony(
    backend: "ProofBackend",
    output_dir: Union[str, Path],
    contributions: Optional[Tuple[Tuple[str, str], ...]] = None,
    test_proof: bool = True,
) -> CeremonyReport:
    """
    Run key generation, write the keys, and optionally prove and verify a
    known-good sample.

    Writes ``proving_key.json``, ``verification_key.json`` and
    ``ceremony_log.txt`` into ``output_dir``; with ``test_proof`` also
    ``input.json``, ``proof.json`` and ``public.json``.

    Raises:
        SetupFailure: If key generation fails or the sample proof does not verify
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    proving_key, verification_key, report = backend.setup(contributions)
    report.finished_at = None
    proving_key.save(output_dir / "proving_key.json")
    verification_key.save(output_dir / "verification_key.json")
    report.outputs[str(output_dir / "proving_key.json")] = "Proving key (circuit-specific)"
    report.outputs[str(output_dir / "verification_key.json")] = "Verification key (public)"

    if test_proof:
        _run_test_proof(backend, proving_key, verification_key, report, output_dir)

    log_path = output_dir / "ceremony_log.txt"
    report.outputs[str(log_path)] = "This ceremony log"
    report.finish().save(log_path)
    logger.info("ceremony log written to %s", log_path)
    return report


def _run_test_proof(backend, proving_key, verification_key, report, output_dir: Path) -> None:
    inputs = sample_witness_input(backend.commitment.commit)
    (output_dir / "input.json").write_text(json.dumps(inputs, indent=2))
    report.step(
        "STEP 5: Compute public inputs for test witness",
        *(f"{k} = {v}" for k, v in inputs.items()),
    )

    try:
        witness = backend.witness_builder.build(inputs)
        proof, public_inputs = backend.prove(witness, proving_key)
    except PrescriptionProtocolError as exc:
        raise SetupFailure(f"Test proof could not be generated: {exc}") from exc

    (output_dir / "proof.json").write_text(json.dumps(proof.to_dict(), indent=2))
    (output_dir / "public.json").write_text(
        json.dumps(public_inputs.to_decimal_strings(), indent=2)
    )
    report.outputs[str(output_dir / "input.json")] = "Test input / witness data"
    report.outputs[str(output_dir / "proof.json")] = "Generated proof"
    report.outputs[str(output_dir / "public.json")] = "Public signals"

    valid = backend.verify(verification_key, public_inputs, proof)
    report.step(
        "STEP 6: Verify test proof",
        "Public signals:",
        json.dumps(public_inputs.to_decimal_strings(), indent=2),
        f"Proof valid: {valid}",
    )
    if not valid:
        raise SetupFailure("Test proof did not verify against the exported key")
