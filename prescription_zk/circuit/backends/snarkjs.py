"""
Groth16 backend driving the circom compiler and the snarkjs CLI.

Every step runs as a subprocess; a non-zero exit during setup raises
SetupFailure, during proving ProofGenerationError. Verification never
raises.
"""

from __future__ import annotations

import json
import logging
import re
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type

from ..ceremony import (
    CeremonyReport,
    check_contributions,
    phase2_contributions,
    summarize_key,
)
from ..commitments import CommitmentScheme, NodePoseidonCommitment
from ..composition import PrescriptionCircuit, build_prescription_circuit
from ..config import (
    CIRCUIT_NAME,
    DEFAULT_CONTRIBUTIONS,
    DEFAULT_PROVER_TIMEOUT,
    FIELD_NAME,
    PTAU_POWER,
    PUBLIC_SIGNAL_ORDER,
    build_dir,
    circom_binary,
    circuit_source_path,
    node_modules_dir,
    snarkjs_binary,
)
from ..exceptions import (
    ConfigurationError,
    PrescriptionProtocolError,
    ProofGenerationError,
    SetupFailure,
)
from ..interfaces import ProofBackend
from ..signals import PublicInputVector
from ..types import Proof, ProvingKey, VerificationKey
from ..witness import PrescriptionWitnessBuilder, WitnessAssignment

logger = logging.getLogger(__name__)

PROTOCOL = "groth16"

_HASH_WORD = re.compile(r"\b[0-9a-fA-F]{8}\b")


def _contribution_hash(output: str) -> str:
    """First 256 bits of the contribution hash block printed by snarkjs."""
    marker = output.lower().rfind("contribution hash")
    words = _HASH_WORD.findall(output, marker if marker >= 0 else 0)
    if len(words) < 8:
        return "unavailable"
    return "".join(words[:8]).lower()


class SnarkjsBackend(ProofBackend):
    """
    circom + snarkjs Groth16 over bn128.

    Args:
        build_path: Directory for compiled artifacts and keys
        snarkjs_bin: snarkjs executable (default: ``SNARKJS_BIN`` or ``snarkjs``)
        circom_bin: circom executable (default: ``CIRCOM_BIN`` or ``circom``)
        commitment: Commitment scheme; must match the circom hasher
        timeout: Per-command timeout in seconds
    """

    _BACKEND_NAME = "SnarkjsGroth16Backend"
    _BACKEND_VERSION = "0.1.0"

    def __init__(
        self,
        build_path: Optional[Path] = None,
        snarkjs_bin: Optional[str] = None,
        circom_bin: Optional[str] = None,
        commitment: Optional[CommitmentScheme] = None,
        timeout: int = DEFAULT_PROVER_TIMEOUT,
    ) -> None:
        self._build_dir = Path(build_path) if build_path is not None else build_dir()
        self._snarkjs = snarkjs_bin or snarkjs_binary()
        self._circom = circom_bin or circom_binary()
        self._timeout = timeout
        self._circuit: PrescriptionCircuit = build_prescription_circuit(
            commitment or NodePoseidonCommitment()
        )
        self._witness_builder = PrescriptionWitnessBuilder(self._circuit)

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
    def build_path(self) -> Path:
        return self._build_dir

    def is_available(self) -> bool:
        """True if both external binaries resolve on PATH."""
        return bool(shutil.which(self._snarkjs) and shutil.which(self._circom))

    # ------------------------------------------------------------------
    # Subprocess plumbing
    # ------------------------------------------------------------------

    def _run(
        self,
        command: Sequence[str],
        error_cls: Type[PrescriptionProtocolError],
        cwd: Optional[Path] = None,
    ) -> str:
        logger.debug("running: %s", " ".join(command))
        try:
            result = subprocess.run(
                list(command),
                capture_output=True,
                text=True,
                check=False,
                cwd=cwd,
                timeout=self._timeout,
            )
        except FileNotFoundError as exc:
            raise ConfigurationError(f"missing executable: {command[0]}") from exc
        except subprocess.TimeoutExpired as exc:
            raise error_cls(f"{command[0]} timed out after {self._timeout}s") from exc
        if result.returncode != 0:
            stderr = result.stderr.strip() or result.stdout.strip() or "unknown error"
            raise error_cls(f"{Path(command[0]).name} {command[1]} failed: {stderr}")
        return result.stdout

    def _snark(self, *args: str, error_cls=SetupFailure) -> str:
        return self._run([self._snarkjs, *args], error_cls)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def setup(
        self, contributions: Optional[Tuple[Tuple[str, str], ...]] = None
    ) -> Tuple[ProvingKey, VerificationKey, CeremonyReport]:
        contributions = tuple(contributions or DEFAULT_CONTRIBUTIONS)
        check_contributions(contributions)

        out = self._build_dir
        out.mkdir(parents=True, exist_ok=True)
        report = CeremonyReport(circuit=CIRCUIT_NAME, backend=self.backend_name)

        try:
            artifacts = self._compile(report, out)
            ptau = self._phase1(report, out, contributions)
            zkey = self._phase2(report, out, artifacts["r1cs"], ptau, contributions)
            vk = self._export_key(report, out, zkey)
        except ConfigurationError as exc:
            raise SetupFailure(str(exc)) from exc

        pk = ProvingKey(
            protocol=PROTOCOL,
            circuit_digest=self._circuit.digest,
            material={
                "zkey": str(zkey.resolve()),
                "wasm": str(artifacts["wasm"].resolve()),
                "r1cs": str(artifacts["r1cs"].resolve()),
            },
        )
        report.outputs.update(
            {
                str(artifacts["r1cs"]): "Compiled R1CS constraint system",
                str(artifacts["wasm"]): "WebAssembly witness generator",
                str(ptau): "Phase 1 Powers of Tau (universal)",
                str(zkey): "Phase 2 proving key (circuit-specific)",
            }
        )
        logger.info("groth16 ceremony complete in %s", out)
        return pk, vk, report.finish()

    def _compile(self, report: CeremonyReport, out: Path) -> Dict[str, Path]:
        source = circuit_source_path()
        if not source.exists():
            raise SetupFailure(f"circuit source not found: {source}")
        stdout = self._run(
            [
                self._circom,
                str(source),
                "--r1cs",
                "--wasm",
                "--sym",
                "-o",
                str(out),
                "-l",
                str(node_modules_dir()),
            ],
            SetupFailure,
        )
        r1cs = out / f"{CIRCUIT_NAME}.r1cs"
        wasm = out / f"{CIRCUIT_NAME}_js" / f"{CIRCUIT_NAME}.wasm"
        for path in (r1cs, wasm):
            if not path.exists():
                raise SetupFailure(f"circom did not produce {path}")

        info = self._snark("r1cs", "info", str(r1cs))
        report.r1cs_info = self._circuit.system.info()
        report.step(
            "STEP 1: Compile circuit (circom -> .r1cs + .wasm + .sym)",
            *stdout.strip().splitlines(),
            *info.strip().splitlines(),
        )
        return {"r1cs": r1cs, "wasm": wasm}

    def _phase1(
        self,
        report: CeremonyReport,
        out: Path,
        contributions: Tuple[Tuple[str, str], ...],
    ) -> Path:
        prefix = f"pot{PTAU_POWER}"
        current = out / f"{prefix}_0000.ptau"
        lines: List[str] = [f"powersoftau new {FIELD_NAME} {PTAU_POWER} -> {current.name}"]
        self._snark("powersoftau", "new", FIELD_NAME, str(PTAU_POWER), str(current))

        for i, (name, entropy) in enumerate(contributions, start=1):
            nxt = out / f"{prefix}_{i:04d}.ptau"
            stdout = self._snark(
                "powersoftau", "contribute", str(current), str(nxt),
                f"--name={name}", f"-e={entropy}",
            )
            digest = _contribution_hash(stdout)
            report.contribute(1, name, digest)
            lines.append(f"contribute ({name}) -> {nxt.name}: {digest}")
            current = nxt

        self._snark("powersoftau", "verify", str(current))
        lines.append(f"verify {current.name}: Valid: True")

        final = out / f"{prefix}_final.ptau"
        self._snark("powersoftau", "prepare", "phase2", str(current), str(final))
        lines.append(f"prepare phase2 -> {final.name}")
        report.step("STEP 2: Powers of Tau: Phase 1", *lines)
        return final

    def _phase2(
        self,
        report: CeremonyReport,
        out: Path,
        r1cs: Path,
        ptau: Path,
        contributions: Tuple[Tuple[str, str], ...],
    ) -> Path:
        contributions = phase2_contributions(contributions)
        current = out / f"{CIRCUIT_NAME}_0000.zkey"
        lines: List[str] = [f"groth16 setup -> {current.name}"]
        self._snark("groth16", "setup", str(r1cs), str(ptau), str(current))

        for i, (name, entropy) in enumerate(contributions, start=1):
            last = i == len(contributions)
            nxt = out / (
                f"{CIRCUIT_NAME}_final.zkey" if last else f"{CIRCUIT_NAME}_{i:04d}.zkey"
            )
            stdout = self._snark(
                "zkey", "contribute", str(current), str(nxt),
                f"--name={name}", f"-e={entropy}",
            )
            digest = _contribution_hash(stdout)
            report.contribute(2, name, digest)
            lines.append(f"zkey contribute ({name}) -> {nxt.name}: {digest}")
            current = nxt

        self._snark("zkey", "verify", str(r1cs), str(ptau), str(current))
        lines.append(f"verify {current.name}: Valid: True")
        report.step("STEP 3: Groth16 Setup: Phase 2 (circuit-specific)", *lines)
        return current

    def _export_key(self, report: CeremonyReport, out: Path, zkey: Path) -> VerificationKey:
        vk_path = out / "verification_key.json"
        self._snark("zkey", "export", "verificationkey", str(zkey), str(vk_path))
        vk = VerificationKey.load(vk_path)
        if not vk.is_well_formed or vk.n_public != len(PUBLIC_SIGNAL_ORDER):
            raise SetupFailure(
                f"exported key has nPublic={vk.n_public}, IC={len(vk.ic)}; "
                f"expected nPublic={len(PUBLIC_SIGNAL_ORDER)}"
            )
        report.step("STEP 4: Export verification key", f"-> {vk_path}")
        report.verification_key_summary = summarize_key(vk.to_dict())
        return vk

    # ------------------------------------------------------------------
    # Proving
    # ------------------------------------------------------------------

    def prove(
        self, witness: WitnessAssignment, proving_key: ProvingKey
    ) -> Tuple[Proof, PublicInputVector]:
        if proving_key.protocol != PROTOCOL:
            raise ProofGenerationError(
                f"Proving key is for {proving_key.protocol!r}, not {PROTOCOL!r}"
            )
        if witness.circuit_digest != proving_key.circuit_digest:
            raise ProofGenerationError("Witness was built for a different circuit")
        try:
            wasm, zkey = proving_key.get("wasm"), proving_key.get("zkey")
        except KeyError as exc:
            raise ProofGenerationError(f"Proving key is missing {exc}") from exc

        with tempfile.TemporaryDirectory() as tmp_dir:
            tmp = Path(tmp_dir)
            input_path = tmp / "input.json"
            proof_path = tmp / "proof.json"
            public_path = tmp / "public.json"
            input_path.write_text(json.dumps(witness.input_signals()))
            self._run(
                [
                    self._snarkjs, "groth16", "fullprove",
                    str(input_path), wasm, zkey, str(proof_path), str(public_path),
                ],
                ProofGenerationError,
            )
            try:
                proof = Proof.from_dict(json.loads(proof_path.read_text()))
                public_inputs = PublicInputVector.from_decimal_strings(
                    json.loads(public_path.read_text())
                )
            except (OSError, ValueError) as exc:
                raise ProofGenerationError(f"Unreadable prover output: {exc}") from exc

        if public_inputs != witness.public_inputs:
            raise ProofGenerationError(
                "Prover public signals do not match the witness public inputs"
            )
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
            if not verification_key.is_well_formed:
                return False
            with tempfile.TemporaryDirectory() as tmp_dir:
                tmp = Path(tmp_dir)
                vk_path = verification_key.save(tmp / "verification_key.json")
                public_path = tmp / "public.json"
                proof_path = tmp / "proof.json"
                public_path.write_text(json.dumps(public_inputs.to_decimal_strings()))
                proof_path.write_text(json.dumps(proof.to_dict()))
                result = subprocess.run(
                    [
                        self._snarkjs, "groth16", "verify",
                        str(vk_path), str(public_path), str(proof_path),
                    ],
                    capture_output=True,
                    text=True,
                    check=False,
                    timeout=self._timeout,
                )
            return result.returncode == 0 and "OK" in result.stdout
        except Exception:
            logger.debug("groth16 verify failed", exc_info=True)
            return False

    def get_backend_info(self) -> Dict[str, Any]:
        return {
            "name": self.backend_name,
            "version": self.backend_version,
            "adapter": "snarkjs",
            "protocol": PROTOCOL,
            "curve": FIELD_NAME,
            "commitment": self.commitment.name,
            "snarkjs": self._snarkjs,
            "circom": self._circom,
            "build_dir": str(self._build_dir),
            "available": self.is_available(),
            "zero_knowledge": True,
            "features": ["setup", "prove", "verify", "ceremony_report"],
        }
