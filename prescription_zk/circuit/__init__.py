"""Public API for the prescription validation constraint system."""

from __future__ import annotations

from importlib import import_module

from .composition import Check, PrescriptionCircuit, build_prescription_circuit
from .exceptions import (
    ConfigurationError,
    ConstraintViolation,
    InputValidationError,
    PrescriptionProtocolError,
    ProofGenerationError,
    SerializationError,
    SetupFailure,
    VerificationMismatch,
)
from .factory import get_proof_backend
from .feature_flags import get_backend_type, set_backend_type
from .interfaces import ProofBackend, ProvingOracle, VerificationOracle, WitnessBuilder
from .signals import PublicInputVector
from .types import Proof, ProofBundle, ProvingKey, VerificationKey
from .witness import PrescriptionWitnessBuilder, WitnessAssignment

__all__ = [
    "build_prescription_circuit",
    "Check",
    "PrescriptionCircuit",
    "PrescriptionWitnessBuilder",
    "WitnessAssignment",
    "PublicInputVector",
    "Proof",
    "ProofBundle",
    "ProvingKey",
    "VerificationKey",
    "WitnessBuilder",
    "ProvingOracle",
    "VerificationOracle",
    "ProofBackend",
    "get_proof_backend",
    "get_backend_type",
    "set_backend_type",
    "PrescriptionProtocolError",
    "ConstraintViolation",
    "VerificationMismatch",
    "SetupFailure",
    "ProofGenerationError",
    "ConfigurationError",
    "InputValidationError",
    "SerializationError",
    "PrescriptionPipeline",
    "PrescriptionVerifier",
    "ReferenceBackend",
    "SnarkjsBackend",
    "run_ceremony",
]

_LAZY_EXPORTS = {
    "PrescriptionPipeline": "pipeline",
    "PrescriptionVerifier": "verifier",
    "ReferenceBackend": "backends.reference",
    "SnarkjsBackend": "backends.snarkjs",
    "run_ceremony": "ceremony",
}


def __getattr__(name: str):
    if name in _LAZY_EXPORTS:
        module = import_module(f"{__name__}.{_LAZY_EXPORTS[name]}")
        value = getattr(module, name)
        globals()[name] = value
        return value
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
