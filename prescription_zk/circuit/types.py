"""
Proof artifacts exchanged with the proving and verification oracles.

This module provides:
1. Proof - opaque pi_a / pi_b / pi_c certificate with CBOR serialization
2. VerificationKey - read-only key constants, including the IC array
3. ProvingKey - backend-specific proving material
4. ProofBundle - a proof together with the public vector it is bound to

All artifacts are immutable value objects. Helpers that produce altered
artifacts (for tampering probes) always return copies.
"""

import hashlib
import json
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Tuple, Union

try:
    import cbor2
except ImportError:
    raise ImportError(
        "cbor2 is required for proof serialization. "
        "Install with: pip install cbor2"
    )

from .config import DOMAIN_SEPARATORS, KEY_CORRUPTION_SUFFIX, PROOF_VERSION
from .exceptions import SerializationError
from .signals import PublicInputVector


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return tuple((str(k), _freeze(v)) for k, v in value.items())
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    return value


def _thaw_list(value: Any) -> Any:
    if isinstance(value, tuple):
        return [_thaw_list(v) for v in value]
    return value


# ============================================================================
# PROOF
# ============================================================================


@dataclass(frozen=True)
class Proof:
    """
    Opaque succinct certificate.

    Attributes:
        pi_a: First curve point encoding (decimal-string coordinates)
        pi_b: Second curve point encoding (nested pairs for G2 points)
        pi_c: Third curve point encoding
        protocol: Proving system identifier (e.g. "groth16")
        curve: Curve identifier (e.g. "bn128")

    Example:
        >>> proof = Proof.from_dict(json.loads(Path("proof.json").read_text()))
        >>> restored = Proof.deserialize(proof.serialize())
        >>> assert restored == proof
    """

    pi_a: Tuple[Any, ...]
    pi_b: Tuple[Any, ...]
    pi_c: Tuple[Any, ...]
    protocol: str
    curve: str

    def __post_init__(self):
        for name in ("pi_a", "pi_b", "pi_c"):
            object.__setattr__(self, name, _freeze(getattr(self, name)))

    @property
    def parts(self) -> Tuple[Tuple[Any, ...], Tuple[Any, ...], Tuple[Any, ...]]:
        return self.pi_a, self.pi_b, self.pi_c

    def to_dict(self) -> Dict[str, Any]:
        """snarkjs proof.json shape."""
        return {
            "pi_a": _thaw_list(self.pi_a),
            "pi_b": _thaw_list(self.pi_b),
            "pi_c": _thaw_list(self.pi_c),
            "protocol": self.protocol,
            "curve": self.curve,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Proof":
        try:
            return cls(
                pi_a=data["pi_a"],
                pi_b=data["pi_b"],
                pi_c=data["pi_c"],
                protocol=str(data["protocol"]),
                curve=str(data["curve"]),
            )
        except (KeyError, TypeError) as e:
            raise SerializationError(f"Invalid proof format: {e}") from e

    def serialize(self) -> bytes:
        """
        Serialize proof to bytes using CBOR, with a version field.

        Raises:
            SerializationError: If serialization fails
        """
        try:
            data = {"v": PROOF_VERSION, **self.to_dict()}
            return cbor2.dumps(data)
        except Exception as e:
            raise SerializationError(f"Failed to serialize proof: {e}")

    @classmethod
    def deserialize(cls, data: bytes) -> "Proof":
        """
        Deserialize proof from CBOR bytes.

        Raises:
            SerializationError: If the bytes are not a supported proof
        """
        try:
            obj = cbor2.loads(data)
        except Exception as e:
            raise SerializationError(f"Failed to deserialize proof: {e}")

        if not isinstance(obj, dict):
            raise SerializationError("Invalid proof format: missing required fields")

        version = obj.get("v", 1)
        if version != PROOF_VERSION:
            raise SerializationError(
                f"Unsupported proof version: {version} (expected {PROOF_VERSION})"
            )
        return cls.from_dict(obj)


# ============================================================================
# VERIFICATION KEY
# ============================================================================


@dataclass(frozen=True)
class VerificationKey:
    """
    Verification constants from the setup ceremony.

    ``ic`` holds one entry per public signal plus one constant term.
    ``constants`` holds every other field of the key verbatim.
    """

    protocol: str
    curve: str
    n_public: int
    ic: Tuple[Tuple[str, ...], ...]
    constants: Tuple[Tuple[str, Any], ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "ic", _freeze(self.ic))
        object.__setattr__(self, "constants", _freeze(dict(self.constants)))

    @property
    def is_well_formed(self) -> bool:
        return self.n_public >= 0 and len(self.ic) == self.n_public + 1

    def constant(self, name: str, default: Any = None) -> Any:
        for key, value in self.constants:
            if key == name:
                return value
        return default

    def to_dict(self) -> Dict[str, Any]:
        """snarkjs verification_key.json shape."""
        data: Dict[str, Any] = {
            "protocol": self.protocol,
            "curve": self.curve,
            "nPublic": self.n_public,
        }
        for key, value in self.constants:
            data[key] = _thaw_list(value)
        data["IC"] = _thaw_list(self.ic)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "VerificationKey":
        if not isinstance(data, Mapping):
            raise SerializationError("Invalid verification key format: expected an object")
        try:
            rest = {
                k: v for k, v in data.items() if k not in ("protocol", "curve", "nPublic", "IC")
            }
            return cls(
                protocol=str(data["protocol"]),
                curve=str(data["curve"]),
                n_public=int(data["nPublic"]),
                ic=data["IC"],
                constants=tuple(rest.items()),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise SerializationError(f"Invalid verification key format: {e}") from e

    @classmethod
    def load(cls, path: Union[str, Path]) -> "VerificationKey":
        try:
            return cls.from_dict(json.loads(Path(path).read_text()))
        except json.JSONDecodeError as e:
            raise SerializationError(f"Invalid verification key JSON: {e}") from e

    def save(self, path: Union[str, Path]) -> Path:
        path = Path(path)
        path.write_text(json.dumps(self.to_dict(), indent=2))
        return path

    def digest(self) -> str:
        """SHA3-256 over the canonical JSON encoding of every constant."""
        encoded = json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))
        h = hashlib.sha3_256()
        h.update(DOMAIN_SEPARATORS["verification_key"])
        h.update(encoded.encode("utf-8"))
        return h.hexdigest()

    def with_ic_entry(self, row: int, column: int, value: str) -> "VerificationKey":
        """Return a copy with ``IC[row][column]`` replaced."""
        ic = [list(entry) for entry in self.ic]
        ic[row][column] = value
        return replace(self, ic=tuple(tuple(entry) for entry in ic))

    def corrupted(self, row: int = 0, column: int = 0) -> "VerificationKey":
        """
        Return a structurally altered copy: the last six digits of
        ``IC[row][column]`` are replaced.
        """
        original = str(self.ic[row][column])
        suffix = KEY_CORRUPTION_SUFFIX
        altered = original[: -len(suffix)] + suffix
        if altered == original:
            altered = original[: -len(suffix)] + "1" * len(suffix)
        return self.with_ic_entry(row, column, altered)


# ============================================================================
# PROVING KEY
# ============================================================================


@dataclass(frozen=True)
class ProvingKey:
    """
    Backend-specific proving material.

    Attributes:
        protocol: Proving system identifier
        circuit_digest: Digest of the constraint system the key was made for
        material: Backend-defined entries (seed, zkey/wasm paths, ...)
    """

    protocol: str
    circuit_digest: str
    material: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(
            self, "material", tuple((str(k), str(v)) for k, v in dict(self.material).items())
        )

    def get(self, name: str) -> str:
        for key, value in self.material:
            if key == name:
                return value
        raise KeyError(name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "protocol": self.protocol,
            "circuit_digest": self.circuit_digest,
            "material": dict(self.material),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProvingKey":
        if not isinstance(data, Mapping):
            raise SerializationError("Invalid proving key format: expected an object")
        try:
            return cls(
                protocol=str(data["protocol"]),
                circuit_digest=str(data["circuit_digest"]),
                material=tuple(dict(data.get("material", {})).items()),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise SerializationError(f"Invalid proving key format: {e}") from e

    @classmethod
    def load(cls, path: Union[str, Path]) -> "ProvingKey":
        try:
            return cls.from_dict(json.loads(Path(path).read_text()))
        except json.JSONDecodeError as e:
            raise SerializationError(f"Invalid proving key JSON: {e}") from e

    def save(self, path: Union[str, Path]) -> Path:
        path = Path(path)
        path.write_text(json.dumps(self.to_dict(), indent=2))
        return path


# ============================================================================
# PROOF BUNDLE
# ============================================================================


@dataclass(frozen=True)
class ProofBundle:
    """A proof and the public input vector it was produced against."""

    proof: Proof
    public_inputs: PublicInputVector

    def with_public_inputs(self, public_inputs: PublicInputVector) -> "ProofBundle":
        return replace(self, public_inputs=public_inputs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proof": self.proof.to_dict(),
            "publicSignals": self.public_inputs.to_decimal_strings(),
        }
