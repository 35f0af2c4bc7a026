"""
Feature flags for selecting the proof backend.

Two backends exist. ``reference`` runs in-process and signs an attestation
over the public inputs; it checks the circuit but hides nothing, so it is for
tests and demos. ``snarkjs`` produces Groth16 proofs and shells out to an
external toolchain: circom compiles the R1CS, snarkjs runs the ceremony and
the prover, and node evaluates Poseidon for the hash commitments. Selecting
it on a machine without those binaries fails at setup, so callers can ask
``missing_tools()`` first.
"""

from __future__ import annotations

import os
import shutil
from typing import Final

from .config import circom_binary, node_binary, snarkjs_binary
from .exceptions import ConfigurationError

_VALID_BACKENDS: Final[tuple[str, ...]] = ("reference", "snarkjs")
_ZERO_KNOWLEDGE_BACKENDS: Final[frozenset[str]] = frozenset({"snarkjs"})
_DEFAULT_BACKEND: Final[str] = "reference"
_ENV_VAR_NAME: Final[str] = "PRESCRIPTION_ZK_BACKEND"

_backend_override: str | None = None


def _format_valid_options() -> str:
    return ", ".join(_VALID_BACKENDS)


def _normalize_backend(value: str | None) -> str | None:
    if value is None:
        return None

    if not isinstance(value, str):
        raise ConfigurationError(
            f"Invalid backend type: {value!r}. Valid options: {_format_valid_options()}"
        )

    value = value.strip().lower()
    if value == "":
        return None

    if value not in _VALID_BACKENDS:
        raise ConfigurationError(
            f"Invalid backend type: {value!r}. Valid options: {_format_valid_options()}"
        )

    return value


def valid_backends() -> tuple[str, ...]:
    return _VALID_BACKENDS


def get_backend_type(prefer: str | None = None) -> str:
    """
    Resolve backend type in precedence order: prefer, override, env, default.

    Raises:
        ConfigurationError: If a provided backend value is invalid.
    """
    preferred = _normalize_backend(prefer)
    if preferred is not None:
        return preferred

    if _backend_override is not None:
        return _backend_override

    env_backend = _normalize_backend(os.getenv(_ENV_VAR_NAME))
    if env_backend is not None:
        return env_backend

    return _DEFAULT_BACKEND


def set_backend_type(value: str | None) -> None:
    """
    Set in-memory backend override (testing only).

    Args:
        value: Backend type to force, or None to clear the override.
    """
    global _backend_override
    _backend_override = _normalize_backend(value)


def is_zero_knowledge(prefer: str | None = None) -> bool:
    """True if the resolved backend hides the private signals."""
    return get_backend_type(prefer) in _ZERO_KNOWLEDGE_BACKENDS


def required_tools(prefer: str | None = None) -> tuple[str, ...]:
    """
    External binaries the resolved backend invokes.

    Names honour the CIRCOM_BIN, SNARKJS_BIN and NODE_BIN overrides.
    """
    if get_backend_type(prefer) == "snarkjs":
        return (circom_binary(), snarkjs_binary(), node_binary())
    return ()


def missing_tools(prefer: str | None = None) -> tuple[str, ...]:
    return tuple(tool for tool in required_tools(prefer) if shutil.which(tool) is None)
