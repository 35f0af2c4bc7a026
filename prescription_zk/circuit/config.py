"""
Configuration for the prescription validation constraint system.

Module-level constants are validated once at import time. Values that depend
on the host (binary locations, build directory) can be overridden through
environment variables and are resolved lazily by the helpers at the bottom.
"""

import os
from pathlib import Path

# ============================================================================
# FIELD
# ============================================================================

# BN254 (alt_bn128) scalar field, shared by circom and snarkjs.
FIELD_NAME = "bn128"
FIELD_MODULUS = (
    21888242871839275222246405745257275088548364400416034343698204186575808495617
)
FIELD_MODULUS_BITS = 254

# ============================================================================
# SIGNAL BOUNDARY
# ============================================================================

# Order of the public input vector. Part of the wire contract: changing it
# requires a new verification key.
PUBLIC_SIGNAL_ORDER = (
    "doctorCredentialHash",
    "trustedSourceHash",
    "requiredAction",
    "deltaMax",
    "outcome",
)

PRIVATE_SIGNALS = (
    "doctorId",
    "doctorSecret",
    "authorizedAction",
    "sourceId",
    "dataAge",
    "allergyClassId",
    "medicationClassId",
)

OUTCOME_SIGNAL = "outcome"

# ============================================================================
# GADGET PARAMETERS
# ============================================================================

# Bit width of the freshness comparator. Both operands are range-checked to
# this width inside the gadget.
COMPARATOR_BITS = 32

# Default freshness window used by the built-in scenarios.
DEFAULT_DELTA_MAX = 90

# ============================================================================
# HASHING / COMMITMENTS
# ============================================================================

HASH_FUNCTION = "SHA3-256"
DOMAIN_SEPARATOR_PREFIX = b"PRESCRIPTION_ZK_V1_"

DOMAIN_SEPARATORS = {
    "commitment": DOMAIN_SEPARATOR_PREFIX + b"COMMIT",
    "circuit": DOMAIN_SEPARATOR_PREFIX + b"CIRCUIT",
    "verification_key": DOMAIN_SEPARATOR_PREFIX + b"VKEY",
    "attestation": DOMAIN_SEPARATOR_PREFIX + b"ATTEST",
    "ceremony": DOMAIN_SEPARATOR_PREFIX + b"CEREMONY",
}

COMMITMENT_DOMAIN_SEPARATOR = DOMAIN_SEPARATORS["commitment"]

# ============================================================================
# PROOF SERIALIZATION
# ============================================================================

PROOF_VERSION = 1

# Replacement applied to the tail of IC[0][0] by the key-substitution probe.
KEY_CORRUPTION_SUFFIX = "000000"

# ============================================================================
# CEREMONY
# ============================================================================

# 2^12 constraints max for the powers-of-tau accumulator.
PTAU_POWER = 12

DEFAULT_CONTRIBUTIONS = (
    ("Contributor-1", "entropy-phrase-alpha-1234"),
    ("Contributor-2", "entropy-phrase-beta-5678"),
)

# ============================================================================
# EXTERNAL TOOLCHAIN
# ============================================================================

SNARKJS_BINARY = "snarkjs"
CIRCOM_BINARY = "circom"
NODE_BINARY = "node"
DEFAULT_BUILD_DIR = "build"
DEFAULT_PROVER_TIMEOUT = 300
DEFAULT_NODE_MODULES = "node_modules"

CIRCUIT_NAME = "prescription"


def validate_config() -> bool:
    """
    Validate configuration parameters.

    Returns:
        True if configuration is valid

    Raises:
        AssertionError: If configuration is invalid
    """
    assert FIELD_MODULUS.bit_length() == FIELD_MODULUS_BITS, "Field size mismatch"
    assert 0 < COMPARATOR_BITS < FIELD_MODULUS_BITS - 1, "Comparator too wide"
    assert len(PUBLIC_SIGNAL_ORDER) == len(set(PUBLIC_SIGNAL_ORDER))
    assert not set(PUBLIC_SIGNAL_ORDER) & set(PRIVATE_SIGNALS), (
        "Signal declared both public and private"
    )
    assert PUBLIC_SIGNAL_ORDER[-1] == OUTCOME_SIGNAL, "Outcome must be last"
    assert HASH_FUNCTION in ["SHA3-256"], "Invalid hash function"
    assert len(DOMAIN_SEPARATORS) == len(set(DOMAIN_SEPARATORS.values()))
    assert len(DEFAULT_CONTRIBUTIONS) >= 1, "Ceremony needs a contributor"
    return True


def snarkjs_binary() -> str:
    return os.getenv("SNARKJS_BIN", SNARKJS_BINARY)


def circom_binary() -> str:
    return os.getenv("CIRCOM_BIN", CIRCOM_BINARY)


def node_binary() -> str:
    return os.getenv("NODE_BIN", NODE_BINARY)


def build_dir() -> Path:
    return Path(os.getenv("PRESCRIPTION_ZK_BUILD_DIR", DEFAULT_BUILD_DIR))


def node_modules_dir() -> Path:
    return Path(os.getenv("PRESCRIPTION_ZK_NODE_MODULES", DEFAULT_NODE_MODULES))


def circuit_source_path() -> Path:
    return Path(__file__).resolve().parent / "circom" / f"{CIRCUIT_NAME}.circom"


# Auto-validate on import
validate_config()
