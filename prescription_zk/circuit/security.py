"""
Security utilities for the in-process attestation backend.

Randomness for proof blinding nonces, domain-separated hashing into the
field, and constant-time comparison of digests.
"""

import hashlib
import hmac
import os
import secrets
from typing import Iterable

from .config import DOMAIN_SEPARATOR_PREFIX, HASH_FUNCTION
from .field import P

# ============================================================================
# RANDOMNESS SOURCE (Fork-Safe)
# ============================================================================


class RandomnessSource:
    """
    Cryptographically secure randomness with fork detection.

    Example:
        >>> rng = RandomnessSource()
        >>> nonce = rng.get_random_bytes(32)
    """

    def __init__(self):
        self._pid = os.getpid()

    def get_random_bytes(self, n: int) -> bytes:
        if n <= 0:
            raise ValueError(f"n must be positive, got {n}")
        if os.getpid() != self._pid:
            self.__init__()
        return secrets.token_bytes(n)


# ============================================================================
# HASH FUNCTIONS
# ============================================================================


def _new_hash():
    return hashlib.sha3_256() if HASH_FUNCTION == "SHA3-256" else hashlib.sha256()


def hash_parts(domain_sep: bytes, parts: Iterable[bytes]) -> bytes:
    """
    Length-prefixed hash of a domain separator and a sequence of parts.

    Length prefixes keep ``(b"ab", b"c")`` and ``(b"a", b"bc")`` apart.

    Raises:
        ValueError: If the domain separator does not carry the protocol prefix
        TypeError: If a part is not bytes
    """
    if not isinstance(domain_sep, bytes) or not domain_sep.startswith(
        DOMAIN_SEPARATOR_PREFIX
    ):
        raise ValueError("Domain separator must start with the protocol prefix")

    h = _new_hash()
    h.update(len(domain_sep).to_bytes(4, "big"))
    h.update(domain_sep)
    for part in parts:
        if not isinstance(part, bytes):
            raise TypeError(f"hash part must be bytes, got {type(part)}")
        h.update(len(part).to_bytes(4, "big"))
        h.update(part)
    return h.digest()


def hash_to_field(data: bytes, domain_sep: bytes) -> int:
    """
    Hash data to an element of the scalar field.

    Security Note:
        Modulo reduction introduces a negligible bias; the outputs are key
        constants, not secrets.
    """
    if not data:
        raise ValueError("Data cannot be empty")
    return int.from_bytes(hash_parts(domain_sep, [data]), "big") % P


# ============================================================================
# CONSTANT-TIME OPERATIONS
# ============================================================================


def constant_time_compare(a: bytes, b: bytes) -> bool:
    """Constant-time comparison via ``hmac.compare_digest``."""
    return hmac.compare_digest(a, b)
