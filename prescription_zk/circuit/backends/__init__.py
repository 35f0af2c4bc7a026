"""Proof backends implementing ProofBackend."""

from .reference import ReferenceBackend
from .snarkjs import SnarkjsBackend

__all__ = ["ReferenceBackend", "SnarkjsBackend"]
