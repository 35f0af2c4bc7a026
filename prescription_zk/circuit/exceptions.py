"""
Custom exceptions for the prescription validation protocol.

ConstraintViolation and VerificationMismatch are expected outcomes of
tampering and negative scenarios. SetupFailure is always fatal.
"""

from typing import Iterable, Tuple


class PrescriptionProtocolError(Exception):
    """Base exception for prescription protocol errors."""

    pass


class ConstraintViolation(PrescriptionProtocolError):
    """No satisfying assignment exists for the supplied inputs."""

    def __init__(self, message: str, labels: Iterable[str] = ()):
        super().__init__(message)
        self.labels: Tuple[str, ...] = tuple(labels)


class VerificationMismatch(PrescriptionProtocolError):
    """A proof does not verify against the given public inputs and key."""

    pass


class SetupFailure(PrescriptionProtocolError):
    """Key generation or ceremony failure."""

    pass


class ProofGenerationError(PrescriptionProtocolError):
    """The proving oracle failed for a reason other than satisfiability."""

    pass


class ConfigurationError(PrescriptionProtocolError):
    """Configuration error."""

    pass


class InputValidationError(PrescriptionProtocolError, ValueError):
    """Witness input is malformed (unknown signal, bad encoding, out of field)."""

    pass


class SerializationError(PrescriptionProtocolError):
    """Artifact could not be encoded or decoded."""

    pass
