"""
Signal model for the prescription validation circuit.

Defines the public/private partition, the fixed order of the public input
vector and the immutable PublicInputVector value object that crosses the
proof boundary.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Tuple

from .config import OUTCOME_SIGNAL, PRIVATE_SIGNALS, PUBLIC_SIGNAL_ORDER
from .exceptions import ConfigurationError, InputValidationError
from .field import parse_element, reduce, to_decimal


class Visibility(Enum):
    """Who gets to see a signal's value."""

    PUBLIC = "public"
    PRIVATE = "private"
    INTERMEDIATE = "intermediate"


@dataclass(frozen=True)
class Signal:
    """
    A named field element.

    Attributes:
        name: Identity of the signal
        visibility: Whether the verifier sees it
        description: Human-readable meaning
    """

    name: str
    visibility: Visibility
    description: str = ""

    @property
    def is_public(self) -> bool:
        return self.visibility is Visibility.PUBLIC

    @property
    def is_input(self) -> bool:
        return self.visibility is not Visibility.INTERMEDIATE


INPUT_SIGNALS: Dict[str, Signal] = {
    "doctorCredentialHash": Signal(
        "doctorCredentialHash",
        Visibility.PUBLIC,
        "Commitment to (doctorId, doctorSecret)",
    ),
    "trustedSourceHash": Signal(
        "trustedSourceHash",
        Visibility.PUBLIC,
        "Commitment to the trusted data source id",
    ),
    "requiredAction": Signal(
        "requiredAction", Visibility.PUBLIC, "Action required by policy"
    ),
    "deltaMax": Signal(
        "deltaMax", Visibility.PUBLIC, "Maximum accepted data age (exclusive)"
    ),
    "outcome": Signal(
        "outcome", Visibility.PUBLIC, "Declared result: 1 accept, 0 reject"
    ),
    "doctorId": Signal("doctorId", Visibility.PRIVATE, "Prescriber identifier"),
    "doctorSecret": Signal(
        "doctorSecret", Visibility.PRIVATE, "Prescriber credential secret"
    ),
    "authorizedAction": Signal(
        "authorizedAction", Visibility.PRIVATE, "Action the prescriber may take"
    ),
    "sourceId": Signal("sourceId", Visibility.PRIVATE, "Patient data source"),
    "dataAge": Signal("dataAge", Visibility.PRIVATE, "Age of the patient record"),
    "allergyClassId": Signal(
        "allergyClassId", Visibility.PRIVATE, "Patient allergy class"
    ),
    "medicationClassId": Signal(
        "medicationClassId", Visibility.PRIVATE, "Prescribed medication class"
    ),
}


def check_signal_partition(signals: Mapping[str, Signal] = INPUT_SIGNALS) -> None:
    """Raise ConfigurationError unless ``signals`` lists the configured order."""
    public = tuple(n for n, s in signals.items() if s.is_public)
    private = tuple(n for n, s in signals.items() if not s.is_public)
    if public != PUBLIC_SIGNAL_ORDER:
        raise ConfigurationError(
            f"Public signals {public} do not match {PUBLIC_SIGNAL_ORDER}"
        )
    if private != PRIVATE_SIGNALS:
        raise ConfigurationError(
            f"Private signals {private} do not match {PRIVATE_SIGNALS}"
        )


check_signal_partition()


def validate_witness_input(inputs: Mapping[str, Any]) -> Dict[str, int]:
    """
    Validate and decode a witness input mapping.

    Every input signal (public and private) must be present exactly once,
    encoded as a decimal string (ints are accepted). Unknown names are
    rejected so that a typo cannot silently leave a signal unconstrained.

    Returns:
        Mapping of signal name to field element

    Raises:
        InputValidationError: If the mapping does not match the signal model
    """
    if not isinstance(inputs, Mapping):
        raise InputValidationError("witness input must be a mapping")

    unknown = sorted(set(inputs) - set(INPUT_SIGNALS))
    if unknown:
        raise InputValidationError(f"Unknown signal(s): {', '.join(unknown)}")

    decoded: Dict[str, int] = {}
    for name in INPUT_SIGNALS:
        if name not in inputs:
            raise InputValidationError(f"Missing required signal '{name}'")
        decoded[name] = parse_element(inputs[name], label=name)
    return decoded


def encode_witness_input(values: Mapping[str, Any]) -> Dict[str, str]:
    """Encode input signal values as decimal strings, in signal order."""
    decoded = validate_witness_input(values)
    return {name: to_decimal(decoded[name]) for name in INPUT_SIGNALS}


@dataclass(frozen=True)
class PublicInputVector:
    """
    Ordered public signal values bound into a proof.

    Immutable: tampering helpers return modified copies and never alias the
    original vector, so a proof bundle shared between scenarios stays intact.
    """

    values: Tuple[int, ...]

    def __post_init__(self):
        if not isinstance(self.values, tuple):
            object.__setattr__(self, "values", tuple(self.values))
        if len(self.values) != len(PUBLIC_SIGNAL_ORDER):
            raise InputValidationError(
                f"Public input vector must have {len(PUBLIC_SIGNAL_ORDER)} "
                f"entries, got {len(self.values)}"
            )
        object.__setattr__(self, "values", tuple(reduce(v) for v in self.values))

    @classmethod
    def from_mapping(cls, values: Mapping[str, int]) -> "PublicInputVector":
        return cls(tuple(values[name] for name in PUBLIC_SIGNAL_ORDER))

    @classmethod
    def from_decimal_strings(cls, values: Iterable[Any]) -> "PublicInputVector":
        items = list(values)
        return cls(
            tuple(
                parse_element(v, label=f"public[{i}]") for i, v in enumerate(items)
            )
        )

    def to_decimal_strings(self) -> list:
        return [to_decimal(v) for v in self.values]

    def as_dict(self) -> Dict[str, int]:
        return dict(zip(PUBLIC_SIGNAL_ORDER, self.values))

    def __getitem__(self, name: str) -> int:
        try:
            index = PUBLIC_SIGNAL_ORDER.index(name)
        except ValueError:
            raise KeyError(name) from None
        return self.values[index]

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self):
        return iter(self.values)

    @property
    def outcome(self) -> int:
        return self[OUTCOME_SIGNAL]

    def replace(self, name: str, value: int) -> "PublicInputVector":
        """Return a copy with one coordinate set to ``value``."""
        if name not in PUBLIC_SIGNAL_ORDER:
            raise KeyError(name)
        index = PUBLIC_SIGNAL_ORDER.index(name)
        values = list(self.values)
        values[index] = value
        return PublicInputVector(tuple(values))

    def tamper(self, name: str = OUTCOME_SIGNAL) -> "PublicInputVector":
        """
        Return a copy with exactly one coordinate changed.

        The outcome bit is flipped between 0 and 1; any other coordinate is
        incremented by one in the field.
        """
        current = self[name]
        if name == OUTCOME_SIGNAL:
            return self.replace(name, 0 if current == 1 else 1)
        return self.replace(name, current + 1)
