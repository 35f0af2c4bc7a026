"""
Scenario definitions for the prescription validation property suite.

A fresh scenario builds a witness from concrete inputs, proves and verifies.
A probe scenario reuses the verified proof of an earlier fresh scenario and
re-verifies it after tampering with the public vector (replay) or the
verification key (key substitution).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

import yaml

from ..circuit.config import (
    COMPARATOR_BITS,
    DEFAULT_DELTA_MAX,
    OUTCOME_SIGNAL,
    PUBLIC_SIGNAL_ORDER,
)
from ..circuit.composition import CONTRAINDICATION, CONTRAINDICATION_HINT
from ..circuit.exceptions import ConfigurationError

Commit = Callable[..., int]


class SecurityProperty(Enum):
    """Property a scenario exercises."""

    COMPLETENESS = "completeness"
    SOUNDNESS = "soundness"
    OUTCOME_INTEGRITY = "outcome-integrity"
    HONEST_REJECT = "honest-reject"
    REPLAY_BINDING = "replay-binding"
    KEY_BINDING = "key-binding"
    FRESHNESS_BOUNDARY = "freshness-boundary"
    RANGE_CHECK = "range-check"


class ScenarioKind(Enum):
    FRESH = "fresh"
    REPLAY = "replay"
    KEY_SUBSTITUTION = "key-substitution"


@dataclass(frozen=True)
class Scenario:
    """
    One named expectation about the pipeline.

    Attributes:
        id: Short identifier (e.g. "S1")
        name: Human-readable description
        property: Security property exercised
        expect_proof: Whether a proof should be produced
        expect_verify: Whether verification should succeed
        kind: Fresh scenario or binding probe
        inputs: Witness input (fresh scenarios)
        overrides: Adversarial values for intermediate hint signals
        base: Scenario whose proof a probe reuses
        signal: Public signal a replay probe mutates
    """

    id: str
    name: str
    property: SecurityProperty
    expect_proof: bool
    expect_verify: bool
    kind: ScenarioKind = ScenarioKind.FRESH
    inputs: Mapping[str, str] = field(default_factory=dict)
    overrides: Mapping[str, int] = field(default_factory=dict)
    base: Optional[str] = None
    signal: str = OUTCOME_SIGNAL

    def __post_init__(self):
        if self.expect_verify and not self.expect_proof:
            raise ConfigurationError(f"{self.id}: cannot expect verification without a proof")
        if self.is_probe:
            if not self.base:
                raise ConfigurationError(f"{self.id}: probe scenarios need a base scenario")
            if not self.expect_proof:
                raise ConfigurationError(f"{self.id}: probes always start from a proof")
            if self.signal not in PUBLIC_SIGNAL_ORDER:
                raise ConfigurationError(f"{self.id}: unknown public signal {self.signal!r}")
        elif not self.inputs:
            raise ConfigurationError(f"{self.id}: fresh scenarios need inputs")

    @property
    def is_probe(self) -> bool:
        return self.kind is not ScenarioKind.FRESH


# ============================================================================
# BUILT-IN SUITE
# ============================================================================


def baseline_inputs(commit: Commit, **changes: Any) -> Dict[str, str]:
    """
    Valid accept inputs, with public hashes committed under ``commit``.

    Hashes are computed from the canonical credential (123, 456) and source
    (1), so changing ``doctorSecret`` or ``sourceId`` breaks the relation.
    """
    inputs: Dict[str, Any] = {
        "doctorId": 123,
        "doctorSecret": 456,
        "authorizedAction": 1,
        "sourceId": 1,
        "dataAge": 30,
        "allergyClassId": 2,
        "medicationClassId": 5,
        "doctorCredentialHash": commit(123, 456),
        "trustedSourceHash": commit(1),
        "requiredAction": 1,
        "deltaMax": DEFAULT_DELTA_MAX,
        "outcome": 1,
    }
    inputs.update(changes)
    return {k: str(v) for k, v in inputs.items()}


def core_scenarios(commit: Commit) -> List[Scenario]:
    """The eight reference scenarios S1-S7 (with S5 split into a/b)."""
    P = SecurityProperty
    return [
        Scenario("S1", "Valid baseline - accept prescription", P.COMPLETENESS,
                 True, True, inputs=baseline_inputs(commit)),
        Scenario("S2", "Invalid credential - forged doctorSecret", P.SOUNDNESS,
                 False, False, inputs=baseline_inputs(commit, doctorSecret=999)),
        Scenario("S3", "Untrusted source - sourceId not in registry", P.SOUNDNESS,
                 False, False, inputs=baseline_inputs(commit, sourceId=99)),
        Scenario("S4", "Freshness violation - dataAge exceeds deltaMax",
                 P.OUTCOME_INTEGRITY, False, False,
                 inputs=baseline_inputs(commit, dataAge=100)),
        Scenario("S5a", "Contraindication - reject outcome proved correctly",
                 P.HONEST_REJECT, True, True,
                 inputs=baseline_inputs(commit, medicationClassId=2, outcome=0)),
        Scenario("S5b", "Outcome integrity - approve despite contraindication",
                 P.OUTCOME_INTEGRITY, False, False,
                 inputs=baseline_inputs(commit, medicationClassId=2)),
        Scenario("S6", "Replay / substitution - tampered outcome", P.REPLAY_BINDING,
                 True, False, kind=ScenarioKind.REPLAY, base="S1"),
        Scenario("S7", "Policy update - wrong verification key", P.KEY_BINDING,
                 True, False, kind=ScenarioKind.KEY_SUBSTITUTION, base="S1"),
    ]


def extended_scenarios(commit: Commit) -> List[Scenario]:
    """Boundary, range-check, hint and per-coordinate binding scenarios."""
    P = SecurityProperty
    limit = DEFAULT_DELTA_MAX
    out_of_range = 2**COMPARATOR_BITS + 30
    scenarios = [
        Scenario("F1", "Freshness boundary - dataAge = deltaMax - 1 is fresh",
                 P.FRESHNESS_BOUNDARY, True, True,
                 inputs=baseline_inputs(commit, dataAge=limit - 1)),
        Scenario("F2", "Freshness boundary - dataAge = deltaMax is stale (reject)",
                 P.FRESHNESS_BOUNDARY, True, True,
                 inputs=baseline_inputs(commit, dataAge=limit, outcome=0)),
        Scenario("F3", "Freshness boundary - dataAge = deltaMax cannot accept",
                 P.FRESHNESS_BOUNDARY, False, False,
                 inputs=baseline_inputs(commit, dataAge=limit)),
        Scenario("F4", "Stale data - honest reject proved correctly",
                 P.HONEST_REJECT, True, True,
                 inputs=baseline_inputs(commit, dataAge=100, outcome=0)),
        Scenario("A1", "Unauthorized action - no proof even for reject",
                 P.SOUNDNESS, False, False,
                 inputs=baseline_inputs(commit, authorizedAction=2, outcome=0)),
        Scenario("R1", "Range check - dataAge beyond comparator width cannot accept",
                 P.RANGE_CHECK, False, False,
                 inputs=baseline_inputs(commit, dataAge=out_of_range)),
        Scenario("R2", "Range check - dataAge beyond comparator width cannot reject",
                 P.RANGE_CHECK, False, False,
                 inputs=baseline_inputs(commit, dataAge=out_of_range, outcome=0)),
        Scenario("H1", "Adversarial hint - hide contraindication with fake inverse",
                 P.SOUNDNESS, False, False,
                 inputs=baseline_inputs(commit, medicationClassId=2),
                 overrides={CONTRAINDICATION_HINT: 5, CONTRAINDICATION: 0}),
        Scenario("H2", "Adversarial hint - fake match with zero inverse",
                 P.SOUNDNESS, False, False,
                 inputs=baseline_inputs(commit, outcome=0),
                 overrides={CONTRAINDICATION_HINT: 0}),
    ]
    for signal in PUBLIC_SIGNAL_ORDER:
        if signal == OUTCOME_SIGNAL:
            continue
        scenarios.append(
            Scenario(f"S6.{signal}", f"Replay / substitution - tampered {signal}",
                     P.REPLAY_BINDING, True, False,
                     kind=ScenarioKind.REPLAY, base="S1", signal=signal)
        )
    scenarios.append(
        Scenario("S6.reject", "Replay / substitution - reject flipped to accept",
                 P.REPLAY_BINDING, True, False, kind=ScenarioKind.REPLAY, base="S5a")
    )
    return scenarios


def default_scenarios(commit: Commit, extended: bool = True) -> List[Scenario]:
    scenarios = core_scenarios(commit)
    if extended:
        scenarios.extend(extended_scenarios(commit))
    return scenarios


# ============================================================================
# YAML SUITES
# ============================================================================


def _resolve_value(value: Any, commit: Commit, where: str) -> str:
    if isinstance(value, Mapping):
        if set(value) != {"commit"} or not isinstance(value["commit"], list):
            raise ConfigurationError(f"{where}: expected {{commit: [...]}}, got {value!r}")
        return str(commit(*(int(v) for v in value["commit"])))
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ConfigurationError(f"{where}: unsupported value {value!r}")
    return str(value)


def scenario_from_dict(data: Mapping[str, Any], commit: Commit) -> Scenario:
    """
    Build a scenario from a YAML/JSON mapping.

    Raises:
        ConfigurationError: If the entry is malformed
    """
    try:
        sid = str(data["id"])
        prop = SecurityProperty(data["property"])
    except KeyError as exc:
        raise ConfigurationError(f"scenario entry is missing {exc}") from exc
    except ValueError as exc:
        raise ConfigurationError(f"scenario {data.get('id')!r}: {exc}") from exc

    name = str(data.get("name", sid))
    probe = data.get("probe")
    try:
        if probe is not None:
            return Scenario(
                sid, name, prop,
                expect_proof=bool(data.get("expect_proof", True)),
                expect_verify=bool(data.get("expect_verify", False)),
                kind=ScenarioKind(probe.get("kind", "replay")),
                base=str(probe["base"]),
                signal=str(probe.get("signal", OUTCOME_SIGNAL)),
            )
        inputs = {
            key: _resolve_value(value, commit, f"{sid}.inputs.{key}")
            for key, value in dict(data.get("inputs") or {}).items()
        }
        return Scenario(
            sid, name, prop,
            expect_proof=bool(data["expect_proof"]),
            expect_verify=bool(data["expect_verify"]),
            inputs=inputs,
            overrides={k: int(v) for k, v in dict(data.get("overrides") or {}).items()},
        )
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise ConfigurationError(f"scenario {sid!r} is malformed: {exc}") from exc


def load_scenarios(source: Union[str, Path], commit: Commit) -> List[Scenario]:
    """
    Load a scenario suite from a YAML file with a top-level ``scenarios`` list.

    Raises:
        ConfigurationError: If the file is unreadable or an entry is invalid
    """
    try:
        document = yaml.safe_load(Path(source).read_text())
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"cannot read scenario file {source}: {exc}") from exc

    entries = document.get("scenarios") if isinstance(document, dict) else None
    if not isinstance(entries, list):
        raise ConfigurationError(f"{source}: expected a top-level 'scenarios' list")

    scenarios = [scenario_from_dict(entry, commit) for entry in entries]
    check_unique_ids(scenarios)
    return scenarios


def check_unique_ids(scenarios: Iterable[Scenario]) -> None:
    seen = set()
    for scenario in scenarios:
        if scenario.id in seen:
            raise ConfigurationError(f"duplicate scenario id {scenario.id!r}")
        seen.add(scenario.id)
