"""
Scenario results and the merged suite report.

Each scenario produces its own immutable ScenarioResult; the report is
assembled from the finished results in one step.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from .scenarios import Scenario, SecurityProperty


@dataclass(frozen=True)
class ScenarioResult:
    """
    Observed behaviour of one scenario.

    Attributes:
        scenario: The scenario that was run
        proof_generated: A proof existed (built here, or the probe's base proof)
        verified: The verification oracle accepted
        error: Message of the exception that stopped the scenario, if any
        unexpected_error: The scenario stopped for a reason other than an
            unsatisfiable witness (oracle failure, missing base proof)
        failed_constraints: Constraint labels reported by the witness builder
        duration: Wall-clock seconds
    """

    scenario: Scenario
    proof_generated: bool
    verified: bool
    error: Optional[str] = None
    unexpected_error: bool = False
    failed_constraints: Tuple[str, ...] = ()
    duration: float = 0.0

    @property
    def passed(self) -> bool:
        if self.unexpected_error:
            return False
        return (
            self.proof_generated == self.scenario.expect_proof
            and self.verified == self.scenario.expect_verify
        )

    def to_dict(self) -> Dict[str, Any]:
        """Entry in the ``test_results.json`` shape plus observed details."""
        return {
            "id": self.scenario.id,
            "name": self.scenario.name,
            "expectProof": self.scenario.expect_proof,
            "expectVerify": self.scenario.expect_verify,
            "result": self.passed,
            "property": self.scenario.property.value,
            "kind": self.scenario.kind.value,
            "proofGenerated": self.proof_generated,
            "verified": self.verified,
            "error": self.error,
            "failedConstraints": list(self.failed_constraints),
            "durationSeconds": round(self.duration, 4),
        }


@dataclass(frozen=True)
class ScenarioReport:
    """All results of one suite run, in scenario order."""

    backend: str
    results: Tuple[ScenarioResult, ...]
    generated_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results if r.passed)

    @property
    def all_passed(self) -> bool:
        return self.passed == self.total

    def failures(self) -> List[ScenarioResult]:
        return [r for r in self.results if not r.passed]

    def get(self, scenario_id: str) -> ScenarioResult:
        for result in self.results:
            if result.scenario.id == scenario_id:
                return result
        raise KeyError(scenario_id)

    def by_property(self) -> Dict[SecurityProperty, Tuple[int, int]]:
        """``{property: (passed, total)}`` for every property exercised."""
        summary: Dict[SecurityProperty, Tuple[int, int]] = {}
        for result in self.results:
            ok, total = summary.get(result.scenario.property, (0, 0))
            summary[result.scenario.property] = (ok + int(result.passed), total + 1)
        return summary

    def to_list(self) -> List[Dict[str, Any]]:
        return [r.to_dict() for r in self.results]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "backend": self.backend,
            "generated_at": self.generated_at,
            "summary": {
                "passed": self.passed,
                "total": self.total,
                "by_property": {
                    prop.value: {"passed": ok, "total": total}
                    for prop, (ok, total) in self.by_property().items()
                },
            },
            "results": self.to_list(),
        }

    def write_json(self, path: Union[str, Path]) -> Path:
        """Write the per-scenario list (``test_results.json``)."""
        path = Path(path)
        path.write_text(json.dumps(self.to_list(), indent=2))
        return path
