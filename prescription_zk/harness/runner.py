"""
Scenario runner.

Fresh scenarios share no state and may run on a thread pool. Probes depend
on the verified bundle of their base scenario and run after every fresh
scenario has finished. Results are merged into the report only at the end.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..circuit.ceremony import CeremonyReport
from ..circuit.exceptions import (
    ConstraintViolation,
    PrescriptionProtocolError,
    SetupFailure,
)
from ..circuit.interfaces import ProofBackend
from ..circuit.pipeline import PrescriptionPipeline
from ..circuit.types import ProofBundle
from .report import ScenarioReport, ScenarioResult
from .scenarios import Scenario, ScenarioKind, check_unique_ids, default_scenarios

logger = logging.getLogger(__name__)

_Outcome = Tuple[ScenarioResult, Optional[ProofBundle]]


class ScenarioRunner:
    """
    Run scenarios against one pipeline (backend + key pair).

    Args:
        pipeline: Pipeline bound to the keys under test
        max_workers: Threads for fresh scenarios (1 runs them in order)
    """

    def __init__(self, pipeline: PrescriptionPipeline, max_workers: int = 1):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._pipeline = pipeline
        self._max_workers = max_workers

    def run(self, scenarios: Sequence[Scenario]) -> ScenarioReport:
        """
        Raises:
            SetupFailure: Propagated unchanged; it is never a scenario result
        """
        check_unique_ids(scenarios)
        fresh = [s for s in scenarios if not s.is_probe]
        probes = [s for s in scenarios if s.is_probe]

        outcomes = self._run_fresh_all(fresh)
        bundles: Mapping[str, ProofBundle] = {
            sid: bundle for sid, (_, bundle) in outcomes.items() if bundle is not None
        }
        results: Dict[str, ScenarioResult] = {
            sid: result for sid, (result, _) in outcomes.items()
        }
        for probe in probes:
            results[probe.id] = self._run_probe(probe, bundles)

        report = ScenarioReport(
            backend=self._pipeline.backend.backend_name,
            results=tuple(results[s.id] for s in scenarios),
        )
        logger.info("scenarios: %d/%d passed", report.passed, report.total)
        return report

    def _run_fresh_all(self, fresh: List[Scenario]) -> Dict[str, _Outcome]:
        if self._max_workers == 1 or len(fresh) <= 1:
            return {s.id: self._run_fresh(s) for s in fresh}
        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            futures = {s.id: pool.submit(self._run_fresh, s) for s in fresh}
            return {sid: future.result() for sid, future in futures.items()}

    def _run_fresh(self, scenario: Scenario) -> _Outcome:
        start = time.perf_counter()

        def _result(**kwargs) -> ScenarioResult:
            return ScenarioResult(
                scenario=scenario, duration=time.perf_counter() - start, **kwargs
            )

        try:
            witness = self._pipeline.build_witness(scenario.inputs, scenario.overrides)
        except ConstraintViolation as exc:
            logger.debug("%s: no witness (%s)", scenario.id, exc)
            return (
                _result(
                    proof_generated=False,
                    verified=False,
                    error=str(exc),
                    failed_constraints=exc.labels,
                ),
                None,
            )
        except SetupFailure:
            raise
        except PrescriptionProtocolError as exc:
            return _result(proof_generated=False, verified=False, error=str(exc),
                           unexpected_error=True), None

        try:
            bundle = self._pipeline.prove(witness)
        except SetupFailure:
            raise
        except PrescriptionProtocolError as exc:
            logger.warning("%s: proving failed: %s", scenario.id, exc)
            return _result(proof_generated=False, verified=False, error=str(exc),
                           unexpected_error=True), None

        verified = self._pipeline.verify(bundle)
        return (
            _result(proof_generated=True, verified=verified),
            bundle if verified else None,
        )

    def _run_probe(
        self, scenario: Scenario, bundles: Mapping[str, ProofBundle]
    ) -> ScenarioResult:
        start = time.perf_counter()
        base = bundles.get(scenario.base)
        if base is None:
            return ScenarioResult(
                scenario=scenario,
                proof_generated=False,
                verified=False,
                error=f"base scenario {scenario.base!r} produced no verified proof",
                unexpected_error=True,
            )

        if scenario.kind is ScenarioKind.REPLAY:
            tampered = base.with_public_inputs(base.public_inputs.tamper(scenario.signal))
            verified = self._pipeline.verify(tampered)
        else:
            altered_key = self._pipeline.verification_key.corrupted()
            verified = self._pipeline.verify(base, altered_key)

        return ScenarioResult(
            scenario=scenario,
            proof_generated=True,
            verified=verified,
            duration=time.perf_counter() - start,
        )


def run_scenarios(
    backend: ProofBackend,
    scenarios: Optional[Iterable[Scenario]] = None,
    max_workers: int = 1,
    contributions: Optional[Tuple[Tuple[str, str], ...]] = None,
) -> Tuple[ScenarioReport, CeremonyReport]:
    """
    Generate keys with ``backend`` and run ``scenarios`` (default suite if None).

    Raises:
        SetupFailure: If key generation fails
    """
    pipeline, ceremony = PrescriptionPipeline.from_setup(backend, contributions)
    if scenarios is None:
        scenarios = default_scenarios(backend.commitment.commit)
    report = ScenarioRunner(pipeline, max_workers=max_workers).run(list(scenarios))
    return report, ceremony
