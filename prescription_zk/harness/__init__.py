"""Scenario harness: completeness, soundness and binding properties."""

from .report import ScenarioReport, ScenarioResult
from .runner import ScenarioRunner, run_scenarios
from .scenarios import (
    Scenario,
    ScenarioKind,
    SecurityProperty,
    baseline_inputs,
    core_scenarios,
    default_scenarios,
    extended_scenarios,
    load_scenarios,
)

__all__ = [
    "Scenario",
    "ScenarioKind",
    "SecurityProperty",
    "ScenarioResult",
    "ScenarioReport",
    "ScenarioRunner",
    "run_scenarios",
    "baseline_inputs",
    "core_scenarios",
    "extended_scenarios",
    "default_scenarios",
    "load_scenarios",
]
