"""
Tests for console and JSON report formatting.
"""

import json

import pytest

from prescription_zk.circuit.backends.reference import ReferenceBackend
from prescription_zk.harness.report import ScenarioReport, ScenarioResult
from prescription_zk.harness.runner import run_scenarios
from prescription_zk.harness.scenarios import core_scenarios
from prescription_zk.report_generator import ERROR_PREVIEW, ReportGenerator


@pytest.fixture(scope="module")
def suite():
    backend = ReferenceBackend()
    return run_scenarios(backend, core_scenarios(backend.commitment.commit))


def test_console_report(suite):
    report, ceremony = suite
    text = ReportGenerator(color=False).generate_console_report(report, ceremony)
    assert "✓ PASS  S1" in text
    assert "Results: 8/8 passed" in text
    assert "Ceremony: 4 contributions" in text
    assert "proof generated: false  |  verified: false" in text
    assert "\x1b[" not in text


def test_console_report_verbose_includes_log(suite):
    report, ceremony = suite
    text = ReportGenerator(color=False).generate_console_report(report, ceremony, verbose=True)
    assert "TRUSTED SETUP CEREMONY" in text


def test_colored_report_has_ansi(suite):
    report, _ = suite
    assert "\x1b[" in ReportGenerator().generate_console_report(report)


def test_failure_and_error_truncation(suite):
    report, _ = suite
    s1 = report.get("S1").scenario
    failed = ScenarioResult(s1, proof_generated=False, verified=False, error="x" * 500)
    text = ReportGenerator(color=False).format_result(failed)
    assert "✗ FAIL" in text
    assert "x" * ERROR_PREVIEW in text
    assert "x" * (ERROR_PREVIEW + 1) not in text


def test_json_report(suite):
    report, ceremony = suite
    data = json.loads(ReportGenerator().generate_json_report(report, ceremony))
    assert data["summary"]["passed"] == 8
    assert data["ceremony"]["backend"] == "ReferenceAttestationBackend"
    assert data["metadata"]["generator"] == "prescription-zk"
    assert [r["id"] for r in data["results"]][:2] == ["S1", "S2"]


def test_json_report_without_ceremony(suite):
    report, _ = suite
    data = json.loads(ReportGenerator().generate_json_report(report))
    assert "ceremony" not in data


def test_property_table(suite):
    report, _ = suite
    table = ReportGenerator().property_table(report)
    assert table.row_count == len(report.by_property())


def test_empty_report():
    report = ScenarioReport(backend="none", results=())
    text = ReportGenerator(color=False).generate_console_report(report)
    assert "Results: 0/0 passed" in text
