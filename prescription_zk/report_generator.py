"""
Report Generator for scenario suite runs

Formats a ScenarioReport as:
- Console output (human-readable)
- JSON (machine-readable)
- A rich table of per-property results
"""

import json
from typing import Any, Dict, Optional

import click
from rich.table import Table

from prescription_zk import __version__
from prescription_zk.circuit.ceremony import CeremonyReport
from prescription_zk.harness.report import ScenarioReport, ScenarioResult

BAR = "═" * 60
ERROR_PREVIEW = 120


def _flag(value: bool) -> str:
    return click.style(str(value).lower(), fg="green" if value else "red")


class ReportGenerator:
    """
    Generates scenario reports in multiple formats.
    """

    def __init__(self, color: bool = True):
        self.color = color

    def _style(self, text: str, **kwargs) -> str:
        return click.style(text, **kwargs) if self.color else text

    def format_result(self, result: ScenarioResult) -> str:
        """Three-line block: verdict, observed flags, truncated error."""
        tag = (
            self._style("✓ PASS", fg="green")
            if result.passed
            else self._style("✗ FAIL", fg="red")
        )
        scenario = result.scenario
        lines = [f"  {tag}  {self._style(scenario.id, bold=True)} — {scenario.name}"]
        if self.color:
            flags = (
                f"proof generated: {_flag(result.proof_generated)}  |  "
                f"verified: {_flag(result.verified)}"
            )
        else:
            flags = (
                f"proof generated: {str(result.proof_generated).lower()}  |  "
                f"verified: {str(result.verified).lower()}"
            )
        lines.append(f"         {flags}")
        if result.error:
            lines.append(
                f"         {self._style('error:', fg='yellow')} {result.error[:ERROR_PREVIEW]}"
            )
        return "\n".join(lines)

    def generate_console_report(
        self,
        report: ScenarioReport,
        ceremony: Optional[CeremonyReport] = None,
        verbose: bool = False,
    ) -> str:
        """
        Generate a console-friendly report.

        Args:
            report: The suite report
            ceremony: Optional ceremony report to summarize
            verbose: Include the full ceremony log
        """
        lines = [
            "",
            self._style(BAR, bold=True),
            self._style(
                f"  PrescriptionValidation — Scenario Suite ({report.total} cases)",
                bold=True,
            ),
            self._style(BAR, bold=True),
            f"  Backend: {report.backend}",
            "",
        ]
        if ceremony is not None:
            lines.append(
                f"  Ceremony: {len(ceremony.contributions)} contributions, "
                f"{ceremony.r1cs_info.get('nConstraints', '?')} constraints"
            )
            if verbose:
                lines.append(ceremony.render())
            lines.append("")

        for result in report.results:
            lines.append(self.format_result(result))
            lines.append("")

        summary = f"{report.passed}/{report.total} passed"
        lines.extend(
            [
                self._style(BAR, bold=True),
                "  Results: "
                + self._style(summary, fg="green" if report.all_passed else "red"),
                self._style(BAR, bold=True),
            ]
        )
        return "\n".join(lines)

    def generate_json_report(
        self,
        report: ScenarioReport,
        ceremony: Optional[CeremonyReport] = None,
    ) -> str:
        """Generate a JSON report (suite summary, results, optional ceremony)."""
        data: Dict[str, Any] = report.to_dict()
        if ceremony is not None:
            data["ceremony"] = ceremony.to_dict()
        data["metadata"] = {
            "version": __version__,
            "generator": "prescription-zk",
        }
        return json.dumps(data, indent=2)

    def property_table(self, report: ScenarioReport) -> Table:
        table = Table(title="Security properties")
        table.add_column("Property")
        table.add_column("Passed", justify="right")
        table.add_column("Total", justify="right")
        table.add_column("Status")
        for prop, (ok, total) in report.by_property().items():
            status = "[green]OK[/green]" if ok == total else "[red]FAIL[/red]"
            table.add_row(prop.value, str(ok), str(total), status)
        return table
