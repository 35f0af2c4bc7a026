"""
Command-Line Interface for the prescription validation proof system

Commands for the key ceremony, proving, verification and the scenario suite.
"""

import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console

from prescription_zk import __version__
from prescription_zk.circuit.ceremony import run_ceremony
from prescription_zk.circuit.exceptions import (
    ConstraintViolation,
    PrescriptionProtocolError,
    SetupFailure,
)
from prescription_zk.circuit.factory import get_proof_backend
from prescription_zk.circuit.feature_flags import (
    get_backend_type,
    is_zero_knowledge,
    missing_tools,
    valid_backends,
)
from prescription_zk.circuit.pipeline import PrescriptionPipeline
from prescription_zk.circuit.types import ProvingKey, VerificationKey
from prescription_zk.circuit.verifier import PrescriptionVerifier
from prescription_zk.harness.runner import ScenarioRunner
from prescription_zk.harness.scenarios import default_scenarios, load_scenarios
from prescription_zk.report_generator import ReportGenerator

logger = logging.getLogger(__name__)

backend_option = click.option(
    "--backend",
    type=click.Choice(valid_backends(), case_sensitive=False),
    default=None,
    help="Proof backend (default: $PRESCRIPTION_ZK_BACKEND or reference)",
)
verbose_option = click.option("--verbose", is_flag=True, help="Enable verbose output")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _fail(message: str) -> None:
    click.echo(click.style(f"✗ {message}", fg="red"), err=True)
    sys.exit(1)


def _load_backend(prefer):
    missing = missing_tools(prefer)
    if missing:
        raise SetupFailure(
            f"{get_backend_type(prefer)} backend needs {', '.join(missing)} on PATH"
        )
    return get_proof_backend(prefer=prefer)


@click.group()
@click.version_option(version=__version__)
def main():
    """
    Prescription validation as a zero-knowledge constraint system.

    Proves that a prescription passes credential, source, freshness,
    authorization and contraindication checks without revealing the
    private facts behind them.
    """
    pass


@main.command()
@backend_option
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False),
    default="keys",
    show_default=True,
    help="Directory for keys, test proof and ceremony_log.txt",
)
@click.option("--no-test-proof", is_flag=True, help="Skip the sample prove/verify step")
@verbose_option
def setup(backend, output_dir, no_test_proof, verbose):
    """Run the trusted-setup ceremony and export the keys."""
    _configure_logging(verbose)
    try:
        proof_backend = _load_backend(backend)
        report = run_ceremony(proof_backend, output_dir, test_proof=not no_test_proof)
    except SetupFailure as e:
        _fail(f"Setup failed: {e}")
    except PrescriptionProtocolError as e:
        _fail(f"Error: {e}")

    if verbose:
        click.echo(report.render())
    click.echo(click.style("✓ Ceremony complete", fg="green"))
    for path, description in report.outputs.items():
        click.echo(f"  • {path}  ({description})")


@main.command()
@backend_option
@click.option(
    "--keys-dir",
    type=click.Path(exists=True, file_okay=False),
    default="keys",
    show_default=True,
    help="Directory written by `setup`",
)
@click.option(
    "--input",
    "input_path",
    type=click.Path(exists=True, dir_okay=False),
    required=True,
    help="Witness input JSON (every signal as a decimal string)",
)
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False),
    default=".",
    show_default=True,
    help="Where to write proof.json and public.json",
)
@verbose_option
def prove(backend, keys_dir, input_path, output_dir, verbose):
    """Build a witness and produce a proof for it."""
    _configure_logging(verbose)
    keys = Path(keys_dir)
    try:
        proof_backend = _load_backend(backend)
        pipeline = PrescriptionPipeline(
            proof_backend,
            ProvingKey.load(keys / "proving_key.json"),
            VerificationKey.load(keys / "verification_key.json"),
        )
        inputs = json.loads(Path(input_path).read_text())
        bundle = pipeline.full_prove(inputs)
    except ConstraintViolation as e:
        _fail(f"No proof: {e}")
    except (PrescriptionProtocolError, OSError, json.JSONDecodeError) as e:
        _fail(f"Error: {e}")

    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    (out / "proof.json").write_text(json.dumps(bundle.proof.to_dict(), indent=2))
    (out / "public.json").write_text(
        json.dumps(bundle.public_inputs.to_decimal_strings(), indent=2)
    )
    click.echo(click.style("✓ Proof generated", fg="green"))
    click.echo(f"  outcome: {bundle.public_inputs.outcome}")
    click.echo(f"  written to: {out / 'proof.json'}, {out / 'public.json'}")


@main.command()
@click.option("--vk", "vk_path", type=click.Path(exists=True, dir_okay=False), required=True)
@click.option("--proof", "proof_path", type=click.Path(exists=True, dir_okay=False), required=True)
@click.option("--public", "public_path", type=click.Path(exists=True, dir_okay=False), required=True)
@verbose_option
def verify(vk_path, proof_path, public_path, verbose):
    """Verify a proof against a verification key and public signals."""
    _configure_logging(verbose)
    try:
        vk = VerificationKey.load(vk_path)
        proof = json.loads(Path(proof_path).read_text())
        public = json.loads(Path(public_path).read_text())
    except (PrescriptionProtocolError, OSError, json.JSONDecodeError) as e:
        _fail(f"Error: {e}")

    if PrescriptionVerifier(vk).verify(proof, public):
        click.echo(click.style("✓ Proof valid", fg="green"))
    else:
        _fail("Proof invalid")


@main.command("run-scenarios")
@backend_option
@click.option(
    "--workers",
    type=click.IntRange(min=1),
    default=1,
    show_default=True,
    help="Threads for independent scenarios",
)
@click.option(
    "--scenarios",
    "scenarios_path",
    type=click.Path(exists=True, dir_okay=False),
    help="YAML scenario suite (default: built-in suite)",
)
@click.option("--core-only", is_flag=True, help="Run only the reference scenarios S1-S7")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["console", "json"], case_sensitive=False),
    default="console",
    help="Output format for the report",
)
@click.option(
    "--output",
    type=click.Path(dir_okay=False),
    help="Output file (default: stdout for console, scenario_report.json for json)",
)
@verbose_option
def run_scenarios(backend, workers, scenarios_path, core_only, output_format, output, verbose):
    """
    Run the property scenarios and report pass/fail per scenario.

    Exits non-zero if any scenario diverges from its expectation.

    Examples:

        prescription-zk run-scenarios

        prescription-zk run-scenarios --backend snarkjs --workers 4

        prescription-zk run-scenarios --format json --output results/report.json
    """
    _configure_logging(verbose)
    try:
        proof_backend = _load_backend(backend)
        commit = proof_backend.commitment.commit
        if scenarios_path:
            scenarios = load_scenarios(scenarios_path, commit)
        else:
            scenarios = default_scenarios(commit, extended=not core_only)
        pipeline, ceremony = PrescriptionPipeline.from_setup(proof_backend)
        report = ScenarioRunner(pipeline, max_workers=workers).run(scenarios)
    except SetupFailure as e:
        _fail(f"Setup failed: {e}")
    except PrescriptionProtocolError as e:
        _fail(f"Error: {e}")

    generator = ReportGenerator()
    if output_format == "json":
        output_path = Path(output or "scenario_report.json")
        results_path = output_path.with_name("test_results.json")
        if output_path != results_path:
            output_path.write_text(generator.generate_json_report(report, ceremony))
            click.echo(click.style(f"✓ JSON report saved to: {output_path}", fg="green"))
        report.write_json(results_path)
        click.echo(click.style(f"✓ Per-scenario results saved to: {results_path}", fg="green"))
        click.echo(f"  Results: {report.passed}/{report.total} passed")
    else:
        content = generator.generate_console_report(report, ceremony, verbose=verbose)
        if output:
            Path(output).write_text(click.unstyle(content))
            click.echo(click.style(f"✓ Report saved to: {output}", fg="green"))
        else:
            click.echo(content)
            Console().print(generator.property_table(report))

    if not report.all_passed:
        sys.exit(1)


@main.command()
def version():
    """Show version and backend information."""
    click.echo(f"\nprescription-zk v{__version__}")
    for name in valid_backends():
        info = get_proof_backend(prefer=name).get_backend_info()
        zk = "zero-knowledge" if is_zero_knowledge(name) else "attestation only"
        click.echo(f"  • {name}: {info['name']} {info['version']} ({zk})")
        missing = missing_tools(name)
        if missing:
            click.echo(f"      missing on PATH: {', '.join(missing)}")


if __name__ == "__main__":
    main()
