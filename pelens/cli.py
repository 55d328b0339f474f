"""
PELens CLI -- Portable Executable Structure Analyzer
=====================================================

Click-based command-line interface.  ``analyze`` is the only operation:
success renders the result (tables or JSON), failure prints the error
description ``"<Kind>: <message>"`` verbatim and exits with status 1.

Usage::

    # Tables on the terminal
    pelens C:/Windows/System32/kernel32.dll

    # JSON on stdout
    pelens sample.exe --json

    # JSON report file
    pelens sample.exe --output report.json

    # Custom limits / logging
    pelens sample.exe --config pelens.toml --verbose

References:
    - Click documentation: https://click.palletsprojects.com/
"""

from __future__ import annotations

import sys

import click

from shared.config import PELensConfig, get_config
from shared.console import PELensConsole
from shared.logger import PELensLogger

from pelens import __version__
from pelens.core.engine import PEAnalyzer
from pelens.core.errors import PEAnalysisError
from pelens.output.console import PELensConsoleOutput
from pelens.output.report import PELensReportGenerator


@click.command("pelens")
@click.argument("path", type=click.Path(dir_okay=False))
@click.option(
    "--json", "json_output",
    is_flag=True,
    default=False,
    help="Print the result as JSON to stdout.",
)
@click.option(
    "--output", "-o",
    "output_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Also write a JSON report to this path.",
)
@click.option(
    "--config", "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="TOML configuration file (default: config.toml in the project root).",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    default=False,
    help="Enable debug logging.",
)
@click.version_option(__version__, prog_name="pelens")
def pelens_cli(
    path: str,
    json_output: bool,
    output_path: str | None,
    config_path: str | None,
    verbose: bool,
) -> None:
    """Analyse the structure of a Windows PE file (.exe / .dll).

    Reports the architecture, section table, export table and import
    table of PATH.
    """
    console = PELensConsole()
    config = _load_config(config_path)
    settings = config.global_settings

    logger = PELensLogger(
        "cli",
        log_level="DEBUG" if verbose else settings.log_level,
        log_file=settings.log_file or None,
        json_logs=settings.log_json,
    )
    analyzer = PEAnalyzer(config=config, logger=logger.child("engine"))

    try:
        if json_output:
            result = analyzer.analyze(path)
        else:
            with console.status(f"Analysing {click.format_filename(path)}..."):
                result = analyzer.analyze(path)
    except PEAnalysisError as exc:
        if json_output:
            click.echo(exc.describe(), err=True)
        else:
            console.error(exc.describe())
        sys.exit(1)

    report_gen = PELensReportGenerator(version=settings.version)

    if json_output:
        click.echo(report_gen.to_json(result))
    else:
        console.banner(settings.version)
        PELensConsoleOutput(console=console).display(result)

    if output_path:
        report_path = report_gen.generate_json(result, output_path)
        logger.info("JSON report written to %s", report_path)
        if not json_output:
            console.success(f"JSON report saved: {report_path}")


def _load_config(config_path: str | None) -> PELensConfig:
    try:
        return get_config(config_path)
    except (OSError, ValueError) as exc:
        # tomllib.TOMLDecodeError is a ValueError
        raise click.BadParameter(str(exc), param_hint="--config") from exc


def main() -> None:
    """Entry point for the ``pelens`` console script."""
    pelens_cli()


if __name__ == "__main__":
    main()
