"""
PEInfo CLI -- Portable Executable Inspector
=============================================

Click-based command-line interface for the PEInfo decoder.  The header
summary is always printed; the section, import and export listings are
selected with flags (or with the ``[peinfo]`` config defaults when no
flag is given).

Usage::

    # Header summary only
    peinfo /path/to/image.dll

    # Sections, imports and exports
    peinfo /path/to/image.dll -o -i -e

    # Machine-readable output
    peinfo /path/to/image.dll -e --json

    # Save a JSON report
    peinfo /path/to/image.dll -i --output report.json

Exit codes:
    0    Success (table-level problems are reported as diagnostics)
    1    The image could not be decoded, or the file could not be read
    130  Interrupted

References:
    - Click documentation: https://click.palletsprojects.com/
"""

from __future__ import annotations

import json
import sys

import click

from shared.config import PEInfoConfig
from shared.console import PEInfoConsole
from shared.logger import PEInfoLogger

from peinfo import __version__
from peinfo.core.engine import PEInfoEngine
from peinfo.core.errors import PEInfoError, StructuralError
from peinfo.core.models import Operation
from peinfo.output.console import PEInfoConsoleOutput
from peinfo.output.report import PEInfoReportGenerator


# ---------------------------------------------------------------------------
# CLI command
# ---------------------------------------------------------------------------

@click.command("peinfo")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--exports", "-e",
    is_flag=True,
    default=False,
    help="List the export table.",
)
@click.option(
    "--imports", "-i",
    is_flag=True,
    default=False,
    help="List the import table.",
)
@click.option(
    "--sections", "-o",
    is_flag=True,
    default=False,
    help="List the section table.",
)
@click.option(
    "--json", "json_output",
    is_flag=True,
    default=False,
    help="Output results as JSON to stdout.",
)
@click.option(
    "--output",
    "output_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write a JSON report to this path.",
)
@click.option(
    "--config", "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Configuration file (default: config.toml in the project root).",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    default=False,
    help="Enable verbose/debug output.",
)
@click.version_option(__version__, prog_name="peinfo")
def peinfo_cli(
    path: str,
    exports: bool,
    imports: bool,
    sections: bool,
    json_output: bool,
    output_path: str | None,
    config_path: str | None,
    verbose: bool,
) -> None:
    """PEInfo -- Portable Executable Inspector.

    Decode the headers of a Windows PE image (PE32 or PE32+) and,
    optionally, list its sections, imports and exports.

    PATH is the path to the image to inspect.

    Examples:

    \b
        # Exports of a DLL
        peinfo kernel32.dll -e

    \b
        # Everything, as JSON
        peinfo notepad.exe -o -i -e --json
    """
    console = PEInfoConsole()

    try:
        config = PEInfoConfig.load(config_path)
    except Exception as exc:
        console.error(f"Cannot load configuration: {exc}")
        sys.exit(1)

    gs = config.global_settings
    logger = PEInfoLogger(
        "cli",
        log_level="DEBUG" if verbose else gs.log_level,
        log_file=gs.log_file or None,
        json_logs=gs.log_json,
    )

    requested = [
        op
        for op, enabled in (
            (Operation.SECTIONS, sections),
            (Operation.IMPORTS, imports),
            (Operation.EXPORTS, exports),
        )
        if enabled
    ]

    engine = PEInfoEngine(config=config, logger=logger)
    try:
        result = engine.analyze(path, requested or None)
    except KeyboardInterrupt:
        console.warning("Analysis interrupted by user.")
        sys.exit(130)
    except StructuralError as exc:
        console.error(f"Cannot decode image: {exc.message}")
        logger.debug("Structural error in %s", path, kind=exc.kind, **exc.context)
        sys.exit(1)
    except (PEInfoError, OSError) as exc:
        console.error(f"Analysis failed: {exc}")
        sys.exit(1)

    report_gen = PEInfoReportGenerator()
    indent = config.peinfo.json_indent

    if json_output:
        click.echo(json.dumps(report_gen.to_dict(result), indent=indent, default=str))
    else:
        PEInfoConsoleOutput(console=console).display(result)

    if output_path:
        report_path = report_gen.generate_json(result, output_path, indent=indent)
        if not json_output:
            console.success(f"JSON report saved: {report_path}")


# ---------------------------------------------------------------------------
# Module entry point
# ---------------------------------------------------------------------------

def main() -> None:
    """Entry point for ``peinfo`` and ``python -m peinfo``."""
    peinfo_cli()


if __name__ == "__main__":
    main()
