# ubispec/cli/commands/validate.py

from pathlib import Path
from typing import List, Optional

import typer

from ubispec.cli.output import OutputFormat, emit_json, fail, load_set, read_config


def validate(
    paths: List[Path] = typer.Argument(..., help="Spec files or directories (searched recursively)"),
    config: Optional[Path] = typer.Option(None, "--config", help="Path to ubispec.yaml"),
    models: bool = typer.Option(True, "--models/--no-models", help="Read TypeScript models for payload checks"),
    format: OutputFormat = typer.Option(OutputFormat.JSON, "--format", help="Output format (json, text)"),
    pretty: bool = typer.Option(False, "--pretty", help="Human-readable JSON"),
):
    """
    Validates every document, then checks cross-document consistency.
    Exits with code 1 when any blocking issue is found.
    """
    settings = read_config(config)
    spec_set = load_set(paths, settings, models)
    report = spec_set.report

    if format == OutputFormat.TEXT:
        for line in report.lines():
            print(line)
        summary = report.summary()
        print(f"{summary['documents']} document(s), {summary['errors']} error(s), {summary['advisories']} warning(s)")
    elif format == OutputFormat.JSON:
        emit_json(report.to_dict(), pretty)
    else:
        fail(f"Unsupported format for validate: {format.value}")

    if not report.ok:
        raise typer.Exit(code=1)
