# ubispec/cli/commands/derive.py

from dataclasses import asdict
from pathlib import Path
from typing import List, Optional

import typer

from ubispec.cli.output import OutputFormat, emit_json, fail, load_one, load_set, read_config
from ubispec.derivation import (
    command_catalog,
    constraint_usage,
    decision_table,
    decision_tables,
    dependency_manifest,
    event_assertions,
    forward_trace,
    impact_analysis,
    process_topology,
    scenario_matrix,
    system_topology,
    validation_checklist,
)
from ubispec.errors import UbiSpecError
from ubispec.render import (
    catalog_markdown,
    checklist_markdown,
    decision_table_markdown,
    manifest_markdown,
    markdown_table,
    scenarios_markdown,
    topology_dot,
    topology_mermaid,
    trace_markdown,
)
from ubispec.schema.lifecycle import LifecycleSpec

derive_app = typer.Typer(help="Derive artifacts from validated specs.")

_CONFIG = typer.Option(None, "--config", help="Path to ubispec.yaml")
_FORMAT = typer.Option(OutputFormat.JSON, "--format", help="Output format (json, markdown)")
_PRETTY = typer.Option(False, "--pretty", help="Human-readable JSON")


def _lifecycle(path: Path, config: Optional[Path]):
    settings = read_config(config)
    source, spec = load_one(path, settings)
    if not isinstance(spec, LifecycleSpec):
        fail(f"{source.name} is not a lifecycle spec")
    return settings, source, spec


def _require_markdown_or_json(format: OutputFormat) -> None:
    if format not in (OutputFormat.JSON, OutputFormat.MARKDOWN):
        fail(f"Unsupported format: {format.value}")


@derive_app.command("decision-table")
def decision_table_command(
    path: Path = typer.Argument(..., help="Lifecycle spec"),
    command: Optional[str] = typer.Option(None, "--command", help="Only this command"),
    all_fail: Optional[bool] = typer.Option(None, "--all-fail/--no-all-fail", help="Append the all-constraints-violated row"),
    config: Optional[Path] = _CONFIG,
    format: OutputFormat = _FORMAT,
    pretty: bool = _PRETTY,
):
    """Decision table per command: 2^k success rows plus one failure row per constraint."""
    _require_markdown_or_json(format)
    settings, _, spec = _lifecycle(path, config)
    include_all_fail = settings.include_all_fail_row if all_fail is None else all_fail
    try:
        tables = [decision_table(spec, command, include_all_fail)] if command else decision_tables(spec, include_all_fail)
    except UbiSpecError as e:
        fail(str(e))
    if format == OutputFormat.MARKDOWN:
        print("\n".join(decision_table_markdown(t) for t in tables))
    else:
        emit_json([t.to_dict() for t in tables], pretty)


@derive_app.command("scenarios")
def scenarios_command(
    path: Path = typer.Argument(..., help="Lifecycle spec"),
    all_fail: Optional[bool] = typer.Option(None, "--all-fail/--no-all-fail", help="Include the all-fail scenario"),
    config: Optional[Path] = _CONFIG,
    format: OutputFormat = _FORMAT,
    pretty: bool = _PRETTY,
):
    """Test scenario matrix, one scenario per decision-table row."""
    _require_markdown_or_json(format)
    settings, _, spec = _lifecycle(path, config)
    include_all_fail = settings.include_all_fail_row if all_fail is None else all_fail
    scenarios = scenario_matrix(spec, include_all_fail)
    if format == OutputFormat.MARKDOWN:
        print(scenarios_markdown(scenarios))
    else:
        emit_json({command: [asdict(s) for s in items] for command, items in scenarios.items()}, pretty)


@derive_app.command("checklist")
def checklist_command(
    path: Path = typer.Argument(..., help="Lifecycle spec"),
    config: Optional[Path] = _CONFIG,
    format: OutputFormat = _FORMAT,
    pretty: bool = _PRETTY,
):
    """Validation checklist, one section per decision."""
    _require_markdown_or_json(format)
    _, _, spec = _lifecycle(path, config)
    sections = validation_checklist(spec)
    if format == OutputFormat.MARKDOWN:
        print(checklist_markdown(sections))
    else:
        emit_json([asdict(s) for s in sections], pretty)


@derive_app.command("manifest")
def manifest_command(
    path: Path = typer.Argument(..., help="Lifecycle or process spec"),
    config: Optional[Path] = _CONFIG,
    format: OutputFormat = _FORMAT,
    pretty: bool = _PRETTY,
):
    """Integration dependency manifest from dm.ctx / rm.ctx references."""
    _require_markdown_or_json(format)
    settings = read_config(config)
    source, spec = load_one(path, settings)
    try:
        manifest = dependency_manifest(spec, source.shell_hints, source.hint_locations)
    except UbiSpecError as e:
        fail(str(e))
    if format == OutputFormat.MARKDOWN:
        print(manifest_markdown(manifest))
    else:
        emit_json(manifest.to_dict(), pretty)


@derive_app.command("trace")
def trace_command(
    paths: List[Path] = typer.Argument(..., help="Spec files or directories"),
    impact: Optional[str] = typer.Option(None, "--impact", help="List every location referencing this name"),
    config: Optional[Path] = _CONFIG,
    models: bool = typer.Option(True, "--models/--no-models", help="Read TypeScript models for payload checks"),
    format: OutputFormat = _FORMAT,
    pretty: bool = _PRETTY,
):
    """Traceability matrix across lifecycle and process specs."""
    _require_markdown_or_json(format)
    spec_set = load_set(paths, read_config(config), models)
    try:
        if impact:
            hits = impact_analysis(spec_set, impact)
            if format == OutputFormat.MARKDOWN:
                print(markdown_table(["Document", "Location", "Role"], [[h.document, h.location, h.role] for h in hits]))
            else:
                emit_json({"name": impact, "hits": [asdict(h) for h in hits]}, pretty)
            return
        rows = forward_trace(spec_set)
        usage = constraint_usage(spec_set)
        assertions = event_assertions(spec_set)
    except UbiSpecError as e:
        fail(str(e))
    if format == OutputFormat.MARKDOWN:
        print(trace_markdown(rows))
    else:
        emit_json({
            "forward": [asdict(r) for r in rows],
            "constraints": {name: [asdict(u) for u in uses] for name, uses in usage.items()},
            "assertions": assertions,
        }, pretty)


@derive_app.command("topology")
def topology_command(
    paths: List[Path] = typer.Argument(..., help="Spec files or directories"),
    system: bool = typer.Option(False, "--system", help="Module map of the system spec instead of the process graph"),
    config: Optional[Path] = _CONFIG,
    models: bool = typer.Option(True, "--models/--no-models", help="Read TypeScript models for payload checks"),
    format: OutputFormat = typer.Option(OutputFormat.JSON, "--format", help="Output format (json, mermaid, dot)"),
    pretty: bool = _PRETTY,
):
    """Topology graph of deciders and process managers."""
    spec_set = load_set(paths, read_config(config), models)
    try:
        if system:
            if spec_set.system is None:
                fail("No system spec found")
            spec_set.require_consistent()
            graph = system_topology(spec_set.system)
        else:
            graph = process_topology(spec_set)
    except UbiSpecError as e:
        fail(str(e))
    if format == OutputFormat.MERMAID:
        print(topology_mermaid(graph))
    elif format == OutputFormat.DOT:
        print(topology_dot(graph))
    elif format == OutputFormat.JSON:
        emit_json(graph.to_dict(), pretty)
    else:
        fail(f"Unsupported format for topology: {format.value}")


@derive_app.command("catalog")
def catalog_command(
    paths: List[Path] = typer.Argument(..., help="Spec files or directories"),
    config: Optional[Path] = _CONFIG,
    models: bool = typer.Option(True, "--models/--no-models", help="Read TypeScript models for payload checks"),
    format: OutputFormat = _FORMAT,
    pretty: bool = _PRETTY,
):
    """Command catalog across every lifecycle spec."""
    _require_markdown_or_json(format)
    spec_set = load_set(paths, read_config(config), models)
    try:
        rows = command_catalog(spec_set)
    except UbiSpecError as e:
        fail(str(e))
    if format == OutputFormat.MARKDOWN:
        print(catalog_markdown(rows))
    else:
        emit_json([asdict(r) for r in rows], pretty)
