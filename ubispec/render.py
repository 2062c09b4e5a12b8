# ubispec/render.py
"""
Presentation of derived artifacts: Markdown tables, Mermaid flowcharts and
Graphviz DOT. Everything here is a pure function from artifact to text.
"""

import html
import re
from typing import Dict, List, Optional, Sequence

from ubispec.derivation.catalog import CatalogRow
from ubispec.derivation.checklist import ChecklistSection
from ubispec.derivation.decision_table import DecisionTable
from ubispec.derivation.dependencies import DependencyManifest
from ubispec.derivation.scenarios import Scenario
from ubispec.derivation.topology import EdgeKind, NodeKind, TopologyGraph
from ubispec.derivation.traceability import TraceRow
from ubispec.schema.shared import ALWAYS_KEY

# Mermaid node IDs must be alphanumeric/underscore and must not start with a digit.
_MERMAID_ID = re.compile(r"[^A-Za-z0-9_]")


def _cell(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "T" if value else "F"
    return str(value).replace("|", "\\|").replace("\n", " ")


def markdown_table(headers: Sequence[str], rows: Sequence[Sequence]) -> str:
    lines = [
        "| " + " | ".join(_cell(h) for h in headers) + " |",
        "|" + "|".join("---" for _ in headers) + "|",
    ]
    for row in rows:
        lines.append("| " + " | ".join(_cell(v) for v in row) + " |")
    return "\n".join(lines) + "\n"


def decision_table_markdown(table: DecisionTable) -> str:
    headers = ["#", *table.constraint_columns, *(c.label for c in table.condition_columns), "Output"]
    rows = []
    for row in table.rows:
        rows.append([
            row.number,
            *(row.constraints[name] for name in table.constraint_columns),
            *(row.conditions.get(c.event) for c in table.condition_columns),
            row.output,
        ])
    return f"### {table.decider}.{table.command}\n\n" + markdown_table(headers, rows)


def scenarios_markdown(scenarios: Dict[str, List[Scenario]]) -> str:
    parts = []
    for command, items in scenarios.items():
        rows = [[s.id, "<br>".join(s.given), "<br>".join(s.expected)] for s in items]
        parts.append(f"### {command}\n\n" + markdown_table(["ID", "Given", "Then"], rows))
    return "\n".join(parts)


def checklist_markdown(sections: Sequence[ChecklistSection]) -> str:
    lines: List[str] = []
    for section in sections:
        title = f"### {section.command}"
        if section.actor:
            title += f" ({section.actor})"
        lines.extend([title, ""])
        if section.preconditions:
            lines.append("**Preconditions**")
            lines.extend(f"- [ ] {p}" for p in section.preconditions)
            lines.append("")
        lines.append("**On success**")
        lines.extend(f"- [ ] {e}" for e in section.on_success)
        lines.append("")
        if section.after:
            lines.append("**After**")
            for key, assertions in section.after.items():
                heading = "Always" if key == ALWAYS_KEY else f"When {key}"
                lines.append(f"- {heading}")
                lines.extend(f"  - [ ] {a}" for a in assertions)
            lines.append("")
        lines.append("**On failure**")
        lines.extend(f"- [ ] {f}" for f in section.on_failure)
        lines.append("")
    return "\n".join(lines)


def manifest_markdown(manifest: DependencyManifest) -> str:
    rows = [
        [e.owner, e.service, e.predicate, ", ".join(e.paths), e.hint, e.location]
        for e in manifest.entries
    ]
    return markdown_table(["Owner", "Service", "Predicate", "Paths", "Resolver", "Location"], rows)


def catalog_markdown(rows: Sequence[CatalogRow]) -> str:
    return markdown_table(
        ["Decider", "Command", "Actor", "Constraints", "Events", "Conditional", "ctx", "Reacted to"],
        [
            [r.decider, r.command, r.actor, r.constraints, r.unconditional_events,
             r.conditional_events, r.has_ctx, r.reacted_to]
            for r in rows
        ],
    )


def trace_markdown(rows: Sequence[TraceRow]) -> str:
    return markdown_table(
        ["Decider", "Command", "Event", "Process", "Reaction", "Dispatches"],
        [[r.decider, r.command, r.event, r.process, r.reaction, r.dispatched] for r in rows],
    )


# --- Graphs ---

def mermaid_id(value: str) -> str:
    safe = _MERMAID_ID.sub("_", value)
    return safe if not safe[:1].isdigit() else f"n_{safe}"


def mm_text(text: str) -> str:
    """Escapes label text with Mermaid entity codes."""
    normalized = re.sub(r"\s+", " ", html.unescape(str(text))).strip()
    return (
        normalized.replace("&", "#amp;")
        .replace("<", "#lt;")
        .replace(">", "#gt;")
        .replace('"', "#quot;")
        .replace("|", "#124;")
    )


def mermaid_block(code: str) -> str:
    return "```mermaid\n" + code.rstrip() + "\n```\n"


_MERMAID_SHAPES = {
    NodeKind.DECIDER: '{id}["{label}"]',
    NodeKind.PROCESS: '{id}(["{label}"])',
    NodeKind.JOIN: '{id}{{"{label}"}}',
    NodeKind.MODULE: '{id}[["{label}"]]',
}


def topology_mermaid(graph: TopologyGraph, direction: str = "LR") -> str:
    lines = [f"flowchart {direction}"]
    for node in graph.nodes:
        lines.append("  " + _MERMAID_SHAPES[node.kind].format(id=mermaid_id(node.id), label=mm_text(node.label)))
    for edge in graph.edges:
        arrow = "-.->" if edge.policy or edge.conditional else "-->"
        label = edge.label if edge.kind != EdgeKind.CORRELATE else f"correlate: {edge.label}"
        lines.append(f"  {mermaid_id(edge.source)} {arrow}|\"{mm_text(label)}\"| {mermaid_id(edge.target)}")
    return "\n".join(lines) + "\n"


def _dot_quote(value: str) -> str:
    return '"' + str(value).replace("\\", "\\\\").replace('"', '\\"') + '"'


_DOT_SHAPES = {
    NodeKind.DECIDER: "box",
    NodeKind.PROCESS: "ellipse",
    NodeKind.JOIN: "diamond",
    NodeKind.MODULE: "box3d",
}


def topology_dot(graph: TopologyGraph, name: Optional[str] = None) -> str:
    lines = [f"digraph {_dot_quote(name or 'topology')} {{", "  rankdir=LR;"]
    for node in graph.nodes:
        lines.append(f"  {_dot_quote(node.id)} [label={_dot_quote(node.label)}, shape={_DOT_SHAPES[node.kind]}];")
    for edge in graph.edges:
        label = edge.label if edge.kind != EdgeKind.CORRELATE else f"correlate: {edge.label}"
        attrs = [f"label={_dot_quote(label)}"]
        if edge.policy or edge.conditional:
            attrs.append("style=dashed")
        lines.append(f"  {_dot_quote(edge.source)} -> {_dot_quote(edge.target)} [{', '.join(attrs)}];")
    lines.append("}")
    return "\n".join(lines) + "\n"
