# ubispec/derivation/traceability.py
"""
Traceability across a consistent SpecSet: forward trace from commands to
the commands their events cause, reverse trace from constraints to the
decisions and reactions that use them, and textual impact analysis.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from ubispec.derivation.guard import require_spec_set
from ubispec.errors import format_path
from ubispec.schema.document import spec_label
from ubispec.schema.lifecycle import Decision
from ubispec.schema.shared import iter_predicates
from ubispec.validation.report import SpecSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TraceRow:
    decider: str
    command: str
    event: str
    process: Optional[str] = None
    reaction: Optional[str] = None
    dispatched: Optional[str] = None


@dataclass(frozen=True)
class Usage:
    document: str
    unit: str
    location: str


@dataclass(frozen=True)
class ImpactHit:
    document: str
    location: str
    role: str


def forward_trace(spec_set: SpecSet) -> List[TraceRow]:
    """
    Command -> Events -> Reactions -> Dispatched commands. An event that no
    reaction listens to still yields one row with the process columns empty.
    """
    require_spec_set(spec_set)
    rows: List[TraceRow] = []
    for lifecycle in spec_set.lifecycles:
        for decision in lifecycle.decisions:
            for event in decision.event_names:
                matched = False
                for process in spec_set.processes:
                    for reaction in process.reactions:
                        if (event, lifecycle.decider) not in reaction.when.sourced_events:
                            continue
                        matched = True
                        for command in reaction.then:
                            rows.append(TraceRow(
                                decider=lifecycle.decider,
                                command=decision.command,
                                event=event,
                                process=process.process,
                                reaction=reaction.label,
                                dispatched=command.key,
                            ))
                if not matched:
                    rows.append(TraceRow(lifecycle.decider, decision.command, event))
    logger.debug("Forward trace: %d row(s)", len(rows))
    return rows


def _units(spec_set: SpecSet):
    for lifecycle in spec_set.lifecycles:
        for i, decision in enumerate(lifecycle.decisions):
            yield spec_label(lifecycle), ("lifecycle", i), decision.command, decision
    for process in spec_set.processes:
        for i, reaction in enumerate(process.reactions):
            yield spec_label(process), ("reactions", i), reaction.label, reaction


def constraint_usage(spec_set: SpecSet) -> Dict[str, List[Usage]]:
    """Constraint name -> every decision or reaction whose `And` lists it."""
    require_spec_set(spec_set)
    usage: Dict[str, List[Usage]] = {}
    for document, base, unit_name, unit in _units(spec_set):
        for i, entry in enumerate(unit.constraints):
            usage.setdefault(entry.name, []).append(
                Usage(document, unit_name, format_path((*base, "And", i)))
            )
    return usage


def event_assertions(spec_set: SpecSet) -> Dict[str, List[str]]:
    """Then key -> assertion names of the keyed Outcome sections for it."""
    require_spec_set(spec_set)
    result: Dict[str, List[str]] = {}
    for _, _, _, unit in _units(spec_set):
        for section in unit.outcome.sections:
            names = result.setdefault(section.key, [])
            names.extend(a.name for a in section.assertions if a.name not in names)
    return result


def impact_analysis(spec_set: SpecSet, name: str) -> List[ImpactHit]:
    """Every structural location that references `name` textually."""
    require_spec_set(spec_set)
    hits: List[ImpactHit] = []

    def hit(document, path, role):
        hits.append(ImpactHit(document, format_path(path), role))

    for process in spec_set.processes:
        document = spec_label(process)
        for key in ("reacts_to", "emits_to"):
            for i, decider in enumerate(getattr(process, key)):
                if decider == name:
                    hit(document, (key, i), "decider")
    for spec in [*spec_set.lifecycles, *spec_set.processes]:
        for key in (spec.common or {}):
            if key == name:
                hit(spec_label(spec), ("common", key), "common")

    for document, base, unit_name, unit in _units(spec_set):
        if isinstance(unit, Decision):
            if unit.command == name:
                hit(document, (*base, "When"), "command")
        else:
            for event, source in unit.when.sourced_events:
                if name in (event, source):
                    hit(document, (*base, "When"), "trigger")
        for i, entry in enumerate(unit.then):
            targets = {entry.key, getattr(entry, "name", None), getattr(entry, "command", None), getattr(entry, "target", None)}
            if name in targets:
                hit(document, (*base, "Then", i), "then")
        for section in unit.outcome.sections:
            if section.key == name or name in section.key.split(" -> "):
                hit(document, (*base, "Outcome", section.key), "outcome_key")
        for site in iter_predicates(unit):
            if site.entry.name != name:
                continue
            role = {"And": "constraint", "Then": "condition"}.get(site.section, "assertion")
            hit(document, (*base, *site.path), role)
    return hits

