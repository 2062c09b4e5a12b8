# ubispec/validation/cross.py
"""
Cross-document checks: names that one document uses and another must
declare. Only documents that passed their structural pass reach this stage.
"""

import logging
import re
from typing import Dict, List, Mapping, Optional, Sequence, Set, Tuple

from ubispec.config import ValidationConfig
from ubispec.errors import IssueCode, IssueCollector, PathElement, ValidationIssue
from ubispec.model_types import EventFieldLookup
from ubispec.schema.document import spec_label
from ubispec.schema.lifecycle import LifecycleSpec
from ubispec.schema.process import AllTrigger, AnyTrigger, ProcessSpec, Reaction
from ubispec.schema.shared import iter_predicates
from ubispec.schema.system import SystemSpec

logger = logging.getLogger(__name__)

_EVENT_FIELD = re.compile(r"\brm\.event\.(?P<field>[A-Za-z_$][\w$]*)")
_NARROWED = re.compile(r"\brm\.event\.kind\b")


class _Index:
    """Name lookup tables built once per run."""

    def __init__(self, lifecycles: Sequence[LifecycleSpec]):
        self.by_decider: Dict[str, LifecycleSpec] = {}
        self.events: Dict[str, Set[str]] = {}
        self.commands: Dict[str, Set[str]] = {}
        for spec in lifecycles:
            if spec.decider in self.by_decider:
                continue
            self.by_decider[spec.decider] = spec
            self.events[spec.decider] = set(spec.events)
            self.commands[spec.decider] = set(spec.commands)

    def has(self, decider: str) -> bool:
        return decider in self.by_decider


def _report_decider(
    collector: IssueCollector,
    decider: str,
    path: Tuple[PathElement, ...],
    config: ValidationConfig,
    context: str,
) -> None:
    if config.is_external(decider):
        collector.add(
            IssueCode.EXTERNAL_DECIDER, path,
            f"Decider '{decider}' {context} has no lifecycle document; treated as external.", name=decider,
        )
    else:
        collector.add(
            IssueCode.UNKNOWN_DECIDER, path,
            f"Decider '{decider}' {context} has no lifecycle document.", name=decider,
        )


def _check_duplicate_deciders(
    lifecycles: Sequence[LifecycleSpec], names: Mapping[str, str]
) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []
    first: Dict[str, str] = {}
    for spec in lifecycles:
        document = names.get(spec_label(spec), spec_label(spec))
        if spec.decider in first:
            collector = IssueCollector(document)
            collector.add(
                IssueCode.DUPLICATE_DECIDER, ("decider",),
                f"Decider '{spec.decider}' is already specified by {first[spec.decider]}.", name=spec.decider,
            )
            issues.extend(collector.issues)
        else:
            first[spec.decider] = document
    return issues


def _check_any_narrowing(
    collector: IssueCollector,
    process: ProcessSpec,
    reaction: Reaction,
    path: Tuple[PathElement, ...],
    lookup: EventFieldLookup,
) -> None:
    trigger = reaction.when
    field_sets = [lookup.fields_of(event) for event in trigger.events]
    if any(fields is None for fields in field_sets):
        return
    shared = set.intersection(*field_sets) | {"kind"}
    for site in iter_predicates(reaction):
        if site.positional:
            continue
        entry = site.entry
        expression = entry.resolve(process.common)
        if not expression or _NARROWED.search(expression):
            continue
        for match in _EVENT_FIELD.finditer(expression):
            field = match.group("field")
            if field in shared:
                continue
            collector.add(
                IssueCode.UNNARROWED_VARIANT_FIELD, (*path, *site.path),
                f"'{entry.name}' reads rm.event.{field}, which is not declared on every event of "
                f"{trigger.label}. Narrow on rm.event.kind or move it under a conditional key.",
                name=field,
            )


def _check_correlate(
    collector: IssueCollector,
    trigger: AllTrigger,
    path: Tuple[PathElement, ...],
    lookup: EventFieldLookup,
) -> None:
    for i, sourced in enumerate(trigger.events):
        fields = lookup.fields_of(sourced.event)
        if fields is None:
            collector.add(
                IssueCode.UNKNOWN_EVENT_TYPE, (*path, "When", "all", i),
                f"No payload type found for '{sourced.event}'; correlate field not checked.",
                name=sourced.event,
            )
        elif trigger.correlate not in fields:
            collector.add(
                IssueCode.MISSING_CORRELATE_FIELD, (*path, "When", "all", i),
                f"Event '{sourced.event}' does not declare correlate field '{trigger.correlate}'.",
                name=sourced.event,
            )


def _check_process(
    process: ProcessSpec,
    index: _Index,
    config: ValidationConfig,
    lookup: Optional[EventFieldLookup],
    document: str,
) -> List[ValidationIssue]:
    collector = IssueCollector(document)
    reported: Set[str] = set()
    for key, deciders in (("reacts_to", process.reacts_to), ("emits_to", process.emits_to)):
        for i, decider in enumerate(deciders):
            if not index.has(decider) and decider not in reported:
                reported.add(decider)
                _report_decider(collector, decider, (key, i), config, f"in `{key}`")

    for r, reaction in enumerate(process.reactions):
        path: Tuple[PathElement, ...] = ("reactions", r)
        for event, source in reaction.when.sourced_events:
            if index.has(source) and event not in index.events[source]:
                collector.add(
                    IssueCode.UNKNOWN_SOURCE_EVENT, (*path, "When"),
                    f"'{event}' is not emitted by any decision of {source}.", name=event,
                )
        for i, command in enumerate(reaction.then):
            if index.has(command.target) and command.command not in index.commands[command.target]:
                collector.add(
                    IssueCode.UNKNOWN_TARGET_COMMAND, (*path, "Then", i),
                    f"'{command.command}' is not a command of {command.target}.", name=command.command,
                )
        if lookup is None:
            continue
        if isinstance(reaction.when, AllTrigger):
            _check_correlate(collector, reaction.when, path, lookup)
        elif isinstance(reaction.when, AnyTrigger):
            _check_any_narrowing(collector, process, reaction, path, lookup)
    return collector.issues


def _check_system(
    system: SystemSpec,
    index: _Index,
    config: ValidationConfig,
    document: str,
) -> List[ValidationIssue]:
    collector = IssueCollector(document)
    owner: Dict[str, str] = {}
    for m, module in enumerate(system.modules):
        for d, decider in enumerate(module.deciders):
            path = ("modules", m, "deciders", d)
            if decider in owner and owner[decider] != module.name:
                collector.add(
                    IssueCode.DUPLICATE_MODULE_DECIDER, path,
                    f"Decider '{decider}' already belongs to module {owner[decider]}.", name=decider,
                )
            owner.setdefault(decider, module.name)
            if not index.has(decider):
                _report_decider(collector, decider, path, config, f"of module {module.name}")

    for f, flow in enumerate(system.flows):
        source = system.module(flow.source_module)
        target = system.module(flow.target_module)
        if source is not None:
            known = [d for d in source.deciders if index.has(d)]
            if known and not any(flow.event in index.events[d] for d in known):
                collector.add(
                    IssueCode.UNKNOWN_SOURCE_EVENT, ("flows", f, "event"),
                    f"'{flow.event}' is not emitted by any decider of module {source.name}.", name=flow.event,
                )
        if target is not None:
            known = [d for d in target.deciders if index.has(d)]
            if known and not any(flow.triggers in index.commands[d] for d in known):
                collector.add(
                    IssueCode.UNKNOWN_TARGET_COMMAND, ("flows", f, "triggers"),
                    f"'{flow.triggers}' is not a command of any decider of module {target.name}.",
                    name=flow.triggers,
                )
    return collector.issues


def cross_validate(
    lifecycles: Sequence[LifecycleSpec],
    processes: Sequence[ProcessSpec],
    system: Optional[SystemSpec] = None,
    *,
    field_lookup: Optional[EventFieldLookup] = None,
    config: Optional[ValidationConfig] = None,
    document_names: Optional[Mapping[str, str]] = None,
) -> List[ValidationIssue]:
    """
    Checks names that cross document boundaries. Without a field lookup the
    payload-shape checks (correlate presence, Any-trigger narrowing) are skipped.
    `document_names` maps spec labels (`process:Fulfillment`) to the names
    used in reports, typically file paths.
    """
    config = config or ValidationConfig()
    names = dict(document_names or {})
    index = _Index(lifecycles)

    issues = _check_duplicate_deciders(lifecycles, names)
    for process in processes:
        label = spec_label(process)
        issues.extend(_check_process(process, index, config, field_lookup, names.get(label, label)))
    if system is not None:
        label = spec_label(system)
        issues.extend(_check_system(system, index, config, names.get(label, label)))

    logger.debug(
        "Cross-validated %d lifecycle(s), %d process(es), system=%s: %d issue(s)",
        len(lifecycles), len(processes), system.system if system else None, len(issues),
    )
    return issues
