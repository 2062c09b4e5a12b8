# ubispec/schema/process.py
"""
Process spec: cross-aggregate coordination through event-triggered reactions.

Three trigger shapes are supported:

- scalar: `When: OrderPlaced` + `From: Order`. `rm.event` has a concrete type.
- any:    `When: {any: [A, B]}` + `From`. `rm.event` is a discriminated union,
          narrowed by `rm.event.kind`.
- all:    `When: {all: [A from X, B from Y]}` + `correlate`. Payloads are
          addressed individually as `rm.events.A`, `rm.events.B`.
"""

import logging
import re
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Set, Tuple, Union

from pydantic import BaseModel, Field

from ubispec.errors import IssueCode, IssueCollector
from ubispec.schema.result import ParseResult
from ubispec.schema.shared import (
    SPEC_MODEL_CONFIG,
    IdentifierKind,
    OutcomeSpec,
    PredicateEntry,
    SpecDocument,
    check_common_references,
    check_fields,
    check_then_entries,
    read_constraint_list,
    read_identifier,
    read_identifier_list,
    read_outcome,
    read_predicate_map,
    read_string,
)
from ubispec.schema.versions import SpecKind, read_format

logger = logging.getLogger(__name__)

SOURCED_EVENT = re.compile(r"^(?P<event>[A-Z][a-zA-Z0-9]*) from (?P<source>[A-Z][a-zA-Z0-9]*)$")
TARGETED_COMMAND = re.compile(r"^(?P<command>[A-Z][a-zA-Z0-9]*) -> (?P<target>[A-Z][a-zA-Z0-9]*)$")


class TriggerType(str, Enum):
    AUTOMATED = "automated"
    POLICY = "policy"


class PayloadForm(str, Enum):
    CONCRETE = "concrete"
    DISCRIMINATED_UNION = "discriminated_union"
    KEYED = "keyed"


class SourcedEvent(BaseModel):
    event: str = Field(description="Event name. PascalCase.")
    source: str = Field(description="Decider that emits the event.")
    explicit: bool = Field(
        False, description="True when written as `Event from Decider` rather than inheriting `From`."
    )

    model_config = SPEC_MODEL_CONFIG

    def to_document(self) -> str:
        return f"{self.event} from {self.source}" if self.explicit else self.event


class ScalarTrigger(BaseModel):
    kind: Literal["scalar"] = "scalar"
    event: str = Field(description="Triggering event.")
    source: str = Field(description="Decider that emits the event (`From`).")

    model_config = SPEC_MODEL_CONFIG

    @property
    def sourced_events(self) -> List[Tuple[str, str]]:
        return [(self.event, self.source)]

    @property
    def payload_form(self) -> PayloadForm:
        return PayloadForm.CONCRETE

    @property
    def accessors(self) -> Dict[str, str]:
        return {self.event: "rm.event"}

    @property
    def label(self) -> str:
        return self.event

    def to_document(self) -> Any:
        return self.event


class AnyTrigger(BaseModel):
    kind: Literal["any"] = "any"
    events: Tuple[str, ...] = Field(description="OR trigger: any one of these events fires the reaction.")
    source: str = Field(description="Decider that emits every listed event (`From`).")

    model_config = SPEC_MODEL_CONFIG

    @property
    def sourced_events(self) -> List[Tuple[str, str]]:
        return [(e, self.source) for e in self.events]

    @property
    def payload_form(self) -> PayloadForm:
        return PayloadForm.DISCRIMINATED_UNION

    @property
    def accessors(self) -> Dict[str, str]:
        # one union-typed value; consumers narrow with rm.event.kind
        return {e: "rm.event" for e in self.events}

    @property
    def label(self) -> str:
        return "any(" + ", ".join(self.events) + ")"

    def to_document(self) -> Any:
        return {"any": list(self.events)}


class AllTrigger(BaseModel):
    kind: Literal["all"] = "all"
    events: Tuple[SourcedEvent, ...] = Field(description="AND trigger: the reaction fires once all have occurred.")
    correlate: str = Field(description="Field linking the events to the same logical instance.")

    model_config = SPEC_MODEL_CONFIG

    @property
    def sourced_events(self) -> List[Tuple[str, str]]:
        return [(e.event, e.source) for e in self.events]

    @property
    def payload_form(self) -> PayloadForm:
        return PayloadForm.KEYED

    @property
    def accessors(self) -> Dict[str, str]:
        return {e.event: f"rm.events.{e.event}" for e in self.events}

    @property
    def label(self) -> str:
        return "all(" + ", ".join(e.event for e in self.events) + ")"

    def to_document(self) -> Any:
        return {"all": [e.to_document() for e in self.events]}


Trigger = Annotated[Union[ScalarTrigger, AnyTrigger, AllTrigger], Field(discriminator="kind")]


class UnconditionalCommand(BaseModel):
    kind: Literal["unconditional"] = "unconditional"
    command: str = Field(description="Command name. PascalCase.")
    target: str = Field(description="Decider receiving the command. Must be listed in `emits_to`.")

    model_config = SPEC_MODEL_CONFIG

    @property
    def key(self) -> str:
        return f"{self.command} -> {self.target}"

    @property
    def conditions(self) -> Tuple[PredicateEntry, ...]:
        return ()

    def to_document(self) -> Any:
        return self.key


class ConditionalCommand(BaseModel):
    kind: Literal["conditional"] = "conditional"
    command: str = Field(description="Command name. PascalCase.")
    target: str = Field(description="Decider receiving the command. Must be listed in `emits_to`.")
    conditions: Tuple[PredicateEntry, ...] = Field(
        description="Conditions that must all hold for the command to be dispatched."
    )

    model_config = SPEC_MODEL_CONFIG

    @property
    def key(self) -> str:
        return f"{self.command} -> {self.target}"

    def to_document(self) -> Any:
        return {self.key: [c.to_document() for c in self.conditions]}


CommandSpec = Annotated[Union[UnconditionalCommand, ConditionalCommand], Field(discriminator="kind")]


class Reaction(BaseModel):
    """One event-triggered coordination step."""
    when: Trigger = Field(alias="When", description="Trigger: scalar event, `{any: [...]}` or `{all: [...]}`.")
    source: Optional[str] = Field(
        None, alias="From",
        description="Source decider. Required for scalar and any triggers, and for bare events of an all trigger.",
    )
    correlate: Optional[str] = Field(
        None, description="Field name that links events to the same instance. Required for all triggers."
    )
    trigger_type: TriggerType = Field(
        TriggerType.AUTOMATED, alias="trigger",
        description="`automated` (default): runtime dispatches. `policy`: causal expectation fulfilled by an actor.",
    )
    actor: Optional[str] = Field(None, description="Role expected to fulfil the reaction. Required for policy.")
    constraints: Tuple[PredicateEntry, ...] = Field(
        (), alias="And", description="Guard constraints. All must hold for the reaction to proceed."
    )
    then: Tuple[CommandSpec, ...] = Field(
        alias="Then", description="Commands to dispatch, `Command -> Decider`. Additive."
    )
    then_scalar: bool = Field(False, description="True when `Then` was a single scalar command.")
    outcome: OutcomeSpec = Field(alias="Outcome", description="Assertions about dispatched commands.")

    model_config = SPEC_MODEL_CONFIG

    @property
    def label(self) -> str:
        return self.when.label

    def to_document(self) -> Dict[str, Any]:
        doc: Dict[str, Any] = {"When": self.when.to_document()}
        if self.source is not None:
            doc["From"] = self.source
        if self.correlate is not None:
            doc["correlate"] = self.correlate
        if self.trigger_type != TriggerType.AUTOMATED:
            doc["trigger"] = self.trigger_type.value
        if self.actor is not None:
            doc["actor"] = self.actor
        if self.constraints:
            doc["And"] = [c.to_document() for c in self.constraints]
        if self.then_scalar:
            doc["Then"] = self.then[0].to_document()
        else:
            doc["Then"] = [c.to_document() for c in self.then]
        doc["Outcome"] = self.outcome.to_document()
        return doc


class ProcessSpec(SpecDocument):
    """Cross-aggregate coordination via event-driven reactions."""
    format: str = Field(alias="ubispec", description="Format identifier and version, e.g. `process/v1.0`.")
    process: str = Field(description="Process manager name. PascalCase.")
    reacts_to: Tuple[str, ...] = Field(description="Deciders whose events this process manager subscribes to.")
    emits_to: Tuple[str, ...] = Field(description="Deciders to which this process manager dispatches commands.")
    model: str = Field(description="Relative path to the model file.")
    state: Optional[Dict[str, str]] = Field(
        None, description="Process manager state fields and their type expressions. Stateful sagas only."
    )
    common: Optional[Dict[str, str]] = Field(None, description="Reusable predicates referenced by bare name.")
    reactions: Tuple[Reaction, ...] = Field(description="List of reactions.")

    @property
    def is_stateful(self) -> bool:
        return bool(self.state)

    @property
    def deciders(self) -> List[str]:
        return list(dict.fromkeys((*self.reacts_to, *self.emits_to)))

    def to_document(self) -> Dict[str, Any]:
        doc: Dict[str, Any] = {
            "ubispec": self.format,
            "process": self.process,
            "reacts_to": list(self.reacts_to),
            "emits_to": list(self.emits_to),
            "model": self.model,
        }
        if self.state is not None:
            doc["state"] = dict(self.state)
        if self.common is not None:
            doc["common"] = dict(self.common)
        doc["reactions"] = [r.to_document() for r in self.reactions]
        return doc


_DOC_REQUIRED = ("ubispec", "process", "reacts_to", "emits_to", "model", "reactions")
_DOC_OPTIONAL = ("state", "common")
_REACTION_REQUIRED = ("When", "Then", "Outcome")
_REACTION_OPTIONAL = ("From", "correlate", "trigger", "actor", "And")


def _read_event_names(collector: IssueCollector, value: Any, path, label: str) -> Optional[List[str]]:
    if not isinstance(value, list):
        collector.add(IssueCode.TYPE_MISMATCH, path, f"`{label}` must be a list of events.")
        return None
    if len(value) < 2:
        collector.add(
            IssueCode.TOO_FEW_TRIGGER_EVENTS, path,
            f"`{label}` trigger needs at least 2 events, found {len(value)}.",
        )
        return None
    return value


def _check_distinct(collector: IssueCollector, names: List[str], path) -> bool:
    seen: Set[str] = set()
    ok = True
    for i, name in enumerate(names):
        if name in seen:
            collector.add(
                IssueCode.DUPLICATE_TRIGGER_EVENT, (*path, i),
                f"Event '{name}' is listed more than once in the trigger.", name=name,
            )
            ok = False
        seen.add(name)
    return ok


def _read_trigger(collector: IssueCollector, value: Any, path, source: Optional[str], correlate: Optional[str]) -> Optional[Trigger]:
    if isinstance(value, str):
        event = read_identifier(collector, IdentifierKind.PASCAL, value, path)
        if source is None:
            collector.add(
                IssueCode.MISSING_SOURCE, path[:-1] + ("From",),
                f"Scalar trigger '{value}' requires `From`.", name=value,
            )
            return None
        return ScalarTrigger(event=event, source=source) if event else None

    if not isinstance(value, dict) or len(value) != 1 or next(iter(value)) not in ("any", "all"):
        collector.add(
            IssueCode.TYPE_MISMATCH, path,
            "When must be an event name, `{any: [...]}` or `{all: [...]}`.",
        )
        return None

    (form, raw), = value.items()
    items = _read_event_names(collector, raw, (*path, form), form)
    if items is None:
        return None

    if form == "any":
        names = [read_identifier(collector, IdentifierKind.PASCAL, item, (*path, form, i)) for i, item in enumerate(items)]
        if any(n is None for n in names) or not _check_distinct(collector, names, (*path, form)):
            return None
        if source is None:
            collector.add(IssueCode.MISSING_SOURCE, path[:-1] + ("From",), "Any trigger requires a shared `From`.")
            return None
        return AnyTrigger(events=tuple(names), source=source)

    events: List[Optional[SourcedEvent]] = []
    for i, item in enumerate(items):
        item_path = (*path, form, i)
        if not isinstance(item, str):
            collector.add(IssueCode.TYPE_MISMATCH, item_path, "All-trigger entries must be strings.")
            events.append(None)
            continue
        match = SOURCED_EVENT.match(item)
        if match:
            events.append(SourcedEvent(event=match.group("event"), source=match.group("source"), explicit=True))
            continue
        name = read_identifier(collector, IdentifierKind.PASCAL, item, item_path)
        if name is None:
            events.append(None)
        elif source is None:
            collector.add(
                IssueCode.MISSING_SOURCE, item_path,
                f"'{name}' has no `from` decider and the reaction declares no shared `From`.", name=name,
            )
            events.append(None)
        else:
            events.append(SourcedEvent(event=name, source=source, explicit=False))

    if correlate is None:
        collector.add(
            IssueCode.MISSING_CORRELATE, path[:-1] + ("correlate",),
            "All trigger requires `correlate` naming the field shared by every event.",
        )
    if any(e is None for e in events):
        return None
    if not _check_distinct(collector, [e.event for e in events], (*path, form)):
        return None
    if correlate is None:
        return None
    return AllTrigger(events=tuple(events), correlate=correlate)


def _read_command_entry(collector: IssueCollector, value: Any, path) -> Optional[CommandSpec]:
    if isinstance(value, str):
        match = TARGETED_COMMAND.match(value)
        if not match:
            collector.add(
                IssueCode.PATTERN_MISMATCH, path,
                f"'{value}' is not of the form `CommandName -> DeciderName`.", name=value,
            )
            return None
        return UnconditionalCommand(command=match.group("command"), target=match.group("target"))
    if isinstance(value, dict):
        if len(value) != 1:
            collector.add(
                IssueCode.MULTI_KEY_ENTRY, path,
                f"Conditional command must have exactly one key, found {len(value)}.",
            )
            return None
        (key, conditions_raw), = value.items()
        match = TARGETED_COMMAND.match(key) if isinstance(key, str) else None
        if not match:
            collector.add(
                IssueCode.PATTERN_MISMATCH, path,
                f"'{key}' is not of the form `CommandName -> DeciderName`.", name=str(key),
            )
        conditions = read_constraint_list(collector, conditions_raw, (*path, str(key)))
        if not match or conditions is None:
            return None
        return ConditionalCommand(
            command=match.group("command"), target=match.group("target"), conditions=conditions
        )
    collector.add(
        IssueCode.TYPE_MISMATCH, path,
        "Command entry must be `Command -> Decider` or a single-key mapping to conditions.",
    )
    return None


def _read_then(collector: IssueCollector, value: Any, path) -> Tuple[Optional[Tuple[CommandSpec, ...]], bool]:
    if isinstance(value, str):
        entry = _read_command_entry(collector, value, path)
        return ((entry,) if entry else None), True
    if not isinstance(value, list):
        collector.add(IssueCode.TYPE_MISMATCH, path, "Then must be a targeted command or a list of them.")
        return None, False
    if not value:
        collector.add(IssueCode.EMPTY_LIST, path, "Then must list at least one command.")
        return None, False
    entries = [_read_command_entry(collector, item, (*path, i)) for i, item in enumerate(value)]
    if any(e is None for e in entries):
        return None, False
    return tuple(entries), False


def _read_reaction(
    collector: IssueCollector,
    value: Any,
    path,
    reacts_to: Optional[Tuple[str, ...]],
    emits_to: Optional[Tuple[str, ...]],
    common: Optional[Dict[str, str]],
    check_coverage: bool,
) -> Optional[Reaction]:
    if not isinstance(value, dict):
        collector.add(IssueCode.TYPE_MISMATCH, path, "Reaction must be a mapping.")
        return None
    check_fields(collector, value, _REACTION_REQUIRED, _REACTION_OPTIONAL, path)
    failed = False

    source = None
    if "From" in value:
        source = read_identifier(collector, IdentifierKind.PASCAL, value["From"], (*path, "From"))
        failed |= source is None
    correlate = None
    if "correlate" in value:
        correlate = read_string(collector, value["correlate"], (*path, "correlate"), allow_empty=False)
        failed |= correlate is None

    trigger_type = TriggerType.AUTOMATED
    if "trigger" in value:
        try:
            trigger_type = TriggerType(value["trigger"])
        except ValueError:
            collector.add(
                IssueCode.INVALID_CHOICE, (*path, "trigger"),
                f"trigger must be 'automated' or 'policy', got {value['trigger']!r}.", name=str(value["trigger"]),
            )
            failed = True
    actor = None
    if "actor" in value:
        actor = read_string(collector, value["actor"], (*path, "actor"))
        failed |= actor is None
    if trigger_type == TriggerType.POLICY and not (actor and actor.strip()):
        collector.add(IssueCode.MISSING_ACTOR, (*path, "actor"), "Policy reactions require a non-empty `actor`.")

    when = None
    if "When" in value:
        when = _read_trigger(collector, value["When"], (*path, "When"), source, correlate)
    if when is not None:
        declared = set(reacts_to or ())
        sources = [s for _, s in when.sourced_events]
        if source is not None and source not in sources:
            sources.append(source)
        if reacts_to is not None:
            for decider in dict.fromkeys(sources):
                if decider not in declared:
                    collector.add(
                        IssueCode.UNDECLARED_SOURCE, (*path, "From") if decider == source else (*path, "When"),
                        f"Source decider '{decider}' is not listed in `reacts_to`.", name=decider,
                    )
        if correlate is not None and not isinstance(when, AllTrigger):
            collector.add(
                IssueCode.UNUSED_CORRELATE, (*path, "correlate"),
                "`correlate` only has meaning for all triggers.", name=correlate,
            )

    constraints: Optional[Tuple[PredicateEntry, ...]] = ()
    if "And" in value:
        constraints = read_constraint_list(collector, value["And"], (*path, "And"))
        if constraints:
            check_common_references(collector, constraints, common, (*path, "And"))

    then, then_scalar = (None, False)
    if "Then" in value:
        then, then_scalar = _read_then(collector, value["Then"], (*path, "Then"))
    if then is not None and emits_to is not None:
        declared_targets = set(emits_to)
        for i, entry in enumerate(then):
            if entry.target not in declared_targets:
                collector.add(
                    IssueCode.UNDECLARED_TARGET, (*path, "Then", i),
                    f"Target decider '{entry.target}' of '{entry.key}' is not listed in `emits_to`.",
                    name=entry.target,
                )
    outcome = read_outcome(collector, value["Outcome"], (*path, "Outcome")) if "Outcome" in value else None
    if then is not None:
        check_then_entries(collector, then, outcome, common, path, check_coverage)

    if failed or when is None or then is None or outcome is None or constraints is None:
        return None
    return Reaction(
        when=when,
        source=source,
        correlate=correlate,
        trigger_type=trigger_type,
        actor=actor,
        constraints=constraints,
        then=then,
        then_scalar=then_scalar,
        outcome=outcome,
    )


def _read_state(collector: IssueCollector, value: Any, path) -> Optional[Dict[str, str]]:
    if not isinstance(value, dict):
        collector.add(IssueCode.TYPE_MISMATCH, path, "`state` must map field names to type expressions.")
        return None
    ok = True
    for key, type_expr in value.items():
        if not isinstance(key, str) or not isinstance(type_expr, str):
            collector.add(
                IssueCode.TYPE_MISMATCH, (*path, str(key)), "State fields must map names to type expression strings."
            )
            ok = False
    return dict(value) if ok else None


def parse_process(document: Any, name: Optional[str] = None, check_coverage: bool = True) -> ParseResult:
    """
    Parses and validates one process document, collecting every issue.
    """
    collector = IssueCollector(name)
    if not isinstance(document, dict):
        collector.add(IssueCode.TYPE_MISMATCH, (), "Process document must be a mapping.")
        return ParseResult(SpecKind.PROCESS, None, collector.issues, name)
    check_fields(collector, document, _DOC_REQUIRED, _DOC_OPTIONAL, ())

    fmt = read_format(collector, document["ubispec"], SpecKind.PROCESS, ("ubispec",)) if "ubispec" in document else None
    process = read_identifier(collector, IdentifierKind.PASCAL, document["process"], ("process",)) if "process" in document else None
    reacts_to = read_identifier_list(collector, IdentifierKind.PASCAL, document["reacts_to"], ("reacts_to",)) if "reacts_to" in document else None
    emits_to = read_identifier_list(collector, IdentifierKind.PASCAL, document["emits_to"], ("emits_to",)) if "emits_to" in document else None
    model = read_string(collector, document["model"], ("model",), allow_empty=False) if "model" in document else None

    state = None
    state_ok = True
    if "state" in document:
        state = _read_state(collector, document["state"], ("state",))
        state_ok = state is not None

    common: Optional[Dict[str, str]] = None
    common_ok = True
    if "common" in document:
        common = read_predicate_map(collector, document["common"], ("common",))
        common_ok = common is not None
        if not common_ok and isinstance(document["common"], dict):
            common = {k: v for k, v in document["common"].items() if isinstance(k, str)}

    reactions: List[Optional[Reaction]] = []
    raw_reactions = document.get("reactions")
    if "reactions" in document:
        if not isinstance(raw_reactions, list):
            collector.add(IssueCode.TYPE_MISMATCH, ("reactions",), "`reactions` must be a list.")
            raw_reactions = None
        elif not raw_reactions:
            collector.add(IssueCode.EMPTY_LIST, ("reactions",), "`reactions` must contain at least one reaction.")
    for i, raw in enumerate(raw_reactions or []):
        reactions.append(
            _read_reaction(collector, raw, ("reactions", i), reacts_to, emits_to, common, check_coverage)
        )

    spec = None
    if not collector.has_structural and state_ok and common_ok and all(
        v is not None for v in (fmt, process, reacts_to, emits_to, model)
    ) and reactions and all(r is not None for r in reactions):
        spec = ProcessSpec(
            format=fmt,
            process=process,
            reacts_to=reacts_to,
            emits_to=emits_to,
            model=model,
            state=state,
            common=common,
            reactions=tuple(reactions),
        )
        if not collector.has_blocking:
            spec._mark_validated()

    logger.debug(
        "Parsed process %s: %d issue(s), validated=%s",
        name or process, len(collector.issues), bool(spec and spec.is_validated),
    )
    return ParseResult(SpecKind.PROCESS, spec, collector.issues, name)
