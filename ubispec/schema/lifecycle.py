# ubispec/schema/lifecycle.py
"""
Lifecycle spec: the command → events → outcome contract of one decider.

```yaml
ubispec: lifecycle/v1.0
decider: Order
identity: orderId
model: ./model.ts
common:
  order-is-draft: "dm.state.status.kind === 'Draft'"
lifecycle:
  - When: PlaceOrder
    And: [order-is-draft]
    Then:
      - OrderPlaced
      - HighValueOrderFlagged:
          - high-value: dm.ctx
    Outcome:
      _always:
        - state-is-placed: "om.state.status.kind === 'Placed'"
      HighValueOrderFlagged:
        - requires-manual-review: om.state
```
"""

import logging
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field

from ubispec.errors import IssueCode, IssueCollector
from ubispec.schema.shared import (
    SPEC_MODEL_CONFIG,
    IdentifierKind,
    OutcomeSpec,
    PredicateEntry,
    SpecDocument,
    check_common_references,
    check_then_entries,
    check_fields,
    read_constraint_list,
    read_identifier,
    read_outcome,
    read_predicate_map,
    read_string,
)
from ubispec.schema.versions import SpecKind, read_format
from ubispec.schema.result import ParseResult

logger = logging.getLogger(__name__)


class UnconditionalEvent(BaseModel):
    kind: Literal["unconditional"] = "unconditional"
    name: str = Field(description="Event name. PascalCase, must match a type in the model.")

    model_config = SPEC_MODEL_CONFIG

    @property
    def key(self) -> str:
        return self.name

    @property
    def conditions(self) -> Tuple[PredicateEntry, ...]:
        return ()

    def to_document(self) -> Any:
        return self.name


class ConditionalEvent(BaseModel):
    kind: Literal["conditional"] = "conditional"
    name: str = Field(description="Event name. PascalCase, must match a type in the model.")
    conditions: Tuple[PredicateEntry, ...] = Field(
        description="Conditions that must all hold for the event to be emitted."
    )

    model_config = SPEC_MODEL_CONFIG

    @property
    def key(self) -> str:
        return self.name

    def to_document(self) -> Any:
        return {self.name: [c.to_document() for c in self.conditions]}


EventSpec = Annotated[Union[UnconditionalEvent, ConditionalEvent], Field(discriminator="kind")]


class Decision(BaseModel):
    """One command's complete behavioural contract."""
    command: str = Field(alias="When", description="Command name. PascalCase. One decision per command.")
    actor: Optional[str] = Field(
        None, description="Role or persona that typically initiates this command. Documentation hint only."
    )
    constraints: Tuple[PredicateEntry, ...] = Field(
        (), alias="And",
        description="Constraints that must all hold. If any fails, the command is rejected with DecisionFailed.",
    )
    then: Tuple[EventSpec, ...] = Field(
        alias="Then", description="Events produced on success. Additive: every entry whose conditions hold fires."
    )
    then_scalar: bool = Field(
        False, description="True when `Then` was written as a single scalar event name."
    )
    outcome: OutcomeSpec = Field(alias="Outcome", description="Assertions that must hold after state change.")

    model_config = SPEC_MODEL_CONFIG

    @property
    def unconditional_events(self) -> List[UnconditionalEvent]:
        return [e for e in self.then if isinstance(e, UnconditionalEvent)]

    @property
    def conditional_events(self) -> List[ConditionalEvent]:
        return [e for e in self.then if isinstance(e, ConditionalEvent)]

    @property
    def event_names(self) -> List[str]:
        return [e.name for e in self.then]

    def emitted(self, flags: Dict[str, bool]) -> List[str]:
        """Events fired when each conditional event's conditions evaluate to `flags[name]`."""
        return [
            e.name for e in self.then
            if isinstance(e, UnconditionalEvent) or flags.get(e.name, False)
        ]

    def to_document(self) -> Dict[str, Any]:
        doc: Dict[str, Any] = {"When": self.command}
        if self.actor is not None:
            doc["actor"] = self.actor
        if self.constraints:
            doc["And"] = [c.to_document() for c in self.constraints]
        if self.then_scalar:
            doc["Then"] = self.then[0].to_document()
        else:
            doc["Then"] = [e.to_document() for e in self.then]
        doc["Outcome"] = self.outcome.to_document()
        return doc


class LifecycleSpec(SpecDocument):
    """Complete behavioural contract for a single aggregate."""
    format: str = Field(alias="ubispec", description="Format identifier and version, e.g. `lifecycle/v1.0`.")
    decider: str = Field(description="Aggregate name. PascalCase.")
    identity: str = Field(description="Field that uniquely identifies aggregate instances.")
    model: str = Field(description="Relative path to the model file declaring command, event and state types.")
    common: Optional[Dict[str, str]] = Field(
        None, description="Reusable predicates referenced by bare name in And / Then conditions."
    )
    decisions: Tuple[Decision, ...] = Field(alias="lifecycle", description="One decision per command.")

    @property
    def commands(self) -> List[str]:
        return [d.command for d in self.decisions]

    @property
    def events(self) -> List[str]:
        seen: Dict[str, None] = {}
        for decision in self.decisions:
            for name in decision.event_names:
                seen.setdefault(name, None)
        return list(seen)

    def decision(self, command: str) -> Optional[Decision]:
        for decision in self.decisions:
            if decision.command == command:
                return decision
        return None

    def to_document(self) -> Dict[str, Any]:
        doc: Dict[str, Any] = {
            "ubispec": self.format,
            "decider": self.decider,
            "identity": self.identity,
            "model": self.model,
        }
        if self.common is not None:
            doc["common"] = dict(self.common)
        doc["lifecycle"] = [d.to_document() for d in self.decisions]
        return doc


_DOC_REQUIRED = ("ubispec", "decider", "identity", "model", "lifecycle")
_DOC_OPTIONAL = ("common",)
_DECISION_REQUIRED = ("When", "Then", "Outcome")
_DECISION_OPTIONAL = ("actor", "And")


def _read_event_entry(collector: IssueCollector, value: Any, path) -> Optional[EventSpec]:
    if isinstance(value, str):
        name = read_identifier(collector, IdentifierKind.PASCAL, value, path)
        return UnconditionalEvent(name=name) if name else None
    if isinstance(value, dict):
        if len(value) != 1:
            collector.add(
                IssueCode.MULTI_KEY_ENTRY, path,
                f"Conditional event must have exactly one key (the event name), found {len(value)}.",
            )
            return None
        (key, conditions_raw), = value.items()
        name = read_identifier(collector, IdentifierKind.PASCAL, key, path)
        conditions = read_constraint_list(collector, conditions_raw, (*path, str(key)))
        if name is None or conditions is None:
            return None
        return ConditionalEvent(name=name, conditions=conditions)
    collector.add(
        IssueCode.TYPE_MISMATCH, path,
        "Event entry must be an event name or a single-key mapping EventName → conditions.",
    )
    return None


def _read_then(collector: IssueCollector, value: Any, path) -> Tuple[Optional[Tuple[EventSpec, ...]], bool]:
    if isinstance(value, str):
        name = read_identifier(collector, IdentifierKind.PASCAL, value, path)
        return ((UnconditionalEvent(name=name),) if name else None), True
    if not isinstance(value, list):
        collector.add(IssueCode.TYPE_MISMATCH, path, "Then must be an event name or a list of event entries.")
        return None, False
    if not value:
        collector.add(IssueCode.EMPTY_LIST, path, "Then must list at least one event.")
        return None, False
    entries = [_read_event_entry(collector, item, (*path, i)) for i, item in enumerate(value)]
    if any(e is None for e in entries):
        return None, False
    return tuple(entries), False


def _read_decision(collector: IssueCollector, value: Any, path, common, seen: Dict[str, int], check_coverage: bool) -> Optional[Decision]:
    if not isinstance(value, dict):
        collector.add(IssueCode.TYPE_MISMATCH, path, "Decision must be a mapping.")
        return None
    check_fields(collector, value, _DECISION_REQUIRED, _DECISION_OPTIONAL, path)

    command = None
    if "When" in value:
        command = read_identifier(collector, IdentifierKind.PASCAL, value["When"], (*path, "When"))
    if command is not None:
        if command in seen:
            collector.add(
                IssueCode.DUPLICATE_COMMAND, (*path, "When"),
                f"Command '{command}' already has a decision at lifecycle[{seen[command]}].", name=command,
            )
        else:
            seen[command] = path[-1]

    actor = read_string(collector, value["actor"], (*path, "actor")) if "actor" in value else None
    constraints: Optional[Tuple[PredicateEntry, ...]] = ()
    if "And" in value:
        constraints = read_constraint_list(collector, value["And"], (*path, "And"))
        if constraints:
            check_common_references(collector, constraints, common, (*path, "And"))

    then, then_scalar = (None, False)
    if "Then" in value:
        then, then_scalar = _read_then(collector, value["Then"], (*path, "Then"))
    outcome = read_outcome(collector, value["Outcome"], (*path, "Outcome")) if "Outcome" in value else None

    if then is not None:
        check_then_entries(collector, then, outcome, common, path, check_coverage)

    if command is None or then is None or outcome is None or constraints is None:
        return None
    if "actor" in value and actor is None:
        return None
    return Decision(
        command=command,
        actor=actor,
        constraints=constraints,
        then=then,
        then_scalar=then_scalar,
        outcome=outcome,
    )


def parse_lifecycle(document: Any, name: Optional[str] = None, check_coverage: bool = True) -> ParseResult:
    """
    Parses and validates one lifecycle document. All issues are collected;
    `result.spec` is None when any structural issue was found.
    """
    collector = IssueCollector(name)
    if not isinstance(document, dict):
        collector.add(IssueCode.TYPE_MISMATCH, (), "Lifecycle document must be a mapping.")
        return ParseResult(SpecKind.LIFECYCLE, None, collector.issues, name)
    check_fields(collector, document, _DOC_REQUIRED, _DOC_OPTIONAL, ())

    fmt = read_format(collector, document["ubispec"], SpecKind.LIFECYCLE, ("ubispec",)) if "ubispec" in document else None
    decider = read_identifier(collector, IdentifierKind.PASCAL, document["decider"], ("decider",)) if "decider" in document else None
    identity = read_string(collector, document["identity"], ("identity",), allow_empty=False) if "identity" in document else None
    model = read_string(collector, document["model"], ("model",), allow_empty=False) if "model" in document else None

    common: Optional[Dict[str, str]] = None
    common_ok = True
    if "common" in document:
        common = read_predicate_map(collector, document["common"], ("common",))
        common_ok = common is not None
        if not common_ok and isinstance(document["common"], dict):
            # still resolve references against the declared keys
            common = {k: v for k, v in document["common"].items() if isinstance(k, str)}

    decisions: List[Optional[Decision]] = []
    raw_decisions = document.get("lifecycle")
    if "lifecycle" in document:
        if not isinstance(raw_decisions, list):
            collector.add(IssueCode.TYPE_MISMATCH, ("lifecycle",), "`lifecycle` must be a list of decisions.")
            raw_decisions = None
        elif not raw_decisions:
            collector.add(IssueCode.EMPTY_LIST, ("lifecycle",), "`lifecycle` must contain at least one decision.")
    seen: Dict[str, int] = {}
    for i, raw in enumerate(raw_decisions or []):
        decisions.append(_read_decision(collector, raw, ("lifecycle", i), common, seen, check_coverage))

    spec = None
    if not collector.has_structural and common_ok and all(
        v is not None for v in (fmt, decider, identity, model)
    ) and decisions and all(d is not None for d in decisions):
        spec = LifecycleSpec(
            format=fmt,
            decider=decider,
            identity=identity,
            model=model,
            common=common,
            decisions=tuple(decisions),
        )
        if not collector.has_blocking:
            spec._mark_validated()

    logger.debug(
        "Parsed lifecycle %s: %d issue(s), validated=%s",
        name or decider, len(collector.issues), bool(spec and spec.is_validated),
    )
    return ParseResult(SpecKind.LIFECYCLE, spec, collector.issues, name)
