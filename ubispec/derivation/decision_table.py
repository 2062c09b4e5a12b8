# ubispec/derivation/decision_table.py
"""
Decision tables.

Columns are the decision's constraints followed by one column per
conditional Then entry. Success rows hold every constraint true and
enumerate all 2^k truth assignments of the k conditional entries, first row
all true. Failure rows violate one constraint each; the optional all-fail
row violates all of them. Failure rows leave the condition columns empty.
"""

import itertools
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ubispec.derivation.guard import require_validated
from ubispec.errors import UbiSpecError
from ubispec.schema.lifecycle import ConditionalEvent, Decision, LifecycleSpec

logger = logging.getLogger(__name__)

DECISION_FAILED = "DecisionFailed"
NO_EVENTS = "(no events)"


class RowKind(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


def failure_label(failed: List[str]) -> str:
    return f"{DECISION_FAILED} [{', '.join(failed)}]"


@dataclass(frozen=True)
class DecisionRow:
    number: int
    kind: RowKind
    constraints: Dict[str, bool]
    conditions: Dict[str, Optional[bool]]
    events: Tuple[str, ...] = ()
    failed: Tuple[str, ...] = ()

    @property
    def is_success(self) -> bool:
        return self.kind == RowKind.SUCCESS

    @property
    def output(self) -> str:
        if not self.is_success:
            return failure_label(list(self.failed))
        return ", ".join(self.events) if self.events else NO_EVENTS


@dataclass(frozen=True)
class ConditionColumn:
    event: str
    conditions: Tuple[str, ...]

    @property
    def label(self) -> str:
        return " & ".join(self.conditions)


@dataclass(frozen=True)
class DecisionTable:
    decider: str
    command: str
    constraint_columns: Tuple[str, ...]
    condition_columns: Tuple[ConditionColumn, ...]
    rows: Tuple[DecisionRow, ...] = field(default_factory=tuple)

    @property
    def success_rows(self) -> List[DecisionRow]:
        return [r for r in self.rows if r.is_success]

    @property
    def failure_rows(self) -> List[DecisionRow]:
        return [r for r in self.rows if not r.is_success]

    def to_dict(self) -> Dict:
        return {
            "decider": self.decider,
            "command": self.command,
            "constraints": list(self.constraint_columns),
            "conditions": [{"event": c.event, "conditions": list(c.conditions)} for c in self.condition_columns],
            "rows": [
                {
                    "row": r.number,
                    "kind": r.kind.value,
                    "constraints": dict(r.constraints),
                    "conditions": dict(r.conditions),
                    "output": r.output,
                    "events": list(r.events),
                    "failed": list(r.failed),
                }
                for r in self.rows
            ],
        }


def build_decision_table(decider: str, decision: Decision, include_all_fail: bool = False) -> DecisionTable:
    constraints = [c.name for c in decision.constraints]
    conditional: List[ConditionalEvent] = decision.conditional_events
    columns = tuple(ConditionColumn(e.name, tuple(c.name for c in e.conditions)) for e in conditional)

    rows: List[DecisionRow] = []
    all_hold = {name: True for name in constraints}
    for flags in itertools.product([True, False], repeat=len(conditional)):
        assignment = {e.name: flag for e, flag in zip(conditional, flags)}
        rows.append(DecisionRow(
            number=len(rows) + 1,
            kind=RowKind.SUCCESS,
            constraints=dict(all_hold),
            conditions=dict(assignment),
            events=tuple(decision.emitted(assignment)),
        ))

    no_conditions = {e.name: None for e in conditional}
    for name in constraints:
        rows.append(DecisionRow(
            number=len(rows) + 1,
            kind=RowKind.FAILURE,
            constraints={c: c != name for c in constraints},
            conditions=dict(no_conditions),
            failed=(name,),
        ))
    if include_all_fail and constraints:
        rows.append(DecisionRow(
            number=len(rows) + 1,
            kind=RowKind.FAILURE,
            constraints={c: False for c in constraints},
            conditions=dict(no_conditions),
            failed=tuple(constraints),
        ))

    return DecisionTable(
        decider=decider,
        command=decision.command,
        constraint_columns=tuple(constraints),
        condition_columns=columns,
        rows=tuple(rows),
    )


def decision_table(spec: LifecycleSpec, command: str, include_all_fail: bool = False) -> DecisionTable:
    require_validated(spec)
    decision = spec.decision(command)
    if decision is None:
        raise UbiSpecError(f"{spec.decider} has no decision for command '{command}'")
    table = build_decision_table(spec.decider, decision, include_all_fail)
    logger.debug("Decision table %s.%s: %d row(s)", spec.decider, command, len(table.rows))
    return table


def decision_tables(spec: LifecycleSpec, include_all_fail: bool = False) -> List[DecisionTable]:
    require_validated(spec)
    return [build_decision_table(spec.decider, d, include_all_fail) for d in spec.decisions]
