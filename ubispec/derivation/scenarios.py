# ubispec/derivation/scenarios.py

import logging
from dataclasses import dataclass
from typing import Dict, List, Tuple

from ubispec.derivation.decision_table import DecisionRow, DecisionTable, build_decision_table, failure_label
from ubispec.derivation.guard import require_validated
from ubispec.schema.lifecycle import Decision, LifecycleSpec
from ubispec.schema.shared import sentence_case

logger = logging.getLogger(__name__)

REJECTION_EXPECTATIONS = (
    "No events are emitted",
    "State is unchanged",
)


@dataclass(frozen=True)
class Scenario:
    id: str
    decider: str
    command: str
    row: int
    success: bool
    given: Tuple[str, ...]
    expected: Tuple[str, ...]
    events: Tuple[str, ...] = ()
    failed: Tuple[str, ...] = ()


def scenario_prefix(command: str) -> str:
    return command[:3].upper()


def _holds(name: str, value: bool) -> str:
    text = sentence_case(name)
    return text if value else f"{text} does not hold"


def _given(table: DecisionTable, row: DecisionRow) -> Tuple[str, ...]:
    given = [_holds(name, row.constraints[name]) for name in table.constraint_columns]
    for column in table.condition_columns:
        flag = row.conditions.get(column.event)
        if flag is None:
            continue
        given.extend(_holds(name, flag) for name in column.conditions)
    return tuple(given)


def _expected(decision: Decision, row: DecisionRow) -> Tuple[str, ...]:
    if not row.is_success:
        return (f"Rejected with {failure_label(list(row.failed))}",) + REJECTION_EXPECTATIONS
    expected = [f"Emits {', '.join(row.events)}"] if row.events else ["Emits no events"]
    expected.extend(sentence_case(a.name) for _, a in decision.outcome.assertions_for(row.events))
    return tuple(expected)


def decision_scenarios(decider: str, decision: Decision, include_all_fail: bool = False) -> List[Scenario]:
    table = build_decision_table(decider, decision, include_all_fail)
    prefix = scenario_prefix(decision.command)
    return [
        Scenario(
            id=f"{prefix}-{row.number:03d}",
            decider=decider,
            command=decision.command,
            row=row.number,
            success=row.is_success,
            given=_given(table, row),
            expected=_expected(decision, row),
            events=row.events,
            failed=row.failed,
        )
        for row in table.rows
    ]


def scenario_matrix(spec: LifecycleSpec, include_all_fail: bool = False) -> Dict[str, List[Scenario]]:
    """One scenario per decision-table row, keyed by command. IDs are unique per command."""
    require_validated(spec)
    scenarios = {d.command: decision_scenarios(spec.decider, d, include_all_fail) for d in spec.decisions}
    logger.debug("Scenarios for %s: %d", spec.decider, sum(len(s) for s in scenarios.values()))
    return scenarios
