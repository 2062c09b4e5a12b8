# ubispec/derivation/catalog.py

import re
from dataclasses import dataclass
from typing import List, Optional, Set, Tuple

from ubispec.derivation.guard import require_spec_set
from ubispec.schema.shared import iter_predicates
from ubispec.validation.report import SpecSet

_DM_CTX = re.compile(r"\bdm\.ctx\b")


@dataclass(frozen=True)
class CatalogRow:
    decider: str
    command: str
    actor: Optional[str]
    constraints: int
    unconditional_events: int
    conditional_events: int
    has_ctx: bool
    reacted_to: bool


def command_catalog(spec_set: SpecSet) -> List[CatalogRow]:
    """
    One row per command across every lifecycle. `reacted_to` is True when
    some process dispatches the command to its decider.
    """
    require_spec_set(spec_set)
    dispatched: Set[Tuple[str, str]] = {
        (command.target, command.command)
        for process in spec_set.processes
        for reaction in process.reactions
        for command in reaction.then
    }
    rows = []
    for lifecycle in spec_set.lifecycles:
        for decision in lifecycle.decisions:
            has_ctx = any(
                _DM_CTX.search(site.entry.resolve(lifecycle.common) or "")
                for site in iter_predicates(decision)
            )
            rows.append(CatalogRow(
                decider=lifecycle.decider,
                command=decision.command,
                actor=decision.actor,
                constraints=len(decision.constraints),
                unconditional_events=len(decision.unconditional_events),
                conditional_events=len(decision.conditional_events),
                has_ctx=has_ctx,
                reacted_to=(lifecycle.decider, decision.command) in dispatched,
            ))
    return rows
