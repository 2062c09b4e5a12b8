# ubispec/derivation/checklist.py

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ubispec.derivation.decision_table import DECISION_FAILED
from ubispec.derivation.guard import require_validated
from ubispec.schema.lifecycle import LifecycleSpec
from ubispec.schema.shared import ALWAYS_KEY, sentence_case

# Identical for every command: failure is never specified per decision.
FAILURE_BOILERPLATE = (
    f"The command is rejected with {DECISION_FAILED} naming every failed constraint",
    "No domain events are emitted",
    "State is unchanged",
)


@dataclass(frozen=True)
class ChecklistSection:
    command: str
    actor: Optional[str]
    preconditions: Tuple[str, ...]
    on_success: Tuple[str, ...]
    after: Dict[str, Tuple[str, ...]]
    on_failure: Tuple[str, ...] = FAILURE_BOILERPLATE


def validation_checklist(spec: LifecycleSpec) -> List[ChecklistSection]:
    require_validated(spec)
    sections = []
    for decision in spec.decisions:
        on_success = []
        for entry in decision.then:
            if entry.conditions:
                names = " and ".join(c.name for c in entry.conditions)
                on_success.append(f"{entry.name} (when {names})")
            else:
                on_success.append(f"{entry.name} (always)")

        after: Dict[str, Tuple[str, ...]] = {}
        if decision.outcome.always:
            after[ALWAYS_KEY] = tuple(sentence_case(a.name) for a in decision.outcome.always)
        for section in decision.outcome.sections:
            after[section.key] = tuple(sentence_case(a.name) for a in section.assertions)

        sections.append(ChecklistSection(
            command=decision.command,
            actor=decision.actor,
            preconditions=tuple(sentence_case(c.name) for c in decision.constraints),
            on_success=tuple(on_success),
            after=after,
        ))
    return sections
