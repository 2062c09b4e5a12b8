# ubispec/schema/shared.py
"""
Shared primitives reused by lifecycle, process and system specs:
identifiers, predicate entries, constraint lists, assertions and outcomes.

The `read_*` helpers walk one raw YAML/JSON value, record problems on an
IssueCollector and return None when the value cannot be represented.
"""

import re
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Mapping, NamedTuple, Optional, Sequence, Set, Tuple

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from ubispec.errors import (
    IssueCode,
    IssueCollector,
    PathElement,
    SpecValidationError,
)

PASCAL_CASE = re.compile(r"^[A-Z][a-zA-Z0-9]*$")
KEBAB_CASE = re.compile(r"^[a-z][a-z0-9]*(-[a-z0-9]+)*$")

ALWAYS_KEY = "_always"

# Namespace paths such as `dm.ctx`, `om.state.status`, `rm.events.PaymentConfirmed`.
_SCOPE_PATH = r"(?:dm|om|rm)(?:\.[A-Za-z_$][\w$]*)*"
SCOPE_ANNOTATION = re.compile(
    rf"^\s*(?:{_SCOPE_PATH}|\[\s*{_SCOPE_PATH}(?:\s*,\s*{_SCOPE_PATH})*\s*\])\s*$"
)
_NAMESPACE_REF = re.compile(r"\b(?:dm|om|rm)\.")
_EXPRESSION_MARKERS = re.compile(r"===|!==|==|!=|<=|>=|&&|\|\||=>|[<>\[\]]|\.\w+\(")


class IdentifierKind(str, Enum):
    PASCAL = "pascal"
    KEBAB = "kebab"


_PATTERNS = {
    IdentifierKind.PASCAL: PASCAL_CASE,
    IdentifierKind.KEBAB: KEBAB_CASE,
}


class DetailLevel(str, Enum):
    NAME_ONLY = "name_only"
    SCOPE = "scope"
    PROSE = "prose"
    EXPRESSION = "expression"


def classify_detail_level(value: Optional[str]) -> DetailLevel:
    """
    Heuristic tooling aid. Never used to change validation results.
    """
    if value is None:
        return DetailLevel.NAME_ONLY
    if SCOPE_ANNOTATION.match(value):
        return DetailLevel.SCOPE
    if _NAMESPACE_REF.search(value) is None and not _EXPRESSION_MARKERS.search(value):
        return DetailLevel.PROSE
    return DetailLevel.EXPRESSION


SPEC_MODEL_CONFIG = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


class PredicateEntry(BaseModel):
    """
    A named predicate. `expression` is None for a bare name, which refers to
    an entry of the document's `common` map (or, for assertions, stands alone).
    """
    name: str = Field(description="kebab-case name that reads as natural language.")
    expression: Optional[str] = Field(
        None,
        description="Scope annotation, prose or boolean expression over dm.*/om.*/rm.*. Absent for a bare name.",
    )

    model_config = SPEC_MODEL_CONFIG

    @property
    def is_reference(self) -> bool:
        return self.expression is None

    @property
    def detail_level(self) -> DetailLevel:
        return classify_detail_level(self.expression)

    def resolve(self, common: Optional[Mapping[str, str]]) -> Optional[str]:
        if self.expression is not None:
            return self.expression
        return (common or {}).get(self.name)

    def to_document(self) -> Any:
        if self.expression is None:
            return self.name
        return {self.name: self.expression}


class OutcomeSection(BaseModel):
    key: str = Field(description="Exact textual form of a Then entry (event name or `Command -> Decider`).")
    assertions: Tuple[PredicateEntry, ...] = Field(description="Assertions for success paths that emit this entry.")

    model_config = SPEC_MODEL_CONFIG


class OutcomeSpec(BaseModel):
    keyed: bool = Field(False, description="True for the keyed form, False for a flat assertion list.")
    always: Tuple[PredicateEntry, ...] = Field(
        (), description="Flat list, or the `_always` section of the keyed form."
    )
    sections: Tuple[OutcomeSection, ...] = Field(
        (), description="Keyed sections, one per conditional Then entry."
    )

    model_config = SPEC_MODEL_CONFIG

    @property
    def keys(self) -> List[str]:
        return [section.key for section in self.sections]

    def assertions_for(self, fired: Iterable[str]) -> List[Tuple[str, PredicateEntry]]:
        """Assertions that apply to a success path firing `fired`, tagged with their section."""
        fired_set = set(fired)
        applicable = [(ALWAYS_KEY, a) for a in self.always]
        for section in self.sections:
            if section.key in fired_set:
                applicable.extend((section.key, a) for a in section.assertions)
        return applicable

    def all_assertions(self) -> List[Tuple[str, PredicateEntry]]:
        entries = [(ALWAYS_KEY, a) for a in self.always]
        for section in self.sections:
            entries.extend((section.key, a) for a in section.assertions)
        return entries

    def to_document(self) -> Any:
        if not self.keyed:
            return [a.to_document() for a in self.always]
        doc: Dict[str, Any] = {}
        if self.always:
            doc[ALWAYS_KEY] = [a.to_document() for a in self.always]
        for section in self.sections:
            doc[section.key] = [a.to_document() for a in section.assertions]
        return doc


# --- Public single-value parsers ---

def parse_identifier(kind: IdentifierKind, text: Any) -> str:
    """Returns `text` when it belongs to the identifier class, else raises SpecValidationError."""
    collector = IssueCollector()
    value = read_identifier(collector, IdentifierKind(kind), text, ())
    if value is None:
        raise SpecValidationError(collector.issues)
    return value


def parse_predicate_entry(value: Any) -> PredicateEntry:
    collector = IssueCollector()
    entry = read_predicate_entry(collector, value, ())
    if entry is None:
        raise SpecValidationError(collector.issues)
    return entry


def is_identifier(kind: IdentifierKind, text: Any) -> bool:
    return isinstance(text, str) and bool(_PATTERNS[IdentifierKind(kind)].match(text))


# --- Collecting readers ---

def read_identifier(
    collector: IssueCollector,
    kind: IdentifierKind,
    value: Any,
    path: Sequence[PathElement],
    code: IssueCode = IssueCode.PATTERN_MISMATCH,
) -> Optional[str]:
    if not isinstance(value, str):
        collector.add(
            IssueCode.TYPE_MISMATCH, path,
            f"Expected a {kind.value} identifier string, got {type(value).__name__}.",
        )
        return None
    if not _PATTERNS[kind].match(value):
        style = "PascalCase" if kind == IdentifierKind.PASCAL else "kebab-case"
        collector.add(code, path, f"'{value}' is not a {style} identifier.", name=value)
        return None
    return value


def read_string(
    collector: IssueCollector, value: Any, path: Sequence[PathElement], allow_empty: bool = True
) -> Optional[str]:
    if not isinstance(value, str):
        collector.add(IssueCode.TYPE_MISMATCH, path, f"Expected a string, got {type(value).__name__}.")
        return None
    if not allow_empty and not value.strip():
        collector.add(IssueCode.EMPTY_EXPRESSION, path, "Value must not be empty.")
        return None
    return value


def read_expression(collector: IssueCollector, value: Any, path: Sequence[PathElement]) -> Optional[str]:
    if value is None or (isinstance(value, str) and not value):
        collector.add(IssueCode.EMPTY_EXPRESSION, path, "Predicate expression must be a non-empty string.")
        return None
    return read_string(collector, value, path)


def read_identifier_list(
    collector: IssueCollector,
    kind: IdentifierKind,
    value: Any,
    path: Sequence[PathElement],
    min_items: int = 1,
) -> Optional[Tuple[str, ...]]:
    if not isinstance(value, list):
        collector.add(IssueCode.TYPE_MISMATCH, path, "Expected a list of identifiers.")
        return None
    if len(value) < min_items:
        collector.add(IssueCode.EMPTY_LIST, path, f"Expected at least {min_items} item(s).")
        return None
    names = [read_identifier(collector, kind, item, (*path, i)) for i, item in enumerate(value)]
    if any(n is None for n in names):
        return None
    return tuple(names)


def read_predicate_entry(
    collector: IssueCollector, value: Any, path: Sequence[PathElement]
) -> Optional[PredicateEntry]:
    if isinstance(value, str):
        name = read_identifier(collector, IdentifierKind.KEBAB, value, path)
        return PredicateEntry(name=name, expression=None) if name else None
    if isinstance(value, dict):
        if len(value) != 1:
            collector.add(
                IssueCode.MULTI_KEY_INLINE_PREDICATE, path,
                f"Inline predicate must have exactly one key, found {len(value)}.",
                name=", ".join(str(k) for k in value) or None,
            )
            return None
        (key, expr), = value.items()
        name = read_identifier(collector, IdentifierKind.KEBAB, key, path)
        expression = read_expression(collector, expr, (*path, str(key)))
        if name is None or expression is None:
            return None
        return PredicateEntry(name=name, expression=expression)
    collector.add(
        IssueCode.TYPE_MISMATCH, path,
        f"Predicate entry must be a name or a single-key mapping, got {type(value).__name__}.",
    )
    return None


def read_constraint_list(
    collector: IssueCollector, value: Any, path: Sequence[PathElement]
) -> Optional[Tuple[PredicateEntry, ...]]:
    if not isinstance(value, list):
        collector.add(IssueCode.TYPE_MISMATCH, path, "Expected a list of predicates.")
        return None
    if not value:
        collector.add(IssueCode.EMPTY_LIST, path, "Predicate list must not be empty.")
        return None
    entries = [read_predicate_entry(collector, item, (*path, i)) for i, item in enumerate(value)]
    if any(e is None for e in entries):
        return None
    return tuple(entries)


def read_predicate_map(
    collector: IssueCollector, value: Any, path: Sequence[PathElement]
) -> Optional[Dict[str, str]]:
    if not isinstance(value, dict):
        collector.add(IssueCode.TYPE_MISMATCH, path, "Expected a mapping of predicate names to expressions.")
        return None
    result: Dict[str, str] = {}
    ok = True
    for key, expr in value.items():
        name = read_identifier(
            collector, IdentifierKind.KEBAB, key, (*path, str(key)), code=IssueCode.INVALID_IDENTIFIER
        )
        expression = read_expression(collector, expr, (*path, str(key)))
        if name is None or expression is None:
            ok = False
            continue
        result[name] = expression
    return result if ok else None


def read_outcome(collector: IssueCollector, value: Any, path: Sequence[PathElement]) -> Optional[OutcomeSpec]:
    if isinstance(value, list):
        assertions = read_constraint_list(collector, value, path)
        if assertions is None:
            return None
        return OutcomeSpec(keyed=False, always=assertions, sections=())
    if isinstance(value, dict):
        if not value:
            collector.add(IssueCode.EMPTY_LIST, path, "Keyed Outcome must declare at least one section.")
            return None
        always: Tuple[PredicateEntry, ...] = ()
        sections: List[OutcomeSection] = []
        ok = True
        for key, assertions_raw in value.items():
            if not isinstance(key, str):
                collector.add(IssueCode.TYPE_MISMATCH, (*path, str(key)), "Outcome keys must be strings.")
                ok = False
                continue
            assertions = read_constraint_list(collector, assertions_raw, (*path, key))
            if assertions is None:
                ok = False
                continue
            if key == ALWAYS_KEY:
                always = assertions
            else:
                sections.append(OutcomeSection(key=key, assertions=assertions))
        if not ok:
            return None
        return OutcomeSpec(keyed=True, always=always, sections=tuple(sections))
    collector.add(
        IssueCode.TYPE_MISMATCH, path,
        "Outcome must be a list of assertions or a mapping keyed by `_always` / Then entries.",
    )
    return None


def check_fields(
    collector: IssueCollector,
    mapping: Mapping[str, Any],
    required: Sequence[str],
    optional: Sequence[str],
    path: Sequence[PathElement],
) -> bool:
    """Reports missing required keys and unknown keys. Returns False if anything required is absent."""
    complete = True
    for field_name in required:
        if field_name not in mapping:
            collector.add(IssueCode.MISSING_FIELD, (*path, field_name), f"Required field '{field_name}' is missing.")
            complete = False
    allowed = set(required) | set(optional)
    for key in mapping:
        if key not in allowed:
            collector.add(IssueCode.UNKNOWN_FIELD, (*path, str(key)), f"Unknown field '{key}'.", name=str(key))
    return complete


def check_common_references(
    collector: IssueCollector,
    entries: Iterable[PredicateEntry],
    common: Optional[Mapping[str, str]],
    path: Sequence[PathElement],
) -> None:
    known: Set[str] = set(common or {})
    for i, entry in enumerate(entries):
        if entry.is_reference and entry.name not in known:
            collector.add(
                IssueCode.UNRESOLVED_COMMON_REFERENCE, (*path, i),
                f"Bare predicate '{entry.name}' is not defined in `common`.",
                name=entry.name,
            )


def sentence_case(name: str) -> str:
    """'registry-is-submitted' -> 'Registry is submitted'."""
    words = name.replace("_", "-").split("-")
    text = " ".join(w for w in words if w)
    return text[:1].upper() + text[1:]


class SpecDocument(BaseModel):
    """
    Root of a parsed document tree. Only the parsers mark a tree as validated,
    and only when its single-document pass found no blocking issue.
    """
    _validated: bool = PrivateAttr(default=False)

    model_config = SPEC_MODEL_CONFIG

    @property
    def is_validated(self) -> bool:
        return self._validated

    def _mark_validated(self) -> None:
        self._validated = True

    def to_document(self) -> Dict[str, Any]:
        raise NotImplementedError


def check_then_entries(collector: IssueCollector, then, outcome: Optional[OutcomeSpec], common, path, check_coverage: bool = True) -> None:
    """
    Reference checks shared by decisions and reactions: duplicate Then keys,
    bare condition references, Outcome key correspondence and coverage advisories.
    """
    keys: List[str] = []
    for i, entry in enumerate(then):
        if entry.key in keys:
            collector.add(
                IssueCode.DUPLICATE_THEN_ENTRY, (*path, "Then", i),
                f"'{entry.key}' is listed more than once in Then.", name=entry.key,
            )
        keys.append(entry.key)
        if entry.conditions:
            check_common_references(collector, entry.conditions, common, (*path, "Then", i, entry.key))

    if all(entry.conditions for entry in then):
        collector.add(
            IssueCode.POTENTIAL_EMPTY_EMISSION, (*path, "Then"),
            "Every Then entry is conditional; success may produce nothing unless the conditions "
            "are guaranteed to cover each other.",
        )

    if outcome is None or not outcome.keyed:
        return
    for section in outcome.sections:
        if section.key not in keys:
            hint = ""
            squashed = section.key.replace(" ", "")
            close = [k for k in keys if k.replace(" ", "") == squashed]
            if close:
                hint = f" Did you mean '{close[0]}'?"
            collector.add(
                IssueCode.OUTCOME_KEY_MISMATCH, (*path, "Outcome", section.key),
                f"Outcome key '{section.key}' does not match any Then entry.{hint}", name=section.key,
            )
    if check_coverage:
        covered = set(outcome.keys)
        for i, entry in enumerate(then):
            if entry.conditions and entry.key not in covered:
                collector.add(
                    IssueCode.MISSING_OUTCOME_COVERAGE, (*path, "Then", i),
                    f"Conditional entry '{entry.key}' has no keyed Outcome section.", name=entry.key,
                )



class PredicateSite(NamedTuple):
    section: str
    path: Tuple[PathElement, ...]
    entry: PredicateEntry
    key: Optional[str]
    positional: bool


def iter_predicates(unit) -> Iterator[PredicateSite]:
    """
    Walks every predicate of a decision or reaction: And constraints, Then
    conditions, then Outcome assertions. `positional` is True under a
    conditional Then entry or a keyed (non-`_always`) Outcome section.
    """
    for i, entry in enumerate(unit.constraints):
        yield PredicateSite("And", ("And", i), entry, None, False)
    for i, then_entry in enumerate(unit.then):
        for j, entry in enumerate(then_entry.conditions):
            yield PredicateSite("Then", ("Then", i, then_entry.key, j), entry, then_entry.key, True)
    outcome = unit.outcome
    for i, entry in enumerate(outcome.always):
        path = ("Outcome", ALWAYS_KEY, i) if outcome.keyed else ("Outcome", i)
        yield PredicateSite("Outcome", path, entry, ALWAYS_KEY, False)
    for section in outcome.sections:
        for i, entry in enumerate(section.assertions):
            yield PredicateSite("Outcome", ("Outcome", section.key, i), entry, section.key, True)
