# ubispec/errors.py
"""
Issue taxonomy and exception hierarchy.

Every finding produced by parsing, single-document validation or
cross-document validation is a ValidationIssue. Parsers never raise on bad
input; they collect issues so an author sees every problem in one pass.
"""

from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, computed_field


class IssueCategory(str, Enum):
    STRUCTURAL = "structural"
    REFERENCE = "reference"
    CROSS_DOCUMENT = "cross_document"
    ADVISORY = "advisory"


class IssueCode(str, Enum):
    # --- Structural ---
    MISSING_FIELD = "MissingField"
    TYPE_MISMATCH = "TypeMismatch"
    UNKNOWN_FIELD = "UnknownField"
    INVALID_CHOICE = "InvalidChoice"
    EMPTY_LIST = "EmptyList"
    EMPTY_EXPRESSION = "EmptyExpression"
    PATTERN_MISMATCH = "PatternMismatch"
    INVALID_IDENTIFIER = "InvalidIdentifier"
    MULTI_KEY_INLINE_PREDICATE = "MultiKeyInlinePredicate"
    MULTI_KEY_ENTRY = "MultiKeyEntry"
    UNSUPPORTED_VERSION = "UnsupportedVersion"
    TOO_FEW_TRIGGER_EVENTS = "TooFewTriggerEvents"
    DUPLICATE_TRIGGER_EVENT = "DuplicateTriggerEvent"
    MISSING_CORRELATE = "MissingCorrelate"
    MISSING_SOURCE = "MissingSource"
    MISSING_ACTOR = "MissingActor"
    # --- Reference ---
    DUPLICATE_COMMAND = "DuplicateCommand"
    DUPLICATE_THEN_ENTRY = "DuplicateThenEntry"
    UNRESOLVED_COMMON_REFERENCE = "UnresolvedCommonReference"
    OUTCOME_KEY_MISMATCH = "OutcomeKeyMismatch"
    UNDECLARED_SOURCE = "UndeclaredSource"
    UNDECLARED_TARGET = "UndeclaredTarget"
    DUPLICATE_MODULE = "DuplicateModule"
    UNDECLARED_MODULE = "UndeclaredModule"
    SELF_FLOW = "SelfFlow"
    # --- Cross document ---
    UNKNOWN_SOURCE_EVENT = "UnknownSourceEvent"
    UNKNOWN_TARGET_COMMAND = "UnknownTargetCommand"
    UNKNOWN_DECIDER = "UnknownDecider"
    DUPLICATE_DECIDER = "DuplicateDecider"
    DUPLICATE_MODULE_DECIDER = "DuplicateModuleDecider"
    DUPLICATE_SYSTEM = "DuplicateSystem"
    MISSING_CORRELATE_FIELD = "MissingCorrelateField"
    UNNARROWED_VARIANT_FIELD = "UnnarrowedVariantField"
    # --- Advisory ---
    POTENTIAL_EMPTY_EMISSION = "PotentialEmptyEmission"
    MISSING_OUTCOME_COVERAGE = "MissingOutcomeCoverage"
    UNUSED_CORRELATE = "UnusedCorrelate"
    EXTERNAL_DECIDER = "ExternalDecider"
    UNKNOWN_EVENT_TYPE = "UnknownEventType"


_REFERENCE_CODES = {
    IssueCode.DUPLICATE_COMMAND,
    IssueCode.DUPLICATE_THEN_ENTRY,
    IssueCode.UNRESOLVED_COMMON_REFERENCE,
    IssueCode.OUTCOME_KEY_MISMATCH,
    IssueCode.UNDECLARED_SOURCE,
    IssueCode.UNDECLARED_TARGET,
    IssueCode.DUPLICATE_MODULE,
    IssueCode.UNDECLARED_MODULE,
    IssueCode.SELF_FLOW,
}

_CROSS_DOCUMENT_CODES = {
    IssueCode.UNKNOWN_SOURCE_EVENT,
    IssueCode.UNKNOWN_TARGET_COMMAND,
    IssueCode.UNKNOWN_DECIDER,
    IssueCode.DUPLICATE_DECIDER,
    IssueCode.DUPLICATE_MODULE_DECIDER,
    IssueCode.DUPLICATE_SYSTEM,
    IssueCode.MISSING_CORRELATE_FIELD,
    IssueCode.UNNARROWED_VARIANT_FIELD,
}

_ADVISORY_CODES = {
    IssueCode.POTENTIAL_EMPTY_EMISSION,
    IssueCode.MISSING_OUTCOME_COVERAGE,
    IssueCode.UNUSED_CORRELATE,
    IssueCode.EXTERNAL_DECIDER,
    IssueCode.UNKNOWN_EVENT_TYPE,
}


def category_of(code: IssueCode) -> IssueCategory:
    if code in _ADVISORY_CODES:
        return IssueCategory.ADVISORY
    if code in _CROSS_DOCUMENT_CODES:
        return IssueCategory.CROSS_DOCUMENT
    if code in _REFERENCE_CODES:
        return IssueCategory.REFERENCE
    return IssueCategory.STRUCTURAL


PathElement = Union[str, int]


def format_path(path: Sequence[PathElement]) -> str:
    """Renders ('lifecycle', 2, 'Then', 1) as 'lifecycle[2].Then[1]'."""
    rendered = ""
    for element in path:
        if isinstance(element, int):
            rendered += f"[{element}]"
        elif rendered:
            rendered += f".{element}"
        else:
            rendered = str(element)
    return rendered or "<root>"


class ValidationIssue(BaseModel):
    code: IssueCode
    message: str
    document: Optional[str] = None
    path: Tuple[PathElement, ...] = ()
    name: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="forbid")

    @computed_field
    @property
    def category(self) -> IssueCategory:
        return category_of(self.code)

    @computed_field
    @property
    def location(self) -> str:
        return format_path(self.path)

    @property
    def is_blocking(self) -> bool:
        return self.category != IssueCategory.ADVISORY

    def with_document(self, document: Optional[str]) -> "ValidationIssue":
        return self.model_copy(update={"document": document})

    def __str__(self) -> str:
        prefix = f"{self.document}: " if self.document else ""
        subject = f" ({self.name})" if self.name else ""
        return f"{prefix}{self.location}: {self.code.value}{subject}: {self.message}"


class IssueCollector:
    """Accumulates issues for one document while a parser walks it."""

    def __init__(self, document: Optional[str] = None):
        self.document = document
        self.issues: List[ValidationIssue] = []

    def add(
        self,
        code: IssueCode,
        path: Sequence[PathElement],
        message: str,
        name: Optional[str] = None,
    ) -> ValidationIssue:
        issue = ValidationIssue(
            code=code,
            message=message,
            document=self.document,
            path=tuple(path),
            name=name,
        )
        self.issues.append(issue)
        return issue

    def has(self, category: IssueCategory) -> bool:
        return any(issue.category == category for issue in self.issues)

    @property
    def has_structural(self) -> bool:
        return self.has(IssueCategory.STRUCTURAL)

    @property
    def has_blocking(self) -> bool:
        return any(issue.is_blocking for issue in self.issues)


def count_by_category(issues: Sequence[ValidationIssue]) -> Dict[str, int]:
    counts = {category.value: 0 for category in IssueCategory}
    for issue in issues:
        counts[issue.category.value] += 1
    return counts


# --- Exceptions ---

class UbiSpecError(Exception):
    pass


class SpecValidationError(UbiSpecError):
    def __init__(self, issues: Sequence[ValidationIssue]):
        self.issues = list(issues)
        blocking = [i for i in self.issues if i.is_blocking]
        summary = "; ".join(str(i) for i in blocking[:3])
        more = f" (+{len(blocking) - 3} more)" if len(blocking) > 3 else ""
        super().__init__(f"{len(blocking)} blocking issue(s): {summary}{more}")


class NotValidatedError(UbiSpecError):
    pass


class UnknownSpecKindError(UbiSpecError):
    pass


class DocumentLoadError(UbiSpecError):
    pass
