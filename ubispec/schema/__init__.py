from .shared import (
    ALWAYS_KEY,
    DetailLevel,
    IdentifierKind,
    OutcomeSection,
    OutcomeSpec,
    PredicateEntry,
    SpecDocument,
    classify_detail_level,
    is_identifier,
    parse_identifier,
    parse_predicate_entry,
    sentence_case,
)
from .versions import FORMATS, SpecKind, detect_kind, known_formats, parse_format, spec_index
from .result import ParseResult
from .lifecycle import ConditionalEvent, Decision, LifecycleSpec, UnconditionalEvent, parse_lifecycle
from .process import (
    AllTrigger,
    AnyTrigger,
    ConditionalCommand,
    PayloadForm,
    ProcessSpec,
    Reaction,
    ScalarTrigger,
    SourcedEvent,
    TriggerType,
    UnconditionalCommand,
    parse_process,
)
from .system import Flow, Module, SystemSpec, parse_system
from .document import parse_document, spec_label

__all__ = [
    "ALWAYS_KEY",
    "DetailLevel",
    "IdentifierKind",
    "OutcomeSection",
    "OutcomeSpec",
    "PredicateEntry",
    "SpecDocument",
    "classify_detail_level",
    "is_identifier",
    "parse_identifier",
    "parse_predicate_entry",
    "sentence_case",
    "FORMATS",
    "SpecKind",
    "detect_kind",
    "known_formats",
    "parse_format",
    "spec_index",
    "ParseResult",
    "ConditionalEvent",
    "Decision",
    "LifecycleSpec",
    "UnconditionalEvent",
    "parse_lifecycle",
    "AllTrigger",
    "AnyTrigger",
    "ConditionalCommand",
    "PayloadForm",
    "ProcessSpec",
    "Reaction",
    "ScalarTrigger",
    "SourcedEvent",
    "TriggerType",
    "UnconditionalCommand",
    "parse_process",
    "Flow",
    "Module",
    "SystemSpec",
    "parse_system",
    "parse_document",
    "spec_label",
]
