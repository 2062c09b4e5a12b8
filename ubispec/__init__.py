"""UbiSpec: behavioral specs for event-sourced systems, validated and turned into artifacts."""

from .errors import (
    DocumentLoadError,
    IssueCategory,
    IssueCode,
    NotValidatedError,
    SpecValidationError,
    UbiSpecError,
    UnknownSpecKindError,
    ValidationIssue,
)
from .config import DeciderPolicy, ValidationConfig, load_config
from .schema import LifecycleSpec, ParseResult, ProcessSpec, SystemSpec, parse_document, parse_lifecycle, parse_process, parse_system
from .loader import load_document, load_documents, parse_text
from .validation import SpecSet, ValidationReport, cross_validate, validate_documents

__version__ = "0.1.0"

__all__ = [
    "DocumentLoadError",
    "IssueCategory",
    "IssueCode",
    "NotValidatedError",
    "SpecValidationError",
    "UbiSpecError",
    "UnknownSpecKindError",
    "ValidationIssue",
    "DeciderPolicy",
    "ValidationConfig",
    "load_config",
    "LifecycleSpec",
    "ParseResult",
    "ProcessSpec",
    "SystemSpec",
    "parse_document",
    "parse_lifecycle",
    "parse_process",
    "parse_system",
    "load_document",
    "load_documents",
    "parse_text",
    "SpecSet",
    "ValidationReport",
    "cross_validate",
    "validate_documents",
]
