from .cross import cross_validate
from .report import EXCLUDED_MARKER, SpecSet, ValidationReport, validate_documents

__all__ = [
    "cross_validate",
    "EXCLUDED_MARKER",
    "SpecSet",
    "ValidationReport",
    "validate_documents",
]
