# ubispec/derivation/guard.py

from typing import TypeVar

from ubispec.errors import NotValidatedError
from ubispec.schema.document import spec_label
from ubispec.schema.shared import SpecDocument
from ubispec.validation.report import SpecSet

S = TypeVar("S", bound=SpecDocument)


def require_validated(spec: S) -> S:
    """Derivations only read trees that a parser produced without blocking issues."""
    if not isinstance(spec, SpecDocument):
        raise NotValidatedError(f"Expected a parsed spec, got {type(spec).__name__}")
    if not spec.is_validated:
        raise NotValidatedError(f"{spec_label(spec)} has not passed validation")
    return spec


def require_spec_set(spec_set: SpecSet) -> SpecSet:
    if not isinstance(spec_set, SpecSet):
        raise NotValidatedError(f"Expected a SpecSet, got {type(spec_set).__name__}")
    return spec_set.require_consistent()
