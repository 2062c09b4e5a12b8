# ubispec/schema/result.py

from dataclasses import dataclass, field
from typing import Any, List, Optional

from ubispec.errors import IssueCategory, SpecValidationError, ValidationIssue


@dataclass
class ParseResult:
    """
    Outcome of a single-document pass. `spec` is None when the document has
    structural errors; it is present but not validated when only reference
    errors were found.
    """
    kind: Any
    spec: Optional[Any]
    issues: List[ValidationIssue] = field(default_factory=list)
    document: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.spec is not None and not any(i.is_blocking for i in self.issues)

    @property
    def has_structural_errors(self) -> bool:
        return any(i.category == IssueCategory.STRUCTURAL for i in self.issues)

    @property
    def errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.is_blocking]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if not i.is_blocking]

    def codes(self) -> List[str]:
        return [i.code.value for i in self.issues]

    def unwrap(self) -> Any:
        """Returns the validated spec or raises SpecValidationError."""
        if not self.ok:
            raise SpecValidationError(self.issues)
        return self.spec
