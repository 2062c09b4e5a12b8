# ubispec/validation/report.py

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from ubispec.config import ValidationConfig
from ubispec.errors import (
    IssueCategory,
    IssueCode,
    IssueCollector,
    NotValidatedError,
    ValidationIssue,
    count_by_category,
)
from ubispec.loader import SourceDocument
from ubispec.model_types import EventFieldLookup
from ubispec.schema.document import parse_document, spec_label
from ubispec.schema.lifecycle import LifecycleSpec
from ubispec.schema.process import ProcessSpec
from ubispec.schema.system import SystemSpec
from ubispec.validation.cross import cross_validate

logger = logging.getLogger(__name__)

EXCLUDED_MARKER = "excluded due to structural errors"


class ValidationReport(BaseModel):
    """
    Aggregated result of one validation run. `ordered()` yields per-document
    errors first, then cross-document errors, then advisories.
    """
    documents: List[str] = Field(default_factory=list, description="Every document considered, in load order.")
    issues: List[ValidationIssue] = Field(
        default_factory=list, description="Findings of the single-document passes."
    )
    cross_document: List[ValidationIssue] = Field(
        default_factory=list, description="Findings of the cross-document pass."
    )
    excluded: List[str] = Field(
        default_factory=list, description="Documents left out of the cross-document pass."
    )

    @property
    def all_issues(self) -> List[ValidationIssue]:
        return self.issues + self.cross_document

    @property
    def errors(self) -> List[ValidationIssue]:
        return [i for i in self.all_issues if i.is_blocking]

    @property
    def advisories(self) -> List[ValidationIssue]:
        return [i for i in self.all_issues if not i.is_blocking]

    @property
    def ok(self) -> bool:
        return not self.errors

    def ordered(self) -> List[ValidationIssue]:
        per_document = [i for i in self.issues if i.is_blocking]
        cross = [i for i in self.cross_document if i.is_blocking]
        return per_document + cross + self.advisories

    def summary(self) -> Dict[str, Any]:
        counts = count_by_category(self.all_issues)
        return {
            "documents": len(self.documents),
            "excluded": len(self.excluded),
            "errors": len(self.errors),
            "advisories": len(self.advisories),
            "by_category": counts,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "summary": self.summary(),
            "excluded": [{"document": name, "reason": EXCLUDED_MARKER} for name in self.excluded],
            "issues": [i.model_dump(mode="json") for i in self.ordered()],
        }

    def lines(self) -> List[str]:
        rendered = [f"{name}: {EXCLUDED_MARKER}" for name in self.excluded]
        for issue in self.ordered():
            level = "warning" if not issue.is_blocking else issue.category.value
            rendered.append(f"[{level}] {issue}")
        return rendered


@dataclass
class SpecSet:
    """
    Parsed documents of one run plus their report. Cross-spec derivations
    take a SpecSet instead of loose specs so they can refuse inconsistent input.
    """
    lifecycles: List[LifecycleSpec] = field(default_factory=list)
    processes: List[ProcessSpec] = field(default_factory=list)
    system: Optional[SystemSpec] = None
    report: ValidationReport = field(default_factory=ValidationReport)
    sources: Dict[str, SourceDocument] = field(default_factory=dict)
    labels: Dict[str, str] = field(default_factory=dict)

    def require_consistent(self) -> "SpecSet":
        if not self.report.ok:
            errors = self.report.errors
            raise NotValidatedError(
                f"Spec set has {len(errors)} blocking issue(s); first: {errors[0]}"
            )
        return self

    def source_for(self, spec: Any) -> Optional[SourceDocument]:
        name = self.labels.get(spec_label(spec))
        return self.sources.get(name) if name else None


def validate_documents(
    sources: Iterable[SourceDocument],
    config: Optional[ValidationConfig] = None,
    field_lookup: Optional[EventFieldLookup] = None,
) -> SpecSet:
    """
    Runs the single-document pass over every source, then the cross-document
    pass over those that produced a spec.
    """
    config = config or ValidationConfig()
    spec_set = SpecSet()
    report = spec_set.report

    for source in sources:
        report.documents.append(source.name)
        spec_set.sources[source.name] = source
        result = parse_document(source.data, source.name, check_coverage=config.check_outcome_coverage)
        report.issues.extend(result.issues)
        if result.spec is None:
            logger.warning("%s: %s", source.name, EXCLUDED_MARKER)
            report.excluded.append(source.name)
            continue
        spec = result.spec
        label = spec_label(spec)
        if isinstance(spec, LifecycleSpec) and label in spec_set.labels:
            collector = IssueCollector(source.name)
            collector.add(
                IssueCode.DUPLICATE_DECIDER, ("decider",),
                f"Decider '{spec.decider}' is already specified by {spec_set.labels[label]}.",
                name=spec.decider,
            )
            report.cross_document.extend(collector.issues)
            continue
        if isinstance(spec, SystemSpec) and spec_set.system is not None:
            collector = IssueCollector(source.name)
            collector.add(
                IssueCode.DUPLICATE_SYSTEM, ("system",),
                f"Only one system document is allowed per run; "
                f"{spec_set.labels[spec_label(spec_set.system)]} is already loaded.",
                name=spec.system,
            )
            report.cross_document.extend(collector.issues)
            continue
        spec_set.labels.setdefault(label, source.name)
        if isinstance(spec, LifecycleSpec):
            spec_set.lifecycles.append(spec)
        elif isinstance(spec, ProcessSpec):
            spec_set.processes.append(spec)
        else:
            spec_set.system = spec

    report.cross_document.extend(
        cross_validate(
            spec_set.lifecycles,
            spec_set.processes,
            spec_set.system,
            field_lookup=field_lookup,
            config=config,
            document_names=spec_set.labels,
        )
    )
    logger.info(
        "Validated %d document(s): %d error(s), %d advisory(ies), %d excluded",
        len(report.documents), len(report.errors), len(report.advisories), len(report.excluded),
    )
    return spec_set
