# ubispec/schema/document.py

from typing import Any, Optional

from ubispec.errors import IssueCode, IssueCollector
from ubispec.schema.lifecycle import LifecycleSpec, parse_lifecycle
from ubispec.schema.process import ProcessSpec, parse_process
from ubispec.schema.result import ParseResult
from ubispec.schema.system import SystemSpec, parse_system
from ubispec.schema.versions import FORMAT_PATTERN, SpecKind, detect_kind, known_formats


def parse_document(document: Any, name: Optional[str] = None, check_coverage: bool = True) -> ParseResult:
    """
    Dispatches on the `ubispec:` field. A document whose kind cannot be
    determined yields a ParseResult with kind None and a structural issue.
    """
    kind = detect_kind(document)
    if kind == SpecKind.LIFECYCLE:
        return parse_lifecycle(document, name, check_coverage=check_coverage)
    if kind == SpecKind.PROCESS:
        return parse_process(document, name, check_coverage=check_coverage)
    if kind == SpecKind.SYSTEM:
        return parse_system(document, name)

    collector = IssueCollector(name)
    if not isinstance(document, dict):
        collector.add(IssueCode.TYPE_MISMATCH, (), "Document must be a mapping.")
    elif "ubispec" not in document:
        collector.add(IssueCode.MISSING_FIELD, ("ubispec",), "Required field 'ubispec' is missing.")
    elif not isinstance(document["ubispec"], str) or not FORMAT_PATTERN.match(document["ubispec"]):
        collector.add(
            IssueCode.PATTERN_MISMATCH, ("ubispec",),
            "`ubispec` must look like '<kind>/v<major>.<minor>'.", name=str(document["ubispec"]),
        )
    else:
        collector.add(
            IssueCode.UNSUPPORTED_VERSION, ("ubispec",),
            f"Unknown spec kind in '{document['ubispec']}'. Known: {', '.join(known_formats())}.",
            name=document["ubispec"],
        )
    return ParseResult(None, None, collector.issues, name)


def spec_label(spec: Any) -> str:
    """Identity used in reports: `lifecycle:Order`, `process:Fulfillment`, `system:Shop`."""
    if isinstance(spec, LifecycleSpec):
        return f"lifecycle:{spec.decider}"
    if isinstance(spec, ProcessSpec):
        return f"process:{spec.process}"
    if isinstance(spec, SystemSpec):
        return f"system:{spec.system}"
    raise TypeError(f"Not a spec document: {type(spec).__name__}")
