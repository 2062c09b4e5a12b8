# ubispec/schema/versions.py
"""
Format registry.

The `ubispec:` field is a literal "<kind>/v<major>.<minor>". Minor bumps only
add optional fields, so a document declaring an older minor of a registered
major is accepted by the newest parser for that major.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ubispec.errors import IssueCode, IssueCollector, PathElement

FORMAT_PATTERN = re.compile(r"^(?P<kind>[a-z]+)/v(?P<major>\d+)\.(?P<minor>\d+)$")


class SpecKind(str, Enum):
    LIFECYCLE = "lifecycle"
    PROCESS = "process"
    SYSTEM = "system"


@dataclass(frozen=True)
class FormatVersion:
    major: int
    minor: int
    stable: bool

    @property
    def label(self) -> str:
        return f"v{self.major}.{self.minor}"


@dataclass(frozen=True)
class FormatSpec:
    kind: SpecKind
    description: str
    versions: Tuple[FormatVersion, ...]
    export: str

    @property
    def latest_stable(self) -> Optional[FormatVersion]:
        stable = [v for v in self.versions if v.stable]
        return max(stable, key=lambda v: (v.major, v.minor)) if stable else None

    def supports(self, major: int, minor: int) -> bool:
        same_major = [v.minor for v in self.versions if v.major == major]
        return bool(same_major) and minor <= max(same_major)


FORMATS: Dict[SpecKind, FormatSpec] = {
    SpecKind.LIFECYCLE: FormatSpec(
        kind=SpecKind.LIFECYCLE,
        description="Behavioural contract of a single aggregate: one decision per command.",
        versions=(FormatVersion(1, 0, stable=True), FormatVersion(1, 1, stable=False)),
        export="LifecycleSpec",
    ),
    SpecKind.PROCESS: FormatSpec(
        kind=SpecKind.PROCESS,
        description="Cross-aggregate coordination: event-triggered reactions dispatching commands.",
        versions=(FormatVersion(1, 0, stable=True), FormatVersion(1, 1, stable=False)),
        export="ProcessSpec",
    ),
    SpecKind.SYSTEM: FormatSpec(
        kind=SpecKind.SYSTEM,
        description="System map: modules, their bounded contexts and cross-module flows.",
        versions=(FormatVersion(1, 0, stable=True),),
        export="SystemSpec",
    ),
}


def parse_format(value: str) -> Tuple[str, int, int]:
    match = FORMAT_PATTERN.match(value)
    if not match:
        raise ValueError(f"'{value}' is not of the form '<kind>/v<major>.<minor>'")
    return match.group("kind"), int(match.group("major")), int(match.group("minor"))


def detect_kind(document: Any) -> Optional[SpecKind]:
    if not isinstance(document, dict) or not isinstance(document.get("ubispec"), str):
        return None
    match = FORMAT_PATTERN.match(document["ubispec"])
    if not match:
        return None
    try:
        return SpecKind(match.group("kind"))
    except ValueError:
        return None


def read_format(
    collector: IssueCollector, value: Any, expected: SpecKind, path: Sequence[PathElement]
) -> Optional[str]:
    if not isinstance(value, str):
        collector.add(IssueCode.TYPE_MISMATCH, path, "`ubispec` must be a string like 'lifecycle/v1.0'.")
        return None
    try:
        kind, major, minor = parse_format(value)
    except ValueError as e:
        collector.add(IssueCode.PATTERN_MISMATCH, path, str(e), name=value)
        return None
    if kind != expected.value:
        collector.add(
            IssueCode.TYPE_MISMATCH, path,
            f"Document declares '{kind}' but was parsed as '{expected.value}'.", name=value,
        )
        return None
    if not FORMATS[expected].supports(major, minor):
        known = ", ".join(f"{expected.value}/{v.label}" for v in FORMATS[expected].versions)
        collector.add(
            IssueCode.UNSUPPORTED_VERSION, path,
            f"Unsupported format version '{value}'. Known: {known}.", name=value,
        )
        return None
    return value


def spec_index() -> Dict[str, Any]:
    """Machine-readable index of every registered format and version."""
    specs: Dict[str, Any] = {}
    for kind, fmt in FORMATS.items():
        latest = fmt.latest_stable
        specs[kind.value] = {
            "description": fmt.description,
            "export": fmt.export,
            "latest": latest.label if latest else None,
            "versions": {
                v.label: {
                    "format": f"{kind.value}/{v.label}",
                    "status": "stable" if v.stable else "unstable",
                }
                for v in fmt.versions
            },
        }
    return {"specs": specs}


def known_formats() -> List[str]:
    return [f"{kind.value}/{v.label}" for kind, fmt in FORMATS.items() for v in fmt.versions]
