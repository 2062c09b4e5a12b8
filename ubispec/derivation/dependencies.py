# ubispec/derivation/dependencies.py
"""
Integration dependency manifest. Any predicate that reads `dm.ctx` or
`rm.ctx` declares data the runtime shell must resolve before the decision
or reaction runs. `# shell: service.call` comments name the resolver.
"""

import logging
import re
from dataclasses import asdict, dataclass
from typing import Dict, List, Mapping, Optional, Tuple, Union

from ubispec.derivation.guard import require_validated
from ubispec.errors import UbiSpecError, format_path
from ubispec.schema.document import spec_label
from ubispec.schema.lifecycle import LifecycleSpec
from ubispec.schema.process import ProcessSpec
from ubispec.schema.shared import DetailLevel, classify_detail_level, iter_predicates

logger = logging.getLogger(__name__)

CTX_PATH = re.compile(r"\b(?:dm|rm)\.ctx(?:\.[A-Za-z_$][\w$]*)*")
UNRESOLVED_SERVICE = "unresolved"


@dataclass(frozen=True)
class Dependency:
    document: str
    owner: str
    predicate: str
    section: str
    location: str
    paths: Tuple[str, ...]
    detail_level: DetailLevel
    hint: Optional[str] = None

    @property
    def service(self) -> str:
        if not self.hint:
            return UNRESOLVED_SERVICE
        return re.split(r"[.(\s]", self.hint, maxsplit=1)[0] or UNRESOLVED_SERVICE


@dataclass(frozen=True)
class DependencyManifest:
    document: str
    entries: Tuple[Dependency, ...]

    def grouped(self) -> Dict[str, Dict[str, List[Dependency]]]:
        """owner -> service -> entries, in declaration order."""
        groups: Dict[str, Dict[str, List[Dependency]]] = {}
        for entry in self.entries:
            groups.setdefault(entry.owner, {}).setdefault(entry.service, []).append(entry)
        return groups

    @property
    def services(self) -> List[str]:
        return list(dict.fromkeys(e.service for e in self.entries))

    def to_dict(self) -> Dict:
        return {
            "document": self.document,
            "services": self.services,
            "grouped": {
                owner: {
                    service: [{**asdict(e), "service": e.service} for e in entries]
                    for service, entries in by_service.items()
                }
                for owner, by_service in self.grouped().items()
            },
        }


def _units(spec: Union[LifecycleSpec, ProcessSpec]):
    if isinstance(spec, LifecycleSpec):
        for i, decision in enumerate(spec.decisions):
            yield ("lifecycle", i), decision.command, decision
    else:
        for i, reaction in enumerate(spec.reactions):
            yield ("reactions", i), reaction.label, reaction


def dependency_manifest(
    spec: Union[LifecycleSpec, ProcessSpec],
    hints: Optional[Mapping[str, str]] = None,
    locations: Optional[Mapping[str, str]] = None,
) -> DependencyManifest:
    """
    `hints` maps predicate names to `# shell:` comments and `locations`
    maps entry locations to them, as extracted by ubispec.loader. A hint
    found by location wins over one found by name. A bare reference into
    `common` is scanned through its resolved value. Scope-only predicates
    and predicates without a hint keep `hint=None`.
    """
    require_validated(spec)
    if not isinstance(spec, (LifecycleSpec, ProcessSpec)):
        raise UbiSpecError(f"{spec_label(spec)}: manifest needs a lifecycle or process spec")
    hints = hints or {}
    locations = locations or {}
    document = spec_label(spec)
    entries: List[Dependency] = []
    for base, owner, unit in _units(spec):
        for site in iter_predicates(unit):
            value = site.entry.resolve(spec.common)
            if not value:
                continue
            paths = tuple(dict.fromkeys(m.group(0) for m in CTX_PATH.finditer(value)))
            if not paths:
                continue
            level = classify_detail_level(value)
            location = format_path((*base, *site.path))
            hint = None
            # scope annotations record the dependency without a resolver
            if level != DetailLevel.SCOPE:
                hint = locations.get(location, hints.get(site.entry.name))
            entries.append(Dependency(
                document=document,
                owner=owner,
                predicate=site.entry.name,
                section=site.section,
                location=location,
                paths=paths,
                detail_level=level,
                hint=hint,
            ))
    logger.debug("Dependency manifest %s: %d entr(ies)", document, len(entries))
    return DependencyManifest(document, tuple(entries))
