# ubispec/schema/system.py
"""
System spec: modules, the bounded contexts they implement and the
cross-module flows between them. Coordination inside one module belongs in a
process spec, so a flow must join two different modules.
"""

import logging
from typing import Any, Dict, List, Optional, Set, Tuple

from pydantic import BaseModel, Field

from ubispec.errors import IssueCode, IssueCollector
from ubispec.schema.process import TriggerType
from ubispec.schema.result import ParseResult
from ubispec.schema.shared import (
    SPEC_MODEL_CONFIG,
    IdentifierKind,
    SpecDocument,
    check_fields,
    read_identifier,
    read_identifier_list,
    read_string,
)
from ubispec.schema.versions import SpecKind, read_format

logger = logging.getLogger(__name__)


class Module(BaseModel):
    name: str = Field(description="Module name. PascalCase.")
    context: str = Field(description="Bounded context the module implements.")
    deciders: Tuple[str, ...] = Field(description="Deciders owned by the module.")
    description: Optional[str] = Field(None, description="Free text.")

    model_config = SPEC_MODEL_CONFIG

    def to_document(self) -> Dict[str, Any]:
        doc: Dict[str, Any] = {"name": self.name, "context": self.context, "deciders": list(self.deciders)}
        if self.description is not None:
            doc["description"] = self.description
        return doc


class Flow(BaseModel):
    event: str = Field(description="Event emitted in the source module.")
    source_module: str = Field(alias="from", description="Module whose decider emits `event`.")
    triggers: str = Field(description="Command handled in the target module.")
    target_module: str = Field(alias="on", description="Module whose decider handles `triggers`.")
    trigger_type: TriggerType = Field(
        TriggerType.AUTOMATED, alias="trigger", description="`automated` (default) or `policy`."
    )
    actor: Optional[str] = Field(None, description="Role fulfilling a policy flow. Required for policy.")

    model_config = SPEC_MODEL_CONFIG

    @property
    def label(self) -> str:
        return f"{self.event} -> {self.triggers}"

    def to_document(self) -> Dict[str, Any]:
        doc: Dict[str, Any] = {
            "event": self.event,
            "from": self.source_module,
            "triggers": self.triggers,
            "on": self.target_module,
        }
        if self.trigger_type != TriggerType.AUTOMATED:
            doc["trigger"] = self.trigger_type.value
        if self.actor is not None:
            doc["actor"] = self.actor
        return doc


class SystemSpec(SpecDocument):
    """Module map tying lifecycle and process specs together."""
    format: str = Field(alias="ubispec", description="Format identifier and version, `system/v1.0`.")
    system: str = Field(description="System name. PascalCase.")
    description: Optional[str] = Field(None, description="Free text.")
    modules: Tuple[Module, ...] = Field(description="Modules. Names are unique.")
    flows: Tuple[Flow, ...] = Field((), description="Cross-module flows. Empty by default.")

    def module(self, name: str) -> Optional[Module]:
        for module in self.modules:
            if module.name == name:
                return module
        return None

    @property
    def deciders(self) -> List[str]:
        return list(dict.fromkeys(d for m in self.modules for d in m.deciders))

    def module_of(self, decider: str) -> Optional[str]:
        for module in self.modules:
            if decider in module.deciders:
                return module.name
        return None

    def to_document(self) -> Dict[str, Any]:
        doc: Dict[str, Any] = {"ubispec": self.format, "system": self.system}
        if self.description is not None:
            doc["description"] = self.description
        doc["modules"] = [m.to_document() for m in self.modules]
        if self.flows:
            doc["flows"] = [f.to_document() for f in self.flows]
        return doc


_DOC_REQUIRED = ("ubispec", "system", "modules")
_DOC_OPTIONAL = ("description", "flows")
_MODULE_REQUIRED = ("name", "context", "deciders")
_MODULE_OPTIONAL = ("description",)
_FLOW_REQUIRED = ("event", "from", "triggers", "on")
_FLOW_OPTIONAL = ("trigger", "actor")


def _read_module(collector: IssueCollector, value: Any, path) -> Optional[Module]:
    if not isinstance(value, dict):
        collector.add(IssueCode.TYPE_MISMATCH, path, "Module must be a mapping.")
        return None
    check_fields(collector, value, _MODULE_REQUIRED, _MODULE_OPTIONAL, path)
    name = read_identifier(collector, IdentifierKind.PASCAL, value["name"], (*path, "name")) if "name" in value else None
    context = read_identifier(collector, IdentifierKind.PASCAL, value["context"], (*path, "context")) if "context" in value else None
    deciders = read_identifier_list(collector, IdentifierKind.PASCAL, value["deciders"], (*path, "deciders")) if "deciders" in value else None
    description = None
    if "description" in value:
        description = read_string(collector, value["description"], (*path, "description"))
        if description is None:
            return None
    if name is None or context is None or deciders is None:
        return None
    return Module(name=name, context=context, deciders=deciders, description=description)


def _read_flow(collector: IssueCollector, value: Any, path, modules: Set[str]) -> Optional[Flow]:
    if not isinstance(value, dict):
        collector.add(IssueCode.TYPE_MISMATCH, path, "Flow must be a mapping.")
        return None
    check_fields(collector, value, _FLOW_REQUIRED, _FLOW_OPTIONAL, path)
    event = read_identifier(collector, IdentifierKind.PASCAL, value["event"], (*path, "event")) if "event" in value else None
    source = read_identifier(collector, IdentifierKind.PASCAL, value["from"], (*path, "from")) if "from" in value else None
    triggers = read_identifier(collector, IdentifierKind.PASCAL, value["triggers"], (*path, "triggers")) if "triggers" in value else None
    target = read_identifier(collector, IdentifierKind.PASCAL, value["on"], (*path, "on")) if "on" in value else None

    failed = False
    trigger_type = TriggerType.AUTOMATED
    if "trigger" in value:
        try:
            trigger_type = TriggerType(value["trigger"])
        except ValueError:
            collector.add(
                IssueCode.INVALID_CHOICE, (*path, "trigger"),
                f"trigger must be 'automated' or 'policy', got {value['trigger']!r}.", name=str(value["trigger"]),
            )
            failed = True
    actor = None
    if "actor" in value:
        actor = read_string(collector, value["actor"], (*path, "actor"))
        failed |= actor is None
    if trigger_type == TriggerType.POLICY and not (actor and actor.strip()):
        collector.add(IssueCode.MISSING_ACTOR, (*path, "actor"), "Policy flows require a non-empty `actor`.")

    for key, module in (("from", source), ("on", target)):
        if module is not None and module not in modules:
            collector.add(
                IssueCode.UNDECLARED_MODULE, (*path, key),
                f"Module '{module}' is not declared in `modules`.", name=module,
            )
    if source is not None and source == target:
        collector.add(
            IssueCode.SELF_FLOW, path,
            f"Flow from '{source}' to itself. Coordinate inside a module with a process spec.", name=source,
        )

    if failed or None in (event, source, triggers, target):
        return None
    return Flow(
        event=event,
        source_module=source,
        triggers=triggers,
        target_module=target,
        trigger_type=trigger_type,
        actor=actor,
    )


def parse_system(document: Any, name: Optional[str] = None) -> ParseResult:
    """Parses and validates one system document, collecting every issue."""
    collector = IssueCollector(name)
    if not isinstance(document, dict):
        collector.add(IssueCode.TYPE_MISMATCH, (), "System document must be a mapping.")
        return ParseResult(SpecKind.SYSTEM, None, collector.issues, name)
    check_fields(collector, document, _DOC_REQUIRED, _DOC_OPTIONAL, ())

    fmt = read_format(collector, document["ubispec"], SpecKind.SYSTEM, ("ubispec",)) if "ubispec" in document else None
    system = read_identifier(collector, IdentifierKind.PASCAL, document["system"], ("system",)) if "system" in document else None
    description = None
    if "description" in document:
        description = read_string(collector, document["description"], ("description",))

    modules: List[Optional[Module]] = []
    raw_modules = document.get("modules")
    if "modules" in document:
        if not isinstance(raw_modules, list):
            collector.add(IssueCode.TYPE_MISMATCH, ("modules",), "`modules` must be a list.")
            raw_modules = None
        elif not raw_modules:
            collector.add(IssueCode.EMPTY_LIST, ("modules",), "`modules` must declare at least one module.")
    seen: Dict[str, int] = {}
    for i, raw in enumerate(raw_modules or []):
        module = _read_module(collector, raw, ("modules", i))
        modules.append(module)
        if module is None:
            continue
        if module.name in seen:
            collector.add(
                IssueCode.DUPLICATE_MODULE, ("modules", i, "name"),
                f"Module '{module.name}' is already declared at modules[{seen[module.name]}].", name=module.name,
            )
        else:
            seen[module.name] = i

    flows: List[Optional[Flow]] = []
    raw_flows = document.get("flows")
    if raw_flows is not None and not isinstance(raw_flows, list):
        collector.add(IssueCode.TYPE_MISMATCH, ("flows",), "`flows` must be a list.")
        raw_flows = None
    for i, raw in enumerate(raw_flows or []):
        flows.append(_read_flow(collector, raw, ("flows", i), set(seen)))

    spec = None
    if not collector.has_structural and fmt and system and modules and all(
        m is not None for m in modules
    ) and all(f is not None for f in flows) and ("description" not in document or description is not None):
        spec = SystemSpec(
            format=fmt,
            system=system,
            description=description,
            modules=tuple(modules),
            flows=tuple(flows),
        )
        if not collector.has_blocking:
            spec._mark_validated()

    logger.debug(
        "Parsed system %s: %d issue(s), validated=%s",
        name or system, len(collector.issues), bool(spec and spec.is_validated),
    )
    return ParseResult(SpecKind.SYSTEM, spec, collector.issues, name)
