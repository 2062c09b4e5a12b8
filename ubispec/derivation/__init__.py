from .guard import require_spec_set, require_validated
from .decision_table import (
    DECISION_FAILED,
    ConditionColumn,
    DecisionRow,
    DecisionTable,
    RowKind,
    build_decision_table,
    decision_table,
    decision_tables,
)
from .scenarios import Scenario, decision_scenarios, scenario_matrix
from .checklist import FAILURE_BOILERPLATE, ChecklistSection, validation_checklist
from .traceability import ImpactHit, TraceRow, Usage, constraint_usage, event_assertions, forward_trace, impact_analysis
from .topology import Edge, EdgeKind, Node, NodeKind, TopologyGraph, process_topology, system_topology
from .dependencies import Dependency, DependencyManifest, dependency_manifest
from .catalog import CatalogRow, command_catalog

__all__ = [
    "require_spec_set",
    "require_validated",
    "DECISION_FAILED",
    "ConditionColumn",
    "DecisionRow",
    "DecisionTable",
    "RowKind",
    "build_decision_table",
    "decision_table",
    "decision_tables",
    "Scenario",
    "decision_scenarios",
    "scenario_matrix",
    "FAILURE_BOILERPLATE",
    "ChecklistSection",
    "validation_checklist",
    "ImpactHit",
    "TraceRow",
    "Usage",
    "constraint_usage",
    "event_assertions",
    "forward_trace",
    "impact_analysis",
    "Edge",
    "EdgeKind",
    "Node",
    "NodeKind",
    "TopologyGraph",
    "process_topology",
    "system_topology",
    "Dependency",
    "DependencyManifest",
    "dependency_manifest",
    "CatalogRow",
    "command_catalog",
]
