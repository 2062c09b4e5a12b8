# ubispec/derivation/topology.py
"""
Topology graphs as plain node/edge records. Rendering to Mermaid or DOT
lives in ubispec.render.
"""

import logging
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ubispec.derivation.guard import require_spec_set, require_validated
from ubispec.schema.process import AllTrigger, TriggerType
from ubispec.schema.system import SystemSpec
from ubispec.validation.report import SpecSet

logger = logging.getLogger(__name__)


class NodeKind(str, Enum):
    DECIDER = "decider"
    PROCESS = "process"
    JOIN = "join"
    MODULE = "module"


class EdgeKind(str, Enum):
    EVENT = "event"
    COMMAND = "command"
    CORRELATE = "correlate"
    FLOW = "flow"


@dataclass(frozen=True)
class Node:
    id: str
    kind: NodeKind
    label: str


@dataclass(frozen=True)
class Edge:
    source: str
    target: str
    label: str
    kind: EdgeKind
    conditional: bool = False
    policy: bool = False


@dataclass
class TopologyGraph:
    nodes: List[Node] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)

    def add_node(self, node_id: str, kind: NodeKind, label: Optional[str] = None) -> None:
        if not any(n.id == node_id for n in self.nodes):
            self.nodes.append(Node(node_id, kind, label or node_id))

    def add_edge(self, edge: Edge) -> None:
        if edge not in self.edges:
            self.edges.append(edge)

    def adjacency(self) -> Dict[str, List[Dict[str, str]]]:
        result: Dict[str, List[Dict[str, str]]] = {n.id: [] for n in self.nodes}
        for edge in self.edges:
            result[edge.source].append({"target": edge.target, "label": edge.label})
        return result

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [{**asdict(n), "kind": n.kind.value} for n in self.nodes],
            "edges": [{**asdict(e), "kind": e.kind.value} for e in self.edges],
        }


def process_topology(spec_set: SpecSet) -> TopologyGraph:
    """
    Nodes: every decider in reacts_to/emits_to and every process manager.
    Edges: decider -event-> process for triggers and process -command-> decider
    for Then entries. All triggers converge on a join node whose edge to the
    process carries the correlate field.
    """
    require_spec_set(spec_set)
    graph = TopologyGraph()
    for process in spec_set.processes:
        for decider in process.deciders:
            graph.add_node(decider, NodeKind.DECIDER)
        graph.add_node(process.process, NodeKind.PROCESS)

    for process in spec_set.processes:
        for r, reaction in enumerate(process.reactions):
            trigger = reaction.when
            if isinstance(trigger, AllTrigger):
                join_id = f"{process.process}__join{r + 1}"
                graph.add_node(join_id, NodeKind.JOIN, trigger.label)
                for event, source in trigger.sourced_events:
                    graph.add_edge(Edge(source, join_id, event, EdgeKind.EVENT))
                graph.add_edge(Edge(join_id, process.process, trigger.correlate, EdgeKind.CORRELATE))
            else:
                for event, source in trigger.sourced_events:
                    graph.add_edge(Edge(source, process.process, event, EdgeKind.EVENT))
            policy = reaction.trigger_type == TriggerType.POLICY
            for command in reaction.then:
                graph.add_edge(Edge(
                    process.process, command.target, command.command, EdgeKind.COMMAND,
                    conditional=bool(command.conditions), policy=policy,
                ))
    logger.debug("Process topology: %d node(s), %d edge(s)", len(graph.nodes), len(graph.edges))
    return graph


def system_topology(system: SystemSpec) -> TopologyGraph:
    """Module map: one node per module, one edge per flow labelled `Event -> Command`."""
    require_validated(system)
    graph = TopologyGraph()
    for module in system.modules:
        graph.add_node(module.name, NodeKind.MODULE, f"{module.name} ({module.context})")
    for flow in system.flows:
        graph.add_edge(Edge(
            flow.source_module, flow.target_module, flow.label, EdgeKind.FLOW,
            policy=flow.trigger_type == TriggerType.POLICY,
        ))
    return graph
