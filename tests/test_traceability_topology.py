import pytest

from ubispec.derivation import (
    EdgeKind,
    NodeKind,
    constraint_usage,
    event_assertions,
    forward_trace,
    impact_analysis,
    process_topology,
    system_topology,
)
from ubispec.errors import NotValidatedError
from ubispec.render import topology_dot, topology_mermaid, trace_markdown


class TestForwardTrace:

    def test_command_to_dispatch(self, shop_set):
        """TR-01: each event is followed through every reaction that consumes it."""
        rows = forward_trace(shop_set)
        placed = [r for r in rows if r.event == "OrderPlaced"]
        assert [(r.process, r.reaction, r.dispatched) for r in placed] == [
            ("Fulfillment", "all(OrderPlaced, PaymentConfirmed)", "CreateShipment -> Shipment"),
            ("Fulfillment", "any(OrderPlaced, OrderCancelled)", "CancelOrder -> Order"),
        ]
        assert len(rows) == 6

    def test_unconsumed_event_keeps_a_row(self, shop_set):
        rows = [r for r in forward_trace(shop_set) if r.event == "ShipmentCreated"]
        assert len(rows) == 1
        assert rows[0].command == "CreateShipment"
        assert rows[0].process is None

    def test_refuses_inconsistent_set(self, make_set, sample):
        """TR-02: cross-spec derivations need a set without blocking issues."""
        spec_set = make_set({"fulfillment.yaml": sample["fulfillment.yaml"]})
        with pytest.raises(NotValidatedError):
            forward_trace(spec_set)

    def test_markdown(self, shop_set):
        text = trace_markdown(forward_trace(shop_set))
        assert "| Order | PlaceOrder | HighValueOrderFlagged |  |  |  |" in text


class TestReverseTrace:

    def test_constraint_usage(self, shop_set):
        usage = constraint_usage(shop_set)
        assert [(u.document, u.unit, u.location) for u in usage["order-is-draft"]] == [
            ("lifecycle:Order", "PlaceOrder", "lifecycle[0].And[0]"),
            ("lifecycle:Order", "CancelOrder", "lifecycle[1].And[0]"),
        ]
        assert usage["order-known"][0].unit == "any(OrderPlaced, OrderCancelled)"

    def test_event_assertions(self, shop_set):
        assert event_assertions(shop_set) == {
            "HighValueOrderFlagged": ["requires-manual-review"],
            "CancelOrder -> Order": ["cancellation-sent"],
        }

    def test_impact_of_common_predicate(self, shop_set):
        """TR-03: impact analysis finds the definition and every use."""
        hits = impact_analysis(shop_set, "order-is-draft")
        assert [(h.location, h.role) for h in hits] == [
            ("common.order-is-draft", "common"),
            ("lifecycle[0].And[0]", "constraint"),
            ("lifecycle[1].And[0]", "constraint"),
        ]

    def test_impact_of_event(self, shop_set):
        hits = impact_analysis(shop_set, "OrderPlaced")
        assert [(h.document, h.location, h.role) for h in hits] == [
            ("lifecycle:Order", "lifecycle[0].Then[0]", "then"),
            ("process:Fulfillment", "reactions[0].When", "trigger"),
            ("process:Fulfillment", "reactions[1].When", "trigger"),
        ]

    def test_impact_of_decider(self, shop_set):
        roles = [h.role for h in impact_analysis(shop_set, "Shipment")]
        assert roles == ["decider", "then"]


class TestTopology:

    def test_process_graph(self, shop_set):
        """TP-01: all triggers converge on a join node labelled by the correlate field."""
        graph = process_topology(shop_set)
        assert [(n.id, n.kind) for n in graph.nodes] == [
            ("Order", NodeKind.DECIDER),
            ("Payment", NodeKind.DECIDER),
            ("Shipment", NodeKind.DECIDER),
            ("Fulfillment", NodeKind.PROCESS),
            ("Fulfillment__join1", NodeKind.JOIN),
        ]
        correlate = [e for e in graph.edges if e.kind == EdgeKind.CORRELATE]
        assert [(e.source, e.target, e.label) for e in correlate] == [("Fulfillment__join1", "Fulfillment", "orderId")]
        assert len(graph.edges) == 7

        cancel = next(e for e in graph.edges if e.label == "CancelOrder")
        assert cancel.conditional and cancel.policy
        assert {e["target"] for e in graph.adjacency()["Order"]} == {"Fulfillment__join1", "Fulfillment"}

    def test_mermaid(self, shop_set):
        text = topology_mermaid(process_topology(shop_set))
        assert text.startswith("flowchart LR\n")
        assert '  Fulfillment__join1{"all(OrderPlaced, PaymentConfirmed)"}' in text
        assert '  Fulfillment__join1 -->|"correlate: orderId"| Fulfillment' in text
        assert '  Fulfillment -.->|"CancelOrder"| Order' in text

    def test_dot(self, shop_set):
        text = topology_dot(process_topology(shop_set), "shop")
        assert text.startswith('digraph "shop" {')
        assert '"Fulfillment__join1" [label="all(OrderPlaced, PaymentConfirmed)", shape=diamond];' in text
        assert '"Fulfillment" -> "Order" [label="CancelOrder", style=dashed];' in text

    def test_system_graph(self, make_set, sample):
        spec_set = make_set({name: sample[name] for name in ("order.yaml", "payment.yaml", "shipment.yaml", "shop.yaml")})
        graph = system_topology(spec_set.system)
        assert [n.label for n in graph.nodes] == ["Sales (Ordering)", "Logistics (Delivery)"]
        edge = graph.edges[0]
        assert (edge.source, edge.target, edge.label, edge.kind) == (
            "Sales", "Logistics", "OrderPlaced -> CreateShipment", EdgeKind.FLOW,
        )
        data = graph.to_dict()
        assert data["nodes"][0]["kind"] == "module"
