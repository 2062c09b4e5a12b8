import pytest

from ubispec.errors import IssueCode
from ubispec.schema.process import (
    AllTrigger,
    AnyTrigger,
    ConditionalCommand,
    PayloadForm,
    ProcessSpec,
    ScalarTrigger,
    TriggerType,
    UnconditionalCommand,
    parse_process,
)


def scalar_reaction(**overrides):
    reaction = {
        "When": "OrderPlaced",
        "From": "Order",
        "Then": "CreateShipment -> Shipment",
        "Outcome": ["shipment-requested"],
    }
    reaction.update(overrides)
    return reaction


class TestProcessParsing:

    def test_valid_document(self, raw):
        """PR-01: the Fulfillment sample parses; only the all-conditional advisory remains."""
        result = parse_process(raw["fulfillment.yaml"], "fulfillment.yaml")
        assert result.codes() == [IssueCode.POTENTIAL_EMPTY_EMISSION.value]
        spec = result.unwrap()
        assert isinstance(spec, ProcessSpec)
        assert spec.is_validated
        assert spec.deciders == ["Order", "Payment", "Shipment"]
        assert not spec.is_stateful

    def test_all_trigger(self, raw):
        """PR-02: all triggers keep per-event sources and address payloads by name."""
        reaction = parse_process(raw["fulfillment.yaml"]).unwrap().reactions[0]
        trigger = reaction.when
        assert isinstance(trigger, AllTrigger)
        assert trigger.correlate == "orderId"
        assert trigger.sourced_events == [("OrderPlaced", "Order"), ("PaymentConfirmed", "Payment")]
        assert trigger.payload_form == PayloadForm.KEYED
        assert trigger.accessors == {
            "OrderPlaced": "rm.events.OrderPlaced",
            "PaymentConfirmed": "rm.events.PaymentConfirmed",
        }
        assert isinstance(reaction.then[0], UnconditionalCommand)
        assert reaction.then[0].key == "CreateShipment -> Shipment"

    def test_any_trigger(self, raw):
        """PR-03: any triggers share one source and yield a discriminated union."""
        reaction = parse_process(raw["fulfillment.yaml"]).unwrap().reactions[1]
        trigger = reaction.when
        assert isinstance(trigger, AnyTrigger)
        assert trigger.sourced_events == [("OrderPlaced", "Order"), ("OrderCancelled", "Order")]
        assert trigger.payload_form == PayloadForm.DISCRIMINATED_UNION
        assert set(trigger.accessors.values()) == {"rm.event"}
        assert reaction.trigger_type == TriggerType.POLICY
        assert reaction.actor == "Support"
        assert isinstance(reaction.then[0], ConditionalCommand)
        assert reaction.label == "any(OrderPlaced, OrderCancelled)"

    def test_scalar_trigger(self, raw):
        doc = raw["fulfillment.yaml"]
        doc["reactions"] = [scalar_reaction()]
        reaction = parse_process(doc).unwrap().reactions[0]
        assert isinstance(reaction.when, ScalarTrigger)
        assert reaction.when.payload_form == PayloadForm.CONCRETE
        assert reaction.then_scalar

    def test_bare_all_event_inherits_from(self, raw):
        doc = raw["fulfillment.yaml"]
        doc["reactions"][0]["When"]["all"][1] = "PaymentConfirmed"
        doc["reactions"][0]["From"] = "Payment"
        trigger = parse_process(doc).unwrap().reactions[0].when
        assert trigger.events[1].source == "Payment"
        assert not trigger.events[1].explicit
        assert trigger.to_document() == {"all": ["OrderPlaced from Order", "PaymentConfirmed"]}


class TestTriggerErrors:

    def test_all_requires_correlate(self, raw):
        """PR-04: removing correlate fails with MissingCorrelate; adding it back clears it."""
        doc = raw["fulfillment.yaml"]
        del doc["reactions"][0]["correlate"]
        result = parse_process(doc)
        assert IssueCode.MISSING_CORRELATE.value in result.codes()
        assert result.spec is None

        doc["reactions"][0]["correlate"] = "orderId"
        assert IssueCode.MISSING_CORRELATE.value not in parse_process(doc).codes()

    def test_scalar_requires_from(self, raw):
        doc = raw["fulfillment.yaml"]
        reaction = scalar_reaction()
        del reaction["From"]
        doc["reactions"] = [reaction]
        result = parse_process(doc)
        issue = next(i for i in result.issues if i.code == IssueCode.MISSING_SOURCE)
        assert issue.location == "reactions[0].From"

    def test_any_needs_two_events(self, raw):
        doc = raw["fulfillment.yaml"]
        doc["reactions"][1]["When"] = {"any": ["OrderPlaced"]}
        assert IssueCode.TOO_FEW_TRIGGER_EVENTS.value in parse_process(doc).codes()

    def test_duplicate_trigger_event(self, raw):
        doc = raw["fulfillment.yaml"]
        doc["reactions"][1]["When"] = {"any": ["OrderPlaced", "OrderPlaced"]}
        result = parse_process(doc)
        issue = next(i for i in result.issues if i.code == IssueCode.DUPLICATE_TRIGGER_EVENT)
        assert issue.name == "OrderPlaced"

    def test_unknown_trigger_shape(self, raw):
        doc = raw["fulfillment.yaml"]
        doc["reactions"][1]["When"] = {"either": ["OrderPlaced", "OrderCancelled"]}
        assert IssueCode.TYPE_MISMATCH.value in parse_process(doc).codes()

    def test_correlate_without_all_is_advisory(self, raw):
        doc = raw["fulfillment.yaml"]
        doc["reactions"] = [scalar_reaction(correlate="orderId")]
        result = parse_process(doc)
        assert result.codes() == [IssueCode.UNUSED_CORRELATE.value]
        assert result.ok


class TestCommandsAndDeclarations:

    def test_target_pattern(self, raw):
        """PR-05: Then entries must read `Command -> Decider`."""
        doc = raw["fulfillment.yaml"]
        doc["reactions"][0]["Then"] = ["CreateShipment->Shipment"]
        result = parse_process(doc)
        issue = next(i for i in result.issues if i.code == IssueCode.PATTERN_MISMATCH)
        assert issue.name == "CreateShipment->Shipment"

    def test_undeclared_target(self, raw):
        """PR-06: a dispatch to a decider missing from emits_to."""
        doc = raw["fulfillment.yaml"]
        doc["reactions"][0]["Then"].append("IssueInvoice -> Billing")
        result = parse_process(doc)
        issue = next(i for i in result.issues if i.code == IssueCode.UNDECLARED_TARGET)
        assert issue.name == "Billing"
        assert issue.location == "reactions[0].Then[1]"
        assert result.spec is not None
        assert not result.ok

    def test_undeclared_source(self, raw):
        doc = raw["fulfillment.yaml"]
        doc["reacts_to"] = ["Order"]
        result = parse_process(doc)
        issue = next(i for i in result.issues if i.code == IssueCode.UNDECLARED_SOURCE)
        assert issue.name == "Payment"

    def test_policy_requires_actor(self, raw):
        doc = raw["fulfillment.yaml"]
        del doc["reactions"][1]["actor"]
        assert IssueCode.MISSING_ACTOR.value in parse_process(doc).codes()

    def test_invalid_trigger_type(self, raw):
        doc = raw["fulfillment.yaml"]
        doc["reactions"][1]["trigger"] = "manual"
        result = parse_process(doc)
        issue = next(i for i in result.issues if i.code == IssueCode.INVALID_CHOICE)
        assert issue.name == "manual"

    def test_outcome_key_suggestion(self, raw):
        """PR-07: a key that only differs in spacing gets a suggestion."""
        doc = raw["fulfillment.yaml"]
        outcome = doc["reactions"][1]["Outcome"]
        outcome["CancelOrder->Order"] = outcome.pop("CancelOrder -> Order")
        result = parse_process(doc)
        issue = next(i for i in result.issues if i.code == IssueCode.OUTCOME_KEY_MISMATCH)
        assert "Did you mean 'CancelOrder -> Order'?" in issue.message

    @pytest.mark.parametrize("field", ["reacts_to", "emits_to"])
    def test_empty_decider_lists(self, raw, field):
        doc = raw["fulfillment.yaml"]
        doc[field] = []
        assert IssueCode.EMPTY_LIST.value in parse_process(doc).codes()

    def test_state_fields(self, raw):
        doc = raw["fulfillment.yaml"]
        doc["state"] = {"shipmentId": "string | null"}
        spec = parse_process(doc).unwrap()
        assert spec.is_stateful
        assert spec.to_document()["state"] == {"shipmentId": "string | null"}
