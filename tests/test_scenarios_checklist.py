import pytest

from ubispec.derivation import FAILURE_BOILERPLATE, scenario_matrix, validation_checklist
from ubispec.render import checklist_markdown, scenarios_markdown
from ubispec.schema.lifecycle import parse_lifecycle


@pytest.fixture
def registry(raw):
    return parse_lifecycle(raw["registry.yaml"]).unwrap()


@pytest.fixture
def order(raw):
    return parse_lifecycle(raw["order.yaml"]).unwrap()


class TestScenarios:

    def test_one_scenario_per_row(self, registry):
        """SC-01: ids follow the command prefix and the row number."""
        scenarios = scenario_matrix(registry)["ApproveRegistry"]
        assert [s.id for s in scenarios] == ["APP-001", "APP-002", "APP-003", "APP-004", "APP-005"]
        assert [s.success for s in scenarios] == [True, True, False, False, False]

    def test_success_scenario(self, registry):
        """SC-02: success scenarios list emitted events and applicable assertions."""
        first, second = scenario_matrix(registry)["ApproveRegistry"][:2]
        assert first.given == (
            "Registry is submitted",
            "Reviewer is authorised",
            "No unresolved comments",
            "Has active registry",
        )
        assert first.expected == (
            "Emits RegistryApproved, PreviousRegistryArchived",
            "Registry is approved",
            "Previous is archived",
        )
        assert second.given[-1] == "Has active registry does not hold"
        assert second.expected == ("Emits RegistryApproved", "Registry is approved")

    def test_failure_scenario(self, registry):
        """SC-03: rejection scenarios are the same for every command."""
        third = scenario_matrix(registry)["ApproveRegistry"][2]
        assert third.given == (
            "Registry is submitted does not hold",
            "Reviewer is authorised",
            "No unresolved comments",
        )
        assert third.expected == (
            "Rejected with DecisionFailed [registry-is-submitted]",
            "No events are emitted",
            "State is unchanged",
        )
        assert third.failed == ("registry-is-submitted",)

    def test_all_fail_scenario(self, registry):
        scenarios = scenario_matrix(registry, include_all_fail=True)["ApproveRegistry"]
        assert scenarios[-1].id == "APP-006"
        assert scenarios[-1].given[0] == "Registry is submitted does not hold"
        assert len(scenarios[-1].failed) == 3

    def test_matrix_per_command(self, order):
        matrix = scenario_matrix(order)
        assert list(matrix) == ["PlaceOrder", "CancelOrder"]
        assert matrix["CancelOrder"][0].id == "CAN-001"
        assert matrix["CancelOrder"][0].expected == ("Emits OrderCancelled", "State is cancelled")

    def test_markdown(self, registry):
        text = scenarios_markdown(scenario_matrix(registry))
        assert "### ApproveRegistry" in text
        assert "| APP-003 | Registry is submitted does not hold<br>" in text


class TestChecklist:

    def test_sections(self, order):
        """CL-01: one section per decision; failure boilerplate is shared."""
        sections = validation_checklist(order)
        assert [s.command for s in sections] == ["PlaceOrder", "CancelOrder"]
        place = sections[0]
        assert place.actor == "Customer"
        assert place.preconditions == ("Order is draft", "Has items")
        assert place.on_success == (
            "OrderPlaced (always)",
            "HighValueOrderFlagged (when high-value)",
        )
        assert place.after == {
            "_always": ("State is placed",),
            "HighValueOrderFlagged": ("Requires manual review",),
        }
        assert place.on_failure == FAILURE_BOILERPLATE
        assert sections[1].on_failure == FAILURE_BOILERPLATE

    def test_flat_outcome(self, order):
        cancel = validation_checklist(order)[1]
        assert cancel.actor is None
        assert cancel.after == {"_always": ("State is cancelled",)}

    def test_markdown(self, order):
        text = checklist_markdown(validation_checklist(order))
        assert "### PlaceOrder (Customer)" in text
        assert "- [ ] HighValueOrderFlagged (when high-value)" in text
        assert "- When HighValueOrderFlagged" in text
        assert "- [ ] No domain events are emitted" in text
