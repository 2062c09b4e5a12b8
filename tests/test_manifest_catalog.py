import pytest

from ubispec.derivation import command_catalog, dependency_manifest
from ubispec.derivation.dependencies import UNRESOLVED_SERVICE
from ubispec.errors import UbiSpecError
from ubispec.loader import parse_text
from ubispec.render import catalog_markdown, manifest_markdown
from ubispec.schema.lifecycle import parse_lifecycle
from ubispec.schema.process import parse_process
from ubispec.schema.shared import DetailLevel
from ubispec.schema.system import parse_system


def parsed(sample, name, parser=parse_lifecycle):
    source = parse_text(sample[name], name=name)
    return parser(source.data, name).unwrap(), source.shell_hints


class TestDependencyManifest:

    def test_hinted_expression(self, sample):
        """DM-01: a ctx read with a `# shell:` comment names its resolver."""
        spec, hints = parsed(sample, "order.yaml")
        assert hints == {"high-value": "riskService.threshold"}
        manifest = dependency_manifest(spec, hints)
        assert len(manifest.entries) == 1
        entry = manifest.entries[0]
        assert entry.owner == "PlaceOrder"
        assert entry.section == "Then"
        assert entry.paths == ("dm.ctx.threshold",)
        assert entry.hint == "riskService.threshold"
        assert entry.service == "riskService"
        assert entry.location == "lifecycle[0].Then[1].HighValueOrderFlagged[0]"
        assert entry.detail_level == DetailLevel.EXPRESSION
        assert manifest.services == ["riskService"]

    def test_scope_annotation_has_no_resolver(self, sample):
        """DM-02: scope-only predicates are recorded without a hint."""
        spec, hints = parsed(sample, "registry.yaml")
        manifest = dependency_manifest(spec, hints)
        assert [e.predicate for e in manifest.entries] == ["reviewer-is-authorised", "has-active-registry"]
        scope = manifest.entries[1]
        assert scope.detail_level == DetailLevel.SCOPE
        assert scope.paths == ("dm.ctx",)
        assert scope.hint is None
        assert scope.service == UNRESOLVED_SERVICE

    def test_hint_on_scope_is_ignored(self, sample):
        text = sample["registry.yaml"].replace(
            "- has-active-registry: dm.ctx",
            "- has-active-registry: dm.ctx  # shell: registryRepo.active",
        )
        source = parse_text(text, name="registry.yaml")
        manifest = dependency_manifest(parse_lifecycle(source.data).unwrap(), source.shell_hints)
        assert manifest.entries[1].hint is None

    def test_no_ctx_reads(self, sample):
        spec, hints = parsed(sample, "payment.yaml")
        assert dependency_manifest(spec, hints).entries == ()

    def test_process_manifest(self, sample):
        spec, hints = parsed(sample, "fulfillment.yaml", parse_process)
        manifest = dependency_manifest(spec, hints)
        assert [(e.owner, e.paths) for e in manifest.entries] == [
            ("any(OrderPlaced, OrderCancelled)", ("rm.ctx.ticket",)),
        ]
        assert manifest.document == "process:Fulfillment"

    def test_grouping_and_rendering(self, sample):
        spec, hints = parsed(sample, "order.yaml")
        manifest = dependency_manifest(spec, hints)
        data = manifest.to_dict()
        assert list(data["grouped"]) == ["PlaceOrder"]
        assert data["grouped"]["PlaceOrder"]["riskService"][0]["predicate"] == "high-value"
        text = manifest_markdown(manifest)
        assert "riskService.threshold" in text

    def test_reused_name_keeps_its_own_hint(self, sample):
        """DM-03: two inline predicates sharing a name resolve through their own `# shell:` comments."""
        text = sample["order.yaml"].replace(
            "      - order-is-draft\n    Then: OrderCancelled",
            "      - order-is-draft\n"
            "      - high-value: \"dm.ctx.refundLimit > 0\"  # shell: refundService.limit\n"
            "    Then: OrderCancelled",
        )
        source = parse_text(text, name="order.yaml")
        spec = parse_lifecycle(source.data).unwrap()
        manifest = dependency_manifest(spec, source.shell_hints, source.hint_locations)
        assert [(e.owner, e.hint) for e in manifest.entries] == [
            ("PlaceOrder", "riskService.threshold"),
            ("CancelOrder", "refundService.limit"),
        ]
        assert manifest.services == ["riskService", "refundService"]

    def test_system_spec_is_refused(self, sample):
        spec, hints = parsed(sample, "shop.yaml", parse_system)
        with pytest.raises(UbiSpecError, match="manifest needs a lifecycle or process spec"):
            dependency_manifest(spec, hints)


class TestCommandCatalog:

    def test_rows(self, shop_set):
        """CC-01: one row per command with dispatch and ctx flags."""
        rows = {r.command: r for r in command_catalog(shop_set)}
        assert list(rows) == ["PlaceOrder", "CancelOrder", "ConfirmPayment", "CreateShipment"]

        place = rows["PlaceOrder"]
        assert (place.actor, place.constraints, place.unconditional_events, place.conditional_events) == (
            "Customer", 2, 1, 1,
        )
        assert place.has_ctx
        assert not place.reacted_to

        assert rows["CancelOrder"].reacted_to
        assert not rows["CancelOrder"].has_ctx
        assert rows["CreateShipment"].reacted_to
        assert rows["ConfirmPayment"].constraints == 0

    def test_markdown(self, shop_set):
        text = catalog_markdown(command_catalog(shop_set))
        assert "| Order | PlaceOrder | Customer | 2 | 1 | 1 | T | F |" in text
