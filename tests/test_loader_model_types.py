import pytest

from ubispec.errors import DocumentLoadError
from ubispec.loader import (
    extract_shell_hints,
    load_document,
    load_documents,
    load_yaml,
    locate_shell_hints,
    parse_text,
)
from ubispec.model_types import CompositeFieldLookup, StaticFieldLookup, TypeScriptModelLookup, lookup_from_sources
from ubispec.schema.system import parse_system


class TestShellHints:

    def test_same_line(self):
        text = '- high-value: "dm.ctx.threshold < 10"  # shell: riskService.threshold\n'
        assert extract_shell_hints(text) == {"high-value": "riskService.threshold"}

    def test_preceding_line(self):
        text = (
            "And:\n"
            "  # shell: customerService.lookup(cmd.customerId)\n"
            "  - customer-is-active: dm.ctx.customer\n"
            "  - has-items: dm.state\n"
        )
        assert extract_shell_hints(text) == {"customer-is-active": "customerService.lookup(cmd.customerId)"}

    def test_pending_hint_is_dropped_by_other_lines(self):
        text = "# shell: orphan.call\nThen: OrderPlaced\n- late-predicate: dm.ctx\n"
        assert extract_shell_hints(text) == {}

    def test_same_name_in_two_places(self, sample):
        """LD-03: hints are also keyed by entry location, so reused names keep their own resolver."""
        text = sample["order.yaml"].replace(
            "      - order-is-draft\n    Then: OrderCancelled",
            "      - order-is-draft\n"
            "      - high-value: \"dm.ctx.refundLimit > 0\"  # shell: refundService.limit\n"
            "    Then: OrderCancelled",
        )
        assert extract_shell_hints(text) == {"high-value": "riskService.threshold"}
        assert locate_shell_hints(text) == {
            "lifecycle[0].Then[1].HighValueOrderFlagged[0]": "riskService.threshold",
            "lifecycle[1].And[1]": "refundService.limit",
        }


class TestLoading:

    def test_parse_text(self, sample):
        source = parse_text(sample["order.yaml"], name="order.yaml")
        assert source.data["decider"] == "Order"
        assert source.path is None
        assert source.shell_hints == {"high-value": "riskService.threshold"}
        assert source.hint_locations == {"lifecycle[0].Then[1].HighValueOrderFlagged[0]": "riskService.threshold"}

    def test_flow_on_key_stays_a_string(self, sample):
        """LD-02: `on:` is a plain key, so a System document with flows parses cleanly."""
        source = parse_text(sample["shop.yaml"], name="shop.yaml")
        assert list(source.data["flows"][0]) == ["event", "from", "triggers", "on"]
        assert source.data["flows"][0]["on"] == "Logistics"
        assert parse_system(source.data, "shop.yaml").ok

    def test_only_true_and_false_are_booleans(self):
        data = load_yaml("a: on\nb: off\nc: yes\nd: no\ne: true\nf: False\n")
        assert data == {"a": "on", "b": "off", "c": "yes", "d": "no", "e": True, "f": False}

    def test_parse_json(self):
        source = parse_text('{"ubispec": "system/v1.0", "system": "Shop"}', name="shop.json", suffix=".json")
        assert source.data["system"] == "Shop"
        assert source.shell_hints == {}

    def test_bad_yaml(self):
        with pytest.raises(DocumentLoadError):
            parse_text("decider: [Order\n", name="broken.yaml")

    def test_directory_skips_foreign_files(self, spec_dir):
        """LD-01: directories are scanned recursively; non-spec YAML is skipped."""
        (spec_dir / "ubispec.yaml").write_text("decider_policy: external\n", encoding="utf-8")
        nested = spec_dir / "more"
        nested.mkdir()
        (nested / "payment-copy.yml").write_text(
            "ubispec: lifecycle/v1.0\ndecider: Refund\n", encoding="utf-8"
        )
        names = [d.path.name for d in load_documents([spec_dir])]
        assert names == [
            "fulfillment.yaml",
            "payment-copy.yml",
            "order.yaml",
            "payment.yaml",
            "registry.yaml",
            "shipment.yaml",
            "shop.yaml",
        ]

    def test_explicit_file_is_always_loaded(self, tmp_path):
        path = tmp_path / "notes.yaml"
        path.write_text("title: notes\n", encoding="utf-8")
        documents = load_documents([path])
        assert len(documents) == 1
        assert documents[0].data == {"title": "notes"}

    def test_missing_path(self, tmp_path):
        with pytest.raises(DocumentLoadError):
            load_documents([tmp_path / "absent.yaml"])

    def test_load_document_keeps_path(self, spec_dir):
        document = load_document(spec_dir / "shop.yaml")
        assert document.path == spec_dir / "shop.yaml"
        assert document.name == str(spec_dir / "shop.yaml")


class TestModelTypes:

    def test_typescript_declarations(self, spec_dir):
        """MT-01: type aliases, interfaces and tagged union members are indexed."""
        lookup = TypeScriptModelLookup.from_file(spec_dir / "model.ts")
        assert lookup.fields_of("OrderPlaced") == {"kind", "orderId", "total", "lines"}
        assert lookup.fields_of("PaymentConfirmed") == {"orderId", "amount"}
        assert lookup.fields_of("OrderCancelled") == {"kind", "orderId", "reason"}
        assert lookup.fields_of("OrderEvent") is None
        assert lookup.fields_of("ShipmentCreated") is None

    def test_nested_fields_are_not_top_level(self):
        lookup = TypeScriptModelLookup.from_source(
            "export interface Shipped { address: { street: string; city: string }; carrier: string }"
        )
        assert lookup.fields_of("Shipped") == {"address", "carrier"}

    def test_composite_order(self):
        lookup = CompositeFieldLookup([
            StaticFieldLookup({"OrderPlaced": ["orderId"]}),
            StaticFieldLookup({"OrderPlaced": ["total"], "PaymentConfirmed": ["amount"]}),
        ])
        assert lookup.fields_of("OrderPlaced") == {"orderId"}
        assert lookup.fields_of("PaymentConfirmed") == {"amount"}
        assert lookup.fields_of("Unknown") is None

    def test_lookup_from_sources(self, spec_dir):
        sources = load_documents([spec_dir])
        lookup = lookup_from_sources(sources)
        assert lookup is not None
        # every document points at the same model file
        assert len(lookup.lookups) == 1
        assert lookup.fields_of("OrderPlaced") == {"kind", "orderId", "total", "lines"}

    def test_lookup_without_models(self, sample):
        sources = [parse_text(sample["shop.yaml"], name="shop.yaml")]
        assert lookup_from_sources(sources) is None

    def test_unreadable_model_is_skipped(self, tmp_path, sample):
        sources = [parse_text(sample["order.yaml"], name="order.yaml")]
        assert lookup_from_sources(sources, model_root=tmp_path) is None
