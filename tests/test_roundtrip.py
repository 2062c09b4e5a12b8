import pytest
import yaml

from ubispec.loader import load_yaml
from ubispec.schema.document import parse_document


@pytest.mark.parametrize("name", ["registry.yaml", "order.yaml", "fulfillment.yaml", "shop.yaml"])
def test_document_roundtrip(raw, name):
    """RT-01: to_document() reproduces a document that parses to the same tree."""
    spec = parse_document(raw[name], name).unwrap()
    rendered = yaml.safe_dump(spec.to_document(), sort_keys=False)
    again = parse_document(load_yaml(rendered), name).unwrap()
    assert again.model_dump() == spec.model_dump()


def test_scalar_then_keeps_its_form(raw):
    spec = parse_document(raw["order.yaml"]).unwrap()
    document = spec.to_document()
    assert document["lifecycle"][1]["Then"] == "OrderCancelled"
    assert document["lifecycle"][0]["Then"][1] == {
        "HighValueOrderFlagged": [{"high-value": "dm.cmd.total > dm.ctx.threshold"}],
    }
    assert document["lifecycle"][0]["And"][0] == "order-is-draft"
