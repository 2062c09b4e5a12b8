import pytest

from ubispec.loader import load_yaml, parse_text
from ubispec.validation.report import validate_documents

REGISTRY_YAML = """\
ubispec: lifecycle/v1.0
decider: Registry
identity: registryId
model: ./model.ts
lifecycle:
  - When: ApproveRegistry
    actor: Reviewer
    And:
      - registry-is-submitted: "dm.state.status.kind === 'Submitted'"
      - reviewer-is-authorised: "dm.ctx.reviewerRoles.includes('approver')"
      - no-unresolved-comments: "dm.state.comments.every(c => c.resolved)"
    Then:
      - RegistryApproved
      - PreviousRegistryArchived:
          - has-active-registry: dm.ctx
    Outcome:
      _always:
        - registry-is-approved: "om.state.status.kind === 'Approved'"
      PreviousRegistryArchived:
        - previous-is-archived: om.state
"""

ORDER_YAML = """\
ubispec: lifecycle/v1.0
decider: Order
identity: orderId
model: ./model.ts
common:
  order-is-draft: "dm.state.status.kind === 'Draft'"
lifecycle:
  - When: PlaceOrder
    actor: Customer
    And:
      - order-is-draft
      - has-items: "dm.state.items.length > 0"
    Then:
      - OrderPlaced
      - HighValueOrderFlagged:
          - high-value: "dm.cmd.total > dm.ctx.threshold"  # shell: riskService.threshold
    Outcome:
      _always:
        - state-is-placed: "om.state.status.kind === 'Placed'"
      HighValueOrderFlagged:
        - requires-manual-review: om.state
  - When: CancelOrder
    And:
      - order-is-draft
    Then: OrderCancelled
    Outcome:
      - state-is-cancelled: "om.state.status.kind === 'Cancelled'"
"""

PAYMENT_YAML = """\
ubispec: lifecycle/v1.0
decider: Payment
identity: orderId
model: ./model.ts
lifecycle:
  - When: ConfirmPayment
    Then: PaymentConfirmed
    Outcome:
      - payment-is-confirmed: om.state
"""

SHIPMENT_YAML = """\
ubispec: lifecycle/v1.0
decider: Shipment
identity: shipmentId
model: ./model.ts
lifecycle:
  - When: CreateShipment
    And:
      - not-yet-created: "dm.state === null"
    Then: ShipmentCreated
    Outcome:
      - shipment-is-pending: "om.state.status.kind === 'Pending'"
"""

FULFILLMENT_YAML = """\
ubispec: process/v1.0
process: Fulfillment
reacts_to: [Order, Payment]
emits_to: [Shipment, Order]
model: ./model.ts
reactions:
  - When:
      all:
        - OrderPlaced from Order
        - PaymentConfirmed from Payment
    correlate: orderId
    Then:
      - CreateShipment -> Shipment
    Outcome:
      - shipment-requested: om.commands
  - When:
      any: [OrderPlaced, OrderCancelled]
    From: Order
    trigger: policy
    actor: Support
    And:
      - order-known: "rm.event.orderId !== undefined"
    Then:
      - CancelOrder -> Order:
          - customer-asked: rm.ctx.ticket
    Outcome:
      CancelOrder -> Order:
        - cancellation-sent: "om.commands.length === 1"
"""

SHOP_YAML = """\
ubispec: system/v1.0
system: Shop
description: Online shop
modules:
  - name: Sales
    context: Ordering
    deciders: [Order, Payment]
  - name: Logistics
    context: Delivery
    deciders: [Shipment]
flows:
  - event: OrderPlaced
    from: Sales
    triggers: CreateShipment
    on: Logistics
"""

MODEL_TS = """\
// event payloads
export type OrderPlaced = {
  kind: 'OrderPlaced';
  orderId: string;
  total: number;
  lines: { sku: string; qty: number }[];
};

export interface PaymentConfirmed {
  readonly orderId: string;
  amount?: number; /* minor units */
}

export type OrderEvent =
  | { kind: 'OrderCancelled'; orderId: string; reason: string }
  | OrderPlaced;
"""

SAMPLES = {
    "registry.yaml": REGISTRY_YAML,
    "order.yaml": ORDER_YAML,
    "payment.yaml": PAYMENT_YAML,
    "shipment.yaml": SHIPMENT_YAML,
    "fulfillment.yaml": FULFILLMENT_YAML,
    "shop.yaml": SHOP_YAML,
}

SHOP_SET = ("order.yaml", "payment.yaml", "shipment.yaml", "fulfillment.yaml")


@pytest.fixture
def sample():
    """File name -> YAML text of every sample document."""
    return dict(SAMPLES)


@pytest.fixture
def raw(sample):
    """File name -> freshly loaded document data, safe to mutate."""
    return {name: load_yaml(text) for name, text in sample.items()}


@pytest.fixture
def make_set():
    """Builds a SpecSet from (name, text) pairs or a name -> text mapping."""
    def _make(documents, config=None, lookup=None):
        items = documents.items() if isinstance(documents, dict) else documents
        sources = [parse_text(text, name=name) for name, text in items]
        return validate_documents(sources, config, lookup)
    return _make


@pytest.fixture
def shop_set(make_set, sample):
    """Order, Payment, Shipment and the Fulfillment process: consistent."""
    return make_set({name: sample[name] for name in SHOP_SET})


@pytest.fixture
def spec_dir(tmp_path, sample):
    """Every sample document plus the TypeScript model, written to disk."""
    for name, text in sample.items():
        (tmp_path / name).write_text(text, encoding="utf-8")
    (tmp_path / "model.ts").write_text(MODEL_TS, encoding="utf-8")
    return tmp_path
