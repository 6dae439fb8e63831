import json

import pytest
from marketplace.cart.snapshot import build_cart_snapshot
from marketplace.catalogue import set_catalogue
from marketplace.catalogue.fake_adapter import FakeCatalogue
from marketplace.catalogue.port import PriceTier, ProductRecord, ShopReference
from marketplace.gateway import set_gateway
from marketplace.gateway.fake_adapter import FakeGateway
from marketplace.order.actors import Actor, ActorRole
from protean import current_domain
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def marketplace_bed():
    from marketplace.domain import marketplace

    bed = DomainFixture(marketplace)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(marketplace_bed):
    with marketplace_bed.domain_context():
        yield

        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()


# ---------------------------------------------------------------------------
# Actors
# ---------------------------------------------------------------------------
@pytest.fixture()
def customer():
    return Actor(id="cust-001", role=ActorRole.CUSTOMER, name="Asha Rao")


@pytest.fixture()
def other_customer():
    return Actor(id="cust-002", role=ActorRole.CUSTOMER, name="Ravi Iyer")


@pytest.fixture()
def super_customer():
    return Actor(id="super-001", role=ActorRole.SUPER_CUSTOMER, name="Bulk Buyer")


@pytest.fixture()
def shop_a():
    return Actor(id="op-a", role=ActorRole.SHOP_USER, name="Shop A Ops", shop_id="shop-a")


@pytest.fixture()
def shop_b():
    return Actor(id="op-b", role=ActorRole.SHOP_USER, name="Shop B Ops", shop_id="shop-b")


@pytest.fixture()
def admin():
    return Actor(id="admin-001", role=ActorRole.ADMIN, name="Admin")


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------
@pytest.fixture()
def catalogue():
    """Catalogue with three products: two from shop A, one from shop B."""
    fake = FakeCatalogue()
    shop_a_ref = ShopReference(shop_id="shop-a", shop_name="Shop A", shop_number="SA-01")
    shop_b_ref = ShopReference(shop_id="shop-b", shop_name="Shop B", shop_number="SB-01")
    fake.register(
        ProductRecord(
            product_id="prod-a1",
            title="Cotton Saree",
            regular_price=100.0,
            max_quantity=10,
            shop=shop_a_ref,
            price_tiers=(PriceTier(min_quantity=5, price=90.0),),
        )
    )
    fake.register(
        ProductRecord(
            product_id="prod-a2",
            title="Silk Dupatta",
            regular_price=50.0,
            max_quantity=10,
            shop=shop_a_ref,
        )
    )
    fake.register(
        ProductRecord(
            product_id="prod-b1",
            title="Brass Lamp",
            regular_price=30.0,
            max_quantity=10,
            shop=shop_b_ref,
        )
    )
    set_catalogue(fake)
    return fake


@pytest.fixture()
def gateway():
    fake = FakeGateway()
    set_gateway(fake)
    return fake


@pytest.fixture()
def addresses():
    return [
        {
            "name": "Asha Rao",
            "phone": "9800000001",
            "house": "4B",
            "street": "Old Street",
            "city": "Mysuru",
            "state": "KA",
            "zip": "570001",
            "recently_used": False,
        },
        {
            "name": "Asha Rao",
            "phone": "9800000001",
            "house": "12",
            "street": "MG Road",
            "city": "Pune",
            "state": "MH",
            "zip": "411001",
            "recently_used": True,
        },
    ]


@pytest.fixture()
def cart_lines():
    """One line per product: prod-a1 x2, prod-a2 x1, prod-b1 x3."""
    return [
        {"product_id": "prod-a1", "quantity": 2},
        {"product_id": "prod-a2", "quantity": 1},
        {"product_id": "prod-b1", "quantity": 3},
    ]


@pytest.fixture()
def snapshot(catalogue, cart_lines, addresses):
    return build_cart_snapshot(cart_lines, addresses, catalogue)


@pytest.fixture()
def place_order(catalogue, addresses, customer):
    """Build an Order aggregate directly from a cart, with its events cleared."""
    from marketplace.order.order import Order

    def _place(lines=None, payment_type="cash-on-delivery", buyer=None):
        buyer = buyer or customer
        lines = lines or [
            {"product_id": "prod-a1", "quantity": 2},
            {"product_id": "prod-a2", "quantity": 1},
            {"product_id": "prod-b1", "quantity": 3},
        ]
        order = Order.place(
            buyer_id=buyer.id,
            buyer_role=buyer.role.value,
            buyer_name=buyer.name,
            snapshot=build_cart_snapshot(lines, addresses, catalogue),
            payment_type=payment_type,
        )
        order._events.clear()
        return order

    return _place


# ---------------------------------------------------------------------------
# Command helpers
# ---------------------------------------------------------------------------
@pytest.fixture()
def submit_order(catalogue, gateway, addresses, cart_lines, customer):
    """Place an order through the PlaceOrder command and return its id."""
    from marketplace.order.placement import PlaceOrder

    def _submit(payment_type="cash-on-delivery", buyer=None, lines=None, expected_total=None):
        buyer = buyer or customer
        return current_domain.process(
            PlaceOrder(
                **buyer.as_command_fields(),
                cart_lines=json.dumps(lines or cart_lines),
                addresses=json.dumps(addresses),
                payment_type=payment_type,
                buyer_email="asha@example.com",
                expected_total=expected_total,
            ),
            asynchronous=False,
        )

    return _submit


@pytest.fixture()
def run():
    """Process a command on behalf of an actor."""

    def _run(command_cls, actor=None, **fields):
        if actor is not None:
            fields.update(actor.as_command_fields())
        return current_domain.process(command_cls(**fields), asynchronous=False)

    return _run
