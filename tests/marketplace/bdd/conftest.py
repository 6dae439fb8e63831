"""Shared BDD fixtures and step definitions for the order lifecycle."""

import json
from datetime import UTC, datetime

import pytest
from marketplace.order.errors import NotAuthorizedError
from marketplace.order.events import (
    FulfillmentAdvanced,
    LineItemApproved,
    LineItemRejected,
    OrderInclusionChanged,
    OrderPlaced,
    PaymentConfirmed,
    PaymentFailed,
    PaymentSessionOpened,
    RefundCompleted,
    ReturnApproved,
    ReturnRejected,
    ReturnRequested,
    TrackingLinkSet,
)
from marketplace.order.order import Order
from protean.exceptions import ValidationError
from protean.testing import given as given_
from pytest_bdd import given, parsers, then

# Map event name strings to classes for dynamic lookup in Then steps
_ORDER_EVENT_CLASSES = {
    "OrderPlaced": OrderPlaced,
    "PaymentSessionOpened": PaymentSessionOpened,
    "PaymentConfirmed": PaymentConfirmed,
    "PaymentFailed": PaymentFailed,
    "LineItemApproved": LineItemApproved,
    "LineItemRejected": LineItemRejected,
    "FulfillmentAdvanced": FulfillmentAdvanced,
    "TrackingLinkSet": TrackingLinkSet,
    "ReturnRequested": ReturnRequested,
    "ReturnApproved": ReturnApproved,
    "ReturnRejected": ReturnRejected,
    "RefundCompleted": RefundCompleted,
    "OrderInclusionChanged": OrderInclusionChanged,
}

# Line items of the seeded order and the shop that owns each
LINE_ITEM_SHOPS = {"li-a1": "shop-a", "li-a2": "shop-a", "li-b1": "shop-b"}


def _line_items():
    return [
        {
            "id": "li-a1",
            "product_id": "prod-a1",
            "title": "Cotton Saree",
            "quantity": 2,
            "max_quantity": 10,
            "regular_price": 100.0,
            "unit_price": 100.0,
            "total_price": 200.0,
            "shop_id": "shop-a",
            "shop_name": "Shop A",
        },
        {
            "id": "li-a2",
            "product_id": "prod-a2",
            "title": "Silk Dupatta",
            "quantity": 1,
            "max_quantity": 10,
            "regular_price": 50.0,
            "unit_price": 50.0,
            "total_price": 50.0,
            "shop_id": "shop-a",
            "shop_name": "Shop A",
        },
        {
            "id": "li-b1",
            "product_id": "prod-b1",
            "title": "Brass Lamp",
            "quantity": 3,
            "max_quantity": 10,
            "regular_price": 30.0,
            "unit_price": 30.0,
            "total_price": 90.0,
            "shop_id": "shop-b",
            "shop_name": "Shop B",
        },
    ]


# ---------------------------------------------------------------------------
# Scalar fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def order_id():
    return "ord-001"


@pytest.fixture()
def actors(customer, other_customer, super_customer, shop_a, shop_b, admin):
    """Actors addressable by the names used in feature files."""
    return {
        "the buyer": customer,
        "another buyer": other_customer,
        "the super customer": super_customer,
        "shop A": shop_a,
        "shop B": shop_b,
        "the admin": admin,
    }


# ---------------------------------------------------------------------------
# Event fixtures (past tense: what happened)
# ---------------------------------------------------------------------------
def _order_placed(order_id, payment_type, order_status, buyer_id="cust-001", buyer_role="customer", include=True):
    return OrderPlaced(
        order_id=order_id,
        order_number="order_0123456789abcd",
        buyer_id=buyer_id,
        buyer_role=buyer_role,
        buyer_name="Asha Rao",
        items=json.dumps(_line_items()),
        delivery_address=json.dumps({"name": "Asha Rao", "city": "Pune", "zip": "411001"}),
        total_items=6,
        total_amount=340.0,
        payment_type=payment_type,
        order_status=order_status,
        include=include,
        placed_at=datetime.now(UTC),
    )


@pytest.fixture()
def cod_order_placed(order_id):
    return _order_placed(order_id, "cash-on-delivery", "placed")


@pytest.fixture()
def online_order_placed(order_id):
    return _order_placed(order_id, "online-payment", "payment-initiated")


@pytest.fixture()
def super_order_placed(order_id):
    return _order_placed(
        order_id,
        "online-payment",
        "placed",
        buyer_id="super-001",
        buyer_role="supper-customer",
        include=False,
    )


# ---------------------------------------------------------------------------
# Given steps: Order (event sourcing via protean.testing)
# ---------------------------------------------------------------------------
@given("a cash-on-delivery order was placed", target_fixture="order")
def _(cod_order_placed):
    return given_(Order, cod_order_placed)


@given("an online-payment order was placed", target_fixture="order")
def _(online_order_placed):
    return given_(Order, online_order_placed)


@given("a super-customer order was placed", target_fixture="order")
def _(super_order_placed):
    return given_(Order, super_order_placed)


@given(
    parsers.cfparse('line item "{line_item_id}" was approved leaving the order "{order_status}"'),
    target_fixture="order",
)
def _(order, order_id, line_item_id, order_status):
    return order.after(
        LineItemApproved(
            order_id=order_id,
            line_item_id=line_item_id,
            shop_id=LINE_ITEM_SHOPS[line_item_id],
            approved_by_id="op-a",
            order_status=order_status,
            decided_at=datetime.now(UTC),
        )
    )


@given(
    parsers.cfparse('line item "{line_item_id}" was rejected leaving the order "{order_status}"'),
    target_fixture="order",
)
def _(order, order_id, line_item_id, order_status):
    return order.after(
        LineItemRejected(
            order_id=order_id,
            line_item_id=line_item_id,
            shop_id=LINE_ITEM_SHOPS[line_item_id],
            approved_by_id="op-a",
            product_status="rejected",
            order_status=order_status,
            decided_at=datetime.now(UTC),
        )
    )


@given("every line item was approved", target_fixture="order")
def _(order, order_id):
    statuses = ("partial-pending", "partial-pending", "pending")
    for line_item_id, order_status in zip(LINE_ITEM_SHOPS, statuses, strict=True):
        order = order.after(
            LineItemApproved(
                order_id=order_id,
                line_item_id=line_item_id,
                shop_id=LINE_ITEM_SHOPS[line_item_id],
                approved_by_id="admin-001",
                order_status=order_status,
                decided_at=datetime.now(UTC),
            )
        )
    return order


@given(
    parsers.cfparse('line item "{line_item_id}" was moved to "{product_status}" leaving the order "{order_status}"'),
    target_fixture="order",
)
def _(order, order_id, line_item_id, product_status, order_status):
    return order.after(
        FulfillmentAdvanced(
            order_id=order_id,
            line_item_id=line_item_id,
            shop_id=LINE_ITEM_SHOPS[line_item_id],
            previous_status="pending",
            product_status=product_status,
            order_status=order_status,
            updated_at=datetime.now(UTC),
        )
    )


@given("every line item was delivered", target_fixture="order")
def _(order, order_id):
    statuses = ("partial-delivered", "partial-delivered", "delivered")
    for line_item_id, order_status in zip(LINE_ITEM_SHOPS, statuses, strict=True):
        order = order.after(
            FulfillmentAdvanced(
                order_id=order_id,
                line_item_id=line_item_id,
                shop_id=LINE_ITEM_SHOPS[line_item_id],
                previous_status="pending",
                product_status="delivered",
                order_status=order_status,
                updated_at=datetime.now(UTC),
            )
        )
    return order


@given(
    parsers.cfparse('a return of {quantity:d} was requested for "{line_item_id}"'),
    target_fixture="order",
)
def _(order, order_id, quantity, line_item_id):
    return order.after(
        ReturnRequested(
            order_id=order_id,
            line_item_id=line_item_id,
            shop_id=LINE_ITEM_SHOPS[line_item_id],
            quantity=quantity,
            reason="Damaged",
            images=json.dumps([]),
            order_status="partial-returned",
            requested_at=datetime.now(UTC),
        )
    )


# ---------------------------------------------------------------------------
# Then steps: Order (shared, plain assertions)
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def _(order, status):
    assert order.status == status


@then(parsers.cfparse('line item "{line_item_id}" is "{product_status}"'))
def _(order, line_item_id, product_status):
    assert order.find_line_item(line_item_id).product_status == product_status


@then("the order action fails with a validation error")
def _(order):
    assert order.rejected
    assert isinstance(order.rejection, ValidationError)


@then("the order action is refused")
def _(order):
    assert order.rejected
    assert isinstance(order.rejection, NotAuthorizedError)


@then(parsers.cfparse("an {event_type} order event is raised"))
def _(order, event_type):
    event_cls = _ORDER_EVENT_CLASSES[event_type]
    assert event_cls in order.events


@then(parsers.cfparse("a {event_type} order event is raised"))
def _(order, event_type):
    event_cls = _ORDER_EVENT_CLASSES[event_type]
    assert event_cls in order.events
