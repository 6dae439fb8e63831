"""Application tests for placing orders through the PlaceOrder command."""

import json

import pytest
from marketplace.order.errors import AmountMismatchError, EmptyOrderError, NotAuthorizedError
from marketplace.order.order import Order, OrderStatus
from marketplace.order.placement import PlaceOrder
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError


class TestCashOnDelivery:
    def test_order_is_persisted_as_placed(self, submit_order):
        order_id = submit_order()
        order = current_domain.repository_for(Order).get(order_id)
        assert order.status == OrderStatus.PLACED.value
        assert order.total_amount == 340.0
        assert len(order.items) == 3

    def test_gateway_is_not_contacted(self, submit_order, gateway):
        submit_order()
        assert gateway.calls == []

    def test_matching_expected_total_is_accepted(self, submit_order):
        order_id = submit_order(expected_total=340.0)
        assert current_domain.repository_for(Order).get(order_id).total_amount == 340.0


class TestOnlinePayment:
    def test_session_is_opened(self, submit_order, gateway):
        order_id = submit_order(payment_type="online-payment")
        order = current_domain.repository_for(Order).get(order_id)
        assert order.status == OrderStatus.PAYMENT_INITIATED.value
        assert order.payment_session_id.startswith("fake_sess_")
        assert gateway.calls[0]["method"] == "create_session"
        assert gateway.calls[0]["amount"] == 340.0
        assert gateway.calls[0]["order_number"] == order.order_number

    def test_gateway_failure_fails_the_order(self, submit_order, gateway):
        gateway.configure(should_succeed=False, failure_reason="Gateway down")
        order_id = submit_order(payment_type="online-payment")
        order = current_domain.repository_for(Order).get(order_id)
        assert order.status == OrderStatus.FAILED.value
        assert order.failure_reason == "Gateway down"
        assert all(item.product_status == "failed" for item in order.items)

    def test_super_customer_skips_the_gateway(self, submit_order, gateway, super_customer):
        order_id = submit_order(payment_type="online-payment", buyer=super_customer)
        order = current_domain.repository_for(Order).get(order_id)
        assert order.status == OrderStatus.PLACED.value
        assert order.include is False
        assert gateway.calls == []


class TestRejectedPlacements:
    def test_amount_mismatch_persists_nothing(self, submit_order, gateway):
        with pytest.raises(AmountMismatchError):
            submit_order(payment_type="online-payment", expected_total=339.0)
        assert gateway.calls == []

    def test_shop_user_cannot_place(self, submit_order, shop_a):
        with pytest.raises(NotAuthorizedError):
            submit_order(buyer=shop_a)

    def test_cart_without_purchasable_lines(self, submit_order):
        with pytest.raises(EmptyOrderError):
            submit_order(lines=[{"product_id": "prod-missing", "quantity": 1}])

    def test_unpurchasable_lines_are_dropped(self, submit_order, catalogue):
        catalogue.mark_deleted("prod-b1")
        order_id = submit_order()
        order = current_domain.repository_for(Order).get(order_id)
        assert sorted(item.product_id for item in order.items) == ["prod-a1", "prod-a2"]
        assert order.total_amount == 250.0

    def test_missing_address_selection(self, catalogue, gateway, addresses, cart_lines, customer):
        for address in addresses:
            address["recently_used"] = False
        with pytest.raises(ValidationError):
            current_domain.process(
                PlaceOrder(
                    **customer.as_command_fields(),
                    cart_lines=json.dumps(cart_lines),
                    addresses=json.dumps(addresses),
                    payment_type="cash-on-delivery",
                ),
                asynchronous=False,
            )

    def test_unknown_order_is_not_found(self):
        with pytest.raises(ObjectNotFoundError):
            current_domain.repository_for(Order).get("no-such-order")
