"""Application tests driving a multi-shop order through its whole lifecycle."""

import pytest
from marketplace.order.approval import ApproveLineItem, RejectLineItem
from marketplace.order.errors import AlreadyDecidedError, InvalidTransitionError, NotAuthorizedError
from marketplace.order.fulfillment import AdvanceFulfillment, SetTrackingLink
from marketplace.order.order import Order, OrderStatus
from marketplace.order.settlement import ConfirmPayment
from marketplace.order.status import reduce_approval_phase
from protean import current_domain
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError, ValidationError


def _load(order_id):
    return current_domain.repository_for(Order).get(order_id)


class TestShopApproval:
    def test_approvals_on_different_items_both_persist(self, run, submit_order, shop_a, shop_b):
        order_id = submit_order()
        run(ApproveLineItem, shop_a, order_id=order_id, line_item_id="prod-a1")
        run(ApproveLineItem, shop_b, order_id=order_id, line_item_id="prod-b1")

        order = _load(order_id)
        assert order.find_line_item("prod-a1").shop_approved == "approved"
        assert order.find_line_item("prod-b1").shop_approved == "approved"
        assert order.find_line_item("prod-a2").shop_approved == "pending"
        assert order.status == OrderStatus.PARTIAL_PENDING.value

    def test_approve_by_line_item_id(self, run, submit_order, shop_a):
        order_id = submit_order()
        line_item_id = str(_load(order_id).find_line_item("prod-a2").id)
        run(ApproveLineItem, shop_a, order_id=order_id, line_item_id=line_item_id, reason="Ready")
        item = _load(order_id).find_line_item(line_item_id)
        assert item.shop_approved == "approved"
        assert item.decision_reason == "Ready"

    def test_second_decision_is_rejected(self, run, submit_order, shop_a):
        order_id = submit_order()
        run(RejectLineItem, shop_a, order_id=order_id, line_item_id="prod-a1", reason="No stock")
        with pytest.raises(AlreadyDecidedError):
            run(ApproveLineItem, shop_a, order_id=order_id, line_item_id="prod-a1")

    def test_foreign_shop_is_refused(self, run, submit_order, shop_b):
        order_id = submit_order()
        with pytest.raises(NotAuthorizedError):
            run(ApproveLineItem, shop_b, order_id=order_id, line_item_id="prod-a1")

    def test_unknown_line_item(self, run, submit_order, shop_a):
        order_id = submit_order()
        with pytest.raises(ObjectNotFoundError):
            run(ApproveLineItem, shop_a, order_id=order_id, line_item_id="prod-zz")

    def test_unknown_order(self, run, shop_a):
        with pytest.raises(ObjectNotFoundError):
            run(ApproveLineItem, shop_a, order_id="missing-order", line_item_id="prod-a1")

    def test_decisions_wait_for_payment(self, run, submit_order, shop_a):
        order_id = submit_order(payment_type="online-payment")
        with pytest.raises(InvalidTransitionError):
            run(ApproveLineItem, shop_a, order_id=order_id, line_item_id="prod-a1")


class TestConcurrentDecisions:
    def test_stale_write_is_refused(self, submit_order, shop_a, shop_b):
        order_id = submit_order()
        repo = current_domain.repository_for(Order)
        first, second = repo.get(order_id), repo.get(order_id)

        first.approve_line_item(shop_a, "prod-a1")
        repo.add(first)
        second.approve_line_item(shop_b, "prod-b1")
        with pytest.raises(ExpectedVersionError):
            repo.add(second)

        order = _load(order_id)
        assert order.find_line_item("prod-a1").shop_approved == "approved"
        assert order.find_line_item("prod-b1").shop_approved == "pending"

    def test_handler_retries_after_a_competing_write(self, monkeypatch, run, submit_order, shop_a, shop_b):
        order_id = submit_order()
        repo_cls = type(current_domain.repository_for(Order))
        stale = current_domain.repository_for(Order).get(order_id)
        run(ApproveLineItem, shop_a, order_id=order_id, line_item_id="prod-a1")

        original_get = repo_cls.get
        loads = []

        def get_once_stale(self, identifier):
            loads.append(identifier)
            if len(loads) == 1:
                return stale
            return original_get(self, identifier)

        monkeypatch.setattr(repo_cls, "get", get_once_stale)
        run(ApproveLineItem, shop_b, order_id=order_id, line_item_id="prod-b1")
        monkeypatch.undo()

        assert len(loads) == 2
        order = _load(order_id)
        assert order.find_line_item("prod-a1").shop_approved == "approved"
        assert order.find_line_item("prod-b1").shop_approved == "approved"
        assert order.status == reduce_approval_phase(item.state() for item in order.items)
        assert order.status == OrderStatus.PARTIAL_PENDING.value


class TestFullLifecycle:
    def test_online_order_to_delivery(self, run, submit_order, shop_a, shop_b):
        order_id = submit_order(payment_type="online-payment")
        run(ConfirmPayment, order_id=order_id, paid=True, amount=340.0)
        assert _load(order_id).status == OrderStatus.PLACED.value

        run(ApproveLineItem, shop_a, order_id=order_id, line_item_id="prod-a1")
        run(RejectLineItem, shop_a, order_id=order_id, line_item_id="prod-a2", reason="Discontinued")
        run(ApproveLineItem, shop_b, order_id=order_id, line_item_id="prod-b1")
        order = _load(order_id)
        assert order.status == OrderStatus.PENDING.value
        assert order.find_line_item("prod-a2").product_status == "refund-in-progress"

        run(AdvanceFulfillment, shop_a, order_id=order_id, line_item_id="prod-a1", product_status="shipped")
        run(
            SetTrackingLink,
            shop_a,
            order_id=order_id,
            line_item_id="prod-a1",
            tracking_link="https://track.example/A1",
        )
        assert _load(order_id).status == OrderStatus.PARTIAL_SHIPPED.value

        run(AdvanceFulfillment, shop_b, order_id=order_id, line_item_id="prod-b1", product_status="delivered")
        assert _load(order_id).status == OrderStatus.PARTIAL_DELIVERED.value

        run(AdvanceFulfillment, shop_a, order_id=order_id, line_item_id="prod-a1", product_status="delivered")
        order = _load(order_id)
        assert order.status == OrderStatus.DELIVERED.value
        assert order.find_line_item("prod-a1").tracking_link == "https://track.example/A1"

        with pytest.raises(InvalidTransitionError):
            run(
                SetTrackingLink,
                shop_a,
                order_id=order_id,
                line_item_id="prod-a1",
                tracking_link="https://track.example/late",
            )

    def test_every_shop_rejects(self, run, submit_order, shop_a, shop_b):
        order_id = submit_order()
        run(RejectLineItem, shop_a, order_id=order_id, line_item_id="prod-a1")
        run(RejectLineItem, shop_a, order_id=order_id, line_item_id="prod-a2")
        run(RejectLineItem, shop_b, order_id=order_id, line_item_id="prod-b1")
        assert _load(order_id).status == OrderStatus.REJECTED.value

    def test_invalid_fulfillment_status(self, run, submit_order, shop_a):
        order_id = submit_order()
        run(ApproveLineItem, shop_a, order_id=order_id, line_item_id="prod-a1")
        with pytest.raises(ValidationError):
            run(AdvanceFulfillment, shop_a, order_id=order_id, line_item_id="prod-a1", product_status="lost")
