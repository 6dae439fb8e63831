"""Order listing: one row per order, for buyer and administrator listings."""

import json

from protean.core.projector import on
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.order.events import (
    FulfillmentAdvanced,
    LineItemApproved,
    LineItemRejected,
    OrderInclusionChanged,
    OrderPlaced,
    PaymentConfirmed,
    PaymentFailed,
    RefundCompleted,
    ReturnApproved,
    ReturnRejected,
    ReturnRequested,
)
from marketplace.order.order import Order


@marketplace.projection
class OrderListing:
    order_id = Identifier(identifier=True, required=True)
    order_number = String(required=True)
    buyer_id = Identifier(required=True)
    buyer_role = String()
    buyer_name = String()
    status = String(required=True)
    payment_type = String()
    include = Boolean(default=True)
    total_items = Integer(default=0)
    total_amount = Float()
    shop_ids = Text()  # JSON: shops with at least one line item
    delivery_address = Text()  # JSON
    created_at = DateTime()
    updated_at = DateTime()


@marketplace.projector(projector_for=OrderListing, aggregates=[Order])
class OrderListingProjector:
    @on(OrderPlaced)
    def on_order_placed(self, event):
        items = json.loads(event.items) if isinstance(event.items, str) else []
        shop_ids = sorted({str(item["shop_id"]) for item in items})
        current_domain.repository_for(OrderListing).add(
            OrderListing(
                order_id=event.order_id,
                order_number=event.order_number,
                buyer_id=event.buyer_id,
                buyer_role=event.buyer_role,
                buyer_name=event.buyer_name,
                status=event.order_status,
                payment_type=event.payment_type,
                include=event.include,
                total_items=event.total_items,
                total_amount=event.total_amount,
                shop_ids=json.dumps(shop_ids),
                delivery_address=event.delivery_address,
                created_at=event.placed_at,
                updated_at=event.placed_at,
            )
        )

    def _update_status(self, order_id, status, updated_at=None):
        repo = current_domain.repository_for(OrderListing)
        record = repo.get(order_id)
        record.status = status
        if updated_at:
            record.updated_at = updated_at
        repo.add(record)

    @on(PaymentConfirmed)
    def on_payment_confirmed(self, event):
        self._update_status(event.order_id, event.order_status, event.confirmed_at)

    @on(PaymentFailed)
    def on_payment_failed(self, event):
        self._update_status(event.order_id, event.order_status, event.failed_at)

    @on(LineItemApproved)
    def on_line_item_approved(self, event):
        self._update_status(event.order_id, event.order_status, event.decided_at)

    @on(LineItemRejected)
    def on_line_item_rejected(self, event):
        self._update_status(event.order_id, event.order_status, event.decided_at)

    @on(FulfillmentAdvanced)
    def on_fulfillment_advanced(self, event):
        self._update_status(event.order_id, event.order_status, event.updated_at)

    @on(ReturnRequested)
    def on_return_requested(self, event):
        self._update_status(event.order_id, event.order_status, event.requested_at)

    @on(ReturnApproved)
    def on_return_approved(self, event):
        self._update_status(event.order_id, event.order_status, event.approved_at)

    @on(ReturnRejected)
    def on_return_rejected(self, event):
        self._update_status(event.order_id, event.order_status, event.rejected_at)

    @on(RefundCompleted)
    def on_refund_completed(self, event):
        self._update_status(event.order_id, event.order_status, event.completed_at)

    @on(OrderInclusionChanged)
    def on_order_inclusion_changed(self, event):
        repo = current_domain.repository_for(OrderListing)
        record = repo.get(event.order_id)
        record.include = event.include
        record.updated_at = event.changed_at
        repo.add(record)
