"""Shop line items: one row per line item, for shop-scoped listings.

Shop operators only ever see their own line items, so approval queues,
return queues and shop order listings read from here.
"""

import json

from protean.core.projector import on
from protean.fields import DateTime, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.order.events import (
    FulfillmentAdvanced,
    LineItemApproved,
    LineItemRejected,
    OrderPlaced,
    PaymentFailed,
    RefundCompleted,
    ReturnApproved,
    ReturnRejected,
    ReturnRequested,
    TrackingLinkSet,
)
from marketplace.order.order import ApprovalStatus, Order, ProductStatus


@marketplace.projection
class ShopLineItem:
    line_item_id = Identifier(identifier=True, required=True)
    order_id = Identifier(required=True)
    order_number = String()
    shop_id = Identifier(required=True)
    shop_name = String()
    buyer_id = Identifier()
    buyer_name = String()
    product_id = Identifier()
    title = String()
    thumbnail = String()
    quantity = Integer()
    unit_price = Float()
    total_price = Float()
    shop_approved = String(default=ApprovalStatus.PENDING.value)
    product_status = String(default=ProductStatus.PENDING.value)
    tracking_link = String()
    decision_reason = String()
    return_quantity = Integer()
    return_reason = String()
    return_rejection_reason = String()
    created_at = DateTime()
    updated_at = DateTime()


@marketplace.projector(projector_for=ShopLineItem, aggregates=[Order])
class ShopLineItemProjector:
    @on(OrderPlaced)
    def on_order_placed(self, event):
        repo = current_domain.repository_for(ShopLineItem)
        items = json.loads(event.items) if isinstance(event.items, str) else []
        for item in items:
            repo.add(
                ShopLineItem(
                    line_item_id=item["id"],
                    order_id=event.order_id,
                    order_number=event.order_number,
                    shop_id=item["shop_id"],
                    shop_name=item.get("shop_name"),
                    buyer_id=event.buyer_id,
                    buyer_name=event.buyer_name,
                    product_id=item["product_id"],
                    title=item["title"],
                    thumbnail=item.get("thumbnail"),
                    quantity=item["quantity"],
                    unit_price=item["unit_price"],
                    total_price=item["total_price"],
                    created_at=event.placed_at,
                    updated_at=event.placed_at,
                )
            )

    def _update(self, line_item_id, updated_at=None, **changes):
        repo = current_domain.repository_for(ShopLineItem)
        record = repo.get(line_item_id)
        for field_name, value in changes.items():
            setattr(record, field_name, value)
        if updated_at:
            record.updated_at = updated_at
        repo.add(record)

    @on(PaymentFailed)
    def on_payment_failed(self, event):
        repo = current_domain.repository_for(ShopLineItem)
        for record in repo._dao.query.filter(order_id=event.order_id).all().items:
            record.product_status = ProductStatus.FAILED.value
            record.updated_at = event.failed_at
            repo.add(record)

    @on(LineItemApproved)
    def on_line_item_approved(self, event):
        self._update(
            event.line_item_id,
            event.decided_at,
            shop_approved=ApprovalStatus.APPROVED.value,
            decision_reason=event.reason,
        )

    @on(LineItemRejected)
    def on_line_item_rejected(self, event):
        self._update(
            event.line_item_id,
            event.decided_at,
            shop_approved=ApprovalStatus.REJECTED.value,
            product_status=event.product_status,
            decision_reason=event.reason,
        )

    @on(FulfillmentAdvanced)
    def on_fulfillment_advanced(self, event):
        self._update(event.line_item_id, event.updated_at, product_status=event.product_status)

    @on(TrackingLinkSet)
    def on_tracking_link_set(self, event):
        self._update(event.line_item_id, event.updated_at, tracking_link=event.tracking_link)

    @on(ReturnRequested)
    def on_return_requested(self, event):
        self._update(
            event.line_item_id,
            event.requested_at,
            product_status=ProductStatus.RETURN_REQUESTED.value,
            return_quantity=event.quantity,
            return_reason=event.reason,
        )

    @on(ReturnApproved)
    def on_return_approved(self, event):
        self._update(event.line_item_id, event.approved_at, product_status=ProductStatus.REFUND_APPROVED.value)

    @on(ReturnRejected)
    def on_return_rejected(self, event):
        self._update(
            event.line_item_id,
            event.rejected_at,
            product_status=ProductStatus.REFUND_REJECTED.value,
            return_rejection_reason=event.reason,
        )

    @on(RefundCompleted)
    def on_refund_completed(self, event):
        self._update(event.line_item_id, event.completed_at, product_status=ProductStatus.REFUNDED.value)
