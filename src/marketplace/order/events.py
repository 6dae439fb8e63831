"""Domain events for the Order aggregate.

All events are versioned, immutable facts representing state changes.
Events are persisted to the event store and used for:
- Rebuilding aggregate state via @apply (event sourcing)
- Updating the listing projections via projectors

Every line-item event carries ``order_status``: the order-level status after
the reducers and the rank lock ran, so replay never recomputes it.
"""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from marketplace.domain import marketplace


@marketplace.event(part_of="Order")
class OrderPlaced:
    """A new multi-shop order was created from a cart snapshot."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    buyer_id = Identifier(required=True)
    buyer_role = String(required=True)
    buyer_name = String(required=True)
    buyer_email = String()
    buyer_phone = String()
    items = Text(required=True)  # JSON: list of line item dicts (with ids)
    delivery_address = Text(required=True)  # JSON: address dict
    total_items = Integer(required=True)
    total_amount = Float(required=True)
    payment_type = String(required=True)
    order_status = String(required=True)
    include = Boolean(default=True)
    placed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class PaymentSessionOpened:
    """The payment gateway opened a checkout session for the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    session_id = String(required=True)
    amount = Float(required=True)


@marketplace.event(part_of="Order")
class PaymentConfirmed:
    """The gateway reported the order as paid for the expected amount."""

    __version__ = 1

    order_id = Identifier(required=True)
    payment_reference = String()
    amount = Float(required=True)
    order_status = String(required=True)
    confirmed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class PaymentFailed:
    """Settlement failed; the order and all its line items are failed."""

    __version__ = 1

    order_id = Identifier(required=True)
    reason = String(required=True)
    order_status = String(required=True)
    failed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class LineItemApproved:
    """A shop accepted to fulfil one of its line items."""

    __version__ = 1

    order_id = Identifier(required=True)
    line_item_id = Identifier(required=True)
    shop_id = Identifier(required=True)
    approved_by_id = Identifier(required=True)
    approved_by_name = String()
    reason = String()
    order_status = String(required=True)
    decided_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class LineItemRejected:
    """A shop declined to fulfil one of its line items."""

    __version__ = 1

    order_id = Identifier(required=True)
    line_item_id = Identifier(required=True)
    shop_id = Identifier(required=True)
    approved_by_id = Identifier(required=True)
    approved_by_name = String()
    reason = String()
    product_status = String(required=True)
    order_status = String(required=True)
    decided_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class FulfillmentAdvanced:
    """An approved line item moved along its shipping path."""

    __version__ = 1

    order_id = Identifier(required=True)
    line_item_id = Identifier(required=True)
    shop_id = Identifier(required=True)
    previous_status = String(required=True)
    product_status = String(required=True)
    order_status = String(required=True)
    updated_by_id = Identifier(required=True)
    updated_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class TrackingLinkSet:
    """A shop attached or corrected the tracking link of a line item."""

    __version__ = 1

    order_id = Identifier(required=True)
    line_item_id = Identifier(required=True)
    shop_id = Identifier(required=True)
    tracking_link = String(required=True, max_length=1024)
    updated_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class ReturnRequested:
    """The buyer asked to return (part of) a delivered line item."""

    __version__ = 1

    order_id = Identifier(required=True)
    line_item_id = Identifier(required=True)
    shop_id = Identifier(required=True)
    quantity = Integer(required=True)
    reason = String()
    description = String()
    images = Text()  # JSON: list of evidence image paths
    order_status = String(required=True)
    requested_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class ReturnApproved:
    """The shop authorised the refund of a returned line item."""

    __version__ = 1

    order_id = Identifier(required=True)
    line_item_id = Identifier(required=True)
    shop_id = Identifier(required=True)
    approved_by_id = Identifier(required=True)
    order_status = String(required=True)
    approved_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class ReturnRejected:
    """The shop turned down a return request."""

    __version__ = 1

    order_id = Identifier(required=True)
    line_item_id = Identifier(required=True)
    shop_id = Identifier(required=True)
    rejected_by_id = Identifier(required=True)
    reason = String(required=True)
    order_status = String(required=True)
    rejected_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class RefundCompleted:
    """The refund of a returned line item was physically and financially settled."""

    __version__ = 1

    order_id = Identifier(required=True)
    line_item_id = Identifier(required=True)
    shop_id = Identifier(required=True)
    completed_by_id = Identifier(required=True)
    order_status = String(required=True)
    completed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderInclusionChanged:
    """A super-customer order was included in (or excluded from) shop fulfillment."""

    __version__ = 1

    order_id = Identifier(required=True)
    include = Boolean(required=True)
    changed_by_id = Identifier(required=True)
    changed_at = DateTime(required=True)
