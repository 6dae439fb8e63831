"""Order aggregate (Event Sourced): one multi-shop order per checkout.

The Order aggregate uses event sourcing: all state changes are captured as
domain events, and the current state is rebuilt by replaying events via
@apply decorators.

Each line item belongs to exactly one shop and moves through its own state
machines:

    Approval:     pending -> approved | rejected
    Fulfillment:  pending -> shipment-preparation -> shipped -> delivered
                  (cancelled from any state before delivered)
    Return:       delivered -> return-requested -> refund-approved -> refunded
                                                -> refund-rejected

The order-level status is never set by hand. Every line-item mutation folds
the projected line states through a reducer (see ``marketplace.order.status``)
and the rank lock, and the resulting status travels inside the event.
"""

import hashlib
import json
import secrets
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean import apply
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from marketplace.domain import marketplace
from marketplace.order.actors import ActorRole, can_act_on_line_item, is_order_buyer
from marketplace.order.errors import (
    AlreadyDecidedError,
    InvalidTransitionError,
    LineItemNotFoundError,
    NotAuthorizedError,
    ReturnInProgressError,
)
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
from marketplace.order.status import (
    ApprovalStatus,
    LineState,
    OrderStatus,
    ProductStatus,
    apply_rank_lock,
    reduce_approval_phase,
    reduce_fulfillment_phase,
)

__all__ = [
    "ApprovalStatus",
    "DeliveryAddress",
    "LineItem",
    "Order",
    "OrderStatus",
    "PaymentType",
    "ProductStatus",
]


class PaymentType(Enum):
    CASH_ON_DELIVERY = "cash-on-delivery"
    ONLINE_PAYMENT = "online-payment"


_FULFILLMENT_PATH = (
    ProductStatus.PENDING.value,
    ProductStatus.SHIPMENT_PREPARATION.value,
    ProductStatus.SHIPPED.value,
    ProductStatus.DELIVERED.value,
)

FULFILLMENT_TARGETS = frozenset(
    {
        ProductStatus.SHIPMENT_PREPARATION.value,
        ProductStatus.SHIPPED.value,
        ProductStatus.DELIVERED.value,
        ProductStatus.CANCELLED.value,
    }
)

# Statuses in which shops may not yet decide on their line items
_AWAITING_SETTLEMENT = frozenset({OrderStatus.PAYMENT_INITIATED.value, OrderStatus.FAILED.value})

# Cents tolerance when comparing settled and computed totals
_AMOUNT_TOLERANCE = 0.005


def amounts_match(expected, actual) -> bool:
    return actual is not None and abs(float(actual) - float(expected)) <= _AMOUNT_TOLERANCE


def generate_order_number() -> str:
    """Public order reference: ``order_`` plus 14 hex digits of a SHA-256 over random bytes."""
    digest = hashlib.sha256(secrets.token_bytes(16)).hexdigest()
    return f"order_{digest}"[:20]


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@marketplace.value_object(part_of="Order")
class DeliveryAddress:
    """The buyer's recently used address, copied at order time.

    Later edits to the buyer's address book never reach a placed order.
    """

    name = String(max_length=255)
    phone = String(max_length=30)
    house = String(max_length=255)
    street = String(max_length=255)
    city = String(max_length=100)
    state = String(max_length=100)
    zip = String(max_length=20)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@marketplace.entity(part_of="Order")
class LineItem:
    """One product bought from one shop, with its own approval, shipping and return state."""

    product_id = Identifier(required=True)
    title = String(required=True, max_length=255)
    thumbnail = String(max_length=1024)
    quantity = Integer(required=True, min_value=1)
    max_quantity = Integer()
    regular_price = Float(min_value=0.0)
    unit_price = Float(required=True, min_value=0.0)
    total_price = Float(required=True, min_value=0.0)

    shop_id = Identifier(required=True)
    shop_name = String(max_length=255)
    shop_number = String(max_length=50)

    shop_approved = String(choices=ApprovalStatus, default=ApprovalStatus.PENDING.value)
    approved_by_id = Identifier()
    approved_by_name = String(max_length=255)
    decision_reason = String(max_length=1000)
    decided_at = DateTime()

    product_status = String(choices=ProductStatus, default=ProductStatus.PENDING.value)
    tracking_link = String(max_length=1024)

    return_quantity = Integer()
    return_reason = String(max_length=500)
    return_description = String(max_length=2000)
    return_images = Text()  # JSON list of image paths
    return_requested_at = DateTime()
    return_approved_at = DateTime()
    return_rejected_at = DateTime()
    return_rejection_reason = String(max_length=1000)

    def state(self) -> LineState:
        return LineState(self.shop_approved, self.product_status)


# ---------------------------------------------------------------------------
# Aggregate Root (Event Sourced)
# ---------------------------------------------------------------------------
@marketplace.aggregate(is_event_sourced=True)
class Order:
    order_number = String(required=True, max_length=20)
    buyer_id = Identifier(required=True)
    buyer_role = String(max_length=50)
    buyer_name = String(max_length=255)
    buyer_email = String(max_length=255)
    buyer_phone = String(max_length=30)
    status = String(choices=OrderStatus, default=OrderStatus.PAYMENT_INITIATED.value)
    items = HasMany(LineItem)
    delivery_address = ValueObject(DeliveryAddress)
    total_items = Integer(default=0)
    total_amount = Float(default=0.0)
    payment_type = String(choices=PaymentType, default=PaymentType.ONLINE_PAYMENT.value)
    payment_session_id = String(max_length=255)
    payment_reference = String(max_length=255)
    failure_reason = String(max_length=500)
    include = Boolean(default=True)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        buyer_id,
        buyer_role,
        buyer_name,
        snapshot,
        payment_type,
        buyer_email=None,
        buyer_phone=None,
    ):
        """Create an order from a validated cart snapshot.

        Online payments start in ``payment-initiated`` and wait for the
        gateway. Cash-on-delivery and super-customer orders are ``placed``
        immediately; super-customer orders are kept out of shop listings
        (``include`` false) until an operator includes them.

        Args:
            buyer_id: The customer placing the order.
            buyer_role: ``customer`` or ``supper-customer``.
            buyer_name: Display name frozen onto the order.
            snapshot: A ``CartSnapshot`` from the cart snapshot builder.
            payment_type: ``cash-on-delivery`` or ``online-payment``.
        """
        role = ActorRole(buyer_role)
        if role not in (ActorRole.CUSTOMER, ActorRole.SUPER_CUSTOMER):
            raise NotAuthorizedError({"actor_role": [f"Role {role.value} cannot place orders"]})
        payment = PaymentType(payment_type)

        if role == ActorRole.SUPER_CUSTOMER or payment == PaymentType.CASH_ON_DELIVERY:
            initial_status = OrderStatus.PLACED.value
        else:
            initial_status = OrderStatus.PAYMENT_INITIATED.value

        # Pre-generate line item IDs for deterministic replay
        items_with_ids = [{**item.to_dict(), "id": str(uuid4())} for item in snapshot.items]

        order = cls._create_new()
        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=generate_order_number(),
                buyer_id=str(buyer_id),
                buyer_role=role.value,
                buyer_name=buyer_name,
                buyer_email=buyer_email,
                buyer_phone=buyer_phone,
                items=json.dumps(items_with_ids),
                delivery_address=json.dumps(snapshot.delivery_address),
                total_items=snapshot.total_items,
                total_amount=snapshot.total_amount,
                payment_type=payment.value,
                order_status=initial_status,
                include=role != ActorRole.SUPER_CUSTOMER,
                placed_at=datetime.now(UTC),
            )
        )
        return order

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def find_line_item(self, reference):
        """Look a line item up by its own id, falling back to its product id."""
        reference = str(reference)
        item = next((i for i in self.items if str(i.id) == reference), None)
        if item is None:
            item = next((i for i in self.items if str(i.product_id) == reference), None)
        if item is None:
            raise LineItemNotFoundError({"line_item_id": [f"Line item {reference} not found in order {self.id}"]})
        return item

    def _assert_can_manage(self, actor, item):
        if not can_act_on_line_item(actor, item):
            raise NotAuthorizedError({"actor": [f"{actor.role.value} {actor.id} cannot act on line item {item.id}"]})

    def _assert_not_delivered(self):
        if self.status == OrderStatus.DELIVERED.value:
            raise InvalidTransitionError({"status": ["Order is already delivered"]})

    def _projected_status(self, item, reducer, **changes):
        """Order status after applying ``changes`` to ``item``, gated by the rank lock."""
        states = []
        for line in self.items:
            state = line.state()
            if str(line.id) == str(item.id):
                state = state._replace(**changes)
            states.append(state)
        return apply_rank_lock(self.status, reducer(states))

    # -------------------------------------------------------------------
    # Payment settlement
    # -------------------------------------------------------------------
    def _assert_awaiting_payment(self):
        if self.status != OrderStatus.PAYMENT_INITIATED.value:
            raise InvalidTransitionError({"status": [f"Order is not awaiting payment (status: {self.status})"]})

    def open_payment_session(self, session_id):
        """Record the gateway checkout session opened for this order."""
        self._assert_awaiting_payment()
        self.raise_(
            PaymentSessionOpened(
                order_id=str(self.id),
                session_id=session_id,
                amount=self.total_amount,
            )
        )

    def record_settlement(self, paid, amount, payment_reference=None):
        """Apply the gateway outcome. Returns True when the order was placed."""
        self._assert_awaiting_payment()

        if not paid:
            self.record_payment_failure("Payment was not completed")
            return False
        if not amounts_match(self.total_amount, amount):
            self.record_payment_failure(f"Paid amount {amount} does not match order total {self.total_amount}")
            return False

        self.raise_(
            PaymentConfirmed(
                order_id=str(self.id),
                payment_reference=payment_reference,
                amount=float(amount),
                order_status=OrderStatus.PLACED.value,
                confirmed_at=datetime.now(UTC),
            )
        )
        return True

    def record_payment_failure(self, reason):
        """Fail the order and every line item in it."""
        self._assert_awaiting_payment()
        self.raise_(
            PaymentFailed(
                order_id=str(self.id),
                reason=reason,
                order_status=OrderStatus.FAILED.value,
                failed_at=datetime.now(UTC),
            )
        )

    # -------------------------------------------------------------------
    # Shop approval
    # -------------------------------------------------------------------
    def _assert_undecided(self, item):
        if self.status in _AWAITING_SETTLEMENT:
            raise InvalidTransitionError({"status": [f"Order cannot be decided on while {self.status}"]})
        if item.shop_approved != ApprovalStatus.PENDING.value:
            raise AlreadyDecidedError({"shop_approved": [f"Line item {item.id} is already {item.shop_approved}"]})

    def approve_line_item(self, actor, line_item_ref, reason=None):
        item = self.find_line_item(line_item_ref)
        self._assert_can_manage(actor, item)
        self._assert_undecided(item)

        order_status = self._projected_status(
            item,
            reduce_approval_phase,
            shop_approved=ApprovalStatus.APPROVED.value,
        )
        self.raise_(
            LineItemApproved(
                order_id=str(self.id),
                line_item_id=str(item.id),
                shop_id=str(item.shop_id),
                approved_by_id=actor.id,
                approved_by_name=actor.name,
                reason=reason,
                order_status=order_status,
                decided_at=datetime.now(UTC),
            )
        )

    def reject_line_item(self, actor, line_item_ref, reason=None):
        """Decline a line item. Online payments move the item into refund."""
        item = self.find_line_item(line_item_ref)
        self._assert_can_manage(actor, item)
        self._assert_undecided(item)

        if self.payment_type == PaymentType.ONLINE_PAYMENT.value:
            product_status = ProductStatus.REFUND_IN_PROGRESS.value
        else:
            product_status = ProductStatus.REJECTED.value

        order_status = self._projected_status(
            item,
            reduce_approval_phase,
            shop_approved=ApprovalStatus.REJECTED.value,
            product_status=product_status,
        )
        self.raise_(
            LineItemRejected(
                order_id=str(self.id),
                line_item_id=str(item.id),
                shop_id=str(item.shop_id),
                approved_by_id=actor.id,
                approved_by_name=actor.name,
                reason=reason,
                product_status=product_status,
                order_status=order_status,
                decided_at=datetime.now(UTC),
            )
        )

    # -------------------------------------------------------------------
    # Fulfillment
    # -------------------------------------------------------------------
    def advance_fulfillment(self, actor, line_item_ref, target_status):
        """Move an approved line item along its shipping path (or cancel it)."""
        item = self.find_line_item(line_item_ref)
        self._assert_can_manage(actor, item)

        if target_status not in FULFILLMENT_TARGETS:
            raise ValidationError(
                {"product_status": [f"Invalid fulfillment status {target_status}. Allowed: {sorted(FULFILLMENT_TARGETS)}"]}
            )
        self._assert_not_delivered()
        if item.shop_approved != ApprovalStatus.APPROVED.value:
            raise InvalidTransitionError({"shop_approved": [f"Line item {item.id} has not been approved"]})

        current = item.product_status
        if current not in _FULFILLMENT_PATH or current == ProductStatus.DELIVERED.value:
            allowed = False
        elif target_status == ProductStatus.CANCELLED.value:
            allowed = True
        else:
            allowed = _FULFILLMENT_PATH.index(target_status) > _FULFILLMENT_PATH.index(current)
        if not allowed:
            raise InvalidTransitionError({"product_status": [f"Cannot move line item from {current} to {target_status}"]})

        order_status = self._projected_status(item, reduce_fulfillment_phase, product_status=target_status)
        self.raise_(
            FulfillmentAdvanced(
                order_id=str(self.id),
                line_item_id=str(item.id),
                shop_id=str(item.shop_id),
                previous_status=current,
                product_status=target_status,
                order_status=order_status,
                updated_by_id=actor.id,
                updated_at=datetime.now(UTC),
            )
        )

    def set_tracking_link(self, actor, line_item_ref, tracking_link):
        item = self.find_line_item(line_item_ref)
        self._assert_can_manage(actor, item)

        if not tracking_link or not tracking_link.strip():
            raise ValidationError({"tracking_link": ["Tracking link is required"]})
        self._assert_not_delivered()

        self.raise_(
            TrackingLinkSet(
                order_id=str(self.id),
                line_item_id=str(item.id),
                shop_id=str(item.shop_id),
                tracking_link=tracking_link.strip(),
                updated_at=datetime.now(UTC),
            )
        )

    # -------------------------------------------------------------------
    # Returns & refunds
    # -------------------------------------------------------------------
    def request_return(self, actor, line_item_ref, quantity, reason=None, description=None, images=None):
        """Open a return for a delivered line item. Only the buyer may ask."""
        item = self.find_line_item(line_item_ref)
        if not is_order_buyer(actor, self):
            raise NotAuthorizedError({"actor": ["Only the buyer can request a return"]})

        if item.product_status == ProductStatus.RETURN_REQUESTED.value:
            raise ReturnInProgressError({"product_status": [f"A return is already open for line item {item.id}"]})
        if item.product_status != ProductStatus.DELIVERED.value:
            raise InvalidTransitionError({"product_status": ["Only delivered items can be returned"]})

        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError({"quantity": ["Return quantity must be a positive integer"]})
        if quantity > item.quantity:
            raise ValidationError({"quantity": [f"Cannot return {quantity} items; only {item.quantity} purchased"]})
        if images is not None and not isinstance(images, list):
            raise ValidationError({"images": ["Images must be a list"]})

        order_status = self._projected_status(
            item,
            reduce_fulfillment_phase,
            product_status=ProductStatus.RETURN_REQUESTED.value,
        )
        self.raise_(
            ReturnRequested(
                order_id=str(self.id),
                line_item_id=str(item.id),
                shop_id=str(item.shop_id),
                quantity=quantity,
                reason=reason,
                description=description,
                images=json.dumps(images or []),
                order_status=order_status,
                requested_at=datetime.now(UTC),
            )
        )

    def _assert_return_state(self, item, expected):
        if item.product_status != expected:
            raise InvalidTransitionError(
                {"product_status": [f"Line item {item.id} is {item.product_status}, expected {expected}"]}
            )

    def approve_return(self, actor, line_item_ref):
        item = self.find_line_item(line_item_ref)
        self._assert_can_manage(actor, item)
        self._assert_return_state(item, ProductStatus.RETURN_REQUESTED.value)

        order_status = self._projected_status(
            item,
            reduce_fulfillment_phase,
            product_status=ProductStatus.REFUND_APPROVED.value,
        )
        self.raise_(
            ReturnApproved(
                order_id=str(self.id),
                line_item_id=str(item.id),
                shop_id=str(item.shop_id),
                approved_by_id=actor.id,
                order_status=order_status,
                approved_at=datetime.now(UTC),
            )
        )

    def reject_return(self, actor, line_item_ref, reason):
        item = self.find_line_item(line_item_ref)
        self._assert_can_manage(actor, item)
        if not reason or not reason.strip():
            raise ValidationError({"reason": ["A reason is required to reject a return"]})
        self._assert_return_state(item, ProductStatus.RETURN_REQUESTED.value)

        order_status = self._projected_status(
            item,
            reduce_fulfillment_phase,
            product_status=ProductStatus.REFUND_REJECTED.value,
        )
        self.raise_(
            ReturnRejected(
                order_id=str(self.id),
                line_item_id=str(item.id),
                shop_id=str(item.shop_id),
                rejected_by_id=actor.id,
                reason=reason.strip(),
                order_status=order_status,
                rejected_at=datetime.now(UTC),
            )
        )

    def complete_refund(self, actor, line_item_ref):
        item = self.find_line_item(line_item_ref)
        self._assert_can_manage(actor, item)
        self._assert_return_state(item, ProductStatus.REFUND_APPROVED.value)

        order_status = self._projected_status(
            item,
            reduce_fulfillment_phase,
            product_status=ProductStatus.REFUNDED.value,
        )
        self.raise_(
            RefundCompleted(
                order_id=str(self.id),
                line_item_id=str(item.id),
                shop_id=str(item.shop_id),
                completed_by_id=actor.id,
                order_status=order_status,
                completed_at=datetime.now(UTC),
            )
        )

    # -------------------------------------------------------------------
    # Super-customer inclusion
    # -------------------------------------------------------------------
    def set_inclusion(self, actor, include):
        """Include a super-customer order in (or exclude it from) shop fulfillment.

        Returns False when the flag already had the requested value.
        """
        if not (actor.is_admin or any(can_act_on_line_item(actor, item) for item in self.items)):
            raise NotAuthorizedError({"actor": [f"{actor.role.value} {actor.id} cannot change order inclusion"]})
        if self.buyer_role != ActorRole.SUPER_CUSTOMER.value:
            raise ValidationError({"include": ["Only super-customer orders can be included or excluded"]})
        self._assert_not_delivered()

        if bool(include) == bool(self.include):
            return False

        self.raise_(
            OrderInclusionChanged(
                order_id=str(self.id),
                include=bool(include),
                changed_by_id=actor.id,
                changed_at=datetime.now(UTC),
            )
        )
        return True

    # -------------------------------------------------------------------
    # @apply methods: rebuild state during event replay
    # -------------------------------------------------------------------
    def _line(self, line_item_id):
        return next(i for i in self.items if str(i.id) == str(line_item_id))

    @apply
    def _on_order_placed(self, event: OrderPlaced):
        self.id = event.order_id
        self.order_number = event.order_number
        self.buyer_id = event.buyer_id
        self.buyer_role = event.buyer_role
        self.buyer_name = event.buyer_name
        self.buyer_email = event.buyer_email
        self.buyer_phone = event.buyer_phone
        self.total_items = event.total_items
        self.total_amount = event.total_amount
        self.payment_type = event.payment_type
        self.status = event.order_status
        self.include = event.include
        self.created_at = event.placed_at
        self.updated_at = event.placed_at

        items_data = json.loads(event.items) if isinstance(event.items, str) else []
        self.items = [LineItem(**item_data) for item_data in items_data]

        address_data = json.loads(event.delivery_address) if isinstance(event.delivery_address, str) else {}
        if address_data:
            self.delivery_address = DeliveryAddress(**address_data)

    @apply
    def _on_payment_session_opened(self, event: PaymentSessionOpened):
        self.payment_session_id = event.session_id

    @apply
    def _on_payment_confirmed(self, event: PaymentConfirmed):
        self.status = event.order_status
        self.payment_reference = event.payment_reference
        self.updated_at = event.confirmed_at

    @apply
    def _on_payment_failed(self, event: PaymentFailed):
        self.status = event.order_status
        self.failure_reason = event.reason
        self.updated_at = event.failed_at
        for item in self.items:
            item.product_status = ProductStatus.FAILED.value

    @apply
    def _on_line_item_approved(self, event: LineItemApproved):
        item = self._line(event.line_item_id)
        item.shop_approved = ApprovalStatus.APPROVED.value
        item.approved_by_id = event.approved_by_id
        item.approved_by_name = event.approved_by_name
        item.decision_reason = event.reason
        item.decided_at = event.decided_at
        self.status = event.order_status
        self.updated_at = event.decided_at

    @apply
    def _on_line_item_rejected(self, event: LineItemRejected):
        item = self._line(event.line_item_id)
        item.shop_approved = ApprovalStatus.REJECTED.value
        item.product_status = event.product_status
        item.approved_by_id = event.approved_by_id
        item.approved_by_name = event.approved_by_name
        item.decision_reason = event.reason
        item.decided_at = event.decided_at
        self.status = event.order_status
        self.updated_at = event.decided_at

    @apply
    def _on_fulfillment_advanced(self, event: FulfillmentAdvanced):
        self._line(event.line_item_id).product_status = event.product_status
        self.status = event.order_status
        self.updated_at = event.updated_at

    @apply
    def _on_tracking_link_set(self, event: TrackingLinkSet):
        self._line(event.line_item_id).tracking_link = event.tracking_link
        self.updated_at = event.updated_at

    @apply
    def _on_return_requested(self, event: ReturnRequested):
        item = self._line(event.line_item_id)
        item.product_status = ProductStatus.RETURN_REQUESTED.value
        item.return_quantity = event.quantity
        item.return_reason = event.reason
        item.return_description = event.description
        item.return_images = event.images
        item.return_requested_at = event.requested_at
        self.status = event.order_status
        self.updated_at = event.requested_at

    @apply
    def _on_return_approved(self, event: ReturnApproved):
        item = self._line(event.line_item_id)
        item.product_status = ProductStatus.REFUND_APPROVED.value
        item.return_approved_at = event.approved_at
        self.status = event.order_status
        self.updated_at = event.approved_at

    @apply
    def _on_return_rejected(self, event: ReturnRejected):
        item = self._line(event.line_item_id)
        item.product_status = ProductStatus.REFUND_REJECTED.value
        item.return_rejection_reason = event.reason
        item.return_rejected_at = event.rejected_at
        self.status = event.order_status
        self.updated_at = event.rejected_at

    @apply
    def _on_refund_completed(self, event: RefundCompleted):
        self._line(event.line_item_id).product_status = ProductStatus.REFUNDED.value
        self.status = event.order_status
        self.updated_at = event.completed_at

    @apply
    def _on_order_inclusion_changed(self, event: OrderInclusionChanged):
        self.include = event.include
        self.updated_at = event.changed_at
