"""Order placement: command and handler.

Turns a cart into an Order: the cart is validated against the live catalogue,
the client's expected total is checked against the computed one, and online
payments get a gateway checkout session.
"""

import json

import structlog
from protean import handle
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace.cart.snapshot import build_cart_snapshot
from marketplace.catalogue import get_catalogue
from marketplace.domain import marketplace
from marketplace.gateway import get_gateway
from marketplace.order.actors import Actor
from marketplace.order.errors import AmountMismatchError, NotAuthorizedError
from marketplace.order.order import Order, OrderStatus, PaymentType, amounts_match

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class PlaceOrder:
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=50)
    actor_name = String(max_length=255)
    actor_shop_id = Identifier()
    cart_lines = Text(required=True)  # JSON: list of {product_id, quantity}
    addresses = Text(required=True)  # JSON: the buyer's address book
    payment_type = String(required=True, choices=PaymentType)
    buyer_email = String(max_length=255)
    buyer_phone = String(max_length=30)
    expected_total = Float()


@marketplace.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        actor = Actor.from_command(command)
        if not actor.is_buyer:
            raise NotAuthorizedError({"actor_role": [f"Role {actor.role.value} cannot place orders"]})

        cart_lines = json.loads(command.cart_lines) if isinstance(command.cart_lines, str) else command.cart_lines
        addresses = json.loads(command.addresses) if isinstance(command.addresses, str) else command.addresses

        snapshot = build_cart_snapshot(cart_lines, addresses, get_catalogue())
        if command.expected_total is not None and not amounts_match(snapshot.total_amount, command.expected_total):
            raise AmountMismatchError(
                {
                    "expected_total": [
                        f"Expected total {command.expected_total} does not match cart total {snapshot.total_amount}"
                    ]
                }
            )

        order = Order.place(
            buyer_id=actor.id,
            buyer_role=actor.role.value,
            buyer_name=actor.name,
            snapshot=snapshot,
            payment_type=command.payment_type,
            buyer_email=command.buyer_email,
            buyer_phone=command.buyer_phone,
        )

        if order.status == OrderStatus.PAYMENT_INITIATED.value:
            result = get_gateway().create_session(
                order.order_number,
                order.total_amount,
                {"id": actor.id, "name": actor.name, "email": command.buyer_email},
            )
            if result.success:
                order.open_payment_session(result.session_id)
            else:
                logger.warning(
                    "Payment session could not be opened",
                    order_id=str(order.id),
                    reason=result.failure_reason,
                )
                order.record_payment_failure(result.failure_reason or "Payment session could not be opened")

        current_domain.repository_for(Order).add(order)

        logger.info(
            "Order placed",
            order_id=str(order.id),
            order_number=order.order_number,
            status=order.status,
            shop_count=len(snapshot.shop_ids),
            skipped=len(snapshot.skipped_product_ids),
        )
        return str(order.id)
