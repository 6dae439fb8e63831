"""Payment settlement: commands and handler.

ConfirmPayment is issued by the gateway webhook with the reported outcome.
VerifyPayment polls the gateway when the buyer returns from checkout.
Both settle a ``payment-initiated`` order: placed when paid in full,
failed otherwise.
"""

import structlog
from protean import handle
from protean.fields import Boolean, Float, Identifier, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.gateway import get_gateway
from marketplace.order.actors import Actor, is_order_buyer
from marketplace.order.errors import NotAuthorizedError
from marketplace.order.order import Order

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class ConfirmPayment:
    order_id = Identifier(required=True)
    paid = Boolean(default=False)
    amount = Float()
    payment_reference = String(max_length=255)


@marketplace.command(part_of="Order")
class VerifyPayment:
    order_id = Identifier(required=True)
    actor_id = Identifier()
    actor_role = String(max_length=50)
    actor_name = String(max_length=255)
    actor_shop_id = Identifier()


@marketplace.command_handler(part_of=Order)
class SettlePaymentHandler:
    @handle(ConfirmPayment)
    def confirm_payment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        placed = order.record_settlement(
            paid=command.paid,
            amount=command.amount,
            payment_reference=command.payment_reference,
        )
        repo.add(order)

        logger.info("Payment settled", order_id=str(order.id), placed=placed, status=order.status)
        return placed

    @handle(VerifyPayment)
    def verify_payment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        if command.actor_id:
            actor = Actor.from_command(command)
            if not (actor.is_admin or is_order_buyer(actor, order)):
                raise NotAuthorizedError({"actor": ["Only the buyer can verify this payment"]})

        result = get_gateway().verify(order.order_number)
        placed = order.record_settlement(
            paid=result.paid,
            amount=result.amount,
            payment_reference=result.payment_reference,
        )
        repo.add(order)

        logger.info(
            "Payment verified",
            order_id=str(order.id),
            gateway_status=result.gateway_status,
            placed=placed,
        )
        return placed
