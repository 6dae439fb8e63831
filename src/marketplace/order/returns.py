"""Returns and refunds: commands and handler.

Handles the per line item return lifecycle: the buyer's request, the shop's
approval or rejection, and completion of the refund.
"""

import json

import structlog
from protean import handle
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.order.actors import Actor
from marketplace.order.order import Order

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class RequestReturn:
    """Ask to return part or all of a delivered line item."""

    order_id = Identifier(required=True)
    line_item_id = String(required=True, max_length=255)
    quantity = Integer(required=True)
    reason = String(max_length=500)
    description = String(max_length=2000)
    images = Text()  # JSON: list of uploaded image paths
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=50)
    actor_name = String(max_length=255)
    actor_shop_id = Identifier()


@marketplace.command(part_of="Order")
class ApproveReturn:
    order_id = Identifier(required=True)
    line_item_id = String(required=True, max_length=255)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=50)
    actor_name = String(max_length=255)
    actor_shop_id = Identifier()


@marketplace.command(part_of="Order")
class RejectReturn:
    order_id = Identifier(required=True)
    line_item_id = String(required=True, max_length=255)
    reason = String(max_length=1000)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=50)
    actor_name = String(max_length=255)
    actor_shop_id = Identifier()


@marketplace.command(part_of="Order")
class CompleteRefund:
    """Record that the returned goods were received and the money refunded."""

    order_id = Identifier(required=True)
    line_item_id = String(required=True, max_length=255)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=50)
    actor_name = String(max_length=255)
    actor_shop_id = Identifier()


@marketplace.command_handler(part_of=Order)
class ManageReturnsHandler:
    @handle(RequestReturn)
    def request_return(self, command):
        actor = Actor.from_command(command)
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        images = None
        if command.images:
            images = json.loads(command.images) if isinstance(command.images, str) else command.images

        order.request_return(
            actor,
            command.line_item_id,
            quantity=command.quantity,
            reason=command.reason,
            description=command.description,
            images=images,
        )
        repo.add(order)

        logger.info(
            "Return requested",
            order_id=str(order.id),
            line_item_id=command.line_item_id,
            quantity=command.quantity,
        )

    @handle(ApproveReturn)
    def approve_return(self, command):
        actor = Actor.from_command(command)
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.approve_return(actor, command.line_item_id)
        repo.add(order)

    @handle(RejectReturn)
    def reject_return(self, command):
        actor = Actor.from_command(command)
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.reject_return(actor, command.line_item_id, command.reason)
        repo.add(order)

        logger.info("Return rejected", order_id=str(order.id), line_item_id=command.line_item_id)

    @handle(CompleteRefund)
    def complete_refund(self, command):
        actor = Actor.from_command(command)
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.complete_refund(actor, command.line_item_id)
        repo.add(order)

        logger.info(
            "Refund completed",
            order_id=str(order.id),
            line_item_id=command.line_item_id,
            status=order.status,
        )
