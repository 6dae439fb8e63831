"""Shop approval: commands and handler."""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.order.actors import Actor
from marketplace.order.order import Order

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class ApproveLineItem:
    order_id = Identifier(required=True)
    line_item_id = String(required=True, max_length=255)  # line item id or product id
    reason = String(max_length=1000)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=50)
    actor_name = String(max_length=255)
    actor_shop_id = Identifier()


@marketplace.command(part_of="Order")
class RejectLineItem:
    order_id = Identifier(required=True)
    line_item_id = String(required=True, max_length=255)
    reason = String(max_length=1000)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=50)
    actor_name = String(max_length=255)
    actor_shop_id = Identifier()


@marketplace.command_handler(part_of=Order)
class ShopApprovalHandler:
    @handle(ApproveLineItem)
    def approve_line_item(self, command):
        actor = Actor.from_command(command)
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.approve_line_item(actor, command.line_item_id, reason=command.reason)
        repo.add(order)

        logger.info(
            "Line item approved",
            order_id=str(order.id),
            line_item_id=command.line_item_id,
            shop_id=actor.shop_id,
            status=order.status,
        )

    @handle(RejectLineItem)
    def reject_line_item(self, command):
        actor = Actor.from_command(command)
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.reject_line_item(actor, command.line_item_id, reason=command.reason)
        repo.add(order)

        logger.info(
            "Line item rejected",
            order_id=str(order.id),
            line_item_id=command.line_item_id,
            shop_id=actor.shop_id,
            status=order.status,
        )
