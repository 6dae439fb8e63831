"""Line item fulfillment: commands and handler.

Shops move their approved line items through shipment preparation, shipping
and delivery, or cancel them, and attach tracking links.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.order.actors import Actor
from marketplace.order.order import Order

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class AdvanceFulfillment:
    order_id = Identifier(required=True)
    line_item_id = String(required=True, max_length=255)
    product_status = String(required=True, max_length=50)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=50)
    actor_name = String(max_length=255)
    actor_shop_id = Identifier()


@marketplace.command(part_of="Order")
class SetTrackingLink:
    order_id = Identifier(required=True)
    line_item_id = String(required=True, max_length=255)
    tracking_link = String(required=True, max_length=1024)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=50)
    actor_name = String(max_length=255)
    actor_shop_id = Identifier()


@marketplace.command_handler(part_of=Order)
class FulfillmentHandler:
    @handle(AdvanceFulfillment)
    def advance_fulfillment(self, command):
        actor = Actor.from_command(command)
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.advance_fulfillment(actor, command.line_item_id, command.product_status)
        repo.add(order)

        logger.info(
            "Fulfillment advanced",
            order_id=str(order.id),
            line_item_id=command.line_item_id,
            product_status=command.product_status,
            status=order.status,
        )

    @handle(SetTrackingLink)
    def set_tracking_link(self, command):
        actor = Actor.from_command(command)
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.set_tracking_link(actor, command.line_item_id, command.tracking_link)
        repo.add(order)
