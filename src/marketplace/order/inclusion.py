"""Super-customer order inclusion: command and handler."""

import structlog
from protean import handle
from protean.fields import Boolean, Identifier, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.order.actors import Actor
from marketplace.order.order import Order

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class SetOrderInclusion:
    order_id = Identifier(required=True)
    include = Boolean(default=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=50)
    actor_name = String(max_length=255)
    actor_shop_id = Identifier()


@marketplace.command_handler(part_of=Order)
class OrderInclusionHandler:
    @handle(SetOrderInclusion)
    def set_inclusion(self, command):
        actor = Actor.from_command(command)
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        changed = order.set_inclusion(actor, command.include)
        if changed:
            repo.add(order)

        logger.info("Order inclusion set", order_id=str(order.id), include=order.include, changed=changed)
        return changed
