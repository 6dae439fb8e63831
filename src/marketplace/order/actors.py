"""Authenticated actors and the capability checks applied to them.

Actors are issued by the auth/session collaborator; commands carry them as
``actor_*`` fields and handlers rebuild an ``Actor`` before touching an order.
"""

from dataclasses import dataclass
from enum import Enum

from marketplace.order.errors import NotAuthorizedError


class ActorRole(Enum):
    CUSTOMER = "customer"
    SUPER_CUSTOMER = "supper-customer"
    SHOP_USER = "shop-user"
    ADMIN = "admin"


BUYER_ROLES = frozenset({ActorRole.CUSTOMER, ActorRole.SUPER_CUSTOMER})


@dataclass(frozen=True)
class Actor:
    id: str
    role: ActorRole
    name: str = ""
    shop_id: str | None = None

    @classmethod
    def build(cls, actor_id, actor_role, actor_name=None, actor_shop_id=None) -> "Actor":
        try:
            role = ActorRole(actor_role)
        except ValueError:
            raise NotAuthorizedError({"actor_role": [f"Unknown role {actor_role}"]}) from None
        return cls(
            id=str(actor_id),
            role=role,
            name=actor_name or "",
            shop_id=str(actor_shop_id) if actor_shop_id else None,
        )

    @classmethod
    def from_command(cls, command) -> "Actor":
        return cls.build(command.actor_id, command.actor_role, command.actor_name, command.actor_shop_id)

    def as_command_fields(self) -> dict:
        return {
            "actor_id": self.id,
            "actor_role": self.role.value,
            "actor_name": self.name,
            "actor_shop_id": self.shop_id,
        }

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN

    @property
    def is_shop_user(self) -> bool:
        return self.role == ActorRole.SHOP_USER

    @property
    def is_buyer(self) -> bool:
        return self.role in BUYER_ROLES


def can_act_on_line_item(actor: Actor, line_item) -> bool:
    """Whether the actor may operate a line item on behalf of its shop.

    Administrators act for every shop; shop operators only for their own.
    """
    if actor.is_admin:
        return True
    if actor.is_shop_user and actor.shop_id is not None:
        return str(line_item.shop_id) == actor.shop_id
    return False


def is_order_buyer(actor: Actor, order) -> bool:
    return actor.is_buyer and str(order.buyer_id) == actor.id
