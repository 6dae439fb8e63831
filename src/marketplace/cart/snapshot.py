"""Cart snapshot: turns a live cart into a purchasable, price-frozen payload.

The builder is read-only: it consults the catalogue and the buyer's address
book but persists nothing, so a checkout can be retried safely. Lines that
can no longer be bought are dropped rather than failing the whole checkout.
"""

from dataclasses import dataclass

import structlog
from protean.exceptions import ValidationError

from marketplace.cart.pricing import resolve_unit_price
from marketplace.catalogue.port import Catalogue
from marketplace.order.errors import EmptyOrderError, NoDeliveryAddressError

logger = structlog.get_logger(__name__)

ADDRESS_FIELDS = ("name", "phone", "house", "street", "city", "state", "zip")


@dataclass(frozen=True)
class SnapshotItem:
    product_id: str
    title: str
    thumbnail: str | None
    quantity: int
    max_quantity: int
    regular_price: float
    unit_price: float
    shop_id: str
    shop_name: str | None
    shop_number: str | None

    @property
    def total_price(self) -> float:
        return round(self.unit_price * self.quantity, 2)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "title": self.title,
            "thumbnail": self.thumbnail,
            "quantity": self.quantity,
            "max_quantity": self.max_quantity,
            "regular_price": self.regular_price,
            "unit_price": self.unit_price,
            "total_price": self.total_price,
            "shop_id": self.shop_id,
            "shop_name": self.shop_name,
            "shop_number": self.shop_number,
        }


@dataclass(frozen=True)
class CartSnapshot:
    items: tuple[SnapshotItem, ...]
    delivery_address: dict
    skipped_product_ids: tuple[str, ...] = ()

    @property
    def total_items(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def total_amount(self) -> float:
        return round(sum(item.total_price for item in self.items), 2)

    @property
    def shop_ids(self) -> set[str]:
        return {item.shop_id for item in self.items}


def _merge_cart_lines(cart_lines) -> dict[str, int]:
    """Collapse cart lines per product, validating quantities."""
    merged: dict[str, int] = {}
    for line in cart_lines:
        product_id = str(line.get("product_id") or "")
        quantity = line.get("quantity")
        if not product_id:
            raise ValidationError({"product_id": ["Cart line is missing a product id"]})
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError({"quantity": [f"Invalid quantity for product {product_id}"]})
        merged[product_id] = merged.get(product_id, 0) + quantity
    return merged


def select_delivery_address(addresses) -> dict:
    """Pick the address the buyer marked as recently used."""
    chosen = next((addr for addr in addresses or [] if addr.get("recently_used")), None)
    if chosen is None:
        raise NoDeliveryAddressError({"delivery_address": ["No delivery address selected"]})
    return {key: chosen.get(key) for key in ADDRESS_FIELDS}


def build_cart_snapshot(cart_lines, addresses, catalogue: Catalogue) -> CartSnapshot:
    """Validate ``cart_lines`` against the live catalogue.

    Args:
        cart_lines: List of dicts with product_id and quantity.
        addresses: The buyer's address book; list of dicts with name, phone,
            house, street, city, state, zip and a recently_used flag.
        catalogue: Catalogue port used to fetch current product records.

    Raises:
        ValidationError: A cart line is malformed.
        NoDeliveryAddressError: No address is marked as recently used.
        EmptyOrderError: No line is purchasable.
    """
    quantities = _merge_cart_lines(cart_lines)
    delivery_address = select_delivery_address(addresses)

    items = []
    skipped = []
    for product_id, quantity in quantities.items():
        product = catalogue.get_product(product_id)
        if product is None or not product.purchasable:
            skipped.append(product_id)
            continue
        # Quantity must stay strictly below the per-order maximum
        if quantity >= product.max_quantity:
            skipped.append(product_id)
            continue

        items.append(
            SnapshotItem(
                product_id=product.product_id,
                title=product.title,
                thumbnail=product.thumbnail,
                quantity=quantity,
                max_quantity=product.max_quantity,
                regular_price=product.regular_price,
                unit_price=resolve_unit_price(product.regular_price, product.price_tiers, quantity),
                shop_id=product.shop.shop_id,
                shop_name=product.shop.shop_name,
                shop_number=product.shop.shop_number,
            )
        )

    if skipped:
        logger.info("Skipped unpurchasable cart lines", product_ids=skipped)

    if not items:
        raise EmptyOrderError({"cart": ["No valid products in cart to create order"]})

    return CartSnapshot(
        items=tuple(items),
        delivery_address=delivery_address,
        skipped_product_ids=tuple(skipped),
    )
