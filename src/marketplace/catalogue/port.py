"""Catalogue lookup port (abstract interface).

Products, categories and brands are owned by the catalogue collaborator. The
order engine only needs a read-only view of a product at checkout time, so the
contract is a single lookup returning an immutable record.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum


class StockState(Enum):
    IN_STOCK = "in_stock"
    OUT_OF_STOCK = "out_of_stock"
    PRE_ORDER = "pre_order"


@dataclass(frozen=True)
class PriceTier:
    """Unit price applicable from ``min_quantity`` units upwards."""

    min_quantity: int
    price: float


@dataclass(frozen=True)
class ShopReference:
    shop_id: str
    shop_name: str | None = None
    shop_number: str | None = None


@dataclass(frozen=True)
class ProductRecord:
    """Live catalogue view of a product."""

    product_id: str
    title: str
    regular_price: float
    max_quantity: int
    shop: ShopReference
    thumbnail: str | None = None
    price_tiers: tuple[PriceTier, ...] = field(default_factory=tuple)
    stock: StockState = StockState.IN_STOCK
    deleted: bool = False

    @property
    def purchasable(self) -> bool:
        return not self.deleted and self.stock == StockState.IN_STOCK


class Catalogue(ABC):
    """Abstract catalogue interface."""

    @abstractmethod
    def get_product(self, product_id: str) -> ProductRecord | None:
        """Return the current product record, or None if it does not exist."""
        ...
