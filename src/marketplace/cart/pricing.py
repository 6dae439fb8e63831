"""Quantity-tiered unit pricing."""

from collections.abc import Iterable

from marketplace.catalogue.port import PriceTier


def resolve_unit_price(regular_price: float, tiers: Iterable[PriceTier], quantity: int) -> float:
    """Return the unit price for ``quantity`` units.

    The qualifying tier with the highest ``min_quantity`` wins; on equal
    thresholds the later tier wins. Without a qualifying tier the regular
    price applies.
    """
    price = regular_price
    best_threshold = None
    for tier in tiers:
        if tier.min_quantity <= quantity and (best_threshold is None or tier.min_quantity >= best_threshold):
            best_threshold = tier.min_quantity
            price = tier.price
    return price
