"""In-memory catalogue for development and testing.

Products are registered up front and can be mutated between calls (deleted,
taken out of stock) to exercise the checkout validation paths.
"""

from dataclasses import replace

from marketplace.catalogue.port import Catalogue, ProductRecord, StockState


class FakeCatalogue(Catalogue):
    """Configurable in-memory catalogue."""

    def __init__(self) -> None:
        self.products: dict[str, ProductRecord] = {}
        self.lookups: list[str] = []

    def register(self, product: ProductRecord) -> None:
        self.products[product.product_id] = product

    def mark_deleted(self, product_id: str) -> None:
        self.products[product_id] = replace(self.products[product_id], deleted=True)

    def set_stock(self, product_id: str, stock: StockState) -> None:
        self.products[product_id] = replace(self.products[product_id], stock=stock)

    def get_product(self, product_id: str) -> ProductRecord | None:
        self.lookups.append(product_id)
        return self.products.get(str(product_id))
