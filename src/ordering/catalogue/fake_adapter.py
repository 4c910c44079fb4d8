"""In-memory product catalogue for development and testing."""

from ordering.catalogue.port import CatalogueError, ComboInfo, ProductCatalogue, ProductInfo


class InMemoryCatalogue(ProductCatalogue):
    def __init__(self) -> None:
        self.products: dict[str, ProductInfo] = {}
        self.combos: dict[str, ComboInfo] = {}
        self.sold: dict[str, int] = {}
        self.fail_sold_updates: bool = False
        self.calls: list[dict] = []

    def add_product(self, product: ProductInfo | dict) -> ProductInfo:
        if isinstance(product, dict):
            product = ProductInfo.from_dict(product)
        self.products[product.product_id] = product
        return product

    def add_combo(self, combo: ComboInfo) -> ComboInfo:
        self.combos[combo.combo_id] = combo
        return combo

    def get_product(self, product_id: str) -> ProductInfo | None:
        return self.products.get(str(product_id))

    def get_combo(self, combo_id: str) -> ComboInfo | None:
        return self.combos.get(str(combo_id))

    def increment_sold(self, product_id: str, quantity: int) -> None:
        self.calls.append({"method": "increment_sold", "product_id": product_id, "quantity": quantity})
        if self.fail_sold_updates:
            raise CatalogueError("Catalogue unavailable")
        self.sold[str(product_id)] = self.sold.get(str(product_id), 0) + quantity
