"""Product catalogue port.

The ordering context does not own products; it reads prices, stock and combo
definitions from the catalogue and reports sales back to it. Products are a
tagged union: shared fields on ``ProductInfo`` plus a per-type ``details``
payload selected by the ``product_type`` discriminant.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import ClassVar

from ordering.pricing.rules import ProductType


class CatalogueError(Exception):
    """Raised when the catalogue cannot serve a request."""


@dataclass(frozen=True)
class PackSize:
    pack_size_id: str
    label: str
    price: float
    stock: int
    discounted_price: float | None = None


@dataclass(frozen=True)
class GroceryDetails:
    kind: ClassVar[str] = ProductType.GROCERY.value

    brand: str | None = None
    pack_sizes: tuple[PackSize, ...] = ()


@dataclass(frozen=True)
class DeliveryDetails:
    kind: ClassVar[str] = ProductType.DELIVERY.value

    restaurant_name: str | None = None
    is_veg: bool = True


_DETAILS_BY_TYPE = {
    ProductType.GROCERY.value: GroceryDetails,
    ProductType.DELIVERY.value: DeliveryDetails,
}


@dataclass(frozen=True)
class ProductInfo:
    product_id: str
    title: str
    price: float
    stock: int
    seller_id: str
    details: GroceryDetails | DeliveryDetails = field(default_factory=GroceryDetails)
    discounted_price: float | None = None
    is_active: bool = True

    @property
    def product_type(self) -> str:
        return self.details.kind

    @property
    def pack_sizes(self) -> tuple[PackSize, ...]:
        return getattr(self.details, "pack_sizes", ())

    @property
    def restaurant_name(self) -> str | None:
        return getattr(self.details, "restaurant_name", None)

    def pack_size(self, pack_size_id) -> PackSize | None:
        return next((p for p in self.pack_sizes if str(p.pack_size_id) == str(pack_size_id)), None)

    @classmethod
    def from_dict(cls, data: dict) -> "ProductInfo":
        """Build a product, choosing the details payload by ``product_type``."""
        product_type = data.get("product_type", ProductType.GROCERY.value)
        details_cls = _DETAILS_BY_TYPE.get(product_type)
        if details_cls is None:
            raise ValueError(f"Unknown product type: {product_type}")

        details = dict(data.get("details") or {})
        if details_cls is GroceryDetails:
            details["pack_sizes"] = tuple(
                p if isinstance(p, PackSize) else PackSize(**p) for p in details.get("pack_sizes", ())
            )

        return cls(
            product_id=str(data["product_id"]),
            title=data.get("title", ""),
            price=data["price"],
            stock=data.get("stock", 0),
            seller_id=str(data["seller_id"]),
            details=details_cls(**details),
            discounted_price=data.get("discounted_price"),
            is_active=data.get("is_active", True),
        )


@dataclass(frozen=True)
class ComboComponent:
    product_id: str
    quantity: int = 1
    pack_size_id: str | None = None


@dataclass(frozen=True)
class ComboInfo:
    combo_id: str
    title: str
    discount_percentage: float
    components: tuple[ComboComponent, ...]
    is_active: bool = True


class ProductCatalogue(ABC):
    """Read access to products and combos, plus sales reporting."""

    @abstractmethod
    def get_product(self, product_id: str) -> ProductInfo | None:
        ...

    @abstractmethod
    def get_combo(self, combo_id: str) -> ComboInfo | None:
        ...

    @abstractmethod
    def increment_sold(self, product_id: str, quantity: int) -> None:
        """Add ``quantity`` to the product's sold counter."""
        ...
