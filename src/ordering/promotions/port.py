"""Coupon source port.

Coupons are managed outside the ordering context. The cart looks them up by
code, re-checks that an applied coupon still exists, and reports each
redemption so usage limits can be enforced.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime


class PromotionsError(Exception):
    """Raised when the coupon source cannot serve a request."""


@dataclass(frozen=True)
class CouponTerms:
    coupon_id: str
    code: str
    discount_type: str
    discount_value: float
    is_active: bool = True
    start_date: datetime | None = None
    end_date: datetime | None = None
    min_order_value: float = 0.0
    max_discount: float | None = None
    max_usage_limit: int | None = None
    usage_count: int = 0
    per_user_limit: int = 1
    used_by: dict[str, int] = field(default_factory=dict)

    def uses_by(self, user_id) -> int:
        return self.used_by.get(str(user_id), 0)


class CouponSource(ABC):
    @abstractmethod
    def find_by_code(self, code: str) -> CouponTerms | None:
        """Look a coupon up by its (upper-cased) code."""
        ...

    @abstractmethod
    def get_coupon(self, coupon_id: str) -> CouponTerms | None:
        ...

    @abstractmethod
    def record_usage(self, coupon_id: str, user_id: str) -> None:
        """Count one redemption of the coupon by the user."""
        ...
