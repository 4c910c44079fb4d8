"""Coupon source factory.

get_coupons() returns the in-memory source unless another ``CouponSource``
has been installed with set_coupons().
"""

from ordering.promotions.fake_adapter import InMemoryCoupons
from ordering.promotions.port import CouponSource

_current_coupons: CouponSource | None = None


def get_coupons() -> CouponSource:
    global _current_coupons
    if _current_coupons is None:
        _current_coupons = InMemoryCoupons()
    return _current_coupons


def set_coupons(coupons: CouponSource) -> None:
    global _current_coupons
    _current_coupons = coupons


def reset_coupons() -> None:
    global _current_coupons
    _current_coupons = None
