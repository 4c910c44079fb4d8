"""In-memory coupon source for development and testing."""

from dataclasses import replace

from ordering.promotions.port import CouponSource, CouponTerms, PromotionsError


class InMemoryCoupons(CouponSource):
    def __init__(self) -> None:
        self.coupons: dict[str, CouponTerms] = {}
        self.fail_usage_recording: bool = False

    def add_coupon(self, coupon: CouponTerms) -> CouponTerms:
        coupon = replace(coupon, code=coupon.code.upper())
        self.coupons[coupon.coupon_id] = coupon
        return coupon

    def delete_coupon(self, coupon_id: str) -> None:
        self.coupons.pop(str(coupon_id), None)

    def find_by_code(self, code: str) -> CouponTerms | None:
        code = (code or "").strip().upper()
        return next((c for c in self.coupons.values() if c.code == code), None)

    def get_coupon(self, coupon_id: str) -> CouponTerms | None:
        return self.coupons.get(str(coupon_id))

    def record_usage(self, coupon_id: str, user_id: str) -> None:
        if self.fail_usage_recording:
            raise PromotionsError("Coupon service unavailable")

        coupon = self.coupons.get(str(coupon_id))
        if coupon is None:
            raise PromotionsError(f"Unknown coupon {coupon_id}")

        used_by = dict(coupon.used_by)
        used_by[str(user_id)] = used_by.get(str(user_id), 0) + 1
        self.coupons[coupon.coupon_id] = replace(coupon, usage_count=coupon.usage_count + 1, used_by=used_by)
