"""Tests for DiscountCode validation, redemption and effect."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from protean.exceptions import ValidationError

from commerce.discount.discount import DiscountCode, DiscountEffect, DiscountType
from commerce.discount.events import (
    DiscountCodeRedeemed,
    DiscountRedemptionRevoked,
    DiscountRedemptionSettled,
)
from commerce.errors import (
    DiscountBelowMinimum,
    DiscountInactive,
    DiscountOutOfWindow,
    DiscountUsageExhausted,
)
from commerce.shared.quota import Limited, Unlimited

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=UTC)


def _make_discount(**overrides):
    defaults = {
        "store_id": "store-001",
        "code": "save10",
        "discount_type": DiscountType.PERCENTAGE.value,
        "value": 10.0,
    }
    defaults.update(overrides)
    return DiscountCode.create(**defaults)


class TestDiscountDefinition:
    def test_lookup_code_is_upper_cased(self):
        discount = _make_discount(code=" save10 ")
        assert discount.code == "save10"
        assert discount.lookup_code == "SAVE10"

    def test_percentage_above_100_rejected(self):
        with pytest.raises(ValidationError):
            _make_discount(value=150)

    def test_fixed_amount_must_be_positive(self):
        with pytest.raises(ValidationError):
            _make_discount(discount_type=DiscountType.FIXED_AMOUNT.value, value=0)

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            _make_discount(discount_type="bogo")

    def test_window_must_be_ordered(self):
        with pytest.raises(ValidationError):
            _make_discount(starts_at=NOW, ends_at=NOW - timedelta(days=1))

    def test_remaining_uses(self):
        assert _make_discount().remaining_uses == Unlimited()
        assert _make_discount(usage_limit=3).remaining_uses == Limited(3)


class TestCheckRedeemable:
    def test_valid_code_returns_effect(self):
        effect = _make_discount().check_redeemable(50, NOW)
        assert effect.discount_type == "percentage"
        assert effect.value == 10.0

    def test_inactive(self):
        discount = _make_discount()
        discount.deactivate()
        with pytest.raises(DiscountInactive):
            discount.check_redeemable(50, NOW)

    def test_not_started(self):
        discount = _make_discount(starts_at=NOW + timedelta(hours=1))
        with pytest.raises(DiscountOutOfWindow):
            discount.check_redeemable(50, NOW)

    def test_expired(self):
        discount = _make_discount(ends_at=NOW - timedelta(seconds=1))
        with pytest.raises(DiscountOutOfWindow):
            discount.check_redeemable(50, NOW)

    def test_open_ended_window(self):
        discount = _make_discount(starts_at=NOW - timedelta(days=30))
        assert discount.check_redeemable(50, NOW) is not None

    def test_naive_now_treated_as_utc(self):
        discount = _make_discount(ends_at=NOW + timedelta(hours=1))
        assert discount.check_redeemable(50, NOW.replace(tzinfo=None)) is not None

    def test_below_minimum(self):
        discount = _make_discount(minimum_amount=25.0)
        with pytest.raises(DiscountBelowMinimum):
            discount.check_redeemable(24.99, NOW)

    def test_exactly_minimum_is_enough(self):
        discount = _make_discount(minimum_amount=25.0)
        assert discount.check_redeemable(25, NOW) is not None

    def test_usage_exhausted(self):
        discount = _make_discount(usage_limit=1)
        discount.redeem("order-1", NOW)
        with pytest.raises(DiscountUsageExhausted):
            discount.check_redeemable(50, NOW)

    def test_inactive_reported_before_window(self):
        discount = _make_discount(ends_at=NOW - timedelta(days=1))
        discount.deactivate()
        with pytest.raises(DiscountInactive):
            discount.check_redeemable(50, NOW)

    def test_window_reported_before_minimum(self):
        discount = _make_discount(ends_at=NOW - timedelta(days=1), minimum_amount=100)
        with pytest.raises(DiscountOutOfWindow):
            discount.check_redeemable(10, NOW)


class TestRedeem:
    def test_redeem_increments_used_count(self):
        discount = _make_discount(usage_limit=2)
        discount.redeem("order-1", NOW)
        assert discount.used_count == 1
        assert isinstance(discount._events[-1], DiscountCodeRedeemed)

    def test_redeem_same_order_twice_counts_once(self):
        discount = _make_discount(usage_limit=2)
        first = discount.redeem("order-1", NOW)
        second = discount.redeem("order-1", NOW)
        assert first == second
        assert discount.used_count == 1

    def test_redeem_past_limit_rejected(self):
        discount = _make_discount(usage_limit=1)
        discount.redeem("order-1", NOW)
        with pytest.raises(DiscountUsageExhausted):
            discount.redeem("order-2", NOW)
        assert discount.used_count == 1

    def test_unlimited_code_never_exhausts(self):
        discount = _make_discount()
        for i in range(50):
            discount.redeem(f"order-{i}", NOW)
        assert discount.used_count == 50

    def test_revoke_gives_use_back(self):
        discount = _make_discount(usage_limit=1)
        redemption_id = discount.redeem("order-1", NOW)

        assert discount.revoke(redemption_id) is True
        assert discount.used_count == 0
        assert discount.redemptions == []
        assert isinstance(discount._events[-1], DiscountRedemptionRevoked)

    def test_revoke_is_idempotent(self):
        discount = _make_discount(usage_limit=1)
        redemption_id = discount.redeem("order-1", NOW)
        discount.revoke(redemption_id)
        assert discount.revoke(redemption_id) is False
        assert discount.used_count == 0

    def test_revoke_for_order(self):
        discount = _make_discount(usage_limit=2)
        discount.redeem("order-1", NOW)
        discount.redeem("order-2", NOW)

        assert discount.revoke_for_order("order-1") is True
        assert discount.revoke_for_order("order-1") is False
        assert discount.used_count == 1

    def test_settle_keeps_the_use_counted(self):
        discount = _make_discount(usage_limit=2)
        discount.redeem("order-1", NOW)

        assert discount.settle_for_order("order-1") is True
        assert discount.used_count == 1
        assert discount.redemptions == []
        assert isinstance(discount._events[-1], DiscountRedemptionSettled)

    def test_settled_use_cannot_be_revoked(self):
        discount = _make_discount(usage_limit=2)
        discount.redeem("order-1", NOW)
        discount.settle_for_order("order-1")

        assert discount.settle_for_order("order-1") is False
        assert discount.revoke_for_order("order-1") is False
        assert discount.used_count == 1


class TestDiscountEffect:
    def test_percentage(self):
        effect = DiscountEffect("d-1", "SAVE10", "percentage", 10.0)
        assert effect.amount_for(Decimal("59.99")) == Decimal("6.00")

    def test_fixed_amount(self):
        effect = DiscountEffect("d-1", "FIVE", "fixed_amount", 5.0)
        assert effect.amount_for(20) == Decimal("5.00")

    def test_fixed_amount_capped_at_subtotal(self):
        effect = DiscountEffect("d-1", "FIFTY", "fixed_amount", 50.0)
        assert effect.amount_for(20) == Decimal("20.00")

    def test_full_percentage_zeroes_total(self):
        effect = DiscountEffect("d-1", "FREE", "percentage", 100.0)
        assert effect.amount_for(42.5) == Decimal("42.50")
