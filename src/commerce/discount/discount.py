"""DiscountCode aggregate — definition, validity rules and usage counter.

Codes are matched case-insensitively within a store through ``lookup_code``.
Each use is recorded as a ``Redemption`` keyed by the checkout attempt that
took it until that order is placed, which settles it, or the use is given
back, which revokes it. Either way the redemption is removed; ``used_count``
counts settled uses plus the redemptions still held.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from uuid import uuid4

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
)

from commerce.discount.events import (
    DiscountCodeActivated,
    DiscountCodeCreated,
    DiscountCodeDeactivated,
    DiscountCodeRedeemed,
    DiscountRedemptionRevoked,
    DiscountRedemptionSettled,
)
from commerce.domain import commerce
from commerce.errors import (
    DiscountBelowMinimum,
    DiscountInactive,
    DiscountOutOfWindow,
    DiscountUsageExhausted,
)
from commerce.shared.money import quantize, to_decimal
from commerce.shared.quota import Limited, Quota, Unlimited


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"


def normalize_code(code: str) -> str:
    return code.strip().upper()


def as_utc(moment: datetime | None) -> datetime | None:
    """Treat naive timestamps as UTC so window checks never mix naive and aware values."""
    if moment is None or moment.tzinfo is not None:
        return moment
    return moment.replace(tzinfo=UTC)


@dataclass(frozen=True)
class DiscountEffect:
    """What a validated code does to a given subtotal."""

    discount_id: str
    code: str
    discount_type: str
    value: float

    def amount_for(self, subtotal) -> Decimal:
        """Discount amount for ``subtotal``, never more than the subtotal itself."""
        subtotal = quantize(subtotal)
        if self.discount_type == DiscountType.PERCENTAGE.value:
            amount = quantize(subtotal * to_decimal(self.value) / Decimal("100"))
        else:
            amount = quantize(self.value)
        return min(amount, subtotal)


@commerce.entity(part_of="DiscountCode")
class Redemption:
    order_ref = Identifier(required=True)
    redeemed_at = DateTime(required=True)


@commerce.aggregate
class DiscountCode:
    store_id = Identifier(required=True)
    code = String(required=True, max_length=50)
    lookup_code = String(required=True, max_length=50)
    discount_type = String(required=True, choices=DiscountType)
    value = Float(required=True, min_value=0.0)
    minimum_amount = Float(default=0.0, min_value=0.0)
    usage_limit = Integer(min_value=1)
    used_count = Integer(default=0, min_value=0)
    starts_at = DateTime()
    ends_at = DateTime()
    is_active = Boolean(default=True)
    redemptions = HasMany(Redemption)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def used_count_must_not_exceed_limit(self):
        if self.usage_limit is not None and self.used_count > self.usage_limit:
            raise ValidationError({"used_count": ["Used count cannot exceed the usage limit"]})

    @invariant.post
    def value_must_fit_discount_type(self):
        if self.discount_type == DiscountType.PERCENTAGE.value and not 0 < self.value <= 100:
            raise ValidationError({"value": ["Percentage discounts must be greater than 0 and at most 100"]})
        if self.discount_type == DiscountType.FIXED_AMOUNT.value and self.value <= 0:
            raise ValidationError({"value": ["Fixed amount discounts must be greater than 0"]})

    @invariant.post
    def window_must_be_ordered(self):
        if self.starts_at and self.ends_at and as_utc(self.starts_at) > as_utc(self.ends_at):
            raise ValidationError({"ends_at": ["Discount cannot end before it starts"]})

    @classmethod
    def create(
        cls,
        store_id,
        code,
        discount_type,
        value,
        minimum_amount=0.0,
        usage_limit=None,
        starts_at=None,
        ends_at=None,
    ):
        now = datetime.now(UTC)
        discount = cls(
            store_id=store_id,
            code=code.strip(),
            lookup_code=normalize_code(code),
            discount_type=discount_type,
            value=value,
            minimum_amount=minimum_amount or 0.0,
            usage_limit=usage_limit,
            used_count=0,
            starts_at=as_utc(starts_at),
            ends_at=as_utc(ends_at),
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        discount.raise_(
            DiscountCodeCreated(
                discount_id=str(discount.id),
                store_id=str(store_id),
                code=discount.code,
                discount_type=discount.discount_type,
                value=discount.value,
                usage_limit=usage_limit,
                created_at=now,
            )
        )
        return discount

    @property
    def remaining_uses(self) -> Quota:
        if self.usage_limit is None:
            return Unlimited()
        return Limited(self.usage_limit - self.used_count)

    def effect(self) -> DiscountEffect:
        return DiscountEffect(
            discount_id=str(self.id),
            code=self.code,
            discount_type=self.discount_type,
            value=self.value,
        )

    def _check_live(self, now):
        if not self.is_active:
            raise DiscountInactive(self.code)

        now = as_utc(now)
        starts_at, ends_at = as_utc(self.starts_at), as_utc(self.ends_at)
        if (starts_at and now < starts_at) or (ends_at and now > ends_at):
            raise DiscountOutOfWindow(self.code, starts_at=starts_at, ends_at=ends_at)

    def _check_usage(self):
        if not self.remaining_uses.allows(1):
            raise DiscountUsageExhausted(self.code, usage_limit=self.usage_limit)

    def check_redeemable(self, subtotal, now) -> DiscountEffect:
        """Validate the code for an order of ``subtotal`` at ``now`` without changing anything.

        Checks run in a fixed order: active flag, validity window, minimum
        order amount, then remaining uses.
        """
        self._check_live(now)

        if quantize(subtotal) < quantize(self.minimum_amount):
            raise DiscountBelowMinimum(self.code, minimum_amount=self.minimum_amount, subtotal=float(quantize(subtotal)))

        self._check_usage()
        return self.effect()

    def redeem(self, order_ref, now) -> str:
        """Count one use for ``order_ref`` and return the redemption id.

        Redeeming again for an order reference that already holds a
        redemption returns that redemption instead of counting twice.
        """
        existing = self.active_redemption_for(order_ref)
        if existing is not None:
            return str(existing.id)

        self._check_live(now)
        self._check_usage()

        redeemed_at = as_utc(now)
        redemption_id = str(uuid4())
        self.used_count += 1
        self.add_redemptions(Redemption(id=redemption_id, order_ref=order_ref, redeemed_at=redeemed_at))
        self.updated_at = redeemed_at

        self.raise_(
            DiscountCodeRedeemed(
                discount_id=str(self.id),
                redemption_id=redemption_id,
                order_ref=str(order_ref),
                used_count=self.used_count,
                redeemed_at=redeemed_at,
            )
        )
        return redemption_id

    def active_redemption_for(self, order_ref):
        return next(
            (r for r in (self.redemptions or []) if str(r.order_ref) == str(order_ref)),
            None,
        )

    def revoke(self, redemption_id) -> bool:
        """Give a use back. Unknown or already revoked redemptions are a no-op."""
        redemption = next((r for r in (self.redemptions or []) if str(r.id) == str(redemption_id)), None)
        if redemption is None:
            return False

        now = datetime.now(UTC)
        self.remove_redemptions(redemption)
        self.used_count -= 1
        self.updated_at = now

        self.raise_(
            DiscountRedemptionRevoked(
                discount_id=str(self.id),
                redemption_id=str(redemption.id),
                order_ref=str(redemption.order_ref),
                used_count=self.used_count,
                revoked_at=now,
            )
        )
        return True

    def revoke_for_order(self, order_ref) -> bool:
        redemption = self.active_redemption_for(order_ref)
        if redemption is None:
            return False
        return self.revoke(redemption.id)

    def settle_for_order(self, order_ref) -> bool:
        """Make the use held for a placed order final. The usage count is unchanged."""
        redemption = self.active_redemption_for(order_ref)
        if redemption is None:
            return False

        now = datetime.now(UTC)
        self.remove_redemptions(redemption)
        self.updated_at = now

        self.raise_(
            DiscountRedemptionSettled(
                discount_id=str(self.id),
                redemption_id=str(redemption.id),
                order_ref=str(redemption.order_ref),
                settled_at=now,
            )
        )
        return True

    def activate(self):
        if self.is_active:
            raise ValidationError({"is_active": ["Discount code is already active"]})
        self.is_active = True
        self.updated_at = datetime.now(UTC)
        self.raise_(DiscountCodeActivated(discount_id=str(self.id)))

    def deactivate(self):
        if not self.is_active:
            raise ValidationError({"is_active": ["Discount code is already inactive"]})
        self.is_active = False
        self.updated_at = datetime.now(UTC)
        self.raise_(DiscountCodeDeactivated(discount_id=str(self.id)))
