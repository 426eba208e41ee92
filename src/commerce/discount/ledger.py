"""Discount Ledger — validates and atomically redeems discount codes."""

from dataclasses import dataclass
from datetime import UTC, datetime

import structlog
from protean.exceptions import ObjectNotFoundError

from commerce.discount.discount import DiscountCode, DiscountEffect, normalize_code
from commerce.errors import CodeNotFound
from commerce.persistence import get_data_access
from commerce.persistence.port import DataAccess
from commerce.shared.money import quantize

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RedemptionToken:
    discount_id: str
    redemption_id: str
    order_ref: str
    code: str


@dataclass(frozen=True)
class DiscountPreview:
    code: str
    discount_type: str
    value: float
    subtotal: float
    discount: float
    total: float


class DiscountLedger:
    def __init__(self, data_access: DataAccess | None = None) -> None:
        self.data_access = data_access or get_data_access()

    def lookup(self, store_id, code) -> DiscountCode:
        """Find a store's code, ignoring case and surrounding whitespace."""
        matches = self.data_access.find(DiscountCode, store_id=str(store_id), lookup_code=normalize_code(code))
        if not matches:
            raise CodeNotFound(code)
        return matches[0]

    def validate(self, store_id, code, order_subtotal, now: datetime | None = None) -> DiscountEffect:
        """Check a code against a subtotal. Never changes the usage counter."""
        discount = self.lookup(store_id, code)
        return discount.check_redeemable(order_subtotal, now or datetime.now(UTC))

    def redeem(self, store_id, code, order_ref, now: datetime | None = None) -> RedemptionToken:
        """Count one use of a code for ``order_ref``.

        The check against the usage limit and the increment happen as one
        atomic update, so once the limit is reached every further attempt
        fails with ``DiscountUsageExhausted``.
        """
        discount = self.lookup(store_id, code)
        now = now or datetime.now(UTC)

        try:
            redemption_id = self.data_access.atomic_update(
                DiscountCode, str(discount.id), lambda d: d.redeem(str(order_ref), now)
            )
        except ObjectNotFoundError:
            raise CodeNotFound(code)

        logger.info(
            "Discount redeemed",
            discount_id=str(discount.id),
            code=discount.code,
            order_ref=str(order_ref),
            redemption_id=redemption_id,
        )
        return RedemptionToken(
            discount_id=str(discount.id),
            redemption_id=redemption_id,
            order_ref=str(order_ref),
            code=discount.code,
        )

    def revoke(self, token: RedemptionToken) -> bool:
        """Give back a redemption. Revoking twice is a no-op."""
        try:
            revoked = self.data_access.atomic_update(
                DiscountCode, token.discount_id, lambda d: d.revoke(token.redemption_id)
            )
        except ObjectNotFoundError:
            return False

        if revoked:
            logger.info("Discount redemption revoked", discount_id=token.discount_id, order_ref=token.order_ref)
        return revoked

    def revoke_for_order(self, discount_id, order_ref) -> bool:
        try:
            revoked = self.data_access.atomic_update(
                DiscountCode, str(discount_id), lambda d: d.revoke_for_order(str(order_ref))
            )
        except ObjectNotFoundError:
            return False

        if revoked:
            logger.info("Discount redemption revoked for order", discount_id=str(discount_id), order_ref=str(order_ref))
        return revoked

    def settle_for_order(self, discount_id, order_ref) -> bool:
        """Drop the redemption record of a placed order; the use stays counted."""
        try:
            return self.data_access.atomic_update(
                DiscountCode, str(discount_id), lambda d: d.settle_for_order(str(order_ref))
            )
        except ObjectNotFoundError:
            return False

    def preview(self, store_id, code, subtotal, now: datetime | None = None) -> DiscountPreview:
        """Side-effect-free preview of what a code would take off ``subtotal``."""
        effect = self.validate(store_id, code, subtotal, now)
        amount = effect.amount_for(subtotal)
        subtotal = quantize(subtotal)
        return DiscountPreview(
            code=effect.code,
            discount_type=effect.discount_type,
            value=effect.value,
            subtotal=float(subtotal),
            discount=float(amount),
            total=float(subtotal - amount),
        )

    def list_for_store(self, store_id) -> list[DiscountCode]:
        """Every code of a store, newest first."""
        codes = self.data_access.find(DiscountCode, store_id=str(store_id))
        return sorted(codes, key=lambda d: d.created_at, reverse=True)
