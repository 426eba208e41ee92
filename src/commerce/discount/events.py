"""Domain events for the DiscountCode aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from commerce.domain import commerce


@commerce.event(part_of="DiscountCode")
class DiscountCodeCreated:
    __version__ = 1

    discount_id = Identifier(required=True)
    store_id = Identifier(required=True)
    code = String(required=True)
    discount_type = String(required=True)
    value = Float(required=True)
    usage_limit = Integer()
    created_at = DateTime(required=True)


@commerce.event(part_of="DiscountCode")
class DiscountCodeActivated:
    __version__ = 1

    discount_id = Identifier(required=True)


@commerce.event(part_of="DiscountCode")
class DiscountCodeDeactivated:
    __version__ = 1

    discount_id = Identifier(required=True)


@commerce.event(part_of="DiscountCode")
class DiscountCodeRedeemed:
    """One use of a code was durably counted against its usage limit."""

    __version__ = 1

    discount_id = Identifier(required=True)
    redemption_id = Identifier(required=True)
    order_ref = Identifier(required=True)
    used_count = Integer(required=True)
    redeemed_at = DateTime(required=True)


@commerce.event(part_of="DiscountCode")
class DiscountRedemptionRevoked:
    """A redemption was given back because the checkout that took it failed."""

    __version__ = 1

    discount_id = Identifier(required=True)
    redemption_id = Identifier(required=True)
    order_ref = Identifier(required=True)
    used_count = Integer(required=True)
    revoked_at = DateTime(required=True)


@commerce.event(part_of="DiscountCode")
class DiscountRedemptionSettled:
    """The order behind a redemption was placed, so the use is final."""

    __version__ = 1

    discount_id = Identifier(required=True)
    redemption_id = Identifier(required=True)
    order_ref = Identifier(required=True)
    settled_at = DateTime(required=True)
