"""Domain events for the Store aggregate."""

from protean.fields import DateTime, Identifier, String

from commerce.domain import commerce


@commerce.event(part_of="Store")
class StoreCreated:
    """A store owner opened a new storefront."""

    __version__ = 1

    store_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    name = String(required=True)
    slug = String(required=True)
    created_at = DateTime(required=True)


@commerce.event(part_of="Store")
class StoreDetailsUpdated:
    __version__ = 1

    store_id = Identifier(required=True)
    name = String(required=True)


@commerce.event(part_of="Store")
class StoreSlugChanged:
    __version__ = 1

    store_id = Identifier(required=True)
    previous_slug = String(required=True)
    new_slug = String(required=True)


@commerce.event(part_of="Store")
class StoreActivated:
    __version__ = 1

    store_id = Identifier(required=True)
    activated_at = DateTime(required=True)


@commerce.event(part_of="Store")
class StoreDeactivated:
    """The storefront stopped accepting shoppers and checkouts."""

    __version__ = 1

    store_id = Identifier(required=True)
    deactivated_at = DateTime(required=True)
