"""Store aggregate — the tenant root.

Every product, discount code and order carries the ``store_id`` of the store
that owns it. The store also issues its own order numbers from a monotonic
sequence, so numbers never repeat within a store.
"""

import os
from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Identifier, Integer, String, Text

from commerce.domain import commerce
from commerce.shared.slug import is_valid_slug, slugify
from commerce.store.events import (
    StoreActivated,
    StoreCreated,
    StoreDeactivated,
    StoreDetailsUpdated,
    StoreSlugChanged,
)


def order_number_start() -> int:
    return int(os.getenv("COMMERCE_ORDER_NUMBER_START", "1001"))


@commerce.aggregate
class Store:
    owner_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    slug = String(required=True, max_length=100)
    description = Text()
    is_active = Boolean(default=True)
    last_order_sequence = Integer(default=0, min_value=0)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def slug_must_be_url_safe(self):
        if not is_valid_slug(self.slug):
            raise ValidationError({"slug": ["Slug must contain only lowercase letters, digits and single hyphens"]})

    @classmethod
    def create(cls, owner_id, name, slug=None, description=None):
        now = datetime.now(UTC)
        store = cls(
            owner_id=owner_id,
            name=name,
            slug=slug or slugify(name),
            description=description,
            is_active=True,
            last_order_sequence=order_number_start() - 1,
            created_at=now,
            updated_at=now,
        )
        store.raise_(
            StoreCreated(
                store_id=str(store.id),
                owner_id=str(owner_id),
                name=name,
                slug=store.slug,
                created_at=now,
            )
        )
        return store

    def update_details(self, name=None, description=None):
        if name is not None:
            self.name = name
        if description is not None:
            self.description = description
        self.updated_at = datetime.now(UTC)

        self.raise_(StoreDetailsUpdated(store_id=str(self.id), name=self.name))

    def change_slug(self, new_slug):
        """Change the public handle. Callers must ensure nothing references the store yet."""
        previous = self.slug
        if new_slug == previous:
            return

        self.slug = new_slug
        self.updated_at = datetime.now(UTC)

        self.raise_(StoreSlugChanged(store_id=str(self.id), previous_slug=previous, new_slug=new_slug))

    def activate(self):
        if self.is_active:
            raise ValidationError({"is_active": ["Store is already active"]})

        now = datetime.now(UTC)
        self.is_active = True
        self.updated_at = now

        self.raise_(StoreActivated(store_id=str(self.id), activated_at=now))

    def deactivate(self):
        if not self.is_active:
            raise ValidationError({"is_active": ["Store is already inactive"]})

        now = datetime.now(UTC)
        self.is_active = False
        self.updated_at = now

        self.raise_(StoreDeactivated(store_id=str(self.id), deactivated_at=now))

    def issue_order_number(self) -> str:
        """Advance the order sequence and return the next human-facing order number."""
        self.last_order_sequence += 1
        return f"#{self.last_order_sequence}"
