"""URL slug helpers for store and product handles."""

import re

_SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def slugify(value: str) -> str:
    """Derive a slug the way the storefront admin does: lower-case, spaces to hyphens, drop the rest."""
    slug = re.sub(r"\s+", "-", value.strip().lower())
    slug = re.sub(r"[^a-z0-9-]", "", slug)
    return re.sub(r"-{2,}", "-", slug).strip("-")


def is_valid_slug(value: str | None) -> bool:
    return bool(value) and bool(_SLUG_PATTERN.match(value))
