"""Tests for slug derivation and validation."""

import pytest

from commerce.shared.slug import is_valid_slug, slugify


class TestSlugify:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("Corner Bakery", "corner-bakery"),
            ("  Tea & Co.  ", "tea-co"),
            ("ACME  Widgets", "acme-widgets"),
            ("Café Noir", "caf-noir"),
        ],
    )
    def test_slugify(self, name, expected):
        assert slugify(name) == expected


class TestSlugValidation:
    def test_valid(self):
        assert is_valid_slug("corner-bakery-2")

    @pytest.mark.parametrize("slug", ["", None, "Corner", "double--dash", "-lead", "trail-", "sp ace"])
    def test_invalid(self, slug):
        assert not is_valid_slug(slug)
