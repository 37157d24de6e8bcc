"""
Unit tests for cache value objects.

Tests key derivation for NF-e records and TTL validation.
"""

import pytest
from uuid import uuid4

from app.domain.cache.value_objects import CacheKey, TTL


class TestCacheKey:
    """Test CacheKey value object."""

    def test_item_key(self):
        """Test single-record key creation."""
        internal_key = str(uuid4())
        key = CacheKey.nfe_item(internal_key)

        assert key.value == f"nfe_identification:item:{internal_key}"
        assert str(key) == key.value
        assert not key.is_pattern

    def test_item_key_rejects_malformed_identifier(self):
        with pytest.raises(ValueError, match="Invalid identifier format"):
            CacheKey.nfe_item("not a uuid")

    def test_list_key_is_deterministic(self):
        """Same page, size and filters always map to the same key."""
        first = CacheKey.nfe_list(1, 10, (None, "123", None, None, None))
        second = CacheKey.nfe_list(1, 10, (None, "123", None, None, None))

        assert first == second
        assert first.value.startswith("nfe_identification:list:p1:s10:")

    def test_list_key_distinguishes_every_component(self):
        base = CacheKey.nfe_list(1, 10, (None, None, None, None, None))

        assert CacheKey.nfe_list(2, 10, (None,) * 5) != base
        assert CacheKey.nfe_list(1, 20, (None,) * 5) != base
        assert CacheKey.nfe_list(1, 10, ("venda", None, None, None, None)) != base
        assert CacheKey.nfe_list(1, 10, (None, None, None, None, "venda")) != base

    def test_list_key_treats_absent_filter_as_empty_string(self):
        assert CacheKey.nfe_list(1, 10, (None, None)) == CacheKey.nfe_list(
            1, 10, ("", "")
        )

    def test_list_key_with_free_text_has_no_whitespace(self):
        """Free text with spaces and wildcards is hashed away."""
        key = CacheKey.nfe_list(1, 10, ("venda de *", None, None, None, "a b"))

        assert " " not in key.value
        assert not key.is_pattern

    def test_list_pattern(self):
        pattern = CacheKey.nfe_list_pattern()

        assert pattern.value == "nfe_identification:list:*"
        assert pattern.is_pattern

    def test_invalid_key_empty(self):
        """Test invalid empty key."""
        with pytest.raises(ValueError, match="Cache key cannot be empty"):
            CacheKey("")

    def test_invalid_key_whitespace(self):
        """Test invalid key with whitespace."""
        with pytest.raises(ValueError, match="Cache key cannot contain whitespace"):
            CacheKey("invalid key")

    def test_invalid_key_too_long(self):
        """Test invalid key too long."""
        long_key = "a" * 251
        with pytest.raises(ValueError, match="Cache key too long"):
            CacheKey(long_key)


class TestTTL:
    """Test TTL value object."""

    def test_ttl_creation(self):
        ttl = TTL(300)
        assert ttl.seconds == 300
        assert int(ttl) == 300

    def test_ttl_from_minutes(self):
        assert TTL.minutes(5).seconds == 300

    def test_ttl_from_hours(self):
        assert TTL.hours(2).seconds == 7200

    def test_invalid_ttl_zero(self):
        with pytest.raises(ValueError, match="TTL must be positive"):
            TTL(0)

    def test_invalid_ttl_too_long(self):
        with pytest.raises(ValueError, match="TTL cannot exceed 30 days"):
            TTL(86400 * 31)
