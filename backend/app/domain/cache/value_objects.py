"""
Cache Value Objects

Immutable value objects for the cache domain.
Provides type safety for cache keys and expiry policies.
"""

import hashlib
import json
import re
from dataclasses import dataclass
from typing import Optional, Sequence, Union
from uuid import UUID

NFE_NAMESPACE = "nfe_identification"
WILDCARD = "*"


@dataclass(frozen=True)
class CacheKey:
    """
    Immutable cache key value object.

    Enforces key naming conventions and provides validation.
    A key ending in ``*`` is a pattern and only valid for deletion.
    """

    value: str

    def __post_init__(self) -> None:
        """Validate cache key format."""
        if not self.value:
            raise ValueError("Cache key cannot be empty")

        if len(self.value) > 250:
            raise ValueError("Cache key too long (max 250 characters)")

        # Validate no whitespace in key
        if any(char.isspace() for char in self.value):
            raise ValueError("Cache key cannot contain whitespace")

    @property
    def is_pattern(self) -> bool:
        return self.value.endswith(WILDCARD)

    @classmethod
    def nfe_item(cls, internal_key: Union[str, UUID]) -> "CacheKey":
        """Create single-record cache key from a canonical identifier."""
        key_str = str(internal_key)
        if not re.match(r"^[a-f0-9-]{36}$", key_str):
            raise ValueError("Invalid identifier format for cache key")
        return cls(f"{NFE_NAMESPACE}:item:{key_str}")

    @classmethod
    def nfe_list(
        cls, page: int, page_size: int, filter_values: Sequence[Optional[str]]
    ) -> "CacheKey":
        """
        Create list cache key.

        The filter tuple is hashed (absent filters as empty strings) so
        free text can never produce whitespace or wildcard characters in
        the key.
        """
        normalized = [value if value is not None else "" for value in filter_values]
        digest = hashlib.sha256(
            json.dumps(normalized, ensure_ascii=False).encode("utf-8")
        ).hexdigest()
        return cls(f"{NFE_NAMESPACE}:list:p{page}:s{page_size}:{digest}")

    @classmethod
    def nfe_list_pattern(cls) -> "CacheKey":
        """Pattern matching every list cache entry."""
        return cls(f"{NFE_NAMESPACE}:list:{WILDCARD}")

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class TTL:
    """
    Time-to-live value object.

    Always positive; "no expiry" is expressed by passing no TTL at all.
    """

    seconds: int

    def __post_init__(self) -> None:
        """Validate TTL value."""
        if self.seconds <= 0:
            raise ValueError("TTL must be positive")

        if self.seconds > 86400 * 30:
            raise ValueError("TTL cannot exceed 30 days")

    @classmethod
    def minutes(cls, minutes: int) -> "TTL":
        """Create TTL from minutes."""
        return cls(minutes * 60)

    @classmethod
    def hours(cls, hours: int) -> "TTL":
        """Create TTL from hours."""
        return cls(hours * 3600)

    def __int__(self) -> int:
        return self.seconds
