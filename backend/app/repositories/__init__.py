"""
Repository Pattern Implementation

All access to NF-e identification records goes through
``NFeIdentificationRepository``, which keeps the cache store coherent with
the relational store.
"""

from .base import CachedRepository
from .exceptions import (
    BackingStoreError,
    CreationFailedError,
    InvalidIdentifierError,
    InvalidRecordError,
    RecordNotFoundError,
    RecordParseError,
    RepositoryError,
    UpdateFailedError,
)
from .nfe_identification import NFeIdentificationRepository

__all__ = [
    "CachedRepository",
    "NFeIdentificationRepository",
    # Exceptions
    "RepositoryError",
    "BackingStoreError",
    "CreationFailedError",
    "InvalidIdentifierError",
    "InvalidRecordError",
    "RecordNotFoundError",
    "RecordParseError",
    "UpdateFailedError",
]
