"""
NF-e Identification Domain Module

Domain records and caller payloads for NF-e identification data.
"""

from .models import (
    NFeIdentification,
    NFeIdentificationCreate,
    NFeIdentificationUpdate,
    NFeIdentificationFilters,
    NFeIdentificationPage,
)

__all__ = [
    "NFeIdentification",
    "NFeIdentificationCreate",
    "NFeIdentificationUpdate",
    "NFeIdentificationFilters",
    "NFeIdentificationPage",
]
