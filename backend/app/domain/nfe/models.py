"""
NF-e Identification Domain Models

Pydantic models for the identification block of an NF-e (Brazilian
electronic invoice). ``NFeIdentification`` is the canonical in-memory record;
the remaining models describe what callers may send and what the cache
stores.
"""

from datetime import date, datetime
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class NFeIdentificationBase(BaseModel):
    """Caller-suppliable identification fields."""

    c_uf: str = Field(..., max_length=2, description="UF code of the issuer")
    c_nf: str = Field(..., max_length=8, description="Numeric control code")
    nat_op: str = Field(..., max_length=60, description="Operation nature")
    mod: str = Field(..., max_length=2, description="Fiscal document model")
    serie: str = Field(..., max_length=3, description="Document series")
    n_nf: str = Field(..., max_length=9, description="Document number")
    dh_emi: datetime = Field(..., description="Emission date/time with offset")
    dh_sai_ent: Optional[datetime] = Field(
        None, description="Departure/entry date/time"
    )
    tp_nf: str = Field(..., max_length=1, description="Operation type (0 in, 1 out)")
    id_dest: str = Field(..., max_length=1, description="Destination identifier")
    c_mun_fg: str = Field(..., max_length=7, description="Municipality code")
    tp_imp: str = Field(..., max_length=1, description="DANFE print format")
    tp_emis: str = Field(..., max_length=1, description="Emission type")
    c_dv: str = Field(..., max_length=1, description="Access key check digit")
    tp_amb: str = Field(..., max_length=1, description="Environment (1 prod, 2 test)")
    fin_nfe: str = Field(..., max_length=1, description="Emission purpose")
    ind_final: str = Field(..., max_length=1, description="Final consumer flag")
    ind_pres: str = Field(..., max_length=1, description="Buyer presence indicator")
    ind_intermed: Optional[str] = Field(
        None, max_length=1, description="Intermediary indicator"
    )
    proc_emi: str = Field(..., max_length=1, description="Emission process")
    ver_proc: str = Field(..., max_length=20, description="Emitter software version")
    dh_cont: Optional[datetime] = Field(
        None, description="Contingency entry date/time"
    )
    x_just: Optional[str] = Field(
        None, max_length=256, description="Contingency justification"
    )


class NFeIdentificationCreate(NFeIdentificationBase):
    """Payload for creating a record; identifier and audit fields are server-side."""

    model_config = ConfigDict(extra="forbid")


class NFeIdentificationUpdate(BaseModel):
    """Partial update payload. ``None`` means "keep the stored value"."""

    model_config = ConfigDict(extra="forbid")

    c_uf: Optional[str] = Field(None, max_length=2)
    c_nf: Optional[str] = Field(None, max_length=8)
    nat_op: Optional[str] = Field(None, max_length=60)
    mod: Optional[str] = Field(None, max_length=2)
    serie: Optional[str] = Field(None, max_length=3)
    n_nf: Optional[str] = Field(None, max_length=9)
    dh_emi: Optional[datetime] = None
    dh_sai_ent: Optional[datetime] = None
    tp_nf: Optional[str] = Field(None, max_length=1)
    id_dest: Optional[str] = Field(None, max_length=1)
    c_mun_fg: Optional[str] = Field(None, max_length=7)
    tp_imp: Optional[str] = Field(None, max_length=1)
    tp_emis: Optional[str] = Field(None, max_length=1)
    c_dv: Optional[str] = Field(None, max_length=1)
    tp_amb: Optional[str] = Field(None, max_length=1)
    fin_nfe: Optional[str] = Field(None, max_length=1)
    ind_final: Optional[str] = Field(None, max_length=1)
    ind_pres: Optional[str] = Field(None, max_length=1)
    ind_intermed: Optional[str] = Field(None, max_length=1)
    proc_emi: Optional[str] = Field(None, max_length=1)
    ver_proc: Optional[str] = Field(None, max_length=20)
    dh_cont: Optional[datetime] = None
    x_just: Optional[str] = Field(None, max_length=256)


class NFeIdentification(NFeIdentificationBase):
    """Stored identification record."""

    internal_key: str = Field(..., description="Canonical UUID of the record")
    created_at: datetime
    updated_at: datetime


class NFeIdentificationFilters(BaseModel):
    """Optional list filters. Empty strings are treated as absent."""

    nat_op: Optional[str] = None
    n_nf: Optional[str] = None
    tp_nf: Optional[str] = None
    dh_emi: Optional[date] = Field(
        None,
        description="Emission date (YYYY-MM-DD), compared in the record's own offset",
    )
    search: Optional[str] = None

    @field_validator("dh_emi", mode="before")
    @classmethod
    def blank_date_is_absent(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def as_tuple(self) -> Tuple[Optional[str], ...]:
        """Filter values in a fixed order, used for cache key derivation."""
        dh_emi = self.dh_emi.isoformat() if self.dh_emi is not None else None
        return (self.nat_op, self.n_nf, self.tp_nf, dh_emi, self.search)


class NFeIdentificationPage(BaseModel):
    """Cached snapshot of one filtered page and the filtered total."""

    records: List[NFeIdentification]
    total_count: int
