"""
NF-e Identification Record Mapper

Pure conversions between ``NFeIdentification`` and the row shape of the
``nfe_identifications`` table.

Storage conventions:
- ``internal_key`` is CHAR(32): lowercase hex, no separators.
- Temporal columns travel as text in one fixed format,
  ``YYYY-MM-DD HH:MM:SS.fff`` in UTC, on both the read and the write path
  (see ``nfe_identification_queries.SQL_TIMESTAMP_PATTERN``).
- The caller's UTC offset for each caller-supplied temporal field is kept
  in a companion ``<field>_offset`` column (whole minutes east of UTC) and
  re-applied on read. Rows without an offset read back in UTC.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional, Union
from uuid import UUID

from pydantic import ValidationError

from ..domain.nfe.models import (
    NFeIdentification,
    NFeIdentificationBase,
    NFeIdentificationUpdate,
)
from .exceptions import InvalidIdentifierError, RecordParseError

STORAGE_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f"

# Text columns, in table order
TEXT_FIELDS = (
    "c_uf",
    "c_nf",
    "nat_op",
    "mod",
    "serie",
    "n_nf",
    "tp_nf",
    "id_dest",
    "c_mun_fg",
    "tp_imp",
    "tp_emis",
    "c_dv",
    "tp_amb",
    "fin_nfe",
    "ind_final",
    "ind_pres",
    "ind_intermed",
    "proc_emi",
    "ver_proc",
    "x_just",
)

REQUIRED_TIMESTAMP_FIELDS = ("dh_emi",)
OPTIONAL_TIMESTAMP_FIELDS = ("dh_sai_ent", "dh_cont")
TIMESTAMP_FIELDS = REQUIRED_TIMESTAMP_FIELDS + OPTIONAL_TIMESTAMP_FIELDS
AUDIT_FIELDS = ("created_at", "updated_at")

# Companion offset column per caller-supplied temporal field
OFFSET_COLUMNS = {field: f"{field}_offset" for field in TIMESTAMP_FIELDS}

# Largest offset PostgreSQL accepts for a time zone
MAX_OFFSET_MINUTES = 18 * 60

# Columns the caller may write
WRITABLE_FIELDS = TEXT_FIELDS + TIMESTAMP_FIELDS


def canonical_identifier(value: Union[str, UUID]) -> str:
    """Return the hyphenated lowercase form of an identifier."""
    if isinstance(value, UUID):
        return str(value)
    if not isinstance(value, str):
        raise InvalidIdentifierError(value)
    try:
        return str(UUID(value.strip()))
    except ValueError as e:
        raise InvalidIdentifierError(value, e) from e


def identifier_to_storage(value: Union[str, UUID]) -> str:
    """Canonical identifier -> 32-char hex column value."""
    return UUID(canonical_identifier(value)).hex


def identifier_from_storage(raw: Any) -> str:
    """32-char hex column value -> canonical identifier."""
    if not isinstance(raw, str) or len(raw.strip()) != 32:
        raise InvalidIdentifierError(raw)
    try:
        return str(UUID(hex=raw.strip()))
    except ValueError as e:
        raise InvalidIdentifierError(raw, e) from e


def format_timestamp(value: datetime) -> str:
    """Render a datetime in the storage format (UTC, millisecond precision).

    Naive values are taken to be UTC already.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%d %H:%M:%S.") + f"{value.microsecond // 1000:03d}"


def truncate_to_millis(value: datetime) -> datetime:
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


def offset_minutes(value: datetime) -> int:
    """UTC offset of ``value`` in whole minutes; naive values count as UTC."""
    offset = value.utcoffset()
    if offset is None:
        return 0
    return int(offset.total_seconds() // 60)


def apply_offset(value: datetime, raw_offset: Any, field: str) -> datetime:
    """Re-express a UTC instant in the stored offset of its field."""
    if raw_offset is None:
        return value
    if isinstance(raw_offset, bool) or not isinstance(raw_offset, int):
        raise RecordParseError(
            OFFSET_COLUMNS[field], raw_offset, "offset must be whole minutes"
        )
    if abs(raw_offset) > MAX_OFFSET_MINUTES:
        raise RecordParseError(
            OFFSET_COLUMNS[field], raw_offset, "offset out of range"
        )
    return value.astimezone(timezone(timedelta(minutes=raw_offset)))


def parse_timestamp(
    raw: Any, field: str, required: bool = False
) -> Optional[datetime]:
    """
    Parse a stored timestamp string.

    Absent values are ``None`` for optional fields. A required field that is
    absent, or any field holding unparsable text, raises ``RecordParseError``;
    no substitute value is ever invented.
    """
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        if required:
            raise RecordParseError(field, raw, "required value is missing")
        return None

    if isinstance(raw, datetime):
        if raw.tzinfo is None:
            return truncate_to_millis(raw.replace(tzinfo=timezone.utc))
        return truncate_to_millis(raw.astimezone(timezone.utc))

    if not isinstance(raw, str):
        raise RecordParseError(field, raw, f"unexpected type {type(raw).__name__}")

    try:
        parsed = datetime.strptime(raw.strip(), STORAGE_TIMESTAMP_FORMAT)
    except ValueError as e:
        raise RecordParseError(
            field, raw, "expected 'YYYY-MM-DD HH:MM:SS.fff'", original_error=e
        ) from e

    return parsed.replace(tzinfo=timezone.utc)


def row_to_record(row: Mapping[str, Any]) -> NFeIdentification:
    """Build a domain record from one result row (accessed by column name)."""
    values: Dict[str, Any] = {
        "internal_key": identifier_from_storage(row["internal_key"])
    }

    for field in TEXT_FIELDS:
        values[field] = row.get(field)

    for field in REQUIRED_TIMESTAMP_FIELDS + AUDIT_FIELDS:
        values[field] = parse_timestamp(row.get(field), field, required=True)

    for field in OPTIONAL_TIMESTAMP_FIELDS:
        values[field] = parse_timestamp(row.get(field), field)

    for field in TIMESTAMP_FIELDS:
        if values[field] is not None:
            values[field] = apply_offset(
                values[field], row.get(OFFSET_COLUMNS[field]), field
            )

    try:
        return NFeIdentification(**values)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or "record"
        raise RecordParseError(
            field, first.get("input"), first.get("msg", "invalid value"), e
        ) from e


def record_to_row(
    values: Union[NFeIdentificationBase, NFeIdentificationUpdate],
) -> Dict[str, Any]:
    """
    Bind parameters for INSERT/UPDATE.

    ``None`` is kept as ``None`` so the null-coalescing UPDATE preserves the
    stored column. Each temporal value also binds its offset in minutes.
    """
    data = values.model_dump()
    params: Dict[str, Any] = {}

    for field in TEXT_FIELDS:
        params[field] = data.get(field)

    for field in TIMESTAMP_FIELDS:
        value = data.get(field)
        if value is None:
            params[field] = None
            params[OFFSET_COLUMNS[field]] = None
        else:
            params[field] = format_timestamp(value)
            params[OFFSET_COLUMNS[field]] = offset_minutes(value)

    return params
