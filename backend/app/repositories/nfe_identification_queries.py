"""
NF-e Identification SQL

Statement text for the ``nfe_identifications`` table (PostgreSQL) and the
builder for filtered, paginated listings. Caller-provided values only ever
reach the database as named bind parameters.

Expected table::

    CREATE TABLE nfe_identifications (
        internal_key  CHAR(32)     PRIMARY KEY,
        c_uf          VARCHAR(2)   NOT NULL,
        c_nf          VARCHAR(8)   NOT NULL,
        nat_op        VARCHAR(60)  NOT NULL,
        mod           VARCHAR(2)   NOT NULL,
        serie         VARCHAR(3)   NOT NULL,
        n_nf          VARCHAR(9)   NOT NULL,
        dh_emi        TIMESTAMPTZ  NOT NULL,
        dh_emi_offset SMALLINT     NOT NULL,
        dh_sai_ent    TIMESTAMPTZ,
        dh_sai_ent_offset SMALLINT,
        tp_nf         VARCHAR(1)   NOT NULL,
        id_dest       VARCHAR(1)   NOT NULL,
        c_mun_fg      VARCHAR(7)   NOT NULL,
        tp_imp        VARCHAR(1)   NOT NULL,
        tp_emis       VARCHAR(1)   NOT NULL,
        c_dv          VARCHAR(1)   NOT NULL,
        tp_amb        VARCHAR(1)   NOT NULL,
        fin_nfe       VARCHAR(1)   NOT NULL,
        ind_final     VARCHAR(1)   NOT NULL,
        ind_pres      VARCHAR(1)   NOT NULL,
        ind_intermed  VARCHAR(1),
        proc_emi      VARCHAR(1)   NOT NULL,
        ver_proc      VARCHAR(20)  NOT NULL,
        dh_cont       TIMESTAMPTZ,
        dh_cont_offset SMALLINT,
        x_just        VARCHAR(256),
        created_at    TIMESTAMPTZ  NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at    TIMESTAMPTZ  NOT NULL DEFAULT CURRENT_TIMESTAMP
    );
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..domain.nfe.models import NFeIdentificationFilters
from .nfe_identification_mapper import (
    AUDIT_FIELDS,
    OFFSET_COLUMNS,
    TEXT_FIELDS,
    TIMESTAMP_FIELDS,
    WRITABLE_FIELDS,
)

TABLE_NAME = "nfe_identifications"

# Must stay in step with nfe_identification_mapper.STORAGE_TIMESTAMP_FORMAT
SQL_TIMESTAMP_PATTERN = "YYYY-MM-DD HH24:MI:SS.MS"

LIKE_ESCAPE = "\\"

# Offset columns, written and read alongside their temporal field
OFFSET_FIELDS = tuple(OFFSET_COLUMNS[field] for field in TIMESTAMP_FIELDS)


def _read_timestamp(column: str) -> str:
    return (
        f"to_char({column} AT TIME ZONE 'UTC', '{SQL_TIMESTAMP_PATTERN}') AS {column}"
    )


def _write_timestamp(param: str) -> str:
    # to_timestamp() yields the session zone; strip it and re-read the wall
    # clock as UTC so the write is independent of the session TimeZone.
    return (
        f"(CAST(to_timestamp(:{param}, '{SQL_TIMESTAMP_PATTERN}') AS TIMESTAMP)"
        f" AT TIME ZONE 'UTC')"
    )


_COLUMN_SEPARATOR = ",\n    "

SELECT_COLUMNS = _COLUMN_SEPARATOR.join(
    ["internal_key"]
    + list(TEXT_FIELDS)
    + [_read_timestamp(column) for column in TIMESTAMP_FIELDS + AUDIT_FIELDS]
    + list(OFFSET_FIELDS)
)

SELECT_BY_ID_SQL = f"""
SELECT
    {SELECT_COLUMNS}
FROM {TABLE_NAME}
WHERE internal_key = :internal_key
"""


def _bound_value(field: str) -> str:
    return _write_timestamp(field) if field in TIMESTAMP_FIELDS else f":{field}"


_INSERT_COLUMNS = ", ".join(WRITABLE_FIELDS + OFFSET_FIELDS)
_INSERT_VALUES = ", ".join(
    _bound_value(field) for field in WRITABLE_FIELDS + OFFSET_FIELDS
)

INSERT_SQL = f"""
INSERT INTO {TABLE_NAME} (
    internal_key,
    {_INSERT_COLUMNS},
    created_at,
    updated_at
) VALUES (
    :internal_key,
    {_INSERT_VALUES},
    CURRENT_TIMESTAMP,
    CURRENT_TIMESTAMP
)
"""

_UPDATE_ASSIGNMENTS = _COLUMN_SEPARATOR.join(
    f"{field} = COALESCE({_bound_value(field)}, {field})"
    for field in WRITABLE_FIELDS + OFFSET_FIELDS
)

UPDATE_SQL = f"""
UPDATE {TABLE_NAME}
SET
    {_UPDATE_ASSIGNMENTS},
    updated_at = CURRENT_TIMESTAMP
WHERE internal_key = :internal_key
"""

DELETE_SQL = f"DELETE FROM {TABLE_NAME} WHERE internal_key = :internal_key"


@dataclass(frozen=True)
class FilteredQuery:
    """Count and page statements sharing one WHERE clause."""

    count_sql: str
    count_params: Dict[str, Any]
    select_sql: str
    select_params: Dict[str, Any]


def escape_like(value: str) -> str:
    """Escape LIKE metacharacters so caller text matches literally."""
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def _contains(value: str) -> str:
    return f"%{escape_like(value)}%"


def _present(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def build_where_clause(
    filters: Optional[NFeIdentificationFilters],
) -> tuple[str, Dict[str, Any]]:
    """Return ``(where_sql, params)``; ``where_sql`` is empty without filters."""
    if filters is None:
        return "", {}

    clauses: List[str] = []
    params: Dict[str, Any] = {}
    escape = f"ESCAPE '{LIKE_ESCAPE}'"

    nat_op = _present(filters.nat_op)
    if nat_op is not None:
        clauses.append(f"nat_op ILIKE :nat_op {escape}")
        params["nat_op"] = _contains(nat_op)

    n_nf = _present(filters.n_nf)
    if n_nf is not None:
        clauses.append(f"n_nf LIKE :n_nf {escape}")
        params["n_nf"] = _contains(n_nf)

    tp_nf = _present(filters.tp_nf)
    if tp_nf is not None:
        clauses.append("tp_nf = :tp_nf")
        params["tp_nf"] = tp_nf

    if filters.dh_emi is not None:
        # Calendar date in the offset the record was emitted with
        clauses.append(
            "to_char((dh_emi AT TIME ZONE 'UTC')"
            " + COALESCE(dh_emi_offset, 0) * INTERVAL '1 minute',"
            " 'YYYY-MM-DD') = :dh_emi"
        )
        params["dh_emi"] = filters.dh_emi.isoformat()

    search = _present(filters.search)
    if search is not None:
        clauses.append(
            f"(nat_op ILIKE :search {escape}"
            f" OR n_nf ILIKE :search {escape}"
            f" OR tp_nf ILIKE :search {escape})"
        )
        params["search"] = _contains(search)

    if not clauses:
        return "", {}
    return "WHERE " + " AND ".join(clauses), params


def build_filtered_query(
    filters: Optional[NFeIdentificationFilters], page: int, page_size: int
) -> FilteredQuery:
    """
    Build the count and page statements for a filtered listing.

    Pages are 1-indexed. Rows are ordered by emission time, newest first;
    ``internal_key`` breaks ties so page boundaries are stable.
    """
    if page < 1:
        raise ValueError("page must be >= 1")
    if page_size < 1:
        raise ValueError("page_size must be >= 1")

    where_sql, where_params = build_where_clause(filters)

    count_lines = [f"SELECT COUNT(*) FROM {TABLE_NAME}"]
    select_lines = [f"SELECT\n    {SELECT_COLUMNS}", f"FROM {TABLE_NAME}"]
    if where_sql:
        count_lines.append(where_sql)
        select_lines.append(where_sql)
    # Qualified so the sort uses the column, not the to_char alias
    select_lines.append(f"ORDER BY {TABLE_NAME}.dh_emi DESC, internal_key ASC")
    select_lines.append("LIMIT :limit OFFSET :offset")

    count_sql = "\n".join(count_lines)
    select_sql = "\n".join(select_lines)
    select_params = dict(where_params)
    select_params["limit"] = page_size
    select_params["offset"] = (page - 1) * page_size

    return FilteredQuery(
        count_sql=count_sql,
        count_params=dict(where_params),
        select_sql=select_sql,
        select_params=select_params,
    )


def total_pages(total_count: int, page_size: int) -> int:
    """Number of pages needed for ``total_count`` rows."""
    if page_size <= 0:
        raise ValueError("page_size must be positive")
    return math.ceil(total_count / page_size)
