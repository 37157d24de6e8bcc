"""
Unit tests for NF-e identification SQL construction.

Caller-provided text must only ever appear in bind parameters, never in
the statement text.
"""

import pytest
from datetime import date

from pydantic import ValidationError

from app.domain.nfe.models import NFeIdentificationFilters
from app.repositories.nfe_identification_queries import (
    DELETE_SQL,
    INSERT_SQL,
    SELECT_BY_ID_SQL,
    UPDATE_SQL,
    build_filtered_query,
    build_where_clause,
    escape_like,
    total_pages,
)


class TestWhereClause:
    def test_no_filters(self):
        assert build_where_clause(None) == ("", {})
        assert build_where_clause(NFeIdentificationFilters()) == ("", {})

    def test_empty_strings_are_absent(self):
        filters = NFeIdentificationFilters(nat_op="", n_nf="  ", search="")
        assert build_where_clause(filters) == ("", {})

    def test_all_filters_are_conjoined(self):
        filters = NFeIdentificationFilters(
            nat_op="venda", n_nf="12", tp_nf="1", dh_emi="2024-01-01", search="x"
        )
        where_sql, params = build_where_clause(filters)

        assert where_sql.startswith("WHERE ")
        assert where_sql.count(" AND ") == 4
        assert "nat_op ILIKE :nat_op" in where_sql
        assert "n_nf LIKE :n_nf" in where_sql
        assert "tp_nf = :tp_nf" in where_sql
        assert ":dh_emi" in where_sql
        assert params == {
            "nat_op": "%venda%",
            "n_nf": "%12%",
            "tp_nf": "1",
            "dh_emi": "2024-01-01",
            "search": "%x%",
        }

    def test_emission_filter_compares_local_date(self):
        where_sql, params = build_where_clause(
            NFeIdentificationFilters(dh_emi=date(2024, 1, 1))
        )

        assert "COALESCE(dh_emi_offset, 0) * INTERVAL '1 minute'" in where_sql
        assert params == {"dh_emi": "2024-01-01"}

    @pytest.mark.parametrize(
        "value", ["01/01/2024", "2024-13-01", "yesterday", "2024-01-01T10:00:00-03:00"]
    )
    def test_emission_filter_must_be_a_calendar_date(self, value):
        with pytest.raises(ValidationError):
            NFeIdentificationFilters(dh_emi=value)

    def test_blank_emission_filter_is_absent(self):
        assert NFeIdentificationFilters(dh_emi=" ").dh_emi is None

    def test_search_spans_several_columns(self):
        where_sql, params = build_where_clause(NFeIdentificationFilters(search="55"))

        assert "nat_op ILIKE :search" in where_sql
        assert "n_nf ILIKE :search" in where_sql
        assert "tp_nf ILIKE :search" in where_sql
        assert params == {"search": "%55%"}

    def test_hostile_text_stays_in_parameters(self):
        hostile = "'; DROP TABLE nfe_identifications; --"
        where_sql, params = build_where_clause(NFeIdentificationFilters(nat_op=hostile))

        assert "DROP" not in where_sql
        assert params["nat_op"] == f"%{hostile}%"


class TestEscapeLike:
    def test_metacharacters_are_escaped(self):
        assert escape_like("50%_off") == "50\\%\\_off"

    def test_escape_character_is_doubled(self):
        assert escape_like("a\\b") == "a\\\\b"


class TestFilteredQuery:
    def test_pagination_parameters(self):
        query = build_filtered_query(None, page=3, page_size=20)

        assert query.select_params == {"limit": 20, "offset": 40}
        assert query.count_params == {}
        assert "WHERE" not in query.count_sql
        assert query.select_sql.endswith("LIMIT :limit OFFSET :offset")

    def test_count_and_select_share_the_filter(self):
        query = build_filtered_query(
            NFeIdentificationFilters(tp_nf="0"), page=1, page_size=10
        )

        assert query.count_sql.startswith("SELECT COUNT(*) FROM nfe_identifications")
        assert "tp_nf = :tp_nf" in query.count_sql
        assert "tp_nf = :tp_nf" in query.select_sql
        assert query.count_params == {"tp_nf": "0"}
        assert query.select_params == {"tp_nf": "0", "limit": 10, "offset": 0}

    def test_order_is_newest_first_with_stable_tie_breaker(self):
        query = build_filtered_query(None, page=1, page_size=10)
        assert (
            "ORDER BY nfe_identifications.dh_emi DESC, internal_key ASC"
            in query.select_sql
        )

    @pytest.mark.parametrize("page,page_size", [(0, 10), (1, 0), (-1, 10)])
    def test_invalid_pagination(self, page, page_size):
        with pytest.raises(ValueError):
            build_filtered_query(None, page, page_size)


class TestStatements:
    def test_update_is_null_coalescing(self):
        assert "nat_op = COALESCE(:nat_op, nat_op)" in UPDATE_SQL
        assert "updated_at = CURRENT_TIMESTAMP" in UPDATE_SQL
        assert "created_at" not in UPDATE_SQL
        assert "dh_emi_offset = COALESCE(:dh_emi_offset, dh_emi_offset)" in UPDATE_SQL

    def test_insert_assigns_audit_timestamps(self):
        assert INSERT_SQL.count("CURRENT_TIMESTAMP") == 2
        assert ":internal_key" in INSERT_SQL
        assert ":dh_emi_offset" in INSERT_SQL

    def test_reads_render_timestamps_in_utc(self):
        assert "to_char(dh_emi AT TIME ZONE 'UTC'" in SELECT_BY_ID_SQL
        assert "AS updated_at" in SELECT_BY_ID_SQL
        assert "dh_cont_offset" in SELECT_BY_ID_SQL

    def test_delete_by_identifier(self):
        assert DELETE_SQL.endswith("WHERE internal_key = :internal_key")


class TestTotalPages:
    @pytest.mark.parametrize(
        "total_count,page_size,expected",
        [(101, 50, 3), (100, 50, 2), (0, 50, 0), (1, 1, 1)],
    )
    def test_total_pages(self, total_count, page_size, expected):
        assert total_pages(total_count, page_size) == expected

    def test_zero_page_size(self):
        with pytest.raises(ValueError):
            total_pages(10, 0)
