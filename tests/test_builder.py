"""
Unit tests for the SQL statement builder.
"""

from __future__ import annotations

from datetime import date, datetime

import pytest

from supagrid.filters import (
    Filter,
    GridQuery,
    Operator,
    QueryPagination,
    QueryTable,
    Sort,
)
from supagrid.query import (
    build_grid_queries,
    count_query,
    delete_query,
    filter_literal,
    ident,
    insert_query,
    literal,
    select_query,
    update_query,
)

COUNTRIES = QueryTable("countries")


class TestIdent:
    def test_plain_lowercase_is_left_unquoted(self):
        assert ident("iso_code") == "iso_code"
        assert ident("col$1") == "col$1"

    def test_mixed_case_and_spaces_are_quoted(self):
        assert ident("IsoCode") == '"IsoCode"'
        assert ident("first name") == '"first name"'
        assert ident("1st") == '"1st"'

    def test_reserved_words_are_quoted(self):
        assert ident("order") == '"order"'
        assert ident("user") == '"user"'

    def test_embedded_double_quotes_are_doubled(self):
        assert ident('a"b') == '"a""b"'

    def test_none_is_rejected(self):
        with pytest.raises(ValueError, match="cannot be null"):
            ident(None)

    def test_dict_is_rejected(self):
        with pytest.raises(ValueError):
            ident({"a": 1})

    def test_booleans_and_lists(self):
        assert ident(True) == '"t"'
        assert ident(False) == '"f"'
        assert ident(["id", "Name"]) == 'id,"Name"'


class TestLiteral:
    def test_null(self):
        assert literal(None) == "NULL"

    def test_strings_double_single_quotes(self):
        assert literal("it's") == "'it''s'"

    def test_backslash_switches_to_escape_string(self):
        assert literal("C:\\temp") == "E'C:\\\\temp'"

    def test_numbers_are_unquoted(self):
        assert literal(42) == "42"
        assert literal(-1.5) == "-1.5"

    def test_non_finite_floats_are_quoted(self):
        assert literal(float("inf")) == "'inf'"

    def test_booleans(self):
        assert literal(True) == "'t'"
        assert literal(False) == "'f'"

    def test_dates(self):
        assert literal(date(2024, 1, 2)) == "'2024-01-02'"
        assert literal(datetime(2024, 1, 2, 3, 4, 5)) == "'2024-01-02T03:04:05'"

    def test_bytes(self):
        assert literal(b"\x01\xff") == "E'\\\\x01ff'"

    def test_lists_and_nested_lists(self):
        assert literal([1, "x", None]) == "1,'x',NULL"
        assert literal([[1, 2], [3]]) == "(1,2),(3)"

    def test_dict_becomes_json_text(self):
        assert literal({"a": "b'c"}) == "'{\"a\": \"b''c\"}'"


class TestFilterLiteral:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("12", "12"),
            (" 7 ", "7"),
            ("-3", "-3"),
            ("1.50", "1.5"),
            ("1.0", "1"),
            ("1e3", "1000"),
            ("abc", "'abc'"),
            ("0x10", "'0x10'"),
            ("", "''"),
            ("12abc", "'12abc'"),
            ("١٢", "'١٢'"),
            ("１２", "'１２'"),
        ],
    )
    def test_numeric_text_becomes_number(self, raw, expected):
        assert filter_literal(raw) == expected


class TestSelectQuery:
    def test_bare_table(self):
        assert select_query(COUNTRIES) == "select * from public.countries;"

    def test_empty_column_list_means_star(self):
        assert select_query(COUNTRIES, []) == "select * from public.countries;"

    def test_schema_and_table_are_quoted_when_needed(self):
        assert select_query(QueryTable("Users", schema="Auth")) == 'select * from "Auth"."Users";'

    def test_full_clause_order(self):
        sql = select_query(
            COUNTRIES,
            ["id", "name"],
            filters=[
                Filter("name", Operator.ILIKE, "%land%"),
                Filter("id", Operator.GT, "10"),
            ],
            sorts=[Sort("name"), Sort("id", ascending=False, nulls_first=True)],
            pagination=QueryPagination(limit=100, offset=200),
        )
        assert sql == (
            "select id, name from public.countries"
            " where name ~~* '%land%' and id > 10"
            " order by name asc nulls last, id desc nulls first"
            " limit 100 offset 200;"
        )

    def test_in_filter_splits_and_trims(self):
        sql = select_query(COUNTRIES, filters=[Filter("id", Operator.IN, "1, 2,x")])
        assert sql == "select * from public.countries where id in (1,2,'x');"

    def test_in_filter_ignores_blank_items(self):
        sql = select_query(COUNTRIES, filters=[Filter("id", Operator.IN, "1,2,")])
        assert sql == "select * from public.countries where id in (1,2);"

    def test_in_filter_with_only_blank_items_is_rejected(self):
        with pytest.raises(ValueError, match="Empty value list"):
            select_query(COUNTRIES, filters=[Filter("id", Operator.IN, " , ")])

    @pytest.mark.parametrize("keyword", ["null", "not null", "true", "false"])
    def test_is_filter_keywords_are_unquoted(self, keyword):
        sql = select_query(COUNTRIES, filters=[Filter("is_member", Operator.IS, keyword)])
        assert sql == f"select * from public.countries where is_member is {keyword};"

    def test_is_filter_other_values_are_literals(self):
        sql = select_query(COUNTRIES, filters=[Filter("name", Operator.IS, "maybe")])
        assert sql == "select * from public.countries where name is 'maybe';"

    def test_filter_value_is_escaped(self):
        sql = select_query(COUNTRIES, filters=[Filter("name", Operator.EQ, "x'; drop table t; --")])
        assert sql == "select * from public.countries where name = 'x''; drop table t; --';"


class TestCountQuery:
    def test_without_filters(self):
        assert count_query(COUNTRIES) == "select count(*) from public.countries;"

    def test_with_filters(self):
        sql = count_query(COUNTRIES, filters=[Filter("population", Operator.GTE, "1000")])
        assert sql == "select count(*) from public.countries where population >= 1000;"


class TestInsertQuery:
    def test_columns_and_values(self):
        sql = insert_query(COUNTRIES, {"name": "Wakanda", "population": 5})
        assert sql == "insert into public.countries (name,population) values ('Wakanda',5);"

    def test_returning(self):
        sql = insert_query(COUNTRIES, {"name": "Wakanda"}, returning=True)
        assert sql == "insert into public.countries (name) values ('Wakanda') returning *;"

    def test_empty_value_uses_default_values(self):
        assert insert_query(COUNTRIES, {}) == "insert into public.countries default values;"

    def test_json_and_null_values(self):
        sql = insert_query(COUNTRIES, {"meta": {"k": 1}, "iso_code": None})
        assert sql == "insert into public.countries (meta,iso_code) values ('{\"k\": 1}',NULL);"


class TestUpdateQuery:
    def test_update_uses_json_populate_record(self):
        sql = update_query(
            COUNTRIES,
            {"name": "O'Land"},
            filters=[Filter("id", Operator.EQ, "3")],
            returning=True,
        )
        assert sql == (
            "update public.countries set (name) = "
            "(select name from json_populate_record(null::public.countries, "
            "'{\"name\": \"O''Land\"}')) where id = 3 returning *;"
        )

    def test_multiple_columns(self):
        sql = update_query(
            COUNTRIES,
            {"name": "X", "population": 2},
            filters=[Filter("id", Operator.EQ, "3")],
        )
        assert sql.startswith("update public.countries set (name,population) = (select name,population from")
        assert sql.endswith(" where id = 3;")

    @pytest.mark.parametrize("filters", [None, []])
    def test_requires_filters(self, filters):
        with pytest.raises(ValueError, match="no filters for this update query"):
            update_query(COUNTRIES, {"name": "X"}, filters=filters)

    def test_requires_values(self):
        with pytest.raises(ValueError, match="no values for this update query"):
            update_query(COUNTRIES, {}, filters=[Filter("id", Operator.EQ, "1")])


class TestDeleteQuery:
    def test_delete(self):
        sql = delete_query(COUNTRIES, [Filter("id", Operator.IN, "1,2")])
        assert sql == "delete from public.countries where id in (1,2);"

    def test_delete_returning(self):
        sql = delete_query(COUNTRIES, [Filter("id", Operator.EQ, "1")], returning=True)
        assert sql == "delete from public.countries where id = 1 returning *;"

    @pytest.mark.parametrize("filters", [None, []])
    def test_requires_filters(self, filters):
        with pytest.raises(ValueError, match="no filters for this delete query"):
            delete_query(COUNTRIES, filters)


class TestBuildGridQueries:
    def test_count_mirrors_filters_but_not_paging(self):
        gq = GridQuery(
            table=COUNTRIES,
            filters=[Filter("name", Operator.LIKE, "A%")],
            sorts=[Sort("name")],
            pagination=QueryPagination(limit=10),
        )
        res = build_grid_queries(gq, include_count=True)
        assert res.sql == (
            "select * from public.countries where name ~~ 'A%'"
            " order by name asc nulls last limit 10 offset 0;"
        )
        assert res.count_sql == "select count(*) from public.countries where name ~~ 'A%';"

    def test_count_is_optional(self):
        res = build_grid_queries(GridQuery(table=COUNTRIES))
        assert res.count_sql is None

    def test_table_name_is_required(self):
        with pytest.raises(ValueError):
            build_grid_queries(GridQuery(table=QueryTable("")))
