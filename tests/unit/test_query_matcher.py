"""Unit tests for QueryMatcher and query decoding."""

from __future__ import annotations

import pytest

from docbench.domain.services import QueryMatcher, matches
from docbench.domain.value_objects import (
    MATCH_ALL,
    Compare,
    ComparisonOp,
    Equals,
    FieldCondition,
    InvalidQueryError,
    LogicalCondition,
    UnsupportedOperatorError,
    parse_query,
)


@pytest.mark.unit
class TestParseQuery:
    """Tests for decoding filter documents."""

    def test_none_and_empty_match_all(self) -> None:
        assert parse_query(None) is MATCH_ALL
        assert parse_query({}).is_empty

    def test_literal_decodes_to_equals(self) -> None:
        query = parse_query({"age": 30})
        assert query.conditions == (FieldCondition("age", (Equals(30),)),)

    def test_operator_document_decodes_each_operator(self) -> None:
        query = parse_query({"age": {"$gte": 25, "$lte": 35}})
        (condition,) = query.conditions
        assert condition.predicates == (
            Compare(ComparisonOp.GTE, 25),
            Compare(ComparisonOp.LTE, 35),
        )

    def test_logical_operator(self) -> None:
        query = parse_query({"$or": [{"a": 1}, {"b": 2}]})
        assert isinstance(query.conditions[0], LogicalCondition)

    def test_decoded_query_passes_through(self) -> None:
        query = parse_query({"a": 1})
        assert parse_query(query) is query

    def test_non_mapping_rejected(self) -> None:
        with pytest.raises(InvalidQueryError):
            parse_query(["age", 30])  # type: ignore[arg-type]

    def test_in_requires_list(self) -> None:
        with pytest.raises(InvalidQueryError, match=r"\$in requires a list"):
            parse_query({"city": {"$in": "Chicago"}})

    def test_logical_requires_non_empty_list(self) -> None:
        with pytest.raises(InvalidQueryError):
            parse_query({"$and": []})

    def test_unknown_operator_ignored_by_default(self) -> None:
        query = parse_query({"age": {"$regex": "^3", "$gt": 1}})
        assert query.conditions[0].predicates == (Compare(ComparisonOp.GT, 1),)

    def test_unknown_operator_rejected_in_strict_mode(self) -> None:
        with pytest.raises(UnsupportedOperatorError) as exc_info:
            parse_query({"age": {"$regex": "^3"}}, strict=True)
        assert exc_info.value.operator == "$regex"

    def test_unknown_top_level_operator_rejected_in_strict_mode(self) -> None:
        with pytest.raises(UnsupportedOperatorError):
            parse_query({"$where": "true"}, strict=True)


@pytest.mark.unit
class TestMatches:
    """Tests for matching semantics."""

    @pytest.mark.parametrize(
        "document",
        [{}, {"a": 1}, {"_id": 7, "nested": {"x": [1, 2]}}, {"none": None}],
    )
    def test_empty_query_matches_everything(self, document: dict) -> None:
        assert matches(document, {})

    def test_literal_equality(self) -> None:
        assert matches({"age": 30}, {"age": 30})
        assert not matches({"age": 31}, {"age": 30})

    def test_missing_field_equals_no_literal(self) -> None:
        assert not matches({}, {"age": 30})
        assert not matches({}, {"age": None})

    def test_equality_is_strict_between_bool_and_number(self) -> None:
        assert not matches({"flag": 1}, {"flag": True})
        assert not matches({"flag": False}, {"flag": 0})
        assert matches({"flag": True}, {"flag": True})

    def test_array_and_mapping_equality_is_strict(self) -> None:
        assert not matches({"tags": [True]}, {"tags": [1]})
        assert not matches({"meta": {"ok": 0}}, {"meta": {"ok": False}})
        assert matches({"meta": {"ok": 1.0}}, {"meta": {"ok": 1}})
        assert matches({"tags": [1]}, {"tags": {"$ne": [True]}})
        assert not matches({"tags": [1]}, {"tags": {"$in": [[True], [0]]}})

    def test_int_and_float_compare_equal(self) -> None:
        assert matches({"score": 2.0}, {"score": 2})

    @pytest.mark.parametrize(
        "age,expected", [(24, False), (25, True), (30, True), (35, True), (36, False)]
    )
    def test_range_is_inclusive_on_both_ends(self, age: int, expected: bool) -> None:
        assert matches({"age": age}, {"age": {"$gte": 25, "$lte": 35}}) is expected

    def test_strict_bounds(self) -> None:
        assert not matches({"age": 25}, {"age": {"$gt": 25}})
        assert not matches({"age": 35}, {"age": {"$lt": 35}})

    def test_comparison_does_not_coerce_types(self) -> None:
        assert not matches({"age": "30"}, {"age": {"$gt": 25}})
        assert not matches({"age": None}, {"age": {"$lt": 100}})
        assert not matches({}, {"age": {"$lt": 100}})

    def test_string_comparison_is_lexicographic(self) -> None:
        assert matches({"name": "bob"}, {"name": {"$gt": "alice"}})
        assert not matches({"name": "Bob"}, {"name": {"$gt": "alice"}})

    def test_ne(self) -> None:
        assert matches({"status": "active"}, {"status": {"$ne": "inactive"}})
        assert not matches({"status": "inactive"}, {"status": {"$ne": "inactive"}})
        assert matches({}, {"status": {"$ne": "inactive"}})

    def test_eq_operator(self) -> None:
        assert matches({"city": "Chicago"}, {"city": {"$eq": "Chicago"}})

    def test_in_and_nin(self) -> None:
        query_in = {"city": {"$in": ["New York", "Los Angeles"]}}
        query_nin = {"city": {"$nin": ["New York", "Los Angeles"]}}
        assert matches({"city": "New York"}, query_in)
        assert not matches({"city": "Chicago"}, query_in)
        assert matches({"city": "Chicago"}, query_nin)
        assert not matches({"city": "Los Angeles"}, query_nin)

    def test_exists_tests_own_key_presence(self) -> None:
        assert matches({"tier": None}, {"tier": {"$exists": True}})
        assert not matches({}, {"tier": {"$exists": True}})
        assert matches({}, {"tier": {"$exists": False}})
        assert not matches({"tier": "adult"}, {"tier": {"$exists": False}})

    def test_fields_are_anded(self) -> None:
        query = {"age": {"$gt": 25}, "status": "active"}
        assert matches({"age": 30, "status": "active"}, query)
        assert not matches({"age": 30, "status": "pending"}, query)
        assert not matches({"age": 20, "status": "active"}, query)

    def test_and_or_nor(self) -> None:
        doc = {"age": 30, "city": "Dallas"}
        assert matches(doc, {"$and": [{"age": {"$gt": 25}}, {"city": "Dallas"}]})
        assert not matches(doc, {"$and": [{"age": {"$gt": 25}}, {"city": "Austin"}]})
        assert matches(doc, {"$or": [{"age": 99}, {"city": "Dallas"}]})
        assert not matches(doc, {"$nor": [{"age": 99}, {"city": "Dallas"}]})
        assert matches(doc, {"$nor": [{"age": 99}, {"city": "Austin"}]})

    def test_dotted_path(self) -> None:
        doc = {"address": {"city": "Chicago", "zip": "60601"}, "tags": ["a", "b"]}
        assert matches(doc, {"address.city": "Chicago"})
        assert matches(doc, {"tags.1": "b"})
        assert not matches(doc, {"address.street": {"$exists": True}})

    def test_unknown_operator_is_always_true(self) -> None:
        assert matches({"age": 30}, {"age": {"$regex": "nope"}})

    def test_matcher_object_is_reusable(self) -> None:
        matcher = QueryMatcher()
        compiled = matcher.compile({"age": {"$gt": 25}})
        assert matcher.matches({"age": 30}, compiled)
        assert not matcher.matches({"age": 20}, compiled)

    def test_strict_matcher_raises(self) -> None:
        matcher = QueryMatcher(strict=True)
        assert matcher.strict
        with pytest.raises(UnsupportedOperatorError):
            matcher.matches({"age": 30}, {"age": {"$mod": [2, 0]}})

    def test_matching_does_not_mutate_document(self) -> None:
        doc = {"age": 30, "tags": ["x"]}
        matches(doc, {"tags": {"$in": [["x"]]}})
        assert doc == {"age": 30, "tags": ["x"]}
