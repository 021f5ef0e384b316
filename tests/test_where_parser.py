"""
Tests for the where-clause language: tokenizing, parsing and evaluation
against entities.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from cmdgen.entities import (
    DifficultyDegree,
    EntityStore,
    Gender,
    GpsrObject,
    ObjectType,
    PersonName,
)
from cmdgen.errors import WhereSyntaxError
from cmdgen.where_parser import (
    BOOL,
    END,
    IDENT,
    NULL,
    NUMBER,
    OP,
    STRING,
    all_of,
    parse_where,
    quote_literal,
    tokenize,
)


@pytest.fixture
def coke():
    return GpsrObject("coke", ObjectType.KNOWN, DifficultyDegree.EASY, None, {"color": "red", "fragile": "no"})


@pytest.fixture
def cookies():
    return GpsrObject("cookies", ObjectType.ALIKE, DifficultyDegree.MODERATE, None, {})


class TestTokenizer:
    def test_token_kinds(self):
        tokens = tokenize("name = 'coke' and tier >= 3 or flag = true xor x = null")
        kinds = [t.kind for t in tokens]
        assert kinds == [IDENT, OP, STRING, "boolean operator", IDENT, OP, NUMBER,
                         "boolean operator", IDENT, OP, BOOL, "boolean operator", IDENT, OP, NULL, END]

    def test_comparators(self):
        ops = [t.value for t in tokenize("a = 1 b == 1 c != 1 d <> 1 e > 1 f >= 1 g < 1 h <= 1") if t.kind == OP]
        assert ops == ["=", "=", "!=", "!=", ">", ">=", "<", "<="]

    def test_numbers(self):
        values = [t.value for t in tokenize("a = 3 b = -2.5 c = 1e3 d = +4") if t.kind == NUMBER]
        assert values == [3, -2.5, 1000.0, 4]

    def test_string_escapes(self):
        tokens = tokenize(r'a = "say \"hi\"" b = "C:\temp" c = "back\\slash"')
        strings = [t.value for t in tokens if t.kind == STRING]
        assert strings == ['say "hi"', r"C:\temp", "back\\slash"]

    def test_keywords_are_case_insensitive(self):
        tokens = tokenize("NOT a = TRUE AND b = Null")
        assert tokens[0].kind == "not"
        assert tokens[3].kind == BOOL and tokens[3].value is True
        assert tokens[4].value == "and"
        assert tokens[7].kind == NULL

    def test_unterminated_string(self):
        with pytest.raises(WhereSyntaxError):
            tokenize('name = "coke')

    def test_unexpected_character(self):
        with pytest.raises(WhereSyntaxError):
            tokenize("name = @coke")


class TestParser:
    @pytest.mark.parametrize("clause", [
        "",
        "   ",
        "name",
        "name =",
        "= 'coke'",
        "name = 'coke' and",
        "name = 'coke' color = 'red'",
        "tier > 'high'",
        "flag >= true",
        "name < null",
        "not",
        "name ! 'coke'",
    ])
    def test_malformed_clauses_raise(self, clause):
        with pytest.raises(WhereSyntaxError):
            parse_where(clause)

    def test_error_carries_clause_and_position(self):
        with pytest.raises(WhereSyntaxError) as info:
            parse_where("name = 'coke' color")
        assert info.value.clause == "name = 'coke' color"
        assert info.value.position == 14

    def test_str_round_trip(self):
        clause = parse_where("not type = 'known' and tier <= 3")
        assert str(clause) == 'not type = "known" and tier <= 3'


class TestEvaluation:
    def test_string_equality_ignores_case(self, coke):
        assert parse_where("name = 'COKE'")(coke)
        assert not parse_where("name != 'coke'")(coke)

    def test_enum_fields_compare_by_name(self, coke, cookies):
        clause = parse_where('type = "known"')
        assert clause(coke)
        assert not clause(cookies)

    def test_numeric_comparisons(self, coke, cookies):
        assert parse_where("tier <= 1")(coke)
        assert not parse_where("tier <= 1")(cookies)
        assert parse_where("tier > 1.5")(cookies)
        assert parse_where("tier = 3")(cookies)

    def test_non_numeric_property_never_matches_number(self, coke):
        assert not parse_where("color > 1")(coke)
        assert not parse_where("color = 1")(coke)

    def test_boolean_coercion(self, coke):
        assert parse_where("fragile = false")(coke)
        assert not parse_where("fragile = true")(coke)
        assert parse_where("fragile != true")(coke)

    def test_null(self, coke):
        assert parse_where("weight = null")(coke)
        assert not parse_where("weight != null")(coke)
        assert parse_where("color != null")(coke)

    def test_missing_property_fails_comparison(self, coke):
        assert not parse_where("weight = 'heavy'")(coke)
        assert not parse_where("weight != 'heavy'")(coke)
        assert not parse_where("weight < 10")(coke)

    def test_not(self, coke, cookies):
        clause = parse_where("not type = 'alike'")
        assert clause(coke)
        assert not clause(cookies)

    def test_left_to_right_without_precedence(self, coke):
        # (name = coke or type = alike) and color = blue
        assert not parse_where("name = 'coke' or type = 'alike' and color = 'blue'")(coke)
        assert parse_where("color = 'blue' and name = 'coke' or type = 'known'")(coke)

    def test_xor(self, coke):
        assert parse_where("name = 'coke' xor color = 'blue'")(coke)
        assert not parse_where("name = 'coke' xor color = 'red'")(coke)

    def test_store_lookup_resolves_relations(self):
        store = EntityStore()
        store.add_category("drinks", location="fridge", room="kitchen")
        store.add_object("coke", "drinks")
        coke = store.objects[0]
        assert parse_where("category = 'drinks'").evaluate(coke, store.get_property)
        assert parse_where("location = 'fridge'").evaluate(coke, store.get_property)
        assert not parse_where("category = 'snacks'").evaluate(coke, store.get_property)

    def test_gender(self):
        james = PersonName("James", Gender.MALE)
        assert parse_where("gender = 'male'")(james)
        assert parse_where("kind = 'name'")(james)

    def test_quote_literal_round_trip(self):
        person = PersonName('Dwayne "The Rock"', Gender.MALE)
        clause = parse_where("name = " + quote_literal(person.name))
        assert clause(person)

    def test_all_of_keeps_each_clause_grouped(self, coke):
        first = parse_where("type = 'alike'")
        second = parse_where("name = 'coke' or type = 'known'")
        assert not all_of([first, second])(coke)
        assert parse_where(first.text + " and " + second.text)(coke)
        assert all_of([second, parse_where("color = 'red'")])(coke)
        assert all_of([]) is None
