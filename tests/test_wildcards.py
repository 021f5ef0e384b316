"""
Tests for wildcard scanning and identity grouping.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from cmdgen.errors import WildcardSyntaxError
from cmdgen.wildcard_utils import (
    KeycodeCounter,
    find_references,
    find_wildcards,
    group_wildcards,
    make_keycode,
)


def scan(text, counter=None):
    return find_wildcards(text, counter or KeycodeCounter())


class TestScanning:
    def test_plain_wildcard(self):
        top, occurrences = scan("go to the {room}.")
        (w,) = top
        assert occurrences == top
        assert w.name == "room"
        assert not w.obfuscated
        assert w.subtype is None
        assert w.id == 1000
        assert w.keycode == "room1000"
        assert (w.start, w.end, w.value) == (10, 16, "{room}")

    def test_all_fields(self):
        (w,), _ = scan("{location? placement 2}")
        assert w.name == "location"
        assert w.obfuscated
        assert w.subtype == "placement"
        assert w.keycode == "location0002"

    def test_reserved_words_are_not_subtypes(self):
        (w,), _ = scan("{question meta: ask politely}")
        assert w.subtype is None
        assert w.metadata == "ask politely"
        (w,), _ = scan("{object where type = 'known'}")
        assert w.subtype is None
        assert w.where == "type = 'known'"

    def test_where_stops_at_meta(self):
        (w,), _ = scan("{object 3 where color = 'red' meta: it is shiny}")
        assert w.where == "color = 'red'"
        assert w.metadata == "it is shiny"

    def test_meta_inside_quotes_belongs_to_where(self):
        (w,), _ = scan("{object where note = 'meta: x'}")
        assert w.where == "note = 'meta: x'"
        assert w.metadata is None

    def test_nested_wildcard_in_where(self):
        top, occurrences = scan("take the {object 1 where category = {category 1}} away")
        (w,) = top
        assert w.where == "category = <<category0001>>"
        assert [o.keycode for o in occurrences] == ["object0001", "category0001"]
        assert occurrences[1].nested
        assert w.value == "{object 1 where category = {category 1}}"

    def test_apostrophe_in_nested_meta(self):
        top, occurrences = scan("take the {object where category = {category 1 meta: don't drop it}} now")
        (w,) = top
        assert w.keycode == "object1000"
        assert w.where == "category = <<category0001>>"
        assert [o.keycode for o in occurrences] == ["object1000", "category0001"]
        assert occurrences[1].metadata == "don't drop it"

    def test_nested_wildcard_in_meta(self):
        (w,), occurrences = scan("{question meta: ask {name 1} about it}")
        assert w.metadata == "ask <<name0001>> about it"
        assert occurrences[1].keycode == "name0001"

    def test_meta_escapes(self):
        (w,), occurrences = scan(r"{void meta: use \{braces\} and \\ here}")
        assert w.metadata == "use {braces} and \\ here"
        assert len(occurrences) == 1

    def test_trailing_text_is_ignored(self):
        (w,), _ = scan("{object 1 junk}")
        assert w.keycode == "object0001"
        assert w.where is None

    def test_unknown_names_are_still_scanned(self):
        (w,), _ = scan("{foo}")
        assert not w.is_known
        assert scan("{object}")[0][0].is_known

    @pytest.mark.parametrize("text", [
        "bring {object to me",
        "{ }",
        "{1}",
        "{Object}",
        "{object where name = 'x'",
    ])
    def test_malformed_markers_are_literal(self, text):
        top, occurrences = scan(text)
        assert top == []
        assert occurrences == []

    def test_scan_resumes_after_malformed_marker(self):
        top, _ = scan("{ } then {room}")
        assert [w.value for w in top] == ["{room}"]

    def test_reserved_explicit_id(self):
        with pytest.raises(WildcardSyntaxError):
            scan("{object 1000}")
        (w,), _ = scan("{object 999}")
        assert w.keycode == "object0999"

    def test_overlong_explicit_id(self):
        with pytest.raises(WildcardSyntaxError):
            scan("{object 123456}")

    def test_counter_is_shared_between_scans(self):
        counter = KeycodeCounter()
        first, _ = scan("{object} {object}", counter)
        second, _ = scan("{object}", counter)
        assert [w.id for w in first + second] == [1000, 1001, 1002]


class TestHelpers:
    def test_make_keycode(self):
        assert make_keycode("object", 7) == "object0007"
        assert make_keycode("name", 1234) == "name1234"

    def test_find_references(self):
        assert find_references("a <<name0001>> b <<room1000>>") == ["name0001", "room1000"]
        assert find_references(None) == []


class TestGrouping:
    def test_same_keycode_same_group(self):
        _, occurrences = scan("{object 1} and {object 1} and {object}")
        groups = group_wildcards(occurrences)
        assert list(groups) == ["object0001", "object1000"]
        assert len(groups["object0001"]) == 2

    def test_different_names_never_group(self):
        _, occurrences = scan("{object 1} {name 1}")
        assert len(group_wildcards(occurrences)) == 2

    def test_subtype_majority(self):
        _, occurrences = scan("{location placement 1} {location 1} {location beacon 1} {location beacon 1}")
        assert group_wildcards(occurrences)["location0001"].subtype == "beacon"

    def test_subtype_tie_goes_to_first(self):
        _, occurrences = scan("{location placement 1} {location beacon 1}")
        assert group_wildcards(occurrences)["location0001"].subtype == "placement"

    def test_where_clauses_are_combined(self):
        _, occurrences = scan("{object 1 where a = 1} {object 1} {object 1 where b = {name 2}}")
        group = group_wildcards(occurrences)["object0001"]
        assert group.where == "a = 1 and b = <<name0002>>"
        assert group.references == ["name0002"]

    def test_member_clauses_are_kept_apart(self):
        _, occurrences = scan("{object 1 where a = 1 or b = 2} {object 1} {object 1 where c = 3}")
        group = group_wildcards(occurrences)["object0001"]
        assert group.clauses == ["a = 1 or b = 2", "c = 3"]
