# tests/test_character_inclusion.py
"""
Tests for the Character-Inclusion domain.
"""

import pytest

from absstring_shims.abstract_domains import Tag
from absstring_shims.character_inclusion import CharacterInclusionDomain as CI
from absstring_shims.errors import (
    DomainInvariantError,
    SerializationError,
    UnexpectedTopError,
)


class TestMerge:

    def test_disjoint_strings(self):
        merged = CI.from_string("abc").merge(CI.from_string("def"))
        certain, possible = merged.unwrap_value()
        assert certain == frozenset()
        assert possible == frozenset("abcdef")

    def test_shared_character_stays_certain(self):
        merged = CI.from_string("dabc").merge(CI.from_string("def"))
        certain, possible = merged.unwrap_value()
        assert certain == frozenset("d")
        assert possible == frozenset("abcdef")

    def test_top_absorbs(self):
        assert CI.from_string("abc").merge(CI.top_value()).is_top()
        assert CI.top_value().merge(CI.from_string("abc")).is_top()

    def test_idempotent(self):
        value = CI.value({"a"}, {"a", "b"})
        assert value.merge(value) == value


class TestValue:

    def test_from_string(self):
        value = CI.from_string("hello")
        assert value.unwrap_value() == (frozenset("helo"), frozenset("helo"))

    def test_empty_string(self):
        assert CI.from_string("").unwrap_value() == (frozenset(), frozenset())

    def test_certain_must_be_possible(self):
        with pytest.raises(DomainInvariantError):
            CI.value({"a", "z"}, {"a"})

    def test_top_carries_no_sets(self):
        with pytest.raises(DomainInvariantError):
            CI(Tag.TOP, frozenset("a"), frozenset("a"))

    def test_top_is_unconditional(self):
        assert CI.from_string("abc").top() == CI.top_value()

    def test_unwrap_top_raises(self):
        with pytest.raises(UnexpectedTopError) as excinfo:
            CI.top_value().unwrap_value()
        assert "CharacterInclusionDomain" in str(excinfo.value)

    def test_queries(self):
        value = CI.value({"a"}, {"a", "b"})
        assert value.contains_certainly("a")
        assert not value.contains_certainly("b")
        assert value.may_contain("b")
        assert not value.may_contain("c")
        assert CI.top_value().may_contain("c")
        assert not CI.top_value().contains_certainly("c")


class TestTagged:

    def test_encoding(self):
        assert CI.value({"b"}, {"a", "b"}).to_tagged() == {"Value": [["b"], ["a", "b"]]}
        assert CI.top_value().to_tagged() == "Top"

    def test_round_trip(self):
        value = CI.value({"x"}, {"x", "y"})
        assert CI.from_tagged(value.to_tagged()) == value
        assert CI.from_tagged("Top") == CI.top_value()

    def test_json(self):
        assert CI.from_string("ba").to_json() == '{"Value": [["a", "b"], ["a", "b"]]}'

    @pytest.mark.parametrize("payload", [
        {"Value": "abc"},
        {"Value": [["a"]]},
        {"Bottom": []},
        42,
    ])
    def test_malformed(self, payload):
        with pytest.raises(SerializationError):
            CI.from_tagged(payload)
