# tests/test_bricks.py
"""
Tests for the Bricks domain: single bricks, the brick lattice, padding,
merging and the normalization fixpoint.
"""

import pytest

from absstring_shims.abstract_domains import Tag
from absstring_shims.bricks import Brick, BrickDomain, BricksDomain, bricks_of
from absstring_shims.errors import (
    BrickBoundsError,
    DomainInvariantError,
    SerializationError,
    UnexpectedTopError,
)
from tests.conftest import concretize, make_brick


# ── Shared bricks ────────────────────────────────────────────────

B0 = make_brick({"a", "b"}, 2, 2)
B1 = make_brick({"a", "cd"}, 0, 1)
B2 = make_brick({"ef"}, 1, 1)
B3 = make_brick({"a", "b"}, 2, 3)
B4 = make_brick({"a", "b"}, 0, 1)
B5 = make_brick({"a", "b"}, 1, 1)


def dom(brick):
    return BrickDomain.value(brick)


class TestBrick:

    def test_rejects_min_above_max(self):
        with pytest.raises(BrickBoundsError):
            Brick(frozenset({"a"}), 3, 2)

    def test_rejects_negative_min(self):
        with pytest.raises(BrickBoundsError):
            Brick(frozenset({"a"}), -1, 2)

    def test_sequence_is_coerced_to_frozenset(self):
        brick = Brick({"a", "b"}, 1, 1)
        assert isinstance(brick.sequence, frozenset)

    def test_empty_string(self):
        assert Brick.empty().is_empty_string()
        assert not B1.is_empty_string()
        assert not make_brick(set(), 0, 1).is_empty_string()

    def test_denotes_only_empty_string(self):
        assert Brick.empty().denotes_only_empty_string()
        assert make_brick({"x"}, 0, 0).denotes_only_empty_string()
        assert make_brick({""}, 1, 4).denotes_only_empty_string()
        assert make_brick(set(), 0, 3).denotes_only_empty_string()
        assert not make_brick(set(), 1, 1).denotes_only_empty_string()
        assert not B4.denotes_only_empty_string()

    def test_bound_one(self):
        left = make_brick({"a", "cd"}, 1, 1)
        right = make_brick({"b", "ef"}, 1, 1)
        merged = left.merge_bricks_with_bound_one(right)
        assert merged == make_brick({"ab", "aef", "cdb", "cdef"}, 1, 1)

    def test_merge_equal_content(self):
        assert B0.merge_bricks_with_equal_content(B4) == B3

    def test_merge_equal_content_of_singleton_and_optional(self):
        assert B5.merge_bricks_with_equal_content(B4) == make_brick({"a", "b"}, 1, 2)

    def test_transform_min_max_equal(self):
        assert B0.transform_brick_with_min_max_equal(2) == make_brick(
            {"aa", "ab", "ba", "bb"}, 1, 1
        )

    def test_breaking(self):
        first, second = B3.break_single_brick_into_simpler_bricks()
        assert first == make_brick({"aa", "ab", "ba", "bb"}, 1, 1)
        assert second == B4

    def test_breaking_single_character(self):
        first, second = make_brick({"a"}, 2, 5).break_single_brick_into_simpler_bricks()
        assert first == make_brick({"aa"}, 1, 1)
        assert second == make_brick({"a"}, 0, 3)


class TestPermutations:

    def test_length_two_over_three_elements(self):
        result = Brick.generate_permutations_of_fixed_length(2, ["a", "b", "c"])
        assert result == ["aa", "ba", "ca", "ab", "bb", "cb", "ac", "bc", "cc"]

    def test_multi_character_elements(self):
        result = Brick.generate_permutations_of_fixed_length(2, {"aa", "b"})
        assert set(result) == {"aaaa", "aab", "baa", "bb"}

    def test_length_zero_is_the_empty_string(self):
        assert Brick.generate_permutations_of_fixed_length(0, {"a"}) == [""]

    def test_empty_sequence(self):
        assert Brick.generate_permutations_of_fixed_length(3, set()) == []

    def test_large_bound_does_not_recurse(self):
        result = Brick.generate_permutations_of_fixed_length(5000, {"a"})
        assert result == ["a" * 5000]


class TestBrickDomain:

    def test_merging_brick_domain(self):
        merged = dom(B0).merge(dom(B4))
        assert merged == dom(make_brick({"a", "b"}, 0, 2))

    def test_merge_unions_sequences(self):
        merged = dom(B1).merge(dom(B2))
        assert merged == dom(make_brick({"a", "cd", "ef"}, 0, 1))

    def test_merge_with_top(self):
        top = BrickDomain.top_value()
        assert dom(B0).merge(top).is_top()
        assert top.merge(dom(B0)).is_top()

    def test_unwrap_top_raises(self):
        with pytest.raises(UnexpectedTopError):
            BrickDomain.top_value().unwrap_value()

    def test_value_without_brick_is_rejected(self):
        with pytest.raises(DomainInvariantError):
            BrickDomain(Tag.VALUE)

    def test_top_with_brick_is_rejected(self):
        with pytest.raises(DomainInvariantError):
            BrickDomain(Tag.TOP, B0)

    def test_empty_brick(self):
        assert BrickDomain.get_empty_brick().unwrap_value().is_empty_string()


class TestPadding:

    def test_padding_list(self):
        short = bricks_of(B0, B1, B2)
        long = bricks_of(B3, B0, B1, B4, B5)
        padded = short.pad_list(long)
        empty = BrickDomain.get_empty_brick()
        assert padded.unwrap_value() == (empty, dom(B0), dom(B1), empty, dom(B2))

    def test_padding_preserves_order_of_short_elements(self):
        short = bricks_of(B2, B1)
        long = bricks_of(B0, B3, B4, B5)
        padded = short.pad_list(long).unwrap_value()
        non_empty = [b for b in padded if not b.unwrap_value().is_empty_string()]
        assert non_empty == [dom(B2), dom(B1)]
        assert len(padded) == 4

    def test_padding_at_the_end_when_short_list_runs_out(self):
        padded = bricks_of(B0).pad_list(bricks_of(B0, B1)).unwrap_value()
        assert padded == (dom(B0), BrickDomain.get_empty_brick())

    def test_padding_longer_list_is_rejected(self):
        with pytest.raises(DomainInvariantError):
            bricks_of(B0, B1).pad_list(bricks_of(B0))


class TestBricksMerge:

    def test_merging_bricks_domain(self):
        merged = bricks_of(B0).merge(bricks_of(B0, B1))
        assert merged == bricks_of(B0, make_brick({"a", "cd"}, 0, 1))

    def test_merge_is_commutative_for_unequal_lengths(self):
        a = bricks_of(B0)
        b = bricks_of(B0, B1)
        assert a.merge(b) == b.merge(a)

    def test_merge_with_top(self):
        assert bricks_of(B0).merge(BricksDomain.top_value()).is_top()

    def test_from_string(self):
        value = BricksDomain.from_string("abc")
        assert value == bricks_of(make_brick({"abc"}, 1, 1))

    def test_merge_of_two_constants(self):
        merged = BricksDomain.from_string("ab").merge(BricksDomain.from_string("cd"))
        assert merged == bricks_of(make_brick({"ab", "cd"}, 1, 1))

    def test_merge_does_not_normalize(self):
        value = bricks_of(B0)
        assert value.merge(value) == value
        assert not value.is_normalized()


class TestNormalize:

    def test_normalizing(self):
        value = bricks_of(make_brick({"a"}, 1, 1), B3, B4)
        normalized = value.normalize()
        assert normalized == bricks_of(
            make_brick({"aaa", "aab", "aba", "abb"}, 1, 1),
            make_brick({"a", "b"}, 0, 2),
        )

    def test_drops_empty_bricks(self):
        value = bricks_of(Brick.empty(), B2, Brick.empty())
        assert value.normalize() == bricks_of(B2)

    def test_all_empty_bricks_normalize_to_empty_list(self):
        assert bricks_of(Brick.empty()).normalize() == BricksDomain.value([])

    def test_fuses_singletons(self):
        value = bricks_of(make_brick({"a", "cd"}, 1, 1), make_brick({"b", "ef"}, 1, 1))
        assert value.normalize() == bricks_of(
            make_brick({"ab", "aef", "cdb", "cdef"}, 1, 1)
        )

    def test_flattens_constant_repetition(self):
        assert bricks_of(B0).normalize() == bricks_of(
            make_brick({"aa", "ab", "ba", "bb"}, 1, 1)
        )

    def test_splits_unbounded_repetition(self):
        assert bricks_of(make_brick({"a"}, 2, 5)).normalize() == bricks_of(
            make_brick({"aa"}, 1, 1), make_brick({"a"}, 0, 3)
        )

    def test_singleton_followed_by_optional_of_same_set_terminates(self):
        value = bricks_of(B5, B4)
        assert value.normalize() == value

    def test_optional_followed_by_singleton_of_same_set(self):
        value = bricks_of(B4, B5)
        assert value.normalize() == bricks_of(B5, B4)

    def test_optionals_of_same_set_are_fused(self):
        assert bricks_of(B4, B4).normalize() == bricks_of(make_brick({"a", "b"}, 0, 2))

    def test_top_bricks_are_skipped(self):
        top = BrickDomain.top_value()
        value = BricksDomain.value([top, dom(B0)])
        assert value.normalize() == BricksDomain.value(
            [top, dom(make_brick({"aa", "ab", "ba", "bb"}, 1, 1))]
        )

    def test_top_normalizes_to_top(self):
        assert BricksDomain.top_value().normalize().is_top()

    @pytest.mark.parametrize("value", [
        bricks_of(make_brick({"a"}, 1, 1), B3, B4),
        bricks_of(B0, B1, B2),
        bricks_of(B3, B0, B1, B4, B5),
        bricks_of(B5, B4, B5, B4),
        bricks_of(make_brick({"", "x"}, 1, 3), make_brick({"", "x"}, 0, 1)),
        bricks_of(make_brick(set(), 2, 4), make_brick(set(), 0, 2)),
        bricks_of(make_brick({"ab"}, 3, 3), make_brick({"ab"}, 1, 2)),
    ])
    def test_idempotent_and_denotation_preserving(self, value):
        normalized = value.normalize()
        assert normalized.normalize() == normalized
        assert concretize(normalized) == concretize(value)


class TestTagged:

    def test_top_encoding(self):
        assert BricksDomain.top_value().to_tagged() == "Top"

    def test_value_encoding(self):
        assert bricks_of(B4).to_tagged() == {
            "Value": [{"Value": {"sequence": ["a", "b"], "min": 0, "max": 1}}]
        }

    def test_round_trip(self):
        value = BricksDomain.value([BrickDomain.top_value(), dom(B1)])
        assert BricksDomain.from_tagged(value.to_tagged()) == value

    def test_malformed_payload(self):
        with pytest.raises(SerializationError):
            BricksDomain.from_tagged({"Value": "abc"})
        with pytest.raises(SerializationError):
            BrickDomain.from_tagged({"Value": {"sequence": ["a"]}})

    def test_invalid_bounds_in_payload_are_a_defect(self):
        with pytest.raises(BrickBoundsError):
            BrickDomain.from_tagged({"Value": {"sequence": ["a"], "min": 2, "max": 1}})
