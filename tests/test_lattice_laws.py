# tests/test_lattice_laws.py
"""
Lattice laws every domain's ``merge`` must satisfy, checked over a sample
of values per domain.
"""

from itertools import combinations_with_replacement

import pytest

from absstring_shims.abstract_domains import merge_all
from absstring_shims.bricks import BrickDomain, BricksDomain, bricks_of
from absstring_shims.character_inclusion import CharacterInclusionDomain as CI
from absstring_shims.string_length import StringLengthDomain as SL
from tests.conftest import make_brick


SAMPLES = {
    "character_inclusion": [
        CI.top_value(),
        CI.from_string(""),
        CI.from_string("abc"),
        CI.from_string("dabc"),
        CI.value({"a"}, {"a", "z"}),
    ],
    "string_length": [
        SL.new_top(4),
        SL.new_top(8),
        SL.value(0, 0),
        SL.value(2, 4),
        SL.value(3, 9),
    ],
    "brick": [
        BrickDomain.top_value(),
        BrickDomain.get_empty_brick(),
        BrickDomain.value(make_brick({"a", "b"}, 2, 3)),
        BrickDomain.value(make_brick({"cd"}, 0, 1)),
    ],
    "bricks": [
        BricksDomain.top_value(),
        BricksDomain.value([]),
        BricksDomain.from_string("ab"),
        bricks_of(make_brick({"a", "b"}, 2, 2), make_brick({"a", "cd"}, 0, 1)),
        bricks_of(
            make_brick({"a", "b"}, 2, 3),
            make_brick({"a", "b"}, 2, 2),
            make_brick({"a", "cd"}, 0, 1),
        ),
        BricksDomain.value([BrickDomain.top_value()]),
    ],
}


def _pairs():
    for name, values in SAMPLES.items():
        for a, b in combinations_with_replacement(values, 2):
            yield pytest.param(a, b, id=f"{name}:{a!r}|{b!r}")


def _singles():
    for name, values in SAMPLES.items():
        for a in values:
            yield pytest.param(a, id=f"{name}:{a!r}")


class TestMergeLaws:

    @pytest.mark.parametrize("a, b", list(_pairs()))
    def test_commutative(self, a, b):
        assert a.merge(b) == b.merge(a)

    @pytest.mark.parametrize("a", list(_singles()))
    def test_idempotent(self, a):
        assert a.merge(a) == a

    @pytest.mark.parametrize("a", list(_singles()))
    def test_top_absorbs(self, a):
        top = a.top()
        assert top.is_top()
        assert a.merge(top) == top
        assert top.merge(a) == top


class TestMergeAll:

    def test_empty(self):
        assert merge_all([]) is None

    def test_folds_left_to_right(self):
        assert merge_all([SL.value(1, 1), SL.value(4, 5), SL.value(2, 2)]) == SL.value(1, 5)

    def test_single_value(self):
        value = CI.from_string("x")
        assert merge_all([value]) is value


class TestSerializationRoundTrip:

    @pytest.mark.parametrize("a", list(_singles()))
    def test_round_trip(self, a):
        assert type(a).from_tagged(a.to_tagged()) == a
