# tests/test_string_length.py
"""
Tests for the String-Length domain, including its register semantics.
"""

import pytest

from absstring_shims.errors import (
    DomainInvariantError,
    SerializationError,
    UnexpectedTopError,
)
from absstring_shims.ir import BinOpType, CastOpType, UnOpType
from absstring_shims.string_length import StringLengthDomain as SL


class TestMerge:

    def test_interval_hull(self):
        assert SL.value(2, 4).merge(SL.value(3, 9)) == SL.value(2, 9)

    def test_equal_values_pass_through(self):
        value = SL.value(3, 3)
        assert value.merge(SL.value(3, 3)) is value

    def test_top_keeps_its_width(self):
        assert SL.value(2, 4).merge(SL.new_top(8)) == SL.new_top(8)
        assert SL.new_top(8).merge(SL.value(2, 40)) == SL.new_top(8)

    def test_two_tops_keep_the_larger_width(self):
        assert SL.new_top(4).merge(SL.new_top(8)) == SL.new_top(8)
        assert SL.new_top(8).merge(SL.new_top(4)) == SL.new_top(8)


class TestValue:

    def test_from_string_counts_utf8_bytes(self):
        assert SL.from_string("abc") == SL.value(3, 3)
        assert SL.from_string("é") == SL.value(2, 2)

    def test_bytesize(self):
        assert SL.new_top(4).bytesize() == 4
        assert SL.value(1, 7).bytesize() == 7

    def test_top_uses_bytesize(self):
        assert SL.value(1, 7).top() == SL.new_top(7)
        assert SL.value(1, 7).top().is_top()

    def test_bounds_are_validated(self):
        with pytest.raises(DomainInvariantError):
            SL.value(5, 2)
        with pytest.raises(DomainInvariantError):
            SL.value(-1, 2)
        with pytest.raises(DomainInvariantError):
            SL.new_top(-1)

    def test_unwrap(self):
        assert SL.value(1, 2).unwrap_value() == (1, 2)
        with pytest.raises(UnexpectedTopError):
            SL.new_top(8).unwrap_value()


class TestRegisterSemantics:

    def test_piece_adds_lengths(self):
        assert SL.value(1, 2).bin_op(BinOpType.PIECE, SL.value(3, 5)) == SL.value(4, 7)

    def test_piece_with_top(self):
        assert SL.new_top(4).bin_op(BinOpType.PIECE, SL.value(3, 5)) == SL.new_top(9)

    def test_comparison_is_one_byte(self):
        assert SL.value(1, 2).bin_op(BinOpType.INT_EQUAL, SL.value(1, 2)) == SL.new_top(1)

    def test_arithmetic_keeps_width(self):
        assert SL.new_top(8).bin_op(BinOpType.INT_ADD, SL.new_top(8)) == SL.new_top(8)

    @pytest.mark.parametrize("op, width", [
        (UnOpType.INT_NEGATE, 8),
        (UnOpType.BOOL_NEGATE, 1),
        (UnOpType.FLOAT_NAN, 1),
    ])
    def test_un_op(self, op, width):
        assert SL.new_top(8).un_op(op) == SL.new_top(width)

    def test_subpiece_and_cast(self):
        assert SL.value(1, 8).subpiece(0, 4) == SL.new_top(4)
        assert SL.new_top(4).cast(CastOpType.INT_ZEXT, 8) == SL.new_top(8)


class TestTagged:

    def test_encoding(self):
        assert SL.new_top(8).to_tagged() == {"Top": 8}
        assert SL.value(1, 3).to_tagged() == {"Value": [1, 3]}

    def test_round_trip(self):
        for value in (SL.new_top(8), SL.value(0, 12)):
            assert SL.from_tagged(value.to_tagged()) == value

    @pytest.mark.parametrize("payload", ["Top", {"Value": [1]}, {"Top": "wide"}])
    def test_malformed(self, payload):
        with pytest.raises(SerializationError):
            SL.from_tagged(payload)
