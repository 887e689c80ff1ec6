"""
absstring_shims/string_length.py
════════════════════════════════

String-Length domain: a closed interval ``[lower, upper]`` bounding the
byte length of a string.

    γ(Value(l, u)) = { s | l ≤ len(s) ≤ u }
    γ(Top(w))      = every string stored in ``w`` bytes of storage

Top carries a byte width because the domain also lives in registers,
where the storage size of a value is known even when its length is not.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Tuple

from absstring_shims.abstract_domains import (
    RegisterDomain,
    StringDomain,
    Tag,
    decode_tagged,
    encode_tagged,
)
from absstring_shims.errors import (
    DomainInvariantError,
    SerializationError,
    UnexpectedTopError,
)
from absstring_shims.ir import BinOpType, ByteSize, CastOpType, UnOpType


@dataclass(frozen=True)
class StringLengthDomain(StringDomain, RegisterDomain):
    """
    Representation:
        kind=Tag.TOP,   width           →  Top(width)
        kind=Tag.VALUE, lower, upper    →  [lower, upper]

    Examples
    --------
    >>> StringLengthDomain.value(2, 4).merge(StringLengthDomain.value(3, 9))
    StringLength([2, 9])
    >>> StringLengthDomain.value(2, 4).merge(StringLengthDomain.new_top(8))
    StringLength(⊤:8)
    """
    kind: Tag
    width: ByteSize = 0
    lower: int = 0
    upper: int = 0

    domain_name = "StringLengthDomain"

    def __post_init__(self) -> None:
        if self.kind is Tag.TOP:
            if self.width < 0:
                raise DomainInvariantError(f"negative byte width {self.width}")
        elif not 0 <= self.lower <= self.upper:
            raise DomainInvariantError(
                f"string length bounds must satisfy 0 <= lower <= upper, "
                f"got [{self.lower}, {self.upper}]"
            )

    # ---- Constructors ----------------------------------------------------

    @classmethod
    def value(cls, lower: int, upper: int) -> StringLengthDomain:
        return cls(Tag.VALUE, lower=lower, upper=upper)

    @classmethod
    def new_top(cls, bytesize: ByteSize) -> StringLengthDomain:
        return cls(Tag.TOP, width=bytesize)

    @classmethod
    def from_string(cls, value: str) -> StringLengthDomain:
        length = len(value.encode("utf-8"))
        return cls.value(length, length)

    # ---- Lattice operations ----------------------------------------------

    def merge(self, other: StringLengthDomain) -> StringLengthDomain:
        if self == other:
            return self
        if self.is_top() and other.is_top():
            return StringLengthDomain.new_top(max(self.width, other.width))
        if self.is_top():
            return self.top()
        if other.is_top():
            return other.top()
        return StringLengthDomain.value(
            min(self.lower, other.lower),
            max(self.upper, other.upper),
        )

    def is_top(self) -> bool:
        return self.kind is Tag.TOP

    def top(self) -> StringLengthDomain:
        return StringLengthDomain.new_top(self.bytesize())

    def bytesize(self) -> ByteSize:
        if self.is_top():
            return self.width
        # the largest storage size the interval allows
        return self.upper

    def unwrap_value(self) -> Tuple[int, int]:
        if self.is_top():
            raise UnexpectedTopError(self.domain_name)
        return self.lower, self.upper

    # ---- Register semantics ----------------------------------------------

    def bin_op(self, op: BinOpType, rhs: StringLengthDomain) -> StringLengthDomain:
        if op is BinOpType.PIECE:
            if self.is_top() or rhs.is_top():
                return StringLengthDomain.new_top(self.bytesize() + rhs.bytesize())
            # concatenation: lengths add up
            return StringLengthDomain.value(
                self.lower + rhs.lower, self.upper + rhs.upper
            )
        if op.yields_boolean:
            return StringLengthDomain.new_top(1)
        return StringLengthDomain.new_top(self.bytesize())

    def un_op(self, op: UnOpType) -> StringLengthDomain:
        if op in (UnOpType.BOOL_NEGATE, UnOpType.FLOAT_NAN):
            return StringLengthDomain.new_top(1)
        return StringLengthDomain.new_top(self.bytesize())

    def subpiece(self, low_byte: ByteSize, size: ByteSize) -> StringLengthDomain:
        return StringLengthDomain.new_top(size)

    def cast(self, kind: CastOpType, width: ByteSize) -> StringLengthDomain:
        return StringLengthDomain.new_top(width)

    # ---- Serialization ---------------------------------------------------

    def to_tagged(self) -> Any:
        if self.is_top():
            return encode_tagged(Tag.TOP, self.width)
        return encode_tagged(Tag.VALUE, [self.lower, self.upper])

    @classmethod
    def from_tagged(cls, data: Any) -> StringLengthDomain:
        tag, payload = decode_tagged(cls.domain_name, data)
        try:
            if tag is Tag.TOP:
                return cls.new_top(int(payload))
            lower, upper = payload
            return cls.value(int(lower), int(upper))
        except (TypeError, ValueError) as exc:
            raise SerializationError(cls.domain_name, data) from exc

    def __repr__(self) -> str:
        if self.is_top():
            return f"StringLength(⊤:{self.width})"
        return f"StringLength([{self.lower}, {self.upper}])"


__all__ = ["StringLengthDomain"]
