"""
absstring_shims/character_inclusion.py
══════════════════════════════════════

Character-Inclusion domain: which characters a string certainly contains
and which it may contain.

    γ(Value(C, P)) = { s | C ⊆ chars(s) ⊆ P }
    γ(⊤)           = every string            (C = ∅, P = alphabet)

Merging intersects the certain sets (a character is certain only if it is
present on *every* path) and unites the possible sets (it is possible if
present on *any* path).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import AbstractSet, Any, FrozenSet, Tuple

from absstring_shims.abstract_domains import (
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


@dataclass(frozen=True)
class CharacterInclusionDomain(StringDomain):
    """
    Representation:
        kind=Tag.TOP                       →  ⊤
        kind=Tag.VALUE, certain, possible  →  the pair (C, P), C ⊆ P

    Examples
    --------
    >>> a = CharacterInclusionDomain.from_string("dabc")
    >>> b = CharacterInclusionDomain.from_string("def")
    >>> a.merge(b).unwrap_value()[0]
    frozenset({'d'})
    """
    kind: Tag
    certain: FrozenSet[str] = field(default_factory=frozenset)
    possible: FrozenSet[str] = field(default_factory=frozenset)

    domain_name = "CharacterInclusionDomain"

    def __post_init__(self) -> None:
        object.__setattr__(self, "certain", frozenset(self.certain))
        object.__setattr__(self, "possible", frozenset(self.possible))
        if self.kind is Tag.TOP:
            if self.certain or self.possible:
                raise DomainInvariantError(
                    "CharacterInclusionDomain Top carries no character sets"
                )
        elif not self.certain <= self.possible:
            raise DomainInvariantError(
                "certainly contained characters must also be possibly contained: "
                f"{sorted(self.certain - self.possible)} missing from the possible set"
            )

    # ---- Constructors ----------------------------------------------------

    @classmethod
    def value(
        cls, certain: AbstractSet[str], possible: AbstractSet[str]
    ) -> CharacterInclusionDomain:
        return cls(Tag.VALUE, frozenset(certain), frozenset(possible))

    @classmethod
    def top_value(cls) -> CharacterInclusionDomain:
        return cls(Tag.TOP)

    @classmethod
    def from_string(cls, value: str) -> CharacterInclusionDomain:
        chars = frozenset(value)
        return cls(Tag.VALUE, chars, chars)

    # ---- Lattice operations ----------------------------------------------

    def merge(self, other: CharacterInclusionDomain) -> CharacterInclusionDomain:
        if self.is_top() or other.is_top():
            return CharacterInclusionDomain.top_value()
        return CharacterInclusionDomain(
            Tag.VALUE,
            self.certain & other.certain,
            self.possible | other.possible,
        )

    def is_top(self) -> bool:
        return self.kind is Tag.TOP

    def top(self) -> CharacterInclusionDomain:
        return CharacterInclusionDomain.top_value()

    def unwrap_value(self) -> Tuple[FrozenSet[str], FrozenSet[str]]:
        """Return ``(certain, possible)``; raises on Top."""
        if self.is_top():
            raise UnexpectedTopError(self.domain_name)
        return self.certain, self.possible

    # ---- Queries ---------------------------------------------------------

    def contains_certainly(self, char: str) -> bool:
        return not self.is_top() and char in self.certain

    def may_contain(self, char: str) -> bool:
        return self.is_top() or char in self.possible

    # ---- Serialization ---------------------------------------------------

    def to_tagged(self) -> Any:
        if self.is_top():
            return encode_tagged(Tag.TOP)
        return encode_tagged(Tag.VALUE, [sorted(self.certain), sorted(self.possible)])

    @classmethod
    def from_tagged(cls, data: Any) -> CharacterInclusionDomain:
        tag, payload = decode_tagged(cls.domain_name, data)
        if tag is Tag.TOP:
            return cls.top_value()
        try:
            certain, possible = payload
        except (TypeError, ValueError) as exc:
            raise SerializationError(cls.domain_name, data) from exc
        return cls.value(frozenset(certain), frozenset(possible))

    def __repr__(self) -> str:
        if self.is_top():
            return "CharInclusion(⊤)"
        certain = "".join(sorted(self.certain))
        possible = "".join(sorted(self.possible))
        return f"CharInclusion(certain={{{certain}}}, possible={{{possible}}})"


__all__ = ["CharacterInclusionDomain"]
