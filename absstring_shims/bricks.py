"""
absstring_shims/bricks.py
═════════════════════════

The Bricks domain: a string is an ordered concatenation of *bricks*, each
brick ``[S]^{min,max}`` standing for between ``min`` and ``max`` strings of
the finite set ``S``, concatenated in any order and with repetition.

    [{"mo", "de"}]^{1,2}   →  {mo, de, momo, dede, mode, demo}

    BrickDomain   = ⊤ | Value(Brick)
    BricksDomain  = ⊤ | Value([BrickDomain, …])      (left-to-right concatenation)

Normal form
-----------
The same string set has many brick representations, e.g.
``[{abc}]^{1,1} ≡ [{a}]^{1,1}[{b}]^{1,1}[{c}]^{1,1}``.  ``normalize()`` is
a fixpoint over five rewriting rules.  Each round scans the list left to
right and applies the *first* rule that matches, then restarts:

    1. remove bricks denoting only the empty string, e.g. [{}]^{0,0}
    2. fuse two successive [·]^{1,1} bricks into the cartesian concatenation
           [{a,cd}]^{1,1}[{b,ef}]^{1,1}  →  [{ab,aef,cdb,cdef}]^{1,1}
    3. flatten a constant repetition min = max > 1
           [{a,b}]^{2,2}  →  [{aa,ab,ba,bb}]^{1,1}
    4. fuse two successive bricks over the same set
           [S]^{m1,M1}[S]^{m2,M2}  →  [S]^{m1+m2,M1+M2}
    5. split a brick with min ≥ 1 and max > min
           [S]^{min,max}  →  [S^min]^{1,1}[S]^{0,max-min}

Rule 5 splits ``[S]^{1,1+d}`` into exactly ``[S]^{1,1}[S]^{0,d}``, which
rule 4 would fuse again.  Rule 4 therefore does not fire on a pair that is
already the rule-5 split of its own fusion.  With that, every round either
shortens the list, lowers a repetition bound, or moves a ``[S]^{1,1}``
brick left of a ``[S]^{0,d}`` brick, so the fixpoint is reached after
finitely many rounds.

Normalization can blow up candidate sets combinatorially, so ``merge`` does
not normalize.  Callers decide when to pay for it (after a merge).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, FrozenSet, Iterable, List, Optional, Tuple

from absstring_shims.abstract_domains import (
    AbstractDomain,
    HasTop,
    StringDomain,
    Tag,
    decode_tagged,
    encode_tagged,
)
from absstring_shims.errors import (
    BrickBoundsError,
    DomainInvariantError,
    SerializationError,
    UnexpectedTopError,
)


# ═══════════════════════════════════════════════════════════════════════════
#  PART 1 — A SINGLE BRICK
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Brick:
    """A set of candidate strings with a repetition bound ``[min, max]``."""
    sequence: FrozenSet[str]
    min_count: int
    max_count: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "sequence", frozenset(self.sequence))
        if not 0 <= self.min_count <= self.max_count:
            raise BrickBoundsError(self.min_count, self.max_count)

    @classmethod
    def empty(cls) -> Brick:
        """``[{}]^{0,0}``, the brick of the empty string."""
        return cls(frozenset(), 0, 0)

    @property
    def bounds(self) -> Tuple[int, int]:
        return self.min_count, self.max_count

    def is_empty_string(self) -> bool:
        return not self.sequence and self.min_count == 0 and self.max_count == 0

    def denotes_only_empty_string(self) -> bool:
        """True when every concretisation of the brick is ``""``."""
        if self.max_count == 0 or self.sequence == frozenset({""}):
            return True
        return not self.sequence and self.min_count == 0

    # ---- Rewriting steps used by normalization ---------------------------

    def merge_bricks_with_bound_one(self, other: Brick) -> Brick:
        """Rule 2: ``[S1]^{1,1}[S2]^{1,1}`` → ``[S1·S2]^{1,1}``."""
        sequence = frozenset(
            left + right for left in self.sequence for right in other.sequence
        )
        return Brick(sequence, 1, 1)

    def transform_brick_with_min_max_equal(self, length: int) -> Brick:
        """Rule 3: all concatenations of exactly ``length`` elements."""
        permutations = self.generate_permutations_of_fixed_length(
            length, self.sequence
        )
        return Brick(frozenset(permutations), 1, 1)

    def merge_bricks_with_equal_content(self, other: Brick) -> Brick:
        """Rule 4: ``[S]^{m1,M1}[S]^{m2,M2}`` → ``[S]^{m1+m2,M1+M2}``."""
        return Brick(
            self.sequence,
            self.min_count + other.min_count,
            self.max_count + other.max_count,
        )

    def break_single_brick_into_simpler_bricks(self) -> Tuple[Brick, Brick]:
        """Rule 5: ``[S]^{min,max}`` → ``[S^min]^{1,1}[S]^{0,max-min}``."""
        first = self.transform_brick_with_min_max_equal(self.min_count)
        second = Brick(self.sequence, 0, self.max_count - self.min_count)
        return first, second

    @staticmethod
    def generate_permutations_of_fixed_length(
        length: int, sequence: Iterable[str]
    ) -> List[str]:
        """Every concatenation of exactly ``length`` elements of ``sequence``.

        Built level by level instead of recursively, so large repetition
        bounds cannot exhaust the interpreter stack.  Each level appends one
        more element to every string generated so far.
        """
        elements = sorted(set(sequence))
        generated = [""]
        for _ in range(length):
            generated = [prefix + s for s in elements for prefix in generated]
        return generated

    def __repr__(self) -> str:
        strings = ", ".join(repr(s) for s in sorted(self.sequence))
        return f"[{{{strings}}}]^{{{self.min_count},{self.max_count}}}"


# ═══════════════════════════════════════════════════════════════════════════
#  PART 2 — BRICK DOMAIN  (⊤ | Brick)
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class BrickDomain(AbstractDomain, HasTop):
    """
    One position of a bricks list.

    ⊤ stands for any string over the allowed alphabet, repeated between
    zero and infinitely many times.
    """
    kind: Tag
    brick: Optional[Brick] = None

    domain_name = "BrickDomain"

    def __post_init__(self) -> None:
        if (self.kind is Tag.VALUE) != (self.brick is not None):
            raise DomainInvariantError(
                f"BrickDomain {self.kind.value} must "
                f"{'' if self.kind is Tag.VALUE else 'not '}carry a brick"
            )

    @classmethod
    def value(cls, brick: Brick) -> BrickDomain:
        return cls(Tag.VALUE, brick)

    @classmethod
    def top_value(cls) -> BrickDomain:
        return cls(Tag.TOP)

    @classmethod
    def get_empty_brick(cls) -> BrickDomain:
        return cls(Tag.VALUE, Brick.empty())

    def merge(self, other: BrickDomain) -> BrickDomain:
        """Union of the string sets, min of the mins, max of the maxes."""
        if self.is_top() or other.is_top():
            return BrickDomain.top_value()
        mine, theirs = self.unwrap_value(), other.unwrap_value()
        return BrickDomain.value(Brick(
            mine.sequence | theirs.sequence,
            min(mine.min_count, theirs.min_count),
            max(mine.max_count, theirs.max_count),
        ))

    def is_top(self) -> bool:
        return self.kind is Tag.TOP

    def top(self) -> BrickDomain:
        return BrickDomain.top_value()

    def unwrap_value(self) -> Brick:
        if self.brick is None:
            raise UnexpectedTopError(self.domain_name)
        return self.brick

    def to_tagged(self) -> Any:
        if self.brick is None:
            return encode_tagged(Tag.TOP)
        return encode_tagged(Tag.VALUE, {
            "sequence": sorted(self.brick.sequence),
            "min": self.brick.min_count,
            "max": self.brick.max_count,
        })

    @classmethod
    def from_tagged(cls, data: Any) -> BrickDomain:
        tag, payload = decode_tagged(cls.domain_name, data)
        if tag is Tag.TOP:
            return cls.top_value()
        try:
            brick = Brick(
                frozenset(payload["sequence"]),
                int(payload["min"]),
                int(payload["max"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise SerializationError(cls.domain_name, data) from exc
        return cls.value(brick)

    def __repr__(self) -> str:
        return "Brick(⊤)" if self.brick is None else repr(self.brick)


# ═══════════════════════════════════════════════════════════════════════════
#  PART 3 — BRICKS DOMAIN  (⊤ | [BrickDomain, …])
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class BricksDomain(StringDomain):
    """
    Examples
    --------
    >>> a = BricksDomain.from_string("ab")
    >>> a.merge(BricksDomain.from_string("cd"))
    Bricks([{'ab', 'cd'}]^{1,1})
    """
    kind: Tag
    bricks: Tuple[BrickDomain, ...] = field(default_factory=tuple)

    domain_name = "BricksDomain"

    def __post_init__(self) -> None:
        object.__setattr__(self, "bricks", tuple(self.bricks))
        if self.kind is Tag.TOP and self.bricks:
            raise DomainInvariantError("BricksDomain Top carries no bricks")

    # ---- Constructors ----------------------------------------------------

    @classmethod
    def value(cls, bricks: Iterable[BrickDomain]) -> BricksDomain:
        return cls(Tag.VALUE, tuple(bricks))

    @classmethod
    def top_value(cls) -> BricksDomain:
        return cls(Tag.TOP)

    @classmethod
    def from_string(cls, value: str) -> BricksDomain:
        return cls.value([BrickDomain.value(Brick(frozenset({value}), 1, 1))])

    # ---- Lattice operations ----------------------------------------------

    def merge(self, other: BricksDomain) -> BricksDomain:
        if self.is_top() or other.is_top():
            return BricksDomain.top_value()
        mine, theirs = self, other
        if len(self.bricks) < len(other.bricks):
            mine = self.pad_list(other)
        elif len(other.bricks) < len(self.bricks):
            theirs = other.pad_list(self)
        return BricksDomain.value(
            left.merge(right) for left, right in zip(mine.bricks, theirs.bricks)
        )

    def is_top(self) -> bool:
        return self.kind is Tag.TOP

    def top(self) -> BricksDomain:
        return BricksDomain.top_value()

    def unwrap_value(self) -> Tuple[BrickDomain, ...]:
        if self.is_top():
            raise UnexpectedTopError(self.domain_name)
        return self.bricks

    def pad_list(self, other: BricksDomain) -> BricksDomain:
        """Pad ``self`` with empty-string bricks to the length of ``other``.

        Walks ``other``; the next brick of ``self`` is placed at the current
        index if it equals ``other``'s brick there, or if no more padding is
        allowed.  Otherwise an empty-string brick is placed and the same
        brick of ``self`` is tried again at the next index.
        """
        short_list = self.unwrap_value()
        long_list = other.unwrap_value()
        len_diff = len(long_list) - len(short_list)
        if len_diff < 0:
            raise DomainInvariantError("pad_list called on the longer list")

        padded: List[BrickDomain] = []
        empty_bricks_added = 0
        next_short = 0
        for long_brick in long_list:
            if empty_bricks_added >= len_diff:
                padded.append(short_list[next_short])
                next_short += 1
            elif (
                next_short >= len(short_list)
                or short_list[next_short] != long_brick
            ):
                padded.append(BrickDomain.get_empty_brick())
                empty_bricks_added += 1
            else:
                padded.append(short_list[next_short])
                next_short += 1
        return BricksDomain.value(padded)

    # ---- Normalization ---------------------------------------------------

    def normalize(self) -> BricksDomain:
        """Rewrite into normal form; see the module docstring for the rules."""
        if self.is_top():
            return self
        bricks = list(self.bricks)
        while _apply_first_rule(bricks):
            pass
        return BricksDomain.value(bricks)

    def is_normalized(self) -> bool:
        return self.is_top() or self.normalize() == self

    # ---- Serialization ---------------------------------------------------

    def to_tagged(self) -> Any:
        if self.is_top():
            return encode_tagged(Tag.TOP)
        return encode_tagged(Tag.VALUE, [b.to_tagged() for b in self.bricks])

    @classmethod
    def from_tagged(cls, data: Any) -> BricksDomain:
        tag, payload = decode_tagged(cls.domain_name, data)
        if tag is Tag.TOP:
            return cls.top_value()
        if not isinstance(payload, list):
            raise SerializationError(cls.domain_name, data)
        return cls.value(BrickDomain.from_tagged(item) for item in payload)

    def __repr__(self) -> str:
        if self.is_top():
            return "Bricks(⊤)"
        return f"Bricks({''.join(repr(b) for b in self.bricks)})"


def _apply_first_rule(bricks: List[BrickDomain]) -> bool:
    """Apply the first matching rewriting rule to ``bricks`` in place.

    Returns whether a rule fired.  ⊤ bricks are never rewritten.
    """
    for index, brick_domain in enumerate(bricks):
        if brick_domain.is_top():
            continue
        current = brick_domain.unwrap_value()

        # rule 1
        if current.denotes_only_empty_string():
            del bricks[index]
            return True

        # rule 3
        if current.min_count == current.max_count and current.min_count > 1:
            bricks[index] = BrickDomain.value(
                current.transform_brick_with_min_max_equal(current.min_count)
            )
            return True

        # rule 5
        if current.min_count >= 1 and current.max_count > current.min_count:
            first, second = current.break_single_brick_into_simpler_bricks()
            bricks[index:index + 1] = [
                BrickDomain.value(first),
                BrickDomain.value(second),
            ]
            return True

        if index + 1 >= len(bricks) or bricks[index + 1].is_top():
            continue
        following = bricks[index + 1].unwrap_value()

        # rule 2
        if current.bounds == (1, 1) and following.bounds == (1, 1):
            bricks[index:index + 2] = [
                BrickDomain.value(current.merge_bricks_with_bound_one(following))
            ]
            return True

        # rule 4
        if current.sequence == following.sequence and not _is_split_of_fusion(
            current, following
        ):
            bricks[index:index + 2] = [
                BrickDomain.value(current.merge_bricks_with_equal_content(following))
            ]
            return True
    return False


def _is_split_of_fusion(current: Brick, following: Brick) -> bool:
    fused = current.merge_bricks_with_equal_content(following)
    if fused.min_count < 1 or fused.max_count <= fused.min_count:
        return False
    return fused.break_single_brick_into_simpler_bricks() == (current, following)


def bricks_of(*bricks: Brick) -> BricksDomain:
    """Shorthand for a ``BricksDomain`` value over plain bricks."""
    return BricksDomain.value(BrickDomain.value(b) for b in bricks)


__all__ = [
    "Brick",
    "BrickDomain",
    "BricksDomain",
    "bricks_of",
]
