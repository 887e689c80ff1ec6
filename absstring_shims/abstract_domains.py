"""
absstring_shims/abstract_domains.py
═══════════════════════════════════

The vocabulary every abstract string domain implements.

    ┌─────────────────────────────────────────────────────────────┐
    │  AbstractDomain   merge / is_top                            │
    │    ├── HasTop          top()  (computed from self)          │
    │    ├── HasByteSize     bytesize()                           │
    │    ├── RegisterDomain  new_top / bin_op / un_op /           │
    │    │                   subpiece / cast                      │
    │    └── StringDomain    from_string / tagged serialization   │
    └─────────────────────────────────────────────────────────────┘

Lattice laws that MUST hold for ``merge``:

    1. a.merge(b) == b.merge(a)            (commutativity)
    2. a.merge(a) == a                     (idempotence)
    3. a.merge(a.top()) == a.top()         (⊤ absorbs)
    4. a ⊑ a.merge(b)  and  b ⊑ a.merge(b) (upper bound)

Top is *not* a global constant: a domain may need metadata to stay
consistent with the concrete value it approximates (for instance the byte
width of a register), so ``top()`` is an instance method.

Soundness contract for register semantics: an operator is either modeled
exactly or answered with ``new_top`` of the correct result width.  An
abstract value must never exclude a concrete outcome.

Structured serialization
------------------------
Every domain is a two-variant sum type, tagged ``Top`` or ``Value``:

    "Top"                 Top without payload
    {"Top": payload}      Top carrying metadata (e.g. a byte width)
    {"Value": payload}    a concrete abstraction
"""

from __future__ import annotations

import abc
import enum
import json
from functools import reduce
from typing import Any, Iterable, Optional, Tuple, Type, TypeVar

from absstring_shims.errors import SerializationError
from absstring_shims.ir import BinOpType, ByteSize, CastOpType, UnOpType


# ═══════════════════════════════════════════════════════════════════════════
#  PART 0 — TYPE VARIABLES AND TAGS
# ═══════════════════════════════════════════════════════════════════════════

D = TypeVar("D", bound="AbstractDomain")
S = TypeVar("S", bound="StringDomain")
R = TypeVar("R", bound="RegisterDomain")


class Tag(enum.Enum):
    """Variant tag shared by every domain."""
    TOP = "Top"
    VALUE = "Value"


_NO_PAYLOAD = object()


def encode_tagged(tag: Tag, payload: Any = _NO_PAYLOAD) -> Any:
    """Build the tagged encoding of one domain value."""
    if payload is _NO_PAYLOAD:
        return tag.value
    return {tag.value: payload}


def decode_tagged(domain: str, data: Any) -> Tuple[Tag, Any]:
    """Split a tagged encoding into ``(tag, payload)``.

    A unit ``"Top"`` decodes to ``(Tag.TOP, None)``.
    """
    if data == Tag.TOP.value:
        return Tag.TOP, None
    if isinstance(data, dict) and len(data) == 1:
        (key, payload), = data.items()
        try:
            return Tag(key), payload
        except ValueError:
            pass
    raise SerializationError(domain, data)


# ═══════════════════════════════════════════════════════════════════════════
#  PART 1 — CAPABILITY INTERFACES
# ═══════════════════════════════════════════════════════════════════════════

class AbstractDomain(abc.ABC):
    """A value approximating a set of concrete values, with a join."""

    @abc.abstractmethod
    def merge(self: D, other: D) -> D:
        """Least upper bound of ``self`` and ``other``."""

    @abc.abstractmethod
    def is_top(self) -> bool:
        """Is this the universal, maximally imprecise value?"""


class HasTop(abc.ABC):

    @abc.abstractmethod
    def top(self: D) -> D:
        """Top value of the same shape (metadata) as ``self``."""


class HasByteSize(abc.ABC):

    @abc.abstractmethod
    def bytesize(self) -> ByteSize:
        ...


class RegisterDomain(AbstractDomain, HasByteSize):
    """A domain whose values can live in fixed-width registers.

    Every method returns a value of the width the concrete operation would
    produce.  Implementations that cannot model an operation return
    ``new_top`` of that width.
    """

    @classmethod
    @abc.abstractmethod
    def new_top(cls: Type[R], bytesize: ByteSize) -> R:
        ...

    @abc.abstractmethod
    def bin_op(self: R, op: BinOpType, rhs: R) -> R:
        ...

    @abc.abstractmethod
    def un_op(self: R, op: UnOpType) -> R:
        ...

    @abc.abstractmethod
    def subpiece(self: R, low_byte: ByteSize, size: ByteSize) -> R:
        ...

    @abc.abstractmethod
    def cast(self: R, kind: CastOpType, width: ByteSize) -> R:
        ...


class StringDomain(AbstractDomain, HasTop):
    """A domain approximating string values.

    This is the bound on the value type of :class:`~absstring_shims.state.State`
    and of the analysis context.
    """

    domain_name: str = "StringDomain"

    @classmethod
    @abc.abstractmethod
    def from_string(cls: Type[S], value: str) -> S:
        """Abstraction of exactly one concrete string."""

    @abc.abstractmethod
    def to_tagged(self) -> Any:
        ...

    @classmethod
    @abc.abstractmethod
    def from_tagged(cls: Type[S], data: Any) -> S:
        ...

    def to_json(self) -> str:
        return json.dumps(self.to_tagged(), sort_keys=True)


# ═══════════════════════════════════════════════════════════════════════════
#  PART 2 — HELPERS
# ═══════════════════════════════════════════════════════════════════════════

def merge_all(values: Iterable[D]) -> Optional[D]:
    """Fold ``merge`` over ``values``; ``None`` for an empty iterable."""
    values = list(values)
    if not values:
        return None
    return reduce(lambda acc, v: acc.merge(v), values)


__all__ = [
    "Tag",
    "encode_tagged",
    "decode_tagged",
    "AbstractDomain",
    "HasTop",
    "HasByteSize",
    "RegisterDomain",
    "StringDomain",
    "merge_all",
]
