"""
absstring_shims/state.py
════════════════════════

Per-program-point abstract state, generic over the string domain ``T``.

    State[T]
      ├── registers : Variable            → T    strings held in registers
      └── pointers  : (Variable, offset)  → T    strings in memory, addressed
                                                  relative to a base register

A key that is absent means "not known to hold a string".  Merging two states
therefore keeps only the keys tracked on *both* incoming paths; a string
seen on one path only cannot be vouched for after the join.

States are mutable, but the analysis never shares one between two program
points: every hand-off goes through :meth:`State.copy`.  Domain values are
immutable, so the copy is shallow.
"""

from __future__ import annotations

import json
from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    Iterable,
    Iterator,
    List,
    Optional,
    Tuple,
    TypeVar,
)

from absstring_shims.abstract_domains import StringDomain
from absstring_shims.ir import Variable

T = TypeVar("T", bound=StringDomain)
U = TypeVar("U", bound=StringDomain)

Cell = Tuple[Variable, int]
"""A memory cell: base register and byte offset."""


class State(Generic[T]):
    """Registers and memory cells known to hold strings."""

    __slots__ = ("registers", "pointers")

    def __init__(
        self,
        registers: Optional[Dict[Variable, T]] = None,
        pointers: Optional[Dict[Cell, T]] = None,
    ) -> None:
        self.registers: Dict[Variable, T] = dict(registers or {})
        self.pointers: Dict[Cell, T] = dict(pointers or {})

    @classmethod
    def new(cls) -> State[T]:
        """The state tracking nothing."""
        return cls()

    def copy(self) -> State[T]:
        return State(self.registers, self.pointers)

    # ---- Lattice ---------------------------------------------------------

    def merge(self, other: State[T]) -> State[T]:
        return State(
            _merge_maps(self.registers, other.registers),
            _merge_maps(self.pointers, other.pointers),
        )

    def is_top(self) -> bool:
        """A state is ⊤ when it tracks nothing.

        With "absent = not known to hold a string", the empty state is the
        least informative one, and ``merge`` with it yields it again.  A
        program point that has not been reached yet has *no* state at all
        (``None`` in the solver), which is what acts as the identity.
        """
        return not self.registers and not self.pointers

    # ---- Registers -------------------------------------------------------

    def get_register(self, var: Variable) -> Optional[T]:
        return self.registers.get(var)

    def set_register(self, var: Variable, value: T) -> None:
        self.registers[var] = value

    def remove_register(self, var: Variable) -> None:
        self.registers.pop(var, None)

    def remove_registers(self, variables: Iterable[Variable]) -> None:
        for var in variables:
            self.registers.pop(var, None)

    # ---- Memory cells ----------------------------------------------------

    def get_pointer(self, base: Variable, offset: int = 0) -> Optional[T]:
        return self.pointers.get((base, offset))

    def set_pointer(self, base: Variable, offset: int, value: T) -> None:
        self.pointers[(base, offset)] = value

    def remove_pointer(self, base: Variable, offset: int = 0) -> None:
        self.pointers.pop((base, offset), None)

    def pointers_with_base(self, base: Variable) -> Dict[int, T]:
        """All cells addressed relative to ``base``, keyed by offset."""
        return {
            offset: value
            for (cell_base, offset), value in self.pointers.items()
            if cell_base == base
        }

    def remove_pointers_with_base(self, base: Variable) -> None:
        for key in [key for key in self.pointers if key[0] == base]:
            del self.pointers[key]

    def copy_pointers(self, src: Variable, dst: Variable, delta: int = 0) -> None:
        """Re-address every cell based at ``src`` to ``dst`` at ``offset + delta``.

        Cells previously based at ``dst`` are dropped first, since ``dst``
        now points somewhere else.
        """
        moved = self.pointers_with_base(src)
        self.remove_pointers_with_base(dst)
        for offset, value in moved.items():
            self.pointers[(dst, offset + delta)] = value

    def forget(self, var: Variable) -> None:
        """Stop tracking ``var`` as a register and as a pointer base."""
        self.remove_register(var)
        self.remove_pointers_with_base(var)

    # ---- Whole-state helpers ---------------------------------------------

    def map_values(self, fn: Callable[[T], U]) -> State[U]:
        return State(
            {var: fn(value) for var, value in self.registers.items()},
            {cell: fn(value) for cell, value in self.pointers.items()},
        )

    def tracked_values(self) -> Iterator[T]:
        yield from self.registers.values()
        yield from self.pointers.values()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, State):
            return NotImplemented
        return self.registers == other.registers and self.pointers == other.pointers

    __hash__ = None  # type: ignore[assignment]

    def __len__(self) -> int:
        return len(self.registers) + len(self.pointers)

    def __repr__(self) -> str:
        return f"State(registers={self.registers!r}, pointers={self.pointers!r})"

    # ---- Serialization ---------------------------------------------------

    def to_tagged(self) -> Dict[str, List[Any]]:
        """Diagnostic dump; keys sorted so equal states dump identically."""
        return {
            "registers": [
                [str(var), value.to_tagged()]
                for var, value in sorted(self.registers.items())
            ],
            "pointers": [
                [[str(base), offset], value.to_tagged()]
                for (base, offset), value in sorted(
                    self.pointers.items(), key=lambda item: item[0]
                )
            ],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_tagged(), sort_keys=True)


def _merge_maps(left: Dict[Any, T], right: Dict[Any, T]) -> Dict[Any, T]:
    return {key: value.merge(right[key]) for key, value in left.items() if key in right}


__all__ = ["Cell", "State"]
