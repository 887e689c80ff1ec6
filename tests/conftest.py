# tests/conftest.py
"""
Shared builders for the absstring-shims test suite.

Plain functions build IR terms, bricks and small projects; fixtures expose
the ones most tests need (a memory image holding a few constant strings and
an x86-64 calling convention).
"""

from itertools import product
from typing import Iterable, Set

import pytest

from absstring_shims.bricks import Brick, BricksDomain
from absstring_shims.ir import (
    Arg,
    Blk,
    CallingConvention,
    ExternSymbol,
    Program,
    Project,
    Sub,
    Term,
    Tid,
    Variable,
)
from absstring_shims.memory_image import MemorySegment, RuntimeMemoryImage


# ── Registers ────────────────────────────────────────────────────

RAX = Variable("RAX", 8)
RBX = Variable("RBX", 8)
RCX = Variable("RCX", 8)
RDI = Variable("RDI", 8)
RSI = Variable("RSI", 8)
RSP = Variable("RSP", 8)
R12 = Variable("R12", 8)

X86_64_CCONV = CallingConvention(
    name="__stdcall",
    integer_parameter_register=(RDI, RSI, Variable("RDX", 8), RCX),
    return_register=(RAX,),
    callee_saved_register=(RBX, Variable("RBP", 8), R12),
)


# ── Memory image ─────────────────────────────────────────────────

RODATA = 0x3000
HELLO = RODATA            # "Hello"
WORLD = RODATA + 6        # "World"
FORMAT = RODATA + 12      # "%s"
DATA = 0x4000             # "mutable", writable


def make_memory_image() -> RuntimeMemoryImage:
    return RuntimeMemoryImage.from_segments([
        MemorySegment(RODATA, b"Hello\x00World\x00%s\x00", readonly=True),
        MemorySegment(DATA, b"mutable\x00", readonly=False),
    ])


# ── IR builders ──────────────────────────────────────────────────

def term(name, value):
    return Term(Tid(name), value)


def blk(name, defs=(), jmps=()):
    return Term(Tid(name), Blk(tuple(defs), tuple(jmps)))


def sub(name, blocks):
    return Term(Tid(name), Sub(name, tuple(blocks)))


def extern(name, params=(RDI,), returns=(RAX,)):
    return ExternSymbol(
        tid=Tid(f"sym_{name}"),
        name=name,
        calling_convention="__stdcall",
        parameters=tuple(Arg(var=p, size=p.size) for p in params),
        return_values=tuple(Arg(var=r, size=r.size) for r in returns),
    )


def make_project(subs, externs=(), entry_points=()):
    program = Program(
        subs=tuple(subs),
        extern_symbols={symbol.tid: symbol for symbol in externs},
        entry_points=tuple(Tid(e) for e in entry_points),
    )
    return Project(
        program=Term(Tid("program"), program),
        calling_conventions={X86_64_CCONV.name: X86_64_CCONV},
    )


# ── Bricks helpers ───────────────────────────────────────────────

def make_brick(strings: Iterable[str], lo: int, hi: int) -> Brick:
    return Brick(frozenset(strings), lo, hi)


def concretize(value: BricksDomain) -> Set[str]:
    """Every string a (small, non-Top) bricks value denotes."""
    result = {""}
    for brick_domain in value.unwrap_value():
        brick = brick_domain.unwrap_value()
        fragments: Set[str] = set()
        for count in range(brick.min_count, brick.max_count + 1):
            for parts in product(sorted(brick.sequence), repeat=count):
                fragments.add("".join(parts))
        result = {prefix + fragment for prefix in result for fragment in fragments}
    return result


# ── Fixtures ─────────────────────────────────────────────────────

@pytest.fixture
def memory_image():
    return make_memory_image()


@pytest.fixture
def printf():
    return extern("printf", params=(RDI, RSI))
