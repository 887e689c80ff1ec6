"""
absstring_shims/ir.py
═════════════════════

Read-only intermediate representation consumed by the abstract string
analysis.

The lifter that produces these terms (Ghidra P-Code extraction and its
normalisation) lives outside this package; here we only model the shape
of what it hands us:

    Project
      └── Term[Program]
            ├── Term[Sub] ─── Term[Blk] ─┬── Term[Def]   (Assign / Load / Store)
            │                            └── Term[Jmp]   (Branch / CBranch / Call / …)
            └── ExternSymbol             (library functions that are not analysed)

Every term carries a ``Tid`` (term identifier) which is what control-flow
targets refer to.  All classes are frozen dataclasses, so terms can be
shared freely between analysis states.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, Generic, Iterator, Optional, Tuple, TypeVar, Union

ByteSize = int
"""Width of a value in bytes."""

T = TypeVar("T")


# ═══════════════════════════════════════════════════════════════════════════
#  PART 1 — IDENTIFIERS AND VARIABLES
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, order=True)
class Tid:
    """Unique term identifier, optionally tied to a binary address."""
    id: str
    address: str = "UNKNOWN"

    def __str__(self) -> str:
        return self.id


@dataclass(frozen=True, order=True)
class Variable:
    """A register or temporary of fixed byte width."""
    name: str
    size: ByteSize
    is_temp: bool = False

    def __str__(self) -> str:
        return f"{self.name}:{self.size}"


# ═══════════════════════════════════════════════════════════════════════════
#  PART 2 — OPERATORS
# ═══════════════════════════════════════════════════════════════════════════

class BinOpType(enum.Enum):
    PIECE = "PIECE"
    INT_EQUAL = "INT_EQUAL"
    INT_NOTEQUAL = "INT_NOTEQUAL"
    INT_LESS = "INT_LESS"
    INT_SLESS = "INT_SLESS"
    INT_LESSEQUAL = "INT_LESSEQUAL"
    INT_SLESSEQUAL = "INT_SLESSEQUAL"
    INT_ADD = "INT_ADD"
    INT_SUB = "INT_SUB"
    INT_CARRY = "INT_CARRY"
    INT_SCARRY = "INT_SCARRY"
    INT_SBORROW = "INT_SBORROW"
    INT_XOR = "INT_XOR"
    INT_AND = "INT_AND"
    INT_OR = "INT_OR"
    INT_LEFT = "INT_LEFT"
    INT_RIGHT = "INT_RIGHT"
    INT_SRIGHT = "INT_SRIGHT"
    INT_MULT = "INT_MULT"
    INT_DIV = "INT_DIV"
    INT_REM = "INT_REM"
    INT_SDIV = "INT_SDIV"
    INT_SREM = "INT_SREM"
    BOOL_XOR = "BOOL_XOR"
    BOOL_AND = "BOOL_AND"
    BOOL_OR = "BOOL_OR"
    FLOAT_EQUAL = "FLOAT_EQUAL"
    FLOAT_NOTEQUAL = "FLOAT_NOTEQUAL"
    FLOAT_LESS = "FLOAT_LESS"
    FLOAT_LESSEQUAL = "FLOAT_LESSEQUAL"
    FLOAT_ADD = "FLOAT_ADD"
    FLOAT_SUB = "FLOAT_SUB"
    FLOAT_MULT = "FLOAT_MULT"
    FLOAT_DIV = "FLOAT_DIV"

    @property
    def yields_boolean(self) -> bool:
        """Operators whose result is a one-byte flag."""
        return self in _BOOLEAN_BIN_OPS


_BOOLEAN_BIN_OPS = frozenset({
    BinOpType.INT_EQUAL,
    BinOpType.INT_NOTEQUAL,
    BinOpType.INT_LESS,
    BinOpType.INT_SLESS,
    BinOpType.INT_LESSEQUAL,
    BinOpType.INT_SLESSEQUAL,
    BinOpType.INT_CARRY,
    BinOpType.INT_SCARRY,
    BinOpType.INT_SBORROW,
    BinOpType.BOOL_XOR,
    BinOpType.BOOL_AND,
    BinOpType.BOOL_OR,
    BinOpType.FLOAT_EQUAL,
    BinOpType.FLOAT_NOTEQUAL,
    BinOpType.FLOAT_LESS,
    BinOpType.FLOAT_LESSEQUAL,
})


class UnOpType(enum.Enum):
    INT_NEGATE = "INT_NEGATE"
    INT_2COMP = "INT_2COMP"
    BOOL_NEGATE = "BOOL_NEGATE"
    FLOAT_NEGATE = "FLOAT_NEGATE"
    FLOAT_ABS = "FLOAT_ABS"
    FLOAT_SQRT = "FLOAT_SQRT"
    FLOAT_CEIL = "FLOAT_CEIL"
    FLOAT_FLOOR = "FLOAT_FLOOR"
    FLOAT_ROUND = "FLOAT_ROUND"
    FLOAT_NAN = "FLOAT_NAN"


class CastOpType(enum.Enum):
    INT_ZEXT = "INT_ZEXT"
    INT_SEXT = "INT_SEXT"
    INT2FLOAT = "INT2FLOAT"
    FLOAT2FLOAT = "FLOAT2FLOAT"
    TRUNC = "TRUNC"
    POPCOUNT = "POPCOUNT"


# ═══════════════════════════════════════════════════════════════════════════
#  PART 3 — EXPRESSIONS
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Var:
    variable: Variable

    def bytesize(self) -> ByteSize:
        return self.variable.size


@dataclass(frozen=True)
class Const:
    """A bitvector constant of ``size`` bytes."""
    value: int
    size: ByteSize

    def bytesize(self) -> ByteSize:
        return self.size


@dataclass(frozen=True)
class BinOp:
    op: BinOpType
    lhs: "Expression"
    rhs: "Expression"

    def bytesize(self) -> ByteSize:
        if self.op.yields_boolean:
            return 1
        if self.op is BinOpType.PIECE:
            return self.lhs.bytesize() + self.rhs.bytesize()
        return self.lhs.bytesize()


@dataclass(frozen=True)
class UnOp:
    op: UnOpType
    arg: "Expression"

    def bytesize(self) -> ByteSize:
        if self.op in (UnOpType.BOOL_NEGATE, UnOpType.FLOAT_NAN):
            return 1
        return self.arg.bytesize()


@dataclass(frozen=True)
class Cast:
    op: CastOpType
    size: ByteSize
    arg: "Expression"

    def bytesize(self) -> ByteSize:
        return self.size


@dataclass(frozen=True)
class Subpiece:
    low_byte: ByteSize
    size: ByteSize
    arg: "Expression"

    def bytesize(self) -> ByteSize:
        return self.size


@dataclass(frozen=True)
class Unknown:
    """An expression the lifter could not translate."""
    description: str
    size: ByteSize

    def bytesize(self) -> ByteSize:
        return self.size


Expression = Union[Var, Const, BinOp, UnOp, Cast, Subpiece, Unknown]


def split_base_offset(expr: Expression) -> Optional[Tuple[Variable, int]]:
    """Decompose ``var``, ``var + c`` or ``var - c`` into ``(var, ±c)``.

    Returns ``None`` for every other shape of address expression.
    """
    if isinstance(expr, Var):
        return expr.variable, 0
    if (
        isinstance(expr, BinOp)
        and isinstance(expr.lhs, Var)
        and isinstance(expr.rhs, Const)
    ):
        if expr.op is BinOpType.INT_ADD:
            return expr.lhs.variable, expr.rhs.value
        if expr.op is BinOpType.INT_SUB:
            return expr.lhs.variable, -expr.rhs.value
    return None


# ═══════════════════════════════════════════════════════════════════════════
#  PART 4 — DEFINITIONS AND JUMPS
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Assign:
    var: Variable
    value: Expression


@dataclass(frozen=True)
class Load:
    var: Variable
    address: Expression


@dataclass(frozen=True)
class Store:
    address: Expression
    value: Expression


Def = Union[Assign, Load, Store]


@dataclass(frozen=True)
class Branch:
    target: Tid


@dataclass(frozen=True)
class CBranch:
    target: Tid
    condition: Expression


@dataclass(frozen=True)
class BranchInd:
    target: Expression


@dataclass(frozen=True)
class Call:
    target: Tid
    return_: Optional[Tid] = None


@dataclass(frozen=True)
class CallInd:
    target: Expression
    return_: Optional[Tid] = None


@dataclass(frozen=True)
class Return:
    expression: Expression


@dataclass(frozen=True)
class CallOther:
    description: str
    return_: Optional[Tid] = None


Jmp = Union[Branch, CBranch, BranchInd, Call, CallInd, Return, CallOther]


@dataclass(frozen=True)
class Term(Generic[T]):
    """A piece of IR together with its identifier."""
    tid: Tid
    term: T


# ═══════════════════════════════════════════════════════════════════════════
#  PART 5 — BLOCKS, SUBROUTINES, PROGRAM
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Blk:
    defs: Tuple[Term[Def], ...] = ()
    jmps: Tuple[Term[Jmp], ...] = ()


@dataclass(frozen=True)
class Sub:
    name: str
    blocks: Tuple[Term[Blk], ...] = ()


@dataclass(frozen=True)
class Arg:
    """A parameter or return value location; a register or a stack slot."""
    var: Optional[Variable] = None
    stack_offset: Optional[int] = None
    size: ByteSize = 0


@dataclass(frozen=True)
class ExternSymbol:
    tid: Tid
    name: str
    calling_convention: Optional[str] = None
    parameters: Tuple[Arg, ...] = ()
    return_values: Tuple[Arg, ...] = ()
    no_return: bool = False

    def parameter_registers(self) -> Iterator[Variable]:
        for arg in self.parameters:
            if arg.var is not None:
                yield arg.var


@dataclass(frozen=True)
class CallingConvention:
    name: str
    integer_parameter_register: Tuple[Variable, ...] = ()
    return_register: Tuple[Variable, ...] = ()
    callee_saved_register: Tuple[Variable, ...] = ()


@dataclass(frozen=True)
class Program:
    subs: Tuple[Term[Sub], ...] = ()
    extern_symbols: Dict[Tid, ExternSymbol] = field(default_factory=dict)
    entry_points: Tuple[Tid, ...] = ()

    def find_sub(self, tid: Tid) -> Optional[Term[Sub]]:
        for sub in self.subs:
            if sub.tid == tid:
                return sub
        return None


@dataclass(frozen=True)
class Project:
    program: Term[Program]
    cpu_architecture: str = "x86_64"
    stack_pointer_register: Variable = Variable("RSP", 8)
    calling_conventions: Dict[str, CallingConvention] = field(default_factory=dict)

    def get_calling_convention(
        self, name: Optional[str] = None
    ) -> Optional[CallingConvention]:
        """Look up ``name``; fall back to the standard convention of the binary."""
        if name is not None and name in self.calling_conventions:
            return self.calling_conventions[name]
        for fallback in ("__stdcall", "__cdecl", "__aarch64cdecl"):
            if fallback in self.calling_conventions:
                return self.calling_conventions[fallback]
        return next(iter(self.calling_conventions.values()), None)


__all__ = [
    "ByteSize",
    "Tid",
    "Variable",
    "BinOpType",
    "UnOpType",
    "CastOpType",
    "Var",
    "Const",
    "BinOp",
    "UnOp",
    "Cast",
    "Subpiece",
    "Unknown",
    "Expression",
    "split_base_offset",
    "Assign",
    "Load",
    "Store",
    "Def",
    "Branch",
    "CBranch",
    "BranchInd",
    "Call",
    "CallInd",
    "Return",
    "CallOther",
    "Jmp",
    "Term",
    "Blk",
    "Sub",
    "Arg",
    "ExternSymbol",
    "CallingConvention",
    "Program",
    "Project",
]
