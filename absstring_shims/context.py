"""
absstring_shims/context.py
══════════════════════════

Transfer functions of the abstract string analysis.

A :class:`Context` binds together everything that stays fixed during one
analysis run and answers the solver's questions about single edges:

    ┌──────────────────────────────────────────────────────────────────┐
    │  Context[T]                                                      │
    │    project        calling conventions, extern symbols            │
    │    memory_image   read-only string constants                     │
    │    domain         the string domain T (Bricks, CharInclusion, …) │
    │    graph          interprocedural CFG built from the project     │
    │                                                                  │
    │    merge · update_def · update_jump · update_call                │
    │    update_return · update_call_stub · specialize_conditional     │
    └──────────────────────────────────────────────────────────────────┘

Every transfer function takes the incoming :class:`State` and returns a
*new* state, or ``None`` when nothing can flow along the edge.  Incoming
states are never mutated.

Tracking model
--------------
Strings are discovered where the program takes the address of a constant
in read-only memory.  The register receiving the address becomes the base
of a memory cell ``(register, 0)`` holding ``T.from_string(constant)``.
From there, cells follow register copies, pointer arithmetic by constants,
loads and stores.  An expression the context does not model makes the
defined register untracked, never an error.
"""

from __future__ import annotations

import logging
from typing import Generic, Iterable, Optional, Set, Type, TypeVar

from absstring_shims.abstract_domains import RegisterDomain, StringDomain
from absstring_shims.config import AnalysisConfig
from absstring_shims.graph import Graph, build_program_cfg
from absstring_shims.ir import (
    Assign,
    BinOp,
    BinOpType,
    Call,
    Cast,
    CBranch,
    Const,
    Def,
    Expression,
    ExternSymbol,
    Jmp,
    Load,
    Project,
    Store,
    Subpiece,
    Term,
    UnOp,
    Var,
    Variable,
    split_base_offset,
)
from absstring_shims.memory_image import RuntimeMemoryImage
from absstring_shims.state import State

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=StringDomain)


class Context(Generic[T]):

    def __init__(
        self,
        project: Project,
        memory_image: RuntimeMemoryImage,
        domain: Optional[Type[T]] = None,
        config: Optional[AnalysisConfig] = None,
        graph: Optional[Graph] = None,
    ) -> None:
        self.project = project
        self.memory_image = memory_image
        self.config = config if config is not None else AnalysisConfig()
        self.domain: Type[T] = domain if domain is not None else self.config.domain_type
        if graph is None:
            program = project.program.term
            graph = build_program_cfg(program, frozenset(program.extern_symbols))
        self.graph = graph
        self._normalize = self.config.normalize_bricks and hasattr(
            self.domain, "normalize"
        )

    def get_graph(self) -> Graph:
        return self.graph

    # ═══════════════════════════════════════════════════════════════════
    #  MERGE
    # ═══════════════════════════════════════════════════════════════════

    def merge(self, value1: State[T], value2: State[T]) -> State[T]:
        merged = value1.merge(value2)
        if self._normalize:
            merged = merged.map_values(lambda v: v.normalize())  # type: ignore[attr-defined]
        return merged

    # ═══════════════════════════════════════════════════════════════════
    #  DEFINITIONS
    # ═══════════════════════════════════════════════════════════════════

    def update_def(
        self, value: Optional[State[T]], def_term: Term[Def]
    ) -> Optional[State[T]]:
        if value is None:
            return None
        state = value.copy()
        definition = def_term.term
        if isinstance(definition, Assign):
            self._handle_assign(state, definition.var, definition.value, def_term)
        elif isinstance(definition, Load):
            self._handle_load(state, definition.var, definition.address)
        elif isinstance(definition, Store):
            self._handle_store(state, definition.address, definition.value)
        else:
            logger.debug("ignoring unknown definition %s", def_term.tid)
        return state

    def _handle_assign(
        self,
        state: State[T],
        var: Variable,
        expression: Expression,
        def_term: Term[Def],
    ) -> None:
        if isinstance(expression, Var):
            src = expression.variable
            if src == var:
                return
            register = state.get_register(src)
            state.forget(var)
            if register is not None:
                state.set_register(var, register)
            state.copy_pointers(src, var)
            return

        if isinstance(expression, Const):
            string = self.string_constant_at(expression.value)
            state.forget(var)
            if string is not None:
                logger.debug(
                    "%s: string constant %r at %#x assigned to %s",
                    def_term.tid, string, expression.value, var,
                )
                state.set_pointer(var, 0, self.domain.from_string(string))
            return

        if (
            isinstance(expression, BinOp)
            and isinstance(expression.rhs, Const)
            and expression.op in (BinOpType.INT_ADD, BinOpType.INT_SUB)
        ):
            base_offset = split_base_offset(expression)
            if base_offset is not None:
                src, delta = base_offset
                state.remove_register(var)
                state.copy_pointers(src, var, -delta)
                return

        result = self._eval_register_expression(state, expression)
        state.forget(var)
        if result is not None:
            state.set_register(var, result)

    def _eval_register_expression(
        self, state: State[T], expression: Expression
    ) -> Optional[T]:
        """Value of ``expression`` for register domains, if all operands are tracked."""
        if not issubclass(self.domain, RegisterDomain):
            return None
        if isinstance(expression, Var):
            return state.get_register(expression.variable)
        if isinstance(expression, BinOp):
            lhs = self._eval_register_expression(state, expression.lhs)
            rhs = self._eval_register_expression(state, expression.rhs)
            if lhs is None or rhs is None:
                return None
            return lhs.bin_op(expression.op, rhs)  # type: ignore[attr-defined]
        if isinstance(expression, UnOp):
            arg = self._eval_register_expression(state, expression.arg)
            return None if arg is None else arg.un_op(expression.op)  # type: ignore[attr-defined]
        if isinstance(expression, Cast):
            arg = self._eval_register_expression(state, expression.arg)
            if arg is None:
                return None
            return arg.cast(expression.op, expression.size)  # type: ignore[attr-defined]
        if isinstance(expression, Subpiece):
            arg = self._eval_register_expression(state, expression.arg)
            if arg is None:
                return None
            return arg.subpiece(expression.low_byte, expression.size)  # type: ignore[attr-defined]
        return None

    def _handle_load(
        self, state: State[T], var: Variable, address: Expression
    ) -> None:
        base_offset = split_base_offset(address)
        cell = state.get_pointer(*base_offset) if base_offset is not None else None
        state.forget(var)
        if cell is not None:
            state.set_register(var, cell)

    def _handle_store(
        self, state: State[T], address: Expression, value: Expression
    ) -> None:
        base_offset = split_base_offset(address)
        if base_offset is None:
            return
        base, offset = base_offset
        stored: Optional[T] = None
        if isinstance(value, Var):
            stored = state.get_register(value.variable)
        elif isinstance(value, Const):
            string = self.string_constant_at(value.value)
            if string is not None:
                stored = self.domain.from_string(string)
        if stored is None:
            state.remove_pointer(base, offset)
        else:
            state.set_pointer(base, offset, stored)

    def string_constant_at(self, address: int) -> Optional[str]:
        return self.memory_image.read_constant_string(address)

    # ═══════════════════════════════════════════════════════════════════
    #  CONTROL FLOW
    # ═══════════════════════════════════════════════════════════════════

    def update_jump(
        self,
        value: Optional[State[T]],
        jump: Term[Jmp],
        untaken_conditional: Optional[Term[Jmp]],
        target: int,
    ) -> Optional[State[T]]:
        if value is None:
            return None
        if isinstance(jump.term, CBranch):
            return self.specialize_conditional(value, jump.term.condition, True)
        if untaken_conditional is not None and isinstance(untaken_conditional.term, CBranch):
            return self.specialize_conditional(
                value, untaken_conditional.term.condition, False
            )
        return value.copy()

    def update_call(
        self, value: Optional[State[T]], call: Term[Jmp], target: int
    ) -> Optional[State[T]]:
        if value is None:
            return None
        logger.debug("%s: entering %r", call.tid, self.graph.node(target))
        return value.copy()

    def update_return(
        self,
        value: Optional[State[T]],
        value_before_call: Optional[State[T]],
        call_term: Term[Jmp],
        return_term: Term[Jmp],
    ) -> Optional[State[T]]:
        """Combine the callee's state at ``return_term`` with the caller's state.

        The callee started from a copy of the caller's state, so whatever it
        no longer tracks was invalidated on the way.  Registers and the cells
        based at them come from the callee, except for callee-saved registers,
        which keep the caller's register value and cells.
        """
        if value is None or value_before_call is None:
            return None
        saved = self._callee_saved_registers(None)
        registers = {
            var: v for var, v in value.registers.items() if var not in saved
        }
        pointers = {
            cell: v for cell, v in value.pointers.items() if cell[0] not in saved
        }
        for var in saved:
            caller_value = value_before_call.get_register(var)
            if caller_value is not None:
                registers[var] = caller_value
            for offset, cell in value_before_call.pointers_with_base(var).items():
                pointers[(var, offset)] = cell
        logger.debug("%s: returned from %s", call_term.tid, return_term.tid)
        return State(registers, pointers)

    def update_call_stub(
        self, value: Optional[State[T]], call: Term[Jmp]
    ) -> Optional[State[T]]:
        """Effect of a call whose target is not analysed.

        Memory reachable through a parameter register of an extern symbol may
        have been written by the callee, so those cells become ``top()``.
        Return registers and every caller-saved register are then forgotten,
        together with the cells based at them.
        """
        if value is None:
            return None
        state = value.copy()
        symbol = self.extern_symbol_of(call)
        if symbol is None:
            self._forget_caller_saved(state, self._callee_saved_registers(None))
            return state

        logger.debug("%s: stub for extern call to %s", call.tid, symbol.name)
        self._set_cells_to_top(state, symbol.parameter_registers())
        for var in self._return_registers(symbol):
            state.forget(var)
        self._forget_caller_saved(
            state, self._callee_saved_registers(symbol.calling_convention)
        )
        return state

    def specialize_conditional(
        self, value: Optional[State[T]], condition: Expression, is_true: bool
    ) -> Optional[State[T]]:
        """String domains learn nothing from branch conditions, except that
        a branch on a constant contradicting ``is_true`` is never taken."""
        if value is None:
            return None
        if isinstance(condition, Const) and (condition.value != 0) != is_true:
            return None
        return value.copy()

    # ═══════════════════════════════════════════════════════════════════
    #  CALLING CONVENTION HELPERS
    # ═══════════════════════════════════════════════════════════════════

    def extern_symbol_of(self, call: Term[Jmp]) -> Optional[ExternSymbol]:
        if not isinstance(call.term, Call):
            return None
        return self.project.program.term.extern_symbols.get(call.term.target)

    def _callee_saved_registers(self, convention: Optional[str]) -> Set[Variable]:
        cconv = self.project.get_calling_convention(convention)
        if cconv is None:
            return set()
        return set(cconv.callee_saved_register)

    def _return_registers(self, symbol: ExternSymbol) -> Set[Variable]:
        registers = {arg.var for arg in symbol.return_values if arg.var is not None}
        cconv = self.project.get_calling_convention(symbol.calling_convention)
        if cconv is not None:
            registers.update(cconv.return_register)
        return registers

    @staticmethod
    def _set_cells_to_top(state: State[T], bases: Iterable[Variable]) -> None:
        for base in set(bases):
            for offset, cell in state.pointers_with_base(base).items():
                state.set_pointer(base, offset, cell.top())

    @staticmethod
    def _forget_caller_saved(state: State[T], saved: Set[Variable]) -> None:
        bases = set(state.registers) | {base for base, _ in state.pointers}
        for var in bases - saved:
            state.forget(var)


__all__ = ["Context"]
