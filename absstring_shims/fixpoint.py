"""
absstring_shims/fixpoint.py
═══════════════════════════

Forward worklist solver over the interprocedural CFG of :mod:`graph`.

The solver knows nothing about strings.  It moves values along edges by
calling the transfer functions of a *context* (see :class:`ContextProto`)
and joins them at the destination with ``context.merge``:

    BLOCK             update_def for every definition of the block
    JUMP              update_jump
    CALL              update_call
    EXTERN_CALL_STUB  update_call_stub
    CR_CALL_STUB      park the caller's state in the CallReturn node
    CR_RETURN_STUB    park the callee's state in the CallReturn node
    RETURN_COMBINE    update_return(callee state, caller state)

A transfer function returning ``None`` means "nothing flows along this
edge"; the destination is left untouched.

``CallReturn`` nodes hold a :class:`CallFlowCombinator`, the pair of the
two parked states; every other node holds a plain state.

No widening is applied.  The solver stops after ``max_steps`` node visits
and logs a warning if the worklist was not empty by then.
"""

from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass
from typing import (
    Dict,
    Generic,
    List,
    Mapping,
    Optional,
    Protocol,
    Set,
    TypeVar,
    Union,
)

from absstring_shims.errors import PreconditionError
from absstring_shims.graph import Edge, EdgeKind, Graph, NodeKind
from absstring_shims.ir import Def, Jmp, Term

logger = logging.getLogger(__name__)

V = TypeVar("V")

DEFAULT_MAX_STEPS = 10_000


# ═══════════════════════════════════════════════════════════════════════════
#  PART 1 — CONTEXT PROTOCOL AND NODE VALUES
# ═══════════════════════════════════════════════════════════════════════════

class ContextProto(Protocol[V]):
    """Transfer functions the solver drives."""

    def get_graph(self) -> Graph:
        ...

    def merge(self, value1: V, value2: V) -> V:
        ...

    def update_def(self, value: V, def_term: Term[Def]) -> Optional[V]:
        ...

    def update_jump(
        self,
        value: V,
        jump: Term[Jmp],
        untaken_conditional: Optional[Term[Jmp]],
        target: int,
    ) -> Optional[V]:
        ...

    def update_call(self, value: V, call: Term[Jmp], target: int) -> Optional[V]:
        ...

    def update_return(
        self,
        value: Optional[V],
        value_before_call: Optional[V],
        call_term: Term[Jmp],
        return_term: Term[Jmp],
    ) -> Optional[V]:
        ...

    def update_call_stub(self, value: V, call: Term[Jmp]) -> Optional[V]:
        ...

    def specialize_conditional(
        self, value: V, condition: object, is_true: bool
    ) -> Optional[V]:
        ...


@dataclass(frozen=True)
class CallFlowCombinator(Generic[V]):
    """The two states meeting in a ``CallReturn`` node."""
    call_stub: Optional[V] = None
    interprocedural_flow: Optional[V] = None


NodeValue = Union[V, CallFlowCombinator]


# ═══════════════════════════════════════════════════════════════════════════
#  PART 2 — THE COMPUTATION
# ═══════════════════════════════════════════════════════════════════════════

class Computation(Generic[V]):
    """
    Examples
    --------
    ::

        computation = Computation(context, max_steps=5000)
        computation.set_node_value(entry_index, State.new())
        computation.compute()
        state = computation.get_node_value(some_index)
    """

    def __init__(
        self,
        context: ContextProto[V],
        initial_values: Optional[Mapping[int, V]] = None,
        max_steps: int = DEFAULT_MAX_STEPS,
    ) -> None:
        self.context = context
        self.graph = context.get_graph()
        self.max_steps = max_steps
        self.steps = 0
        self._values: Dict[int, NodeValue] = {}
        self._worklist: List[int] = []
        self._queued: Set[int] = set()
        for index, value in (initial_values or {}).items():
            self.set_node_value(index, value)

    # ----- node values ------------------------------------------------------

    def set_node_value(self, index: int, value: NodeValue) -> None:
        """Overwrite the value at ``index`` and schedule it."""
        self._values[index] = value
        self._schedule(index)

    def get_node_value(self, index: int) -> Optional[NodeValue]:
        return self._values.get(index)

    def node_values(self) -> Dict[int, NodeValue]:
        return dict(self._values)

    def has_stabilized(self) -> bool:
        return not self._worklist

    # ----- solving ----------------------------------------------------------

    def compute(self) -> bool:
        """Run until the worklist is empty or the step limit is reached.

        Returns whether a fixpoint was reached.
        """
        while self._worklist:
            if self.steps >= self.max_steps:
                logger.warning(
                    "fixpoint computation stopped after %d steps with %d "
                    "nodes still scheduled",
                    self.steps,
                    len(self._worklist),
                )
                return False
            index = heapq.heappop(self._worklist)
            self._queued.discard(index)
            self.steps += 1
            self._propagate_from(index)
        logger.debug("fixpoint reached after %d steps", self.steps)
        return True

    def _schedule(self, index: int) -> None:
        if index not in self._queued:
            self._queued.add(index)
            heapq.heappush(self._worklist, index)

    def _propagate_from(self, index: int) -> None:
        value = self._values.get(index)
        if value is None:
            return
        for edge in self.graph.out_edges(index):
            new_value = self._apply_edge(edge, value)
            if new_value is not None:
                self._join_into(edge.dst, new_value)

    def _join_into(self, index: int, value: NodeValue) -> None:
        old = self._values.get(index)
        if old is None:
            merged = value
        elif isinstance(old, CallFlowCombinator):
            merged = CallFlowCombinator(
                self._merge_optional(old.call_stub, value.call_stub),
                self._merge_optional(
                    old.interprocedural_flow, value.interprocedural_flow
                ),
            )
        else:
            merged = self.context.merge(old, value)
        if merged != old:
            self._values[index] = merged
            self._schedule(index)

    def _merge_optional(self, old: Optional[V], new: Optional[V]) -> Optional[V]:
        if old is None:
            return new
        if new is None:
            return old
        return self.context.merge(old, new)

    # ----- edge semantics ---------------------------------------------------

    def _apply_edge(self, edge: Edge, value: NodeValue) -> Optional[NodeValue]:
        ctx = self.context
        kind = edge.kind

        if kind is EdgeKind.RETURN_COMBINE:
            if not isinstance(value, CallFlowCombinator):
                raise PreconditionError(
                    f"{edge!r} expects a call-return value, got {type(value).__name__}"
                )
            if edge.jump is None or edge.return_term is None:
                raise PreconditionError(f"{edge!r} lacks its call or return term")
            return ctx.update_return(
                value.interprocedural_flow,
                value.call_stub,
                edge.jump,
                edge.return_term,
            )

        if isinstance(value, CallFlowCombinator):
            raise PreconditionError(f"{edge!r} cannot carry a call-return value")
        if kind is EdgeKind.BLOCK:
            node = self.graph.node(edge.src)
            current: Optional[V] = value
            for def_term in node.blk.term.defs:
                current = ctx.update_def(current, def_term)
                if current is None:
                    return None
            return current
        if edge.jump is None:
            raise PreconditionError(f"{edge!r} lacks its jump term")
        if kind is EdgeKind.JUMP:
            return ctx.update_jump(value, edge.jump, edge.untaken_conditional, edge.dst)
        if kind is EdgeKind.CALL:
            return ctx.update_call(value, edge.jump, edge.dst)
        if kind is EdgeKind.EXTERN_CALL_STUB:
            return ctx.update_call_stub(value, edge.jump)
        if kind is EdgeKind.CR_CALL_STUB:
            return CallFlowCombinator(call_stub=value)
        if kind is EdgeKind.CR_RETURN_STUB:
            return CallFlowCombinator(interprocedural_flow=value)
        raise ValueError(f"unhandled edge kind {kind!r}")


def node_kind_counts(graph: Graph) -> Dict[NodeKind, int]:
    """Number of nodes of every kind; used in run summaries."""
    counts: Dict[NodeKind, int] = {kind: 0 for kind in NodeKind}
    for node in graph.nodes:
        counts[node.kind] += 1
    return counts


__all__ = [
    "DEFAULT_MAX_STEPS",
    "CallFlowCombinator",
    "Computation",
    "ContextProto",
    "node_kind_counts",
]
