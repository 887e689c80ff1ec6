"""
absstring_shims/graph.py
════════════════════════

Interprocedural control-flow graph over basic blocks.

Every block ``B`` contributes two nodes, the state *before* its
definitions and the state *after* them:

    BlkStart(B) ──BLOCK──► BlkEnd(B) ──JUMP──► BlkStart(target)

Calls to analysed subroutines are split so that the caller's state and the
callee's state meet again in a dedicated ``CallReturn`` node:

    BlkEnd(caller) ──CALL──────────────► BlkStart(callee entry)
    BlkEnd(caller) ──CR_CALL_STUB──┐
    BlkEnd(callee return) ──CR_RETURN_STUB──► CallReturn ──RETURN_COMBINE──► BlkStart(return site)

Calls to extern symbols (library functions that are not analysed) and
unresolved indirect calls jump straight to the return site:

    BlkEnd(caller) ──EXTERN_CALL_STUB──► BlkStart(return site)

There is one ``CallReturn`` node per pair (call site, callee return block).

Public API
----------
    NodeKind            - BLK_START / BLK_END / CALL_RETURN
    EdgeKind            - classification of edges (see diagrams above)
    Node                - one graph node; identity is its kind + block tids
    Edge                - directed edge carrying the IR terms it stands for
    Graph               - container with successor / predecessor queries
    build_program_cfg   - build the graph of a whole ``Program``
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import AbstractSet, Dict, Iterator, List, Optional, Tuple

from absstring_shims.errors import PreconditionError
from absstring_shims.ir import (
    Blk,
    Branch,
    Call,
    CallInd,
    CallOther,
    CBranch,
    Jmp,
    Program,
    Return,
    Sub,
    Term,
    Tid,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Nodes and edges
# ---------------------------------------------------------------------------


class NodeKind(enum.Enum):
    BLK_START = "blk-start"
    BLK_END = "blk-end"
    CALL_RETURN = "call-return"


class EdgeKind(enum.Enum):
    """Classification of a graph edge."""

    BLOCK = "block"
    JUMP = "jump"
    CALL = "call"
    EXTERN_CALL_STUB = "extern-call-stub"
    CR_CALL_STUB = "cr-call-stub"
    CR_RETURN_STUB = "cr-return-stub"
    RETURN_COMBINE = "return-combine"


@dataclass(frozen=True)
class Node:
    """A program point.

    For ``CALL_RETURN`` nodes ``blk``/``sub`` are the callee's returning
    block and the callee, ``caller_blk``/``caller_sub`` the call site.
    """

    kind: NodeKind
    blk: Term[Blk] = field(compare=False)
    sub: Term[Sub] = field(compare=False)
    caller_blk: Optional[Term[Blk]] = field(default=None, compare=False)
    caller_sub: Optional[Term[Sub]] = field(default=None, compare=False)
    key: Tuple[Optional[Tid], ...] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        caller = self.caller_blk.tid if self.caller_blk is not None else None
        object.__setattr__(self, "key", (self.blk.tid, caller))

    def label(self) -> str:
        if self.kind is NodeKind.CALL_RETURN and self.caller_blk is not None:
            return f"CallReturn @ {self.caller_blk.tid} <- {self.blk.tid}"
        suffix = "start" if self.kind is NodeKind.BLK_START else "end"
        return f"{self.blk.tid} ({suffix}) in {self.sub.term.name}"

    def __repr__(self) -> str:
        return f"Node({self.label()})"


@dataclass(frozen=True)
class Edge:
    """A directed edge between two node indices.

    ``jump`` holds the jump or call term an edge stands for;
    ``untaken_conditional`` the conditional branch whose fall-through this
    ``JUMP`` edge is; ``return_term`` the callee's return on
    ``CR_RETURN_STUB`` and ``RETURN_COMBINE`` edges.
    """

    src: int
    dst: int
    kind: EdgeKind
    jump: Optional[Term[Jmp]] = None
    untaken_conditional: Optional[Term[Jmp]] = None
    return_term: Optional[Term[Jmp]] = None

    def __repr__(self) -> str:
        return f"Edge({self.src} -> {self.dst}, kind={self.kind.value!r})"


# ---------------------------------------------------------------------------
# Graph
# ---------------------------------------------------------------------------


class Graph:
    """Interprocedural CFG; nodes are addressed by their integer index."""

    def __init__(self) -> None:
        self.nodes: List[Node] = []
        self.edges: List[Edge] = []
        self._index: Dict[Tuple[NodeKind, Tuple[Optional[Tid], ...]], int] = {}
        self._out: Dict[int, List[Edge]] = {}
        self._in: Dict[int, List[Edge]] = {}

    # ----- graph mutation ---------------------------------------------------

    def add_node(self, node: Node) -> int:
        """Register *node* (once) and return its index."""
        existing = self._index.get((node.kind, node.key))
        if existing is not None:
            return existing
        index = len(self.nodes)
        self.nodes.append(node)
        self._index[(node.kind, node.key)] = index
        self._out[index] = []
        self._in[index] = []
        return index

    def add_edge(self, src: int, dst: int, kind: EdgeKind, **terms) -> Edge:
        edge = Edge(src, dst, kind, **terms)
        self.edges.append(edge)
        self._out[src].append(edge)
        self._in[dst].append(edge)
        return edge

    # ----- queries ----------------------------------------------------------

    def node(self, index: int) -> Node:
        return self.nodes[index]

    def node_indices(self) -> range:
        return range(len(self.nodes))

    def find_node(
        self,
        kind: NodeKind,
        blk_tid: Tid,
        caller_blk_tid: Optional[Tid] = None,
    ) -> Optional[int]:
        return self._index.get((kind, (blk_tid, caller_blk_tid)))

    def out_edges(self, index: int) -> List[Edge]:
        return self._out[index]

    def in_edges(self, index: int) -> List[Edge]:
        return self._in[index]

    def successors_of(self, index: int) -> List[int]:
        return [e.dst for e in self._out[index]]

    def predecessors_of(self, index: int) -> List[int]:
        return [e.src for e in self._in[index]]

    def entry_nodes(self, program: Program) -> Iterator[int]:
        """``BlkStart`` of the first block of every entry-point subroutine."""
        for tid in program.entry_points:
            sub = program.find_sub(tid)
            if sub is None or not sub.term.blocks:
                continue
            index = self.find_node(NodeKind.BLK_START, sub.term.blocks[0].tid)
            if index is not None:
                yield index

    # ----- serialisation helpers --------------------------------------------

    def to_dot(self, title: Optional[str] = None) -> str:
        """Return a Graphviz DOT representation of the graph."""
        lines = ["digraph ICFG {"]
        if title:
            lines.append(f'  label="{title}";')
        lines.append("  node [shape=box, fontname=monospace, fontsize=10];")
        for index, node in enumerate(self.nodes):
            lbl = node.label().replace('"', '\\"')
            lines.append(f'  N{index} [label="{lbl}"];')
        for e in self.edges:
            style = ""
            if e.kind is EdgeKind.CALL:
                style = ", color=blue"
            elif e.kind in (EdgeKind.CR_CALL_STUB, EdgeKind.CR_RETURN_STUB):
                style = ", style=dotted"
            lines.append(f'  N{e.src} -> N{e.dst} [label="{e.kind.value}"{style}];')
        lines.append("}")
        return "\n".join(lines)

    def __len__(self) -> int:
        return len(self.nodes)

    def __repr__(self) -> str:
        return f"Graph(nodes={len(self.nodes)}, edges={len(self.edges)})"


# ===========================================================================
# GRAPH BUILDER
# ===========================================================================


class _GraphBuilder:

    def __init__(self, program: Program, extern_subs: AbstractSet[Tid]) -> None:
        self.program = program
        self.extern_subs = extern_subs
        self.graph = Graph()
        self._block_owner: Dict[Tid, Tuple[Term[Blk], Term[Sub]]] = {}

    def build(self) -> Graph:
        for sub in self.program.subs:
            for blk in sub.term.blocks:
                self._block_owner[blk.tid] = (blk, sub)
                start = self.graph.add_node(Node(NodeKind.BLK_START, blk, sub))
                end = self.graph.add_node(Node(NodeKind.BLK_END, blk, sub))
                self.graph.add_edge(start, end, EdgeKind.BLOCK)
        for sub in self.program.subs:
            for blk in sub.term.blocks:
                self._add_jump_edges(blk, sub)
        logger.debug("built %r", self.graph)
        return self.graph

    def _start_of(self, blk_tid: Optional[Tid]) -> Optional[int]:
        if blk_tid is None:
            return None
        return self.graph.find_node(NodeKind.BLK_START, blk_tid)

    def _add_jump_edges(self, blk: Term[Blk], sub: Term[Sub]) -> None:
        source = self.graph.find_node(NodeKind.BLK_END, blk.tid)
        if source is None:
            raise PreconditionError(f"block {blk.tid} has no end node")
        previous: Optional[Term[Jmp]] = None
        for jump in blk.term.jmps:
            kind = jump.term
            if isinstance(kind, (Branch, CBranch)):
                untaken = previous if isinstance(kind, Branch) else None
                if untaken is not None and not isinstance(untaken.term, CBranch):
                    untaken = None
                target = self._start_of(kind.target)
                if target is None:
                    logger.debug("jump %s targets unknown block %s", jump.tid, kind.target)
                else:
                    self.graph.add_edge(
                        source, target, EdgeKind.JUMP,
                        jump=jump, untaken_conditional=untaken,
                    )
            elif isinstance(kind, Call):
                self._add_call_edges(source, blk, sub, jump, kind)
            elif isinstance(kind, (CallInd, CallOther)):
                return_site = self._start_of(kind.return_)
                if return_site is not None:
                    self.graph.add_edge(
                        source, return_site, EdgeKind.EXTERN_CALL_STUB, jump=jump
                    )
            previous = jump

    def _add_call_edges(
        self,
        source: int,
        blk: Term[Blk],
        sub: Term[Sub],
        jump: Term[Jmp],
        call: Call,
    ) -> None:
        return_site = self._start_of(call.return_)
        callee = self.program.find_sub(call.target)
        if call.target in self.extern_subs or callee is None or not callee.term.blocks:
            if return_site is not None:
                self.graph.add_edge(
                    source, return_site, EdgeKind.EXTERN_CALL_STUB, jump=jump
                )
            return

        callee_entry = self._start_of(callee.term.blocks[0].tid)
        if callee_entry is None:
            raise PreconditionError(f"callee {callee.tid} has no entry node")
        self.graph.add_edge(source, callee_entry, EdgeKind.CALL, jump=jump)
        if return_site is None:
            return

        for callee_blk in callee.term.blocks:
            for callee_jump in callee_blk.term.jmps:
                if not isinstance(callee_jump.term, Return):
                    continue
                call_return = self.graph.add_node(Node(
                    NodeKind.CALL_RETURN, callee_blk, callee,
                    caller_blk=blk, caller_sub=sub,
                ))
                callee_end = self.graph.find_node(NodeKind.BLK_END, callee_blk.tid)
                if callee_end is None:
                    raise PreconditionError(f"block {callee_blk.tid} has no end node")
                self.graph.add_edge(
                    source, call_return, EdgeKind.CR_CALL_STUB, jump=jump
                )
                self.graph.add_edge(
                    callee_end, call_return, EdgeKind.CR_RETURN_STUB,
                    jump=jump, return_term=callee_jump,
                )
                self.graph.add_edge(
                    call_return, return_site, EdgeKind.RETURN_COMBINE,
                    jump=jump, return_term=callee_jump,
                )


def build_program_cfg(
    program: Program, extern_subs: AbstractSet[Tid] = frozenset()
) -> Graph:
    """Build the interprocedural CFG of *program*.

    Calls whose target is in *extern_subs* (or names no analysed
    subroutine) are treated as calls to library code.
    """
    return _GraphBuilder(program, extern_subs).build()


__all__ = [
    "NodeKind",
    "EdgeKind",
    "Node",
    "Edge",
    "Graph",
    "build_program_cfg",
]
