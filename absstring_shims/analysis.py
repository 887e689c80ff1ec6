"""
absstring_shims/analysis.py
═══════════════════════════

The abstract string analysis as a checker module.

The checker runs a list of modules over the shared results of earlier
analyses.  Each module is described by a registration record:

    CweModule(name, version, run)
        run(analysis_results, params) -> (list[LogMessage], list[CweWarning])

Modules live in an explicit :class:`ModuleRegistry`; the driver builds one
(usually with :func:`default_registry`) and asks it to run everything that
is enabled.

    ┌──────────────┐   params   ┌──────────────────┐   ┌──────────────┐
    │ ModuleRegistry├──────────►│ AbstractString    ├──►│ Computation  │
    │  run_all()    │           │  (Context + CFG)  │   │  (worklist)  │
    └──────────────┘            └──────────────────┘   └──────────────┘
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    Iterator,
    List,
    Mapping,
    Optional,
    Set,
    Tuple,
    TypeVar,
)

from absstring_shims.abstract_domains import StringDomain
from absstring_shims.config import AnalysisConfig
from absstring_shims.context import Context
from absstring_shims.diagnostics import CweWarning, LogMessage
from absstring_shims.errors import ConfigurationError
from absstring_shims.fixpoint import Computation, node_kind_counts
from absstring_shims.graph import NodeKind
from absstring_shims.ir import Project
from absstring_shims.memory_image import RuntimeMemoryImage
from absstring_shims.state import State

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=StringDomain)

VERSION = "0.1"
MODULE_NAME = "AbstractString"

ModuleOutput = Tuple[List[LogMessage], List[CweWarning]]


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — MODULE RECORDS
# ═════════════════════════════════════════════════════════════════════════

@dataclass
class AnalysisResults:
    """Results of earlier analyses, shared by every module of one run."""
    project: Optional[Project] = None
    memory_image: RuntimeMemoryImage = field(default_factory=RuntimeMemoryImage.empty)
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CweModule:
    name: str
    version: str
    run: Callable[[AnalysisResults, Mapping[str, Any]], ModuleOutput]

    def __str__(self) -> str:
        return f"{self.name} {self.version}"


class ModuleRegistry:
    """
    Registry of checker modules, replacing a process-wide table.

    Usage
    -----
    >>> registry = ModuleRegistry()
    >>> registry.register(ABSTRACT_STRING_MODULE)
    >>> registry.names
    ['AbstractString']
    """

    def __init__(self) -> None:
        self._modules: Dict[str, CweModule] = {}
        self._disabled: Set[str] = set()

    def register(self, module: CweModule) -> None:
        """Register a module; a module of the same name is replaced."""
        self._modules[module.name] = module

    def unregister(self, name: str) -> None:
        self._modules.pop(name, None)

    def disable(self, name: str) -> None:
        self._disabled.add(name)

    def enable(self, name: str) -> None:
        self._disabled.discard(name)

    def get(self, name: str) -> Optional[CweModule]:
        return self._modules.get(name)

    def get_all(self) -> List[CweModule]:
        return list(self._modules.values())

    def get_enabled(self) -> List[CweModule]:
        return [
            module for name, module in self._modules.items()
            if name not in self._disabled
        ]

    @property
    def names(self) -> List[str]:
        return sorted(self._modules.keys())

    def run(
        self,
        name: str,
        analysis_results: AnalysisResults,
        params: Optional[Mapping[str, Any]] = None,
    ) -> ModuleOutput:
        module = self._modules.get(name)
        if module is None:
            raise KeyError(f"no module named {name!r} is registered")
        return module.run(analysis_results, params or {})

    def run_all(
        self,
        analysis_results: AnalysisResults,
        params: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ) -> ModuleOutput:
        """Run every enabled module; ``params`` is keyed by module name."""
        params = params or {}
        logs: List[LogMessage] = []
        warnings: List[CweWarning] = []
        for module in self.get_enabled():
            logger.info("running module %s", module)
            module_logs, module_warnings = module.run(
                analysis_results, params.get(module.name, {})
            )
            logs.extend(module_logs)
            warnings.extend(module_warnings)
        return logs, warnings

    def __iter__(self) -> Iterator[CweModule]:
        return iter(self.get_all())

    def __len__(self) -> int:
        return len(self._modules)


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — THE ABSTRACT STRING ANALYSIS
# ═════════════════════════════════════════════════════════════════════════

class AbstractString(Generic[T]):
    """A context, its graph and the fixpoint computation over them."""

    def __init__(
        self,
        project: Project,
        memory_image: RuntimeMemoryImage,
        config: Optional[AnalysisConfig] = None,
    ) -> None:
        self.config = config if config is not None else AnalysisConfig()
        self.context: Context[T] = Context(project, memory_image, config=self.config)
        self.computation: Computation[State[T]] = Computation(
            self.context, max_steps=self.config.max_steps
        )
        for index in self._start_nodes():
            self.computation.set_node_value(index, State.new())

    def _start_nodes(self) -> List[int]:
        graph = self.context.get_graph()
        program = self.context.project.program.term
        starts = list(graph.entry_nodes(program))
        if starts:
            return starts
        # no entry points known: analyse every subroutine from its first block
        return [
            index for index in graph.node_indices()
            if graph.node(index).kind is NodeKind.BLK_START
            and graph.node(index).blk == graph.node(index).sub.term.blocks[0]
        ]

    def compute(self) -> bool:
        return self.computation.compute()

    def get_state(self, index: int) -> Optional[State[T]]:
        value = self.computation.get_node_value(index)
        return value if isinstance(value, State) else None

    def tracked_strings(self) -> int:
        """Number of (node, location) pairs holding a non-Top string value."""
        return sum(
            1
            for value in self.computation.node_values().values()
            if isinstance(value, State)
            for tracked in value.tracked_values()
            if not tracked.is_top()
        )


def extract_abstract_string_analysis_results(
    analysis_results: AnalysisResults,
    params: Optional[Mapping[str, Any]],
) -> ModuleOutput:
    """Entry point of the ``AbstractString`` module.

    No weakness is derived from the computed states yet, so the warning
    list is always empty.  Invalid parameters are reported as an error log
    message instead of aborting the checker.
    """
    logs: List[LogMessage] = []
    try:
        config = AnalysisConfig.from_params(params)
    except ConfigurationError as exc:
        logger.error("invalid parameters for %s: %s", MODULE_NAME, exc)
        logs.append(LogMessage.new_error(str(exc)).source_module(MODULE_NAME))
        return logs, []

    if analysis_results.project is None:
        logs.append(
            LogMessage.new_debug("no project to analyse").source_module(MODULE_NAME)
        )
        return logs, []

    analysis: AbstractString[StringDomain] = AbstractString(
        analysis_results.project, analysis_results.memory_image, config
    )
    stabilized = analysis.compute()
    graph = analysis.context.get_graph()
    counts = node_kind_counts(graph)
    logger.info(
        "%s: %d steps over %d nodes (%s domain)",
        MODULE_NAME, analysis.computation.steps, len(graph), config.domain,
    )
    logs.append(LogMessage.new_debug(
        f"{config.domain} analysis {'stabilized' if stabilized else 'stopped'} after "
        f"{analysis.computation.steps} steps over {len(graph)} nodes "
        f"({counts[NodeKind.CALL_RETURN]} call-return nodes)"
    ).source_module(MODULE_NAME))
    logs.append(LogMessage.new_debug(
        f"{analysis.tracked_strings()} tracked string values"
    ).source_module(MODULE_NAME))
    return logs, []


ABSTRACT_STRING_MODULE = CweModule(
    name=MODULE_NAME,
    version=VERSION,
    run=extract_abstract_string_analysis_results,
)


def default_registry() -> ModuleRegistry:
    registry = ModuleRegistry()
    registry.register(ABSTRACT_STRING_MODULE)
    return registry


__all__ = [
    "VERSION",
    "MODULE_NAME",
    "AnalysisResults",
    "CweModule",
    "ModuleRegistry",
    "AbstractString",
    "extract_abstract_string_analysis_results",
    "ABSTRACT_STRING_MODULE",
    "default_registry",
]
