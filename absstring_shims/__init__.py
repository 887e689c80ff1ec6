"""
absstring_shims — Abstract String Analysis Core
===============================================

Abstract-interpretation core approximating the set of string values that
flow through a lifted binary program.

Core modules
------------
abstract_domains
    Lattice vocabulary: ``merge`` / ``is_top`` / ``top`` and register semantics.
character_inclusion
    Which characters a string certainly / possibly contains.
string_length
    Interval bounds on the byte length of a string.
bricks
    Strings as concatenations of bounded repetitions of candidate sets.
state
    Per-program-point map of registers and memory cells to string values.
context
    Transfer functions driven by the fixpoint solver.
graph
    Interprocedural CFG built from a ``Project``.
fixpoint
    Forward worklist solver.
analysis
    Module registration record, registry and entry point.

Quick start
-----------
>>> from absstring_shims import BricksDomain
>>> BricksDomain.from_string("ab").merge(BricksDomain.from_string("cd"))
Bricks([{'ab', 'cd'}]^{1,1})

Package layout
--------------
::

    absstring_shims/
    ├── __init__.py            ← this file
    ├── abstract_domains.py
    ├── analysis.py
    ├── bricks.py
    ├── character_inclusion.py
    ├── config.py
    ├── context.py
    ├── diagnostics.py
    ├── errors.py
    ├── fixpoint.py
    ├── graph.py
    ├── ir.py
    ├── memory_image.py
    ├── state.py
    └── string_length.py
"""

from __future__ import annotations

import importlib
import sys
from typing import TYPE_CHECKING, List

# ---------------------------------------------------------------------------
# Package metadata
# ---------------------------------------------------------------------------

__version__ = "0.1.0"
__license__ = "MIT"
__all__: List[str] = []          # populated below


# ---------------------------------------------------------------------------
# Internal registry: module_name -> names re-exported at package level
# ---------------------------------------------------------------------------

_CORE_MODULES = {
    "errors": [
        "AbstractStringError",
        "PreconditionError",
        "UnexpectedTopError",
        "DomainInvariantError",
        "BrickBoundsError",
        "SerializationError",
        "ConfigurationError",
    ],
    "abstract_domains": [
        "Tag",
        "AbstractDomain",
        "HasTop",
        "HasByteSize",
        "RegisterDomain",
        "StringDomain",
        "merge_all",
    ],
    "character_inclusion": ["CharacterInclusionDomain"],
    "string_length": ["StringLengthDomain"],
    "bricks": ["Brick", "BrickDomain", "BricksDomain"],
    "state": ["State"],
    "memory_image": ["MemorySegment", "RuntimeMemoryImage"],
    "graph": ["Graph", "NodeKind", "EdgeKind", "build_program_cfg"],
    "fixpoint": ["Computation", "CallFlowCombinator"],
    "config": ["AnalysisConfig"],
    "diagnostics": ["LogLevel", "LogMessage", "CweWarning"],
    "context": ["Context"],
    "analysis": [
        "AnalysisResults",
        "CweModule",
        "ModuleRegistry",
        "AbstractString",
        "ABSTRACT_STRING_MODULE",
        "default_registry",
        "extract_abstract_string_analysis_results",
    ],
}


def _import_names(module_rel_name: str, names: List[str]) -> None:
    """Import *names* from a submodule and bind them in the package namespace."""
    fq_name = f"{__name__}.{module_rel_name}"
    try:
        mod = importlib.import_module(fq_name)
    except ImportError as exc:
        raise ImportError(
            f"absstring_shims: required submodule '{module_rel_name}' "
            f"failed to import: {exc}"
        ) from exc

    current_module = sys.modules[__name__]
    for name in names:
        obj = getattr(mod, name, None)
        if obj is None:
            raise AttributeError(
                f"absstring_shims.{module_rel_name} does not export '{name}'"
            )
        setattr(current_module, name, obj)
        __all__.append(name)

    setattr(current_module, module_rel_name, mod)
    if module_rel_name not in __all__:
        __all__.append(module_rel_name)


for _mod, _names in _CORE_MODULES.items():
    _import_names(_mod, _names)

del _mod, _names

# ---------------------------------------------------------------------------
# Package-level utilities
# ---------------------------------------------------------------------------


def list_submodules() -> List[str]:
    """Return the names of all submodules in the package."""
    return sorted(_CORE_MODULES.keys())


def substrate_info() -> dict:
    """Return a dict of metadata about the loaded package.

    Useful for logging/diagnostics inside a checker driver.
    """
    loaded = []
    missing = []
    for mod_name in list_submodules():
        if f"{__name__}.{mod_name}" in sys.modules:
            loaded.append(mod_name)
        else:
            missing.append(mod_name)

    return {
        "package": __name__,
        "version": __version__,
        "python": sys.version,
        "loaded_submodules": loaded,
        "missing_submodules": missing,
        "all_exports": list(__all__),
    }


__all__ += ["list_submodules", "substrate_info", "__version__"]

# ---------------------------------------------------------------------------
# TYPE_CHECKING block — full visibility for IDEs and type checkers
# ---------------------------------------------------------------------------

if TYPE_CHECKING:
    from .errors import (
        AbstractStringError as AbstractStringError,
        PreconditionError as PreconditionError,
        UnexpectedTopError as UnexpectedTopError,
        DomainInvariantError as DomainInvariantError,
        BrickBoundsError as BrickBoundsError,
        SerializationError as SerializationError,
        ConfigurationError as ConfigurationError,
    )
    from .abstract_domains import (
        Tag as Tag,
        AbstractDomain as AbstractDomain,
        HasTop as HasTop,
        HasByteSize as HasByteSize,
        RegisterDomain as RegisterDomain,
        StringDomain as StringDomain,
        merge_all as merge_all,
    )
    from .character_inclusion import CharacterInclusionDomain as CharacterInclusionDomain
    from .string_length import StringLengthDomain as StringLengthDomain
    from .bricks import (
        Brick as Brick,
        BrickDomain as BrickDomain,
        BricksDomain as BricksDomain,
    )
    from .state import State as State
    from .memory_image import (
        MemorySegment as MemorySegment,
        RuntimeMemoryImage as RuntimeMemoryImage,
    )
    from .graph import (
        Graph as Graph,
        NodeKind as NodeKind,
        EdgeKind as EdgeKind,
        build_program_cfg as build_program_cfg,
    )
    from .fixpoint import (
        Computation as Computation,
        CallFlowCombinator as CallFlowCombinator,
    )
    from .config import AnalysisConfig as AnalysisConfig
    from .diagnostics import (
        LogLevel as LogLevel,
        LogMessage as LogMessage,
        CweWarning as CweWarning,
    )
    from .context import Context as Context
    from .analysis import (
        AnalysisResults as AnalysisResults,
        CweModule as CweModule,
        ModuleRegistry as ModuleRegistry,
        AbstractString as AbstractString,
        ABSTRACT_STRING_MODULE as ABSTRACT_STRING_MODULE,
        default_registry as default_registry,
        extract_abstract_string_analysis_results as extract_abstract_string_analysis_results,
    )
