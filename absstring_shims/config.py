"""
absstring_shims/config.py
═════════════════════════

Parameters of one abstract string analysis run.

The surrounding checker hands every module a JSON object of parameters;
:meth:`AnalysisConfig.from_params` validates it:

    {
        "domain":           "bricks" | "character_inclusion" | "string_length",
        "max_steps":        10000,
        "normalize_bricks": true
    }

Missing keys take their defaults; unknown keys are kept in ``options`` and
can be read with :meth:`AnalysisConfig.get_option`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Type

from absstring_shims.abstract_domains import StringDomain
from absstring_shims.bricks import BricksDomain
from absstring_shims.character_inclusion import CharacterInclusionDomain
from absstring_shims.errors import ConfigurationError
from absstring_shims.fixpoint import DEFAULT_MAX_STEPS
from absstring_shims.string_length import StringLengthDomain

DOMAINS: Dict[str, Type[StringDomain]] = {
    "bricks": BricksDomain,
    "character_inclusion": CharacterInclusionDomain,
    "string_length": StringLengthDomain,
}


@dataclass(frozen=True)
class AnalysisConfig:
    domain: str = "bricks"
    max_steps: int = DEFAULT_MAX_STEPS
    normalize_bricks: bool = True
    options: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.domain, str):
            raise ConfigurationError(f"domain must be a string, got {self.domain!r}")
        if self.domain not in DOMAINS:
            raise ConfigurationError(
                f"unknown string domain {self.domain!r}; "
                f"expected one of {sorted(DOMAINS)}"
            )
        if isinstance(self.max_steps, bool) or not isinstance(self.max_steps, int):
            raise ConfigurationError(
                f"max_steps must be an integer, got {self.max_steps!r}"
            )
        if self.max_steps <= 0:
            raise ConfigurationError(f"max_steps must be positive, got {self.max_steps}")

    @classmethod
    def from_params(cls, params: Optional[Mapping[str, Any]]) -> AnalysisConfig:
        if params is None:
            return cls()
        if not isinstance(params, Mapping):
            raise ConfigurationError(
                f"analysis parameters must be a JSON object, got {type(params).__name__}"
            )
        options = dict(params)
        normalize = options.pop("normalize_bricks", True)
        if not isinstance(normalize, bool):
            raise ConfigurationError(
                f"normalize_bricks must be a boolean, got {normalize!r}"
            )
        return cls(
            domain=options.pop("domain", "bricks"),
            max_steps=options.pop("max_steps", DEFAULT_MAX_STEPS),
            normalize_bricks=normalize,
            options=options,
        )

    @property
    def domain_type(self) -> Type[StringDomain]:
        return DOMAINS[self.domain]

    def get_option(self, key: str, default: Any = None) -> Any:
        return self.options.get(key, default)


__all__ = ["DOMAINS", "AnalysisConfig"]
