# absstring_shims/errors.py
"""
Error types for the abstract string analysis core.

Error Hierarchy:
────────────────
┌──────────────────────────────────────────────────────────────────────┐
│  AbstractStringError (base)                                          │
│  ├── PreconditionError      - defects; never recovered from          │
│  │   ├── UnexpectedTopError - unwrapping a Value out of a Top        │
│  │   └── DomainInvariantError - value constructed in a broken shape  │
│  │       └── BrickBoundsError - brick with min > max or min < 0      │
│  ├── SerializationError     - malformed tagged payload               │
│  └── ConfigurationError     - invalid analysis parameters            │
└──────────────────────────────────────────────────────────────────────┘

Operations that have no meaning on strings are *not* errors: domains
answer them with the correctly sized Top value.  Unreachable control
transitions are *not* errors either: transfer functions return ``None``.

Error Codes:
────────────
  - ASTR-1xxx: precondition violations
  - ASTR-2xxx: serialization
  - ASTR-3xxx: configuration
"""

from __future__ import annotations

from typing import Any, Optional


class AbstractStringError(Exception):
    """Base class of every error raised by :mod:`absstring_shims`."""

    code: str = "ASTR-0000"

    def __init__(self, message: str, *, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


# ═══════════════════════════════════════════════════════════════════════════
# PRECONDITION VIOLATIONS
# ═══════════════════════════════════════════════════════════════════════════

class PreconditionError(AbstractStringError):
    """A caller broke a documented precondition.

    Continuing with a made-up value would silently break soundness, so
    these propagate to the top of the analysis.
    """

    code = "ASTR-1000"


class UnexpectedTopError(PreconditionError):
    """``unwrap_value()`` was called on a Top-tagged domain value."""

    code = "ASTR-1001"

    def __init__(self, domain: str) -> None:
        super().__init__(f"Unexpected {domain} type: cannot unwrap a Top value")
        self.domain = domain


class DomainInvariantError(PreconditionError):
    """A domain value was constructed in a shape its invariant forbids."""

    code = "ASTR-1100"


class BrickBoundsError(DomainInvariantError):
    code = "ASTR-1101"

    def __init__(self, min_: int, max_: int) -> None:
        super().__init__(
            f"Brick repetition bounds must satisfy 0 <= min <= max, "
            f"got [{min_}, {max_}]"
        )
        self.min = min_
        self.max = max_


# ═══════════════════════════════════════════════════════════════════════════
# SERIALIZATION / CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════

class SerializationError(AbstractStringError):
    """A tagged encoding could not be decoded into a domain value."""

    code = "ASTR-2000"

    def __init__(self, domain: str, payload: Any) -> None:
        super().__init__(f"Cannot decode {domain} from {payload!r}")
        self.domain = domain
        self.payload = payload


class ConfigurationError(AbstractStringError):
    code = "ASTR-3000"


__all__ = [
    "AbstractStringError",
    "PreconditionError",
    "UnexpectedTopError",
    "DomainInvariantError",
    "BrickBoundsError",
    "SerializationError",
    "ConfigurationError",
]
