"""
absstring_shims/diagnostics.py
══════════════════════════════

Records an analysis module hands back to the surrounding checker.

    LogMessage   : what the module did (debug / info / error), optionally
                   tied to a term of the program.
    CweWarning   : a finding: which weakness, where in the binary, and why.

Both serialize to plain JSON objects, one per line, so a driver can stream
them.  They are *results*, separate from the Python ``logging`` stream the
package writes its own traces to.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from absstring_shims.ir import Tid


class LogLevel(Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    ERROR = "ERROR"


@dataclass(frozen=True)
class LogMessage:
    """
    A single log record.

    Attributes
    ----------
    text     : Human-readable message
    level    : LogLevel
    location : Term the message is about, if any
    source   : Name of the module that produced it
    """
    text: str
    level: LogLevel = LogLevel.INFO
    location: Optional[Tid] = None
    source: Optional[str] = None

    @classmethod
    def new_debug(cls, text: str) -> LogMessage:
        return cls(text, LogLevel.DEBUG)

    @classmethod
    def new_info(cls, text: str) -> LogMessage:
        return cls(text, LogLevel.INFO)

    @classmethod
    def new_error(cls, text: str) -> LogMessage:
        return cls(text, LogLevel.ERROR)

    def source_module(self, source: str) -> LogMessage:
        return replace(self, source=source)

    def at(self, location: Tid) -> LogMessage:
        return replace(self, location=location)

    def to_json(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"text": self.text, "level": self.level.value}
        if self.location is not None:
            result["location"] = {
                "id": self.location.id,
                "address": self.location.address,
            }
        if self.source is not None:
            result["source"] = self.source
        return result

    def to_json_str(self) -> str:
        return json.dumps(self.to_json())

    def __str__(self) -> str:
        prefix = f"{self.level.value}: "
        if self.source:
            prefix += f"{self.source}: "
        if self.location is not None:
            prefix += f"@ {self.location.address}: "
        return prefix + self.text


@dataclass(frozen=True)
class CweWarning:
    """
    A weakness found in the analysed binary.

    Attributes
    ----------
    name        : Weakness identifier, e.g. "CWE134"
    version     : Version of the module that found it
    description : Human-readable explanation
    addresses   : Binary addresses involved, primary one first
    tids        : Term identifiers involved
    symbols     : Names of the functions involved
    other       : Free-form extra evidence, one list of strings per item
    """
    name: str
    version: str
    description: str
    addresses: Tuple[str, ...] = ()
    tids: Tuple[str, ...] = ()
    symbols: Tuple[str, ...] = ()
    other: Tuple[Tuple[str, ...], ...] = field(default_factory=tuple)

    def to_json(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "addresses": list(self.addresses),
            "tids": list(self.tids),
            "symbols": list(self.symbols),
            "other": [list(item) for item in self.other],
        }

    def to_json_str(self) -> str:
        return json.dumps(self.to_json())

    def __str__(self) -> str:
        return f"[{self.name}] ({self.version}) {self.description}"


__all__ = ["LogLevel", "LogMessage", "CweWarning"]
