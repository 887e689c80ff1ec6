"""
absstring_shims/memory_image.py
═══════════════════════════════

The bytes of the loaded binary, as far as the analysis needs them: which
addresses are read-only, and the NUL-terminated strings stored there.

String constants in read-only segments are the seeds of the analysis; a
pointer into writable memory may be overwritten at runtime and is not
trusted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional


@dataclass(frozen=True)
class MemorySegment:
    base_address: int
    data: bytes
    readonly: bool = True

    @property
    def end_address(self) -> int:
        return self.base_address + len(self.data)

    def contains(self, address: int) -> bool:
        return self.base_address <= address < self.end_address


@dataclass
class RuntimeMemoryImage:
    """
    Examples
    --------
    >>> image = RuntimeMemoryImage.from_segments(
    ...     [MemorySegment(0x1000, b"hi\\x00there\\x00")])
    >>> image.read_string_until_null_terminator(0x1003)
    'there'
    """
    segments: List[MemorySegment] = field(default_factory=list)
    encoding: str = "utf-8"

    @classmethod
    def from_segments(cls, segments: Iterable[MemorySegment]) -> RuntimeMemoryImage:
        return cls(sorted(segments, key=lambda s: s.base_address))

    @classmethod
    def empty(cls) -> RuntimeMemoryImage:
        return cls()

    def add_segment(self, segment: MemorySegment) -> None:
        self.segments.append(segment)
        self.segments.sort(key=lambda s: s.base_address)

    def find_segment(self, address: int) -> Optional[MemorySegment]:
        for segment in self.segments:
            if segment.contains(address):
                return segment
        return None

    def is_address_readonly(self, address: int) -> bool:
        segment = self.find_segment(address)
        return segment is not None and segment.readonly

    def read_string_until_null_terminator(self, address: int) -> Optional[str]:
        """The string starting at ``address``, or ``None``.

        ``None`` when the address is unmapped, the segment holds no NUL
        byte after ``address``, or the bytes do not decode.
        """
        segment = self.find_segment(address)
        if segment is None:
            return None
        start = address - segment.base_address
        end = segment.data.find(b"\x00", start)
        if end < 0:
            return None
        try:
            return segment.data[start:end].decode(self.encoding)
        except UnicodeDecodeError:
            return None

    def read_constant_string(self, address: int) -> Optional[str]:
        """Like :meth:`read_string_until_null_terminator`, read-only memory only."""
        if not self.is_address_readonly(address):
            return None
        return self.read_string_until_null_terminator(address)


__all__ = ["MemorySegment", "RuntimeMemoryImage"]
