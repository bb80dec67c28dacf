"""Source text → syntax tree.

The builder itself holds no cache; memoisation is the target pool's job.
It is referentially transparent: the same source always yields an equal tree.
"""

from __future__ import annotations

import bisect
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Iterator

from solstatic.core.errors import ParseError
from solstatic.core.types import SourceLocation
from solstatic.ingestion.solidity_parser import SolcParser, SourceParser

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyntaxTree:
    """Parsed form of one source file. Shared read-only by every consumer."""
    root: dict[str, Any]
    source: str = field(repr=False)
    source_name: str = "Contract.sol"
    _line_starts: list[int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        encoded = self.source.encode("utf-8")
        starts = [0]
        pos = encoded.find(b"\n")
        while pos != -1:
            starts.append(pos + 1)
            pos = encoded.find(b"\n", pos + 1)
        object.__setattr__(self, "_line_starts", starts)

    @property
    def nodes(self) -> list[dict[str, Any]]:
        """Top-level declarations of the source unit."""
        return self.root.get("nodes", [])

    def line_of(self, offset: int) -> int:
        """1-based line number of a byte offset."""
        return bisect.bisect_right(self._line_starts, offset)

    def location(self, src: str | None) -> SourceLocation:
        """Parse an AST ``src`` field like ``'120:45:0'`` into a location."""
        parts = (src or "").split(":")
        if len(parts) < 3:
            return SourceLocation()
        offset, length, file_index = int(parts[0]), int(parts[1]), int(parts[2])
        if offset < 0:
            return SourceLocation(file_index=file_index)
        end_offset = offset + max(length - 1, 0)
        return SourceLocation(
            offset=offset,
            length=length,
            file_index=file_index,
            line=self.line_of(offset),
            end_line=self.line_of(end_offset),
        )

    def walk(self, node: dict[str, Any] | None = None) -> Iterator[dict[str, Any]]:
        """Pre-order walk over every AST node below ``node`` (default: root)."""
        stack = [node if node is not None else self.root]
        while stack:
            current = stack.pop()
            yield current
            children: list[dict[str, Any]] = []
            for key, value in current.items():
                if key in ("typeDescriptions", "documentation"):
                    continue
                if isinstance(value, dict) and "nodeType" in value:
                    children.append(value)
                elif isinstance(value, list):
                    children.extend(v for v in value if isinstance(v, dict) and "nodeType" in v)
            stack.extend(reversed(children))


class ASTBuilder:
    """Parse source text into a :class:`SyntaxTree` with a pluggable parser."""

    def __init__(self, parser: SourceParser | None = None) -> None:
        self.parser = parser or SolcParser()

    def build(self, source_code: str, source_name: str = "Contract.sol") -> SyntaxTree:
        """Parse ``source_code``.

        Raises:
            ParseError: the parser rejected the source or returned no SourceUnit.
        """
        started = time.perf_counter()
        root = self.parser.parse(source_code, source_name)

        if not isinstance(root, dict) or root.get("nodeType") != "SourceUnit":
            raise ParseError(source_name, ["parser did not return a SourceUnit"])

        logger.debug(
            "Parsed %s",
            source_name,
            extra={"duration_ms": round((time.perf_counter() - started) * 1000, 2)},
        )
        return SyntaxTree(root=root, source=source_code, source_name=source_name)
