"""Shared enums and types used across the engine."""

from __future__ import annotations

import enum
from dataclasses import dataclass


# ── Enums ────────────────────────────────────────────────────────────────────


class TargetKind(str, enum.Enum):
    """Kind of contract-like declaration."""

    CONTRACT = "contract"
    LIBRARY = "library"
    INTERFACE = "interface"


class Visibility(str, enum.Enum):
    PUBLIC = "public"
    EXTERNAL = "external"
    INTERNAL = "internal"
    PRIVATE = "private"


class StateMutability(str, enum.Enum):
    PURE = "pure"
    VIEW = "view"
    NONPAYABLE = "nonpayable"
    PAYABLE = "payable"


class FunctionKind(str, enum.Enum):
    FUNCTION = "function"
    CONSTRUCTOR = "constructor"
    FALLBACK = "fallback"
    RECEIVE = "receive"
    MODIFIER = "modifier"


class NodeKind(str, enum.Enum):
    """Role of a node in a function's control-flow graph."""

    ENTRY = "entry"
    BLOCK = "block"
    BRANCH = "branch"
    TRY = "try"
    RETURN = "return"
    REVERT = "revert"
    EXIT = "exit"


class EdgeKind(str, enum.Enum):
    """How control moves along a CFG edge."""

    FALLTHROUGH = "fallthrough"
    TRUE = "true"
    FALSE = "false"
    EXCEPTION = "exception"


class BranchOutcome(str, enum.Enum):
    """The two outcomes of one decision."""

    TRUE = "true"
    FALSE = "false"

    @property
    def edge_kind(self) -> EdgeKind:
        return EdgeKind.TRUE if self is BranchOutcome.TRUE else EdgeKind.FALSE


# ── Source locations ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SourceLocation:
    """Source span from an AST ``src`` field (``offset:length:fileIndex``).

    Offsets are UTF-8 byte offsets, as produced by solc.
    """
    offset: int = 0
    length: int = 0
    file_index: int = 0
    line: int = 0
    end_line: int = 0
