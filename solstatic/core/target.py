"""Assembled analysis target."""

from __future__ import annotations

from dataclasses import dataclass, field

from solstatic.core.ast_analyzer import FunctionMetadata
from solstatic.core.ast_builder import SyntaxTree
from solstatic.core.cfg import TargetCFG
from solstatic.core.dependency import Context, LinkingGraph


@dataclass(frozen=True, eq=False)
class Target:
    """Everything a test generator needs about one contract.

    Built once per (path, name) by the target pool and shared by every
    caller afterwards; never mutated.
    """
    path: str
    name: str
    source: str = field(repr=False)
    abstract_syntax_tree: SyntaxTree = field(repr=False)
    context: Context = field(repr=False)
    functions: dict[str, FunctionMetadata] = field(repr=False)
    control_flow_graph: TargetCFG = field(repr=False)
    linking_graph: LinkingGraph = field(repr=False)
    # Canonical paths of every file in the import closure, root first
    dependencies: tuple[str, ...] = ()

    @property
    def key(self) -> tuple[str, str]:
        return self.path, self.name
