"""Import, inheritance and linking analysis across a multi-file project.

Answers, for one target: which files does its file pull in (transitively),
which contracts does it extend, and which files must be handed to the
compiler together to build it standalone.

All traversals are iterative worklists with visited sets, so import cycles
terminate and inheritance cycles are detected instead of looped over. Node
order is discovery order, which keeps linking inputs reproducible.
"""

from __future__ import annotations

import logging
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator

from solstatic.core.ast_analyzer import TargetMetadata
from solstatic.core.errors import (
    AmbiguousTargetError,
    InheritanceCycleError,
    UnknownTargetError,
    UnresolvedParentError,
)
from solstatic.core.types import TargetKind
from solstatic.ingestion.import_resolver import ImportResolver
from solstatic.ingestion.source_loader import canonical_path

if TYPE_CHECKING:
    from solstatic.core.target_pool import TargetPool

logger = logging.getLogger(__name__)


# ── Graph Structures ─────────────────────────────────────────────────────────


class DirectedGraph:
    """Directed graph with insertion-ordered nodes and de-duplicated edges."""

    def __init__(self, root: str) -> None:
        self.root = root
        self._nodes: dict[str, None] = {}
        self._outgoing: dict[str, list[str]] = defaultdict(list)
        self.edges: list[tuple[str, str]] = []
        self.add_node(root)

    def add_node(self, node: str) -> None:
        self._nodes.setdefault(node, None)

    def add_edge(self, source: str, target: str) -> None:
        self.add_node(source)
        self.add_node(target)
        if target not in self._outgoing[source]:
            self._outgoing[source].append(target)
            self.edges.append((source, target))

    def get_nodes(self) -> list[str]:
        return list(self._nodes)

    def successors(self, node: str) -> list[str]:
        return list(self._outgoing.get(node, []))

    def has_edge(self, source: str, target: str) -> bool:
        return target in self._outgoing.get(source, [])

    def __contains__(self, node: object) -> bool:
        return node in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._nodes))

    def find_cycle(self) -> list[str] | None:
        """Return one cycle as ``[a, b, ..., a]``, or None if the graph is acyclic."""
        WHITE, GRAY, BLACK = 0, 1, 2
        color = {node: WHITE for node in self._nodes}

        for start in self._nodes:
            if color[start] != WHITE:
                continue
            path = [start]
            stack = [iter(self._outgoing.get(start, []))]
            color[start] = GRAY
            while stack:
                child = next(stack[-1], None)
                if child is None:
                    color[path.pop()] = BLACK
                    stack.pop()
                elif color[child] == GRAY:
                    return path[path.index(child):] + [child]
                elif color[child] == WHITE:
                    color[child] = GRAY
                    path.append(child)
                    stack.append(iter(self._outgoing.get(child, [])))
        return None


class ImportGraph(DirectedGraph):
    """Edge A → B: file A imports file B. Nodes are canonical file paths."""


class InheritanceGraph(DirectedGraph):
    """Edge Child → Parent over target names."""


@dataclass(frozen=True)
class ContextEntry:
    path: str
    metadata: TargetMetadata


class Context:
    """Merged target name → declaration mapping across an import closure."""

    def __init__(self, root: str) -> None:
        self.root = root
        self._entries: dict[str, ContextEntry] = {}

    def add(self, name: str, entry: ContextEntry) -> None:
        self._entries.setdefault(name, entry)

    def get(self, name: str) -> ContextEntry | None:
        return self._entries.get(name)

    def __getitem__(self, name: str) -> ContextEntry:
        return self._entries[name]

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def items(self) -> list[tuple[str, ContextEntry]]:
        return list(self._entries.items())

    def paths(self) -> list[str]:
        seen: dict[str, None] = {}
        for entry in self._entries.values():
            seen.setdefault(entry.path, None)
        return list(seen)


@dataclass(frozen=True)
class LinkingGraph:
    """Files to compile together to build one target standalone."""
    target: str
    files: tuple[str, ...]
    chain: tuple[str, ...] = ()  # the target and its ancestors, nearest first
    libraries: tuple[str, ...] = ()

    def __contains__(self, path: object) -> bool:
        return path in self.files

    def __iter__(self) -> Iterator[str]:
        return iter(self.files)

    def __len__(self) -> int:
        return len(self.files)


# ── Analyzer ─────────────────────────────────────────────────────────────────


class DependencyAnalyzer:
    """Dependency analysis on top of a target pool's memoised artifacts."""

    def __init__(self, pool: TargetPool, resolver: ImportResolver | None = None) -> None:
        self.pool = pool
        self.resolver = resolver or pool.import_resolver
        self._aliases: dict[str, dict[str, str]] = {}

    def analyze_imports(self, path: str) -> ImportGraph:
        """Breadth-first closure of ``path``'s imports, root included."""
        root = canonical_path(path)
        graph = ImportGraph(root)
        queue = deque([root])

        while queue:
            current = queue.popleft()
            tree = self.pool.get_ast(current)
            for directive in self.pool.target_map_builder.extract_imports(tree):
                dependency = self.resolver.resolve(directive.path, current)
                discovered = dependency not in graph
                graph.add_edge(current, dependency)
                if discovered:
                    queue.append(dependency)

        logger.debug("Import closure has %d files", len(graph), extra={"path": root})
        return graph

    def analyze_context(self, import_graph: ImportGraph) -> Context:
        """Merge the target maps of every file in the import graph.

        Raises:
            AmbiguousTargetError: two distinct files declare the same name.
        """
        context = Context(import_graph.root)
        for path in import_graph.get_nodes():
            for name, metadata in self.pool.get_target_map(path).items():
                existing = context.get(name)
                if existing is not None and existing.path != path:
                    raise AmbiguousTargetError(name, [existing.path, path])
                context.add(name, ContextEntry(path, metadata))
        return context

    def analyze_inheritance(self, context: Context, target_name: str) -> InheritanceGraph:
        """Resolve ``target_name``'s declared parents, transitively.

        Raises:
            UnknownTargetError: the target is not in the context.
            UnresolvedParentError: a parent name is not in the context.
            InheritanceCycleError: the declared parents form a cycle.
        """
        if target_name not in context:
            raise UnknownTargetError(context.root, target_name)

        graph = InheritanceGraph(target_name)
        visited = {target_name}
        queue = deque([target_name])

        while queue:
            child = queue.popleft()
            entry = context[child]
            for declared in entry.metadata.bases:
                parent = self._resolve_parent(context, child, entry, declared)
                graph.add_edge(child, parent)
                if parent not in visited:
                    visited.add(parent)
                    queue.append(parent)

        cycle = graph.find_cycle()
        if cycle:
            raise InheritanceCycleError(cycle)
        return graph

    def analyze_linking(
        self, import_graph: ImportGraph, context: Context, target_name: str
    ) -> LinkingGraph:
        """Own file, then the import closure, then any ancestor file not yet present."""
        inheritance = self.analyze_inheritance(context, target_name)
        libraries = self.analyze_libraries(context, target_name)

        files: dict[str, None] = {context[target_name].path: None}
        for path in import_graph.get_nodes():
            files.setdefault(path, None)
        for ancestor in inheritance.get_nodes():
            files.setdefault(context[ancestor].path, None)

        linked_libraries: dict[str, None] = {}
        for names in libraries.values():
            for name in names:
                linked_libraries.setdefault(name, None)
                files.setdefault(context[name].path, None)

        return LinkingGraph(
            target=target_name,
            files=tuple(files),
            chain=tuple(inheritance.get_nodes()),
            libraries=tuple(linked_libraries),
        )

    def analyze_libraries(self, context: Context, target_name: str) -> dict[str, list[str]]:
        """Libraries used by each target on the inheritance chain, and by those libraries.

        A library counts as used when named in ``using L for T`` or called as
        ``L.f(...)``.
        """
        queue = deque(self.analyze_inheritance(context, target_name).get_nodes())
        result: dict[str, list[str]] = {}

        while queue:
            name = queue.popleft()
            if name in result:
                continue
            entry = context[name]
            tree = self.pool.get_ast(entry.path)
            candidates = list(entry.metadata.using_for)
            candidates += self.pool.target_map_builder.extract_library_calls(tree, entry.metadata.node)

            used: list[str] = []
            for candidate in candidates:
                library = candidate.rsplit(".", 1)[-1]
                library_entry = context.get(library)
                if (
                    library_entry is None
                    or library_entry.metadata.kind != TargetKind.LIBRARY
                    or library == name
                    or library in used
                ):
                    continue
                used.append(library)
                queue.append(library)
            result[name] = used

        return result

    # ── Helpers ──────────────────────────────────────────────────────

    def _resolve_parent(self, context: Context, child: str, entry: ContextEntry, declared: str) -> str:
        # Qualified names (``Unit.Base``) resolve by their last segment
        name = declared.rsplit(".", 1)[-1]
        if "." not in declared:
            name = self._symbol_aliases(entry.path).get(name, name)
        if name not in context:
            raise UnresolvedParentError(child, declared, entry.path)
        return name

    def _symbol_aliases(self, path: str) -> dict[str, str]:
        """``import {A as B}`` aliases declared in ``path``: local → imported."""
        if path not in self._aliases:
            tree = self.pool.get_ast(path)
            aliases: dict[str, str] = {}
            for directive in self.pool.target_map_builder.extract_imports(tree):
                for local, foreign in directive.symbol_aliases:
                    if local != foreign:
                        aliases[local] = foreign
            self._aliases[path] = aliases
        return self._aliases[path]
