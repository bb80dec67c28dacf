"""Target pool: the memoising entry point of the analysis engine.

Every artifact is computed at most once per key and shared afterwards:

    path            → source text
    path            → syntax tree
    path            → target map (targets and their function maps)
    (path, target)  → control-flow graph
    (path, target)  → assembled Target

Usage:
    pool = TargetPool()
    target = pool.create_target("contracts/Token.sol", "Token")
    cfg = pool.get_cfg("contracts/Token.sol", "Token")  # same instance as target's
"""

from __future__ import annotations

import logging
import time
from typing import Any

from solstatic.core.ast_analyzer import FunctionMetadata, TargetMap, TargetMapBuilder, TargetMetadata
from solstatic.core.ast_builder import ASTBuilder, SyntaxTree
from solstatic.core.cache import Memo
from solstatic.core.cfg import CFGBuilder, TargetCFG
from solstatic.core.config import Settings, get_settings
from solstatic.core.dependency import DependencyAnalyzer
from solstatic.core.errors import UnknownTargetError
from solstatic.core.target import Target
from solstatic.ingestion.import_resolver import ImportResolver
from solstatic.ingestion.source_loader import SourceLoader, canonical_path

logger = logging.getLogger(__name__)


class TargetPool:
    """Memoised access to sources, ASTs, target maps, CFGs and targets.

    Collaborators are injected; omitted ones are built from settings.
    """

    def __init__(
        self,
        source_loader: SourceLoader | None = None,
        ast_builder: ASTBuilder | None = None,
        target_map_builder: TargetMapBuilder | None = None,
        cfg_builder: CFGBuilder | None = None,
        import_resolver: ImportResolver | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.source_loader = source_loader or SourceLoader()
        self.ast_builder = ast_builder or ASTBuilder()
        self.target_map_builder = target_map_builder or TargetMapBuilder()
        self.cfg_builder = cfg_builder or CFGBuilder(
            settings.cfg_unsupported_policy, self.target_map_builder
        )
        self.import_resolver = import_resolver or ImportResolver(
            base_path=settings.base_path,
            include_paths=settings.include_paths,
            remappings=settings.remappings,
        )

        self._sources: Memo[str, str] = Memo("source")
        self._asts: Memo[str, SyntaxTree] = Memo("ast")
        self._target_maps: Memo[str, TargetMap] = Memo("target_map")
        self._cfgs: Memo[tuple[str, str], TargetCFG] = Memo("cfg")
        self._targets: Memo[tuple[str, str], Target] = Memo("target")

    # ── Per-file artifacts ───────────────────────────────────────────

    def get_source(self, path: str) -> str:
        """Raw source text of ``path``. Raises SourceLoadError on I/O failure."""
        key = canonical_path(path)
        return self._sources.get_or_compute(key, lambda: self.source_loader.load(key))

    def get_ast(self, path: str) -> SyntaxTree:
        """Syntax tree of ``path``. Raises ParseError on invalid source."""
        key = canonical_path(path)
        return self._asts.get_or_compute(
            key, lambda: self.ast_builder.build(self.get_source(key), key)
        )

    def get_target_map(self, path: str) -> dict[str, TargetMetadata]:
        """Every contract, library and interface declared in ``path``."""
        return self._target_map(canonical_path(path)).targets

    def get_function_map(self, path: str, target_name: str) -> dict[str, FunctionMetadata]:
        """Functions of ``target_name`` in ``path``. Raises UnknownTargetError."""
        key = canonical_path(path)
        functions = self._target_map(key).functions
        if target_name not in functions:
            raise UnknownTargetError(key, target_name)
        return functions[target_name]

    def _target_map(self, key: str) -> TargetMap:
        return self._target_maps.get_or_compute(
            key, lambda: self.target_map_builder.build(self.get_ast(key))
        )

    # ── Per-target artifacts ─────────────────────────────────────────

    def get_cfg(self, path: str, target_name: str) -> TargetCFG:
        """Control-flow graph of ``target_name``, shared with its assembled Target."""
        key = (canonical_path(path), target_name)
        target = self._targets.get(key)
        if target is not None:
            return target.control_flow_graph
        return self._cfgs.get_or_compute(key, lambda: self._build_cfg(*key))

    def create_target(self, path: str, target_name: str) -> Target:
        """Assemble the Target for ``target_name``; idempotent."""
        key = (canonical_path(path), target_name)
        return self._targets.get_or_compute(key, lambda: self._assemble(*key))

    def get_import_dependencies(
        self, path: str, target_name: str
    ) -> tuple[dict[str, str], dict[str, list[str]]]:
        """Return ``(imports_map, dependency_map)`` for ``target_name``.

        ``imports_map`` maps every target name in the target's context to its
        declaring file; ``dependency_map`` maps each target on the inheritance
        chain, and each library reached from it, to the libraries it uses.
        """
        target = self.create_target(path, target_name)
        imports_map = {name: entry.path for name, entry in target.context.items()}
        dependency_map = DependencyAnalyzer(self).analyze_libraries(target.context, target_name)
        return imports_map, dependency_map

    def stats(self) -> dict[str, dict[str, Any]]:
        """Hit/miss/size counters of every cache."""
        return {
            memo.name: memo.stats().as_dict()
            for memo in (self._sources, self._asts, self._target_maps, self._cfgs, self._targets)
        }

    # ── Builders ─────────────────────────────────────────────────────

    def _build_cfg(self, path: str, target_name: str) -> TargetCFG:
        functions = self.get_function_map(path, target_name)
        started = time.perf_counter()
        cfg = self.cfg_builder.build(self.get_ast(path), target_name, functions)
        logger.debug(
            "Built CFG with %d nodes",
            cfg.node_count,
            extra={
                "path": path,
                "target": target_name,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        return cfg

    def _assemble(self, path: str, target_name: str) -> Target:
        started = time.perf_counter()
        functions = self.get_function_map(path, target_name)
        cfg = self.get_cfg(path, target_name)

        analyzer = DependencyAnalyzer(self)
        import_graph = analyzer.analyze_imports(path)
        context = analyzer.analyze_context(import_graph)
        linking_graph = analyzer.analyze_linking(import_graph, context, target_name)

        target = Target(
            path=path,
            name=target_name,
            source=self.get_source(path),
            abstract_syntax_tree=self.get_ast(path),
            context=context,
            functions=functions,
            control_flow_graph=cfg,
            linking_graph=linking_graph,
            dependencies=tuple(import_graph.get_nodes()),
        )
        logger.info(
            "Assembled target (%d functions, %d linked files)",
            len(functions),
            len(linking_graph),
            extra={
                "path": path,
                "target": target_name,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        return target
