"""Shared fixtures for the solstatic test suite."""

from __future__ import annotations

import json
import threading
import time
from pathlib import Path
from typing import Any, Callable

import pytest

from solstatic.core.ast_builder import ASTBuilder, SyntaxTree
from solstatic.core.config import Settings, get_settings
from solstatic.core.errors import ParseError
from solstatic.core.target_pool import TargetPool
from solstatic.ingestion.solidity_parser import SourceParser
from solstatic.tests.ast_factory import Node, source_text, source_unit


# ── Parser Test Double ───────────────────────────────────────────────────────


class JsonSourceParser(SourceParser):
    """Parser whose "source code" is a JSON-encoded SourceUnit.

    Counts invocations so tests can assert how often parsing happened.
    """

    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay
        self.calls = 0
        self._lock = threading.Lock()

    def parse(self, source_code: str, source_name: str = "Contract.sol") -> dict[str, Any]:
        with self._lock:
            self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        try:
            return json.loads(source_code)
        except json.JSONDecodeError as exc:
            raise ParseError(source_name, [str(exc)]) from exc


# ── Settings ─────────────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    """Keep the cached settings singleton from leaking between tests."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(_env_file=None, base_path=str(tmp_path), include_paths=[])


# ── Parsing ──────────────────────────────────────────────────────────────────


@pytest.fixture
def json_parser() -> JsonSourceParser:
    return JsonSourceParser()


@pytest.fixture
def ast_builder(json_parser: JsonSourceParser) -> ASTBuilder:
    return ASTBuilder(json_parser)


@pytest.fixture
def make_tree(ast_builder: ASTBuilder) -> Callable[..., SyntaxTree]:
    """Build a SyntaxTree straight from AST nodes."""

    def _make(*nodes: Node) -> SyntaxTree:
        return ast_builder.build(source_text(*nodes), "Test.sol")

    return _make


# ── Projects on disk ─────────────────────────────────────────────────────────


@pytest.fixture
def write_unit(tmp_path: Path) -> Callable[..., str]:
    """Write a source unit built from AST nodes to ``tmp_path / relpath``."""

    def _write(relpath: str, *nodes: Node) -> str:
        path = tmp_path / relpath
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(source_unit(*nodes)), encoding="utf-8")
        return str(path)

    return _write


@pytest.fixture
def pool(ast_builder: ASTBuilder, settings: Settings) -> TargetPool:
    return TargetPool(ast_builder=ast_builder, settings=settings)
