"""Tests for solstatic.ingestion.solidity_parser.

The SolcParser unit tests patch ``solcx``; the end-to-end test runs only
when a solc binary is installed.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
import solcx
from solcx.exceptions import SolcError, SolcNotInstalled

from solstatic.core.ast_analyzer import TargetMapBuilder
from solstatic.core.ast_builder import ASTBuilder
from solstatic.core.cfg import CFGBuilder
from solstatic.core.errors import ParseError
from solstatic.core.types import NodeKind
from solstatic.ingestion.solidity_parser import SolcParser

SOURCE = """// SPDX-License-Identifier: MIT
pragma solidity ^0.8.0;

contract Counter {
    function f(uint x) public {
        if (x > 0) {
            return;
        }
    }
}
"""

AST = {"nodeType": "SourceUnit", "nodes": []}


def _output(source_name="Counter.sol", errors=()):
    return {
        "errors": list(errors),
        "sources": {source_name: {"id": 0, "ast": AST}},
    }


@pytest.fixture
def mock_solcx():
    with patch("solstatic.ingestion.solidity_parser.solcx") as mocked:
        mocked.get_installed_solc_versions.return_value = ["0.8.19", "0.7.6"]
        mocked.set_solc_version_pragma.return_value = "0.8.19"
        mocked.compile_standard.return_value = _output()
        yield mocked


class TestSolcParser:

    def test_parse_stops_after_parsing(self, mock_solcx):
        ast = SolcParser(auto_install=False).parse(SOURCE, "Counter.sol")
        assert ast == AST

        standard_input = mock_solcx.compile_standard.call_args.args[0]
        assert standard_input["settings"]["stopAfter"] == "parsing"
        assert standard_input["sources"] == {"Counter.sol": {"content": SOURCE}}
        assert mock_solcx.compile_standard.call_args.kwargs["solc_version"] == "0.8.19"

    def test_configured_version_wins(self, mock_solcx):
        SolcParser(version="0.7.6", auto_install=False).parse(SOURCE, "Counter.sol")
        assert mock_solcx.compile_standard.call_args.kwargs["solc_version"] == "0.7.6"
        mock_solcx.set_solc_version_pragma.assert_not_called()

    def test_configured_version_installed_on_demand(self, mock_solcx):
        SolcParser(version="0.8.26", auto_install=True).parse(SOURCE, "Counter.sol")
        mock_solcx.install_solc.assert_called_once_with("0.8.26")
        assert mock_solcx.compile_standard.call_args.kwargs["solc_version"] == "0.8.26"

    def test_caret_pragma_resolved_by_solcx(self, mock_solcx):
        SolcParser(auto_install=False).parse(SOURCE, "Counter.sol")
        mock_solcx.set_solc_version_pragma.assert_called_once_with("^0.8.0", silent=True)

    def test_range_pragma_passed_whole(self, mock_solcx):
        mock_solcx.set_solc_version_pragma.return_value = "0.7.6"
        source = SOURCE.replace("^0.8.0", ">=0.4.22  <0.8.0")
        SolcParser(auto_install=False).parse(source, "Counter.sol")
        mock_solcx.set_solc_version_pragma.assert_called_once_with(">=0.4.22 <0.8.0", silent=True)
        assert mock_solcx.compile_standard.call_args.kwargs["solc_version"] == "0.7.6"

    def test_falls_back_to_newest_installed(self, mock_solcx):
        mock_solcx.set_solc_version_pragma.side_effect = SolcNotInstalled("no match")
        source = SOURCE.replace("^0.8.0", "^0.8.26")
        SolcParser(auto_install=False).parse(source, "Counter.sol")
        assert mock_solcx.compile_standard.call_args.kwargs["solc_version"] == "0.8.19"
        mock_solcx.install_solc_pragma.assert_not_called()

    def test_auto_install(self, mock_solcx):
        mock_solcx.set_solc_version_pragma.side_effect = SolcNotInstalled("no match")
        mock_solcx.install_solc_pragma.return_value = "0.8.26"
        source = SOURCE.replace("^0.8.0", "^0.8.26")
        SolcParser(auto_install=True).parse(source, "Counter.sol")
        mock_solcx.install_solc_pragma.assert_called_once_with("^0.8.26")
        assert mock_solcx.compile_standard.call_args.kwargs["solc_version"] == "0.8.26"

    def test_no_compiler(self, mock_solcx):
        mock_solcx.get_installed_solc_versions.return_value = []
        with pytest.raises(SolcNotInstalled):
            SolcParser(auto_install=False).parse("contract A {}", "A.sol")
    def test_syntax_error_diagnostics(self, mock_solcx):
        mock_solcx.compile_standard.return_value = _output(errors=[
            {"severity": "warning", "formattedMessage": "Warning: unused"},
            {"severity": "error", "formattedMessage": "ParserError: Expected '{'"},
        ])
        with pytest.raises(ParseError) as exc_info:
            SolcParser(auto_install=False).parse(SOURCE, "Counter.sol")
        assert exc_info.value.diagnostics == ["ParserError: Expected '{'"]
        assert exc_info.value.source_name == "Counter.sol"

    def test_solc_failure(self, mock_solcx):
        mock_solcx.compile_standard.side_effect = SolcError(
            message="solc crashed",
            command=["solc", "--standard-json"],
            return_code=1,
            stdin_data="{}",
            stdout_data="",
            stderr_data="crash",
        )
        with pytest.raises(ParseError):
            SolcParser(auto_install=False).parse(SOURCE, "Counter.sol")

    def test_missing_ast(self, mock_solcx):
        mock_solcx.compile_standard.return_value = {"sources": {}}
        with pytest.raises(ParseError, match="no AST"):
            SolcParser(auto_install=False).parse(SOURCE, "Counter.sol")

    def test_detect_pragma(self):
        assert SolcParser._detect_pragma("pragma solidity >=0.6.0 <0.9.0;") == ">=0.6.0 <0.9.0"
        assert SolcParser._detect_pragma("pragma solidity ^0.8.0;") == "^0.8.0"
        assert SolcParser._detect_pragma("contract A {}") is None


def _modern_solc_installed() -> bool:
    versions = solcx.get_installed_solc_versions()
    return any(tuple(int(p) for p in str(v).split(".")[:2]) >= (0, 8) for v in versions)


@pytest.mark.skipif(not _modern_solc_installed(), reason="no solc >= 0.8 installed")
class TestSolcEndToEnd:

    def test_branch_and_exits(self):
        builder = ASTBuilder(SolcParser(auto_install=False))
        tree = builder.build(SOURCE, "Counter.sol")

        targets = TargetMapBuilder().build(tree)
        assert list(targets.targets) == ["Counter"]
        assert targets.functions["Counter"]["f"].signature == "f(uint256)"

        cfg = CFGBuilder("fail").build(tree, "Counter")
        (branch,) = cfg.branches("f")
        assert cfg.nodes[branch.true_edge.target].kind == NodeKind.RETURN
        assert len(cfg.exits("f")) == 2
        assert branch.line == 6

    def test_syntax_error(self):
        with pytest.raises(ParseError):
            ASTBuilder(SolcParser(auto_install=False)).build(
                "pragma solidity ^0.8.0; contract {", "Broken.sol"
            )
