"""Tests for solstatic.ingestion.import_resolver.

Covers:
- parse_remappings (comments, context prefixes, longest-prefix ordering)
- resolution order: relative, remappings, base path, include paths
  (with the @scope/name → scope-name form), importer directory
- UnresolvedImportError naming both files
"""

from __future__ import annotations

import pytest

from solstatic.core.errors import SourceLoadError, UnresolvedImportError
from solstatic.ingestion.import_resolver import ImportResolver, parse_remappings
from solstatic.ingestion.source_loader import canonical_path


def _touch(path):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("{}", encoding="utf-8")
    return canonical_path(path)


class TestParseRemappings:

    def test_skips_blank_and_comments(self):
        assert parse_remappings(["", "# comment", "noequals", "a/=b/"]) == [("a/", "b/")]

    def test_strips_context(self):
        assert parse_remappings(["src:@oz/=lib/oz/"]) == [("@oz/", "lib/oz/")]

    def test_longest_prefix_first(self):
        result = parse_remappings(["@oz/=lib/oz/", "@oz/contracts/=lib/ozc/"])
        assert result[0] == ("@oz/contracts/", "lib/ozc/")


class TestImportResolver:

    def test_relative_to_importer(self, tmp_path):
        importer = _touch(tmp_path / "src" / "Token.sol")
        target = _touch(tmp_path / "src" / "lib" / "Math.sol")
        resolver = ImportResolver(base_path=str(tmp_path))
        assert resolver.resolve("./lib/Math.sol", importer) == target

    def test_parent_relative(self, tmp_path):
        importer = _touch(tmp_path / "src" / "tokens" / "Token.sol")
        target = _touch(tmp_path / "src" / "Base.sol")
        resolver = ImportResolver(base_path=str(tmp_path))
        assert resolver.resolve("../Base.sol", importer) == target

    def test_relative_does_not_fall_back(self, tmp_path):
        importer = _touch(tmp_path / "src" / "Token.sol")
        _touch(tmp_path / "Math.sol")
        resolver = ImportResolver(base_path=str(tmp_path))
        with pytest.raises(UnresolvedImportError):
            resolver.resolve("./Math.sol", importer)

    def test_remapping(self, tmp_path):
        importer = _touch(tmp_path / "src" / "Token.sol")
        target = _touch(tmp_path / "lib" / "oz" / "contracts" / "ERC20.sol")
        resolver = ImportResolver(base_path=str(tmp_path), remappings=["@oz/=lib/oz/"])
        assert resolver.resolve("@oz/contracts/ERC20.sol", importer) == target

    def test_base_path(self, tmp_path):
        importer = _touch(tmp_path / "src" / "Token.sol")
        target = _touch(tmp_path / "interfaces" / "IERC20.sol")
        resolver = ImportResolver(base_path=str(tmp_path))
        assert resolver.resolve("interfaces/IERC20.sol", importer) == target

    def test_include_path(self, tmp_path):
        importer = _touch(tmp_path / "src" / "Token.sol")
        target = _touch(tmp_path / "node_modules" / "@oz" / "contracts" / "ERC20.sol")
        resolver = ImportResolver(base_path=str(tmp_path), include_paths=["node_modules"])
        assert resolver.resolve("@oz/contracts/ERC20.sol", importer) == target

    def test_scoped_package_directory(self, tmp_path):
        importer = _touch(tmp_path / "src" / "Token.sol")
        target = _touch(tmp_path / "lib" / "openzeppelin-contracts" / "token" / "ERC20.sol")
        resolver = ImportResolver(base_path=str(tmp_path), include_paths=["lib"])
        assert resolver.resolve("@openzeppelin/contracts/token/ERC20.sol", importer) == target

    def test_importer_directory_last(self, tmp_path):
        importer = _touch(tmp_path / "src" / "Token.sol")
        target = _touch(tmp_path / "src" / "Math.sol")
        resolver = ImportResolver(base_path=str(tmp_path))
        assert resolver.resolve("Math.sol", importer) == target

    def test_base_path_wins_over_importer_directory(self, tmp_path):
        importer = _touch(tmp_path / "src" / "Token.sol")
        _touch(tmp_path / "src" / "Math.sol")
        target = _touch(tmp_path / "Math.sol")
        resolver = ImportResolver(base_path=str(tmp_path))
        assert resolver.resolve("Math.sol", importer) == target

    def test_unresolved_names_both_files(self, tmp_path):
        importer = _touch(tmp_path / "Token.sol")
        resolver = ImportResolver(base_path=str(tmp_path))
        with pytest.raises(UnresolvedImportError) as exc_info:
            resolver.resolve("./Missing.sol", importer)
        err = exc_info.value
        assert isinstance(err, SourceLoadError)
        assert err.importer == importer
        assert err.import_path == "./Missing.sol"
        assert "Missing.sol" in str(err) and importer in str(err)
