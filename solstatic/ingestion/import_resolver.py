"""Solidity import path resolution.

Maps the path literal of an ``import`` directive to a file on disk.
Handles, in order:
  1. relative imports (``./`` / ``../``) against the importing file
  2. remappings (``prefix=target``, as in remappings.txt / foundry.toml)
  3. the project base path
  4. include paths (node_modules/, lib/, ...), including the Foundry
     ``@scope/name`` → ``scope-name`` directory convention
  5. the importing file's directory
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from solstatic.core.errors import UnresolvedImportError
from solstatic.ingestion.source_loader import canonical_path

logger = logging.getLogger(__name__)


def parse_remappings(lines: Iterable[str]) -> list[tuple[str, str]]:
    """Parse ``prefix=target`` remapping lines, skipping blanks and comments.

    Context-qualified remappings (``context:prefix=target``) are reduced to
    their prefix/target pair.
    """
    remappings: list[tuple[str, str]] = []
    for line in lines:
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, val = line.split("=", 1)
        if ":" in key:
            key = key.split(":", 1)[1]
        remappings.append((key.strip(), val.strip()))
    # Longest prefix wins, as in solc
    remappings.sort(key=lambda kv: len(kv[0]), reverse=True)
    return remappings


class ImportResolver:
    """Resolve import literals to canonical file paths."""

    def __init__(
        self,
        base_path: str = ".",
        include_paths: Iterable[str] = (),
        remappings: Iterable[str] = (),
    ) -> None:
        self.base_path = Path(canonical_path(base_path))
        self.include_paths = [
            Path(p) if Path(p).is_absolute() else self.base_path / p for p in include_paths
        ]
        self.remappings = parse_remappings(remappings)

    def resolve(self, import_path: str, importer: str) -> str:
        """Return the canonical path ``import_path`` refers to from ``importer``.

        Raises:
            UnresolvedImportError: no candidate exists on disk.
        """
        for candidate in self._candidates(import_path, Path(importer)):
            if candidate.is_file():
                return canonical_path(candidate)

        raise UnresolvedImportError(importer, import_path)

    def _candidates(self, import_path: str, importer: Path) -> Iterable[Path]:
        if import_path.startswith("./") or import_path.startswith("../"):
            yield importer.parent / import_path
            return

        for prefix, target in self.remappings:
            if import_path.startswith(prefix):
                remapped = target + import_path[len(prefix):]
                remapped_path = Path(remapped)
                yield remapped_path if remapped_path.is_absolute() else self.base_path / remapped

        yield self.base_path / import_path

        parts = import_path.split("/")
        for include_dir in self.include_paths:
            yield include_dir / import_path
            # Foundry-style: lib/openzeppelin-contracts/contracts/...
            if len(parts) >= 2 and parts[0].startswith("@"):
                alt_name = parts[0].lstrip("@") + "-" + parts[1]
                yield include_dir.joinpath(alt_name, *parts[2:])

        yield importer.parent / import_path
