"""Source file loading for contract analysis."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from solstatic.core.errors import SourceLoadError

logger = logging.getLogger(__name__)


def canonical_path(path: str | os.PathLike[str]) -> str:
    """Return the absolute, normalised form every cache keys on."""
    return os.path.normpath(os.path.abspath(os.fspath(path)))


class SourceLoader:
    """Read Solidity source text from disk."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding

    def load(self, path: str | os.PathLike[str]) -> str:
        """Read the full source of ``path``.

        Raises:
            SourceLoadError: the file is missing or unreadable.
        """
        file_path = Path(canonical_path(path))
        try:
            source = file_path.read_text(encoding=self.encoding)
        except (OSError, UnicodeDecodeError) as exc:
            raise SourceLoadError(str(file_path), str(exc)) from exc

        logger.debug("Loaded %d bytes", len(source), extra={"path": str(file_path)})
        return source
