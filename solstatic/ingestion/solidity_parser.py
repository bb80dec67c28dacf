"""Solidity parser integration: source text to solc compact JSON AST."""

from __future__ import annotations

import abc
import logging
import re
from typing import Any

import solcx
from solcx.exceptions import SolcError, SolcNotInstalled

from solstatic.core.config import get_settings
from solstatic.core.errors import ParseError

logger = logging.getLogger(__name__)

_PRAGMA_RE = re.compile(r"pragma\s+solidity\s+([^;]+);")


class SourceParser(abc.ABC):
    """Turns Solidity source text into a solc-shaped ``SourceUnit`` dict.

    Implementations must be deterministic: identical input yields an equal
    tree. Syntax errors are reported as :class:`ParseError`.
    """

    @abc.abstractmethod
    def parse(self, source_code: str, source_name: str = "Contract.sol") -> dict[str, Any]:
        """Parse ``source_code`` and return the root ``SourceUnit`` node."""


class SolcParser(SourceParser):
    """Parse Solidity with solc (via py-solc-x), stopping after the parsing stage.

    Stopping after parsing means imports are not loaded or resolved, so each
    file can be parsed on its own and in any order.
    """

    def __init__(self, version: str | None = None, auto_install: bool | None = None) -> None:
        settings = get_settings()
        self.version = version or settings.solc_version
        self.auto_install = settings.solc_auto_install if auto_install is None else auto_install

    def parse(self, source_code: str, source_name: str = "Contract.sol") -> dict[str, Any]:
        solc_version = self._select_version(source_code)

        standard_input = {
            "language": "Solidity",
            "sources": {source_name: {"content": source_code}},
            "settings": {
                "stopAfter": "parsing",
                "outputSelection": {"*": {"": ["ast"]}},
            },
        }

        try:
            output = solcx.compile_standard(standard_input, solc_version=solc_version)
        except SolcError as exc:
            raise ParseError(source_name, [str(exc)]) from exc

        errors = [
            error.get("formattedMessage", error.get("message", ""))
            for error in output.get("errors", [])
            if error.get("severity") == "error"
        ]
        if errors:
            raise ParseError(source_name, errors)

        ast = output.get("sources", {}).get(source_name, {}).get("ast")
        if not ast:
            raise ParseError(source_name, ["solc produced no AST"])
        return ast

    def _select_version(self, source_code: str) -> str:
        """Pick the compiler: configured version, then pragma, then newest installed."""
        if self.version:
            installed = [str(v) for v in solcx.get_installed_solc_versions()]
            if self.version in installed:
                return self.version
            if self.auto_install:
                logger.info("Installing solc %s", self.version)
                solcx.install_solc(self.version)
                return self.version
            logger.debug("solc %s not installed", self.version)

        pragma = self._detect_pragma(source_code)
        if pragma:
            try:
                return str(solcx.set_solc_version_pragma(pragma, silent=True))
            except SolcNotInstalled:
                if self.auto_install:
                    logger.info("Installing solc for pragma %r", pragma)
                    return str(solcx.install_solc_pragma(pragma))
                logger.debug("No installed solc satisfies %r", pragma)

        installed = [str(v) for v in solcx.get_installed_solc_versions()]
        if installed:
            return installed[0]

        raise SolcNotInstalled(
            "No solc version is installed; install one or set SOLSTATIC_SOLC_AUTO_INSTALL"
        )

    @staticmethod
    def _detect_pragma(source_code: str) -> str | None:
        """Version requirement of the first ``pragma solidity``, e.g. ``>=0.6.0 <0.9.0``."""
        match = _PRAGMA_RE.search(source_code)
        if match:
            return " ".join(match.group(1).split())
        return None
