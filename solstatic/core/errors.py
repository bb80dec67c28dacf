"""Error taxonomy for the static-analysis engine.

Every error raised while resolving sources, ASTs, target maps, CFGs and
dependency graphs derives from :class:`AnalysisError`, so the orchestration
layer can decide per target whether to skip it or abort the run:

    AnalysisError
    ├── SourceLoadError (also an OSError)
    │   └── UnresolvedImportError
    ├── ParseError
    ├── TargetResolutionError
    │   ├── UnknownTargetError
    │   ├── UnresolvedParentError
    │   ├── AmbiguousTargetError
    │   └── InheritanceCycleError
    └── UnsupportedConstructError
"""

from __future__ import annotations

from typing import Sequence


class AnalysisError(Exception):
    """Base class for all static-analysis failures."""


# ── Source / parse errors ────────────────────────────────────────────────────


class SourceLoadError(AnalysisError, OSError):
    """A source file could not be read."""

    def __init__(self, path: str, reason: str = "") -> None:
        self.path = path
        self.reason = reason
        message = f"Could not read source file {path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)

    def __str__(self) -> str:
        return self.args[0]


class UnresolvedImportError(SourceLoadError):
    """An import directive does not resolve to any file on disk."""

    def __init__(self, importer: str, import_path: str) -> None:
        self.importer = importer
        self.import_path = import_path
        super().__init__(import_path, f"imported from {importer} but no such file was found")


class ParseError(AnalysisError):
    """Source text is not syntactically valid Solidity."""

    def __init__(self, source_name: str, diagnostics: Sequence[str]) -> None:
        self.source_name = source_name
        self.diagnostics = list(diagnostics)
        detail = "; ".join(d.strip() for d in self.diagnostics) or "unknown parser error"
        super().__init__(f"Failed to parse {source_name}: {detail}")


# ── Project configuration errors ─────────────────────────────────────────────


class TargetResolutionError(AnalysisError):
    """A target or one of its dependencies cannot be resolved."""


class UnknownTargetError(TargetResolutionError):
    def __init__(self, path: str, target_name: str) -> None:
        self.path = path
        self.target_name = target_name
        super().__init__(f"Target {target_name} could not be found at {path}")


class UnresolvedParentError(TargetResolutionError):
    def __init__(self, child: str, parent: str, path: str) -> None:
        self.child = child
        self.parent = parent
        self.path = path
        super().__init__(
            f"Parent {parent} of {child} (declared in {path}) is not reachable "
            f"through the import graph"
        )


class AmbiguousTargetError(TargetResolutionError):
    def __init__(self, target_name: str, paths: Sequence[str]) -> None:
        self.target_name = target_name
        self.paths = list(paths)
        super().__init__(
            f"Target {target_name} is declared in more than one reachable file: "
            + ", ".join(self.paths)
        )


class InheritanceCycleError(TargetResolutionError):
    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = list(cycle)
        super().__init__("Inheritance cycle detected: " + " -> ".join(self.cycle))


# ── CFG construction ─────────────────────────────────────────────────────────


class UnsupportedConstructError(AnalysisError):
    """The CFG builder met a syntax node it cannot model."""

    def __init__(self, construct: str, function: str = "", line: int = 0) -> None:
        self.construct = construct
        self.function = function
        self.line = line
        where = f" in function {function}" if function else ""
        if line:
            where += f" at line {line}"
        super().__init__(f"Unsupported construct {construct}{where}")
