"""solstatic: static analysis of Solidity targets for search-based test generation."""

from solstatic.core.errors import (  # noqa: F401
    AmbiguousTargetError,
    AnalysisError,
    InheritanceCycleError,
    ParseError,
    SourceLoadError,
    TargetResolutionError,
    UnknownTargetError,
    UnresolvedImportError,
    UnresolvedParentError,
    UnsupportedConstructError,
)
from solstatic.core.target import Target  # noqa: F401
from solstatic.core.target_pool import TargetPool  # noqa: F401

__version__ = "0.1.0"

__all__ = [
    "AmbiguousTargetError",
    "AnalysisError",
    "InheritanceCycleError",
    "ParseError",
    "SourceLoadError",
    "Target",
    "TargetPool",
    "TargetResolutionError",
    "UnknownTargetError",
    "UnresolvedImportError",
    "UnresolvedParentError",
    "UnsupportedConstructError",
]
