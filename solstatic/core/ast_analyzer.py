"""Solidity AST analysis: target and function maps.

Walks the solc compact JSON AST of one file to extract:
  - Contract-like targets (contracts, libraries, interfaces)
  - Declared parents exactly as written in the ``is`` clause (unresolved)
  - Function definitions with parameters, returns, visibility, mutability
  - Modifier definitions, kept apart from the function map
  - ``using L for T`` library directives
  - Import directives with their aliases

Resolution of parent names and imports across files is the dependency
analyzer's job; everything here is a pure function of a single tree.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from solstatic.core.ast_builder import SyntaxTree
from solstatic.core.types import (
    FunctionKind,
    SourceLocation,
    StateMutability,
    TargetKind,
    Visibility,
)

_TYPE_ALIASES = {"uint": "uint256", "int": "int256", "byte": "bytes1"}


# ── Data Models ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Parameter:
    """Function parameter or return value."""
    name: str
    type_name: str
    storage_location: str = ""  # memory, storage, calldata


@dataclass(frozen=True)
class FunctionMetadata:
    """Parsed function definition."""
    name: str
    kind: FunctionKind = FunctionKind.FUNCTION
    parameters: tuple[Parameter, ...] = ()
    returns: tuple[Parameter, ...] = ()
    visibility: Visibility = Visibility.PUBLIC
    mutability: StateMutability = StateMutability.NONPAYABLE
    modifiers: tuple[str, ...] = ()
    implemented: bool = True
    src: SourceLocation = field(default_factory=SourceLocation)
    node: dict[str, Any] = field(default_factory=dict, repr=False, compare=False, hash=False)

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(p.type_name for p in self.parameters)})"

    @property
    def is_constructor(self) -> bool:
        return self.kind == FunctionKind.CONSTRUCTOR


@dataclass(frozen=True)
class TargetMetadata:
    """Parsed contract, library or interface declaration."""
    name: str
    kind: TargetKind = TargetKind.CONTRACT
    is_abstract: bool = False
    bases: tuple[str, ...] = ()
    using_for: tuple[str, ...] = ()
    src: SourceLocation = field(default_factory=SourceLocation)
    node: dict[str, Any] = field(default_factory=dict, repr=False, compare=False, hash=False)


@dataclass(frozen=True)
class ImportDirective:
    """One ``import`` statement."""
    path: str
    unit_alias: str = ""
    # local name → imported name, for ``import {A as B} from "..."``
    symbol_aliases: tuple[tuple[str, str], ...] = ()


@dataclass
class TargetMap:
    """Everything the target map builder extracts from one file."""
    targets: dict[str, TargetMetadata] = field(default_factory=dict)
    functions: dict[str, dict[str, FunctionMetadata]] = field(default_factory=dict)


# ── Builder ──────────────────────────────────────────────────────────────────


class TargetMapBuilder:
    """Build target and function maps from a syntax tree.

    Supports AST node shapes from Solidity 0.5.x through 0.8.x.
    """

    def build(self, tree: SyntaxTree) -> TargetMap:
        result = TargetMap()
        for node in tree.nodes:
            if node.get("nodeType") != "ContractDefinition":
                continue
            target = self.visit_target(tree, node)
            # First declaration wins; duplicates are a compiler error
            if target.name in result.targets:
                continue
            result.targets[target.name] = target
            result.functions[target.name] = self.function_map(tree, node)
        return result

    def visit_target(self, tree: SyntaxTree, node: dict[str, Any]) -> TargetMetadata:
        """Visit a ContractDefinition node."""
        bases = tuple(
            self._base_name(base.get("baseName", {}))
            for base in node.get("baseContracts", [])
        )
        using_for = tuple(
            self._base_name(child.get("libraryName") or {})
            for child in node.get("nodes", [])
            if child.get("nodeType") == "UsingForDirective" and child.get("libraryName")
        )
        return TargetMetadata(
            name=node.get("name", ""),
            kind=TargetKind(node.get("contractKind", "contract")),
            is_abstract=bool(node.get("abstract", False)),
            bases=bases,
            using_for=using_for,
            src=tree.location(node.get("src")),
            node=node,
        )

    def function_map(self, tree: SyntaxTree, contract_node: dict[str, Any]) -> dict[str, FunctionMetadata]:
        """Map function name → metadata; overloaded names are keyed by signature."""
        functions = [
            self.visit_function(tree, child)
            for child in contract_node.get("nodes", [])
            if child.get("nodeType") == "FunctionDefinition"
        ]
        counts = Counter(f.name for f in functions)
        return {
            (f.signature if counts[f.name] > 1 else f.name): f
            for f in functions
        }

    def modifier_map(self, tree: SyntaxTree, contract_node: dict[str, Any]) -> dict[str, FunctionMetadata]:
        """Map modifier name → metadata. The first declaration of a name wins."""
        modifiers: dict[str, FunctionMetadata] = {}
        for child in contract_node.get("nodes", []):
            if child.get("nodeType") != "ModifierDefinition":
                continue
            metadata = self.visit_function(tree, child)
            modifiers.setdefault(metadata.name, metadata)
        return modifiers

    def visit_function(self, tree: SyntaxTree, node: dict[str, Any]) -> FunctionMetadata:
        """Visit a FunctionDefinition or ModifierDefinition node."""
        kind = self._function_kind(node)
        name = node.get("name", "") or kind.value

        return FunctionMetadata(
            name=name,
            kind=kind,
            parameters=self._parameters(node.get("parameters")),
            returns=self._parameters(node.get("returnParameters")),
            visibility=Visibility(node.get("visibility", "public")),
            mutability=self._mutability(node),
            modifiers=tuple(
                self._base_name(mod.get("modifierName", {})) for mod in node.get("modifiers", [])
            ),
            implemented=node.get("body") is not None,
            src=tree.location(node.get("src")),
            node=node,
        )

    # ── Imports / libraries ──────────────────────────────────────────

    def extract_imports(self, tree: SyntaxTree) -> list[ImportDirective]:
        """Extract import directives from the source unit, in source order."""
        imports: list[ImportDirective] = []
        for node in tree.nodes:
            if node.get("nodeType") != "ImportDirective":
                continue
            aliases = []
            for alias in node.get("symbolAliases", []) or []:
                foreign = alias.get("foreign", {})
                foreign_name = foreign.get("name", "") if isinstance(foreign, dict) else str(foreign)
                local = alias.get("local") or foreign_name
                if foreign_name:
                    aliases.append((local, foreign_name))
            imports.append(ImportDirective(
                path=node.get("file") or node.get("absolutePath", ""),
                unit_alias=node.get("unitAlias", "") or "",
                symbol_aliases=tuple(aliases),
            ))
        return imports

    def extract_library_calls(self, tree: SyntaxTree, node: dict[str, Any]) -> list[str]:
        """Names used as the base of ``Name.member(...)`` calls below ``node``."""
        names: list[str] = []
        for child in tree.walk(node):
            if child.get("nodeType") != "FunctionCall":
                continue
            callee = child.get("expression", {})
            if callee.get("nodeType") != "MemberAccess":
                continue
            base = callee.get("expression", {})
            if base.get("nodeType") == "Identifier" and base.get("name") not in names:
                names.append(base["name"])
        return names

    # ── Helpers ──────────────────────────────────────────────────────

    def _parameters(self, params_node: dict[str, Any] | None) -> tuple[Parameter, ...]:
        params: list[Parameter] = []
        for p in (params_node or {}).get("parameters", []):
            location = p.get("storageLocation") or ""
            params.append(Parameter(
                name=p.get("name", ""),
                type_name=self.type_name_to_str(p.get("typeName")),
                storage_location="" if location == "default" else location,
            ))
        return tuple(params)

    @staticmethod
    def _function_kind(node: dict[str, Any]) -> FunctionKind:
        if node.get("nodeType") == "ModifierDefinition":
            return FunctionKind.MODIFIER
        kind = node.get("kind")
        if kind is None:
            # Pre-0.5 ASTs flag constructors instead of tagging the kind
            if node.get("isConstructor"):
                return FunctionKind.CONSTRUCTOR
            return FunctionKind.FUNCTION if node.get("name") else FunctionKind.FALLBACK
        if kind == "freeFunction":
            return FunctionKind.FUNCTION
        return FunctionKind(kind)

    @staticmethod
    def _mutability(node: dict[str, Any]) -> StateMutability:
        if node.get("stateMutability"):
            return StateMutability(node["stateMutability"])
        if node.get("payable"):
            return StateMutability.PAYABLE
        if node.get("constant"):
            return StateMutability.VIEW
        return StateMutability.NONPAYABLE

    @staticmethod
    def _base_name(name_node: dict[str, Any]) -> str:
        """Name of an IdentifierPath / UserDefinedTypeName as written."""
        return name_node.get("name", "") or name_node.get("namePath", "")

    def type_name_to_str(self, type_node: dict[str, Any] | None) -> str:
        """Convert an AST TypeName node to a human-readable string."""
        if not type_node:
            return ""
        nt = type_node.get("nodeType", "")

        if nt == "ElementaryTypeName":
            name = type_node.get("name", "")
            if name == "address" and type_node.get("stateMutability") == "payable":
                return "address payable"
            # Parse-only ASTs keep aliases as written
            return _TYPE_ALIASES.get(name, name)

        if nt == "UserDefinedTypeName":
            path = type_node.get("pathNode", type_node.get("name", ""))
            if isinstance(path, dict):
                return path.get("name", str(path))
            return str(path) if path else type_node.get("namePath", "")

        if nt == "Mapping":
            key = self.type_name_to_str(type_node.get("keyType"))
            val = self.type_name_to_str(type_node.get("valueType"))
            return f"mapping({key} => {val})"

        if nt == "ArrayTypeName":
            base = self.type_name_to_str(type_node.get("baseType"))
            length = type_node.get("length")
            length_str = length.get("value", "") if isinstance(length, dict) else (length or "")
            return f"{base}[{length_str}]"

        if nt == "FunctionTypeName":
            return "function"

        # Fallback
        type_str = type_node.get("typeDescriptions", {}).get("typeString", "")
        return type_str or str(type_node.get("name", "unknown"))
