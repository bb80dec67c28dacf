"""Control Flow Graph (CFG) builder for Solidity targets.

Builds one graph per (file, target) holding a connected subgraph for every
function of the target. The graph drives branch, line and function coverage
objectives:

  - every function has a single ENTRY node carrying its parameter bindings
  - straight-line statements are merged into BLOCK nodes with line spans
  - each decision becomes a BRANCH node with exactly one TRUE and one FALSE
    out-edge, identified by a per-target ``location_idx``
  - ``return`` / ``revert`` / ``throw`` end in RETURN / REVERT exit nodes;
    falling off the end of the body reaches the implicit EXIT node

Decisions modelled as branches:
  - if/else, while, for (with a condition), do-while
  - short-circuit ``&&`` / ``||`` (one branch per operand; ``!`` swaps outcomes)
  - ternary ``c ? a : b`` anywhere inside an expression
  - ``require(c, ...)`` / ``assert(c)``: false leads to a REVERT node

Each modifier is walked into its own subgraph keyed ``modifier:<name>``;
the ``_`` placeholder is an ordinary statement there.

try/catch yields a TRY node with a FALLTHROUGH edge to the success clause
and an EXCEPTION edge to each catch clause.

Unsupported syntax (inline assembly, unknown statement types) raises
UnsupportedConstructError. Under the ``fallback`` policy the whole function
is replaced by a single-block graph (ENTRY → BLOCK → EXIT, ``degraded``) and
a warning is logged; under ``fail`` the error propagates.
"""

from __future__ import annotations

import logging
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Any

from solstatic.core.ast_analyzer import FunctionMetadata, Parameter, TargetMapBuilder
from solstatic.core.ast_builder import SyntaxTree
from solstatic.core.config import get_settings
from solstatic.core.errors import UnknownTargetError, UnsupportedConstructError
from solstatic.core.types import (
    BranchOutcome,
    EdgeKind,
    FunctionKind,
    NodeKind,
    SourceLocation,
    StateMutability,
    Visibility,
)

logger = logging.getLogger(__name__)

EXIT_KINDS = (NodeKind.RETURN, NodeKind.REVERT, NodeKind.EXIT)

# Dangling out-edges waiting for the next node: (source node id, edge kind)
Pending = list[tuple[int, EdgeKind]]


# ── CFG Data Structures ─────────────────────────────────────────────────────


@dataclass
class CFGNode:
    """A node of the control-flow graph."""
    id: int
    kind: NodeKind
    function: str
    line: int = 0
    end_line: int = 0
    statements: list[dict[str, Any]] = field(default_factory=list, repr=False)
    # Branch nodes: decision expression and coverage identifier
    condition: dict[str, Any] | None = field(default=None, repr=False)
    location_idx: int | None = None
    # Entry nodes: the function's parameter bindings
    bindings: tuple[Parameter, ...] = ()

    @property
    def is_exit(self) -> bool:
        return self.kind in EXIT_KINDS


@dataclass(frozen=True)
class CFGEdge:
    source: int
    target: int
    kind: EdgeKind = EdgeKind.FALLTHROUGH


@dataclass(frozen=True)
class Branch:
    """One decision: a branch node and its two outcome edges."""
    node: CFGNode
    true_edge: CFGEdge
    false_edge: CFGEdge

    @property
    def location_idx(self) -> int | None:
        return self.node.location_idx

    @property
    def line(self) -> int:
        return self.node.line

    def edge(self, outcome: BranchOutcome) -> CFGEdge:
        return self.true_edge if outcome.edge_kind is EdgeKind.TRUE else self.false_edge


@dataclass
class FunctionCFG:
    """The subgraph of one function."""
    key: str
    metadata: FunctionMetadata
    entry: int
    node_ids: list[int] = field(default_factory=list)
    degraded: bool = False

    @property
    def is_modifier(self) -> bool:
        return self.metadata.kind == FunctionKind.MODIFIER


@dataclass(frozen=True)
class FunctionDescription:
    """Call-site view of a function, used for input sampling."""
    name: str
    kind: FunctionKind
    visibility: Visibility
    mutability: StateMutability
    parameters: tuple[Parameter, ...]
    returns: tuple[Parameter, ...]

    @property
    def is_constructor(self) -> bool:
        return self.kind == FunctionKind.CONSTRUCTOR


class TargetCFG:
    """Control-flow graph of every function in one target."""

    def __init__(self, target_name: str, source_name: str = "") -> None:
        self.target_name = target_name
        self.source_name = source_name
        self.nodes: dict[int, CFGNode] = {}
        self.edges: list[CFGEdge] = []
        self.functions: dict[str, FunctionCFG] = {}
        self._outgoing: dict[int, list[CFGEdge]] = defaultdict(list)
        self._next_id = 0
        self._next_branch = 0

    # ── Construction ─────────────────────────────────────────────────

    @property
    def next_id(self) -> int:
        return self._next_id

    def new_node(self, kind: NodeKind, function: str, src: SourceLocation | None = None) -> CFGNode:
        node = CFGNode(id=self._next_id, kind=kind, function=function)
        if src is not None:
            node.line, node.end_line = src.line, src.end_line
        if kind == NodeKind.BRANCH:
            node.location_idx = self._next_branch
            self._next_branch += 1
        self.nodes[node.id] = node
        self._next_id += 1
        return node

    def add_edge(self, source: int, target: int, kind: EdgeKind = EdgeKind.FALLTHROUGH) -> CFGEdge:
        edge = CFGEdge(source, target, kind)
        self.edges.append(edge)
        self._outgoing[source].append(edge)
        return edge

    def checkpoint(self) -> tuple[int, int, int]:
        return self._next_id, len(self.edges), self._next_branch

    def rollback(self, checkpoint: tuple[int, int, int]) -> None:
        """Drop every node and edge created after ``checkpoint``."""
        next_id, edge_count, next_branch = checkpoint
        for node_id in [n for n in self.nodes if n >= next_id]:
            del self.nodes[node_id]
        self.edges = self.edges[:edge_count]
        self._outgoing = defaultdict(list)
        for edge in self.edges:
            self._outgoing[edge.source].append(edge)
        self._next_id, self._next_branch = next_id, next_branch

    # ── Queries ──────────────────────────────────────────────────────

    def successors(self, node_id: int) -> list[CFGEdge]:
        return list(self._outgoing.get(node_id, []))

    def function_nodes(self, key: str) -> list[CFGNode]:
        return [self.nodes[i] for i in self.functions[key].node_ids]

    def entry(self, key: str) -> CFGNode:
        return self.nodes[self.functions[key].entry]

    def exits(self, key: str) -> list[CFGNode]:
        return [n for n in self.function_nodes(key) if n.is_exit]

    def reachable(self, key: str) -> set[int]:
        """Node ids reachable from the function's entry."""
        start = self.functions[key].entry
        seen = {start}
        queue = deque([start])
        while queue:
            for edge in self._outgoing.get(queue.popleft(), []):
                if edge.target not in seen:
                    seen.add(edge.target)
                    queue.append(edge.target)
        return seen

    def branches(self, key: str | None = None) -> list[Branch]:
        """Every decision with its true/false edge pair, in location order."""
        result: list[Branch] = []
        for node in self.nodes.values():
            if node.kind != NodeKind.BRANCH or (key is not None and node.function != key):
                continue
            out = {e.kind: e for e in self._outgoing.get(node.id, [])}
            result.append(Branch(node, out[EdgeKind.TRUE], out[EdgeKind.FALSE]))
        result.sort(key=lambda b: b.node.location_idx or 0)
        return result

    def get_function_descriptions(self, target_name: str) -> list[FunctionDescription]:
        """Parameter/return metadata per function, bound at each entry node.

        Modifiers are not callable and are left out.
        """
        if target_name != self.target_name:
            raise UnknownTargetError(self.source_name, target_name)

        descriptions: list[FunctionDescription] = []
        for fn in self.functions.values():
            if fn.is_modifier:
                continue
            entry = self.nodes[fn.entry]
            descriptions.append(FunctionDescription(
                name=fn.metadata.name,
                kind=fn.metadata.kind,
                visibility=fn.metadata.visibility,
                mutability=fn.metadata.mutability,
                parameters=entry.bindings,
                returns=fn.metadata.returns,
            ))
        return descriptions

    @property
    def node_count(self) -> int:
        return len(self.nodes)


# ── CFG Builder ──────────────────────────────────────────────────────────────


@dataclass
class _Loop:
    breaks: Pending = field(default_factory=list)
    continues: Pending = field(default_factory=list)


class CFGBuilder:
    """Build a :class:`TargetCFG` from a syntax tree scoped to one target."""

    def __init__(self, policy: str | None = None, target_map_builder: TargetMapBuilder | None = None) -> None:
        self.policy = policy or get_settings().cfg_unsupported_policy
        self._targets = target_map_builder or TargetMapBuilder()

    def build(
        self,
        tree: SyntaxTree,
        target_name: str,
        functions: dict[str, FunctionMetadata] | None = None,
    ) -> TargetCFG:
        """Build the CFG of ``target_name``.

        ``functions`` is the target's function map when the caller already
        holds one; otherwise it is derived from the tree.
        """
        contract = next(
            (
                n for n in tree.nodes
                if n.get("nodeType") == "ContractDefinition" and n.get("name") == target_name
            ),
            None,
        )
        if contract is None:
            raise UnknownTargetError(tree.source_name, target_name)

        if functions is None:
            functions = self._targets.function_map(tree, contract)

        cfg = TargetCFG(target_name, tree.source_name)
        for key, metadata in functions.items():
            cfg.functions[key] = self._build_function(cfg, tree, key, metadata)
        # Modifier bodies get their own subgraph; ``_`` is a plain statement
        for name, metadata in self._targets.modifier_map(tree, contract).items():
            key = f"modifier:{name}"
            cfg.functions[key] = self._build_function(cfg, tree, key, metadata)
        return cfg

    def _build_function(
        self, cfg: TargetCFG, tree: SyntaxTree, key: str, metadata: FunctionMetadata
    ) -> FunctionCFG:
        checkpoint = cfg.checkpoint()
        try:
            return _FunctionWalker(cfg, tree, key, metadata).walk()
        except UnsupportedConstructError as exc:
            if self.policy == "fail":
                raise
            cfg.rollback(checkpoint)
            logger.warning(
                "%s; modelling %s as a single block",
                exc,
                key,
                extra={"target": cfg.target_name, "function": key},
            )
            return self._single_block(cfg, tree, key, metadata)

    @staticmethod
    def _single_block(
        cfg: TargetCFG, tree: SyntaxTree, key: str, metadata: FunctionMetadata
    ) -> FunctionCFG:
        body = metadata.node.get("body") or {}
        entry = cfg.new_node(NodeKind.ENTRY, key, metadata.src)
        entry.bindings = metadata.parameters
        block = cfg.new_node(NodeKind.BLOCK, key, tree.location(body.get("src")))
        block.statements = list(body.get("statements", []))
        exit_node = cfg.new_node(NodeKind.EXIT, key)
        exit_node.line = exit_node.end_line = metadata.src.end_line
        cfg.add_edge(entry.id, block.id)
        cfg.add_edge(block.id, exit_node.id)
        return FunctionCFG(key, metadata, entry.id, [entry.id, block.id, exit_node.id], degraded=True)


class _FunctionWalker:
    """Walks one function body, wiring dangling edges to each new node."""

    def __init__(self, cfg: TargetCFG, tree: SyntaxTree, key: str, metadata: FunctionMetadata) -> None:
        self.cfg = cfg
        self.tree = tree
        self.key = key
        self.metadata = metadata
        self._first_id = cfg.next_id
        self._loops: list[_Loop] = []
        self._open_block: int | None = None

    def walk(self) -> FunctionCFG:
        entry = self.cfg.new_node(NodeKind.ENTRY, self.key, self.metadata.src)
        entry.bindings = self.metadata.parameters

        pending: Pending = [(entry.id, EdgeKind.FALLTHROUGH)]
        body = self.metadata.node.get("body")
        if body:
            pending = self._statements(body.get("statements", []), pending)

        node_ids = list(range(self._first_id, self.cfg.next_id))
        if pending or not any(self.cfg.nodes[i].is_exit for i in node_ids):
            exit_node = self._new(NodeKind.EXIT, None)
            exit_node.line = exit_node.end_line = self.metadata.src.end_line
            self._connect(pending, exit_node.id)
            node_ids.append(exit_node.id)

        return FunctionCFG(self.key, self.metadata, entry.id, node_ids)

    # ── Plumbing ─────────────────────────────────────────────────────

    def _new(self, kind: NodeKind, ast_node: dict[str, Any] | None) -> CFGNode:
        src = self.tree.location(ast_node.get("src")) if ast_node else None
        return self.cfg.new_node(kind, self.key, src)

    def _connect(self, pending: Pending, target: int) -> None:
        for source, kind in pending:
            self.cfg.add_edge(source, target, kind)
        self._open_block = None

    def _loop(self, stmt: dict[str, Any]) -> _Loop:
        if not self._loops:
            line = self.tree.location(stmt.get("src")).line
            raise UnsupportedConstructError(stmt.get("nodeType", ""), self.key, line)
        return self._loops[-1]

    def _unsupported(self, node: dict[str, Any]) -> UnsupportedConstructError:
        line = self.tree.location(node.get("src")).line
        return UnsupportedConstructError(node.get("nodeType", "unknown"), self.key, line)

    # ── Statements ───────────────────────────────────────────────────

    def _statements(self, statements: list[dict[str, Any]], pending: Pending) -> Pending:
        for stmt in statements:
            if not pending:
                # Unreachable code after return/revert/break/continue
                break
            pending = self._statement(stmt, pending)
        return pending

    def _statement(self, stmt: dict[str, Any] | None, pending: Pending) -> Pending:
        if not stmt:
            return pending
        nt = stmt.get("nodeType", "")

        if nt in ("Block", "UncheckedBlock"):
            return self._statements(stmt.get("statements", []), pending)
        if nt == "IfStatement":
            return self._if(stmt, pending)
        if nt == "WhileStatement":
            return self._while(stmt, pending)
        if nt == "ForStatement":
            return self._for(stmt, pending)
        if nt == "DoWhileStatement":
            return self._do_while(stmt, pending)
        if nt == "TryStatement":
            return self._try(stmt, pending)

        if nt == "Return":
            return self._terminate(NodeKind.RETURN, stmt, stmt.get("expression"), pending)
        if nt == "RevertStatement":
            return self._terminate(NodeKind.REVERT, stmt, stmt.get("errorCall"), pending)
        if nt == "Throw":
            return self._terminate(NodeKind.REVERT, stmt, None, pending)
        if nt == "Break":
            self._loop(stmt).breaks.extend(pending)
            return []
        if nt == "Continue":
            self._loop(stmt).continues.extend(pending)
            return []

        if nt == "ExpressionStatement":
            return self._expression_statement(stmt, pending)
        if nt == "VariableDeclarationStatement":
            pending = self._expression(stmt.get("initialValue"), pending)
            return self._append(stmt, pending)
        if nt == "EmitStatement":
            pending = self._expression(stmt.get("eventCall"), pending)
            return self._append(stmt, pending)
        if nt == "PlaceholderStatement":
            return self._append(stmt, pending)

        # InlineAssembly and anything newer than this builder
        raise self._unsupported(stmt)

    def _append(self, stmt: dict[str, Any], pending: Pending) -> Pending:
        """Add a straight-line statement, extending the open block if possible."""
        loc = self.tree.location(stmt.get("src"))
        if self._open_block is not None and pending == [(self._open_block, EdgeKind.FALLTHROUGH)]:
            block = self.cfg.nodes[self._open_block]
            block.statements.append(stmt)
            block.end_line = max(block.end_line, loc.end_line)
            return pending

        block = self._new(NodeKind.BLOCK, stmt)
        self._connect(pending, block.id)
        block.statements.append(stmt)
        self._open_block = block.id
        return [(block.id, EdgeKind.FALLTHROUGH)]

    def _terminate(
        self, kind: NodeKind, stmt: dict[str, Any], expr: dict[str, Any] | None, pending: Pending
    ) -> Pending:
        pending = self._expression(expr, pending)
        node = self._new(kind, stmt)
        node.statements.append(stmt)
        self._connect(pending, node.id)
        return []

    def _expression_statement(self, stmt: dict[str, Any], pending: Pending) -> Pending:
        expr = stmt.get("expression") or {}
        callee = expr.get("expression", {}) if expr.get("nodeType") == "FunctionCall" else {}
        builtin = callee.get("name") if callee.get("nodeType") == "Identifier" else None
        args = expr.get("arguments", []) or []

        if builtin == "revert":
            for arg in args:
                pending = self._expression(arg, pending)
            return self._terminate(NodeKind.REVERT, stmt, None, pending)

        if builtin in ("require", "assert") and args:
            on_true, on_false = self._condition(args[0], pending)
            for arg in args[1:]:
                on_false = self._expression(arg, on_false)
            revert = self._new(NodeKind.REVERT, stmt)
            revert.statements.append(stmt)
            self._connect(on_false, revert.id)
            return on_true

        pending = self._expression(expr, pending)
        return self._append(stmt, pending)

    # ── Control structures ───────────────────────────────────────────

    def _if(self, stmt: dict[str, Any], pending: Pending) -> Pending:
        on_true, on_false = self._condition(stmt["condition"], pending)
        true_out = self._statement(stmt.get("trueBody"), on_true)
        false_out = self._statement(stmt.get("falseBody"), on_false)
        return true_out + false_out

    def _while(self, stmt: dict[str, Any], pending: Pending) -> Pending:
        loop = _Loop()
        self._loops.append(loop)
        # The first node created for the condition is the loop header
        header = self.cfg.next_id
        on_true, on_false = self._condition(stmt["condition"], pending)
        body_out = self._statement(stmt.get("body"), on_true)
        self._connect(body_out + loop.continues, header)
        self._loops.pop()
        return on_false + loop.breaks

    def _for(self, stmt: dict[str, Any], pending: Pending) -> Pending:
        pending = self._statement(stmt.get("initializationExpression"), pending)

        loop = _Loop()
        self._loops.append(loop)
        condition = stmt.get("condition")
        if condition:
            header = self.cfg.next_id
            body_in, exits = self._condition(condition, pending)
        else:
            head = self._new(NodeKind.BLOCK, stmt)
            self._connect(pending, head.id)
            header, body_in, exits = head.id, [(head.id, EdgeKind.FALLTHROUGH)], []

        body_out = self._statement(stmt.get("body"), body_in)
        continuation = body_out + loop.continues
        if continuation:
            continuation = self._statement(stmt.get("loopExpression"), continuation)
        self._connect(continuation, header)
        self._loops.pop()
        return exits + loop.breaks

    def _do_while(self, stmt: dict[str, Any], pending: Pending) -> Pending:
        loop = _Loop()
        self._loops.append(loop)
        # Back-edges must not re-enter statements preceding the loop
        self._open_block = None
        header = self.cfg.next_id
        body_out = self._statement(stmt.get("body"), pending)
        on_true, on_false = self._condition(stmt["condition"], body_out + loop.continues)
        # header is the body's first node, or the condition when the body is empty
        self._connect(on_true, header)
        self._loops.pop()
        return on_false + loop.breaks

    def _try(self, stmt: dict[str, Any], pending: Pending) -> Pending:
        call = stmt.get("externalCall") or {}
        pending = self._expression(call, pending)
        node = self._new(NodeKind.TRY, stmt)
        node.statements.append(call)
        self._connect(pending, node.id)

        out: Pending = []
        for index, clause in enumerate(stmt.get("clauses", [])):
            kind = EdgeKind.FALLTHROUGH if index == 0 else EdgeKind.EXCEPTION
            out += self._statement(clause.get("block"), [(node.id, kind)])
        return out

    # ── Decisions ────────────────────────────────────────────────────

    def _condition(self, expr: dict[str, Any], pending: Pending) -> tuple[Pending, Pending]:
        """Wire a boolean decision; returns (true edges, false edges)."""
        nt = expr.get("nodeType", "")
        operator = expr.get("operator")

        if nt == "BinaryOperation" and operator == "&&":
            left_true, left_false = self._condition(expr["leftExpression"], pending)
            right_true, right_false = self._condition(expr["rightExpression"], left_true)
            return right_true, left_false + right_false

        if nt == "BinaryOperation" and operator == "||":
            left_true, left_false = self._condition(expr["leftExpression"], pending)
            right_true, right_false = self._condition(expr["rightExpression"], left_false)
            return left_true + right_true, right_false

        if nt == "UnaryOperation" and operator == "!":
            on_true, on_false = self._condition(expr["subExpression"], pending)
            return on_false, on_true

        if nt == "TupleExpression" and len(expr.get("components") or []) == 1 and expr["components"][0]:
            return self._condition(expr["components"][0], pending)

        pending = self._expression(expr, pending)
        branch = self._new(NodeKind.BRANCH, expr)
        branch.condition = expr
        self._connect(pending, branch.id)
        return [(branch.id, EdgeKind.TRUE)], [(branch.id, EdgeKind.FALSE)]

    def _expression(self, expr: dict[str, Any] | None, pending: Pending) -> Pending:
        """Wire decisions nested inside an expression, in evaluation order."""
        if not isinstance(expr, dict):
            return pending
        nt = expr.get("nodeType", "")

        if nt == "Conditional":
            on_true, on_false = self._condition(expr["condition"], pending)
            return (
                self._arm(expr["trueExpression"], on_true)
                + self._arm(expr["falseExpression"], on_false)
            )

        if nt == "BinaryOperation" and expr.get("operator") in ("&&", "||"):
            on_true, on_false = self._condition(expr, pending)
            return on_true + on_false

        for child in self._children(expr):
            pending = self._expression(child, pending)
        return pending

    def _arm(self, expr: dict[str, Any], pending: Pending) -> Pending:
        pending = self._expression(expr, pending)
        arm = self._new(NodeKind.BLOCK, expr)
        arm.statements.append(expr)
        self._connect(pending, arm.id)
        return [(arm.id, EdgeKind.FALLTHROUGH)]

    @staticmethod
    def _children(expr: dict[str, Any]) -> list[dict[str, Any]]:
        children: list[dict[str, Any]] = []
        for key, value in expr.items():
            if key in ("typeDescriptions", "typeName"):
                continue
            if isinstance(value, dict) and "nodeType" in value:
                children.append(value)
            elif isinstance(value, list):
                children.extend(v for v in value if isinstance(v, dict) and "nodeType" in v)
        # solc emits keys alphabetically; evaluation order follows the source
        children.sort(key=lambda c: int(str(c.get("src", "0")).split(":")[0] or 0))
        return children


# ── Convenience ──────────────────────────────────────────────────────────────


def build_target_cfg(tree: SyntaxTree, target_name: str, policy: str | None = None) -> TargetCFG:
    """Build the CFG of one target."""
    return CFGBuilder(policy).build(tree, target_name)
