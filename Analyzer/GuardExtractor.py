# solbtt/Analyzer/GuardExtractor.py
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterator

from Domain.Errors import Diagnostic, DiagnosticKind
from Domain.Guard import GuardCondition, Outcome, Predicate
from Domain.IR import (Assert, Block, If, Loop, Placeholder, Require, Revert, Simple, Try,
                       statement_expressions)
from Utils.CFG import ControlGraph

if TYPE_CHECKING:
    from Domain.IR import Expression, Statement
    from Domain.Symbol import SymbolTable
    from Utils.CFG import ControlNode

logger = logging.getLogger(__name__)

# (remaining statements, loop depth, function-body barrier) frames, innermost first
Frame = tuple[tuple["Statement", ...], int, bool]
Pending = tuple[Frame, ...]


class GuardExtractor:
    """
    Turns an inlined statement tree into a ControlGraph.

    Construction is continuation-passing: every branch receives its own copy
    of "what runs afterwards", so the two arms of an ``if`` never share a
    join node and the result is a tree.
    """

    def __init__(self, symbols: "SymbolTable"):
        self.symbols = symbols
        self.diagnostics: list[Diagnostic] = []
        self.graph: ControlGraph | None = None
        self._reported: set[tuple[str, int | None]] = set()

    def extract(self, body: Block, function_name: str) -> ControlGraph:
        self.graph = ControlGraph(function_name)
        root = self._build(((body.statements, 0, body.function_body),))
        self.graph.set_root(root)
        self.graph.validate()
        return self.graph

    # ── ① statement walk ────────────────────────────────────────────────
    def _build(self, pending: Pending) -> "ControlNode":
        g = self.graph

        while pending:
            (stmts, depth, barrier), rest = pending[0], pending[1:]
            if not stmts:
                pending = rest
                continue
            stmt = stmts[0]
            pending = ((stmts[1:], depth, barrier),) + rest
            self._note_external_calls(stmt)

            match stmt:
                case Block(statements=inner, function_body=body_barrier):
                    pending = ((inner, depth, body_barrier),) + pending

                case Require(condition=c, src_line=line) | Assert(condition=c, src_line=line):
                    source = "require" if isinstance(stmt, Require) else "assert"
                    node = g.add_branch(self._condition(c, depth, False, source), line)
                    g.connect(node, self._build(pending), True)
                    g.connect(node, g.add_terminal(Outcome.REVERT, line), False)
                    return node

                case Revert(src_line=line):
                    return g.add_terminal(Outcome.REVERT, line)

                case If(condition=c, true_body=t, false_body=f, src_line=line):
                    else_stmts = f.statements if f is not None else ()
                    if self._reverts_immediately(t.statements):
                        reverts_when = True
                    elif self._reverts_immediately(else_stmts):
                        reverts_when = False
                    else:
                        reverts_when = None
                    node = g.add_branch(self._condition(c, depth, reverts_when, "if"), line)
                    g.connect(node, self._build(((t.statements, depth, False),) + pending), True)
                    g.connect(node, self._build(((else_stmts, depth, False),) + pending), False)
                    return node

                case Loop(body=b):
                    # header condition is not a guard; body runs "some" iterations
                    pending = ((b.statements, depth + 1, False),) + pending

                case Try(call=call, success=s, catches=catches, src_line=line):
                    handler = catches[0].statements if catches else ()
                    failing_reverts = not catches or self._reverts_immediately(handler)
                    reverts_when = False if failing_reverts else None
                    node = g.add_branch(self._condition(call, depth, reverts_when, "try"), line)
                    g.connect(node, self._build(((s.statements, depth, False),) + pending), True)
                    if catches:
                        failure = self._build(((handler, depth, False),) + pending)
                    else:
                        failure = g.add_terminal(Outcome.REVERT, line)
                    g.connect(node, failure, False)
                    return node

                case Simple(kind="return", src_line=line):
                    # leave the function body; modifier code after `_;` still runs
                    pending = self._unwind(pending)
                    if not pending:
                        return g.add_terminal(Outcome.SUCCEED, line)

                case Placeholder() | Simple():
                    pass

        return g.add_terminal(Outcome.SUCCEED)

    @staticmethod
    def _unwind(pending: Pending) -> Pending:
        """Frames left after returning from the innermost function body."""
        for i, (_, _, barrier) in enumerate(pending):
            if barrier:
                return pending[i + 1:]
        return ()

    # ── ② conditions ────────────────────────────────────────────────────
    def _condition(self, expr: "Expression", depth: int, reverts_when, source) -> GuardCondition:
        symbols = []
        for ident in expr.identifiers():
            sym = self.symbols.resolve(ident.ref, ident.identifier)
            if sym is not None:
                symbols.append(sym)
        return GuardCondition(Predicate.of(expr, symbols), depth, reverts_when, source)

    @classmethod
    def _leading(cls, stmts) -> Iterator["Statement"]:
        for stmt in stmts:
            if isinstance(stmt, Block):
                yield from cls._leading(stmt.statements)
            else:
                yield stmt

    @classmethod
    def _reverts_immediately(cls, stmts) -> bool:
        """True when *stmts* reach a revert before any guard, branch or return."""
        for stmt in cls._leading(stmts):
            if isinstance(stmt, Revert):
                return True
            if isinstance(stmt, Simple) and stmt.kind != "return":
                continue
            if isinstance(stmt, Placeholder):
                continue
            return False
        return False

    def _note_external_calls(self, stmt: "Statement"):
        if isinstance(stmt, Try):
            return
        for expr in statement_expressions(stmt):
            for call in expr.external_calls():
                key = (call.text(), getattr(stmt, "src_line", None))
                if key in self._reported:
                    continue
                self._reported.add(key)
                diag = Diagnostic(DiagnosticKind.CROSS_CONTRACT_CALL_IGNORED,
                                  f"external call '{call.text()}' is not followed",
                                  key[1])
                self.diagnostics.append(diag)
                logger.info("%s", diag)
