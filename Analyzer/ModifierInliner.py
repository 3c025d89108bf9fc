# solbtt/Analyzer/ModifierInliner.py
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from Domain.Errors import UnresolvedModifier
from Domain.IR import (Assert, Block, If, Loop, Placeholder, Require, Revert, Simple,
                       Try, statement_expressions, walk_statements)

if TYPE_CHECKING:
    from Domain.Contract import (ContractDefinition, FunctionDefinition,
                                 ModifierDefinition, ModifierInvocation)
    from Domain.IR import Expression, Statement
    from Domain.Symbol import SymbolTable

logger = logging.getLogger(__name__)


class ModifierInliner:
    """
    Expands a function's modifiers into one statement tree.

    ``f() m1 m2 { body }`` becomes ``m1-pre, m2-pre, body, m2-post, m1-post``:
    modifiers are spliced innermost first, so the first attached modifier
    ends up outermost.
    """

    def __init__(self, contract: "ContractDefinition", symbols: "SymbolTable"):
        self.contract = contract
        self.symbols = symbols

    def inline(self, fn: "FunctionDefinition") -> Block:
        body = fn.body if fn.body is not None else Block()
        wrapped = Block(body.statements, body.unchecked, function_body=True)
        for invocation in reversed(fn.modifiers):
            modifier = self._resolve(invocation, fn)
            mapping = self._bind_arguments(modifier, invocation, fn)
            wrapped = self.splice_modifier(modifier.body, wrapped, mapping)
            logger.debug("inlined modifier %s into %s", modifier.name, fn.display_name)
        return wrapped

    # ── ① lookup & validation ───────────────────────────────────────────
    def _resolve(self, invocation: "ModifierInvocation",
                 fn: "FunctionDefinition") -> "ModifierDefinition":
        modifier = self.contract.modifier(invocation.name)
        if modifier is None:
            self._fail(fn, f"modifier '{invocation.name}' is not defined")
        if modifier.body is None:
            self._fail(fn, f"modifier '{modifier.name}' has no body")
        if not any(isinstance(s, Placeholder) for s in walk_statements(modifier.body)):
            self._fail(fn, f"modifier '{modifier.name}' has no placeholder '_;'")

        params = {p.decl_id for p in modifier.parameters}
        for stmt in walk_statements(modifier.body):
            for expr in statement_expressions(stmt):
                for ident in expr.identifiers():
                    if ident.ref in params:
                        continue
                    if self.symbols.resolve(ident.ref, ident.identifier) is None:
                        self._fail(fn, f"modifier '{modifier.name}' references "
                                       f"unresolved symbol '{ident.identifier}'")
        return modifier

    def _bind_arguments(self, modifier: "ModifierDefinition",
                        invocation: "ModifierInvocation",
                        fn: "FunctionDefinition") -> dict[int, "Expression"]:
        if len(invocation.arguments) != len(modifier.parameters):
            self._fail(fn, f"modifier '{modifier.name}' takes {len(modifier.parameters)} "
                           f"argument(s), {len(invocation.arguments)} given")
        return {p.decl_id: arg for p, arg in zip(modifier.parameters, invocation.arguments)
                if p.decl_id is not None}

    def _fail(self, fn: "FunctionDefinition", message: str):
        raise UnresolvedModifier(message, contract=self.contract.name,
                                 function=fn.display_name)

    # ── ② structural splice ─────────────────────────────────────────────
    def splice_modifier(self, stmt: "Statement", wrapped: Block,
                        mapping: dict[int, "Expression"]) -> "Statement":
        """Copy *stmt* with every placeholder replaced by *wrapped*."""
        def sub(e):
            return e.substitute(mapping) if e is not None else None

        def body(b):
            return self.splice_modifier(b, wrapped, mapping) if b is not None else None

        match stmt:
            case Placeholder():
                return wrapped
            case Block(statements=stmts, unchecked=unchecked, function_body=barrier):
                return Block(tuple(self.splice_modifier(s, wrapped, mapping) for s in stmts),
                             unchecked, barrier)
            case Require(condition=c, message=m, src_line=line):
                return Require(sub(c), sub(m), line)
            case Assert(condition=c, src_line=line):
                return Assert(sub(c), line)
            case Revert(error=err, arguments=args, src_line=line):
                return Revert(err, tuple(sub(a) for a in args), line)
            case If(condition=c, true_body=t, false_body=f, src_line=line):
                return If(sub(c), body(t), body(f), line)
            case Loop(kind=kind, body=b, condition=c, src_line=line):
                return Loop(kind, body(b), sub(c), line)
            case Try(call=call, success=s, catches=catches, src_line=line):
                return Try(sub(call), body(s), tuple(body(c) for c in catches), line)
            case Simple(kind=kind, expression=e, src_line=line, extra=extra):
                return Simple(kind, sub(e), line, tuple(sub(x) for x in extra))
