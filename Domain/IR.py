# solbtt/Domain/IR.py
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Iterator, Union

# binary operator precedence (higher binds tighter)
_PRECEDENCE = {
    "**": 13,
    "*": 12, "/": 12, "%": 12,
    "+": 11, "-": 11,
    "<<": 10, ">>": 10,
    "&": 9, "^": 8, "|": 7,
    "<": 6, ">": 6, "<=": 6, ">=": 6,
    "==": 5, "!=": 5,
    "&&": 4, "||": 3,
}
_ASSOCIATIVE = {"+", "*", "&", "|", "^", "&&", "||"}
_COMPOUND = {"BinaryOp", "Conditional", "UnaryOp"}


class Expression:
    """
    Structured expression as delivered by the front end.

    ``context`` names the shape: Identifier, Literal, MemberAccess,
    IndexAccess, IndexRange, FunctionCall, CallOptions, BinaryOp, UnaryOp,
    Conditional, Tuple, TypeName, New or Opaque.
    """

    _CHILD_FIELDS = ("left", "right", "function", "base", "index", "start_index",
                     "end_index", "expression", "condition", "true_expr", "false_expr")
    _LIST_FIELDS = ("arguments", "elements")

    def __init__(self, context, left=None, operator=None, right=None, identifier=None,
                 literal=None, literal_kind=None, function=None, arguments=None,
                 names=None, options=None, base=None, index=None, start_index=None,
                 end_index=None, member=None, expression=None, condition=None,
                 true_expr=None, false_expr=None, is_postfix=False, elements=None,
                 is_inline_array=False, type_name=None, ref=None, type_string=None,
                 is_external_call=False):
        self.context = context
        self.left = left                    # BinaryOp lhs
        self.operator = operator            # '+', '==', '!' …
        self.right = right                  # BinaryOp rhs
        self.identifier = identifier        # Identifier name
        self.literal = literal              # Literal value / Opaque text
        self.literal_kind = literal_kind    # number | bool | string | hexString …
        self.function = function            # FunctionCall / CallOptions callee
        self.arguments = arguments or []    # positional call arguments
        self.names = names or []            # named-argument names
        self.options = options or {}        # {value: …, gas: …}
        self.base = base                    # member / index base
        self.index = index
        self.start_index = start_index
        self.end_index = end_index
        self.member = member
        self.expression = expression        # UnaryOp operand
        self.condition = condition          # Conditional
        self.true_expr = true_expr
        self.false_expr = false_expr
        self.is_postfix = is_postfix
        self.elements = elements or []      # Tuple components
        self.is_inline_array = is_inline_array
        self.type_name = type_name          # TypeName / New
        self.ref = ref                      # referenced declaration id
        self.type_string = type_string      # solc typeDescriptions.typeString
        self.is_external_call = is_external_call

    def __repr__(self):
        return f"Expression({self.context}: {self.text()})"

    # ── traversal ─────────────────────────────────────────────────────
    def children(self) -> Iterator["Expression"]:
        for name in self._CHILD_FIELDS:
            child = getattr(self, name)
            if child is not None:
                yield child
        for name in self._LIST_FIELDS:
            for child in getattr(self, name):
                if child is not None:
                    yield child
        for child in self.options.values():
            yield child

    def walk(self) -> Iterator["Expression"]:
        yield self
        for child in self.children():
            yield from child.walk()

    def identifiers(self) -> Iterator["Expression"]:
        return (e for e in self.walk() if e.context == "Identifier")

    def external_calls(self) -> Iterator["Expression"]:
        return (e for e in self.walk() if e.context == "FunctionCall" and e.is_external_call)

    def substitute(self, mapping: dict[int, "Expression"]) -> "Expression":
        """Copy with every Identifier whose ``ref`` is in *mapping* replaced."""
        if self.context == "Identifier" and self.ref in mapping:
            return mapping[self.ref]
        clone = copy.copy(self)
        for name in self._CHILD_FIELDS:
            child = getattr(self, name)
            if child is not None:
                setattr(clone, name, child.substitute(mapping))
        for name in self._LIST_FIELDS:
            setattr(clone, name, [c.substitute(mapping) if c is not None else None
                                  for c in getattr(self, name)])
        clone.options = {k: v.substitute(mapping) for k, v in self.options.items()}
        return clone

    # ── canonical text ───────────────────────────────────────────────
    def text(self) -> str:
        match self.context:
            case "Identifier":
                return self.identifier
            case "Literal":
                return self._literal_text()
            case "MemberAccess":
                return f"{self._wrapped(self.base)}.{self.member}"
            case "IndexAccess":
                idx = self.index.text() if self.index is not None else ""
                return f"{self._wrapped(self.base)}[{idx}]"
            case "IndexRange":
                start = self.start_index.text() if self.start_index is not None else ""
                end = self.end_index.text() if self.end_index is not None else ""
                return f"{self._wrapped(self.base)}[{start}:{end}]"
            case "FunctionCall":
                return f"{self._wrapped(self.function)}({self._argument_text()})"
            case "CallOptions":
                opts = ", ".join(f"{k}: {v.text()}" for k, v in self.options.items())
                return f"{self.function.text()}{{{opts}}}"
            case "BinaryOp":
                return self._binary_text()
            case "UnaryOp":
                operand = self._wrapped(self.expression)
                if self.is_postfix:
                    return f"{operand}{self.operator}"
                if self.operator == "delete":
                    return f"delete {operand}"
                return f"{self.operator}{operand}"
            case "Conditional":
                return (f"{self.condition.text()} ? {self.true_expr.text()}"
                        f" : {self.false_expr.text()}")
            case "Tuple":
                inner = ", ".join(e.text() if e is not None else "" for e in self.elements)
                return f"[{inner}]" if self.is_inline_array else f"({inner})"
            case "TypeName":
                return self.type_name
            case "New":
                return f"new {self.type_name}"
            case _:
                return self.literal or "<expression>"

    def _literal_text(self) -> str:
        kind = self.literal_kind
        if kind == "string":
            return f'"{self.literal}"'
        if kind == "hexString":
            return f'hex"{self.literal}"'
        if self.type_name:                  # number sub-denomination (1 ether)
            return f"{self.literal} {self.type_name}"
        return str(self.literal)

    def _argument_text(self) -> str:
        args = [a.text() for a in self.arguments]
        if self.names:
            pairs = ", ".join(f"{n}: {a}" for n, a in zip(self.names, args))
            return f"{{{pairs}}}"
        return ", ".join(args)

    def _binary_text(self) -> str:
        prec = _PRECEDENCE.get(self.operator, 0)

        def side(e: Expression, right_side: bool) -> str:
            if e.context == "BinaryOp":
                child = _PRECEDENCE.get(e.operator, 0)
                if child == prec:
                    if self.operator == "**":           # right-associative
                        needs = not right_side
                    else:
                        needs = right_side and not (e.operator == self.operator
                                                    and self.operator in _ASSOCIATIVE)
                else:
                    needs = child < prec
                if needs:
                    return f"({e.text()})"
            elif e.context == "Conditional":
                return f"({e.text()})"
            return e.text()

        return f"{side(self.left, False)} {self.operator} {side(self.right, True)}"

    @staticmethod
    def _wrapped(e: "Expression") -> str:
        return f"({e.text()})" if e.context in _COMPOUND else e.text()


# ─────────────────────────────────────────────────────────────────────
#  Statements: closed set of shapes the analysis understands
# ─────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Block:
    statements: tuple["Statement", ...] = ()
    unchecked: bool = False
    # function body wrapped by modifiers: `return` leaves this block only
    function_body: bool = False


@dataclass(frozen=True)
class Require:
    condition: Expression
    message: Expression | None = None
    src_line: int | None = None


@dataclass(frozen=True)
class Assert:
    condition: Expression
    src_line: int | None = None


@dataclass(frozen=True)
class Revert:
    error: str | None = None             # custom error name, None for revert("…")
    arguments: tuple[Expression, ...] = ()
    src_line: int | None = None


@dataclass(frozen=True)
class If:
    condition: Expression
    true_body: Block
    false_body: Block | None = None
    src_line: int | None = None


@dataclass(frozen=True)
class Loop:
    kind: str                            # for | while | do_while
    body: Block
    condition: Expression | None = None
    src_line: int | None = None


@dataclass(frozen=True)
class Try:
    call: Expression
    success: Block
    catches: tuple[Block, ...] = ()
    src_line: int | None = None


@dataclass(frozen=True)
class Placeholder:
    src_line: int | None = None


@dataclass(frozen=True)
class Simple:
    """Assignment, emit, return, declaration, plain call … (guard-transparent)."""
    kind: str
    expression: Expression | None = None
    src_line: int | None = None
    extra: tuple[Expression, ...] = field(default=())


Statement = Union[Block, Require, Assert, Revert, If, Loop, Try, Placeholder, Simple]


def statement_expressions(stmt: Statement) -> Iterator[Expression]:
    """Expressions owned directly by *stmt* (not by nested statements)."""
    match stmt:
        case Require(condition=c, message=m):
            yield c
            if m is not None:
                yield m
        case Assert(condition=c):
            yield c
        case Revert(arguments=args):
            yield from args
        case If(condition=c):
            yield c
        case Loop(condition=c):
            if c is not None:
                yield c
        case Try(call=c):
            yield c
        case Simple(expression=e, extra=extra):
            if e is not None:
                yield e
            yield from extra
        case Block() | Placeholder():
            return


def nested_blocks(stmt: Statement) -> Iterator[Block]:
    match stmt:
        case Block():
            yield stmt
        case If(true_body=t, false_body=f):
            yield t
            if f is not None:
                yield f
        case Loop(body=b):
            yield b
        case Try(success=s, catches=cs):
            yield s
            yield from cs
        case Require() | Assert() | Revert() | Placeholder() | Simple():
            return


def walk_statements(stmt: Statement) -> Iterator[Statement]:
    """Pre-order walk over *stmt* and every statement nested in it."""
    yield stmt
    children = stmt.statements if isinstance(stmt, Block) else tuple(nested_blocks(stmt))
    for child in children:
        yield from walk_statements(child)
