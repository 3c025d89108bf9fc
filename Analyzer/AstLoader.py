# solbtt/Analyzer/AstLoader.py
from __future__ import annotations

import bisect
import logging
import re
from typing import Iterator

from Domain.Contract import (ContractDefinition, FunctionDefinition, ModifierDefinition,
                             ModifierInvocation, Parameter, SourceModel)
from Domain.Errors import FrontEndError
from Domain.IR import (Assert, Block, Expression, If, Loop, Placeholder, Require, Revert,
                       Simple, Try)
from Domain.Symbol import Symbol, SymbolKind, SymbolTable

logger = logging.getLogger(__name__)

# declarations that are neither variables nor parameters
_OPAQUE_DECLARATIONS = {
    "FunctionDefinition", "ModifierDefinition", "EventDefinition", "ErrorDefinition",
    "StructDefinition", "EnumDefinition", "EnumValue", "ContractDefinition",
    "UserDefinedValueTypeDefinition",
}
_GUARD_BUILTINS = {"require", "assert", "revert"}
_LOW_LEVEL_CALLS = {"call", "delegatecall", "staticcall", "send", "transfer"}
_DATA_LOCATION = re.compile(r"\s+(memory|calldata|storage)( pointer| ref)?$")


def _walk(node) -> Iterator[dict]:
    if isinstance(node, dict):
        yield node
        for value in node.values():
            yield from _walk(value)
    elif isinstance(node, list):
        for value in node:
            yield from _walk(value)


class AstLoader:
    """
    Converts solc compact-JSON ASTs into the contract model.

    Works in two passes: every declaration of every source unit is first
    registered in the symbol table (so a modifier in one file can reference
    a state variable declared in another), then contracts are converted with
    their inheritance flattened along ``linearizedBaseContracts``.
    """

    def __init__(self, sources: dict[str, str] | None = None):
        self.sources = sources or {}
        self._symbols: dict[int, Symbol] = {}
        self._contract_nodes: dict[int, tuple[dict, str]] = {}
        self._index_to_path: dict[int, str] = {}
        self._line_starts: dict[str, list[int]] = {}

    # ── ① entry ─────────────────────────────────────────────────────────
    def load(self, asts: dict[str, dict]) -> SourceModel:
        """*asts*: source path → ``SourceUnit`` node."""
        for path, unit in asts.items():
            if not isinstance(unit, dict) or unit.get("nodeType") != "SourceUnit":
                raise FrontEndError(f"{path}: not a compact-JSON SourceUnit")
            self._collect(unit, path)

        contracts: dict[str, ContractDefinition] = {}
        for node, path in self._contract_nodes.values():
            contract = self._contract(node, path)
            if contract.name in contracts:
                logger.warning("contract %s declared twice, keeping %s",
                               contract.name, path)
            contracts[contract.name] = contract

        logger.debug("loaded %d contract(s), %d symbol(s)", len(contracts), len(self._symbols))
        return SourceModel(contracts, SymbolTable(self._symbols), tuple(asts))

    def _collect(self, unit: dict, path: str):
        src = unit.get("src", "")
        if src.count(":") == 2:
            self._index_to_path[int(src.split(":")[2])] = path

        for node in _walk(unit):
            node_type = node.get("nodeType")
            decl_id = node.get("id")
            if decl_id is None:
                continue
            if node_type == "VariableDeclaration":
                kind = SymbolKind.STORAGE if node.get("stateVariable") else SymbolKind.PARAMETER
                self._symbols[decl_id] = Symbol(node.get("name", ""), kind, decl_id)
            elif node_type in _OPAQUE_DECLARATIONS:
                self._symbols[decl_id] = Symbol(node.get("name", ""), SymbolKind.UNKNOWN, decl_id)
                if node_type == "ContractDefinition":
                    self._contract_nodes[decl_id] = (node, path)

    # ── ② contracts ─────────────────────────────────────────────────────
    def _contract(self, node: dict, path: str) -> ContractDefinition:
        name = node["name"]
        lineage = [self._contract_nodes[i] for i in node.get("linearizedBaseContracts", [])
                   if i in self._contract_nodes and i != node["id"]]

        functions = [self._function(n, name, inherited=False)
                     for n in node.get("nodes", []) if n.get("nodeType") == "FunctionDefinition"]
        seen = {f.signature for f in functions}
        for base, _ in lineage:
            for n in base.get("nodes", []):
                if n.get("nodeType") != "FunctionDefinition" or n.get("kind") == "constructor":
                    continue
                fn = self._function(n, name, inherited=True)
                if fn.signature not in seen:
                    seen.add(fn.signature)
                    functions.append(fn)

        # most-derived definition wins
        modifiers: dict[str, ModifierDefinition] = {}
        for owner, _ in [*reversed(lineage), (node, path)]:
            for n in owner.get("nodes", []):
                if n.get("nodeType") == "ModifierDefinition":
                    modifiers[n["name"]] = self._modifier(n)

        state_variables = []
        for owner, _ in [(node, path), *lineage]:
            for n in owner.get("nodes", []):
                if n.get("nodeType") == "VariableDeclaration" and n["name"] not in state_variables:
                    state_variables.append(n["name"])

        kind = node.get("contractKind", "contract")
        if kind == "contract" and node.get("abstract"):
            kind = "abstract"
        return ContractDefinition(
            name=name,
            kind=kind,
            functions=tuple(functions),
            modifiers=modifiers,
            state_variables=tuple(state_variables),
            bases=tuple(b["name"] for b, _ in lineage),
            source_path=path,
        )

    def _function(self, node: dict, contract: str, *, inherited: bool) -> FunctionDefinition:
        invocations = []
        for m in node.get("modifiers", []):
            if m.get("kind") == "baseConstructorSpecifier":
                continue
            ref = m["modifierName"].get("referencedDeclaration")
            if m.get("kind") is None and ref in self._contract_nodes:
                continue
            invocations.append(ModifierInvocation(
                name=m["modifierName"]["name"],
                arguments=tuple(self._expr(a) for a in (m.get("arguments") or [])),
                ref=ref,
            ))
        body = node.get("body")
        return FunctionDefinition(
            name=node.get("name", ""),
            visibility=node.get("visibility", ""),
            kind=node.get("kind", "function"),
            parameters=self._parameters(node.get("parameters")),
            modifiers=tuple(invocations),
            body=self._as_block(body) if body else None,
            contract=contract,
            inherited=inherited,
            src_line=self._line(node.get("src")),
        )

    def _modifier(self, node: dict) -> ModifierDefinition:
        body = node.get("body")
        return ModifierDefinition(
            name=node["name"],
            parameters=self._parameters(node.get("parameters")),
            body=self._as_block(body) if body else None,
            decl_id=node.get("id"),
        )

    @staticmethod
    def _parameters(param_list: dict | None) -> tuple[Parameter, ...]:
        out = []
        for p in (param_list or {}).get("parameters", []):
            type_string = p.get("typeDescriptions", {}).get("typeString") or ""
            out.append(Parameter(p.get("name", ""), _DATA_LOCATION.sub("", type_string),
                                 p.get("id")))
        return tuple(out)

    # ── ③ statements ────────────────────────────────────────────────────
    def visit(self, node: dict):
        handler = getattr(self, f"visit{node.get('nodeType')}", None)
        return handler(node) if handler is not None else None

    def _statement(self, node: dict):
        stmt = self.visit(node)
        if stmt is None:
            logger.debug("treating %s as a plain statement", node.get("nodeType"))
            return Simple(node.get("nodeType", "unknown"), None, self._line(node.get("src")))
        return stmt

    def _as_block(self, node: dict) -> Block:
        stmt = self._statement(node)
        return stmt if isinstance(stmt, Block) else Block((stmt,))

    def visitBlock(self, node):
        return Block(tuple(self._statement(s) for s in node.get("statements", [])))

    def visitUncheckedBlock(self, node):
        return Block(tuple(self._statement(s) for s in node.get("statements", [])),
                     unchecked=True)

    def visitExpressionStatement(self, node):
        line = self._line(node.get("src"))
        call = node["expression"]
        callee = call.get("expression", {}) if call.get("nodeType") == "FunctionCall" else {}
        ref = callee.get("referencedDeclaration")
        if (callee.get("nodeType") == "Identifier" and callee.get("name") in _GUARD_BUILTINS
                and (ref is None or ref < 0)):
            args = [self._expr(a) for a in call.get("arguments", [])]
            match callee["name"]:
                case "require":
                    return Require(args[0], args[1] if len(args) > 1 else None, line)
                case "assert":
                    return Assert(args[0], line)
                case "revert":
                    return Revert(None, tuple(args), line)
        return Simple("expression", self._expr(call), line)

    def visitRevertStatement(self, node):
        call = node["errorCall"]
        return Revert(self._expr(call["expression"]).text(),
                      tuple(self._expr(a) for a in call.get("arguments", [])),
                      self._line(node.get("src")))

    def visitIfStatement(self, node):
        false_body = node.get("falseBody")
        return If(self._expr(node["condition"]),
                  self._as_block(node["trueBody"]),
                  self._as_block(false_body) if false_body else None,
                  self._line(node.get("src")))

    def visitForStatement(self, node):
        line = self._line(node.get("src"))
        body = self._as_block(node["body"])
        step = node.get("loopExpression")
        if step:
            body = Block(body.statements + (self._statement(step),), body.unchecked)
        loop = Loop("for", body, self._expr(node.get("condition")), line)
        init = node.get("initializationExpression")
        return Block((self._statement(init), loop)) if init else loop

    def visitWhileStatement(self, node):
        return Loop("while", self._as_block(node["body"]), self._expr(node.get("condition")),
                    self._line(node.get("src")))

    def visitDoWhileStatement(self, node):
        return Loop("do_while", self._as_block(node["body"]),
                    self._expr(node.get("condition")), self._line(node.get("src")))

    def visitTryStatement(self, node):
        clauses = node.get("clauses", [])
        if not clauses:
            raise FrontEndError("try statement without clauses")
        return Try(self._expr(node["externalCall"]),
                   self._as_block(clauses[0]["block"]),
                   tuple(self._as_block(c["block"]) for c in clauses[1:]),
                   self._line(node.get("src")))

    def visitPlaceholderStatement(self, node):
        return Placeholder(self._line(node.get("src")))

    def visitReturn(self, node):
        return Simple("return", self._expr(node.get("expression")), self._line(node.get("src")))

    def visitEmitStatement(self, node):
        return Simple("emit", self._expr(node.get("eventCall")), self._line(node.get("src")))

    def visitVariableDeclarationStatement(self, node):
        return Simple("declaration", self._expr(node.get("initialValue")),
                      self._line(node.get("src")))

    def visitInlineAssembly(self, node):
        return Simple("assembly", None, self._line(node.get("src")))

    def visitBreak(self, node):
        return Simple("break", None, self._line(node.get("src")))

    def visitContinue(self, node):
        return Simple("continue", None, self._line(node.get("src")))

    # ── ④ expressions ───────────────────────────────────────────────────
    def _expr(self, node: dict | None) -> Expression | None:
        if node is None:
            return None
        expr = self.visit(node)
        if expr is None:
            return Expression("Opaque", literal=node.get("nodeType"))
        return expr

    @staticmethod
    def _type_string(node: dict) -> str | None:
        return node.get("typeDescriptions", {}).get("typeString")

    def visitIdentifier(self, node):
        return Expression("Identifier", identifier=node["name"],
                          ref=node.get("referencedDeclaration"),
                          type_string=self._type_string(node))

    def visitIdentifierPath(self, node):
        return Expression("Identifier", identifier=node["name"],
                          ref=node.get("referencedDeclaration"))

    def visitLiteral(self, node):
        kind = node.get("kind", "number")
        value = node.get("value")
        if value is None:                       # non-UTF-8 string literal
            kind, value = "hexString", node.get("hexValue", "")
        if kind == "unicodeString":
            kind = "string"
        return Expression("Literal", literal=value, literal_kind=kind,
                          type_name=node.get("subdenomination"),
                          type_string=self._type_string(node))

    def visitMemberAccess(self, node):
        return Expression("MemberAccess", base=self._expr(node["expression"]),
                          member=node["memberName"], ref=node.get("referencedDeclaration"),
                          type_string=self._type_string(node))

    def visitIndexAccess(self, node):
        return Expression("IndexAccess", base=self._expr(node["baseExpression"]),
                          index=self._expr(node.get("indexExpression")),
                          type_string=self._type_string(node))

    def visitIndexRangeAccess(self, node):
        return Expression("IndexRange", base=self._expr(node["baseExpression"]),
                          start_index=self._expr(node.get("startExpression")),
                          end_index=self._expr(node.get("endExpression")))

    def visitFunctionCall(self, node):
        return Expression("FunctionCall", function=self._expr(node["expression"]),
                          arguments=[self._expr(a) for a in node.get("arguments", [])],
                          names=list(node.get("names", [])),
                          type_string=self._type_string(node),
                          is_external_call=self._is_external_call(node["expression"]))

    def visitFunctionCallOptions(self, node):
        options = {name: self._expr(opt)
                   for name, opt in zip(node.get("names", []), node.get("options", []))}
        return Expression("CallOptions", function=self._expr(node["expression"]),
                          options=options)

    def visitBinaryOperation(self, node):
        return Expression("BinaryOp", left=self._expr(node["leftExpression"]),
                          operator=node["operator"],
                          right=self._expr(node["rightExpression"]),
                          type_string=self._type_string(node))

    def visitAssignment(self, node):
        return Expression("BinaryOp", left=self._expr(node["leftHandSide"]),
                          operator=node["operator"],
                          right=self._expr(node["rightHandSide"]))

    def visitUnaryOperation(self, node):
        return Expression("UnaryOp", operator=node["operator"],
                          expression=self._expr(node["subExpression"]),
                          is_postfix=not node.get("prefix", True),
                          type_string=self._type_string(node))

    def visitConditional(self, node):
        return Expression("Conditional", condition=self._expr(node["condition"]),
                          true_expr=self._expr(node["trueExpression"]),
                          false_expr=self._expr(node["falseExpression"]))

    def visitTupleExpression(self, node):
        components = node.get("components", [])
        inline = node.get("isInlineArray", False)
        if not inline and len(components) == 1 and components[0] is not None:
            return self._expr(components[0])    # parentheses
        return Expression("Tuple", elements=[self._expr(c) for c in components],
                          is_inline_array=inline)

    def visitElementaryTypeNameExpression(self, node):
        type_name = node.get("typeName")
        if isinstance(type_name, dict):
            name = "payable" if type_name.get("stateMutability") == "payable" else type_name.get("name")
        else:
            name = type_name
        return Expression("TypeName", type_name=name)

    def visitNewExpression(self, node):
        return Expression("New", type_name=self._type_name(node.get("typeName", {})))

    def _type_name(self, node: dict) -> str:
        match node.get("nodeType"):
            case "ElementaryTypeName":
                return node.get("name", "")
            case "UserDefinedTypeName":
                return node.get("pathNode", {}).get("name") or node.get("name", "")
            case "ArrayTypeName":
                return f"{self._type_name(node.get('baseType', {}))}[]"
            case _:
                return self._type_string(node) or ""

    @staticmethod
    def _is_external_call(callee: dict) -> bool:
        if callee.get("nodeType") == "FunctionCallOptions":
            callee = callee["expression"]
        if callee.get("nodeType") != "MemberAccess":
            return False
        fn_type = callee.get("typeDescriptions", {}).get("typeString") or ""
        if fn_type.startswith("function") and " external" in fn_type:
            return True
        base_type = callee.get("expression", {}).get("typeDescriptions", {}).get("typeString") or ""
        return base_type.startswith("address") and callee.get("memberName") in _LOW_LEVEL_CALLS

    # ── ⑤ source positions ──────────────────────────────────────────────
    def _line(self, src: str | None) -> int | None:
        if not src or src.count(":") != 2:
            return None
        start, _, index = (int(x) for x in src.split(":"))
        path = self._index_to_path.get(index)
        text = self.sources.get(path) if path is not None else None
        if text is None:
            return None
        if path not in self._line_starts:
            starts = [0]
            starts.extend(i + 1 for i, ch in enumerate(text.encode("utf-8")) if ch == 0x0A)
            self._line_starts[path] = starts
        return bisect.bisect_right(self._line_starts[path], start)
