# solbtt/Analyzer/FunctionAnalyzer.py
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from Analyzer.GuardExtractor import GuardExtractor
from Analyzer.ModifierInliner import ModifierInliner
from Domain.Errors import (Diagnostic, DiagnosticKind, FunctionNotFound, FunctionNotVisible,
                           OverloadAmbiguous, UnresolvedModifier)
from Interpreter.PathEnumerator import PathEnumerator
from Tree.Builder import TreeBuilder
from Tree.Labeler import Labeler
from Tree.Renderer import render_to_string

if TYPE_CHECKING:
    from Domain.Contract import ContractDefinition, FunctionDefinition
    from Domain.Guard import Path
    from Domain.Symbol import SymbolTable
    from Tree.Node import TreeRoot

logger = logging.getLogger(__name__)

# function kinds that can be called on a deployed contract
_CALLABLE_KINDS = ("function", "fallback", "receive")


@dataclass
class FunctionAnalysis:
    contract: str
    function: str
    tree: "TreeRoot"
    text: str
    paths: list["Path"] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)


class FunctionAnalyzer:
    """
    Runs the pipeline (inline → extract → enumerate → label → build →
    render) for the functions of one contract.

    Every stage gets a fresh instance per function; the only shared input is
    the read-only symbol table, so ``analyze_all`` can fan out over threads.
    """

    def __init__(self, contract: "ContractDefinition", symbols: "SymbolTable",
                 phraser_factory=None):
        self.contract = contract
        self.symbols = symbols
        self.phraser_factory = phraser_factory

    # ── ① target resolution ─────────────────────────────────────────────
    def resolve(self, name: str) -> "FunctionDefinition":
        candidates = self.contract.functions_named(name)
        if not candidates:
            raise FunctionNotFound("no function with this name",
                                   contract=self.contract.name, function=name)
        if len(candidates) > 1:
            sigs = ", ".join(f.signature for f in candidates)
            raise OverloadAmbiguous(f"overloaded as {sigs}; overload selection is unsupported",
                                    contract=self.contract.name, function=name)
        fn = candidates[0]
        if not fn.is_externally_visible:
            raise FunctionNotVisible(f"visibility is {fn.visibility or 'internal'}",
                                     contract=self.contract.name, function=name)
        return fn

    def analyze(self, name: str) -> FunctionAnalysis:
        return self.analyze_function(self.resolve(name))

    # ── ② pipeline ──────────────────────────────────────────────────────
    def analyze_function(self, fn: "FunctionDefinition") -> FunctionAnalysis:
        if not fn.is_externally_visible:
            raise FunctionNotVisible(f"visibility is {fn.visibility or 'internal'}",
                                     contract=self.contract.name, function=fn.display_name)

        body = ModifierInliner(self.contract, self.symbols).inline(fn)

        extractor = GuardExtractor(self.symbols)
        graph = extractor.extract(body, fn.display_name)
        paths = PathEnumerator(graph).enumerate()

        phraser = self.phraser_factory() if self.phraser_factory else None
        labeler = Labeler(phraser)
        tree = TreeBuilder(labeler).build(fn.display_name, paths)
        text = render_to_string(tree)

        logger.debug("%s.%s: %d branch(es), %d path(s)", self.contract.name,
                     fn.display_name, len(graph.branch_nodes()), len(paths))
        return FunctionAnalysis(
            contract=self.contract.name,
            function=fn.display_name,
            tree=tree,
            text=text,
            paths=paths,
            diagnostics=[*extractor.diagnostics, *labeler.diagnostics],
        )

    # ── ③ bulk ──────────────────────────────────────────────────────────
    def eligible_functions(self) -> list["FunctionDefinition"]:
        out = []
        for fn in self.contract.own_functions():
            if fn.kind not in _CALLABLE_KINDS:
                continue
            if not fn.is_externally_visible:
                logger.debug("skipping %s.%s (%s)", self.contract.name, fn.display_name,
                             fn.visibility)
                continue
            if fn.body is None:
                logger.debug("skipping %s.%s (not implemented)", self.contract.name,
                             fn.display_name)
                continue
            out.append(fn)
        return out

    def analyze_all(self, jobs: int = 1) -> tuple[list[FunctionAnalysis], list[Diagnostic]]:
        """
        Analyze every eligible function, in source order.

        Overloaded names and functions whose modifiers cannot be resolved are
        skipped with a warning instead of failing the contract.
        """
        eligible = self.eligible_functions()
        counts: dict[str, int] = {}
        for fn in eligible:
            counts[fn.display_name] = counts.get(fn.display_name, 0) + 1

        warnings: list[Diagnostic] = []
        todo = []
        for fn in eligible:
            if counts[fn.display_name] > 1:
                warnings.append(self._skip(fn, f"overloaded name ({fn.signature}) skipped"))
            else:
                todo.append(fn)

        if jobs > 1 and len(todo) > 1:
            with ThreadPoolExecutor(max_workers=jobs) as pool:
                outcomes = list(pool.map(self._try_analyze, todo))
        else:
            outcomes = [self._try_analyze(fn) for fn in todo]

        results = []
        for fn, outcome in zip(todo, outcomes):
            if isinstance(outcome, UnresolvedModifier):
                warnings.append(self._skip(fn, str(outcome)))
            else:
                results.append(outcome)
        return results, warnings

    def _try_analyze(self, fn: "FunctionDefinition"):
        try:
            return self.analyze_function(fn)
        except UnresolvedModifier as e:
            return e

    def _skip(self, fn: "FunctionDefinition", message: str) -> Diagnostic:
        diag = Diagnostic(DiagnosticKind.FUNCTION_SKIPPED,
                          f"{self.contract.name}.{fn.display_name}: {message}", fn.src_line)
        logger.warning("%s", diag)
        return diag
