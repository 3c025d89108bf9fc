# solbtt/Analyzer/TreeGenerator.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from Analyzer.FunctionAnalyzer import FunctionAnalyzer
from Analyzer.SolcFrontEnd import SolcFrontEnd
from Domain.Errors import (ContractNotFound, Diagnostic, DiagnosticKind, FrontEndError,
                           OverloadAmbiguous)
from Tree.Renderer import write_tree

if TYPE_CHECKING:
    from Analyzer.FunctionAnalyzer import FunctionAnalysis
    from Domain.Contract import ContractDefinition, SourceModel
    from Utils.Config import GeneratorConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Target:
    """``""`` → whole project, ``Vault`` → one contract, ``Vault::withdraw`` → one function."""
    contract: str | None = None
    function: str | None = None

    @classmethod
    def parse(cls, text: str | None) -> "Target":
        text = (text or "").strip()
        if not text:
            return cls()
        contract, sep, function = text.partition("::")
        if "(" in text:
            raise OverloadAmbiguous("selecting an overload by signature is unsupported",
                                    contract=contract or None, function=function or None)
        if not contract or (sep and not function) or "::" in function:
            raise ValueError(f"malformed target {text!r}, expected Contract or Contract::function")
        return cls(contract, function or None)


@dataclass
class GenerationReport:
    written: list[Path] = field(default_factory=list)
    analyses: list["FunctionAnalysis"] = field(default_factory=list)
    warnings: list["Diagnostic"] = field(default_factory=list)


class TreeGenerator:
    def __init__(self, config: "GeneratorConfig", front_end=None):
        self.config = config
        self.front_end = front_end if front_end is not None else SolcFrontEnd(config)

    def generate(self, target: str | Target | None = None) -> GenerationReport:
        if not isinstance(target, Target):
            target = Target.parse(target)
        report = GenerationReport()

        if target.contract is None:
            files = self.front_end.source_files()
            if not files:
                logger.warning("no Solidity files under %s", self.config.src_dir)
            for path in files:
                self._generate_file(path, report)
            return report

        model = self.front_end.load([self.front_end.find_contract_file(target.contract)])
        contract = model.contract(target.contract)
        if contract is None:
            raise ContractNotFound("declared nowhere in the compiled sources",
                                   contract=target.contract)

        if target.function is None:
            self._generate_contract(model, contract, report)
        else:
            analysis = FunctionAnalyzer(contract, model.symbols).analyze(target.function)
            self._emit(analysis, report)
        return report

    def _generate_file(self, path: Path, report: GenerationReport):
        """One compilation per source, so a broken file only costs its own trees."""
        key = self.front_end.source_key(path)
        try:
            model = self.front_end.load([path])
        except FrontEndError as e:
            diag = Diagnostic(DiagnosticKind.SOURCE_SKIPPED, f"{key}: {e}")
            logger.warning("%s", diag)
            report.warnings.append(diag)
            return
        for contract in model.contracts_in(key):
            if contract.kind != "interface":
                self._generate_contract(model, contract, report)

    def _generate_contract(self, model: "SourceModel", contract: "ContractDefinition",
                           report: GenerationReport):
        analyzer = FunctionAnalyzer(contract, model.symbols)
        analyses, warnings = analyzer.analyze_all(jobs=self.config.jobs)
        report.warnings.extend(warnings)
        if not analyses:
            logger.info("%s: no public/external functions to analyze", contract.name)
        for analysis in analyses:
            self._emit(analysis, report)

    def _emit(self, analysis: "FunctionAnalysis", report: GenerationReport):
        path = write_tree(self.config.out_dir, analysis.contract, analysis.function,
                          analysis.text)
        logger.info("%s.%s -> %s", analysis.contract, analysis.function, path)
        report.written.append(path)
        report.analyses.append(analysis)
