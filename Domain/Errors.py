# solbtt/Domain/Errors.py
"""
Error and diagnostic types.

AnalysisError (base)
├── FunctionNotFound     target name has no definition in the contract
├── FunctionNotVisible   internal / private target requested
├── OverloadAmbiguous    name resolves to more than one signature
├── UnresolvedModifier   modifier missing, bodiless, placeholder-less …
├── ContractNotFound     no source declares the requested contract
├── FrontEndError        solc or AST loading failure
└── ProjectConfigError   unreadable foundry.toml / remappings

Diagnostics are non-fatal and travel with the analysis result.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class AnalysisError(Exception):
    kind = "AnalysisError"

    def __init__(self, message: str, *, contract: str | None = None,
                 function: str | None = None):
        super().__init__(message)
        self.message = message
        self.contract = contract
        self.function = function

    def __str__(self):
        where = "::".join(p for p in (self.contract, self.function) if p)
        return f"{self.kind}: {where}: {self.message}" if where else f"{self.kind}: {self.message}"


class FunctionNotFound(AnalysisError):
    kind = "FunctionNotFound"


class FunctionNotVisible(AnalysisError):
    kind = "FunctionNotVisible"


class OverloadAmbiguous(AnalysisError):
    kind = "OverloadAmbiguous"


class UnresolvedModifier(AnalysisError):
    kind = "UnresolvedModifier"


class ContractNotFound(AnalysisError):
    kind = "ContractNotFound"


class FrontEndError(AnalysisError):
    kind = "FrontEndError"


class ProjectConfigError(AnalysisError):
    kind = "ProjectConfigError"


class DiagnosticKind(Enum):
    UNRECOGNIZED_PREDICATE_SHAPE = "UnrecognizedPredicateShape"
    CROSS_CONTRACT_CALL_IGNORED = "CrossContractCallIgnored"
    FUNCTION_SKIPPED = "FunctionSkipped"
    SOURCE_SKIPPED = "SourceSkipped"


@dataclass(frozen=True)
class Diagnostic:
    kind: DiagnosticKind
    message: str
    line: int | None = None

    def __str__(self):
        at = f" (line {self.line})" if self.line is not None else ""
        return f"{self.kind.value}{at}: {self.message}"
