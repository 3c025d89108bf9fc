# solbtt/Domain/Contract.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from Domain.IR import Block, Expression
    from Domain.Symbol import SymbolTable

EXTERNALLY_VISIBLE = ("external", "public")


@dataclass(frozen=True)
class Parameter:
    name: str
    type_name: str
    decl_id: int | None = None


@dataclass(frozen=True)
class ModifierInvocation:
    name: str
    arguments: tuple["Expression", ...] = ()
    ref: int | None = None


@dataclass(frozen=True)
class ModifierDefinition:
    name: str
    parameters: tuple[Parameter, ...] = ()
    body: "Block | None" = None
    decl_id: int | None = None


@dataclass(frozen=True)
class FunctionDefinition:
    name: str
    visibility: str
    kind: str = "function"              # function | constructor | fallback | receive
    parameters: tuple[Parameter, ...] = ()
    modifiers: tuple[ModifierInvocation, ...] = ()
    body: "Block | None" = None
    contract: str = ""
    inherited: bool = False
    src_line: int | None = None

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(p.type_name for p in self.parameters)})"

    @property
    def is_externally_visible(self) -> bool:
        return self.visibility in EXTERNALLY_VISIBLE

    @property
    def display_name(self) -> str:
        # fallback / receive have no name in the AST
        return self.name or self.kind


@dataclass(frozen=True)
class ContractDefinition:
    name: str
    kind: str = "contract"              # contract | abstract | interface | library
    functions: tuple[FunctionDefinition, ...] = ()
    modifiers: dict[str, ModifierDefinition] = field(default_factory=dict, hash=False)
    state_variables: tuple[str, ...] = ()
    bases: tuple[str, ...] = ()
    source_path: str | None = None

    def functions_named(self, name: str) -> list[FunctionDefinition]:
        return [f for f in self.functions if f.display_name == name]

    def own_functions(self) -> list[FunctionDefinition]:
        return [f for f in self.functions if not f.inherited]

    def modifier(self, name: str) -> ModifierDefinition | None:
        return self.modifiers.get(name)


@dataclass(frozen=True)
class SourceModel:
    """Everything the front end produced for one compilation."""
    contracts: dict[str, ContractDefinition]
    symbols: "SymbolTable"
    sources: tuple[str, ...] = ()

    def contract(self, name: str) -> ContractDefinition | None:
        return self.contracts.get(name)

    def contracts_in(self, source_path: str) -> list[ContractDefinition]:
        return [c for c in self.contracts.values() if c.source_path == source_path]
