# solbtt/Domain/Symbol.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping


class SymbolKind(Enum):
    STORAGE = "storage"
    PARAMETER = "parameter"            # parameters, return vars, locals
    EXTERNAL_CONTEXT = "external"      # msg.*, block.*, tx.*, this …
    UNKNOWN = "unknown"                # functions, events, types, builtins


# solc marks magic globals with negative declaration ids
CONTEXT_GLOBALS = frozenset({
    "msg", "block", "tx", "this", "now", "gasleft", "blockhash",
})


@dataclass(frozen=True)
class Symbol:
    name: str
    kind: SymbolKind
    decl_id: int | None = None


class SymbolTable:
    """
    Read-only ``declaration id → Symbol`` map produced by the front end.

    One table is built per compilation and threaded explicitly through the
    pipeline stages; nothing mutates it after construction, so functions can
    be analyzed in parallel against the same instance.
    """

    def __init__(self, symbols: Mapping[int, Symbol] | None = None):
        self._by_id: Mapping[int, Symbol] = MappingProxyType(dict(symbols or {}))

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, decl_id) -> bool:
        return decl_id in self._by_id

    def resolve(self, decl_id: int | None, name: str | None = None) -> Symbol | None:
        """
        Resolve a referenced declaration.

        * known id                → the registered Symbol
        * negative id (solc magic) → ExternalContext for msg/block/tx/…,
                                     Unknown for require/keccak256/…
        * anything else           → None (unresolved)
        """
        if decl_id is not None and decl_id in self._by_id:
            return self._by_id[decl_id]
        if decl_id is not None and decl_id < 0:
            if name in CONTEXT_GLOBALS:
                return Symbol(name, SymbolKind.EXTERNAL_CONTEXT, decl_id)
            return Symbol(name or "", SymbolKind.UNKNOWN, decl_id)
        return None

    def kind_of(self, decl_id: int | None, name: str | None = None) -> SymbolKind:
        sym = self.resolve(decl_id, name)
        return sym.kind if sym is not None else SymbolKind.UNKNOWN
