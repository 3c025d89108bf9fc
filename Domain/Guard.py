# solbtt/Domain/Guard.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from Domain.IR import Expression
    from Domain.Symbol import Symbol


class Outcome(Enum):
    REVERT = "revert"
    SUCCEED = "succeed"

    @property
    def phrase(self) -> str:
        return f"it should {self.value}"


class Label(Enum):
    GIVEN = "given"
    WHEN = "when"


@dataclass(frozen=True)
class Predicate:
    """
    Boolean expression plus the symbols it references.

    Equality is structural: canonical text and the referenced-symbol set.
    The expression object itself only feeds the phraser.
    """
    expression: "Expression" = field(compare=False, repr=False)
    text: str
    symbols: frozenset["Symbol"] = frozenset()

    @classmethod
    def of(cls, expression: "Expression", symbols) -> "Predicate":
        return cls(expression, expression.text(), frozenset(symbols))


@dataclass(frozen=True)
class GuardCondition:
    predicate: Predicate
    loop_depth: int = 0
    # polarity whose side reverts at once (False: require/assert, try without
    # a recovering catch; True: if-revert; None: neither side), visited first
    reverts_when: bool | None = field(default=None, compare=False)
    source: str = field(default="require", compare=False)

    @property
    def in_loop(self) -> bool:
        return self.loop_depth > 0

    @property
    def is_call_outcome(self) -> bool:
        return self.source == "try"


@dataclass(frozen=True)
class PathStep:
    condition: GuardCondition
    polarity: bool


@dataclass(frozen=True)
class Path:
    steps: tuple[PathStep, ...]
    outcome: Outcome

    def __len__(self):
        return len(self.steps)
