# solbtt/Tree/Labeler.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from Domain.Errors import Diagnostic, DiagnosticKind
from Domain.Guard import Label
from Domain.Symbol import SymbolKind

if TYPE_CHECKING:
    from Domain.Guard import GuardCondition
    from Domain.IR import Expression

logger = logging.getLogger(__name__)

HUMANIZED = {
    "0": "zero",
    "address(0)": "the zero address",
}

# (true phrase, false phrase) per comparison operator
COMPARISONS = {
    "==": ("is", "is not"),
    "!=": ("is not", "is"),
    ">": ("is greater than", "is at most"),
    ">=": ("is at least", "is less than"),
    "<": ("is less than", "is at least"),
    "<=": ("is at most", "is greater than"),
}
# operator seen from the right-hand operand
_MIRRORED = {"==": "==", "!=": "!=", ">": "<", ">=": "<=", "<": ">", "<=": ">="}


def humanize(expr: "Expression") -> str:
    text = expr.text()
    return HUMANIZED.get(text, text)


def _is_literal(expr: "Expression") -> bool:
    return expr.context == "Literal" or (
        expr.context == "FunctionCall" and expr.function is not None
        and expr.function.context == "TypeName"
        and all(_is_literal(a) for a in expr.arguments))


def classify(condition: "GuardCondition") -> Label:
    # whether an external call succeeds is call context, whatever its target
    if condition.is_call_outcome:
        return Label.WHEN
    kinds = {s.kind for s in condition.predicate.symbols}
    if SymbolKind.STORAGE in kinds:
        return Label.GIVEN
    return Label.WHEN


# ─────────────────────────────────────────────────────────────────────
#  phrase templates (predicate shape → (true phrase, false phrase))
# ─────────────────────────────────────────────────────────────────────

class PhraseTemplate:
    """Base class; ``matches`` selects the shape, ``phrases`` renders it."""

    name = "template"

    def matches(self, expr: "Expression", top_level: "GuardCondition | None") -> bool:
        raise NotImplementedError

    def phrases(self, expr: "Expression", phraser: "Phraser") -> tuple[str, str]:
        raise NotImplementedError


class ExternalCallTemplate(PhraseTemplate):
    name = "external-call"

    def matches(self, expr, top_level):
        return top_level is not None and top_level.is_call_outcome

    def phrases(self, expr, phraser):
        return f"{expr.text()} succeeds", f"{expr.text()} fails"


class NegationTemplate(PhraseTemplate):
    name = "negation"

    def matches(self, expr, top_level):
        return expr.context == "UnaryOp" and expr.operator == "!"

    def phrases(self, expr, phraser):
        true_phrase, false_phrase = phraser.phrases_for(expr.expression)
        return false_phrase, true_phrase


class LogicalTemplate(PhraseTemplate):
    name = "logical"

    def matches(self, expr, top_level):
        return expr.context == "BinaryOp" and expr.operator in ("&&", "||")

    def phrases(self, expr, phraser):
        left_true, left_false = phraser.phrases_for(expr.left)
        right_true, right_false = phraser.phrases_for(expr.right)
        if expr.operator == "&&":
            return f"{left_true} and {right_true}", f"{left_false} or {right_false}"
        return f"{left_true} or {right_true}", f"{left_false} and {right_false}"


class ZeroCheckTemplate(PhraseTemplate):
    name = "zero-check"

    def matches(self, expr, top_level):
        if expr.context != "BinaryOp" or expr.operator not in ("==", "!="):
            return False
        return "0" in (expr.left.text(), expr.right.text())

    def phrases(self, expr, phraser):
        subject = expr.right if expr.left.text() == "0" else expr.left
        is_zero, not_zero = f"{subject.text()} is zero", f"{subject.text()} is not zero"
        return (is_zero, not_zero) if expr.operator == "==" else (not_zero, is_zero)


class ComparisonTemplate(PhraseTemplate):
    name = "comparison"

    def matches(self, expr, top_level):
        return expr.context == "BinaryOp" and expr.operator in COMPARISONS

    def phrases(self, expr, phraser):
        subject, op, other = expr.left, expr.operator, expr.right
        # "0 < amount" reads as "amount is greater than zero"
        if _is_literal(subject) and not _is_literal(other):
            subject, op, other = other, _MIRRORED[op], subject
        true_word, false_word = COMPARISONS[op]
        return (f"{subject.text()} {true_word} {humanize(other)}",
                f"{subject.text()} {false_word} {humanize(other)}")


class BooleanFlagTemplate(PhraseTemplate):
    name = "boolean-flag"

    def matches(self, expr, top_level):
        return expr.context in ("Identifier", "MemberAccess", "IndexAccess", "FunctionCall")

    def phrases(self, expr, phraser):
        return f"{expr.text()} is true", f"{expr.text()} is false"


DEFAULT_TEMPLATES = (
    ExternalCallTemplate(),
    NegationTemplate(),
    LogicalTemplate(),
    ZeroCheckTemplate(),
    ComparisonTemplate(),
    BooleanFlagTemplate(),
)


class Phraser:
    """Ordered list of templates; the first matching template wins."""

    def __init__(self, templates=DEFAULT_TEMPLATES):
        self.templates: list[PhraseTemplate] = list(templates)
        self.diagnostics: list[Diagnostic] = []

    def register(self, template: PhraseTemplate, *, before: str | None = None):
        if before is None:
            self.templates.insert(0, template)
            return
        names = [t.name for t in self.templates]
        if before not in names:
            raise ValueError(f"no phrase template named {before!r}")
        self.templates.insert(names.index(before), template)

    def phrase(self, condition: "GuardCondition") -> tuple[str, str]:
        return self.phrases_for(condition.predicate.expression, condition)

    def phrases_for(self, expr: "Expression",
                    top_level: "GuardCondition | None" = None) -> tuple[str, str]:
        for template in self.templates:
            if template.matches(expr, top_level):
                return template.phrases(expr, self)

        text = expr.text()
        diag = Diagnostic(DiagnosticKind.UNRECOGNIZED_PREDICATE_SHAPE,
                          f"no phrase template for '{text}', using literal text")
        if diag not in self.diagnostics:
            self.diagnostics.append(diag)
            logger.warning("%s", diag)
        return f"{text} holds", f"{text} does not hold"


@dataclass(frozen=True)
class LabeledCondition:
    label: Label
    true_phrase: str
    false_phrase: str
    any_loop: bool = False


class Labeler:
    def __init__(self, phraser: Phraser | None = None):
        self.phraser = phraser or Phraser()

    @property
    def diagnostics(self) -> list[Diagnostic]:
        return self.phraser.diagnostics

    def label(self, condition: "GuardCondition") -> LabeledCondition:
        true_phrase, false_phrase = self.phraser.phrase(condition)
        return LabeledCondition(classify(condition), true_phrase, false_phrase,
                                condition.in_loop)
