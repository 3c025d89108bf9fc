import pytest

from Analyzer.ModifierInliner import ModifierInliner
from Domain.Contract import (ContractDefinition, FunctionDefinition, ModifierDefinition,
                             ModifierInvocation, Parameter)
from Domain.Errors import UnresolvedModifier
from Domain.IR import Block, Expression, If, Placeholder, Require, Simple
from Domain.Symbol import Symbol, SymbolKind, SymbolTable

SYMBOLS = SymbolTable({
    1: Symbol("owner", SymbolKind.STORAGE, 1),
    2: Symbol("locked", SymbolKind.STORAGE, 2),
    3: Symbol("hasRole", SymbolKind.UNKNOWN, 3),
    4: Symbol("role", SymbolKind.PARAMETER, 4),
    5: Symbol("MINTER_ROLE", SymbolKind.STORAGE, 5),
})


def ident(name, ref):
    return Expression("Identifier", identifier=name, ref=ref)


def sender():
    return Expression("MemberAccess", base=ident("msg", -15), member="sender")


def contract(*modifiers):
    return ContractDefinition("C", modifiers={m.name: m for m in modifiers})


def function(*invocations, body=()):
    return FunctionDefinition("f", "external", modifiers=tuple(invocations),
                              body=Block(tuple(body)))


ONLY_OWNER = ModifierDefinition("onlyOwner", body=Block((
    Require(Expression("BinaryOp", left=sender(), operator="==", right=ident("owner", 1))),
    Placeholder(),
)))
NON_REENTRANT = ModifierDefinition("nonReentrant", body=Block((
    Require(Expression("UnaryOp", operator="!", expression=ident("locked", 2))),
    Simple("expression"),
    Placeholder(),
    Simple("expression"),
)))
ONLY_ROLE = ModifierDefinition("onlyRole", parameters=(Parameter("role", "bytes32", 4),),
                               body=Block((
                                   Require(Expression("FunctionCall",
                                                      function=ident("hasRole", 3),
                                                      arguments=[ident("role", 4), sender()])),
                                   Placeholder(),
                               )))


def flatten(stmt):
    if isinstance(stmt, Block):
        for s in stmt.statements:
            yield from flatten(s)
    else:
        yield stmt


def test_first_attached_modifier_is_outermost():
    body = Simple("body")
    fn = function(ModifierInvocation("onlyOwner"), ModifierInvocation("nonReentrant"),
                  body=[body])
    inlined = ModifierInliner(contract(ONLY_OWNER, NON_REENTRANT), SYMBOLS).inline(fn)
    flat = list(flatten(inlined))
    assert [type(s).__name__ for s in flat] == [
        "Require",      # onlyOwner pre
        "Require",      # nonReentrant pre
        "Simple",
        "Simple",       # body
        "Simple",       # nonReentrant post
    ]
    assert flat[0].condition.text() == "msg.sender == owner"
    assert flat[1].condition.text() == "!locked"
    assert flat[3] is body


def test_arguments_replace_modifier_parameters():
    fn = function(ModifierInvocation("onlyRole", (ident("MINTER_ROLE", 5),)))
    inlined = ModifierInliner(contract(ONLY_ROLE), SYMBOLS).inline(fn)
    guard = next(flatten(inlined))
    assert guard.condition.text() == "hasRole(MINTER_ROLE, msg.sender)"


def test_nested_placeholder_is_substituted_in_place():
    conditional = ModifierDefinition("maybe", body=Block((
        If(ident("locked", 2), Block((Placeholder(),)), Block((Placeholder(),))),
    )))
    marker = Simple("body")
    inlined = ModifierInliner(contract(conditional), SYMBOLS).inline(
        function(ModifierInvocation("maybe"), body=[marker]))
    branch = inlined.statements[0]
    assert isinstance(branch, If)
    assert list(flatten(branch.true_body)) == [marker]
    assert list(flatten(branch.false_body)) == [marker]


@pytest.mark.parametrize("modifier, invocation, message", [
    (None, ModifierInvocation("ghost"), "not defined"),
    (ModifierDefinition("virt"), ModifierInvocation("virt"), "no body"),
    (ModifierDefinition("noop", body=Block((Simple("expression"),))),
     ModifierInvocation("noop"), "no placeholder"),
    (ONLY_ROLE, ModifierInvocation("onlyRole"), "argument"),
    (ModifierDefinition("bad", body=Block((Require(ident("mystery", 99)), Placeholder()))),
     ModifierInvocation("bad"), "unresolved symbol 'mystery'"),
])
def test_unresolvable_modifiers(modifier, invocation, message):
    c = contract(modifier) if modifier is not None else contract()
    with pytest.raises(UnresolvedModifier, match=message):
        ModifierInliner(c, SYMBOLS).inline(function(invocation))
