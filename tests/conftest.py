# tests/conftest.py
from __future__ import annotations

import pytest

from ast_factory import AstFactory


@pytest.fixture
def ast():
    return AstFactory()


def build_vault(f: AstFactory):
    """
    contract Vault {
        address owner;
        mapping(address => uint256) balances;
        modifier onlyOwner() { require(msg.sender == owner, "not owner"); _; }
        function withdraw(uint256 amount) external onlyOwner {
            require(amount > 0, "zero amount");
            require(balances[msg.sender] >= amount, "insufficient");
            balances[msg.sender] -= amount;
        }
        function deposit() external payable { balances[msg.sender] += msg.value; }
    }
    """
    owner = f.state("owner", "address")
    balances = f.state("balances", "mapping(address => uint256)")
    only_owner = f.modifier("onlyOwner", body=[
        f.require(f.binop(f.sender(), "==", f.ref(owner)), "not owner"),
        f.placeholder(),
    ])
    amount = f.var("amount")
    withdraw = f.function("withdraw", [amount], [
        f.require(f.binop(f.ref(amount), ">", f.num(0)), "zero amount"),
        f.require(f.binop(f.index(f.ref(balances), f.sender()), ">=", f.ref(amount)),
                  "insufficient"),
        f.expr_stmt(f.assign(f.index(f.ref(balances), f.sender()), "-=", f.ref(amount))),
    ], modifiers=[f.invoke(only_owner)])
    deposit = f.function("deposit", [], [
        f.expr_stmt(f.assign(f.index(f.ref(balances), f.sender()), "+=",
                             f.member(f.magic("msg"), "value"))),
    ])
    return f.load(f.contract("Vault", owner, balances, only_owner, withdraw, deposit))


def build_mint(f: AstFactory):
    """
    contract Token {
        uint256 totalSupply; uint256 maxSupply;
        error InvalidAmount(); error MaxSupplyReached();
        function mint(uint256 amount) external {
            if (amount == 0) revert InvalidAmount();
            if (totalSupply + amount > maxSupply) revert MaxSupplyReached();
            totalSupply += amount;
        }
    }
    """
    total = f.state("totalSupply")
    cap = f.state("maxSupply")
    invalid = f.error("InvalidAmount")
    reached = f.error("MaxSupplyReached")
    amount = f.var("amount")
    mint = f.function("mint", [amount], [
        f.if_(f.binop(f.ref(amount), "==", f.num(0)), [f.revert_error(invalid)]),
        f.if_(f.binop(f.binop(f.ref(total), "+", f.ref(amount)), ">", f.ref(cap)),
              [f.revert_error(reached)]),
        f.expr_stmt(f.assign(f.ref(total), "+=", f.ref(amount))),
    ])
    return f.load(f.contract("Token", total, cap, invalid, reached, mint))


def build_single_require(f: AstFactory):
    amount = f.var("amount")
    fn = f.function("deposit", [amount], [
        f.require(f.binop(f.ref(amount), ">", f.num(0))),
    ])
    return f.load(f.contract("Pool", fn))


def build_visibility(f: AstFactory):
    def guarded(name, visibility):
        x = f.var("x")
        return f.function(name, [x], [f.require(f.binop(f.ref(x), "!=", f.num(0)))],
                          visibility=visibility)

    return f.load(f.contract(
        "Mixed",
        guarded("ext", "external"),
        guarded("pub", "public"),
        guarded("inner", "internal"),
        guarded("hidden", "private"),
    ))


def build_overloaded(f: AstFactory):
    a, b, c = f.var("a"), f.var("b", "address"), f.var("c")
    return f.load(f.contract(
        "Router",
        f.function("swap", [a], [f.require(f.binop(f.ref(a), ">", f.num(0)))]),
        f.function("swap", [b, c], [f.require(f.binop(f.ref(c), ">", f.num(0)))]),
        f.function("quote", [], []),
    ))


@pytest.fixture
def vault_model(ast):
    return build_vault(ast)


@pytest.fixture
def mint_model(ast):
    return build_mint(ast)


@pytest.fixture
def single_require_model(ast):
    return build_single_require(ast)


@pytest.fixture
def visibility_model(ast):
    return build_visibility(ast)


@pytest.fixture
def overloaded_model(ast):
    return build_overloaded(ast)
