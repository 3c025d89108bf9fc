from pathlib import Path

import pytest

import solbtt
from Analyzer.TreeGenerator import Target, TreeGenerator
from Domain.Errors import (ContractNotFound, DiagnosticKind, FrontEndError, FunctionNotFound,
                           FunctionNotVisible, OverloadAmbiguous)
from Utils.Config import GeneratorConfig

from conftest import build_overloaded, build_vault, build_visibility
from ast_factory import AstFactory


class FakeFrontEnd:
    """Serves a prebuilt model as if every contract lived in one file."""

    def __init__(self, model, path="src/Test.sol"):
        self.model = model
        self.path = Path(path)

    def source_files(self):
        return [self.path]

    def source_key(self, path):
        return path.as_posix()

    def find_contract_file(self, name):
        if self.model.contract(name) is None:
            raise ContractNotFound("no source declares it", contract=name)
        return self.path

    def load(self, files):
        return self.model


def config_for(tmp_path, jobs=1):
    return GeneratorConfig(root=tmp_path, src_dir=tmp_path / "src",
                           out_dir=tmp_path / "test" / "trees", jobs=jobs)


def tree_files(tmp_path):
    out = tmp_path / "test" / "trees"
    return sorted(p.name for p in out.iterdir()) if out.is_dir() else []


# ── target parsing ──────────────────────────────────────────────────────
@pytest.mark.parametrize("text, expected", [
    ("", Target()),
    (None, Target()),
    ("Vault", Target("Vault")),
    ("Vault::withdraw", Target("Vault", "withdraw")),
    ("  Vault::withdraw ", Target("Vault", "withdraw")),
])
def test_target_parse(text, expected):
    assert Target.parse(text) == expected


@pytest.mark.parametrize("text", ["::withdraw", "Vault::", "A::b::c"])
def test_malformed_targets(text):
    with pytest.raises(ValueError):
        Target.parse(text)


def test_signature_targets_are_rejected():
    with pytest.raises(OverloadAmbiguous):
        Target.parse("Router::swap(uint256)")


# ── generation ──────────────────────────────────────────────────────────
def test_single_function_writes_one_file(tmp_path):
    gen = TreeGenerator(config_for(tmp_path), FakeFrontEnd(build_vault(AstFactory())))
    report = gen.generate("Vault::withdraw")
    assert report.written == [tmp_path / "test" / "trees" / "Vault.withdraw.tree"]
    text = report.written[0].read_text(encoding="utf-8")
    assert text.startswith("withdraw\n├── given msg.sender is not owner\n")
    assert text == report.analyses[0].text


def test_contract_target_writes_every_visible_function(tmp_path):
    gen = TreeGenerator(config_for(tmp_path), FakeFrontEnd(build_visibility(AstFactory())))
    gen.generate("Mixed")
    assert tree_files(tmp_path) == ["Mixed.ext.tree", "Mixed.pub.tree"]


def test_whole_project_skips_interfaces(tmp_path):
    f = AstFactory()
    iface = f.contract("IVault", f.function("withdraw", [f.var("amount")], implemented=False),
                       kind="interface")
    amount = f.var("amount")
    vault = f.contract(
        "Vault",
        f.function("withdraw", [amount], [f.require(f.binop(f.ref(amount), ">", f.num(0)))]),
        f.function("deposit", [], []),
    )
    gen = TreeGenerator(config_for(tmp_path), FakeFrontEnd(f.load(iface, vault)))
    gen.generate("")
    assert tree_files(tmp_path) == ["Vault.deposit.tree", "Vault.withdraw.tree"]


class BrokenFileFrontEnd(FakeFrontEnd):
    """One of the two sources fails to compile."""

    broken = Path("src/Broken.sol")

    def source_files(self):
        return [self.broken, self.path]

    def load(self, files):
        if self.broken in files:
            raise FrontEndError("ParserError: expected ';'")
        return self.model


def test_broken_source_is_skipped_in_bulk_runs(tmp_path):
    front_end = BrokenFileFrontEnd(build_vault(AstFactory()))
    report = TreeGenerator(config_for(tmp_path), front_end).generate("")
    assert tree_files(tmp_path) == ["Vault.deposit.tree", "Vault.withdraw.tree"]
    assert [w.kind for w in report.warnings] == [DiagnosticKind.SOURCE_SKIPPED]
    assert "src/Broken.sol" in report.warnings[0].message


def test_overloads_are_skipped_in_bulk_and_rejected_by_name(tmp_path):
    gen = TreeGenerator(config_for(tmp_path), FakeFrontEnd(build_overloaded(AstFactory())))
    report = gen.generate("Router")
    assert tree_files(tmp_path) == ["Router.quote.tree"]
    assert len(report.warnings) == 2
    with pytest.raises(OverloadAmbiguous):
        gen.generate("Router::swap")
    assert tree_files(tmp_path) == ["Router.quote.tree"]


def test_unresolved_modifier_skips_only_that_function(tmp_path):
    f = AstFactory()
    broken = f.modifier("broken", body=[f.require(f.boolean(True))])       # no `_;`
    good = f.function("good", [], [f.require(f.boolean(True))])
    bad = f.function("bad", [], [], modifiers=[f.invoke(broken)])
    model = f.load(f.contract("C", broken, good, bad))
    report = TreeGenerator(config_for(tmp_path), FakeFrontEnd(model)).generate("C")
    assert tree_files(tmp_path) == ["C.good.tree"]
    assert "broken" in report.warnings[0].message


@pytest.mark.parametrize("target, error", [
    ("Nope", ContractNotFound),
    ("Vault::nope", FunctionNotFound),
])
def test_missing_targets(tmp_path, target, error):
    gen = TreeGenerator(config_for(tmp_path), FakeFrontEnd(build_vault(AstFactory())))
    with pytest.raises(error):
        gen.generate(target)
    assert tree_files(tmp_path) == []


def test_internal_function_is_rejected(tmp_path):
    gen = TreeGenerator(config_for(tmp_path), FakeFrontEnd(build_visibility(AstFactory())))
    with pytest.raises(FunctionNotVisible):
        gen.generate("Mixed::inner")


def test_parallel_jobs_write_the_same_files(tmp_path):
    seq_dir, par_dir = tmp_path / "seq", tmp_path / "par"
    seq_dir.mkdir()
    par_dir.mkdir()
    TreeGenerator(config_for(seq_dir), FakeFrontEnd(build_vault(AstFactory()))).generate("Vault")
    TreeGenerator(config_for(par_dir, jobs=4),
                  FakeFrontEnd(build_vault(AstFactory()))).generate("Vault")
    for name in tree_files(seq_dir):
        assert ((seq_dir / "test" / "trees" / name).read_bytes()
                == (par_dir / "test" / "trees" / name).read_bytes())


# ── command line ────────────────────────────────────────────────────────
@pytest.fixture
def cli(monkeypatch, tmp_path):
    model = build_vault(AstFactory())
    monkeypatch.setattr(solbtt, "TreeGenerator",
                        lambda config: TreeGenerator(config, FakeFrontEnd(model)))
    return tmp_path


def test_cli_writes_tree(cli, capsys):
    out_dir = cli / "trees"
    code = solbtt.main(["generate", "Vault::withdraw", "--root", str(cli), "-o", str(out_dir)])
    assert code == 0
    assert (out_dir / "Vault.withdraw.tree").is_file()
    assert "✓ tree written to" in capsys.readouterr().out


@pytest.mark.parametrize("target, kind", [
    ("Vault::nope", "FunctionNotFound"),
    ("Nope", "ContractNotFound"),
    ("Vault::withdraw(uint256)", "OverloadAmbiguous"),
])
def test_cli_reports_errors(cli, target, kind):
    with pytest.raises(SystemExit) as excinfo:
        solbtt.main(["generate", target, "--root", str(cli), "-o", str(cli / "trees")])
    assert excinfo.value.code.startswith(f"✖ {kind}")
    assert not (cli / "trees").exists()


def test_cli_rejects_malformed_target(cli):
    with pytest.raises(SystemExit) as excinfo:
        solbtt.main(["generate", "Vault::", "--root", str(cli)])
    assert "malformed target" in excinfo.value.code


def test_cli_requires_a_command():
    with pytest.raises(SystemExit) as excinfo:
        solbtt.main([])
    assert excinfo.value.code == 2
