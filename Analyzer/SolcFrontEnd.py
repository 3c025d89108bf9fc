# solbtt/Analyzer/SolcFrontEnd.py
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING

from solcx import (
    compile_standard,
    get_installed_solc_versions,
    install_solc,
    install_solc_pragma,
)
from solcx.exceptions import (
    SolcError,
    SolcInstallationError,
    SolcNotInstalled,
    UnsupportedVersionError,
)

from Analyzer.AstLoader import AstLoader
from Domain.Errors import ContractNotFound, FrontEndError

if TYPE_CHECKING:
    from Domain.Contract import SourceModel
    from Utils.Config import GeneratorConfig

logger = logging.getLogger(__name__)

_PRAGMA_RE = re.compile(r"pragma\s+solidity\s+([^;]+);")
_SOLC_FAILURES = (SolcError, SolcInstallationError, SolcNotInstalled, UnsupportedVersionError)


def _declares_contract(text: str, name: str) -> bool:
    pattern = rf"\b(?:abstract\s+contract|contract|library|interface)\s+{re.escape(name)}\b"
    return re.search(pattern, text) is not None


class SolcFrontEnd:
    """Locates sources, drives solc through py-solc-x and loads the ASTs."""

    def __init__(self, config: "GeneratorConfig"):
        self.config = config

    # ── ① source discovery ──────────────────────────────────────────────
    def source_files(self) -> list[Path]:
        src = self.config.src_dir
        if not src.is_dir():
            raise FrontEndError(f"source directory {src} does not exist")
        return sorted(p for p in src.rglob("*.sol") if p.is_file())

    def find_contract_file(self, contract_name: str) -> Path:
        files = self.source_files()
        wanted = f"{contract_name}.sol"
        for path in files:
            if path.name == wanted:
                return path
        for path in files:
            if _declares_contract(path.read_text(encoding="utf-8"), contract_name):
                return path
        raise ContractNotFound(f"no source in {self.config.src_dir} declares it",
                               contract=contract_name)

    # ── ② compilation ───────────────────────────────────────────────────
    def source_key(self, path: Path) -> str:
        try:
            return path.resolve().relative_to(self.config.root.resolve()).as_posix()
        except ValueError:
            return path.resolve().as_posix()

    def select_version(self, texts: list[str]) -> str:
        wanted = self.config.solc_version
        try:
            if wanted:
                if wanted not in {str(v) for v in get_installed_solc_versions()}:
                    logger.info("installing solc %s …", wanted)
                    install_solc(wanted)
                return wanted
            for text in texts:
                m = _PRAGMA_RE.search(text)
                if m:
                    version = install_solc_pragma(m.group(1).strip())
                    return str(version)
        except _SOLC_FAILURES as e:
            raise FrontEndError(f"cannot provide solc: {e}") from e
        raise FrontEndError("no 'pragma solidity' found and no solc version configured")

    def compile(self, files: list[Path]) -> tuple[dict, dict[str, str]]:
        texts = {self.source_key(p): p.read_text(encoding="utf-8") for p in files}
        version = self.select_version(list(texts.values()))
        standard_input = {
            "language": "Solidity",
            "sources": {key: {"content": text} for key, text in texts.items()},
            "settings": {
                "remappings": list(self.config.remappings),
                "outputSelection": {"*": {"": ["ast"]}},
            },
        }
        allow = [str(self.config.root), *(str(d) for d in self.config.lib_dirs)]
        logger.debug("compiling %d file(s) with solc %s", len(files), version)
        try:
            output = compile_standard(standard_input, base_path=str(self.config.root),
                                      allow_paths=allow, solc_version=version)
        except _SOLC_FAILURES as e:
            raise FrontEndError(f"solc {version} failed: {e}") from e

        for err in output.get("errors", []):
            if err.get("severity") == "error":
                raise FrontEndError(err.get("formattedMessage") or err.get("message", ""))
            logger.debug("solc: %s", err.get("message"))
        return output, texts

    # ── ③ AST loading ───────────────────────────────────────────────────
    def load(self, files: list[Path]) -> "SourceModel":
        output, texts = self.compile(files)
        asts, sources = {}, dict(texts)
        for key, entry in output.get("sources", {}).items():
            if "ast" not in entry:
                raise FrontEndError(f"solc produced no AST for {key}")
            asts[key] = entry["ast"]
            if key not in sources:
                dep = self.config.root / key
                if dep.is_file():
                    sources[key] = dep.read_text(encoding="utf-8")
        return AstLoader(sources).load(asts)
