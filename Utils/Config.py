# solbtt/Utils/Config.py
from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path

from Domain.Errors import ProjectConfigError

logger = logging.getLogger(__name__)

FOUNDRY_CONFIG_NAME = "foundry.toml"
REMAPPINGS_NAME = "remappings.txt"
DEFAULT_OUT_DIR = Path("test") / "trees"


def _load_toml(path: Path) -> dict:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ProjectConfigError(f"cannot read {path}: {e}") from e
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError as e:
        raise ProjectConfigError(f"cannot parse {path}: {e}") from e
    return data if isinstance(data, dict) else {}


def _read_remappings_txt(path: Path) -> list[str]:
    if not path.is_file():
        return []
    out = []
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            out.append(line)
    return out


def find_project_root(start: Path) -> Path | None:
    current = start.resolve()
    for candidate in (current, *current.parents):
        if (candidate / FOUNDRY_CONFIG_NAME).is_file():
            return candidate
    return None


@dataclass(frozen=True)
class GeneratorConfig:
    root: Path
    src_dir: Path
    lib_dirs: tuple[Path, ...] = ()
    remappings: tuple[str, ...] = ()            # "prefix=target"
    out_dir: Path = DEFAULT_OUT_DIR
    solc_version: str | None = None
    jobs: int = 1

    @classmethod
    def discover(cls, start: Path | str | None = None) -> "GeneratorConfig":
        """
        Locate the nearest ``foundry.toml`` at or above *start*.

        Without one the start directory doubles as root and source directory.
        """
        start = Path(start) if start is not None else Path.cwd()
        root = find_project_root(start)
        if root is None:
            base = start.resolve()
            logger.debug("no %s above %s, using it as source directory",
                         FOUNDRY_CONFIG_NAME, base)
            return cls(root=base, src_dir=base, out_dir=base / DEFAULT_OUT_DIR,
                       remappings=tuple(_read_remappings_txt(base / REMAPPINGS_NAME)))

        data = _load_toml(root / FOUNDRY_CONFIG_NAME)
        profile = data.get("profile", {}).get("default", {})
        if not isinstance(profile, dict):
            raise ProjectConfigError(f"[profile.default] in {root / FOUNDRY_CONFIG_NAME} "
                                     f"is not a table")

        libs = profile.get("libs", profile.get("lib", ["lib"]))
        if isinstance(libs, str):
            libs = [libs]

        remappings: list[str] = []
        for entry in [*profile.get("remappings", []),
                      *_read_remappings_txt(root / REMAPPINGS_NAME)]:
            if "=" not in entry:
                logger.warning("ignoring malformed remapping %r", entry)
                continue
            if entry not in remappings:
                remappings.append(entry)

        version = profile.get("solc_version", profile.get("solc"))
        logger.debug("project root %s (src=%s)", root, profile.get("src", "src"))
        return cls(
            root=root,
            src_dir=root / profile.get("src", "src"),
            lib_dirs=tuple(root / lib for lib in libs),
            remappings=tuple(remappings),
            out_dir=root / DEFAULT_OUT_DIR,
            solc_version=str(version) if version is not None else None,
        )

    def with_overrides(self, *, out_dir=None, solc_version=None, jobs=None) -> "GeneratorConfig":
        changes = {}
        if out_dir is not None:
            changes["out_dir"] = Path(out_dir)
        if solc_version is not None:
            changes["solc_version"] = solc_version
        if jobs is not None:
            changes["jobs"] = max(1, jobs)
        return replace(self, **changes)

    def remapping_pairs(self) -> list[tuple[str, str]]:
        return [tuple(r.split("=", 1)) for r in self.remappings]
