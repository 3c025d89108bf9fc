# solbtt.py  · Solidity function → BTT (.tree) generator
from __future__ import annotations

import argparse
import logging
import sys

from Analyzer.TreeGenerator import TreeGenerator
from Domain.Errors import AnalysisError
from Utils.Config import GeneratorConfig

logger = logging.getLogger("solbtt")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="solbtt",
        description="Generate Branching Tree Technique (.tree) specs from Solidity functions.",
    )
    sub = p.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="write one .tree file per function")
    gen.add_argument("target", nargs="?", default="",
                     help="'' (whole project), Contract, or Contract::function")
    gen.add_argument("-o", "--output", help="output directory (default: <root>/test/trees)")
    gen.add_argument("--root", help="directory to start the foundry.toml search from")
    gen.add_argument("--solc", help="solc version to use instead of the pragma")
    gen.add_argument("-j", "--jobs", type=int, default=None,
                     help="analyze functions of a contract in parallel")
    gen.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return p


def configure_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
        force=True,
    )


def run_generate(args) -> int:
    config = GeneratorConfig.discover(args.root).with_overrides(
        out_dir=args.output, solc_version=args.solc, jobs=args.jobs)
    logger.debug("project root %s, sources %s", config.root, config.src_dir)

    report = TreeGenerator(config).generate(args.target)
    for path in report.written:
        print(f"✓ tree written to {path}")
    if report.warnings:
        print(f"[info] {len(report.warnings)} item(s) skipped, see warnings above")
    if not report.written and not report.warnings:
        print("[info] nothing to generate")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    try:
        match args.command:
            case "generate":
                return run_generate(args)
    except AnalysisError as e:
        sys.exit(f"✖ {e}")
    except ValueError as e:
        sys.exit(f"✖ {e}")
    except OSError as e:
        sys.exit(f"✖ {e}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
