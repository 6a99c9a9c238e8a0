"""CLI entrypoint for codeaid."""

from __future__ import annotations

import argparse
from importlib import metadata
from typing import Sequence

from .app import CodeAidApp
from .config import ensure_config_dir
from .setup_wizard import run_first_time_setup


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="codeaid", description="CodeAid terminal assistant"
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit",
    )
    parser.add_argument(
        "--setup",
        action="store_true",
        help="Run the configuration prompts before starting",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    """Ensure configuration exists, handle CLI flags, and run the TUI."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.version:
        try:
            version = metadata.version("codeaid-tui")
        except metadata.PackageNotFoundError:
            version = "0.0.0"
        print(f"codeaid {version}")
        return

    ensure_config_dir()
    run_first_time_setup(force=args.setup)
    app = CodeAidApp()
    app.run()


if __name__ == "__main__":
    main()
