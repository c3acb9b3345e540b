from __future__ import annotations

import argparse
import subprocess
from pathlib import Path
from typing import List, Optional

from .commands import COMMANDS, CommandContext, run_command
from .config import load_config
from .errors import BootstrapError
from .log import Console, build_logger
from .runner import CommandRunner
from .tools import Prompter


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="platform-bootstrap",
        description="Bootstrap and operate the local k3d platform-learning cluster.",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        help="Optional YAML file overriding cluster, registry and Argo CD defaults",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log every external command before it runs",
    )
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    for name in sorted(COMMANDS):
        subparsers.add_parser(name, help=COMMANDS[name].help)
    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    logger = build_logger(verbose=args.verbose)

    try:
        config = load_config(args.config)
        ctx = CommandContext(
            config=config,
            runner=CommandRunner(logger=logger),
            prompter=Prompter(),
            logger=logger,
            console=Console(),
        )
        code = run_command(args.command or "help", ctx)
    except (BootstrapError, subprocess.CalledProcessError) as exc:
        message = str(exc)
        if isinstance(exc, subprocess.CalledProcessError) and exc.stderr:
            message = f"{message}\n{exc.stderr.strip()}"
        logger.error(message)
        code = exc.returncode if isinstance(exc, subprocess.CalledProcessError) and exc.returncode else 1
        raise SystemExit(code) from exc
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        raise SystemExit(130) from None

    if code:
        raise SystemExit(code)


if __name__ == "__main__":  # pragma: no cover
    main()
