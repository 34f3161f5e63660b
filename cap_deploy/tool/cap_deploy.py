"""Command line tool for deploying AMS policies and HANA schemas of a CAP app."""

import argparse
import asyncio
import logging
import sys
import traceback
from typing import NoReturn

from cap_deploy.exceptions import DeployException
from . import ams, deploy_all, hana, image, render

_LOGGER = logging.getLogger(__name__)


class _ArgumentParser(argparse.ArgumentParser):
    """Parser that exits with status 1 on usage errors."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\nUse --help for usage information\n")


def _make_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="cap-deploy",
        description="Deploy AMS policies and HANA schemas of a CAP application to Kubernetes.",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command", required=True)

    ams.AmsAction.register(subparsers)
    hana.HanaAction.register(subparsers)
    deploy_all.AllAction.register(subparsers)
    render.RenderAction.register(subparsers)
    image.ImageAction.register(subparsers)
    return parser


def main(argv: list[str] | None = None) -> None:
    """cap-deploy command line tool main entry point."""
    parser = _make_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log_level)

    action = args.cls()
    try:
        asyncio.run(action.run(**vars(args)))
    except DeployException as err:
        if args.log_level == "DEBUG":
            traceback.print_exc(file=sys.stderr)
        print(f"cap-deploy error: {err}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
