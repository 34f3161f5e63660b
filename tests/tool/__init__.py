"""Test helpers for cap-deploy tools."""

from cap_deploy.tool.cap_deploy import main


def run_main(args: list[str]) -> int:
    """Run the command line tool and return its exit code."""
    try:
        main(args)
    except SystemExit as err:
        return err.code if isinstance(err.code, int) else 1
    return 0
