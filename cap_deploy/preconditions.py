"""Checks that the local environment is ready before anything is deployed.

Every failure here is an environment error: it is reported immediately with a
hint for the operator and is never retried.
"""

from collections.abc import Iterable
from dataclasses import dataclass
import logging
from pathlib import Path
import shutil

from .exceptions import ArtifactNotFoundException, ToolNotFoundException

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "check_tool",
    "check_directory",
    "check_files",
    "find_hdi_files",
    "HdiFiles",
]

HDICONFIG = ".hdiconfig"
HDINAMESPACE = ".hdinamespace"


def check_tool(name: str) -> str:
    """Return the full path of a command line tool or raise if it is missing."""
    if not (path := shutil.which(name)):
        raise ToolNotFoundException(
            f"{name} is not installed or not in PATH",
            hint=f"Install {name} and make sure it is on the PATH",
        )
    _LOGGER.debug("Found %s at %s", name, path)
    return path


def check_directory(path: Path, hint: str) -> None:
    """Raise if the directory of generated artifacts does not exist."""
    if not path.is_dir():
        raise ArtifactNotFoundException(
            f"Generated artifact directory not found: {path}", hint=hint
        )


def check_files(root: Path, relative_paths: Iterable[str], hint: str) -> None:
    """Raise if any of the expected artifact files is missing."""
    missing = [name for name in relative_paths if not (root / name).is_file()]
    if missing:
        raise ArtifactNotFoundException(
            f"Generated artifacts missing from {root}: {', '.join(missing)}",
            hint=hint,
        )


@dataclass
class HdiFiles:
    """Location of the HDI container configuration files."""

    hdiconfig: Path | None
    hdinamespace: Path | None


def find_hdi_files(db_dir: Path) -> HdiFiles:
    """Find the `.hdiconfig` and `.hdinamespace` files in the DB artifacts."""

    def _first(name: str) -> Path | None:
        return next(iter(sorted(db_dir.rglob(name))), None)

    return HdiFiles(hdiconfig=_first(HDICONFIG), hdinamespace=_first(HDINAMESPACE))
