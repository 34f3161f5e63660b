"""Build and push the application container image.

This is the step run by the `repository_dispatch` workflow: the image is
tagged `<registry>/<org>/<image>:latest` and pushed, without additional tags
or provenance.
"""

from dataclasses import dataclass
import logging
from pathlib import Path
import re

from . import preconditions
from .command import Command, run
from .exceptions import ArtifactNotFoundException, CommandException, InputException

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "ImageBuild",
]

DOCKER_BIN = "docker"
DEFAULT_REGISTRY = "ghcr.io"
DEFAULT_ORG = "dxfrontier"
DEFAULT_TAG = "latest"
DOCKERFILE = "Dockerfile"

# Image builds and pushes take longer than other commands
_IMAGE_TIMEOUT = 1800.0

_NAME_RE = re.compile(r"^[a-z0-9]+(?:[._-][a-z0-9]+)*$")
_TAG_RE = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]{0,127}$")


class DockerException(CommandException):
    """Raised when there is a failure running a docker command."""


@dataclass
class ImageBuild:
    """A container image to build from a local directory and push."""

    image: str
    org: str = DEFAULT_ORG
    context: Path = Path(".")
    tag: str = DEFAULT_TAG
    registry: str = DEFAULT_REGISTRY
    docker_bin: str = DOCKER_BIN

    def __post_init__(self) -> None:
        for label, value in (("image", self.image), ("org", self.org)):
            if not _NAME_RE.match(value):
                raise InputException(f"Invalid {label} name: '{value}'")
        if not _TAG_RE.match(self.tag):
            raise InputException(f"Invalid image tag: '{self.tag}'")

    @property
    def reference(self) -> str:
        """Full image reference including the tag."""
        return f"{self.registry}/{self.org}/{self.image}:{self.tag}"

    def build_command(self) -> Command:
        return Command(
            [self.docker_bin, "build", "-t", self.reference, str(self.context)],
            exc=DockerException,
            timeout=_IMAGE_TIMEOUT,
        )

    def push_command(self) -> Command:
        return Command(
            [self.docker_bin, "push", self.reference],
            exc=DockerException,
            timeout=_IMAGE_TIMEOUT,
        )

    async def run(self) -> str:
        """Build and push the image, returning the pushed reference."""
        preconditions.check_tool(self.docker_bin)
        if not Path(self.context).is_dir():
            raise InputException(f"Build context not found: {self.context}")
        if not (Path(self.context) / DOCKERFILE).is_file():
            raise ArtifactNotFoundException(
                f"No {DOCKERFILE} found in build context {self.context}",
                hint="Pass --context with the directory of the CAP application",
            )
        _LOGGER.info("Building image %s", self.reference)
        await run(self.build_command())
        _LOGGER.info("Pushing image %s", self.reference)
        await run(self.push_command())
        return self.reference
