"""Library for talking to the cluster through the `kubectl` command.

The deployers only depend on the `KubeClient` interface so tests can replace
the cluster with an in-memory fake. `Kubectl` is the implementation used by
the command line tool.
"""

from abc import ABC, abstractmethod
import asyncio
from dataclasses import dataclass
import enum
import json
import logging
from typing import Any

from .command import Command, run
from .exceptions import KubectlException
from .manifest import Secret, dump_manifest

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "KubeClient",
    "Kubectl",
    "JobOutcome",
    "JobStatus",
    "job_status",
]

KUBECTL_BIN = "kubectl"

DEFAULT_POLL_INTERVAL = 2.0


class JobOutcome(enum.Enum):
    """Observed state of a Job."""

    RUNNING = "running"
    COMPLETE = "complete"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass
class JobStatus:
    """The outcome of a Job along with the reason reported by the cluster."""

    outcome: JobOutcome
    reason: str | None = None


def job_status(doc: dict[str, Any]) -> JobStatus:
    """Determine the outcome of a Job from its resource document."""
    status = doc.get("status") or {}
    for condition in status.get("conditions") or ():
        if condition.get("status") != "True":
            continue
        if condition.get("type") == "Complete":
            return JobStatus(JobOutcome.COMPLETE)
        if condition.get("type") == "Failed":
            reason = condition.get("message") or condition.get("reason")
            return JobStatus(JobOutcome.FAILED, reason)
    return JobStatus(JobOutcome.RUNNING)


class KubeClient(ABC):
    """Operations the deployers need from the cluster."""

    @abstractmethod
    async def apply(self, docs: list[dict[str, Any]]) -> str:
        """Create or update the resources, returning a summary."""

    @abstractmethod
    async def get_secret(self, name: str, namespace: str) -> Secret | None:
        """Return the Secret or None if it does not exist."""

    @abstractmethod
    async def exists(self, kind: str, name: str, namespace: str) -> bool:
        """Return True if the resource exists."""

    @abstractmethod
    async def delete(self, kind: str, name: str, namespace: str) -> None:
        """Delete the resource, ignoring resources that do not exist."""

    @abstractmethod
    async def wait_deleted(
        self, kind: str, name: str, namespace: str, timeout: float
    ) -> None:
        """Block until the resource is gone."""

    @abstractmethod
    async def wait_for_job(self, name: str, namespace: str, timeout: float) -> JobStatus:
        """Block until the Job completes, fails or the timeout expires."""

    @abstractmethod
    async def describe(self, kind: str, name: str, namespace: str) -> str:
        """Return a human readable description with status and events."""

    @abstractmethod
    async def logs(self, job_name: str, namespace: str) -> str:
        """Return the logs of the pods of a Job."""


class Kubectl(KubeClient):
    """A `KubeClient` that runs `kubectl` commands."""

    def __init__(
        self,
        kubectl_bin: str = KUBECTL_BIN,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        context: str | None = None,
    ) -> None:
        """Initialize Kubectl."""
        self._kubectl_bin = kubectl_bin
        self._poll_interval = poll_interval
        self._context = context

    def _command(self, *args: str) -> Command:
        cmd = [self._kubectl_bin]
        if self._context:
            cmd.extend(["--context", self._context])
        cmd.extend(args)
        return Command(cmd, exc=KubectlException)

    async def apply(self, docs: list[dict[str, Any]]) -> str:
        """Apply the resources from stdin so nothing is written to disk."""
        content = dump_manifest(docs)
        return await run(self._command("apply", "-f", "-"), stdin=content.encode())

    async def _get_json(
        self, kind: str, name: str, namespace: str
    ) -> dict[str, Any] | None:
        out = await run(
            self._command(
                "get", kind, name, "-n", namespace, "-o", "json", "--ignore-not-found"
            )
        )
        if not out.strip():
            return None
        try:
            return json.loads(out)
        except json.JSONDecodeError as err:
            raise KubectlException(
                f"Unable to parse kubectl output for {kind}/{name}: {err}"
            ) from err

    async def get_secret(self, name: str, namespace: str) -> Secret | None:
        if (doc := await self._get_json("secret", name, namespace)) is None:
            return None
        return Secret.parse_doc(doc)

    async def exists(self, kind: str, name: str, namespace: str) -> bool:
        out = await run(
            self._command(
                "get", kind, name, "-n", namespace, "-o", "name", "--ignore-not-found"
            )
        )
        return bool(out.strip())

    async def delete(self, kind: str, name: str, namespace: str) -> None:
        await run(
            self._command(
                "delete", kind, name, "-n", namespace, "--ignore-not-found=true"
            )
        )

    async def wait_deleted(
        self, kind: str, name: str, namespace: str, timeout: float
    ) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while await self.exists(kind, name, namespace):
            if loop.time() >= deadline:
                raise KubectlException(
                    f"Timed out waiting for deletion of {kind}/{name}"
                )
            _LOGGER.info("Waiting for deletion of %s/%s", kind, name)
            await asyncio.sleep(self._poll_interval)

    async def wait_for_job(self, name: str, namespace: str, timeout: float) -> JobStatus:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            if (doc := await self._get_json("job", name, namespace)) is None:
                raise KubectlException(f"Job {namespace}/{name} not found")
            status = job_status(doc)
            if status.outcome != JobOutcome.RUNNING:
                return status
            if (remaining := deadline - loop.time()) <= 0:
                return JobStatus(JobOutcome.TIMED_OUT, f"timed out after {timeout:g}s")
            _LOGGER.debug("Job %s/%s still running", namespace, name)
            await asyncio.sleep(min(self._poll_interval, remaining))

    async def describe(self, kind: str, name: str, namespace: str) -> str:
        return await run(self._command("describe", kind, name, "-n", namespace))

    async def logs(self, job_name: str, namespace: str) -> str:
        return await run(
            self._command(
                "logs", f"job/{job_name}", "-n", namespace, "--all-containers=true"
            )
        )
