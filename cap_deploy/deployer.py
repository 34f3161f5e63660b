"""Orchestration of a single deployment run.

Each run moves through a strictly linear set of states:

```
PENDING -> CHECKED -> RENDERED -> APPLIED -> COMPLETE | FAILED | TIMED_OUT
```

A stage either succeeds completely or raises, which aborts the run. Nothing is
rolled back: a partially applied deployment is removed with `cleanup()`.
Retries of the deployer itself are left to the `backoffLimit` of the Job.

Example:
```python
from cap_deploy.config import DeployConfig
from cap_deploy.deployer import HanaSchemaDeployer
from cap_deploy.kubectl import Kubectl

config = DeployConfig.from_env()
result = await HanaSchemaDeployer(config, Kubectl()).run()
```
"""

from abc import ABC, abstractmethod
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass, field
import enum
import logging
from pathlib import Path
import sys
from time import perf_counter
from typing import Any, ClassVar, TextIO

from . import preconditions, render
from .binding import (
    HANA_PROFILE,
    IDENTITY_PROFILE,
    BindingProfile,
    ServiceCatalog,
    build_binding,
)
from .config import DeployConfig
from .exceptions import (
    ArtifactNotFoundException,
    DeployException,
    JobFailedException,
    JobTimeoutException,
    KubectlException,
    SecretNotFoundException,
)
from .kubectl import KubeClient, JobOutcome
from .manifest import ObjectMeta, Secret, write_manifest

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "DeployState",
    "DeployResult",
    "Deployer",
    "AmsPolicyDeployer",
    "HanaSchemaDeployer",
    "deploy_all",
]

KUBECTL = "kubectl"
BUILD_HINT = "Please run 'cds build' to generate {what} first"
NO_LOGS = "No logs available"

# Time allowed for a previous Job to be removed before re-applying
DELETE_TIMEOUT = 120.0


class DeployState(enum.Enum):
    """State of a deployment run."""

    PENDING = "pending"
    CHECKED = "checked"
    RENDERED = "rendered"
    APPLIED = "applied"
    COMPLETE = "complete"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


_TRANSITIONS: dict[DeployState, set[DeployState]] = {
    DeployState.PENDING: {DeployState.CHECKED},
    DeployState.CHECKED: {DeployState.RENDERED},
    DeployState.RENDERED: {DeployState.APPLIED},
    DeployState.APPLIED: {
        DeployState.COMPLETE,
        DeployState.FAILED,
        DeployState.TIMED_OUT,
    },
}

_OUTCOME_STATES = {
    JobOutcome.COMPLETE: DeployState.COMPLETE,
    JobOutcome.FAILED: DeployState.FAILED,
    JobOutcome.TIMED_OUT: DeployState.TIMED_OUT,
}


@dataclass
class DeployResult:
    """Summary of a successful deployment run."""

    target: str
    job_name: str
    state: DeployState
    manifests: list[Path] = field(default_factory=list)
    logs: str | None = None


@contextmanager
def _stage(name: str) -> Generator[None, None, None]:
    t1 = perf_counter()
    _LOGGER.debug("Stage %s started", name)
    try:
        yield
    finally:
        _LOGGER.debug("Stage %s finished (%0.2fs)", name, perf_counter() - t1)


class Deployer(ABC):
    """Base class for a deployer Job driven from the local machine."""

    target: ClassVar[str]
    """Short name of the deployment target, used in resource names."""

    title: ClassVar[str]
    """Human readable name of the deployment."""

    profile: ClassVar[BindingProfile]
    """Credential fields bridged into the service catalog."""

    def __init__(
        self,
        config: DeployConfig,
        client: KubeClient,
        out: TextIO | None = None,
    ) -> None:
        """Initialize Deployer."""
        self._config = config
        self._client = client
        self._out = out
        self._state = DeployState.PENDING
        self._docs: dict[Path, list[dict[str, Any]]] = {}

    @property
    def state(self) -> DeployState:
        return self._state

    @property
    def config(self) -> DeployConfig:
        return self._config

    @property
    @abstractmethod
    def job_name(self) -> str:
        """Name of the deployer Job."""

    @property
    @abstractmethod
    def timeout(self) -> float:
        """Seconds to wait for the deployer Job."""

    def _print(self, *lines: str) -> None:
        print(*lines, sep="\n", file=self._out or sys.stdout)

    def _require(self, *states: DeployState) -> None:
        """Raise unless the run may move to one of the states."""
        allowed = _TRANSITIONS.get(self._state, set())
        if not any(state in allowed for state in states):
            targets = " | ".join(state.value for state in states)
            raise DeployException(
                f"Invalid transition for {self.target} deployment: "
                f"{self._state.value} -> {targets}"
            )

    def _transition(self, state: DeployState) -> None:
        self._require(state)
        _LOGGER.debug("%s deployment %s -> %s", self.target, self._state, state)
        self._state = state

    @abstractmethod
    def check_artifacts(self) -> None:
        """Verify the generated build artifacts on the local disk."""

    async def check_cluster(self) -> None:
        """Verify the resources that must already exist in the cluster."""

    @abstractmethod
    async def build_manifests(self) -> dict[str, list[dict[str, Any]]]:
        """Return the resource documents for each manifest file name."""

    @abstractmethod
    async def bridge(self) -> Secret:
        """Return the Secret holding the service catalog for the Job."""

    async def check(self) -> None:
        """Verify tooling, artifacts and cluster prerequisites."""
        self._require(DeployState.CHECKED)
        with _stage("check"):
            preconditions.check_tool(KUBECTL)
            self.check_artifacts()
            await self.check_cluster()
        self._transition(DeployState.CHECKED)

    async def render(self) -> list[Path]:
        """Write the manifest files, replacing the files of any previous run."""
        self._require(DeployState.RENDERED)
        with _stage("render"):
            manifests = await self.build_manifests()
            output_dir = Path(self._config.output_dir)
            output_dir.mkdir(parents=True, exist_ok=True)
            self._docs = {}
            for filename, docs in manifests.items():
                path = output_dir / filename
                await write_manifest(path, docs)
                self._docs[path] = docs
                _LOGGER.info("Wrote manifest %s", path)
        self._transition(DeployState.RENDERED)
        return list(self._docs)

    async def render_only(self) -> list[Path]:
        """Check the artifacts and write the manifests without a cluster."""
        self._require(DeployState.CHECKED)
        self.check_artifacts()
        self._transition(DeployState.CHECKED)
        return await self.render()

    async def _replace_job(self) -> None:
        """Remove a Job left by a previous run since its template is immutable."""
        namespace = self._config.namespace
        if not await self._client.exists("job", self.job_name, namespace):
            return
        _LOGGER.info("Cleaning up existing job %s", self.job_name)
        await self._client.delete("job", self.job_name, namespace)
        await self._client.wait_deleted("job", self.job_name, namespace, DELETE_TIMEOUT)

    async def apply(self) -> None:
        """Apply the rendered manifests and the bridged credentials."""
        self._require(DeployState.APPLIED)
        with _stage("apply"):
            await self._replace_job()
            vcap_secret = await self.bridge()
            await self._client.apply([vcap_secret.to_doc()])
            for path, docs in self._docs.items():
                _LOGGER.info("Applying %s", path)
                await self._client.apply(docs)
        self._transition(DeployState.APPLIED)

    async def _fetch_logs(self) -> str:
        try:
            return await self._client.logs(self.job_name, self._config.namespace)
        except KubectlException as err:
            _LOGGER.debug("Unable to fetch logs: %s", err)
            return NO_LOGS

    async def await_job(self) -> DeployResult:
        """Wait for the Job and report its outcome."""
        self._require(*_OUTCOME_STATES.values())
        namespace = self._config.namespace
        _LOGGER.info("Waiting for %s to complete", self.job_name)
        with _stage("await"):
            status = await self._client.wait_for_job(
                self.job_name, namespace, self.timeout
            )
        self._transition(_OUTCOME_STATES[status.outcome])
        if self._state == DeployState.COMPLETE:
            logs = await self._fetch_logs()
            self._print("Job logs:", logs)
            return DeployResult(
                target=self.target,
                job_name=self.job_name,
                state=self._state,
                manifests=list(self._docs),
                logs=logs,
            )

        self._print(f"{self.title} failed or timed out", "Job status:")
        try:
            self._print(await self._client.describe("job", self.job_name, namespace))
        except KubectlException as err:
            self._print(f"Unable to describe job: {err}")
        self._print("Job logs:", await self._fetch_logs())
        if self._state == DeployState.TIMED_OUT:
            raise JobTimeoutException(self.job_name, self.timeout)
        raise JobFailedException(self.job_name, status.reason)

    async def run(self) -> DeployResult:
        """Run the whole pipeline: check, render, apply and wait."""
        await self.check()
        await self.render()
        await self.apply()
        return await self.await_job()

    async def cleanup(self) -> None:
        """Delete the resources created by a run, ignoring missing ones."""
        namespace = self._config.namespace
        for kind, name in self.owned_resources():
            _LOGGER.info("Deleting %s/%s", kind, name)
            await self._client.delete(kind, name, namespace)

    def owned_resources(self) -> list[tuple[str, str]]:
        """Resources created by this deployer, in deletion order."""
        return [
            ("job", self.job_name),
            ("secret", self._config.vcap_secret_name(self.target)),
        ]

    async def logs(self) -> str:
        """Return the logs of the deployer Job."""
        return await self._fetch_logs()

    def _vcap_secret(self, name: str, secret_data: dict[str, str]) -> Secret:
        binding = build_binding(self.profile, name, secret_data)
        catalog = ServiceCatalog(bindings=[binding])
        return render.vcap_services_secret(self._config, self.target, catalog.json())


class AmsPolicyDeployer(Deployer):
    """Deploys the generated DCL policies to the Authorization Management Service."""

    target = "ams"
    title = "AMS policy deployment"
    profile = IDENTITY_PROFILE

    @property
    def job_name(self) -> str:
        return self._config.ams_job_name

    @property
    def timeout(self) -> float:
        return self._config.ams_timeout

    def check_artifacts(self) -> None:
        hint = BUILD_HINT.format(what="policies")
        policies_dir = Path(self._config.policies_dir)
        preconditions.check_directory(policies_dir, hint)
        preconditions.check_files(policies_dir, render.AMS_POLICY_FILES.values(), hint)

    async def build_manifests(self) -> dict[str, list[dict[str, Any]]]:
        configmap = await render.ams_policies_configmap(self._config)
        job = render.ams_policy_deployer_job(self._config)
        return {
            "ams-policies-configmap.yaml": [configmap.to_doc()],
            "ams-policy-deployer-job.yaml": [job.to_doc()],
        }

    async def _deployer_credentials(self) -> dict[str, str]:
        """Return the deployer credentials, creating the Secret when absent."""
        namespace = self._config.namespace
        secret_name = self._config.ams_deployer_secret_name
        if (secret := await self._client.get_secret(secret_name, namespace)) is not None:
            return secret.decoded_data()

        _LOGGER.warning("Secret '%s' not found", secret_name)
        identity_name = self._config.identity_secret_name
        if (identity := await self._client.get_secret(identity_name, namespace)) is None:
            raise SecretNotFoundException(
                f"Identity service binding secret '{identity_name}' not found",
                hint="Please ensure the identity service instance and binding are deployed first",
            )
        _LOGGER.info("Creating secret '%s' from '%s'", secret_name, identity_name)
        credentials = identity.decoded_data()
        deployer_secret = Secret(
            metadata=ObjectMeta(name=secret_name, namespace=namespace),
            string_data=credentials,
            type="Opaque",
        )
        await self._client.apply([deployer_secret.to_doc()])
        return credentials

    async def bridge(self) -> Secret:
        credentials = await self._deployer_credentials()
        return self._vcap_secret(f"{self._config.app_name}-identity", credentials)

    def owned_resources(self) -> list[tuple[str, str]]:
        return super().owned_resources() + [
            ("configmap", self._config.ams_configmap_name)
        ]


class HanaSchemaDeployer(Deployer):
    """Deploys the generated database artifacts to a HANA HDI container."""

    target = "hana"
    title = "HANA deployment"
    profile = HANA_PROFILE

    def __init__(
        self,
        config: DeployConfig,
        client: KubeClient,
        out: TextIO | None = None,
    ) -> None:
        """Initialize HanaSchemaDeployer."""
        super().__init__(config, client, out)
        self._hana_secret: Secret | None = None

    @property
    def job_name(self) -> str:
        return self._config.hana_job_name

    @property
    def timeout(self) -> float:
        return self._config.hana_timeout

    def check_artifacts(self) -> None:
        db_dir = Path(self._config.db_dir)
        preconditions.check_directory(
            db_dir, BUILD_HINT.format(what="database artifacts")
        )
        hdi_files = preconditions.find_hdi_files(db_dir)
        if hdi_files.hdiconfig is None:
            if self._config.require_hdiconfig:
                raise ArtifactNotFoundException(
                    f"No {preconditions.HDICONFIG} found in {db_dir}",
                    hint="The HDI deployer requires a .hdiconfig file, check the 'cds build' output",
                )
            _LOGGER.warning("No %s found in %s", preconditions.HDICONFIG, db_dir)
        if hdi_files.hdinamespace is None:
            _LOGGER.warning("No %s found in %s", preconditions.HDINAMESPACE, db_dir)

    async def _binding_secret(self) -> Secret:
        secret_name = self._config.hana_secret_name
        secret = await self._client.get_secret(secret_name, self._config.namespace)
        if secret is None:
            raise SecretNotFoundException(
                f"HANA service binding secret '{secret_name}' not found",
                hint="Please ensure the HANA service instance and binding are deployed first",
            )
        return secret

    async def check_cluster(self) -> None:
        self._hana_secret = await self._binding_secret()

    async def build_manifests(self) -> dict[str, list[dict[str, Any]]]:
        job = render.hana_deployer_job(self._config)
        return {"hana-deployer-job.yaml": [job.to_doc()]}

    async def bridge(self) -> Secret:
        secret = self._hana_secret or await self._binding_secret()
        return self._vcap_secret(f"{self._config.app_name}-hana", secret.decoded_data())


async def deploy_all(
    config: DeployConfig, client: KubeClient, out: TextIO | None = None
) -> list[DeployResult]:
    """Deploy the HANA schema and then the AMS policies."""
    results = []
    for deployer_cls in (HanaSchemaDeployer, AmsPolicyDeployer):
        deployer = deployer_cls(config, client, out)
        _LOGGER.info("Starting %s", deployer.title)
        results.append(await deployer.run())
    return results
