"""Build the manifests for the AMS policy and HANA schema deployer Jobs.

The generated artifacts are read from disk and inlined into the objects as
plain strings. Serialization turns multi-line content into literal blocks.
"""

import logging
from pathlib import Path

import aiofiles

from .binding import VCAP_SERVICES
from .config import DeployConfig
from .manifest import (
    ConfigMap,
    Container,
    EnvFromSource,
    EnvVar,
    Job,
    JobSpec,
    LocalObjectReference,
    ObjectMeta,
    PodSpec,
    PodTemplateSpec,
    ResourceRequirements,
    Secret,
    Volume,
    VolumeMount,
)

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "AMS_POLICY_FILES",
    "ams_policies_configmap",
    "ams_policy_deployer_job",
    "hana_deployer_job",
    "vcap_services_secret",
]

BACKOFF_LIMIT = 3

# ConfigMap key and the location of the file in the generated policies
AMS_POLICY_FILES = {
    "package.json": "package.json",
    "basePolicies.dcl": "dcl/cap/basePolicies.dcl",
    "schema.dcl": "dcl/schema.dcl",
}

POLICIES_MOUNT_PATH = "/policies"

AMS_DEPLOY_SCRIPT = """\
set -e
echo "Starting AMS policy deployment..."
mkdir -p /tmp/policies/dcl/cap
cd /tmp/policies
cp /policies/package.json .
cp /policies/basePolicies.dcl dcl/cap/
cp /policies/schema.dcl dcl/
npm install
echo "Deploying AMS policies using VCAP_SERVICES..."
npx @sap/ams deploy-dcl
echo "AMS policy deployment completed successfully!"
"""

# The deployer image ships the generated artifacts under src/gen. The copy
# includes hidden files such as .hdiconfig and .hdinamespace.
HANA_DEPLOY_SCRIPT = """\
set -e
echo "Preparing HDI deployment artifacts..."
cd src
cp -r gen/. .
ls -la
echo "Running HDI deployment..."
node ../node_modules/@sap/hdi-deploy/deploy.js --use-hdb
"""

HANA_RESOURCES = ResourceRequirements(
    requests={"memory": "1Gi", "cpu": "1000m"},
    limits={"memory": "2Gi", "cpu": "2000m"},
)


def _labels(config: DeployConfig, component: str) -> dict[str, str]:
    return {"app": config.app_name, "component": component}


def _metadata(config: DeployConfig, name: str, component: str) -> ObjectMeta:
    return ObjectMeta(
        name=name, namespace=config.namespace, labels=_labels(config, component)
    )


def _job(config: DeployConfig, name: str, component: str, pod: PodSpec) -> Job:
    return Job(
        metadata=_metadata(config, name, component),
        spec=JobSpec(
            backoff_limit=BACKOFF_LIMIT,
            template=PodTemplateSpec(
                metadata=ObjectMeta(labels=_labels(config, component)),
                spec=pod,
            ),
        ),
    )


async def ams_policies_configmap(config: DeployConfig) -> ConfigMap:
    """Return a ConfigMap holding the generated AMS policy files."""
    data: dict[str, str] = {}
    for key, relative_path in AMS_POLICY_FILES.items():
        path = Path(config.policies_dir) / relative_path
        async with aiofiles.open(str(path)) as policy_file:
            data[key] = await policy_file.read()
    return ConfigMap(
        metadata=_metadata(config, config.ams_configmap_name, "ams-policies"),
        data=data,
    )


def ams_policy_deployer_job(config: DeployConfig) -> Job:
    """Return the Job that deploys the policies in the ConfigMap with AMS."""
    container = Container(
        name="ams-policy-deployer",
        image=config.ams_deployer_image,
        command=["/bin/sh"],
        args=["-c", AMS_DEPLOY_SCRIPT],
        env=[
            EnvVar.from_secret(
                VCAP_SERVICES, config.vcap_secret_name("ams"), VCAP_SERVICES
            ),
            EnvVar(
                name="NODE_TLS_REJECT_UNAUTHORIZED",
                value="1" if config.tls_reject_unauthorized else "0",
            ),
        ],
        env_from=[
            EnvFromSource(
                secret_ref=LocalObjectReference(name=config.ams_deployer_secret_name)
            )
        ],
        volume_mounts=[VolumeMount(name="policies", mount_path=POLICIES_MOUNT_PATH)],
    )
    pod = PodSpec(
        containers=[container],
        volumes=[
            Volume(
                name="policies",
                config_map=LocalObjectReference(name=config.ams_configmap_name),
            )
        ],
    )
    return _job(config, config.ams_job_name, "ams-policy-deployer", pod)


def hana_deployer_job(config: DeployConfig) -> Job:
    """Return the Job that runs the HDI deployer against the HANA container."""
    container = Container(
        name="hana-deployer",
        image=config.hana_deployer_image,
        command=["/bin/sh"],
        args=["-c", HANA_DEPLOY_SCRIPT],
        env=[
            EnvVar.from_secret(
                VCAP_SERVICES, config.vcap_secret_name("hana"), VCAP_SERVICES
            ),
            EnvVar(name="NODE_ENV", value="production"),
            EnvVar(name="EXIT", value="1"),
        ],
        env_from=[
            EnvFromSource(secret_ref=LocalObjectReference(name=config.hana_secret_name))
        ],
        resources=HANA_RESOURCES,
    )
    image_pull_secrets = None
    if config.image_pull_secret:
        image_pull_secrets = [LocalObjectReference(name=config.image_pull_secret)]
    pod = PodSpec(containers=[container], image_pull_secrets=image_pull_secrets)
    return _job(config, config.hana_job_name, "hana-deployer", pod)


def vcap_services_secret(config: DeployConfig, target: str, vcap_services: str) -> Secret:
    """Return the Secret that passes the service catalog to a deployer Job."""
    return Secret(
        metadata=_metadata(config, config.vcap_secret_name(target), f"{target}-vcap"),
        string_data={VCAP_SERVICES: vcap_services},
        type="Opaque",
    )
