"""Flags and helpers shared by the cap-deploy actions."""

from argparse import ArgumentParser
import logging
import pathlib
from typing import Any

from cap_deploy.config import DeployConfig
from cap_deploy.kubectl import KubeClient, Kubectl

_LOGGER = logging.getLogger(__name__)


def add_config_flags(args: ArgumentParser) -> None:
    """Add flags that override the deployment descriptor."""
    args.add_argument(
        "--app-name",
        type=str,
        default=None,
        help="Application name (default: $APP_NAME or bookshop)",
    )
    args.add_argument(
        "--namespace",
        "-n",
        type=str,
        default=None,
        help="Kubernetes namespace (default: $NAMESPACE or default)",
    )
    args.add_argument(
        "--output-dir",
        type=pathlib.Path,
        default=None,
        help="Directory for the generated manifest files (default: $OUTPUT_DIR or .)",
    )
    args.add_argument(
        "--context",
        type=str,
        default=None,
        help="The kubeconfig context to use",
    )


def add_ams_flags(args: ArgumentParser) -> None:
    """Add flags specific to the AMS policy deployment."""
    args.add_argument(
        "--policies-dir",
        type=pathlib.Path,
        default=None,
        help="Path to generated policies (default: $GEN_POLICIES_DIR or ../../gen/policies)",
    )


def add_hana_flags(args: ArgumentParser) -> None:
    """Add flags specific to the HANA schema deployment."""
    args.add_argument(
        "--db-dir",
        type=pathlib.Path,
        default=None,
        help="Path to generated DB artifacts (default: $GEN_DB_DIR or ../../gen/db)",
    )
    args.add_argument(
        "--image",
        dest="hana_deployer_image",
        type=str,
        default=None,
        help="Container image for the HANA deployer (default: $HANA_DEPLOYER_IMAGE)",
    )


def build_config(
    app_name: str | None = None,
    namespace: str | None = None,
    output_dir: pathlib.Path | None = None,
    policies_dir: pathlib.Path | None = None,
    db_dir: pathlib.Path | None = None,
    hana_deployer_image: str | None = None,
    **kwargs: Any,  # pylint: disable=unused-argument
) -> DeployConfig:
    """Return the config from the environment with command line overrides."""
    return DeployConfig.from_env().with_overrides(
        app_name=app_name,
        namespace=namespace,
        output_dir=output_dir,
        policies_dir=policies_dir,
        db_dir=db_dir,
        hana_deployer_image=hana_deployer_image,
    )


def new_client(config: DeployConfig, context: str | None = None) -> KubeClient:
    """Return the client used to talk to the cluster."""
    return Kubectl(poll_interval=config.poll_interval, context=context)


def print_banner(title: str, config: DeployConfig, *extra: tuple[str, Any]) -> None:
    """Print the settings for a deployment run."""
    print(title)
    print(f"Application: {config.app_name}")
    print(f"Namespace: {config.namespace}")
    for label, value in extra:
        print(f"{label}: {value}")
    print()
