"""Configuration objects for cap-deploy.

A `DeployConfig` is the deployment descriptor for a single run. It is built
once, typically from the process environment, and then passed into the
deployers. Nothing else in the library reads environment variables.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, fields
import logging
import os
from pathlib import Path
from typing import Any

from .exceptions import InputException

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "DeployConfig",
]

DEFAULT_APP_NAME = "bookshop"
DEFAULT_NAMESPACE = "default"
DEFAULT_POLICIES_DIR = Path("../../gen/policies")
DEFAULT_DB_DIR = Path("../../gen/db")
DEFAULT_HANA_DEPLOYER_IMAGE = "ghcr.io/sim-jar/bookshop-hana-deployer:service-fix"
DEFAULT_AMS_DEPLOYER_IMAGE = "node:18-alpine"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _env(name: str, optional: bool = False) -> dict[str, Any]:
    """Field metadata naming the environment variable for a setting.

    An empty value keeps the default, unless the setting is optional, in which
    case it is unset.
    """
    return {"env": name, "optional": optional}


@dataclass
class DeployConfig:
    """Deployment descriptor used to render manifests and run deployer Jobs."""

    app_name: str = field(default=DEFAULT_APP_NAME, metadata=_env("APP_NAME"))
    """Application name, used as the prefix of every resource name."""

    namespace: str = field(default=DEFAULT_NAMESPACE, metadata=_env("NAMESPACE"))
    """Kubernetes namespace that receives the resources."""

    policies_dir: Path = field(
        default=DEFAULT_POLICIES_DIR, metadata=_env("GEN_POLICIES_DIR")
    )
    """Generated AMS policies, the output of `cds build`."""

    db_dir: Path = field(default=DEFAULT_DB_DIR, metadata=_env("GEN_DB_DIR"))
    """Generated HDI database artifacts, the output of `cds build`."""

    hana_deployer_image: str = field(
        default=DEFAULT_HANA_DEPLOYER_IMAGE, metadata=_env("HANA_DEPLOYER_IMAGE")
    )
    """Container image with the HDI deployer and the generated artifacts."""

    ams_deployer_image: str = field(
        default=DEFAULT_AMS_DEPLOYER_IMAGE, metadata=_env("AMS_DEPLOYER_IMAGE")
    )
    """Node image used to install and run the AMS DCL deployer."""

    output_dir: Path = field(default=Path("."), metadata=_env("OUTPUT_DIR"))
    """Directory where the rendered manifest files are written."""

    ams_timeout: float = field(default=300.0, metadata=_env("AMS_TIMEOUT"))
    """Seconds to wait for the AMS policy deployer Job."""

    hana_timeout: float = field(default=600.0, metadata=_env("HANA_TIMEOUT"))
    """Seconds to wait for the HANA deployer Job."""

    poll_interval: float = field(default=2.0, metadata=_env("POLL_INTERVAL"))
    """Seconds between Job status checks."""

    require_hdiconfig: bool = field(default=True, metadata=_env("REQUIRE_HDICONFIG"))
    """Fail when the generated DB artifacts have no `.hdiconfig` file."""

    tls_reject_unauthorized: bool = field(
        default=False, metadata=_env("NODE_TLS_REJECT_UNAUTHORIZED")
    )
    """Value of NODE_TLS_REJECT_UNAUTHORIZED for the AMS deployer."""

    image_pull_secret: str | None = field(
        default="ghcr-secret", metadata=_env("IMAGE_PULL_SECRET", optional=True)
    )
    """Registry credentials used to pull the HANA deployer image, if any."""

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "DeployConfig":
        """Build a config from environment variables, keeping defaults when unset."""
        if environ is None:
            environ = os.environ
        values: dict[str, Any] = {}
        for config_field in fields(cls):
            if not (env_name := config_field.metadata.get("env")):
                continue
            if (raw := environ.get(env_name)) is None:
                continue
            if raw == "":
                if config_field.metadata.get("optional"):
                    values[config_field.name] = None
                continue
            values[config_field.name] = _convert(env_name, config_field.default, raw)
        config = cls(**values)
        _LOGGER.debug("Loaded config: %s", config)
        return config

    def with_overrides(self, **overrides: Any) -> "DeployConfig":
        """Return a copy with the non-None overrides applied."""
        current = {f.name: getattr(self, f.name) for f in fields(self)}
        current.update({k: v for k, v in overrides.items() if v is not None})
        return DeployConfig(**current)

    @property
    def ams_configmap_name(self) -> str:
        return f"{self.app_name}-ams-policies"

    @property
    def ams_job_name(self) -> str:
        return f"{self.app_name}-ams-policy-deployer"

    @property
    def ams_deployer_secret_name(self) -> str:
        return f"{self.app_name}-ams-deployer-secret"

    @property
    def identity_secret_name(self) -> str:
        return f"{self.app_name}-identity-secret"

    @property
    def hana_job_name(self) -> str:
        return f"{self.app_name}-hana-deployer"

    @property
    def hana_secret_name(self) -> str:
        return f"{self.app_name}-hana-secret"

    def vcap_secret_name(self, target: str) -> str:
        """Name of the Secret holding the bridged VCAP_SERVICES document."""
        return f"{self.app_name}-{target}-vcap-services"


def _convert(env_name: str, default: Any, raw: str) -> Any:
    """Convert an environment variable to the type of the field default."""
    if isinstance(default, bool):
        if raw.lower() in _TRUE_VALUES:
            return True
        if raw.lower() in _FALSE_VALUES:
            return False
        raise InputException(f"Invalid boolean for {env_name}: '{raw}'")
    if isinstance(default, float):
        try:
            value = float(raw)
        except ValueError as err:
            raise InputException(f"Invalid number for {env_name}: '{raw}'") from err
        if value <= 0:
            raise InputException(f"Expected a positive number for {env_name}: '{raw}'")
        return value
    if isinstance(default, Path):
        return Path(raw)
    return raw
