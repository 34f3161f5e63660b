"""Typed representation of the Kubernetes objects used by the deployers.

Manifests are constructed as dataclasses and then serialized, rather than
rendered by text substitution, so file contents and credentials never need
manual escaping. Serialization is deterministic: the same objects always
produce byte-identical YAML.
"""

import base64
import binascii
from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import Any, ClassVar

import aiofiles
from mashumaro import DataClassDictMixin, field_options
from mashumaro.config import BaseConfig
import yaml

from .exceptions import InputException

__all__ = [
    "dump_manifest",
    "load_manifest",
    "read_manifest",
    "write_manifest",
    "ObjectMeta",
    "ConfigMap",
    "Secret",
    "Container",
    "PodSpec",
    "Job",
]

_LOGGER = logging.getLogger(__name__)

SECRET_KIND = "Secret"
CONFIG_MAP_KIND = "ConfigMap"
JOB_KIND = "Job"


@dataclass
class BaseManifest(DataClassDictMixin):
    """Base class for all manifest objects."""

    class Config(BaseConfig):
        omit_none = True
        serialize_by_alias = True


@dataclass
class Resource(BaseManifest):
    """Base class for top level objects with an apiVersion and kind."""

    api_version: ClassVar[str] = "v1"
    kind: ClassVar[str] = ""

    def to_doc(self) -> dict[str, Any]:
        """Return the object as a plain kubernetes resource document."""
        return {"apiVersion": self.api_version, "kind": self.kind, **self.to_dict()}


@dataclass
class ObjectMeta(BaseManifest):
    """Metadata common to all objects."""

    name: str | None = None
    namespace: str | None = None
    labels: dict[str, str] | None = None


@dataclass
class LocalObjectReference(BaseManifest):
    """A reference to an object in the same namespace."""

    name: str


@dataclass
class KeySelector(BaseManifest):
    """Selects a key from a ConfigMap or Secret."""

    name: str
    key: str


@dataclass
class EnvVarSource(BaseManifest):
    """Source of an environment variable value."""

    secret_key_ref: KeySelector = field(
        metadata=field_options(alias="secretKeyRef")
    )


@dataclass
class EnvVar(BaseManifest):
    """An environment variable set in a container."""

    name: str
    value: str | None = None
    value_from: EnvVarSource | None = field(
        metadata=field_options(alias="valueFrom"), default=None
    )

    @classmethod
    def from_secret(cls, name: str, secret_name: str, key: str) -> "EnvVar":
        """Environment variable read from a key of a Secret."""
        return cls(
            name=name,
            value_from=EnvVarSource(
                secret_key_ref=KeySelector(name=secret_name, key=key)
            ),
        )


@dataclass
class EnvFromSource(BaseManifest):
    """Populates environment variables from every key of a Secret."""

    secret_ref: LocalObjectReference = field(metadata=field_options(alias="secretRef"))


@dataclass
class VolumeMount(BaseManifest):
    """Mounts a volume into a container."""

    name: str
    mount_path: str = field(metadata=field_options(alias="mountPath"))


@dataclass
class Volume(BaseManifest):
    """A volume backed by a ConfigMap."""

    name: str
    config_map: LocalObjectReference | None = field(
        metadata=field_options(alias="configMap"), default=None
    )


@dataclass
class ResourceRequirements(BaseManifest):
    """Compute resources for a container."""

    requests: dict[str, str] | None = None
    limits: dict[str, str] | None = None


@dataclass
class Container(BaseManifest):
    """A single container in a pod."""

    name: str
    image: str
    command: list[str] | None = None
    args: list[str] | None = None
    env: list[EnvVar] | None = None
    env_from: list[EnvFromSource] | None = field(
        metadata=field_options(alias="envFrom"), default=None
    )
    volume_mounts: list[VolumeMount] | None = field(
        metadata=field_options(alias="volumeMounts"), default=None
    )
    resources: ResourceRequirements | None = None


@dataclass
class PodSpec(BaseManifest):
    """Specification of the pod run by a Job."""

    containers: list[Container]
    restart_policy: str = field(
        metadata=field_options(alias="restartPolicy"), default="OnFailure"
    )
    image_pull_secrets: list[LocalObjectReference] | None = field(
        metadata=field_options(alias="imagePullSecrets"), default=None
    )
    volumes: list[Volume] | None = None


@dataclass
class PodTemplateSpec(BaseManifest):
    """Template for the pods created by a Job."""

    metadata: ObjectMeta
    spec: PodSpec


@dataclass
class JobSpec(BaseManifest):
    """Specification of a Job."""

    backoff_limit: int = field(metadata=field_options(alias="backoffLimit"))
    """Number of retries before the Job is marked as failed."""

    template: PodTemplateSpec


@dataclass
class Job(Resource):
    """A Job runs a pod until it completes successfully."""

    api_version: ClassVar[str] = "batch/v1"
    kind: ClassVar[str] = JOB_KIND

    metadata: ObjectMeta
    spec: JobSpec

    @property
    def name(self) -> str:
        return self.metadata.name or ""


@dataclass
class ConfigMap(Resource):
    """A ConfigMap is an API object used to store data in key-value pairs."""

    kind: ClassVar[str] = CONFIG_MAP_KIND

    metadata: ObjectMeta
    data: dict[str, str] | None = None


@dataclass
class Secret(Resource):
    """A Secret contains a small amount of sensitive data."""

    kind: ClassVar[str] = SECRET_KIND

    metadata: ObjectMeta
    data: dict[str, str] | None = None
    """Base64 encoded values, as returned by the cluster."""

    string_data: dict[str, str] | None = field(
        metadata=field_options(alias="stringData"), default=None
    )
    """Plain values, encoded by the cluster when the Secret is written."""

    type: str | None = None

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "Secret":
        """Parse a Secret object from a kubernetes resource."""
        if doc.get("kind") != SECRET_KIND:
            raise InputException(f"Invalid object expected Secret: {doc.get('kind')}")
        if not (metadata := doc.get("metadata")):
            raise InputException(f"Invalid {cls} missing metadata")
        if not (name := metadata.get("name")):
            raise InputException(f"Invalid {cls} missing metadata.name")
        return Secret(
            metadata=ObjectMeta(
                name=name,
                namespace=metadata.get("namespace"),
                labels=metadata.get("labels"),
            ),
            data=doc.get("data"),
            string_data=doc.get("stringData"),
            type=doc.get("type"),
        )

    def decoded_data(self) -> dict[str, str]:
        """Return the values of the Secret as plain text."""
        result: dict[str, str] = {}
        for key, value in (self.data or {}).items():
            try:
                result[key] = base64.b64decode(value, validate=True).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError) as err:
                raise InputException(
                    f"Secret {self.metadata.name} has an invalid value for '{key}'"
                ) from err
        result.update(self.string_data or {})
        return result


class _ManifestDumper(yaml.SafeDumper):
    """Dumper that prefers literal block scalars for multi-line strings."""

    def ignore_aliases(self, data: Any) -> bool:
        return True

    def analyze_scalar(self, scalar: str) -> Any:
        analysis = super().analyze_scalar(scalar)
        if analysis.allow_block or "\n" not in scalar or "\r" in scalar:
            return analysis
        # Tabs and trailing spaces are valid inside a literal block, but PyYAML
        # falls back to a double quoted scalar for them. Carriage returns are
        # not since a loader reads them back as plain line breaks.
        lines = scalar.replace("\t", " ").split("\n")
        cleaned = super().analyze_scalar("\n".join(line.rstrip(" ") for line in lines))
        if not cleaned.allow_block:
            return analysis
        cleaned.scalar = scalar
        cleaned.allow_flow_plain = False
        cleaned.allow_block_plain = False
        cleaned.allow_single_quoted = False
        return cleaned


def _str_presenter(dumper: yaml.Dumper, data: Any) -> Any:
    """Represent multi-line yaml strings as you'd expect.

    See https://github.com/yaml/pyyaml/issues/240
    """
    return dumper.represent_scalar(
        "tag:yaml.org,2002:str", data, style="|" if data.count("\n") > 0 else None
    )


_ManifestDumper.add_representer(str, _str_presenter)


def dump_manifest(docs: list[dict[str, Any]]) -> str:
    """Serialize resource documents as a multi-document YAML string."""
    return yaml.dump_all(
        docs,
        Dumper=_ManifestDumper,
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
        width=4096,
    )


def load_manifest(content: str) -> list[dict[str, Any]]:
    """Parse a multi-document YAML string into resource documents."""
    try:
        return [doc for doc in yaml.safe_load_all(content) if doc is not None]
    except yaml.YAMLError as err:
        raise InputException(f"Unable to parse manifest: {err}") from err


async def read_manifest(manifest_path: Path) -> list[dict[str, Any]]:
    """Return the resource documents in a manifest file."""
    async with aiofiles.open(str(manifest_path)) as manifest_file:
        content = await manifest_file.read()
    return load_manifest(content)


async def write_manifest(manifest_path: Path, docs: list[dict[str, Any]]) -> None:
    """Write the resource documents to disk, replacing any previous content."""
    content = dump_manifest(docs)
    _LOGGER.debug("Writing manifest %s", manifest_path)
    async with aiofiles.open(str(manifest_path), mode="w") as manifest_file:
        await manifest_file.write(content)
