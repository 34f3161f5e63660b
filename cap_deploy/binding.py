"""Build legacy service binding documents from Kubernetes Secret data.

The AMS and HDI deployer tools expect their credentials in a `VCAP_SERVICES`
environment variable, the JSON service catalog format of Cloud Foundry:

```json
{
  "hana": [
    {
      "label": "hana",
      "name": "bookshop-hana",
      "plan": "hdi-shared",
      "credentials": {"host": "...", "certificate": "-----BEGIN ..."}
    }
  ]
}
```

The catalog is serialized with `json`, so multi-line PEM certificates and keys
are escaped exactly and come back unchanged when the document is parsed.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
import json
import logging

from mashumaro import DataClassDictMixin

from .exceptions import CredentialException

__all__ = [
    "BindingProfile",
    "ServiceBinding",
    "ServiceCatalog",
    "IDENTITY_PROFILE",
    "HANA_PROFILE",
    "build_binding",
]

_LOGGER = logging.getLogger(__name__)

VCAP_SERVICES = "VCAP_SERVICES"


@dataclass(frozen=True)
class BindingProfile:
    """Describes which credential fields a type of service binding carries."""

    label: str
    """Service label, also the key of the entry in the catalog."""

    plan: str
    """Service plan reported to the deployer."""

    fields: tuple[str, ...]
    """Credential fields copied from the Secret, in output order."""

    required: tuple[str, ...] = ()
    """Fields without which the deployer cannot authenticate."""


IDENTITY_PROFILE = BindingProfile(
    label="identity",
    plan="application",
    fields=(
        "clientid",
        "certificate",
        "key",
        "url",
        "domain",
        "authorization_endpoint",
        "authorization_client_id",
        "authorization_instance_id",
        "authorization_bundle_url",
    ),
    required=("clientid",),
)

HANA_PROFILE = BindingProfile(
    label="hana",
    plan="hdi-shared",
    fields=(
        "database_id",
        "driver",
        "hdi_password",
        "hdi_user",
        "host",
        "password",
        "port",
        "schema",
        "url",
        "user",
        "certificate",
    ),
    required=("host", "schema", "hdi_user", "hdi_password"),
)


@dataclass
class ServiceBinding(DataClassDictMixin):
    """A single service entry in the catalog."""

    label: str
    name: str
    plan: str
    credentials: dict[str, str] = field(default_factory=dict)


@dataclass
class ServiceCatalog:
    """A set of service bindings keyed by their label."""

    bindings: list[ServiceBinding] = field(default_factory=list)

    def to_dict(self) -> dict[str, list[dict[str, object]]]:
        result: dict[str, list[dict[str, object]]] = {}
        for binding in self.bindings:
            result.setdefault(binding.label, []).append(binding.to_dict())
        return result

    def json(self) -> str:
        """Return the catalog as the value of a VCAP_SERVICES variable."""
        return json.dumps(self.to_dict(), indent=2)


def build_binding(
    profile: BindingProfile, name: str, secret_data: Mapping[str, str]
) -> ServiceBinding:
    """Build a service binding from the decoded values of a Secret.

    Every field is copied independently. Absent optional fields are left out of
    the credentials instead of being written as empty values.
    """
    missing = [key for key in profile.required if not secret_data.get(key)]
    if missing:
        raise CredentialException(
            f"Credentials for {name} are missing required fields: {', '.join(missing)}",
            hint=f"Check the {profile.label} service binding Secret",
        )
    credentials: dict[str, str] = {}
    for key in profile.fields:
        if (value := secret_data.get(key)) is None:
            _LOGGER.info("Credential field '%s' not set for %s", key, name)
            continue
        credentials[key] = value
    return ServiceBinding(
        label=profile.label, name=name, plan=profile.plan, credentials=credentials
    )
