"""Fixtures for the cap-deploy command line tests."""

from collections.abc import Generator

import pytest

from ..fakes import FakeKubeClient

ENV_VARS = (
    "APP_NAME",
    "NAMESPACE",
    "GEN_POLICIES_DIR",
    "GEN_DB_DIR",
    "HANA_DEPLOYER_IMAGE",
    "OUTPUT_DIR",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove deployment settings inherited from the environment."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(name="cli_client")
def cli_client_fixture(
    client: FakeKubeClient, monkeypatch: pytest.MonkeyPatch
) -> Generator[FakeKubeClient, None, None]:
    """Replace the cluster used by the command line actions."""
    monkeypatch.setattr(
        "cap_deploy.tool.common.new_client", lambda config, context=None: client
    )
    yield client
