"""Fixtures for cap-deploy tests."""

from collections.abc import Generator
from pathlib import Path

import pytest

from cap_deploy.config import DeployConfig

from .fakes import BASE_POLICIES_DCL, PACKAGE_JSON, SCHEMA_DCL, FakeKubeClient


@pytest.fixture(name="policies_dir")
def policies_dir_fixture(tmp_path: Path) -> Path:
    """Generated AMS policies as written by `cds build`."""
    policies_dir = tmp_path / "gen" / "policies"
    (policies_dir / "dcl" / "cap").mkdir(parents=True)
    (policies_dir / "package.json").write_text(PACKAGE_JSON)
    (policies_dir / "dcl" / "cap" / "basePolicies.dcl").write_text(BASE_POLICIES_DCL)
    (policies_dir / "dcl" / "schema.dcl").write_text(SCHEMA_DCL)
    return policies_dir


@pytest.fixture(name="db_dir")
def db_dir_fixture(tmp_path: Path) -> Path:
    """Generated HDI artifacts as written by `cds build`."""
    db_dir = tmp_path / "gen" / "db"
    gen_dir = db_dir / "src" / "gen"
    gen_dir.mkdir(parents=True)
    (gen_dir / ".hdiconfig").write_text('{"file_suffixes": {}}\n')
    (gen_dir / ".hdinamespace").write_text('{"name": "", "subfolder": "ignore"}\n')
    (gen_dir / "sap.capire.bookshop.Books.hdbtable").write_text("COLUMN TABLE ...\n")
    return db_dir


@pytest.fixture(name="output_dir")
def output_dir_fixture(tmp_path: Path) -> Path:
    return tmp_path / "out"


@pytest.fixture(name="config")
def config_fixture(policies_dir: Path, db_dir: Path, output_dir: Path) -> DeployConfig:
    return DeployConfig(
        app_name="demo",
        namespace="test",
        policies_dir=policies_dir,
        db_dir=db_dir,
        output_dir=output_dir,
        poll_interval=0.01,
    )


@pytest.fixture(name="client")
def client_fixture() -> FakeKubeClient:
    return FakeKubeClient()


@pytest.fixture(name="installed_tools")
def installed_tools_fixture(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Pretend every command line tool is on the PATH."""
    monkeypatch.setattr(
        "cap_deploy.preconditions.shutil.which", lambda name: f"/usr/bin/{name}"
    )
    yield
