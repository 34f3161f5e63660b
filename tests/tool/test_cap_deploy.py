"""Tests for the cap-deploy command line tool."""

from pathlib import Path

import pytest
import yaml

from . import run_main
from ..fakes import HANA_CREDENTIALS, IDENTITY_CREDENTIALS, FakeKubeClient


@pytest.mark.parametrize(
    "args",
    [["--help"], ["ams", "--help"], ["hana", "-h"], ["render", "--help"]],
)
def test_help(args: list[str], capsys: pytest.CaptureFixture[str]) -> None:
    """Test usage is printed with a zero exit code."""
    assert run_main(args) == 0
    assert "usage: cap-deploy" in capsys.readouterr().out


@pytest.mark.parametrize(
    "args",
    [
        [],
        ["unknown"],
        ["ams", "--bogus"],
        ["ams", "--logs"],
        ["hana", "--cleanup", "--logs"],
        ["render", "other"],
    ],
    ids=[
        "no-command",
        "unknown-command",
        "unknown-flag",
        "ams-logs",
        "exclusive",
        "target",
    ],
)
def test_invalid_arguments(args: list[str], capsys: pytest.CaptureFixture[str]) -> None:
    """Test unknown arguments exit with status 1."""
    assert run_main(args) == 1
    assert "error:" in capsys.readouterr().err


def test_render_ams(
    policies_dir: Path,
    output_dir: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Test writing the AMS manifests with overrides from the command line."""
    monkeypatch.setenv("GEN_POLICIES_DIR", str(policies_dir))
    monkeypatch.setenv("APP_NAME", "ignored")
    args = ["render", "ams", "--app-name", "demo", "--namespace", "test"]
    assert run_main(args + ["--output-dir", str(output_dir)]) == 0

    configmap_path = output_dir / "ams-policies-configmap.yaml"
    assert str(configmap_path) in capsys.readouterr().out
    configmap = yaml.safe_load(configmap_path.read_text())
    assert configmap["metadata"]["name"] == "demo-ams-policies"
    assert configmap["metadata"]["namespace"] == "test"
    job = yaml.safe_load((output_dir / "ams-policy-deployer-job.yaml").read_text())
    assert job["metadata"]["name"] == "demo-ams-policy-deployer"


def test_render_missing_artifacts(
    tmp_path: Path, output_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    """Test a missing artifact directory exits non-zero without writing files."""
    exit_code = run_main(
        [
            "render",
            "hana",
            "--db-dir",
            str(tmp_path / "missing"),
            "--output-dir",
            str(output_dir),
        ]
    )
    assert exit_code == 1
    assert "cds build" in capsys.readouterr().err
    assert not output_dir.exists()


def test_cleanup(
    cli_client: FakeKubeClient, capsys: pytest.CaptureFixture[str]
) -> None:
    """Test cleanup exits 0 even when nothing exists."""
    assert run_main(["ams", "--cleanup", "--app-name", "demo"]) == 0
    assert run_main(["ams", "--cleanup", "--app-name", "demo"]) == 0
    assert ("configmap", "default", "demo-ams-policies") in cli_client.deleted
    assert "Cleanup complete" in capsys.readouterr().out


def test_hana_cleanup(cli_client: FakeKubeClient) -> None:
    """Test cleaning up the HANA deployment."""
    assert run_main(["hana", "--cleanup", "-n", "test"]) == 0
    assert ("job", "test", "bookshop-hana-deployer") in cli_client.deleted


def test_hana_logs(
    cli_client: FakeKubeClient, capsys: pytest.CaptureFixture[str]
) -> None:
    """Test printing the HANA deployment logs."""
    assert run_main(["hana", "--logs"]) == 0
    assert "Deployment done" in capsys.readouterr().out


def test_hana_deployment(
    cli_client: FakeKubeClient,
    db_dir: Path,
    output_dir: Path,
    installed_tools: None,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Test running the HANA deployment from the command line."""
    cli_client.add_secret("demo-hana-secret", "test", HANA_CREDENTIALS)
    args = ["hana", "--app-name", "demo", "-n", "test"]
    args += ["--db-dir", str(db_dir), "--output-dir", str(output_dir)]
    assert run_main(args) == 0
    out = capsys.readouterr().out
    assert "Starting HANA Schema Deployment" in out
    assert "HANA Schema Deployment Complete!" in out
    assert (output_dir / "hana-deployer-job.yaml").exists()


def test_deployment_failure(
    cli_client: FakeKubeClient,
    policies_dir: Path,
    output_dir: Path,
    installed_tools: None,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Test a failing deployment exits with status 1."""
    args = ["ams", "--app-name", "demo", "-n", "test"]
    args += ["--policies-dir", str(policies_dir), "--output-dir", str(output_dir)]
    assert run_main(args) == 1
    assert (
        "cap-deploy error: Identity service binding secret 'demo-identity-secret'"
        in capsys.readouterr().err
    )


def test_deploy_all(
    cli_client: FakeKubeClient,
    policies_dir: Path,
    db_dir: Path,
    output_dir: Path,
    installed_tools: None,
) -> None:
    """Test deploying every target from the command line."""
    cli_client.add_secret("demo-hana-secret", "test", HANA_CREDENTIALS)
    cli_client.add_secret("demo-identity-secret", "test", IDENTITY_CREDENTIALS)
    args = ["all", "--app-name", "demo", "-n", "test", "--output-dir", str(output_dir)]
    args += ["--policies-dir", str(policies_dir), "--db-dir", str(db_dir)]
    assert run_main(args) == 0
    assert [name for name, _ in cli_client.waits] == [
        "demo-hana-deployer",
        "demo-ams-policy-deployer",
    ]
