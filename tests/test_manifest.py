"""Tests for manifest library."""

import base64
from pathlib import Path

import pytest
import yaml

from cap_deploy.exceptions import InputException
from cap_deploy.manifest import (
    ConfigMap,
    Container,
    EnvVar,
    Job,
    JobSpec,
    ObjectMeta,
    PodSpec,
    PodTemplateSpec,
    Secret,
    dump_manifest,
    load_manifest,
    read_manifest,
    write_manifest,
)

from .fakes import BASE_POLICIES_DCL, TEST_CERTIFICATE


def test_configmap_doc() -> None:
    """Test the document of a ConfigMap starts with apiVersion and kind."""
    configmap = ConfigMap(
        metadata=ObjectMeta(name="demo", namespace="test"), data={"key": "value"}
    )
    doc = configmap.to_doc()
    assert list(doc) == ["apiVersion", "kind", "metadata", "data"]
    assert doc == {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {"name": "demo", "namespace": "test"},
        "data": {"key": "value"},
    }


def test_job_doc_aliases() -> None:
    """Test fields are serialized with their kubernetes names."""
    job = Job(
        metadata=ObjectMeta(name="deployer", namespace="test"),
        spec=JobSpec(
            backoff_limit=3,
            template=PodTemplateSpec(
                metadata=ObjectMeta(labels={"app": "demo"}),
                spec=PodSpec(
                    containers=[
                        Container(
                            name="deployer",
                            image="node:18-alpine",
                            env=[EnvVar.from_secret("VCAP_SERVICES", "vcap", "key")],
                        )
                    ]
                ),
            ),
        ),
    )
    doc = job.to_doc()
    assert doc["apiVersion"] == "batch/v1"
    assert doc["kind"] == "Job"
    assert job.name == "deployer"
    spec = doc["spec"]
    assert spec["backoffLimit"] == 3
    pod = spec["template"]["spec"]
    assert pod["restartPolicy"] == "OnFailure"
    assert "imagePullSecrets" not in pod
    assert "volumes" not in pod
    assert pod["containers"] == [
        {
            "name": "deployer",
            "image": "node:18-alpine",
            "env": [
                {
                    "name": "VCAP_SERVICES",
                    "valueFrom": {"secretKeyRef": {"name": "vcap", "key": "key"}},
                }
            ],
        }
    ]


def test_parse_secret() -> None:
    """Test parsing a Secret returned by the cluster."""
    secret = Secret.parse_doc(
        {
            "apiVersion": "v1",
            "kind": "Secret",
            "metadata": {"name": "demo-hana-secret", "namespace": "test"},
            "type": "Opaque",
            "data": {
                "host": base64.b64encode(b"db.example.com").decode(),
                "certificate": base64.b64encode(TEST_CERTIFICATE.encode()).decode(),
            },
        }
    )
    assert secret.metadata.name == "demo-hana-secret"
    assert secret.type == "Opaque"
    assert secret.decoded_data() == {
        "host": "db.example.com",
        "certificate": TEST_CERTIFICATE,
    }


def test_secret_string_data() -> None:
    """Test that string data is returned without decoding."""
    secret = Secret(
        metadata=ObjectMeta(name="demo"),
        data={"a": base64.b64encode(b"1").decode()},
        string_data={"b": "2"},
    )
    assert secret.decoded_data() == {"a": "1", "b": "2"}
    assert secret.to_doc()["stringData"] == {"b": "2"}


def test_secret_invalid_base64() -> None:
    """Test a Secret with a value that is not base64 encoded."""
    secret = Secret(metadata=ObjectMeta(name="demo"), data={"host": "not base64!"})
    with pytest.raises(InputException, match="invalid value for 'host'"):
        secret.decoded_data()


@pytest.mark.parametrize(
    "doc",
    [
        {"kind": "ConfigMap", "metadata": {"name": "demo"}},
        {"kind": "Secret"},
        {"kind": "Secret", "metadata": {"namespace": "test"}},
    ],
)
def test_parse_secret_invalid(doc: dict) -> None:
    """Test parsing documents that are not valid Secrets."""
    with pytest.raises(InputException):
        Secret.parse_doc(doc)


def test_dump_literal_blocks() -> None:
    """Test multi-line strings, including tabs, are written as literal blocks."""
    configmap = ConfigMap(
        metadata=ObjectMeta(name="demo", namespace="test"),
        data={"basePolicies.dcl": BASE_POLICIES_DCL, "single": "one line"},
    )
    content = dump_manifest([configmap.to_doc()])
    assert "  basePolicies.dcl: |\n" in content
    assert '    POLICY "admin" {\n' in content
    assert '    \tASSIGN ROLE "admin";\n' in content
    assert "  single: one line\n" in content
    assert yaml.safe_load(content)["data"]["basePolicies.dcl"] == BASE_POLICIES_DCL


@pytest.mark.parametrize(
    "value",
    [
        "SCHEMA { \n\tA: String\n}\n",
        "first line  \nsecond\t\nthird\n",
        "no final newline \nend ",
    ],
)
def test_dump_literal_blocks_trailing_whitespace(value: str) -> None:
    """Test lines ending in whitespace still produce a literal block."""
    content = dump_manifest([{"data": {"schema.dcl": value}}])
    assert content.startswith("data:\n  schema.dcl: |")
    assert yaml.safe_load(content)["data"]["schema.dcl"] == value


def test_dump_carriage_returns_quoted() -> None:
    """Test carriage returns are kept in a double quoted scalar."""
    value = "line one\r\nline two\r\n"
    content = dump_manifest([{"data": value}])
    assert content == 'data: "line one\\r\\nline two\\r\\n"\n'
    assert yaml.safe_load(content)["data"] == value


def test_dump_multiple_documents() -> None:
    """Test serializing more than one document."""
    docs = [
        ConfigMap(metadata=ObjectMeta(name="a")).to_doc(),
        ConfigMap(metadata=ObjectMeta(name="b")).to_doc(),
    ]
    content = dump_manifest(docs)
    assert load_manifest(content) == docs


def test_dump_shared_objects_without_anchors() -> None:
    """Test the same object used twice is not written as a yaml alias."""
    labels = {"app": "demo"}
    content = dump_manifest([{"a": labels, "b": labels}])
    assert "&" not in content
    assert "*" not in content


def test_load_invalid_manifest() -> None:
    """Test parsing content that is not yaml."""
    with pytest.raises(InputException, match="Unable to parse manifest"):
        load_manifest("key: [unclosed")


async def test_write_read_manifest(tmp_path: Path) -> None:
    """Test writing a manifest to disk and reading it back."""
    path = tmp_path / "configmap.yaml"
    docs = [
        ConfigMap(
            metadata=ObjectMeta(name="demo", namespace="test"),
            data={"schema.dcl": "SCHEMA {\n\tName: String\n}\n"},
        ).to_doc()
    ]
    await write_manifest(path, docs)
    assert await read_manifest(path) == docs

    # Writing again replaces the content
    await write_manifest(path, docs[:0])
    assert await read_manifest(path) == []
