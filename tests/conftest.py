"""Shared pytest fixtures"""

import pytest
from unittest.mock import MagicMock

from utils.ec2 import EC2Client


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep every test away from the real ~/.ztiaws and the caller's AWS env."""
    path = tmp_path / "ztiaws" / "config.json"
    monkeypatch.setenv("ZTIAWS_CONFIG", str(path))
    for var in ("AWS_PROFILE", "ZTIAWS_DEFAULT_REGION", "ZTIAWS_POLL_INTERVAL", "ZTIAWS_MAX_ATTEMPTS",
                "ZTIAWS_POLL_TIMEOUT"):
        monkeypatch.delenv(var, raising=False)
    return path


@pytest.fixture
def all_tools_installed(monkeypatch):
    monkeypatch.setattr("utils.deps.shutil.which", lambda name: f"/usr/local/bin/{name}")
    monkeypatch.setattr("utils.deps._tool_version", lambda path: "1.0")


@pytest.fixture
def mock_client():
    """An EC2Client stand-in whose ssm attribute is a plain mock SSM client."""
    client = MagicMock(spec=EC2Client)
    client.ssm = MagicMock()
    client.verify_credentials.return_value = {
        "Account": "123456789012",
        "Arn": "arn:aws:sts::123456789012:assumed-role/Admin/ops",
    }
    client.get_instance_names.return_value = {}
    return client


@pytest.fixture
def client_factory(mock_client):
    calls = []

    def factory(region, profile=None):
        calls.append((region, profile))
        return mock_client

    factory.calls = calls
    return factory
