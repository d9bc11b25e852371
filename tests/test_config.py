import json

import pytest

import config


def test_load_config_without_file(isolated_config):
    assert not isolated_config.exists()
    assert config.load_config() == {}


def test_update_last_used(isolated_config):
    config.update_last_used(region="us-east-1", instance_id="i-0123456789abcdef0")
    config.update_last_used(profile="ops")

    data = json.loads(isolated_config.read_text())
    assert data == {
        "last_region": "us-east-1",
        "last_instance": "i-0123456789abcdef0",
        "last_profile": "ops",
    }


@pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]", "\"cac1\""])
def test_unusable_config_file_counts_as_empty(isolated_config, content):
    isolated_config.parent.mkdir(parents=True)
    isolated_config.write_text(content)

    assert config.load_config() == {}
    assert config.get_settings() == config.DEFAULTS


def test_update_last_used_replaces_corrupt_file(isolated_config):
    isolated_config.parent.mkdir(parents=True)
    isolated_config.write_text("{not json")

    config.update_last_used(region="ca-west-1")

    assert json.loads(isolated_config.read_text()) == {"last_region": "ca-west-1"}


def test_settings_defaults():
    assert config.get_settings() == config.DEFAULTS


def test_settings_from_file(isolated_config):
    config.save_config({"default_region": "use2", "poll_interval": 5, "unrelated": True})
    settings = config.get_settings()
    assert settings["default_region"] == "use2"
    assert settings["poll_interval"] == 5
    assert "unrelated" not in settings


def test_environment_overrides_file(monkeypatch):
    config.save_config({"default_region": "use2", "max_attempts": 10})
    monkeypatch.setenv("ZTIAWS_DEFAULT_REGION", "usw1")
    monkeypatch.setenv("ZTIAWS_MAX_ATTEMPTS", "90")
    monkeypatch.setenv("AWS_PROFILE", "ops")

    settings = config.get_settings()
    assert settings["default_region"] == "usw1"
    assert settings["max_attempts"] == 90
    assert settings["profile"] == "ops"


def test_invalid_environment_value_is_ignored(monkeypatch):
    monkeypatch.setenv("ZTIAWS_POLL_INTERVAL", "fast")
    assert config.get_settings()["poll_interval"] == config.DEFAULTS["poll_interval"]


def test_poll_timeout_from_environment(monkeypatch):
    assert config.get_settings()["poll_timeout"] is None
    monkeypatch.setenv("ZTIAWS_POLL_TIMEOUT", "90")
    assert config.get_settings()["poll_timeout"] == 90.0
