"""
Tests for engine configuration loading and validation
"""

import pytest

from lendalert.config import EngineConfig, load_config, merge_config_with_env


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove ALERTS_* variables that could leak in from the environment."""
    for name in (
        "ALERTS_DELTA_LAKE_PATH",
        "ALERTS_POLL_INTERVAL",
        "ALERTS_SERIALIZE_PER_ALERT",
        "ALERTS_LOG_LEVEL",
        "ALERTS_LOG_FILE",
        "ALERTS_LOG_ROTATION",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "alerts.yaml"
    path.write_text(
        "delta_lake_path: /srv/lake/admin_alerts\n"
        "poll_interval: 5\n"
        "serialize_per_alert: true\n"
        "log_level: debug\n"
    )
    return path


def test_defaults():
    config = EngineConfig()

    assert config.delta_lake_path == "data/lake/admin_alerts"
    assert config.poll_interval == 2.0
    assert config.serialize_per_alert is False
    assert config.log_level == "INFO"
    assert config.log_file is None
    assert config.audit_table_path == "data/lake/admin_alerts_audit"


def test_load_from_file(config_file):
    config = load_config(config_file)

    assert config.delta_lake_path == "/srv/lake/admin_alerts"
    assert config.poll_interval == 5
    assert config.serialize_per_alert is True
    assert config.log_level == "DEBUG"


def test_missing_file_uses_defaults(tmp_path):
    assert load_config(tmp_path / "nope.yaml") == EngineConfig()


def test_no_path_uses_defaults():
    assert load_config() == EngineConfig()


def test_env_overrides_file(config_file, monkeypatch):
    monkeypatch.setenv("ALERTS_POLL_INTERVAL", "0.5")
    monkeypatch.setenv("ALERTS_SERIALIZE_PER_ALERT", "no")
    monkeypatch.setenv("ALERTS_LOG_FILE", "logs/alerts.log")

    config = load_config(config_file)

    assert config.poll_interval == 0.5
    assert config.serialize_per_alert is False
    assert config.log_file == "logs/alerts.log"
    assert config.delta_lake_path == "/srv/lake/admin_alerts"


def test_merge_does_not_mutate_input(monkeypatch):
    monkeypatch.setenv("ALERTS_LOG_LEVEL", "WARNING")
    data = {"log_level": "INFO"}

    merged = merge_config_with_env(data)

    assert merged["log_level"] == "WARNING"
    assert data == {"log_level": "INFO"}


def test_invalid_env_number(monkeypatch):
    monkeypatch.setenv("ALERTS_POLL_INTERVAL", "soon")

    with pytest.raises(ValueError, match="ALERTS_POLL_INTERVAL"):
        load_config()


def test_unknown_key_rejected(tmp_path):
    path = tmp_path / "alerts.yaml"
    path.write_text("delta_lake_path: x\nmystery: 1\n")

    with pytest.raises(ValueError, match="Unknown config keys"):
        load_config(path)


def test_non_mapping_rejected(tmp_path):
    path = tmp_path / "alerts.yaml"
    path.write_text("- just\n- a list\n")

    with pytest.raises(ValueError, match="mapping"):
        load_config(path)


@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"poll_interval": 0}, "poll_interval"),
        ({"log_level": "LOUD"}, "Invalid log_level"),
        ({"delta_lake_path": ""}, "delta_lake_path"),
    ],
)
def test_validation(kwargs, message):
    with pytest.raises(ValueError, match=message):
        EngineConfig(**kwargs)


def test_log_config():
    log_config = EngineConfig(log_rotation="5 MB", log_level="warning").get_log_config()

    assert log_config["rotation"] == "5 MB"
    assert log_config["level"] == "WARNING"
