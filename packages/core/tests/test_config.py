"""Tests for configuration loading."""

import pytest

from reviewgate_core.config import (
    REMOTE_DEFAULT_PORT,
    get_server_host,
    get_server_port,
    is_remote_session,
    load_client_bundle,
    load_config,
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("REVIEWGATE_REMOTE", "REVIEWGATE_PORT", "REVIEWGATE_ORIGIN"):
        monkeypatch.delenv(name, raising=False)


def test_defaults_applied_when_no_config_file(tmp_path):
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config["origin"] == "claude-code"
    assert config["remote"] is False
    assert config["port"] is None
    assert config["port_retries"] == 5
    assert config["port_retry_delay"] == 0.5
    assert config["sharing_enabled"] is True
    assert config["decision_timeout"] is None


def test_config_file_overrides_defaults(tmp_path):
    cfg = tmp_path / ".reviewgate.yml"
    cfg.write_text("sharing_enabled: false\nport_retries: 2\n")
    config = load_config(config_path=str(cfg))
    assert config["sharing_enabled"] is False
    assert config["port_retries"] == 2


def test_empty_config_file_keeps_defaults(tmp_path):
    cfg = tmp_path / ".reviewgate.yml"
    cfg.write_text("")
    config = load_config(config_path=str(cfg))
    assert config["origin"] == "claude-code"


def test_cli_overrides_config_file(tmp_path):
    cfg = tmp_path / ".reviewgate.yml"
    cfg.write_text("port: 9000\n")
    config = load_config(config_path=str(cfg), cli_overrides={"port": 9100})
    assert config["port"] == 9100


def test_none_cli_overrides_ignored(tmp_path):
    cfg = tmp_path / ".reviewgate.yml"
    cfg.write_text("origin: opencode\n")
    config = load_config(config_path=str(cfg), cli_overrides={"origin": None})
    assert config["origin"] == "opencode"


def test_env_overrides_everything(tmp_path, monkeypatch):
    cfg = tmp_path / ".reviewgate.yml"
    cfg.write_text("port: 9000\nremote: false\norigin: file\n")
    monkeypatch.setenv("REVIEWGATE_PORT", "9200")
    monkeypatch.setenv("REVIEWGATE_REMOTE", "true")
    monkeypatch.setenv("REVIEWGATE_ORIGIN", "opencode")
    config = load_config(config_path=str(cfg), cli_overrides={"port": 9100})
    assert config["port"] == 9200
    assert config["remote"] is True
    assert config["origin"] == "opencode"


@pytest.mark.parametrize("value,expected", [("1", True), ("TRUE", True), ("0", False), ("false", False)])
def test_remote_env_values(tmp_path, monkeypatch, value, expected):
    monkeypatch.setenv("REVIEWGATE_REMOTE", value)
    config = load_config(config_path=str(tmp_path / "missing.yml"))
    assert config["remote"] is expected


def test_invalid_port_env_raises(tmp_path, monkeypatch):
    monkeypatch.setenv("REVIEWGATE_PORT", "not-a-port")
    with pytest.raises(ValueError, match="REVIEWGATE_PORT"):
        load_config(config_path=str(tmp_path / "missing.yml"))


def test_port_and_host_local():
    config = {"remote": False, "port": None}
    assert is_remote_session(config) is False
    assert get_server_port(config) == 0
    assert get_server_host(config) == "127.0.0.1"


def test_port_and_host_remote():
    config = {"remote": True, "port": None}
    assert is_remote_session(config) is True
    assert get_server_port(config) == REMOTE_DEFAULT_PORT
    assert get_server_host(config) == "0.0.0.0"


def test_explicit_port_wins_in_remote_mode():
    assert get_server_port({"remote": True, "port": 8123}) == 8123


def test_builtin_client_bundle_loads():
    html = load_client_bundle({"client_bundle": None})
    assert "<html" in html.lower()


def test_custom_client_bundle(tmp_path):
    bundle = tmp_path / "index.html"
    bundle.write_text("<html>custom</html>")
    assert load_client_bundle({"client_bundle": str(bundle)}) == "<html>custom</html>"


def test_missing_custom_client_bundle_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_client_bundle({"client_bundle": str(tmp_path / "missing.html")})
