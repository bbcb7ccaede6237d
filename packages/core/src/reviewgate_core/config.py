import os
from pathlib import Path
from typing import Optional

import yaml

REMOTE_DEFAULT_PORT = 19432

DEFAULT_CONFIG: dict = {
    "origin": "claude-code",
    "remote": False,
    "port": None,  # None = random port locally, REMOTE_DEFAULT_PORT in remote mode
    "port_retries": 5,
    "port_retry_delay": 0.5,
    "sharing_enabled": True,
    "share_base_url": "https://share.reviewgate.dev",
    "open_browser": True,
    "client_bundle": None,  # None = use the built-in page; set to a path string to override
    "upload_dir": None,  # None = <system tempdir>/reviewgate
    "uploads_enabled": True,
    "decision_timeout": None,  # seconds; None waits until the reviewer decides
    "default_diff_type": "uncommitted",
}

BUILTIN_STATIC_DIR = Path(__file__).parent / "static"
_BUILTIN_BUNDLE = BUILTIN_STATIC_DIR / "index.html"

_TRUTHY = {"1", "true", "yes", "on"}


def load_config(config_path: str = ".reviewgate.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .reviewgate.yml in the current directory
      3. CLI argument overrides
      4. REVIEWGATE_* environment variables
    """
    config = dict(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    remote = os.environ.get("REVIEWGATE_REMOTE")
    if remote is not None and remote.strip():
        config["remote"] = remote.strip().lower() in _TRUTHY

    port = os.environ.get("REVIEWGATE_PORT")
    if port is not None and port.strip():
        try:
            config["port"] = int(port)
        except ValueError:
            raise ValueError(f"REVIEWGATE_PORT must be an integer, got {port!r}")

    origin = os.environ.get("REVIEWGATE_ORIGIN")
    if origin:
        config["origin"] = origin

    return config


def is_remote_session(config: dict) -> bool:
    return bool(config.get("remote", False))


def get_server_port(config: dict) -> int:
    """Return the port to bind: explicit override, else the remote default, else 0 (random)."""
    port = config.get("port")
    if port is not None:
        return int(port)
    return REMOTE_DEFAULT_PORT if is_remote_session(config) else 0


def get_server_host(config: dict) -> str:
    # Remote sessions are reached through port forwarding, so listen on all interfaces.
    return "0.0.0.0" if is_remote_session(config) else "127.0.0.1"


def load_client_bundle(config: dict) -> str:
    """
    Load the compiled client page served on every non-API route.

    If ``client_bundle`` is set in config, loads from that path (relative to cwd).
    Otherwise falls back to the built-in page.
    """
    custom_path = config.get("client_bundle")
    if custom_path:
        p = Path(custom_path)
        if not p.exists():
            raise FileNotFoundError(f"Client bundle not found: {custom_path}")
        return p.read_text(encoding="utf-8")

    if _BUILTIN_BUNDLE.exists():
        return _BUILTIN_BUNDLE.read_text(encoding="utf-8")

    raise FileNotFoundError("No client bundle configured and built-in page is missing.")
