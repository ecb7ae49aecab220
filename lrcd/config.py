from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass, replace

from .constants import DEFAULT_REACTION, USERNAME_MAX_CHARS

TRANSPORTS = ("tcp", "rns")


@dataclass(frozen=True)
class RelayRuntimeConfig:
    config_path: str | None = None
    transport: str = "tcp"
    host: str = "0.0.0.0"
    port: int = 8080
    configdir: str | None = None
    identity_path: str | None = None
    dest_name: str = "lrc.relay"
    announce_on_start: bool = True
    username_max_chars: int = USERNAME_MAX_CHARS
    default_reaction: str = DEFAULT_REACTION
    log_level: str = "INFO"
    log_rns_level: str = "WARNING"
    log_console: bool = True
    log_file: str | None = None
    log_format: str = "%(asctime)s %(levelname)s %(name)s[%(threadName)s]: %(message)s"
    log_datefmt: str | None = None


def load_toml(path: str) -> dict:
    import tomllib

    with open(path, "rb") as f:
        data = tomllib.load(f)
    return data if isinstance(data, dict) else {}


def apply_config_data(base: RelayRuntimeConfig, data: dict) -> RelayRuntimeConfig:
    relay = data.get("relay") if isinstance(data, dict) else None
    if isinstance(relay, dict):
        data = {**data, **relay}

    log_table = data.get("logging") if isinstance(data, dict) else None
    if isinstance(log_table, dict):
        mapped: dict[str, object] = {}
        for key in ("level", "rns_level", "console", "file", "format", "datefmt"):
            if key in log_table:
                mapped[f"log_{key}"] = log_table.get(key)
        data = {**data, **mapped}

    allowed = set(asdict(base).keys())
    # This identifies where to reload from; do not let the file override it.
    allowed.discard("config_path")

    updates = {k: v for k, v in data.items() if k in allowed}

    if "port" in updates:
        updates["port"] = int(updates["port"])
    if "username_max_chars" in updates:
        updates["username_max_chars"] = int(updates["username_max_chars"])
    if "transport" in updates:
        updates["transport"] = str(updates["transport"]).strip().lower()
        if updates["transport"] not in TRANSPORTS:
            raise ValueError(f"unknown transport {data['transport']!r}")

    for key in ("configdir", "identity_path", "log_file", "log_datefmt"):
        if key in updates and updates[key] == "":
            updates[key] = None
    if "default_reaction" in updates and not str(updates["default_reaction"]).strip():
        updates["default_reaction"] = DEFAULT_REACTION

    return replace(base, **updates) if updates else base


def apply_env(
    base: RelayRuntimeConfig, environ: Mapping[str, str] | None = None
) -> RelayRuntimeConfig:
    """Apply LRCD_HOST and LRCD_PORT (or plain PORT) from the environment."""
    env = os.environ if environ is None else environ
    cfg = base

    port = env.get("LRCD_PORT") or env.get("PORT")
    if port and port.strip():
        try:
            cfg = replace(cfg, port=int(port.strip()))
        except ValueError as e:
            raise ValueError(f"invalid port in environment: {port!r}") from e

    host = env.get("LRCD_HOST")
    if host and host.strip():
        cfg = replace(cfg, host=host.strip())

    return cfg


def load_config_file(base: RelayRuntimeConfig, path: str) -> RelayRuntimeConfig:
    return apply_config_data(base, load_toml(path))
