from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path

from .config import TRANSPORTS, RelayRuntimeConfig, apply_env, load_config_file
from .logging_config import configure_logging
from .paths import default_config_path, default_identity_path, ensure_private_dir
from .service import RelayService


def _write_default_config(config_path: str, identity_path: str) -> None:
    cfg_dir = os.path.dirname(config_path)
    if cfg_dir:
        ensure_private_dir(Path(cfg_dir))

    content = f"""# lrcd configuration (TOML)
#
# This file was created on first run. Command line flags and the
# LRCD_HOST / LRCD_PORT (or PORT) environment variables override it.

[relay]

# Transport: "tcp" (newline-delimited text over TCP) or "rns" (Reticulum links,
# one line per packet).
transport = "tcp"

# TCP listener.
host = "0.0.0.0"
port = 8080

# Reticulum transport only.
# configdir: Reticulum configuration directory (empty for the default).
# identity_path: relay identity, created on first start if missing.
configdir = ""
identity_path = {identity_path!r}
dest_name = "lrc.relay"
announce_on_start = true

# Username policy.
# Maximum accepted username length (Unicode characters). 0 disables the limit.
username_max_chars = 0

# Emoji recorded when /react is given a message id but no emoji.
default_reaction = "👍"

[logging]

# Log level for lrcd itself.
level = "INFO"

# Log level for Reticulum/RNS Python logging.
rns_level = "WARNING"

# Log to stderr (systemd/journald friendly).
console = true

# Optional file path for logs (leave empty to disable).
file = ""

# Log format and optional date format.
format = "%(asctime)s %(levelname)s %(name)s[%(threadName)s]: %(message)s"
datefmt = ""
"""

    with open(config_path, "w", encoding="utf-8") as f:
        f.write(content)
    try:
        os.chmod(config_path, 0o600)
    except OSError:
        pass


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="lrcd", description="Run a line relay chat daemon")

    p.add_argument(
        "--config",
        default=str(default_config_path()),
        help="Path to a TOML config file (created on first run)",
    )
    p.add_argument(
        "--transport",
        choices=TRANSPORTS,
        default=None,
        help="Transport to serve clients on (default: tcp)",
    )
    p.add_argument("--host", default=None, help="TCP listen address")
    p.add_argument("--port", type=int, default=None, help="TCP listen port")

    p.add_argument("--configdir", default=None, help="Reticulum config directory")
    p.add_argument(
        "--identity",
        default=None,
        help="Path to the relay's Reticulum identity (created if missing)",
    )
    p.add_argument(
        "--dest-name", default=None, help="Destination app name (default: lrc.relay)"
    )
    p.add_argument(
        "--no-announce",
        action="store_true",
        help="Do not announce the Reticulum destination on start",
    )

    p.add_argument(
        "--username-max-chars",
        type=int,
        default=None,
        help="Maximum username length (0 disables)",
    )

    p.add_argument(
        "--log-level",
        default=None,
        help="Logging level override (DEBUG, INFO, WARNING, ERROR). Default comes from config.",
    )
    p.add_argument(
        "--log-file",
        default=None,
        help="Log file path override (empty disables file logging). Default comes from config.",
    )

    return p


def build_config(args: argparse.Namespace, environ=None) -> RelayRuntimeConfig:
    """Defaults, then the config file, then the environment, then flags."""
    config_path = str(args.config)

    cfg = RelayRuntimeConfig(config_path=config_path)
    if config_path and os.path.exists(config_path):
        cfg = load_config_file(cfg, config_path)
    cfg = apply_env(cfg, environ)

    if args.transport is not None:
        cfg = replace(cfg, transport=args.transport)
    if args.host is not None:
        cfg = replace(cfg, host=args.host)
    if args.port is not None:
        cfg = replace(cfg, port=int(args.port))

    if args.configdir is not None:
        cfg = replace(cfg, configdir=args.configdir)
    if args.identity is not None:
        cfg = replace(cfg, identity_path=args.identity)
    if args.dest_name is not None:
        cfg = replace(cfg, dest_name=args.dest_name)
    if args.no_announce:
        cfg = replace(cfg, announce_on_start=False)

    if args.username_max_chars is not None:
        cfg = replace(cfg, username_max_chars=int(args.username_max_chars))

    if args.log_level is not None:
        cfg = replace(cfg, log_level=str(args.log_level))
    if args.log_file is not None:
        cfg = replace(cfg, log_file=str(args.log_file) if str(args.log_file) else None)

    return cfg


def main(argv: list[str] | None = None) -> None:
    args = _build_arg_parser().parse_args(sys.argv[1:] if argv is None else argv)

    config_path = str(args.config)
    created = False
    if config_path and not os.path.exists(config_path):
        identity_path = str(args.identity or default_identity_path())
        _write_default_config(config_path, identity_path)
        created = True

    try:
        cfg = build_config(args)
    except (OSError, ValueError) as e:
        print(f"lrcd: bad configuration: {e}", file=sys.stderr)
        raise SystemExit(2) from e

    configure_logging(cfg, override_level=args.log_level, override_file=args.log_file)
    if created:
        logging.getLogger("lrcd.relay").info("Created default config path=%s", config_path)

    svc = RelayService(cfg)
    svc.start()
    svc.run_forever()


if __name__ == "__main__":
    main()
