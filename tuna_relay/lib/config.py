# Tuna Relay
# Copyright (C) 2026 Tuna Relay contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Shared configuration loader for the relay.

Loads a single JSON config file.  Search order:
  1. $TUNA_RELAY_CONFIG               (explicit path, also set by --config)
  2. /etc/tuna-relay/config.json      (system install)
  3. config.json                      (CWD — handy for local dev)
  4. ../../config/default.json        (repo fallback)

Usage:
    from tuna_relay.lib.config import RelayConfig, reload_config

    reload_config()               # pick up $TUNA_RELAY_CONFIG set by --config
    relay = RelayConfig.load()    # typed view of the whole file
    relay.channels[0].url
"""

import json
import logging
import os
import socket
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

_config: dict | None = None

CONFIG_ENV = "TUNA_RELAY_CONFIG"

_SEARCH_PATHS = [
    "/etc/tuna-relay/config.json",
    "config.json",
    os.path.join(os.path.dirname(__file__), "..", "..", "config", "default.json"),
]

STREAMING = "streaming"
TRANSACTIONAL = "transactional"
CHANNEL_KINDS = (STREAMING, TRANSACTIONAL)

# Reference deployment: a production and a development hub on the same host
DEFAULT_CHANNELS = [
    {"name": "prod", "kind": STREAMING, "url": "http://localhost:9155/tuna"},
    {"name": "dev", "kind": STREAMING, "url": "http://localhost:9255/tuna"},
]


def _search_paths() -> list[str]:
    override = os.environ.get(CONFIG_ENV)
    return ([override] if override else []) + _SEARCH_PATHS


def _validate(config: dict, path: str) -> None:
    """Warn about missing or suspicious config values."""
    channels = config.get("channels")
    if channels is None:
        logger.warning("Config %s: no 'channels' section — using default prod/dev hubs", path)
    elif not channels:
        logger.warning("Config %s: empty 'channels' list — nothing will be published", path)
    else:
        for entry in channels:
            if not isinstance(entry, dict):
                continue
            if entry.get("kind", STREAMING) not in CHANNEL_KINDS:
                logger.warning("Config %s: channel '%s' has unknown kind '%s'",
                               path, entry.get("name"), entry.get("kind"))
    source = config.get("source") or {}
    if source.get("type") == "sonos" and not source.get("ip"):
        logger.error("Config %s: source.type is sonos but source.ip is missing", path)
    rate = config.get("refresh_rate_ms")
    if rate is not None and rate < 100:
        logger.warning("Config %s: refresh_rate_ms=%s is very aggressive", path, rate)


def load_config() -> dict:
    """Load config from the first JSON file found. Cached after first call."""
    global _config
    if _config is not None:
        return _config

    for path in _search_paths():
        try:
            with open(path) as f:
                _config = json.load(f)
                logger.info("Config loaded from %s", path)
                _validate(_config, path)
                return _config
        except FileNotFoundError:
            continue
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in %s: %s", path, e)
            continue

    logger.warning("No config.json found — using empty config")
    _config = {}
    return _config


def reload_config():
    """Force re-read from disk (for testing or hot-reload)."""
    global _config
    _config = None
    return load_config()


# ---------------------------------------------------------------------------
# Typed view
# ---------------------------------------------------------------------------

def _seconds(entry: dict, key: str, default_ms: float) -> float:
    value = entry.get(key, default_ms)
    if not isinstance(value, (int, float)) or isinstance(value, bool) or value < 0:
        raise ValueError(f"{key} must be a non-negative number of milliseconds, got {value!r}")
    return value / 1000


@dataclass
class ChannelConfig:
    """One outbound destination and its recovery tuning (seconds internally)."""

    name: str
    kind: str
    url: str
    # streaming
    initial_delay: float = 1.0
    max_delay: float = 30.0
    backoff_factor: float = 1.5
    reconnect_delays: tuple[float, ...] = (0.0, 2.0, 10.0, 30.0)
    invoke_timeout: float = 5.0
    # transactional
    max_failures: int = 3
    cooldown: float = 30.0
    timeout: float = 5.0

    @classmethod
    def from_dict(cls, entry: dict) -> "ChannelConfig":
        """Build from a config.json ``channels[]`` entry; raises ValueError."""
        kind = entry.get("kind", STREAMING)
        if kind not in CHANNEL_KINDS:
            raise ValueError(f"unknown channel kind {kind!r}")
        url = entry.get("url")
        if not url:
            raise ValueError("channel url is required")
        name = entry.get("name") or url

        delays = entry.get("reconnect_delays_ms", [0, 2000, 10000, 30000])
        if not isinstance(delays, list):
            raise ValueError("reconnect_delays_ms must be a list")

        factor = entry.get("backoff_factor", 1.5)
        if not isinstance(factor, (int, float)) or factor < 1:
            raise ValueError(f"backoff_factor must be >= 1, got {factor!r}")

        max_failures = entry.get("max_failures", 3)
        if not isinstance(max_failures, int) or max_failures < 1:
            raise ValueError(f"max_failures must be a positive integer, got {max_failures!r}")

        config = cls(
            name=name,
            kind=kind,
            url=url,
            initial_delay=_seconds(entry, "initial_delay_ms", 1000),
            max_delay=_seconds(entry, "max_delay_ms", 30000),
            backoff_factor=float(factor),
            reconnect_delays=tuple(_seconds({"d": d}, "d", 0) for d in delays),
            invoke_timeout=_seconds(entry, "invoke_timeout_ms", 5000),
            max_failures=max_failures,
            cooldown=_seconds(entry, "cooldown_ms", 30000),
            timeout=_seconds(entry, "timeout_ms", 5000),
        )
        if config.initial_delay <= 0:
            raise ValueError("initial_delay_ms must be positive")
        if config.max_delay < config.initial_delay:
            raise ValueError("max_delay_ms must be >= initial_delay_ms")
        return config


@dataclass
class RelayConfig:
    hostname: str
    refresh_rate: float = 1.0
    log_level: str = "INFO"
    status_port: int = 0
    source: dict = field(default_factory=dict)
    channels: list[ChannelConfig] = field(default_factory=list)

    @classmethod
    def from_dict(cls, config: dict) -> "RelayConfig":
        entries = config.get("channels")
        if entries is None:
            entries = DEFAULT_CHANNELS
        channels = [ChannelConfig.from_dict(e) for e in entries]
        names = [c.name for c in channels]
        if len(set(names)) != len(names):
            raise ValueError(f"channel names must be unique: {names}")
        return cls(
            hostname=config.get("hostname") or socket.gethostname(),
            refresh_rate=_seconds(config, "refresh_rate_ms", 1000) or 1.0,
            log_level=str(config.get("log_level", "INFO")).upper(),
            status_port=int(config.get("status_port", 0)),
            source=dict(config.get("source") or {}),
            channels=channels,
        )

    @classmethod
    def load(cls) -> "RelayConfig":
        """Typed view of the cached config file."""
        return cls.from_dict(load_config())
