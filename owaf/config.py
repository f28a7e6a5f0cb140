"""Server, database, logging and proxy configuration."""

from __future__ import annotations

import json
import logging
import logging.handlers
import os
import sys
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from owaf import hcl

FORMATS = ("pretty", "compact", "json", "full")
ROLLINGS = ("minutely", "hourly", "daily", "never")


class ConfigError(ValueError):
    """Raised when configuration is missing or invalid."""


def _get(data: Mapping, key: str, kind: type, default: Any = ..., unsigned: bool = False):
    if key not in data:
        if default is ...:
            raise ConfigError(f"missing field `{key}`")
        return default
    value = data[key]
    if kind is int and (isinstance(value, bool) or not isinstance(value, int)):
        raise ConfigError(f"field `{key}` must be an integer")
    if kind is not int and not isinstance(value, kind):
        raise ConfigError(f"field `{key}` must be {kind.__name__}")
    if unsigned and value < 0:
        raise ConfigError(f"field `{key}` must not be negative")
    return value


def _section(data: Mapping, key: str) -> Mapping:
    if key not in data:
        raise ConfigError(f"missing field `{key}`")
    if not isinstance(data[key], Mapping):
        raise ConfigError(f"field `{key}` must be a table")
    return data[key]


@dataclass
class DbConfig:
    url: str
    pool_size: int = 10
    min_idle: int | None = None
    tcp_timeout: int = 10000
    connection_timeout: int = 30000
    statement_timeout: int = 30000
    helper_threads: int = 10
    enforce_tls: bool = False

    @classmethod
    def from_mapping(cls, data: Mapping) -> DbConfig:
        url_key = "url" if "url" in data else "database_url"
        min_idle = data.get("min_idle")
        if min_idle is not None:
            min_idle = _get(data, "min_idle", int, unsigned=True)
        return cls(
            url=_get(data, url_key, str),
            pool_size=_get(data, "pool_size", int, 10, True),
            min_idle=min_idle,
            tcp_timeout=_get(data, "tcp_timeout", int, 10000, True),
            connection_timeout=_get(data, "connection_timeout", int, 30000, True),
            statement_timeout=_get(data, "statement_timeout", int, 30000, True),
            helper_threads=_get(data, "helper_threads", int, 10, True),
            enforce_tls=_get(data, "enforce_tls", bool, False),
        )


class _JsonFormatter(logging.Formatter):
    def __init__(self, config: LogConfig) -> None:
        super().__init__()
        self.config = config

    def format(self, record: logging.LogRecord) -> str:
        out: dict[str, Any] = {"timestamp": self.formatTime(record), "message": record.getMessage()}
        c = self.config
        if c.with_level:
            out["level"] = record.levelname
        if c.with_target:
            out["target"] = record.name
        if c.with_thread_ids:
            out["thread_id"] = record.thread
        if c.with_thread_names:
            out["thread_name"] = record.threadName
        if c.with_source_location:
            out["filename"] = record.pathname
            out["line_number"] = record.lineno
        return json.dumps(out)


@dataclass
class LogConfig:
    filter_level: str = "info"
    with_ansi: bool = True
    stdout: bool = False
    directory: str = "./logs"
    file_name: str = "app.log"
    rolling: str = "daily"
    format: str = "full"
    with_level: bool = True
    with_target: bool = True
    with_thread_ids: bool = True
    with_thread_names: bool = True
    with_source_location: bool = True

    def __post_init__(self) -> None:
        if self.rolling not in ROLLINGS:
            raise ConfigError("Unknown rolling")
        if self.format not in FORMATS:
            raise ConfigError("Unknown format")

    @classmethod
    def from_mapping(cls, data: Mapping) -> LogConfig:
        flags = {
            name: _get(data, name, bool, True)
            for name in (
                "with_ansi", "stdout", "with_level", "with_target",
                "with_thread_ids", "with_thread_names", "with_source_location",
            )
        }
        return cls(
            filter_level=_get(data, "filter_level", str, "info"),
            directory=_get(data, "directory", str, "./logs"),
            file_name=_get(data, "file_name", str, "app.log"),
            rolling=_get(data, "rolling", str, "daily"),
            format=_get(data, "format", str, "full"),
            **flags,
        )

    def _formatter(self) -> logging.Formatter:
        if self.format == "json":
            return _JsonFormatter(self)
        parts = ["%(asctime)s"]
        if self.with_level:
            parts.append("%(levelname)s")
        if self.with_thread_names:
            parts.append("%(threadName)s")
        if self.with_thread_ids:
            parts.append("%(thread)d")
        if self.with_target:
            parts.append("%(name)s:")
        if self.with_source_location:
            parts.append("%(pathname)s:%(lineno)d:")
        sep = "\n    " if self.format == "pretty" else " "
        return logging.Formatter(" ".join(parts) + sep + "%(message)s")

    def setup(self) -> logging.Handler:
        """Install a root log handler; the caller should close it on exit."""
        if self.stdout:
            handler: logging.Handler = logging.StreamHandler(sys.stdout)
        else:
            Path(self.directory).mkdir(parents=True, exist_ok=True)
            path = os.path.join(self.directory, self.file_name)
            when = {"minutely": "M", "hourly": "H", "daily": "D"}.get(self.rolling)
            if when is None:
                handler = logging.FileHandler(path)
            else:
                handler = logging.handlers.TimedRotatingFileHandler(path, when=when)
        handler.setFormatter(self._formatter())
        spec = os.environ.get("RUST_LOG", self.filter_level)
        level_name = spec.split(",")[0].split("=")[-1].strip().upper()
        level = {"TRACE": "DEBUG", "WARN": "WARNING"}.get(level_name, level_name)
        root = logging.getLogger()
        root.setLevel(getattr(logging, level, logging.INFO))
        root.addHandler(handler)
        return handler


@dataclass
class TlsConfig:
    cert: str
    key: str


@dataclass
class ServerConfig:
    db: DbConfig
    log: LogConfig
    listen_addr: str = "127.0.0.1:8008"
    tls: TlsConfig | None = None

    @classmethod
    def from_mapping(cls, data: Mapping) -> ServerConfig:
        tls = None
        if data.get("tls") is not None:
            section = _section(data, "tls")
            tls = TlsConfig(cert=_get(section, "cert", str), key=_get(section, "key", str))
        return cls(
            listen_addr=_get(data, "listen_addr", str, "127.0.0.1:8008"),
            db=DbConfig.from_mapping(_section(data, "db")),
            log=LogConfig.from_mapping(_section(data, "log")),
            tls=tls,
        )


@dataclass
class RateLimitConfig:
    requests: int
    window_sec: int


@dataclass
class ProxyEntry:
    host: str
    target: str
    rate_limit: RateLimitConfig | None = None


@dataclass
class ProxyConfig:
    proxy: dict[str, ProxyEntry] = field(default_factory=dict)

    @classmethod
    def parse(cls, text: str) -> ProxyConfig:
        """Parse proxy definitions from HCL text."""
        try:
            doc = hcl.loads(text)
        except hcl.HclError as exc:
            raise ConfigError(str(exc)) from exc
        blocks = doc.get("proxy", {})
        if not isinstance(blocks, Mapping):
            raise ConfigError("`proxy` must be a labelled block")
        entries = {}
        for name, block in blocks.items():
            if not isinstance(block, Mapping):
                raise ConfigError(f"proxy `{name}` must be a block")
            rate_limit = None
            if block.get("rate_limit") is not None:
                rl = _section(block, "rate_limit")
                rate_limit = RateLimitConfig(
                    requests=_get(rl, "requests", int, unsigned=True),
                    window_sec=_get(rl, "window_sec", int, unsigned=True),
                )
            entries[name] = ProxyEntry(
                host=_get(block, "host", str),
                target=_get(block, "target", str),
                rate_limit=rate_limit,
            )
        return cls(entries)

    @classmethod
    def load(cls, path: str | os.PathLike) -> ProxyConfig:
        """Read a proxy file; a missing or invalid file gives an empty config."""
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError:
            return cls()
        try:
            return cls.parse(text)
        except ConfigError as exc:
            print(f"Failed to parse proxy config {path}: {exc}", file=sys.stderr)
            return cls()


def _env_value(raw: str) -> Any:
    lowered = raw.strip().lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    try:
        return int(raw)
    except ValueError:
        pass
    try:
        return float(raw)
    except ValueError:
        return raw


def load_server_config(environ: Mapping[str, str] | None = None) -> ServerConfig:
    """Read the TOML config file, overlay APP_* variables and validate."""
    env = os.environ if environ is None else environ
    data: dict[str, Any] = {}
    path = Path(env.get("APP_CONFIG", "config.toml"))
    if path.is_file():
        try:
            data = tomllib.loads(path.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"{path}: {exc}") from exc
    for name, raw in env.items():
        if name.startswith("APP_") and len(name) > 4:
            data[name[4:].lower()] = _env_value(raw)
    config = ServerConfig.from_mapping(data)
    if not config.db.url:
        config.db.url = env.get("DATABASE_URL", "")
    if not config.db.url:
        raise ConfigError("DATABASE_URL is not set")
    return config


_config: ServerConfig | None = None
_proxy_config: ProxyConfig | None = None


def init(environ: Mapping[str, str] | None = None) -> ServerConfig:
    """Load and install the global server and proxy configuration."""
    global _config, _proxy_config
    env = os.environ if environ is None else environ
    _config = load_server_config(env)
    _proxy_config = ProxyConfig.load(env.get("PROXY_CONFIG", "proxy.hcl"))
    return _config


def get() -> ServerConfig:
    if _config is None:
        raise RuntimeError("config should be set")
    return _config


def get_proxy() -> ProxyConfig:
    if _proxy_config is None:
        raise RuntimeError("proxy config should be set")
    return _proxy_config