"""
Server configuration.

A ServerConfig is built once, before the server starts, and never changes
afterwards. Values come from a shell-style config file and/or the command
line; the command line wins.

Config file format (same as an env file)::

    # comment
    CFG_ROOT=/srv/files
    CFG_PORT=8080
    CFG_MAX_WORKERS=16
    CFG_CHUNK_SIZE=4096
    CFG_REQUEST_TIMEOUT=30
    CFG_DRAIN_LIMIT=67108864
"""

import os
from dataclasses import dataclass
from pathlib import Path

LOOPBACK = "127.0.0.1"

CONFIG_KEYS = {
    "CFG_ROOT": "root",
    "CFG_PORT": "port",
    "CFG_MAX_WORKERS": "max_workers",
    "CFG_CHUNK_SIZE": "chunk_size",
    "CFG_REQUEST_TIMEOUT": "request_timeout",
    "CFG_DRAIN_LIMIT": "drain_limit",
}

FLOAT_FIELDS = {"request_timeout"}


@dataclass(frozen=True)
class ServerConfig:
    root: str
    port: int = 80
    host: str = LOOPBACK
    max_workers: int = 32
    chunk_size: int = 4096
    # seconds a connection may sit idle before its worker gives up
    request_timeout: float = 30.0
    # unread request body discarded after a rejection, in bytes
    drain_limit: int = 64 * 1024 * 1024

    def __post_init__(self):
        if not 0 <= self.port <= 65535:
            raise ValueError(f"Invalid port: {self.port}")
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be at least 1, got {self.chunk_size}")
        if self.request_timeout <= 0:
            raise ValueError(f"request_timeout must be positive, got {self.request_timeout}")
        if self.drain_limit < 0:
            raise ValueError(f"drain_limit must not be negative, got {self.drain_limit}")
        # resolve once so every request joins against the same absolute root
        object.__setattr__(self, "root", os.path.abspath(self.root))


def load_shell_config(path):
    data = {}
    for line in Path(path).read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        k, v = line.split("=", 1)
        data[k.strip()] = v.strip().strip('"').strip("'")
    return data


def config_from_file(path, **overrides):
    """
    Build a ServerConfig from a config file, then apply ``overrides``.

    Unknown keys are ignored so the same file can carry other settings.
    """
    raw = load_shell_config(path)
    values = {}
    for key, field in CONFIG_KEYS.items():
        if key not in raw or raw[key] == "":
            continue
        value = raw[key]
        if field != "root":
            convert = float if field in FLOAT_FIELDS else int
            try:
                value = convert(value)
            except ValueError:
                raise ValueError(f"{key} must be a number, got {value!r}") from None
        values[field] = value

    values.update({k: v for k, v in overrides.items() if v is not None})
    if "root" not in values:
        raise ValueError(f"No root directory: set CFG_ROOT in {path} or pass --root")
    return ServerConfig(**values)
