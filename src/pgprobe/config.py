# SPDX-FileCopyrightText: 2025 Blackcat Informatics® Inc.
# SPDX-License-Identifier: MIT

"""Probe settings sourced from PGPROBE_* variables and an optional env file."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional

from pgprobe.errors import ConfigError

log = logging.getLogger(__name__)

DEFAULT_IMAGE = "postgres:10.14"
DEFAULT_ENV_FILE = ".env"


def load_env(path: Path) -> Dict[str, str]:
    env: Dict[str, str] = {}
    if not path.exists():
        return env
    for line in path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        env[key.strip()] = value.strip()
    return env


def _coerce(values: Mapping[str, str], key: str, kind: Callable, default):
    raw = values.get(key)
    if raw is None or raw == "":
        return default
    try:
        return kind(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be a {kind.__name__}, got {raw!r}") from exc


@dataclass(frozen=True)
class ProbeSettings:
    image: str = DEFAULT_IMAGE
    username: str = "test"
    password: str = "test"
    dbname: str = "test"
    connect_timeout: int = 10
    ready_retries: int = 30
    ready_delay: float = 1.0

    def __post_init__(self) -> None:
        if self.ready_retries < 1:
            raise ConfigError(f"PGPROBE_READY_RETRIES must be at least 1, got {self.ready_retries}")
        if self.ready_delay < 0:
            raise ConfigError(f"PGPROBE_READY_DELAY must not be negative, got {self.ready_delay}")

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        env_file: Optional[Path] = None,
    ) -> "ProbeSettings":
        """Build settings from the process environment layered over an env file.

        The env file defaults to ``PGPROBE_ENV_FILE`` and then ``./.env``; a
        missing file is not an error.
        """
        environ = os.environ if environ is None else environ
        if env_file is None:
            env_file = Path(environ.get("PGPROBE_ENV_FILE", DEFAULT_ENV_FILE))
        values = load_env(env_file)
        if values:
            log.debug("loaded %d entries from %s", len(values), env_file)
        values.update({k: v for k, v in environ.items() if k.startswith("PGPROBE_")})

        defaults = cls()
        return cls(
            image=values.get("PGPROBE_IMAGE") or defaults.image,
            username=values.get("PGPROBE_USER") or defaults.username,
            password=values.get("PGPROBE_PASSWORD") or defaults.password,
            dbname=values.get("PGPROBE_DB") or defaults.dbname,
            connect_timeout=_coerce(values, "PGPROBE_CONNECT_TIMEOUT", int, defaults.connect_timeout),
            ready_retries=_coerce(values, "PGPROBE_READY_RETRIES", int, defaults.ready_retries),
            ready_delay=_coerce(values, "PGPROBE_READY_DELAY", float, defaults.ready_delay),
        )

    def with_image(self, image: Optional[str]) -> "ProbeSettings":
        if not image:
            return self
        return replace(self, image=image)
