# SPDX-FileCopyrightText: 2025 Blackcat Informatics® Inc.
# SPDX-License-Identifier: MIT

"""Exception hierarchy shared by the container, probe and CLI layers."""

from __future__ import annotations


class PgProbeError(Exception):
    """Base class for every error raised by pgprobe itself."""


class ConfigError(PgProbeError):
    pass


class InitScriptError(PgProbeError):
    def __init__(self, script: str, reason: str):
        super().__init__(f"init script {script}: {reason}")
        self.script = script
        self.reason = reason


class ContainerNotReadyError(PgProbeError):
    pass


class ProbeAssertionError(PgProbeError):
    pass


class ContainerStartError(PgProbeError):
    """Docker refused to create or run the container (daemon down, pull failed)."""


class ContainerNotStartedError(PgProbeError):
    pass
