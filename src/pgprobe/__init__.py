# SPDX-FileCopyrightText: 2025 Blackcat Informatics® Inc.
# SPDX-License-Identifier: MIT

"""Feature probes for disposable PostgreSQL containers.

Each probe starts a throwaway PostgreSQL instance through testcontainers,
seeds it from a packaged SQL init script and checks that a specific server
feature (jsonb, full-text search, ltree, hstore) behaves as expected.
"""

from pgprobe.config import ProbeSettings
from pgprobe.container import PostgresFixture
from pgprobe.errors import (
    ConfigError,
    ContainerNotReadyError,
    ContainerNotStartedError,
    ContainerStartError,
    InitScriptError,
    PgProbeError,
    ProbeAssertionError,
)
from pgprobe.query import perform_query, server_version, to_string_list

__version__ = "0.1.0"

__all__: list[str] = [
    "ConfigError",
    "ContainerNotReadyError",
    "ContainerNotStartedError",
    "ContainerStartError",
    "InitScriptError",
    "PgProbeError",
    "PostgresFixture",
    "ProbeAssertionError",
    "ProbeSettings",
    "perform_query",
    "server_version",
    "to_string_list",
]
