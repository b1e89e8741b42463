# SPDX-FileCopyrightText: 2025 Blackcat Informatics® Inc.
# SPDX-License-Identifier: MIT

"""Small helpers for running one query against anything that can ``connect()``."""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, List, Optional, Protocol, Sequence, TypeVar

from packaging.version import Version

log = logging.getLogger(__name__)

T = TypeVar("T")

_VERSION_RE = re.compile(r"^\s*(\d+(?:\.\d+)*)")


class ConnectionSource(Protocol):
    def connect(self, **kwargs: Any): ...


def perform_query(
    source: ConnectionSource,
    query: str,
    consumer: Callable[[Any], T],
    params: Optional[Sequence[Any]] = None,
) -> T:
    """Execute ``query`` and hand the live cursor to ``consumer``.

    The connection and cursor are closed once the consumer returns, whether
    or not it raised.
    """
    log.debug("query: %s", query)
    with source.connect() as conn:
        with conn.cursor() as cur:
            cur.execute(query, params)
            return consumer(cur)


def to_string_list(cursor) -> List[Optional[str]]:
    result: List[Optional[str]] = []
    for row in cursor:
        value = row[0]
        result.append(None if value is None else str(value))
    return result


def parse_server_version(raw: str) -> Version:
    # "10.14 (Debian 10.14-1.pgdg90+1)" -> 10.14
    match = _VERSION_RE.match(raw)
    if not match:
        raise ValueError(f"unrecognised server_version: {raw!r}")
    return Version(match.group(1))


def server_version(source: ConnectionSource) -> Version:
    raw = perform_query(source, "SHOW server_version", lambda cur: cur.fetchone()[0])
    return parse_server_version(raw)
