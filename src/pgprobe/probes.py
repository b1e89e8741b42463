# SPDX-FileCopyrightText: 2025 Blackcat Informatics® Inc.
# SPDX-License-Identifier: MIT

"""Feature probes: one init script plus the checks that must hold after it."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Sequence

import psycopg
from docker.errors import DockerException

from pgprobe.config import ProbeSettings
from pgprobe.container import PostgresFixture
from pgprobe.errors import ConfigError, PgProbeError, ProbeAssertionError
from pgprobe.query import server_version

log = logging.getLogger(__name__)


class QueryRunner(Protocol):
    def fetch_all(self, query: str) -> List[tuple]: ...


@dataclass(frozen=True)
class Probe:
    name: str
    description: str
    check: Callable[[QueryRunner], str]
    init_script: Optional[str] = None


@dataclass
class ProbeResult:
    name: str
    passed: bool
    detail: str
    server_version: Optional[str] = None
    duration: float = 0.0

    def as_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "passed": self.passed,
            "detail": self.detail,
            "server_version": self.server_version,
            "duration": round(self.duration, 3),
        }


def expect(condition: bool, message: str) -> None:
    if not condition:
        raise ProbeAssertionError(message)


def first_value(runner: QueryRunner, query: str):
    rows = runner.fetch_all(query)
    expect(bool(rows), f"no rows returned by: {query}")
    return rows[0][0]


def column(runner: QueryRunner, query: str) -> List[str]:
    return [row[0] if row[0] is None else str(row[0]) for row in runner.fetch_all(query)]


def expect_contains(values: Sequence[str], wanted: Iterable[str], label: str) -> None:
    missing = [item for item in wanted if item not in values]
    expect(not missing, f"{label}: missing {', '.join(missing)}")


def expect_mapping(value, expected: Dict[str, str], absent: Sequence[str] = (), label: str = "hstore") -> None:
    expect(isinstance(value, dict), f"{label}: expected a dict, got {type(value).__name__}")
    for key, wanted in expected.items():
        expect(value.get(key) == wanted, f"{label}: {key}={value.get(key)!r}, expected {wanted!r}")
    for key in absent:
        expect(key not in value, f"{label}: unexpected key {key!r}")


def check_simple(runner: QueryRunner) -> str:
    value = first_value(runner, "SELECT 1")
    expect(value == 1, f"SELECT 1 returned {value!r}")
    return "SELECT 1 -> 1"


def check_jsonb(runner: QueryRunner) -> str:
    title = first_value(
        runner, "SELECT data->>'title' FROM books WHERE data->>'author' = 'James Joyce'"
    )
    expect(title == "Ulysses", f"expected Ulysses, got {title!r}")
    return "jsonb ->> lookup found Ulysses"


def check_tsvector(runner: QueryRunner) -> str:
    hits = first_value(runner, "SELECT count(*) FROM words WHERE data @@ to_tsquery('get & done')")
    expect(hits > 0, "to_tsquery('get & done') matched nothing")
    misses = first_value(runner, "SELECT count(*) FROM words WHERE data @@ to_tsquery('get & let')")
    expect(misses == 0, f"to_tsquery('get & let') matched {misses} rows")
    return f"'get & done' matched {hits}, 'get & let' matched 0"


SCIENCE_SUBTREE = (
    "Top.Science",
    "Top.Science.Astronomy",
    "Top.Science.Astronomy.Astrophysics",
    "Top.Science.Astronomy.Cosmology",
)


def check_ltree(runner: QueryRunner) -> str:
    descendants = column(runner, "SELECT path FROM test WHERE path <@ 'Top.Science'")
    expect_contains(descendants, SCIENCE_SUBTREE, "path <@ 'Top.Science'")
    astronomy = column(runner, "SELECT path FROM test WHERE path ~ '*.!pictures@.*.Astronomy.*'")
    expect_contains(astronomy, SCIENCE_SUBTREE[1:], "lquery *.!pictures@.*.Astronomy.*")
    return f"{len(descendants)} descendants, {len(astronomy)} lquery matches"


def check_hstore(runner: QueryRunner) -> str:
    expect_mapping(first_value(runner, "SELECT data FROM dict"), {"a": "1", "b": "2", "c": "3"})
    expect_mapping(
        first_value(runner, "SELECT delete(data, 'c') FROM dict"),
        {"a": "1", "b": "2"},
        absent=("c",),
        label="delete(data, 'c')",
    )
    expect_mapping(
        first_value(runner, "SELECT data || hstore('d', '4') FROM dict"),
        {"a": "1", "b": "2", "c": "3", "d": "4"},
        label="data || hstore('d', '4')",
    )
    return "hstore read, delete and concat behave"


PROBES: List[Probe] = [
    Probe("simple", "server answers SELECT 1", check_simple),
    Probe("jsonb", "jsonb ->> operator filtering", check_jsonb, "init_json.sql"),
    Probe("tsvector", "full-text search with tsvector/tsquery", check_tsvector, "init_tsvector.sql"),
    Probe("ltree", "ltree ancestry and lquery matching", check_ltree, "init_ltree.sql"),
    Probe("hstore", "hstore decoding, delete and concatenation", check_hstore, "init_hstore.sql"),
]


def select_probes(names: Sequence[str]) -> List[Probe]:
    if not names:
        return list(PROBES)
    known = {probe.name for probe in PROBES}
    unknown = [name for name in names if name not in known]
    if unknown:
        raise ConfigError(
            f"unknown probe(s): {', '.join(unknown)} (available: {', '.join(sorted(known))})"
        )
    wanted = set(names)
    return [probe for probe in PROBES if probe.name in wanted]


def run_probe(probe: Probe, settings: ProbeSettings) -> ProbeResult:
    started = time.monotonic()
    version: Optional[str] = None
    try:
        with PostgresFixture(settings) as pg:
            if probe.init_script:
                pg.with_init_script(probe.init_script)
            pg.start()
            version = str(server_version(pg))
            detail = probe.check(pg)
        passed = True
    except ProbeAssertionError as exc:
        passed, detail = False, str(exc)
    except (PgProbeError, psycopg.Error, DockerException) as exc:
        log.error("probe %s could not run: %s", probe.name, exc)
        passed, detail = False, f"error: {exc}"
    duration = time.monotonic() - started
    log.info("probe %s %s in %.1fs", probe.name, "passed" if passed else "FAILED", duration)
    return ProbeResult(probe.name, passed, detail, version, duration)


def run_probes(probes: Iterable[Probe], settings: ProbeSettings) -> List[ProbeResult]:
    return [run_probe(probe, settings) for probe in probes]
