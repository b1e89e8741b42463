# SPDX-FileCopyrightText: 2025 Blackcat Informatics® Inc.
# SPDX-License-Identifier: MIT

import shutil
import subprocess

import pytest

from pgprobe.config import ProbeSettings
from pgprobe.container import PostgresFixture
from pgprobe.errors import InitScriptError
from pgprobe.probes import run_probe, select_probes
from pgprobe.query import perform_query, server_version, to_string_list


def docker_available():
    if shutil.which("docker") is None:
        return False
    result = subprocess.run(
        ["docker", "info"],
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
    )
    return result.returncode == 0


pytestmark = [
    pytest.mark.docker,
    pytest.mark.skipif(not docker_available(), reason="docker daemon not reachable"),
]


@pytest.fixture(scope="module")
def settings():
    return ProbeSettings.from_env()


def fetch_one(pg, query):
    return perform_query(pg, query, lambda cur: cur.fetchone())


def test_simple(settings):
    with PostgresFixture(settings) as pg:
        pg.start()
        row = fetch_one(pg, "SELECT 1")
        assert row is not None
        assert row[0] == 1
        assert server_version(pg).major >= 9


def test_jsonb(settings):
    with PostgresFixture(settings).with_init_script("init_json.sql") as pg:
        pg.start()
        row = fetch_one(pg, "SELECT data->>'title' FROM books WHERE data->>'author' = 'James Joyce'")
        assert row is not None
        assert row[0] == "Ulysses"


def test_tsvector(settings):
    with PostgresFixture(settings).with_init_script("init_tsvector.sql") as pg:
        pg.start()

        row = fetch_one(pg, "SELECT count(*) FROM words WHERE data @@ to_tsquery('get & done')")
        assert row[0] > 0

        row = fetch_one(pg, "SELECT count(*) FROM words WHERE data @@ to_tsquery('get & let')")
        assert row[0] == 0


@pytest.mark.extensions
def test_ltree(settings):
    with PostgresFixture(settings).with_init_script("init_ltree.sql") as pg:
        pg.start()

        paths = perform_query(pg, "SELECT path FROM test WHERE path <@ 'Top.Science'", to_string_list)
        assert set(paths) >= {
            "Top.Science",
            "Top.Science.Astronomy",
            "Top.Science.Astronomy.Astrophysics",
            "Top.Science.Astronomy.Cosmology",
        }

        paths = perform_query(
            pg, "SELECT path FROM test WHERE path ~ '*.!pictures@.*.Astronomy.*';", to_string_list
        )
        assert set(paths) >= {
            "Top.Science.Astronomy",
            "Top.Science.Astronomy.Astrophysics",
            "Top.Science.Astronomy.Cosmology",
        }


@pytest.mark.extensions
def test_hstore(settings):
    with PostgresFixture(settings).with_init_script("init_hstore.sql") as pg:
        pg.start()

        data = fetch_one(pg, "SELECT data FROM dict")[0]
        assert data == {"a": "1", "b": "2", "c": "3"}

        data = fetch_one(pg, "SELECT delete(data, 'c') FROM dict")[0]
        assert data["a"] == "1"
        assert data["b"] == "2"
        assert "c" not in data

        data = fetch_one(pg, "SELECT data || hstore('d', '4') FROM dict")[0]
        assert data == {"a": "1", "b": "2", "c": "3", "d": "4"}


def test_init_scripts_apply_in_order(settings, tmp_path):
    extra = tmp_path / "more_books.sql"
    extra.write_text(
        "INSERT INTO books (data) VALUES ('{\"title\": \"Dubliners\", \"author\": \"James Joyce\"}');\n"
    )
    with PostgresFixture(settings).with_init_script("init_json.sql").with_init_script(extra) as pg:
        pg.start()
        titles = perform_query(
            pg,
            "SELECT data->>'title' FROM books WHERE data->>'author' = %s ORDER BY id",
            to_string_list,
            params=("James Joyce",),
        )
        assert titles == ["Ulysses", "Dubliners"]


def test_broken_init_script_stops_container(settings, tmp_path):
    broken = tmp_path / "broken.sql"
    broken.write_text("CREATE TABLE oops (;\n")
    pg = PostgresFixture(settings).with_init_script(broken)
    with pytest.raises(InitScriptError, match="broken.sql"):
        pg.start()
    assert not pg.started


def test_probe_registry_end_to_end(settings):
    results = [run_probe(probe, settings) for probe in select_probes([])]
    failures = {r.name: r.detail for r in results if not r.passed}
    assert failures == {}
