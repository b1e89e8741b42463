# SPDX-FileCopyrightText: 2025 Blackcat Informatics® Inc.
# SPDX-License-Identifier: MIT

"""Disposable PostgreSQL instances backed by testcontainers."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from docker.errors import DockerException
import psycopg
from psycopg.rows import tuple_row
from psycopg.types import TypeInfo
from psycopg.types.hstore import register_hstore
from testcontainers.postgres import PostgresContainer

from pgprobe.config import ProbeSettings
from pgprobe.errors import (
    ContainerNotReadyError,
    ContainerNotStartedError,
    ContainerStartError,
    InitScriptError,
)
from pgprobe.query import perform_query
from pgprobe.resources import load_script

log = logging.getLogger(__name__)

POSTGRES_PORT = 5432


class PostgresFixture:
    """One PostgreSQL container, optionally seeded with init scripts.

    Use it as a context manager; the container is stopped on exit even when
    the body raised::

        with PostgresFixture().with_init_script("init_json.sql") as pg:
            pg.start()
            rows = pg.fetch_all("SELECT data FROM books")
    """

    def __init__(self, settings: Optional[ProbeSettings] = None, image: Optional[str] = None):
        settings = settings or ProbeSettings()
        self.settings = settings.with_image(image)
        self._scripts: List[Tuple[str, str]] = []
        self._container: Optional[PostgresContainer] = None
        self._conn_settings: Optional[Dict[str, Any]] = None

    @property
    def image(self) -> str:
        return self.settings.image

    @property
    def started(self) -> bool:
        return self._conn_settings is not None

    def with_init_script(self, script: Union[str, Path]) -> "PostgresFixture":
        self._scripts.append(load_script(script))
        return self

    def start(self) -> "PostgresFixture":
        if self.started:
            return self
        log.info("starting %s", self.image)
        try:
            # the client is created in the constructor, so an absent daemon fails here
            self._container = PostgresContainer(
                self.image,
                port=POSTGRES_PORT,
                username=self.settings.username,
                password=self.settings.password,
                dbname=self.settings.dbname,
                driver=None,
            )
            self._container.start()
            self._conn_settings = {
                "host": self._container.get_container_host_ip(),
                "port": int(self._container.get_exposed_port(POSTGRES_PORT)),
                "user": self.settings.username,
                "password": self.settings.password,
                "dbname": self.settings.dbname,
            }
            self._wait_until_ready()
            self._apply_init_scripts()
        except TimeoutError as exc:
            self._discard()
            raise ContainerNotReadyError(f"{self.image} did not become ready: {exc}") from exc
        except DockerException as exc:
            self._discard()
            raise ContainerStartError(f"{self.image} could not be started: {exc}") from exc
        except BaseException:
            self._discard()
            raise
        return self

    def _wait_until_ready(self) -> None:
        last_error: Optional[Exception] = None
        for _ in range(self.settings.ready_retries):
            try:
                with self._raw_connect():
                    return
            except psycopg.OperationalError as exc:
                last_error = exc
                time.sleep(self.settings.ready_delay)
        raise ContainerNotReadyError(
            f"{self.image} not accepting connections on "
            f"{self._conn_settings['host']}:{self._conn_settings['port']}: {last_error}"
        )

    def _apply_init_scripts(self) -> None:
        if not self._scripts:
            return
        with self._raw_connect() as conn:
            for label, sql in self._scripts:
                log.debug("applying init script %s", label)
                try:
                    conn.execute(sql)
                except psycopg.Error as exc:
                    raise InitScriptError(label, str(exc).strip()) from exc
            conn.commit()

    def connection_settings(self) -> Dict[str, Any]:
        if self._conn_settings is None:
            raise ContainerNotStartedError(f"{self.image} container has not been started")
        return dict(self._conn_settings)

    def _raw_connect(self, **kwargs: Any) -> psycopg.Connection:
        params = self.connection_settings()
        params.setdefault("connect_timeout", self.settings.connect_timeout)
        params.setdefault("row_factory", tuple_row)
        params.update(kwargs)
        return psycopg.connect(**params)

    def connect(self, **kwargs: Any) -> psycopg.Connection:
        conn = self._raw_connect(**kwargs)
        info = TypeInfo.fetch(conn, "hstore")
        if info is not None:
            register_hstore(info, conn)
        return conn

    def fetch_all(self, query: str, params=None) -> List[tuple]:
        return perform_query(self, query, lambda cur: cur.fetchall(), params)

    def stop(self) -> None:
        container, self._container = self._container, None
        self._conn_settings = None
        if container is not None:
            log.info("stopping %s", self.image)
            container.stop()

    def _discard(self) -> None:
        # cleanup after a failed start must not mask the original error
        try:
            self.stop()
        except DockerException as exc:
            log.warning("could not stop %s after failed start: %s", self.image, exc)

    def __enter__(self) -> "PostgresFixture":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
