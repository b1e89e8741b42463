# SPDX-FileCopyrightText: 2025 Blackcat Informatics® Inc.
# SPDX-License-Identifier: MIT

"""Lookup of the SQL init scripts shipped inside the package."""

from __future__ import annotations

from importlib import resources
from pathlib import Path
from typing import List, Tuple, Union

from pgprobe.errors import InitScriptError

SQL_PACKAGE_DIR = "sql"


def _sql_root():
    return resources.files("pgprobe").joinpath(SQL_PACKAGE_DIR)


def available_scripts() -> List[str]:
    return sorted(
        entry.name
        for entry in _sql_root().iterdir()
        if entry.is_file() and entry.name.endswith(".sql")
    )


def load_script(script: Union[str, Path]) -> Tuple[str, str]:
    """Return ``(label, sql_text)`` for a packaged script name or a file path.

    Bare names such as ``init_json.sql`` are looked up among the packaged
    scripts first; anything else is treated as a filesystem path.
    """
    if isinstance(script, str) and "/" not in script:
        candidate = _sql_root().joinpath(script)
        if candidate.is_file():
            return script, candidate.read_text(encoding="utf-8")

    path = Path(script)
    if not path.is_file():
        raise InitScriptError(str(script), "not found")
    return str(path), path.read_text(encoding="utf-8")
