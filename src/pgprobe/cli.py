# SPDX-FileCopyrightText: 2025 Blackcat Informatics® Inc.
# SPDX-License-Identifier: MIT

"""Run PostgreSQL feature probes against fresh containers and report results."""

from __future__ import annotations

import argparse
import csv
import io
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from packaging.version import InvalidVersion, Version

from pgprobe.config import ProbeSettings
from pgprobe.errors import ConfigError
from pgprobe.probes import PROBES, ProbeResult, run_probes, select_probes

log = logging.getLogger("pgprobe")

FIELDS = ["name", "passed", "detail", "server_version", "duration"]
LOG_FORMAT = "[pgprobe] %(levelname)s %(message)s"


def parse_args(argv: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="pgprobe", description=__doc__)
    parser.add_argument("probes", nargs="*", help="Probe names to run (default: all)")
    parser.add_argument("--env", type=Path, help="Env file with PGPROBE_* settings")
    parser.add_argument("--image", help="PostgreSQL image to start, e.g. postgres:16")
    parser.add_argument("--format", choices=["text", "json", "csv"], default="text")
    parser.add_argument("--output", type=Path, help="Write the report here instead of stdout")
    parser.add_argument(
        "--min-server-version",
        type=Version,
        help="Fail probes whose server reports an older version",
    )
    parser.add_argument("--list", action="store_true", help="List available probes and exit")
    noise = parser.add_mutually_exclusive_group()
    noise.add_argument("--quiet", action="store_true", help="Only log warnings and errors")
    noise.add_argument("--verbose", action="store_true", help="Log queries and container lifecycle")
    return parser.parse_args(argv)


def configure_logging(verbose: bool = False, quiet: bool = False) -> logging.Handler:
    level = logging.INFO
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    log.addHandler(handler)
    log.setLevel(level)
    log.propagate = False
    return handler


def enforce_min_version(results: List[ProbeResult], minimum: Optional[Version]) -> None:
    if minimum is None:
        return
    for result in results:
        if not result.passed or result.server_version is None:
            continue
        try:
            actual = Version(result.server_version)
        except InvalidVersion:
            continue
        if actual < minimum:
            result.passed = False
            result.detail = f"server {actual} older than required {minimum}"


def render_text(results: List[ProbeResult]) -> str:
    rows = [
        (r.name, "ok" if r.passed else "FAIL", r.server_version or "", f"{r.duration:.1f}s", r.detail)
        for r in results
    ]
    header = ("Probe", "Status", "Server", "Time", "Detail")
    widths = [max([len(header[i])] + [len(row[i]) for row in rows]) for i in range(4)]
    fmt = "  ".join(f"{{:<{w}}}" for w in widths) + "  {}"
    lines = [fmt.format(*header)]
    lines.append("-" * len(lines[0]))
    lines.extend(fmt.format(*row) for row in rows)
    return "\n".join(lines) + "\n"


def render_json(results: List[ProbeResult]) -> str:
    return json.dumps([r.as_dict() for r in results], indent=2) + "\n"


def render_csv(results: List[ProbeResult]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=FIELDS)
    writer.writeheader()
    writer.writerows(r.as_dict() for r in results)
    return buffer.getvalue()


RENDERERS = {"text": render_text, "json": render_json, "csv": render_csv}


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    # the handler holds the stderr of this call only
    handler = configure_logging(verbose=args.verbose, quiet=args.quiet)
    try:
        return run(args)
    finally:
        log.removeHandler(handler)
        log.propagate = True


def run(args: argparse.Namespace) -> int:
    if args.list:
        width = max(len(probe.name) for probe in PROBES)
        for probe in PROBES:
            print(f"{probe.name:<{width}}  {probe.description}")
        return 0

    try:
        settings = ProbeSettings.from_env(env_file=args.env).with_image(args.image)
        probes = select_probes(args.probes)
    except ConfigError as exc:
        log.error("%s", exc)
        return 2

    log.info("running %d probe(s) against %s", len(probes), settings.image)
    results = run_probes(probes, settings)
    enforce_min_version(results, args.min_server_version)

    report = RENDERERS[args.format](results)
    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(report)
    else:
        sys.stdout.write(report)

    return 0 if all(r.passed for r in results) else 1


if __name__ == "__main__":  # pragma: no cover - exercised via callers
    sys.exit(main())
