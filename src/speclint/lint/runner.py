"""Lint runner: discovers spec files and analyses them in parallel.

Each file goes through its own parse -> evaluate pipeline in a worker
thread. Files never share state, so one file's syntax error, timeout or
read failure is reported for that file alone and the rest of the run
carries on.
"""

from __future__ import annotations

import asyncio
import fnmatch
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, List, Sequence

from .config import LintConfig
from .engine import evaluate
from .exceptions import AnalysisTimeout, SpecSyntaxError
from .models import FileReport, Finding, RunReport, Severity
from .parser import parse_source

logger = logging.getLogger(__name__)

SYNTAX_ERROR = "syntax-error"
TIMEOUT = "timeout"
IO_ERROR = "io-error"
INTERNAL_ERROR = "internal-error"


def _failure(path: str, rule_id: str, message: str, line: int = 1) -> FileReport:
    finding = Finding(
        rule_id=rule_id,
        severity=Severity.ERROR,
        message=message,
        path=path,
        line=line,
    )
    return FileReport(path=path, findings=[finding], failed=True)


def analyze_source(text: str, path: str, config: LintConfig | None = None) -> FileReport:
    """Parse and evaluate one file's source.

    A syntax error becomes a ``syntax-error`` finding on a failed report
    instead of an exception. Any other error raised while parsing or by
    a rule becomes an ``internal-error`` finding for this file alone.
    """
    try:
        root = parse_source(text, path)
        findings = evaluate(root, config)
    except SpecSyntaxError as exc:
        logger.warning("Cannot parse %s: %s", path, exc)
        return _failure(path, SYNTAX_ERROR, exc.message, line=exc.line or 1)
    except Exception as exc:
        logger.exception("Analysis of %s failed", path)
        return _failure(path, INTERNAL_ERROR, f"analysis failed: {type(exc).__name__}: {exc}")

    return FileReport(
        path=path,
        findings=findings,
        example_count=root.leaf_count(),
    )


def analyze_file(path: Path, config: LintConfig | None = None) -> FileReport:
    """Read and analyse one spec file."""
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Cannot read %s: %s", path, exc)
        return _failure(str(path), IO_ERROR, f"cannot read file: {exc}")
    return analyze_source(text, str(path), config)


def discover_files(paths: Iterable[Path], patterns: Sequence[str]) -> List[Path]:
    """Expand directories into matching spec files.

    Files named explicitly are kept even when they do not match a
    pattern; paths that do not exist are kept too and fail on read.
    Duplicates are dropped, first occurrence wins.
    """
    found: List[Path] = []
    seen = set()
    for path in paths:
        if path.is_dir():
            candidates = sorted(
                p for p in path.rglob("*")
                if p.is_file() and any(fnmatch.fnmatch(p.name, pattern) for pattern in patterns)
            )
            if not candidates:
                logger.debug("No spec files under %s", path)
        else:
            candidates = [path]
        for candidate in candidates:
            key = candidate.resolve()
            if key not in seen:
                seen.add(key)
                found.append(candidate)
    return found


async def analyze_paths(paths: Sequence[Path], config: LintConfig) -> List[FileReport]:
    """Analyse files concurrently, at most ``jobs`` at a time.

    The per-file timeout counts from the moment a worker picks the file
    up. A timed-out worker keeps running in the background, so the pool
    may grow past ``jobs`` threads; the semaphore still caps live work.

    Returns:
        One FileReport per path, in input order
    """
    settings = config.settings
    semaphore = asyncio.Semaphore(settings.jobs)
    executor = ThreadPoolExecutor(max_workers=max(1, len(paths)), thread_name_prefix="speclint")
    loop = asyncio.get_running_loop()

    async def run_one(path: Path) -> FileReport:
        async with semaphore:
            started = asyncio.Event()

            def work() -> FileReport:
                loop.call_soon_threadsafe(started.set)
                return analyze_file(path, config)

            future = loop.run_in_executor(executor, work)
            if settings.timeout_seconds is None:
                return await future
            await started.wait()
            try:
                return await asyncio.wait_for(future, settings.timeout_seconds)
            except TimeoutError:
                # The worker thread cannot be interrupted; its late result is dropped.
                exc = AnalysisTimeout(str(path), settings.timeout_seconds)
                logger.warning("%s", exc)
                return _failure(str(path), TIMEOUT, str(exc))

    try:
        return list(await asyncio.gather(*(run_one(path) for path in paths)))
    finally:
        executor.shutdown(wait=False, cancel_futures=True)


def run_paths(paths: Iterable[Path], config: LintConfig | None = None) -> RunReport:
    """Discover and analyse spec files, returning the merged report."""
    config = config or LintConfig()
    files = discover_files(paths, config.settings.patterns)
    logger.info("Analysing %d file(s) with %d job(s)", len(files), config.settings.jobs)
    if not files:
        return RunReport()
    return RunReport(files=asyncio.run(analyze_paths(files, config)))
