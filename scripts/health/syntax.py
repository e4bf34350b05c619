"""
scripts/health/syntax.py — Parseability checks for bot scripts and data files.

Critical files are always checked; a capped sample of other files matched
by SYNTAX_GLOBS follows. The parser is picked by suffix. JavaScript goes
through `node --check`; everything else is parsed in-process.
"""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import orjson
import yaml

from scripts.health import FAIL, PASS, WARNING, CheckOutcome

if TYPE_CHECKING:
    from config.settings import Settings

log = logging.getLogger(__name__)

JS_SUFFIXES = {".js", ".mjs", ".cjs"}
YAML_SUFFIXES = {".yml", ".yaml"}
CHECKABLE_SUFFIXES = JS_SUFFIXES | YAML_SUFFIXES | {".py", ".json"}


@dataclass
class FileCheck:
    ok: bool
    message: str
    line: int | None = None


def run(cfg: Settings) -> CheckOutcome:
    root = cfg.root
    outcome = CheckOutcome(status=PASS)
    errors: list[str] = []
    checked = passed = failed = 0

    critical = {(root / rel).resolve() for rel in cfg.CRITICAL_FILES}
    for rel_path in cfg.CRITICAL_FILES:
        path = root / rel_path
        if not path.exists():
            outcome.add(WARNING, f"{rel_path} not found")
            continue
        checked += 1
        result = check_file(path, cfg)
        if result.ok:
            passed += 1
            outcome.add(PASS, f"{rel_path}: OK")
            continue
        failed += 1
        outcome.add(FAIL, result.message)
        errors.append(result.message)
        outcome.fix.append(f"Fix syntax error in {rel_path}")
        if result.line is not None:
            outcome.fix.append(f"Check line {result.line} in {rel_path}")

    for path in _sample_files(root, cfg.SYNTAX_GLOBS, critical, cfg.SYNTAX_SAMPLE_LIMIT):
        checked += 1
        result = check_file(path, cfg)
        if result.ok:
            passed += 1
        else:
            failed += 1
            outcome.add(FAIL, result.message)
            errors.append(result.message)

    if failed:
        outcome.status = FAIL
    elif checked == 0:
        outcome.status = WARNING

    outcome.message = f"Syntax check: {passed}/{checked} files passed"
    outcome.error = "; ".join(errors) if errors else None
    return outcome


def check_file(path: Path, cfg: Settings) -> FileCheck:
    suffix = path.suffix.lower()
    if suffix in JS_SUFFIXES:
        return _check_js(path, cfg.NODE_BIN, cfg.COMMAND_TIMEOUT_SECONDS)
    try:
        source = path.read_bytes()
    except OSError as exc:
        return FileCheck(False, f"{path.name}: could not read ({exc})")
    if suffix == ".py":
        return _check_python(path, source)
    if suffix == ".json":
        return _check_json(path, source)
    if suffix in YAML_SUFFIXES:
        return _check_yaml(path, source)
    return FileCheck(True, f"{path.name}: skipped (no parser for {suffix or 'no suffix'})")


def _check_python(path: Path, source: bytes) -> FileCheck:
    try:
        compile(source, str(path), "exec", dont_inherit=True)
    except SyntaxError as exc:
        return FileCheck(False, f"{path.name}:{exc.lineno}: SyntaxError: {exc.msg}", exc.lineno)
    except ValueError as exc:
        # null bytes in source
        return FileCheck(False, f"{path.name}: {exc}")
    return FileCheck(True, path.name)


def _check_json(path: Path, source: bytes) -> FileCheck:
    try:
        orjson.loads(source)
    except orjson.JSONDecodeError as exc:
        return FileCheck(False, f"{path.name}:{exc.lineno}: JSONDecodeError: {exc.msg}", exc.lineno)
    return FileCheck(True, path.name)


def _check_yaml(path: Path, source: bytes) -> FileCheck:
    try:
        yaml.safe_load(source)
    except yaml.MarkedYAMLError as exc:
        line = exc.problem_mark.line + 1 if exc.problem_mark is not None else None
        location = f"{path.name}:{line}" if line is not None else path.name
        return FileCheck(False, f"{location}: YAMLError: {exc.problem}", line)
    except yaml.YAMLError as exc:
        return FileCheck(False, f"{path.name}: YAMLError: {exc}")
    return FileCheck(True, path.name)


def _check_js(path: Path, node_bin: str, timeout_seconds: int | None) -> FileCheck:
    try:
        result = subprocess.run(
            [node_bin, "--check", str(path)],
            capture_output=True,
            text=True,
            timeout=timeout_seconds,
        )
    except subprocess.TimeoutExpired:
        return FileCheck(False, f"{path.name}: node --check timed out ({timeout_seconds}s)")
    except OSError as exc:
        return FileCheck(False, f"{path.name}: could not run {node_bin} ({exc})")

    if result.returncode == 0:
        return FileCheck(True, path.name)

    stderr = result.stderr or ""
    loc = re.search(r"([\w.-]+\.[cm]?js):(\d+)", stderr)
    location = f"{loc.group(1)}:{loc.group(2)}" if loc else str(path)
    error_line = next((ln.strip() for ln in stderr.splitlines() if "Error" in ln), "Syntax error")
    return FileCheck(False, f"{location}: {error_line}", int(loc.group(2)) if loc else None)


def _sample_files(
    root: Path,
    patterns: list[str],
    exclude: set[Path],
    limit: int,
) -> list[Path]:
    seen: set[Path] = set()
    sample: list[Path] = []
    for pattern in patterns:
        try:
            matches = sorted(root.glob(pattern))
        except (OSError, ValueError) as exc:
            log.debug("glob %r failed under %s: %s", pattern, root, exc)
            continue
        for path in matches:
            resolved = path.resolve()
            if resolved in exclude or resolved in seen or not path.is_file():
                continue
            if path.suffix.lower() not in CHECKABLE_SUFFIXES:
                continue
            seen.add(resolved)
            sample.append(path)
    return sample[:limit]
