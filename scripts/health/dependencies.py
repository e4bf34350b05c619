"""
scripts/health/dependencies.py — npm dependency installation checks.

For the root package.json and every skills/<name>/package.json, confirms
node_modules is present and the critical packages are installed. Also
flags node_modules content that was committed to git by mistake.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING

import orjson

from scripts.health import ERROR, FAIL, PASS, WARNING, CheckOutcome

if TYPE_CHECKING:
    from config.settings import Settings

log = logging.getLogger(__name__)


def run(cfg: Settings) -> CheckOutcome:
    root = cfg.root
    outcome = CheckOutcome(status=PASS)
    checked = passed = failed = 0

    root_manifest = root / "package.json"
    if root_manifest.exists():
        checked += 1
        result = check_manifest(root_manifest, cfg.CRITICAL_PACKAGES)
        label = "OK" if result.status == PASS else "Issues found"
        outcome.add(result.status, f"Root package.json: {label}")
        outcome.details.extend(result.details)
        if result.status == PASS:
            passed += 1
        else:
            failed += 1
            outcome.fix.extend(result.fix)

    for skill_dir in _skill_dirs(root / "skills", outcome):
        manifest = skill_dir / "package.json"
        if not manifest.exists():
            continue
        checked += 1
        result = check_manifest(manifest, cfg.CRITICAL_PACKAGES)
        label = "OK" if result.status == PASS else "Issues found"
        outcome.add(result.status, f"{skill_dir.name}/package.json: {label}")
        if result.status == PASS:
            passed += 1
        else:
            failed += 1
            outcome.details.extend(result.details)
            outcome.fix.extend(f"{fix} (skill: {skill_dir.name})" for fix in result.fix)

    tracked = tracked_node_modules(root, cfg.COMMAND_TIMEOUT_SECONDS)
    if tracked:
        outcome.add(WARNING, f"node_modules files tracked in git: {len(tracked)}")
        outcome.fix.append(
            "Add node_modules/ to .gitignore and remove from git: git rm -r --cached node_modules/"
        )

    if failed:
        outcome.status = FAIL
    elif checked == 0 or tracked:
        outcome.status = WARNING

    outcome.message = f"Dependencies: {passed}/{checked} package.json checks passed"
    return outcome


def check_manifest(manifest: Path, critical_packages: list[str]) -> CheckOutcome:
    """Check one package.json against its sibling node_modules directory."""
    try:
        pkg = orjson.loads(manifest.read_bytes())
        if not isinstance(pkg, dict):
            raise ValueError("manifest root must be a JSON object")
    except (OSError, ValueError) as exc:
        return _unreadable(manifest, exc)

    node_modules = manifest.parent / "node_modules"
    has_node_modules = node_modules.is_dir()
    dependencies = _declared(pkg, "dependencies")
    dev_dependencies = _declared(pkg, "devDependencies")
    declared = set(dependencies) | set(dev_dependencies)

    critical = [dep for dep in critical_packages if dep in declared]
    missing_critical = [dep for dep in critical if not (node_modules / dep).exists()]

    outcome = CheckOutcome(status=PASS)
    outcome.add(PASS, f"{len(dependencies)} dependencies defined")
    outcome.add(
        PASS if has_node_modules else FAIL,
        f"node_modules {'exists' if has_node_modules else 'missing'}",
    )
    if critical:
        outcome.add(PASS, f"Critical deps: {', '.join(critical)}")
    if missing_critical:
        outcome.add(FAIL, f"Missing critical deps: {', '.join(missing_critical)}")

    if missing_critical or (declared and not has_node_modules):
        outcome.status = FAIL
        outcome.fix.append(f"Run: npm install in {manifest.parent}")
    return outcome


def tracked_node_modules(root: Path, timeout_seconds: int | None) -> list[str]:
    """Files under node_modules that git is tracking. Empty when git is unavailable."""
    try:
        result = subprocess.run(
            ["git", "ls-files", "node_modules/", "*/*/node_modules/"],
            cwd=root,
            capture_output=True,
            text=True,
            timeout=timeout_seconds,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        log.debug("git ls-files skipped: %s", exc)
        return []
    if result.returncode != 0:
        return []
    return [ln for ln in result.stdout.splitlines() if ln.strip()]


def _declared(pkg: dict, section: str) -> list[str]:
    deps = pkg.get(section)
    return list(deps.keys()) if isinstance(deps, dict) else []


def _unreadable(manifest: Path, exc: Exception) -> CheckOutcome:
    outcome = CheckOutcome(status=ERROR, fix=[f"Repair {manifest}"])
    outcome.add(ERROR, f"Failed to check {manifest}: {exc}")
    return outcome


def _skill_dirs(skills_dir: Path, outcome: CheckOutcome) -> list[Path]:
    try:
        return sorted(p for p in skills_dir.iterdir() if p.is_dir())
    except FileNotFoundError:
        return []
    except OSError as exc:
        outcome.add(WARNING, f"Could not check skills: {exc}")
        return []
