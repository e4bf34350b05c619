"""
scripts/health/vcs.py — Git hygiene and secret-leak checks.

Looks at uncommitted changes and the diffs of the last few commits for
secret-shaped strings. Only diff text is scanned, never whole files, so an
old secret that is untouched by recent work does not fire.
"""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from scripts.health import FAIL, INFO, PASS, WARNING, CheckOutcome

if TYPE_CHECKING:
    from config.settings import Settings

log = logging.getLogger(__name__)

RECENT_COMMITS = 5

SECRET_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("Notion API Token", re.compile(r"secret_[a-zA-Z0-9]{32,}")),
    ("Telegram Bot Token", re.compile(r"\d{8,}:[A-Za-z0-9_-]{35}")),
    ("API Key", re.compile(r"api[_-]?key[\"']?\s*[:=]\s*[\"']?[a-zA-Z0-9_-]{20,}", re.IGNORECASE)),
    ("Password", re.compile(r"password[\"']?\s*[:=]\s*[\"']?[^\s\"']+[\"']?", re.IGNORECASE)),
    ("Token", re.compile(r"token[\"']?\s*[:=]\s*[\"']?[a-zA-Z0-9_-]{20,}", re.IGNORECASE)),
    ("Bearer Token", re.compile(r"bearer\s+[a-zA-Z0-9_-]{20,}", re.IGNORECASE)),
    ("Base64 Secret", re.compile(r"[\"'][A-Za-z0-9+/]{40,}={0,2}[\"']")),
]

SAFE_PATHS = (".env.example", "sample.env", ".env.template", "test/fixtures")
TEXT_FILE_RE = re.compile(r"\.(js|ts|json|md|env|txt|yml|yaml|py)$")


class GitError(RuntimeError):
    pass


@dataclass(frozen=True)
class SecretFinding:
    file: str
    kind: str
    match: str
    commit: str | None = None


def run(cfg: Settings) -> CheckOutcome:
    root = cfg.root
    timeout = cfg.COMMAND_TIMEOUT_SECONDS

    if not (root / ".git").exists():
        outcome = CheckOutcome(
            status=WARNING,
            message="Not a git repository",
            fix=["Initialize git repo: git init"],
        )
        outcome.add(WARNING, ".git directory not found")
        return outcome

    outcome = CheckOutcome(status=PASS, message="Git status check completed")
    outcome.add(PASS, "Git repository detected")

    try:
        changed = [ln for ln in _git(root, timeout, "status", "--porcelain").splitlines() if ln.strip()]
        if changed:
            outcome.add(INFO, f"{len(changed)} uncommitted file(s)")
            env_files = [ln for ln in changed if ".env" in ln and ".env.example" not in ln]
            if env_files:
                outcome.add(WARNING, f"{len(env_files)} .env file(s) in changes")
                outcome.escalate(WARNING)
        else:
            outcome.add(PASS, "Working directory clean")
    except GitError as exc:
        outcome.add(WARNING, f"Could not check git status: {exc}")

    uncommitted = uncommitted_secrets(root, timeout)
    if uncommitted:
        outcome.escalate(FAIL)
        outcome.add(FAIL, f"Found {len(uncommitted)} potential secret(s) in uncommitted changes")
        for finding in uncommitted[:5]:
            outcome.add(FAIL, f"  {finding.file}: {finding.kind} detected")
        outcome.fix.append("Remove secrets from uncommitted changes before committing")
        outcome.fix.append("Use environment variables for sensitive data")

    try:
        committed = recent_commit_secrets(root, timeout)
    except GitError as exc:
        committed = []
        outcome.add(WARNING, f"Could not check recent commits: {exc}")
    if committed:
        outcome.escalate(FAIL)
        outcome.add(FAIL, f"Found {len(committed)} potential secret(s) in recent commits")
        for finding in committed[:3]:
            outcome.add(FAIL, f"  Commit {finding.commit}: {finding.file} contains {finding.kind}")
        outcome.fix.append("Remove secrets from git history using git-filter-repo or BFG Repo-Cleaner")
        outcome.fix.append("Rotate exposed secrets immediately")

    if uncommitted and not committed:
        outcome.fix.append("Rotate any secret that was shared or pushed")

    try:
        ahead = _git(root, timeout, "rev-list", "--count", "@{u}..HEAD").strip()
        if ahead.isdigit() and int(ahead) > 0:
            outcome.add(INFO, f"Unpushed commits detected ({ahead})")
    except GitError:
        pass  # no upstream configured

    return outcome


def find_secrets(content: str, file_path: str) -> list[tuple[str, str]]:
    """(kind, truncated match) pairs for every secret pattern hit in `content`."""
    if any(safe in file_path for safe in SAFE_PATHS):
        return []
    findings = []
    for kind, pattern in SECRET_PATTERNS:
        match = pattern.search(content)
        if match:
            findings.append((kind, match.group(0)[:30] + "..."))
    return findings


def uncommitted_secrets(root: Path, timeout: int | None) -> list[SecretFinding]:
    try:
        unstaged = _git(root, timeout, "diff", "--name-only").splitlines()
        staged = _git(root, timeout, "diff", "--cached", "--name-only").splitlines()
    except GitError as exc:
        log.debug("git diff listing failed: %s", exc)
        return []

    findings: list[SecretFinding] = []
    for file in dict.fromkeys(f for f in unstaged + staged if f):
        if not TEXT_FILE_RE.search(file):
            continue
        try:
            diff = _git(root, timeout, "diff", "--", file)
            diff += _git(root, timeout, "diff", "--cached", "--", file)
        except GitError as exc:
            log.debug("git diff %s failed: %s", file, exc)
            continue
        for kind, match in find_secrets(diff, file):
            findings.append(SecretFinding(file=file, kind=kind, match=match))
    return findings


def recent_commit_secrets(root: Path, timeout: int | None) -> list[SecretFinding]:
    log_output = _git(root, timeout, "log", "--format=%h", f"-{RECENT_COMMITS}")
    findings: list[SecretFinding] = []
    for commit in (ln.strip() for ln in log_output.splitlines()):
        if not commit:
            continue
        try:
            files = _git(root, timeout, "show", "--name-only", "--format=", commit).splitlines()
        except GitError as exc:
            log.debug("skipping commit %s: %s", commit, exc)
            continue
        for file in (f.strip() for f in files):
            if not file or not TEXT_FILE_RE.search(file):
                continue
            try:
                diff = _git(root, timeout, "show", "--format=", commit, "--", file)
            except GitError as exc:
                log.debug("git show %s -- %s failed: %s", commit, file, exc)
                continue
            for kind, match in find_secrets(diff, file):
                findings.append(SecretFinding(file=file, kind=kind, match=match, commit=commit))
    return findings


def _git(cwd: Path, timeout: int | None, *args: str) -> str:
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as exc:
        raise GitError(f"git {' '.join(args)} timed out ({timeout}s)") from exc
    except OSError as exc:
        raise GitError(f"git not available: {exc}") from exc
    if result.returncode != 0:
        raise GitError(result.stderr.strip() or f"git {' '.join(args)} failed")
    return result.stdout
