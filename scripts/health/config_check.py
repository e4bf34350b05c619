"""
scripts/health/config_check.py — Environment file checks.

Reads <root>/.env and every skills/<name>/.env as plain text and verifies
the required keys are present and non-empty. Also confirms the key files
the bot needs to start are on disk.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING

from scripts.health import FAIL, PASS, WARNING, CheckOutcome

if TYPE_CHECKING:
    from config.settings import Settings

log = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"your_token_here|your_api_key|replace_with", re.IGNORECASE)


def run(cfg: Settings) -> CheckOutcome:
    root = cfg.root
    main_env = check_env_file(root / ".env", cfg.REQUIRED_ENV_VARS, cfg.OPTIONAL_ENV_VARS)
    outcome = CheckOutcome(status=main_env.status)
    outcome.details.extend(main_env.details)
    outcome.fix.extend(main_env.fix)
    issues = [main_env.error] if main_env.error else []

    skills_checked, skills_with_issues = _check_skill_env_files(root / "skills", cfg, outcome)
    if skills_checked:
        outcome.add(PASS, f"Checked {skills_checked} skill .env files")
        if skills_with_issues:
            outcome.add(WARNING, f"{skills_with_issues} skills have config issues")
            if outcome.status == PASS:
                outcome.status = WARNING

    for rel_path in cfg.CONFIG_KEY_FILES:
        if (root / rel_path).exists():
            outcome.add(PASS, f"{rel_path} exists")
        else:
            outcome.add(FAIL, f"{rel_path} missing")
            outcome.fix.append(f"Restore or create {root / rel_path}")
            if outcome.status == PASS:
                outcome.status = WARNING

    outcome.message = (
        f"Config check: {len(cfg.REQUIRED_ENV_VARS)} required vars checked "
        f"across {skills_checked + 1} env files"
    )
    outcome.error = "; ".join(issues) if issues else None
    return outcome


def check_env_file(
    env_path: Path,
    required: list[str],
    optional: list[str],
) -> CheckOutcome:
    """Check one .env file for required, optional and placeholder values."""
    if not env_path.exists():
        return CheckOutcome(
            status=FAIL,
            message=f".env file not found: {env_path}",
            error=f".env file not found: {env_path}",
            fix=[f"Create .env file at: {env_path}"],
        )

    content = env_path.read_text(encoding="utf-8", errors="replace")
    values = parse_env_lines(content)

    defined: list[str] = []
    empty: list[str] = []
    missing: list[str] = []
    issues: list[str] = []
    outcome = CheckOutcome(status=PASS)

    for name in required:
        if name not in values:
            missing.append(name)
            issues.append(f"Missing required variable: {name}")
            outcome.fix.append(f"Add {name}=your_value to .env")
        elif not values[name]:
            empty.append(name)
            issues.append(f"Empty value for: {name}")
            outcome.fix.append(f"Set a value for {name} in .env")
        else:
            defined.append(name)

    missing_optional = [name for name in optional if name not in values]

    outcome.add(PASS, f"Found {len(defined)}/{len(required)} required variables")
    if defined:
        outcome.add(PASS, f"Defined: {', '.join(defined)}")
    if missing:
        outcome.add(FAIL, f"Missing: {', '.join(missing)}")
    if empty:
        outcome.add(FAIL, f"Empty values: {', '.join(empty)}")
    if missing_optional:
        outcome.add(WARNING, f"Optional not set: {', '.join(missing_optional)}")

    placeholder = PLACEHOLDER_RE.search(content)
    if placeholder:
        outcome.add(WARNING, f"Found placeholder value: {placeholder.group(0)}")

    if missing or empty:
        outcome.status = FAIL
    elif missing_optional or placeholder:
        outcome.status = WARNING

    outcome.message = f"Config check: {len(defined)}/{len(required)} required vars set"
    outcome.error = "; ".join(issues) if issues else None
    return outcome


def parse_env_lines(content: str) -> dict[str, str]:
    """Map KEY → raw value for every `KEY=value` or `KEY value` line.

    The first occurrence of a key wins. A line with no `=` maps to an empty
    value. Values are not unquoted, so `KEY=""` counts as set.
    """
    values: dict[str, str] = {}
    for raw in content.splitlines():
        line = raw.rstrip("\r")
        if not line or line.lstrip().startswith("#"):
            continue
        match = re.match(r"^([A-Za-z_][A-Za-z0-9_]*)[ =]", line)
        if not match:
            continue
        key = match.group(1)
        if key in values:
            continue
        _, _, value = line.partition("=")
        values[key] = value.strip()
    return values


def _check_skill_env_files(
    skills_dir: Path,
    cfg: Settings,
    outcome: CheckOutcome,
) -> tuple[int, int]:
    checked = 0
    with_issues = 0
    try:
        skill_dirs = sorted(p for p in skills_dir.iterdir() if p.is_dir())
    except FileNotFoundError:
        return 0, 0
    except OSError as exc:
        outcome.add(WARNING, f"Could not check skills: {exc}")
        return 0, 0

    for skill_dir in skill_dirs:
        env_path = skill_dir / ".env"
        if not env_path.is_file():
            continue
        try:
            result = check_env_file(env_path, cfg.REQUIRED_ENV_VARS, cfg.OPTIONAL_ENV_VARS)
        except OSError as exc:
            log.debug("skipping unreadable %s: %s", env_path, exc)
            continue
        checked += 1
        if result.status != PASS:
            with_issues += 1
            outcome.add(result.status, f"{skill_dir.name}/.env: {result.message}")
        for detail in result.details:
            outcome.add(detail.status, f"{skill_dir.name}: {detail.message}")
    return checked, with_issues
