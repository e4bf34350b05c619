#!/usr/bin/env python3
"""
scripts/dashboard/app.py — HTTP dashboard over the health check history.

Routes:
  GET /                    HTML page: stats, latest runs, 30-day bars
  GET /api/health-checks   every run, newest first
  GET /api/stats           run counts by overall status and pass rate
  GET /api/trends          per-day run counts, last 30 days with data

History is re-read on every request, so the page reflects runs appended
since the server started.

Usage:
    python3 scripts/dashboard/app.py              # 127.0.0.1:3000
    dashboard --port 8080 --public                # bind 0.0.0.0
    dashboard --env-file /srv/bot/.env           # settings from another file
"""

from __future__ import annotations

import argparse
import logging
import pathlib
import sys
from datetime import UTC, datetime
from typing import Any

_ROOT = pathlib.Path(__file__).parent.parent.parent
sys.path.insert(0, str(_ROOT))

from fastapi import FastAPI  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from fastapi.responses import HTMLResponse  # noqa: E402
from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape  # noqa: E402
import uvicorn  # noqa: E402

from config.settings import Settings, load_settings  # noqa: E402
from scripts import trends  # noqa: E402
from scripts.health import STATUS_GLYPHS  # noqa: E402
from scripts.health_check import display_timezone  # noqa: E402

log = logging.getLogger(__name__)

TEMPLATE_DIR = pathlib.Path(__file__).parent / "templates"
RECENT_LIMIT = 20
CHECKS_PER_ENTRY = 5
REFRESH_SECONDS = 30


def build_jinja_env(cfg: Settings) -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        undefined=StrictUndefined,
        autoescape=select_autoescape(["html", "j2"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    tz = display_timezone(cfg.HEALTH_CHECK_DISPLAY_TZ)
    env.filters["localtime"] = lambda value: value.astimezone(tz).strftime("%Y-%m-%d %H:%M:%S")
    return env


def entry_payload(entry: trends.TrendEntry) -> dict[str, Any]:
    return {"id": entry.id, **entry.model_dump(mode="json")}


def create_app(cfg: Settings) -> FastAPI:
    """Create the dashboard app reading history from `cfg`'s log paths."""
    app = FastAPI(title="Bot Health Check Dashboard", docs_url=None, redoc_url=None)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Content-Type"],
    )
    jinja = build_jinja_env(cfg)

    def newest_first() -> list[trends.TrendEntry]:
        return list(reversed(trends.load_entries(cfg)))

    @app.get("/api/health-checks")
    def health_checks() -> list[dict[str, Any]]:
        return [entry_payload(e) for e in newest_first()]

    @app.get("/api/stats")
    def stats() -> dict[str, Any]:
        return trends.get_stats(trends.load_entries(cfg))

    @app.get("/api/trends")
    def trend_data() -> list[dict[str, Any]]:
        return trends.get_trend_data(trends.load_entries(cfg))

    @app.get("/", response_class=HTMLResponse)
    def index() -> HTMLResponse:
        entries = newest_first()
        source = cfg.history_path if cfg.history_path.exists() else cfg.log_path
        html = jinja.get_template("index.html.j2").render(
            entries=entries,
            stats=trends.get_stats(entries),
            trend=trends.get_trend_data(entries),
            glyphs=STATUS_GLYPHS,
            generated=jinja.filters["localtime"](datetime.now(tz=UTC)),
            source=str(source),
            recent_limit=RECENT_LIMIT,
            checks_per_entry=CHECKS_PER_ENTRY,
            refresh_seconds=REFRESH_SECONDS,
        )
        return HTMLResponse(html)

    return app


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Serve the health check dashboard")
    parser.add_argument("--port", type=int, default=None, help="listen port (default: DASHBOARD_PORT)")
    parser.add_argument("--public", action="store_true", help="listen on all interfaces")
    parser.add_argument("--env-file", default=".env", help="settings file (default: ./.env)")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    try:
        cfg = load_settings(args.env_file)
        logging.basicConfig(level=cfg.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

        host = "0.0.0.0" if args.public else cfg.DASHBOARD_HOST
        port = args.port if args.port is not None else cfg.DASHBOARD_PORT
        print("🏥 Bot Health Check Dashboard")
        print(f"   Server running at: http://{host}:{port}")
        print(f"   Log file: {cfg.log_path}")
        print()
        print("   Press Ctrl+C to stop")
        uvicorn.run(create_app(cfg), host=host, port=port, log_level=cfg.LOG_LEVEL.lower())
        return 0
    except Exception as exc:  # noqa: BLE001
        print(f"💥 Fatal error: {exc}", file=sys.stderr)
        log.debug("dashboard failed", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
