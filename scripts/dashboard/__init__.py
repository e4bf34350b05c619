"""
scripts/dashboard — Read-only HTTP view of the health check history.

Usage:
    from scripts.dashboard.app import create_app
    app = create_app(cfg)
"""
