"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter. The Limiter
instance is created in app/__init__.py with no default limits; this module
applies granular limits per route category.

Usage:
    from app.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

AUTH_LIMIT = "10/minute"     # credential guessing
WRITE_LIMIT = "120/minute"   # Kanban drags fire one move per drop
READ_LIMIT = "300/minute"

WRITE_BLUEPRINTS = ("projects", "tasks", "risks", "change_requests")
READ_BLUEPRINTS = ("dashboard", "users")


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Auth endpoints:   10/minute
        - Write endpoints:  120/minute
        - Read endpoints:   300/minute
        - Health check:     exempt

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    bp = app.blueprints.get("auth")
    if bp:
        limiter.limit(AUTH_LIMIT)(bp)

    for bp_name in WRITE_BLUEPRINTS:
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(WRITE_LIMIT)(bp)

    for bp_name in READ_BLUEPRINTS:
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(READ_LIMIT)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured: auth=%s write=%s read=%s",
        AUTH_LIMIT, WRITE_LIMIT, READ_LIMIT,
    )
