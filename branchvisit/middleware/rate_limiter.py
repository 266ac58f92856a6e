"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in branchvisit/__init__.py with no default
limits; this module applies granular limits per route category.

Usage:
    from branchvisit.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import g, request as flask_request

logger = logging.getLogger(__name__)

DEFAULT_LIMITS = {
    "RATELIMIT_WRITE": "60/minute",
    "RATELIMIT_READ": "200/minute",
    "RATELIMIT_EXPORT": "20/minute",
}


def actor_or_ip_key():
    """Rate limit key: the resolved actor if any, else remote IP."""
    actor = getattr(g, "actor", None)
    if actor is not None:
        return f"actor:{actor.id}"
    return flask_request.remote_addr or "unknown"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per actor, falling back to remote IP), from config:
        - RATELIMIT_EXPORT  exports (workbook generation is heavy)
        - RATELIMIT_WRITE   visits, review, assignments
        - RATELIMIT_READ    analytics (dashboard polling)
        - health checks are exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    write_limit, read_limit, export_limit = (
        app.config.get(key, default) for key, default in DEFAULT_LIMITS.items()
    )

    bp = app.blueprints.get("export")
    if bp:
        limiter.limit(export_limit, key_func=actor_or_ip_key)(bp)

    for bp_name in ("visit", "review", "assignment"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(write_limit, key_func=actor_or_ip_key)(bp)

    bp = app.blueprints.get("analytics")
    if bp:
        limiter.limit(read_limit, key_func=actor_or_ip_key)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured: export %s, write %s, analytics %s",
        export_limit, write_limit, read_limit,
    )
