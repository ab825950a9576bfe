"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in bantal/__init__.py with no default
limits; this module applies limits per route category, keyed by the
authenticated identity when there is one, else by remote IP.

Usage:
    from bantal.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import g, request as flask_request

logger = logging.getLogger(__name__)

DOCUMENT_LIMIT = "60/minute"     # uploads + finalize carry file bodies
PROJECT_LIMIT = "120/minute"
IDENTITY_LIMIT = "200/minute"


def rate_limit_key():
    """identity:<id> when authenticated, else the remote address."""
    identity = getattr(g, "identity", None)
    if identity is not None:
        return f"identity:{identity.id}"
    return flask_request.remote_addr or "unknown"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits:
        - document:  60/minute
        - project:   120/minute
        - identity:  200/minute
        - organization: 200/minute (directory reads share the identity limit)
        - health:    exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    for bp_name, limit in (
        ("document", DOCUMENT_LIMIT),
        ("project", PROJECT_LIMIT),
        ("identity", IDENTITY_LIMIT),
        ("organization", IDENTITY_LIMIT),
    ):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(limit, key_func=rate_limit_key)(bp)

    bp = app.blueprints.get("health_bp")
    if bp:
        limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured — document: %s, project: %s, identity: %s",
        DOCUMENT_LIMIT, PROJECT_LIMIT, IDENTITY_LIMIT,
    )
