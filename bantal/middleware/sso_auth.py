"""
SSO Auth Middleware — verifies the bearer token and sets ``g.identity``.

Token sources, in order:
  1. Authorization: Bearer <token>
  2. ``auth_session`` cookie (name configurable via AUTH_COOKIE_NAME)

Enforcement is controlled by API_AUTH_ENABLED:
  true   → missing/invalid token → 401, unknown/inactive identity → 403
  false  → a valid token still populates g.identity; anything else passes through
"""

import logging

import jwt as pyjwt
from flask import current_app, g, request

from bantal.core.exceptions import ConflictError, ForbiddenError, IntegrationError
from bantal.services import identity_service
from bantal.services.sso_token_service import decode_token
from bantal.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# Paths that skip SSO auth entirely
AUTH_SKIP_PREFIXES = (
    "/api/v1/health",
    "/static/",
)


def _auth_enabled() -> bool:
    return str(current_app.config.get("API_AUTH_ENABLED", "false")).lower() == "true"


def _extract_token() -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return request.cookies.get(current_app.config.get("AUTH_COOKIE_NAME", "auth_session")) or None


def init_sso_middleware(app):
    """Register SSO middleware as a before_request hook."""

    @app.before_request
    def _sso_auth():
        g.identity = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return None
        for prefix in AUTH_SKIP_PREFIXES:
            if path.startswith(prefix):
                return None

        enforce = _auth_enabled()
        token = _extract_token()
        if not token:
            if enforce:
                return api_error(E.UNAUTHENTICATED, "Authentication required")
            return None

        try:
            claims = decode_token(token)
        except pyjwt.ExpiredSignatureError:
            if enforce:
                return api_error(E.UNAUTHENTICATED, "Token has expired")
            return None
        except pyjwt.InvalidTokenError as exc:
            logger.debug("Rejected token: %s", exc)
            if enforce:
                return api_error(E.UNAUTHENTICATED, "Invalid token")
            return None
        except IntegrationError as exc:
            logger.error("Token verification unavailable: %s", exc)
            return api_error(E.INTEGRATION, "Token verification service unavailable")

        try:
            g.identity = identity_service.authenticate(claims)
        except ForbiddenError as exc:
            if enforce:
                return api_error(E.FORBIDDEN, str(exc))
        except ConflictError as exc:
            logger.error("SSO subject sync failed: %s", exc)
            return api_error(E.CONFLICT_DUPLICATE, str(exc))
        return None
