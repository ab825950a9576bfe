"""
SSO token service — verifies bearer tokens issued by the SSO provider.

Algorithm selection:
    SSO_JWKS_URL configured   →  RS256, key resolved by ``kid`` via the shared JWKSGateway
    otherwise                 →  HS256 with JWT_SECRET_KEY (local dev / tests)

Claims used:
{
    "sub":   <SSO subject id>,
    "email": <identity email>,      # falls back to preferred_username
    "name":  <display name>,
    "exp":   <expires_at>
}
"""

from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

from bantal.integrations.jwks_gateway import get_gateway

HS_ALGORITHM = "HS256"
RS_ALGORITHM = "RS256"
DEFAULT_TEST_EXPIRES = 900  # 15 minutes


def _get_secret():
    """Get the HS256 secret from app config."""
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def _decode_options() -> dict:
    kwargs = {}
    audience = current_app.config.get("SSO_AUDIENCE")
    issuer = current_app.config.get("SSO_ISSUER")
    if audience:
        kwargs["audience"] = audience
    else:
        kwargs["options"] = {"verify_aud": False}
    if issuer:
        kwargs["issuer"] = issuer
    return kwargs


def decode_token(token: str) -> dict:
    """
    Verify a bearer token and return the identity claims.

    Returns:
        {"subject": str, "email": str | None, "name": str | None}

    Raises:
        jwt.InvalidTokenError (incl. ExpiredSignatureError) on a bad token.
        IntegrationError when the JWKS endpoint cannot be reached.
    """
    jwks_url = current_app.config.get("SSO_JWKS_URL")
    if jwks_url:
        header = jwt.get_unverified_header(token)
        gateway = get_gateway(jwks_url, timeout=current_app.config.get("SSO_JWKS_TIMEOUT", 10))
        signing_key = gateway.get_signing_key(header.get("kid"))
        payload = jwt.decode(token, signing_key.key, algorithms=[RS_ALGORITHM], **_decode_options())
    else:
        payload = jwt.decode(token, _get_secret(), algorithms=[HS_ALGORITHM], **_decode_options())

    subject = payload.get("sub")
    if not subject:
        raise jwt.InvalidTokenError("Token has no subject")
    return {
        "subject": str(subject),
        "email": payload.get("email") or payload.get("preferred_username"),
        "name": payload.get("name"),
    }


def issue_local_token(subject: str, email: str, name: str | None = None, expires_in: int = DEFAULT_TEST_EXPIRES) -> str:
    """Sign an HS256 token with the local secret (development and tests only)."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "email": email,
        "iat": now,
        "exp": now + timedelta(seconds=expires_in),
    }
    if name:
        payload["name"] = name
    return jwt.encode(payload, _get_secret(), algorithm=HS_ALGORITHM)
