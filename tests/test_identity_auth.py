"""Tests for SSO token verification, identity sync and the auth middleware.

Coverage:
  1. HS256 local tokens decode to {subject, email, name}; bad/expired tokens rejected
  2. authenticate: unknown email / inactive identity → ForbiddenError
  3. authenticate syncs a missing or changed SSO subject id
  4. middleware: 401 without token when enforced, 403 for unregistered users,
     g.identity populated from bearer header or cookie
  5. JWKS gateway: RS256 verification with a mocked endpoint, refetch on
     unknown kid, IntegrationError on transport / status failures → 502
"""

import json
from unittest.mock import MagicMock, patch

import jwt
import pytest
import requests
from cryptography.hazmat.primitives.asymmetric import rsa

from bantal.core.exceptions import ForbiddenError, IntegrationError, NotFoundError
from bantal.integrations.jwks_gateway import JWKSGateway
from bantal.models import db
from bantal.models.identity import Identity
from bantal.services import identity_service
from bantal.services.sso_token_service import decode_token, issue_local_token

JWKS_URL = "https://sso.example.test/.well-known/jwks.json"


def _make_identity(email="dewi@bantal.co.id", **kwargs):
    identity = Identity(external_id=f"dir-{email}", email=email, name="Dewi Lestari", **kwargs)
    db.session.add(identity)
    db.session.commit()
    return identity


def _rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def _jwk(private_key, kid="k1"):
    jwk = json.loads(jwt.algorithms.RSAAlgorithm.to_jwk(private_key.public_key()))
    jwk.update({"kid": kid, "alg": "RS256", "use": "sig"})
    return jwk


def _response(status_code=200, body=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = body if body is not None else {}
    resp.text = json.dumps(body) if body is not None else ""
    return resp


@pytest.fixture()
def auth_enforced(app):
    app.config["API_AUTH_ENABLED"] = "true"
    yield
    app.config["API_AUTH_ENABLED"] = "false"


@pytest.fixture()
def jwks_config(app):
    JWKSGateway.clear_cache()
    app.config["SSO_JWKS_URL"] = JWKS_URL
    yield
    app.config["SSO_JWKS_URL"] = None
    JWKSGateway.clear_cache()


# ═════════════════════════════════════════════════════════════════════════════
# Token service
# ═════════════════════════════════════════════════════════════════════════════


class TestTokenService:
    def test_local_token_round_trip(self):
        token = issue_local_token("sub-1", "dewi@bantal.co.id", name="Dewi")
        assert decode_token(token) == {"subject": "sub-1", "email": "dewi@bantal.co.id", "name": "Dewi"}

    def test_expired_token(self):
        token = issue_local_token("sub-1", "dewi@bantal.co.id", expires_in=-10)
        with pytest.raises(jwt.ExpiredSignatureError):
            decode_token(token)

    def test_wrong_secret(self):
        token = jwt.encode({"sub": "sub-1", "email": "x@y.z"}, "other-secret", algorithm="HS256")
        with pytest.raises(jwt.InvalidTokenError):
            decode_token(token)

    def test_missing_subject(self):
        token = jwt.encode({"email": "x@y.z"}, "test-jwt-secret", algorithm="HS256")
        with pytest.raises(jwt.InvalidTokenError):
            decode_token(token)

    def test_preferred_username_fallback(self):
        token = jwt.encode({"sub": "s", "preferred_username": "dewi@bantal.co.id"}, "test-jwt-secret", algorithm="HS256")
        assert decode_token(token)["email"] == "dewi@bantal.co.id"


# ═════════════════════════════════════════════════════════════════════════════
# Identity service
# ═════════════════════════════════════════════════════════════════════════════


class TestAuthenticate:
    def test_unknown_email_forbidden(self):
        with pytest.raises(ForbiddenError, match="User is not registered"):
            identity_service.authenticate({"subject": "s", "email": "nobody@bantal.co.id"})

    def test_inactive_identity_forbidden(self):
        _make_identity(is_active=False)
        with pytest.raises(ForbiddenError, match="User is inactive"):
            identity_service.authenticate({"subject": "s", "email": "dewi@bantal.co.id"})

    def test_pending_status_forbidden(self):
        _make_identity(status="pending")
        with pytest.raises(ForbiddenError):
            identity_service.authenticate({"subject": "s", "email": "dewi@bantal.co.id"})

    def test_subject_synced_on_first_login(self):
        identity = _make_identity()
        result = identity_service.authenticate({"subject": "sub-42", "email": "DEWI@bantal.co.id"})
        assert result.id == identity.id
        assert db.session.get(Identity, identity.id).sso_subject_id == "sub-42"

    def test_changed_subject_overwritten(self):
        identity = _make_identity(sso_subject_id="old-sub")
        assert identity_service.sync_subject_id(identity.email, "new-sub") is True
        assert identity_service.sync_subject_id("DEWI@bantal.co.id", "new-sub") is False
        assert db.session.get(Identity, identity.id).sso_subject_id == "new-sub"

    def test_sync_unknown_email_not_found(self):
        with pytest.raises(NotFoundError):
            identity_service.sync_subject_id("nobody@bantal.co.id", "sub-1")

    def test_subject_released_from_previous_holder(self):
        old = _make_identity(email="old@bantal.co.id", sso_subject_id="sub-1", is_active=False)
        new = _make_identity(email="new@bantal.co.id")
        result = identity_service.authenticate({"subject": "sub-1", "email": "new@bantal.co.id"})
        assert result.id == new.id
        assert db.session.get(Identity, new.id).sso_subject_id == "sub-1"
        assert db.session.get(Identity, old.id).sso_subject_id is None
    def test_list_and_search(self):
        _make_identity()
        _make_identity(email="budi@bantal.co.id", is_active=False)
        assert len(identity_service.list_identities()) == 1
        assert len(identity_service.list_identities(include_inactive=True)) == 2
        assert len(identity_service.list_identities(include_inactive=True, search="BUDI")) == 1


# ═════════════════════════════════════════════════════════════════════════════
# Middleware
# ═════════════════════════════════════════════════════════════════════════════


class TestSSOMiddleware:
    def test_health_skips_auth(self, client, auth_enforced):
        assert client.get("/api/v1/health").status_code == 200

    def test_missing_token_401(self, client, auth_enforced):
        res = client.get("/api/v1/documents")
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHENTICATED"

    def test_invalid_token_401(self, client, auth_enforced):
        res = client.get("/api/v1/documents", headers={"Authorization": "Bearer garbage"})
        assert res.status_code == 401

    def test_unregistered_user_403(self, client, auth_enforced):
        token = issue_local_token("sub-1", "stranger@bantal.co.id")
        res = client.get("/api/v1/documents", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 403
        assert res.get_json()["error"] == "User is not registered"

    def test_bearer_token_populates_identity(self, client, auth_enforced):
        identity = _make_identity()
        token = issue_local_token("sub-7", identity.email)
        res = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 200
        body = res.get_json()
        assert body["id"] == identity.id
        assert body["sso_subject_id"] == "sub-7"

    def test_subject_held_by_inactive_identity_moves_to_new_identity(self, client, auth_enforced):
        _make_identity(email="old@bantal.co.id", sso_subject_id="sub-1", is_active=False)
        identity = _make_identity(email="new@bantal.co.id")
        token = issue_local_token("sub-1", "new@bantal.co.id")
        res = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 200
        body = res.get_json()
        assert body["id"] == identity.id
        assert body["sso_subject_id"] == "sub-1"

    def test_cookie_token(self, client, auth_enforced):
        identity = _make_identity()
        client.set_cookie("auth_session", issue_local_token("sub-8", identity.email))
        res = client.get("/api/v1/auth/me")
        assert res.status_code == 200
        assert res.get_json()["email"] == identity.email

    def test_not_enforced_passes_without_token(self, client):
        assert client.get("/api/v1/documents").status_code == 200
        assert client.get("/api/v1/auth/me").status_code == 401

    def test_jwks_outage_returns_502(self, client):
        with patch(
            "bantal.middleware.sso_auth.decode_token",
            side_effect=IntegrationError("sso-jwks", "down", status_code=503),
        ):
            res = client.get("/api/v1/documents", headers={"Authorization": "Bearer whatever"})
        assert res.status_code == 502
        assert res.get_json()["code"] == "ERR_INTEGRATION"


# ═════════════════════════════════════════════════════════════════════════════
# JWKS gateway
# ═════════════════════════════════════════════════════════════════════════════


class TestJWKSGateway:
    def test_rs256_token_verified(self, jwks_config):
        key = _rsa_key()
        token = jwt.encode({"sub": "rs-sub", "email": "dewi@bantal.co.id"}, key, algorithm="RS256",
                           headers={"kid": "k1"})
        with patch("bantal.integrations.jwks_gateway.requests.Session") as session_cls:
            session_cls.return_value.get.return_value = _response(body={"keys": [_jwk(key)]})
            claims = decode_token(token)
        assert claims["subject"] == "rs-sub"

    def test_requests_share_one_session(self, jwks_config):
        key = _rsa_key()
        token = jwt.encode({"sub": "rs-sub", "email": "dewi@bantal.co.id"}, key, algorithm="RS256",
                           headers={"kid": "k1"})
        with patch("bantal.integrations.jwks_gateway.requests.Session") as session_cls:
            session_cls.return_value.get.return_value = _response(body={"keys": [_jwk(key)]})
            decode_token(token)
            decode_token(token)
        assert session_cls.call_count == 1
        assert session_cls.return_value.get.call_count == 1

    def test_unknown_kid_refetches_once(self, jwks_config):
        key = _rsa_key()
        session = MagicMock()
        session.get.return_value = _response(body={"keys": [_jwk(key, kid="k1")]})
        gateway = JWKSGateway(JWKS_URL, session=session)
        with pytest.raises(jwt.InvalidTokenError):
            gateway.get_signing_key("k2")
        assert session.get.call_count == 2

    def test_cached_keys_reused(self, jwks_config):
        key = _rsa_key()
        session = MagicMock()
        session.get.return_value = _response(body={"keys": [_jwk(key)]})
        gateway = JWKSGateway(JWKS_URL, session=session)
        gateway.get_signing_key("k1")
        gateway.get_signing_key("k1")
        assert session.get.call_count == 1

    def test_transport_error(self, jwks_config):
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("refused")
        with pytest.raises(IntegrationError):
            JWKSGateway(JWKS_URL, session=session).get_signing_key("k1")

    def test_error_status(self, jwks_config):
        session = MagicMock()
        session.get.return_value = _response(status_code=503, body={"error": "unavailable"})
        with pytest.raises(IntegrationError) as exc:
            JWKSGateway(JWKS_URL, session=session).get_signing_key("k1")
        assert exc.value.status_code == 503
        assert exc.value.payload == {"error": "unavailable"}

    def test_malformed_document(self, jwks_config):
        session = MagicMock()
        session.get.return_value = _response(body={"keys": []})
        with pytest.raises(IntegrationError):
            JWKSGateway(JWKS_URL, session=session).get_signing_key("k1")
