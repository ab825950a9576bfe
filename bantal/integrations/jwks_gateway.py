"""SSO JWKS gateway — fetches and caches the provider's signing keys.

Outbound HTTP goes through a requests.Session with a bounded timeout.
Keys are cached in-process per JWKS URL and refetched once when a token
presents an unknown ``kid`` (key rotation).

Failures never leak as requests exceptions: they surface as
IntegrationError carrying the downstream status code.
"""

from __future__ import annotations

import logging
import time

import jwt
import requests

from bantal.core.exceptions import IntegrationError

logger = logging.getLogger(__name__)

_SERVICE = "sso-jwks"
_CACHE_TTL_SECONDS = 3600


class JWKSGateway:
    """Resolve signing keys by ``kid`` from a JWKS endpoint."""

    # Class-level cache: jwks_url → {"keys": {kid: PyJWK}, "fetched_at": float}
    _cache: dict[str, dict] = {}

    def __init__(self, jwks_url: str, timeout: int = 10, session: requests.Session | None = None) -> None:
        self.jwks_url = jwks_url
        self.timeout = timeout
        self._session = session or requests.Session()

    def _fetch(self) -> dict:
        t0 = time.perf_counter()
        try:
            resp = self._session.get(self.jwks_url, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("JWKS fetch failed url=%s error=%s", self.jwks_url, exc)
            raise IntegrationError(_SERVICE, f"could not reach JWKS endpoint: {exc}") from exc

        duration_ms = int((time.perf_counter() - t0) * 1000)
        if resp.status_code != 200:
            logger.warning("JWKS fetch returned %s url=%s (%dms)", resp.status_code, self.jwks_url, duration_ms)
            raise IntegrationError(
                _SERVICE, "JWKS endpoint returned an error",
                status_code=resp.status_code, payload=_safe_json(resp),
            )

        try:
            key_set = jwt.PyJWKSet.from_dict(resp.json())
        except (ValueError, jwt.PyJWKSetError) as exc:
            raise IntegrationError(_SERVICE, f"malformed JWKS document: {exc}", status_code=resp.status_code) from exc

        keys = {k.key_id: k for k in key_set.keys if k.key_id}
        logger.info("JWKS fetched url=%s keys=%d (%dms)", self.jwks_url, len(keys), duration_ms)
        entry = {"keys": keys, "fetched_at": time.time()}
        self._cache[self.jwks_url] = entry
        return entry

    def get_signing_key(self, kid: str | None):
        """Return the PyJWK for ``kid``; refetch once on a miss.

        Raises:
            IntegrationError: Endpoint unreachable or returned garbage.
            jwt.InvalidTokenError: No key with that id after refetch.
        """
        entry = self._cache.get(self.jwks_url)
        if entry is None or time.time() - entry["fetched_at"] > _CACHE_TTL_SECONDS:
            entry = self._fetch()
        key = entry["keys"].get(kid)
        if key is None:
            entry = self._fetch()
            key = entry["keys"].get(kid)
        if key is None:
            raise jwt.InvalidTokenError(f"No signing key found for kid={kid!r}")
        return key

    @classmethod
    def clear_cache(cls) -> None:
        cls._cache.clear()
        for gateway in _gateways.values():
            gateway._session.close()
        _gateways.clear()


# One gateway (and one pooled requests.Session) per JWKS URL
_gateways: dict[str, JWKSGateway] = {}


def get_gateway(jwks_url: str, timeout: int = 10) -> JWKSGateway:
    """Return the shared gateway for ``jwks_url``, creating it on first use."""
    gateway = _gateways.get(jwks_url)
    if gateway is None:
        gateway = JWKSGateway(jwks_url, timeout=timeout)
        _gateways[jwks_url] = gateway
    return gateway


def _safe_json(resp) -> dict:
    try:
        body = resp.json()
    except ValueError:
        return {"body": (resp.text or "")[:500]}
    return body if isinstance(body, dict) else {"body": body}
