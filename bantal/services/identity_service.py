"""
Identity service — lookup and SSO subject synchronisation.

Authentication flow (called by the SSO middleware on every API request):
    1. Token verified by sso_token_service.decode_token → {subject, email}
    2. Identity looked up by email (case-insensitive)
    3. Unknown email or inactive identity → ForbiddenError
    4. Stored SSO subject missing or different → overwritten with the token's;
       another identity still holding that subject is released first
    5. Identity returned and attached to ``g.identity``

Concurrent syncs for the same identity are last-write-wins.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select

from bantal.core.exceptions import ForbiddenError, NotFoundError
from bantal.models import _utcnow, db
from bantal.models.identity import Identity
from bantal.utils.helpers import transaction

logger = logging.getLogger(__name__)


def find_by_id(identity_id: str) -> Identity:
    """Return an Identity by primary key.

    Raises:
        NotFoundError: If no identity has that id.
    """
    identity = db.session.get(Identity, identity_id)
    if identity is None:
        raise NotFoundError(resource="Identity", resource_id=identity_id)
    return identity


def find_by_email(email: str | None) -> Identity | None:
    """Return the identity with this email (case-insensitive), or None."""
    if not email:
        return None
    stmt = select(Identity).where(func.lower(Identity.email) == email.strip().lower())
    return db.session.execute(stmt).scalar_one_or_none()


def list_identities(*, include_inactive: bool = False, search: str | None = None) -> list[Identity]:
    stmt = select(Identity)
    if not include_inactive:
        stmt = stmt.where(Identity.is_active.is_(True))
    if search:
        like = f"%{search.strip().lower()}%"
        stmt = stmt.where(
            func.lower(Identity.name).like(like) | func.lower(Identity.email).like(like)
        )
    stmt = stmt.order_by(Identity.name)
    return list(db.session.execute(stmt).scalars())


def sync_subject_id(email: str, subject: str) -> bool:
    """Record the SSO subject on the identity with this email when missing or changed.

    A subject can belong to one identity only; any other row still holding
    it (e.g. an older directory import) is released first. Also bumps
    ``updated_at`` so it doubles as a last-login marker.

    Returns:
        True if the stored subject changed.

    Raises:
        NotFoundError: If no identity has that email.
    """
    identity = find_by_email(email)
    if identity is None:
        raise NotFoundError(resource="Identity", resource_id=email)

    changed = identity.sso_subject_id != subject
    with transaction("Identity"):
        if changed:
            stmt = select(Identity).where(
                Identity.sso_subject_id == subject, Identity.id != identity.id,
            )
            for holder in db.session.execute(stmt).scalars():
                logger.warning(
                    "Releasing SSO subject held by identity %s", holder.id,
                    extra={"identity_id": holder.id},
                )
                holder.sso_subject_id = None
            # release must hit the database before the new holder is written
            db.session.flush()
            logger.info(
                "Syncing SSO subject for identity %s (had_subject=%s)",
                identity.id, identity.sso_subject_id is not None,
                extra={"identity_id": identity.id},
            )
            identity.sso_subject_id = subject
        identity.updated_at = _utcnow()
    return changed


def authenticate(claims: dict) -> Identity:
    """Resolve verified token claims to an active Identity.

    Args:
        claims: Output of sso_token_service.decode_token.

    Returns:
        The Identity, with its SSO subject synced.

    Raises:
        ForbiddenError: No identity for the email, or the identity is not active.
    """
    identity = find_by_email(claims.get("email"))
    if identity is None:
        logger.warning("Login refused: no identity for token email")
        raise ForbiddenError("User is not registered")
    if not identity.can_sign_in:
        logger.warning("Login refused: identity %s is inactive", identity.id, extra={"identity_id": identity.id})
        raise ForbiddenError("User is inactive")

    sync_subject_id(identity.email, claims["subject"])
    return identity
