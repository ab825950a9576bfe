"""
BANTAL Back-Office
Model package — shared Flask-SQLAlchemy handle and column helpers.

Usage:
    from bantal.models import db
    from bantal.models.document import MasterDocument
"""

import uuid
from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    """Serialize a date/datetime column value, passing None through."""
    return value.isoformat() if value else None


def _money(value):
    """Serialize a Numeric column value as float (None stays None)."""
    return float(value) if value is not None else None
