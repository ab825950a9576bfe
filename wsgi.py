"""WSGI entry point (gunicorn wsgi:app)."""

from bantal import create_app

app = create_app()
