"""
Flask-Migrate / Alembic and WSGI entry point.

Usage:
    flask --app wsgi db upgrade
"""

from tramitation import create_app

app = create_app()
