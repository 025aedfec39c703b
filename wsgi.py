"""
WSGI / Flask-Migrate entry point.

Usage:
    flask --app wsgi db upgrade
    flask --app wsgi seed-work-units
    gunicorn wsgi:app
"""

from hrdesk import create_app

app = create_app()
