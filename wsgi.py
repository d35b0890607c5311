"""
Production WSGI entry point for Gunicorn.

Usage:
    gunicorn -w 1 -k gthread -b 0.0.0.0:$PORT wsgi:app

Run a single worker (or set SCHEDULER_ENABLED=false on all but one
process); the daily materialization job is idempotent either way.
"""

from plantcare import create_app

app = create_app()
