"""
WSGI Entry Point - BoutArchive

Provides the application factory output for production servers such as
Gunicorn or uWSGI.

Author: BoutArchive Development Team
Updated: October 18, 2026
"""

from app import create_app


app = create_app()

# Example (Gunicorn, one worker so a single monitor thread polls the clients):
#   gunicorn -w 1 --threads 8 -b 0.0.0.0:5000 wsgi:app
