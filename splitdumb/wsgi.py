"""
wsgi.py — Entry point for `flask --app splitdumb.wsgi` and WSGI servers.

The config is picked by FLASK_ENV (development | testing | production).
"""

import os

from splitdumb.app import create_app

app = create_app(os.getenv("FLASK_ENV", "development"))
