"""WSGI entrypoint, e.g. ``gunicorn wms_admin.wsgi:app``."""
from . import create_app

app = create_app()
