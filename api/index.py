"""WSGI entry point for serverless deployment."""

import logging

from app import create_app

try:
    app = create_app()
except Exception:
    logging.getLogger(__name__).exception("Medflix failed to start")
    raise
