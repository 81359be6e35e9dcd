"""
Rate limiter and the lazily-built content generator.

Keeps shared objects out of create_app() so blueprints can import them.
"""

from __future__ import annotations

from flask import current_app
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, default_limits=["200 per hour"])


class GeneratorManager:
    """Lazy-loaded ContentGenerator keyed on the configured provider/model."""

    _generator = None

    @classmethod
    def get_generator(cls):
        from content_generation import ContentGenerator

        provider = current_app.config.get("GENAI_PROVIDER", "gemini")
        model = current_app.config.get("GENAI_MODEL", "gemini-2.5-flash")
        gen = cls._generator
        if gen is None or gen.provider != provider or gen.model != model:
            cls._generator = ContentGenerator(provider, model)
        return cls._generator
