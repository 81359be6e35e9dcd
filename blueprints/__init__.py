"""
Blueprint registration for Medflix.

All blueprints are registered without URL prefixes; routes carry their full paths.
"""

from __future__ import annotations


def register_blueprints(app):
    from blueprints.core import bp as core_bp
    from blueprints.study import bp as study_bp
    from blueprints.content import bp as content_bp
    from blueprints.ai import bp as ai_bp

    app.register_blueprint(core_bp)
    app.register_blueprint(study_bp)
    app.register_blueprint(content_bp)
    app.register_blueprint(ai_bp)
