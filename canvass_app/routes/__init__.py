# canvass_app/routes/__init__.py
"""
Application routes package
"""

from ._helpers import register_error_handlers
from .assignments import assignments_blueprint
from .captures import captures_blueprint
from .incidents import incidents_blueprint
from .leaders import leaders_blueprint
from .sponsors import sponsors_blueprint
from .system import system_blueprint
from .voters import voters_blueprint


def init_routes(app):
    """Register all blueprints and the domain error handler"""
    app.register_blueprint(captures_blueprint)
    app.register_blueprint(assignments_blueprint)
    app.register_blueprint(incidents_blueprint)
    app.register_blueprint(leaders_blueprint)
    app.register_blueprint(voters_blueprint)
    app.register_blueprint(sponsors_blueprint)
    app.register_blueprint(system_blueprint)
    register_error_handlers(app)
