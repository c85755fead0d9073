from flask import Blueprint

from api.routes_attendance import register_attendance_routes
from api.routes_events import register_event_routes
from api.routes_stats import register_stats_routes
from api.routes_teacher_links import register_teacher_link_routes


def create_api_blueprint(services) -> Blueprint:
    """Build the API blueprint with every route group bound to ``services``."""
    api = Blueprint("api", __name__)

    register_stats_routes(api, services)
    register_attendance_routes(api, services)
    register_teacher_link_routes(api, services)
    register_event_routes(api, services)

    return api
