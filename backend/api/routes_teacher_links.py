"""
Teacher link routes: generate, validate, and exchange for a session.
"""
from flask import Blueprint, g, request

from api.responses import error_response, internal_error, ok
from core.auth import require_auth
from core.errors import StudioError
from teachers.links import create_teacher_session, generate_teacher_link, validate_teacher_link


def register_teacher_link_routes(api: Blueprint, services) -> None:
    """Register teacher link routes on the given blueprint."""

    @api.route("/teacher-links", methods=["POST"])
    @require_auth
    def generate_teacher_link_route():
        """Generate a new access link for a teacher (tenant admins only)."""
        try:
            data = request.get_json(silent=True) or {}
            result = generate_teacher_link(services.repositories, services.directory, g.caller, data)
            return ok(result, 201)
        except StudioError as e:
            return error_response(e)
        except Exception as e:  # pragma: no cover
            return internal_error("Failed to generate teacher link", e)

    @api.route("/teacher-links/validate", methods=["POST"])
    def validate_teacher_link_route():
        """Validate a teacher link and return the teacher it belongs to."""
        try:
            data = request.get_json(silent=True) or {}
            result = validate_teacher_link(services.repositories, services.directory, data.get("linkToken"))
            return ok(result)
        except StudioError as e:
            return error_response(e)
        except Exception as e:  # pragma: no cover
            return internal_error("Failed to validate teacher link", e)

    @api.route("/teacher-sessions", methods=["POST"])
    def create_teacher_session_route():
        """Create or renew a teacher session from a link token."""
        try:
            data = request.get_json(silent=True) or {}
            result = create_teacher_session(services.repositories, services.directory, data)
            return ok(result)
        except StudioError as e:
            return error_response(e)
        except Exception as e:  # pragma: no cover
            return internal_error("Failed to create teacher session", e)
