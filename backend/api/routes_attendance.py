"""
Attendance marking route (admins and link-authenticated teachers).
"""
from flask import Blueprint, g, request

from api.responses import error_response, internal_error, ok
from attendance.marking import mark_attendance
from core.auth import optional_auth
from core.errors import StudioError


def register_attendance_routes(api: Blueprint, services) -> None:
    """Register attendance routes on the given blueprint."""

    @api.route("/attendance/mark", methods=["POST"])
    @optional_auth
    def mark_attendance_route():
        """Create, update or clear one student's attendance for a class instance."""
        try:
            data = request.get_json(silent=True) or {}
            result = mark_attendance(
                services.repositories,
                services.directory,
                data,
                caller=g.caller,
                task_queue=services.task_queue,
            )
            return ok(result)
        except StudioError as e:
            return error_response(e)
        except Exception as e:  # pragma: no cover
            return internal_error("Failed to mark attendance", e)
