"""
Stats routes: bulk sync, single-student recompute and stats-backed reports.
"""
from flask import Blueprint, g, request

from api.responses import error_response, internal_error, ok
from core.auth import require_auth
from core.errors import InvalidArgument, PermissionDenied, StudioError, require_fields
from core.logger import logger
from stats.reports import build_report, parse_filters


def register_stats_routes(api: Blueprint, services) -> None:
    """Register stats routes on the given blueprint."""

    def _require_tenant_admin(tenant_id: str) -> None:
        if not g.caller.is_tenant_admin(tenant_id):
            logger.warning(
                f"Stats access denied: uid={g.caller.uid} role={g.caller.role} "
                f"tenant={g.caller.tenant_id} requested={tenant_id}"
            )
            raise PermissionDenied("Only admins of this business can do this")

    @api.route("/stats/sync", methods=["POST"])
    @require_auth
    def sync_business_stats():
        """
        Recompute stats for every student of a tenant.

        Partial failures still answer 200 with the per-student errors listed.
        """
        try:
            data = request.get_json(silent=True) or {}
            if not data.get("tenantId"):
                raise InvalidArgument("Missing tenantId")
            tenant_id = data["tenantId"]
            _require_tenant_admin(tenant_id)

            chunk_size = data.get("chunkSize")
            if chunk_size is not None and (not isinstance(chunk_size, int) or isinstance(chunk_size, bool)):
                raise InvalidArgument("chunkSize must be an integer")

            result = services.aggregator.sync_tenant(tenant_id, chunk_size=chunk_size)
            return ok(result.to_dict())
        except StudioError as e:
            return error_response(e)
        except Exception as e:  # pragma: no cover
            return internal_error("Failed to sync stats", e)

    @api.route("/stats/recompute", methods=["POST"])
    @require_auth
    def recompute_student_stats():
        """Recompute and return the stats of one student."""
        try:
            data = request.get_json(silent=True) or {}
            require_fields(data, "tenantId", "studentId")
            _require_tenant_admin(data["tenantId"])

            snapshot = services.aggregator.recompute(data["tenantId"], data["studentId"])
            return ok({"success": True, "studentId": data["studentId"], "stats": snapshot})
        except StudioError as e:
            return error_response(e)
        except Exception as e:  # pragma: no cover
            return internal_error("Failed to recompute stats", e)

    @api.route("/tenants/<tenant_id>/reports/<report_type>", methods=["GET"])
    @require_auth
    def get_report(tenant_id, report_type):
        """Students matching a stats report, with optional date/branch/teacher filters."""
        try:
            _require_tenant_admin(tenant_id)
            filters = parse_filters(request.args)
            students = build_report(services.repositories(tenant_id), report_type, filters)
            logger.info(f"Report {report_type} for tenant {tenant_id}: {len(students)} students")
            return ok({"success": True, "reportType": report_type, "count": len(students), "students": students})
        except StudioError as e:
            return error_response(e)
        except Exception as e:  # pragma: no cover
            return internal_error("Failed to build report", e)
