"""
Document-change webhook.

The change-notification layer posts one write per request:

    {"tenantId": "...", "collection": "attendance|enrollments|classInstances",
     "documentId": "...", "before": {...} | null, "after": {...} | null}

By default the affected students are recomputed before answering;
``?mode=queue`` hands them to the task queue and answers 202 at once.
"""
import hmac

from flask import Blueprint, request

from api.responses import error_response, internal_error, ok
from core import config
from core.errors import InvalidArgument, PermissionDenied, StudioError, Unauthenticated
from core.logger import logger
from stats.events import DocumentChange, dispatch_change

EVENTS_TOKEN_HEADER = "X-Events-Token"


def _check_events_token() -> None:
    if not config.EVENTS_WEBHOOK_SECRET:
        raise PermissionDenied("Change webhook is disabled; set EVENTS_WEBHOOK_SECRET")
    supplied = request.headers.get(EVENTS_TOKEN_HEADER, "")
    if not supplied:
        raise Unauthenticated(f"{EVENTS_TOKEN_HEADER} header required")
    if not hmac.compare_digest(supplied, config.EVENTS_WEBHOOK_SECRET):
        raise PermissionDenied("Invalid events token")


def register_event_routes(api: Blueprint, services) -> None:
    """Register the change webhook on the given blueprint."""

    @api.route("/events/firestore", methods=["POST"])
    def firestore_change_event():
        try:
            _check_events_token()
            change = DocumentChange.from_payload(request.get_json(silent=True) or {})

            mode = request.args.get("mode", "sync")
            if mode == "queue":
                students = services.task_queue.publish(change)
                return ok({"success": True, "queued": sorted(students)}, 202)
            if mode != "sync":
                raise InvalidArgument("mode must be 'sync' or 'queue'")

            outcome = dispatch_change(services.aggregator, change)
            logger.info(
                f"{change.collection}/{change.document_id} in tenant {change.tenant_id}: "
                f"{len(outcome['recomputed'])} recomputed, {len(outcome['errors'])} failed"
            )
            return ok({"success": not outcome["errors"], **outcome})
        except StudioError as e:
            return error_response(e)
        except Exception as e:  # pragma: no cover
            return internal_error("Failed to process change event", e)
