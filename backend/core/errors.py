"""
Error taxonomy shared by the stats service, the repositories and the API.

Every error carries a stable ``code`` (matching the callable-function codes
the web client already understands) and the HTTP status the API answers
with.

    StudioError (base)
    ├── InvalidArgument   400
    ├── Unauthenticated   401
    ├── PermissionDenied  403
    ├── NotFound          404
    └── Internal          500
"""

from typing import Any, Dict


class StudioError(Exception):
    """Base error for the studio backend."""

    code = "internal"
    http_status = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.code}


class InvalidArgument(StudioError):
    """A required identifier or field is missing or malformed."""

    code = "invalid-argument"
    http_status = 400


class Unauthenticated(StudioError):
    """No caller identity was supplied."""

    code = "unauthenticated"
    http_status = 401


class PermissionDenied(StudioError):
    """The caller's role or tenant does not authorize the request."""

    code = "permission-denied"
    http_status = 403


class NotFound(StudioError):
    """A referenced document does not exist."""

    code = "not-found"
    http_status = 404


class Internal(StudioError):
    """Unexpected storage or computation failure."""

    code = "internal"
    http_status = 500


def require_fields(data: Dict[str, Any], *fields: str) -> None:
    """Raise InvalidArgument naming every field that is missing or blank."""
    missing = []
    for field in fields:
        value = data.get(field) if data else None
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(field)
    if missing:
        raise InvalidArgument(f"Missing required fields: {', '.join(missing)}")
