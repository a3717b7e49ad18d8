# hubrecords/errors.py
"""Error taxonomy shared by every layer of the hub records API.

Every failure a caller can observe is one of these kinds. Each carries the
HTTP status it maps to so the Flask error handler can render it directly:

- ValidationError: malformed or missing input (400)
- UnauthenticatedError: missing, invalid or expired credential (401)
- ForbiddenError: valid identity, insufficient authorization (403)
- NotFoundError: referenced entity absent (404)
- ConflictError: duplicate unique key (409)
- InternalError: unexpected storage or codec failure (500)
"""


class HubError(Exception):
    """Base class for all errors surfaced to API callers."""
    status_code = 500
    kind = "Internal"

    def __init__(self, message=None, errors=None):
        super().__init__(message or self.kind)
        self.message = message or self.kind
        self.errors = errors or {}

    def to_dict(self):
        payload = {"error": self.message, "kind": self.kind}
        if self.errors:
            payload["errors"] = self.errors
        return payload


class ValidationError(HubError):
    status_code = 400
    kind = "ValidationError"


class UnauthenticatedError(HubError):
    status_code = 401
    kind = "Unauthenticated"


class ForbiddenError(HubError):
    status_code = 403
    kind = "Forbidden"


class NotFoundError(HubError):
    status_code = 404
    kind = "NotFound"


class ConflictError(HubError):
    status_code = 409
    kind = "Conflict"


class InternalError(HubError):
    status_code = 500
    kind = "Internal"
