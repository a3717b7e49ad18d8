# hubrecords/authentication/rbac.py

from enum import Enum
from functools import wraps
from flask import g, request
import logging

from hubrecords.errors import ForbiddenError, UnauthenticatedError
from hubrecords.security.token_manager import TokenManager

logger = logging.getLogger(__name__)

# Role- and ownership-based access control for every record and admin operation


class UserRole(Enum):
    USER = "user"
    ADMIN = "admin"


class Operation(Enum):
    CREATE_RECORD = "create_record"
    READ_RECORD = "read_record"
    UPDATE_RECORD = "update_record"
    DELETE_RECORD = "delete_record"
    LIST_RECORDS = "list_records"
    SEARCH_RECORDS = "search_records"
    VIEW_STATS = "view_stats"
    LIST_USERS = "list_users"
    LIST_ALL_RECORDS = "list_all_records"
    VIEW_GLOBAL_STATS = "view_global_stats"
    SET_USER_ACTIVE = "set_user_active"
    SET_USER_ROLE = "set_user_role"


# Allowed for admin, or for the owner of the record
OWNER_OPERATIONS = {
    Operation.READ_RECORD,
    Operation.UPDATE_RECORD,
    Operation.DELETE_RECORD,
}

# Scoped to an owner; out-of-scope requests by non-admins are narrowed to self
SCOPED_OPERATIONS = {
    Operation.LIST_RECORDS,
    Operation.SEARCH_RECORDS,
    Operation.VIEW_STATS,
}

ADMIN_OPERATIONS = {
    Operation.LIST_USERS,
    Operation.LIST_ALL_RECORDS,
    Operation.VIEW_GLOBAL_STATS,
    Operation.SET_USER_ACTIVE,
    Operation.SET_USER_ROLE,
}


class Identity:
    """Authenticated caller: user id plus current role."""

    def __init__(self, user_id, role):
        self.user_id = str(user_id)
        self.role = UserRole(role) if isinstance(role, str) else role

    @property
    def is_admin(self):
        return self.role == UserRole.ADMIN

    def to_dict(self):
        return {'userId': self.user_id, 'role': self.role.value}

    def __eq__(self, other):
        return isinstance(other, Identity) and (self.user_id, self.role) == (other.user_id, other.role)

    def __repr__(self):
        return f'<Identity {self.user_id} {self.role.value}>'


class AuthorizationPolicy:
    def __init__(self, audit_logger=None):
        self.audit_logger = audit_logger

    def is_allowed(self, identity, operation, resource_owner=None):
        if isinstance(operation, str):
            operation = Operation(operation)
        if identity is None:
            return False
        if identity.is_admin:
            return True
        if operation in ADMIN_OPERATIONS:
            return False
        if operation in OWNER_OPERATIONS:
            return resource_owner is not None and str(resource_owner) == identity.user_id
        # create and owner-scoped queries are open to any authenticated identity
        return operation in SCOPED_OPERATIONS or operation == Operation.CREATE_RECORD

    def authorize(self, identity, operation, resource_owner=None):
        """Raise ForbiddenError unless ``identity`` may perform ``operation``."""
        if isinstance(operation, str):
            operation = Operation(operation)
        if self.is_allowed(identity, operation, resource_owner):
            return
        logger.warning(
            "Access denied: user_id=%s role=%s operation=%s owner=%s",
            getattr(identity, 'user_id', None),
            getattr(getattr(identity, 'role', None), 'value', None),
            operation.value,
            resource_owner,
        )
        if self.audit_logger is not None:
            self.audit_logger.log_security_event(
                'access_denied',
                {'operation': operation.value, 'resource_owner': resource_owner},
                user_id=getattr(identity, 'user_id', None),
            )
        if operation in ADMIN_OPERATIONS:
            raise ForbiddenError("Requires admin privileges")
        raise ForbiddenError("Not authorized to access this record")

    def resolve_owner_scope(self, identity, requested_owner=None):
        """
        Owner whose records a list/search/stats call may see.

        Admins get the requested owner, or None (every owner) when none was
        asked for. Everyone else is narrowed to their own records.
        """
        if identity.is_admin:
            return str(requested_owner) if requested_owner else None
        if requested_owner and str(requested_owner) != identity.user_id:
            logger.info("Narrowing owner scope of %s from %s to self", identity.user_id, requested_owner)
        return identity.user_id


def current_identity():
    return getattr(g, 'identity', None)


# Decorator: resolve the bearer token into g.identity or fail Unauthenticated
def require_auth(credential_store):
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            token = TokenManager.extract_bearer(request.headers.get('Authorization'))
            if token is None:
                raise UnauthenticatedError("Not authenticated")
            g.identity = credential_store.authenticate(token)
            return func(*args, **kwargs)
        return wrapper
    return decorator


# Decorator for a policy-checked operation; stack under require_auth
def require_permission(policy, operation):
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            identity = current_identity()
            if identity is None:
                raise UnauthenticatedError("Not authenticated")
            policy.authorize(identity, operation)
            return func(*args, **kwargs)
        return wrapper
    return decorator
