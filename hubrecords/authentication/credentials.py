# hubrecords/authentication/credentials.py
"""User accounts: registration, login, bearer-token authentication and the
admin-side account controls (activation flag, role).

Login failures never say which check failed. An unknown email, a wrong
password and a deactivated account all raise the same UnauthenticatedError.
"""

import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError as DBIntegrityError

from hubrecords import db
from hubrecords.authentication.rbac import Identity, UserRole
from hubrecords.database.models import User, HubRecord
from hubrecords.encryption.password_hashing import PasswordHashingService
from hubrecords.errors import ConflictError, NotFoundError, UnauthenticatedError, ValidationError
from hubrecords.security.input_validator import InputValidator
from hubrecords.security.token_manager import TokenManager

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"


class CredentialStore:
    def __init__(self, password_service=None, token_manager=None, validator=None, audit_logger=None):
        self.password_service = password_service or PasswordHashingService()
        self.token_manager = token_manager or TokenManager()
        self.validator = validator or InputValidator()
        self.audit_logger = audit_logger

    def _audit(self, event_type, data, user_id=None):
        if self.audit_logger is not None:
            self.audit_logger.log_security_event(event_type, data, user_id=user_id)

    def get_user_by_email(self, email):
        email = self.validator.normalize_email(email)
        if not email:
            return None
        return db.session.query(User).filter(func.lower(User.email) == email).first()

    def get_user(self, user_id):
        if not user_id:
            return None
        return db.session.get(User, str(user_id))

    @staticmethod
    def _check_role(role):
        try:
            return UserRole(role).value
        except ValueError:
            raise ValidationError(
                f"Invalid role '{role}'. Must be one of: {', '.join(r.value for r in UserRole)}",
                errors={'role': 'invalid'},
            )

    @staticmethod
    def _summary(user):
        return {'userId': user.id, 'email': user.email, 'name': user.name}

    def register(self, email, password, name=None, role=UserRole.USER.value, user_metadata=None):
        """Create an account and return ``{userId, email, name}``."""
        email = self.validator.normalize_email(email)
        if not self.validator.validate_email(email):
            raise ValidationError("A valid email address is required", errors={'email': 'invalid'})
        if name is not None:
            try:
                name = self.validator.sanitize_string(name) or None
            except ValueError as e:
                raise ValidationError(f"Invalid name: {e}", errors={'name': str(e)})
        if user_metadata is not None and not isinstance(user_metadata, dict):
            raise ValidationError("user_metadata must be an object", errors={'user_metadata': 'must be an object'})
        role = self._check_role(role)

        if self.get_user_by_email(email) is not None:
            raise ConflictError("User already exists")

        user = User(
            email=email,
            password_hash=self.password_service.hash_password(password),
            name=name,
            role=role,
            is_active=True,
            user_metadata=user_metadata or {},
        )
        db.session.add(user)
        try:
            db.session.commit()
        except DBIntegrityError:
            # unique index on email lost a race with a concurrent registration
            db.session.rollback()
            raise ConflictError("User already exists")

        logger.info("Registered user %s", user.id)
        self._audit('user_registered', {'role': role}, user_id=user.id)
        return self._summary(user)

    def login(self, email, password):
        """Verify credentials and return ``{userId, email, name}``."""
        user = self.get_user_by_email(email)
        if user is None:
            self.password_service.verify_unknown(password)
        if user is None or not self.password_service.verify_password(password, user.password_hash):
            self._audit('failed_login', {'reason': 'bad_credentials'})
            raise UnauthenticatedError(INVALID_CREDENTIALS)
        if not user.is_active:
            self._audit('failed_login', {'reason': 'inactive'}, user_id=user.id)
            raise UnauthenticatedError(INVALID_CREDENTIALS)

        if self.password_service.needs_rehash(user.password_hash):
            user.password_hash = self.password_service.hash_password(password)
            db.session.commit()

        self._audit('successful_login', {'role': user.role}, user_id=user.id)
        return self._summary(user)

    def issue_token(self, user_id):
        user = self.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return self.token_manager.generate_token(user.id, role=user.role)

    def authenticate(self, token):
        """Resolve a bearer token into an Identity carrying the stored role."""
        claims = self.token_manager.validate_token(token)
        if claims is None:
            raise UnauthenticatedError("Invalid or expired token")
        user = self.get_user(claims['user_id'])
        if user is None or not user.is_active:
            raise UnauthenticatedError("Invalid or expired token")
        return Identity(user.id, user.role)

    def change_password(self, user_id, current_password, new_password):
        """Replace the password of ``user_id`` after re-checking the current one."""
        user = self.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")
        if not self.password_service.verify_password(current_password, user.password_hash):
            self._audit('failed_password_change', {'reason': 'bad_password'}, user_id=user.id)
            raise UnauthenticatedError("Current password is incorrect")
        user.password_hash = self.password_service.hash_password(new_password)
        db.session.commit()
        self._audit('password_changed', {}, user_id=user.id)

    def profile(self, user):
        return {
            'id': user.id,
            'email': user.email,
            'name': user.name,
            'role': user.role,
            'roles': [user.role],
            'is_active': user.is_active,
            'user_metadata': dict(user.user_metadata or {}),
            'created_at': user.created_at.isoformat() if user.created_at else None,
        }

    def get_current_user(self, identity):
        user = self.get_user(identity.user_id)
        if user is None:
            return None
        return self.profile(user)

    def list_users(self):
        counts = dict(
            db.session.query(HubRecord.user_id, func.count(HubRecord.id))
            .group_by(HubRecord.user_id)
            .all()
        )
        users = db.session.query(User).order_by(User.created_at.desc()).all()
        result = []
        for user in users:
            item = self.profile(user)
            item['record_count'] = counts.get(user.id, 0)
            result.append(item)
        return result

    def set_user_active(self, user_id, is_active, acting_user_id=None):
        if not isinstance(is_active, bool):
            raise ValidationError("is_active must be a boolean", errors={'is_active': 'must be a boolean'})
        user = self.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")
        user.is_active = is_active
        db.session.commit()
        self._audit('user_status_changed', {'target_user_id': user.id, 'is_active': is_active},
                    user_id=acting_user_id)
        return self.profile(user)

    def set_user_role(self, user_id, role, acting_user_id=None):
        role = self._check_role(role)
        user = self.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")
        user.role = role
        db.session.commit()
        self._audit('user_role_changed', {'target_user_id': user.id, 'role': role},
                    user_id=acting_user_id)
        return self.profile(user)
