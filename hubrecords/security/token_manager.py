# hubrecords/security/token_manager.py
import logging
from datetime import timedelta
from flask_jwt_extended import create_access_token, decode_token
from flask import Flask

logger = logging.getLogger(__name__)


# Bearer token issue and validation using Flask-JWT-Extended.
# Tokens carry the user id as identity and the role as an extra claim.
class TokenManager:
    def __init__(self, app: Flask = None):
        if app:
            self.init_app(app)

    def init_app(self, app: Flask):
        app.config.setdefault("JWT_SECRET_KEY", "change_this_secret_key")
        app.config.setdefault("JWT_ACCESS_TOKEN_EXPIRES", timedelta(days=7))

    def generate_token(self, user_id, role: str = "user", expires_in: int = None) -> str:
        # Identity must be a string for the "sub" claim
        expires_delta = timedelta(seconds=expires_in) if expires_in is not None else None
        kwargs = {"additional_claims": {"role": role}}
        if expires_delta is not None:
            kwargs["expires_delta"] = expires_delta
        return create_access_token(identity=str(user_id), **kwargs)

    def validate_token(self, token: str):
        # Return {"user_id", "role"} if token is valid, else None.
        if not token:
            return None
        try:
            decoded = decode_token(token, allow_expired=False)
        except Exception as e:
            logger.warning("Token validation failed: %s", type(e).__name__)
            return None
        user_id = decoded.get("sub")
        if not user_id:
            return None
        return {"user_id": user_id, "role": decoded.get("role", "user")}

    @staticmethod
    def extract_bearer(header_value):
        # "Bearer <token>" -> "<token>"; anything else -> None
        if not header_value:
            return None
        scheme, _, token = header_value.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return None
        return token.strip()
