from __future__ import annotations

from functools import wraps
from typing import Optional

from flask import current_app, request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from ..app import db
from ..errors import AuthenticationError, AuthorizationError
from ..models import User
from .acl import normalize_role

_TOKEN_SALT = "tkd-auth"


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.secret_key, salt=_TOKEN_SALT)


def issue_token(user: User) -> str:
    return _serializer().dumps({"user_id": user.id, "role": user.role})


def read_token(token: str) -> dict:
    max_age = int(current_app.config.get("TOKEN_TTL_HOURS", 24)) * 3600
    try:
        payload = _serializer().loads(token, max_age=max_age)
    except SignatureExpired:
        raise AuthenticationError("Token expired") from None
    except BadSignature:
        raise AuthenticationError("Invalid token") from None
    if not isinstance(payload, dict) or "user_id" not in payload:
        raise AuthenticationError("Invalid token")
    return payload


def _bearer_token() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def load_current_user(required: bool = True) -> Optional[User]:
    token = _bearer_token()
    if not token:
        if required:
            raise AuthenticationError("Access denied. No token provided.")
        return None
    payload = read_token(token)
    user = db.session.get(User, payload["user_id"])
    if not user:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise AuthenticationError("Account is inactive")
    return user


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        user = load_current_user()
        return fn(*args, **kwargs, current_user=user)

    return wrapper


def roles_required(*roles: str):
    """Allow only users whose (normalised) role is one of ``roles``."""

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = load_current_user()
            if normalize_role(user.role) not in roles:
                current_app.logger.info(
                    "[AUTH-FAIL] forbidden user=%s role=%s path=%s",
                    user.id,
                    user.role,
                    request.path,
                )
                raise AuthorizationError()
            return fn(*args, **kwargs, current_user=user)

        return wrapper

    return decorator
