# portal/security.py
from functools import wraps
from typing import Optional

from flask import current_app, request
from flask_login import current_user
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired

from .errors import Forbidden, Unauthorized
from .extensions import db, login_manager
from .models.user import User


def _ts() -> URLSafeTimedSerializer:
    secret_key = current_app.config.get("SECRET_KEY")
    salt = current_app.config.get("API_TOKEN_SALT", "api-token")
    return URLSafeTimedSerializer(secret_key=secret_key, salt=salt)


def issue_api_token(user: User) -> str:
    return _ts().dumps({"uid": user.id, "role": user.role})


def verify_api_token(token: str) -> Optional[str]:
    max_age = current_app.config.get("API_TOKEN_MAX_AGE", 60 * 60 * 12)
    try:
        data = _ts().loads(token, max_age=max_age)
        return str(data["uid"])
    except (BadSignature, SignatureExpired, KeyError, TypeError):
        return None


def _bearer_token() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


@login_manager.request_loader
def load_user_from_request(req):
    token = _bearer_token()
    if not token:
        return None
    uid = verify_api_token(token)
    return db.session.get(User, uid) if uid else None


@login_manager.unauthorized_handler
def unauthorized():
    if not request.headers.get("Authorization"):
        raise Unauthorized("Missing authorization header")
    raise Unauthorized("Invalid authentication token")


def roles_required(*roles):
    """Use after @login_required."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if getattr(current_user, "role", None) not in roles:
                raise Forbidden()
            return fn(*args, **kwargs)
        return wrapper
    return decorator
