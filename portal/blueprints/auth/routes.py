# portal/blueprints/auth/routes.py
import logging
from flask import current_app, jsonify, request
from flask_login import login_required, current_user

from ...errors import BadRequest, Unauthorized
from ...models.user import User
from ...security import issue_api_token
from . import auth_bp

log = logging.getLogger(__name__)


@auth_bp.post("/token")
def token():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    if not email or not password:
        raise BadRequest("email and password are required")

    user = User.query.filter_by(email=email).first()
    if not user or not user.check_password(password):
        log.info("Failed token request for %s", email)
        raise Unauthorized("Invalid email or password")

    return jsonify({
        "access_token": issue_api_token(user),
        "token_type": "bearer",
        "expires_in": current_app.config.get("API_TOKEN_MAX_AGE"),
        "user": user.to_dict(),
    }), 200


@auth_bp.get("/me")
@login_required
def me():
    return jsonify(current_user.to_dict()), 200
