import secrets
from flask import jsonify, request
from flask_login import login_required
from ...errors import BadRequest, Conflict
from ...extensions import db
from ...models.user import User
from ...security import roles_required
from . import admin_bp
from .utils import _require_text


@admin_bp.get('/clients')
@login_required
@roles_required('admin')
def clients_list():
    clients = User.query.filter_by(role='client').order_by(User.created_at.desc()).all()
    return jsonify([c.to_dict() for c in clients])


@admin_bp.post('/clients')
@login_required
@roles_required('admin')
def clients_create():
    data = request.get_json(silent=True) or {}
    name = _require_text(data, 'name', 120)
    email = _require_text(data, 'email', 255).lower()
    if '@' not in email:
        raise BadRequest('email is invalid')
    if User.query.filter_by(email=email).first():
        raise Conflict('A user with that email already exists.')

    user = User(name=name, email=email, company=(data.get('company') or '').strip() or None, role='client')
    # no password given -> random one; the client resets it out of band
    user.set_password(data.get('password') or secrets.token_urlsafe(16))
    db.session.add(user)
    db.session.commit()
    return jsonify(user.to_dict()), 201
