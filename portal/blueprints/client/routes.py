# portal/blueprints/client/routes.py
from flask import jsonify
from flask_login import login_required, current_user
from sqlalchemy.orm import selectinload

from . import client_bp
from ...errors import NotFound
from ...extensions import db
from ...models.notification import Notification
from ...models.project import Project


# -----------------
# Dashboard
# -----------------

@client_bp.get('/projects')
@login_required
def projects():
    # Prefetch invoices for the project cards
    my_projects = (
        Project.query
        .options(selectinload(Project.invoices))
        .filter_by(client_id=current_user.id)
        .order_by(Project.created_at.desc())
        .all()
    )
    return jsonify([p.to_dict(with_invoices=True) for p in my_projects])


@client_bp.get('/projects/<project_id>')
@login_required
def project_view(project_id):
    project = db.session.get(Project, project_id)
    # hide other clients' projects behind a 404
    if project is None or (project.client_id != current_user.id and not current_user.is_admin):
        raise NotFound('Project not found')
    return jsonify(project.to_dict(with_invoices=True))


# -----------------
# Notifications
# -----------------

@client_bp.get('/notifications')
@login_required
def notifications():
    items = (
        Notification.query
        .filter_by(user_id=current_user.id)
        .order_by(Notification.created_at.desc())
        .limit(50)
        .all()
    )
    unread = Notification.query.filter_by(user_id=current_user.id, read=False).count()
    return jsonify({"unread": unread, "items": [n.to_dict() for n in items]})


@client_bp.post('/notifications/<notification_id>/read')
@login_required
def notification_read(notification_id):
    n = Notification.query.filter_by(id=notification_id, user_id=current_user.id).first()
    if n is None:
        raise NotFound('Notification not found')
    n.read = True
    db.session.commit()
    return jsonify(n.to_dict())
