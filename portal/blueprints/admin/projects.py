from flask import jsonify, request
from flask_login import login_required
from ...errors import BadRequest, NotFound
from ...extensions import db
from ...models.project import Project, PROJECT_STATUSES
from ...models.user import User
from ...security import roles_required
from . import admin_bp
from .utils import _parse_date, _require_text


def _get_project(project_id) -> Project:
    project = db.session.get(Project, project_id)
    if project is None:
        raise NotFound('Project not found')
    return project


def _apply_project_fields(project: Project, data: dict):
    if 'description' in data:
        project.description = (data.get('description') or '').strip() or None
    if 'status' in data:
        status = (data.get('status') or '').strip()
        if status not in PROJECT_STATUSES:
            raise BadRequest(f"status must be one of: {', '.join(PROJECT_STATUSES)}")
        project.status = status
    if 'progress' in data:
        try:
            progress = int(data.get('progress'))
        except (TypeError, ValueError):
            raise BadRequest('progress must be an integer')
        if not 0 <= progress <= 100:
            raise BadRequest('progress must be between 0 and 100')
        project.progress = progress
    if 'estimated_delivery' in data:
        project.estimated_delivery = _parse_date(data.get('estimated_delivery'), 'estimated_delivery')


@admin_bp.get('/projects')
@login_required
@roles_required('admin')
def projects_list():
    q = Project.query
    client_id = request.args.get('client_id')
    if client_id:
        q = q.filter_by(client_id=client_id)
    projects = q.order_by(Project.created_at.desc()).all()
    return jsonify([p.to_dict() for p in projects])


@admin_bp.post('/projects')
@login_required
@roles_required('admin')
def projects_create():
    data = request.get_json(silent=True) or {}
    client = db.session.get(User, data.get('client_id') or '')
    if client is None or client.role != 'client':
        raise BadRequest('client_id must reference an existing client')

    project = Project(client_id=client.id, name=_require_text(data, 'name', 200))
    _apply_project_fields(project, data)
    db.session.add(project)
    db.session.commit()
    return jsonify(project.to_dict()), 201


@admin_bp.patch('/projects/<project_id>')
@login_required
@roles_required('admin')
def projects_update(project_id):
    project = _get_project(project_id)
    data = request.get_json(silent=True) or {}
    if 'name' in data:
        project.name = _require_text(data, 'name', 200)
    _apply_project_fields(project, data)
    db.session.commit()
    return jsonify(project.to_dict())
