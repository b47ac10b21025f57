from __future__ import annotations
from flask import Blueprint, request, abort
from sqlalchemy import select

from agency import get_db
from agency.constants.domain import Action, ListScope, ResourceType, Role
from agency.decorators.audit import audit_log
from agency.decorators.auth import require_auth, current_caller
from agency.models.workspace import Project, ProjectEmployee, Workspace
from agency.services.ownership import OwnershipResolver
from agency.services.policy import authorize, list_scope, operation
from agency.utils.listing import empty_page, paginated
from agency.utils.validation import clean_text, json_body, require_text, iso

projects_bp = Blueprint('projects', __name__)

UPDATABLE = ('name', 'description', 'assignedEmployeeIds')


def _project_json(p: Project):
    return {
        'id': p.id,
        'workspaceId': p.workspace_id,
        'name': p.name,
        'description': p.description,
        'assignedEmployeeIds': p.assigned_employee_ids,
        'createdAt': iso(p.created_at),
    }


def _prefetch_project(project_id):
    p = get_db().get(Project, project_id) if project_id else None
    return _project_json(p) if p else {}


def _employee_ids(resolver: OwnershipResolver, raw):
    if not isinstance(raw, list):
        abort(400, description='assignedEmployeeIds must be a list')
    wanted = {str(e) for e in raw if e}
    if wanted != resolver.users_with_role(wanted, Role.EMPLOYEE.value):
        abort(400, description='assignedEmployeeIds must reference employees')
    return wanted


def _assign(project: Project, employee_ids):
    """Make the project's assignment rows match ``employee_ids`` without re-inserting kept ones."""
    for link in list(project.employee_links):
        if link.employee_id not in employee_ids:
            project.employee_links.remove(link)
    current = {link.employee_id for link in project.employee_links}
    for employee_id in sorted(employee_ids - current):
        project.employee_links.append(ProjectEmployee(employee_id=employee_id))


@projects_bp.get('')
@require_auth()
def list_projects():
    caller = current_caller()
    resolver = OwnershipResolver()
    q = get_db().query(Project)
    workspace_id = request.args.get('workspace_id')
    if workspace_id:
        _, ctx = resolver.workspace_access(workspace_id)
        authorize(caller, operation(ResourceType.WORKSPACE, Action.READ), ctx)
        q = q.filter(Project.workspace_id == workspace_id)
    authorize(caller, operation(ResourceType.PROJECT, Action.LIST))
    scope = list_scope(caller, ResourceType.PROJECT)
    if scope is ListScope.OWNED:
        q = q.join(Workspace, Workspace.id == Project.workspace_id).filter(Workspace.client_id == caller.id)
    elif scope is ListScope.ASSIGNED:
        assigned = select(ProjectEmployee.project_id).where(ProjectEmployee.employee_id == caller.id)
        q = q.filter(Project.id.in_(assigned))
    elif scope is not ListScope.ALL:
        return empty_page()
    q = q.order_by(Project.created_at.desc(), Project.id.asc())
    return paginated(q, _project_json)


@projects_bp.get('/<project_id>')
@require_auth()
def get_project(project_id: str):
    resolved, ctx = OwnershipResolver().project_access(project_id)
    authorize(current_caller(), operation(ResourceType.PROJECT, Action.READ), ctx)
    return _project_json(resolved.project)


@projects_bp.post('')
@require_auth()
@audit_log('PROJECT.CREATE', entity='Project', entity_id_key='id', meta_keys=['name', 'workspaceId'])
def create_project():
    data = json_body()
    workspace_id = data.get('workspaceId')
    if not workspace_id:
        abort(400, description='workspaceId is required')
    changes = {k: data[k] for k in UPDATABLE if k in data}
    resolver = OwnershipResolver()
    workspace, ctx = resolver.workspace_access(str(workspace_id))
    authorize(current_caller(), operation(ResourceType.PROJECT, Action.CREATE, changes), ctx)
    name = require_text(data, 'name')
    p = Project(workspace_id=workspace.id, name=name, description=clean_text(data.get('description')) or None)
    if 'assignedEmployeeIds' in changes:
        _assign(p, _employee_ids(resolver, changes['assignedEmployeeIds']))
    session = get_db()
    session.add(p)
    session.commit()
    return _project_json(p), 201


@projects_bp.put('/<project_id>')
@require_auth()
@audit_log('PROJECT.UPDATE', entity='Project', entity_id_key='id', diff_keys=['name', 'description', 'assignedEmployeeIds'],
           pre_fetch=lambda a, kw: _prefetch_project(kw.get('project_id')))
def update_project(project_id: str):
    data = json_body()
    changes = {k: data[k] for k in UPDATABLE if k in data}
    if not changes:
        abort(400, description='No updatable fields supplied')
    resolver = OwnershipResolver()
    resolved, ctx = resolver.project_access(project_id)
    authorize(current_caller(), operation(ResourceType.PROJECT, Action.UPDATE, changes), ctx)
    project = resolved.project
    if 'name' in changes:
        project.name = require_text(changes, 'name')
    if 'description' in changes:
        project.description = clean_text(changes['description'], 'description') or None
    if 'assignedEmployeeIds' in changes:
        _assign(project, _employee_ids(resolver, changes['assignedEmployeeIds']))
    get_db().commit()
    return _project_json(project)


@projects_bp.delete('/<project_id>')
@require_auth()
@audit_log('PROJECT.DELETE', entity='Project', entity_id_arg='project_id')
def delete_project(project_id: str):
    resolved, ctx = OwnershipResolver().project_access(project_id)
    authorize(current_caller(), operation(ResourceType.PROJECT, Action.DELETE), ctx)
    session = get_db()
    session.delete(resolved.project)
    session.commit()
    return '', 204
