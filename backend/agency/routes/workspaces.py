from __future__ import annotations
from flask import Blueprint, abort
from sqlalchemy import select

from agency import get_db
from agency.constants.domain import Action, ListScope, ResourceType, Role
from agency.decorators.audit import audit_log
from agency.decorators.auth import require_auth, current_caller
from agency.models.workspace import Project, ProjectEmployee, Workspace
from agency.services.ownership import OwnershipResolver
from agency.services.policy import authorize, list_scope, operation
from agency.utils.listing import empty_page, paginated
from agency.utils.validation import json_body, require_text, iso

workspaces_bp = Blueprint('workspaces', __name__)


def _workspace_json(w: Workspace):
    return {
        'id': w.id,
        'name': w.name,
        'clientId': w.client_id,
        'createdAt': iso(w.created_at),
    }


def _prefetch_workspace(workspace_id):
    w = get_db().get(Workspace, workspace_id) if workspace_id else None
    return _workspace_json(w) if w else {}


@workspaces_bp.get('')
@require_auth()
def list_workspaces():
    caller = current_caller()
    authorize(caller, operation(ResourceType.WORKSPACE, Action.LIST))
    scope = list_scope(caller, ResourceType.WORKSPACE)
    q = get_db().query(Workspace)
    if scope is ListScope.OWNED:
        q = q.filter(Workspace.client_id == caller.id)
    elif scope is ListScope.ASSIGNED:
        # workspaces holding at least one project the employee is assigned to
        assigned = (
            select(Project.workspace_id)
            .join(ProjectEmployee, ProjectEmployee.project_id == Project.id)
            .where(ProjectEmployee.employee_id == caller.id)
        )
        q = q.filter(Workspace.id.in_(assigned))
    elif scope is not ListScope.ALL:
        return empty_page()
    q = q.order_by(Workspace.created_at.desc(), Workspace.id.asc())
    return paginated(q, _workspace_json)


@workspaces_bp.get('/<workspace_id>')
@require_auth()
def get_workspace(workspace_id: str):
    workspace, ctx = OwnershipResolver().workspace_access(workspace_id)
    authorize(current_caller(), operation(ResourceType.WORKSPACE, Action.READ), ctx)
    return _workspace_json(workspace)


@workspaces_bp.post('')
@require_auth()
@audit_log('WORKSPACE.CREATE', entity='Workspace', entity_id_key='id', meta_keys=['name', 'clientId'])
def create_workspace():
    authorize(current_caller(), operation(ResourceType.WORKSPACE, Action.CREATE))
    data = json_body()
    name = require_text(data, 'name')
    client_id = data.get('clientId')
    resolver = OwnershipResolver()
    if not client_id or not resolver.users_with_role([client_id], Role.CLIENT.value):
        abort(400, description='clientId must reference a client')
    session = get_db()
    w = Workspace(name=name, client_id=str(client_id))
    session.add(w)
    session.commit()
    return _workspace_json(w), 201


@workspaces_bp.put('/<workspace_id>')
@require_auth()
@audit_log('WORKSPACE.UPDATE', entity='Workspace', entity_id_key='id', diff_keys=['name'],
           pre_fetch=lambda a, kw: _prefetch_workspace(kw.get('workspace_id')))
def update_workspace(workspace_id: str):
    data = json_body()
    workspace, ctx = OwnershipResolver().workspace_access(workspace_id)
    authorize(current_caller(), operation(ResourceType.WORKSPACE, Action.UPDATE, data), ctx)
    workspace.name = require_text(data, 'name')
    get_db().commit()
    return _workspace_json(workspace)


@workspaces_bp.delete('/<workspace_id>')
@require_auth()
@audit_log('WORKSPACE.DELETE', entity='Workspace', entity_id_arg='workspace_id')
def delete_workspace(workspace_id: str):
    workspace, ctx = OwnershipResolver().workspace_access(workspace_id)
    authorize(current_caller(), operation(ResourceType.WORKSPACE, Action.DELETE), ctx)
    session = get_db()
    # ORM cascade removes projects, assignments, tasks, comments, payments and revenues
    session.delete(workspace)
    session.commit()
    return '', 204
