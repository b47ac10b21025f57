from __future__ import annotations
from flask import Blueprint, request, abort
from sqlalchemy import func, select

from agency import get_db
from agency.constants.domain import Action, ResourceType, Role, TASK_STATUS_DEFAULT
from agency.decorators.audit import audit_log
from agency.decorators.auth import require_auth, current_caller
from agency.models.task import Task
from agency.services.ownership import OwnershipResolver
from agency.services.policy import authorize, operation
from agency.utils.listing import paginated
from agency.utils.validation import INT_MAX, INT_MIN, clean_text, json_body, parse_date, require_text, validate_choice, iso

tasks_bp = Blueprint('tasks', __name__)

UPDATABLE = ('title', 'description', 'status', 'assignedTo', 'dueDate', 'order')


def _task_json(t: Task):
    return {
        'id': t.id,
        'projectId': t.project_id,
        'title': t.title,
        'description': t.description,
        'status': t.status,
        'assignedTo': t.assigned_to,
        'dueDate': iso(t.due_date),
        'order': t.order_num,
        'createdAt': iso(t.created_at),
    }


def _prefetch_task(task_id):
    t = get_db().get(Task, task_id) if task_id else None
    return _task_json(t) if t else {}


def _assignee(resolver: OwnershipResolver, raw):
    if raw in (None, ''):
        return None
    if not resolver.users_with_role([raw], Role.EMPLOYEE.value):
        abort(400, description='assignedTo must reference an employee')
    return str(raw)


def _order(raw) -> int:
    if isinstance(raw, bool):
        abort(400, description='order must be an integer')
    try:
        value = int(raw)
    except (TypeError, ValueError):
        abort(400, description='order must be an integer')
    if not INT_MIN <= value <= INT_MAX:
        abort(400, description='order must be an integer')
    return value


@tasks_bp.get('')
@require_auth()
def list_tasks():
    project_id = request.args.get('project_id')
    if not project_id:
        abort(400, description='project_id is required')
    _, ctx = OwnershipResolver().project_access(project_id)
    authorize(current_caller(), operation(ResourceType.TASK, Action.LIST), ctx)
    q = (
        get_db().query(Task)
        .filter(Task.project_id == project_id)
        .order_by(Task.order_num.asc(), Task.created_at.asc(), Task.id.asc())
    )
    return paginated(q, _task_json)


@tasks_bp.get('/<task_id>')
@require_auth()
def get_task(task_id: str):
    resolved, ctx = OwnershipResolver().task_access(task_id)
    authorize(current_caller(), operation(ResourceType.TASK, Action.READ), ctx)
    return _task_json(resolved.task)


@tasks_bp.post('')
@require_auth()
@audit_log('TASK.CREATE', entity='Task', entity_id_key='id', meta_keys=['title', 'projectId'])
def create_task():
    data = json_body()
    project_id = data.get('projectId')
    if not project_id:
        abort(400, description='projectId is required')
    resolved, ctx = OwnershipResolver().project_access(str(project_id))
    authorize(current_caller(), operation(ResourceType.TASK, Action.CREATE), ctx)
    title = require_text(data, 'title')
    session = get_db()
    last = session.execute(
        select(func.max(Task.order_num)).where(Task.project_id == resolved.project.id)
    ).scalar_one_or_none()
    t = Task(
        project_id=resolved.project.id,
        title=title,
        description=clean_text(data.get('description')) or None,
        # new tasks start unassigned and unscheduled at the end of the board
        status=TASK_STATUS_DEFAULT,
        order_num=(last or 0) + 1,
    )
    session.add(t)
    session.commit()
    return _task_json(t), 201


@tasks_bp.put('/<task_id>')
@require_auth()
@audit_log('TASK.UPDATE', entity='Task', entity_id_key='id', diff_keys=['title', 'status', 'assignedTo', 'dueDate', 'order'],
           pre_fetch=lambda a, kw: _prefetch_task(kw.get('task_id')))
def update_task(task_id: str):
    data = json_body()
    changes = {k: data[k] for k in UPDATABLE if k in data}
    if not changes:
        abort(400, description='No updatable fields supplied')
    resolver = OwnershipResolver()
    resolved, ctx = resolver.task_access(task_id)
    authorize(current_caller(), operation(ResourceType.TASK, Action.UPDATE, changes), ctx)
    task = resolved.task
    if 'title' in changes:
        task.title = require_text(changes, 'title')
    if 'description' in changes:
        task.description = clean_text(changes['description'], 'description') or None
    if 'status' in changes:
        task.status = validate_choice(changes['status'], Task.ALL_STATUSES)
    if 'assignedTo' in changes:
        task.assigned_to = _assignee(resolver, changes['assignedTo'])
    if 'dueDate' in changes:
        task.due_date = parse_date(changes['dueDate'], 'dueDate')
    if 'order' in changes:
        task.order_num = _order(changes['order'])
    get_db().commit()
    return _task_json(task)


@tasks_bp.delete('/<task_id>')
@require_auth()
@audit_log('TASK.DELETE', entity='Task', entity_id_arg='task_id')
def delete_task(task_id: str):
    resolved, ctx = OwnershipResolver().task_access(task_id)
    authorize(current_caller(), operation(ResourceType.TASK, Action.DELETE), ctx)
    session = get_db()
    session.delete(resolved.task)
    session.commit()
    return '', 204
