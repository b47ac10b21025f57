from __future__ import annotations
from flask import Blueprint, request, abort

from agency import get_db
from agency.constants.domain import Action, ResourceType
from agency.decorators.audit import audit_log
from agency.decorators.auth import require_auth, current_caller
from agency.models.task import Comment
from agency.services.ownership import OwnershipResolver
from agency.services.policy import authorize, operation
from agency.utils.listing import paginated
from agency.utils.validation import json_body, require_text, iso

comments_bp = Blueprint('comments', __name__)


def _comment_json(c: Comment):
    return {
        'id': c.id,
        'taskId': c.task_id,
        'authorId': c.author_id,
        'authorName': c.author.name if c.author else None,
        'content': c.content,
        'createdAt': iso(c.created_at),
    }


@comments_bp.get('')
@require_auth()
def list_comments():
    task_id = request.args.get('task_id')
    if not task_id:
        abort(400, description='task_id is required')
    _, ctx = OwnershipResolver().task_access(task_id)
    authorize(current_caller(), operation(ResourceType.COMMENT, Action.LIST), ctx)
    q = (
        get_db().query(Comment)
        .filter(Comment.task_id == task_id)
        .order_by(Comment.created_at.asc(), Comment.id.asc())
    )
    return paginated(q, _comment_json)


@comments_bp.post('')
@require_auth()
@audit_log('COMMENT.CREATE', entity='Comment', entity_id_key='id', meta_keys=['taskId'])
def create_comment():
    caller = current_caller()
    data = json_body()
    task_id = data.get('taskId')
    if not task_id:
        abort(400, description='taskId is required')
    resolved, ctx = OwnershipResolver().task_access(str(task_id))
    authorize(caller, operation(ResourceType.COMMENT, Action.CREATE), ctx)
    content = require_text(data, 'content')
    session = get_db()
    c = Comment(task_id=resolved.task.id, author_id=caller.id, content=content)
    session.add(c)
    session.commit()
    return _comment_json(c), 201
