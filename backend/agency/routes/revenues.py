from __future__ import annotations
from flask import Blueprint, abort

from agency import get_db
from agency.constants.domain import Action, CURRENCIES, DEFAULT_CURRENCY, ListScope, ResourceType, Role
from agency.decorators.audit import audit_log
from agency.decorators.auth import require_auth, current_caller
from agency.models.finance import Revenue
from agency.models.identity import utc_now
from agency.models.workspace import Project
from agency.services.ownership import OwnershipResolver
from agency.services.policy import authorize, list_scope, operation
from agency.utils.listing import empty_page, paginated
from agency.utils.validation import json_body, parse_amount, parse_date, validate_choice, iso

revenues_bp = Blueprint('revenues', __name__)

UPDATABLE = ('amount', 'currency', 'status', 'dateReceived')


def _revenue_json(r: Revenue):
    return {
        'id': r.id,
        'clientId': r.client_id,
        'projectId': r.project_id,
        'amount': r.amount,
        'currency': r.currency,
        'status': r.status,
        'dateReceived': iso(r.date_received),
        'createdAt': iso(r.created_at),
    }


def _prefetch_revenue(revenue_id):
    r = get_db().get(Revenue, revenue_id) if revenue_id else None
    return _revenue_json(r) if r else {}


@revenues_bp.get('')
@require_auth()
def list_revenues():
    caller = current_caller()
    authorize(caller, operation(ResourceType.REVENUE, Action.LIST))
    if list_scope(caller, ResourceType.REVENUE) is not ListScope.ALL:
        return empty_page()
    q = get_db().query(Revenue).order_by(Revenue.date_received.desc(), Revenue.created_at.desc(), Revenue.id.asc())
    return paginated(q, _revenue_json)


@revenues_bp.get('/<revenue_id>')
@require_auth()
def get_revenue(revenue_id: str):
    revenue, ctx = OwnershipResolver().revenue_access(revenue_id)
    authorize(current_caller(), operation(ResourceType.REVENUE, Action.READ), ctx)
    return _revenue_json(revenue)


@revenues_bp.post('')
@require_auth()
@audit_log('REVENUE.CREATE', entity='Revenue', entity_id_key='id', meta_keys=['clientId', 'projectId', 'amount', 'currency'])
def create_revenue():
    authorize(current_caller(), operation(ResourceType.REVENUE, Action.CREATE))
    data = json_body()
    client_id = data.get('clientId')
    if not client_id or not OwnershipResolver().users_with_role([client_id], Role.CLIENT.value):
        abort(400, description='clientId must reference a client')
    session = get_db()
    project_id = data.get('projectId')
    if not project_id or session.get(Project, str(project_id)) is None:
        abort(400, description='projectId must reference a project')
    r = Revenue(
        client_id=str(client_id),
        project_id=str(project_id),
        amount=parse_amount(data.get('amount')),
        currency=validate_choice(data.get('currency') or DEFAULT_CURRENCY, CURRENCIES, 'currency'),
        status=validate_choice(data.get('status') or Revenue.STATUS_PENDING, Revenue.ALL_STATUSES),
        date_received=parse_date(data.get('dateReceived'), 'dateReceived') or utc_now().date(),
    )
    session.add(r)
    session.commit()
    return _revenue_json(r), 201


@revenues_bp.put('/<revenue_id>')
@require_auth()
@audit_log('REVENUE.UPDATE', entity='Revenue', entity_id_key='id', diff_keys=['amount', 'currency', 'status', 'dateReceived'],
           pre_fetch=lambda a, kw: _prefetch_revenue(kw.get('revenue_id')))
def update_revenue(revenue_id: str):
    data = json_body()
    changes = {k: data[k] for k in UPDATABLE if k in data}
    revenue, ctx = OwnershipResolver().revenue_access(revenue_id)
    authorize(current_caller(), operation(ResourceType.REVENUE, Action.UPDATE, changes), ctx)
    if not changes:
        abort(400, description='No updatable fields supplied')
    if 'amount' in changes:
        revenue.amount = parse_amount(changes['amount'])
    if 'currency' in changes:
        revenue.currency = validate_choice(changes['currency'], CURRENCIES, 'currency')
    if 'status' in changes:
        revenue.status = validate_choice(changes['status'], Revenue.ALL_STATUSES)
    if 'dateReceived' in changes:
        revenue.date_received = parse_date(changes['dateReceived'], 'dateReceived') or revenue.date_received
    get_db().commit()
    return _revenue_json(revenue)


@revenues_bp.delete('/<revenue_id>')
@require_auth()
@audit_log('REVENUE.DELETE', entity='Revenue', entity_id_arg='revenue_id')
def delete_revenue(revenue_id: str):
    revenue, ctx = OwnershipResolver().revenue_access(revenue_id)
    authorize(current_caller(), operation(ResourceType.REVENUE, Action.DELETE), ctx)
    session = get_db()
    session.delete(revenue)
    session.commit()
    return '', 204
