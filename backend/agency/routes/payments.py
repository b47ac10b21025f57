from __future__ import annotations
from flask import Blueprint, abort

from agency import get_db
from agency.constants.domain import Action, CURRENCIES, DEFAULT_CURRENCY, ListScope, ResourceType, Role
from agency.decorators.audit import audit_log
from agency.decorators.auth import require_auth, current_caller
from agency.models.finance import Payment
from agency.models.identity import utc_now
from agency.models.workspace import Project
from agency.services.ownership import OwnershipResolver
from agency.services.policy import authorize, list_scope, operation
from agency.utils.listing import empty_page, paginated
from agency.utils.validation import json_body, parse_amount, parse_date, validate_choice, iso

payments_bp = Blueprint('payments', __name__)

UPDATABLE = ('amount', 'currency', 'status', 'date')


def _payment_json(p: Payment):
    return {
        'id': p.id,
        'employeeId': p.employee_id,
        'projectId': p.project_id,
        'amount': p.amount,
        'currency': p.currency,
        'status': p.status,
        'date': iso(p.date),
        'createdAt': iso(p.created_at),
    }


def _prefetch_payment(payment_id):
    p = get_db().get(Payment, payment_id) if payment_id else None
    return _payment_json(p) if p else {}


@payments_bp.get('')
@require_auth()
def list_payments():
    caller = current_caller()
    authorize(caller, operation(ResourceType.PAYMENT, Action.LIST))
    scope = list_scope(caller, ResourceType.PAYMENT)
    q = get_db().query(Payment)
    if scope is ListScope.PAYEE:
        q = q.filter(Payment.employee_id == caller.id)
    elif scope is not ListScope.ALL:
        # clients have no payments; an empty page rather than an error
        return empty_page()
    q = q.order_by(Payment.date.desc(), Payment.created_at.desc(), Payment.id.asc())
    return paginated(q, _payment_json)


@payments_bp.get('/<payment_id>')
@require_auth()
def get_payment(payment_id: str):
    payment, ctx = OwnershipResolver().payment_access(payment_id)
    authorize(current_caller(), operation(ResourceType.PAYMENT, Action.READ), ctx)
    return _payment_json(payment)


@payments_bp.post('')
@require_auth()
@audit_log('PAYMENT.CREATE', entity='Payment', entity_id_key='id', meta_keys=['employeeId', 'projectId', 'amount', 'currency'])
def create_payment():
    authorize(current_caller(), operation(ResourceType.PAYMENT, Action.CREATE))
    data = json_body()
    employee_id = data.get('employeeId')
    if not employee_id or not OwnershipResolver().users_with_role([employee_id], Role.EMPLOYEE.value):
        abort(400, description='employeeId must reference an employee')
    session = get_db()
    project_id = data.get('projectId')
    if not project_id or session.get(Project, str(project_id)) is None:
        abort(400, description='projectId must reference a project')
    p = Payment(
        employee_id=str(employee_id),
        project_id=str(project_id),
        amount=parse_amount(data.get('amount')),
        currency=validate_choice(data.get('currency') or DEFAULT_CURRENCY, CURRENCIES, 'currency'),
        status=validate_choice(data.get('status') or Payment.STATUS_UNPAID, Payment.ALL_STATUSES),
        date=parse_date(data.get('date'), 'date') or utc_now().date(),
    )
    session.add(p)
    session.commit()
    return _payment_json(p), 201


@payments_bp.put('/<payment_id>')
@require_auth()
@audit_log('PAYMENT.UPDATE', entity='Payment', entity_id_key='id', diff_keys=['amount', 'currency', 'status', 'date'],
           pre_fetch=lambda a, kw: _prefetch_payment(kw.get('payment_id')))
def update_payment(payment_id: str):
    data = json_body()
    changes = {k: data[k] for k in UPDATABLE if k in data}
    payment, ctx = OwnershipResolver().payment_access(payment_id)
    authorize(current_caller(), operation(ResourceType.PAYMENT, Action.UPDATE, changes), ctx)
    if not changes:
        abort(400, description='No updatable fields supplied')
    if 'amount' in changes:
        payment.amount = parse_amount(changes['amount'])
    if 'currency' in changes:
        payment.currency = validate_choice(changes['currency'], CURRENCIES, 'currency')
    if 'status' in changes:
        payment.status = validate_choice(changes['status'], Payment.ALL_STATUSES)
    if 'date' in changes:
        payment.date = parse_date(changes['date'], 'date') or payment.date
    get_db().commit()
    return _payment_json(payment)


@payments_bp.delete('/<payment_id>')
@require_auth()
@audit_log('PAYMENT.DELETE', entity='Payment', entity_id_arg='payment_id')
def delete_payment(payment_id: str):
    payment, ctx = OwnershipResolver().payment_access(payment_id)
    authorize(current_caller(), operation(ResourceType.PAYMENT, Action.DELETE), ctx)
    session = get_db()
    session.delete(payment)
    session.commit()
    return '', 204
