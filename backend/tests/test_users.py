import pytest

from agency import get_db
from agency.models.audit import AuditLog
from agency.models.identity import User
from tests.test_utils_seed import Agency, make_user


@pytest.fixture()
def world(app_instance):
    return Agency(app_instance)


def test_admin_lists_users_with_role_filter(client, world):
    admin = world.headers(world.admin)
    resp = client.get('/users', headers=admin)
    assert resp.status_code == 200
    assert resp.get_json()['pagination']['total'] == 5
    employees = client.get('/users?role=employee', headers=admin).get_json()['data']
    assert sorted(u['email'] for u in employees) == ['emma@agency.test', 'frank@agency.test']
    assert client.get('/users?role=wizard', headers=admin).status_code == 400


@pytest.mark.parametrize('who', ['alice', 'emma'])
def test_non_admin_cannot_list_users(client, world, who):
    assert client.get('/users', headers=world.headers(getattr(world, who))).status_code == 403


def test_read_self_or_admin(client, world):
    assert client.get(f'/users/{world.emma.id}', headers=world.headers(world.emma)).status_code == 200
    assert client.get(f'/users/{world.emma.id}', headers=world.headers(world.frank)).status_code == 403
    assert client.get(f'/users/{world.emma.id}', headers=world.headers(world.admin)).status_code == 200
    assert 'password_hash' not in client.get(f'/users/{world.emma.id}', headers=world.headers(world.emma)).get_json()


def test_admin_changes_role_and_audit_diff(client, world):
    resp = client.put(f'/users/{world.emma.id}', json={'role': 'client'}, headers=world.headers(world.admin))
    assert resp.status_code == 200
    assert resp.get_json()['role'] == 'client'
    audit = get_db().query(AuditLog).filter(AuditLog.action == 'USER.UPDATE').one()
    assert audit.entity_id == world.emma.id
    assert audit.meta['changes']['role'] == {'before': 'employee', 'after': 'client'}


def test_client_owning_workspaces_keeps_client_role(client, world):
    admin = world.headers(world.admin)
    resp = client.put(f'/users/{world.alice.id}', json={'role': 'employee'}, headers=admin)
    assert resp.status_code == 400
    assert 'workspaces' in resp.get_json()['error']['detail']
    assert get_db().get(User, world.alice.id).role == 'client'
    assert get_db().query(AuditLog).filter(AuditLog.action == 'USER.UPDATE').count() == 0
    # same role and other fields still go through
    assert client.put(f'/users/{world.alice.id}', json={'role': 'client', 'disabled': True}, headers=admin).status_code == 200
    spare = make_user('carol@example.com')
    resp = client.put(f'/users/{spare.id}', json={'role': 'employee'}, headers=admin)
    assert resp.status_code == 200
    assert resp.get_json()['role'] == 'employee'


def test_admin_cannot_disable_self(client, world):
    resp = client.put(f'/users/{world.admin.id}', json={'disabled': True}, headers=world.headers(world.admin))
    assert resp.status_code == 403
    assert resp.get_json()['error']['reason'] == 'SelfModificationForbidden'
    assert world.admin.disabled is False


def test_user_update_validation(client, world):
    admin = world.headers(world.admin)
    url = f'/users/{world.emma.id}'
    assert client.put(url, json={}, headers=admin).status_code == 400
    assert client.put(url, json={'role': 'overlord'}, headers=admin).status_code == 400
    assert client.put(url, json={'disabled': 'maybe'}, headers=admin).status_code == 400


def test_users_cannot_escalate_themselves(client, world):
    emma = world.headers(world.emma)
    assert client.put(f'/users/{world.emma.id}', json={'role': 'admin'}, headers=emma).status_code == 403
    assert client.put(f'/users/{world.emma.id}', json={'disabled': False}, headers=emma).status_code == 403
