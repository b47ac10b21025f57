import pytest

from agency import get_db
from agency.models.audit import AuditLog
from agency.models.finance import Payment, Revenue
from agency.models.task import Comment, Task
from agency.models.workspace import Project, ProjectEmployee, Workspace
from tests.test_utils_seed import Agency, make_comment, make_payment, make_revenue


@pytest.fixture()
def world(app_instance):
    return Agency(app_instance)


def _names(resp):
    assert resp.status_code == 200, resp.get_json()
    return sorted(w['name'] for w in resp.get_json()['data'])


def test_list_is_scoped_per_role(client, world):
    assert _names(client.get('/workspaces', headers=world.headers(world.admin))) == ['Alice Co', 'Bob Ltd']
    assert _names(client.get('/workspaces', headers=world.headers(world.alice))) == ['Alice Co']
    assert _names(client.get('/workspaces', headers=world.headers(world.bob))) == ['Bob Ltd']
    assert _names(client.get('/workspaces', headers=world.headers(world.emma))) == ['Alice Co']


def test_list_pagination_meta(client, world):
    resp = client.get('/workspaces?limit=1&offset=1', headers=world.headers(world.admin))
    page = resp.get_json()['pagination']
    assert page == {'total': 2, 'limit': 1, 'offset': 1, 'returned': 1}
    assert client.get('/workspaces?limit=abc', headers=world.headers(world.admin)).status_code == 400


def test_cross_client_read_is_forbidden(client, world):
    resp = client.get(f'/workspaces/{world.ws_alice.id}', headers=world.headers(world.bob))
    assert resp.status_code == 403
    assert 'data' not in resp.get_json()
    assert 'Alice Co' not in resp.get_data(as_text=True)
    ok = client.get(f'/workspaces/{world.ws_alice.id}', headers=world.headers(world.alice))
    assert ok.status_code == 200
    assert ok.get_json()['clientId'] == world.alice.id


def test_missing_workspace_does_not_leak_existence(client, world):
    bob = world.headers(world.bob)
    missing = client.get('/workspaces/does-not-exist', headers=bob)
    foreign = client.get(f'/workspaces/{world.ws_alice.id}', headers=bob)
    assert missing.status_code == foreign.status_code == 403
    assert missing.get_json() == foreign.get_json()
    admin_missing = client.get('/workspaces/does-not-exist', headers=world.headers(world.admin))
    assert admin_missing.status_code == 404
    assert admin_missing.get_json()['error']['reason'] == 'NotFound'


def test_admin_creates_workspace_for_client_only(client, world):
    admin = world.headers(world.admin)
    resp = client.post('/workspaces', json={'name': 'Carol Inc', 'clientId': world.alice.id}, headers=admin)
    assert resp.status_code == 201, resp.get_json()
    assert resp.get_json()['clientId'] == world.alice.id
    bad = client.post('/workspaces', json={'name': 'Nope', 'clientId': world.emma.id}, headers=admin)
    assert bad.status_code == 400
    assert client.post('/workspaces', json={'clientId': world.alice.id}, headers=admin).status_code == 400
    audit = get_db().query(AuditLog).filter(AuditLog.action == 'WORKSPACE.CREATE').one()
    assert audit.actor_user_id == world.admin.id
    assert audit.entity_id == resp.get_json()['id']


@pytest.mark.parametrize('who', ['alice', 'emma'])
def test_non_admin_writes_are_forbidden(client, world, who):
    headers = world.headers(getattr(world, who))
    assert client.post('/workspaces', json={'name': 'X', 'clientId': world.alice.id}, headers=headers).status_code == 403
    assert client.put(f'/workspaces/{world.ws_alice.id}', json={'name': 'X'}, headers=headers).status_code == 403
    assert client.delete(f'/workspaces/{world.ws_alice.id}', headers=headers).status_code == 403
    assert get_db().get(Workspace, world.ws_alice.id).name == 'Alice Co'


def test_admin_update_records_diff(client, world):
    resp = client.put(f'/workspaces/{world.ws_bob.id}', json={'name': 'Bob Holdings'}, headers=world.headers(world.admin))
    assert resp.status_code == 200
    assert resp.get_json()['name'] == 'Bob Holdings'
    audit = get_db().query(AuditLog).filter(AuditLog.action == 'WORKSPACE.UPDATE').one()
    assert audit.meta['changes']['name'] == {'before': 'Bob Ltd', 'after': 'Bob Holdings'}


def test_delete_cascades_through_the_chain(client, world):
    make_comment(world.t1, world.alice)
    make_payment(world.emma, world.p1)
    make_revenue(world.alice, world.p1)
    resp = client.delete(f'/workspaces/{world.ws_alice.id}', headers=world.headers(world.admin))
    assert resp.status_code == 204
    session = get_db()
    assert session.get(Workspace, world.ws_alice.id) is None
    for model in (Project, Task, Comment, Payment, Revenue, ProjectEmployee):
        remaining = session.query(model).all()
        if model is Project:
            assert [p.id for p in remaining] == [world.p_bob.id]
        else:
            assert remaining == []
