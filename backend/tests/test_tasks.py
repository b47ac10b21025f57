import pytest

from agency import get_db
from agency.models.task import Task
from tests.test_utils_seed import Agency, make_project, make_task


@pytest.fixture()
def world(app_instance):
    return Agency(app_instance)


def test_assigned_employee_lists_project_tasks(client, world):
    make_task(world.p1, 'Copy', order=2)
    make_task(world.p1, 'Mockups', order=1)
    resp = client.get(f'/tasks?project_id={world.p1.id}', headers=world.headers(world.emma))
    assert resp.status_code == 200, resp.get_json()
    assert [t['title'] for t in resp.get_json()['data']] == ['Wireframes', 'Mockups', 'Copy']


def test_unassigned_employee_cannot_list_or_read(client, world):
    frank = world.headers(world.frank)
    assert client.get(f'/tasks?project_id={world.p1.id}', headers=frank).status_code == 403
    assert client.get(f'/tasks/{world.t1.id}', headers=frank).status_code == 403
    assert client.get(f'/tasks/{world.t2.id}', headers=frank).status_code == 200


def test_owner_client_reads_but_cannot_edit(client, world):
    alice = world.headers(world.alice)
    assert client.get(f'/tasks?project_id={world.p1.id}', headers=alice).status_code == 200
    assert client.get(f'/tasks/{world.t1.id}', headers=alice).status_code == 200
    assert client.put(f'/tasks/{world.t1.id}', json={'status': 'completed'}, headers=alice).status_code == 403
    assert client.get(f'/tasks/{world.t1.id}', headers=world.headers(world.bob)).status_code == 403


def test_list_requires_project_id(client, world):
    assert client.get('/tasks', headers=world.headers(world.admin)).status_code == 400


def test_task_creation_is_admin_only(client, world):
    body = {'projectId': world.p1.id, 'title': 'Launch'}
    assert client.post('/tasks', json=body, headers=world.headers(world.alice)).status_code == 403
    assert client.post('/tasks', json=body, headers=world.headers(world.emma)).status_code == 403
    resp = client.post('/tasks', json=body, headers=world.headers(world.admin))
    assert resp.status_code == 201, resp.get_json()
    created = resp.get_json()
    assert created['status'] == 'not-started'
    assert created['order'] == 1
    assert client.post('/tasks', json={'projectId': world.p1.id}, headers=world.headers(world.admin)).status_code == 400


def test_new_task_starts_unassigned_at_end_of_board(client, world):
    empty = make_project(world.ws_bob, 'Empty')
    resp = client.post('/tasks', json={
        'projectId': empty.id, 'title': 'Kickoff', 'description': 'Agenda',
        'status': 'completed', 'assignedTo': world.emma.id, 'dueDate': '2024-06-01',
    }, headers=world.headers(world.admin))
    assert resp.status_code == 201, resp.get_json()
    created = resp.get_json()
    assert created['order'] == 1
    assert created['status'] == 'not-started'
    assert created['assignedTo'] is None
    assert created['dueDate'] is None
    assert created['description'] == 'Agenda'
    second = client.post('/tasks', json={'projectId': empty.id, 'title': 'Brief'}, headers=world.headers(world.admin))
    assert second.get_json()['order'] == 2


def test_assigned_employee_updates_task(client, world):
    emma = world.headers(world.emma)
    resp = client.put(f'/tasks/{world.t1.id}', json={'status': 'in-progress', 'dueDate': '2024-05-01'}, headers=emma)
    assert resp.status_code == 200, resp.get_json()
    assert resp.get_json()['status'] == 'in-progress'
    assert resp.get_json()['dueDate'] == '2024-05-01'
    assert client.put(f'/tasks/{world.t1.id}', json={'status': 'done-ish'}, headers=emma).status_code == 400
    assert client.put(f'/tasks/{world.t1.id}', json={'assignedTo': world.alice.id}, headers=emma).status_code == 400
    assert client.put(f'/tasks/{world.t2.id}', json={'status': 'completed'}, headers=emma).status_code == 403


@pytest.mark.parametrize('order', [10 ** 20, -(10 ** 20), 'abc', True])
def test_task_order_must_be_a_storable_integer(client, world, order):
    resp = client.put(f'/tasks/{world.t1.id}', json={'order': order}, headers=world.headers(world.emma))
    assert resp.status_code == 400
    assert resp.get_json()['error']['detail'] == 'order must be an integer'
    assert get_db().get(Task, world.t1.id).order_num == 0


def test_delete_is_admin_only(client, world):
    url = f'/tasks/{world.t1.id}'
    assert client.delete(url, headers=world.headers(world.emma)).status_code == 403
    assert client.delete(url, headers=world.headers(world.alice)).status_code == 403
    assert client.delete(url, headers=world.headers(world.admin)).status_code == 204
    assert get_db().get(Task, world.t1.id) is None
