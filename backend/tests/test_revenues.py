import pytest

from tests.test_utils_seed import Agency, make_revenue


@pytest.fixture()
def world(app_instance):
    w = Agency(app_instance)
    w.rev = make_revenue(w.alice, w.p1, 900.0)
    return w


def test_non_admin_sees_empty_list(client, world):
    for who in (world.alice, world.emma):
        resp = client.get('/revenues', headers=world.headers(who))
        assert resp.status_code == 200
        assert resp.get_json()['data'] == []
    admin = client.get('/revenues', headers=world.headers(world.admin))
    assert [r['id'] for r in admin.get_json()['data']] == [world.rev.id]


@pytest.mark.parametrize('who', ['alice', 'emma'])
def test_revenue_is_admin_only(client, world, who):
    headers = world.headers(getattr(world, who))
    url = f'/revenues/{world.rev.id}'
    assert client.get(url, headers=headers).status_code == 403
    assert client.put(url, json={'status': 'paid'}, headers=headers).status_code == 403
    assert client.delete(url, headers=headers).status_code == 403
    body = {'clientId': world.alice.id, 'projectId': world.p1.id, 'amount': 5}
    assert client.post('/revenues', json=body, headers=headers).status_code == 403


def test_admin_manages_revenue(client, world):
    admin = world.headers(world.admin)
    resp = client.post('/revenues', json={
        'clientId': world.bob.id, 'projectId': world.p_bob.id, 'amount': 1500, 'currency': 'GBP', 'dateReceived': '2024-04-02',
    }, headers=admin)
    assert resp.status_code == 201, resp.get_json()
    rid = resp.get_json()['id']
    assert resp.get_json()['status'] == 'pending'
    upd = client.put(f'/revenues/{rid}', json={'status': 'paid', 'amount': 1600}, headers=admin)
    assert upd.status_code == 200
    assert (upd.get_json()['status'], upd.get_json()['amount']) == ('paid', 1600.0)
    assert client.put(f'/revenues/{rid}', json={'status': 'unpaid'}, headers=admin).status_code == 400
    assert client.post('/revenues', json={'clientId': world.emma.id, 'projectId': world.p1.id, 'amount': 1}, headers=admin).status_code == 400
    assert client.delete(f'/revenues/{rid}', headers=admin).status_code == 204
    assert client.get(f'/revenues/{rid}', headers=admin).status_code == 404


@pytest.mark.parametrize('amount', ['NaN', 'Infinity', '1e300', 100000000])
def test_revenue_amount_must_be_finite_and_bounded(client, world, amount):
    admin = world.headers(world.admin)
    body = {'clientId': world.alice.id, 'projectId': world.p1.id, 'amount': amount}
    assert client.post('/revenues', json=body, headers=admin).status_code == 400
    resp = client.put(f'/revenues/{world.rev.id}', json={'amount': amount}, headers=admin)
    assert resp.status_code == 400
    listed = client.get('/revenues', headers=admin).get_json()['data']
    assert [(r['id'], r['amount']) for r in listed] == [(world.rev.id, 900.0)]
