from datetime import timedelta

from agency import get_db
from agency.models.identity import User
from agency.services.tokens import SessionClaims, issue_token
from tests.test_utils_seed import make_user, auth_headers, PASSWORD


def _signup(client, email, name='Some Body', password='secret1'):
    return client.post('/auth/signup', json={'email': email, 'password': password, 'name': name})


def test_first_signup_is_admin_then_clients(client):
    first = _signup(client, 'First@Example.com')
    assert first.status_code == 201, first.get_json()
    body = first.get_json()
    assert body['user']['role'] == 'admin'
    assert body['user']['email'] == 'first@example.com'
    assert body['token'].count('.') == 2
    assert set(body['user']['profile']) == {'phone', 'address', 'companyName', 'profilePicture'}

    second = _signup(client, 'second@example.com')
    assert second.status_code == 201
    assert second.get_json()['user']['role'] == 'client'


def test_signup_validation(client):
    assert _signup(client, 'not-an-email').status_code == 400
    assert _signup(client, 'a@example.com', password='123').status_code == 400
    assert _signup(client, 'a@example.com', name='A').status_code == 400
    assert _signup(client, 'a@example.com').status_code == 201
    dup = _signup(client, 'A@example.com')
    assert dup.status_code == 400
    assert dup.get_json()['error']['detail'] == 'Email already registered'


def test_login_and_me(client):
    make_user('t@example.com', role='employee')
    resp = client.post('/auth/login', json={'email': 't@example.com', 'password': PASSWORD})
    assert resp.status_code == 200, resp.get_json()
    token = resp.get_json()['token']

    me = client.get('/auth/me', headers={'Authorization': f'Bearer {token}'})
    assert me.status_code == 200
    assert me.get_json()['user']['email'] == 't@example.com'
    assert me.get_json()['user']['role'] == 'employee'


def test_login_failures_are_uniform(client):
    make_user('t@example.com')
    wrong_pw = client.post('/auth/login', json={'email': 't@example.com', 'password': 'nope-nope'})
    unknown = client.post('/auth/login', json={'email': 'ghost@example.com', 'password': 'nope-nope'})
    assert wrong_pw.status_code == unknown.status_code == 401
    assert wrong_pw.get_json()['error'] == unknown.get_json()['error']
    assert wrong_pw.get_json()['error']['reason'] == 'Unauthenticated'


def test_disabled_account_cannot_log_in(client):
    make_user('off@example.com', disabled=True)
    resp = client.post('/auth/login', json={'email': 'off@example.com', 'password': PASSWORD})
    assert resp.status_code == 401
    err = resp.get_json()['error']
    assert err['reason'] == 'AccountDisabled'
    assert 'disabled' in err['detail']


def test_missing_and_garbage_tokens(client):
    assert client.get('/auth/me').get_json()['error']['reason'] == 'Unauthenticated'
    for header in ('Bearer garbage', 'Bearer a.b.c', 'Token abc'):
        resp = client.get('/auth/me', headers={'Authorization': header})
        assert resp.status_code == 401
        assert resp.get_json()['error']['reason'] == 'Unauthenticated'


def test_expired_token_is_401(app_instance, client):
    u = make_user('late@example.com')
    with app_instance.app_context():
        token = issue_token(SessionClaims(id=u.id, email=u.email, role=u.role_enum), lifetime=timedelta(seconds=-5))
    resp = client.get('/auth/me', headers={'Authorization': f'Bearer {token}'})
    assert resp.status_code == 401
    assert resp.get_json()['error']['detail'] == 'Token has expired'


def test_disabled_user_token_keeps_working_until_expiry(app_instance, client):
    admin = make_user('admin@example.com', role='admin')
    emma = make_user('emma@example.com', role='employee')
    emma_headers = auth_headers(app_instance, emma)
    resp = client.put(f'/users/{emma.id}', json={'disabled': True}, headers=auth_headers(app_instance, admin))
    assert resp.status_code == 200
    assert resp.get_json()['disabled'] is True
    # stateless tokens: the old token still authenticates
    assert client.get('/auth/me', headers=emma_headers).status_code == 200
    # but a fresh login is refused
    relog = client.post('/auth/login', json={'email': 'emma@example.com', 'password': PASSWORD})
    assert relog.status_code == 401


def test_recheck_flag_revokes_disabled_and_demoted_tokens(app_instance, client):
    app_instance.config['AUTHZ_RECHECK_IDENTITY'] = True
    admin = make_user('admin@example.com', role='admin')
    emma = make_user('emma@example.com', role='employee')
    other_admin = make_user('boss@example.com', role='admin')
    emma_headers = auth_headers(app_instance, emma)
    boss_headers = auth_headers(app_instance, other_admin)
    admin_headers = auth_headers(app_instance, admin)

    client.put(f'/users/{emma.id}', json={'disabled': True}, headers=admin_headers)
    resp = client.get('/auth/me', headers=emma_headers)
    assert resp.status_code == 401
    assert resp.get_json()['error']['reason'] == 'AccountDisabled'

    # demoted admin loses admin-only endpoints immediately
    assert client.get('/users', headers=boss_headers).status_code == 200
    client.put(f'/users/{other_admin.id}', json={'role': 'client'}, headers=admin_headers)
    assert client.get('/users', headers=boss_headers).status_code == 403

    session = get_db()
    session.delete(session.get(User, other_admin.id)); session.commit()
    assert client.get('/auth/me', headers=boss_headers).status_code == 401


def test_change_password(app_instance, client):
    u = make_user('pw@example.com')
    headers = auth_headers(app_instance, u)
    bad = client.post('/auth/change-password', json={'oldPassword': 'wrong-one', 'newPassword': 'brandnew'}, headers=headers)
    assert bad.status_code == 400
    short = client.post('/auth/change-password', json={'oldPassword': PASSWORD, 'newPassword': '123'}, headers=headers)
    assert short.status_code == 400
    ok = client.post('/auth/change-password', json={'oldPassword': PASSWORD, 'newPassword': 'brandnew'}, headers=headers)
    assert ok.status_code == 200
    assert client.post('/auth/login', json={'email': 'pw@example.com', 'password': 'brandnew'}).status_code == 200


def test_update_profile(app_instance, client):
    u = make_user('me@example.com')
    headers = auth_headers(app_instance, u)
    resp = client.put('/auth/profile', json={'name': 'New Name', 'companyName': 'ACME <b>', 'phone': '555'}, headers=headers)
    assert resp.status_code == 200, resp.get_json()
    body = resp.get_json()
    assert body['name'] == 'New Name'
    assert body['profile']['companyName'] == 'ACME &lt;b&gt;'
    assert body['profile']['phone'] == '555'
    assert client.put('/auth/profile', json={}, headers=headers).status_code == 400
    assert client.put('/auth/profile', json={'name': 'X'}, headers=headers).status_code == 400
