from welfare_backend.app import app
from welfare_backend.auth import generate_token
from welfare_backend.extensions import db
from welfare_backend.models import Admin


def test_admin_login_and_protected_routes(client):
    r = client.post('/api/admin/register', json={'name': 'Zara', 'email': 'Zara@Welfare.org', 'password': 'secret123'})
    assert r.status_code == 201
    assert r.get_json()['data']['admin']['email'] == 'zara@welfare.org'
    assert 'passwordHash' not in r.get_json()['data']['admin']

    # login with wrong password
    r = client.post('/api/admin/login', json={'email': 'zara@welfare.org', 'password': 'wrong'})
    assert r.status_code == 401

    # missing fields
    r = client.post('/api/admin/login', json={'email': 'zara@welfare.org'})
    assert r.status_code == 400
    assert r.get_json()['message'] == 'Please provide email and password'

    r = client.post('/api/admin/login', json={'email': 'zara@welfare.org', 'password': 'secret123'})
    assert r.status_code == 200
    token = r.get_json()['data']['token']
    assert r.get_json()['data']['admin']['lastLogin'] is not None

    # protected route without token
    r = client.get('/api/admin/profile')
    assert r.status_code == 401
    assert r.get_json()['message'] == 'Not authorized to access this route'

    r = client.get('/api/admin/profile', headers={'Authorization': f'Bearer {token}'})
    assert r.status_code == 200
    assert r.get_json()['data']['name'] == 'Zara'


def test_duplicate_admin_and_validation(client):
    body = {'name': 'Ali', 'email': 'ali@welfare.org', 'password': 'secret123'}
    assert client.post('/api/admin/register', json=body).status_code == 201
    r = client.post('/api/admin/register', json=body)
    assert r.status_code == 400
    with app.app_context():
        assert Admin.query.filter_by(email='ali@welfare.org').count() == 1

    r = client.post('/api/admin/register', json=dict(body, email='other@welfare.org', password='123'))
    assert r.status_code == 400
    assert r.get_json()['message'] == 'Password must be at least 6 characters'

    r = client.post('/api/admin/register', json=dict(body, email='third@welfare.org', role='owner'))
    assert r.status_code == 400


def test_registration_can_be_switched_off(client, monkeypatch):
    monkeypatch.setitem(app.config, 'ADMIN_REGISTRATION_ENABLED', False)
    r = client.post('/api/admin/register', json={'name': 'Ali', 'email': 'ali@welfare.org', 'password': 'secret123'})
    assert r.status_code == 403


def test_bad_and_expired_tokens(client, admin_headers, monkeypatch):
    r = client.get('/api/admin/profile', headers={'Authorization': 'Bearer not-a-token'})
    assert r.status_code == 401
    assert r.get_json()['error'] == 'Invalid token'

    monkeypatch.setitem(app.config, 'TOKEN_EXPIRY', -1)
    r = client.get('/api/admin/profile', headers=admin_headers)
    assert r.status_code == 401
    assert r.get_json()['error'] == 'Token expired'


def test_deactivated_admin_is_rejected(client, admin_headers):
    with app.app_context():
        admin = Admin.query.filter_by(email='admin@welfare.org').one()
        admin.is_active = False
        db.session.commit()

    r = client.get('/api/statistics/dashboard', headers=admin_headers)
    assert r.status_code == 401
    assert r.get_json()['message'] == 'Admin account is deactivated'

    r = client.post('/api/admin/login', json={'email': 'admin@welfare.org', 'password': 'secret123'})
    assert r.status_code == 401


def test_token_for_missing_admin(client):
    with app.test_request_context():
        token = generate_token(999, 'admin')
    r = client.get('/api/admin/profile', headers={'Authorization': f'Bearer {token}'})
    assert r.status_code == 401
    assert r.get_json()['message'] == 'Admin not found'


def test_donor_token_cannot_reach_admin_routes(client, donor_headers):
    for method, path in (('get', '/api/admin/profile'), ('get', '/api/donors'), ('get', '/api/contact/messages'),
                         ('get', '/api/statistics/donors'), ('put', '/api/about')):
        r = getattr(client, method)(path, headers=donor_headers, json={})
        assert r.status_code == 403, path
        assert r.get_json()['message'] == 'Access denied. Admin only.'


def test_update_profile_and_reset_password(client, admin_headers):
    client.post('/api/admin/register', json={'name': 'Other', 'email': 'other@welfare.org', 'password': 'secret123'})

    r = client.put('/api/admin/profile', json={'email': 'other@welfare.org'}, headers=admin_headers)
    assert r.status_code == 400

    r = client.put('/api/admin/profile', json={'name': 'Renamed', 'email': 'renamed@welfare.org'}, headers=admin_headers)
    assert r.status_code == 200
    assert r.get_json()['data']['email'] == 'renamed@welfare.org'

    r = client.put('/api/admin/reset-password', json={'currentPassword': 'wrong', 'newPassword': 'newsecret'}, headers=admin_headers)
    assert r.status_code == 401

    r = client.put('/api/admin/reset-password', json={'currentPassword': 'secret123', 'newPassword': 'newsecret'}, headers=admin_headers)
    assert r.status_code == 200

    assert client.post('/api/admin/login', json={'email': 'renamed@welfare.org', 'password': 'secret123'}).status_code == 401
    assert client.post('/api/admin/login', json={'email': 'renamed@welfare.org', 'password': 'newsecret'}).status_code == 200


def test_create_admin_script(client):
    from welfare_backend.scripts.create_admin import main

    assert main(['Ops Lead', 'Ops@Welfare.org', 'bootstrap1', '--role', 'superadmin']) == 0
    r = client.post('/api/admin/login', json={'email': 'ops@welfare.org', 'password': 'bootstrap1'})
    assert r.status_code == 200
    assert r.get_json()['data']['admin']['role'] == 'superadmin'

    # running again resets the password and keeps a single account
    assert main(['Ops Lead', 'ops@welfare.org', 'bootstrap2']) == 0
    assert client.post('/api/admin/login', json={'email': 'ops@welfare.org', 'password': 'bootstrap2'}).status_code == 200
    with app.app_context():
        assert Admin.query.filter_by(email='ops@welfare.org').count() == 1

    assert main(['Ops Lead', 'ops@welfare.org', '123']) == 1
