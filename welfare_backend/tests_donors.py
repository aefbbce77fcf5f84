from welfare_backend.app import app
from welfare_backend.models import Donor


DONOR = {
    'name': 'Fatima Noor',
    'email': 'fatima@example.com',
    'password': 'secret123',
    'phone': '+92 300 1234567',
    'address': {'city': 'Karachi', 'country': 'Pakistan', 'postalCode': '74000'},
}


def test_register_login_and_profile(client):
    r = client.post('/api/donors/register', json=DONOR)
    assert r.status_code == 201
    donor = r.get_json()['data']['donor']
    assert donor['address'] == {'street': None, 'city': 'Karachi', 'country': 'Pakistan', 'postalCode': '74000'}
    assert donor['isAnonymous'] is False

    r = client.post('/api/donors/login', json={'email': 'FATIMA@example.com', 'password': 'secret123'})
    assert r.status_code == 200
    headers = {'Authorization': f"Bearer {r.get_json()['data']['token']}"}

    r = client.put('/api/donors/profile', json={'isAnonymous': True, 'address': {'street': '12 Clifton Rd'}}, headers=headers)
    assert r.status_code == 200
    data = r.get_json()['data']
    assert data['isAnonymous'] is True
    assert data['address']['street'] == '12 Clifton Rd'
    assert data['address']['city'] == 'Karachi'


def test_duplicate_email_is_rejected(client):
    assert client.post('/api/donors/register', json=DONOR).status_code == 201
    r = client.post('/api/donors/register', json=dict(DONOR, name='Someone Else'))
    assert r.status_code == 400
    assert r.get_json()['success'] is False
    with app.app_context():
        assert Donor.query.filter_by(email='fatima@example.com').count() == 1


def test_invalid_login(client):
    client.post('/api/donors/register', json=DONOR)
    assert client.post('/api/donors/login', json={'email': 'fatima@example.com', 'password': 'nope'}).status_code == 401
    assert client.post('/api/donors/login', json={'email': 'nobody@example.com', 'password': 'secret123'}).status_code == 401
    assert client.post('/api/donors/login', json={}).status_code == 400


def test_admin_token_is_not_a_donor_token(client, admin_headers):
    r = client.get('/api/donors/profile', headers=admin_headers)
    assert r.status_code == 403
    assert r.get_json()['message'] == 'Access denied. Donor only.'


def test_admin_donor_management(client, admin_headers, donor_headers):
    client.post('/api/donors/register', json=DONOR)

    r = client.get('/api/donors', headers=admin_headers)
    assert r.status_code == 200
    assert r.get_json()['pagination']['total'] == 2

    r = client.get('/api/donors', query_string={'search': 'fatima', 'sortBy': 'name', 'order': 'asc'}, headers=admin_headers)
    donors = r.get_json()['data']
    assert [d['email'] for d in donors] == ['fatima@example.com']

    r = client.get('/api/donors', query_string={'sortBy': 'name', 'order': 'asc'}, headers=admin_headers)
    assert [d['name'] for d in r.get_json()['data']] == ['Ayesha Khan', 'Fatima Noor']

    donor_id = donors[0]['id']
    r = client.get(f'/api/donors/{donor_id}', headers=admin_headers)
    assert r.get_json()['data']['donations'] == []
    assert client.get('/api/donors/999', headers=admin_headers).status_code == 404

    # deactivating locks the donor out
    me = client.get('/api/donors/profile', headers=donor_headers).get_json()['data']
    r = client.put(f"/api/donors/{me['id']}/status", json={'isActive': False}, headers=admin_headers)
    assert r.status_code == 200
    assert r.get_json()['data']['isActive'] is False
    r = client.get('/api/donors/profile', headers=donor_headers)
    assert r.status_code == 401
    assert r.get_json()['message'] == 'Donor account is deactivated'
