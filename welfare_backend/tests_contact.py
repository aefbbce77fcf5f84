from welfare_backend.app import app
from welfare_backend.models import AboutUs, ContactSettings


def test_contact_form_submission_and_management(client, admin_headers):
    r = client.post('/api/contact/submit', json={'name': 'Imran', 'email': 'imran@example.com', 'subject': 'Volunteering',
                                                 'message': 'How can I help at the medical camp?'},
                    headers={'User-Agent': 'pytest'})
    assert r.status_code == 201
    message = r.get_json()['data']
    assert message['status'] == 'new'
    assert message['userAgent'] == 'pytest'

    r = client.post('/api/contact/submit', json={'name': 'Imran', 'email': 'imran@example.com'})
    assert r.status_code == 400
    assert r.get_json()['message'] == 'Name, email and message are required'

    assert client.get('/api/contact/messages').status_code == 401
    r = client.get('/api/contact/messages', headers=admin_headers)
    assert r.get_json()['pagination']['total'] == 1

    r = client.put(f"/api/contact/messages/{message['id']}", json={'status': 'replied'}, headers=admin_headers)
    assert r.status_code == 200
    assert r.get_json()['data']['status'] == 'replied'
    assert client.put(f"/api/contact/messages/{message['id']}", json={'status': 'spam'}, headers=admin_headers).status_code == 400

    r = client.get('/api/contact/messages', query_string={'status': 'new'}, headers=admin_headers)
    assert r.get_json()['data'] == []

    assert client.delete(f"/api/contact/messages/{message['id']}", headers=admin_headers).status_code == 200
    assert client.delete(f"/api/contact/messages/{message['id']}", headers=admin_headers).status_code == 404


def test_contact_settings_singleton(client, admin_headers):
    r = client.get('/api/contact/settings')
    assert r.status_code == 200
    assert r.get_json()['data']['contactFormEnabled'] is True
    client.get('/api/contact/settings')
    with app.app_context():
        assert ContactSettings.query.count() == 1

    r = client.put('/api/contact/settings', json={
        'phones': [{'label': 'Helpline', 'number': '+92 333 2107502', 'isPrimary': True}],
        'socialMedia': {'facebook': 'https://facebook.com/pmi'},
        'contactFormEnabled': False,
    }, headers=admin_headers)
    assert r.status_code == 200
    data = r.get_json()['data']
    assert data['phones'] == [{'label': 'Helpline', 'number': '+92 333 2107502', 'isPrimary': True}]
    assert data['socialMedia'] == {'facebook': 'https://facebook.com/pmi'}

    # disabled form refuses submissions
    r = client.post('/api/contact/submit', json={'name': 'A', 'email': 'a@example.com', 'message': 'hi'})
    assert r.status_code == 403

    assert client.put('/api/contact/settings', json={'organizationName': ''}, headers=admin_headers).status_code == 400


def test_about_us(client, admin_headers):
    r = client.get('/api/about')
    assert r.status_code == 200
    data = r.get_json()['data']
    assert data['mission'] == ''
    assert data['teamMembers'] == []

    assert client.put('/api/about', json={'mission': 'Care for all'}).status_code == 401

    r = client.put('/api/about/', json={
        'mission': 'Care for all',
        'teamMembers': [{'name': 'Dr. Saima', 'role': 'Director', 'image': 'https://img/saima.jpg'}],
        'achievements': {'patientsTreated': '50,000+'},
    }, headers=admin_headers)
    assert r.status_code == 200
    data = r.get_json()['data']
    assert data['mission'] == 'Care for all'
    assert data['teamMembers'][0]['role'] == 'Director'
    assert data['achievements']['patientsTreated'] == '50,000+'

    # blank mission leaves the stored one
    r = client.put('/api/about', json={'mission': '', 'vision': 'Healthy communities'}, headers=admin_headers)
    data = r.get_json()['data']
    assert data['mission'] == 'Care for all'
    assert data['vision'] == 'Healthy communities'
    with app.app_context():
        assert AboutUs.query.count() == 1


def test_about_lists_can_be_cleared(client, admin_headers):
    r = client.put('/api/about', json={
        'teamMembers': [{'name': 'Dr. Saima', 'role': 'Director', 'image': 'https://img/saima.jpg'}],
        'certificates': [{'title': 'NGO registration', 'issuer': 'SECP', 'year': '2015', 'image': 'https://img/cert.jpg'}],
    }, headers=admin_headers)
    assert len(r.get_json()['data']['certificates']) == 1

    r = client.put('/api/about', json={'teamMembers': [], 'certificates': []}, headers=admin_headers)
    assert r.status_code == 200
    data = r.get_json()['data']
    assert data['teamMembers'] == []
    assert data['certificates'] == []
