import re

import requests

from welfare_backend.app import app
from welfare_backend.extensions import db
from welfare_backend.models import Donation, Donor, Project


class FakeResponse:
    def __init__(self, payload=None, text='', status=200):
        self._payload = payload
        self.text = text
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f'{self.status_code} error')

    def json(self):
        if self._payload is None:
            raise ValueError('not json')
        return self._payload


def make_project(client, headers, **overrides):
    body = {'title': 'Water Wells', 'description': 'Hand pumps for Thar', 'location': 'Tharparkar',
            'image': 'https://res.cloudinary.com/demo/well.jpg', 'targetAmount': 10000}
    body.update(overrides)
    r = client.post('/api/projects', json=body, headers=headers)
    assert r.status_code == 201
    return r.get_json()['data']['id']


def donate(client, headers=None, **fields):
    body = {'fullName': 'Hina Raza', 'email': 'hina@example.com', 'amount': 1000}
    body.update(fields)
    return client.post('/api/donations', json=body, headers=headers or {})


def project_totals(pid):
    with app.app_context():
        project = db.session.get(Project, pid)
        return project.raised_amount, project.donation_count


def gateway_config(monkeypatch):
    monkeypatch.setitem(app.config, 'MEEZAN_USERNAME', 'merchant')
    monkeypatch.setitem(app.config, 'MEEZAN_PASSWORD', 'merchant-pass')


def test_converted_amount_uses_fixed_rates(client):
    rates = {'PKR': 1, 'USD': 280, 'EUR': 300, 'GBP': 350, 'AED': 76, 'SAR': 75}
    for code, rate in rates.items():
        r = donate(client, amount=10, currency=code.lower())
        assert r.status_code == 201
        donation_id = r.get_json()['data']['donationId']
        data = client.get(f'/api/donations/{donation_id}').get_json()['data']
        assert data['currency'] == code
        assert data['exchangeRate'] == rate
        assert data['convertedAmount'] == 10 * rate


def test_reference_and_defaults(client):
    r = donate(client)
    assert r.status_code == 201
    data = r.get_json()['data']
    assert re.match(r'^PMI-\d{8}-\d{13}$', data['reference'])
    assert data['status'] == 'pending'
    assert 'formUrl' not in data

    stored = client.get(f"/api/donations/{data['donationId']}").get_json()['data']
    assert stored['paymentMethod'] == 'bank_transfer'
    assert stored['paymentGateway'] == 'manual'
    assert stored['bankName'] == 'Meezan Bank Limited'
    assert stored['privacyPolicyAccepted'] is True
    assert stored['formattedAmount'] == '₨ 1,000.00'


def test_invalid_amount_creates_nothing(client):
    for amount in (0, -5, '', None):
        r = donate(client, amount=amount)
        assert r.status_code == 400
        assert r.get_json()['message'] == 'Valid donation amount is required'
    with app.app_context():
        assert Donation.query.count() == 0


def test_non_finite_amounts_are_rejected(client, admin_headers):
    pid = make_project(client, admin_headers)
    r = donate(client, projectId=pid, amount=1e308, currency='USD')
    assert r.status_code == 400
    assert r.get_json()['message'] == 'Valid donation amount is required'

    r = client.post('/api/donations', data='{"fullName": "Hina Raza", "email": "hina@example.com", "amount": NaN}',
                    content_type='application/json')
    assert r.status_code == 400
    assert r.get_json()['message'] == 'Valid donation amount is required'

    assert project_totals(pid) == (0, 0)
    assert client.get(f'/api/projects/{pid}').status_code == 200
    with app.app_context():
        assert Donation.query.count() == 0


def test_non_numeric_amount_message(client):
    r = donate(client, amount='abc')
    assert r.status_code == 400
    assert r.get_json()['message'] == 'Valid donation amount is required'

    # name and email are still checked first
    r = donate(client, fullName='', amount='abc')
    assert r.get_json()['message'] == 'Full name and email are required'

    assert donate(client, amount='250').status_code == 201


def test_contact_validation(client):
    r = donate(client, email='not-an-email')
    assert r.status_code == 400
    assert r.get_json()['message'] == 'Please provide a valid email address'

    r = donate(client, fullName='')
    assert r.status_code == 400
    assert r.get_json()['message'] == 'Full name and email are required'

    r = donate(client, currency='JPY')
    assert r.status_code == 400

    r = donate(client, paymentMethod='cheque')
    assert r.status_code == 400


def test_nested_donor_object_is_accepted(client):
    r = client.post('/api/donations', json={
        'donor': {'name': 'Nested Donor', 'email': 'NESTED@Example.com', 'country': 'Pakistan'},
        'amount': 250,
    })
    assert r.status_code == 201
    data = client.get(f"/api/donations/{r.get_json()['data']['donationId']}").get_json()['data']
    assert data['donor']['name'] == 'Nested Donor'
    assert data['donor']['email'] == 'nested@example.com'
    assert data['donor']['country'] == 'Pakistan'


def test_unknown_project_is_rejected(client):
    r = donate(client, projectId=404)
    assert r.status_code == 404


def test_completion_counts_exactly_once(client, admin_headers):
    pid = make_project(client, admin_headers)
    donation_id = donate(client, projectId=pid).get_json()['data']['donationId']
    assert project_totals(pid) == (1000, 1)

    r = client.put(f'/api/donations/{donation_id}/verify', json={'status': 'completed', 'bankReference': 'TRX-1'}, headers=admin_headers)
    assert r.status_code == 200
    data = r.get_json()['data']
    assert data['status'] == 'completed'
    assert data['verifiedBy']['name'] == 'Site Admin'
    assert data['receiptSent'] is True
    assert data['bankReference'] == 'TRX-1'
    assert project_totals(pid) == (1000, 1)

    client.put(f'/api/donations/{donation_id}/verify', json={'status': 'completed'}, headers=admin_headers)
    assert project_totals(pid) == (1000, 1)

    client.put(f'/api/donations/{donation_id}/verify', json={'status': 'failed'}, headers=admin_headers)
    assert project_totals(pid) == (0, 0)

    client.put(f'/api/donations/{donation_id}/verify', json={'status': 'completed'}, headers=admin_headers)
    assert project_totals(pid) == (1000, 1)


def test_create_complete_delete_is_net_zero(client, admin_headers):
    pid = make_project(client, admin_headers)
    donate(client, projectId=pid, amount=300)
    before = project_totals(pid)

    donation_id = donate(client, projectId=pid, amount=50, currency='USD').get_json()['data']['donationId']
    assert project_totals(pid) == (before[0] + 50 * 280, before[1] + 1)
    client.put(f'/api/donations/{donation_id}/verify', json={'status': 'completed'}, headers=admin_headers)

    r = client.delete(f'/api/donations/{donation_id}', headers=admin_headers)
    assert r.status_code == 200
    assert project_totals(pid) == before
    assert client.get(f'/api/donations/{donation_id}').status_code == 404


def test_signed_in_donor_is_credited_on_completion(client, admin_headers, donor_headers):
    donation_id = donate(client, headers=donor_headers, amount=700).get_json()['data']['donationId']

    r = client.get('/api/donors/donations', headers=donor_headers)
    assert r.get_json()['count'] == 1

    profile = client.get('/api/donors/profile', headers=donor_headers).get_json()['data']
    assert profile['totalDonated'] == 0

    client.put(f'/api/donations/{donation_id}/verify', json={'status': 'completed'}, headers=admin_headers)
    profile = client.get('/api/donors/profile', headers=donor_headers).get_json()['data']
    assert profile['totalDonated'] == 700
    assert profile['donationCount'] == 1

    client.delete(f'/api/donations/{donation_id}', headers=admin_headers)
    with app.app_context():
        donor = Donor.query.filter_by(email='ayesha@example.com').one()
        assert (donor.total_donated, donor.donation_count) == (0, 0)


def test_verify_requires_admin(client, donor_headers):
    donation_id = donate(client).get_json()['data']['donationId']
    assert client.put(f'/api/donations/{donation_id}/verify', json={'status': 'completed'}).status_code == 401
    assert client.put(f'/api/donations/{donation_id}/verify', json={'status': 'completed'}, headers=donor_headers).status_code == 403


def test_verify_rejects_unknown_status(client, admin_headers):
    donation_id = donate(client).get_json()['data']['donationId']
    r = client.put(f'/api/donations/{donation_id}/verify', json={'status': 'paid'}, headers=admin_headers)
    assert r.status_code == 400


def test_card_donation_gets_gateway_url_from_json(client, monkeypatch):
    gateway_config(monkeypatch)
    calls = []

    def fake_post(url, data=None, timeout=None):
        calls.append((url, data, timeout))
        return FakeResponse({'orderId': 'ord-77', 'formUrl': 'https://acquiring.meezanbank.com/payment/merchants/pay?mdOrder=ord-77'})

    monkeypatch.setattr(requests, 'post', fake_post)
    r = donate(client, amount=2500, paymentMethod='credit_card')
    assert r.status_code == 201
    data = r.get_json()['data']
    assert data['formUrl'].endswith('mdOrder=ord-77')
    assert data['status'] == 'processing'

    url, params, timeout = calls[0]
    assert url == app.config['MEEZAN_REGISTER_URL']
    assert params['amount'] == '250000'
    assert params['currency'] == '586'
    assert params['orderNumber'] == data['reference']
    assert timeout == app.config['MEEZAN_TIMEOUT']

    with app.app_context():
        donation = db.session.get(Donation, data['donationId'])
        assert donation.payment_gateway == 'meezan'
        assert donation.gateway_order_id == 'ord-77'
        assert donation.gateway_status == 'registered'


def test_gateway_xml_response(client, monkeypatch):
    gateway_config(monkeypatch)
    xml = '<response><orderId>1</orderId><formUrl>https://pay.example/form?id=1</formUrl></response>'
    monkeypatch.setattr(requests, 'post', lambda url, data=None, timeout=None: FakeResponse(text=xml))

    r = donate(client, currency='USD', paymentMethod='debit_card')
    assert r.status_code == 201
    assert r.get_json()['data']['formUrl'] == 'https://pay.example/form?id=1'


def test_gateway_failure_is_500_and_donation_remains(client, monkeypatch):
    gateway_config(monkeypatch)

    def broken(url, data=None, timeout=None):
        raise requests.ConnectionError('connection refused')

    monkeypatch.setattr(requests, 'post', broken)
    r = donate(client, paymentMethod='jazzcash')
    assert r.status_code == 500
    body = r.get_json()
    assert body['success'] is False
    assert 'connection refused' in body['error']

    with app.app_context():
        donation = Donation.query.one()
        assert donation.gateway_status == 'registration_failed'


def test_gateway_without_form_url(client, monkeypatch):
    gateway_config(monkeypatch)
    monkeypatch.setattr(requests, 'post', lambda url, data=None, timeout=None: FakeResponse({'errorCode': '5'}))
    r = donate(client, paymentMethod='easypaisa')
    assert r.status_code == 500
    assert r.get_json()['message'] == 'Failed to get payment URL from Meezan Bank'


def test_gateway_not_configured(client):
    r = donate(client, paymentMethod='credit_card')
    assert r.status_code == 500


def test_location_from_forwarded_ip(client, monkeypatch):
    seen = {}

    def fake_get(url, params=None, timeout=None):
        seen['url'] = url
        return FakeResponse({'status': 'success', 'country': 'United Kingdom', 'countryCode': 'GB', 'city': 'London',
                             'region': 'ENG', 'timezone': 'Europe/London', 'lat': 51.5, 'lon': -0.12})

    monkeypatch.setattr(requests, 'get', fake_get)
    r = donate(client, headers={'X-Forwarded-For': '81.2.69.142, 10.0.0.1'})
    data = client.get(f"/api/donations/{r.get_json()['data']['donationId']}").get_json()['data']
    assert seen['url'].endswith('/81.2.69.142')
    assert data['ipAddress'] == '81.2.69.142'
    assert data['donor']['country'] == 'United Kingdom'
    assert data['location']['city'] == 'London'


def test_location_lookup_failure_is_ignored(client, monkeypatch):
    def timeout(url, params=None, timeout=None):
        raise requests.Timeout('slow')

    monkeypatch.setattr(requests, 'get', timeout)
    r = donate(client, headers={'X-Forwarded-For': '81.2.69.142'})
    assert r.status_code == 201


def test_admin_list_filters_and_summary(client, admin_headers):
    donate(client, amount=100)
    donate(client, amount=10, currency='USD', fullName='Usman Tariq', email='usman@example.com')
    donate(client, amount=5, currency='GBP')

    assert client.get('/api/donations').status_code == 401

    r = client.get('/api/donations', headers=admin_headers)
    body = r.get_json()
    assert len(body['data']) == 3
    assert body['pagination'] == {'page': 1, 'limit': 50, 'total': 3, 'pages': 1}
    assert body['summary']['totalAmount'] == 100 + 10 * 280 + 5 * 350

    r = client.get('/api/donations', query_string={'currency': 'USD'}, headers=admin_headers)
    assert [d['donor']['name'] for d in r.get_json()['data']] == ['Usman Tariq']

    r = client.get('/api/donations', query_string={'search': 'usman'}, headers=admin_headers)
    assert r.get_json()['summary']['totalCount'] == 1


    r = client.get('/api/donations', query_string={'limit': 2, 'page': 2}, headers=admin_headers)
    body = r.get_json()
    assert len(body['data']) == 1
    assert body['pagination']['pages'] == 2


def test_country_filter_is_case_insensitive(client, admin_headers):
    donate(client, amount=100, country='Pakistan')
    donate(client, amount=200, country='United Arab Emirates')

    r = client.get('/api/donations', query_string={'country': 'pakistan'}, headers=admin_headers)
    assert [d['amount'] for d in r.get_json()['data']] == [100]

    r = client.get('/api/donations', query_string={'country': 'arab'}, headers=admin_headers)
    assert r.get_json()['summary']['totalCount'] == 1


def test_summary_counts_completed_only(client, admin_headers):
    first = donate(client, amount=100, country='Pakistan').get_json()['data']['donationId']
    donate(client, amount=900)
    client.put(f'/api/donations/{first}/verify', json={'status': 'completed'}, headers=admin_headers)

    r = client.get('/api/donations/statistics/summary', headers=admin_headers)
    assert r.status_code == 200
    data = r.get_json()['data']
    assert data['total']['amount'] == 100
    assert data['total']['count'] == 1
    assert data['monthly']['count'] == 1
    assert data['daily']['amount'] == 100
    assert data['byCountry'] == [{'country': 'Pakistan', 'amount': 100, 'count': 1}]
    assert {s['status']: s['count'] for s in data['byStatus']} == {'completed': 1, 'pending': 1}


def test_settings_defaults_and_update(client, admin_headers):
    r = client.get('/api/donations/settings')
    assert r.status_code == 200
    data = r.get_json()['data']
    assert data['bankName'] == 'Meezan Bank Limited'
    assert data['acceptedCurrencies'] == ['PKR', 'USD', 'EUR', 'GBP']

    r = client.put('/api/donations/settings', json={'accountNumber': '0101-0104567890', 'iban': 'PK36MEZN0001010104567890'}, headers=admin_headers)
    assert r.status_code == 200
    assert r.get_json()['data']['accountNumber'] == '0101-0104567890'

    assert client.put('/api/donations/settings', json={'defaultCurrency': 'JPY'}, headers=admin_headers).status_code == 400

    # new donations carry the current bank details
    donation_id = donate(client).get_json()['data']['donationId']
    data = client.get(f'/api/donations/{donation_id}').get_json()['data']
    assert data['bankAccountNumber'] == '0101-0104567890'
    assert data['bankIBAN'] == 'PK36MEZN0001010104567890'
    assert data['bankSummary'] == 'Meezan Bank Limited - A/C 7890'


def test_bank_image_update_keeps_blank_fields(client, admin_headers):
    client.post('/api/donations/settings/upload-images', json={'bankDetailsImage': 'https://img/one.png'}, headers=admin_headers)
    r = client.post('/api/donations/settings/upload-images', json={'bankDetailsImage': '', 'bankDetailsImage2': 'https://img/two.png'}, headers=admin_headers)
    assert r.status_code == 200
    assert r.get_json()['data'] == {'bankDetailsImage': 'https://img/one.png', 'bankDetailsImage2': 'https://img/two.png'}
