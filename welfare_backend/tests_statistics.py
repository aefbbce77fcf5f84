from datetime import datetime

from welfare_backend.aggregates import months_back


def seed(client, admin_headers):
    projects = []
    for title, status, category, target in (('Clinic', 'active', 'healthcare', 10000),
                                            ('School', 'completed', 'education', 1000),
                                            ('Flood Relief', 'ongoing', 'emergency', 0),
                                            ('Kitchen', 'upcoming', 'food', 4000)):
        r = client.post('/api/projects', json={'title': title, 'description': title, 'location': 'Sindh',
                                               'image': 'https://img/p.jpg', 'status': status,
                                               'category': category, 'targetAmount': target}, headers=admin_headers)
        projects.append(r.get_json()['data']['id'])

    donations = [
        ('Hassan', 'hassan@example.com', 500, 'bank_transfer', projects[0]),
        ('Hassan', 'hassan@example.com', 1500, 'bank_transfer', projects[0]),
        ('Mariam', 'mariam@example.com', 1000, 'bank_transfer', projects[1]),
    ]
    for name, email, amount, method, pid in donations:
        r = client.post('/api/donations', json={'fullName': name, 'email': email, 'amount': amount,
                                                'paymentMethod': method, 'projectId': pid})
        assert r.status_code == 201
    return projects


def test_dashboard(client, admin_headers, donor_headers):
    seed(client, admin_headers)
    assert client.get('/api/statistics/dashboard').status_code == 401

    r = client.get('/api/statistics/dashboard', headers=admin_headers)
    assert r.status_code == 200
    data = r.get_json()['data']
    overview = data['overview']
    assert overview['totalProjects'] == 4
    assert overview['activeProjects'] == 2
    assert overview['completedProjects'] == 1
    assert overview['completionRate'] == '25%'
    assert overview['totalDonors'] == 1
    assert overview['totalDonations'] == 3
    assert overview['totalAmount'] == 3000
    assert len(data['recentDonations']) == 3
    assert data['monthlyDonations'] == [{'month': datetime.utcnow().strftime('%Y-%m'), 'totalAmount': 3000, 'count': 3}]
    assert data['chartData']['projects'] == {'total': 4, 'active': 2, 'completed': 1}


def test_project_statistics_are_public(client, admin_headers):
    projects = seed(client, admin_headers)
    r = client.get('/api/statistics/projects')
    assert r.status_code == 200
    data = r.get_json()['data']

    statuses = {s['status']: s for s in data['statusDistribution']}
    assert statuses['active'] == {'status': 'active', 'count': 1, 'totalFunding': 2000}
    assert [p['id'] for p in data['topFundedProjects']][:2] == [projects[0], projects[1]]

    # School: 1000/1000 = 100%, Clinic: 2000/10000 = 20%, zero target counts as 0
    progress = {p['title']: p['fundingPercentage'] for p in data['fundingProgress']}
    assert progress['School'] == 100
    assert progress['Clinic'] == 20
    assert progress['Flood Relief'] == 0
    assert data['fundingProgress'][0]['title'] == 'School'
    assert len(data['categoryDistribution']) == 4


def test_donation_statistics(client, admin_headers):
    seed(client, admin_headers)
    r = client.get('/api/statistics/donations', headers=admin_headers)
    data = r.get_json()['data']
    assert data['summary'] == {'totalAmount': 3000, 'averageAmount': 1000, 'count': 3, 'minAmount': 500, 'maxAmount': 1500}
    assert data['paymentMethods'] == [{'paymentMethod': 'bank_transfer', 'totalAmount': 3000, 'count': 3}]
    assert data['monthlyTrends'][0]['averageAmount'] == 1000
    assert [d['amount'] for d in data['largestDonations']] == [1500, 1000, 500]


def test_donor_statistics(client, admin_headers, donor_headers):
    seed(client, admin_headers)
    r = client.get('/api/statistics/donors', headers=admin_headers)
    data = r.get_json()['data']
    assert data['totalDonors'] == 1
    assert data['newDonors'] == 1
    assert data['repeatDonors'] == 1
    top = data['topDonors'][0]
    assert top['email'] == 'hassan@example.com'
    assert top['totalDonated'] == 2000
    assert top['averageDonation'] == 1000
    assert data['locationDistribution'] == [{'country': 'Unknown', 'count': 1}]
    assert data['typeDistribution'] == [{'type': 'named', 'count': 1}]


def test_empty_database(client, admin_headers):
    data = client.get('/api/statistics/dashboard', headers=admin_headers).get_json()['data']
    assert data['overview']['completionRate'] == '0%'
    assert data['monthlyDonations'] == []
    data = client.get('/api/statistics/donations', headers=admin_headers).get_json()['data']
    assert data['summary']['count'] == 0


def test_months_back_clamps_day():
    assert months_back(datetime(2024, 3, 31), 1) == datetime(2024, 2, 29)
    assert months_back(datetime(2024, 3, 15), 6) == datetime(2023, 9, 15)
    assert months_back(datetime(2024, 1, 10), 12) == datetime(2023, 1, 10)
