def test_root_and_health(client):
    r = client.get('/')
    assert r.status_code == 200
    assert r.get_json() == {'message': 'Welfare Organization API', 'status': 'running', 'version': '1.0.0'}

    r = client.get('/health')
    assert r.status_code == 200
    data = r.get_json()
    assert data['status'] == 'OK'
    assert data['uptime'] >= 0
    assert 'timestamp' in data


def test_unknown_route_and_method(client):
    r = client.get('/api/nothing-here')
    assert r.status_code == 404
    assert r.get_json() == {'success': False, 'message': 'Route not found'}

    r = client.delete('/health')
    assert r.status_code == 405
    assert r.get_json()['success'] is False


def test_malformed_body_is_rejected(client):
    r = client.post('/api/donations', data='[1, 2, 3]', content_type='application/json')
    assert r.status_code == 400
    assert r.get_json()['message'] == 'Request body must be a JSON object'


def test_cors_preflight_allows_authorization(client):
    r = client.options('/api/projects', headers={
        'Origin': 'http://localhost:5173',
        'Access-Control-Request-Method': 'POST',
        'Access-Control-Request-Headers': 'Authorization',
    })
    assert r.headers.get('Access-Control-Allow-Origin') == 'http://localhost:5173'
    assert 'authorization' in r.headers.get('Access-Control-Allow-Headers', '').lower()
