import os

# in-memory database and a fixed signing key, set before the app module is imported
os.environ['DATABASE_URL'] = 'sqlite://'
os.environ['SECRET_KEY'] = 'test-secret-key'
for name in ('MEEZAN_USERNAME', 'MEEZAN_PASSWORD', 'CLOUDINARY_CLOUD_NAME', 'CLOUDINARY_API_KEY', 'CLOUDINARY_API_SECRET'):
    os.environ.pop(name, None)

import pytest

from welfare_backend.app import app
from welfare_backend.extensions import db


@pytest.fixture(autouse=True)
def fresh_db():
    app.config['TESTING'] = True
    with app.app_context():
        db.drop_all()
        db.create_all()
    yield
    with app.app_context():
        db.session.remove()


@pytest.fixture
def client():
    with app.test_client() as client:
        yield client


@pytest.fixture
def admin_headers(client):
    r = client.post('/api/admin/register', json={'name': 'Site Admin', 'email': 'admin@welfare.org', 'password': 'secret123'})
    assert r.status_code == 201
    return {'Authorization': f"Bearer {r.get_json()['data']['token']}"}


@pytest.fixture
def donor_headers(client):
    r = client.post('/api/donors/register', json={'name': 'Ayesha Khan', 'email': 'ayesha@example.com', 'password': 'secret123'})
    assert r.status_code == 201
    return {'Authorization': f"Bearer {r.get_json()['data']['token']}"}
