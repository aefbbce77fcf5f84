import io

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
import pytest

from welfare_backend.app import app
from welfare_backend.uploads import TRANSFORMATION


@pytest.fixture
def cloud(monkeypatch):
    monkeypatch.setitem(app.config, 'CLOUDINARY_ENABLED', True)
    calls = []

    def fake_upload(file, **options):
        calls.append((file.read(), options))
        n = len(calls)
        return {'secure_url': f'https://res.cloudinary.com/demo/image/upload/v1/welfare_organization/img{n}.webp',
                'public_id': f'welfare_organization/img{n}', 'format': 'webp', 'width': 1200, 'height': 800, 'bytes': 2048}

    monkeypatch.setattr(cloudinary.uploader, 'upload', fake_upload)
    return calls


def png(name='photo.png', body=b'\x89PNG fake image bytes', mimetype='image/png'):
    return (io.BytesIO(body), name, mimetype)


def test_single_upload(client, admin_headers, cloud):
    r = client.post('/api/upload/image', data={'image': png()}, headers=admin_headers, content_type='multipart/form-data')
    assert r.status_code == 200
    data = r.get_json()['data']
    assert data['publicId'] == 'welfare_organization/img1'
    assert data['size'] == 2048
    assert data['width'] == 1200

    body, options = cloud[0]
    assert body == b'\x89PNG fake image bytes'
    assert options['folder'] == 'welfare_organization'
    assert options['resource_type'] == 'auto'
    assert options['transformation'] == TRANSFORMATION


def test_upload_rejections(client, admin_headers, cloud, monkeypatch):
    r = client.post('/api/upload/image', data={'image': png()}, content_type='multipart/form-data')
    assert r.status_code == 401

    r = client.post('/api/upload/image', data={}, headers=admin_headers, content_type='multipart/form-data')
    assert r.status_code == 400
    assert r.get_json()['message'] == 'No file uploaded'

    r = client.post('/api/upload/image', data={'image': png('notes.txt', b'hello', 'text/plain')},
                    headers=admin_headers, content_type='multipart/form-data')
    assert r.status_code == 400
    assert r.get_json()['message'].startswith('Invalid file type')

    monkeypatch.setitem(app.config, 'UPLOAD_MAX_BYTES', 10)
    r = client.post('/api/upload/image', data={'image': png(body=b'x' * 11)},
                    headers=admin_headers, content_type='multipart/form-data')
    assert r.status_code == 413

    # nothing reached the cloud store
    assert cloud == []


def test_pdf_is_allowed(client, admin_headers, cloud):
    r = client.post('/api/upload/image', data={'image': png('receipt.pdf', b'%PDF-1.4', 'application/pdf')},
                    headers=admin_headers, content_type='multipart/form-data')
    assert r.status_code == 200


def test_multiple_upload(client, admin_headers, cloud, monkeypatch):
    r = client.post('/api/upload/images', data={'images': [png('a.png'), png('b.jpg', mimetype='image/jpeg')]},
                    headers=admin_headers, content_type='multipart/form-data')
    assert r.status_code == 200
    body = r.get_json()
    assert body['message'] == '2 images uploaded successfully'
    assert [img['publicId'] for img in body['data']] == ['welfare_organization/img1', 'welfare_organization/img2']

    monkeypatch.setitem(app.config, 'UPLOAD_MAX_FILES', 2)
    r = client.post('/api/upload/images', data={'images': [png('a.png'), png('b.png'), png('c.png')]},
                    headers=admin_headers, content_type='multipart/form-data')
    assert r.status_code == 400

    r = client.post('/api/upload/images', data={}, headers=admin_headers, content_type='multipart/form-data')
    assert r.get_json()['message'] == 'No files uploaded'


def test_upload_failure_is_500(client, admin_headers, monkeypatch):
    monkeypatch.setitem(app.config, 'CLOUDINARY_ENABLED', True)

    def broken(file, **options):
        raise cloudinary.exceptions.Error('Invalid API key')

    monkeypatch.setattr(cloudinary.uploader, 'upload', broken)
    r = client.post('/api/upload/image', data={'image': png()}, headers=admin_headers, content_type='multipart/form-data')
    assert r.status_code == 500
    assert r.get_json()['error'] == 'Invalid API key'


def test_uploads_disabled_without_credentials(client, admin_headers):
    r = client.post('/api/upload/image', data={'image': png()}, headers=admin_headers, content_type='multipart/form-data')
    assert r.status_code == 503


@pytest.mark.parametrize('outcome, status', [('ok', 200), ('not found', 404), ('error', 400)])
def test_delete_image(client, admin_headers, monkeypatch, outcome, status):
    monkeypatch.setitem(app.config, 'CLOUDINARY_ENABLED', True)
    destroyed = []

    def fake_destroy(public_id):
        destroyed.append(public_id)
        return {'result': outcome}

    monkeypatch.setattr(cloudinary.uploader, 'destroy', fake_destroy)
    r = client.delete('/api/upload/image', query_string={'publicId': 'welfare_organization/img1'}, headers=admin_headers)
    assert r.status_code == status
    assert destroyed == ['welfare_organization/img1']


def test_delete_requires_public_id(client, admin_headers):
    r = client.delete('/api/upload/image', headers=admin_headers)
    assert r.status_code == 400


def test_check_cloudinary_script(monkeypatch, capsys):
    from welfare_backend import config
    from welfare_backend.scripts.check_cloudinary import main

    assert main() == 1
    assert 'Missing Cloudinary credentials' in capsys.readouterr().out

    for name, value in (('CLOUDINARY_CLOUD_NAME', 'demo'), ('CLOUDINARY_API_KEY', '1234567890'), ('CLOUDINARY_API_SECRET', 'shh')):
        monkeypatch.setattr(config, name, value)
    monkeypatch.setattr(cloudinary, 'config', lambda **kwargs: None)
    monkeypatch.setattr(cloudinary.uploader, 'upload', lambda file, **options: {'secure_url': 'https://x/y.png', 'public_id': 'welfare_organization/check'})
    destroyed = []
    monkeypatch.setattr(cloudinary.uploader, 'destroy', lambda public_id: destroyed.append(public_id) or {'result': 'ok'})

    assert main() == 0
    assert destroyed == ['welfare_organization/check']
