from datetime import timedelta

import settings
from conftest import PASSWORD, register, create_project
from synergysphere.util.common import utc_now


def test_register_returns_tokens_without_password(client):
    response = client.post('/api/auth/register', json={
        'name': 'Dana', 'email': 'Dana@Synergy.io', 'password': PASSWORD, 'confirmPassword': PASSWORD,
    })
    body = response.get_json()

    assert response.status_code == 201
    assert body['success'] is True
    assert body['data']['accessToken']
    assert body['data']['refreshToken']
    assert body['data']['user']['email'] == 'dana@synergy.io'
    assert 'password' not in body['data']['user']
    assert 'emailVerificationToken' not in body['data']['user']


def test_register_duplicate_email(client, alice):
    response = client.post('/api/auth/register', json={
        'name': 'Alice Again', 'email': 'alice@synergy.io', 'password': PASSWORD, 'confirmPassword': PASSWORD,
    })

    assert response.status_code == 400
    assert response.get_json()['message'] == 'User with this email already exists'


def test_register_rejects_weak_password(client):
    response = client.post('/api/auth/register', json={
        'name': 'Eve', 'email': 'eve@synergy.io', 'password': 'password', 'confirmPassword': 'password',
    })
    body = response.get_json()

    assert response.status_code == 400
    assert body['success'] is False
    assert body['message'] == 'Validation failed'
    assert any(e['field'] == 'password' for e in body['errors'])


def test_register_rejects_mismatched_confirmation(client):
    response = client.post('/api/auth/register', json={
        'name': 'Eve', 'email': 'eve@synergy.io', 'password': PASSWORD, 'confirmPassword': 'Other123',
    })

    assert response.status_code == 400


def test_register_requires_confirmation(client):
    response = client.post('/api/auth/register', json={
        'name': 'Eve', 'email': 'eve@synergy.io', 'password': PASSWORD,
    })
    body = response.get_json()

    assert response.status_code == 400
    assert any(e['field'] == 'confirmPassword' for e in body['errors'])


def test_login(client, alice):
    response = client.post('/api/auth/login', json={'email': 'alice@synergy.io', 'password': PASSWORD})
    data = response.get_json()['data']

    assert response.status_code == 200
    assert data['user']['_id'] == alice.id
    assert data['user']['lastLogin'] is not None

    me = client.get('/api/auth/me', headers={'Authorization': f'Bearer {data["accessToken"]}'})
    assert me.status_code == 200


def test_login_wrong_password(client, alice):
    response = client.post('/api/auth/login', json={'email': 'alice@synergy.io', 'password': 'Wrong1234'})

    assert response.status_code == 401
    assert response.get_json()['message'] == 'Invalid email or password'


def test_login_unknown_email(client):
    response = client.post('/api/auth/login', json={'email': 'nobody@synergy.io', 'password': PASSWORD})

    assert response.status_code == 401
    assert response.get_json()['message'] == 'Invalid email or password'


def test_protected_route_without_token(client):
    response = client.get('/api/auth/me')

    assert response.status_code == 401
    assert response.get_json() == {'success': False, 'message': 'Access token is required'}


def test_protected_route_with_invalid_token(client, alice):
    response = client.get('/api/auth/me', headers={'Authorization': 'Bearer not-a-token'})

    assert response.status_code == 401


def test_protected_route_with_expired_token(client, database, alice):
    database['session'].update_one({'token': alice.token}, {'$set': {'expiresAt': utc_now() - timedelta(minutes=1)}})

    response = client.get('/api/auth/me', headers=alice.headers)

    assert response.status_code == 401
    assert response.get_json()['message'] == 'Token expired'


def test_logout_revokes_token(client, alice):
    assert client.post('/api/auth/logout', headers=alice.headers).status_code == 200

    assert client.get('/api/auth/me', headers=alice.headers).status_code == 401


def test_refresh(client, alice):
    response = client.post('/api/auth/refresh', json={'refreshToken': alice.refresh_token})
    token = response.get_json()['data']['accessToken']

    assert response.status_code == 200
    assert token != alice.token
    assert client.get('/api/auth/me', headers={'Authorization': f'Bearer {token}'}).status_code == 200


def test_refresh_rejects_access_token(client, alice):
    response = client.post('/api/auth/refresh', json={'refreshToken': alice.token})

    assert response.status_code == 401


def new_password(password):
    return {'password': password, 'confirmPassword': password}


def test_forgot_and_reset_password(client, alice, monkeypatch):
    monkeypatch.setattr(settings, 'DEBUG', True)
    response = client.post('/api/auth/forgot-password', json={'email': 'alice@synergy.io'})
    token = response.get_json()['data']['resetToken']

    reset = client.post(f'/api/auth/reset-password/{token}', json=new_password('NewSecret1'))
    assert reset.status_code == 200
    assert reset.get_json()['data']['accessToken']

    # old session is gone and the token cannot be reused
    assert client.get('/api/auth/me', headers=alice.headers).status_code == 401
    assert client.post(f'/api/auth/reset-password/{token}', json=new_password('NewSecret2')).status_code == 400

    login = client.post('/api/auth/login', json={'email': 'alice@synergy.io', 'password': 'NewSecret1'})
    assert login.status_code == 200


def test_forgot_password_hides_unknown_email(client):
    response = client.post('/api/auth/forgot-password', json={'email': 'ghost@synergy.io'})

    assert response.status_code == 200
    assert 'data' not in response.get_json()


def test_reset_token_is_stored_hashed(client, database, alice, monkeypatch):
    monkeypatch.setattr(settings, 'DEBUG', True)
    token = client.post('/api/auth/forgot-password', json={'email': 'alice@synergy.io'}).get_json()['data']['resetToken']

    stored = database['user'].find_one({'email': 'alice@synergy.io'})
    assert stored['resetPasswordToken'] != token
    assert stored['resetPasswordExpire'] > utc_now()


def passwords(new, current=PASSWORD):
    return {'currentPassword': current, 'newPassword': new, 'confirmPassword': new}


def test_change_password(client, alice):
    wrong = client.post('/api/auth/change-password', headers=alice.headers, json=passwords('Changed123', 'Nope1234'))
    same = client.post('/api/auth/change-password', headers=alice.headers, json=passwords(PASSWORD))
    ok = client.post('/api/auth/change-password', headers=alice.headers, json=passwords('Changed123'))

    assert wrong.status_code == 400
    assert same.status_code == 400
    assert ok.status_code == 200
    assert client.post('/api/auth/login', json={'email': alice.email, 'password': 'Changed123'}).status_code == 200


def test_verify_email(client, database, alice):
    token = database['user'].find_one({'email': alice.email})['emailVerificationToken']

    bad = client.post('/api/auth/verify-email', headers=alice.headers, json={'token': 'wrong'})
    good = client.post('/api/auth/verify-email', headers=alice.headers, json={'token': token})

    assert bad.status_code == 400
    assert good.status_code == 200
    assert database['user'].find_one({'email': alice.email})['emailVerified'] is True


def test_me_includes_projects(client, alice):
    create_project(client, alice, 'Roadmap')

    data = client.get('/api/auth/me', headers=alice.headers).get_json()['data']

    assert data['user']['email'] == alice.email
    assert [p['name'] for p in data['projects']] == ['Roadmap']
    assert data['assignedTasks'] == []


def test_deactivated_user_cannot_login(client):
    dana = register(client, 'Dana', 'dana@synergy.io')

    assert client.delete('/api/users/account', headers=dana.headers).status_code == 200

    response = client.post('/api/auth/login', json={'email': dana.email, 'password': PASSWORD})
    assert response.status_code == 401
    assert client.get('/api/auth/me', headers=dana.headers).status_code == 401


def test_password_changes_require_confirmation(client, alice, monkeypatch):
    monkeypatch.setattr(settings, 'DEBUG', True)
    token = client.post('/api/auth/forgot-password', json={'email': alice.email}).get_json()['data']['resetToken']

    reset = client.post(f'/api/auth/reset-password/{token}', json={'password': 'NewSecret1'})
    change = client.post('/api/auth/change-password', headers=alice.headers,
                         json={'currentPassword': PASSWORD, 'newPassword': 'Changed123'})

    assert reset.status_code == 400
    assert change.status_code == 400
    assert client.post('/api/auth/login', json={'email': alice.email, 'password': PASSWORD}).status_code == 200
