import mongomock
import pytest

import settings
from synergysphere.repository import Repository

PASSWORD = 'Secret123'


@pytest.fixture(autouse=True)
def database():
    database = mongomock.MongoClient()['synergysphere_test']
    repository = Repository.get_instance(**settings.MONGO_CONN)
    repository.use(database)
    repository.ensure_indexes()
    yield database


@pytest.fixture
def app():
    from app import app as flask_app
    flask_app.config['TESTING'] = True
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()


class Account:
    def __init__(self, data: dict):
        self.id = data['user']['_id']
        self.name = data['user']['name']
        self.email = data['user']['email']
        self.token = data['accessToken']
        self.refresh_token = data['refreshToken']

    @property
    def headers(self):
        return {'Authorization': f'Bearer {self.token}'}


def register(client, name: str, email: str, password: str = PASSWORD) -> Account:
    response = client.post('/api/auth/register', json={
        'name': name,
        'email': email,
        'password': password,
        'confirmPassword': password,
    })
    assert response.status_code == 201, response.get_json()
    return Account(response.get_json()['data'])


@pytest.fixture
def alice(client):
    return register(client, 'Alice Andersen', 'alice@synergy.io')


@pytest.fixture
def bob(client):
    return register(client, 'Bob Berg', 'bob@synergy.io')


@pytest.fixture
def carol(client):
    return register(client, 'Carol Clark', 'carol@synergy.io')


def create_project(client, owner: Account, name: str = 'Launch') -> dict:
    response = client.post('/api/projects', json={'name': name, 'description': 'Product launch'},
                           headers=owner.headers)
    assert response.status_code == 201, response.get_json()
    return response.get_json()['data']['project']


def add_member(client, project: dict, actor: Account, member: Account, role: str = 'member'):
    return client.post(f'/api/projects/{project["_id"]}/members',
                       json={'userId': member.id, 'role': role},
                       headers=actor.headers)


@pytest.fixture
def project(client, alice, bob):
    """
    Project owned by alice with bob as a regular member.
    """
    created = create_project(client, alice)
    assert add_member(client, created, alice, bob).status_code == 201
    return created
