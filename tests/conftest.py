import pytest

from app import create_app
from models import db


@pytest.fixture
def app():
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'SECRET_KEY': 'test',
    })
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_client(client):
    client.post('/register', json={'name': 'Asha', 'email': 'asha@example.com', 'password': 'secret'})
    resp = client.post('/login', json={'email': 'asha@example.com', 'password': 'secret'})
    assert resp.status_code == 200
    return client
