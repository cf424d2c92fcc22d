import pytest

from authgate.tests.util import OAuth2ProviderMimic, create_app


@pytest.fixture()
def provider():
    return OAuth2ProviderMimic(users={
        'testUser1': {'name': 'Test User 1'},
        'testUser2': {'name': 'Test User 2'},
        'testUser3': {'name': 'Test User 3'},
    })


@pytest.fixture()
def app(provider):
    return create_app(provider)


@pytest.fixture()
def client(app):
    return app.test_client()
