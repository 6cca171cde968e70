"""Fixtures shared by the test suites in this package."""

import pytest

from onboard_auth.auth.account import AccountClient
from onboard_auth.auth.guards import GuardChain
from onboard_auth.auth.interceptor import AuthInterceptor
from onboard_auth.auth.navigation import Navigator
from onboard_auth.auth.sessions.store import SessionStore
from onboard_auth.domain import UserProfile
from onboard_auth.factory import create_web_app
from onboard_auth.services.storage import MemoryTokenStorage
from onboard_auth.tests.util import FakeAccountService, user_data


@pytest.fixture()
def fake_api():
    return FakeAccountService()


@pytest.fixture()
def storage():
    return MemoryTokenStorage()


@pytest.fixture()
def store(fake_api, storage):
    """A store whose initialization has not run yet."""
    return SessionStore(fake_api, storage)


@pytest.fixture()
def interceptor(fake_api, store):
    return AuthInterceptor(fake_api, store)


@pytest.fixture()
def account(interceptor, store):
    return AccountClient(interceptor, store)


@pytest.fixture()
def navigator(store):
    return Navigator(GuardChain(store))


@pytest.fixture()
def make_profile():
    def _make_profile(**overrides):
        return UserProfile.model_validate(user_data(**overrides))
    return _make_profile


@pytest.fixture()
def logged_in(store, make_profile):
    """Put ``store`` in the authenticated, initialized state."""
    def _logged_in(token='token-1', **overrides):
        profile = make_profile(**overrides)
        store.apply(token, profile)
        store._ready.set()
        return profile
    return _logged_in


@pytest.fixture()
def app():
    return create_web_app({'TOKEN_STORAGE': 'memory',
                           'ONBOARD_AUTH_INITIALIZE': False,
                           'TESTING': True})


@pytest.fixture()
def client(app):
    return app.test_client()
