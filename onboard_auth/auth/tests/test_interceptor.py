"""Tests for :mod:`onboard_auth.auth.interceptor`."""

import threading

import pytest

from onboard_auth.exceptions import NetworkError, SessionExpired, \
    Unauthorized
from onboard_auth.tests.util import make_response, refreshed, unauthorized


def ok(payload=None):
    return make_response(200, payload or {'success': True})


def test_passes_through_success(fake_api, interceptor, logged_in):
    logged_in('token-1')
    fake_api.on('GET', '/plans/mine', ok({'success': True, 'data': []}))
    response = interceptor.get('/plans/mine')
    assert response.status_code == 200
    assert fake_api.calls[0].authorization == 'Bearer token-1'


def test_other_errors_are_returned(fake_api, interceptor, logged_in):
    """Only a 401 is handled here."""
    logged_in()
    fake_api.on('PUT', '/auth/updateMe', make_response(500, {}))
    assert interceptor.put('/auth/updateMe', json={}).status_code == 500
    assert fake_api.calls_to('POST', '/auth/refresh') == []


def test_refresh_then_retry(fake_api, interceptor, store, logged_in):
    """A 401 triggers one refresh, and the retry carries the new token."""
    logged_in('old')
    fake_api.on('GET', '/verification/status', unauthorized(),
                ok({'success': True, 'data': {'status': 'pending'}}))
    fake_api.on('POST', '/auth/refresh', refreshed('new', role='investor'))

    response = interceptor.get('/verification/status')

    assert response.status_code == 200
    calls = fake_api.calls_to('GET', '/verification/status')
    assert [call.authorization for call in calls] == ['Bearer old',
                                                      'Bearer new']
    assert len(fake_api.calls_to('POST', '/auth/refresh')) == 1
    assert store.credential == 'new'


def test_second_401_is_unauthorized(fake_api, interceptor, store, logged_in):
    """After a successful refresh and retry, a 401 ends the session."""
    logged_in('old')
    fake_api.on('DELETE', '/auth/deleteMe', unauthorized('Forbidden'))
    fake_api.on('POST', '/auth/refresh', refreshed('new'))

    with pytest.raises(Unauthorized) as excinfo:
        interceptor.delete('/auth/deleteMe')

    assert excinfo.value.status_code == 401
    assert len(fake_api.calls_to('POST', '/auth/refresh')) == 1
    assert len(fake_api.calls_to('DELETE', '/auth/deleteMe')) == 2
    state = store.snapshot()
    assert state.credential is None
    assert state.profile is None


def test_refresh_failure_is_session_expired(fake_api, interceptor, store,
                                            logged_in):
    """The original failure's message is kept."""
    logged_in('old')
    fake_api.on('GET', '/auth/me', unauthorized('jwt expired'))
    fake_api.on('POST', '/auth/refresh', unauthorized('Invalid refresh'))

    with pytest.raises(SessionExpired) as excinfo:
        interceptor.get('/auth/me')

    assert excinfo.value.message == 'jwt expired'
    assert len(fake_api.calls_to('GET', '/auth/me')) == 1
    assert not store.snapshot().authenticated


@pytest.mark.parametrize('path', ['/auth/login', '/auth/refresh'])
def test_exempt_paths(fake_api, interceptor, path):
    """Login and refresh 401s are returned untouched."""
    fake_api.on('POST', path, unauthorized('Email or password is incorrect'))
    response = interceptor.post(path, json={})
    assert response.status_code == 401
    assert len(fake_api.calls) == 1


def test_explicit_retry_attempt(fake_api, interceptor, logged_in):
    """A request already on its retry is not refreshed again."""
    logged_in()
    fake_api.on('GET', '/auth/me', unauthorized())
    with pytest.raises(Unauthorized):
        interceptor.request('GET', '/auth/me', attempt=1)
    assert fake_api.calls_to('POST', '/auth/refresh') == []


def test_network_error_propagates(fake_api, interceptor, store, logged_in):
    def down(call):
        raise NetworkError('timed out')

    logged_in()
    fake_api.on('GET', '/auth/me', down)
    with pytest.raises(NetworkError):
        interceptor.get('/auth/me')
    assert store.snapshot().authenticated


def test_network_error_during_refresh(fake_api, interceptor, store, storage,
                                     logged_in):
    """An unreachable service during refresh does not end the session."""
    def down(call):
        raise NetworkError('connection refused')

    logged_in('old')
    fake_api.on('GET', '/auth/me', unauthorized('jwt expired'))
    fake_api.on('POST', '/auth/refresh', down)

    with pytest.raises(NetworkError):
        interceptor.get('/auth/me')

    state = store.snapshot()
    assert state.credential == 'old'
    assert state.authenticated
    assert storage.get('accessToken') == 'old'


def test_concurrent_401s_share_failed_refresh(fake_api, interceptor, store,
                                              logged_in):
    """Both rejected requests end with the one refresh's failure."""
    logged_in('old')
    barrier = threading.Barrier(2, timeout=5)

    def status(call):
        barrier.wait()
        return unauthorized('jwt expired')

    fake_api.on('GET', '/verification/status', status)
    fake_api.on('POST', '/auth/refresh', unauthorized('Invalid refresh'),
                refreshed('new'))
    errors = []

    def send():
        try:
            interceptor.get('/verification/status')
        except SessionExpired as e:
            errors.append(e)

    threads = [threading.Thread(target=send) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(5)

    assert len(errors) == 2
    assert len(fake_api.calls_to('POST', '/auth/refresh')) == 1
    assert not store.snapshot().authenticated


def test_concurrent_401s_share_one_refresh(fake_api, interceptor, store,
                                           logged_in):
    """Two requests rejected at once are both retried after one refresh."""
    logged_in('old')
    barrier = threading.Barrier(2, timeout=5)

    def status(call):
        if call.authorization == 'Bearer old':
            barrier.wait()
            return unauthorized()
        return ok({'success': True, 'data': {'status': 'pending'}})

    fake_api.on('GET', '/verification/status', status)
    fake_api.on('POST', '/auth/refresh', refreshed('new'))
    results = []

    def send():
        results.append(interceptor.get('/verification/status').status_code)

    threads = [threading.Thread(target=send) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(5)

    assert results == [200, 200]
    assert len(fake_api.calls_to('POST', '/auth/refresh')) == 1
    retries = [call for call in fake_api.calls_to('GET',
                                                  '/verification/status')
               if call.authorization == 'Bearer new']
    assert len(retries) == 2
