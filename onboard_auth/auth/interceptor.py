"""
Outbound request pipeline with silent refresh on authorization failure.

Every call to the Account Service goes through :class:`AuthInterceptor`. A
``401`` on an ordinary endpoint triggers one silent refresh (shared with any
other caller that is already refreshing) and exactly one retry. The attempt
number travels with the call; nothing is written onto shared request state.
"""

import logging
from typing import Any, FrozenSet

import requests

from onboard_auth.exceptions import SessionExpired, Unauthorized
from onboard_auth.services import api as account_api
from onboard_auth.services.api import AccountServiceSession

from .sessions.store import REFRESH_PATH, SessionStore

logger = logging.getLogger(__name__)

LOGIN_PATH = '/auth/login'

EXEMPT_PATHS: FrozenSet[str] = frozenset({LOGIN_PATH, REFRESH_PATH})
"""A 401 from these endpoints means bad input, not an expired credential."""

MAX_ATTEMPT = 1


class AuthInterceptor(object):
    """Sends requests on behalf of the session, refreshing it when needed."""

    def __init__(self, api: AccountServiceSession, store: SessionStore) \
            -> None:
        self.api = api
        self.store = store

    def request(self, method: str, path: str, attempt: int = 0,
                **kwargs: Any) -> requests.Response:
        """
        Send a request, refreshing the session once on a ``401``.

        Parameters
        ----------
        method : str
            HTTP verb.
        path : str
            Endpoint path relative to the Account Service base URL.
        attempt : int
            ``0`` for the original request, ``1`` for its retry.
        kwargs
            Passed to :meth:`.AccountServiceSession.request`.

        Returns
        -------
        :class:`requests.Response`
            Any response other than a handled ``401``.

        Raises
        ------
        :class:`.SessionExpired`
            The refresh failed. The session has been cleared.
        :class:`.Unauthorized`
            The retry was rejected too. The session has been cleared.
        :class:`.NetworkError`
            The Account Service could not be reached.

        """
        sent_with = self.store.credential
        response = self.api.request(method, path, **kwargs)
        if response.status_code != 401 or path in EXEMPT_PATHS:
            return response

        message = account_api.error_message(response, 'Not authorized')
        if attempt >= MAX_ATTEMPT:
            logger.info('%s %s rejected after refresh; ending session',
                        method, path)
            self.store.clear()
            raise Unauthorized(message, 401)

        logger.debug('%s %s returned 401, refreshing session', method, path)
        if not self.store.refresh(stale_credential=sent_with):
            raise SessionExpired(message, 401)
        return self.request(method, path, attempt=attempt + 1, **kwargs)

    def get(self, path: str, **kwargs: Any) -> requests.Response:
        return self.request('GET', path, **kwargs)

    def post(self, path: str, **kwargs: Any) -> requests.Response:
        return self.request('POST', path, **kwargs)

    def put(self, path: str, **kwargs: Any) -> requests.Response:
        return self.request('PUT', path, **kwargs)

    def delete(self, path: str, **kwargs: Any) -> requests.Response:
        return self.request('DELETE', path, **kwargs)
