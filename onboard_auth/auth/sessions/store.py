"""
Holds the authenticated session: the access credential and the user profile.

The :class:`SessionStore` is the only writer of the credential, both in
memory and in client-local storage. Credential and profile are always
replaced together under one lock, so a reader never sees a fresh credential
next to a stale profile (or the reverse). Readers that need a consistent view
take a :class:`SessionState` snapshot.

Silent refresh is single-flight: however many callers ask for a refresh at
once, only one ``POST /auth/refresh`` is in flight and every caller receives
its outcome. Failing to reach the Account Service is not an outcome: the
session is left as it was and the :class:`.NetworkError` is raised to every
caller of that refresh.
"""

import logging
import threading
from concurrent.futures import Future
from typing import NamedTuple, Optional

from pydantic import ValidationError

from onboard_auth import config
from onboard_auth.domain import InvestorType, UserProfile, \
    VerificationStatus
from onboard_auth.exceptions import AuthFailure, NetworkError, \
    RequestFailed, SessionExpired, TokenStorageError, Unauthorized
from onboard_auth.services import api as account_api
from onboard_auth.services.api import AccountServiceSession
from onboard_auth.services.storage import TokenStorage

logger = logging.getLogger(__name__)

ME_PATH = '/auth/me'
REFRESH_PATH = '/auth/refresh'


class SessionState(NamedTuple):
    """A consistent, read-only view of the session."""

    loading: bool
    """The store is still initializing; guards must render nothing."""

    credential: Optional[str] = None
    profile: Optional[UserProfile] = None

    @property
    def authenticated(self) -> bool:
        return self.profile is not None


class SessionStore(object):
    """
    Manages the credential and profile for one portal client.

    Construct one per process (or per Flask app) and pass it to the
    interceptor, the guard chain and the account client. Call
    :meth:`initialize` once at start-up; until it returns, :attr:`loading`
    is true.
    """

    def __init__(self, api: AccountServiceSession, storage: TokenStorage,
                 token_key: str = config.ACCESS_TOKEN_KEY) -> None:
        self.api = api
        self.storage = storage
        self.token_key = token_key
        self._lock = threading.RLock()
        self._ready = threading.Event()
        self._credential: Optional[str] = None
        self._profile: Optional[UserProfile] = None
        self._generation = 0
        self._refresh: Optional[Future] = None

    @property
    def loading(self) -> bool:
        return not self._ready.is_set()

    @property
    def credential(self) -> Optional[str]:
        with self._lock:
            return self._credential

    @property
    def profile(self) -> Optional[UserProfile]:
        with self._lock:
            return self._profile

    def get_profile(self) -> Optional[UserProfile]:
        return self.profile

    def snapshot(self) -> SessionState:
        """Current loading flag, credential and profile, read together."""
        with self._lock:
            return SessionState(self.loading, self._credential, self._profile)

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until :meth:`initialize` has finished."""
        return self._ready.wait(timeout)

    def set_credential(self, token: Optional[str]) -> None:
        """
        Persist ``token`` and send it with every subsequent request.

        ``None`` removes the persisted entry and the ``Authorization`` header.
        """
        with self._lock:
            self._write_credential(token)

    def set_profile(self, profile: Optional[UserProfile]) -> None:
        """Replace the profile wholesale. Pending profile fetches are voided."""
        with self._lock:
            self._profile = profile
            self._generation += 1

    def apply(self, token: Optional[str],
              profile: Optional[UserProfile]) -> None:
        """Replace credential and profile together."""
        with self._lock:
            self._write_credential(token)
            self._profile = profile
            self._generation += 1

    def clear(self) -> None:
        """Drop the session: no credential, no profile."""
        logger.debug('Clearing session')
        self.apply(None, None)

    def patch_investor_type(self, investor_type: InvestorType) -> None:
        """Locally record the investor type after the server accepted it."""
        with self._lock:
            if self._profile is not None:
                self._profile = self._profile.with_investor_type(investor_type)

    def patch_verification(self, status: VerificationStatus) -> None:
        """Replace the KYC block with a freshly fetched status."""
        with self._lock:
            if self._profile is not None:
                self._profile = self._profile.with_verification_status(status)

    def begin_fetch(self) -> int:
        """Start a profile fetch; returns its generation number."""
        with self._lock:
            self._generation += 1
            return self._generation

    def apply_fetched(self, generation: int, profile: UserProfile) -> bool:
        """
        Accept a fetched profile, unless it has been superseded.

        A fetch is superseded by any later fetch, write or
        :meth:`cancel_pending`. Returns ``True`` if the profile was applied.
        """
        with self._lock:
            if generation != self._generation:
                logger.debug('Discarding stale profile (generation %i, '
                             'current %i)', generation, self._generation)
                return False
            self._profile = profile
            return True

    def cancel_pending(self) -> None:
        """Make the results of all in-flight profile fetches stale."""
        with self._lock:
            self._generation += 1

    def initialize(self) -> SessionState:
        """
        Restore the session at process start.

        Tries the persisted credential against ``GET /auth/me`` first, then
        a silent refresh with the ambient refresh cookie. Ends unauthenticated
        if neither works. :attr:`loading` is cleared in every case.

        If the Account Service cannot be reached the session also ends
        unauthenticated, but the persisted credential is kept for the next
        start.
        """
        try:
            if not self._restore_persisted():
                if not self.refresh():
                    logger.info('No session could be restored')
        except NetworkError as e:
            logger.warning('Could not restore session: %s', e)
            self._forget()
        finally:
            self._ready.set()
        return self.snapshot()

    def refresh(self, stale_credential: Optional[str] = None) -> bool:
        """
        Obtain a new credential using the refresh cookie.

        Parameters
        ----------
        stale_credential : str
            The credential a failed request was sent with. If the store
            already holds a different credential, that one is assumed fresh
            and no refresh is made. If the store was cleared since, the
            session has ended and ``False`` is returned without a refresh.

        Returns
        -------
        bool
            ``True`` if the session now holds a fresh credential and profile.
            On ``False`` the session has been cleared.

        Raises
        ------
        :class:`.NetworkError`
            The Account Service could not be reached. The session is left
            unchanged.

        """
        with self._lock:
            if self._refresh is not None:
                future = self._refresh
                leader = False
            elif stale_credential is not None \
                    and self._credential != stale_credential:
                logger.debug('Credential was already replaced, not refreshing')
                return self._credential is not None
            else:
                future = self._refresh = Future()
                leader = True

        if not leader:
            logger.debug('Waiting for the refresh already in flight')
            succeeded: bool = future.result()
            return succeeded

        try:
            succeeded = self._do_refresh()
        except Exception as e:
            with self._lock:
                self._refresh = None
            future.set_exception(e)
            raise
        with self._lock:
            self._refresh = None
        future.set_result(succeeded)
        return succeeded

    def fetch_profile(self, token: Optional[str] = None) -> UserProfile:
        """
        Fetch the current user from ``GET /auth/me``.

        With ``token`` the request carries that credential instead of the one
        the store holds, so a credential can be checked before it is applied.
        """
        headers = {'Authorization': f'Bearer {token}'} if token else None
        response = self.api.request('GET', ME_PATH, headers=headers)
        if response.status_code == 401:
            raise Unauthorized(account_api.error_message(response), 401)
        if not account_api.is_success(response):
            raise RequestFailed(account_api.error_message(response),
                                response.status_code)
        return parse_profile(account_api.payload(response).get('data'))

    def teardown(self) -> None:
        """Release the HTTP session and storage handles."""
        self.api.close()
        self.storage.close()

    def _write_credential(self, token: Optional[str]) -> None:
        self._credential = token or None
        self.api.set_authorization(self._credential)
        try:
            if self._credential:
                self.storage.set(self.token_key, self._credential)
            else:
                self.storage.delete(self.token_key)
        except TokenStorageError as e:
            # The in-memory session stays authoritative for this process.
            logger.error('Could not persist credential: %s', e)

    def _forget(self) -> None:
        with self._lock:
            self._credential = None
            self._profile = None
            self._generation += 1
            self.api.set_authorization(None)

    def _restore_persisted(self) -> bool:
        try:
            stored = self.storage.get(self.token_key)
        except TokenStorageError as e:
            logger.error('Could not read persisted credential: %s', e)
            return False
        if not stored:
            logger.debug('No persisted credential')
            return False

        with self._lock:
            self._credential = stored
            self.api.set_authorization(stored)
        generation = self.begin_fetch()
        try:
            profile = self.fetch_profile()
        except NetworkError:
            raise
        except AuthFailure as e:
            logger.debug('Persisted credential was not accepted: %s', e)
            return False
        self.apply_fetched(generation, profile)
        return True

    def _do_refresh(self) -> bool:
        logger.debug('Attempting silent refresh')
        try:
            response = self.api.request('POST', REFRESH_PATH)
            if not account_api.is_success(response):
                raise SessionExpired(account_api.error_message(response),
                                     response.status_code)
            data = account_api.payload(response)
            token = data.get('accessToken')
            if not token:
                raise SessionExpired('Refresh did not issue a credential')
            user = data.get('user') or data.get('data')
            if user:
                profile = parse_profile(user)
            else:
                profile = self.fetch_profile(token)
        except NetworkError:
            raise
        except AuthFailure as e:
            logger.info('Silent refresh failed: %s', e)
            self.clear()
            return False
        self.apply(token, profile)
        logger.debug('Silent refresh succeeded')
        return True


def parse_profile(data: Optional[dict]) -> UserProfile:
    if not data:
        raise RequestFailed('Response did not include a user profile')
    try:
        return UserProfile.model_validate(data)
    except ValidationError as e:
        raise RequestFailed(f'Malformed user profile: {e}') from e
