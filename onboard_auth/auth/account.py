"""
Account operations offered by the Account Service.

Every operation goes through the :class:`.AuthInterceptor`, updates the
:class:`.SessionStore` as needed, and returns an :class:`.AuthResult`. No
:class:`.AuthFailure` escapes; callers check ``result.ok``.

After a mutating call the profile is replaced wholesale, with one exception:
a successful ``setInvestorType`` patches only the investor type locally.
Since ``setRole`` and ``updateMe`` respond with a partial projection of the
user, the full profile is fetched again after those calls.
"""

import logging
from typing import Any, Dict, Optional, Type

from pydantic import ValidationError

from onboard_auth.domain import AuthResult, InvestorType, Role, \
    VerificationStatus
from onboard_auth.exceptions import AuthFailure, InvalidCredentials, \
    RequestFailed, ValidationFailed
from onboard_auth.services import api as account_api

from .interceptor import AuthInterceptor
from .sessions.store import ME_PATH, SessionStore, parse_profile

logger = logging.getLogger(__name__)

SELECTABLE_ROLES = (Role.INVESTOR, Role.STARTUP)
SELECTABLE_INVESTOR_TYPES = (InvestorType.PERSONAL, InvestorType.CORPORATE)


class AccountClient(object):
    """Authentication and profile operations for the current session."""

    def __init__(self, interceptor: AuthInterceptor, store: SessionStore) \
            -> None:
        self.interceptor = interceptor
        self.store = store

    def _send(self, method: str, path: str, default_message: str,
              failure: Type[AuthFailure] = RequestFailed,
              json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        response = self.interceptor.request(method, path, json=json)
        if not account_api.is_success(response):
            raise failure(account_api.error_message(response,
                                                    default_message),
                          response.status_code)
        return account_api.payload(response)

    def _current(self, message: Optional[str] = None) -> AuthResult:
        return AuthResult(self.store.profile, message=message)

    def login(self, email: str, password: str) -> AuthResult:
        """Exchange email and password for a credential and profile."""
        logger.debug('Login requested')
        try:
            data = self._send('POST', '/auth/login',
                              'Invalid email or password', InvalidCredentials,
                              json={'email': email, 'password': password})
            token = data.get('accessToken')
            if not token:
                raise InvalidCredentials('Login did not issue a credential')
            user = data.get('user')
            if user:
                profile = parse_profile(user)
            else:
                profile = self.store.fetch_profile(token)
        except AuthFailure as e:
            logger.info('Login failed: %s', e.message)
            return AuthResult.failure(e)

        self.store.apply(token, profile)
        logger.debug('Logged in user %s', profile.user_id)
        return AuthResult(profile, message=data.get('message'))

    def register(self, name: str, email: str, password: str, phone: str) \
            -> AuthResult:
        """
        Create an account.

        The Account Service normally asks for email verification first, in
        which case no credential is issued and the user is not logged in.
        """
        try:
            data = self._send('POST', '/auth/register',
                              'Registration failed. Please try again.',
                              InvalidCredentials,
                              json={'name': name, 'email': email,
                                    'password': password, 'phone': phone})
            user = data.get('user')
            profile = parse_profile(user) if user else None
        except AuthFailure as e:
            logger.info('Registration failed: %s', e.message)
            return AuthResult.failure(e)

        token = data.get('accessToken')
        if token:
            self.store.apply(token, profile)
        elif profile is not None:
            self.store.set_profile(profile)
        return AuthResult(profile, message=data.get('message'))

    def verify_email(self, email: str, code: str) -> AuthResult:
        """Confirm an email address with the code that was sent to it."""
        try:
            data = self._send('POST', '/auth/verify-email',
                              'Verification failed. Try again.',
                              InvalidCredentials,
                              json={'email': email, 'code': code})
            token = data.get('accessToken')
            user = data.get('user')
            if user:
                profile = parse_profile(user)
            elif token:
                profile = self.store.fetch_profile(token)
            else:
                profile = None
        except AuthFailure as e:
            logger.info('Email verification failed: %s', e.message)
            return AuthResult.failure(e)

        if token:
            self.store.apply(token, profile)
        elif profile is not None:
            self.store.set_profile(profile)
        return self._current(data.get('message'))

    def resend_code(self, email: str) -> AuthResult:
        try:
            data = self._send('POST', '/auth/resend-code',
                              'Failed to resend code. Try again.',
                              json={'email': email})
        except AuthFailure as e:
            return AuthResult.failure(e)
        return self._current(data.get('message'))

    def set_role(self, role: Any) -> AuthResult:
        """
        Choose between the investor and startup roles.

        A role can be chosen once. The full profile is fetched again
        afterwards.
        """
        try:
            chosen = _as_enum(Role, role)
            if chosen not in SELECTABLE_ROLES:
                raise ValidationFailed('investor and startup are the only '
                                       'accepted roles')
            profile = self.store.profile
            if profile is None:
                raise ValidationFailed('No user logged in')
            if profile.has_chosen_role:
                raise ValidationFailed('A role has already been chosen')
            self._send('PUT', '/auth/setRole', 'Failed to set user role',
                       json={'role': chosen.value})
        except AuthFailure as e:
            logger.info('Could not set role: %s', e.message)
            return AuthResult.failure(e)
        return self.reload_profile()

    def set_investor_type(self, investor_type: Any) -> AuthResult:
        """Choose the personal or corporate verification path, once."""
        try:
            profile = self.store.profile
            if profile is None:
                raise ValidationFailed('No user logged in')
            if profile.role is not Role.INVESTOR:
                raise ValidationFailed('Only investors choose an investor '
                                       'type')
            chosen = _as_enum(InvestorType, investor_type)
            if chosen not in SELECTABLE_INVESTOR_TYPES:
                raise ValidationFailed('personal and corporate are the only '
                                       'accepted types')
            if profile.has_chosen_investor_type:
                raise ValidationFailed('An investor type has already been '
                                       'chosen')
            data = self._send('PUT', '/auth/setInvestorType',
                              'Failed to set investor type',
                              json={'type': chosen.value})
        except AuthFailure as e:
            logger.info('Could not set investor type: %s', e.message)
            return AuthResult.failure(e)
        self.store.patch_investor_type(chosen)
        return self._current(data.get('message'))

    def update_me(self, name: Optional[str] = None,
                  phone: Optional[str] = None) -> AuthResult:
        """Change the user's name and/or phone number."""
        changes = {key: value for key, value
                   in (('name', name), ('phone', phone)) if value is not None}
        try:
            if not changes:
                raise ValidationFailed('Nothing to update')
            self._send('PUT', '/auth/updateMe', 'Failed to update profile',
                       json=changes)
        except AuthFailure as e:
            return AuthResult.failure(e)
        return self.reload_profile()

    def reload_profile(self) -> AuthResult:
        """
        Fetch ``/auth/me`` and replace the profile with it.

        If the session changed while the request was in flight, the newer
        state is kept and returned instead.
        """
        generation = self.store.begin_fetch()
        try:
            data = self._send('GET', ME_PATH,
                              'Failed to retrieve user profile')
            profile = parse_profile(data.get('data'))
        except AuthFailure as e:
            return AuthResult.failure(e)
        self.store.apply_fetched(generation, profile)
        return self._current()

    def delete_me(self) -> AuthResult:
        """Delete the account and end the session."""
        try:
            data = self._send('DELETE', '/auth/deleteMe',
                              'Failed to delete account')
        except AuthFailure as e:
            logger.info('Could not delete account: %s', e.message)
            return AuthResult.failure(e)
        self.store.clear()
        return AuthResult(None, message=data.get('message'))

    def logout(self) -> AuthResult:
        """End the session. Local state is cleared even if the call fails."""
        message = None
        try:
            data = self._send('GET', '/auth/logout', 'Logout failed')
            message = data.get('message')
        except AuthFailure as e:
            logger.warning('Logout failed: %s', e.message)
        finally:
            self.store.clear()
        return AuthResult(None, message=message)

    def forgot_password(self, email: str) -> AuthResult:
        try:
            data = self._send('POST', '/auth/forgot-password',
                              'Failed to send reset email',
                              json={'email': email})
        except AuthFailure as e:
            return AuthResult.failure(e)
        return self._current(data.get('message'))

    def reset_password(self, token: str, password: str) -> AuthResult:
        """Set a new password using the token from the reset email."""
        try:
            data = self._send('POST', '/auth/reset-password',
                              'Invalid or expired token',
                              json={'token': token, 'password': password})
        except AuthFailure as e:
            return AuthResult.failure(e)
        return self._current(data.get('message'))

    def verification_status(self) -> AuthResult:
        """Fetch the KYC review state and record it on the profile."""
        try:
            data = self._send('GET', '/verification/status',
                              'Failed to retrieve verification status')
            status = VerificationStatus.model_validate(data.get('data') or {})
        except ValidationError as e:
            return AuthResult.failure(
                RequestFailed(f'Malformed verification status: {e}'))
        except AuthFailure as e:
            return AuthResult.failure(e)
        self.store.patch_verification(status)
        return self._current(data.get('message'))


def _as_enum(kind: Any, value: Any) -> Any:
    try:
        return kind(value)
    except ValueError as e:
        raise ValidationFailed(f'{value!r} is not a valid '
                               f'{kind.__name__}') from e
