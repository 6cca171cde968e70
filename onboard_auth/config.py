"""Configuration for the onboarding session client."""
import os
import re
import secrets

#################### Account Service API ####################
ACCOUNT_SERVICE_URL = os.environ.get(
    'ACCOUNT_SERVICE_URL',
    'http://localhost:3000/api'
)
"""Base URL of the Account Service API. All endpoint paths are relative to
this, e.g. ``/auth/me``."""

REQUEST_TIMEOUT = float(os.environ.get('REQUEST_TIMEOUT', '10'))
"""Seconds to wait for the Account Service before giving up on a request."""

HTTP_MAX_RETRIES = int(os.environ.get('HTTP_MAX_RETRIES', '2'))
"""Connection-level retries handed to the ``requests`` transport adapter.

These only cover failures to connect; HTTP error responses are never
retried here."""


#################### Credential persistence ####################
ACCESS_TOKEN_KEY = os.environ.get('ACCESS_TOKEN_KEY', 'accessToken')
"""Name of the single credential entry kept in client-local storage."""

TOKEN_STORAGE = os.environ.get('TOKEN_STORAGE', 'file')
"""Where the credential is persisted: ``file``, ``redis`` or ``memory``."""

TOKEN_FILE_PATH = os.environ.get(
    'TOKEN_FILE_PATH',
    os.path.join(os.path.expanduser('~'), '.onboard_auth', 'storage.json')
)
"""JSON file used when ``TOKEN_STORAGE`` is ``file``."""

REDIS_HOST = os.environ.get('REDIS_HOST', 'localhost')
REDIS_PORT = os.environ.get('REDIS_PORT', '6379')
REDIS_DATABASE = os.environ.get('REDIS_DATABASE', '0')
REDIS_FAKE = bool(int(os.environ.get('REDIS_FAKE', '0')))
"""Use the FakeRedis library instead of a redis service.

Useful for testing and local development."""


#################### Navigation ####################
LOGIN_PATH = os.environ.get('LOGIN_PATH', '/login')
"""Where unauthenticated users are sent. The originally requested path is
passed along as ``next_page``."""

_relative_paths = r"(^\/(?:[^\/]+\/)*[^\/]+$)"
LOGIN_REDIRECT_REGEX = os.environ.get('LOGIN_REDIRECT_REGEX', _relative_paths)
"""Regex to check the remembered ``next_page`` after login.

Only relative, in-portal paths are accepted by default. Anything else falls
back to the user's canonical onboarding destination.
"""

login_redirect_pattern = re.compile(LOGIN_REDIRECT_REGEX)

MAX_REDIRECTS = int(os.environ.get('MAX_REDIRECTS', '5'))
"""Guard redirects followed for a single navigation before giving up."""


#################### Minor configs ##############################
ONBOARD_AUTH_DEBUG = bool(int(os.environ.get('ONBOARD_AUTH_DEBUG', '0')))
"""Log every guard decision at debug level. Do not leave on in production."""

LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

SECRET_KEY = os.environ.get('SECRET_KEY', secrets.token_urlsafe(16))
"""Sets the `Flask` secret key for the portal shell."""
