"""
Integration with the Account Service API.

The Account Service owns users, credentials and KYC review. This module only
knows how to talk to it: base URL, bearer header, the refresh cookie kept in
the ``requests`` cookie jar, and how failures are reported in response bodies.
Decisions about what to do with a response belong to
:mod:`onboard_auth.auth`.
"""

import json
import logging
from typing import Any, Dict, Mapping, Optional

import requests

from onboard_auth import config
from onboard_auth.exceptions import NetworkError

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = 'An unexpected error occurred'


class AccountServiceSession(object):
    """
    Preserves the HTTP state that must persist between Account Service calls.

    The underlying :class:`requests.Session` keeps the HTTP-only refresh
    cookie set by login and refresh responses, and carries the current bearer
    credential as a default header.
    """

    def __init__(self, base_url: str, timeout: float = 10.0,
                 max_retries: int = 2) -> None:
        """Create a new HTTP session."""
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self._session = requests.Session()
        self._adapter = requests.adapters.HTTPAdapter(max_retries=max_retries)
        self._session.mount('http://', self._adapter)
        self._session.mount('https://', self._adapter)
        logger.debug('New AccountServiceSession at %s', self.base_url)

    def url_for(self, path: str) -> str:
        """Absolute URL of an endpoint path such as ``/auth/me``."""
        return f'{self.base_url}/{path.lstrip("/")}'

    @property
    def authorization(self) -> Optional[str]:
        """The ``Authorization`` header sent with every request, if any."""
        return self._session.headers.get('Authorization')

    def set_authorization(self, token: Optional[str]) -> None:
        """Attach ``token`` as a bearer credential, or remove the header."""
        if token:
            self._session.headers['Authorization'] = f'Bearer {token}'
        else:
            self._session.headers.pop('Authorization', None)

    def request(self, method: str, path: str,
                json: Optional[Any] = None,
                headers: Optional[Dict[str, str]] = None) \
            -> requests.Response:
        """
        Send a request to the Account Service.

        HTTP error statuses are returned, not raised.

        Raises
        ------
        :class:`.NetworkError`
            If the service could not be reached.

        """
        url = self.url_for(path)
        logger.debug('%s %s', method, url)
        try:
            response = self._session.request(method, url, json=json,
                                             headers=headers,
                                             timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.debug('Request to %s failed: %s', url, e)
            raise NetworkError(f'Could not reach the account service: {e}') \
                from e
        logger.debug('%s %s responded with status %i', method, url,
                     response.status_code)
        return response

    def close(self) -> None:
        self._session.close()


def payload(response: requests.Response) -> Dict[str, Any]:
    """Decoded JSON body of ``response``, or an empty dict."""
    try:
        data = response.json()
    except (json.decoder.JSONDecodeError, ValueError):
        logger.debug('Response body could not be decoded')
        return {}
    return data if isinstance(data, dict) else {}


def is_success(response: requests.Response) -> bool:
    """2xx status, and the body does not report ``success: false``."""
    return response.ok and payload(response).get('success', True) is not False


def error_message(response: requests.Response,
                  default: str = DEFAULT_ERROR_MESSAGE) -> str:
    """
    Extract the collaborator's failure message.

    The Account Service reports failures as ``message``, ``error`` or a list
    of ``errors``; the first of these that is present is returned verbatim.
    """
    data = payload(response)
    if data.get('message'):
        return str(data['message'])
    if data.get('error'):
        return str(data['error'])
    errors = data.get('errors')
    if isinstance(errors, list) and errors:
        first = errors[0]
        if isinstance(first, dict):
            return str(first.get('msg') or first.get('message') or default)
        return str(first)
    return response.reason or default


def init_app(app: Any) -> None:
    """Set default configuration parameters for an application instance."""
    app.config.setdefault('ACCOUNT_SERVICE_URL', config.ACCOUNT_SERVICE_URL)
    app.config.setdefault('REQUEST_TIMEOUT', config.REQUEST_TIMEOUT)
    app.config.setdefault('HTTP_MAX_RETRIES', config.HTTP_MAX_RETRIES)


def get_session(settings: Optional[Mapping[str, Any]] = None) \
        -> AccountServiceSession:
    """Create a new :class:`.AccountServiceSession` from configuration."""
    settings = settings or {}
    base_url = settings.get('ACCOUNT_SERVICE_URL', config.ACCOUNT_SERVICE_URL)
    timeout = float(settings.get('REQUEST_TIMEOUT', config.REQUEST_TIMEOUT))
    retries = int(settings.get('HTTP_MAX_RETRIES', config.HTTP_MAX_RETRIES))
    return AccountServiceSession(base_url, timeout=timeout,
                                 max_retries=retries)
