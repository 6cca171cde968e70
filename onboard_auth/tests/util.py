"""Helpers for testing against a scripted Account Service."""

import json
import threading
from http import HTTPStatus
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple, \
    Union

import requests


def make_response(status_code: int = 200, payload: Optional[Any] = None) \
        -> requests.Response:
    """Build a :class:`requests.Response` with a JSON body."""
    response = requests.Response()
    response.status_code = status_code
    response.reason = HTTPStatus(status_code).phrase
    if payload is not None:
        response._content = json.dumps(payload).encode('utf-8')
        response.headers['Content-Type'] = 'application/json'
    else:
        response._content = b''
    return response


def user_data(**overrides: Any) -> Dict[str, Any]:
    """A user as the Account Service reports it."""
    data = {
        '_id': '5f1d7c',
        'name': 'Ada Lovelace',
        'email': 'ada@example.com',
        'phone': '+441234567890',
        'role': 'none',
        'investorType': 'none',
        'isVerified': False,
        'isSuper': False,
        'verification': {},
    }
    data.update(overrides)
    return data


def me(**overrides: Any) -> requests.Response:
    return make_response(200, {'success': True, 'data': user_data(**overrides)})


def refreshed(token: str, **overrides: Any) -> requests.Response:
    return make_response(200, {'success': True, 'accessToken': token,
                                'user': user_data(**overrides)})


def unauthorized(message: str = 'Not authorized, token failed') \
        -> requests.Response:
    return make_response(401, {'success': False, 'message': message})


class Call(NamedTuple):
    method: str
    path: str
    json: Optional[Any]
    authorization: Optional[str]


Handler = Union[requests.Response, Callable[[Call], requests.Response]]


class FakeAccountService(object):
    """
    Stands in for :class:`.AccountServiceSession`.

    Responses are scripted per ``(method, path)``. A list of responses is
    consumed in order; the last one repeats. Every call is recorded together
    with the ``Authorization`` header it was sent with.
    """

    def __init__(self) -> None:
        self.handlers: Dict[Tuple[str, str], List[Handler]] = {}
        self.calls: List[Call] = []
        self.authorization: Optional[str] = None
        self.closed = False
        self._lock = threading.Lock()

    def on(self, method: str, path: str, *handlers: Handler) -> None:
        self.handlers[(method, path)] = list(handlers)

    def set_authorization(self, token: Optional[str]) -> None:
        self.authorization = f'Bearer {token}' if token else None

    def request(self, method: str, path: str, json: Optional[Any] = None,
                headers: Optional[Dict[str, str]] = None) \
            -> requests.Response:
        authorization = (headers or {}).get('Authorization',
                                            self.authorization)
        call = Call(method, path, json, authorization)
        with self._lock:
            self.calls.append(call)
            handlers = self.handlers.get((method, path))
            if not handlers:
                raise AssertionError(f'Unexpected request: {method} {path}')
            handler = handlers.pop(0) if len(handlers) > 1 else handlers[0]
        if callable(handler):
            return handler(call)
        return handler

    def calls_to(self, method: str, path: str) -> List[Call]:
        return [call for call in self.calls
                if call.method == method and call.path == path]

    def close(self) -> None:
        self.closed = True
