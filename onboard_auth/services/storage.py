"""
Client-local persistent storage for the access credential.

Exactly one named entry is kept (see :data:`.config.ACCESS_TOKEN_KEY`), and it
is only ever written or cleared by :class:`.SessionStore`. Implementations
share the small interface of :class:`TokenStorage`.
"""

import json
import logging
import os
import threading
from typing import Any, Dict, Mapping, Optional

import redis
from fakeredis import FakeRedis

from onboard_auth import config
from onboard_auth.exceptions import TokenStorageError

logger = logging.getLogger(__name__)


class TokenStorage(object):
    """Key/value storage that survives process restarts."""

    def get(self, name: str) -> Optional[str]:
        raise NotImplementedError('Implement in a subclass')

    def set(self, name: str, value: str) -> None:
        raise NotImplementedError('Implement in a subclass')

    def delete(self, name: str) -> None:
        raise NotImplementedError('Implement in a subclass')

    def close(self) -> None:
        """Release any resources held by the storage."""


class MemoryTokenStorage(TokenStorage):
    """Process-local storage; nothing survives a restart. For tests."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, name: str) -> Optional[str]:
        return self._data.get(name)

    def set(self, name: str, value: str) -> None:
        self._data[name] = value

    def delete(self, name: str) -> None:
        self._data.pop(name, None)


class FileTokenStorage(TokenStorage):
    """
    Entries kept in a small JSON document on disk.

    This is the desktop counterpart of browser local storage. The file is
    rewritten atomically (write to a sibling, then rename) and created with
    owner-only permissions.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, str]:
        try:
            with open(self.path, 'r') as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            raise TokenStorageError(f'Cannot read {self.path}: {e}') from e
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]) -> None:
        directory = os.path.dirname(self.path)
        tmp_path = f'{self.path}.tmp'
        try:
            if directory:
                os.makedirs(directory, exist_ok=True)
            fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC,
                         0o600)
            with os.fdopen(fd, 'w') as f:
                json.dump(data, f)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise TokenStorageError(f'Cannot write {self.path}: {e}') from e

    def get(self, name: str) -> Optional[str]:
        with self._lock:
            value = self._read().get(name)
        return str(value) if value is not None else None

    def set(self, name: str, value: str) -> None:
        with self._lock:
            data = self._read()
            data[name] = value
            self._write(data)

    def delete(self, name: str) -> None:
        with self._lock:
            data = self._read()
            if name in data:
                del data[name]
                self._write(data)


class RedisTokenStorage(TokenStorage):
    """Entries kept in redis, for portal shells running on several hosts."""

    def __init__(self, connection: Any, namespace: str = 'onboard_auth') \
            -> None:
        self.r = connection
        self.namespace = namespace

    def _key(self, name: str) -> str:
        return f'{self.namespace}:{name}'

    def get(self, name: str) -> Optional[str]:
        try:
            value = self.r.get(self._key(name))
        except redis.exceptions.ConnectionError as e:
            raise TokenStorageError(f'Connection failed: {e}') from e
        if value is None:
            return None
        return value.decode('utf-8') if isinstance(value, bytes) else value

    def set(self, name: str, value: str) -> None:
        try:
            self.r.set(self._key(name), value)
        except redis.exceptions.ConnectionError as e:
            raise TokenStorageError(f'Connection failed: {e}') from e

    def delete(self, name: str) -> None:
        try:
            self.r.delete(self._key(name))
        except redis.exceptions.ConnectionError as e:
            raise TokenStorageError(f'Connection failed: {e}') from e

    def close(self) -> None:
        self.r.close()


def init_app(app: Any) -> None:
    """Set default configuration parameters for an application instance."""
    app.config.setdefault('TOKEN_STORAGE', config.TOKEN_STORAGE)
    app.config.setdefault('TOKEN_FILE_PATH', config.TOKEN_FILE_PATH)
    app.config.setdefault('REDIS_HOST', config.REDIS_HOST)
    app.config.setdefault('REDIS_PORT', config.REDIS_PORT)
    app.config.setdefault('REDIS_DATABASE', config.REDIS_DATABASE)
    app.config.setdefault('REDIS_FAKE', config.REDIS_FAKE)


def get_token_storage(settings: Optional[Mapping[str, Any]] = None) \
        -> TokenStorage:
    """Build the storage selected by ``TOKEN_STORAGE``."""
    settings = settings or {}
    kind = settings.get('TOKEN_STORAGE', config.TOKEN_STORAGE)
    if kind == 'memory':
        return MemoryTokenStorage()
    if kind == 'file':
        return FileTokenStorage(settings.get('TOKEN_FILE_PATH',
                                             config.TOKEN_FILE_PATH))
    if kind == 'redis':
        if settings.get('REDIS_FAKE', config.REDIS_FAKE):
            logger.warning('Using FakeRedis for token storage')
            return RedisTokenStorage(FakeRedis())
        host = settings.get('REDIS_HOST', config.REDIS_HOST)
        port = int(settings.get('REDIS_PORT', config.REDIS_PORT))
        db = int(settings.get('REDIS_DATABASE', config.REDIS_DATABASE))
        logger.debug('New Redis connection at %s, port %s', host, port)
        return RedisTokenStorage(redis.Redis(host=host, port=port, db=db))
    raise ValueError(f'Unknown token storage: {kind}')
