"""Tests for :mod:`onboard_auth.services.storage`."""

import json
import os
import shutil
import stat
import tempfile
from unittest import TestCase, mock

import pytest
from fakeredis import FakeRedis
from redis.exceptions import ConnectionError

from onboard_auth.exceptions import TokenStorageError

from .. import storage


class TestFileTokenStorage(TestCase):
    def setUp(self):
        self.workdir = tempfile.mkdtemp()
        self.path = os.path.join(self.workdir, 'nested', 'storage.json')
        self.storage = storage.FileTokenStorage(self.path)

    def tearDown(self):
        shutil.rmtree(self.workdir)

    def test_missing_file(self):
        self.assertIsNone(self.storage.get('accessToken'))

    def test_set_get_delete(self):
        self.storage.set('accessToken', 'abc')
        self.assertEqual(self.storage.get('accessToken'), 'abc')
        self.storage.delete('accessToken')
        self.assertIsNone(self.storage.get('accessToken'))

    def test_survives_new_instance(self):
        """The entry is still there after a restart."""
        self.storage.set('accessToken', 'abc')
        self.assertEqual(storage.FileTokenStorage(self.path)
                         .get('accessToken'), 'abc')

    def test_other_entries_kept(self):
        os.makedirs(os.path.dirname(self.path), exist_ok=True)
        with open(self.path, 'w') as f:
            json.dump({'theme': 'dark'}, f)
        self.storage.set('accessToken', 'abc')
        self.storage.delete('accessToken')
        with open(self.path) as f:
            self.assertEqual(json.load(f), {'theme': 'dark'})

    def test_owner_only(self):
        self.storage.set('accessToken', 'abc')
        mode = stat.S_IMODE(os.stat(self.path).st_mode)
        self.assertEqual(mode & 0o077, 0)

    def test_corrupt_file(self):
        os.makedirs(os.path.dirname(self.path), exist_ok=True)
        with open(self.path, 'w') as f:
            f.write('{not json')
        with self.assertRaises(TokenStorageError):
            self.storage.get('accessToken')


class TestRedisTokenStorage(TestCase):
    def setUp(self):
        self.r = FakeRedis()
        self.storage = storage.RedisTokenStorage(self.r, namespace='portal')

    def test_set_get_delete(self):
        self.storage.set('accessToken', 'abc')
        self.assertEqual(self.r.get('portal:accessToken'), b'abc')
        self.assertEqual(self.storage.get('accessToken'), 'abc')
        self.storage.delete('accessToken')
        self.assertIsNone(self.storage.get('accessToken'))

    def test_connection_failed(self):
        broken = mock.MagicMock()
        broken.get.side_effect = ConnectionError('refused')
        broken.set.side_effect = ConnectionError('refused')
        s = storage.RedisTokenStorage(broken)
        with self.assertRaises(TokenStorageError):
            s.get('accessToken')
        with self.assertRaises(TokenStorageError):
            s.set('accessToken', 'abc')


def test_memory_storage():
    s = storage.MemoryTokenStorage({'accessToken': 'abc'})
    assert s.get('accessToken') == 'abc'
    s.delete('accessToken')
    s.delete('accessToken')
    assert s.get('accessToken') is None


@pytest.mark.parametrize('settings,kind', [
    ({'TOKEN_STORAGE': 'memory'}, storage.MemoryTokenStorage),
    ({'TOKEN_STORAGE': 'file', 'TOKEN_FILE_PATH': '/tmp/x.json'},
     storage.FileTokenStorage),
    ({'TOKEN_STORAGE': 'redis', 'REDIS_FAKE': True},
     storage.RedisTokenStorage),
])
def test_get_token_storage(settings, kind):
    assert isinstance(storage.get_token_storage(settings), kind)


def test_unknown_storage():
    with pytest.raises(ValueError):
        storage.get_token_storage({'TOKEN_STORAGE': 'cookie'})
