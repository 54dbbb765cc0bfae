"""Tests for :mod:`sessionstores.storage.embedded`."""

from unittest import TestCase, mock
import os
import shutil
import tempfile

import lmdb

from .. import embedded
from ...exceptions import ConfigError, NotFound, StorageError


class TestEmbeddedStorage(TestCase):
    """The embedded storage keeps payloads in a local LMDB directory."""

    def setUp(self):
        """Open a database in a fresh directory."""
        self.path = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.path, True)
        self.storage = embedded.EmbeddedStorage(
            os.path.join(self.path, 'sessions'), map_size=2 ** 20
        )
        self.addCleanup(self.storage.close)

    def test_directory_created(self):
        """The database directory is created on open."""
        self.assertTrue(os.path.isdir(os.path.join(self.path, 'sessions')))

    def test_put(self):
        """Payloads are stored under a prefixed key."""
        self.storage.put('SOMEID', 'payload')
        with self.storage.env.begin() as txn:
            self.assertEqual(bytes(txn.get(b'session_SOMEID')), b'payload')

    def test_put_replaces(self):
        """A second put for the same identifier replaces the record."""
        self.storage.put('SOMEID', 'first')
        self.storage.put('SOMEID', 'second')
        self.assertEqual(self.storage.get('SOMEID'), 'second')
        self.assertEqual(self.storage.env.stat()['entries'], 1)

    def test_get_missing(self):
        """:class:`.NotFound` is raised when there is no record."""
        with self.assertRaises(NotFound):
            self.storage.get('SOMEID')

    def test_delete(self):
        """Deleting twice, or deleting a missing record, is not an error."""
        self.storage.put('SOMEID', 'payload')
        self.storage.delete('SOMEID')
        self.storage.delete('SOMEID')
        with self.assertRaises(NotFound):
            self.storage.get('SOMEID')

    def test_persists_across_reopen(self):
        """Records survive closing and reopening the database."""
        self.storage.put('SOMEID', 'payload')
        self.storage.close()
        self.storage = embedded.EmbeddedStorage(
            os.path.join(self.path, 'sessions'), map_size=2 ** 20
        )
        self.addCleanup(self.storage.close)
        self.assertEqual(self.storage.get('SOMEID'), 'payload')

    def test_database_full(self):
        """A write that does not fit is a :class:`.StorageError`."""
        with self.assertRaises(StorageError):
            self.storage.put('SOMEID', 'x' * (2 ** 21))

    def test_failure(self):
        """LMDB errors raise :class:`.StorageError`."""
        self.storage.env = mock.MagicMock()
        self.storage.env.begin.side_effect = lmdb.Error('nope')
        with self.assertRaises(StorageError):
            self.storage.put('SOMEID', 'payload')
        with self.assertRaises(StorageError):
            self.storage.get('SOMEID')
        with self.assertRaises(StorageError):
            self.storage.delete('SOMEID')


class TestOpen(TestCase):
    """Opening the database."""

    def test_bad_path(self):
        """A path that cannot be a directory is a configuration error."""
        with tempfile.NamedTemporaryFile() as f:
            with self.assertRaises(ConfigError):
                embedded.EmbeddedStorage(os.path.join(f.name, 'sessions'))
