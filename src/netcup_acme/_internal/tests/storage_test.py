"""Tests for netcup_acme._internal.storage."""
import datetime
import json
import os
import stat
import sys

from cryptography.hazmat.primitives.asymmetric import ec
import josepy as jose
import pytest

from netcup_acme import configuration
from netcup_acme import errors
from netcup_acme._internal import storage
from netcup_acme._internal.storage import AccountRecord
from netcup_acme._internal.storage import AccountStore
from netcup_acme._internal.storage import CertificateCollection
from netcup_acme._internal.storage import CollectionStore
from netcup_acme._internal.tests import util as test_util

NOW = datetime.datetime(2024, 6, 1, tzinfo=datetime.timezone.utc)


def _collection(expires=NOW + datetime.timedelta(days=60), source='netcup-acme',
                staging=False):
    return CertificateCollection(
        domains=['example.com', 'www.example.com'],
        cert_pem=test_util.make_cert(['example.com', 'www.example.com']),
        chain_pem=test_util.make_cert(['intermediate.example']),
        key_pem=test_util.make_key(),
        staging=staging,
        expires=expires,
        source=source,
    )


class CollectionStoreTest(test_util.TempDirTestCase):

    def setUp(self):
        super().setUp()
        self.store = CollectionStore(os.path.join(self.tempdir, 'collections'))

    def test_get_missing(self):
        self.assertIsNone(self.store.get('example'))

    def test_set_and_get(self):
        collection = _collection()
        self.store.set('example', collection)
        self.assertEqual(self.store.get('example'), collection)

    def test_set_replaces(self):
        self.store.set('example', _collection())
        newer = _collection(expires=NOW + datetime.timedelta(days=90), staging=True)
        self.store.set('example', newer)
        self.assertEqual(self.store.get('example'), newer)

    def test_privkey_mode(self):
        self.store.set('example', _collection())
        path = os.path.join(self.tempdir, 'collections', 'example', storage.PRIVKEY)
        self.assertEqual(stat.S_IMODE(os.stat(path).st_mode), 0o600)

    def test_invalid_id(self):
        for collection_id in ('../etc', 'a/b', '', '..', 'with space'):
            with self.assertRaises(errors.CertStorageError):
                self.store.get(collection_id)

    def test_configured_id(self):
        collection_id = 'my_site.example-1'
        self.assertTrue(configuration.COLLECTION_ID_RE.match(collection_id))
        self.store.set(collection_id, _collection())
        self.assertEqual(sorted(self.store.list()), [collection_id])

    def test_broken_metadata(self):
        self.store.set('example', _collection())
        os.remove(os.path.join(self.tempdir, 'collections', 'example', storage.METADATA))
        with self.assertRaises(errors.CertStorageError):
            self.store.get('example')

    def test_missing_pem(self):
        self.store.set('example', _collection())
        os.remove(os.path.join(self.tempdir, 'collections', 'example', storage.CERT))
        with self.assertRaises(errors.CertStorageError):
            self.store.get('example')

    def test_staging_flag_missing(self):
        self.store.set('example', _collection()._replace(staging=None))
        self.assertIsNone(self.store.get('example').staging)

    def test_list(self):
        self.assertEqual(self.store.list(), {})
        self.store.set('one', _collection())
        self.store.set('two', _collection(source='other'))
        self.store.set('broken', _collection())
        os.remove(os.path.join(self.tempdir, 'collections', 'broken', storage.CHAIN))
        self.assertEqual(sorted(self.store.list()), ['one', 'two'])

    def test_delete(self):
        self.store.set('example', _collection())
        self.store.delete('example')
        self.assertIsNone(self.store.get('example'))
        self.store.delete('example')


class PurgeExpiredTest(test_util.TempDirTestCase):

    def test_purge(self):
        store = CollectionStore(os.path.join(self.tempdir, 'collections'))
        expired = NOW - datetime.timedelta(days=1)
        store.set('valid', _collection())
        store.set('expired', _collection(expires=expired))
        store.set('foreign', _collection(expires=expired, source='other'))

        self.assertEqual(storage.purge_expired(store, 'netcup-acme', NOW), ['expired'])
        self.assertEqual(sorted(store.list()), ['foreign', 'valid'])


class AccountStoreTest(test_util.TempDirTestCase):

    def setUp(self):
        super().setUp()
        self.store = AccountStore(os.path.join(self.tempdir, 'accounts'))
        self.key = jose.JWKEC(key=ec.generate_private_key(ec.SECP256R1()))
        self.account = AccountRecord('admin@example.com', False,
                                     'https://acme.example/acct/1', self.key)

    def test_missing(self):
        self.assertIsNone(self.store.load('admin@example.com', False))

    def test_save_and_load(self):
        self.store.save(self.account)
        loaded = self.store.load('admin@example.com', False)
        self.assertEqual(loaded.uri, self.account.uri)
        self.assertEqual(loaded.key, self.key)
        self.assertEqual(stat.S_IMODE(os.stat(self.store.path).st_mode), 0o600)

    def test_other_email(self):
        self.store.save(self.account)
        self.assertIsNone(self.store.load('other@example.com', False))

    def test_other_environment(self):
        self.store.save(self.account)
        self.assertIsNone(self.store.load('admin@example.com', True))

    def test_staging_flag_missing(self):
        self.store.save(self.account)
        with open(self.store.path) as f:
            data = json.load(f)
        del data['staging']
        with open(self.store.path, 'w') as f:
            json.dump(data, f)
        self.assertIsNone(self.store.load('admin@example.com', False))

    def test_broken(self):
        os.makedirs(self.store.directory)
        with open(self.store.path, 'w') as f:
            f.write('{not json')
        with self.assertRaises(errors.CertStorageError):
            self.store.load('admin@example.com', False)


if __name__ == "__main__":
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
