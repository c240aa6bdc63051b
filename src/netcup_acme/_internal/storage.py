"""Certificate collection and ACME account storage."""
import datetime
import json
import logging
import os
import shutil
from typing import Any
from typing import Dict
from typing import List
from typing import NamedTuple
from typing import Optional

import configobj
import josepy as jose

from netcup_acme import errors
from netcup_acme.configuration import COLLECTION_ID_RE

logger = logging.getLogger(__name__)

CERT = 'cert.pem'
CHAIN = 'chain.pem'
PRIVKEY = 'privkey.pem'
METADATA = 'collection.conf'
ACCOUNT = 'account.json'

BASE_PRIVKEY_MODE = 0o600


class CertificateCollection(NamedTuple):
    """An issued certificate with its key and metadata.

    :ivar list domains: domains the certificate was ordered for
    :ivar bytes cert_pem: leaf certificate
    :ivar bytes chain_pem: intermediate certificates
    :ivar bytes key_pem: private key, PKCS#8 PEM
    :ivar staging: whether the staging CA issued it, None if unknown
    :ivar datetime.datetime expires: aware expiry instant
    :ivar str source: tag of the program owning the collection

    """
    domains: List[str]
    cert_pem: bytes
    chain_pem: bytes
    key_pem: bytes
    staging: Optional[bool]
    expires: datetime.datetime
    source: str


def _write(path: str, data: bytes, mode: int = 0o644) -> None:
    tmp_path = path + '.new'
    fd = os.open(tmp_path, os.O_CREAT | os.O_TRUNC | os.O_WRONLY, mode)
    with os.fdopen(fd, 'wb') as f:
        f.write(data)
    os.chmod(tmp_path, mode)
    os.replace(tmp_path, path)


def _read(path: str) -> bytes:
    with open(path, 'rb') as f:
        return f.read()


class CollectionStore:
    """Certificate collections on disk.

    Each collection lives in its own directory below `directory`::

      <id>/cert.pem
      <id>/chain.pem
      <id>/privkey.pem       (mode 0600)
      <id>/collection.conf   (domains, staging, expires, source)

    """

    def __init__(self, directory: str) -> None:
        self.directory = directory

    def _path(self, collection_id: str) -> str:
        if not COLLECTION_ID_RE.match(collection_id) or collection_id in ('.', '..'):
            raise errors.CertStorageError(
                'Invalid collection id: {0!r}'.format(collection_id))
        return os.path.join(self.directory, collection_id)

    def get(self, collection_id: str) -> Optional[CertificateCollection]:
        """Load a collection, None if there is none with this id.

        :raises .CertStorageError: if the collection is incomplete or broken

        """
        path = self._path(collection_id)
        if not os.path.isdir(path):
            return None

        try:
            metadata = configobj.ConfigObj(os.path.join(path, METADATA),
                                           file_error=True, encoding='utf-8')
            staging = metadata.get('staging')
            return CertificateCollection(
                domains=metadata.as_list('domains'),
                cert_pem=_read(os.path.join(path, CERT)),
                chain_pem=_read(os.path.join(path, CHAIN)),
                key_pem=_read(os.path.join(path, PRIVKEY)),
                staging=None if staging is None else metadata.as_bool('staging'),
                expires=datetime.datetime.fromisoformat(metadata['expires']),
                source=metadata['source'],
            )
        except (OSError, KeyError, ValueError, configobj.ConfigObjError) as error:
            logger.debug('Error loading collection %s', collection_id, exc_info=True)
            raise errors.CertStorageError(
                'Collection {0} is broken: {1}'.format(collection_id, error))

    def set(self, collection_id: str, collection: CertificateCollection) -> None:
        """Write a collection, replacing any previous one with this id."""
        path = self._path(collection_id)
        try:
            os.makedirs(path, 0o755, exist_ok=True)
            _write(os.path.join(path, CERT), collection.cert_pem)
            _write(os.path.join(path, CHAIN), collection.chain_pem)
            _write(os.path.join(path, PRIVKEY), collection.key_pem, BASE_PRIVKEY_MODE)

            metadata = configobj.ConfigObj(encoding='utf-8')
            metadata.filename = os.path.join(path, METADATA)
            metadata.initial_comment = ['# Written by netcup-acme, do not edit.']
            metadata['domains'] = list(collection.domains)
            if collection.staging is not None:
                metadata['staging'] = str(bool(collection.staging))
            metadata['expires'] = collection.expires.isoformat()
            metadata['source'] = collection.source
            metadata.write()
        except OSError as error:
            raise errors.CertStorageError(
                'Cannot write collection {0}: {1}'.format(collection_id, error))
        logger.debug('Saved collection %s to %s', collection_id, path)

    def list(self) -> Dict[str, CertificateCollection]:
        """Load every collection, keyed by id. Broken entries are skipped."""
        if not os.path.isdir(self.directory):
            return {}
        collections = {}
        for collection_id in sorted(os.listdir(self.directory)):
            if not COLLECTION_ID_RE.match(collection_id):
                continue
            try:
                collection = self.get(collection_id)
            except errors.CertStorageError as error:
                logger.warning('Skipping collection %s: %s', collection_id, error)
                continue
            if collection is not None:
                collections[collection_id] = collection
        return collections

    def delete(self, collection_id: str) -> None:
        """Remove a collection. Deleting a missing collection is a no-op."""
        path = self._path(collection_id)
        if os.path.isdir(path):
            shutil.rmtree(path)
            logger.debug('Deleted collection %s', collection_id)


def purge_expired(store: CollectionStore, source: str,
                  now: Optional[datetime.datetime] = None) -> List[str]:
    """Delete the expired collections owned by `source`.

    Collections written by anything else are left alone.

    :returns: ids of the deleted collections
    :rtype: list

    """
    if now is None:
        now = datetime.datetime.now(datetime.timezone.utc)
    purged = []
    for collection_id, collection in store.list().items():
        if collection.source != source or collection.expires >= now:
            continue
        logger.info('Deleting collection %s, it expired %s', collection_id, collection.expires)
        store.delete(collection_id)
        purged.append(collection_id)
    return purged


class AccountRecord(NamedTuple):
    """A registered ACME account."""
    email: str
    staging: bool
    uri: str
    key: jose.JWK


class AccountStore:
    """The single ACME account, kept in ``account.json`` below `directory`."""

    def __init__(self, directory: str) -> None:
        self.directory = directory

    @property
    def path(self) -> str:
        return os.path.join(self.directory, ACCOUNT)

    def load(self, email: str, staging: bool) -> Optional[AccountRecord]:
        """Return the stored account if it can be used for `email` and `staging`.

        Returns None when there is no account, when it was registered for
        another e-mail address, or when its staging flag is missing or
        differs. The caller registers a new account in that case.

        :raises .CertStorageError: if the account file is broken

        """
        if not os.path.exists(self.path):
            return None
        try:
            with open(self.path) as f:
                data: Dict[str, Any] = json.load(f)
            key = jose.JWK.from_json(data['key'])
        except (OSError, ValueError, KeyError, jose.DeserializationError) as error:
            raise errors.CertStorageError(
                'Cannot load ACME account from {0}: {1}'.format(self.path, error))

        if data.get('email') != email:
            logger.info('Stored ACME account belongs to another e-mail address, '
                        'registering a new one')
            return None
        if 'staging' not in data or bool(data['staging']) != bool(staging):
            logger.info('Stored ACME account is not registered with the %s CA, '
                        'registering a new one', 'staging' if staging else 'production')
            return None
        return AccountRecord(data['email'], bool(data['staging']), data['uri'], key)

    def save(self, account: AccountRecord) -> None:
        """Store `account`, replacing the previous one."""
        data = {
            'email': account.email,
            'staging': account.staging,
            'uri': account.uri,
            'key': account.key.to_json(),
        }
        try:
            os.makedirs(self.directory, 0o700, exist_ok=True)
            _write(self.path, json.dumps(data, indent=2).encode('utf-8'), BASE_PRIVKEY_MODE)
        except OSError as error:
            raise errors.CertStorageError(
                'Cannot save ACME account to {0}: {1}'.format(self.path, error))
        logger.debug('Saved ACME account %s', account.uri)
