"""Test utilities."""
import argparse
import copy
import datetime
import logging
import os
import shutil
import tempfile
from typing import Any
from typing import Dict
from typing import List
from typing import Optional
import unittest

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from netcup_acme import configuration
from netcup_acme._internal import constants

FAKE_ENDPOINT = 'https://ccp.example.test/endpoint'
FAKE_CUSTOMER = '123456'
FAKE_API_KEY = 'fake-api-key'
FAKE_API_PASSWORD = 'fake-api-password'
FAKE_SESSION = 'FAKE_SESSION'


def make_cert(domains: List[str], common_name: Optional[str] = None,
              not_before: Optional[datetime.datetime] = None,
              lifetime_days: int = 90) -> bytes:
    """Return PEM of a self-signed certificate for `domains`.

    The common name defaults to the first domain; pass an empty string to
    leave the subject empty.

    """
    key = ec.generate_private_key(ec.SECP256R1())
    if not_before is None:
        not_before = datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(days=1)
    if common_name is None:
        common_name = domains[0]
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)]
                        if common_name else [])
    cert = x509.CertificateBuilder(
        issuer_name=subject,
        subject_name=subject,
        public_key=key.public_key(),
        serial_number=x509.random_serial_number(),
        not_valid_before=not_before,
        not_valid_after=not_before + datetime.timedelta(days=lifetime_days),
    ).add_extension(
        x509.SubjectAlternativeName([x509.DNSName(domain) for domain in domains]),
        critical=False,
    ).sign(
        private_key=key,
        algorithm=hashes.SHA256(),
    )
    return cert.public_bytes(serialization.Encoding.PEM)


def make_key() -> bytes:
    """Return PEM of a fresh private key."""
    key = ec.generate_private_key(ec.SECP256R1())
    return key.private_bytes(encoding=serialization.Encoding.PEM,
                             format=serialization.PrivateFormat.PKCS8,
                             encryption_algorithm=serialization.NoEncryption())


def write(values: Dict[str, Any], path: str) -> None:
    """Write the specified values to an INI file, readable by the owner only."""
    lines = ['{0} = {1}\n'.format(key, value) for key, value in values.items()]
    with open(path, 'w') as f:
        f.writelines(lines)
    os.chmod(path, 0o600)


def make_config(tempdir: str, **kwargs: Any) -> configuration.NamespaceConfig:
    """Build a checked configuration with every directory below `tempdir`."""
    values = copy.deepcopy(constants.CLI_DEFAULTS)
    values.update(
        credentials=os.path.join(tempdir, 'credentials.ini'),
        collections=os.path.join(tempdir, 'collections.ini'),
        email='admin@example.com',
        config_dir=os.path.join(tempdir, 'config'),
        logs_dir=os.path.join(tempdir, 'logs'),
    )
    values.update(kwargs)
    return configuration.NamespaceConfig(argparse.Namespace(**values))


class TempDirTestCase(unittest.TestCase):
    """Base test class which sets up and tears down a temporary directory"""

    def setUp(self):
        self.tempdir = tempfile.mkdtemp()

    def tearDown(self):
        logging.shutdown()
        # Remove logging handlers that have been closed so they won't be
        # accidentally used in future tests.
        logging.getLogger().handlers = []
        shutil.rmtree(self.tempdir)


def _ok(action: str, data: Any = None, statuscode: int = 2000) -> Dict[str, Any]:
    return {
        'serverrequestid': 'srv-1',
        'clientrequestid': '',
        'action': action,
        'status': 'success',
        'statuscode': statuscode,
        'shortmessage': 'OK',
        'longmessage': '',
        'responsedata': '' if data is None else data,
    }


def _error(action: str, statuscode: int, message: str) -> Dict[str, Any]:
    return {
        'serverrequestid': 'srv-1',
        'clientrequestid': '',
        'action': action,
        'status': 'error',
        'statuscode': statuscode,
        'shortmessage': message,
        'longmessage': message,
        'responsedata': '',
    }


class FakeNetcupApi:
    """In-memory netcup CCP API, usable as a requests_mock callback.

    :ivar dict zones: zone name to its list of records
    :ivar set empty_zones: names answered with an empty zone object
    :ivar list actions: every action requested, in order
    :ivar dict failures: action to ``(statuscode, message)`` to fail with

    """

    def __init__(self, zones=('example.com',)) -> None:
        self.zones: Dict[str, List[Dict[str, Any]]] = {zone: [] for zone in zones}
        self.empty_zones: set = set()
        self.actions: List[str] = []
        self.failures: Dict[str, Any] = {}
        self.sessions: set = set()
        self._next_id = 1

    def __call__(self, request, context):
        body = request.json()
        action = body['action']
        param = body['param']
        self.actions.append(action)

        if action in self.failures:
            return _error(action, *self.failures[action])

        if action == 'login':
            if (param.get('customernumber') != FAKE_CUSTOMER
                    or param.get('apikey') != FAKE_API_KEY
                    or param.get('apipassword') != FAKE_API_PASSWORD):
                return _error(action, 4013, 'Validation Error.')
            self.sessions.add(FAKE_SESSION)
            return _ok(action, {'apisessionid': FAKE_SESSION})

        if param.get('apisessionid') not in self.sessions:
            return _error(action, 4001, 'The session id is not in a valid format.')

        if action == 'logout':
            self.sessions.discard(param['apisessionid'])
            return _ok(action)

        domain = param['domainname']
        if action == 'infoDnsZone':
            if domain in self.zones:
                return _ok(action, {'name': domain, 'ttl': '86400', 'serial': '2024010101',
                                    'refresh': '28800', 'retry': '7200', 'expire': '1209600',
                                    'dnssecstatus': False})
            if domain in self.empty_zones:
                return _ok(action, {})
            return _error(action, 5029, 'Can not get DNS zone. Domain not found.')

        if domain not in self.zones:
            return _error(action, 5029, 'Can not get DNS records for zone. Domain not found.')

        if action == 'infoDnsRecords':
            if not self.zones[domain]:
                return _error(action, 5029, 'No records found.')
            return _ok(action, {'dnsrecords': [dict(record) for record in self.zones[domain]]})

        if action == 'updateDnsRecords':
            for record in param['dnsrecordset']['dnsrecords']:
                if record.get('deleterecord'):
                    self.zones[domain] = [existing for existing in self.zones[domain]
                                          if existing['id'] != record.get('id')]
                else:
                    stored = dict(record, id=str(self._next_id), priority='0', state='yes')
                    stored.pop('deleterecord', None)
                    self._next_id += 1
                    self.zones[domain].append(stored)
            return _ok(action, {'dnsrecords': [dict(record) for record in self.zones[domain]]},
                       statuscode=2011)

        return _error(action, 4006, 'Unknown action.')

    def txt_values(self, full_host: str) -> List[str]:
        """TXT values currently stored for `full_host`."""
        values = []
        for zone, records in self.zones.items():
            for record in records:
                host = zone if record['hostname'] == '@' else record['hostname'] + '.' + zone
                if record['type'] == 'TXT' and host == full_host:
                    values.append(record['destination'])
        return values


class FakeDns:
    """Stand-in for `dns_resolver.txt_records_for_name` backed by a `FakeNetcupApi`.

    A record stored in the API becomes visible after `delay` lookups of
    its name have not seen it. Removed records vanish immediately.

    """

    def __init__(self, api: FakeNetcupApi, delay: int = 0) -> None:
        self.api = api
        self.delay = delay
        self.lookups: List[str] = []
        self._pending: Dict[Any, int] = {}

    def __call__(self, name: str, resolver: Any) -> List[str]:
        self.lookups.append(name)
        visible = []
        stored = self.api.txt_values(name)
        for value in stored:
            remaining = self._pending.setdefault((name, value), self.delay)
            if remaining > 0:
                self._pending[(name, value)] = remaining - 1
            else:
                visible.append(value)
        for key in [key for key in self._pending if key[0] == name and key[1] not in stored]:
            del self._pending[key]
        return visible
