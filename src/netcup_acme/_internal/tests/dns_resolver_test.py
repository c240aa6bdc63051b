"""Tests for netcup_acme._internal.dns_resolver."""
import sys
import unittest
from unittest import mock

import dns.exception
import dns.resolver
import dns.rrset
import pytest

from netcup_acme._internal import dns_resolver

HOST = '_acme-challenge.example.com'


def _rrset(name, rdtype, values):
    return dns.rrset.from_text_list(name, 300, 'IN', rdtype, values)


class MakeResolverTest(unittest.TestCase):

    def test_nameservers(self):
        resolver = dns_resolver.make_resolver(['192.0.2.53'], timeout=2.0)
        self.assertEqual(resolver.nameservers, ['192.0.2.53'])
        self.assertEqual(resolver.lifetime, 2.0)


class TxtRecordsForNameTest(unittest.TestCase):

    def setUp(self):
        self.resolver = mock.MagicMock()

    def test_txt_records(self):
        self.resolver.resolve.return_value = _rrset(HOST, 'TXT', ['"tok1"', '"tok" "2"'])
        self.assertEqual(dns_resolver.txt_records_for_name(HOST, self.resolver),
                         ['tok1', 'tok2'])
        self.resolver.resolve.assert_called_once_with(HOST, 'TXT', search=False)

    def test_undecodable_value(self):
        self.resolver.resolve.return_value = _rrset(HOST, 'TXT', ['"\\255abc"', '"tok1"'])
        self.assertEqual(dns_resolver.txt_records_for_name(HOST, self.resolver),
                         ['\ufffdabc', 'tok1'])

    @mock.patch('time.sleep')
    def test_undecodable_value_not_expected(self, unused_mock_sleep):
        self.resolver.resolve.return_value = _rrset(HOST, 'TXT', ['"\\255abc"'])
        self.assertFalse(dns_resolver.await_record(HOST, 'tok1', self.resolver, 1, 0))

    def test_not_found(self):
        for error in (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
            self.resolver.resolve.side_effect = error
            self.assertEqual(dns_resolver.txt_records_for_name(HOST, self.resolver), [])

    def test_lookup_error(self):
        self.resolver.resolve.side_effect = dns.exception.Timeout
        with mock.patch('netcup_acme._internal.dns_resolver.logger') as mock_logger:
            self.assertEqual(dns_resolver.txt_records_for_name(HOST, self.resolver), [])
        self.assertTrue(mock_logger.debug.called)


class AuthoritativeResolverTest(unittest.TestCase):

    def setUp(self):
        self.public = dns_resolver.make_resolver(['1.1.1.1'])
        self.public.resolve = mock.MagicMock()

    def test_discovery(self):
        answers = {
            ('example.com', 'NS'): _rrset('example.com.', 'NS', [
                'ns1.example.net.', 'ns2.example.net.', 'ns3.example.net.',
                'ns4.example.net.']),
            ('ns1.example.net.', 'A'): _rrset('ns1.example.net.', 'A', ['192.0.2.1']),
            ('ns1.example.net.', 'AAAA'): _rrset('ns1.example.net.', 'AAAA', ['2001:db8::1']),
            ('ns2.example.net.', 'A'): _rrset('ns2.example.net.', 'A', ['192.0.2.2']),
            ('ns3.example.net.', 'A'): _rrset('ns3.example.net.', 'A', ['192.0.2.3']),
            ('ns4.example.net.', 'A'): _rrset('ns4.example.net.', 'A', ['192.0.2.4']),
        }

        def resolve(name, rdtype, search=False):
            try:
                return answers[(name, rdtype)]
            except KeyError:
                raise dns.resolver.NoAnswer

        self.public.resolve.side_effect = resolve
        resolver = dns_resolver.authoritative_resolver('example.com', self.public)
        self.assertIsNot(resolver, self.public)
        self.assertEqual(resolver.nameservers,
                         ['192.0.2.1', '2001:db8::1', '192.0.2.2', '192.0.2.3'])

    def test_ns_lookup_failure(self):
        self.public.resolve.side_effect = dns.resolver.NXDOMAIN
        self.assertIs(dns_resolver.authoritative_resolver('example.com', self.public),
                      self.public)

    def test_no_addresses(self):
        def resolve(name, rdtype, search=False):
            if rdtype == 'NS':
                return _rrset('example.com.', 'NS', ['ns1.example.net.'])
            raise dns.exception.Timeout

        self.public.resolve.side_effect = resolve
        self.assertIs(dns_resolver.authoritative_resolver('example.com', self.public),
                      self.public)


class AwaitRecordTest(unittest.TestCase):

    def setUp(self):
        self.resolver = mock.MagicMock()
        patcher = mock.patch('netcup_acme._internal.dns_resolver.txt_records_for_name')
        self.mock_txt = patcher.start()
        self.addCleanup(patcher.stop)

    @mock.patch('time.sleep')
    def test_immediate_success(self, mock_sleep):
        self.mock_txt.return_value = ['tok1']
        self.assertTrue(dns_resolver.await_record(HOST, 'tok1', self.resolver, 5, 10))
        self.mock_txt.assert_called_once_with(HOST, self.resolver)
        mock_sleep.assert_not_called()

    @mock.patch('time.sleep')
    def test_success_stops_polling(self, mock_sleep):
        self.mock_txt.side_effect = [[], ['stale'], ['stale', 'tok1'], ['tok1']]
        self.assertTrue(dns_resolver.await_record(HOST, 'tok1', self.resolver, 10, 10))
        self.assertEqual(self.mock_txt.call_count, 3)
        self.assertEqual(mock_sleep.call_args_list, [mock.call(10)] * 2)

    @mock.patch('time.sleep')
    def test_exactly_max_attempts(self, mock_sleep):
        self.mock_txt.return_value = []
        self.assertFalse(dns_resolver.await_record(HOST, 'tok1', self.resolver, 4, 10))
        self.assertEqual(self.mock_txt.call_count, 4)
        self.assertEqual(mock_sleep.call_count, 3)

    @mock.patch('time.sleep')
    def test_single_attempt(self, mock_sleep):
        self.mock_txt.return_value = []
        self.assertFalse(dns_resolver.await_record(HOST, 'tok1', self.resolver, 1, 10))
        self.assertEqual(self.mock_txt.call_count, 1)
        mock_sleep.assert_not_called()

    @mock.patch('time.monotonic')
    @mock.patch('time.sleep')
    def test_deadline(self, mock_sleep, mock_monotonic):
        self.mock_txt.return_value = []
        mock_monotonic.side_effect = [0, 20]
        self.assertFalse(dns_resolver.await_record(HOST, 'tok1', self.resolver, 100, 10,
                                                   deadline=25))
        self.assertEqual(self.mock_txt.call_count, 2)
        self.assertEqual(mock_sleep.call_count, 1)


if __name__ == "__main__":
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
