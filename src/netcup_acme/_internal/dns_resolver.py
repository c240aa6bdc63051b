"""DNS lookups used to confirm that challenge records have propagated."""
import logging
import time
from typing import List
from typing import Optional
from typing import Sequence

import dns.exception
import dns.resolver

from netcup_acme._internal import constants

logger = logging.getLogger(__name__)


def make_resolver(nameservers: Sequence[str],
                  timeout: float = constants.DNS_QUERY_TIMEOUT) -> dns.resolver.Resolver:
    """Build a resolver that only asks the given nameservers.

    :param list nameservers: IP addresses of the nameservers to query
    :param float timeout: seconds a single lookup may take

    """
    resolver = dns.resolver.Resolver(configure=False)
    resolver.nameservers = list(nameservers)
    resolver.timeout = timeout
    resolver.lifetime = timeout
    return resolver


def txt_records_for_name(name: str, resolver: dns.resolver.Resolver) -> List[str]:
    """Resolve the name and return the TXT records.

    :param str name: Domain name being verified.
    :param dns.resolver.Resolver resolver: resolver to ask

    :returns: A list of txt records, if empty the name could not be resolved
    :rtype: list of str

    """
    try:
        dns_response = resolver.resolve(name, 'TXT', search=False)
    except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
        return []
    except dns.exception.DNSException as error:
        logger.debug("Error resolving %s: %s", name, error)
        return []

    return [b''.join(rdata.strings).decode('utf-8', errors='replace') for rdata in dns_response]


def authoritative_resolver(zone: str,
                           public_resolver: dns.resolver.Resolver) -> dns.resolver.Resolver:
    """Build a resolver asking the authoritative nameservers of `zone`.

    The nameservers are found through `public_resolver`. If the NS lookup
    fails, or none of the nameservers has an address, `public_resolver` is
    returned instead.

    :param str zone: zone whose nameservers should be asked
    :param dns.resolver.Resolver public_resolver: resolver used for discovery

    """
    try:
        answer = public_resolver.resolve(zone, 'NS', search=False)
    except dns.exception.DNSException as error:
        logger.debug('NS lookup for %s failed (%s), falling back to public resolvers',
                     zone, error)
        return public_resolver

    nameservers = [rdata.target.to_text() for rdata in answer]
    addresses: List[str] = []
    for nameserver in nameservers[:constants.MAX_AUTHORITATIVE_NAMESERVERS]:
        for rdtype in ('A', 'AAAA'):
            try:
                addresses.extend(rdata.address for rdata in
                                 public_resolver.resolve(nameserver, rdtype, search=False))
            except dns.exception.DNSException as error:
                logger.debug('%s lookup for %s failed: %s', rdtype, nameserver, error)

    if not addresses:
        logger.debug('No authoritative nameserver address for %s, '
                     'falling back to public resolvers', zone)
        return public_resolver

    logger.debug('Using authoritative nameservers for %s: %s', zone, ', '.join(addresses))
    return make_resolver(addresses, public_resolver.timeout)


def await_record(host: str, expected_value: str, resolver: dns.resolver.Resolver,
                 max_attempts: int, interval: float,
                 deadline: Optional[float] = None) -> bool:
    """Poll until a TXT record with `expected_value` is visible at `host`.

    Returns as soon as an attempt sees the value. Between attempts the
    calling thread sleeps for `interval` seconds.

    :param str host: record name to look up
    :param str expected_value: TXT value that has to be present
    :param dns.resolver.Resolver resolver: resolver to ask
    :param int max_attempts: lookups to make before giving up
    :param float interval: seconds to wait between lookups
    :param float deadline: optional `time.monotonic` value after which no
        further attempt is made

    :returns: True if the value was seen, False once the attempts are used up
    :rtype: bool

    """
    for attempt in range(1, max_attempts + 1):
        records = txt_records_for_name(host, resolver)
        if expected_value in records:
            logger.debug('Correct TXT value for %s found after attempt %d/%d',
                         host, attempt, max_attempts)
            return True

        if records:
            logger.debug('Attempt %d/%d: found %d stale TXT record(s) for %s but not the '
                         'expected value', attempt, max_attempts, len(records), host)
        else:
            logger.debug('Attempt %d/%d: no TXT record for %s yet', attempt, max_attempts, host)

        if attempt == max_attempts:
            break
        if deadline is not None and time.monotonic() + interval > deadline:
            logger.debug('Deadline reached while waiting for %s', host)
            break
        time.sleep(interval)

    return False
