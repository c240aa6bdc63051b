"""Locate the netcup zone a challenge record belongs to."""
import logging
from typing import List
from typing import NamedTuple

from netcup_acme import errors
from netcup_acme._internal.netcup_client import NetcupSession

logger = logging.getLogger(__name__)


class Zone(NamedTuple):
    """A record name split at its zone boundary.

    :ivar str zone: zone name, e.g. ``example.com``
    :ivar str relative_name: record name within the zone, ``@`` for the apex

    """
    zone: str
    relative_name: str

    @property
    def full_host(self) -> str:
        """The fully qualified record name."""
        if self.relative_name == '@':
            return self.zone
        return '{0}.{1}'.format(self.relative_name, self.zone)


def normalize_host(full_host: str) -> str:
    """Strip a trailing dot and check the name has at least two labels.

    :raises .PluginError: if the name cannot hold a zone

    """
    host = full_host[:-1] if full_host.endswith('.') else full_host
    labels = host.split('.')
    if len(labels) < 2 or not all(labels):
        raise errors.PluginError('Cannot split domain: {0}'.format(full_host))
    return host


def zone_name_guesses(full_host: str) -> List[str]:
    """Return the candidate zones for a record name, most specific first.

    The name itself and its top label are never candidates.

    :Example:

    >>> zone_name_guesses('_acme-challenge.sub.example.com')
    ['sub.example.com', 'example.com']

    :param str full_host: The record name.
    :returns: The candidate zone names.
    :rtype: list

    """
    labels = normalize_host(full_host).split('.')
    return ['.'.join(labels[i:]) for i in range(1, len(labels) - 1)]


def split_last_two_labels(full_host: str) -> Zone:
    """Assume the zone is the last two labels of `full_host`.

    Wrong for names under multi-label public suffixes such as ``co.uk``.

    """
    labels = normalize_host(full_host).split('.')
    return Zone('.'.join(labels[-2:]), '.'.join(labels[:-2]) or '@')


def _names_zone(result: dict, candidate: str) -> bool:
    name = result.get('name')
    return isinstance(name, str) and name.rstrip('.').lower() == candidate.lower()


def find_zone(session: NetcupSession, full_host: str) -> Zone:
    """Find the zone netcup manages `full_host` in.

    Candidates are probed with ``infoDnsZone``, most specific first. A probe
    is only accepted if it returns zone data whose ``name`` is the
    candidate: netcup answers some non-zone subdomains with an empty object
    rather than an error. If no candidate is accepted the last two labels are used.

    :param NetcupSession session: open API session
    :param str full_host: The record name (typically beginning with '_acme-challenge.').
    :returns: the zone and the record name relative to it
    :rtype: Zone
    :raises .PluginError: if `full_host` has fewer than two labels

    """
    host = normalize_host(full_host)
    labels = host.split('.')
    for i, candidate in enumerate(zone_name_guesses(host), start=1):
        logger.debug('looking for zone: %s', candidate)
        result = session.info_dns_zone(candidate)
        if isinstance(result, dict) and _names_zone(result, candidate):
            zone = Zone(candidate, '.'.join(labels[:i]))
            logger.debug('%s is in zone %s as %s', host, zone.zone, zone.relative_name)
            return zone

    zone = split_last_two_labels(host)
    logger.warning('No zone found via the netcup API for %s, assuming zone %s with '
                   'hostname %s', host, zone.zone, zone.relative_name)
    return zone
