"""dns-01 challenge handler for netcup."""
import enum
import logging
import time
from typing import Any
from typing import Dict
from typing import Optional
from typing import Sequence

from netcup_acme import errors
from netcup_acme import interfaces
from netcup_acme._internal import constants
from netcup_acme._internal import dns_resolver
from netcup_acme._internal.netcup_client import NetcupClient
from netcup_acme._internal.zone import find_zone
from netcup_acme._internal.zone import normalize_host
from netcup_acme._internal.zone import Zone

logger = logging.getLogger(__name__)


class PollingStrategy(enum.Enum):
    """How `ChallengeProvisioner.set` confirms that a record is published."""

    AUTHORITATIVE_THEN_PUBLIC = 'authoritative-then-public'
    """Wait for the zone's nameservers, then additionally for public resolvers."""
    PUBLIC_ONLY = 'public-only'
    """Wait for public resolvers only."""
    PROVIDER_STATE = 'provider-state'
    """Wait until the netcup API lists the record."""


class ChallengeProvisioner(interfaces.ChallengeHandler):
    """dns-01 challenge handler for netcup

    This handler uses the netcup CCP API to publish the TXT record of a
    dns-01 challenge. netcup accepts record updates long before its
    nameservers serve them (zone updates are queued and can take several
    minutes), so `set` does not return until the record is observable.
    """

    def __init__(self, client: NetcupClient,
                 strategy: PollingStrategy = PollingStrategy.AUTHORITATIVE_THEN_PUBLIC,
                 public_resolvers: Sequence[str] = tuple(constants.PUBLIC_RESOLVERS),
                 max_attempts: int = 120, public_max_attempts: int = 60,
                 interval: float = 10, deadline_seconds: Optional[float] = None) -> None:
        self.client = client
        self.strategy = strategy
        self.public_resolver = dns_resolver.make_resolver(public_resolvers)
        self.max_attempts = max_attempts
        self.public_max_attempts = public_max_attempts
        self.interval = interval
        self.deadline_seconds = deadline_seconds

    def init(self) -> None:
        return None

    def set(self, challenge: interfaces.Challenge) -> None:
        """Create the TXT record and wait until it has propagated.

        :raises .AuthenticationError: if no API session could be opened
        :raises .ApiError: if netcup rejected the record
        :raises .PropagationTimeout: if the record did not become visible

        """
        host = normalize_host(challenge.dns_host)
        with self.client.session() as session:
            zone = find_zone(session, host)
            logger.info('Creating TXT record %s in zone %s', zone.relative_name, zone.zone)
            session.update_dns_records(zone.zone, [
                _make_record(zone, challenge.dns_authorization)])
        logger.debug('TXT record for %s accepted by netcup', host)

        deadline = None
        if self.deadline_seconds is not None:
            deadline = time.monotonic() + self.deadline_seconds

        if self.strategy is PollingStrategy.PROVIDER_STATE:
            self._await_provider(challenge, deadline)
        else:
            self._await_dns(host, challenge.dns_authorization, zone, deadline)

    def get(self, challenge: interfaces.Challenge) -> Optional[str]:
        """Return the authorization if it is currently observable, else None."""
        if self.strategy is PollingStrategy.PROVIDER_STATE:
            if self._provider_has_record(challenge):
                return challenge.dns_authorization
            return None

        host = normalize_host(challenge.dns_host)
        if challenge.dns_authorization in dns_resolver.txt_records_for_name(
                host, self.public_resolver):
            return challenge.dns_authorization
        return None

    def remove(self, challenge: interfaces.Challenge) -> None:
        """Delete every TXT record matching the challenge.

        :raises .AuthenticationError: if no API session could be opened
        :raises .ApiError: if netcup rejected the deletion

        """
        host = normalize_host(challenge.dns_host)
        with self.client.session() as session:
            zone = find_zone(session, host)
            records = [dict(record, deleterecord=True)
                       for record in session.info_dns_records(zone.zone)
                       if _matches(record, zone, challenge.dns_authorization)]
            if not records:
                logger.debug('No TXT record %s left in zone %s, nothing to delete',
                             zone.relative_name, zone.zone)
                return
            logger.info('Deleting %d TXT record(s) %s in zone %s',
                        len(records), zone.relative_name, zone.zone)
            session.update_dns_records(zone.zone, records)

    def shutdown(self) -> None:
        return None

    def _await_dns(self, host: str, value: str, zone: Zone,
                   deadline: Optional[float]) -> None:
        public_attempts = self.max_attempts
        if self.strategy is PollingStrategy.AUTHORITATIVE_THEN_PUBLIC:
            resolver = dns_resolver.authoritative_resolver(zone.zone, self.public_resolver)
            logger.info('Polling authoritative nameservers for %s (every %ss, max %d attempts)',
                        host, self.interval, self.max_attempts)
            if not dns_resolver.await_record(host, value, resolver, self.max_attempts,
                                             self.interval, deadline):
                raise errors.PropagationTimeout(host, self.max_attempts, 'authoritative')
            logger.info('%s visible on authoritative nameservers, waiting for public '
                        'resolvers', host)
            # additive, not shared with the authoritative tier
            public_attempts = self.public_max_attempts
        else:
            logger.info('Polling public resolvers for %s (every %ss, max %d attempts)',
                        host, self.interval, public_attempts)

        if not dns_resolver.await_record(host, value, self.public_resolver, public_attempts,
                                         self.interval, deadline):
            raise errors.PropagationTimeout(host, public_attempts, 'public')
        logger.info('TXT record for %s confirmed on public resolvers', host)

    def _await_provider(self, challenge: interfaces.Challenge,
                        deadline: Optional[float]) -> None:
        host = normalize_host(challenge.dns_host)
        for attempt in range(1, self.max_attempts + 1):
            if self._provider_has_record(challenge):
                logger.info('TXT record for %s listed by netcup after attempt %d/%d',
                            host, attempt, self.max_attempts)
                return
            logger.debug('Attempt %d/%d: TXT record for %s not listed by netcup yet',
                         attempt, self.max_attempts, host)
            if attempt == self.max_attempts:
                break
            if deadline is not None and time.monotonic() + self.interval > deadline:
                break
            time.sleep(self.interval)
        raise errors.PropagationTimeout(host, self.max_attempts, 'provider')

    def _provider_has_record(self, challenge: interfaces.Challenge) -> bool:
        with self.client.session() as session:
            zone = find_zone(session, challenge.dns_host)
            return any(_matches(record, zone, challenge.dns_authorization)
                       for record in session.info_dns_records(zone.zone))


def _make_record(zone: Zone, validation: str) -> Dict[str, Any]:
    return {
        'hostname': zone.relative_name,
        'type': 'TXT',
        'destination': validation,
        'deleterecord': False,
    }


def _matches(record: Dict[str, Any], zone: Zone, validation: str) -> bool:
    return (record.get('type') == 'TXT'
            and record.get('hostname') == zone.relative_name
            and record.get('destination') == validation)
