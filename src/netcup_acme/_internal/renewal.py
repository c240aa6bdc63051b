"""Decide whether a certificate collection has to be issued again."""
import datetime
import logging
from typing import List
from typing import NamedTuple
from typing import Optional
from typing import Sequence
from typing import TYPE_CHECKING

from cryptography import x509
from cryptography.x509.oid import NameOID
import parsedatetime

from netcup_acme import errors

if TYPE_CHECKING:
    from netcup_acme._internal.storage import CertificateCollection

logger = logging.getLogger(__name__)


class ParsedCertificate(NamedTuple):
    """The fields of a certificate the renewal decision looks at."""
    common_name: Optional[str]
    domains: List[str]
    not_after: datetime.datetime


def parse_certificate(cert_pem: bytes) -> ParsedCertificate:
    """Read the common name, DNS subjectAltNames and expiry of a certificate.

    :param bytes cert_pem: PEM encoded certificate
    :raises .CertStorageError: if the certificate cannot be parsed

    """
    try:
        cert = x509.load_pem_x509_certificate(cert_pem)
        common_names = cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
        try:
            san_ext = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
        except x509.ExtensionNotFound:
            domains: List[str] = []
        else:
            domains = san_ext.value.get_values_for_type(x509.DNSName)
        not_after = cert.not_valid_after_utc
    except ValueError as error:
        raise errors.CertStorageError('Cannot parse certificate: {0}'.format(error))

    common_name = common_names[0].value if common_names else None
    if isinstance(common_name, bytes):
        common_name = common_name.decode('utf-8')
    return ParsedCertificate(common_name, domains, not_after)


def subtract_time_interval(base_time: datetime.datetime, interval: str,
                           textparser: parsedatetime.Calendar = parsedatetime.Calendar()
                           ) -> datetime.datetime:
    """Parse the time specified time interval, and subtract it from the base_time

    The interval can be in the English-language format understood by
    parsedatetime, e.g., '10 days', '3 weeks', '6 months', '9 hours', or
    a sequence of such intervals like '6 months 1 week' or '3 days 12
    hours'. If an integer is found with no associated unit, it is
    interpreted by default as a number of days.

    :param datetime.datetime base_time: The time to the interval is subtracted from.
    :param str interval: The time interval to parse.

    :returns: The base_time minus the interpretation of the time interval.
    :rtype: :class:`datetime.datetime`"""

    if interval.strip().isdigit():
        interval += " days"

    # try to use the same timezone, but fallback to UTC
    tzinfo = base_time.tzinfo or datetime.timezone.utc

    return textparser.parseDT(interval + " before", base_time, tzinfo=tzinfo)[0]


def is_valid_interval(interval: str) -> bool:
    """Whether parsedatetime understands `interval`."""
    if not interval or not interval.strip():
        return False
    if interval.strip().isdigit():
        return True
    base_time = datetime.datetime.now(datetime.timezone.utc)
    textparser = parsedatetime.Calendar()
    _, status = textparser.parseDT(interval + " before", base_time,
                                   tzinfo=datetime.timezone.utc)
    return bool(status)


def should_renew(desired_domains: Sequence[str], desired_staging: bool,
                 existing: Optional['CertificateCollection'],
                 now: Optional[datetime.datetime] = None,
                 renew_before_expiry: str = '7 days') -> bool:
    """Should a new certificate be ordered for this collection?

    A collection is kept only while its certificate can be parsed, its
    common name is the first desired domain, its DNS subjectAltNames equal
    the desired domains as a set, its staging flag matches and it does not
    expire within `renew_before_expiry` of `now`.

    :param desired_domains: requested domains, the first is the common name
    :param bool desired_staging: whether the staging CA is requested
    :param existing: the stored collection, or None
    :param datetime.datetime now: aware reference time, defaults to now
    :param str renew_before_expiry: renewal window, parsedatetime syntax

    :returns: whether the collection has to be issued again
    :rtype: bool

    """
    if not desired_domains:
        raise errors.ConfigurationError('At least one domain is required')
    name = desired_domains[0]

    if existing is None:
        logger.info('%s: no certificate collection yet, ordering a new certificate', name)
        return True

    try:
        parsed = parse_certificate(existing.cert_pem)
    except errors.CertStorageError as error:
        logger.info('%s: existing certificate is unreadable (%s), renewing', name, error)
        return True

    if now is None:
        now = datetime.datetime.now(datetime.timezone.utc)
    renewal_time = subtract_time_interval(parsed.not_after, renew_before_expiry)
    if now > renewal_time:
        logger.info('%s: certificate expires %s, within %s, renewing',
                    name, parsed.not_after, renew_before_expiry)
        return True

    # Certificates without a subject common name are judged by their SANs.
    if parsed.common_name is not None and parsed.common_name.lower() != name.lower():
        logger.info('%s: certificate was issued for common name %s, renewing',
                    name, parsed.common_name)
        return True

    wanted = {domain.lower() for domain in desired_domains}
    present = {domain.lower() for domain in parsed.domains}
    if wanted != present:
        logger.info('%s: domains changed from %s to %s, renewing',
                    name, ', '.join(sorted(present)), ', '.join(sorted(wanted)))
        return True

    if existing.staging is None or bool(existing.staging) != bool(desired_staging):
        logger.info('%s: certificate was issued by the %s CA, renewing', name,
                    'unknown' if existing.staging is None
                    else 'staging' if existing.staging else 'production')
        return True

    logger.debug('%s: certificate is valid until %s, keeping it', name, parsed.not_after)
    return False
