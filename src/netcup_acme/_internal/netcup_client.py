"""Client for the netcup CCP DNS API."""
import contextlib
import logging
from typing import Any
from typing import Dict
from typing import Iterator
from typing import List
from typing import Optional

import requests

from netcup_acme import errors
from netcup_acme._internal import constants

logger = logging.getLogger(__name__)


class Credentials:
    """netcup CCP API credentials.

    The API key and password are never included in the representation.

    """
    def __init__(self, customer_number: str, api_key: str, api_password: str) -> None:
        if not customer_number or not api_key or not api_password:
            raise errors.ConfigurationError(
                'customer number, API key and API password are all required')
        self.customer_number = str(customer_number)
        self.api_key = api_key
        self.api_password = api_password

    def __repr__(self) -> str:
        return "Credentials(customer_number={0!r}, api_key='***', api_password='***')".format(
            self.customer_number)


class NetcupClient:
    """
    Encapsulates all communication with the netcup CCP API.

    The API is a single JSON endpoint dispatching on an ``action`` field.
    Everything except ``login`` requires an API session, obtained through
    `session`, which logs in on entry and always logs out on exit.
    """

    def __init__(self, credentials: Credentials, endpoint: str = constants.NETCUP_API_URL,
                 timeout: int = constants.DEFAULT_NETWORK_TIMEOUT) -> None:
        self.credentials = credentials
        self.endpoint = endpoint
        self.timeout = timeout

    def call(self, action: str, params: Dict[str, Any], throw_on_error: bool = True,
             http: Optional[requests.Session] = None) -> Optional[Any]:
        """Send one request to the API and return its ``responsedata``.

        Transport failures and malformed responses always raise. A
        well-formed response with a status code outside the success band
        raises only if `throw_on_error` is set, otherwise None is returned:
        "zone not found" and "no records" are reported that way.

        :param str action: API action, e.g. ``infoDnsZone``
        :param dict params: action parameters
        :param bool throw_on_error: raise on a non-success status code
        :param requests.Session http: HTTP session to send the request with

        :returns: the response data, or None on a suppressed failure
        :raises .ApiError: if the request failed

        """
        post = http.post if http is not None else requests.post
        logger.debug('netcup API request: %s', action)
        try:
            response = post(self.endpoint, json={'action': action, 'param': params},
                            timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise errors.ApiError(action, 'HTTP request failed: {0}'.format(e))

        if not response.ok:
            raise errors.ApiError(action, 'HTTP error {0} {1}'.format(
                response.status_code, response.reason))

        try:
            result = response.json()
        except ValueError:
            raise errors.ApiError(action, 'non-JSON response: {0}'.format(response.text[:200]))
        if not isinstance(result, dict):
            raise errors.ApiError(action, 'unexpected response: {0}'.format(response.text[:200]))

        try:
            statuscode: Optional[int] = int(result.get('statuscode'))
        except (TypeError, ValueError):
            statuscode = None

        if statuscode is not None and statuscode in constants.NETCUP_SUCCESS_CODES:
            return result.get('responsedata')

        message = result.get('longmessage') or result.get('shortmessage') or 'unknown error'
        if throw_on_error:
            raise errors.ApiError(action, message, statuscode)
        logger.debug('netcup API %s returned %s (%s), treating as empty',
                     action, statuscode, message)
        return None

    def login(self, http: Optional[requests.Session] = None) -> str:
        """Open an API session.

        :returns: the API session id
        :raises .AuthenticationError: if the session could not be opened

        """
        try:
            data = self.call('login', {
                'customernumber': self.credentials.customer_number,
                'apikey': self.credentials.api_key,
                'apipassword': self.credentials.api_password,
            }, http=http)
        except errors.ApiError as e:
            raise errors.AuthenticationError(e.action, e.message, e.statuscode)

        session_id = data.get('apisessionid') if isinstance(data, dict) else None
        if not session_id:
            raise errors.AuthenticationError('login', 'response lacks an apisessionid')
        return session_id

    def logout(self, session_id: str, http: Optional[requests.Session] = None) -> None:
        """Close an API session.

        Errors are ignored, the session may already have expired server-side.

        """
        try:
            self.call('logout', {
                'customernumber': self.credentials.customer_number,
                'apikey': self.credentials.api_key,
                'apisessionid': session_id,
            }, http=http)
        except errors.ApiError as e:
            logger.debug('Ignoring logout failure: %s', e)

    @contextlib.contextmanager
    def session(self) -> Iterator['NetcupSession']:
        """Log in, yield a `NetcupSession` and always log out afterwards.

        Each call opens its own session; sessions are never shared.

        :raises .AuthenticationError: if logging in failed

        """
        with requests.Session() as http:
            session_id = self.login(http)
            logger.debug('netcup API session opened')
            try:
                yield NetcupSession(self, session_id, http)
            finally:
                self.logout(session_id, http)
                logger.debug('netcup API session closed')


class NetcupSession:
    """An open netcup API session."""

    def __init__(self, client: NetcupClient, session_id: str,
                 http: Optional[requests.Session] = None) -> None:
        self.client = client
        self.session_id = session_id
        self.http = http

    def call(self, action: str, params: Dict[str, Any],
             throw_on_error: bool = True) -> Optional[Any]:
        """As `NetcupClient.call`, with the session parameters added."""
        full_params = {
            'customernumber': self.client.credentials.customer_number,
            'apikey': self.client.credentials.api_key,
            'apisessionid': self.session_id,
        }
        full_params.update(params)
        return self.client.call(action, full_params, throw_on_error, http=self.http)

    def info_dns_zone(self, domain: str) -> Optional[Any]:
        """Zone metadata for `domain`, or None if it is not a zone."""
        return self.call('infoDnsZone', {'domainname': domain}, throw_on_error=False)

    def info_dns_records(self, domain: str) -> List[Dict[str, Any]]:
        """All records of the zone `domain`; empty if there are none."""
        data = self.call('infoDnsRecords', {'domainname': domain}, throw_on_error=False)
        if not isinstance(data, dict):
            return []
        return list(data.get('dnsrecords') or [])

    def update_dns_records(self, domain: str, records: List[Dict[str, Any]]) -> None:
        """Create, change or (with ``deleterecord``) delete records in `domain`.

        :raises .ApiError: if the update was rejected

        """
        self.call('updateDnsRecords', {
            'domainname': domain,
            'dnsrecordset': {'dnsrecords': records},
        })
