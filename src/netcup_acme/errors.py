"""netcup-acme errors."""
from typing import Optional


class Error(Exception):
    """Generic netcup-acme error."""


class ConfigurationError(Error):
    """Configuration sanity error."""


class UnknownHandlerError(ConfigurationError):
    """No challenge handler is registered under the requested name."""


class CertStorageError(Error):
    """Generic certificate collection or account storage error."""


class IssuanceError(Error):
    """Ordering a certificate from the ACME server failed."""


# Challenge handler errors
class PluginError(Error):
    """Challenge handler error."""


class ApiError(PluginError):
    """The netcup API request failed.

    :ivar str action: API action that was requested
    :ivar statuscode: status code reported by the API, or None if the
        request failed before a response envelope was received
    :type statuscode: int or None

    """
    def __init__(self, action: str, message: str,
                 statuscode: Optional[int] = None) -> None:
        self.action = action
        self.statuscode = statuscode
        self.message = message
        super().__init__(action, message, statuscode)

    def __str__(self) -> str:
        if self.statuscode is None:
            return "netcup API {0} failed: {1}".format(self.action, self.message)
        return "netcup API {0} failed [{1}]: {2}".format(
            self.action, self.statuscode, self.message)


class AuthenticationError(ApiError):
    """Logging in to the netcup API failed."""


class PropagationTimeout(PluginError):
    """A TXT record did not become visible within the attempt budget.

    :ivar str host: record name that was polled
    :ivar int attempts: number of attempts made
    :ivar str tier: where the record was polled (``authoritative``,
        ``public`` or ``provider``)

    """
    def __init__(self, host: str, attempts: int, tier: str) -> None:
        self.host = host
        self.attempts = attempts
        self.tier = tier
        super().__init__(host, attempts, tier)

    def __str__(self) -> str:
        where = {
            "authoritative": "the authoritative nameservers",
            "public": "public resolvers",
            "provider": "the netcup API",
        }.get(self.tier, self.tier)
        return "TXT record for {0} not visible on {1} after {2} attempt{3}".format(
            self.host, where, self.attempts, 's' if self.attempts != 1 else '')
