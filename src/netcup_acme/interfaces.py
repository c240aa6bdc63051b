"""netcup-acme interfaces."""
from abc import ABCMeta
from abc import abstractmethod
from typing import NamedTuple
from typing import Optional


class Challenge(NamedTuple):
    """A dns-01 challenge to publish.

    :ivar str dns_host: fully qualified name the TXT record is published
        under, typically ``_acme-challenge.<domain>``
    :ivar str dns_authorization: TXT record value the ACME server expects

    """
    dns_host: str
    dns_authorization: str


class ChallengeHandler(metaclass=ABCMeta):
    """Publishes and withdraws challenge responses for an ACME client.

    Handlers are created once per run, `init` is called before the first
    challenge and `shutdown` after the last one.

    """

    @abstractmethod
    def init(self) -> None:  # pragma: no cover
        """Prepare the handler before any challenge is set."""
        raise NotImplementedError()

    @abstractmethod
    def set(self, challenge: Challenge) -> None:  # pragma: no cover
        """Publish the challenge response.

        Returns once the response can be observed by the ACME server.

        :param Challenge challenge: challenge to publish
        :raises .PluginError: if the response could not be published

        """
        raise NotImplementedError()

    @abstractmethod
    def get(self, challenge: Challenge) -> Optional[str]:  # pragma: no cover
        """Look up the currently published response.

        Absence is not an error.

        :param Challenge challenge: challenge to look up
        :returns: the published authorization if it is currently observable
        :rtype: str or None

        """
        raise NotImplementedError()

    @abstractmethod
    def remove(self, challenge: Challenge) -> None:  # pragma: no cover
        """Withdraw the challenge response.

        Succeeds if the response is already gone.

        :param Challenge challenge: challenge to withdraw
        :raises .PluginError: if the response could not be withdrawn

        """
        raise NotImplementedError()

    @abstractmethod
    def shutdown(self) -> None:  # pragma: no cover
        """Release any resources held by the handler."""
        raise NotImplementedError()
