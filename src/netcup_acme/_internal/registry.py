"""Named DNS-01 challenge handler constructors."""
import logging
from typing import Callable
from typing import Dict
from typing import List

from netcup_acme import configuration
from netcup_acme import errors
from netcup_acme import interfaces
from netcup_acme._internal import provisioner
from netcup_acme._internal.netcup_client import NetcupClient

logger = logging.getLogger(__name__)

HandlerFactory = Callable[[configuration.NamespaceConfig], interfaces.ChallengeHandler]

HANDLERS: Dict[str, HandlerFactory] = {}


def register(name: str) -> Callable[[HandlerFactory], HandlerFactory]:
    """Decorator registering a handler constructor under `name`."""
    def _register(factory: HandlerFactory) -> HandlerFactory:
        if name in HANDLERS:
            raise ValueError('DNS-01 handler {0} is already registered'.format(name))
        HANDLERS[name] = factory
        return factory
    return _register


def names() -> List[str]:
    """Names of the registered handlers."""
    return sorted(HANDLERS)


def create(name: str, config: configuration.NamespaceConfig) -> interfaces.ChallengeHandler:
    """Construct the handler registered as `name`.

    :raises .UnknownHandlerError: if no handler has this name
    :raises .ConfigurationError: if the handler cannot be configured

    """
    try:
        factory = HANDLERS[name]
    except KeyError:
        raise errors.UnknownHandlerError(
            'Unknown DNS-01 handler {0!r}, known handlers: {1}'.format(
                name, ', '.join(names())))
    logger.debug('Creating DNS-01 handler %s', name)
    return factory(config)


@register('netcup')
def netcup(config: configuration.NamespaceConfig) -> interfaces.ChallengeHandler:
    """netcup CCP API handler, configured from the credentials file."""
    credentials = configuration.load_credentials(config.credentials)
    return provisioner.ChallengeProvisioner(
        NetcupClient(credentials),
        strategy=provisioner.PollingStrategy(config.polling_strategy),
        public_resolvers=config.public_resolvers,
        max_attempts=config.propagation_attempts,
        public_max_attempts=config.public_propagation_attempts,
        interval=config.propagation_interval,
        deadline_seconds=config.propagation_deadline,
    )
