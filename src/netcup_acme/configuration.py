"""netcup-acme user-supplied configuration."""
import argparse
import logging
import os
import re
import stat
from typing import Any
from typing import Dict
from typing import List
from typing import Mapping
from typing import NamedTuple
from typing import Optional

import configobj

from netcup_acme import errors
from netcup_acme._internal import constants
from netcup_acme._internal import renewal
from netcup_acme._internal.netcup_client import Credentials

logger = logging.getLogger(__name__)

CREDENTIALS_REQUIRED = {
    'customer_number': 'netcup customer number',
    'api_key': 'netcup CCP API key',
    'api_password': 'netcup CCP API password',
}

COLLECTION_ID_RE = re.compile(r'^[A-Za-z0-9_.-]+$')


class NamespaceConfig:
    """Configuration wrapper around :class:`argparse.Namespace`.

    Attributes not defined here are delegated to the namespace. The
    following paths are resolved relative to `config_dir`:

      - `accounts_dir`
      - `collections_dir`

    :ivar namespace: Namespace typically produced by
        :meth:`argparse.ArgumentParser.parse_args`.
    :type namespace: :class:`argparse.Namespace`

    """

    def __init__(self, namespace: argparse.Namespace) -> None:
        self.namespace: argparse.Namespace
        # Avoid recursion loop because of the delegation defined in __setattr__
        object.__setattr__(self, 'namespace', namespace)

        self.namespace.config_dir = os.path.abspath(self.namespace.config_dir)
        self.namespace.logs_dir = os.path.abspath(self.namespace.logs_dir)

        # Check command line parameters sanity, and error out in case of problem.
        _check_config_sanity(self)

    def __getattr__(self, name: str) -> Any:
        return getattr(self.namespace, name)

    def __setattr__(self, name: str, value: Any) -> None:
        setattr(self.namespace, name, value)

    def to_dict(self) -> Dict[str, Any]:
        """Returns a dictionary mapping all argument names to their values."""
        return vars(self.namespace)

    @property
    def server(self) -> str:
        """ACME directory URL, depending on `staging`."""
        if self.namespace.staging:
            return constants.STAGING_DIRECTORY_URL
        return constants.PRODUCTION_DIRECTORY_URL

    @property
    def accounts_dir(self) -> str:
        """Directory holding the ACME account."""
        return os.path.join(self.namespace.config_dir, 'accounts')

    @property
    def collections_dir(self) -> str:
        """Directory holding the certificate collections."""
        return os.path.join(self.namespace.config_dir, 'collections')


def _check_config_sanity(config: NamespaceConfig) -> None:
    """Validate command line options and raise if requirements are not met.

    :raises .ConfigurationError: on the first invalid value

    """
    for name in ('propagation_attempts', 'public_propagation_attempts'):
        if getattr(config.namespace, name) < 1:
            raise errors.ConfigurationError(
                '--{0} must be at least 1'.format(name.replace('_', '-')))
    if config.namespace.propagation_interval < 0:
        raise errors.ConfigurationError('--propagation-interval must not be negative')
    deadline = config.namespace.propagation_deadline
    if deadline is not None and deadline <= 0:
        raise errors.ConfigurationError('--propagation-deadline must be positive')
    if not config.namespace.public_resolvers:
        raise errors.ConfigurationError('at least one public resolver is required')
    if not renewal.is_valid_interval(config.namespace.renew_before_expiry):
        raise errors.ConfigurationError(
            'Cannot parse --renew-before-expiry value: {0}'.format(
                config.namespace.renew_before_expiry))
    if not config.namespace.dry_run and not config.namespace.email:
        raise errors.ConfigurationError('--email is required to register an ACME account')


class CredentialsConfiguration:
    """Represents a user-supplied file which stores API credentials."""

    def __init__(self, filename: str, prefix: str = 'netcup_') -> None:
        """
        :param str filename: A path to the configuration file.
        :param str prefix: prepended to every key looked up
        :raises errors.ConfigurationError: If the file does not exist or is not a valid format.
        """
        validate_file_permissions(filename)

        try:
            self.confobj = configobj.ConfigObj(filename)
        except configobj.ConfigObjError as e:
            logger.debug("Error parsing credentials configuration '%s': %s",
                         filename, e, exc_info=True)
            raise errors.ConfigurationError(
                "Error parsing credentials configuration '{0}': {1}".format(filename, e))

        self.prefix = prefix

    def require(self, required_variables: Mapping[str, str]) -> None:
        """Ensures that the supplied set of variables are all present in the file.

        :param dict required_variables: Map of variable which must be present to error to display.
        :raises errors.ConfigurationError: If one or more are missing.
        """
        messages = []

        for var in required_variables:
            if self.prefix + var not in self.confobj:
                messages.append('Property "{0}" not found (should be {1}).'
                                .format(self.prefix + var, required_variables[var]))
            elif not self.conf(var):
                messages.append('Property "{0}" not set (should be {1}).'
                                .format(self.prefix + var, required_variables[var]))

        if messages:
            raise errors.ConfigurationError(
                'Missing {0} in credentials configuration file {1}:\n * {2}'.format(
                    'property' if len(messages) == 1 else 'properties',
                    self.confobj.filename,
                    '\n * '.join(messages)))

    def conf(self, var: str) -> Optional[str]:
        """Find a configuration value for variable `var`."""
        return self.confobj.get(self.prefix + var)


def validate_file(filename: str) -> None:
    """Ensure that the specified file exists."""

    if not os.path.exists(filename):
        raise errors.ConfigurationError('File not found: {0}'.format(filename))

    if os.path.isdir(filename):
        raise errors.ConfigurationError('Path is a directory: {0}'.format(filename))


def validate_file_permissions(filename: str) -> None:
    """Ensure that the specified file exists and warn about unsafe permissions."""

    validate_file(filename)

    if os.stat(filename).st_mode & stat.S_IRWXO:
        logger.warning('Unsafe permissions on credentials configuration file: %s', filename)


def load_credentials(filename: str) -> Credentials:
    """Read netcup API credentials from an INI file.

    :raises .ConfigurationError: if the file is missing, broken or incomplete

    """
    credentials = CredentialsConfiguration(filename)
    credentials.require(CREDENTIALS_REQUIRED)
    return Credentials(credentials.conf('customer_number'),
                       credentials.conf('api_key'),
                       credentials.conf('api_password'))


class CollectionRequest(NamedTuple):
    """A configured certificate collection.

    :ivar str id: collection id, also its directory name in the store
    :ivar list domains: requested domains, the first is the common name

    """
    id: str
    domains: List[str]


def desired_domains(common_name: Any, alt_names: Any = None) -> List[str]:
    """Build the requested domain list of a collection.

    Common name entries come first, then the alternative names. configobj
    already splits comma separated values into lists.

    """
    def _entries(value: Any) -> List[str]:
        if not value:
            return []
        if isinstance(value, str):
            value = value.split(',')
        return [''.join(entry.split()) for entry in value]

    return [domain for domain in _entries(common_name) + _entries(alt_names) if domain]


def load_collections(filename: str) -> List[CollectionRequest]:
    """Read the configured certificate collections.

    Each section of the file is one collection::

      [example]
      common_name = example.com
      alt_names = www.example.com, mail.example.com

    :raises .ConfigurationError: if the file is broken or a section is invalid

    """
    validate_file(filename)
    try:
        confobj = configobj.ConfigObj(filename)
    except configobj.ConfigObjError as e:
        raise errors.ConfigurationError(
            "Error parsing collections configuration '{0}': {1}".format(filename, e))

    collections = []
    for section_id in confobj.sections:
        if not COLLECTION_ID_RE.match(section_id):
            raise errors.ConfigurationError(
                'Invalid collection id {0!r} in {1}'.format(section_id, filename))
        section = confobj[section_id]
        domains = desired_domains(section.get('common_name'), section.get('alt_names'))
        if not domains:
            raise errors.ConfigurationError(
                'Collection {0} in {1} has no common_name'.format(section_id, filename))
        collections.append(CollectionRequest(section_id, domains))
    return collections
