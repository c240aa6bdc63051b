"""netcup-acme command line argument parsing."""
import argparse
import copy
from typing import Any
from typing import List
from typing import Optional

import configargparse

import netcup_acme
from netcup_acme import configuration
from netcup_acme._internal import constants
from netcup_acme._internal import provisioner
from netcup_acme._internal import registry


def flag_default(name: str) -> Any:
    """Default value for CLI flag."""
    return copy.deepcopy(constants.CLI_DEFAULTS[name])


def build_parser() -> configargparse.ArgParser:
    """Build the argument parser.

    Every long option may also be given in a config file, e.g.
    ``propagation-interval = 30``.

    """
    parser = configargparse.ArgParser(
        prog='netcup-acme',
        description='Obtain and renew certificates using netcup DNS-01 challenges.',
        args_for_setting_config_path=['-c', '--config'],
        default_config_files=flag_default('config_files'),
        config_arg_help_message='path to config file (default: {0})'.format(
            ' and '.join(flag_default('config_files'))))

    parser.add_argument('--version', action='version',
                        version='%(prog)s {0}'.format(netcup_acme.__version__))

    paths = parser.add_argument_group('paths')
    paths.add_argument('--credentials', required=True,
                       help='netcup API credentials INI file')
    paths.add_argument('--collections', required=True,
                       help='INI file listing the certificate collections to maintain')
    paths.add_argument('--config-dir', default=flag_default('config_dir'),
                       help='directory holding collections and the ACME account '
                            '(default: %(default)s)')
    paths.add_argument('--logs-dir', default=flag_default('logs_dir'),
                       help='log directory (default: %(default)s)')
    paths.add_argument('--max-log-backups', type=int, default=flag_default('max_log_backups'),
                       help='number of rotated log files to keep (default: %(default)s)')

    acme = parser.add_argument_group('acme')
    acme.add_argument('--email', default=flag_default('email'),
                      help='contact e-mail of the ACME account')
    acme.add_argument('--staging', action='store_true', default=flag_default('staging'),
                      help='use the Let\'s Encrypt staging environment')
    acme.add_argument('--renew-before-expiry', default=flag_default('renew_before_expiry'),
                      help='renew certificates expiring within this interval, '
                           'e.g. "10 days" (default: %(default)s)')
    acme.add_argument('--dry-run', action='store_true', default=flag_default('dry_run'),
                      help='only report which collections would be renewed')

    dns = parser.add_argument_group('dns')
    dns.add_argument('--dns-handler', default=flag_default('dns_handler'),
                     choices=registry.names(),
                     help='DNS-01 challenge handler (default: %(default)s)')
    dns.add_argument('--polling-strategy', default=flag_default('polling_strategy'),
                     choices=[strategy.value for strategy in provisioner.PollingStrategy],
                     help='how record propagation is confirmed (default: %(default)s)')
    dns.add_argument('--propagation-attempts', type=int,
                     default=flag_default('propagation_attempts'),
                     help='lookups on the first tier before giving up (default: %(default)s)')
    dns.add_argument('--public-propagation-attempts', type=int,
                     default=flag_default('public_propagation_attempts'),
                     help='additional lookups on public resolvers after the '
                          'authoritative nameservers (default: %(default)s)')
    dns.add_argument('--propagation-interval', type=float,
                     default=flag_default('propagation_interval'),
                     help='seconds between lookups (default: %(default)s)')
    dns.add_argument('--propagation-deadline', type=float,
                     default=flag_default('propagation_deadline'),
                     help='overall limit in seconds for confirming one record')
    dns.add_argument('--public-resolvers', nargs='+',
                     default=flag_default('public_resolvers'),
                     help='public resolver addresses (default: %(default)s)')

    output = parser.add_argument_group('output')
    output.add_argument('-v', '--verbose', dest='verbose_count', action='count',
                        default=flag_default('verbose_count'),
                        help='increase terminal verbosity, may be repeated')
    output.add_argument('-q', '--quiet', action='store_true', default=flag_default('quiet'),
                        help='only show errors')
    output.add_argument('--debug', action='store_true', default=flag_default('debug'),
                        help='show tracebacks of fatal errors')
    return parser


def prepare_and_parse_args(args: Optional[List[str]] = None
                           ) -> configuration.NamespaceConfig:
    """Parse `args` into a checked configuration.

    :raises .ConfigurationError: if the values are inconsistent

    """
    namespace: argparse.Namespace = build_parser().parse_args(args)
    return configuration.NamespaceConfig(namespace)
