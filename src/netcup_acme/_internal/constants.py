"""netcup-acme constants."""
import logging
import os
from typing import Any
from typing import Dict

NETCUP_API_URL = 'https://ccp.netcup.net/run/webservice/servers/endpoint.php?JSON'
"""netcup CCP API endpoint. Every action is POSTed to this single URL."""

NETCUP_API_DOCS_URL = 'https://www.netcup-wiki.de/wiki/CCP_API'

NETCUP_SUCCESS_CODES = range(2000, 3000)
"""API status codes treated as success (2000 OK, 2011 created/updated, ...)."""

DEFAULT_NETWORK_TIMEOUT = 45
"""Seconds before an HTTP request to the netcup API is abandoned."""

DNS_QUERY_TIMEOUT = 5.0
"""Seconds a single DNS lookup may take."""

MAX_AUTHORITATIVE_NAMESERVERS = 3

PUBLIC_RESOLVERS = ['1.1.1.1', '8.8.8.8']
"""Resolvers used for the public tier and as a fallback for NS discovery."""

PRODUCTION_DIRECTORY_URL = 'https://acme-v02.api.letsencrypt.org/directory'
STAGING_DIRECTORY_URL = 'https://acme-staging-v02.api.letsencrypt.org/directory'

ACME_FINALIZE_TIMEOUT = 90
"""Seconds to wait for an order to be validated and finalized."""

SERVER_KEY_BITS = 2048

COLLECTION_SOURCE = 'netcup-acme'
"""Owner tag written to every collection this program issues."""

DEFAULT_LOGGING_LEVEL = logging.WARNING
QUIET_LOGGING_LEVEL = logging.ERROR
LOG_FILENAME = 'netcup-acme.log'

CLI_DEFAULTS: Dict[str, Any] = dict(  # noqa
    config_files=[
        '/etc/netcup-acme/cli.ini',
        os.path.join(os.environ.get('XDG_CONFIG_HOME', '~/.config'),
                     'netcup-acme', 'cli.ini'),
    ],
    credentials=None,
    collections=None,
    email=None,
    staging=False,
    config_dir='/etc/netcup-acme',
    logs_dir='/var/log/netcup-acme',
    max_log_backups=10,
    dns_handler='netcup',
    polling_strategy='authoritative-then-public',
    propagation_attempts=120,
    public_propagation_attempts=60,
    propagation_interval=10,
    propagation_deadline=None,
    public_resolvers=PUBLIC_RESOLVERS,
    renew_before_expiry='7 days',
    dry_run=False,
    verbose_count=0,
    quiet=False,
    debug=False,
)
"""Defaults for CLI flags and `.NamespaceConfig` attributes."""

SECRET_KEY_PATTERN = r'api|key|secret|password|token'
"""Configuration keys whose values are masked in log output."""
