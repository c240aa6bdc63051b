"""
The `netcup_acme` package obtains and renews certificates from an ACME
certificate authority by completing ``dns-01`` challenges through the netcup
CCP DNS API. TXT records are created, confirmed on the zone's authoritative
nameservers and on public resolvers, and removed again once the challenge has
been validated.


Named Arguments
---------------

==========================================  ===================================
``--credentials``                           netcup credentials_ INI file.
                                            (Required)
``--collections``                           Certificate collections_ INI file.
                                            (Required)
``--email``                                 Contact e-mail for the ACME
                                            account.
``--staging``                               Use the Let's Encrypt staging
                                            environment.
``--polling-strategy``                      How propagation is confirmed:
                                            ``authoritative-then-public``
                                            (default), ``public-only`` or
                                            ``provider-state``.
``--propagation-attempts``                  Attempts on the first tier.
                                            (Default: 120)
``--public-propagation-attempts``           Additional attempts on public
                                            resolvers. (Default: 60)
``--propagation-interval``                  Seconds between attempts.
                                            (Default: 10)
``--renew-before-expiry``                   Renewal window. (Default: 7 days)
==========================================  ===================================


Credentials
-----------

.. code-block:: ini
   :name: credentials.ini
   :caption: Example credentials file:

   # netcup CCP API credentials used by netcup-acme
   netcup_customer_number = 123456
   netcup_api_key = 0123456789abcdef
   netcup_api_password = abcdef0123456789

The API key and password are created in the netcup CCP under
``Master Data > API``.

.. caution::
   You should protect these API credentials as you would a password. Users who
   can read this file can use these credentials to issue arbitrary API calls on
   your behalf.

A warning reading "Unsafe permissions on credentials configuration file" is
logged each time the file is used while it is readable by other users.


Collections
-----------

.. code-block:: ini
   :name: collections.ini
   :caption: Example collections file:

   [default]
   common_name = example.com
   alt_names = www.example.com, mail.example.com

Each section is one certificate collection. A collection is renewed when it
does not exist yet, expires within the renewal window, or its names or
staging flag no longer match the configuration.


Known limitations
-----------------

When the netcup API rejects every zone probe for a host, the zone is assumed
to be the last two labels of the name. This is wrong for names under
multi-label public suffixes such as ``co.uk``.

"""

# version number like 1.2.3a0, must have at least 2 parts, like 1.2
__version__ = '1.1.0.dev0'
