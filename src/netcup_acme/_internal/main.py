"""netcup-acme main entry point."""
import logging
import sys
from typing import List
from typing import Optional
from typing import Union

from netcup_acme import configuration
from netcup_acme import errors
from netcup_acme._internal import cli
from netcup_acme._internal import constants
from netcup_acme._internal import log
from netcup_acme._internal import registry
from netcup_acme._internal import renewal
from netcup_acme._internal.issuance import AcmeIssuer
from netcup_acme._internal.storage import AccountStore
from netcup_acme._internal.storage import CertificateCollection
from netcup_acme._internal.storage import CollectionStore
from netcup_acme._internal.storage import purge_expired

logger = logging.getLogger(__name__)


def _renew_collection(config: configuration.NamespaceConfig, store: CollectionStore,
                      issuer: AcmeIssuer, request: configuration.CollectionRequest) -> None:
    try:
        existing = store.get(request.id)
    except errors.CertStorageError as error:
        logger.warning('%s, ordering a new certificate', error)
        existing = None

    if not renewal.should_renew(request.domains, config.staging, existing,
                                renew_before_expiry=config.renew_before_expiry):
        logger.info('Collection %s is up to date', request.id)
        return

    if config.dry_run:
        print('Collection {0} would be renewed ({1})'.format(
            request.id, ', '.join(request.domains)))
        return

    logger.info('Ordering certificate for collection %s: %s',
                request.id, ', '.join(request.domains))
    issued = issuer.issue(request.domains)
    try:
        parsed = renewal.parse_certificate(issued.cert_pem)
    except errors.CertStorageError as error:
        raise errors.IssuanceError(
            'Issued certificate for collection {0} is unusable, not saving it: {1}'.format(
                request.id, error))

    store.set(request.id, CertificateCollection(
        domains=list(request.domains),
        cert_pem=issued.cert_pem,
        chain_pem=issued.chain_pem,
        key_pem=issued.key_pem,
        staging=config.staging,
        expires=parsed.not_after,
        source=constants.COLLECTION_SOURCE,
    ))
    logger.info('Collection %s saved, valid until %s', request.id, parsed.not_after)


def renew_collections(config: configuration.NamespaceConfig, store: CollectionStore,
                      issuer: AcmeIssuer) -> int:
    """Renew every configured collection that needs it.

    Collections are handled one after another. A failing collection is
    logged and does not stop the others. Afterwards the expired
    collections owned by netcup-acme are deleted and every challenge
    handler is shut down.

    :returns: 0 if every collection succeeded, 1 otherwise
    :rtype: int

    """
    failed = []
    try:
        for request in configuration.load_collections(config.collections):
            try:
                _renew_collection(config, store, issuer, request)
            except errors.Error as error:
                logger.debug('Collection %s failed:', request.id, exc_info=True)
                logger.error('Collection %s failed: %s', request.id, error)
                failed.append(request.id)
            except Exception as error:  # pylint: disable=broad-except
                logger.error('Collection %s failed with an unexpected error: %s',
                             request.id, error, exc_info=True)
                failed.append(request.id)

        if not config.dry_run:
            try:
                purge_expired(store, constants.COLLECTION_SOURCE)
            except errors.CertStorageError as error:
                logger.warning('Cannot purge expired collections: %s', error)
    finally:
        for handler in issuer.handlers.values():
            handler.shutdown()

    if failed:
        logger.error('%d collection(s) failed: %s', len(failed), ', '.join(failed))
        return 1
    return 0


def main(cli_args: Optional[List[str]] = None) -> Union[int, str]:
    """Run netcup-acme.

    :param cli_args: command line arguments, defaults to ``sys.argv[1:]``
    :returns: value for `sys.exit`

    """
    if cli_args is None:
        cli_args = sys.argv[1:]

    try:
        config = cli.prepare_and_parse_args(cli_args)
    except errors.ConfigurationError as error:
        return 'netcup-acme: error: {0}'.format(error)

    log.setup_logging(config)

    handler = registry.create(config.dns_handler, config)
    handler.init()
    issuer = AcmeIssuer(config.server, config.email, config.staging,
                        AccountStore(config.accounts_dir), {'dns-01': handler})
    return renew_collections(config, CollectionStore(config.collections_dir), issuer)


if __name__ == '__main__':
    sys.exit(main())  # pragma: no cover
