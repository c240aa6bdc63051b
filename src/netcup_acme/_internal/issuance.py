"""Order certificates from an ACME CA using the configured challenge handlers."""
import datetime
import logging
import re
from typing import List
from typing import Mapping
from typing import NamedTuple
from typing import Optional
from typing import Sequence
from typing import Tuple

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric import rsa
import josepy as jose
import requests

from acme import challenges
from acme import client
from acme import crypto_util as acme_crypto_util
from acme import errors as acme_errors
from acme import messages
from netcup_acme import errors
from netcup_acme import interfaces
from netcup_acme._internal import constants
from netcup_acme._internal.storage import AccountRecord
from netcup_acme._internal.storage import AccountStore

logger = logging.getLogger(__name__)

USER_AGENT = 'netcup-acme'

CERT_PEM_REGEX = re.compile(
    b"""-----BEGIN CERTIFICATE-----\r?
.+?\r?
-----END CERTIFICATE-----\r?
""",
    re.DOTALL  # DOTALL (/s) because the base64text may include newlines
)


class IssuedCertificate(NamedTuple):
    """PEM encoded result of a finalized order."""
    cert_pem: bytes
    chain_pem: bytes
    key_pem: bytes


def cert_and_chain_from_fullchain(fullchain_pem: str) -> Tuple[bytes, bytes]:
    """Split fullchain_pem into cert_pem and chain_pem

    :param str fullchain_pem: concatenated cert + chain

    :returns: tuple of cert_pem and chain_pem
    :rtype: tuple

    :raises errors.IssuanceError: If there are less than 2 certificates in the chain
        or one of them cannot be parsed.

    """
    certs = CERT_PEM_REGEX.findall(fullchain_pem.encode())
    if len(certs) < 2:
        raise errors.IssuanceError("failed to parse fullchain into cert and chain: " +
                                   "less than 2 certificates in chain")

    # Re-encoding normalizes line endings and whitespace.
    try:
        certs_normalized = [
            x509.load_pem_x509_certificate(cert_pem).public_bytes(serialization.Encoding.PEM)
            for cert_pem in certs]
    except ValueError as error:
        raise errors.IssuanceError("failed to parse fullchain: {0}".format(error))
    return certs_normalized[0], b''.join(certs_normalized[1:])


def make_server_key(bits: int = constants.SERVER_KEY_BITS) -> bytes:
    """Generate an RSA private key, PKCS#8 PEM encoded."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=bits)
    return key.private_bytes(encoding=serialization.Encoding.PEM,
                             format=serialization.PrivateFormat.PKCS8,
                             encryption_algorithm=serialization.NoEncryption())


class AcmeIssuer:
    """Issues certificates through `acme.client.ClientV2`.

    Challenges are fulfilled by the handler registered for their type,
    e.g. ``{'dns-01': provisioner}``. A handler's `set` must not return
    before the CA can observe the challenge.

    :ivar str server: ACME directory URL
    :ivar str email: contact address of the account
    :ivar bool staging: whether `server` is a staging CA

    """

    def __init__(self, server: str, email: str, staging: bool, account_store: AccountStore,
                 handlers: Mapping[str, interfaces.ChallengeHandler],
                 finalize_timeout: int = constants.ACME_FINALIZE_TIMEOUT) -> None:
        self.server = server
        self.email = email
        self.staging = staging
        self.account_store = account_store
        self.handlers = handlers
        self.finalize_timeout = finalize_timeout
        self._acme: Optional[client.ClientV2] = None

    def _client(self) -> client.ClientV2:
        if self._acme is not None:
            return self._acme

        account = self.account_store.load(self.email, self.staging)
        if account is not None:
            key = account.key
        else:
            key = jose.JWKEC(key=ec.generate_private_key(ec.SECP256R1()))

        net = client.ClientNetwork(key, alg=jose.ES256, user_agent=USER_AGENT)
        directory = client.ClientV2.get_directory(self.server, net)
        acme = client.ClientV2(directory, net=net)

        if account is not None:
            logger.debug('Using ACME account %s', account.uri)
            net.account = messages.RegistrationResource(
                uri=account.uri, body=messages.Registration())
        else:
            logger.info('Registering ACME account for %s with %s', self.email, self.server)
            regr = acme.new_account(messages.NewRegistration.from_data(
                email=self.email, terms_of_service_agreed=True))
            self.account_store.save(AccountRecord(self.email, self.staging, regr.uri, key))

        self._acme = acme
        return acme

    def issue(self, domains: Sequence[str]) -> IssuedCertificate:
        """Order a certificate for `domains`, the first one being the common name.

        Every challenge that was set is removed again, whatever the outcome.

        :raises .IssuanceError: if the order failed
        :raises .PluginError: if a challenge handler failed

        """
        try:
            acme = self._client()
            key_pem = make_server_key()
            csr_pem = acme_crypto_util.make_csr(key_pem, list(domains))
            orderr = acme.new_order(csr_pem)
        except (acme_errors.Error, requests.exceptions.RequestException) as error:
            logger.debug('Error creating the order', exc_info=True)
            raise errors.IssuanceError(
                'Cannot create order for {0}: {1}'.format(', '.join(domains), error))

        performed: List[Tuple[interfaces.ChallengeHandler, interfaces.Challenge]] = []
        try:
            for authzr in orderr.authorizations:
                if authzr.body.status == messages.STATUS_VALID:
                    logger.debug('Authorization for %s is still valid',
                                 authzr.body.identifier.value)
                    continue
                challb, handler = self._select_challenge(authzr)
                response, validation = challb.response_and_validation(acme.net.key)
                challenge = interfaces.Challenge(
                    challb.chall.validation_domain_name(authzr.body.identifier.value),
                    validation)
                performed.append((handler, challenge))
                handler.set(challenge)
                acme.answer_challenge(challb, response)

            deadline = datetime.datetime.now() + datetime.timedelta(
                seconds=self.finalize_timeout)
            finalized = acme.poll_and_finalize(orderr, deadline)
        except (acme_errors.Error, requests.exceptions.RequestException) as error:
            logger.debug('Error during the order', exc_info=True)
            raise errors.IssuanceError(
                'Order for {0} failed: {1}'.format(', '.join(domains), error))
        finally:
            self._cleanup(performed)

        cert_pem, chain_pem = cert_and_chain_from_fullchain(finalized.fullchain_pem)
        logger.info('Certificate issued for %s', ', '.join(domains))
        return IssuedCertificate(cert_pem, chain_pem, key_pem)

    def _select_challenge(self, authzr: messages.AuthorizationResource
                          ) -> Tuple[messages.ChallengeBody, interfaces.ChallengeHandler]:
        for challb in authzr.body.challenges:
            handler = self.handlers.get(challb.chall.typ)
            if handler is not None and isinstance(challb.chall, challenges.DNS01):
                return challb, handler
        offered = ', '.join(challb.chall.typ for challb in authzr.body.challenges)
        raise errors.IssuanceError(
            'No handler for any challenge offered for {0} ({1})'.format(
                authzr.body.identifier.value, offered))

    @staticmethod
    def _cleanup(performed: Sequence[Tuple[interfaces.ChallengeHandler,
                                           interfaces.Challenge]]) -> None:
        for handler, challenge in performed:
            try:
                handler.remove(challenge)
            except errors.Error as error:
                logger.warning('Cannot remove challenge record %s: %s',
                               challenge.dns_host, error)
