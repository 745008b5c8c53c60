"""
Verification of positive assertions (``openid.mode=id_res``).
"""

from __future__ import annotations

import logging

from .config import VerifierSettings
from .discovery import Discoverer, DiscoveryCorroborator
from .errors import ProtocolError
from .fields import FieldExtractor, FieldPresenceValidator
from .kvpost import KVPostTransport
from .message import Message
from .models import Rejection, ServiceEndpoint, VerificationResult
from .protocol import strategy_for
from .replay import ReplayGuard
from .return_to import ReturnToValidator
from .signature import SignatureValidator, Transport
from .store import OpenIDStore

logger = logging.getLogger(__name__)


class IdResHandler:
    """
    Runs every check on one OpenID response.

    Stages run in a fixed order: field presence, return_to, signature,
    nonce, discovery. For OpenID 1 the discovery stage runs before the
    signature stage, because only discovery identifies the signing OP.

    Args:
        message: The response message
        return_to: Callback URL the RP expects, or None to skip that check
        store: Association store and nonce ledger, or None for stateless mode
        endpoint: Endpoint remembered from the start of the login, if any
        discoverer: Discovery collaborator used when fresh discovery is needed
        transport: Direct-request transport for check_authentication
        settings: Verifier settings

    Raises:
        ConfigurationError: If the message is not an OpenID message
    """

    def __init__(
        self,
        message: Message,
        return_to: str | None = None,
        store: OpenIDStore | None = None,
        endpoint: ServiceEndpoint | None = None,
        discoverer: Discoverer | None = None,
        transport: Transport | None = None,
        settings: VerifierSettings | None = None,
    ):
        self.settings = settings or VerifierSettings()
        self.message = message
        self.return_to = return_to
        self.store = store
        self.known_endpoint = endpoint
        self.fields = FieldExtractor(message)
        self.strategy = strategy_for(self.fields.version, self.settings)
        self.corroborator = DiscoveryCorroborator(discoverer)
        self.transport = transport or KVPostTransport(timeout_s=self.settings.check_auth_timeout_s)
        self._endpoint: ServiceEndpoint | None = None

    def verify(self) -> VerificationResult:
        """
        Raises:
            ProtocolError: If any check fails
            ConfigurationError: If the verifier was called incorrectly
        """
        logger.debug("Verifying %s response", self.strategy.version.name)
        FieldPresenceValidator(self.fields, self.strategy).check()
        ReturnToValidator(self.fields, self.return_to).check()

        if self.strategy.binds_signer_by_discovery:
            self.verify_discovery_results()

        server_url = self.strategy.signer_url(self.fields, self._endpoint)
        logger.debug("Checking signature from %s", server_url)
        SignatureValidator(self.fields, self.store, self.transport).check(server_url)

        nonce, nonce_server_url = self.strategy.extract_nonce(self.fields, server_url)
        ReplayGuard(self.store).check(nonce, nonce_server_url)

        endpoint = self.verify_discovery_results()

        signed_fields = tuple(f"openid.{name}" for name in self.fields.signed_list)
        return VerificationResult(endpoint=endpoint, message=self.message, signed_fields=signed_fields)

    def verify_discovery_results(self) -> ServiceEndpoint:
        if self._endpoint is None:
            self._endpoint = self.strategy.resolve_endpoint(
                self.fields, self.known_endpoint, self.corroborator
            )
        return self._endpoint


def verify(
    message: Message,
    expected_return_to: str | None = None,
    store: OpenIDStore | None = None,
    known_endpoint: ServiceEndpoint | None = None,
    *,
    discoverer: Discoverer | None = None,
    transport: Transport | None = None,
    settings: VerifierSettings | None = None,
) -> VerificationResult | Rejection:
    """
    Verify an OpenID positive assertion.

    Args:
        message: The response message
        expected_return_to: Callback URL the RP expects
        store: Association store and nonce ledger (optional)
        known_endpoint: Endpoint remembered from the start of the login
        discoverer: Discovery collaborator
        transport: Direct-request transport. Default: KVPostTransport
        settings: Verifier settings. Default: VerifierSettings()

    Returns:
        VerificationResult if the assertion holds, Rejection otherwise

    Raises:
        ConfigurationError: If the verifier was called incorrectly

    Example:
        >>> message = Message.from_post_args(request.args)
        >>> result = verify(message, "https://rp.example.com/openid/return",
        ...                 store=store, discoverer=discoverer)
        >>> if result.verified:
        ...     print(f"Logged in as {result.identity_url}")
    """
    handler = IdResHandler(
        message,
        expected_return_to,
        store,
        known_endpoint,
        discoverer=discoverer,
        transport=transport,
        settings=settings,
    )
    try:
        return handler.verify()
    except ProtocolError as e:
        logger.info("Rejected OpenID assertion: %s", e)
        return Rejection(error=str(e), kind=e.kind)
