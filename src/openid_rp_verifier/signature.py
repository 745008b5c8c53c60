"""
Signature verification, locally or by asking the OP (check_authentication).
"""

from __future__ import annotations

import logging
from typing import Protocol

from .errors import KeyNotFound, ProtocolError, TransportError
from .fields import FieldExtractor
from .message import NO_DEFAULT, Field, Message
from .store import OpenIDStore

logger = logging.getLogger(__name__)

# Sent to the OP as-is; they are not part of what the OP signed
CHECK_AUTH_TRANSPORT_FIELDS = (
    Field.ASSOC_HANDLE,
    Field.SIG,
    Field.SIGNED,
    Field.INVALIDATE_HANDLE,
)


class Transport(Protocol):
    def post(self, request_message: Message, server_url: str) -> Message: ...


class SignatureValidator:
    """
    Args:
        fields: Response fields
        store: Association store, or None for stateless verification
        transport: Direct-request transport used for check_authentication
    """

    def __init__(self, fields: FieldExtractor, store: OpenIDStore | None, transport: Transport):
        self.fields = fields
        self.store = store
        self.transport = transport

    def check(self, server_url: str) -> None:
        """
        Verify the response signature for the OP at ``server_url``.

        An expired association is a hard failure; falling back to
        check_authentication there would let an OP that only hands out
        expired associations choose the verification path.

        Raises:
            ProtocolError: If the signature cannot be confirmed
        """
        if self.store is None:
            assoc = None
        else:
            assoc = self.store.get_association(server_url, self.fields.get(Field.ASSOC_HANDLE))

        if assoc is None:
            self.check_auth(server_url)
            return

        if assoc.expires_in <= 0:
            raise ProtocolError(f"Association with {server_url} expired")
        try:
            valid = assoc.verify_signature(self.fields.message)
        except ValueError as e:
            # Signed values that cannot be put in key-value form
            raise ProtocolError(f"Bad signature in response from {server_url}: {e}") from e
        if not valid:
            raise ProtocolError(f"Bad signature in response from {server_url}")

    def check_auth(self, server_url: str) -> None:
        """
        Ask the OP whether it issued this response.

        Preconditions: required fields are present and signed and the
        return_to URL was verified. The OP only vouches for the signature;
        the nonce and discovery checks still have to run afterwards.

        Raises:
            ProtocolError: If the request cannot be built or sent, or the
                OP does not confirm the signature
        """
        logger.info("Using 'check_authentication' with %s", server_url)
        try:
            request = self.create_check_auth_request()
        except KeyNotFound as e:
            raise ProtocolError(
                f"Could not generate 'check_authentication' request: {e}"
            ) from e

        try:
            response = self.transport.post(request, server_url)
        except TransportError as e:
            logger.warning("check_authentication with %s failed: %s", server_url, e)
            raise ProtocolError(
                f"Error from {server_url} during check_authentication: {e}"
            ) from e

        self.process_check_auth_response(response, server_url)

    def create_check_auth_request(self) -> Message:
        """
        Build the check_authentication request from the response.

        Raises:
            KeyNotFound: If a field named in the signed list is absent
        """
        check_args: dict[str, str] = {}
        for field in CHECK_AUTH_TRANSPORT_FIELDS:
            value = self.fields.get(field, None)
            if value is not None:
                check_args[field.value] = value

        for name in self.fields.signed_list:
            check_args[name] = self.fields.aliased(name, NO_DEFAULT)

        check_args[Field.MODE.value] = "check_authentication"
        if self.fields.message.is_openid2():
            check_args.setdefault(Field.NS.value, self.fields.message.get_openid_namespace())
        return Message.from_openid_args(check_args)

    def process_check_auth_response(self, response: Message, server_url: str) -> None:
        """
        Apply ``invalidate_handle`` and require ``is_valid:true``.

        Raises:
            ProtocolError: If the OP does not assert validity
        """
        is_valid = response.get_openid(Field.IS_VALID, "false")

        invalidate_handle = response.get_openid(Field.INVALIDATE_HANDLE, None)
        if invalidate_handle is not None:
            logger.info("Received 'invalidate_handle' from server %s", server_url)
            if self.store is None:
                logger.warning("Unexpectedly got 'invalidate_handle' without a store!")
            else:
                self.store.remove_association(server_url, invalidate_handle)

        if is_valid != "true":
            raise ProtocolError(
                f"Server {server_url} responds that the "
                "'check_authentication' call is not valid"
            )
