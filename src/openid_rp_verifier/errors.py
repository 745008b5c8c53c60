"""
Exception taxonomy for OpenID response verification.

Protocol violations become a ``Rejection`` at the public ``verify()``
boundary. Configuration errors point at a bug in the calling integration
and always propagate.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .message import Message


class RejectionKind(str, Enum):
    """Externally visible categories of a rejected assertion."""

    PROTOCOL_VIOLATION = "protocol_violation"
    MALFORMED_NONCE = "malformed_nonce"
    NO_OPENID_INFORMATION = "no_openid_information"


class ProtocolError(ValueError):
    """A response violated the OpenID protocol and must be rejected."""

    kind = RejectionKind.PROTOCOL_VIOLATION


class DiscoveryFailure(ProtocolError):
    """Discovery on the claimed identifier produced no endpoints."""

    kind = RejectionKind.NO_OPENID_INFORMATION

    def __init__(self, identifier: str | None):
        super().__init__(f"No OpenID information found at {identifier}")
        self.identifier = identifier


class MalformedNonce(ProtocolError):
    """The response nonce could not be split into timestamp and salt."""

    kind = RejectionKind.MALFORMED_NONCE

    def __init__(self, nonce: str):
        super().__init__(f"Malformed nonce: {nonce!r}")
        self.nonce = nonce


class ConfigurationError(RuntimeError):
    """The verifier was called or assembled incorrectly."""


class KeyNotFound(KeyError):
    """A required message field was absent."""


class TransportError(Exception):
    """A direct request to the OP could not be completed."""


class ServerError(TransportError):
    """The OP answered a direct request with an error (HTTP 400)."""

    def __init__(self, error_text: str, error_code: str | None, message: Message):
        super().__init__(error_text)
        self.error_text = error_text
        self.error_code = error_code
        self.message = message

    @classmethod
    def from_message(cls, message: Message) -> "ServerError":
        """Extract the error text and error code from an error response."""
        from .message import Field

        error_text = message.get_openid(Field.ERROR, "<no error message supplied>")
        error_code = message.get_openid(Field.ERROR_CODE, None)
        return cls(error_text, error_code, message)
