"""
Data models for OpenID response verification.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar
from urllib.parse import urldefrag

from .errors import ConfigurationError, RejectionKind
from .message import (
    OPENID1_NAMESPACES,
    OPENID1_NS,
    OPENID2_NS,
    OPENID_NS,
    Field,
    Message,
)

# Service type URIs advertised by discovered endpoints
OPENID_1_0_TYPE = "http://openid.net/signon/1.0"
OPENID_1_1_TYPE = "http://openid.net/signon/1.1"
OPENID_2_0_TYPE = "http://specs.openid.net/auth/2.0/signon"
OPENID_IDP_2_0_TYPE = "http://specs.openid.net/auth/2.0/server"


class ProtocolVersion(Enum):
    """Protocol generation of a response, decided once from its namespace."""

    OPENID1 = "openid1"
    OPENID2 = "openid2"

    @classmethod
    def from_namespace(cls, namespace: str) -> "ProtocolVersion":
        """
        Map a message's protocol namespace to a version.

        Raises:
            ConfigurationError: If the namespace is not an OpenID namespace
        """
        if namespace in OPENID1_NAMESPACES:
            return cls.OPENID1
        if namespace == OPENID2_NS:
            return cls.OPENID2
        raise ConfigurationError(f"Unknown OpenID namespace {namespace!r}")


def _defrag(uri: str | None) -> str | None:
    if uri is None:
        return None
    return urldefrag(uri)[0]


@dataclass(frozen=True)
class ServiceEndpoint:
    """
    An identity binding: who is claimed, which OP-local identifier stands
    for it, and which OP endpoint speaks for it.

    Attributes:
        claimed_id: Identifier the user claims (may carry a fragment)
        local_id: OP-local identifier; defaults to the claimed identifier
        server_url: OP endpoint URL
        type_uris: Service types advertised for this endpoint
    """
    claimed_id: str | None = None
    local_id: str | None = None
    server_url: str | None = None
    type_uris: tuple[str, ...] = ()

    @classmethod
    def from_op_endpoint_url(cls, op_endpoint_url: str) -> "ServiceEndpoint":
        """Endpoint for an OP-identifier response that asserts no identity."""
        return cls(server_url=op_endpoint_url, type_uris=(OPENID_IDP_2_0_TYPE,))

    def uses_extension(self, type_uri: str) -> bool:
        return type_uri in self.type_uris

    def get_local_id(self) -> str | None:
        return self.local_id or self.claimed_id

    def preferred_namespace(self) -> str:
        if OPENID_IDP_2_0_TYPE in self.type_uris or OPENID_2_0_TYPE in self.type_uris:
            return OPENID2_NS
        return OPENID1_NS

    def is_op_identifier(self) -> bool:
        return OPENID_IDP_2_0_TYPE in self.type_uris

    @property
    def defragged_claimed_id(self) -> str | None:
        return _defrag(self.claimed_id)

    def with_claimed_id(self, claimed_id: str | None) -> "ServiceEndpoint":
        return dataclasses.replace(self, claimed_id=claimed_id)

    def with_type_uris(self, type_uris: tuple[str, ...]) -> "ServiceEndpoint":
        return dataclasses.replace(self, type_uris=tuple(type_uris))


@dataclass(frozen=True)
class VerificationResult:
    """
    A verified positive assertion.

    Attributes:
        endpoint: The endpoint that corroborated the assertion
        message: The verified response message
        signed_fields: Signed field names, ``openid.``-prefixed, in the
            order of the response's ``signed`` list
    """
    verified: ClassVar[bool] = True

    endpoint: ServiceEndpoint
    message: Message
    signed_fields: tuple[str, ...]

    @property
    def identity_url(self) -> str | None:
        return self.endpoint.claimed_id

    def is_signed(self, ns_uri: str, ns_key: str) -> bool:
        """Whether the given field was covered by the OP's signature."""
        key = self.message.get_key(ns_uri, ns_key)
        return key is not None and key in self.signed_fields

    def get_signed(self, ns_uri: str, ns_key: str, default: str | None = None) -> str | None:
        if self.is_signed(ns_uri, ns_key):
            return self.message.get_arg(ns_uri, ns_key, default)
        return default

    def get_signed_ns(self, ns_uri: str) -> dict[str, str] | None:
        """
        All fields of a namespace, or None if any of them is unsigned.
        """
        args = self.message.get_args(ns_uri)
        for key in args:
            if not self.is_signed(ns_uri, key):
                return None
        return args

    def get_return_to(self) -> str | None:
        return self.get_signed(OPENID_NS, Field.RETURN_TO.value)


@dataclass(frozen=True)
class Rejection:
    """
    A rejected assertion.

    Attributes:
        error: Human-readable reason
        kind: Category of the rejection
    """
    verified: ClassVar[bool] = False

    error: str
    kind: RejectionKind = RejectionKind.PROTOCOL_VIOLATION
