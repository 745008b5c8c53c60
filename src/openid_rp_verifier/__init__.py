"""
OpenID RP Verifier for Python

Verify OpenID 1.x and 2.0 positive assertions on the relying-party side:
required fields, return_to integrity, signatures, nonces and discovery.
"""

from .association import Association
from .config import VerifierSettings
from .discovery import Corroboration, CorroborationStatus, Discoverer, verify_discovery_single
from .errors import (
    ConfigurationError,
    DiscoveryFailure,
    KeyNotFound,
    MalformedNonce,
    ProtocolError,
    RejectionKind,
    ServerError,
    TransportError,
)
from .idres import IdResHandler, verify
from .kvpost import KVPostTransport
from .message import BARE_NS, OPENID1_NS, OPENID2_NS, OPENID_NS, Field, Message
from .models import (
    OPENID_1_0_TYPE,
    OPENID_1_1_TYPE,
    OPENID_2_0_TYPE,
    OPENID_IDP_2_0_TYPE,
    ProtocolVersion,
    Rejection,
    ServiceEndpoint,
    VerificationResult,
)
from .nonce import Nonce, make_nonce, split_nonce
from .store import MemoryStore, OpenIDStore

__version__ = "0.1.0"

__all__ = [
    "verify",
    "IdResHandler",
    "VerificationResult",
    "Rejection",
    "RejectionKind",
    "ServiceEndpoint",
    "ProtocolVersion",
    "Message",
    "Field",
    "OPENID_NS",
    "BARE_NS",
    "OPENID1_NS",
    "OPENID2_NS",
    "OPENID_1_0_TYPE",
    "OPENID_1_1_TYPE",
    "OPENID_2_0_TYPE",
    "OPENID_IDP_2_0_TYPE",
    "Association",
    "OpenIDStore",
    "MemoryStore",
    "Nonce",
    "make_nonce",
    "split_nonce",
    "Discoverer",
    "Corroboration",
    "CorroborationStatus",
    "verify_discovery_single",
    "KVPostTransport",
    "VerifierSettings",
    "ProtocolError",
    "DiscoveryFailure",
    "MalformedNonce",
    "ConfigurationError",
    "KeyNotFound",
    "TransportError",
    "ServerError",
]
