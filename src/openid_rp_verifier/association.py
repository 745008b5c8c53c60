"""
Associations: shared MAC secrets between a relying party and an OP.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import time
from dataclasses import dataclass, field

from .kvform import seq_to_kv
from .message import OPENID_NS, Field, Message

DIGESTS = {
    "HMAC-SHA1": hashlib.sha1,
    "HMAC-SHA256": hashlib.sha256,
}


@dataclass
class Association:
    """
    A signing key negotiated with an OP, identified by (server URL, handle).

    Attributes:
        handle: Association handle chosen by the OP
        secret: Raw MAC key
        issued: Issue time (Unix epoch)
        lifetime: Seconds the association stays valid after ``issued``
        assoc_type: ``HMAC-SHA1`` or ``HMAC-SHA256``
    """
    handle: str
    secret: bytes = field(repr=False)
    issued: int
    lifetime: int
    assoc_type: str = "HMAC-SHA1"

    def __post_init__(self) -> None:
        if self.assoc_type not in DIGESTS:
            raise ValueError(f"Unsupported association type: {self.assoc_type!r}")

    @classmethod
    def from_expires_in(
        cls,
        expires_in: int,
        handle: str,
        secret: bytes,
        assoc_type: str = "HMAC-SHA1",
    ) -> "Association":
        """Create an association issued now that expires in ``expires_in`` seconds."""
        return cls(handle, secret, int(time.time()), expires_in, assoc_type)

    def get_expires_in(self, now: float | None = None) -> int:
        if now is None:
            now = time.time()
        return max(0, int(self.issued + self.lifetime - now))

    @property
    def expires_in(self) -> int:
        """Seconds remaining before expiry, never negative."""
        return self.get_expires_in()

    def sign(self, pairs: list[tuple[str, str]]) -> bytes:
        kv = seq_to_kv(pairs)
        return hmac.new(self.secret, kv.encode("utf-8"), DIGESTS[self.assoc_type]).digest()

    def _make_pairs(self, message: Message) -> list[tuple[str, str]]:
        signed = message.get_openid(Field.SIGNED, None)
        if not signed:
            raise ValueError(f"Message has no signed list: {message!r}")

        data = message.to_post_args()
        return [(name, data.get(f"openid.{name}", "")) for name in signed.split(",")]

    def get_message_signature(self, message: Message) -> str:
        """Base64 MAC over the fields named in the message's signed list."""
        return base64.b64encode(self.sign(self._make_pairs(message))).decode("ascii")

    def sign_message(self, message: Message) -> Message:
        """
        Return a signed copy of the message.

        Every protocol and extension field is signed, including the
        ``signed`` list itself.

        Raises:
            ValueError: If the message is already signed or carries another
                association's handle
        """
        if message.has_openid(Field.SIG) or message.has_openid(Field.SIGNED):
            raise ValueError("Message already has signed list or signature")

        extant_handle = message.get_openid(Field.ASSOC_HANDLE, None)
        if extant_handle and extant_handle != self.handle:
            raise ValueError("Message has a different association handle")

        signed_message = message.copy()
        signed_message.set_arg(OPENID_NS, Field.ASSOC_HANDLE.value, self.handle)
        signed_list = [
            key[len("openid."):]
            for key in signed_message.to_post_args()
            if key.startswith("openid.")
        ]
        signed_list.append(Field.SIGNED.value)
        signed_list.sort()
        signed_message.set_arg(OPENID_NS, Field.SIGNED.value, ",".join(signed_list))
        signed_message.set_arg(OPENID_NS, Field.SIG.value, self.get_message_signature(signed_message))
        return signed_message

    def verify_signature(self, message: Message) -> bool:
        """Check the message's ``sig`` against this association's secret."""
        message_sig = message.get_openid(Field.SIG, None)
        if not message_sig or not message.get_openid(Field.SIGNED, None):
            return False
        calculated = self.get_message_signature(message)
        return hmac.compare_digest(calculated.encode("ascii"), message_sig.encode("utf-8"))
