"""
Replay protection via the response nonce.
"""

from __future__ import annotations

import logging

from .errors import MalformedNonce, ProtocolError
from .nonce import split_nonce
from .store import OpenIDStore

logger = logging.getLogger(__name__)


class ReplayGuard:
    """
    Args:
        store: Nonce ledger, or None to skip replay detection
    """

    def __init__(self, store: OpenIDStore | None):
        self.store = store

    def check(self, nonce: str | None, server_url: str) -> None:
        """
        Validate a nonce and record it as used.

        Args:
            nonce: Nonce from the response, None if absent
            server_url: Server identity the nonce is recorded under; the
                empty string for nonces the RP minted itself

        Raises:
            MalformedNonce: If the nonce has no valid timestamp
            ProtocolError: If the nonce is missing, reused, or out of range
        """
        if nonce is None:
            raise ProtocolError("Nonce missing from response")

        try:
            parsed = split_nonce(nonce)
        except ValueError:
            raise MalformedNonce(nonce) from None

        if self.store is None:
            logger.debug("No store configured, skipping replay check for %r", nonce)
            return

        if not self.store.check_and_record_nonce(server_url, parsed.timestamp, parsed.salt):
            raise ProtocolError(f"Nonce already used or out of range: {nonce!r}")
