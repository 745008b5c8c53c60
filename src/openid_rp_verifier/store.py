"""
Association and nonce storage.

The verifier only needs the ``OpenIDStore`` contract. ``MemoryStore`` is a
process-local implementation suitable for a single worker and for tests.
"""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING, Protocol

from .association import Association
from .nonce import SKEW

if TYPE_CHECKING:
    from .config import VerifierSettings

# Ledger size at which stale nonces are pruned on insert
NONCE_PRUNE_THRESHOLD = 10_000


class OpenIDStore(Protocol):
    """
    Persistence for associations and used nonces.

    Implementations must make ``check_and_record_nonce`` atomic: two
    concurrent calls with the same (server_url, timestamp, salt) may not
    both return True.
    """

    def store_association(self, server_url: str, association: Association) -> None: ...

    def get_association(self, server_url: str, handle: str | None = None) -> Association | None: ...

    def remove_association(self, server_url: str, handle: str) -> bool: ...

    def check_and_record_nonce(self, server_url: str, timestamp: int, salt: str) -> bool: ...


class MemoryStore:
    """
    In-memory store guarded by a lock.

    Nonces older than the skew window are pruned once the ledger grows past
    ``NONCE_PRUNE_THRESHOLD`` entries; ``cleanup_nonces()`` prunes on demand.

    Args:
        skew: Seconds around now in which a nonce timestamp is accepted.
            Default: 5 hours
    """

    def __init__(self, skew: int = SKEW):
        self.skew = skew
        self._lock = threading.Lock()
        self._associations: dict[str, dict[str, Association]] = {}
        self._nonces: set[tuple[str, int, str]] = set()

    @classmethod
    def from_settings(cls, settings: VerifierSettings) -> "MemoryStore":
        return cls(skew=settings.nonce_skew_s)

    def store_association(self, server_url: str, association: Association) -> None:
        with self._lock:
            self._associations.setdefault(server_url, {})[association.handle] = association

    def get_association(self, server_url: str, handle: str | None = None) -> Association | None:
        """
        Look up an association.

        With a handle, the stored association is returned even if it has
        expired; callers decide what an expired association means. Without
        a handle, the unexpired association that lives longest is returned.
        """
        with self._lock:
            assocs = self._associations.get(server_url, {})
            if handle is not None:
                return assocs.get(handle)

            live = [a for a in assocs.values() if a.expires_in > 0]
            if not live:
                return None
            return max(live, key=lambda a: a.issued + a.lifetime)

    def remove_association(self, server_url: str, handle: str) -> bool:
        with self._lock:
            assocs = self._associations.get(server_url)
            if not assocs or handle not in assocs:
                return False
            del assocs[handle]
            return True

    def check_and_record_nonce(self, server_url: str, timestamp: int, salt: str) -> bool:
        """
        Record a nonce, refusing it if seen before or outside the skew window.
        """
        if abs(timestamp - time.time()) > self.skew:
            return False

        key = (server_url, timestamp, salt)
        with self._lock:
            if key in self._nonces:
                return False
            self._nonces.add(key)
            if len(self._nonces) > NONCE_PRUNE_THRESHOLD:
                self._prune_nonces()
            return True

    def cleanup_nonces(self) -> int:
        """Forget nonces that are too old to be accepted again."""
        with self._lock:
            return self._prune_nonces()

    def _prune_nonces(self) -> int:
        cutoff = time.time() - self.skew
        expired = {n for n in self._nonces if n[1] < cutoff}
        self._nonces -= expired
        return len(expired)

    def cleanup_associations(self) -> int:
        removed = 0
        with self._lock:
            for assocs in self._associations.values():
                for handle in [h for h, a in assocs.items() if a.expires_in <= 0]:
                    del assocs[handle]
                    removed += 1
        return removed
