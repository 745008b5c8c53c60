"""
Discovery corroboration.

An assertion names an identity and an OP. Neither can be trusted until
discovery on the claimed identifier, either remembered from the start
of the login or performed now, yields an endpoint that agrees with it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, Sequence

from .errors import ConfigurationError, DiscoveryFailure, ProtocolError
from .message import OPENID2_NS
from .models import ServiceEndpoint

logger = logging.getLogger(__name__)


class Discoverer(Protocol):
    """Resolves an identifier to candidate OP endpoints, possibly none."""

    def discover(self, identifier: str) -> Sequence[ServiceEndpoint]: ...


class CorroborationStatus(Enum):
    MATCHED = "matched"
    TYPE_MISMATCH = "type_mismatch"
    MISMATCH = "mismatch"


@dataclass(frozen=True)
class Corroboration:
    """
    Outcome of comparing an assertion against one endpoint.

    Attributes:
        status: Whether it matched, and if not, whether only the service
            type differed
        reason: Why it did not match
    """
    status: CorroborationStatus
    reason: str | None = None

    @classmethod
    def matched(cls) -> "Corroboration":
        return cls(CorroborationStatus.MATCHED)

    @classmethod
    def type_mismatch(cls, reason: str) -> "Corroboration":
        return cls(CorroborationStatus.TYPE_MISMATCH, reason)

    @classmethod
    def mismatch(cls, reason: str) -> "Corroboration":
        return cls(CorroborationStatus.MISMATCH, reason)

    @property
    def ok(self) -> bool:
        return self.status is CorroborationStatus.MATCHED


def verify_discovery_single(candidate: ServiceEndpoint, endpoint: ServiceEndpoint) -> Corroboration:
    """
    Compare the endpoint built from an assertion against a discovered one.

    Args:
        candidate: Endpoint assembled from the response
        endpoint: Endpoint obtained through discovery

    Raises:
        ConfigurationError: If an OpenID 2 candidate has no server URL
    """
    for type_uri in candidate.type_uris:
        if not endpoint.uses_extension(type_uri):
            return Corroboration.type_mismatch(
                f"Type URI {type_uri} not found in discovered endpoint {endpoint.server_url}"
            )

    # Fragments do not take part in discovery
    if candidate.defragged_claimed_id != endpoint.defragged_claimed_id:
        return Corroboration.mismatch(
            "Claimed ID does not match (different subjects!), "
            f"Expected {candidate.defragged_claimed_id}, got {endpoint.claimed_id}"
        )

    if candidate.get_local_id() != endpoint.get_local_id():
        return Corroboration.mismatch(
            f"local_id mismatch. Expected {candidate.get_local_id()}, "
            f"got {endpoint.get_local_id()}"
        )

    if candidate.server_url is None:
        # OpenID 1 carries no op_endpoint; the signature check already
        # bound the response to the server it came from.
        if candidate.preferred_namespace() == OPENID2_NS:
            raise ConfigurationError(
                "OpenID 2 responses must carry op_endpoint and it must be "
                "set as the server_url of the endpoint being matched"
            )
    elif candidate.server_url != endpoint.server_url:
        return Corroboration.mismatch(
            f"OP Endpoint mismatch. Expected {candidate.server_url}, got {endpoint.server_url}"
        )

    return Corroboration.matched()


class DiscoveryCorroborator:
    """
    Confirms an assertion against a remembered endpoint or fresh discovery.

    Args:
        discoverer: Discovery collaborator, needed only when a fresh
            discovery has to be performed
    """

    def __init__(self, discoverer: Discoverer | None = None):
        self.discoverer = discoverer

    def corroborate(
        self,
        candidates: Sequence[ServiceEndpoint],
        known_endpoint: ServiceEndpoint | None,
    ) -> ServiceEndpoint:
        """
        Find the endpoint backing the assertion.

        ``candidates`` are alternative readings of the same assertion in
        order of preference; a later one is only tried when the previous
        one failed on service type alone.

        Raises:
            DiscoveryFailure: If discovery found nothing
            ProtocolError: If no endpoint matched
        """
        if known_endpoint is None:
            logger.debug("No pre-discovered information supplied")
        else:
            result = self.verify_endpoint(known_endpoint, candidates)
            if result.ok:
                return known_endpoint
            logger.info("Error attempting to use stored discovery information: %s", result.reason)
            logger.info("Attempting discovery to verify endpoint")

        return self.discover_and_verify(candidates)

    def verify_endpoint(
        self,
        endpoint: ServiceEndpoint,
        candidates: Sequence[ServiceEndpoint],
    ) -> Corroboration:
        result = Corroboration.mismatch("No candidate to match")
        for candidate in candidates:
            result = verify_discovery_single(candidate, endpoint)
            if result.status is not CorroborationStatus.TYPE_MISMATCH:
                break
        return result

    def discover_and_verify(self, candidates: Sequence[ServiceEndpoint]) -> ServiceEndpoint:
        """
        Discover on the claimed identifier and return the first endpoint,
        in discovery order, that matches.
        """
        claimed_id = candidates[0].defragged_claimed_id
        if self.discoverer is None:
            raise ConfigurationError(
                f"Discovery on {claimed_id} is required but no discoverer is configured"
            )

        logger.info("Performing discovery on %s", claimed_id)
        services = list(self.discoverer.discover(claimed_id))
        if not services:
            raise DiscoveryFailure(claimed_id)

        failure_messages = []
        for endpoint in services:
            result = self.verify_endpoint(endpoint, candidates)
            if result.ok:
                return endpoint
            logger.info("Discovered endpoint %s does not match: %s", endpoint.server_url, result.reason)
            failure_messages.append(result.reason)

        logger.warning("Discovery verification failure for %s", claimed_id)
        for failure_message in failure_messages:
            logger.warning(" * Endpoint mismatch: %s", failure_message)

        raise ProtocolError(f"No matching endpoint found after discovering {claimed_id}")
