"""
Version-specific verification rules.

OpenID 1 and OpenID 2 responses differ in which fields they require,
where the nonce lives, how the signer is identified and how the asserted
identity is read. Each strategy answers those questions for one version;
the pipeline picks a strategy once and asks it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ClassVar

from .config import VerifierSettings
from .discovery import DiscoveryCorroborator
from .errors import ConfigurationError, ProtocolError
from .fields import FieldExtractor
from .message import Field
from .models import (
    OPENID_1_0_TYPE,
    OPENID_1_1_TYPE,
    OPENID_2_0_TYPE,
    ProtocolVersion,
    ServiceEndpoint,
)

BASIC_FIELDS = (Field.RETURN_TO, Field.ASSOC_HANDLE, Field.SIG, Field.SIGNED)
BASIC_SIGNED_FIELDS = (Field.RETURN_TO, Field.IDENTITY)


class ProtocolStrategy(ABC):
    version: ClassVar[ProtocolVersion]
    required_fields: ClassVar[tuple[Field, ...]]
    required_signed_fields: ClassVar[tuple[Field, ...]]

    # OpenID 1 messages do not name their signer, so discovery must run first
    binds_signer_by_discovery: ClassVar[bool] = False

    def __init__(self, settings: VerifierSettings):
        self.settings = settings

    @abstractmethod
    def signer_url(self, fields: FieldExtractor, endpoint: ServiceEndpoint | None) -> str:
        """Server URL whose association signed the response."""

    @abstractmethod
    def extract_nonce(self, fields: FieldExtractor, server_url: str) -> tuple[str | None, str]:
        """Return the nonce (None if absent) and the server identity to record it under."""

    @abstractmethod
    def resolve_endpoint(
        self,
        fields: FieldExtractor,
        known_endpoint: ServiceEndpoint | None,
        corroborator: DiscoveryCorroborator,
    ) -> ServiceEndpoint:
        """Corroborate the asserted identity and return the backing endpoint."""


class OpenID1Strategy(ProtocolStrategy):
    version = ProtocolVersion.OPENID1
    required_fields = BASIC_FIELDS + (Field.IDENTITY,)
    required_signed_fields = BASIC_SIGNED_FIELDS
    binds_signer_by_discovery = True

    def signer_url(self, fields: FieldExtractor, endpoint: ServiceEndpoint | None) -> str:
        if endpoint is None or endpoint.server_url is None:
            raise ConfigurationError("OpenID 1 signer is unknown before discovery")
        return endpoint.server_url

    def extract_nonce(self, fields: FieldExtractor, server_url: str) -> tuple[str | None, str]:
        # The RP minted this nonce, so it is recorded without a server URL
        return fields.bare(self.settings.openid1_nonce_query_arg_name), ""

    def build_candidates(
        self,
        fields: FieldExtractor,
        known_endpoint: ServiceEndpoint | None,
    ) -> list[ServiceEndpoint]:
        """
        Build the 1.1 and 1.0 readings of the assertion.

        Raises:
            ConfigurationError: If the claimed identifier was neither passed
                through return_to nor remembered
            ProtocolError: If ``openid.identity`` is missing
        """
        claimed_id = fields.bare(self.settings.openid1_return_to_identifier_name)
        if claimed_id is None:
            if known_endpoint is None:
                raise ConfigurationError(
                    "When using OpenID 1, the claimed ID must be supplied, "
                    "either by passing it through as a return_to parameter "
                    "or by remembering the endpoint from the start of the login"
                )
            claimed_id = known_endpoint.claimed_id

        local_id = fields.get(Field.IDENTITY, None)
        if local_id is None:
            raise ProtocolError('Missing required field "openid.identity"')

        candidate = ServiceEndpoint(
            claimed_id=claimed_id,
            local_id=local_id,
            type_uris=(OPENID_1_1_TYPE,),
        )
        return [candidate, candidate.with_type_uris((OPENID_1_0_TYPE,))]

    def resolve_endpoint(
        self,
        fields: FieldExtractor,
        known_endpoint: ServiceEndpoint | None,
        corroborator: DiscoveryCorroborator,
    ) -> ServiceEndpoint:
        candidates = self.build_candidates(fields, known_endpoint)
        return corroborator.corroborate(candidates, known_endpoint)


class OpenID2Strategy(ProtocolStrategy):
    version = ProtocolVersion.OPENID2
    required_fields = BASIC_FIELDS + (Field.OP_ENDPOINT,)
    required_signed_fields = BASIC_SIGNED_FIELDS + (
        Field.RESPONSE_NONCE,
        Field.CLAIMED_ID,
        Field.ASSOC_HANDLE,
    )

    def signer_url(self, fields: FieldExtractor, endpoint: ServiceEndpoint | None) -> str:
        return fields.get(Field.OP_ENDPOINT)

    def extract_nonce(self, fields: FieldExtractor, server_url: str) -> tuple[str | None, str]:
        return fields.get(Field.RESPONSE_NONCE, None), server_url

    def build_candidate(self, fields: FieldExtractor) -> ServiceEndpoint | None:
        """
        Build the endpoint the response asserts, or None when the response
        carries no identifier at all.

        Raises:
            ProtocolError: If only one of claimed_id and identity is present
        """
        claimed_id = fields.get(Field.CLAIMED_ID, None)
        local_id = fields.get(Field.IDENTITY, None)

        if claimed_id is None and local_id is not None:
            raise ProtocolError("openid.identity is present without openid.claimed_id")
        if claimed_id is not None and local_id is None:
            raise ProtocolError("openid.claimed_id is present without openid.identity")
        if claimed_id is None:
            return None

        return ServiceEndpoint(
            claimed_id=claimed_id,
            local_id=local_id,
            server_url=fields.get(Field.OP_ENDPOINT),
            type_uris=(OPENID_2_0_TYPE,),
        )

    def resolve_endpoint(
        self,
        fields: FieldExtractor,
        known_endpoint: ServiceEndpoint | None,
        corroborator: DiscoveryCorroborator,
    ) -> ServiceEndpoint:
        candidate = self.build_candidate(fields)
        if candidate is None:
            # No identity asserted, nothing to corroborate
            return ServiceEndpoint.from_op_endpoint_url(fields.get(Field.OP_ENDPOINT))

        endpoint = corroborator.corroborate([candidate], known_endpoint)
        if endpoint.claimed_id != candidate.claimed_id:
            endpoint = endpoint.with_claimed_id(candidate.claimed_id)
        return endpoint


STRATEGIES: dict[ProtocolVersion, type[ProtocolStrategy]] = {
    ProtocolVersion.OPENID1: OpenID1Strategy,
    ProtocolVersion.OPENID2: OpenID2Strategy,
}


def strategy_for(version: ProtocolVersion, settings: VerifierSettings) -> ProtocolStrategy:
    return STRATEGIES[version](settings)
