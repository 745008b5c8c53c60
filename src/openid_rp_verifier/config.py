"""
Verifier settings.

Defaults suit most deployments. Every setting can be overridden from the
environment:

    OPENID_RP_NONCE_ARG          - OpenID 1 nonce query parameter (default: rp_nonce)
    OPENID_RP_CLAIMED_ID_ARG     - OpenID 1 claimed-ID query parameter
                                   (default: openid1_claimed_id)
    OPENID_RP_CHECK_AUTH_TIMEOUT - check_authentication timeout in seconds (default: 5.0)
    OPENID_RP_NONCE_SKEW         - accepted nonce clock skew in seconds (default: 18000)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from .errors import ConfigurationError
from .kvpost import DEFAULT_TIMEOUT_S
from .nonce import SKEW


@dataclass(frozen=True)
class VerifierSettings:
    """
    Tunables for response verification.

    Attributes:
        openid1_nonce_query_arg_name: Return-to parameter holding the nonce
            the RP minted for an OpenID 1 request
        openid1_return_to_identifier_name: Return-to parameter carrying the
            claimed identifier of an OpenID 1 request
        check_auth_timeout_s: Timeout of the check_authentication request
        nonce_skew_s: Accepted clock skew for nonces in ``MemoryStore``
    """
    openid1_nonce_query_arg_name: str = "rp_nonce"
    openid1_return_to_identifier_name: str = "openid1_claimed_id"
    check_auth_timeout_s: float = DEFAULT_TIMEOUT_S
    nonce_skew_s: int = SKEW

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "VerifierSettings":
        """
        Read settings from the environment, falling back to defaults.

        Raises:
            ConfigurationError: If a numeric setting does not parse
        """
        if environ is None:
            environ = os.environ

        try:
            timeout = float(environ.get("OPENID_RP_CHECK_AUTH_TIMEOUT", DEFAULT_TIMEOUT_S))
            skew = int(environ.get("OPENID_RP_NONCE_SKEW", SKEW))
        except ValueError as e:
            raise ConfigurationError(f"Invalid verifier setting: {e}") from e

        return cls(
            openid1_nonce_query_arg_name=environ.get("OPENID_RP_NONCE_ARG", "rp_nonce"),
            openid1_return_to_identifier_name=environ.get(
                "OPENID_RP_CLAIMED_ID_ARG", "openid1_claimed_id"
            ),
            check_auth_timeout_s=timeout,
            nonce_skew_s=skew,
        )
