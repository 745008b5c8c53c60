"""Tests for discovery corroboration."""

import logging

import pytest

from openid_rp_verifier.discovery import (
    Corroboration,
    CorroborationStatus,
    DiscoveryCorroborator,
    verify_discovery_single,
)
from openid_rp_verifier.errors import ConfigurationError, DiscoveryFailure, ProtocolError, RejectionKind
from openid_rp_verifier.models import (
    OPENID_1_0_TYPE,
    OPENID_1_1_TYPE,
    OPENID_2_0_TYPE,
    ServiceEndpoint,
)

CLAIMED_ID = "https://alice.example.com/"
LOCAL_ID = "https://op.example.com/u/alice"
SERVER_URL = "https://op.example.com/server"


class FakeDiscoverer:
    """Returns canned endpoints and records the identifiers it was asked for."""

    def __init__(self, *services):
        self.services = list(services)
        self.identifiers = []

    def discover(self, identifier):
        self.identifiers.append(identifier)
        return self.services


def openid2_endpoint(claimed_id=CLAIMED_ID, local_id=LOCAL_ID, server_url=SERVER_URL):
    return ServiceEndpoint(claimed_id, local_id, server_url, (OPENID_2_0_TYPE,))


@pytest.fixture
def candidate():
    return openid2_endpoint()


class TestVerifyDiscoverySingle:
    """Tests for comparing one candidate against one endpoint."""

    def test_match(self, candidate):
        assert verify_discovery_single(candidate, openid2_endpoint()) == Corroboration.matched()

    def test_type_mismatch(self, candidate):
        endpoint = openid2_endpoint().with_type_uris((OPENID_1_1_TYPE,))
        result = verify_discovery_single(candidate, endpoint)
        assert result.status is CorroborationStatus.TYPE_MISMATCH
        assert OPENID_2_0_TYPE in result.reason

    def test_claimed_id_mismatch(self, candidate):
        result = verify_discovery_single(candidate, openid2_endpoint(claimed_id="https://bob.example.com/"))
        assert result.status is CorroborationStatus.MISMATCH
        assert "different subjects" in result.reason

    def test_fragment_ignored(self):
        """Claimed identifiers are compared without their fragments."""
        candidate = openid2_endpoint(claimed_id=CLAIMED_ID + "#frag")
        assert verify_discovery_single(candidate, openid2_endpoint()).ok

    def test_local_id_mismatch(self, candidate):
        result = verify_discovery_single(candidate, openid2_endpoint(local_id="https://op.example.com/u/bob"))
        assert result.status is CorroborationStatus.MISMATCH
        assert "local_id mismatch" in result.reason

    def test_local_id_defaults_to_claimed_id(self):
        candidate = openid2_endpoint(local_id=CLAIMED_ID)
        assert verify_discovery_single(candidate, openid2_endpoint(local_id=None)).ok

    def test_server_mismatch(self, candidate):
        result = verify_discovery_single(candidate, openid2_endpoint(server_url="https://evil.example.com/"))
        assert result.status is CorroborationStatus.MISMATCH
        assert "OP Endpoint mismatch" in result.reason

    def test_openid1_without_server_url(self):
        """OpenID 1 candidates carry no server URL and skip that comparison."""
        candidate = ServiceEndpoint(CLAIMED_ID, LOCAL_ID, None, (OPENID_1_1_TYPE,))
        endpoint = ServiceEndpoint(CLAIMED_ID, LOCAL_ID, SERVER_URL, (OPENID_1_1_TYPE,))
        assert verify_discovery_single(candidate, endpoint).ok

    def test_openid2_without_server_url(self):
        candidate = openid2_endpoint(server_url=None)
        with pytest.raises(ConfigurationError):
            verify_discovery_single(candidate, openid2_endpoint())


class TestCorroborate:
    """Tests for DiscoveryCorroborator."""

    def test_known_endpoint_used(self, candidate):
        """A matching remembered endpoint avoids discovery."""
        discoverer = FakeDiscoverer()
        known = openid2_endpoint()

        result = DiscoveryCorroborator(discoverer).corroborate([candidate], known)

        assert result is known
        assert discoverer.identifiers == []

    def test_stale_known_endpoint_falls_back(self, candidate, caplog):
        stale = openid2_endpoint(server_url="https://old.example.com/server")
        discoverer = FakeDiscoverer(openid2_endpoint())

        with caplog.at_level(logging.INFO):
            result = DiscoveryCorroborator(discoverer).corroborate([candidate], stale)

        assert result.server_url == SERVER_URL
        assert "Error attempting to use stored discovery information" in caplog.text
        assert "Attempting discovery to verify endpoint" in caplog.text

    def test_first_matching_endpoint(self, candidate, caplog):
        """Discovery returns the first match and logs earlier mismatches."""
        wrong = openid2_endpoint(local_id="https://op.example.com/u/bob")
        right = openid2_endpoint()
        later = openid2_endpoint()
        discoverer = FakeDiscoverer(wrong, right, later)

        with caplog.at_level(logging.INFO):
            result = DiscoveryCorroborator(discoverer).corroborate([candidate], None)

        assert result is right
        assert "local_id mismatch" in caplog.text

    def test_discovers_on_defragged_claimed_id(self):
        discoverer = FakeDiscoverer(openid2_endpoint())
        candidate = openid2_endpoint(claimed_id=CLAIMED_ID + "#frag")

        DiscoveryCorroborator(discoverer).corroborate([candidate], None)

        assert discoverer.identifiers == [CLAIMED_ID]

    def test_no_services(self, candidate):
        with pytest.raises(DiscoveryFailure) as exc_info:
            DiscoveryCorroborator(FakeDiscoverer()).corroborate([candidate], None)
        assert exc_info.value.kind is RejectionKind.NO_OPENID_INFORMATION
        assert CLAIMED_ID in str(exc_info.value)

    def test_no_match(self, candidate, caplog):
        discoverer = FakeDiscoverer(
            openid2_endpoint(server_url="https://a.example.com/"),
            openid2_endpoint(server_url="https://b.example.com/"),
        )

        with caplog.at_level(logging.WARNING):
            with pytest.raises(ProtocolError, match="No matching endpoint found after discovering"):
                DiscoveryCorroborator(discoverer).corroborate([candidate], None)

        assert "Discovery verification failure" in caplog.text
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert sum(" * Endpoint mismatch:" in r.getMessage() for r in warnings) == 2

    def test_no_discoverer(self, candidate):
        with pytest.raises(ConfigurationError, match="no discoverer"):
            DiscoveryCorroborator().corroborate([candidate], None)

    def test_openid1_falls_back_to_1_0(self):
        """An endpoint advertising only 1.0 matches the second reading."""
        v11 = ServiceEndpoint(CLAIMED_ID, LOCAL_ID, None, (OPENID_1_1_TYPE,))
        v10 = v11.with_type_uris((OPENID_1_0_TYPE,))
        endpoint = ServiceEndpoint(CLAIMED_ID, LOCAL_ID, SERVER_URL, (OPENID_1_0_TYPE,))

        result = DiscoveryCorroborator(FakeDiscoverer(endpoint)).corroborate([v11, v10], None)

        assert result is endpoint

    def test_second_reading_only_after_type_mismatch(self):
        """A subject mismatch is final; the next reading is not tried."""
        v11 = ServiceEndpoint(CLAIMED_ID, LOCAL_ID, None, (OPENID_1_1_TYPE,))
        v10 = v11.with_type_uris((OPENID_1_0_TYPE,))
        endpoint = ServiceEndpoint(CLAIMED_ID, "https://op.example.com/u/bob", SERVER_URL, (OPENID_1_1_TYPE,))

        result = DiscoveryCorroborator().verify_endpoint(endpoint, [v11, v10])

        assert result.status is CorroborationStatus.MISMATCH
        assert "local_id" in result.reason
