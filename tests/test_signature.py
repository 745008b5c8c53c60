"""Tests for SignatureValidator."""

import logging
import time

import pytest

from openid_rp_verifier.association import Association
from openid_rp_verifier.errors import ProtocolError, TransportError
from openid_rp_verifier.fields import FieldExtractor
from openid_rp_verifier.message import OPENID2_NS, Field, Message
from openid_rp_verifier.signature import SignatureValidator
from openid_rp_verifier.store import MemoryStore

SERVER_URL = "https://op.example.com/server"


class FakeTransport:
    """Records check_authentication requests and replays a canned response."""

    def __init__(self, response=None, error=None):
        self.response = response if response is not None else Message.from_openid_args({"is_valid": "true"})
        self.error = error
        self.calls = []

    def post(self, request_message, server_url):
        self.calls.append((request_message, server_url))
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def assoc():
    return Association.from_expires_in(600, "handle-1", b"another 20-byte key.")


@pytest.fixture
def signed_response(assoc):
    message = Message.from_openid_args({
        "ns": OPENID2_NS,
        "mode": "id_res",
        "op_endpoint": SERVER_URL,
        "return_to": "https://rp.example.com/return",
        "claimed_id": "https://alice.example.com/",
        "identity": "https://alice.example.com/",
        "response_nonce": "2024-01-01T00:00:00Zsalt",
    })
    return assoc.sign_message(message)


def validator(message, store=None, transport=None):
    return SignatureValidator(FieldExtractor(message), store, transport or FakeTransport())


class TestLocalSignature:
    """Tests for verification with a stored association."""

    def test_valid_signature(self, assoc, signed_response):
        store = MemoryStore()
        store.store_association(SERVER_URL, assoc)
        transport = FakeTransport()

        validator(signed_response, store, transport).check(SERVER_URL)

        assert transport.calls == []

    def test_bad_signature(self, assoc, signed_response):
        store = MemoryStore()
        store.store_association(SERVER_URL, assoc)
        args = signed_response.to_post_args()
        args["openid.identity"] = "https://mallory.example.com/"
        tampered = Message.from_post_args(args)

        with pytest.raises(ProtocolError, match="Bad signature in response from"):
            validator(tampered, store).check(SERVER_URL)

    def test_unencodable_signed_value(self, assoc, signed_response):
        """A newline in a signed value fails as a bad signature, not a crash."""
        store = MemoryStore()
        store.store_association(SERVER_URL, assoc)
        args = signed_response.to_post_args()
        args["openid.identity"] = "https://alice.example.com/\nx"

        with pytest.raises(ProtocolError, match="Bad signature in response from"):
            validator(Message.from_post_args(args), store).check(SERVER_URL)

    def test_expired_association(self, signed_response):
        """An expired association fails without falling back to the OP."""
        store = MemoryStore()
        store.store_association(
            SERVER_URL,
            Association("handle-1", b"another 20-byte key.", int(time.time()) - 1000, 10),
        )
        transport = FakeTransport()

        with pytest.raises(ProtocolError, match="expired"):
            validator(signed_response, store, transport).check(SERVER_URL)

        assert transport.calls == []

    def test_unknown_handle_uses_check_auth(self, signed_response):
        """An association the store does not hold is checked with the OP."""
        transport = FakeTransport()
        validator(signed_response, MemoryStore(), transport).check(SERVER_URL)
        assert len(transport.calls) == 1


class TestCheckAuthentication:
    """Tests for stateless verification."""

    def test_request_contents(self, signed_response):
        transport = FakeTransport()

        validator(signed_response, transport=transport).check(SERVER_URL)

        request, server_url = transport.calls[0]
        assert server_url == SERVER_URL
        assert request.get_openid(Field.MODE) == "check_authentication"
        assert request.get_openid(Field.SIG) == signed_response.get_openid(Field.SIG)
        assert request.get_openid(Field.SIGNED) == signed_response.get_openid(Field.SIGNED)
        assert request.get_openid(Field.ASSOC_HANDLE) == "handle-1"
        assert request.get_openid(Field.IDENTITY) == "https://alice.example.com/"
        assert request.is_openid2()

    def test_not_valid(self, signed_response):
        transport = FakeTransport(Message.from_openid_args({"is_valid": "false"}))

        with pytest.raises(ProtocolError, match="'check_authentication' call is not valid"):
            validator(signed_response, transport=transport).check(SERVER_URL)

    def test_missing_is_valid(self, signed_response):
        transport = FakeTransport(Message.from_openid_args({}))

        with pytest.raises(ProtocolError, match="not valid"):
            validator(signed_response, transport=transport).check(SERVER_URL)

    def test_invalidate_handle_removes_association(self, signed_response):
        """The OP can revoke a stored association in its reply."""
        store = MemoryStore()
        store.store_association(SERVER_URL, Association.from_expires_in(600, "stale", b"x" * 20))
        transport = FakeTransport(Message.from_openid_args({
            "is_valid": "true",
            "invalidate_handle": "stale",
        }))

        validator(signed_response, store, transport).check(SERVER_URL)

        assert store.get_association(SERVER_URL, "stale") is None

    def test_invalidate_handle_without_store(self, signed_response, caplog):
        transport = FakeTransport(Message.from_openid_args({
            "is_valid": "true",
            "invalidate_handle": "stale",
        }))

        with caplog.at_level(logging.WARNING):
            validator(signed_response, transport=transport).check(SERVER_URL)

        assert "Unexpectedly got 'invalidate_handle' without a store!" in caplog.text

    def test_transport_error(self, signed_response, caplog):
        transport = FakeTransport(error=TransportError("connection refused"))

        with caplog.at_level(logging.WARNING):
            with pytest.raises(ProtocolError, match="during check_authentication"):
                validator(signed_response, transport=transport).check(SERVER_URL)

        assert "connection refused" in caplog.text

    def test_signed_field_missing(self):
        """A signed list naming an absent field cannot be sent to the OP."""
        message = Message.from_openid_args({
            "ns": OPENID2_NS,
            "mode": "id_res",
            "assoc_handle": "handle-1",
            "sig": "c2ln",
            "signed": "return_to,identity",
            "return_to": "https://rp.example.com/return",
        })
        transport = FakeTransport()

        with pytest.raises(ProtocolError, match="Could not generate 'check_authentication' request"):
            validator(message, transport=transport).check(SERVER_URL)

        assert transport.calls == []

    def test_extension_fields_forwarded(self, assoc):
        """Signed extension fields are forwarded under their aliases."""
        message = assoc.sign_message(Message.from_openid_args({
            "ns": OPENID2_NS,
            "mode": "id_res",
            "ns.sreg": "http://openid.net/extensions/sreg/1.1",
            "sreg.nickname": "alice",
        }))
        transport = FakeTransport()

        validator(message, transport=transport).check(SERVER_URL)

        request = transport.calls[0][0]
        assert request.get_arg("http://openid.net/extensions/sreg/1.1", "nickname") == "alice"
