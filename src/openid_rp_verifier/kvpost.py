"""
Direct (RP to OP) requests: form-encoded POST, key-value form response.
"""

from __future__ import annotations

import httpx

from .errors import ServerError, TransportError
from .message import Message

DEFAULT_TIMEOUT_S = 5.0


class KVPostTransport:
    """
    Sends a message to an OP endpoint and parses the key-value form reply.

    Args:
        timeout_s: Request timeout in seconds. Default: 5.0

    Example:
        >>> transport = KVPostTransport()
        >>> response = transport.post(request_message, "https://op.example.com/server")
        >>> response.get_openid(Field.IS_VALID, "false")
        'true'
    """

    def __init__(self, timeout_s: float = DEFAULT_TIMEOUT_S):
        self.timeout_s = timeout_s

    def post(self, request_message: Message, server_url: str) -> Message:
        """
        POST the message to the OP.

        Returns:
            The OP's response message

        Raises:
            ServerError: The OP answered with HTTP 400
            TransportError: On network errors or any other unexpected status
        """
        try:
            with httpx.Client(timeout=self.timeout_s) as client:
                response = client.post(
                    server_url,
                    data=request_message.to_post_args(),
                )
        except httpx.HTTPError as e:
            raise TransportError(f"Error contacting {server_url}: {e}") from e

        return self._parse_response(response, server_url)

    def _parse_response(self, response: httpx.Response, server_url: str) -> Message:
        """Parse an OP reply into a Message."""
        message = Message.from_kvform(response.text)

        if response.status_code == 400:
            raise ServerError.from_message(message)

        if response.status_code not in (200, 206):
            raise TransportError(
                f"Bad status code from server {server_url}: {response.status_code}"
            )

        return message
