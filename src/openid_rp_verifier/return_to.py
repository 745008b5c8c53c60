"""
Return-to integrity checks.

The OP echoes ``openid.return_to`` under its signature. Its query must
agree with the unqualified parameters that actually arrived, and its base
must be the callback the RP expects.
"""

from __future__ import annotations

from urllib.parse import SplitResult, parse_qs, urlsplit

from .errors import ConfigurationError, ProtocolError
from .fields import FieldExtractor
from .message import Field

DEFAULT_PORTS = {"http": 80, "https": 443}


def _port(parsed: SplitResult) -> int | None:
    try:
        port = parsed.port
    except ValueError as e:
        raise ProtocolError(f"Invalid port in return_to URL: {e}") from e
    if port is None:
        return DEFAULT_PORTS.get(parsed.scheme)
    return port


class ReturnToValidator:
    """
    Args:
        fields: Response fields
        expected_return_to: Callback URL the RP expects, or None to skip the
            base comparison
    """

    def __init__(self, fields: FieldExtractor, expected_return_to: str | None):
        self.fields = fields
        self.expected_return_to = expected_return_to

    def check(self) -> None:
        """
        Raises:
            ProtocolError: If the return_to URL is malformed or was tampered with
            ConfigurationError: If the expected return_to URL is malformed
        """
        try:
            msg_return_to = urlsplit(self.fields.get(Field.RETURN_TO))
        except ValueError as e:
            raise ProtocolError(f"Invalid return_to URL: {e}") from e
        self.verify_args(msg_return_to)
        if self.expected_return_to is not None:
            self.verify_base(msg_return_to)

    def verify_args(self, msg_return_to: SplitResult) -> None:
        return_to_args = {
            key: values[0]
            for key, values in parse_qs(msg_return_to.query, keep_blank_values=True).items()
        }
        bare_args = self.fields.bare_args()

        for rt_key, rt_value in return_to_args.items():
            msg_value = bare_args.get(rt_key)
            if msg_value is None:
                raise ProtocolError(f"Message missing return_to argument {rt_key}")
            if msg_value != rt_value:
                raise ProtocolError(
                    f"Parameter {rt_key} value {msg_value!r} does not match "
                    f"return_to's value {rt_value!r}"
                )

        for bare_key, bare_value in bare_args.items():
            if return_to_args.get(bare_key) != bare_value:
                raise ProtocolError(f"Parameter {bare_key} does not match return_to URL")

    def verify_base(self, msg_return_to: SplitResult) -> None:
        """Scheme, host, port and path must equal the expected callback's."""
        try:
            app = urlsplit(self.expected_return_to)
        except ValueError as e:
            raise ConfigurationError(f"Invalid expected return_to URL: {e}") from e

        checks = (
            ("scheme", msg_return_to.scheme, app.scheme),
            ("host", msg_return_to.hostname, app.hostname),
            ("port", _port(msg_return_to), _port(app)),
            ("path", msg_return_to.path, app.path),
        )
        for name, actual, expected in checks:
            if actual != expected:
                raise ProtocolError(f"return_to {name} does not match")
