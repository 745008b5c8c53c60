"""
Typed field access and required/signed field checks.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .errors import ProtocolError
from .message import BARE_NS, NO_DEFAULT, Field, Message
from .models import ProtocolVersion

if TYPE_CHECKING:
    from .protocol import ProtocolStrategy


class FieldExtractor:
    """
    Read-only view of a response message keyed by ``Field``.

    Args:
        message: The response message
    """

    def __init__(self, message: Message):
        self.message = message
        self._signed_list: list[str] | None = None

    @property
    def version(self) -> ProtocolVersion:
        return ProtocolVersion.from_namespace(self.message.get_openid_namespace())

    def get(self, field: Field, default: Any = NO_DEFAULT) -> Any:
        return self.message.get_openid(field, default)

    def has(self, field: Field) -> bool:
        return self.message.has_openid(field)

    def bare(self, name: str, default: str | None = None) -> str | None:
        return self.message.get_arg(BARE_NS, name, default)

    def bare_args(self) -> dict[str, str]:
        return self.message.get_args(BARE_NS)

    def aliased(self, aliased_key: str, default: Any = NO_DEFAULT) -> Any:
        return self.message.get_aliased_arg(aliased_key, default)

    @property
    def signed_list(self) -> list[str]:
        """
        Field names from the comma-separated ``signed`` value.

        Empty elements are kept, so ``"a,b,"`` yields ``["a", "b", ""]``;
        an empty value yields an empty list.

        Raises:
            ProtocolError: If the response has no signed list
        """
        if self._signed_list is None:
            signed = self.get(Field.SIGNED, None)
            if signed is None:
                raise ProtocolError("Response missing signed list")
            self._signed_list = signed.split(",") if signed else []
        return self._signed_list


class FieldPresenceValidator:
    """Enforces the fields a version requires to be present and signed."""

    def __init__(self, fields: FieldExtractor, strategy: ProtocolStrategy):
        self.fields = fields
        self.strategy = strategy

    def check(self) -> None:
        """
        Raises:
            ProtocolError: Naming the first missing or unsigned field
        """
        for field in self.strategy.required_fields:
            if not self.fields.has(field):
                raise ProtocolError(f"Missing required field {field.value}")

        signed_list = self.fields.signed_list
        for field in self.strategy.required_signed_fields:
            if self.fields.has(field) and field.value not in signed_list:
                raise ProtocolError(f"{field.value!r} not signed")
