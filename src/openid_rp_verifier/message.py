"""
Namespace-aware OpenID message.

A message partitions its fields by namespace URI. Fields of the OpenID
protocol namespace are addressed through the ``OPENID_NS`` placeholder,
query parameters that are not part of the protocol live in ``BARE_NS``.
Extension fields are declared with ``openid.ns.<alias>`` and addressed by
their namespace URI.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping

from .errors import KeyNotFound
from .kvform import dict_to_kv, kv_to_dict

OPENID1_NS = "http://openid.net/signon/1.0"
OPENID11_NS = "http://openid.net/signon/1.1"
OPENID2_NS = "http://specs.openid.net/auth/2.0"

OPENID1_NAMESPACES = frozenset({OPENID1_NS, OPENID11_NS})

# Placeholders resolved per message
OPENID_NS = "<openid namespace>"
BARE_NS = "<bare namespace>"


class _NoDefault:
    def __repr__(self) -> str:
        return "NO_DEFAULT"


NO_DEFAULT: Any = _NoDefault()


class Field(str, Enum):
    """Protocol-namespace fields read during verification."""

    NS = "ns"
    MODE = "mode"
    RETURN_TO = "return_to"
    ASSOC_HANDLE = "assoc_handle"
    SIG = "sig"
    SIGNED = "signed"
    OP_ENDPOINT = "op_endpoint"
    IDENTITY = "identity"
    CLAIMED_ID = "claimed_id"
    RESPONSE_NONCE = "response_nonce"
    INVALIDATE_HANDLE = "invalidate_handle"
    IS_VALID = "is_valid"
    ERROR = "error"
    ERROR_CODE = "error_code"


class Message:
    """
    An OpenID protocol message.

    Args:
        openid_namespace: Protocol namespace URI. When omitted the message
            is an OpenID 1 message with an implicit namespace.

    Example:
        >>> msg = Message.from_post_args({
        ...     "openid.ns": OPENID2_NS,
        ...     "openid.mode": "id_res",
        ...     "openid.ns.sreg": "http://openid.net/extensions/sreg/1.1",
        ...     "openid.sreg.email": "bob@example.com",
        ...     "session": "abc",
        ... })
        >>> msg.get_arg(OPENID_NS, "mode")
        'id_res'
        >>> msg.get_aliased_arg("sreg.email")
        'bob@example.com'
        >>> msg.get_arg(BARE_NS, "session")
        'abc'
    """

    def __init__(self, openid_namespace: str | None = None):
        self._args: dict[tuple[str, str], str] = {}
        self._aliases: dict[str, str] = {}
        self._implicit_ns = openid_namespace is None
        self._openid_ns = OPENID1_NS if openid_namespace is None else openid_namespace

    @classmethod
    def from_post_args(cls, args: Mapping[str, str]) -> "Message":
        """Build a message from POST or query arguments."""
        message = cls()
        openid_args: dict[str, str] = {}
        for key, value in args.items():
            if not isinstance(value, str):
                raise TypeError(
                    f"query dict must have one value for each key, "
                    f"not lists of values. Query is {args!r}"
                )
            if key.startswith("openid."):
                openid_args[key[len("openid."):]] = value
            else:
                message._args[(BARE_NS, key)] = value
        message._load_openid_args(openid_args)
        return message

    @classmethod
    def from_openid_args(cls, openid_args: Mapping[str, str]) -> "Message":
        """Build a message from arguments with the ``openid.`` prefix removed."""
        message = cls()
        message._load_openid_args(openid_args)
        return message

    @classmethod
    def from_kvform(cls, text: str) -> "Message":
        return cls.from_openid_args(kv_to_dict(text))

    def _load_openid_args(self, openid_args: Mapping[str, str]) -> None:
        pending: list[tuple[str | None, str, str]] = []
        for rest, value in openid_args.items():
            alias, sep, key = rest.partition(".")
            if not sep:
                if rest == "ns":
                    self._openid_ns = value
                    self._implicit_ns = False
                else:
                    pending.append((None, rest, value))
            elif alias == "ns":
                self._aliases[key] = value
            else:
                pending.append((alias, key, value))

        for alias, key, value in pending:
            if alias is None:
                ns_uri = self._openid_ns
            elif alias in self._aliases:
                ns_uri = self._aliases[alias]
            else:
                # Undeclared alias: keep the dotted key in the protocol namespace
                ns_uri = self._openid_ns
                key = f"{alias}.{key}"
            self._args[(ns_uri, key)] = value

    def _fix_ns(self, namespace: str) -> str:
        if namespace == OPENID_NS:
            return self._openid_ns
        return namespace

    def get_openid_namespace(self) -> str:
        return self._openid_ns

    def is_openid1(self) -> bool:
        return self._openid_ns in OPENID1_NAMESPACES

    def is_openid2(self) -> bool:
        return self._openid_ns == OPENID2_NS

    def has_key(self, namespace: str, key: str) -> bool:
        return (self._fix_ns(namespace), key) in self._args

    def get_arg(self, namespace: str, key: str, default: Any = NO_DEFAULT) -> Any:
        """
        Look up a single field.

        Raises:
            KeyNotFound: If the field is absent and no default was given
        """
        try:
            return self._args[(self._fix_ns(namespace), key)]
        except KeyError:
            if default is NO_DEFAULT:
                raise KeyNotFound(f"<{namespace}>{key}") from None
            return default

    def get_args(self, namespace: str) -> dict[str, str]:
        ns_uri = self._fix_ns(namespace)
        return {key: value for (ns, key), value in self._args.items() if ns == ns_uri}

    def set_arg(self, namespace: str, key: str, value: str) -> None:
        ns_uri = self._fix_ns(namespace)
        if ns_uri not in (BARE_NS, self._openid_ns) and ns_uri not in self._aliases.values():
            self._aliases[f"ext{len(self._aliases)}"] = ns_uri
        self._args[(ns_uri, key)] = value

    def get_key(self, namespace: str, key: str) -> str | None:
        """POST-argument name of a field, or None for an unknown namespace."""
        ns_uri = self._fix_ns(namespace)
        if ns_uri == BARE_NS:
            return key
        if ns_uri == self._openid_ns:
            return f"openid.{key}"
        for alias, uri in self._aliases.items():
            if uri == ns_uri:
                return f"openid.{alias}.{key}"
        return None

    def get_openid(self, field: Field, default: Any = NO_DEFAULT) -> Any:
        """Typed lookup of a protocol-namespace field."""
        return self.get_arg(OPENID_NS, field.value, default)

    def has_openid(self, field: Field) -> bool:
        return self.has_key(OPENID_NS, field.value)

    def get_aliased_arg(self, aliased_key: str, default: Any = NO_DEFAULT) -> Any:
        """
        Look up a field by the name it carries in a ``signed`` list.

        ``ns`` names the protocol namespace, ``ns.<alias>`` an extension
        namespace URI and ``<alias>.<key>`` a field of that extension.
        Anything else is a protocol-namespace key.
        """
        if aliased_key == "ns":
            return self._openid_ns

        if aliased_key.startswith("ns."):
            uri = self._aliases.get(aliased_key[len("ns."):])
            if uri is None:
                if default is NO_DEFAULT:
                    raise KeyNotFound(aliased_key)
                return default
            return uri

        alias, sep, key = aliased_key.partition(".")
        ns_uri = self._aliases.get(alias) if sep else None
        if ns_uri is None:
            ns_uri, key = self._openid_ns, aliased_key
        return self.get_arg(ns_uri, key, default)

    def to_openid_args(self) -> dict[str, str]:
        """Protocol and extension fields, without the ``openid.`` prefix."""
        args: dict[str, str] = {}
        if not self._implicit_ns:
            args["ns"] = self._openid_ns
        uri_to_alias = {}
        for alias, uri in self._aliases.items():
            args[f"ns.{alias}"] = uri
            uri_to_alias[uri] = alias
        for (ns_uri, key), value in self._args.items():
            if ns_uri == BARE_NS:
                continue
            if ns_uri == self._openid_ns:
                args[key] = value
            else:
                args[f"{uri_to_alias[ns_uri]}.{key}"] = value
        return args

    def to_post_args(self) -> dict[str, str]:
        args = {f"openid.{key}": value for key, value in self.to_openid_args().items()}
        args.update(self.get_args(BARE_NS))
        return args

    def to_kvform(self) -> str:
        return dict_to_kv(self.to_openid_args())

    def copy(self) -> "Message":
        other = Message(None if self._implicit_ns else self._openid_ns)
        other._args = dict(self._args)
        other._aliases = dict(self._aliases)
        return other

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Message):
            return NotImplemented
        return (
            self._openid_ns == other._openid_ns
            and self._args == other._args
            and self._aliases == other._aliases
        )

    def __repr__(self) -> str:
        return f"<Message {self._openid_ns} {self.to_post_args()!r}>"
