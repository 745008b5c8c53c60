"""
Key-value form encoding used for direct OP communication and signing.

Each pair is rendered as ``key:value\\n``. Keys may not contain ``:`` or a
newline and values may not contain a newline.
"""

from typing import Iterable, Mapping


def seq_to_kv(pairs: Iterable[tuple[str, str]]) -> str:
    """
    Render (key, value) pairs in key-value form.

    Raises:
        ValueError: If a key or value cannot be represented
    """
    lines = []
    for key, value in pairs:
        if "\n" in key or ":" in key:
            raise ValueError(f"Invalid key for key-value form: {key!r}")
        if "\n" in value:
            raise ValueError(f"Invalid value for key-value form: {value!r}")
        lines.append(f"{key}:{value}\n")
    return "".join(lines)


def dict_to_kv(data: Mapping[str, str]) -> str:
    return seq_to_kv(sorted(data.items()))


def kv_to_dict(text: str) -> dict[str, str]:
    """
    Parse a key-value form body.

    Lines without a colon and blank lines are skipped, surrounding
    whitespace is stripped from keys and values.

    Examples:
        >>> kv_to_dict("is_valid:true\\nns:http://specs.openid.net/auth/2.0\\n")
        {'is_valid': 'true', 'ns': 'http://specs.openid.net/auth/2.0'}
    """
    result: dict[str, str] = {}
    for line in text.splitlines():
        if not line.strip():
            continue
        key, sep, value = line.partition(":")
        if not sep:
            continue
        result[key.strip()] = value.strip()
    return result
