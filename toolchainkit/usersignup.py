"""Turning arbitrary user names into DNS-compliant, prefix-safe names."""

from __future__ import annotations

import re
from collections.abc import Iterable

# The longest namespace suffix is 10 characters and namespace names are kept
# under 30 characters, so a compliant username is at most 20 characters long.
MAX_LENGTH = 20

DNS1123_LABEL_MAX_LENGTH = 63

_SPECIAL_CHARS = re.compile(r"[^A-Za-z0-9]")
_ONLY_NUMBERS = re.compile(r"[0-9]*")
_DNS1123_LABEL_FMT = r"[a-z0-9]([-a-z0-9]*[a-z0-9])?"
_DNS1123_LABEL = re.compile(_DNS1123_LABEL_FMT)
_DNS1123_LABEL_MESSAGE = (
    "a lowercase RFC 1123 label must consist of lower case alphanumeric "
    "characters or '-', and must start and end with an alphanumeric character "
    "(e.g. 'my-name',  or '123-abc', regex used for validation is '"
    + _DNS1123_LABEL_FMT
    + "')"
)

_PREFIX = "crt-"
_SUFFIX = "-crt"


def is_dns1123_label(value: str) -> list[str]:
    """Return the reasons ``value`` is not a DNS-1123 label; empty when it is one."""
    errors = []
    if len(value) > DNS1123_LABEL_MAX_LENGTH:
        errors.append(f"must be no more than {DNS1123_LABEL_MAX_LENGTH} characters")
    if not _DNS1123_LABEL.fullmatch(value):
        errors.append(_DNS1123_LABEL_MESSAGE)
    return errors


def transform_username(
    username: str,
    forbidden_prefixes: Iterable[str],
    forbidden_suffixes: Iterable[str],
) -> str:
    """Derive a compliant username of at most ``MAX_LENGTH`` characters."""
    name = _SPECIAL_CHARS.sub("-", username.split("@")[0])
    if not name:
        name = username.replace("@", "at-")
    name = _SPECIAL_CHARS.sub("-", name)

    if _ONLY_NUMBERS.fullmatch(name):
        name = _PREFIX + name
    while "--" in name:
        name = name.replace("--", "-")
    if name.startswith("-"):
        name = "crt" + name
    if name.endswith("-"):
        name = name + "crt"
    if len(name) > MAX_LENGTH:
        name = name[:MAX_LENGTH]
        if is_dns1123_label(name):
            name = name.strip("-")

    max_length_with_affix = MAX_LENGTH - len(_PREFIX)

    if any(name.startswith(prefix) for prefix in forbidden_prefixes):
        if len(name) > max_length_with_affix:
            name = _PREFIX + name[3:]
        else:
            name = _PREFIX + name

    if any(name.endswith(suffix) for suffix in forbidden_suffixes):
        if len(name) > max_length_with_affix:
            name = name[:max_length_with_affix] + _SUFFIX
        else:
            name = name + _SUFFIX

    return name