# -*- coding: utf-8 -*-
"""Location: ./floodgate/keys.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: Floodgate Contributors

Identity extraction and store key derivation.

Identities never reach a store in clear text: they are hashed with SHA-256
and base64 encoded, then namespaced with the configured prefix. The digest
is unsalted so the same identity maps to the same key in every process and
after every restart.
"""

# Standard
import base64
import hashlib
import ipaddress
from typing import Any

UNKNOWN_CLIENT = "unknown"


def hash_identity(value: Any) -> str:
    """Hash an identity to a fixed-length, stable token.

    Args:
        value: Any identity; non-strings are converted with ``str``.

    Returns:
        The base64 encoded SHA-256 digest (44 characters).

    Examples:
        >>> hash_identity("127.0.0.1") == hash_identity("127.0.0.1")
        True
        >>> len(hash_identity(42))
        44
        >>> hash_identity(42) == hash_identity("42")
        True
    """
    digest = hashlib.sha256(str(value).encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


def derive_key(prefix: str, identity: Any) -> str:
    """Build the store key for an identity.

    Args:
        prefix: Key namespace.
        identity: Caller identity.

    Returns:
        ``prefix`` followed by the hashed identity.

    Examples:
        >>> derive_key("login:", "alice").startswith("login:")
        True
        >>> derive_key("", "alice") == hash_identity("alice")
        True
    """
    return f"{prefix}{hash_identity(identity)}"


def client_address(request: Any) -> str:
    """Default local identity: the caller's network address.

    Args:
        request: A Starlette request (anything with ``client.host``).

    Returns:
        The client host, or ``"unknown"`` when the transport does not expose one.

    Examples:
        >>> from types import SimpleNamespace
        >>> client_address(SimpleNamespace(client=SimpleNamespace(host="10.0.0.7")))
        '10.0.0.7'
        >>> client_address(SimpleNamespace(client=None))
        'unknown'
    """
    client = getattr(request, "client", None)
    host = getattr(client, "host", None) if client else None
    return host or UNKNOWN_CLIENT


def client_network(request: Any, ipv4_prefix: int = 24, ipv6_prefix: int = 64) -> str:
    """Default global identity: the subnet the caller's address belongs to.

    Args:
        request: A Starlette request.
        ipv4_prefix: Prefix length used to group IPv4 callers.
        ipv6_prefix: Prefix length used to group IPv6 callers.

    Returns:
        The network in CIDR notation, or the raw host when it is not an IP address.

    Examples:
        >>> from types import SimpleNamespace
        >>> client_network(SimpleNamespace(client=SimpleNamespace(host="192.168.4.77")))
        '192.168.4.0/24'
        >>> client_network(SimpleNamespace(client=SimpleNamespace(host="2001:db8::1")))
        '2001:db8::/64'
        >>> client_network(SimpleNamespace(client=SimpleNamespace(host="testclient")))
        'testclient'
    """
    host = client_address(request)
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return host
    length = ipv4_prefix if address.version == 4 else ipv6_prefix
    return str(ipaddress.ip_network(f"{address}/{length}", strict=False))
