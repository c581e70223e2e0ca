"""Host identifier classification and validation."""

import ipaddress
import re
from collections.abc import Iterable
from email.utils import parseaddr
from urllib.parse import urlparse

import idna

from .errors import ValidationError
from .models import Identifier, IdentifierKind

HOSTNAME_PATTERN = re.compile(r"^(\*\.)?[0-9a-z]([0-9a-z._-]*[0-9a-z])?$", re.IGNORECASE)


def has_control_characters(name: str) -> bool:
    """Return True if name contains ASCII control characters, which urlparse silently strips."""
    return any(ord(char) < 0x20 or ord(char) == 0x7F for char in name)


def is_ip(name: str) -> bool:
    """Return True if name is an IPv4 or IPv6 literal.

    Scoped IPv6 addresses (fe80::1%eth0) are rejected, a SAN cannot carry the zone.
    """
    if "%" in name:
        return False
    try:
        ipaddress.ip_address(name)
    except ValueError:
        return False
    return True


def is_email(name: str) -> bool:
    """Return True if name parses as a bare email address equal to itself."""
    _, address = parseaddr(name)
    if address != name:
        return False
    local, _, domain = address.rpartition("@")
    return bool(local) and bool(domain)


def is_url(name: str) -> bool:
    """Return True if name is an absolute URL with both scheme and host."""
    if has_control_characters(name):
        return False
    try:
        parsed = urlparse(name)
    except ValueError:
        return False
    return bool(parsed.scheme) and bool(parsed.netloc)


def to_ascii(name: str) -> str:
    """Convert an internationalized hostname to its punycode form.

    ASCII labels are kept verbatim so wildcards and underscores survive;
    only labels with non-ASCII characters go through IDNA encoding.

    Raises:
        idna.IDNAError: If a label cannot be encoded
    """
    labels = []
    for label in name.split("."):
        if label.isascii():
            labels.append(label)
        else:
            labels.append(idna.encode(label, uts46=True).decode("ascii"))
    return ".".join(labels)


def classify_host(name: str) -> Identifier:
    """Classify and normalize a single host identifier.

    Checks are applied in order: IP literal, email, absolute URL, hostname.
    Hostnames are converted to punycode before being matched.

    Args:
        name: Raw identifier supplied by the caller

    Returns:
        Identifier with the normalized value and its kind

    Raises:
        ValidationError: If name is not a valid hostname, IP, URL or email
    """
    if has_control_characters(name):
        raise ValidationError.invalid_host(name, "contains control characters")
    if is_ip(name):
        return Identifier(name, IdentifierKind.IP)
    if is_email(name):
        return Identifier(name, IdentifierKind.EMAIL)
    if is_url(name):
        return Identifier(name, IdentifierKind.URL)

    try:
        punycode = to_ascii(name)
    except idna.IDNAError as e:
        raise ValidationError.invalid_host(name, str(e)) from e

    if not HOSTNAME_PATTERN.fullmatch(punycode):
        raise ValidationError.invalid_host(name)
    return Identifier(punycode, IdentifierKind.HOSTNAME)


def classify_hosts(hosts: Iterable[str]) -> list[Identifier]:
    """Classify every host, failing on the first invalid entry.

    Raises:
        ValidationError: If hosts is empty or an entry is invalid
    """
    identifiers = [classify_host(host) for host in hosts]
    if not identifiers:
        raise ValidationError("at least one host is required")
    return identifiers


def validate_hosts(hosts: Iterable[str]) -> list[str]:
    """Validate hosts and return their normalized values.

    The input is left untouched; internationalized hostnames are only
    rewritten to punycode in the returned list.

    Raises:
        ValidationError: Naming the first invalid host
    """
    return [identifier.value for identifier in classify_hosts(hosts)]
