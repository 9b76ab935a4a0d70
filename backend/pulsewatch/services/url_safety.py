"""
Destination URL checks.

Tenants choose where their notifications are POSTed, so every destination
URL is checked against loopback, private and link-local ranges when it is
saved and again right before each delivery (DNS can change in between).
"""

import ipaddress
import socket
from urllib.parse import urlparse

# Private/internal IP ranges that destinations may not point at
BLOCKED_IP_RANGES = [
    ipaddress.ip_network("0.0.0.0/8"),         # "This" network
    ipaddress.ip_network("127.0.0.0/8"),       # Loopback
    ipaddress.ip_network("10.0.0.0/8"),        # Private Class A
    ipaddress.ip_network("172.16.0.0/12"),     # Private Class B
    ipaddress.ip_network("192.168.0.0/16"),    # Private Class C
    ipaddress.ip_network("169.254.0.0/16"),    # Link-local (cloud metadata)
    ipaddress.ip_network("::1/128"),           # IPv6 loopback
    ipaddress.ip_network("fc00::/7"),          # IPv6 private
    ipaddress.ip_network("fe80::/10"),         # IPv6 link-local
]


def _is_blocked_ip(ip_str: str) -> bool:
    try:
        ip = ipaddress.ip_address(ip_str.split("%", 1)[0])
    except ValueError:
        return False
    if ip.version == 6 and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return any(ip in blocked_range for blocked_range in BLOCKED_IP_RANGES)


def is_safe_url(url: str) -> tuple[bool, str]:
    """
    Validate a destination URL.

    Returns:
        Tuple of (is_safe, error_message)
    """
    try:
        parsed = urlparse(url)
    except ValueError as e:
        return False, f"Invalid URL: {e}"

    if parsed.scheme not in ("http", "https"):
        return False, "URL scheme must be http or https"

    hostname = parsed.hostname
    if not hostname:
        return False, "URL must have a valid hostname"

    if hostname.lower() in ("localhost", "localhost.localdomain"):
        return False, "Localhost URLs are not allowed"

    try:
        addr_info = socket.getaddrinfo(hostname, None, socket.AF_UNSPEC)
    except socket.gaierror:
        # Unresolvable now; the POST itself will fail if it stays that way
        return True, ""

    for _, _, _, _, sockaddr in addr_info:
        if _is_blocked_ip(str(sockaddr[0])):
            return False, "URL resolves to a private/internal IP address"

    return True, ""
