"""Tests for destination URL checks."""

import socket
from unittest.mock import patch

import pytest

from pulsewatch.services.url_safety import is_safe_url


class TestIsSafeUrl:
    @pytest.mark.parametrize(
        "url",
        [
            "http://127.0.0.1/hook",
            "http://169.254.169.254/latest/meta-data/",
            "http://10.1.2.3:8080/hook",
            "https://192.168.1.10/hook",
            "http://172.20.0.1/hook",
            "http://[::1]/hook",
            "http://[::ffff:127.0.0.1]/hook",
            "http://0.0.0.0:9000/",
        ],
    )
    def test_internal_addresses_are_blocked(self, url):
        is_safe, reason = is_safe_url(url)

        assert is_safe is False
        assert "private/internal" in reason

    def test_localhost_is_blocked(self):
        is_safe, reason = is_safe_url("http://localhost:8000/hook")

        assert is_safe is False
        assert reason == "Localhost URLs are not allowed"

    @pytest.mark.parametrize("url", ["ftp://hooks.example.com/", "file:///etc/passwd"])
    def test_non_http_scheme_is_blocked(self, url):
        is_safe, reason = is_safe_url(url)

        assert is_safe is False
        assert "scheme" in reason

    def test_missing_hostname_is_blocked(self):
        assert is_safe_url("http:///hook")[0] is False

    def test_public_address_is_allowed(self):
        assert is_safe_url("https://93.184.216.34/hook") == (True, "")

    def test_hostname_resolving_to_private_address_is_blocked(self):
        addr_info = [(socket.AF_INET, socket.SOCK_STREAM, 6, "", ("10.0.0.7", 0))]
        with patch("pulsewatch.services.url_safety.socket.getaddrinfo", return_value=addr_info):
            is_safe, _ = is_safe_url("https://hooks.internal.example/hook")

        assert is_safe is False

    def test_unresolvable_hostname_is_allowed(self):
        with patch(
            "pulsewatch.services.url_safety.socket.getaddrinfo",
            side_effect=socket.gaierror("Name or service not known"),
        ):
            assert is_safe_url("https://hooks.example.com/hook") == (True, "")
