"""
Fetching of remote content with SSRF protection.

Remote images and webfont stylesheets are the only things a build downloads.
Every URL is validated before a request is made: only http(s), no private,
loopback or link-local addresses, no credentials in the host part.
"""

import ipaddress
import logging
import re
import socket
from typing import List, Set, Tuple
from urllib.parse import urlparse

import requests

from . import __version__
from .errors import FetchError

logger = logging.getLogger(__name__)

USER_AGENT = f'hyperref/{__version__} (Static Site Generator)'

# Google Fonts only serves woff2 sources to browsers it recognizes
BROWSER_USER_AGENT = ('Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
                      '(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36')


class URLValidator:
    """Decides whether a URL is safe to request from a build machine."""

    ALLOWED_SCHEMES: Set[str] = {'http', 'https'}

    BLOCKED_IP_RANGES: List[str] = [
        '0.0.0.0/8',
        '10.0.0.0/8',
        '100.64.0.0/10',
        '127.0.0.0/8',
        '169.254.0.0/16',
        '172.16.0.0/12',
        '192.0.0.0/24',
        '192.168.0.0/16',
        '198.18.0.0/15',
        '224.0.0.0/4',
        '240.0.0.0/4',
        '::1/128',
        '::/128',
        '::ffff:0:0/96',
        'fe80::/10',
        'fc00::/7',
        'ff00::/8',
    ]

    BLOCKED_HOSTNAMES: Set[str] = {
        'localhost',
        'localhost.localdomain',
        'ip6-localhost',
        'ip6-loopback',
        'metadata.google.internal',
    }

    SUSPICIOUS_PATTERNS = [
        r'%2f%2f',
        r'%5c%5c',
        r'\.\./',
        r'%2e%2e%2f',
    ]

    def __init__(self, allow_private: bool = False):
        """
        Args:
            allow_private: Skip the address checks (local test servers)
        """
        self.allow_private = allow_private
        self._blocked_networks = [ipaddress.ip_network(cidr) for cidr in self.BLOCKED_IP_RANGES]

    def validate_url(self, url: str) -> Tuple[bool, str]:
        """
        Validate a URL before requesting it.

        Returns:
            Tuple of (is_valid, reason)
        """
        parsed = urlparse(url)
        if not parsed.scheme or not parsed.netloc:
            return False, "Invalid URL format"
        if parsed.scheme.lower() not in self.ALLOWED_SCHEMES:
            return False, f"Unsupported URL scheme: {parsed.scheme}"
        if '@' in parsed.netloc:
            return False, "Credentials in URL are not allowed"

        hostname = parsed.hostname
        if not hostname:
            return False, "Invalid hostname in URL"

        lowered = url.lower()
        for pattern in self.SUSPICIOUS_PATTERNS:
            if re.search(pattern, lowered):
                return False, "URL contains suspicious patterns"

        if self.allow_private:
            return True, "URL is valid"

        if hostname.lower() in self.BLOCKED_HOSTNAMES:
            return False, f"Blocked hostname: {hostname}"

        try:
            addresses = self._resolve_hostname(hostname)
        except socket.gaierror:
            return False, f"Cannot resolve hostname: {hostname}"
        for address in addresses:
            if not self._is_ip_allowed(address):
                return False, f"Blocked IP address: {address}"

        return True, "URL is valid"

    def _resolve_hostname(self, hostname: str) -> List[str]:
        addr_info = socket.getaddrinfo(hostname, None, family=socket.AF_UNSPEC, type=socket.SOCK_STREAM)
        return sorted(set(info[4][0] for info in addr_info))

    def _is_ip_allowed(self, ip_str: str) -> bool:
        try:
            ip = ipaddress.ip_address(ip_str)
        except ValueError:
            return False
        return not any(ip in network for network in self._blocked_networks)


class Fetcher:
    """
    The fetch collaborator: URL in, bytes out, ``FetchError`` on any failure.

    Retries and backoff are not attempted; a failed request fails the asset.
    """

    def __init__(self, validator: URLValidator = None, session: requests.Session = None, timeout: int = 30):
        self.validator = validator or URLValidator()
        self.session = session or requests.Session()
        self.timeout = timeout

    def fetch(self, url: str, fonts: bool = False) -> bytes:
        """
        Download ``url``.

        Args:
            url: Absolute http(s) URL
            fonts: Send a browser User-Agent (webfont services vary on it)

        Returns:
            Response body

        Raises:
            FetchError: validation failed, the request failed or returned an error status
        """
        is_valid, reason = self.validator.validate_url(url)
        if not is_valid:
            raise FetchError(f"URL validation failed: {reason}", url)

        headers = {'User-Agent': BROWSER_USER_AGENT if fonts else USER_AGENT}
        try:
            response = self.session.get(url, headers=headers, timeout=self.timeout, allow_redirects=True)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise FetchError(f"HTTP request failed: {e}", url)

        logger.debug(f"fetched {url} ({len(response.content)} bytes)")
        return response.content

    def close(self):
        self.session.close()
