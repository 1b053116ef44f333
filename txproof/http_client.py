"""HTTP transport for the XMR proof service (onion-monero-blockchain-explorer API)."""

import ipaddress
import logging
from typing import Callable, Dict, Optional, Tuple, Union
from urllib.parse import urlsplit

import requests

from .models import TransportError

logger = logging.getLogger(__name__)

# (connect, read) seconds. Requests over Tor can be slow to establish.
DEFAULT_TIMEOUT: Tuple[float, float] = (30, 120)

# Returns a proxy URL such as "socks5h://127.0.0.1:9050", or None for direct.
ProxyProvider = Callable[[], Optional[str]]


def is_local_address(service_address: str) -> bool:
    """True for localhost and loopback/private IP literals (with or without port)."""
    host = urlsplit("//" + service_address).hostname or ""
    if host == "localhost" or host.endswith(".localhost"):
        return True
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        return False
    return ip.is_loopback or ip.is_private


class ProofHttpClient:
    """Thin wrapper around a requests Session with an optional proxy."""

    def __init__(
        self,
        proxy_provider: Optional[ProxyProvider] = None,
        timeout: Union[float, Tuple[float, float]] = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.proxy_provider = proxy_provider
        self.timeout = timeout
        self.session = session or requests.Session()
        self.base_url = ""
        self.ignore_proxy = False

    @classmethod
    def for_service(
        cls, service_address: str, proxy_provider: Optional[ProxyProvider] = None, **kwargs
    ) -> "ProofHttpClient":
        client = cls(proxy_provider, **kwargs)
        client.base_url = "http://" + service_address
        if is_local_address(service_address):
            logger.info("Ignoring proxy for local net address: %s", service_address)
            client.ignore_proxy = True
        return client

    def _proxies(self) -> Optional[Dict[str, str]]:
        if self.ignore_proxy or self.proxy_provider is None:
            return None
        proxy_url = self.proxy_provider()
        if not proxy_url:
            return None
        return {"http": proxy_url, "https": proxy_url}

    def request_with_get(
        self, param: str, header_key: Optional[str] = None, header_value: Optional[str] = None
    ) -> str:
        """GET base_url + param and return the body text.

        Raises TransportError on connection problems and non-2xx responses.
        """
        headers = {header_key: header_value} if header_key and header_value else None
        try:
            r = self.session.get(
                self.base_url + param,
                headers=headers,
                proxies=self._proxies(),
                timeout=self.timeout,
            )
            r.raise_for_status()
        except requests.RequestException as e:
            raise TransportError(f"HTTP error: {e}", e) from e
        return r.text
