"""
Proxy sessions

Builds requests sessions routed through an authenticated SOCKS5 gateway. Each
keyword pipeline owns one session with its own upstream identity, so the
provider keeps the same egress IP across that keyword's pages.
"""

import logging
import random
from dataclasses import dataclass
from urllib.parse import quote

import requests

from errors import ProxySetupFailed

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
SESSION_ID_RANGE = 100000


@dataclass(frozen=True)
class ProxyIdentity:
    """Credential tuple the proxy provider sees for one pipeline"""

    username: str
    password: str
    country: str
    session_id: int

    @classmethod
    def create(cls, username: str, password: str, country: str, rng: random.Random) -> "ProxyIdentity":
        """Draw a fresh session id for a new pipeline"""
        return cls(username, password, country, rng.randrange(SESSION_ID_RANGE))

    @property
    def upstream_user(self) -> str:
        return f"{self.username}-country-{self.country}-sid-{self.session_id}"


class ProxySession(requests.Session):
    """A requests session that applies a default timeout to every request"""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT):
        super().__init__()
        self.timeout = timeout
        # HTTP(S)_PROXY and NO_PROXY must never reroute around the tunnel
        self.trust_env = False

    def request(self, method, url, **kwargs):
        kwargs.setdefault("timeout", self.timeout)
        return super().request(method, url, **kwargs)


def parse_gateway(gateway: str):
    """Split a host:port gateway string, raising ProxySetupFailed when malformed"""
    host, sep, port = (gateway or "").strip().rpartition(":")
    if not sep or not host or not port.isdigit():
        raise ProxySetupFailed(f"Malformed proxy gateway {gateway!r}, expected host:port")

    port_num = int(port)
    if not 1 <= port_num <= 65535:
        raise ProxySetupFailed(f"Proxy gateway port out of range: {port_num}")

    return host.strip("[]"), port_num


def get_socks_proxies(gateway: str, identity: ProxyIdentity):
    host, port = parse_gateway(gateway)
    if ":" in host:
        host = f"[{host}]"
    user = quote(identity.upstream_user, safe="")
    password = quote(identity.password, safe="")
    # socks5h resolves hostnames on the proxy side
    proxy_url = f"socks5h://{user}:{password}@{host}:{port}"
    return {
        "http": proxy_url,
        "https": proxy_url,
    }


def create_session(gateway: str, identity: ProxyIdentity, timeout: float = DEFAULT_TIMEOUT) -> ProxySession:
    """
    Build a session tunnelled through the SOCKS5 gateway.

    No connection is made here; the SOCKS handshake happens lazily on the
    first request.

    Args:
        gateway: Proxy gateway as host:port
        identity: Credentials and session tag for this pipeline
        timeout: Seconds applied to each request issued through the session

    Returns:
        ProxySession routed through the gateway

    Raises:
        ProxySetupFailed: if the gateway is malformed or SOCKS support is missing
    """
    proxies = get_socks_proxies(gateway, identity)

    try:
        import socks  # noqa: F401  PySocks, pulled in by requests[socks]
    except ImportError as e:
        raise ProxySetupFailed("SOCKS support missing, install requests[socks]") from e

    session = ProxySession(timeout=timeout)
    session.proxies.update(proxies)
    logger.debug(f"Created proxy session sid={identity.session_id} via {gateway}")
    return session
