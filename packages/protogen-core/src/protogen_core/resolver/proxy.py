"""Proxy selection for remote repositories.

Matching follows the Maven resolver's default selector: a proxy applies to
a repository when its protocol equals the repository URL scheme (case
insensitive) and the repository host does not match any of the proxy's
non-proxy host patterns. The first applicable active proxy wins.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from urllib.parse import urlsplit

from protogen_core.resolver.coordinates import ProxyDescriptor
from protogen_core.resolver.settings import ProxyConfig


def _compile_non_proxy_hosts(patterns: str | None) -> list[re.Pattern[str]]:
    if not patterns:
        return []
    compiled = []
    for token in re.split(r"[|,]", patterns):
        token = token.strip()
        if not token:
            continue
        regex = ".*".join(re.escape(part) for part in token.split("*"))
        compiled.append(re.compile(regex, re.IGNORECASE))
    return compiled


class _Entry:
    def __init__(self, proxy: ProxyDescriptor, non_proxy_hosts: str | None) -> None:
        self.proxy = proxy
        self.non_proxy_patterns = _compile_non_proxy_hosts(non_proxy_hosts)

    def applies_to(self, scheme: str, host: str) -> bool:
        if self.proxy.protocol.lower() != scheme.lower():
            return False
        return not any(p.fullmatch(host) for p in self.non_proxy_patterns)


class ProxySelector:
    """Picks the proxy for a repository URL.

    Example:
        >>> selector = ProxySelector.from_settings(settings.proxies)
        >>> selector.select("https://repo.maven.apache.org/maven2/")
        ProxyDescriptor(protocol='https', host='proxy.example.com', port=3128, ...)
    """

    def __init__(self) -> None:
        self._entries: list[_Entry] = []

    @classmethod
    def from_settings(cls, proxies: Iterable[ProxyConfig]) -> ProxySelector:
        """Build a selector from settings; inactive proxies are skipped."""
        selector = cls()
        for proxy in proxies:
            if not proxy.active:
                continue
            selector.add(
                ProxyDescriptor(
                    protocol=proxy.protocol,
                    host=proxy.host,
                    port=proxy.port,
                    username=proxy.username,
                    password=proxy.password.get_secret_value() if proxy.password else None,
                ),
                proxy.non_proxy_hosts,
            )
        return selector

    def add(self, proxy: ProxyDescriptor, non_proxy_hosts: str | None = None) -> ProxySelector:
        self._entries.append(_Entry(proxy, non_proxy_hosts))
        return self

    def select(self, url: str) -> ProxyDescriptor | None:
        """Return the proxy for ``url``, or None for a direct connection."""
        parts = urlsplit(url)
        if not parts.hostname:
            return None
        for entry in self._entries:
            if entry.applies_to(parts.scheme, parts.hostname):
                return entry.proxy
        return None
