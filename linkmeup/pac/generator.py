"""PAC script generation.

A pure function of the current proxy list: each proxy's domain is routed to
its local SOCKS5 port, everything else goes direct.
"""

from __future__ import annotations

from collections.abc import Iterable

from linkmeup.proxy.types import ProxyStatus

PAC_CONTENT_TYPE = "application/x-ns-proxy-autoconfig"


def _quote(value: str) -> str:
    """Escape ``value`` for a single-quoted JavaScript string literal."""
    return (
        value.replace("\\", "\\\\")
        .replace("'", "\\'")
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )


def render_pac(proxies: Iterable[ProxyStatus], proxy_host: str = "localhost") -> str:
    """Render ``FindProxyForURL`` with one ``dnsDomainIs`` clause per proxy, in order."""
    body = "function FindProxyForURL(url, host) {"
    for proxy in proxies:
        body += (
            f"\n  if (dnsDomainIs(host, '{_quote(proxy.domain)}')) "
            f"{{ return 'SOCKS5 {proxy_host}:{proxy.port}'; }}"
        )
    body += "\n  return 'DIRECT';\n}\n"
    return body
