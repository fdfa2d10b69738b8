"""SOCKS5 proxies into private installations, with a generated PAC file."""

__version__ = "1.0.0"
