"""Proxy auto-configuration (PAC) rendering."""

from linkmeup.pac.generator import render_pac

__all__ = ["render_pac"]
