"""Local port allocation for proxy tunnels."""

from __future__ import annotations

import threading


class PortAllocator:
    """Hands out local ports in allocation order, starting at ``start``.

    Ports are never reused for the lifetime of the allocator, which keeps the
    PAC script stable while the process runs.
    """

    def __init__(self, start: int = 1080) -> None:
        if not 0 < start <= 65535:
            raise ValueError(f"Invalid start port: {start}")
        self._next = start
        self._lock = threading.Lock()

    def allocate(self) -> int:
        with self._lock:
            port = self._next
            if port > 65535:
                raise RuntimeError("Local port range exhausted")
            self._next += 1
        return port

    @property
    def next_port(self) -> int:
        return self._next
