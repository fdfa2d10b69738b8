"""Tunnel process handles.

A tunnel is a ``tsh ssh --no-remote-exec --dynamic-forward <port> root@<node>``
process that acts as a local SOCKS5 proxy into the installation's network.
Launching does not wait for the tunnel to become usable; the health prober
finds that out.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass

from linkmeup.middleware.error_handler import LaunchFailedError, StopFailedError

logger = logging.getLogger(__name__)


@dataclass
class TunnelHandle:
    """Ownership of one running tunnel process."""

    node: str
    port: int
    process: asyncio.subprocess.Process

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def running(self) -> bool:
        return self.process.returncode is None


class TunnelLauncher:
    """Starts and kills tunnel processes.

    Parameters
    ----------
    tsh_binary:
        Name or path of the Teleport CLI.
    login:
        SSH login used on the target node.
    launch_grace_seconds:
        How long ``start`` watches the new process for an immediate exit.
    stop_timeout_seconds:
        How long ``stop`` waits for a killed process to be reaped.
    """

    def __init__(
        self,
        tsh_binary: str = "tsh",
        *,
        login: str = "root",
        launch_grace_seconds: float = 0.5,
        stop_timeout_seconds: float = 5.0,
    ) -> None:
        self._tsh_binary = tsh_binary
        self._login = login
        self._launch_grace_seconds = launch_grace_seconds
        self._stop_timeout_seconds = stop_timeout_seconds

    def command(self, node: str, port: int) -> list[str]:
        return [
            self._tsh_binary,
            "ssh",
            "--no-remote-exec",
            "--dynamic-forward",
            str(port),
            f"{self._login}@{node}",
        ]

    async def start(self, node: str, port: int) -> TunnelHandle:
        """Spawn a tunnel to ``node`` listening on local ``port``.

        Raises ``LaunchFailedError`` if the process cannot be created or exits
        within the launch grace period.
        """
        try:
            process = await asyncio.create_subprocess_exec(
                *self.command(node, port),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
                # Keep terminal signals away from the child; shutdown kills it explicitly.
                start_new_session=True,
            )
        except OSError as exc:
            raise LaunchFailedError(
                f"Failed to start tunnel to {node} on port {port}: {exc}",
                node=node,
                port=port,
            ) from exc

        handle = TunnelHandle(node=node, port=port, process=process)

        if self._launch_grace_seconds > 0:
            try:
                await asyncio.wait_for(process.wait(), timeout=self._launch_grace_seconds)
            except asyncio.TimeoutError:
                pass
            except asyncio.CancelledError:
                await self._kill_quietly(handle)
                raise
            else:
                raise LaunchFailedError(
                    f"Tunnel to {node} on port {port} exited immediately "
                    f"with code {process.returncode}",
                    node=node,
                    port=port,
                    exit_code=process.returncode,
                )

        logger.debug("Started tunnel pid=%d to %s on port %d", handle.pid, node, port)
        return handle

    async def stop(self, handle: TunnelHandle | None) -> None:
        """Kill the tunnel process. Stopping a missing or exited handle is a no-op.

        Raises ``StopFailedError`` if the kill call fails or the process is not
        reaped in time.
        """
        if handle is None or not handle.running:
            return

        try:
            handle.process.kill()
        except ProcessLookupError:
            return
        except OSError as exc:
            raise StopFailedError(
                f"Failed to kill tunnel pid={handle.pid}: {exc}",
                node=handle.node,
                port=handle.port,
            ) from exc

        try:
            await asyncio.wait_for(handle.process.wait(), timeout=self._stop_timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise StopFailedError(
                f"Tunnel pid={handle.pid} did not exit after kill",
                node=handle.node,
                port=handle.port,
            ) from exc

        logger.debug("Stopped tunnel pid=%d to %s", handle.pid, handle.node)

    async def _kill_quietly(self, handle: TunnelHandle) -> None:
        with contextlib.suppress(ProcessLookupError):
            handle.process.kill()
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(handle.process.wait(), timeout=self._stop_timeout_seconds)
