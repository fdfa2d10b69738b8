"""Node inventory client backed by ``tsh ls``.

Lists the control-plane nodes of an installation that can terminate a tunnel.
The call is made once per request and never retried here; retry policy
belongs to the proxy supervisor.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

from linkmeup.middleware.error_handler import InventoryUnavailableError, NoNodesFoundError

logger = logging.getLogger(__name__)


def node_selector(installation: str) -> str:
    """Teleport label selector matching the control-plane nodes of an installation."""
    return f"ins={installation},cluster={installation},role=control-plane"


class NodeInventoryClient:
    """Runs ``tsh ls --format=names <selector>`` and parses the node names.

    Parameters
    ----------
    tsh_binary:
        Name or path of the Teleport CLI.
    timeout_seconds:
        Upper bound for one listing; a hung ``tsh`` is killed after it.
    kill_timeout_seconds:
        How long to wait for a killed listing process to be reaped.
    """

    def __init__(
        self,
        tsh_binary: str = "tsh",
        *,
        timeout_seconds: float = 30.0,
        kill_timeout_seconds: float = 5.0,
    ) -> None:
        self._tsh_binary = tsh_binary
        self._timeout_seconds = timeout_seconds
        self._kill_timeout_seconds = kill_timeout_seconds

    async def list_nodes(self, installation: str) -> list[str]:
        """Return the node names for ``installation`` in the order ``tsh`` prints them.

        Raises
        ------
        InventoryUnavailableError
            If the command cannot be run, times out, exits non-zero or writes
            to stderr.
        NoNodesFoundError
            If the command succeeds but lists no nodes.
        """
        selector = node_selector(installation)
        try:
            process = await asyncio.create_subprocess_exec(
                self._tsh_binary,
                "ls",
                "--format=names",
                selector,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise InventoryUnavailableError(
                f"Failed to list nodes for installation {installation}: {exc}",
                installation=installation,
            ) from exc

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self._timeout_seconds
            )
        except asyncio.TimeoutError as exc:
            await self._kill_quietly(process)
            raise InventoryUnavailableError(
                f"Node listing for installation {installation} timed out "
                f"after {self._timeout_seconds:g}s",
                installation=installation,
            ) from exc
        except asyncio.CancelledError:
            await self._kill_quietly(process)
            raise
        except OSError as exc:
            await self._kill_quietly(process)
            raise InventoryUnavailableError(
                f"Failed to list nodes for installation {installation}: {exc}",
                installation=installation,
            ) from exc

        error_output = stderr.decode(errors="replace").strip()
        if process.returncode != 0 or error_output:
            logger.debug(
                "Node listing failed for %s (exit code %s): %s",
                installation,
                process.returncode,
                error_output,
            )
            raise InventoryUnavailableError(
                f"Nodes could not be listed for installation {installation}",
                installation=installation,
                exit_code=process.returncode,
            )

        try:
            text = stdout.decode()
        except UnicodeDecodeError as exc:
            raise InventoryUnavailableError(
                f"Unparseable node listing for installation {installation}",
                installation=installation,
            ) from exc

        nodes = [line.strip() for line in text.splitlines() if line.strip()]
        if not nodes:
            raise NoNodesFoundError(
                f"No nodes found for installation {installation}",
                installation=installation,
            )

        logger.debug(
            "Found %d nodes for installation %s: %s",
            len(nodes),
            installation,
            ", ".join(nodes),
        )
        return nodes

    async def _kill_quietly(self, process: asyncio.subprocess.Process) -> None:
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(process.wait(), timeout=self._kill_timeout_seconds)
