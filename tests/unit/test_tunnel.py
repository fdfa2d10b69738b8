"""Unit tests for tunnel process handles."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from fakes import FakeProcess
from linkmeup.middleware.error_handler import LaunchFailedError, StopFailedError
from linkmeup.proxy.tunnel import TunnelHandle, TunnelLauncher

SUBPROCESS = "linkmeup.proxy.tunnel.asyncio.create_subprocess_exec"


def test_command():
    launcher = TunnelLauncher("tsh")
    assert launcher.command("gremlin-cp-1", 1080) == [
        "tsh",
        "ssh",
        "--no-remote-exec",
        "--dynamic-forward",
        "1080",
        "root@gremlin-cp-1",
    ]


def test_command_custom_login():
    launcher = TunnelLauncher("tsh", login="admin")
    assert launcher.command("node", 1081)[-1] == "admin@node"


class TestStart:
    @pytest.mark.asyncio
    async def test_returns_handle_for_long_running_process(self):
        process = FakeProcess()
        launcher = TunnelLauncher(launch_grace_seconds=0.01)
        with patch(SUBPROCESS, new_callable=AsyncMock, return_value=process) as spawn:
            handle = await launcher.start("gremlin-cp-1", 1080)

        assert handle.node == "gremlin-cp-1"
        assert handle.port == 1080
        assert handle.pid == process.pid
        assert handle.running is True
        assert spawn.call_args.args[-1] == "root@gremlin-cp-1"
        assert spawn.call_args.kwargs["start_new_session"] is True

    @pytest.mark.asyncio
    async def test_no_grace_period_does_not_wait(self):
        process = FakeProcess()
        launcher = TunnelLauncher(launch_grace_seconds=0)
        with patch(SUBPROCESS, new_callable=AsyncMock, return_value=process):
            handle = await launcher.start("node", 1080)
        assert handle.running is True

    @pytest.mark.asyncio
    async def test_missing_binary_raises_launch_failed(self):
        launcher = TunnelLauncher("does-not-exist")
        with patch(SUBPROCESS, new_callable=AsyncMock, side_effect=FileNotFoundError("nope")):
            with pytest.raises(LaunchFailedError):
                await launcher.start("node", 1080)

    @pytest.mark.asyncio
    async def test_immediate_exit_raises_launch_failed(self):
        process = FakeProcess(returncode=255)
        launcher = TunnelLauncher(launch_grace_seconds=0.5)
        with patch(SUBPROCESS, new_callable=AsyncMock, return_value=process):
            with pytest.raises(LaunchFailedError) as exc_info:
                await launcher.start("node", 1080)
        assert exc_info.value.details["exit_code"] == 255

    @pytest.mark.asyncio
    async def test_cancel_during_grace_period_kills_process(self):
        process = FakeProcess()
        launcher = TunnelLauncher(launch_grace_seconds=3600)
        with patch(SUBPROCESS, new_callable=AsyncMock, return_value=process):
            task = asyncio.create_task(launcher.start("gremlin-cp-1", 1080))
            await asyncio.sleep(0.01)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        assert process.kill_calls == 1
        assert process.returncode == -9


class TestStop:
    @pytest.mark.asyncio
    async def test_stop_none_is_noop(self):
        await TunnelLauncher().stop(None)

    @pytest.mark.asyncio
    async def test_stop_kills_process(self):
        process = FakeProcess()
        handle = TunnelHandle(node="node", port=1080, process=process)  # type: ignore[arg-type]
        await TunnelLauncher().stop(handle)
        assert process.kill_calls == 1
        assert handle.running is False

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self):
        process = FakeProcess()
        handle = TunnelHandle(node="node", port=1080, process=process)  # type: ignore[arg-type]
        launcher = TunnelLauncher()
        await launcher.stop(handle)
        await launcher.stop(handle)
        assert process.kill_calls == 1

    @pytest.mark.asyncio
    async def test_vanished_process_is_noop(self):
        process = FakeProcess()
        process.kill_error = ProcessLookupError()
        handle = TunnelHandle(node="node", port=1080, process=process)  # type: ignore[arg-type]
        await TunnelLauncher().stop(handle)

    @pytest.mark.asyncio
    async def test_kill_error_raises_stop_failed(self):
        process = FakeProcess()
        process.kill_error = PermissionError("not allowed")
        handle = TunnelHandle(node="node", port=1080, process=process)  # type: ignore[arg-type]
        with pytest.raises(StopFailedError):
            await TunnelLauncher().stop(handle)

    @pytest.mark.asyncio
    async def test_process_not_reaped_raises_stop_failed(self):
        process = FakeProcess()
        # kill() is swallowed: the process never exits
        process.kill = lambda: None  # type: ignore[method-assign]
        handle = TunnelHandle(node="node", port=1080, process=process)  # type: ignore[arg-type]
        with pytest.raises(StopFailedError):
            await TunnelLauncher(stop_timeout_seconds=0.01).stop(handle)
