#!/usr/bin/env python3
"""
Cline GSD Agent Spawning

Runs external agent CLIs as background processes and collects their exit
status. A handle is returned as soon as the process exists; waiting is a
separate, cooperative step so several agents can run at once.

Two timeouts apply:
- per agent: a deferred SIGTERM armed at spawn time, cancelled on exit
- per batch: wait_for_agents() terminates every straggler at the deadline
"""
from __future__ import annotations

import asyncio
import codecs
import os
import signal
import subprocess
from typing import List, Optional, Sequence

import logging

from .models import AgentResult, AgentTask
from .utils import describe_os_error, get_platform

logger = logging.getLogger("gsd")

# Non-interactive invocation: `cline -y "<prompt>"`
DEFAULT_AGENT_CMD: List[str] = ["cline", "-y"]

KILL_GRACE_SECONDS = 5
READER_DRAIN_SECONDS = 5
READ_CHUNK_SIZE = 4096


class AgentHandle:
    """A spawned agent process owned by the pool until it reaches a terminal state."""

    def __init__(
        self,
        pid: Optional[int],
        process: Optional[asyncio.subprocess.Process],
        output_file: Optional[str] = None,
        timeout: Optional[float] = None,
        detached: bool = False,
        error: Optional[str] = None,
    ):
        self.pid = pid
        self.process = process
        self.output_file = output_file
        self.timeout = timeout
        self.detached = detached
        self.error = error
        self.timed_out = False
        self._stdout: List[str] = []
        self._stderr: List[str] = []
        self._readers: List[asyncio.Task] = []
        self._timer: Optional[asyncio.TimerHandle] = None

    @property
    def finished(self) -> bool:
        return self.process is None or self.process.returncode is not None

    def captured_stdout(self) -> str:
        return "".join(self._stdout)

    def captured_stderr(self) -> str:
        return "".join(self._stderr)

    def start(self) -> None:
        """Attach output readers and arm the per-agent timeout."""
        if self.process is None:
            return
        self._readers = [
            asyncio.ensure_future(_read_stream(self.process.stdout, self._stdout)),
            asyncio.ensure_future(_read_stream(self.process.stderr, self._stderr)),
        ]
        if self.timeout:
            loop = asyncio.get_running_loop()
            self._timer = loop.call_later(self.timeout, self._expire)

    def _expire(self) -> None:
        if self.finished:
            return
        self.timed_out = True
        logger.warning(f"Agent {self.pid} exceeded {self.timeout}s, terminating")
        self.terminate()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _signal(self, sig: int) -> None:
        if self.finished:
            return
        try:
            if self.detached:
                # Session leader: pgid == pid, so the whole agent tree gets the signal
                os.killpg(self.process.pid, sig)
            else:
                self.process.send_signal(sig)
        except ProcessLookupError:
            pass  # exited between the check and the signal

    def terminate(self) -> None:
        self._signal(signal.SIGTERM)

    def kill(self) -> None:
        if self.detached:
            self._signal(signal.SIGKILL)
        elif not self.finished:
            try:
                self.process.kill()
            except ProcessLookupError:
                pass

    async def _drain(self) -> None:
        if not self._readers:
            return
        _, pending = await asyncio.wait(self._readers, timeout=READER_DRAIN_SECONDS)
        for task in pending:
            task.cancel()

    async def wait(self) -> AgentResult:
        """Wait for natural exit (or the per-agent timeout) and build the result."""
        if self.process is None:
            return AgentResult(
                pid=self.pid,
                exit_code=-1,
                success=False,
                output_file=self.output_file,
                error=self.error,
            )
        rc = await self.process.wait()
        self._cancel_timer()
        await self._drain()

        if self.timed_out:
            return AgentResult(
                pid=self.pid,
                exit_code=-1,
                success=False,
                output_file=self.output_file,
                error=f"Timed out after {self.timeout}s",
                timed_out=True,
            )
        # Negative return codes mean the process was killed by a signal
        exit_code = rc if rc is not None and rc >= 0 else -1
        error = None
        if exit_code != 0:
            stderr = self.captured_stderr().strip()
            error = f"Exit code {exit_code}: {stderr[:500]}" if stderr else f"Exit code {exit_code}"
        return AgentResult(
            pid=self.pid,
            exit_code=exit_code,
            success=exit_code == 0,
            output_file=self.output_file,
            error=error,
        )

    def overall_timeout_result(self, timeout: Optional[float]) -> AgentResult:
        self._cancel_timer()
        return AgentResult(
            pid=self.pid,
            exit_code=-1,
            success=False,
            output_file=self.output_file,
            error=f"Overall timeout after {timeout}s",
            timed_out=True,
        )


async def _read_stream(stream: Optional[asyncio.StreamReader], chunks: List[str]) -> None:
    """Accumulate a process stream into memory until EOF."""
    if stream is None:
        return
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    while True:
        data = await stream.read(READ_CHUNK_SIZE)
        if not data:
            break
        chunks.append(decoder.decode(data))
    chunks.append(decoder.decode(b"", final=True))


async def spawn_agent(
    prompt: str,
    output_file: Optional[str] = None,
    timeout: Optional[float] = None,
    cwd: Optional[str] = None,
    agent_cmd: Optional[Sequence[str]] = None,
) -> AgentHandle:
    """Spawn a single agent in the background.

    Args:
        prompt: Prompt text, passed as the final positional argument
        output_file: Path the agent is told to write its output to
        timeout: Seconds before the agent is sent SIGTERM (None = no limit)
        cwd: Working directory for the agent (default: current directory)
        agent_cmd: Command prefix (default: ``cline -y``)

    Returns:
        AgentHandle; spawn failures are carried on the handle, not raised.
    """
    full_prompt = prompt
    if output_file:
        full_prompt = f"{prompt}\n\nWrite your output to: {output_file}"

    cmd = list(agent_cmd or DEFAULT_AGENT_CMD) + [full_prompt]
    workdir = str(cwd) if cwd else os.getcwd()
    detached = get_platform() != "windows"

    try:
        if detached:
            # Own session so the agent survives independently of our process group
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=workdir,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        else:
            proc = await asyncio.create_subprocess_shell(
                subprocess.list2cmdline(cmd),
                cwd=workdir,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
    except (OSError, ValueError) as e:
        error = describe_os_error(e, cmd[0]) if isinstance(e, OSError) else str(e)
        logger.error(f"Failed to spawn agent '{cmd[0]}': {error}")
        return AgentHandle(pid=None, process=None, output_file=output_file, error=error)

    handle = AgentHandle(
        pid=proc.pid,
        process=proc,
        output_file=output_file,
        timeout=timeout,
        detached=detached,
    )
    handle.start()
    logger.debug(f"Spawned agent pid={proc.pid} output={output_file}")
    return handle


async def spawn_agents(
    tasks: Sequence[AgentTask],
    agent_cmd: Optional[Sequence[str]] = None,
) -> List[AgentHandle]:
    """Launch every task without waiting for any of them to finish."""
    handles = []
    for task in tasks:
        handles.append(await spawn_agent(
            task.prompt,
            output_file=task.output_file,
            timeout=task.timeout,
            cwd=task.cwd,
            agent_cmd=agent_cmd,
        ))
    return handles


async def wait_for_agent(handle: AgentHandle) -> AgentResult:
    return await handle.wait()


async def wait_for_agents(
    handles: Sequence[AgentHandle],
    timeout: Optional[float] = None,
) -> List[AgentResult]:
    """Wait for all agents, or until the overall timeout, whichever is first.

    Results follow the order of ``handles``. On timeout every agent still
    running is terminated and reported with ``timed_out=True``; agents that
    already finished keep their real results.
    """
    if not handles:
        return []

    waiters = [asyncio.ensure_future(h.wait()) for h in handles]
    done, pending = await asyncio.wait(waiters, timeout=timeout)
    if not pending:
        return [w.result() for w in waiters]

    logger.warning(f"Overall timeout ({timeout}s) reached, terminating {len(pending)} agent(s)")
    stragglers = [h for h, w in zip(handles, waiters) if w in pending]
    for handle in stragglers:
        handle.terminate()

    # Graceful shutdown: terminate first, kill after the grace period
    _, still_running = await asyncio.wait(pending, timeout=KILL_GRACE_SECONDS)
    if still_running:
        for handle in stragglers:
            handle.kill()
        _, still_running = await asyncio.wait(still_running, timeout=KILL_GRACE_SECONDS)
        for waiter in still_running:
            waiter.cancel()

    results = []
    for handle, waiter in zip(handles, waiters):
        if waiter in done:
            results.append(waiter.result())
        else:
            results.append(handle.overall_timeout_result(timeout))
    return results


async def run_agents(
    tasks: Sequence[AgentTask],
    timeout: Optional[float] = None,
    parallel: bool = True,
    agent_cmd: Optional[Sequence[str]] = None,
) -> List[AgentResult]:
    """Spawn and await a batch, either all at once or one task at a time."""
    if parallel:
        handles = await spawn_agents(tasks, agent_cmd=agent_cmd)
        return await wait_for_agents(handles, timeout=timeout)

    results: List[AgentResult] = []
    for task in tasks:
        handle = await spawn_agent(
            task.prompt,
            output_file=task.output_file,
            timeout=task.timeout,
            cwd=task.cwd,
            agent_cmd=agent_cmd,
        )
        results.extend(await wait_for_agents([handle], timeout=timeout))
    return results
