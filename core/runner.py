"""
core/runner.py

Host command execution.

CommandRunner spawns processes on the asyncio loop and captures both output streams.
Leaf shell commands run without a time limit; helper and architect spawns pass a
timeout. In every case a cancelled or timed-out call kills the child and reaps it
before returning control, so no orphan keeps running after its request is gone.
"""

import asyncio
import logging
import os
import signal
import time
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from monitoring.metrics import COMMAND_EXECUTION_TIME
from shared.errors import CommandTimeoutError, ExecutionError
from shared.utils import truncate_message_for_logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandOutput:
    stdout: str
    stderr: str
    returncode: int


def _decode(data: Optional[bytes]) -> str:
    return data.decode("utf-8", errors="replace") if data else ""


class CommandRunner:
    """
    Runs shell commands and programs, raising ExecutionError on any failure.

    `run` goes through the host shell, `run_program` spawns an argv list directly so
    that prompts and free text reach the program without shell quoting.
    """

    def __init__(self, shell_env: Optional[Dict[str, str]] = None):
        self.shell_env = shell_env

    async def run(self, command: str, timeout: Optional[float] = None) -> CommandOutput:
        """
        Run a command through the host shell and wait for it.

        Args:
            command (str): Shell command line.
            timeout (Optional[float]): Seconds before the process is killed; None waits forever.

        Returns:
            CommandOutput: Decoded stdout/stderr and the exit code (always 0).

        Raises:
            ExecutionError: Spawn failure or non-zero exit.
            CommandTimeoutError: The timeout expired and the process was killed.
        """
        logger.info("Executing command: %s", truncate_message_for_logging(command, 200))
        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self.shell_env,
                start_new_session=True,
            )
        except OSError as exc:
            raise ExecutionError(f"Failed to start command: {command}: {exc}") from exc
        return await self._communicate(process, command, timeout)

    async def run_program(
        self,
        argv: Sequence[str],
        timeout: Optional[float] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> CommandOutput:
        """Spawn `argv` without a shell; same result and error contract as `run`."""
        label = " ".join(argv[:1]) if argv else ""
        if env is not None:
            env = {**os.environ, **env}
        logger.info("Spawning program: %s", label)
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
                start_new_session=True,
            )
        except OSError as exc:
            raise ExecutionError(f"Failed to start program: {label}: {exc}") from exc
        return await self._communicate(process, label, timeout)

    async def _communicate(
        self,
        process: asyncio.subprocess.Process,
        label: str,
        timeout: Optional[float],
    ) -> CommandOutput:
        start_time = time.time()
        try:
            if timeout is None:
                stdout, stderr = await process.communicate()
            else:
                stdout, stderr = await asyncio.wait_for(process.communicate(), timeout)
        except asyncio.TimeoutError:
            await self._kill(process)
            logger.warning("Command timed out after %ss and was killed: %s", timeout, label)
            raise CommandTimeoutError(f"Command timed out after {timeout}s: {label}")
        except asyncio.CancelledError:
            await self._kill(process)
            logger.warning("Command cancelled and killed: %s", label)
            raise
        finally:
            COMMAND_EXECUTION_TIME.observe(time.time() - start_time)

        output = CommandOutput(stdout=_decode(stdout), stderr=_decode(stderr), returncode=process.returncode)
        if output.returncode != 0:
            logger.error("Command exited with code %s: %s", output.returncode, label)
            raise ExecutionError(
                f"Command failed with exit code {output.returncode}: {label}",
                stderr=output.stderr,
                stdout=output.stdout,
                returncode=output.returncode,
            )

        logger.info("Command executed successfully: %s", truncate_message_for_logging(label, 200))
        return output

    @staticmethod
    async def _kill(process: asyncio.subprocess.Process) -> None:
        # Children run in their own session; killing the group also takes out
        # anything the shell spawned, which would otherwise hold the pipes open.
        if process.returncode is None:
            try:
                os.killpg(process.pid, signal.SIGKILL)
            except ProcessLookupError:
                pass
            except PermissionError:
                process.kill()
        await process.wait()

