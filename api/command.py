"""
api/command.py

Handles the command endpoint, the daemon's main entry point.

Endpoints:
  - POST /command: Receives an operator request ({command, mcps, execute}), runs it
                   through the CommandOrchestrator and returns the result envelope.

Processing runs as its own task while the route watches the client connection. If
the client goes away the task is cancelled, which kills any shell step or architect
script still running for that request.
"""

import asyncio
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from config import SETTINGS
from core.orchestrator import CommandOrchestrator
from shared.errors import friendly_message
from shared.models import CommandRequest
from shared.utils import truncate_message_for_logging

# Get a logger instance for this module
logger = logging.getLogger(__name__)

router = APIRouter()

DISCONNECT_POLL_INTERVAL = 0.5


async def cancel_on_disconnect(request: Request, task: asyncio.Task, disconnected: asyncio.Event) -> None:
    """Poll the client connection and cancel `task` once the client has gone."""
    while not task.done():
        if await request.is_disconnected():
            logger.warning("[handle_command] Client disconnected; cancelling command processing")
            disconnected.set()
            task.cancel()
            return
        await asyncio.sleep(DISCONNECT_POLL_INTERVAL)


@router.post("/command")
async def handle_command(body: CommandRequest, request: Request):
    """
    Process one operator command and return the ExecutionResult envelope.

    Args:
        body (CommandRequest): `command` text plus the `mcps` and `execute` flags.
        request (Request): Used to detect client disconnects.

    Returns:
        JSONResponse: The envelope with HTTP 200 (including degraded outcomes, which
            carry success=false); 400 when the command is missing or blank; 500 with
            {command, error, details, success} on an unexpected failure.
    """
    command = (body.command or "").strip()
    if not command:
        logger.warning("[handle_command] Request without a command")
        return JSONResponse(status_code=400, content={"success": False, "error": "Command not provided"})

    logger.info(f"[handle_command] Received command: '{truncate_message_for_logging(command)}' (mcps={body.mcps}, execute={body.execute})")

    # One settings snapshot for the whole request
    orchestrator = CommandOrchestrator(SETTINGS.current())
    task = asyncio.create_task(orchestrator.process_command(command, mcps=body.mcps, execute=body.execute))
    disconnected = asyncio.Event()
    watcher = asyncio.create_task(cancel_on_disconnect(request, task, disconnected))

    try:
        result = await task
    except asyncio.CancelledError:
        if not disconnected.is_set():
            raise
        return JSONResponse(
            status_code=499,
            content={"command": command, "success": False, "error": "Client disconnected; command cancelled"},
        )
    except Exception as e:
        logger.error(f"[handle_command] Unexpected error processing command: {e}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "command": command,
                "error": friendly_message(e),
                "details": str(e),
                "success": False,
            },
        )
    finally:
        watcher.cancel()

    return JSONResponse(result.to_api_response())
