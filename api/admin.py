"""
api/admin.py

Administrative endpoints of the daemon.

Endpoints:
  - POST /reload: Re-read the configuration and reload native extensions.
  - GET /status: Liveness plus version, provider and extension information.
  - GET /logs: Last N structured log records.
  - POST /logs/clear: Back up and truncate the log file.
  - GET /logs/download: The log file as an attachment.
  - POST /extensions/{name}: Run a command through a loaded native extension.
"""

import asyncio
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Query
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel

from config import SETTINGS, reload_settings
from services.extensions import extension_manager
from services.log_store import LogStore
from shared.errors import ExtensionError
from version import __version__

# Get a logger instance for this module
logger = logging.getLogger(__name__)

router = APIRouter()

LOG_FILE_NOT_FOUND = "Log file not found"


class ExtensionRequest(BaseModel):
    command: str
    payload: str = ""


def _log_store() -> LogStore:
    return LogStore(SETTINGS.current().logging.file_path)


@router.post("/reload")
async def reload_configuration():
    """
    Rebuild the settings from disk and reload native extensions.

    The new settings replace the old ones only after they load and validate, so a
    broken config file leaves the daemon running on its previous configuration.
    """
    logger.info("[reload_configuration] Reload requested")
    try:
        settings = reload_settings()
    except (OSError, ValueError) as e:
        # json.JSONDecodeError and pydantic's ValidationError are both ValueErrors
        logger.error(f"[reload_configuration] Reload failed, keeping previous settings: {e}")
        return JSONResponse(status_code=500, content={"success": False, "error": f"Reload failed: {e}"})

    names = extension_manager.reload(settings.extensions)
    return {
        "success": True,
        "message": "Configuration and extensions reloaded",
        "default_provider": settings.ai.default_provider,
        "extensions": names,
    }


@router.get("/status")
async def get_status():
    settings = SETTINGS.current()
    return {
        "success": True,
        "status": "online",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__,
        "default_provider": settings.ai.default_provider,
        "providers": sorted(settings.ai.providers),
        "extensions": extension_manager.names(),
    }


@router.get("/logs")
async def get_logs(lines: int = Query(10, ge=1)):
    """
    Return the last `lines` log records parsed from the JSON-lines log file.

    Returns:
        JSONResponse: {success, logs, total}; success=false when the file is absent.
    """
    store = _log_store()
    if not store.exists():
        return {"success": False, "error": LOG_FILE_NOT_FOUND}
    try:
        logs, total = store.tail(lines)
    except OSError as e:
        logger.error(f"[get_logs] Error reading logs: {e}")
        return JSONResponse(status_code=500, content={"success": False, "error": f"Error reading logs: {e}"})
    return {"success": True, "logs": logs, "total": total}


@router.post("/logs/clear")
async def clear_logs():
    logger.info("[clear_logs] Log clear requested")
    store = _log_store()
    if not store.exists():
        return {"success": False, "error": LOG_FILE_NOT_FOUND}
    try:
        backup = store.clear()
    except OSError as e:
        logger.error(f"[clear_logs] Error clearing logs: {e}")
        return JSONResponse(status_code=500, content={"success": False, "error": f"Error clearing logs: {e}"})
    logger.info(f"[clear_logs] Logs cleared, backup at {backup}")
    return {"success": True, "message": "Logs cleared", "backup": backup}


@router.get("/logs/download")
async def download_logs():
    store = _log_store()
    if not store.exists():
        return JSONResponse(status_code=404, content={"success": False, "error": LOG_FILE_NOT_FOUND})
    return FileResponse(store.path, media_type="application/octet-stream", filename=store.download_name())


@router.post("/extensions/{name}")
async def run_extension(name: str, body: ExtensionRequest):
    """
    Execute `body.command` through the named native extension.

    Returns 404 for an unknown extension and 500 when the module call itself fails.
    A non-zero return code from the module is reported with success=false.
    """
    if extension_manager.get(name) is None:
        return JSONResponse(status_code=404, content={"success": False, "error": f"Extension not loaded: {name}"})

    try:
        # Native calls block; keep them off the event loop
        output = await asyncio.to_thread(
            extension_manager.execute, name, body.command, body.payload.encode("utf-8")
        )
    except (ExtensionError, KeyError, OSError) as e:
        logger.error(f"[run_extension] Extension {name} failed: {e}")
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

    return {
        "success": output.success,
        "extension": name,
        "command": body.command,
        "returncode": output.returncode,
        "output": output.output,
    }
