"""
API tests for `api/command.py` using FastAPI's TestClient.

Covers:
- POST /api/command: envelope pass-through, flag forwarding, 400 on a blank command,
  and the 500 error body on an unexpected failure
- Client disconnects: processing is cancelled and answered with 499; a cancellation
  that did not come from a disconnect propagates

`api.command.CommandOrchestrator` is mocked so no provider or shell is touched.
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from api.command import handle_command
from main import app
from shared.errors import GENERIC_FAILURE_MESSAGE
from shared.models import CommandRequest, ExecutionResult, ResultType

client = TestClient(app)


def mock_orchestrator(mock_cls, result=None, error=None):
    orchestrator = MagicMock()
    if error is not None:
        orchestrator.process_command = AsyncMock(side_effect=error)
    else:
        orchestrator.process_command = AsyncMock(return_value=result)
    mock_cls.return_value = orchestrator
    return orchestrator


@patch("api.command.CommandOrchestrator")
def test_command_returns_envelope(mock_cls):
    orchestrator = mock_orchestrator(mock_cls, ExecutionResult(
        success=True,
        command="_list files?",
        type=ResultType.QUESTION,
        interpretation='echo "list files"',
        result="list files\n",
    ))

    resp = client.post("/api/command", json={"command": "_list files?"})

    assert resp.status_code == 200
    body = resp.json()
    assert body == {
        "success": True,
        "command": "_list files?",
        "type": "question",
        "interpretation": 'echo "list files"',
        "result": "list files\n",
    }
    orchestrator.process_command.assert_awaited_once_with("_list files?", mcps=False, execute=False)


@patch("api.command.CommandOrchestrator")
def test_command_forwards_flags(mock_cls):
    orchestrator = mock_orchestrator(mock_cls, ExecutionResult(success=True, command="prep", type=ResultType.MCPS, results=[]))

    resp = client.post("/api/command", json={"command": "  prep  ", "mcps": True, "execute": True})

    assert resp.status_code == 200
    orchestrator.process_command.assert_awaited_once_with("prep", mcps=True, execute=True)


@patch("api.command.CommandOrchestrator")
def test_degraded_result_is_still_http_200(mock_cls):
    mock_orchestrator(mock_cls, ExecutionResult(
        success=False,
        command="disk usage",
        type=ResultType.SIMPLE,
        interpretation='echo "Unable to interpret the command via AI."',
        error="Could not reach the AI service. Check your internet connection.",
        details="refused",
    ))

    resp = client.post("/api/command", json={"command": "disk usage"})

    assert resp.status_code == 200
    assert resp.json()["success"] is False


@patch("api.command.CommandOrchestrator")
def test_blank_command_is_rejected(mock_cls):
    for payload in ({}, {"command": ""}, {"command": "   "}):
        resp = client.post("/api/command", json=payload)
        assert resp.status_code == 400
        assert resp.json()["success"] is False
    mock_cls.assert_not_called()


@patch("api.command.CommandOrchestrator")
def test_unexpected_error_returns_500(mock_cls):
    mock_orchestrator(mock_cls, error=RuntimeError("boom"))

    resp = client.post("/api/command", json={"command": "list files"})

    assert resp.status_code == 500
    assert resp.json() == {
        "command": "list files",
        "error": GENERIC_FAILURE_MESSAGE,
        "details": "boom",
        "success": False,
    }


class FakeRequest:
    """Stands in for starlette's Request; only the disconnect check is used."""

    def __init__(self, disconnected):
        self.disconnected = disconnected

    async def is_disconnected(self):
        return self.disconnected


@patch("api.command.CommandOrchestrator")
def test_client_disconnect_cancels_processing(mock_cls):
    cancelled = []

    async def slow_process(*args, **kwargs):
        try:
            await asyncio.sleep(30)
        except asyncio.CancelledError:
            cancelled.append(True)
            raise

    mock_cls.return_value.process_command = slow_process

    resp = asyncio.run(handle_command(CommandRequest(command="sleep a while"), FakeRequest(disconnected=True)))

    assert resp.status_code == 499
    assert json.loads(resp.body) == {
        "command": "sleep a while",
        "success": False,
        "error": "Client disconnected; command cancelled",
    }
    assert cancelled == [True]


@patch("api.command.CommandOrchestrator")
def test_cancellation_without_disconnect_propagates(mock_cls):
    mock_cls.return_value.process_command = AsyncMock(side_effect=asyncio.CancelledError())

    with pytest.raises(asyncio.CancelledError):
        asyncio.run(handle_command(CommandRequest(command="list files"), FakeRequest(disconnected=False)))
