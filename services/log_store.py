"""
Read and maintain the daemon's JSON-lines log file.

Backs the log endpoints: tail the last N records, clear the file after taking a
backup copy, and expose the path for download. Lines that are not JSON (startup
noise, third-party output) come back wrapped as plain info messages.
"""
import datetime
import json
import os
import shutil
import time
from typing import Any, Dict, List, Tuple


class LogStore:
    """
    Operations on one log file path.

    Args:
        path (str): Log file written by the rotating file handler.
    """

    def __init__(self, path: str):
        self.path = path

    def exists(self) -> bool:
        return bool(self.path) and os.path.isfile(self.path)

    def tail(self, lines: int = 10) -> Tuple[List[Dict[str, Any]], int]:
        """
        Return the last `lines` non-empty records and the total record count.

        Raises:
            FileNotFoundError: The log file does not exist.
        """
        with open(self.path, "r", encoding="utf-8", errors="replace") as f:
            records = [line.rstrip("\n") for line in f if line.strip()]
        last = records[-lines:] if lines > 0 else []
        return [self._parse(line) for line in last], len(records)

    def clear(self) -> str:
        """
        Copy the log file to a timestamped backup, then truncate it.

        Returns:
            str: Path of the backup copy.

        Raises:
            FileNotFoundError: The log file does not exist.
        """
        if not self.exists():
            raise FileNotFoundError(self.path)
        backup_path = f"{self.path}.backup.{int(time.time() * 1000)}"
        shutil.copyfile(self.path, backup_path)
        # Truncate in place so the open handler keeps writing to the same file
        with open(self.path, "w", encoding="utf-8"):
            pass
        return backup_path

    def download_name(self) -> str:
        return f"fazai-logs-{datetime.date.today().isoformat()}.log"

    @staticmethod
    def _parse(line: str) -> Dict[str, Any]:
        try:
            record = json.loads(line)
        except json.JSONDecodeError:
            record = None
        if isinstance(record, dict):
            return record
        return {
            "message": line,
            "level": "info",
            "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        }
