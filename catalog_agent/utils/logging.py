from __future__ import annotations
import json, sys
from datetime import datetime, timezone
from pathlib import Path

LOG_FILE_NAME = "catalog_agent.log"


class RunLogger:
    """
    JSON-lines logger shared by the agents of one process.

    Every call appends one object (`ts`, `level`, `msg`, extra fields) to
    `<log_dir>/catalog_agent.log`. WARN and ERROR lines are echoed to stderr.
    DEBUG lines are dropped unless the logger was built with `debug=True`.
    """

    def __init__(self, log_dir: Path, debug: bool = False):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.log_path = self.log_dir / LOG_FILE_NAME
        self.debug_enabled = debug

    def _ts(self) -> str:
        return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def debug(self, msg: str, **kv):
        if not self.debug_enabled:
            return
        self._write({"ts": self._ts(), "level": "DEBUG", "msg": msg, **kv})

    def info(self, msg: str, **kv):
        line = {"ts": self._ts(), "level": "INFO", "msg": msg, **kv}
        self._write(line)

    def warn(self, msg: str, **kv):
        line = {"ts": self._ts(), "level": "WARN", "msg": msg, **kv}
        self._write(line)

    def error(self, msg: str, **kv):
        line = {"ts": self._ts(), "level": "ERROR", "msg": msg, **kv}
        self._write(line)

    def _write(self, line: dict):
        txt = json.dumps(line, ensure_ascii=False, default=str)
        with self.log_path.open("a", encoding="utf-8") as f:
            f.write(txt + "\n")
        # WARN and ERROR go to stderr too
        if line["level"] in {"ERROR", "WARN"}:
            print(txt, file=sys.stderr)
